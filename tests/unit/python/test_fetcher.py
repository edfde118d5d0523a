"""Unit tests for the HTTP page fetcher."""

import httpx
import pytest

from lambdalet_common.exceptions import FetchError
from lambdalet_common.fetcher import HttpFetcher, is_text_content_type


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(timeout=5, transport=httpx.MockTransport(handler))


class TestFetchError:
    """Tests for FetchError exception."""

    def test_error_message(self):
        error = FetchError("https://example.com", "Connection refused")
        assert str(error) == "Failed to fetch https://example.com: Connection refused"
        assert error.url == "https://example.com"
        assert error.status_code is None

    def test_with_status_code(self):
        assert FetchError("https://example.com", "Not found", status_code=404).status_code == 404


class TestIsTextContentType:
    @pytest.mark.parametrize(
        "content_type",
        [
            "",
            "text/html",
            "text/html; charset=utf-8",
            "TEXT/PLAIN",
            "application/xhtml+xml",
            "application/xml",
            "application/rss+xml",
        ],
    )
    def test_text(self, content_type):
        assert is_text_content_type(content_type)

    @pytest.mark.parametrize(
        "content_type", ["application/pdf", "image/png", "application/json", "application/octet-stream"]
    )
    def test_not_text(self, content_type):
        assert not is_text_content_type(content_type)


class TestHttpFetcher:
    """Tests for HttpFetcher class."""

    def test_successful_fetch(self):
        def handler(request):
            assert "Lambdalet" in request.headers["user-agent"]
            return httpx.Response(
                200, text="<html><body>Hi</body></html>", headers={"content-type": "text/html"}
            )

        result = _fetcher(handler).fetch("https://example.com/page")

        assert result.status_code == 200
        assert result.content == "<html><body>Hi</body></html>"
        assert result.content_type == "text/html"
        assert result.url == "https://example.com/page"

    def test_follows_redirects(self):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://example.com/new"})
            return httpx.Response(200, text="new", headers={"content-type": "text/html"})

        result = _fetcher(handler).fetch("https://example.com/old")
        assert result.url == "https://example.com/new"
        assert result.content == "new"

    def test_custom_headers(self):
        def handler(request):
            assert request.headers["cookie"] == "session=1"
            return httpx.Response(200, text="ok")

        fetcher = HttpFetcher(
            headers={"Cookie": "session=1"}, transport=httpx.MockTransport(handler)
        )
        assert fetcher.fetch("https://example.com").content == "ok"

    def test_http_error_status(self):
        fetcher = _fetcher(lambda request: httpx.Response(404, text="missing"))

        with pytest.raises(FetchError, match="HTTP 404") as exc_info:
            fetcher.fetch("https://example.com/missing")
        assert exc_info.value.status_code == 404

    def test_server_error_status(self):
        fetcher = _fetcher(lambda request: httpx.Response(503))
        with pytest.raises(FetchError, match="HTTP 503"):
            fetcher.fetch("https://example.com")

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchError, match="Timeout") as exc_info:
            _fetcher(handler).fetch("https://example.com")
        assert exc_info.value.status_code is None

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(FetchError, match="Request error"):
            _fetcher(handler).fetch("https://example.com")

    def test_non_text_response(self):
        fetcher = _fetcher(
            lambda request: httpx.Response(
                200, content=b"%PDF-1.7", headers={"content-type": "application/pdf"}
            )
        )
        with pytest.raises(FetchError, match="Not text content: application/pdf"):
            fetcher.fetch("https://example.com/file.pdf")

    def test_single_attempt(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(FetchError):
            _fetcher(handler).fetch("https://example.com")
        assert len(calls) == 1

    def test_invalid_url(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})

        with pytest.raises(FetchError, match="Invalid URL") as exc_info:
            _fetcher(handler).fetch("https://example.com/a\x00b")
        assert exc_info.value.status_code is None
        assert calls == []
