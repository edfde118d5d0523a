"""
HTTP fetching of page HTML for captures submitted without markup.

Makes a single attempt per call. Retries are left to SQS redelivery of the
fetch message.
"""

import logging
from dataclasses import dataclass

import httpx

from lambdalet_common.constants import FETCH_TIMEOUT
from lambdalet_common.exceptions import FetchError

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPES = ("text/", "application/xhtml", "application/xml")


@dataclass
class FetchResult:
    """Result of a page fetch operation."""

    url: str
    status_code: int
    content: str
    content_type: str


def is_text_content_type(content_type: str) -> bool:
    """Check whether a response content type carries text markup."""
    if not content_type:
        # Servers that omit the header are usually serving HTML
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type.startswith(TEXT_CONTENT_TYPES) or media_type.endswith("+xml")


class HttpFetcher:
    """HTTP fetcher for capture pages."""

    USER_AGENT = "Mozilla/5.0 (compatible; Lambdalet/1.0)"

    def __init__(
        self,
        timeout: float = FETCH_TIMEOUT,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize HTTP fetcher.

        Args:
            timeout: Request timeout in seconds
            headers: Optional custom headers
            transport: Optional httpx transport (tests inject a mock)
        """
        self.timeout = timeout
        self.headers = headers or {}
        self.transport = transport

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch a page.

        Args:
            url: URL to fetch

        Returns:
            FetchResult with the decoded body

        Raises:
            FetchError: On network error, timeout, HTTP error status or a
                response that is not text
        """
        request_headers = {
            "User-Agent": self.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            **self.headers,
        }

        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = client.get(url, headers=request_headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FetchError(url, f"HTTP {status}: {e.response.reason_phrase}", status) from e
        except httpx.TimeoutException as e:
            raise FetchError(url, f"Timeout after {self.timeout:g}s: {e}") from e
        except httpx.RequestError as e:
            raise FetchError(url, f"Request error: {e}") from e
        except httpx.InvalidURL as e:
            raise FetchError(url, f"Invalid URL: {e}") from e

        content_type = response.headers.get("content-type", "")
        if not is_text_content_type(content_type):
            raise FetchError(url, f"Not text content: {content_type}", response.status_code)

        logger.info(
            f"Fetched {url} (status={response.status_code}, {len(response.text)} chars)"
        )

        return FetchResult(
            url=str(response.url),  # May differ from request URL due to redirects
            status_code=response.status_code,
            content=response.text,
            content_type=content_type,
        )
