"""
Notion document store.

Publishes captures as pages of a Notion database through the REST API:
- Ensures the database has the URL, Status, Created At and Last Updated
  properties
- Keeps at most one live page per URL by archiving earlier pages
- Appends the page body in batches within the per-request block limits
- Sets the Status property and adds diagnostic comments

Rate limited (429) and unavailable (503) responses are retried a few times
honoring Retry-After. Any other failure raises PublishError.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from lambdalet_common.constants import (
    NOTION_API_URL,
    NOTION_MAX_ATTEMPTS,
    NOTION_TIMEOUT,
    NOTION_VERSION,
)
from lambdalet_common.exceptions import PublishError
from lambdalet_common.models import DocumentStatus
from lambdalet_common.notion_blocks import (
    Block,
    batch_blocks,
    detach_children,
    plain_rich_text,
    to_blocks,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 503})
MAX_RETRY_DELAY = 30.0

URL_PROPERTY = "URL"
STATUS_PROPERTY = "Status"
CREATED_AT_PROPERTY = "Created At"
LAST_UPDATED_PROPERTY = "Last Updated"
DEFAULT_TITLE_PROPERTY = "Name"

STATUS_COLORS = {
    DocumentStatus.NOT_STARTED: "default",
    DocumentStatus.IN_PROGRESS: "blue",
    DocumentStatus.DONE: "green",
    DocumentStatus.FAILED: "red",
}


def _retry_delay(response: httpx.Response, attempt: int) -> float:
    """Seconds to wait before retrying, from Retry-After or exponential backoff."""
    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            return min(max(float(retry_after), 0.0), MAX_RETRY_DELAY)
        except ValueError:
            pass
    return min(float(2**attempt), MAX_RETRY_DELAY)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        code = body.get("code", "")
        message = body.get("message", "")
        return f"{code}: {message}" if code else message or response.reason_phrase
    return response.reason_phrase


class NotionClient:
    """Client for one Notion database used as the capture destination."""

    def __init__(
        self,
        token: str,
        database_id: str,
        timeout: float = NOTION_TIMEOUT,
        max_attempts: int = NOTION_MAX_ATTEMPTS,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize a Notion client.

        Args:
            token: Notion integration token
            database_id: Destination database id
            timeout: Per-request timeout in seconds
            max_attempts: Attempts for rate limited or unavailable responses
            transport: Optional httpx transport (tests inject a mock)
            sleep: Sleep function used between retries
        """
        self.database_id = database_id
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._schema_ready = False
        self._title_property = DEFAULT_TITLE_PROPERTY
        self._http = httpx.Client(
            base_url=NOTION_API_URL,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "NotionClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Send one API request, retrying 429 and 503 responses.

        Raises:
            PublishError: On transport errors, other error statuses, or
                when retries are exhausted
        """
        for attempt in range(self.max_attempts):
            try:
                response = self._http.request(method, path, json=json)
            except httpx.TimeoutException as e:
                raise PublishError(f"Notion {method} {path} timed out: {e}") from e
            except httpx.RequestError as e:
                raise PublishError(f"Notion {method} {path} failed: {e}") from e

            if response.status_code in RETRYABLE_STATUS_CODES and attempt + 1 < self.max_attempts:
                delay = _retry_delay(response, attempt)
                logger.warning(
                    f"Notion returned {response.status_code} for {method} {path}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_attempts})"
                )
                self._sleep(delay)
                continue

            if response.is_error:
                message = _error_message(response)
                logger.error(f"Notion error {response.status_code} for {method} {path}: {message}")
                raise PublishError(
                    f"Notion {method} {path} failed with HTTP {response.status_code}: {message}",
                    response.status_code,
                )

            return response.json() if response.content else {}

        # Unreachable: the last attempt either returns or raises
        raise PublishError(f"Notion {method} {path} failed after {self.max_attempts} attempts")

    # ------------------------------------------------------------------
    # Database schema
    # ------------------------------------------------------------------

    def ensure_schema(self) -> None:
        """Add missing pipeline properties to the database, once per client."""
        if self._schema_ready:
            return

        database = self._request("GET", f"/databases/{self.database_id}")
        properties = database.get("properties", {})

        for name, prop in properties.items():
            if prop.get("type") == "title":
                self._title_property = prop.get("name", name)

        existing = {prop.get("name", name) for name, prop in properties.items()}
        updates: dict[str, Any] = {}

        if URL_PROPERTY not in existing:
            updates[URL_PROPERTY] = {"url": {}}
        if CREATED_AT_PROPERTY not in existing:
            updates[CREATED_AT_PROPERTY] = {"created_time": {}}
        if LAST_UPDATED_PROPERTY not in existing:
            updates[LAST_UPDATED_PROPERTY] = {"last_edited_time": {}}
        if STATUS_PROPERTY not in existing:
            updates[STATUS_PROPERTY] = {
                "select": {
                    "options": [
                        {"name": status.value, "color": color}
                        for status, color in STATUS_COLORS.items()
                    ]
                }
            }

        if updates:
            logger.info(f"Adding properties to database {self.database_id}: {sorted(updates)}")
            self._request("PATCH", f"/databases/{self.database_id}", {"properties": updates})

        self._schema_ready = True

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def find_pages(self, url: str) -> list[str]:
        """Ids of non-archived pages whose URL property equals url."""
        page_ids = []
        query: dict[str, Any] = {"filter": {"property": URL_PROPERTY, "url": {"equals": url}}}

        while True:
            result = self._request("POST", f"/databases/{self.database_id}/query", query)
            page_ids.extend(
                page["id"]
                for page in result.get("results", [])
                if page.get("object") == "page" and not page.get("archived")
            )
            if not result.get("has_more") or not result.get("next_cursor"):
                return page_ids
            query["start_cursor"] = result["next_cursor"]

    def archive_page(self, page_id: str) -> None:
        self._request("PATCH", f"/pages/{page_id}", {"archived": True})
        logger.info(f"Archived page {page_id}")

    def create_document(self, title: str, url: str) -> str:
        """
        Create the page for a capture, archiving earlier pages for the URL.

        Notion cannot replace a page body in place without deleting blocks
        one by one, so a re-capture archives the old page and starts over.

        Args:
            title: Page title
            url: Captured URL, stored in the URL property

        Returns:
            Id of the new page, created with status In progress

        Raises:
            PublishError: If any Notion request fails
        """
        self.ensure_schema()

        for page_id in self.find_pages(url):
            self.archive_page(page_id)

        page = self._request(
            "POST",
            "/pages",
            {
                "parent": {"database_id": self.database_id},
                "properties": {
                    self._title_property: {"title": plain_rich_text(title or url)},
                    URL_PROPERTY: {"url": url},
                    STATUS_PROPERTY: {"select": {"name": DocumentStatus.IN_PROGRESS.value}},
                },
            },
        )

        page_id = page["id"]
        logger.info(f"Created page {page_id} for {url}")
        return page_id

    def append_content(self, page_id: str, markdown: str) -> int:
        """
        Convert Markdown to blocks and append them to a page.

        Returns:
            Number of top-level blocks appended
        """
        blocks = to_blocks(markdown)
        self._append_blocks(page_id, blocks)

        logger.info(f"Appended {len(blocks)} blocks to page {page_id}")
        return len(blocks)

    def _append_blocks(self, parent_id: str, blocks: list[Block]) -> None:
        """
        Append blocks under a page or block, within the per-request limits.

        Children past the per-block limit are appended to their block once
        Notion has created it and returned its id.
        """
        detached = [detach_children(block) for block in blocks]
        start = 0

        for batch in batch_blocks([block for block, _ in detached]):
            result = self._request("PATCH", f"/blocks/{parent_id}/children", {"children": batch})
            created = result.get("results", [])

            for offset, (_, remaining) in enumerate(detached[start : start + len(batch)]):
                if not remaining:
                    continue
                if offset >= len(created) or "id" not in created[offset]:
                    raise PublishError(
                        f"Notion did not return the id of block {start + offset} under {parent_id}"
                    )
                logger.info(f"Appending {len(remaining)} more children to block {created[offset]['id']}")
                self._append_blocks(created[offset]["id"], remaining)

            start += len(batch)

    def set_status(self, page_id: str, status: DocumentStatus) -> None:
        self._request(
            "PATCH",
            f"/pages/{page_id}",
            {"properties": {STATUS_PROPERTY: {"select": {"name": DocumentStatus(status).value}}}},
        )
        logger.info(f"Set status of page {page_id} to {DocumentStatus(status).value}")

    def add_comment(self, page_id: str, text: str) -> None:
        self._request(
            "POST",
            "/comments",
            {"parent": {"page_id": page_id}, "rich_text": plain_rich_text(text)},
        )
