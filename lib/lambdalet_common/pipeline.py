"""
Capture pipeline stages.

ingress (admit) -> fetch (only when the capture has no HTML) -> processing

Stages share nothing but the stored payload, addressed by request identity,
and a PipelineMessage referencing it. Every stage is safe to run again on
the same message; a re-run of the processing stage costs at most one extra
archive/replace cycle of the Notion page.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from lambdalet_common.exceptions import (
    ExtractionError,
    ExtractionTimeout,
    FetchError,
    MissingHtmlError,
)
from lambdalet_common.extractor import extract_main_content
from lambdalet_common.identity import compute_request_identity, payload_key
from lambdalet_common.logging_utils import log_summary
from lambdalet_common.markdown import to_markdown
from lambdalet_common.models import (
    CaptureMode,
    CaptureRequest,
    DocumentStatus,
    InvokeMode,
    PipelineMessage,
)

logger = logging.getLogger(__name__)

ACCEPTED = "Accepted"

FETCH_FAILED_COMMENT = "HTML fetch failed: unable to fetch content from {url}. {error}"
MISSING_HTML_COMMENT = (
    "Processing failed: HTML content is missing for {url}. "
    "This usually means the page could not be fetched."
)
EXTRACTION_TIMEOUT_COMMENT = (
    "Content extraction timed out for {url}. The full page content was saved instead."
)
EXTRACTION_FAILED_COMMENT = (
    "Content extraction failed for {url}. The full page content was saved instead. {error}"
)
EXTRACTION_EMPTY_COMMENT = (
    "Content extraction returned no content for {url}. The full page content was saved instead."
)


class PayloadStore(Protocol):
    def put(self, bucket: str, key: str, data: dict[str, Any]) -> str: ...

    def get(self, bucket: str, key: str) -> dict[str, Any]: ...


class MessageQueue(Protocol):
    def send(
        self, queue_url: str, message: PipelineMessage, group_id: str, deduplication_id: str
    ) -> str | None: ...


class PageFetcher(Protocol):
    def fetch(self, url: str): ...


class DocumentStore(Protocol):
    def create_document(self, title: str, url: str) -> str: ...

    def append_content(self, page_id: str, markdown: str) -> int: ...

    def set_status(self, page_id: str, status: DocumentStatus) -> None: ...

    def add_comment(self, page_id: str, text: str) -> None: ...


Extract = Callable[[str, str], str]


@dataclass(frozen=True)
class AdmitResult:
    """Acknowledgment of an admitted capture."""

    status: str
    identity: str
    delivery_hint: InvokeMode
    queue_url: str
    message_id: str | None = None


class FetchOutcome(str, Enum):
    FORWARDED = "forwarded"  # HTML fetched and handed to processing
    SKIPPED = "skipped"  # Payload already had HTML


class ProcessOutcome(str, Enum):
    DONE = "done"
    MISSING_HTML = "missing_html"


class StatusTracker:
    """Drives one document through the status state machine."""

    def __init__(
        self,
        documents: DocumentStore,
        page_id: str,
        status: DocumentStatus = DocumentStatus.IN_PROGRESS,
    ):
        self.documents = documents
        self.page_id = page_id
        self.status = status

    def transition(self, new_status: DocumentStatus) -> None:
        """
        Move the document to new_status.

        Raises:
            InvalidStatusTransition: If the move is not allowed
        """
        DocumentStatus.validate_transition(self.status, new_status)
        self.documents.set_status(self.page_id, new_status)
        self.status = new_status


def _forward(queue: MessageQueue, queue_url: str, message: PipelineMessage) -> str | None:
    # Identity is both the FIFO group and the dedup id
    return queue.send(
        queue_url,
        message,
        group_id=message.identity,
        deduplication_id=message.identity,
    )


# ============================================================================
# Ingress
# ============================================================================


def admit(
    request: CaptureRequest,
    *,
    bucket: str,
    payload_store: PayloadStore,
    queue: MessageQueue,
    process_queue_url: str,
    fetch_queue_url: str,
) -> AdmitResult:
    """
    Store a capture and hand it to the next stage.

    Captures with HTML go straight to processing, the rest to the fetch
    stage. A re-capture of the same URL replaces the stored payload.

    Args:
        request: Validated capture request
        bucket: Payload bucket
        payload_store: Store for the capture payload
        queue: Queue client
        process_queue_url: Processing stage queue
        fetch_queue_url: Fetch stage queue

    Returns:
        AdmitResult with the identity and the queue the capture went to
    """
    start = time.time()

    identity = compute_request_identity(request.url)
    key = payload_key(identity)

    payload_store.put(bucket, key, request.to_dict())

    queue_url = process_queue_url if request.has_html else fetch_queue_url
    message_id = _forward(queue, queue_url, PipelineMessage(bucket, key, identity))

    logger.info(
        log_summary(
            "admit",
            duration_ms=(time.time() - start) * 1000,
            identity=identity,
            stage="process" if request.has_html else "fetch",
            mode=request.mode.value,
            invoke=request.invoke.value,
        )
    )

    return AdmitResult(
        status=ACCEPTED,
        identity=identity,
        delivery_hint=request.invoke,
        queue_url=queue_url,
        message_id=message_id,
    )


# ============================================================================
# Fetch stage
# ============================================================================


def _record_fetch_failure(documents: DocumentStore, request: CaptureRequest, error: FetchError) -> None:
    """Best effort Failed document for a fetch failure; errors are logged only."""
    try:
        page_id = documents.create_document(request.title, request.url)
        documents.add_comment(page_id, FETCH_FAILED_COMMENT.format(url=request.url, error=error))
        StatusTracker(documents, page_id).transition(DocumentStatus.FAILED)
        logger.info(f"Recorded failed document {page_id} for {request.url}")
    except Exception as e:
        logger.error(f"Failed to record fetch failure for {request.url}: {e}", exc_info=True)


def run_fetch_stage(
    message: PipelineMessage,
    *,
    payload_store: PayloadStore,
    queue: MessageQueue,
    fetcher: PageFetcher,
    documents: DocumentStore,
    process_queue_url: str,
) -> FetchOutcome:
    """
    Fetch the HTML of a stored capture and forward it to processing.

    Args:
        message: Reference to the stored payload
        payload_store: Payload store
        queue: Queue client
        fetcher: Page fetcher, one attempt per call
        documents: Document store used to record a failed fetch
        process_queue_url: Processing stage queue

    Returns:
        FetchOutcome.SKIPPED if the payload already had HTML,
        FetchOutcome.FORWARDED otherwise

    Raises:
        FetchError: After recording a Failed document, so the queue can
            redeliver the message
    """
    start = time.time()
    request = CaptureRequest.from_dict(payload_store.get(message.bucket, message.key))
    logger.info(f"Loaded payload {message.storage_uri} for {request.url}")

    if request.has_html:
        # Redelivered message whose fetch already completed
        logger.info(f"Payload already has HTML, skipping fetch: {request.url}")
        return FetchOutcome.SKIPPED

    try:
        result = fetcher.fetch(request.url)
        if not result.content.strip():
            raise FetchError(request.url, "Empty response body", result.status_code)
    except FetchError as e:
        logger.error(f"Fetch failed: {e}")
        _record_fetch_failure(documents, request, e)
        logger.info(
            log_summary(
                "fetch",
                success=False,
                duration_ms=(time.time() - start) * 1000,
                error=str(e),
                identity=message.identity,
            )
        )
        raise

    payload_store.put(message.bucket, message.key, request.with_html(result.content).to_dict())
    _forward(queue, process_queue_url, message)

    logger.info(
        log_summary(
            "fetch",
            duration_ms=(time.time() - start) * 1000,
            identity=message.identity,
            status_code=result.status_code,
            html_chars=len(result.content),
        )
    )
    return FetchOutcome.FORWARDED


# ============================================================================
# Processing stage
# ============================================================================


def _require_html(request: CaptureRequest) -> str:
    if not request.has_html:
        raise MissingHtmlError(f"HTML is missing for {request.url}")
    return request.html


def _extract_or_keep(
    markdown: str,
    request: CaptureRequest,
    page_id: str,
    documents: DocumentStore,
    extract: Extract,
) -> str:
    """Main content of a document capture, or the full Markdown if extraction fails."""
    try:
        extracted = extract(markdown, request.url)
    except ExtractionTimeout as e:
        logger.warning(f"Extraction timed out for {request.url}: {e}")
        documents.add_comment(page_id, EXTRACTION_TIMEOUT_COMMENT.format(url=request.url))
        return markdown
    except ExtractionError as e:
        logger.warning(f"Extraction failed for {request.url}: {e}")
        documents.add_comment(
            page_id, EXTRACTION_FAILED_COMMENT.format(url=request.url, error=e)
        )
        return markdown

    if not extracted.strip():
        logger.warning(f"Extraction returned no content for {request.url}")
        documents.add_comment(page_id, EXTRACTION_EMPTY_COMMENT.format(url=request.url))
        return markdown

    return extracted


def run_processing_stage(
    message: PipelineMessage,
    *,
    payload_store: PayloadStore,
    documents: DocumentStore,
    extract: Extract = extract_main_content,
) -> ProcessOutcome:
    """
    Publish a stored capture to the document store.

    Creates the document In progress, converts the HTML to Markdown,
    reduces full-page captures to their main content, appends the content
    and marks the document Done. A capture without HTML is marked Failed.

    Args:
        message: Reference to the stored payload
        payload_store: Payload store
        documents: Document store
        extract: Main content extraction, called as extract(markdown, url)

    Returns:
        ProcessOutcome.DONE or ProcessOutcome.MISSING_HTML

    Raises:
        PublishError: If a document store write fails
    """
    start = time.time()
    request = CaptureRequest.from_dict(payload_store.get(message.bucket, message.key))
    logger.info(f"Processing {request.url} from {message.storage_uri}")

    page_id = documents.create_document(request.title, request.url)
    tracker = StatusTracker(documents, page_id)

    try:
        html = _require_html(request)
    except MissingHtmlError as e:
        # Retrying would hit the same payload, so the document is closed as Failed
        logger.error(str(e))
        documents.add_comment(page_id, MISSING_HTML_COMMENT.format(url=request.url))
        tracker.transition(DocumentStatus.FAILED)
        logger.info(
            log_summary(
                "process",
                success=False,
                duration_ms=(time.time() - start) * 1000,
                error=str(e),
                identity=message.identity,
            )
        )
        return ProcessOutcome.MISSING_HTML

    markdown = to_markdown(html, request.url)
    logger.info(f"Converted {len(html)} chars of HTML to {len(markdown)} chars of Markdown")

    if request.mode == CaptureMode.DOCUMENT:
        markdown = _extract_or_keep(markdown, request, page_id, documents, extract)

    block_count = documents.append_content(page_id, markdown)
    tracker.transition(DocumentStatus.DONE)

    logger.info(
        log_summary(
            "process",
            duration_ms=(time.time() - start) * 1000,
            item_count=block_count,
            identity=message.identity,
            page_id=page_id,
            mode=request.mode.value,
        )
    )
    return ProcessOutcome.DONE
