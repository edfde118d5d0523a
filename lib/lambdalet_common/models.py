"""
Data models for the capture pipeline.

These models represent a capture as it flows through the pipeline:
ingress -> (fetch) -> processing -> Notion
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from lambdalet_common.constants import PAYLOAD_KEY_SUFFIX
from lambdalet_common.exceptions import InvalidStatusTransition, ValidationError


class CaptureMode(str, Enum):
    """What the bookmarklet captured."""

    DOCUMENT = "document"  # Full page body
    SELECTION = "selection"  # User text selection only


class InvokeMode(str, Enum):
    """Transport the bookmarklet used; selects the acknowledgment shape."""

    FETCH = "fetch"
    FORM_BLANK = "form-blank"
    FORM_SELF = "form-self"
    WINDOW_OPEN = "window-open"


class DocumentStatus(str, Enum):
    """Status of a destination document in the Notion database."""

    NOT_STARTED = "Not started"
    IN_PROGRESS = "In progress"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.DONE, DocumentStatus.FAILED)

    def can_transition_to(self, new_status: "DocumentStatus") -> bool:
        """Check whether moving from this status to new_status is allowed."""
        return new_status in _ALLOWED_TRANSITIONS[self]

    @classmethod
    def validate_transition(cls, old: "DocumentStatus", new: "DocumentStatus") -> None:
        """
        Raise if the transition is not part of the status state machine.

        Raises:
            InvalidStatusTransition: If old -> new is not allowed
        """
        if not old.can_transition_to(new):
            raise InvalidStatusTransition(
                f"Cannot change document status from {old.value!r} to {new.value!r}"
            )


_ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.NOT_STARTED: frozenset({DocumentStatus.IN_PROGRESS}),
    DocumentStatus.IN_PROGRESS: frozenset({DocumentStatus.DONE, DocumentStatus.FAILED}),
    DocumentStatus.DONE: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}


def validate_url(url: Any) -> str:
    """
    Validate that url is an absolute http(s) URL.

    Args:
        url: Candidate URL value

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        ValidationError: If the URL is missing or malformed
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("url is required")

    url = url.strip()
    if any(c.isspace() for c in url):
        raise ValidationError(f"url must not contain whitespace: {url!r}")

    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise ValidationError(f"url is malformed: {e}") from e

    if parsed.scheme not in ("http", "https"):
        raise ValidationError("url must start with http:// or https://")
    if not parsed.netloc:
        raise ValidationError(f"url has no host: {url!r}")

    return url


def _parse_enum(enum_cls, value: Any, field_name: str, default):
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}") from e


@dataclass
class CaptureRequest:
    """
    A page (or selection) submitted for saving.

    Attributes:
        url: Absolute URL of the captured page
        title: Display title for the Notion page
        html: Raw markup; None until captured or fetched
        mode: Full document or selection
        invoke: Delivery channel hint for the HTTP acknowledgment
    """

    url: str
    title: str
    html: str | None = None
    mode: CaptureMode = CaptureMode.DOCUMENT
    invoke: InvokeMode = InvokeMode.FETCH

    @property
    def has_html(self) -> bool:
        return bool(self.html and self.html.strip())

    def with_html(self, html: str) -> "CaptureRequest":
        """Return a copy with the HTML populated."""
        return CaptureRequest(
            url=self.url,
            title=self.title,
            html=html,
            mode=self.mode,
            invoke=self.invoke,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the payload store."""
        data = {
            "url": self.url,
            "title": self.title,
            "mode": self.mode.value,
            "invoke": self.invoke.value,
        }

        if self.has_html:
            data["html"] = self.html

        return data

    @classmethod
    def from_dict(cls, data: Any) -> "CaptureRequest":
        """
        Create and validate a CaptureRequest from a dictionary.

        Raises:
            ValidationError: If the data does not describe a valid capture
        """
        if not isinstance(data, dict):
            raise ValidationError("Capture request must be an object")

        url = validate_url(data.get("url"))

        title = data.get("title")
        if title is not None and not isinstance(title, str):
            raise ValidationError("title must be a string")
        title = (title or "").strip() or url

        html = data.get("html")
        if html is not None and not isinstance(html, str):
            raise ValidationError("html must be a string")
        if html is not None and not html.strip():
            html = None

        return cls(
            url=url,
            title=title,
            html=html,
            mode=_parse_enum(CaptureMode, data.get("mode"), "mode", CaptureMode.DOCUMENT),
            invoke=_parse_enum(InvokeMode, data.get("invoke"), "invoke", InvokeMode.FETCH),
        )


@dataclass(frozen=True)
class PipelineMessage:
    """
    Reference-only message handed from one stage to the next.

    Attributes:
        bucket: Payload bucket name
        key: Payload object key
        identity: Request identity (sha256 of the URL)
    """

    bucket: str
    key: str
    identity: str

    @property
    def storage_uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def to_dict(self) -> dict[str, str]:
        return {"bucket": self.bucket, "key": self.key, "identity": self.identity}

    @classmethod
    def from_dict(cls, data: Any) -> "PipelineMessage":
        """
        Create a PipelineMessage from a queue message body.

        Messages without an identity derive it from the key stem.

        Raises:
            ValidationError: If bucket or key is missing
        """
        if not isinstance(data, dict):
            raise ValidationError("Pipeline message must be an object")

        bucket = data.get("bucket")
        key = data.get("key")
        if not bucket or not isinstance(bucket, str):
            raise ValidationError("Pipeline message is missing bucket")
        if not key or not isinstance(key, str):
            raise ValidationError("Pipeline message is missing key")

        identity = data.get("identity")
        if not identity:
            identity = key.rsplit("/", 1)[-1].removesuffix(PAYLOAD_KEY_SUFFIX)

        return cls(bucket=bucket, key=key, identity=identity)
