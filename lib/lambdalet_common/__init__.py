"""Lambdalet Common Library

Shared code for the capture pipeline Lambdas: models, HTML to Markdown
conversion, content extraction, payload storage, queues and Notion.
"""

from lambdalet_common import constants
from lambdalet_common.exceptions import (
    ExtractionError,
    ExtractionTimeout,
    FetchError,
    InvalidStatusTransition,
    LambdaletError,
    MissingHtmlError,
    PublishError,
    ValidationError,
)
from lambdalet_common.logging_utils import log_summary, safe_log_event
from lambdalet_common.markdown import to_markdown
from lambdalet_common.models import (
    CaptureMode,
    CaptureRequest,
    DocumentStatus,
    InvokeMode,
    PipelineMessage,
)

__all__ = [
    "CaptureMode",
    "CaptureRequest",
    "DocumentStatus",
    "ExtractionError",
    "ExtractionTimeout",
    "FetchError",
    "InvalidStatusTransition",
    "InvokeMode",
    "LambdaletError",
    "MissingHtmlError",
    "PipelineMessage",
    "PublishError",
    "ValidationError",
    "constants",
    "log_summary",
    "safe_log_event",
    "to_markdown",
]
