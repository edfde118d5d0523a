"""
Logging helpers for the Lambdalet handlers.

Captured pages carry whole documents and the capture endpoint receives
API keys, so events are masked before they reach CloudWatch Logs.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Substring match: "html" also masks "selection_html", "token" masks "notion_token".
# Payload keys are request identities and stay visible.
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        "html",  # Captured markup
        "markdown",  # Converted page content
        "content",  # Extracted content, response bodies
        "body",  # API Gateway and SQS bodies
        "token",  # Notion integration token
        "password",
        "secret",
        "authorization",
        "credential",
        "apikey",
        "api_key",
        "api-key",  # x-api-key header
        "cookie",
    }
)

MAX_ERROR_LENGTH = 500


def mask_value(key: str, value: Any, sensitive_keys: frozenset[str] | None = None) -> Any:
    """
    Mask a value if its key names sensitive data.

    Args:
        key: Dictionary key or field name
        value: Value to mask
        sensitive_keys: Key substrings treated as sensitive

    Returns:
        Masked value if sensitive, otherwise the value with nested
        structures masked recursively
    """
    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    key_lower = key.lower()

    if any(s in key_lower for s in sensitive_keys):
        if isinstance(value, str):
            # Long values keep a prefix and their length, short ones may be credentials
            if len(value) > 20:
                return f"{value[:10]}...({len(value)} chars)"
            return "***"
        if isinstance(value, (list, dict)):
            return f"[{type(value).__name__}: masked]"
        return "***"

    if isinstance(value, dict):
        return {k: mask_value(k, v, sensitive_keys) for k, v in value.items()}

    if isinstance(value, list):
        return [mask_value(key, item, sensitive_keys) for item in value]

    return value


def safe_log_event(
    event: dict[str, Any],
    sensitive_keys: frozenset[str] | None = None,
) -> dict[str, Any]:
    """
    Return a copy of a Lambda event with sensitive data masked.

    Example:
        ```python
        logger.info(f"Received event: {safe_log_event(event)}")
        # {"headers": {"x-api-key": "***"}, "body": "{\\"url\\": \\"h...(5120 chars)"}
        ```
    """
    if not isinstance(event, dict):
        return {"_raw": str(event)[:100]}

    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    try:
        return {k: mask_value(k, v, sensitive_keys) for k, v in event.items()}
    except Exception as e:
        # Never fall back to logging the raw event
        logger.warning(f"Failed to mask event: {e}")
        return {"_error": "Could not safely serialize event", "_keys": list(event.keys())[:10]}


def log_summary(
    operation: str,
    *,
    success: bool = True,
    duration_ms: float | None = None,
    item_count: int | None = None,
    error: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create a structured summary of a stage run for logging.

    Args:
        operation: Stage name (e.g. "admit", "fetch", "process")
        success: Whether the stage succeeded
        duration_ms: Optional duration in milliseconds
        item_count: Optional count of items handled (e.g. Notion blocks)
        error: Optional error message, truncated
        **kwargs: Extra fields; primitives are kept, sequences become counts

    Returns:
        Dictionary suitable for logging
    """
    summary: dict[str, Any] = {"operation": operation, "success": success}

    if duration_ms is not None:
        summary["duration_ms"] = round(duration_ms, 2)

    if item_count is not None:
        summary["item_count"] = item_count

    if error:
        summary["error"] = error[:MAX_ERROR_LENGTH]

    for key, value in kwargs.items():
        if isinstance(value, (str, int, float, bool)):
            summary[key] = value
        elif isinstance(value, (list, tuple)):
            summary[key] = len(value)

    return summary
