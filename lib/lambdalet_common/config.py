"""Environment configuration for the Lambdalet handlers.

Each handler builds the settings it needs from its Lambda environment:
- PipelineSettings: payload bucket and queue URLs
- NotionSettings: Notion integration token and database id
- BedrockSettings: extraction model, region and timeout

Missing required variables fail fast with a ValueError naming the variable.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from lambdalet_common.constants import (
    DEFAULT_BEDROCK_MODEL_ID,
    DEFAULT_BEDROCK_REGION,
    EXTRACTION_TIMEOUT,
    FETCH_TIMEOUT,
)

logger = logging.getLogger(__name__)


def require_env(name: str, environ: Mapping[str, str] | None = None) -> str:
    """
    Read a required environment variable.

    Raises:
        ValueError: If the variable is unset or blank
    """
    environ = os.environ if environ is None else environ
    value = (environ.get(name) or "").strip()
    if not value:
        raise ValueError(f"{name} environment variable required")
    return value


def float_env(name: str, default: float, environ: Mapping[str, str] | None = None) -> float:
    """Read an optional positive number of seconds, falling back to default."""
    environ = os.environ if environ is None else environ
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default

    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None

    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class PipelineSettings:
    """Payload bucket and queue URLs."""

    bucket: str
    process_queue_url: str | None = None
    fetch_queue_url: str | None = None
    fetch_timeout: float = FETCH_TIMEOUT

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        require_process_queue: bool = True,
        require_fetch_queue: bool = False,
    ) -> "PipelineSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Variables to read, os.environ by default
            require_process_queue: Fail if QUEUE_URL is missing
            require_fetch_queue: Fail if FETCH_QUEUE_URL is missing

        Raises:
            ValueError: If a required variable is missing
        """
        environ = os.environ if environ is None else environ

        def queue(name: str, required: bool) -> str | None:
            if required:
                return require_env(name, environ)
            return (environ.get(name) or "").strip() or None

        return cls(
            bucket=require_env("BUCKET_NAME", environ),
            process_queue_url=queue("QUEUE_URL", require_process_queue),
            fetch_queue_url=queue("FETCH_QUEUE_URL", require_fetch_queue),
            fetch_timeout=float_env("FETCH_TIMEOUT_SECONDS", FETCH_TIMEOUT, environ),
        )


@dataclass(frozen=True)
class NotionSettings:
    """Notion integration credentials."""

    token: str
    database_id: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "NotionSettings":
        environ = os.environ if environ is None else environ
        return cls(
            token=require_env("NOTION_TOKEN", environ),
            database_id=require_env("NOTION_DATABASE_ID", environ),
        )

    def __repr__(self) -> str:
        return f"NotionSettings(token='***', database_id={self.database_id!r})"


@dataclass(frozen=True)
class BedrockSettings:
    """Extraction model settings."""

    model_id: str = DEFAULT_BEDROCK_MODEL_ID
    region: str = DEFAULT_BEDROCK_REGION
    timeout: float = EXTRACTION_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BedrockSettings":
        environ = os.environ if environ is None else environ
        settings = cls(
            model_id=(environ.get("BEDROCK_MODEL_ID") or "").strip() or DEFAULT_BEDROCK_MODEL_ID,
            region=(environ.get("BEDROCK_REGION") or environ.get("AWS_REGION") or "").strip()
            or DEFAULT_BEDROCK_REGION,
            timeout=float_env("EXTRACTION_TIMEOUT_SECONDS", EXTRACTION_TIMEOUT, environ),
        )
        logger.debug(f"Bedrock settings: {settings}")
        return settings
