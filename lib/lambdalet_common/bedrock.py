"""
Bedrock client module for Lambdalet.

Provides a thin client for one Amazon Bedrock converse call with:
- A bounded wait (botocore read timeout) and no client-side retries
- Token usage tracking
- Mapping of Bedrock failures onto ExtractionError / ExtractionTimeout
"""

import logging
import time
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from lambdalet_common.constants import (
    BEDROCK_CONNECT_TIMEOUT,
    DEFAULT_BEDROCK_MODEL_ID,
    DEFAULT_BEDROCK_REGION,
    EXTRACTION_TIMEOUT,
)
from lambdalet_common.exceptions import ExtractionError, ExtractionTimeout

logger = logging.getLogger(__name__)


class BedrockClient:
    """Client for single-attempt calls to Amazon Bedrock models."""

    def __init__(
        self,
        model_id: str = DEFAULT_BEDROCK_MODEL_ID,
        region: str = DEFAULT_BEDROCK_REGION,
        timeout: float = EXTRACTION_TIMEOUT,
    ):
        """
        Initialize a Bedrock client.

        Args:
            model_id: Bedrock model or inference profile id
            region: AWS region of the Bedrock runtime
            timeout: Read timeout in seconds; a call waiting longer fails
                with ExtractionTimeout
        """
        self.model_id = model_id
        self.region = region
        self.timeout = timeout
        self._client = None
        self.metering_data: dict[str, dict[str, int]] = {}

    @property
    def client(self):
        """Lazy-loaded Bedrock runtime client."""
        if self._client is None:
            config = Config(
                connect_timeout=BEDROCK_CONNECT_TIMEOUT,
                read_timeout=self.timeout,
                # Redelivery is decided by the pipeline, not the SDK
                retries={"total_max_attempts": 1, "mode": "standard"},
            )
            self._client = boto3.client("bedrock-runtime", region_name=self.region, config=config)
        return self._client

    def converse_text(
        self,
        prompt: str,
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send one user prompt and return the text of the answer.

        Args:
            prompt: User message text
            temperature: Sampling temperature
            max_tokens: Optional output token limit

        Returns:
            Text of the first content block of the answer

        Raises:
            ExtractionTimeout: If Bedrock did not answer within the timeout
            ExtractionError: For any other Bedrock failure or an empty answer
        """
        inference_config: dict[str, Any] = {"temperature": temperature}
        if max_tokens is not None:
            inference_config["maxTokens"] = max_tokens

        request_start_time = time.time()

        try:
            response = self.client.converse(
                modelId=self.model_id,
                messages=[{"role": "user", "content": [{"text": prompt}]}],
                inferenceConfig=inference_config,
            )
        except (ReadTimeoutError, ConnectTimeoutError) as e:
            duration = time.time() - request_start_time
            logger.error(f"Bedrock timeout after {duration:.2f}s: {e}")
            raise ExtractionTimeout(
                f"Model did not respond within {self.timeout:g} seconds"
            ) from e
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            logger.error(f"Bedrock error: {error_code} - {error_message}")
            raise ExtractionError(f"Model call failed ({error_code}): {error_message}") from e
        except BotoCoreError as e:
            logger.error(f"Bedrock client error: {e}")
            raise ExtractionError(f"Model call failed: {e}") from e

        duration = time.time() - request_start_time
        usage = response.get("usage", {})
        logger.info(f"Bedrock request successful. Duration: {duration:.2f}s")
        logger.info(f"Token Usage: {usage}, stop reason: {response.get('stopReason')}")
        self._track_usage(usage)

        text = self.extract_text_from_response(response)
        if not text:
            raise ExtractionError("Model returned an empty response")
        return text

    def _track_usage(self, usage: dict[str, Any]) -> None:
        metering = self.metering_data.setdefault(
            self.model_id, {"inputTokens": 0, "outputTokens": 0, "totalTokens": 0}
        )
        for field in metering:
            metering[field] += usage.get(field, 0)

    @staticmethod
    def extract_text_from_response(response: dict[str, Any]) -> str:
        """
        Extract text from a converse response with safe navigation.

        Returns:
            Text content, or empty string if structure is unexpected
        """
        output = response.get("output", {})
        message = output.get("message", {})
        content = message.get("content", [])

        if isinstance(content, list) and len(content) > 0 and isinstance(content[0], dict):
            return content[0].get("text", "")
        return ""

    def get_metering_data(self) -> dict[str, Any]:
        """Accumulated token usage by model id."""
        return self.metering_data
