"""
SQS utilities for handing pipeline messages between stages.
"""

import json
import logging

import boto3
from botocore.exceptions import ClientError

from lambdalet_common.models import PipelineMessage

logger = logging.getLogger(__name__)

# Lazy-loaded AWS client (initialized on first use)
_sqs_client = None


def get_sqs_client():
    """Get or create SQS client."""
    global _sqs_client
    if _sqs_client is None:
        _sqs_client = boto3.client("sqs")
    return _sqs_client


class SqsQueue:
    """Sends reference-only pipeline messages to SQS queues."""

    def send(
        self,
        queue_url: str,
        message: PipelineMessage,
        group_id: str,
        deduplication_id: str,
    ) -> str | None:
        """
        Send a pipeline message.

        Args:
            queue_url: Destination queue URL
            message: Message referencing the stored payload
            group_id: Ordering group; one in-flight message per group
            deduplication_id: Messages with the same id inside the dedup
                window are accepted but delivered only once

        Returns:
            SQS message id
        """
        send_params = {
            "QueueUrl": queue_url,
            "MessageBody": json.dumps(message.to_dict()),
        }
        # Group and deduplication ids are only valid on FIFO queues
        if queue_url.endswith(".fifo"):
            send_params["MessageGroupId"] = group_id
            send_params["MessageDeduplicationId"] = deduplication_id

        try:
            response = get_sqs_client().send_message(**send_params)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"Failed to send message to {queue_url}: {error_code} - {e}")
            raise

        message_id = response.get("MessageId")
        logger.info(f"Sent message {message_id} to {queue_url} (group={group_id})")
        return message_id
