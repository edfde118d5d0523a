"""
Fetch Request Lambda

Fetches the HTML of captures that arrived without markup, stores it in the
payload and forwards the capture to the processing queue.

Input event (SQS triggered, batch size 1):
{
    "Records": [{
        "body": "{\"bucket\": \"...\", \"key\": \"<sha256>.json\", \"identity\": \"<sha256>\"}"
    }]
}

A failed fetch records a Failed page in Notion and re-raises, so SQS
redelivery decides whether the fetch is tried again.
"""

import json
import logging
import os

from lambdalet_common.config import NotionSettings, PipelineSettings
from lambdalet_common.exceptions import ValidationError
from lambdalet_common.fetcher import HttpFetcher
from lambdalet_common.logging_utils import safe_log_event
from lambdalet_common.models import PipelineMessage
from lambdalet_common.notion import NotionClient
from lambdalet_common.pipeline import run_fetch_stage
from lambdalet_common.queue import SqsQueue
from lambdalet_common.storage import S3PayloadStore

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def lambda_handler(event, context):
    """
    Main Lambda handler - fetches HTML for queued captures.
    """
    settings = PipelineSettings.from_env(require_process_queue=True)
    notion_settings = NotionSettings.from_env()

    logger.info(f"Fetch event: {safe_log_event(event)}")

    outcomes = []
    with NotionClient(notion_settings.token, notion_settings.database_id) as documents:
        for record in event.get("Records", []):
            try:
                message = PipelineMessage.from_dict(json.loads(record["body"]))
            except (KeyError, json.JSONDecodeError, ValidationError) as e:
                # Redelivery cannot fix a malformed message
                logger.error(f"Dropping malformed message {record.get('messageId')}: {e}")
                continue

            outcome = run_fetch_stage(
                message,
                payload_store=S3PayloadStore(),
                queue=SqsQueue(),
                fetcher=HttpFetcher(timeout=settings.fetch_timeout),
                documents=documents,
                process_queue_url=settings.process_queue_url,
            )
            logger.info(f"Fetch stage {outcome.value} for {message.identity}")
            outcomes.append(outcome.value)

    return {"outcomes": outcomes}
