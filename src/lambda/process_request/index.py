"""
Process Request Lambda

Publishes stored captures to Notion: converts the HTML to Markdown, reduces
full-page captures to their main content with Bedrock, appends the content
to a new page and marks it Done.

Input event (SQS triggered, batch size 1, reserved concurrency 1):
{
    "Records": [{
        "body": "{\"bucket\": \"...\", \"key\": \"<sha256>.json\", \"identity\": \"<sha256>\"}"
    }]
}

Notion, S3 and SQS errors propagate so the message is redelivered. A capture
without HTML is closed as Failed and not retried.
"""

import json
import logging
import os

from lambdalet_common.bedrock import BedrockClient
from lambdalet_common.config import BedrockSettings, NotionSettings
from lambdalet_common.exceptions import ValidationError
from lambdalet_common.extractor import extract_main_content
from lambdalet_common.logging_utils import safe_log_event
from lambdalet_common.models import PipelineMessage
from lambdalet_common.notion import NotionClient
from lambdalet_common.pipeline import run_processing_stage
from lambdalet_common.storage import S3PayloadStore

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def lambda_handler(event, context):
    """
    Main Lambda handler - publishes queued captures.
    """
    notion_settings = NotionSettings.from_env()
    bedrock_settings = BedrockSettings.from_env()

    logger.info(f"Process event: {safe_log_event(event)}")

    bedrock = BedrockClient(
        model_id=bedrock_settings.model_id,
        region=bedrock_settings.region,
        timeout=bedrock_settings.timeout,
    )

    def extract(markdown: str, url: str) -> str:
        return extract_main_content(markdown, url, client=bedrock)

    outcomes = []
    with NotionClient(notion_settings.token, notion_settings.database_id) as documents:
        for record in event.get("Records", []):
            try:
                message = PipelineMessage.from_dict(json.loads(record["body"]))
            except (KeyError, json.JSONDecodeError, ValidationError) as e:
                logger.error(f"Dropping malformed message {record.get('messageId')}: {e}")
                continue

            outcome = run_processing_stage(
                message,
                payload_store=S3PayloadStore(),
                documents=documents,
                extract=extract,
            )
            logger.info(f"Processing stage {outcome.value} for {message.identity}")
            outcomes.append(outcome.value)

    if bedrock.get_metering_data():
        logger.info(f"Bedrock usage: {bedrock.get_metering_data()}")

    return {"outcomes": outcomes}
