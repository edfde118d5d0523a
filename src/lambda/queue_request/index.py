"""
Queue Request Lambda

Receives captures from the bookmarklet through API Gateway, stores the
payload in S3 and queues it for the fetch or processing stage.

The bookmarklet tries several transports, so the capture arrives as:
- multipart/form-data (fetch with FormData)
- application/x-www-form-urlencoded (form post)
- query string parameters (window.open fallback, no HTML)
- JSON

Input event (API Gateway proxy):
{
    "headers": {"content-type": "multipart/form-data; boundary=..."},
    "queryStringParameters": {"apiKey": "..."},
    "body": "...",
    "isBase64Encoded": true
}

Output depends on the invoke field:
- fetch: 200 with an empty body
- form-blank, window-open: 200 HTML page that closes its window
- form-self: 303 redirect back to the captured URL
- invalid capture: 400 {"message": "..."}
"""

import base64
import json
import logging
import os
from email.parser import BytesParser
from email.policy import HTTP
from urllib.parse import parse_qsl

from lambdalet_common.config import PipelineSettings
from lambdalet_common.exceptions import ValidationError
from lambdalet_common.logging_utils import safe_log_event
from lambdalet_common.models import CaptureRequest, InvokeMode
from lambdalet_common.pipeline import admit
from lambdalet_common.queue import SqsQueue
from lambdalet_common.storage import S3PayloadStore

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}

CLOSE_WINDOW_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Saved</title></head>
<body>
<p>Saved. This window can be closed.</p>
<script>window.close();</script>
</body>
</html>
"""


def lambda_handler(event, context):
    """
    Main Lambda handler - admits one capture.
    """
    settings = PipelineSettings.from_env(require_process_queue=True, require_fetch_queue=True)

    logger.info(f"Received capture: {safe_log_event(event)}")

    try:
        request = CaptureRequest.from_dict(parse_capture(event))
    except ValidationError as e:
        logger.warning(f"Rejected capture: {e}")
        return _json_response(400, {"message": str(e)})

    result = admit(
        request,
        bucket=settings.bucket,
        payload_store=S3PayloadStore(),
        queue=SqsQueue(),
        process_queue_url=settings.process_queue_url,
        fetch_queue_url=settings.fetch_queue_url,
    )

    logger.info(f"Accepted capture {result.identity} for {request.url}")
    return acknowledge(request)


def parse_capture(event: dict) -> dict:
    """
    Collect the capture fields from an API Gateway proxy event.

    Body fields take precedence over query string parameters.

    Raises:
        ValidationError: If the body cannot be decoded
    """
    fields = {
        key: value
        for key, value in (event.get("queryStringParameters") or {}).items()
        if value is not None
    }
    fields.update(_parse_body(event))
    return fields


def _header(event: dict, name: str) -> str:
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name:
            return value or ""
    return ""


def _raw_body(event: dict) -> bytes:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except ValueError as e:
            raise ValidationError(f"Body is not valid base64: {e}") from e
    return body.encode("utf-8")


def _parse_body(event: dict) -> dict:
    body = _raw_body(event)
    if not body.strip():
        return {}

    content_type = _header(event, "content-type")
    media_type = content_type.split(";", 1)[0].strip().lower()

    if media_type == "multipart/form-data":
        return _parse_multipart(body, content_type)

    if media_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))

    # JSON is the default for API clients that omit the content type
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError(f"Body is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("Capture request must be an object")
    return data


def _parse_multipart(body: bytes, content_type: str) -> dict:
    """Parse multipart/form-data text fields; file parts are ignored."""
    message = BytesParser(policy=HTTP).parsebytes(
        b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    )
    if not message.is_multipart():
        raise ValidationError("Malformed multipart body")

    fields = {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name or part.get_filename():
            continue
        payload = part.get_payload(decode=True) or b""
        fields[name] = payload.decode(part.get_content_charset() or "utf-8", errors="replace")
    return fields


def acknowledge(request: CaptureRequest) -> dict:
    """Response shaped for the transport the bookmarklet used."""
    if request.invoke == InvokeMode.FORM_SELF:
        return {
            "statusCode": 303,
            "headers": {**CORS_HEADERS, "Location": request.url},
            "body": "",
        }

    if request.invoke in (InvokeMode.FORM_BLANK, InvokeMode.WINDOW_OPEN):
        return {
            "statusCode": 200,
            "headers": {**CORS_HEADERS, "Content-Type": "text/html; charset=utf-8"},
            "body": CLOSE_WINDOW_HTML,
        }

    return {"statusCode": 200, "headers": dict(CORS_HEADERS), "body": ""}


def _json_response(status_code: int, body: dict) -> dict:
    """Create API Gateway proxy response."""
    return {
        "statusCode": status_code,
        "headers": {**CORS_HEADERS, "Content-Type": "application/json"},
        "body": json.dumps(body),
    }
