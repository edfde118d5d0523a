"""
Storage utilities for S3 operations.

Provides simple, consistent interface for reading/writing capture payloads.
"""

import json
import logging
from typing import Any

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Lazy-loaded AWS client (initialized on first use)
_s3_client = None


def get_s3_client():
    """Get or create S3 client."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3")
    return _s3_client


def parse_s3_uri(s3_uri: str) -> tuple[str, str]:
    """
    Parse S3 URI into bucket and key.

    Args:
        s3_uri: S3 URI like "s3://bucket-name/path/to/file.json"

    Returns:
        Tuple of (bucket, key)

    Example:
        bucket, key = parse_s3_uri("s3://my-bucket/abc123.json")
        # bucket = "my-bucket"
        # key = "abc123.json"
    """
    if not s3_uri.startswith("s3://"):
        raise ValueError(f"Invalid S3 URI: {s3_uri}")

    parts = s3_uri[5:].split("/", 1)
    bucket = parts[0]
    key = parts[1] if len(parts) > 1 else ""
    return bucket, key


def read_s3_text(s3_uri: str, encoding: str = "utf-8") -> str:
    """
    Read text content from S3.

    Args:
        s3_uri: S3 URI to text file
        encoding: Text encoding (default utf-8)

    Returns:
        Text content as string
    """
    bucket, key = parse_s3_uri(s3_uri)
    try:
        response = get_s3_client().get_object(Bucket=bucket, Key=key)
        return response["Body"].read().decode(encoding)
    except ClientError as e:
        logger.error(f"Failed to read S3 text from {s3_uri}: {e}")
        raise


def read_s3_json(s3_uri: str) -> dict:
    """Read JSON content from S3."""
    text = read_s3_text(s3_uri)
    return json.loads(text)


def write_s3_json(s3_uri: str, data: dict, indent: int | None = None) -> str:
    """
    Write JSON content to S3.

    Args:
        s3_uri: Destination S3 URI
        data: Data to write as JSON
        indent: Optional indentation; payloads are written compact

    Returns:
        The S3 URI that was written to
    """
    content = json.dumps(data, indent=indent, ensure_ascii=False)
    bucket, key = parse_s3_uri(s3_uri)
    try:
        get_s3_client().put_object(
            Bucket=bucket,
            Key=key,
            Body=content.encode("utf-8"),
            ContentType="application/json",
        )
        logger.info(f"Wrote JSON to {s3_uri}")
        return s3_uri
    except ClientError as e:
        logger.error(f"Failed to write S3 JSON to {s3_uri}: {e}")
        raise


class S3PayloadStore:
    """Key-value store of capture payloads, one JSON object per identity."""

    def put(self, bucket: str, key: str, data: dict[str, Any]) -> str:
        """
        Store a payload, replacing any previous payload under the same key.

        Returns:
            S3 URI of the stored object
        """
        return write_s3_json(f"s3://{bucket}/{key}", data)

    def get(self, bucket: str, key: str) -> dict[str, Any]:
        """Load a stored payload."""
        return read_s3_json(f"s3://{bucket}/{key}")
