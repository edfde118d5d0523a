"""
Request identity for capture deduplication.

The identity of a capture is the SHA-256 of its URL. It is used as the
payload object key, the SQS deduplication id and the SQS message group id,
so re-captures of the same URL overwrite one payload and serialize on one
message group.
"""

import hashlib

from lambdalet_common.constants import PAYLOAD_KEY_SUFFIX


def compute_request_identity(url: str) -> str:
    """
    Compute the identity of a capture request.

    The URL is hashed exactly as captured; two spellings of the same page
    are two identities.

    Args:
        url: Captured page URL

    Returns:
        Hex-encoded SHA-256 hash
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def payload_key(identity: str) -> str:
    """Object key of the stored payload for an identity."""
    return f"{identity}{PAYLOAD_KEY_SUFFIX}"
