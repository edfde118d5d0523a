"""
Custom exceptions for the Lambdalet capture pipeline.

Each stage raises from this taxonomy so handlers can decide between
rejecting, recording a failure, recovering locally, or letting SQS redeliver.
"""


class LambdaletError(Exception):
    """Base exception for pipeline errors."""


class ValidationError(LambdaletError):
    """Capture request or pipeline message has an invalid shape."""


class FetchError(LambdaletError):
    """Error while retrieving page HTML over the network."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {message}")


class ExtractionError(LambdaletError):
    """Model call for main content extraction failed."""


class ExtractionTimeout(ExtractionError):
    """Model call for main content extraction did not answer in time."""


class PublishError(LambdaletError):
    """Write to the document store failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class MissingHtmlError(LambdaletError):
    """Payload reached the processing stage without HTML."""


class InvalidStatusTransition(LambdaletError):
    """Document status change not allowed by the status state machine."""
