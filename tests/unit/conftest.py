"""Unit tests conftest for Lambda function test isolation.

Every Lambda entry point is named index.py, so handler tests load them with
importlib under a unique module name (queue_request_index, ...). This file
also resets the lazily cached boto3 clients so a client created outside a
moto context is never reused inside one.
"""

import sys

import pytest


def pytest_sessionstart(session):
    """Initialize the test session.

    Cleans any cached modules from a previous test run or interactive session.
    """
    if "index" in sys.modules:
        del sys.modules["index"]


@pytest.fixture(autouse=True)
def _reset_aws_clients():
    """Drop cached S3 and SQS clients around each test."""
    from lambdalet_common import queue, storage

    storage._s3_client = None
    queue._sqs_client = None
    yield
    storage._s3_client = None
    queue._sqs_client = None
