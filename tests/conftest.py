"""Global pytest configuration for all tests."""

import os
import sys
from pathlib import Path

# Shared library is importable without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "lib"))
# Test helpers under tests/mocks
sys.path.insert(0, str(Path(__file__).parent))


def pytest_configure(config):
    """Set environment variables before any test collection or execution."""
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    # moto needs credentials to sign requests; never use real ones in tests
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
