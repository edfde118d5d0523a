# Vulture whitelist for pytest fixtures and Lambda patterns
# These names are used by pytest/AWS but not explicitly referenced in code

# Lambda entry points (always called by AWS, never by code)
lambda_handler

# Protocol members (implemented by the S3, SQS and Notion adapters and test fakes)
PayloadStore
MessageQueue
PageFetcher
DocumentStore

# Fakes driven directly by tests
expire_dedup_window
release

# Fixtures from tests/conftest.py and tests/unit/conftest.py
pytest_configure  # pytest hook
pytest_sessionstart  # pytest hook
_reset_aws_clients  # autouse fixture

# Pytest fixtures (injected by pytest, not direct calls)
_mock_env  # sets Lambda environment variables
harness
handler

# Common pytest patterns
request  # pytest fixture parameter
tmp_path  # pytest built-in fixture
monkeypatch  # pytest built-in fixture
caplog  # pytest built-in fixture for log capture

# Mock attributes (set dynamically in tests)
side_effect
return_value
