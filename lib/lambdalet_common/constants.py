"""
Constants used throughout the Lambdalet pipeline.

Centralizes operational parameters fixed by the deployment (queues, Lambda
timeouts, retention) and limits imposed by the external services.
"""

# =============================================================================
# Timeouts (in seconds)
# =============================================================================

# Processing Lambda timeout and queue visibility timeout (15 minutes)
LAMBDA_TIMEOUT = 900

# Ingress and fetch Lambda timeout
INGRESS_TIMEOUT = 30

# Ceiling for a single model extraction call (5 minutes)
EXTRACTION_TIMEOUT = 300

# Connect timeout for the Bedrock runtime client
BEDROCK_CONNECT_TIMEOUT = 10

# Page fetch timeout
FETCH_TIMEOUT = 30.0

# Notion API request timeout
NOTION_TIMEOUT = 30.0


# =============================================================================
# Queues and storage
# =============================================================================

# SQS event source batch size for the fetch and processing stages
QUEUE_BATCH_SIZE = 1

# Reserved concurrency of the processing Lambda
PROCESS_MAX_CONCURRENCY = 1

# SQS FIFO deduplication window (5 minutes)
DEDUP_WINDOW_SECONDS = 300

# Bucket lifecycle expiration for capture payloads
PAYLOAD_RETENTION_DAYS = 7

# Payload object key suffix
PAYLOAD_KEY_SUFFIX = ".json"


# =============================================================================
# Notion API limits
# =============================================================================

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Maximum number of top-level blocks per append-children request and children per block
NOTION_MAX_BLOCKS_PER_REQUEST = 100

# Maximum number of blocks in one append-children request, children included
NOTION_MAX_BLOCKS_PER_PAYLOAD = 1000

# Maximum length of a single rich text content string
NOTION_MAX_TEXT_LENGTH = 2000

# Maximum number of rich text objects in one block
NOTION_MAX_RICH_TEXT_ITEMS = 100

# Maximum nesting depth of block children in one request
NOTION_MAX_NESTING_DEPTH = 2

# Maximum URL length accepted for links and images
NOTION_MAX_URL_LENGTH = 2000

# Attempts for rate limited (429) or unavailable (503) Notion requests
NOTION_MAX_ATTEMPTS = 3


# =============================================================================
# Bedrock
# =============================================================================

DEFAULT_BEDROCK_MODEL_ID = "us.anthropic.claude-3-7-sonnet-20250219-v1:0"
DEFAULT_BEDROCK_REGION = "us-east-1"
