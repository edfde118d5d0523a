"""
Main content extraction via a language model.

Asks the model to keep only the main content of a page's Markdown and
reads the answer back from between <content> tags.
"""

import logging

from lambdalet_common.bedrock import BedrockClient

logger = logging.getLogger(__name__)

CONTENT_OPEN_TAG = "<content>"
CONTENT_CLOSE_TAG = "</content>"

PROMPT_TEMPLATE = """
Here is the content from the URL converted from HTML to markdown:
<url>{url}</url>

<markdown>
{markdown}
</markdown>

Your task is to extract the main content from the given markdown.

Wrap your response in <content> tags.
<content>
[Your markdown content here]
</content>
"""


def build_prompt(markdown: str, url: str) -> str:
    """Build the extraction prompt for a page."""
    return PROMPT_TEMPLATE.format(url=url, markdown=markdown)


def parse_content(text: str) -> str:
    """
    Read the extracted content from a model answer.

    The text between the first <content> and the last </content> is
    returned without the tags and stripped. When either tag is missing the
    whole answer is returned stripped: a model that forgot the tags usually
    still answered with the content.

    Args:
        text: Raw model answer

    Returns:
        Extracted Markdown
    """
    start = text.find(CONTENT_OPEN_TAG)
    end = text.rfind(CONTENT_CLOSE_TAG)

    if start == -1 or end == -1 or end < start + len(CONTENT_OPEN_TAG):
        logger.warning("Content tags not found in model response, using full response")
        return text.strip()

    return text[start + len(CONTENT_OPEN_TAG) : end].strip()


def extract_main_content(markdown: str, url: str, client: BedrockClient | None = None) -> str:
    """
    Extract the main content from a page's Markdown.

    Args:
        markdown: Full page Markdown
        url: Page URL, given to the model as context
        client: Bedrock client; a default client is created if omitted

    Returns:
        Extracted Markdown

    Raises:
        ExtractionTimeout: If the model call exceeded its timeout
        ExtractionError: If the model call failed
    """
    client = client or BedrockClient()

    logger.info(f"Extracting main content for {url} ({len(markdown)} chars)")
    answer = client.converse_text(build_prompt(markdown, url))

    content = parse_content(answer)
    logger.info(f"Extracted {len(content)} chars of main content for {url}")
    return content
