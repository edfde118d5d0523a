"""Unit tests for main content extraction."""

import pytest
from mocks.bedrock_mock import create_mock_bedrock_client

from lambdalet_common.exceptions import ExtractionError, ExtractionTimeout
from lambdalet_common.extractor import build_prompt, extract_main_content, parse_content


class TestParseContent:
    """Tests for reading the model answer."""

    def test_content_between_tags(self):
        assert parse_content("Sure!\n<content>\n# T\n\nBody\n</content>\nDone.") == "# T\n\nBody"

    def test_first_open_and_last_close(self):
        text = "<content>a <content>b</content> c</content>"
        assert parse_content(text) == "a <content>b</content> c"

    def test_missing_close_tag_returns_full_answer(self):
        assert parse_content("  <content>\n# T  ") == "<content>\n# T"

    def test_missing_open_tag_returns_full_answer(self):
        assert parse_content("# T\n\nBody\n</content>\n") == "# T\n\nBody\n</content>"

    def test_no_tags_returns_full_answer(self):
        assert parse_content("\n# Just markdown\n") == "# Just markdown"

    def test_close_before_open_returns_full_answer(self):
        assert parse_content("</content>x<content>") == "</content>x<content>"

    def test_empty_content(self):
        assert parse_content("<content>  </content>") == ""


def test_build_prompt_embeds_url_and_markdown():
    prompt = build_prompt("# Page\n\ntext", "https://ex.com/a")

    assert "<url>https://ex.com/a</url>" in prompt
    assert "<markdown>\n# Page\n\ntext\n</markdown>" in prompt
    assert "<content>" in prompt


class TestExtractMainContent:
    """Tests for extract_main_content."""

    def test_returns_parsed_content(self):
        client = create_mock_bedrock_client("<content>\nMain\n</content>")

        assert extract_main_content("# Nav\n\nMain", "https://ex.com", client=client) == "Main"
        prompt = client.converse_text.call_args[0][0]
        assert "https://ex.com" in prompt
        assert "# Nav\n\nMain" in prompt

    def test_single_model_call(self):
        client = create_mock_bedrock_client()
        extract_main_content("x", "https://ex.com", client=client)
        assert client.converse_text.call_count == 1

    def test_timeout_propagates(self):
        client = create_mock_bedrock_client(error=ExtractionTimeout("too slow"))
        with pytest.raises(ExtractionTimeout):
            extract_main_content("x", "https://ex.com", client=client)

    def test_error_propagates(self):
        client = create_mock_bedrock_client(error=ExtractionError("denied"))
        with pytest.raises(ExtractionError):
            extract_main_content("x", "https://ex.com", client=client)
