"""Unit tests for Markdown to Notion block conversion."""

import pytest

from lambdalet_common.markdown import to_markdown
from lambdalet_common.notion_blocks import (
    batch_blocks,
    block_count,
    detach_children,
    notion_code_language,
    plain_rich_text,
    to_blocks,
    to_rich_text,
)


def _text(rich_text: list[dict]) -> str:
    return "".join(item["text"]["content"] for item in rich_text)


def _types(blocks: list[dict]) -> list[str]:
    return [block["type"] for block in blocks]


class TestRichText:
    """Tests for inline Markdown to rich text."""

    def test_plain(self):
        items = to_rich_text("hello world")
        assert len(items) == 1
        assert items[0]["text"] == {"content": "hello world"}
        assert items[0]["annotations"]["bold"] is False

    def test_bold_and_italic(self):
        items = to_rich_text("a **b** *c*")
        assert [item["text"]["content"] for item in items] == ["a ", "b", " ", "c"]
        assert items[1]["annotations"]["bold"]
        assert items[3]["annotations"]["italic"]

    def test_nested_emphasis(self):
        items = to_rich_text("**bold *both***")
        both = [item for item in items if item["text"]["content"] == "both"][0]
        assert both["annotations"]["bold"]
        assert both["annotations"]["italic"]

    def test_strikethrough(self):
        items = to_rich_text("~~gone~~")
        assert items[0]["annotations"]["strikethrough"]

    def test_inline_code(self):
        items = to_rich_text("run `ls *.py` now")
        assert items[1]["text"]["content"] == "ls *.py"
        assert items[1]["annotations"]["code"]
        assert not items[1]["annotations"]["italic"]

    def test_inline_code_padding_removed(self):
        items = to_rich_text("`` `x` ``")
        assert items[0]["text"]["content"] == "`x`"

    def test_link(self):
        items = to_rich_text("see [the docs](https://ex.com/docs)")
        assert items[1]["text"] == {"content": "the docs", "link": {"url": "https://ex.com/docs"}}

    def test_bold_link_label(self):
        items = to_rich_text("[**Big** deal](https://ex.com)")
        assert items[0]["annotations"]["bold"]
        assert items[0]["text"]["link"] == {"url": "https://ex.com"}
        assert items[1]["text"]["link"] == {"url": "https://ex.com"}

    def test_relative_link_dropped(self):
        items = to_rich_text("[x](/relative)")
        assert items[0]["text"] == {"content": "x"}

    def test_inline_image_becomes_link(self):
        items = to_rich_text("icon ![logo](https://ex.com/l.png)")
        assert items[1]["text"] == {"content": "logo", "link": {"url": "https://ex.com/l.png"}}

    def test_unmatched_markers_kept(self):
        assert _text(to_rich_text("2 * 3 and **open")) == "2 * 3 and **open"

    def test_long_text_split(self):
        items = to_rich_text("x" * 4500)
        assert [len(item["text"]["content"]) for item in items] == [2000, 2000, 500]

    def test_empty(self):
        assert to_rich_text("") == []

    def test_plain_rich_text_ignores_markdown(self):
        items = plain_rich_text("**not bold**")
        assert items[0]["text"]["content"] == "**not bold**"
        assert not items[0]["annotations"]["bold"]


class TestBlocks:
    """Tests for block conversion."""

    def test_headings_clamped_to_three(self):
        blocks = to_blocks("# One\n\n## Two\n\n### Three\n\n#### Four\n\n###### Six")
        assert _types(blocks) == ["heading_1", "heading_2", "heading_3", "heading_3", "heading_3"]
        assert _text(blocks[3]["heading_3"]["rich_text"]) == "Four"

    def test_paragraphs(self):
        blocks = to_blocks("first line\nsecond line\n\nnext paragraph")
        assert _types(blocks) == ["paragraph", "paragraph"]
        assert _text(blocks[0]["paragraph"]["rich_text"]) == "first line\nsecond line"

    def test_block_object_shape(self):
        block = to_blocks("hi")[0]
        assert block["object"] == "block"
        assert block["type"] == "paragraph"
        assert "rich_text" in block["paragraph"]

    def test_bulleted_list(self):
        blocks = to_blocks("- a\n- b")
        assert _types(blocks) == ["bulleted_list_item", "bulleted_list_item"]
        assert _text(blocks[1]["bulleted_list_item"]["rich_text"]) == "b"

    def test_numbered_list(self):
        blocks = to_blocks("5. a\n6. b")
        assert _types(blocks) == ["numbered_list_item", "numbered_list_item"]

    def test_nested_list_children(self):
        blocks = to_blocks("- a\n  - b\n  - c\n- d")

        assert _types(blocks) == ["bulleted_list_item", "bulleted_list_item"]
        children = blocks[0]["bulleted_list_item"]["children"]
        assert _types(children) == ["bulleted_list_item", "bulleted_list_item"]
        assert _text(children[1]["bulleted_list_item"]["rich_text"]) == "c"
        assert "children" not in blocks[1]["bulleted_list_item"]

    def test_deep_nesting_flattened(self):
        blocks = to_blocks("- a\n  - b\n    - c\n      - d")

        children = blocks[0]["bulleted_list_item"]["children"]
        assert [_text(child["bulleted_list_item"]["rich_text"]) for child in children] == [
            "b",
            "c",
            "d",
        ]
        assert all("children" not in child["bulleted_list_item"] for child in children)

    def test_multi_paragraph_item(self):
        blocks = to_blocks("- a\n\n  more text\n- b")
        assert len(blocks) == 2
        children = blocks[0]["bulleted_list_item"]["children"]
        assert _types(children) == ["paragraph"]
        assert _text(children[0]["paragraph"]["rich_text"]) == "more text"

    def test_item_continuation_line(self):
        blocks = to_blocks("- first\n  still first")
        assert _text(blocks[0]["bulleted_list_item"]["rich_text"]) == "first\nstill first"

    def test_code_block(self):
        blocks = to_blocks("```python\ndef f():\n    return 1\n```")

        assert _types(blocks) == ["code"]
        assert blocks[0]["code"]["language"] == "python"
        assert _text(blocks[0]["code"]["rich_text"]) == "def f():\n    return 1"

    def test_code_block_long_fence(self):
        blocks = to_blocks("````\na ``` b\n````\n\nafter")
        assert _types(blocks) == ["code", "paragraph"]
        assert _text(blocks[0]["code"]["rich_text"]) == "a ``` b"
        assert blocks[0]["code"]["language"] == "plain text"

    def test_code_block_keeps_markdown_literal(self):
        blocks = to_blocks("```\n# not a heading\n- not a list\n```")
        assert _types(blocks) == ["code"]

    def test_unclosed_code_block(self):
        blocks = to_blocks("```js\nx()")
        assert _text(blocks[0]["code"]["rich_text"]) == "x()"
        assert blocks[0]["code"]["language"] == "javascript"

    def test_code_in_list_item(self):
        blocks = to_blocks("- step\n\n  ```sh\n  make\n  ```")
        children = blocks[0]["bulleted_list_item"]["children"]
        assert _types(children) == ["code"]
        assert _text(children[0]["code"]["rich_text"]) == "make"

    def test_quote(self):
        blocks = to_blocks("> line one\n> line two")
        assert _types(blocks) == ["quote"]
        assert _text(blocks[0]["quote"]["rich_text"]) == "line one\nline two"

    @pytest.mark.parametrize("divider", ["---", "***", "___", "- - -"])
    def test_divider(self, divider):
        assert _types(to_blocks(f"a\n\n{divider}\n\nb")) == ["paragraph", "divider", "paragraph"]

    def test_image(self):
        blocks = to_blocks("![A cat](https://ex.com/cat.png)")
        assert blocks[0]["type"] == "image"
        assert blocks[0]["image"]["external"] == {"url": "https://ex.com/cat.png"}
        assert _text(blocks[0]["image"]["caption"]) == "A cat"

    def test_image_with_relative_url_is_text(self):
        assert _types(to_blocks("![x](/cat.png)")) == ["paragraph"]

    def test_table(self):
        blocks = to_blocks("| a | b |\n| --- | --- |\n| 1 | 2 |\n| 3 |")

        table = blocks[0]["table"]
        assert table["table_width"] == 2
        assert table["has_column_header"] is True
        rows = table["children"]
        assert len(rows) == 3
        assert [_text(cell) for cell in rows[2]["table_row"]["cells"]] == ["3", ""]

    def test_separator_only_table_is_text(self):
        blocks = to_blocks("|---|")
        assert _types(blocks) == ["paragraph"]
        assert _text(blocks[0]["paragraph"]["rich_text"]) == "|---|"

    def test_separator_only_table_from_html(self):
        blocks = to_blocks(to_markdown("<p>|---|</p>", "https://ex.com/"))
        assert _types(blocks) == ["paragraph"]

    def test_table_rows_not_capped(self):
        markdown = "| h |\n| --- |\n" + "\n".join(f"| {i} |" for i in range(150))
        rows = to_blocks(markdown)[0]["table"]["children"]
        assert len(rows) == 151

    def test_table_in_list_item_is_text(self):
        blocks = to_blocks("- item\n\n  | a | b |\n  | --- | --- |")
        child = blocks[0]["bulleted_list_item"]["children"][0]
        assert child["type"] == "paragraph"

    def test_long_paragraph_split_into_chunks(self):
        blocks = to_blocks("y" * 5000)
        chunks = blocks[0]["paragraph"]["rich_text"]
        assert all(len(item["text"]["content"]) <= 2000 for item in chunks)
        assert _text(chunks) == "y" * 5000

    def test_too_many_rich_text_items_split_into_blocks(self):
        markdown = " ".join(f"**{i}**" for i in range(150))
        blocks = to_blocks(markdown)
        assert _types(blocks) == ["paragraph"] * 3
        assert all(len(block["paragraph"]["rich_text"]) <= 100 for block in blocks)

    def test_empty_markdown(self):
        assert to_blocks("") == []
        assert to_blocks("\n\n  \n") == []

    def test_converter_output(self):
        markdown = (
            "# Title\n\nIntro with [link](https://ex.com).\n\n"
            "- one\n- two\n  - nested\n\n```python\nx = 1\n```\n\n> quoted"
        )
        assert _types(to_blocks(markdown)) == [
            "heading_1",
            "paragraph",
            "bulleted_list_item",
            "bulleted_list_item",
            "code",
            "quote",
        ]


class TestCodeLanguage:
    @pytest.mark.parametrize(
        ("language", "expected"),
        [
            ("python", "python"),
            ("py", "python"),
            ("JS", "javascript"),
            ("ts", "typescript"),
            ("sh", "shell"),
            ("cpp", "c++"),
            ("yml", "yaml"),
            ("", "plain text"),
            ("brainfuck", "plain text"),
        ],
    )
    def test_mapping(self, language, expected):
        assert notion_code_language(language) == expected


class TestBatchBlocks:
    def test_batches_of_hundred(self):
        blocks = [{"type": "paragraph"}] * 250
        assert [len(batch) for batch in batch_blocks(blocks)] == [100, 100, 50]

    def test_empty(self):
        assert list(batch_blocks([])) == []

    def test_children_count_toward_total(self):
        item = {
            "type": "bulleted_list_item",
            "bulleted_list_item": {"rich_text": [], "children": [{"type": "paragraph"}] * 60},
        }
        batches = list(batch_blocks([item] * 20))

        assert [len(batch) for batch in batches] == [16, 4]
        assert all(sum(block_count(block) for block in batch) <= 1000 for batch in batches)

    def test_oversized_block_gets_own_batch(self):
        big = {"type": "table", "table": {"children": [{"type": "table_row"}] * 1200}}
        batches = list(batch_blocks([{"type": "paragraph"}, big, {"type": "paragraph"}]))
        assert [len(batch) for batch in batches] == [1, 1, 1]


class TestBlockCount:
    def test_leaf(self):
        assert block_count({"type": "divider", "divider": {}}) == 1

    def test_nested(self):
        blocks = to_blocks("- a\n  - b\n  - c\n- d")
        assert [block_count(block) for block in blocks] == [3, 1]


class TestDetachChildren:
    def _long_table(self, rows: int) -> dict:
        markdown = "| h |\n| --- |\n" + "\n".join(f"| {i} |" for i in range(rows))
        return to_blocks(markdown)[0]

    def test_small_block_unchanged(self):
        table = self._long_table(10)
        kept, remaining = detach_children(table)
        assert kept is table
        assert remaining == []

    def test_long_table(self):
        table = self._long_table(150)
        kept, remaining = detach_children(table)

        assert len(kept["table"]["children"]) == 100
        assert len(remaining) == 51
        assert [_text(row["table_row"]["cells"][0]) for row in remaining][:2] == ["99", "100"]
        assert kept["table"]["table_width"] == 1
        # The original block is not modified
        assert len(table["table"]["children"]) == 151

    def test_long_nested_list(self):
        markdown = "- parent\n" + "\n".join(f"  - item {i}" for i in range(150))
        item = to_blocks(markdown)[0]
        kept, remaining = detach_children(item)

        assert len(kept["bulleted_list_item"]["children"]) == 100
        assert len(remaining) == 50
        assert _text(remaining[0]["bulleted_list_item"]["rich_text"]) == "item 100"
        assert _text(kept["bulleted_list_item"]["rich_text"]) == "parent"

    def test_block_without_children(self):
        kept, remaining = detach_children({"type": "paragraph", "paragraph": {"rich_text": []}})
        assert remaining == []
        assert kept == {"type": "paragraph", "paragraph": {"rich_text": []}}
