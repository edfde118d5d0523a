"""
Markdown to Notion block conversion.

Turns the Markdown produced by the converter (or the model) into Notion
block objects for the append-children API, respecting Notion's limits:
2000 characters per rich text item, 100 rich text items per block, 100
blocks per request (1000 counting children) and two levels of nesting.

Supported: headings, paragraphs, bulleted and numbered list items with
nested children, quotes, fenced code, dividers, tables, standalone images,
and inline bold, italic, strikethrough, code and links.
"""

import re
from collections.abc import Iterator
from typing import Any

from lambdalet_common.constants import (
    NOTION_MAX_BLOCKS_PER_PAYLOAD,
    NOTION_MAX_BLOCKS_PER_REQUEST,
    NOTION_MAX_NESTING_DEPTH,
    NOTION_MAX_RICH_TEXT_ITEMS,
    NOTION_MAX_TEXT_LENGTH,
    NOTION_MAX_URL_LENGTH,
)

Block = dict[str, Any]

_FENCE_RE = re.compile(r"^(`{3,})\s*([^`]*?)\s*$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_DIVIDER_RE = re.compile(r"^\s{0,3}([-*_])(\s*\1){2,}\s*$")
_BULLET_RE = re.compile(r"^[-*+]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\d{1,9}[.)]\s+(.*)$")
_QUOTE_RE = re.compile(r"^>\s?(.*)$")
_IMAGE_LINE_RE = re.compile(r"^!\[([^\]]*)\]\((\S+?)\)\s*$")
_TABLE_ROW_RE = re.compile(r"^\|.*\|\s*$")
_TABLE_SEPARATOR_RE = re.compile(r"^\|?(\s*:?-+:?\s*\|)+\s*:?-*:?\s*$")

_INLINE_RE = re.compile(
    r"(?P<code>(?<!`)(?P<ticks>`+)(?!`)(?P<code_text>.+?)(?<!`)(?P=ticks)(?!`))"
    r"|(?P<image>!\[(?P<alt>[^\]]*)\]\((?P<src>[^()\s]+)\))"
    r"|(?P<link>\[(?P<label>(?:[^\[\]]|\[[^\[\]]*\])*)\]\((?P<href>[^()\s]+)\))"
    r"|(?P<bold>\*\*(?P<bold_text>.+?)\*\*(?!\*))"
    r"|(?P<strike>~~(?P<strike_text>.+?)~~)"
    r"|(?P<italic>\*(?P<italic_text>[^*\s](?:[^*]*?[^*\s])?)\*)",
    re.DOTALL,
)

NOTION_CODE_LANGUAGES = frozenset(
    {
        "bash", "c", "c#", "c++", "clojure", "css", "dart", "diff", "docker",
        "elixir", "erlang", "go", "graphql", "haskell", "html", "java",
        "javascript", "json", "kotlin", "latex", "less", "lua", "makefile",
        "markdown", "matlab", "objective-c", "ocaml", "perl", "php",
        "plain text", "powershell", "protobuf", "python", "r", "ruby", "rust",
        "sass", "scala", "scss", "shell", "sql", "swift", "toml", "typescript",
        "xml", "yaml",
    }
)  # fmt: skip

CODE_LANGUAGE_ALIASES = {
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "python3": "python",
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "shell-session": "shell",
    "yml": "yaml",
    "cpp": "c++",
    "cxx": "c++",
    "cs": "c#",
    "csharp": "c#",
    "rb": "ruby",
    "rs": "rust",
    "golang": "go",
    "kt": "kotlin",
    "dockerfile": "docker",
    "md": "markdown",
    "ps1": "powershell",
    "objc": "objective-c",
    "proto": "protobuf",
    "tex": "latex",
    "make": "makefile",
    "text": "plain text",
    "txt": "plain text",
    "plaintext": "plain text",
}


def notion_code_language(language: str) -> str:
    """Map a Markdown fence language to one Notion accepts."""
    language = (language or "").strip().lower()
    language = CODE_LANGUAGE_ALIASES.get(language, language)
    return language if language in NOTION_CODE_LANGUAGES else "plain text"


def _is_notion_url(url: str | None) -> bool:
    return bool(url) and url.startswith(("http://", "https://")) and len(url) <= NOTION_MAX_URL_LENGTH


# ============================================================================
# Rich text
# ============================================================================


def _annotations(**flags: bool) -> dict[str, Any]:
    return {
        "bold": flags.get("bold", False),
        "italic": flags.get("italic", False),
        "strikethrough": flags.get("strikethrough", False),
        "underline": False,
        "code": flags.get("code", False),
        "color": "default",
    }


def _text_item(content: str, flags: dict[str, bool], href: str | None) -> dict[str, Any]:
    text: dict[str, Any] = {"content": content}
    if _is_notion_url(href):
        text["link"] = {"url": href}
    return {"type": "text", "text": text, "annotations": _annotations(**flags)}


def _spans(text: str, flags: dict[str, bool], href: str | None) -> Iterator[tuple[str, dict, str | None]]:
    """Split inline Markdown into (text, flags, href) spans."""
    position = 0
    for match in _INLINE_RE.finditer(text):
        if match.start() > position:
            yield text[position : match.start()], flags, href

        if match.group("code"):
            code = match.group("code_text")
            if len(code) > 1 and code.startswith(" ") and code.endswith(" ") and code.strip():
                code = code[1:-1]
            yield code, {**flags, "code": True}, href
        elif match.group("image"):
            src = match.group("src")
            yield match.group("alt") or src, flags, src
        elif match.group("link"):
            yield from _spans(match.group("label"), flags, match.group("href"))
        elif match.group("bold"):
            yield from _spans(match.group("bold_text"), {**flags, "bold": True}, href)
        elif match.group("strike"):
            yield from _spans(match.group("strike_text"), {**flags, "strikethrough": True}, href)
        else:
            yield from _spans(match.group("italic_text"), {**flags, "italic": True}, href)

        position = match.end()

    if position < len(text):
        yield text[position:], flags, href


def to_rich_text(text: str) -> list[dict[str, Any]]:
    """
    Convert inline Markdown to Notion rich text items.

    Text longer than Notion's per-item limit is split across items.
    """
    items = []
    for content, flags, href in _spans(text, {}, None):
        for start in range(0, len(content), NOTION_MAX_TEXT_LENGTH):
            items.append(_text_item(content[start : start + NOTION_MAX_TEXT_LENGTH], flags, href))
    return items


def plain_rich_text(text: str) -> list[dict[str, Any]]:
    """Rich text items for literal text (no inline Markdown parsing)."""
    return [
        _text_item(text[start : start + NOTION_MAX_TEXT_LENGTH], {}, None)
        for start in range(0, len(text), NOTION_MAX_TEXT_LENGTH)
    ]


# ============================================================================
# Blocks
# ============================================================================


def _block(block_type: str, body: dict[str, Any]) -> Block:
    return {"object": "block", "type": block_type, block_type: body}


def _text_blocks(
    block_type: str,
    rich_text: list[dict[str, Any]],
    children: list[Block] | None = None,
    **extra: Any,
) -> list[Block]:
    """Build one block, or several if the rich text exceeds the item limit."""
    chunks = [
        rich_text[start : start + NOTION_MAX_RICH_TEXT_ITEMS]
        for start in range(0, max(len(rich_text), 1), NOTION_MAX_RICH_TEXT_ITEMS)
    ]

    blocks = [_block(block_type, {"rich_text": chunk, **extra}) for chunk in chunks]
    if children:
        blocks[-1][block_type]["children"] = children
    return blocks


def _code_blocks(code: str, language: str) -> list[Block]:
    return _text_blocks("code", plain_rich_text(code), language=notion_code_language(language))


def _image_block(alt: str, url: str) -> list[Block]:
    body: dict[str, Any] = {"type": "external", "external": {"url": url}}
    if alt:
        body["caption"] = plain_rich_text(alt)
    return [_block("image", body)]


def _split_table_row(line: str) -> list[str]:
    line = line.strip()
    if line.startswith("|"):
        line = line[1:]
    if line.endswith("|") and not line.endswith("\\|"):
        line = line[:-1]
    cells = re.split(r"(?<!\\)\|", line)
    return [cell.strip().replace("\\|", "|") for cell in cells]


def _table_blocks(lines: list[str], depth: int) -> list[Block]:
    if depth + 1 >= NOTION_MAX_NESTING_DEPTH:
        # Rows would exceed the nesting limit, keep the table as text
        return _text_blocks("paragraph", plain_rich_text("\n".join(lines)))

    has_header = len(lines) > 1 and bool(_TABLE_SEPARATOR_RE.match(lines[1].strip()))
    rows = [_split_table_row(line) for line in lines if not _TABLE_SEPARATOR_RE.match(line.strip())]
    if not rows:
        # Separator lines alone are not a table
        return _text_blocks("paragraph", plain_rich_text("\n".join(lines)))
    width = max(len(row) for row in rows)

    children = [
        _block(
            "table_row",
            {"cells": [to_rich_text(cell) for cell in row + [""] * (width - len(row))]},
        )
        for row in rows
    ]
    return [
        _block(
            "table",
            {
                "table_width": width,
                "has_column_header": has_header,
                "has_row_header": False,
                "children": children,
            },
        )
    ]


def _is_block_start(line: str) -> bool:
    return bool(
        _FENCE_RE.match(line)
        or _HEADING_RE.match(line)
        or _DIVIDER_RE.match(line)
        or _BULLET_RE.match(line)
        or _NUMBERED_RE.match(line)
        or _QUOTE_RE.match(line)
        or _IMAGE_LINE_RE.match(line)
    )


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _collect_item(lines: list[str], start: int) -> tuple[list[str], int]:
    """
    Collect the indented continuation lines of a list item.

    Returns:
        The lines dedented by their common indentation, and the index of
        the first line after the item
    """
    body: list[str] = []
    i = start
    while i < len(lines):
        line = lines[i]
        if line.strip() == "":
            # A blank line continues the item only if indented text follows
            j = i
            while j < len(lines) and lines[j].strip() == "":
                j += 1
            if j < len(lines) and lines[j].startswith("  "):
                body.extend([""] * (j - i))
                i = j
                continue
            break
        if not line.startswith("  "):
            break
        body.append(line)
        i += 1

    width = min((_indent(line) for line in body if line.strip()), default=0)
    return [line[width:] for line in body], i


def _list_item_blocks(block_type: str, first_line: str, body: list[str], depth: int) -> list[Block]:
    # Text lines directly under the marker belong to the item itself
    text_lines = [first_line]
    rest_start = 0
    while rest_start < len(body) and body[rest_start].strip() and not _is_block_start(body[rest_start]):
        text_lines.append(body[rest_start].strip())
        rest_start += 1

    rich_text = to_rich_text("\n".join(line.rstrip() for line in text_lines))
    nested = _parse_blocks(body[rest_start:], depth + 1)

    if depth + 1 >= NOTION_MAX_NESTING_DEPTH:
        return _text_blocks(block_type, rich_text) + nested
    return _text_blocks(block_type, rich_text, children=nested or None)


def _parse_blocks(lines: list[str], depth: int) -> list[Block]:
    blocks: list[Block] = []
    i = 0

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if not stripped:
            i += 1
            continue

        fence = _FENCE_RE.match(stripped)
        if fence:
            ticks = fence.group(1)
            code_lines = []
            i += 1
            while i < len(lines):
                candidate = lines[i].strip()
                if candidate.startswith(ticks) and not candidate.strip("`"):
                    i += 1
                    break
                code_lines.append(lines[i])
                i += 1
            blocks.extend(_code_blocks("\n".join(code_lines), fence.group(2)))
            continue

        heading = _HEADING_RE.match(stripped)
        if heading:
            level = min(len(heading.group(1)), 3)
            blocks.extend(_text_blocks(f"heading_{level}", to_rich_text(heading.group(2))))
            i += 1
            continue

        if _DIVIDER_RE.match(line):
            blocks.append(_block("divider", {}))
            i += 1
            continue

        image = _IMAGE_LINE_RE.match(stripped)
        if image and _is_notion_url(image.group(2)):
            blocks.extend(_image_block(image.group(1), image.group(2)))
            i += 1
            continue

        bullet = _BULLET_RE.match(stripped)
        numbered = _NUMBERED_RE.match(stripped)
        if bullet or numbered:
            block_type = "bulleted_list_item" if bullet else "numbered_list_item"
            first_line = (bullet or numbered).group(1)
            body, i = _collect_item(lines, i + 1)
            blocks.extend(_list_item_blocks(block_type, first_line, body, depth))
            continue

        if _QUOTE_RE.match(stripped):
            quote_lines = []
            while i < len(lines) and _QUOTE_RE.match(lines[i].strip()):
                quote_lines.append(_QUOTE_RE.match(lines[i].strip()).group(1).rstrip())
                i += 1
            blocks.extend(_text_blocks("quote", to_rich_text("\n".join(quote_lines))))
            continue

        if _TABLE_ROW_RE.match(stripped):
            table_lines = []
            while i < len(lines) and _TABLE_ROW_RE.match(lines[i].strip()):
                table_lines.append(lines[i].strip())
                i += 1
            blocks.extend(_table_blocks(table_lines, depth))
            continue

        paragraph_lines = [stripped]
        i += 1
        while i < len(lines) and lines[i].strip() and not _is_block_start(lines[i].strip()):
            paragraph_lines.append(lines[i].strip())
            i += 1
        blocks.extend(_text_blocks("paragraph", to_rich_text("\n".join(paragraph_lines))))

    return blocks


def to_blocks(markdown: str) -> list[Block]:
    """
    Convert Markdown to Notion block objects.

    Args:
        markdown: Markdown text

    Returns:
        List of top-level block objects, children nested where allowed
    """
    return _parse_blocks(markdown.replace("\r\n", "\n").split("\n"), depth=0)


def _children(block: Block) -> list[Block]:
    return block.get(block.get("type"), {}).get("children") or []


def block_count(block: Block) -> int:
    """Number of blocks in a block tree, the block itself included."""
    return 1 + sum(block_count(child) for child in _children(block))


def detach_children(
    block: Block, limit: int = NOTION_MAX_BLOCKS_PER_REQUEST
) -> tuple[Block, list[Block]]:
    """
    Split off the children a single request cannot carry.

    Returns:
        A copy of the block keeping at most limit children, and the
        remaining children, which must be appended to the created block
    """
    children = _children(block)
    if len(children) <= limit:
        return block, []

    block_type = block["type"]
    kept = {**block, block_type: {**block[block_type], "children": children[:limit]}}
    return kept, children[limit:]


def batch_blocks(
    blocks: list[Block],
    batch_size: int = NOTION_MAX_BLOCKS_PER_REQUEST,
    max_total: int = NOTION_MAX_BLOCKS_PER_PAYLOAD,
) -> Iterator[list[Block]]:
    """
    Split blocks into append-children batches.

    A batch holds at most batch_size top-level blocks and at most max_total
    blocks counting children. A single block larger than max_total still
    gets a batch of its own.
    """
    batch: list[Block] = []
    total = 0
    for block in blocks:
        count = block_count(block)
        if batch and (len(batch) >= batch_size or total + count > max_total):
            yield batch
            batch, total = [], 0
        batch.append(block)
        total += count

    if batch:
        yield batch
