"""
HTML to Markdown conversion.

Converts captured page HTML into Markdown for the Notion page body.
Links are made absolute because Notion does not accept relative URLs, empty
lists and list items are dropped, headings are kept on one line, and code
is fenced with delimiters that cannot collide with the code itself.

Everything not covered by a rule here is left to markdownify's defaults.
"""

import logging
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from markdownify import ATX, MarkdownConverter

logger = logging.getLogger(__name__)

# Non-content elements removed with their subtrees before conversion
REMOVED_TAGS = ["script", "style", "noscript", "link"]

BULLET = "-"
MIN_FENCE_LENGTH = 3

_BACKTICK_RUN_RE = re.compile(r"`+")
_LINE_BREAK_RE = re.compile(r"\r?\n|\r")
_HEADING_BREAK_RE = re.compile(r"[ \t]*\n[ \t]*")
_INLINE_PADDING_RE = re.compile(r"^`|^ .*?[^ ].* $|`$")
_TAG_RE = re.compile(r"<[^>]*>")
_LINK_SCHEMES = ("http", "https", "mailto")


def code_fence(code: str) -> str:
    """
    Pick a backtick fence longer than any backtick run inside the code.

    Args:
        code: Raw code text

    Returns:
        Fence string of at least three backticks
    """
    longest_run = max((len(run) for run in _BACKTICK_RUN_RE.findall(code)), default=0)
    return "`" * max(MIN_FENCE_LENGTH, longest_run + 1)


def fence_code_block(code: str, language: str = "") -> str:
    """
    Wrap raw code text in a fenced block separated by blank lines.

    A single trailing newline of the code is dropped so the closing fence
    sits right after the last line.
    """
    fence = code_fence(code)
    if code.endswith("\n"):
        code = code[:-1]
    return f"\n\n{fence}{language}\n{code}\n{fence}\n\n"


def inline_code_delimiter(code: str) -> str:
    """Shortest run of backticks that does not occur inside the code."""
    delimiter = "`"
    while delimiter in code:
        delimiter += "`"
    return delimiter


def wrap_inline_code(code: str) -> str:
    """
    Render inline code.

    Line breaks become spaces. A space is added inside the delimiters when
    the code starts or ends with a backtick, or is padded with spaces on
    both sides, so Markdown does not eat them.

    Returns:
        Inline code span, or empty string for blank code
    """
    if not code.strip():
        return ""

    code = _LINE_BREAK_RE.sub(" ", code)
    delimiter = inline_code_delimiter(code)
    padding = " " if _INLINE_PADDING_RE.search(code) else ""
    return f"{delimiter}{padding}{code}{padding}{delimiter}"


def resolve_link(href: str | None, base_url: str) -> str | None:
    """
    Resolve a link target against the page URL.

    Args:
        href: Raw href or src attribute value
        base_url: URL of the captured page

    Returns:
        Absolute http(s) or mailto URL, or None if it cannot be resolved
    """
    href = (href or "").strip()
    if not href:
        return None

    try:
        absolute = urljoin(base_url or "", href)
        parsed = urlparse(absolute)
    except ValueError:
        return None

    if parsed.scheme not in _LINK_SCHEMES:
        return None
    if parsed.scheme != "mailto" and not parsed.netloc:
        return None

    # Keep the Markdown link destination on one token
    return absolute.replace(" ", "%20").replace("(", "%28").replace(")", "%29")


def _code_language(element: Tag | None) -> str:
    """Extract code language from a language-* or lang-* class."""
    if element is None:
        return ""

    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()

    for cls in classes:
        for prefix in ("language-", "lang-"):
            if cls.startswith(prefix):
                language = cls[len(prefix) :]
                if language and "`" not in language:
                    return language
    return ""


def _last_element_child(element: Tag) -> Tag | None:
    for child in reversed(element.contents):
        if isinstance(child, Tag):
            return child
    return None


def _parse_start(value) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 1


class CaptureMarkdownConverter(MarkdownConverter):
    """Markdown converter with the link, list, heading and code rules."""

    class Options(MarkdownConverter.DefaultOptions):
        base_url = ""
        heading_style = ATX
        bullets = BULLET
        escape_asterisks = False
        escape_underscores = False

    def __init__(self, **options):
        super().__init__(**options)
        self._item_positions: dict[int, dict[int, int]] = {}

    def convert_a(self, el, text, parent_tags=None):
        """Absolute link with the label on a single line."""
        href = resolve_link(el.get("href"), self.options["base_url"])
        if href is None:
            return text

        label = " ".join(text.split())
        if not label:
            return ""

        return f"[{label}]({href})"

    def convert_img(self, el, text, parent_tags=None):
        src = resolve_link(el.get("src"), self.options["base_url"])
        if src:
            el["src"] = src
        return super().convert_img(el, text, parent_tags=parent_tags or set())

    def convert_list(self, el, text, parent_tags=None):
        if not text.strip():
            return ""

        # A sublist closing its item stays attached to the item text
        parent = el.parent
        if parent is not None and parent.name == "li" and _last_element_child(parent) is el:
            return "\n" + text

        return "\n\n" + text.strip("\n") + "\n\n"

    convert_ul = convert_list
    convert_ol = convert_list

    def convert_li(self, el, text, parent_tags=None):
        if not text.strip():
            return ""

        lines = text.lstrip("\n").rstrip().split("\n")
        body = "\n".join([lines[0]] + [f"  {line}" if line.strip() else "" for line in lines[1:]])

        return f"{self._list_marker(el)}{body}\n"

    def _list_marker(self, el: Tag) -> str:
        parent = el.parent
        if parent is None or parent.name != "ol":
            return f"{BULLET} "

        positions = self._item_positions.get(id(parent))
        if positions is None:
            items = parent.find_all("li", recursive=False)
            positions = {id(item): index for index, item in enumerate(items)}
            self._item_positions[id(parent)] = positions

        number = _parse_start(parent.get("start")) + positions.get(id(el), 0)
        return f"{number}. "

    def convert_hN(self, n, el, text, parent_tags):
        if parent_tags and "_inline" in parent_tags:
            return text

        text = _HEADING_BREAK_RE.sub(" ", text).strip()
        if not text:
            return ""

        level = max(1, min(6, n))
        return f"\n\n{'#' * level} {text}\n\n"

    def convert_code(self, el, text, parent_tags=None):
        pre = el.find_parent("pre")
        if pre is not None:
            language = _code_language(el) or _code_language(pre)
            return fence_code_block(el.get_text(), language)

        return wrap_inline_code(text)

    def convert_pre(self, el, text, parent_tags=None):
        # Code children already rendered their own fences
        if el.find("code") is not None:
            return text

        if not el.get_text().strip():
            return ""

        return fence_code_block(el.get_text(), _code_language(el))


def _strip_tags(html: str | None) -> str:
    return " ".join(_TAG_RE.sub(" ", html or "").split())


def to_markdown(html: str, url: str) -> str:
    """
    Convert captured HTML to Markdown.

    Never raises: markup that cannot be converted degrades to its plain text.

    Args:
        html: Page or selection HTML
        url: Page URL used to resolve relative links

    Returns:
        Markdown string
    """
    try:
        soup = BeautifulSoup(html or "", "lxml")
    except Exception as e:
        logger.warning(f"Failed to parse HTML for {url}, stripping tags: {e}")
        return _strip_tags(html)

    for element in soup.find_all(REMOVED_TAGS):
        element.decompose()

    try:
        markdown = CaptureMarkdownConverter(base_url=url).convert_soup(soup)
    except Exception as e:
        logger.warning(f"Markdown conversion failed for {url}, using plain text: {e}")
        try:
            return soup.get_text("\n", strip=True)
        except Exception:
            return _strip_tags(html)

    return markdown.strip()
