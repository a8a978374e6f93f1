from __future__ import annotations

import html
import re
from collections.abc import Callable
from dataclasses import dataclass, field

_FLAGS = re.IGNORECASE | re.DOTALL

# Private-use code points survive tag stripping and entity decoding untouched.
_SENTINEL_OPEN = "\ue000"
_SENTINEL_CLOSE = "\ue001"

_TAG_PATTERN = re.compile(r"<!--.*?-->|</?[a-zA-Z!?][^>]*>", re.DOTALL)
_PRE_CODE_PATTERN = re.compile(r"<pre[^>]*><code[^>]*>(.*?)</code></pre>", _FLAGS)
_PRE_PATTERN = re.compile(r"<pre[^>]*>(.*?)</pre>", _FLAGS)
_INLINE_CODE_PATTERN = re.compile(r"<code[^>]*>(.*?)</code>", _FLAGS)
_HEADING_PATTERNS: tuple[tuple[int, re.Pattern[str]], ...] = tuple(
    (level, re.compile(rf"<h{level}[^>]*>(.*?)</h{level}>", _FLAGS)) for level in range(6, 0, -1)
)
_IMAGE_ALT_SRC_PATTERN = re.compile(
    r"""<img[^>]+alt=["']([^"']*)["'][^>]+src=["']([^"']*)["'][^>]*/?>""", _FLAGS
)
_IMAGE_SRC_ALT_PATTERN = re.compile(
    r"""<img[^>]+src=["']([^"']*)["'][^>]+alt=["']([^"']*)["'][^>]*/?>""", _FLAGS
)
_IMAGE_SRC_PATTERN = re.compile(r"""<img[^>]+src=["']([^"']*)["'][^>]*/?>""", _FLAGS)
_ANCHOR_PATTERN = re.compile(r"""<a[^>]+href=["']([^"']*)["'][^>]*>(.*?)</a>""", _FLAGS)
_BOLD_PATTERN = re.compile(r"<(strong|b)>(.*?)</\1>", _FLAGS)
_ITALIC_PATTERN = re.compile(r"<(em|i)>(.*?)</\1>", _FLAGS)
_STRIKE_PATTERN = re.compile(r"<(del|s|strike)>(.*?)</\1>", _FLAGS)
_BLOCKQUOTE_PATTERN = re.compile(r"<blockquote[^>]*>(.*?)</blockquote>", _FLAGS)
_LIST_CONTAINER_PATTERN = re.compile(r"</?(?:ul|ol)[^>]*>", _FLAGS)
_LIST_ITEM_PATTERN = re.compile(r"<li[^>]*>(.*?)</li>", _FLAGS)
_HR_PATTERN = re.compile(r"<hr[^>]*/?>", _FLAGS)
_PARAGRAPH_PATTERN = re.compile(r"<p[^>]*>(.*?)</p>", _FLAGS)
_LINE_BREAK_PATTERN = re.compile(r"<br[^>]*/?>", _FLAGS)
_FIGURE_PATTERN = re.compile(r"</?figure[^>]*>", _FLAGS)
_FIGCAPTION_PATTERN = re.compile(r"<figcaption[^>]*>(.*?)</figcaption>", _FLAGS)
_TABLE_PATTERN = re.compile(r"<table[^>]*>(.*?)</table>", _FLAGS)
_TABLE_ROW_PATTERN = re.compile(r"<tr[^>]*>(.*?)</tr>", _FLAGS)
_TABLE_CELL_PATTERN = re.compile(r"<(?:td|th)[^>]*>(.*?)</(?:td|th)>", _FLAGS)
_EXCESS_NEWLINES_PATTERN = re.compile(r"\n{3,}")


def strip_tags(markup: str) -> str:
    return _TAG_PATTERN.sub("", markup)


def decode_entities(text: str) -> str:
    return html.unescape(text)


@dataclass
class VerbatimBlocks:
    """Fenced code blocks pulled out of the stream, keyed by sentinel token."""

    blocks: dict[str, str] = field(default_factory=dict)

    def stash(self, raw_inner: str) -> str:
        token = f"{_SENTINEL_OPEN}PREBLOCK_{len(self.blocks)}{_SENTINEL_CLOSE}"
        code = decode_entities(strip_tags(raw_inner))
        self.blocks[token] = f"\n```\n{code}\n```\n"
        return token

    def restore(self, text: str) -> str:
        for token, block in self.blocks.items():
            text = text.replace(token, block)
        return text


def extract_verbatim_blocks(markup: str, blocks: VerbatimBlocks) -> str:
    markup = _PRE_CODE_PATTERN.sub(lambda match: blocks.stash(match.group(1)), markup)
    return _PRE_PATTERN.sub(lambda match: blocks.stash(match.group(1)), markup)


def convert_inline_code(markup: str) -> str:
    return _INLINE_CODE_PATTERN.sub(lambda match: f"`{match.group(1)}`", markup)


def convert_headings(markup: str) -> str:
    for level, pattern in _HEADING_PATTERNS:
        hashes = "#" * level
        markup = pattern.sub(lambda match, h=hashes: f"\n{h} {match.group(1)}\n", markup)
    return markup


def convert_images(markup: str) -> str:
    markup = _IMAGE_ALT_SRC_PATTERN.sub(
        lambda match: f"![{match.group(1)}]({match.group(2)})", markup
    )
    markup = _IMAGE_SRC_ALT_PATTERN.sub(
        lambda match: f"![{match.group(2)}]({match.group(1)})", markup
    )
    return _IMAGE_SRC_PATTERN.sub(lambda match: f"![]({match.group(1)})", markup)


def convert_anchors(markup: str) -> str:
    return _ANCHOR_PATTERN.sub(lambda match: f"[{match.group(2)}]({match.group(1)})", markup)


def convert_inline_styles(markup: str) -> str:
    markup = _BOLD_PATTERN.sub(lambda match: f"**{match.group(2)}**", markup)
    markup = _ITALIC_PATTERN.sub(lambda match: f"*{match.group(2)}*", markup)
    return _STRIKE_PATTERN.sub(lambda match: f"~~{match.group(2)}~~", markup)


def _quote_block(match: re.Match[str]) -> str:
    lines = strip_tags(match.group(1)).strip().split("\n")
    quoted = [f"> {line.strip()}" if line.strip() else "" for line in lines]
    return "\n" + "\n".join(quoted) + "\n"


def convert_blockquotes(markup: str) -> str:
    return _BLOCKQUOTE_PATTERN.sub(_quote_block, markup)


def convert_lists(markup: str) -> str:
    # Ordered lists are flattened to bullets as well.
    markup = _LIST_CONTAINER_PATTERN.sub("\n", markup)
    return _LIST_ITEM_PATTERN.sub(lambda match: f"- {match.group(1)}\n", markup)


def convert_horizontal_rules(markup: str) -> str:
    return _HR_PATTERN.sub("\n---\n", markup)


def convert_paragraphs(markup: str) -> str:
    markup = _PARAGRAPH_PATTERN.sub(lambda match: f"\n{match.group(1)}\n", markup)
    return _LINE_BREAK_PATTERN.sub("  \n", markup)


def convert_figures(markup: str) -> str:
    markup = _FIGURE_PATTERN.sub("\n", markup)
    return _FIGCAPTION_PATTERN.sub(lambda match: f"*{match.group(1)}*\n", markup)


def _table_to_markdown(match: re.Match[str]) -> str:
    rows: list[list[str]] = []
    for row_markup in _TABLE_ROW_PATTERN.findall(match.group(1)):
        cells = [strip_tags(cell).strip() for cell in _TABLE_CELL_PATTERN.findall(row_markup)]
        rows.append(cells)

    if not rows:
        return match.group(0)

    lines: list[str] = []
    for index, cells in enumerate(rows):
        lines.append("| " + " | ".join(cells) + " |")
        if index == 0:
            lines.append("| " + " | ".join("---" for _ in cells) + " |")
    return "\n" + "\n".join(lines) + "\n\n"


def convert_tables(markup: str) -> str:
    # Heuristic only: no colspan/rowspan and no nested tables.
    return _TABLE_PATTERN.sub(_table_to_markdown, markup)


def collapse_blank_lines(text: str) -> str:
    return _EXCESS_NEWLINES_PATTERN.sub("\n\n", text)


_STRUCTURE_PASSES: tuple[Callable[[str], str], ...] = (
    convert_inline_code,
    convert_headings,
    convert_images,
    convert_anchors,
    convert_inline_styles,
    convert_blockquotes,
    convert_lists,
    convert_horizontal_rules,
    convert_paragraphs,
    convert_figures,
    convert_tables,
)


def html_to_markdown(markup: str, title: str) -> str:
    """Convert an HTML fragment to Markdown headed by `# {title}`.

    Each pass assumes the earlier ones already ran; unmatched or unbalanced
    tags are left for the final strip. Empty input yields an empty string.
    """
    markup = markup.strip()
    if not markup:
        return ""

    blocks = VerbatimBlocks()
    text = extract_verbatim_blocks(markup, blocks)
    for convert in _STRUCTURE_PASSES:
        text = convert(text)

    text = decode_entities(strip_tags(text))
    text = blocks.restore(text)
    text = collapse_blank_lines(text)
    return f"# {title}\n\n{text.strip()}\n"
