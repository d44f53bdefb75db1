"""Block tree to markdown conversion.

This module renders a document's Block tree as markdown. Conversion is a
total dispatch over BlockType: every variant has a fixed template, and a
failure while rendering one block is isolated to that block.

Image references are relative to the backup root (Attachments/<name>), the
way a notes vault such as Obsidian resolves links. Documents live one folder
down, so a viewer resolving links against the document's own folder will not
find them.
"""

import logging
import posixpath
from typing import Callable, Dict, Iterable, List, Optional

from src.models.block import (
    Block,
    BlockType,
    CodeBlock,
    ImageBlock,
    LinkBlock,
    RichText,
    TableBlock,
    TextBlock,
    TodoBlock,
    UnsupportedBlock,
)
from .block_parser import plain_text

logger = logging.getLogger(__name__)

# Children of these block types are indented under their parent item
_LIST_TYPES = frozenset({
    BlockType.BULLETED_LIST_ITEM,
    BlockType.NUMBERED_LIST_ITEM,
    BlockType.TO_DO,
    BlockType.TOGGLE,
})

_HEADING_PREFIXES = {
    BlockType.HEADING_1: '#',
    BlockType.HEADING_2: '##',
    BlockType.HEADING_3: '###',
}

AttachmentResolver = Callable[[str], Optional[str]]


def format_rich_text(runs: Iterable[RichText]) -> str:
    """Render RichText runs as inline markdown.

    Annotations are applied in the order bold, italic, code, strikethrough,
    then the link. Surrounding whitespace is kept outside the markers so
    that "** bold **" never appears in the output.
    """
    parts: List[str] = []
    for run in runs:
        text = run.text
        if not text:
            continue
        stripped = text.strip()
        if not stripped:
            parts.append(text)
            continue
        leading = text[:len(text) - len(text.lstrip())]
        trailing = text[len(text.rstrip()):]

        formatted = stripped
        if run.bold:
            formatted = f"**{formatted}**"
        if run.italic:
            formatted = f"*{formatted}*"
        if run.code:
            formatted = f"`{formatted}`"
        if run.strikethrough:
            formatted = f"~~{formatted}~~"
        if run.link_href:
            formatted = f"[{formatted}]({run.link_href})"
        parts.append(f"{leading}{formatted}{trailing}")
    return ''.join(parts)


def collect_image_urls(blocks: Iterable[Block]) -> List[str]:
    """Return the distinct image origin URLs of a block tree, in document order."""
    urls: List[str] = []
    seen = set()
    stack = list(reversed(list(blocks)))
    while stack:
        block = stack.pop()
        if isinstance(block, ImageBlock) and block.url and block.url not in seen:
            seen.add(block.url)
            urls.append(block.url)
        stack.extend(reversed(block.children))
    return urls


def _indent(text: str, prefix: str = '  ') -> str:
    return ''.join(
        f"{prefix}{line}" if line.strip() else line
        for line in text.splitlines(keepends=True)
    )


def _escape_cell(text: str) -> str:
    return text.replace('|', '\\|').replace('\n', '<br>')


class MarkdownConverter:
    """Converts a Block tree into markdown text.

    Image blocks are handed to the attachment resolver, which returns the
    relative reference of the local copy (e.g. "Attachments/image_1.png")
    or None when the download failed.

    Example:
        >>> converter = MarkdownConverter(materializer.materialize)
        >>> markdown = converter.convert(blocks)
    """

    def __init__(self, resolve_attachment: Optional[AttachmentResolver] = None):
        self._resolve_attachment = resolve_attachment
        self._handlers: Dict[BlockType, Callable[[Block], str]] = {
            BlockType.PARAGRAPH: self._paragraph,
            BlockType.HEADING_1: self._heading,
            BlockType.HEADING_2: self._heading,
            BlockType.HEADING_3: self._heading,
            BlockType.BULLETED_LIST_ITEM: self._bulleted,
            BlockType.NUMBERED_LIST_ITEM: self._numbered,
            BlockType.TO_DO: self._todo,
            BlockType.QUOTE: self._quote,
            BlockType.TOGGLE: self._bulleted,
            BlockType.CALLOUT: self._callout,
            BlockType.CODE: self._code,
            BlockType.DIVIDER: self._divider,
            BlockType.TABLE: self._table,
            BlockType.IMAGE: self._image,
            BlockType.EMBED: self._link,
            BlockType.BOOKMARK: self._link,
            BlockType.UNSUPPORTED: self._unsupported,
        }
        missing = set(BlockType) - set(self._handlers)
        if missing:
            raise ValueError(f"No markdown template for block types: {sorted(t.value for t in missing)}")

    def convert(self, blocks: Iterable[Block]) -> str:
        """Render blocks (and their children, inline after each parent) as markdown."""
        return ''.join(self.convert_block(block) for block in blocks)

    def convert_block(self, block: Block) -> str:
        """Render one block followed by its children.

        A failure while rendering the block itself is logged and replaced by
        a comment; its children are still rendered.
        """
        try:
            own = self._handlers[block.block_type](block)
        except Exception as e:
            logger.error(f"Failed to convert block {block.id} ({block.block_type.value}): {e}")
            own = f"<!-- Error converting {block.block_type.value} block -->\n\n"

        if not block.children:
            return own

        children = self.convert(block.children)
        if block.block_type in _LIST_TYPES:
            children = _indent(children)
        return own + children

    def _paragraph(self, block: TextBlock) -> str:
        return f"{format_rich_text(block.rich_text)}\n\n"

    def _heading(self, block: TextBlock) -> str:
        prefix = _HEADING_PREFIXES[block.block_type]
        return f"{prefix} {format_rich_text(block.rich_text)}\n\n"

    def _bulleted(self, block: TextBlock) -> str:
        return f"- {format_rich_text(block.rich_text)}\n"

    def _numbered(self, block: TextBlock) -> str:
        return f"1. {format_rich_text(block.rich_text)}\n"

    def _todo(self, block: TodoBlock) -> str:
        checked = 'x' if block.checked else ' '
        return f"- [{checked}] {format_rich_text(block.rich_text)}\n"

    def _quote(self, block: TextBlock) -> str:
        lines = format_rich_text(block.rich_text).split('\n')
        return '\n'.join(f"> {line}" for line in lines) + "\n\n"

    def _callout(self, block: TextBlock) -> str:
        text = format_rich_text(block.rich_text)
        if block.icon:
            text = f"{block.icon} {text}"
        lines = text.split('\n')
        return '\n'.join(f"> {line}" for line in lines) + "\n\n"

    def _code(self, block: CodeBlock) -> str:
        return f"```{block.language}\n{plain_text(block.rich_text)}\n```\n\n"

    def _divider(self, block: Block) -> str:
        return "---\n\n"

    def _table(self, block: TableBlock) -> str:
        if not block.rows:
            return "<!-- Empty table -->\n\n"

        width = max(len(row) for row in block.rows) or 1
        rendered = []
        for row in block.rows:
            cells = [_escape_cell(format_rich_text(cell)) for cell in row]
            cells.extend([''] * (width - len(cells)))
            rendered.append(cells)

        if block.has_column_header:
            header, body = rendered[0], rendered[1:]
        else:
            header, body = [''] * width, rendered

        lines = [
            '| ' + ' | '.join(header) + ' |',
            '|' + '|'.join(['---'] * width) + '|',
        ]
        lines.extend('| ' + ' | '.join(row) + ' |' for row in body)
        return '\n'.join(lines) + "\n\n"

    def _image(self, block: ImageBlock) -> str:
        if not block.url:
            return "![Image error]()\n\n"

        if self._resolve_attachment is None:
            alt = plain_text(block.caption) or 'Image'
            return f"![{alt}]({block.url})\n\n"

        reference = self._resolve_attachment(block.url)
        if reference is None:
            return f"![Image failed to download]({block.url})\n\n"

        name = posixpath.basename(reference)
        return f"![{name}]({reference})\n\n"

    def _link(self, block: LinkBlock) -> str:
        if not block.url:
            return ""
        label = "Embedded content" if block.block_type is BlockType.EMBED else "Bookmark"
        return f"[{label}]({block.url})\n\n"

    def _unsupported(self, block: UnsupportedBlock) -> str:
        return f"<!-- Unsupported block type: {block.raw_type} -->\n\n"
