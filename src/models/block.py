"""Block data models.

A document's content is a tree of blocks. The block family below is closed:
every remote block type maps to exactly one of these variants, and anything
not recognized becomes an UnsupportedBlock carrying its raw type tag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class BlockType(Enum):
    """Block type tags (values are the Notion API type names)."""

    PARAGRAPH = "paragraph"
    HEADING_1 = "heading_1"
    HEADING_2 = "heading_2"
    HEADING_3 = "heading_3"
    BULLETED_LIST_ITEM = "bulleted_list_item"
    NUMBERED_LIST_ITEM = "numbered_list_item"
    TO_DO = "to_do"
    QUOTE = "quote"
    TOGGLE = "toggle"
    CALLOUT = "callout"
    CODE = "code"
    DIVIDER = "divider"
    TABLE = "table"
    IMAGE = "image"
    EMBED = "embed"
    BOOKMARK = "bookmark"
    UNSUPPORTED = "unsupported"


# Block types whose payload is only rich text
TEXT_BLOCK_TYPES = frozenset({
    BlockType.PARAGRAPH,
    BlockType.HEADING_1,
    BlockType.HEADING_2,
    BlockType.HEADING_3,
    BlockType.BULLETED_LIST_ITEM,
    BlockType.NUMBERED_LIST_ITEM,
    BlockType.QUOTE,
    BlockType.TOGGLE,
    BlockType.CALLOUT,
})

LINK_BLOCK_TYPES = frozenset({BlockType.EMBED, BlockType.BOOKMARK})


@dataclass(frozen=True)
class RichText:
    """One annotated run of inline text."""
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    strikethrough: bool = False
    link_href: Optional[str] = None


@dataclass
class Block:
    """Common fields of every block variant.

    Attributes:
        id: Remote block id
        block_type: Type tag of the variant
        has_children: Whether the remote reports nested children
        children: Nested blocks in remote order (filled by the exporter)
    """
    id: str
    block_type: BlockType
    has_children: bool = False
    children: List['Block'] = field(default_factory=list)


@dataclass
class TextBlock(Block):
    """Paragraph, heading, list item, quote, toggle or callout."""
    rich_text: List[RichText] = field(default_factory=list)
    icon: Optional[str] = None


@dataclass
class TodoBlock(Block):
    rich_text: List[RichText] = field(default_factory=list)
    checked: bool = False


@dataclass
class CodeBlock(Block):
    rich_text: List[RichText] = field(default_factory=list)
    language: str = ""


@dataclass
class DividerBlock(Block):
    pass


@dataclass
class TableBlock(Block):
    """Table whose rows come from its table_row children.

    Attributes:
        rows: Each row is a list of cells, each cell a list of rich text runs
        has_column_header: First row is a header row
    """
    rows: List[List[List[RichText]]] = field(default_factory=list)
    has_column_header: bool = False


@dataclass
class ImageBlock(Block):
    """Image hosted by Notion (file) or linked (external).

    Attributes:
        url: Origin URL of the image, None when the payload has none
        caption: Caption rich text
    """
    url: Optional[str] = None
    caption: List[RichText] = field(default_factory=list)


@dataclass
class LinkBlock(Block):
    """Embed or bookmark pointing at an external URL."""
    url: Optional[str] = None


@dataclass
class UnsupportedBlock(Block):
    """Any block type without a dedicated variant.

    Attributes:
        raw_type: The type tag reported by the remote
    """
    raw_type: str = ""
