"""Parsing of raw Notion block objects into Block variants.

parse_block() is total: every raw block becomes exactly one variant, and
unknown or malformed types become UnsupportedBlock rather than raising.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from src.models.block import (
    Block,
    BlockType,
    CodeBlock,
    DividerBlock,
    ImageBlock,
    LinkBlock,
    RichText,
    TableBlock,
    TextBlock,
    TodoBlock,
    UnsupportedBlock,
    LINK_BLOCK_TYPES,
    TEXT_BLOCK_TYPES,
)

logger = logging.getLogger(__name__)

_TYPES_BY_TAG = {block_type.value: block_type for block_type in BlockType}


def parse_rich_text(items: Optional[Iterable[Dict[str, Any]]]) -> List[RichText]:
    """Convert a Notion rich_text array into RichText runs.

    Args:
        items: Raw rich_text array (None is treated as empty)

    Returns:
        List of RichText in the original order
    """
    runs: List[RichText] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        text = item.get('plain_text')
        if text is None:
            text = (item.get('text') or {}).get('content', '')
        annotations = item.get('annotations') or {}
        href = item.get('href') or (
            ((item.get('text') or {}).get('link') or {}).get('url')
        )
        runs.append(RichText(
            text=text,
            bold=bool(annotations.get('bold')),
            italic=bool(annotations.get('italic')),
            code=bool(annotations.get('code')),
            strikethrough=bool(annotations.get('strikethrough')),
            link_href=href or None,
        ))
    return runs


def plain_text(runs: Iterable[RichText]) -> str:
    """Join the text of RichText runs without any formatting."""
    return ''.join(run.text for run in runs)


def _file_url(payload: Dict[str, Any]) -> Optional[str]:
    """Extract the URL of a Notion file object (hosted or external)."""
    source = payload.get('type')
    if source in ('file', 'external'):
        return (payload.get(source) or {}).get('url') or None
    for key in ('file', 'external'):
        url = (payload.get(key) or {}).get('url')
        if url:
            return url
    return None


def parse_table_row(raw: Dict[str, Any]) -> List[List[RichText]]:
    """Convert a raw table_row block into its cells."""
    cells = (raw.get('table_row') or {}).get('cells') or []
    return [parse_rich_text(cell) for cell in cells]


def parse_block(raw: Dict[str, Any]) -> Block:
    """Convert one raw Notion block object into a Block variant.

    Args:
        raw: Block object as returned by the blocks children endpoint

    Returns:
        The matching variant; UnsupportedBlock for unknown types
    """
    block_id = str(raw.get('id', ''))
    raw_type = str(raw.get('type') or '')
    has_children = bool(raw.get('has_children'))
    payload = raw.get(raw_type) if raw_type else None
    if not isinstance(payload, dict):
        payload = {}

    block_type = _TYPES_BY_TAG.get(raw_type)
    if block_type is None or block_type is BlockType.UNSUPPORTED:
        return UnsupportedBlock(
            id=block_id,
            block_type=BlockType.UNSUPPORTED,
            has_children=has_children,
            raw_type=raw_type or 'unknown',
        )

    if block_type in TEXT_BLOCK_TYPES:
        icon = None
        if block_type is BlockType.CALLOUT:
            icon = (payload.get('icon') or {}).get('emoji')
        return TextBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            rich_text=parse_rich_text(payload.get('rich_text')),
            icon=icon,
        )

    if block_type is BlockType.TO_DO:
        return TodoBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            rich_text=parse_rich_text(payload.get('rich_text')),
            checked=bool(payload.get('checked')),
        )

    if block_type is BlockType.CODE:
        return CodeBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            rich_text=parse_rich_text(payload.get('rich_text')),
            language=payload.get('language') or '',
        )

    if block_type is BlockType.DIVIDER:
        return DividerBlock(id=block_id, block_type=block_type, has_children=has_children)

    if block_type is BlockType.TABLE:
        return TableBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            has_column_header=bool(payload.get('has_column_header')),
        )

    if block_type is BlockType.IMAGE:
        return ImageBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            url=_file_url(payload),
            caption=parse_rich_text(payload.get('caption')),
        )

    if block_type in LINK_BLOCK_TYPES:
        return LinkBlock(
            id=block_id,
            block_type=block_type,
            has_children=has_children,
            url=payload.get('url') or None,
        )

    # Every BlockType is handled above; keep the function total regardless
    logger.debug(f"No parser for block type {raw_type}, treating as unsupported")
    return UnsupportedBlock(
        id=block_id,
        block_type=BlockType.UNSUPPORTED,
        has_children=has_children,
        raw_type=raw_type,
    )


def attach_children(parent: Block, raw_children: List[Dict[str, Any]]) -> List[Block]:
    """Attach fetched raw children to a parsed parent block.

    Table rows become the table's rows; for every other variant the raw
    children are parsed and appended to parent.children in order.

    Returns:
        The newly parsed child blocks that may themselves need expanding
        (empty for tables).
    """
    if isinstance(parent, TableBlock):
        parent.rows = [
            parse_table_row(raw) for raw in raw_children
            if raw.get('type') == 'table_row'
        ]
        return []

    children = [parse_block(raw) for raw in raw_children]
    parent.children = children
    return children
