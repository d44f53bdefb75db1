"""Data models for remote content nodes and document blocks."""

from src.models.content_node import ContentNode, NodeKind
from src.models.block import (
    Block,
    BlockType,
    RichText,
    TextBlock,
    TodoBlock,
    CodeBlock,
    DividerBlock,
    TableBlock,
    ImageBlock,
    LinkBlock,
    UnsupportedBlock,
)

__all__ = [
    'ContentNode',
    'NodeKind',
    'Block',
    'BlockType',
    'RichText',
    'TextBlock',
    'TodoBlock',
    'CodeBlock',
    'DividerBlock',
    'TableBlock',
    'ImageBlock',
    'LinkBlock',
    'UnsupportedBlock',
]
