"""Content conversion module for Notion blocks → markdown.

This module provides parse_block for turning raw Notion block objects into
Block variants and the MarkdownConverter for rendering them as markdown.
"""

from .block_parser import parse_block, parse_rich_text, attach_children
from .markdown_converter import MarkdownConverter, collect_image_urls, format_rich_text

__all__ = [
    'parse_block',
    'parse_rich_text',
    'attach_children',
    'MarkdownConverter',
    'collect_image_urls',
    'format_rich_text',
]
