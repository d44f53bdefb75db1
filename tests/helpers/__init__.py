"""Test helper modules for backup testing.

This package provides utilities for unit and integration testing:
- fake_notion: in-memory Notion workspace and attachment download session
"""

from .fake_notion import (
    FakeNotion,
    FakeDownloadSession,
    FakeResponse,
    new_id,
    rich,
    block,
    paragraph,
    heading,
    bulleted,
    image,
    table,
    rate_limited,
    server_error,
    validation_error,
)

__all__ = [
    'FakeNotion',
    'FakeDownloadSession',
    'FakeResponse',
    'new_id',
    'rich',
    'block',
    'paragraph',
    'heading',
    'bulleted',
    'image',
    'table',
    'rate_limited',
    'server_error',
    'validation_error',
]
