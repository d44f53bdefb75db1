"""Filesafe filename conversion.

This module converts Notion titles to names that are valid on every common
file system while keeping them readable (case and spaces are preserved).
"""

import re

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r'\s+')

# Names Windows refuses regardless of extension
_RESERVED_NAMES = {
    'CON', 'PRN', 'AUX', 'NUL',
    *(f'COM{i}' for i in range(1, 10)),
    *(f'LPT{i}' for i in range(1, 10)),
}


class FilesafeConverter:
    """Converts titles to filesafe names.

    Conversion rules:
    - Characters illegal in paths (< > : " / \\ | ? * and control chars) → removed
    - Runs of whitespace → single space
    - Leading/trailing whitespace and trailing dots → trimmed
    - Length capped (default 200 characters)
    - Empty result → "untitled"

    Examples:
        - "Meeting: 2024/01/15" → "Meeting 20240115"
        - "  Q&A   Session  " → "Q&A Session"
    """

    DEFAULT_MAX_LENGTH = 200

    @staticmethod
    def sanitize(title: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
        """Convert a title to a filesafe name (without extension).

        Args:
            title: The original title
            max_length: Maximum length of the result

        Returns:
            A non-empty filesafe name

        Examples:
            >>> FilesafeConverter.sanitize('Plans: "Q1" <draft>')
            'Plans Q1 draft'
        """
        if not title:
            return 'untitled'

        name = _INVALID_CHARS.sub('', title)
        name = _WHITESPACE.sub(' ', name).strip()
        name = name[:max_length].rstrip(' .')

        if not name:
            return 'untitled'
        if name.upper() in _RESERVED_NAMES:
            name = f"{name}_"
        return name
