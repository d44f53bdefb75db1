"""Authentication module for loading Notion credentials.

This module handles loading the Notion integration token from environment
variables using python-dotenv. It validates that the token is present and
raises appropriate errors if it is missing.
"""

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from .errors import InvalidCredentialsError

DEFAULT_API_URL = "https://api.notion.com/v1"


class Credentials(NamedTuple):
    """Notion API credentials."""
    api_url: str
    token: str
    root_page_id: Optional[str]


class Authenticator:
    """Loads and validates Notion credentials from environment variables.

    Credentials are loaded from a .env file using python-dotenv and are never
    cached or logged to prevent security risks.

    Environment variables:
        NOTION_KEY: Notion internal integration token (required)
        NOTION_PARENT_PAGE_ID: Page ID of the root container to back up (optional,
            can be given on the command line instead)
        NOTION_API_URL: Override of the API base URL (optional)

    Raises:
        InvalidCredentialsError: If the integration token is missing

    Example:
        >>> auth = Authenticator()
        >>> creds = auth.get_credentials()
    """

    def __init__(self):
        """Initialize the authenticator by loading environment variables from .env file."""
        load_dotenv()

    def get_credentials(self) -> Credentials:
        """Get Notion credentials from environment variables.

        Returns:
            Credentials: A named tuple containing api_url, token and root_page_id

        Raises:
            InvalidCredentialsError: If NOTION_KEY is missing
        """
        api_url = os.getenv('NOTION_API_URL') or DEFAULT_API_URL
        token = os.getenv('NOTION_KEY')
        root_page_id = os.getenv('NOTION_PARENT_PAGE_ID') or None

        if not token or not token.strip():
            raise InvalidCredentialsError(
                endpoint=api_url,
                reason="NOTION_KEY is not set"
            )

        return Credentials(
            api_url=api_url.rstrip('/'),
            token=token.strip(),
            root_page_id=root_page_id.strip() if root_page_id else None,
        )
