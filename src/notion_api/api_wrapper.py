"""API wrapper for the Notion REST API.

This module wraps the Notion HTTP endpoints used by the backup engine and
provides error translation from HTTP responses to our typed exception
hierarchy. Every call is executed through an injected RetryPolicy.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from requests.exceptions import Timeout, ConnectionError

from .auth import Authenticator
from .errors import (
    APIUnreachableError,
    InvalidCredentialsError,
    ObjectNotFoundError,
    RemoteAPIError,
    ErrorClass,
)
from .retry_logic import RetryPolicy, classify_status, NOTION_CODE_CLASSES

logger = logging.getLogger(__name__)

NOTION_VERSION = "2022-06-28"

_OBJECT_ID_PATTERN = re.compile(r'^[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}$')


@dataclass
class PaginatedResult:
    """One page of a cursor-paginated listing.

    Attributes:
        items: Raw objects returned by the API, in remote order
        next_cursor: Cursor for the next page (None when exhausted)
    """
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None


class APIWrapper:
    """Thin wrapper around the Notion REST API with error translation.

    This class:
    1. Handles authentication using the Authenticator
    2. Translates HTTP errors to typed exceptions
    3. Runs every request through the injected RetryPolicy
    4. Exposes the paginated listings used by the backup engine

    Example:
        >>> api = APIWrapper(Authenticator(), RetryPolicy())
        >>> for block in api.iterate(api.list_block_children, page_id):
        ...     print(block['type'])
    """

    def __init__(
        self,
        authenticator: Authenticator,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 30,
        page_size: int = 100,
    ):
        """Initialize the API wrapper.

        Args:
            authenticator: Authenticator instance for loading credentials
            retry_policy: Policy applied to every request (default RetryPolicy())
            timeout: Per-request timeout in seconds
            page_size: Page size requested from paginated endpoints
        """
        self._authenticator = authenticator
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._page_size = page_size
        self._session: Optional[requests.Session] = None
        self._base_url: Optional[str] = None

    def _get_session(self) -> requests.Session:
        """Get or lazily create the authenticated HTTP session.

        Raises:
            InvalidCredentialsError: If credentials are missing
        """
        if self._session is None:
            creds = self._authenticator.get_credentials()
            session = requests.Session()
            session.headers.update({
                'Authorization': f'Bearer {creds.token}',
                'Notion-Version': NOTION_VERSION,
                'Content-Type': 'application/json',
            })
            self._session = session
            self._base_url = creds.api_url
        return self._session

    def _validate_object_id(self, object_id: str) -> None:
        """Validate that an object ID looks like a Notion UUID.

        Raises:
            ValueError: If object_id is empty or not a UUID (with or without dashes)
        """
        if not object_id or not str(object_id).strip():
            raise ValueError("object id cannot be empty")
        if not _OBJECT_ID_PATTERN.match(str(object_id).strip()):
            raise ValueError(
                f"Invalid object id format: '{object_id}'. "
                f"Notion ids are 32 hexadecimal characters, optionally dashed."
            )

    @staticmethod
    def _sanitize_credentials(text: str) -> str:
        """Mask integration tokens in error messages before they are logged."""
        if not text:
            return text
        sanitized = re.sub(r'Bearer\s+[^\s"\']+', 'Bearer ***REDACTED***', text, flags=re.IGNORECASE)
        sanitized = re.sub(r'\b(secret|ntn)_[A-Za-z0-9]{8,}\b', r'\1_***REDACTED***', sanitized)
        return sanitized

    def _translate_response(self, response: requests.Response, operation: str, object_id: str) -> Exception:
        """Translate a non-success HTTP response into a typed exception."""
        code = None
        message = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                code = body.get('code')
                message = body.get('message') or ""
        except ValueError:
            message = response.text[:300] if response.text else ""

        status = response.status_code
        if status in (401, 403):
            return InvalidCredentialsError(
                endpoint=self._base_url or "unknown",
                reason=self._sanitize_credentials(message) or None,
            )
        if status == 404:
            return ObjectNotFoundError(object_id=object_id or "unknown")

        classification = classify_status(status)
        if classification is ErrorClass.OTHER and code in NOTION_CODE_CLASSES:
            classification = NOTION_CODE_CLASSES[code]

        safe_message = self._sanitize_credentials(message)
        logger.debug(f"API operation failed: {operation} - {status} {code}: {safe_message}")
        return RemoteAPIError(
            status=status,
            code=code,
            message=safe_message,
            classification=classification,
        )

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        object_id: str = "",
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send one request through the retry policy and return the JSON body."""
        def _send() -> Dict[str, Any]:
            session = self._get_session()
            url = f"{self._base_url}/{path}"
            logger.debug(f"Notion API: {method} /{path}")
            try:
                response = session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    timeout=self._timeout,
                )
            except (Timeout, ConnectionError) as e:
                raise APIUnreachableError(endpoint=self._base_url or url) from e

            if response.status_code >= 400:
                raise self._translate_response(response, operation, object_id)
            return response.json()

        return self._retry_policy.call(_send)

    def _page_params(self, cursor: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {'page_size': self._page_size}
        if cursor:
            params['start_cursor'] = cursor
        return params

    @staticmethod
    def _to_result(body: Dict[str, Any]) -> PaginatedResult:
        next_cursor = body.get('next_cursor') if body.get('has_more') else None
        return PaginatedResult(items=list(body.get('results') or []), next_cursor=next_cursor)

    def list_block_children(self, block_id: str, cursor: Optional[str] = None) -> PaginatedResult:
        """List one page of a block's (or document's) content children.

        Args:
            block_id: Block or page ID
            cursor: Continuation cursor from a previous page

        Returns:
            PaginatedResult with raw block objects in remote order

        Raises:
            InvalidCredentialsError: If the token is rejected
            ObjectNotFoundError: If the block doesn't exist
            APIUnreachableError: If the API is unreachable
            RemoteAPIError: For other non-retryable failures
            RetryExhaustedError: If retryable failures persist
        """
        self._validate_object_id(block_id)
        body = self._request(
            'GET',
            f'blocks/{block_id}/children',
            operation=f"list_block_children({block_id})",
            object_id=block_id,
            params=self._page_params(cursor),
        )
        return self._to_result(body)

    def list_children(self, container_id: str, cursor: Optional[str] = None) -> PaginatedResult:
        """List one page of a container's direct children.

        Sub-containers show up as `child_page` blocks and collections as
        `child_database` blocks.
        """
        return self.list_block_children(container_id, cursor)

    def query_collection(self, collection_id: str, cursor: Optional[str] = None) -> PaginatedResult:
        """Query one page of documents from a collection (Notion database).

        Raises:
            Same as list_block_children.
        """
        self._validate_object_id(collection_id)
        payload: Dict[str, Any] = {'page_size': self._page_size}
        if cursor:
            payload['start_cursor'] = cursor
        body = self._request(
            'POST',
            f'databases/{collection_id}/query',
            operation=f"query_collection({collection_id})",
            object_id=collection_id,
            json=payload,
        )
        return self._to_result(body)

    def update_document_properties(self, document_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Write back properties of a document (Notion page).

        Args:
            document_id: Page ID
            properties: Notion property payload, e.g.
                {'Created Date': {'date': {'start': '2024-01-15'}}}

        Returns:
            The updated page object
        """
        self._validate_object_id(document_id)
        return self._request(
            'PATCH',
            f'pages/{document_id}',
            operation=f"update_document_properties({document_id})",
            object_id=document_id,
            json={'properties': properties},
        )

    def iterate(
        self,
        list_method: Callable[[str, Optional[str]], PaginatedResult],
        object_id: str,
    ) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paginated listing, following cursors until exhausted.

        Example:
            >>> docs = list(api.iterate(api.query_collection, database_id))
        """
        cursor: Optional[str] = None
        while True:
            page = list_method(object_id, cursor)
            for item in page.items:
                yield item
            if not page.next_cursor:
                break
            cursor = page.next_cursor
