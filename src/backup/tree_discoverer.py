"""Discovery of every collection reachable under a root container.

Notion exposes sub-containers as `child_page` blocks and collections as
`child_database` blocks in a page's children listing. The walk is
depth-first with an explicit stack of child iterators, so nesting depth is
not limited by the interpreter's recursion limit and the output order is the
pre-order a recursive walk would produce.
"""

import logging
from typing import Any, Dict, List, Optional

from src.models.content_node import ContentNode, NodeKind
from src.notion_api.api_wrapper import APIWrapper
from src.notion_api.errors import InvalidCredentialsError, SyncError
from .errors import RootUnreachableError
from .models import DiscoveryResult

logger = logging.getLogger(__name__)

CONTAINER_TYPE = 'child_page'
COLLECTION_TYPE = 'child_database'


class TreeDiscoverer:
    """Enumerates collections transitively reachable from a root container.

    Example:
        >>> discoverer = TreeDiscoverer(api)
        >>> result = discoverer.discover(root_page_id)
        >>> for collection in result.collections:
        ...     print(collection.title)
    """

    def __init__(self, api: APIWrapper):
        self._api = api

    def discover(self, root_container_id: str) -> DiscoveryResult:
        """Walk the container tree and collect every collection.

        Args:
            root_container_id: ID of the page the backup starts from

        Returns:
            DiscoveryResult with collections in depth-first order; complete is
            False when any nested container could not be listed

        Raises:
            RootUnreachableError: If the root container cannot be listed
            InvalidCredentialsError: If the token is rejected
        """
        result = DiscoveryResult()

        try:
            root_children = self._list_all(root_container_id)
        except InvalidCredentialsError:
            raise
        except (SyncError, ValueError) as e:
            raise RootUnreachableError(root_container_id, str(e)) from e

        stack: List[tuple] = [(root_container_id, iter(root_children))]
        while stack:
            container_id, children = stack[-1]
            child = next(children, None)
            if child is None:
                stack.pop()
                continue

            child_type = child.get('type')
            if child_type == COLLECTION_TYPE:
                node = self._to_node(child, container_id, NodeKind.COLLECTION)
                logger.info(f"Found collection: {node.title}")
                result.collections.append(node)
            elif child_type == CONTAINER_TYPE:
                sub_id = child.get('id')
                sub_children = self._list_nested(sub_id, result)
                if sub_children is not None:
                    stack.append((sub_id, iter(sub_children)))

        logger.info(
            f"Discovery finished: {len(result.collections)} collection(s)"
            + ("" if result.complete else f", {len(result.failed_container_ids)} container(s) unreadable")
        )
        return result

    def _list_nested(self, container_id: str, result: DiscoveryResult) -> Optional[List[Dict[str, Any]]]:
        """List a nested container, recording failures instead of raising."""
        try:
            return self._list_all(container_id)
        except InvalidCredentialsError:
            raise
        except (SyncError, ValueError) as e:
            logger.error(f"Failed to list container {container_id}: {e}")
            result.complete = False
            result.failed_container_ids.append(container_id)
            return None

    def _list_all(self, container_id: str) -> List[Dict[str, Any]]:
        logger.debug(f"Listing children of container {container_id}")
        return list(self._api.iterate(self._api.list_children, container_id))

    @staticmethod
    def _to_node(child: Dict[str, Any], parent_id: str, kind: NodeKind) -> ContentNode:
        payload = child.get(child.get('type', ''), {}) or {}
        title = (payload.get('title') or '').strip() or 'Untitled'
        return ContentNode(
            id=child.get('id', ''),
            title=title,
            parent_container_id=parent_id,
            change_marker=child.get('last_edited_time', ''),
            kind=kind,
            created_marker=child.get('created_time'),
        )

