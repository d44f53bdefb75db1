"""Content node data model."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NodeKind(Enum):
    """Kinds of nodes in the remote hierarchy."""
    CONTAINER = "container"    # Notion page holding sub-pages/databases
    COLLECTION = "collection"  # Notion database
    DOCUMENT = "document"      # Notion database page


@dataclass(frozen=True)
class ContentNode:
    """A node of the remote hierarchy as seen by the backup engine.

    Produced by discovery or collection queries and never mutated locally.
    Identity is the remote id.

    Attributes:
        id: Remote object id
        title: Display title (plain text)
        parent_container_id: Id of the container or collection holding this node
        change_marker: Opaque change marker (last_edited_time), "" if unknown
        kind: NodeKind of the node
        created_marker: Creation date shown in the exported metadata header
    """
    id: str
    title: str
    parent_container_id: Optional[str]
    change_marker: str
    kind: NodeKind
    created_marker: Optional[str] = None
