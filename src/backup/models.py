"""Data models for the backup engine.

This module defines all data models used by the backup engine.
All models use dataclasses for clean, type-safe data structures.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from src.models.content_node import ContentNode


@dataclass
class SyncRecord:
    """Last successful export of one document.

    A record exists for a document only if its local file was written by a
    completed export.

    Attributes:
        change_marker: Change marker of the document at export time
        local_path: Path of the markdown file, relative to the backup root
        title: Document title at export time
    """
    change_marker: str
    local_path: str
    title: str


@dataclass
class BackupState:
    """On-disk sync state (.backup-state.json).

    Attributes:
        last_run_timestamp: ISO 8601 timestamp of the last run (None if never run)
        pages: Mapping of document id to SyncRecord
    """
    last_run_timestamp: Optional[str] = None
    pages: Dict[str, SyncRecord] = field(default_factory=dict)


class ExportOutcome(Enum):
    """Result of exporting one document."""
    EXPORTED = "exported"
    SKIPPED = "skipped"
    FAILED = "failed"


class ExportReason(Enum):
    """Why a document needs exporting, in decision order."""
    NEW = "not backed up before"
    FORCED = "forced re-export"
    CHANGED = "changed remotely"
    MISSING_FILE = "local file missing"


@dataclass
class DiscoveryResult:
    """Collections found under a root container.

    Attributes:
        collections: Collections in depth-first discovery order
        complete: False if any nested container could not be listed
        failed_container_ids: Containers whose listing failed
    """
    collections: List[ContentNode] = field(default_factory=list)
    complete: bool = True
    failed_container_ids: List[str] = field(default_factory=list)


@dataclass
class CollectionResult:
    """Export statistics for one collection.

    Attributes:
        collection: The collection that was processed
        exported: Documents written this run
        skipped: Documents left untouched (unchanged)
        failed: Documents whose export failed
        document_ids: Every document id the remote reported
        complete: False if the collection listing itself failed
    """
    collection: ContentNode
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    document_ids: Set[str] = field(default_factory=set)
    complete: bool = True


@dataclass
class BackupConfig:
    """Settings for a backup run.

    Attributes:
        backup_dir: Root directory of the local mirror
        attachments_dir: Name of the shared attachment pool under backup_dir
        state_file: Name of the state file under backup_dir
        max_attempts: Attempts per remote call (retry policy)
        base_delay: First backoff delay in seconds (doubles each retry)
        request_timeout: Timeout of Notion API requests in seconds
        download_timeout: Timeout of attachment downloads in seconds
        max_redirects: Redirects followed by attachment downloads
        export_delay: Pause between document exports in seconds
        max_concurrent_downloads: Parallel attachment downloads per document
        filename_max_length: Cap on sanitized file and directory names
        page_size: Page size requested from paginated endpoints
    """
    backup_dir: str = "notion-backup"
    attachments_dir: str = "Attachments"
    state_file: str = ".backup-state.json"
    max_attempts: int = 5
    base_delay: float = 2.0
    request_timeout: float = 30.0
    download_timeout: float = 60.0
    max_redirects: int = 5
    export_delay: float = 0.1
    max_concurrent_downloads: int = 5
    filename_max_length: int = 200
    page_size: int = 100
