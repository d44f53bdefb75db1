"""Data models for CLI operations.

This module defines all data models used by the CLI module.
All models use dataclasses for clean, type-safe data structures,
following the patterns established in src/backup/models.py.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    These exit codes provide meaningful feedback about the operation result:
    - SUCCESS (0): Backup completed, every document exported or unchanged
    - GENERAL_ERROR (1): General error (config issues, unreachable root, crashes)
    - PARTIAL_FAILURE (2): Backup completed but some documents failed to export
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    PARTIAL_FAILURE = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4


@dataclass
class CollectionSummary:
    """Per-database line of the run summary.

    Attributes:
        title: Database title
        folder: Sanitized directory name under the backup root
        exported: Documents written this run
        skipped: Unchanged documents
        failed: Documents whose export failed
        complete: False if the database query failed
    """
    title: str
    folder: str
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    complete: bool = True


@dataclass
class BackupSummary:
    """Statistics of one backup run.

    Attributes:
        collections: Per-database results in discovery order
        cleaned_up: Orphaned documents removed
        duplicates_removed: Duplicate attachment files removed
        attachments_downloaded: Attachments downloaded this run
        attachments_failed: Attachment downloads that failed
        tracked_pages: Documents tracked in the state after the run
        complete: False if discovery or any database query failed
        dry_run: True if nothing was written

    Example:
        >>> summary = BackupSummary()
        >>> summary.exported
        0
    """
    collections: List[CollectionSummary] = field(default_factory=list)
    cleaned_up: int = 0
    duplicates_removed: int = 0
    attachments_downloaded: int = 0
    attachments_failed: int = 0
    tracked_pages: int = 0
    complete: bool = True
    dry_run: bool = False

    @property
    def exported(self) -> int:
        return sum(c.exported for c in self.collections)

    @property
    def skipped(self) -> int:
        return sum(c.skipped for c in self.collections)

    @property
    def failed(self) -> int:
        return sum(c.failed for c in self.collections)
