"""Incremental Notion backup engine.

This package mirrors the Notion databases reachable from a root page into
local markdown files, with a shared attachment pool and a durable state file
that makes re-runs fast, idempotent and self-healing.
"""

from .models import (
    SyncRecord,
    BackupState,
    BackupConfig,
    ExportOutcome,
    ExportReason,
    DiscoveryResult,
    CollectionResult,
)
from .errors import (
    BackupError,
    FilesystemError,
    ConfigError,
    RootUnreachableError,
    AttachmentDownloadError,
)
from .config_loader import ConfigLoader
from .filesafe_converter import FilesafeConverter
from .state_store import StateStore
from .tree_discoverer import TreeDiscoverer
from .attachment_materializer import AttachmentMaterializer
from .content_exporter import ContentExporter
from .orphan_reconciler import OrphanReconciler
from .duplicate_sweeper import DuplicateSweeper

__all__ = [
    'SyncRecord',
    'BackupState',
    'BackupConfig',
    'ExportOutcome',
    'ExportReason',
    'DiscoveryResult',
    'CollectionResult',
    'BackupError',
    'FilesystemError',
    'ConfigError',
    'RootUnreachableError',
    'AttachmentDownloadError',
    'ConfigLoader',
    'FilesafeConverter',
    'StateStore',
    'TreeDiscoverer',
    'AttachmentMaterializer',
    'ContentExporter',
    'OrphanReconciler',
    'DuplicateSweeper',
]
