"""Command-line interface for incremental Notion backups.

This package provides the `notion-backup` CLI tool that runs the backup
engine against a Notion root page, with progress indication, a summary
table and exit codes describing the outcome.
"""

from .backup_command import BackupCommand
from .models import ExitCode, BackupSummary, CollectionSummary
from .errors import (
    CLIError,
    ConfigNotFoundError,
    MissingRootError,
)

__all__ = [
    'BackupCommand',
    'ExitCode',
    'BackupSummary',
    'CollectionSummary',
    'CLIError',
    'ConfigNotFoundError',
    'MissingRootError',
]
