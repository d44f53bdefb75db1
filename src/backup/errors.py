"""Typed exception hierarchy for backup engine errors.

This module defines all custom exceptions used by the backup engine.
All exceptions inherit from BackupError base class for easy catching and
include descriptive messages with context to help with debugging.
"""

from typing import Optional

from src.notion_api.errors import SyncError


class BackupError(SyncError):
    """Base exception for all backup engine errors."""
    pass


class FilesystemError(BackupError):
    """Raised when filesystem operations fail (read, write, permissions, etc)."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class ConfigError(BackupError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class RootUnreachableError(BackupError):
    """Raised when the root container cannot be listed at all."""

    def __init__(self, root_id: str, reason: Optional[str] = None):
        message = f"Root container {root_id} is not reachable"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.root_id = root_id
        self.reason = reason


class AttachmentDownloadError(BackupError):
    """Raised when an attachment download fails or returns a bad response."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        super().__init__(f"Failed to download attachment {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status_code = status_code
