"""Durable sync state for incremental backups.

This module loads and persists the backup state file (.backup-state.json)
that maps every exported document to its change marker and local file.
A missing or corrupted state file degrades to an empty state, which simply
causes a full re-export.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import FilesystemError
from .models import BackupState, SyncRecord

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class StateStore:
    """Owns the BackupState of one run.

    The store is created at run start, passed to the components that need
    it, and persisted after every change so an interrupted run keeps every
    export that completed. All mutations go through a lock; the store is a
    single-writer structure.

    State file structure:
        {
          "lastRunTimestamp": "2024-01-15T10:30:00.000Z",
          "pages": {
            "<document id>": {
              "changeMarker": "2024-01-15T09:00:00.000Z",
              "localPath": "Notes/Weekly.md",
              "title": "Weekly"
            }
          }
        }

    Example:
        >>> store = StateStore(Path("backup/.backup-state.json"), Path("backup"))
        >>> store.load()
        >>> store.record(doc_id, SyncRecord("2024-01-15T09:00:00.000Z", "Notes/Weekly.md", "Weekly"))
    """

    def __init__(self, state_path: Path, root_dir: Path):
        """Initialize the store.

        Args:
            state_path: Location of the JSON state file
            root_dir: Backup root; local paths are stored relative to it
        """
        self.state_path = Path(state_path)
        self.root_dir = Path(root_dir)
        self.state = BackupState()
        self._lock = threading.Lock()

    def load(self) -> BackupState:
        """Load the state file, falling back to an empty state.

        Never raises for a missing, unreadable or malformed file; the problem
        is logged and an empty state is used instead.

        Returns:
            The loaded BackupState (also kept on the store)
        """
        self.state = self._read()
        return self.state

    def _read(self) -> BackupState:
        try:
            with open(self.state_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            logger.info(f"No state file at {self.state_path}, starting a full backup")
            return BackupState()
        except OSError as e:
            logger.warning(f"Could not read state file {self.state_path}: {e}; starting from empty state")
            return BackupState()

        if not content.strip():
            return BackupState()

        try:
            raw = json.loads(content)
        except ValueError as e:
            logger.warning(f"State file {self.state_path} is corrupted ({e}); starting from empty state")
            return BackupState()

        if not isinstance(raw, dict):
            logger.warning(
                f"State file {self.state_path} must contain a JSON object, "
                f"got {type(raw).__name__}; starting from empty state"
            )
            return BackupState()

        return self._parse_state(raw)

    def _parse_state(self, raw: Dict[str, Any]) -> BackupState:
        """Parse a raw state dict, dropping malformed records.

        Keys written by earlier versions of the backup (lastBackup,
        lastModified, filePath) are accepted too.
        """
        last_run = raw.get('lastRunTimestamp', raw.get('lastBackup'))
        if not isinstance(last_run, str) or not last_run.strip():
            last_run = None

        pages_raw = raw.get('pages')
        if not isinstance(pages_raw, dict):
            if pages_raw is not None:
                logger.warning("State field 'pages' is not an object; ignoring tracked pages")
            pages_raw = {}

        pages: Dict[str, SyncRecord] = {}
        for page_id, entry in pages_raw.items():
            record = self._parse_record(entry)
            if record is None:
                logger.warning(f"Dropping malformed state record for {page_id}")
                continue
            pages[str(page_id)] = record

        return BackupState(last_run_timestamp=last_run, pages=pages)

    def _parse_record(self, entry: Any) -> Optional[SyncRecord]:
        if not isinstance(entry, dict):
            return None
        change_marker = entry.get('changeMarker', entry.get('lastModified'))
        local_path = entry.get('localPath', entry.get('filePath'))
        title = entry.get('title', '')
        if not isinstance(change_marker, str) or not isinstance(local_path, str) or not local_path:
            return None
        if not isinstance(title, str):
            title = str(title)
        return SyncRecord(
            change_marker=change_marker,
            local_path=self._relativize(local_path),
            title=title,
        )

    def _relativize(self, local_path: str) -> str:
        """Store paths relative to the backup root when they live under it."""
        path = Path(local_path)
        if path.is_absolute():
            try:
                return path.relative_to(self.root_dir.resolve()).as_posix()
            except ValueError:
                try:
                    return path.relative_to(self.root_dir).as_posix()
                except ValueError:
                    return path.as_posix()
        return path.as_posix()

    def save(self) -> None:
        """Persist the state atomically (temp file + rename).

        Raises:
            FilesystemError: If the state file cannot be written
        """
        with self._lock:
            self._write()

    def _write(self) -> None:
        payload = {
            'lastRunTimestamp': self.state.last_run_timestamp,
            'pages': {
                page_id: {
                    'changeMarker': record.change_marker,
                    'localPath': record.local_path,
                    'title': record.title,
                }
                for page_id, record in self.state.pages.items()
            },
        }
        state_dir = self.state_path.parent
        try:
            state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.state_path.name}.", suffix='.tmp', dir=state_dir
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.state_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise FilesystemError(str(self.state_path), 'write', str(e))

    def get(self, page_id: str) -> Optional[SyncRecord]:
        return self.state.pages.get(page_id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self.state.pages)

    def items(self) -> List[tuple]:
        with self._lock:
            return list(self.state.pages.items())

    def record(self, page_id: str, record: SyncRecord) -> None:
        """Insert or update a record and persist immediately.

        Called only after the document's file has been written.
        """
        with self._lock:
            self.state.pages[page_id] = record
            self._write()

    def remove(self, page_id: str) -> Optional[SyncRecord]:
        """Remove a record and persist immediately. Returns the removed record."""
        with self._lock:
            removed = self.state.pages.pop(page_id, None)
            if removed is not None:
                self._write()
            return removed

    def owner_of(self, local_path: str) -> Optional[str]:
        """Return the id of the document whose record points at local_path."""
        wanted = Path(local_path).as_posix()
        with self._lock:
            for page_id, record in self.state.pages.items():
                if record.local_path == wanted:
                    return page_id
        return None

    def resolve_path(self, record: SyncRecord) -> Path:
        """Absolute location of a record's local file."""
        path = Path(record.local_path)
        return path if path.is_absolute() else self.root_dir / path

    def mark_run(self, timestamp: Optional[str] = None) -> str:
        """Stamp lastRunTimestamp and persist. Returns the timestamp."""
        with self._lock:
            self.state.last_run_timestamp = timestamp or _now_iso()
            self._write()
            return self.state.last_run_timestamp

    def __len__(self) -> int:
        return len(self.state.pages)
