"""Attachment download and deduplication into the shared attachment pool.

Every distinct origin URL is downloaded once and stored under the pool
directory (Attachments/) with a synthesized name. The URL → file name index
is persisted next to the files so later runs reuse earlier downloads.
"""

import json
import logging
import os
import posixpath
import tempfile
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import requests

from src.notion_api.errors import RetryExhaustedError
from src.notion_api.retry_logic import RetryPolicy
from .errors import AttachmentDownloadError

logger = logging.getLogger(__name__)

INDEX_FILENAME = '.attachment-index.json'
PARTIAL_SUFFIX = '.part'
DEFAULT_EXTENSION = '.jpg'
CHUNK_SIZE = 64 * 1024


def extension_from_url(url: str) -> str:
    """Infer a lowercase file extension from a URL path.

    Query strings (signed S3 URLs carry long ones) are ignored; anything that
    does not look like a short alphanumeric extension falls back to .jpg.

    Examples:
        >>> extension_from_url("https://s3.aws.com/a/photo.PNG?X-Amz-Signature=abc")
        '.png'
        >>> extension_from_url("https://example.com/render")
        '.jpg'
    """
    path = urlparse(url).path
    ext = posixpath.splitext(path)[1].lower()
    if len(ext) < 2 or len(ext) > 6 or not ext[1:].isalnum():
        return DEFAULT_EXTENSION
    return ext


class AttachmentMaterializer:
    """Downloads attachments once per origin URL into a shared pool.

    The URL cache is guarded by a lock, and concurrent requests for the same
    URL wait on the first one, so a URL is downloaded at most once per run
    regardless of how many documents or threads reference it. A mapping is
    registered only after the file was fully written and renamed into place.

    Example:
        >>> materializer = AttachmentMaterializer(Path("backup/Attachments"), RetryPolicy())
        >>> materializer.materialize("https://example.com/diagram.png")
        'Attachments/image_1705312200000_1.png'
    """

    def __init__(
        self,
        attachment_dir: Path,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 60,
        max_redirects: int = 5,
        max_workers: int = 5,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the materializer and load the persisted index.

        Args:
            attachment_dir: Attachment pool directory (created on first download)
            retry_policy: Policy applied to each download (default RetryPolicy())
            timeout: Connect/read timeout of a download in seconds
            max_redirects: Redirects followed before a download fails
            max_workers: Parallel downloads used by prefetch()
            session: HTTP session to use (a fresh one is created otherwise)
            clock: Time source for synthesized names (seconds since epoch)
        """
        self.attachment_dir = Path(attachment_dir)
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._max_workers = max_workers
        self._clock = clock

        self._session = session or requests.Session()
        self._session.max_redirects = max_redirects

        self._lock = threading.Lock()
        self._index: Dict[str, str] = {}
        self._in_flight: Dict[str, Future] = {}
        self._reserved: set = set()
        self._counter = 1

        self.downloaded = 0
        self.reused = 0
        self.failed = 0

        self._load_index()

    @property
    def index_path(self) -> Path:
        return self.attachment_dir / INDEX_FILENAME

    def reference_for(self, name: str) -> str:
        """Relative reference used in exported markdown (Attachments/<name>)."""
        return f"{self.attachment_dir.name}/{name}"

    def _load_index(self) -> None:
        """Rebuild the URL cache from the persisted index, keeping files that still exist."""
        try:
            with open(self.index_path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable attachment index {self.index_path}: {e}")
            return

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed attachment index {self.index_path}")
            return

        for url, name in raw.items():
            if isinstance(name, str) and (self.attachment_dir / name).is_file():
                self._index[url] = name
        dropped = len(raw) - len(self._index)
        logger.debug(
            f"Loaded {len(self._index)} cached attachment(s)"
            + (f", dropped {dropped} missing" if dropped else "")
        )

    def _save_index(self) -> None:
        """Persist the URL cache atomically. Caller holds the lock."""
        try:
            self.attachment_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.attachment-index.', suffix='.tmp', dir=self.attachment_dir)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(self._index, f, indent=2, sort_keys=True)
                os.replace(tmp_path, self.index_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            # The files themselves are fine; the next run just re-downloads
            logger.warning(f"Could not write attachment index {self.index_path}: {e}")

    def is_pool_empty(self) -> bool:
        """True when the pool holds no attachment files (index and partials ignored)."""
        if not self.attachment_dir.is_dir():
            return True
        for entry in self.attachment_dir.iterdir():
            if entry.is_file() and entry.name != INDEX_FILENAME and not entry.name.endswith(PARTIAL_SUFFIX):
                return False
        return True

    def cached_name(self, url: str) -> Optional[str]:
        """Return the pool file name cached for url, if its file still exists."""
        with self._lock:
            return self._lookup(url)

    def _lookup(self, url: str) -> Optional[str]:
        """Cache lookup that drops entries whose file vanished. Caller holds the lock."""
        name = self._index.get(url)
        if name is None:
            return None
        if (self.attachment_dir / name).is_file():
            return name
        logger.debug(f"Cached attachment {name} is gone, downloading again")
        del self._index[url]
        return None

    def materialize(self, url: str) -> Optional[str]:
        """Return the relative reference of url's local copy, downloading it if needed.

        Args:
            url: Origin URL of the attachment (exact string is the identity)

        Returns:
            "Attachments/<name>" on success, None if the download failed.
            Failures are logged, never raised.
        """
        if not url:
            return None

        with self._lock:
            name = self._lookup(url)
            if name is not None:
                self.reused += 1
                return self.reference_for(name)
            pending = self._in_flight.get(url)
            owner = pending is None
            if owner:
                pending = Future()
                self._in_flight[url] = pending

        if not owner:
            name = pending.result()
            return self.reference_for(name) if name else None

        name = None
        try:
            name = self._fetch(url)
        finally:
            with self._lock:
                del self._in_flight[url]
            pending.set_result(name)

        return self.reference_for(name) if name else None

    def prefetch(self, urls: Iterable[str]) -> Dict[str, Optional[str]]:
        """Download distinct URLs with bounded concurrency.

        Args:
            urls: Origin URLs, duplicates allowed

        Returns:
            Mapping of each distinct URL to its reference (None on failure)
        """
        distinct: List[str] = list(dict.fromkeys(u for u in urls if u))
        if not distinct:
            return {}

        workers = max(1, min(self._max_workers, len(distinct)))
        logger.debug(f"Prefetching {len(distinct)} attachment(s) with {workers} worker(s)")
        with ThreadPoolExecutor(max_workers=workers) as pool:
            references = list(pool.map(self.materialize, distinct))
        return dict(zip(distinct, references))

    def _fetch(self, url: str) -> Optional[str]:
        """Download url under a fresh name and register it. Returns the name or None."""
        with self._lock:
            name = self._next_name(extension_from_url(url))
            self._reserved.add(name)

        target = self.attachment_dir / name
        try:
            self._retry_policy.call(self._download, url, target)
        except (AttachmentDownloadError, RetryExhaustedError, requests.RequestException, OSError) as e:
            logger.warning(f"Image download failed for {self._short(url)}: {e}")
            with self._lock:
                self._reserved.discard(name)
                self.failed += 1
            return None

        with self._lock:
            self._reserved.discard(name)
            self._index[url] = name
            self.downloaded += 1
            self._save_index()
        logger.info(f"Downloaded image: {name}")
        return name

    def _next_name(self, extension: str) -> str:
        """Synthesize image_<epoch-ms>_<counter><ext>, skipping taken names. Caller holds the lock."""
        timestamp = int(self._clock() * 1000)
        while True:
            name = f"image_{timestamp}_{self._counter}{extension}"
            self._counter += 1
            if name not in self._reserved and not (self.attachment_dir / name).exists():
                return name

    def _download(self, url: str, target: Path) -> None:
        """Stream url into target via a partial file.

        Raises:
            AttachmentDownloadError: On non-success HTTP status (carries status_code
                so the retry policy can classify 429/5xx as retryable)
            requests.RequestException: On timeouts, connection errors, too many redirects
            OSError: If the file cannot be written
        """
        self.attachment_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + PARTIAL_SUFFIX)
        try:
            with self._session.get(url, stream=True, timeout=self._timeout) as response:
                if response.status_code >= 400:
                    raise AttachmentDownloadError(
                        url=self._short(url),
                        reason=f"HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                with open(partial, 'wb') as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
            os.replace(partial, target)
        except BaseException:
            if partial.exists():
                partial.unlink()
            raise

    def forget(self, name: str) -> None:
        """Drop every cache entry pointing at a pool file that was removed."""
        with self._lock:
            stale = [url for url, cached in self._index.items() if cached == name]
            for url in stale:
                del self._index[url]
            if stale:
                self._save_index()

    def rename(self, old_name: str, new_name: str) -> None:
        """Repoint cache entries from old_name to new_name (duplicate merge)."""
        with self._lock:
            changed = False
            for url, cached in self._index.items():
                if cached == old_name:
                    self._index[url] = new_name
                    changed = True
            if changed:
                self._save_index()

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _short(url: str) -> str:
        """URL without its query string (signed URLs carry credentials there)."""
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path}" if parsed.netloc else url
