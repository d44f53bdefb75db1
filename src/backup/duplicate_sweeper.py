"""Removal of duplicate attachment copies from the attachment pool.

Attachments are named image_<epoch-ms>_<counter><ext>. Files sharing the
timestamp and extension (the name with the counter stripped) form a group;
within a group the lexicographically first file is kept and the others are
deleted when their bytes are identical to it. Markdown references to a
deleted file are rewritten to the kept one.
"""

import hashlib
import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from .attachment_materializer import AttachmentMaterializer

logger = logging.getLogger(__name__)

ATTACHMENT_NAME = re.compile(r'^image_(\d+)_(\d+)(\.[A-Za-z0-9]+)$')
HASH_CHUNK_SIZE = 64 * 1024


def canonical_key(name: str) -> Optional[str]:
    """Group key of an attachment name, None for names outside the pattern.

    Examples:
        >>> canonical_key("image_1705312200000_3.png")
        'image_1705312200000.png'
        >>> canonical_key("diagram.png") is None
        True
    """
    match = ATTACHMENT_NAME.match(name)
    if not match:
        return None
    timestamp, _, extension = match.groups()
    return f"image_{timestamp}{extension}"


def file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


class DuplicateSweeper:
    """Deletes redundant copies of the same attachment.

    Two files with the same canonical key but different contents are
    different images that happened to be named in the same millisecond;
    both are kept.

    Example:
        >>> sweeper = DuplicateSweeper(materializer)
        >>> removed = sweeper.sweep(Path("backup/Attachments"), Path("backup"))
    """

    def __init__(self, materializer: Optional[AttachmentMaterializer] = None):
        self._materializer = materializer

    def group(self, attachment_dir: Path) -> Dict[str, List[str]]:
        """Group pool file names by canonical key (sorted names, groups of 2+ only)."""
        groups: Dict[str, List[str]] = defaultdict(list)
        for entry in attachment_dir.iterdir():
            if not entry.is_file():
                continue
            key = canonical_key(entry.name)
            if key is not None:
                groups[key].append(entry.name)
        return {key: sorted(names) for key, names in groups.items() if len(names) > 1}

    def sweep(self, attachment_dir: Path, documents_root: Optional[Path] = None, dryrun: bool = False) -> int:
        """Remove duplicate attachment files.

        Args:
            attachment_dir: The attachment pool directory
            documents_root: Directory whose *.md files reference the pool; references
                to removed files are rewritten (skipped when None)
            dryrun: If True, only log what would be removed

        Returns:
            Number of files removed (would be removed in dry run mode)
        """
        attachment_dir = Path(attachment_dir)
        if not attachment_dir.is_dir():
            logger.debug(f"No attachment directory at {attachment_dir}, nothing to sweep")
            return 0

        replacements: Dict[str, str] = {}
        for key, names in self.group(attachment_dir).items():
            kept = names[0]
            try:
                kept_digest = file_digest(attachment_dir / kept)
            except OSError as e:
                logger.warning(f"Cannot read {kept}, leaving group {key} alone: {e}")
                continue

            for name in names[1:]:
                path = attachment_dir / name
                try:
                    if file_digest(path) != kept_digest:
                        logger.debug(f"{name} differs from {kept}, keeping both")
                        continue
                    if dryrun:
                        logger.info(f"[DRYRUN] Would remove duplicate attachment: {name} (same as {kept})")
                    else:
                        path.unlink()
                        logger.info(f"Removed duplicate attachment: {name} (same as {kept})")
                except OSError as e:
                    logger.warning(f"Failed to remove duplicate {name}: {e}")
                    continue
                replacements[name] = kept

        if replacements and not dryrun:
            if self._materializer is not None:
                for removed, kept in replacements.items():
                    self._materializer.rename(removed, kept)
            if documents_root is not None:
                self._rewrite_references(Path(documents_root), replacements)

        if replacements:
            logger.info(f"Removed {len(replacements)} duplicate attachment(s)")
        return len(replacements)

    def _rewrite_references(self, documents_root: Path, replacements: Dict[str, str]) -> int:
        """Point markdown references at kept files. Returns the number of files changed."""
        pattern = re.compile(
            r'(?<![\w.])(' + '|'.join(re.escape(name) for name in replacements) + r')(?![\w.])'
        )
        changed = 0
        for md_file in documents_root.rglob('*.md'):
            try:
                text = md_file.read_text(encoding='utf-8')
                updated = pattern.sub(lambda m: replacements[m.group(1)], text)
                if updated != text:
                    md_file.write_text(updated, encoding='utf-8')
                    changed += 1
            except OSError as e:
                logger.warning(f"Could not update attachment references in {md_file}: {e}")
        if changed:
            logger.debug(f"Rewrote attachment references in {changed} markdown file(s)")
        return changed
