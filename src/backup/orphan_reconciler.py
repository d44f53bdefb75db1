"""Removal of local documents whose remote page no longer exists.

After a complete pass over every collection, any tracked document id that
the remote did not report is an orphan: its markdown file is deleted and
its state record pruned. Deletions are executed without confirmation
prompts (use --dry-run to preview).
"""

import logging
from typing import AbstractSet, List

from .state_store import StateStore

logger = logging.getLogger(__name__)


class OrphanReconciler:
    """Deletes orphaned markdown files and prunes their state records.

    Each orphan is handled independently: a file that is already gone only
    means the record is pruned, and a file that cannot be deleted keeps its
    record so the next run tries again.

    Example:
        >>> reconciler = OrphanReconciler(state_store)
        >>> removed = reconciler.reconcile(current_ids)
        >>> print(f"Cleaned up {removed} orphaned file(s)")
    """

    def __init__(self, state_store: StateStore):
        self._state = state_store

    def find_orphans(self, current_ids: AbstractSet[str]) -> List[str]:
        """Tracked document ids absent from current_ids."""
        return [page_id for page_id in self._state.ids() if page_id not in current_ids]

    def reconcile(self, current_ids: AbstractSet[str], dryrun: bool = False) -> int:
        """Remove every tracked document the remote no longer reports.

        Only call this after a complete pass: current_ids must hold every
        document id currently present in the remote store.

        Args:
            current_ids: Ids of all documents seen during this run
            dryrun: If True, log what would be removed without deleting

        Returns:
            Number of documents removed (would be removed in dry run mode)
        """
        orphans = self.find_orphans(current_ids)
        logger.info(f"Processing {len(orphans)} orphaned page(s) (dryrun={dryrun})")

        removed = 0
        for page_id in orphans:
            record = self._state.get(page_id)
            if record is None:
                continue
            path = self._state.resolve_path(record)

            if dryrun:
                logger.info(f"[DRYRUN] Would delete: {record.local_path} (page {page_id}: {record.title})")
                removed += 1
                continue

            try:
                path.unlink()
                logger.info(f"Cleaned up: {record.local_path} (page {page_id}: {record.title})")
            except FileNotFoundError:
                logger.debug(f"File {path} for page {page_id} already missing, pruning record")
            except OSError as e:
                logger.error(f"Failed to delete {path} (page {page_id}): {e}")
                continue

            self._state.remove(page_id)
            removed += 1

        return removed
