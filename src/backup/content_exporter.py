"""Per-document export of collection pages to markdown files.

For each document the exporter decides whether an export is needed, fetches
the full block tree, downloads image attachments, renders markdown with a
metadata header, writes the file atomically and only then records the
SyncRecord. A failure at any step aborts that one document and leaves its
state record untouched, so it is retried on the next run.
"""

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from src.content_converter.block_parser import attach_children, parse_block
from src.content_converter.markdown_converter import MarkdownConverter, collect_image_urls
from src.models.block import Block
from src.models.content_node import ContentNode, NodeKind
from src.notion_api.api_wrapper import APIWrapper
from src.notion_api.errors import InvalidCredentialsError, SyncError
from .attachment_materializer import AttachmentMaterializer
from .filesafe_converter import FilesafeConverter
from .models import BackupConfig, CollectionResult, ExportOutcome, ExportReason, SyncRecord
from .state_store import StateStore

logger = logging.getLogger(__name__)

CREATED_DATE_PROPERTY = 'Created Date'
UNTITLED = 'Untitled'


def document_title(page: Dict[str, Any]) -> str:
    """Plain text of the page's title-type property ("Untitled" when empty)."""
    for prop in (page.get('properties') or {}).values():
        if isinstance(prop, dict) and prop.get('type') == 'title':
            text = ''.join(
                item.get('plain_text') or (item.get('text') or {}).get('content', '')
                for item in prop.get('title') or []
            ).strip()
            return text or UNTITLED
    return UNTITLED


def document_created(page: Dict[str, Any]) -> Optional[str]:
    """Creation date: the 'Created Date' property if set, else created_time's date."""
    prop = (page.get('properties') or {}).get(CREATED_DATE_PROPERTY) or {}
    start = (prop.get('date') or {}).get('start') if isinstance(prop, dict) else None
    if start:
        return start
    created_time = page.get('created_time')
    return created_time.split('T')[0] if created_time else None


def document_from_page(page: Dict[str, Any], collection_id: str) -> ContentNode:
    """Build a document ContentNode from a raw collection query result."""
    return ContentNode(
        id=page['id'],
        title=document_title(page),
        parent_container_id=collection_id,
        change_marker=page.get('last_edited_time') or '',
        kind=NodeKind.DOCUMENT,
        created_marker=document_created(page),
    )


def render_header(doc: ContentNode) -> str:
    """Title line plus the metadata block placed above the converted content."""
    lines = [f"# {doc.title}", "", "---", f"notion_id: {doc.id}"]
    if doc.created_marker:
        lines.append(f"created: {doc.created_marker}")
    if doc.change_marker:
        lines.append(f"modified: {doc.change_marker.split('T')[0]}")
    lines.extend(["---", "", ""])
    return '\n'.join(lines)


class ContentExporter:
    """Exports the documents of collections into the backup directory.

    Layout: <backup root>/<safe collection title>/<safe document title>.md

    Example:
        >>> exporter = ContentExporter(api, store, materializer, config, Path("backup"))
        >>> result = exporter.export_collection(collection)
        >>> print(f"{result.exported} exported, {result.skipped} skipped")
    """

    def __init__(
        self,
        api: APIWrapper,
        state_store: StateStore,
        materializer: AttachmentMaterializer,
        config: Optional[BackupConfig] = None,
        backup_root: Optional[Path] = None,
        force: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the exporter.

        Args:
            api: Notion API wrapper
            state_store: Loaded state store (written through after each export)
            materializer: Attachment materializer for image blocks
            config: Backup settings (defaults when omitted)
            backup_root: Root of the local mirror (defaults to the state store's root)
            force: Re-export every document regardless of change markers
            sleep: Function used for the pause between documents
        """
        self._api = api
        self._state = state_store
        self._materializer = materializer
        self._config = config or BackupConfig()
        self.backup_root = Path(backup_root) if backup_root else state_store.root_dir
        self.force = force
        self._sleep = sleep

    def needs_export(self, doc: ContentNode) -> Optional[ExportReason]:
        """Decide whether a document must be exported.

        Checks in order: never exported, forced, change marker differs,
        local file missing. Returns None when the document can be skipped.
        """
        record = self._state.get(doc.id)
        if record is None:
            return ExportReason.NEW
        if self.force:
            return ExportReason.FORCED
        if record.change_marker != doc.change_marker:
            return ExportReason.CHANGED
        if not self._state.resolve_path(record).is_file():
            return ExportReason.MISSING_FILE
        return None

    def collection_folder(self, collection_title: str) -> str:
        return FilesafeConverter.sanitize(collection_title, self._config.filename_max_length)

    def target_path(self, doc: ContentNode, collection_title: str) -> str:
        """Relative output path of a document, suffixed with its id on collision."""
        folder = self.collection_folder(collection_title)
        name = FilesafeConverter.sanitize(doc.title, self._config.filename_max_length)
        relative = f"{folder}/{name}.md"

        owner = self._state.owner_of(relative)
        if owner is not None and owner != doc.id:
            short_id = doc.id.replace('-', '')[:8]
            relative = f"{folder}/{name} ({short_id}).md"
            logger.debug(f"'{doc.title}' shares its file name with {owner}, using {relative}")
        return relative

    def export_document(self, doc: ContentNode, collection_title: str) -> ExportOutcome:
        """Export one document if needed.

        Returns:
            EXPORTED after the file and its state record were written,
            SKIPPED when nothing changed, FAILED when any step failed

        Raises:
            InvalidCredentialsError: If the token is rejected (aborts the run)
        """
        reason = self.needs_export(doc)
        if reason is None:
            logger.debug(f"Skipping (no changes): {doc.title}")
            return ExportOutcome.SKIPPED

        logger.info(f"Exporting: {doc.title} ({reason.value})")
        try:
            blocks = self.fetch_blocks(doc.id)
            resolved = self._materializer.prefetch(collect_image_urls(blocks))
            converter = MarkdownConverter(self._resolver(resolved))
            markdown = render_header(doc) + converter.convert(blocks)

            relative = self.target_path(doc, collection_title)
            self._write_atomic(self.backup_root / relative, markdown)

            previous = self._state.get(doc.id)
            self._state.record(doc.id, SyncRecord(
                change_marker=doc.change_marker,
                local_path=relative,
                title=doc.title,
            ))
            if previous is not None and previous.local_path != relative:
                self._remove_previous(previous, doc)
        except InvalidCredentialsError:
            raise
        except Exception as e:
            logger.error(f"Error exporting page \"{doc.title}\": {e}")
            return ExportOutcome.FAILED

        return ExportOutcome.EXPORTED

    def _resolver(self, resolved: Dict[str, Optional[str]]) -> Callable[[str], Optional[str]]:
        """Attachment resolver answering prefetched URLs (failures included) from resolved."""
        def resolve(url: str) -> Optional[str]:
            if url in resolved:
                return resolved[url]
            return self._materializer.materialize(url)
        return resolve

    def fetch_blocks(self, document_id: str) -> List[Block]:
        """Fetch and parse a document's complete block tree.

        The top-level listing must succeed. Children are fetched for every
        block that has them; a failed child listing is logged and leaves that
        subtree empty.

        Raises:
            SyncError: If the document's own block listing fails
        """
        roots = [parse_block(raw) for raw in self._api.iterate(self._api.list_block_children, document_id)]

        pending: List[Block] = [block for block in reversed(roots) if block.has_children]
        while pending:
            block = pending.pop()
            try:
                raw_children = list(self._api.iterate(self._api.list_block_children, block.id))
            except InvalidCredentialsError:
                raise
            except (SyncError, ValueError) as e:
                logger.error(f"Error fetching child blocks of {block.id}: {e}")
                continue
            children = attach_children(block, raw_children)
            pending.extend(child for child in reversed(children) if child.has_children)
        return roots

    def export_collection(self, collection: ContentNode, dry_run: bool = False) -> CollectionResult:
        """Export every document of a collection.

        Args:
            collection: Collection discovered by the tree discoverer
            dry_run: Only report what would be exported

        Returns:
            CollectionResult with counts and every document id the remote listed;
            complete is False when the query itself failed part way
        """
        result = CollectionResult(collection=collection)
        logger.info(f"Exporting database: {collection.title}")

        try:
            pages = list(self._api.iterate(self._api.query_collection, collection.id))
        except InvalidCredentialsError:
            raise
        except (SyncError, ValueError) as e:
            logger.error(f"Failed to query database '{collection.title}': {e}")
            result.complete = False
            return result

        logger.info(f"Found {len(pages)} pages to check in {collection.title}")
        if not dry_run:
            (self.backup_root / self.collection_folder(collection.title)).mkdir(parents=True, exist_ok=True)

        for position, page in enumerate(pages):
            doc = document_from_page(page, collection.id)
            result.document_ids.add(doc.id)

            if dry_run:
                reason = self.needs_export(doc)
                if reason is None:
                    result.skipped += 1
                else:
                    logger.info(f"Would export: {doc.title} ({reason.value})")
                    result.exported += 1
                continue

            if position and self._config.export_delay:
                self._sleep(self._config.export_delay)

            outcome = self.export_document(doc, collection.title)
            if outcome is ExportOutcome.EXPORTED:
                result.exported += 1
            elif outcome is ExportOutcome.SKIPPED:
                result.skipped += 1
            else:
                result.failed += 1

        logger.info(
            f"{collection.title}: exported {result.exported}, skipped {result.skipped}"
            + (f", failed {result.failed}" if result.failed else "")
        )
        return result

    def _remove_previous(self, previous: SyncRecord, doc: ContentNode) -> None:
        """Delete the file a renamed document was written to before."""
        if self._state.owner_of(previous.local_path) is not None:
            return
        old_path = self._state.resolve_path(previous)
        try:
            old_path.unlink()
            logger.info(f"Removed previous file of renamed page '{doc.title}': {previous.local_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove previous file {old_path}: {e}")

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.stem[:32]}.", suffix='.tmp', dir=path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
