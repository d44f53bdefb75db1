"""Backup command orchestration for CLI.

This module provides the BackupCommand class that runs one complete backup
pass: it loads configuration and sync state, discovers every database under
the root page, exports each one, cleans up orphaned pages and duplicate
attachments, and writes the README summary into the backup directory.
"""

import logging
import time
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, List, Optional, Set
from urllib.parse import quote

import requests

from src.backup.attachment_materializer import AttachmentMaterializer
from src.backup.config_loader import ConfigLoader
from src.backup.content_exporter import ContentExporter
from src.backup.duplicate_sweeper import DuplicateSweeper
from src.backup.errors import ConfigError, FilesystemError, RootUnreachableError
from src.backup.models import BackupConfig
from src.backup.orphan_reconciler import OrphanReconciler
from src.backup.state_store import StateStore
from src.backup.tree_discoverer import TreeDiscoverer
from src.cli.errors import CLIError, ConfigNotFoundError, MissingRootError
from src.cli.models import BackupSummary, CollectionSummary, ExitCode
from src.cli.output import OutputHandler
from src.notion_api.api_wrapper import APIWrapper
from src.notion_api.auth import Authenticator
from src.notion_api.errors import (
    APIUnreachableError,
    InvalidCredentialsError,
    RetryExhaustedError,
)
from src.notion_api.retry_logic import RetryPolicy

logger = logging.getLogger(__name__)

README_FILENAME = 'README.md'


class BackupCommand:
    """Orchestrates a complete backup run for the CLI.

    The backup workflow:
        1. Load configuration (YAML, optional) and credentials (.env)
        2. Load the sync state; decide whether every page must be re-exported
           (--force, or an emptied attachment folder)
        3. Discover all databases under the root page
        4. Export each database's pages (unchanged pages are skipped)
        5. Remove orphaned pages, but only after a complete pass that found
           at least one database
        6. Remove duplicate attachment copies
        7. Stamp the run time, write README.md and print the summary

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> backup_cmd = BackupCommand(output_handler=output)
        >>> exit_code = backup_cmd.run(root_id="0f1e2d3c4b5a69788796a5b4c3d2e1f0")
        >>> sys.exit(exit_code)
    """

    def __init__(
        self,
        config_path: str = ConfigLoader.DEFAULT_CONFIG_PATH,
        config_required: bool = False,
        backup_dir: Optional[str] = None,
        output_handler: Optional[OutputHandler] = None,
        authenticator: Optional[Authenticator] = None,
        api: Optional[APIWrapper] = None,
        download_session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize backup command with dependencies.

        Args:
            config_path: Path to the YAML settings file
            config_required: Fail when config_path does not exist (set when the
                user passed --config explicitly)
            backup_dir: Override of the configured backup directory
            output_handler: OutputHandler for terminal output (optional)
            authenticator: Authenticator for the Notion API (optional)
            api: Prebuilt APIWrapper (optional, built from the config otherwise)
            download_session: HTTP session for attachment downloads (optional)
            sleep: Function used for backoff and pacing delays

        Note:
            All dependencies are optional to support testing. In production
            they are created from the configuration.
        """
        self.config_path = config_path
        self.config_required = config_required
        self.backup_dir = backup_dir
        self.output_handler = output_handler or OutputHandler()
        self.authenticator = authenticator
        self.api = api
        self.download_session = download_session
        self._sleep = sleep

    def run(self, root_id: Optional[str] = None, dry_run: bool = False, force: bool = False) -> ExitCode:
        """Execute one backup pass.

        Args:
            root_id: Root page id (falls back to NOTION_PARENT_PAGE_ID)
            dry_run: Report what would change without writing anything
            force: Re-export every page regardless of change markers

        Returns:
            ExitCode indicating success or specific failure type
        """
        try:
            config = self._load_config()
            if not self.authenticator:
                self.authenticator = Authenticator()
            credentials = self.authenticator.get_credentials()

            root = root_id or credentials.root_page_id
            if not root:
                raise MissingRootError()

            summary = self._run_backup(config, root, dry_run, force)
            self.output_handler.print_summary(summary)

            if summary.failed or not summary.complete:
                return ExitCode.PARTIAL_FAILURE
            return ExitCode.SUCCESS

        except InvalidCredentialsError as e:
            logger.error(f"Authentication failed: {e}")
            self.output_handler.error(f"Authentication failed: {e}")
            self.output_handler.info(
                "Check the NOTION_KEY environment variable and that the integration is shared with the root page"
            )
            return ExitCode.AUTH_ERROR

        except RootUnreachableError as e:
            logger.error(f"Backup aborted: {e}")
            self.output_handler.error(f"Backup aborted: {e}")
            if isinstance(e.__cause__, (APIUnreachableError, RetryExhaustedError)):
                return ExitCode.NETWORK_ERROR
            return ExitCode.GENERAL_ERROR

        except (APIUnreachableError, RetryExhaustedError) as e:
            logger.error(f"API error: {e}")
            self.output_handler.error(f"API error: {e}")
            self.output_handler.info("Check your internet connection and try again")
            return ExitCode.NETWORK_ERROR

        except (ConfigError, ConfigNotFoundError) as e:
            logger.error(f"Configuration error: {e}")
            self.output_handler.error(f"Configuration error: {e}")
            return ExitCode.GENERAL_ERROR

        except (CLIError, FilesystemError) as e:
            logger.error(f"Backup error: {e}")
            self.output_handler.error(f"Error: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during backup")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

    def _load_config(self) -> BackupConfig:
        if self.config_required and not Path(self.config_path).exists():
            raise ConfigNotFoundError(self.config_path)
        config = ConfigLoader.load(self.config_path)
        if self.backup_dir:
            config.backup_dir = self.backup_dir
        return config

    def _run_backup(self, config: BackupConfig, root_id: str, dry_run: bool, force: bool) -> BackupSummary:
        backup_root = Path(config.backup_dir)
        output = self.output_handler
        output.info(f"Backup directory: {backup_root}")

        policy = RetryPolicy(
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            sleep=self._sleep,
        )
        api = self.api or APIWrapper(
            self.authenticator,
            retry_policy=policy,
            timeout=config.request_timeout,
            page_size=config.page_size,
        )

        state = StateStore(backup_root / config.state_file, backup_root)
        state.load()
        output.info(f"Loaded backup state: {len(state)} pages tracked")
        last_run = state.state.last_run_timestamp
        output.info(f"Last backup: {last_run}" if last_run else "This is the first backup")

        materializer = AttachmentMaterializer(
            backup_root / config.attachments_dir,
            retry_policy=policy,
            timeout=config.download_timeout,
            max_redirects=config.max_redirects,
            max_workers=config.max_concurrent_downloads,
            session=self.download_session,
        )
        try:
            if not force and materializer.is_pool_empty() and self._references_attachments(state, materializer):
                logger.warning("Attachment folder is empty, re-exporting all pages to restore images")
                output.warning("Attachment folder is empty, re-exporting all pages to restore images")
                force = True

            with output.spinner("Searching for databases..."):
                discovery = TreeDiscoverer(api).discover(root_id)
            output.info(f"Found {len(discovery.collections)} database(s)")
            for container_id in discovery.failed_container_ids:
                output.warning(f"Could not read page {container_id}; its databases were skipped")

            if not discovery.collections:
                # An empty listing never proves the tracked pages were deleted
                logger.warning("No databases found under the specified parent page")
                output.warning("No databases found under the specified parent page")
                return BackupSummary(
                    dry_run=dry_run,
                    complete=discovery.complete and len(state) == 0,
                    tracked_pages=len(state),
                )

            exporter = ContentExporter(
                api,
                state,
                materializer,
                config=config,
                backup_root=backup_root,
                force=force,
                sleep=self._sleep,
            )
            summary = BackupSummary(dry_run=dry_run, complete=discovery.complete)
            current_ids: Set[str] = set()

            with output.progress_bar() as progress:
                task = progress.add_task("Exporting databases", total=len(discovery.collections))
                for collection in discovery.collections:
                    progress.update(task, description=f"Exporting {collection.title}")
                    result = exporter.export_collection(collection, dry_run=dry_run)
                    current_ids.update(result.document_ids)
                    summary.collections.append(CollectionSummary(
                        title=collection.title,
                        folder=exporter.collection_folder(collection.title),
                        exported=result.exported,
                        skipped=result.skipped,
                        failed=result.failed,
                        complete=result.complete,
                    ))
                    if not result.complete:
                        summary.complete = False
                        output.warning(f"Could not query database '{collection.title}'")
                    progress.advance(task)

            if summary.complete:
                summary.cleaned_up = OrphanReconciler(state).reconcile(current_ids, dryrun=dry_run)
            else:
                logger.warning("Skipping orphan cleanup because this pass was incomplete")
                output.warning("Skipping orphan cleanup because some pages could not be listed")

            summary.duplicates_removed = DuplicateSweeper(materializer).sweep(
                materializer.attachment_dir, backup_root, dryrun=dry_run
            )
            summary.attachments_downloaded = materializer.downloaded
            summary.attachments_failed = materializer.failed
            summary.tracked_pages = len(state)

            if not dry_run:
                state.mark_run()
                self._write_readme(backup_root, state.state.last_run_timestamp, summary)
                output.success(f"Backup location: {backup_root}")
            return summary
        finally:
            materializer.close()

    @staticmethod
    def _references_attachments(state: StateStore, materializer: AttachmentMaterializer) -> bool:
        """True if any tracked markdown file links into the attachment pool."""
        marker = materializer.reference_for('')
        for _, record in state.items():
            try:
                if marker in state.resolve_path(record).read_text(encoding='utf-8'):
                    return True
            except (OSError, UnicodeDecodeError):
                continue
        return False

    @staticmethod
    def render_readme(last_run: Optional[str], summary: BackupSummary, created: Optional[str] = None) -> str:
        """Markdown index of the backup directory."""
        created = created or datetime.now(UTC).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
        lines: List[str] = [
            "# Notion Backup",
            "",
            f"Backup created: {created}",
            f"Last backup: {last_run or 'never'}",
            "",
            "## Statistics",
            "",
            f"- Total pages tracked: {summary.tracked_pages}",
            f"- Exported this run: {summary.exported}",
            f"- Skipped (no changes): {summary.skipped}",
            f"- Failed: {summary.failed}",
            f"- Cleaned up: {summary.cleaned_up}",
            f"- Duplicate attachments removed: {summary.duplicates_removed}",
            "",
            "## Databases",
            "",
        ]
        lines.extend(f"- [{c.title}](./{quote(c.folder)}/)" for c in summary.collections)
        return '\n'.join(lines) + '\n'

    def _write_readme(self, backup_root: Path, last_run: Optional[str], summary: BackupSummary) -> None:
        readme = backup_root / README_FILENAME
        try:
            backup_root.mkdir(parents=True, exist_ok=True)
            readme.write_text(self.render_readme(last_run, summary), encoding='utf-8')
        except OSError as e:
            logger.warning(f"Could not write {readme}: {e}")
