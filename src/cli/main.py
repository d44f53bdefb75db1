"""Main CLI entry point for the notion-backup command.

This module provides the Typer application that serves as the entry point
for the notion-backup command-line tool. It uses options on the main command
rather than subcommands for a simpler user experience.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from src.backup.config_loader import ConfigLoader
from src.cli.backup_command import BackupCommand
from src.cli.output import OutputHandler

__version__ = "0.1.0"

# Create Typer app - no_args_is_help=False allows running without args
app = typer.Typer(
    name="notion-backup",
    help="""Incremental backup of Notion databases to local Markdown files.

QUICK START:
  notion-backup                         # Back up NOTION_PARENT_PAGE_ID
  notion-backup --root <page_id>        # Back up another root page
  notion-backup --dry-run               # Preview changes
  notion-backup --force                 # Re-export every page""",
    add_completion=False,
    rich_markup_mode=None,  # Disable Rich markup to avoid compatibility issues
    no_args_is_help=False,
)

# Module logger
logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # verbosity >= 2
        level = logging.DEBUG

    # Configure app-specific logger (not root) to avoid affecting libraries
    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    # Define log format
    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    # Console handler
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    # File handler (if logdir is specified)
    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Timestamped filename in local time
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"notion-backup_{timestamp}.log"

        # File handler with more detailed format
        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


@app.command()
def main_command(
    root: Optional[str] = typer.Option(
        None,
        "--root",
        help="Root page ID to back up (default: NOTION_PARENT_PAGE_ID)",
        metavar="ID",
    ),
    backup_dir: Optional[str] = typer.Option(
        None,
        "--backup-dir",
        help="Backup directory (overrides backup_dir from the config file)",
        metavar="DIR",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help=f"YAML settings file (default: {ConfigLoader.DEFAULT_CONFIG_PATH} if present)",
        metavar="FILE",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "--dryrun",
        help="Preview changes without writing anything",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Re-export every page even if unchanged",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    """Incremental backup of Notion databases to local Markdown files.

    \b
    Every database found under the root page (recursively, through sub-pages)
    is exported to <backup-dir>/<database>/<page>.md, images are downloaded
    into <backup-dir>/Attachments/, and unchanged pages are skipped on later runs.

    \b
    ENVIRONMENT (.env supported):
      NOTION_KEY              Notion integration token (required)
      NOTION_PARENT_PAGE_ID   Root page to back up (or use --root)
    """
    if version:
        typer.echo(f"notion-backup version {__version__}")
        raise typer.Exit()

    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    backup_cmd = BackupCommand(
        config_path=config or ConfigLoader.DEFAULT_CONFIG_PATH,
        config_required=config is not None,
        backup_dir=backup_dir,
        output_handler=output,
    )
    exit_code = backup_cmd.run(root_id=root, dry_run=dry_run, force=force)

    raise typer.Exit(exit_code)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
