"""Unit tests for main CLI entry point (main.py).

Tests the Typer CLI application using CliRunner.
"""

import logging
import pytest
from unittest.mock import patch
from typer.testing import CliRunner

from src.cli.main import __version__, _configure_logging, app
from src.cli.models import ExitCode


runner = CliRunner()


@pytest.fixture
def app_logger():
    logger = logging.getLogger("src")
    saved_level, saved_handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(saved_level)
    for handler in saved_handlers:
        logger.addHandler(handler)


class TestConfigureLogging:
    """Test cases for _configure_logging function."""

    @pytest.mark.parametrize("verbosity,level", [
        (0, logging.WARNING),
        (1, logging.INFO),
        (2, logging.DEBUG),
        (5, logging.DEBUG),
    ])
    def test_levels(self, app_logger, verbosity, level):
        _configure_logging(verbosity)

        assert app_logger.level == level
        assert len(app_logger.handlers) == 1

    def test_reconfiguring_replaces_handlers(self, app_logger):
        _configure_logging(1)
        _configure_logging(1)

        assert len(app_logger.handlers) == 1

    def test_logdir_adds_file_handler(self, app_logger, tmp_path):
        _configure_logging(1, str(tmp_path / "logs"))

        assert len(app_logger.handlers) == 2
        log_files = list((tmp_path / "logs").glob("notion-backup_*.log"))
        assert len(log_files) == 1

    def test_root_logger_untouched(self, app_logger):
        root_handlers = list(logging.getLogger().handlers)

        _configure_logging(2)

        assert logging.getLogger().handlers == root_handlers


@patch('src.cli.main._configure_logging')
@patch('src.cli.main.BackupCommand')
class TestMainCommand:
    """Test cases for the backup command options."""

    def test_defaults(self, mock_backup_cmd, mock_logging):
        mock_backup_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(app, [])

        assert result.exit_code == 0
        kwargs = mock_backup_cmd.call_args.kwargs
        assert kwargs['config_path'] == 'notion-backup.yaml'
        assert kwargs['config_required'] is False
        assert kwargs['backup_dir'] is None
        mock_backup_cmd.return_value.run.assert_called_once_with(root_id=None, dry_run=False, force=False)
        mock_logging.assert_called_once_with(0, None)

    def test_options_are_forwarded(self, mock_backup_cmd, mock_logging):
        mock_backup_cmd.return_value.run.return_value = ExitCode.SUCCESS

        result = runner.invoke(app, [
            "--root", "abc", "--backup-dir", "out", "--config", "my.yaml",
            "--dry-run", "--force", "-v", "2", "--logdir", "logs",
        ])

        assert result.exit_code == 0
        kwargs = mock_backup_cmd.call_args.kwargs
        assert kwargs['config_path'] == 'my.yaml'
        assert kwargs['config_required'] is True
        assert kwargs['backup_dir'] == 'out'
        assert kwargs['output_handler'].verbosity == 2
        mock_backup_cmd.return_value.run.assert_called_once_with(root_id="abc", dry_run=True, force=True)
        mock_logging.assert_called_once_with(2, "logs")

    def test_dryrun_alias(self, mock_backup_cmd, mock_logging):
        mock_backup_cmd.return_value.run.return_value = ExitCode.SUCCESS

        runner.invoke(app, ["--dryrun"])

        assert mock_backup_cmd.return_value.run.call_args.kwargs['dry_run'] is True

    @pytest.mark.parametrize("exit_code", list(ExitCode))
    def test_exit_code_propagates(self, mock_backup_cmd, mock_logging, exit_code):
        mock_backup_cmd.return_value.run.return_value = exit_code

        result = runner.invoke(app, [])

        assert result.exit_code == int(exit_code)

    def test_version(self, mock_backup_cmd, mock_logging):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"notion-backup version {__version__}" in result.output
        mock_backup_cmd.assert_not_called()

    def test_help(self, mock_backup_cmd, mock_logging):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "--dry-run" in result.output
        assert "NOTION_KEY" in result.output
