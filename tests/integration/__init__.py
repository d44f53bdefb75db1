"""Integration tests for incremental Notion backups.

These tests run the whole backup pipeline (discovery, export, attachment
materialization, orphan cleanup and duplicate sweeping) against an in-memory
Notion workspace and real temporary directories. They bridge the gap between
isolated unit tests and a live workspace.

Test Coverage:
- Incremental runs: idempotence, change detection and self-healing
- Failure handling: rate limits, outages and partial passes
- Dry runs: reporting without touching the backup directory
- Attachment pool: shared downloads and duplicate merging
"""
