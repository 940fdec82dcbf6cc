"""Timestamped workbook backups.

Backups sit beside the workbook as ``{stem}_{timestamp}{suffix}.bak``. The
timestamp format sorts lexicographically in time order, so listing by name
gives newest first.
"""

from __future__ import annotations

import os
import re
import shutil
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from core.constants import BACKUP_EXTENSION, BACKUP_TIMESTAMP_FORMAT
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


def create_backup(data_file: Path, timestamp: datetime) -> Path:
    """Copy the workbook to a backup named by timestamp.

    Args:
        data_file: Existing workbook path.
        timestamp: Backup time from the injected clock.

    Returns:
        Backup file path.
    """
    backup_path = data_file.with_name(
        f"{data_file.stem}_{timestamp.strftime(BACKUP_TIMESTAMP_FORMAT)}"
        f"{data_file.suffix}{BACKUP_EXTENSION}"
    )
    shutil.copy2(data_file, backup_path)
    _LOGGER.info("backup_created", data_file=str(data_file), backup_path=str(backup_path))
    return backup_path


def list_backups(data_file: Path) -> list[Path]:
    """List backups of a workbook, newest first."""
    directory = data_file.parent
    if not directory.exists():
        return []
    pattern = _backup_name_pattern(data_file)
    backups = [path for path in directory.iterdir() if pattern.match(path.name)]
    return sorted(backups, key=lambda path: path.name, reverse=True)


def prune_backups(data_file: Path, max_backups: int) -> list[Path]:
    """Delete backups beyond the newest ``max_backups``.

    Returns:
        Deleted backup paths, newest first.
    """
    removed = list_backups(data_file)[max_backups:]
    for backup_path in removed:
        backup_path.unlink(missing_ok=True)
    if removed:
        _LOGGER.info(
            "backups_pruned",
            data_file=str(data_file),
            removed_count=len(removed),
            max_backups=max_backups,
        )
    return removed


def restore_latest_backup(data_file: Path) -> Path | None:
    """Atomically replace the workbook with its newest backup.

    Returns:
        Restored backup path, or None when no backup exists.
    """
    backups = list_backups(data_file)
    if not backups:
        return None
    latest_backup = backups[0]
    staging_path = data_file.with_name(f".{data_file.name}.{uuid4().hex[:8]}.restore")
    try:
        shutil.copy2(latest_backup, staging_path)
        os.replace(staging_path, data_file)
    finally:
        staging_path.unlink(missing_ok=True)
    return latest_backup


def _backup_name_pattern(data_file: Path) -> re.Pattern[str]:
    return re.compile(
        rf"^{re.escape(data_file.stem)}_\d{{8}}_\d{{6}}(_\d{{6}})?"
        rf"{re.escape(data_file.suffix)}{re.escape(BACKUP_EXTENSION)}$"
    )
