"""Cross-process lock marker for the durable workbook.

A writer owns the workbook while ``{path}.lock`` holds its token. The marker
is created with ``O_CREAT | O_EXCL`` so exactly one process wins, retried with
exponential backoff, and removed on exit only by the writer that owns it.

A marker is broken only when it is older than the stale threshold and the
process id it names is no longer running. Breakers serialize through a short
lived ``{path}.lock.break`` guard, so two processes can never both remove a
stale marker and each take the lock.
"""

from __future__ import annotations

import asyncio
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator
from uuid import uuid4

from core.constants import LOCK_FILE_EXTENSION
from core.errors import LockTimeoutError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)
_BREAK_GUARD_SUFFIX = ".break"


def lock_path_for(data_file: Path) -> Path:
    """Return the lock marker path beside a workbook."""
    return data_file.with_name(data_file.name + LOCK_FILE_EXTENSION)


@asynccontextmanager
async def workbook_lock(
    lock_path: Path,
    retries: int,
    retry_delay_seconds: float,
    stale_seconds: float,
) -> AsyncIterator[None]:
    """Hold the lock marker for the duration of the block.

    Args:
        lock_path: Marker file path.
        retries: Maximum acquisition attempts.
        retry_delay_seconds: Base delay, doubled after each failed attempt.
        stale_seconds: Age after which a marker of a dead process is broken.

    Raises:
        LockTimeoutError: If the marker cannot be created within the budget.
    """
    token = f"{os.getpid()} {uuid4().hex}"
    await _acquire(lock_path, token, retries, retry_delay_seconds, stale_seconds)
    try:
        yield
    finally:
        _release(lock_path, token)


async def _acquire(
    lock_path: Path,
    token: str,
    retries: int,
    retry_delay_seconds: float,
    stale_seconds: float,
) -> None:
    for attempt in range(retries):
        if _try_create_marker(lock_path, token):
            return
        if _break_if_stale(lock_path, stale_seconds) and _try_create_marker(lock_path, token):
            return
        _LOGGER.info("lock_contended", lock_path=str(lock_path), attempt=attempt + 1)
        if attempt < retries - 1:
            await asyncio.sleep(retry_delay_seconds * 2**attempt)
    raise LockTimeoutError(
        f"Could not acquire workbook lock {lock_path} after {retries} attempts. "
        "Another process may be writing; retry later or remove the marker "
        "if no writer is running."
    )


def _release(lock_path: Path, token: str) -> None:
    owner = _read_owner(lock_path)
    if owner is None:
        return
    if owner != token:
        _LOGGER.warning("lock_lost", lock_path=str(lock_path))
        return
    lock_path.unlink(missing_ok=True)


def _try_create_marker(lock_path: Path, token: str) -> bool:
    try:
        descriptor = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        return False
    try:
        os.write(descriptor, token.encode("ascii"))
    finally:
        os.close(descriptor)
    return True


def _break_if_stale(lock_path: Path, stale_seconds: float) -> bool:
    """Remove an orphaned marker; True means the caller may retry at once."""
    guard_path = lock_path.with_name(lock_path.name + _BREAK_GUARD_SUFFIX)
    if not _try_create_marker(guard_path, f"{os.getpid()} {uuid4().hex}"):
        _clear_orphaned_guard(guard_path, stale_seconds)
        return False
    try:
        try:
            age_seconds = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            return True
        owner = _read_owner(lock_path)
        if owner is None:
            return True
        if age_seconds < stale_seconds or _process_alive(_owner_pid(owner)):
            return False
        lock_path.unlink(missing_ok=True)
    finally:
        guard_path.unlink(missing_ok=True)
    _LOGGER.warning(
        "stale_lock_broken",
        lock_path=str(lock_path),
        owner=owner,
        age_seconds=round(age_seconds, 3),
    )
    return True


def _clear_orphaned_guard(guard_path: Path, stale_seconds: float) -> None:
    try:
        age_seconds = time.time() - guard_path.stat().st_mtime
    except FileNotFoundError:
        return
    if age_seconds >= stale_seconds:
        guard_path.unlink(missing_ok=True)


def _read_owner(lock_path: Path) -> str | None:
    try:
        return lock_path.read_text(encoding="ascii")
    except FileNotFoundError:
        return None


def _owner_pid(owner: str) -> int | None:
    head = owner.split(" ", 1)[0]
    return int(head) if head.isdigit() else None


def _process_alive(pid: int | None) -> bool:
    # Signal 0 only reports liveness on POSIX; elsewhere staleness falls back to age.
    if pid is None or os.name != "posix":
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True
