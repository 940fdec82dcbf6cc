"""Durable deal repository backed by one ``.xlsx`` workbook.

This module owns load, migration, and the commit protocol. A commit writes
a uniquely named temp workbook beside the target, validates it, backs up the
existing file, replaces the target with ``os.replace``, and prunes old
backups. Any failure before the replace leaves the durable file untouched.
Cancelling a commit or restore waits for its worker thread before the lock
is released.
"""

from __future__ import annotations

import asyncio
import os
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, TypeVar
from uuid import uuid4

from core.constants import DEALS_SHEET_NAME, LOOKUPS_SHEET_NAME, TEMP_FILE_PREFIX, TEMP_FILE_SUFFIX
from core.errors import DealbookIntegrityError, UnsupportedSchemaVersionError
from core.logging_config import get_logger
from core.lookup_tables import LookupTables
from core.system_context import SystemContext
from core.types import Deal, DealFilter, StoreSettings, ValidationResult
from store.backups import create_backup, list_backups, prune_backups, restore_latest_backup
from store.deal_filtering import filter_deals
from store.deal_rows import decode_deal_sheet, decode_lookup_sheet
from store.file_lock import lock_path_for, workbook_lock
from store.repository import find_deal_index, remove_from, upsert_into
from store.schema_formats import encode_tables
from store.schema_migration import migrate_tables
from store.workbook_codec import WorkbookTables, read_workbook, write_workbook
from store.workbook_validation import inspect_workbook
from transforms.deal_normalizer import DealNormalizer

_LOGGER = get_logger(__name__)
T = TypeVar("T")


class WorkbookDealRepository:
    """Single-writer deal repository persisted to a workbook file.

    Deals are loaded lazily on first access and kept in memory. Mutations
    mark the repository dirty; ``save_changes`` runs the commit protocol
    under an in-process ``asyncio.Lock`` and a cross-process lock marker.
    """

    def __init__(
        self,
        data_file: Path,
        lookups: LookupTables,
        context: SystemContext,
        settings: StoreSettings,
    ) -> None:
        """Initialize the repository without touching disk.

        Args:
            data_file: Workbook path; created on first commit when absent.
            lookups: Tables used for normalization and the Lookups sheet.
            context: Clock and id generator.
            settings: Backup, lock, and schema version settings.
        """
        self._data_file = data_file
        self._lookups = lookups
        self._context = context
        self._settings = settings
        self._normalizer = DealNormalizer(lookups, context)
        self._mutex = asyncio.Lock()
        self._deals: list[Deal] = []
        self._loaded = False
        self._dirty = False
        self._loaded_schema_version: str | None = None

    @property
    def file_path(self) -> Path:
        return self._data_file

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def loaded_schema_version(self) -> str | None:
        """Schema version of the loaded file; current once committed."""
        return self._loaded_schema_version

    async def load(self) -> None:
        """Load deals from disk, replacing any cached state.

        Raises:
            DealbookIntegrityError: If the file is invalid and no backup repairs it.
            UnsupportedSchemaVersionError: If the file's version is not supported.
        """
        async with self._mutex:
            await self._load_locked()

    async def reload(self) -> None:
        """Discard unsaved changes and load from disk again."""
        async with self._mutex:
            self._reset()
            await self._load_locked()

    async def get_all(self) -> list[Deal]:
        async with self._mutex:
            await self._ensure_loaded()
            return list(self._deals)

    async def get_by_id(self, deal_id: str) -> Deal | None:
        async with self._mutex:
            await self._ensure_loaded()
            index = find_deal_index(self._deals, deal_id)
            return None if index is None else self._deals[index]

    async def query(self, deal_filter: DealFilter, reference_date: date) -> list[Deal]:
        async with self._mutex:
            await self._ensure_loaded()
            return filter_deals(self._deals, deal_filter, reference_date)

    async def upsert(self, deal: Deal) -> None:
        async with self._mutex:
            await self._ensure_loaded()
            upsert_into(self._deals, deal)
            self._dirty = True

    async def upsert_many(self, deals: Iterable[Deal]) -> None:
        async with self._mutex:
            await self._ensure_loaded()
            for deal in deals:
                upsert_into(self._deals, deal)
                self._dirty = True

    async def delete(self, deal_id: str) -> None:
        async with self._mutex:
            await self._ensure_loaded()
            if remove_from(self._deals, deal_id):
                self._dirty = True

    async def save_changes(self) -> None:
        """Commit in-memory deals to disk; skipped when clean and the file exists.

        Raises:
            DealbookIntegrityError: If the written temp workbook fails validation.
            LockTimeoutError: If another process holds the lock marker too long.
        """
        async with self._mutex:
            await self._ensure_loaded()
            if not self._dirty and self._data_file.exists():
                return
            await self._commit_locked()

    async def validate(self) -> ValidationResult:
        """Validate the durable file without loading it."""
        result, _ = await asyncio.to_thread(inspect_workbook, self._data_file, self._settings)
        return result

    async def restore_from_backup(self) -> bool:
        """Replace the durable file with its newest backup and drop cached state.

        Returns:
            True when a backup was restored.
        """
        async with self._mutex:
            try:
                restored = await self._restore_locked()
            except asyncio.CancelledError:
                self._reset()
                raise
            if restored:
                self._reset()
            return restored

    def list_backups(self) -> list[Path]:
        """List backups of the durable file, newest first."""
        return list_backups(self._data_file)

    async def import_lookups(self) -> LookupTables:
        """Read the Lookups sheet over default tables; defaults when absent."""
        defaults = LookupTables.create_default()
        if not self._data_file.exists():
            return defaults
        tables = await asyncio.to_thread(read_workbook, self._data_file)
        return decode_lookup_sheet(tables.sheet(LOOKUPS_SHEET_NAME), defaults)

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self._load_locked()

    def _reset(self) -> None:
        self._deals = []
        self._loaded = False
        self._dirty = False
        self._loaded_schema_version = None

    async def _load_locked(self) -> None:
        settings = self._settings
        if not self._data_file.exists():
            self._deals = []
            self._loaded_schema_version = settings.current_schema_version
            self._dirty = False
            self._loaded = True
            _LOGGER.info("workbook_bootstrapped", data_file=str(self._data_file))
            return
        validation, tables = await asyncio.to_thread(
            inspect_workbook, self._data_file, settings
        )
        if not validation.is_valid:
            validation, tables = await self._repair_from_backup(validation)
        schema_version = validation.schema_version or settings.current_schema_version
        if schema_version not in settings.supported_schema_versions:
            supported_rows = ", ".join(settings.supported_schema_versions)
            raise UnsupportedSchemaVersionError(
                f"Unsupported schema version '{schema_version}' in {self._data_file}. "
                f"Supported versions: {supported_rows}. Upgrade Dealbook to open this file."
            )
        if tables is None:
            raise DealbookIntegrityError(f"Workbook at {self._data_file} could not be read.")
        if validation.requires_migration:
            tables = migrate_tables(tables, schema_version, settings.current_schema_version)
            _LOGGER.info(
                "workbook_migrated",
                data_file=str(self._data_file),
                from_version=schema_version,
                to_version=settings.current_schema_version,
            )
        deals = self._decode_deals(tables)
        self._deals = deals
        self._loaded_schema_version = schema_version
        self._dirty = validation.requires_migration
        self._loaded = True
        _LOGGER.info(
            "workbook_loaded",
            data_file=str(self._data_file),
            deal_count=len(deals),
            schema_version=schema_version,
        )

    async def _repair_from_backup(
        self,
        validation: ValidationResult,
    ) -> tuple[ValidationResult, WorkbookTables | None]:
        failure_rows = "; ".join(validation.errors)
        if not await self._restore_locked():
            raise DealbookIntegrityError(
                f"Workbook validation failed for {self._data_file}: {failure_rows}. "
                "No backup is available; repair the file or remove it to start empty."
            )
        repaired, tables = await asyncio.to_thread(
            inspect_workbook, self._data_file, self._settings
        )
        if not repaired.is_valid:
            raise DealbookIntegrityError(
                f"Workbook at {self._data_file} is corrupted and backup restoration failed: "
                f"{'; '.join(repaired.errors)}."
            )
        return repaired, tables

    async def _restore_locked(self) -> bool:
        settings = self._settings
        async with workbook_lock(
            lock_path_for(self._data_file),
            settings.lock_retries,
            settings.lock_retry_delay_seconds,
            settings.lock_stale_seconds,
        ):
            restored_from = await _finish_before_unlock(
                asyncio.ensure_future(asyncio.to_thread(restore_latest_backup, self._data_file))
            )
        if restored_from is None:
            return False
        _LOGGER.warning(
            "workbook_restored",
            data_file=str(self._data_file),
            backup_path=str(restored_from),
        )
        return True

    async def _commit_locked(self) -> None:
        settings = self._settings
        self._data_file.parent.mkdir(parents=True, exist_ok=True)
        tables = encode_tables(
            settings.current_schema_version,
            self._deals,
            self._lookups,
            self._context.clock.utc_now(),
        )
        async with workbook_lock(
            lock_path_for(self._data_file),
            settings.lock_retries,
            settings.lock_retry_delay_seconds,
            settings.lock_stale_seconds,
        ):
            commit = asyncio.ensure_future(
                asyncio.to_thread(
                    _commit_tables,
                    self._data_file,
                    tables,
                    settings,
                    self._context.clock.now(),
                )
            )
            try:
                await _finish_before_unlock(commit)
            finally:
                if commit.done() and not commit.cancelled() and commit.exception() is None:
                    self._dirty = False
                    self._loaded_schema_version = settings.current_schema_version
            await asyncio.to_thread(prune_backups, self._data_file, settings.max_backups)
        _LOGGER.info(
            "commit_completed",
            data_file=str(self._data_file),
            deal_count=len(self._deals),
            schema_version=settings.current_schema_version,
        )

    def _decode_deals(self, tables: WorkbookTables) -> list[Deal]:
        deals_sheet = tables.sheet(DEALS_SHEET_NAME)
        if deals_sheet is None:
            return []
        return [self._normalizer.normalize(deal) for deal in decode_deal_sheet(deals_sheet)]


def _commit_tables(
    data_file: Path,
    tables: WorkbookTables,
    settings: StoreSettings,
    backup_time: datetime,
) -> None:
    """Write, validate, back up, and replace; the temp file never outlives the call."""
    temp_file = data_file.with_name(
        f"{TEMP_FILE_PREFIX}{data_file.name}.{uuid4().hex[:8]}{TEMP_FILE_SUFFIX}"
    )
    try:
        write_workbook(tables, temp_file)
        validation, _ = inspect_workbook(temp_file, settings)
        if not validation.is_valid:
            raise DealbookIntegrityError(
                f"Validation failed for temp workbook {temp_file.name}: "
                f"{'; '.join(validation.errors)}. The durable file was not changed."
            )
        if data_file.exists():
            create_backup(data_file, backup_time)
        _replace_durable_file(temp_file, data_file)
    except Exception as error:
        _LOGGER.error("commit_aborted", data_file=str(data_file), error=str(error))
        raise
    finally:
        temp_file.unlink(missing_ok=True)


def _replace_durable_file(source: Path, target: Path) -> None:
    os.replace(source, target)


async def _finish_before_unlock(work: asyncio.Future[T]) -> T:
    """Await threaded file work; on cancellation wait for it, then re-raise.

    A worker thread cannot be interrupted, so the caller keeps the workbook
    lock until the thread has finished touching the files.
    """
    try:
        return await asyncio.shield(work)
    except asyncio.CancelledError:
        await _settle(work)
        _LOGGER.warning(
            "file_work_cancelled",
            completed=not work.cancelled() and work.exception() is None,
        )
        raise


async def _settle(work: asyncio.Future[T]) -> None:
    while not work.done():
        try:
            await asyncio.wait({work})
        except asyncio.CancelledError:
            continue
