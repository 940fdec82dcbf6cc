"""Unit tests for the durable workbook repository."""

from __future__ import annotations

import asyncio
import os
import threading
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest

from core.constants import CURRENT_SCHEMA_VERSION, SUPPORTED_SCHEMA_VERSIONS
from core.errors import DealbookIntegrityError, LockTimeoutError, UnsupportedSchemaVersionError
from core.lookup_tables import LookupTables
from core.system_context import FixedClock, SequentialIdGenerator, SystemContext
from core.types import Deal, StoreSettings
from store import workbook_repository
from store.file_lock import lock_path_for
from store.schema_formats import encode_tables
from store.workbook_codec import write_workbook
from store.workbook_repository import WorkbookDealRepository
from store.workbook_validation import validate_workbook
from transforms.deal_normalizer import DealNormalizer

_NOW = datetime(2025, 3, 15, 9, 30)


def _settings(max_backups: int = 5, lock_retries: int = 3) -> StoreSettings:
    return StoreSettings(
        max_backups=max_backups,
        lock_retries=lock_retries,
        lock_retry_delay_seconds=0.01,
        lock_stale_seconds=30.0,
        current_schema_version=CURRENT_SCHEMA_VERSION,
        supported_schema_versions=SUPPORTED_SCHEMA_VERSIONS,
    )


def _repository(
    data_file: Path,
    context: SystemContext | None = None,
    settings: StoreSettings | None = None,
) -> WorkbookDealRepository:
    return WorkbookDealRepository(
        data_file,
        LookupTables.create_default(),
        context or SystemContext.for_testing(_NOW),
        settings or _settings(),
    )


def _deal(deal_id: str = "D-1", **overrides: object) -> Deal:
    fields: dict[str, object] = {
        "deal_id": deal_id,
        "account_name": "Acme",
        "deal_name": "Roof array",
        "stage": "Proposal",
        "probability": 60,
        "created_date": _NOW.date(),
    }
    fields.update(overrides)
    return Deal(**fields)  # type: ignore[arg-type]


def _write_version(data_file: Path, schema_version: str, deals: list[Deal]) -> None:
    tables = encode_tables(schema_version, deals, LookupTables.create_default(), _NOW)
    write_workbook(tables, data_file)


async def _seed(data_file: Path, *deals: Deal) -> None:
    repository = _repository(data_file)
    await repository.upsert_many(deals)
    await repository.save_changes()


@pytest.mark.asyncio
async def test_missing_file_bootstraps_empty_store(tmp_path) -> None:
    """A missing workbook should load as an empty current-version store."""
    repository = _repository(tmp_path / "pipeline.xlsx")

    deals = await repository.get_all()

    assert (deals, repository.loaded_schema_version, repository.is_dirty) == (
        [],
        CURRENT_SCHEMA_VERSION,
        False,
    )


@pytest.mark.asyncio
async def test_save_changes_creates_missing_file(tmp_path) -> None:
    """Saving a bootstrapped store should write a valid workbook."""
    data_file = tmp_path / "nested" / "pipeline.xlsx"
    repository = _repository(data_file)
    await repository.get_all()

    await repository.save_changes()

    assert validate_workbook(data_file, _settings()).is_valid


@pytest.mark.asyncio
async def test_round_trip_preserves_normalized_deal(tmp_path) -> None:
    """A saved deal should load back unchanged."""
    data_file = tmp_path / "pipeline.xlsx"
    context = SystemContext.for_testing(_NOW)
    deal = DealNormalizer(LookupTables.create_default(), context).normalize(
        _deal(
            postcode="SW1A 1AA",
            phone="07700 900123",
            amount_gbp=Decimal("12345.67"),
            owner="Alice",
            tags=("solar", "battery"),
            next_step_due_date=_NOW.date() + timedelta(days=7),
            promoter_commission=Decimal("250"),
            commission_paid=True,
        )
    )
    await _seed(data_file, deal)

    loaded = await _repository(data_file).get_by_id("d-1")

    assert loaded == deal


@pytest.mark.asyncio
async def test_save_stamps_metadata(tmp_path) -> None:
    """Committed workbooks should carry the current version."""
    data_file = tmp_path / "pipeline.xlsx"

    await _seed(data_file, _deal())

    assert validate_workbook(data_file, _settings()).schema_version == CURRENT_SCHEMA_VERSION


@pytest.mark.asyncio
@pytest.mark.parametrize("schema_version", SUPPORTED_SCHEMA_VERSIONS)
async def test_every_supported_version_loads_its_deals(tmp_path, schema_version: str) -> None:
    """Workbooks written in any supported layout should load their deals."""
    data_file = tmp_path / "pipeline.xlsx"
    _write_version(data_file, schema_version, [_deal("D-1"), _deal("D-2")])
    repository = _repository(data_file)

    deals = await repository.get_all()

    assert ([deal.deal_id for deal in deals], repository.loaded_schema_version) == (
        ["D-1", "D-2"],
        schema_version,
    )


@pytest.mark.asyncio
async def test_legacy_load_is_dirty_until_saved(tmp_path) -> None:
    """A migrated load should mark the store dirty."""
    data_file = tmp_path / "pipeline.xlsx"
    _write_version(data_file, "1.0", [_deal()])
    repository = _repository(data_file)

    await repository.load()

    assert repository.is_dirty


@pytest.mark.asyncio
async def test_migrated_store_saves_current_version(tmp_path) -> None:
    """Saving after a migration should rewrite the file at the current version."""
    data_file = tmp_path / "pipeline.xlsx"
    _write_version(data_file, "1.0", [_deal()])
    repository = _repository(data_file)
    await repository.load()

    await repository.save_changes()

    assert (
        validate_workbook(data_file, _settings()).schema_version,
        repository.loaded_schema_version,
        repository.is_dirty,
    ) == (CURRENT_SCHEMA_VERSION, CURRENT_SCHEMA_VERSION, False)


@pytest.mark.asyncio
async def test_unsupported_version_raises_and_keeps_state(tmp_path) -> None:
    """An unsupported version should fail before cached deals change."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal())
    repository = _repository(data_file)
    await repository.get_all()
    tables = encode_tables("1.2", [], LookupTables.create_default(), _NOW)
    metadata_sheet = tables.sheet("Metadata")
    assert metadata_sheet is not None
    metadata_sheet.rows[1][1] = "9.9"
    write_workbook(tables, data_file)

    with pytest.raises(UnsupportedSchemaVersionError):
        await repository.load()

    assert [deal.deal_id for deal in await repository.get_all()] == ["D-1"]


@pytest.mark.asyncio
async def test_failed_replace_leaves_durable_file_untouched(tmp_path, monkeypatch) -> None:
    """A failure at replace should keep the old bytes and drop the temp file."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal("D-1"))
    original_bytes = data_file.read_bytes()
    repository = _repository(data_file)
    await repository.upsert(_deal("D-2"))

    def _fail(source: Path, target: Path) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(workbook_repository, "_replace_durable_file", _fail)
    with pytest.raises(OSError):
        await repository.save_changes()

    assert (
        data_file.read_bytes() == original_bytes,
        list(tmp_path.glob("~$*")),
        lock_path_for(data_file).exists(),
        repository.is_dirty,
    ) == (True, [], False, True)


@pytest.mark.asyncio
async def test_commit_rotates_backups(tmp_path) -> None:
    """Only the newest backups should survive a commit."""
    data_file = tmp_path / "pipeline.xlsx"
    clock = FixedClock(_NOW)
    context = SystemContext(clock=clock, id_generator=SequentialIdGenerator())
    repository = _repository(data_file, context, _settings(max_backups=2))
    for index in range(4):
        await repository.upsert(_deal(f"D-{index}"))
        await repository.save_changes()
        clock.advance(timedelta(seconds=1))

    backups = repository.list_backups()

    assert [path.name for path in backups] == [
        "pipeline_20250315_093003_000000.xlsx.bak",
        "pipeline_20250315_093002_000000.xlsx.bak",
    ]


@pytest.mark.asyncio
async def test_clean_store_skips_commit(tmp_path) -> None:
    """Saving without changes should not create a backup."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal())
    repository = _repository(data_file)
    await repository.get_all()

    await repository.save_changes()

    assert repository.list_backups() == []


@pytest.mark.asyncio
async def test_restore_from_backup_reverts_last_commit(tmp_path) -> None:
    """Restoring should bring back the state before the latest commit."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal("D-1"))
    repository = _repository(data_file)
    await repository.upsert(_deal("D-2"))
    await repository.save_changes()

    restored = await repository.restore_from_backup()

    assert (restored, [deal.deal_id for deal in await repository.get_all()]) == (True, ["D-1"])


@pytest.mark.asyncio
async def test_restore_without_backups_returns_false(tmp_path) -> None:
    """Restoring with no backups should report nothing restored."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal())

    assert not await _repository(data_file).restore_from_backup()


@pytest.mark.asyncio
async def test_corrupt_file_without_backup_raises_integrity_error(tmp_path) -> None:
    """An unreadable file with no backup should raise an integrity error."""
    data_file = tmp_path / "pipeline.xlsx"
    data_file.write_bytes(b"not a workbook")

    with pytest.raises(DealbookIntegrityError):
        await _repository(data_file).get_all()


@pytest.mark.asyncio
async def test_corrupt_file_is_repaired_from_backup(tmp_path) -> None:
    """An unreadable file should be replaced by its newest backup on load."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal("D-1"))
    repository = _repository(data_file)
    await repository.upsert(_deal("D-2"))
    await repository.save_changes()
    data_file.write_bytes(b"truncated")

    deals = await _repository(data_file).get_all()

    assert [deal.deal_id for deal in deals] == ["D-1"]


@pytest.mark.asyncio
async def test_reload_discards_unsaved_changes(tmp_path) -> None:
    """Reload should drop in-memory edits."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal("D-1"))
    repository = _repository(data_file)
    await repository.upsert(_deal("D-2"))

    await repository.reload()

    assert ([deal.deal_id for deal in await repository.get_all()], repository.is_dirty) == (
        ["D-1"],
        False,
    )


@pytest.mark.asyncio
async def test_delete_of_unknown_id_keeps_store_clean(tmp_path) -> None:
    """Deleting a missing id should not mark the store dirty."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal())
    repository = _repository(data_file)

    await repository.delete("D-404")

    assert not repository.is_dirty


@pytest.mark.asyncio
async def test_load_normalizes_hand_edited_rows(tmp_path) -> None:
    """Rows without derived values should be normalized on load."""
    data_file = tmp_path / "pipeline.xlsx"
    _write_version(data_file, "1.2", [Deal(deal_id="D-7", stage="Negotiation", postcode="M1 1AE")])

    deal = await _repository(data_file).get_by_id("D-7")

    assert deal is not None and (deal.probability, deal.region) == (80, "North West")


@pytest.mark.asyncio
async def test_import_lookups_reads_saved_overrides(tmp_path) -> None:
    """Lookups written with a commit should be readable again."""
    data_file = tmp_path / "pipeline.xlsx"
    lookups = LookupTables.create_default().with_overrides({"ZZ": "Testland"}, {"Lead": 15})
    repository = WorkbookDealRepository(
        data_file, lookups, SystemContext.for_testing(_NOW), _settings()
    )
    await repository.upsert(_deal())
    await repository.save_changes()

    imported = await _repository(data_file).import_lookups()

    assert (imported.region_for_postcode("ZZ1 1AA"), imported.probability_for_stage("Lead")) == (
        "Testland",
        15,
    )


@pytest.mark.asyncio
async def test_import_lookups_defaults_without_file(tmp_path) -> None:
    """A missing workbook should import default lookups."""
    imported = await _repository(tmp_path / "pipeline.xlsx").import_lookups()

    assert imported == LookupTables.create_default()


@pytest.mark.asyncio
async def test_held_lock_times_out_commit(tmp_path) -> None:
    """A fresh marker held by another writer should time out the commit."""
    data_file = tmp_path / "pipeline.xlsx"
    lock_path_for(data_file).write_text("4242", encoding="utf-8")
    repository = _repository(data_file)
    await repository.upsert(_deal())

    with pytest.raises(LockTimeoutError):
        await repository.save_changes()


@pytest.mark.asyncio
async def test_text_starting_with_equals_round_trips(tmp_path) -> None:
    """Text that looks like a formula should load back as the same text."""
    data_file = tmp_path / "pipeline.xlsx"
    await _seed(data_file, _deal(account_name="=Acme", comments="=2+2 call back"))

    loaded = await _repository(data_file).get_by_id("D-1")

    assert loaded is not None and (loaded.account_name, loaded.comments) == (
        "=Acme",
        "=2+2 call back",
    )


@pytest.mark.asyncio
async def test_cancelled_save_keeps_lock_until_replace_finishes(tmp_path, monkeypatch) -> None:
    """Cancelling a save should hold the lock until the file work settles."""
    data_file = tmp_path / "pipeline.xlsx"
    repository = _repository(data_file)
    await repository.upsert(_deal("D-1"))
    started = threading.Event()
    release = threading.Event()

    def _slow_replace(source: Path, target: Path) -> None:
        started.set()
        release.wait(5)
        os.replace(source, target)

    monkeypatch.setattr(workbook_repository, "_replace_durable_file", _slow_replace)
    save = asyncio.create_task(repository.save_changes())
    await asyncio.to_thread(started.wait, 5)
    save.cancel()
    await asyncio.sleep(0.05)
    held_while_writing = lock_path_for(data_file).exists()
    release.set()
    with pytest.raises(asyncio.CancelledError):
        await save

    reloaded = await _repository(data_file).get_all()
    assert (
        held_while_writing,
        lock_path_for(data_file).exists(),
        repository.is_dirty,
        [deal.deal_id for deal in reloaded],
    ) == (True, False, False, ["D-1"])
