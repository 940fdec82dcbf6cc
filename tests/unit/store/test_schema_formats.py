"""Unit tests for per-version workbook encoders."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.errors import UnsupportedSchemaVersionError
from core.lookup_tables import LookupTables
from core.types import Deal
from store.schema_formats import encode_tables, read_metadata, read_schema_version
from store.workbook_codec import WorkbookTables

_GENERATED_AT = datetime(2025, 3, 15, 9, 30, tzinfo=timezone.utc)


def _encode(schema_version: str) -> WorkbookTables:
    deals = [Deal(deal_id="D-1"), Deal(deal_id="D-2")]
    return encode_tables(schema_version, deals, LookupTables.create_default(), _GENERATED_AT)


def test_legacy_layout_has_no_metadata() -> None:
    """Version 1.0 should write only Deals and Lookups."""
    assert [sheet.name for sheet in _encode("1.0").sheets] == ["Deals", "Lookups"]


def test_version_1_1_stamps_only_version() -> None:
    """Version 1.1 metadata should hold the Version row alone."""
    assert read_metadata(_encode("1.1")) == {"version": "1.1"}


def test_current_layout_records_full_metadata() -> None:
    """Version 1.2 metadata should carry count, timestamp, and generator."""
    metadata = read_metadata(_encode("1.2"))

    assert (
        metadata["version"],
        metadata["lastmodified"],
        metadata["dealcount"],
        metadata["generatedby"],
    ) == ("1.2", "2025-03-15T09:30:00+00:00", 2, "Dealbook Sales Pipeline Manager")


def test_encode_tables_rejects_unknown_version() -> None:
    """Unknown versions have no encoder."""
    with pytest.raises(UnsupportedSchemaVersionError):
        _encode("2.0")


def test_read_schema_version_accepts_numeric_cells() -> None:
    """A Version typed as a number should read back as text."""
    tables = WorkbookTables()
    tables.add_sheet("Metadata", [["Property", "Value"], ["version", 1.1]])

    assert read_schema_version(tables) == "1.1"


def test_read_schema_version_without_metadata_is_none() -> None:
    """Unstamped workbooks should report no version."""
    assert read_schema_version(_encode("1.0")) is None
