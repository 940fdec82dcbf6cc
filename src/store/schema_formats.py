"""Per-version workbook encoders and metadata readers.

Every supported on-disk layout has one encoder, so the store always writes
the current layout while tests can produce any older one:

- ``1.0``: Deals and Lookups sheets, no Metadata.
- ``1.1``: adds a Metadata sheet holding only the Version row.
- ``1.2``: full Metadata (Version, LastModified, DealCount, GeneratedBy).
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Sequence

from core.constants import (
    DEALS_SHEET_NAME,
    GENERATED_BY_VALUE,
    LOOKUPS_SHEET_NAME,
    METADATA_DEAL_COUNT_KEY,
    METADATA_GENERATED_BY_KEY,
    METADATA_LAST_MODIFIED_KEY,
    METADATA_PROPERTY_HEADER,
    METADATA_SHEET_NAME,
    METADATA_VALUE_HEADER,
    METADATA_VERSION_KEY,
    SCHEMA_VERSION_1_0,
    SCHEMA_VERSION_1_1,
    SCHEMA_VERSION_1_2,
)
from core.errors import UnsupportedSchemaVersionError
from core.lookup_tables import LookupTables
from core.types import Deal
from store.deal_rows import DEAL_COLUMNS, deal_to_row, lookup_rows
from store.workbook_codec import TableSheet, WorkbookTables, is_blank_row
from transforms.field_parsing import optional_text

WorkbookEncoder = Callable[[Sequence[Deal], LookupTables, datetime], WorkbookTables]


def encode_version_1_0(
    deals: Sequence[Deal],
    lookups: LookupTables,
    generated_at: datetime,
) -> WorkbookTables:
    """Encode the legacy layout without a Metadata sheet."""
    tables = WorkbookTables()
    tables.add_sheet(DEALS_SHEET_NAME, _deal_rows(deals))
    tables.add_sheet(LOOKUPS_SHEET_NAME, lookup_rows(lookups))
    return tables


def encode_version_1_1(
    deals: Sequence[Deal],
    lookups: LookupTables,
    generated_at: datetime,
) -> WorkbookTables:
    """Encode the layout whose Metadata sheet carries only a Version row."""
    tables = encode_version_1_0(deals, lookups, generated_at)
    tables.add_sheet(
        METADATA_SHEET_NAME,
        [
            [METADATA_PROPERTY_HEADER, METADATA_VALUE_HEADER],
            [METADATA_VERSION_KEY, SCHEMA_VERSION_1_1],
        ],
    )
    return tables


def encode_version_1_2(
    deals: Sequence[Deal],
    lookups: LookupTables,
    generated_at: datetime,
) -> WorkbookTables:
    """Encode the current layout with full metadata."""
    tables = encode_version_1_0(deals, lookups, generated_at)
    tables.add_sheet(
        METADATA_SHEET_NAME,
        [
            [METADATA_PROPERTY_HEADER, METADATA_VALUE_HEADER],
            [METADATA_VERSION_KEY, SCHEMA_VERSION_1_2],
            [METADATA_LAST_MODIFIED_KEY, generated_at.isoformat()],
            [METADATA_DEAL_COUNT_KEY, len(deals)],
            [METADATA_GENERATED_BY_KEY, GENERATED_BY_VALUE],
        ],
    )
    return tables


WORKBOOK_ENCODERS: dict[str, WorkbookEncoder] = {
    SCHEMA_VERSION_1_0: encode_version_1_0,
    SCHEMA_VERSION_1_1: encode_version_1_1,
    SCHEMA_VERSION_1_2: encode_version_1_2,
}


def encode_tables(
    schema_version: str,
    deals: Sequence[Deal],
    lookups: LookupTables,
    generated_at: datetime,
) -> WorkbookTables:
    """Encode deals and lookups in the layout of one schema version.

    Raises:
        UnsupportedSchemaVersionError: If no encoder exists for the version.
    """
    encoder = WORKBOOK_ENCODERS.get(schema_version)
    if encoder is None:
        supported_rows = ", ".join(WORKBOOK_ENCODERS)
        raise UnsupportedSchemaVersionError(
            f"No workbook encoder for schema version '{schema_version}'. "
            f"Use one of: {supported_rows}."
        )
    return encoder(deals, lookups, generated_at)


def read_metadata(tables: WorkbookTables) -> dict[str, object]:
    """Read Property/Value rows from the Metadata sheet, keyed case-insensitively."""
    metadata_sheet = tables.sheet(METADATA_SHEET_NAME)
    if metadata_sheet is None:
        return {}
    metadata: dict[str, object] = {}
    for row in metadata_sheet.rows[1:]:
        if is_blank_row(row):
            continue
        key = optional_text(row[0] if row else None)
        if key is None:
            continue
        metadata.setdefault(key.casefold(), row[1] if len(row) > 1 else None)
    return metadata


def read_schema_version(tables: WorkbookTables) -> str | None:
    """Return the stamped Version value, or None when unstamped."""
    raw_version = read_metadata(tables).get(METADATA_VERSION_KEY.casefold())
    if isinstance(raw_version, float):
        return str(raw_version)
    return optional_text(raw_version)


def find_metadata_row(metadata_sheet: TableSheet, key: str) -> list[object] | None:
    """Return the first metadata row whose property matches a key."""
    for row in metadata_sheet.rows[1:]:
        property_name = optional_text(row[0] if row else None)
        if property_name is not None and property_name.casefold() == key.casefold():
            return row
    return None


def _deal_rows(deals: Sequence[Deal]) -> list[list[object]]:
    return [list(DEAL_COLUMNS), *(deal_to_row(deal) for deal in deals)]
