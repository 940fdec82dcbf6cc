"""Workbook schema migration state machine.

Each supported version has at most one outgoing edge. Steps operate on the
generic table model, are idempotent, and only add or update metadata: they
never delete sheets, rows, or unrecognized columns.
"""

from __future__ import annotations

from typing import Callable

from core.constants import (
    CURRENT_SCHEMA_VERSION,
    METADATA_PROPERTY_HEADER,
    METADATA_SHEET_NAME,
    METADATA_VALUE_HEADER,
    METADATA_VERSION_KEY,
    SCHEMA_VERSION_1_0,
    SCHEMA_VERSION_1_1,
    SCHEMA_VERSION_1_2,
)
from core.errors import UnsupportedSchemaVersionError
from store.schema_formats import find_metadata_row, read_schema_version
from store.workbook_codec import TableSheet, WorkbookTables

MigrationStep = Callable[[WorkbookTables], None]


def migrate_1_0_to_1_1(tables: WorkbookTables) -> None:
    """Ensure a Metadata sheet exists and carries a Version row."""
    metadata_sheet = _ensure_metadata_sheet(tables)
    version_row = find_metadata_row(metadata_sheet, METADATA_VERSION_KEY)
    if version_row is None:
        metadata_sheet.rows.append([METADATA_VERSION_KEY, SCHEMA_VERSION_1_1])
        return
    if read_schema_version(tables) in (None, SCHEMA_VERSION_1_0):
        _set_row_value(version_row, SCHEMA_VERSION_1_1)


def migrate_1_1_to_1_2(tables: WorkbookTables) -> None:
    """Stamp the Version row as 1.2."""
    metadata_sheet = _ensure_metadata_sheet(tables)
    version_row = find_metadata_row(metadata_sheet, METADATA_VERSION_KEY)
    if version_row is None:
        metadata_sheet.rows.append([METADATA_VERSION_KEY, SCHEMA_VERSION_1_2])
        return
    _set_row_value(version_row, SCHEMA_VERSION_1_2)


MIGRATION_STEPS: dict[str, tuple[str, MigrationStep]] = {
    SCHEMA_VERSION_1_0: (SCHEMA_VERSION_1_1, migrate_1_0_to_1_1),
    SCHEMA_VERSION_1_1: (SCHEMA_VERSION_1_2, migrate_1_1_to_1_2),
}


def migration_path(from_version: str, target_version: str = CURRENT_SCHEMA_VERSION) -> list[str]:
    """Return the versions visited after ``from_version`` up to the target.

    Raises:
        UnsupportedSchemaVersionError: If the chain has no route to the target.
    """
    path: list[str] = []
    current_version = from_version
    while current_version != target_version:
        edge = MIGRATION_STEPS.get(current_version)
        if edge is None:
            raise UnsupportedSchemaVersionError(
                f"No migration path from schema version '{from_version}' to "
                f"'{target_version}'. Upgrade Dealbook to open this file."
            )
        current_version = edge[0]
        path.append(current_version)
    return path


def migrate_tables(
    tables: WorkbookTables,
    from_version: str,
    target_version: str = CURRENT_SCHEMA_VERSION,
) -> WorkbookTables:
    """Run every migration step from one version to the target.

    Args:
        tables: Parsed workbook; never modified.
        from_version: Detected schema version.
        target_version: Desired schema version.

    Returns:
        Migrated copy of the tables.

    Raises:
        UnsupportedSchemaVersionError: If the chain has no route to the target.
    """
    migration_path(from_version, target_version)
    migrated = tables.copy()
    current_version = from_version
    while current_version != target_version:
        next_version, step = MIGRATION_STEPS[current_version]
        step(migrated)
        current_version = next_version
    return migrated


def _ensure_metadata_sheet(tables: WorkbookTables) -> TableSheet:
    metadata_sheet = tables.sheet(METADATA_SHEET_NAME)
    if metadata_sheet is None:
        return tables.add_sheet(
            METADATA_SHEET_NAME, [[METADATA_PROPERTY_HEADER, METADATA_VALUE_HEADER]]
        )
    if not metadata_sheet.rows:
        metadata_sheet.rows.append([METADATA_PROPERTY_HEADER, METADATA_VALUE_HEADER])
    return metadata_sheet


def _set_row_value(row: list[object], value: str) -> None:
    if len(row) > 1:
        row[1] = value
    else:
        row.append(value)
