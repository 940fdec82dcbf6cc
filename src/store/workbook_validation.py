"""Structural validation for workbook files.

Validation runs before any deal row is decoded, both when loading the
durable file and when checking a freshly written temp file during commit.
"""

from __future__ import annotations

from pathlib import Path

from core.constants import (
    DEALS_SHEET_NAME,
    LOOKUPS_SHEET_NAME,
    METADATA_SHEET_NAME,
    REQUIRED_DEAL_COLUMNS,
    SCHEMA_VERSION_1_0,
)
from core.errors import DealbookStoreError
from core.types import StoreSettings, ValidationResult
from store.deal_rows import build_header_index, normalize_header
from store.schema_formats import read_schema_version
from store.workbook_codec import WorkbookTables, read_workbook


def inspect_workbook(
    path: Path,
    settings: StoreSettings,
) -> tuple[ValidationResult, WorkbookTables | None]:
    """Read and validate a workbook file in one pass.

    Args:
        path: Workbook path.
        settings: Store settings carrying current and supported versions.

    Returns:
        Validation result plus the parsed tables, or None when unreadable.
    """
    if not path.exists():
        return ValidationResult(is_valid=False, errors=(f"File does not exist: {path}",)), None
    try:
        tables = read_workbook(path)
    except DealbookStoreError as error:
        return ValidationResult(is_valid=False, errors=(str(error),)), None
    return validate_tables(tables, settings), tables


def validate_workbook(path: Path, settings: StoreSettings) -> ValidationResult:
    """Validate a workbook file without decoding deals."""
    return inspect_workbook(path, settings)[0]


def validate_tables(tables: WorkbookTables, settings: StoreSettings) -> ValidationResult:
    """Check sheets, required Deals columns, and the schema version stamp.

    Missing Lookups or Metadata sheets are warnings. A missing Metadata sheet
    or Version row means the legacy ``1.0`` layout. An unsupported version is
    reported through ``schema_version`` and left for the loader to reject.
    """
    errors: list[str] = []
    warnings: list[str] = []
    deal_count = 0
    deals_sheet = tables.sheet(DEALS_SHEET_NAME)
    if deals_sheet is None:
        errors.append(f"Missing required sheet: {DEALS_SHEET_NAME}")
    else:
        header_index = build_header_index(deals_sheet.header)
        for column in REQUIRED_DEAL_COLUMNS:
            if normalize_header(column) not in header_index:
                errors.append(f"Missing required column: {column}")
        deal_count = len(deals_sheet.data_rows)
    has_lookups_sheet = tables.has_sheet(LOOKUPS_SHEET_NAME)
    if not has_lookups_sheet:
        warnings.append(f"Missing optional sheet: {LOOKUPS_SHEET_NAME}")
    has_metadata_sheet = tables.has_sheet(METADATA_SHEET_NAME)
    if not has_metadata_sheet:
        warnings.append(f"Missing optional sheet: {METADATA_SHEET_NAME}")
    schema_version = read_schema_version(tables) or SCHEMA_VERSION_1_0
    requires_migration = (
        schema_version != settings.current_schema_version
        and schema_version in settings.supported_schema_versions
    )
    return ValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        deal_count=deal_count,
        has_deals_sheet=deals_sheet is not None,
        has_lookups_sheet=has_lookups_sheet,
        has_metadata_sheet=has_metadata_sheet,
        schema_version=schema_version,
        requires_migration=requires_migration,
    )
