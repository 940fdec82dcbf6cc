"""Generic workbook table model and openpyxl codec.

Workbooks are read into plain sheets of cell values before any deal is
decoded. Validation, migration, and per-version encoders all work on this
model, so on-disk layout changes never touch the deal mapping code.
"""

from __future__ import annotations

import zipfile
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from core.errors import DealbookStoreError

_HEADER_FONT = Font(bold=True)
_HEADER_FILL = PatternFill(fill_type="solid", start_color="B0C4DE", end_color="B0C4DE")


@dataclass
class TableSheet:
    """One worksheet as rows of raw cell values; row 0 is the header row."""

    name: str
    rows: list[list[object]] = field(default_factory=list)

    @property
    def header(self) -> list[object]:
        return self.rows[0] if self.rows else []

    @property
    def data_rows(self) -> list[list[object]]:
        return [row for row in self.rows[1:] if not is_blank_row(row)]


@dataclass
class WorkbookTables:
    """Ordered worksheets of one workbook."""

    sheets: list[TableSheet] = field(default_factory=list)

    def sheet(self, name: str) -> TableSheet | None:
        """Return a sheet by case-insensitive name."""
        for table_sheet in self.sheets:
            if table_sheet.name.casefold() == name.casefold():
                return table_sheet
        return None

    def has_sheet(self, name: str) -> bool:
        return self.sheet(name) is not None

    def add_sheet(self, name: str, rows: list[list[object]]) -> TableSheet:
        """Append a new sheet and return it."""
        table_sheet = TableSheet(name=name, rows=rows)
        self.sheets.append(table_sheet)
        return table_sheet

    def copy(self) -> "WorkbookTables":
        return deepcopy(self)


def is_blank_row(row: list[object]) -> bool:
    """Return whether every cell in a row is empty."""
    return all(cell is None or (isinstance(cell, str) and not cell.strip()) for cell in row)


def read_workbook(path: Path) -> WorkbookTables:
    """Read every worksheet of an ``.xlsx`` file into the table model.

    Args:
        path: Workbook path.

    Returns:
        Sheets with trailing blank rows removed.

    Raises:
        DealbookStoreError: If the file cannot be opened as a workbook.
    """
    try:
        workbook = load_workbook(path, data_only=True)
    except (OSError, KeyError, ValueError, zipfile.BadZipFile, InvalidFileException) as error:
        raise DealbookStoreError(f"Failed to read workbook at {path}: {error}") from error
    try:
        tables = WorkbookTables()
        for worksheet in workbook.worksheets:
            rows = [list(row) for row in worksheet.iter_rows(values_only=True)]
            while rows and is_blank_row(rows[-1]):
                rows.pop()
            tables.add_sheet(worksheet.title, rows)
        return tables
    finally:
        workbook.close()


def write_workbook(tables: WorkbookTables, path: Path) -> None:
    """Write the table model to an ``.xlsx`` file with styled header rows.

    Args:
        tables: Sheets to write, in order.
        path: Destination file; overwritten when present.
    """
    workbook = Workbook()
    default_sheet = workbook.active
    if default_sheet is not None:
        workbook.remove(default_sheet)
    for table_sheet in tables.sheets:
        worksheet = workbook.create_sheet(table_sheet.name)
        for row_number, row in enumerate(table_sheet.rows, start=1):
            _append_row(worksheet, row_number, row)
        if table_sheet.rows:
            for cell in worksheet[1]:
                if cell.value is not None:
                    cell.font = _HEADER_FONT
                    cell.fill = _HEADER_FILL
            worksheet.freeze_panes = "A2"
        if len(table_sheet.rows) > 1:
            worksheet.auto_filter.ref = worksheet.dimensions
    workbook.save(path)


def _append_row(worksheet: Worksheet, row_number: int, row: list[object]) -> None:
    worksheet.append(row)
    # openpyxl stores "=..." text as a formula; keep it as a literal string.
    for column_number, value in enumerate(row, start=1):
        if isinstance(value, str) and value.startswith("="):
            worksheet.cell(row=row_number, column=column_number).data_type = "s"
