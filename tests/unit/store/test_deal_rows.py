"""Unit tests for deal row encoding and decoding."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from core.lookup_tables import LookupTables
from core.types import Deal
from store.deal_rows import (
    DEAL_COLUMNS,
    build_header_index,
    decode_deal_sheet,
    decode_lookup_sheet,
    deal_to_row,
    lookup_rows,
    row_to_deal,
)
from store.workbook_codec import TableSheet


def test_deal_to_row_follows_column_order() -> None:
    """Rows should line up with the column header."""
    row = deal_to_row(Deal(deal_id="D-1", amount_gbp=Decimal("100"), probability=40))

    assert dict(zip(DEAL_COLUMNS, row))["WeightedAmountGBP"] == Decimal("40")


def test_deal_to_row_writes_commission_flag_as_text() -> None:
    """Commission paid should be written as Yes or No."""
    row = deal_to_row(Deal(deal_id="D-1", commission_paid=True))

    assert dict(zip(DEAL_COLUMNS, row))["CommissionPaid"] == "Yes"


def test_row_to_deal_accepts_alias_headers() -> None:
    """Alternative header names should map onto canonical fields."""
    header_index = build_header_index(["ID", "Company", "Opportunity", "Amount", "sales_rep"])

    deal = row_to_deal(["D-9", "Acme", "Canopy", "£2,500", "Alice"], header_index)

    assert (deal.deal_id, deal.account_name, deal.deal_name, deal.amount_gbp, deal.owner) == (
        "D-9",
        "Acme",
        "Canopy",
        Decimal("2500"),
        "Alice",
    )


def test_row_to_deal_defaults_blank_names() -> None:
    """Blank account and deal names should take their defaults."""
    deal = row_to_deal(["D-1", None, " "], build_header_index(["DealId", "AccountName", "DealName"]))

    assert (deal.account_name, deal.deal_name) == ("Unknown", "Unnamed Deal")


def test_row_to_deal_is_lenient_with_bad_cells() -> None:
    """Unparseable cells should fall back to field defaults."""
    header_index = build_header_index(["DealId", "Stage", "Probability", "CloseDate"])

    deal = row_to_deal(["D-1", "Pending", "lots", "someday"], header_index)

    assert (deal.stage, deal.probability, deal.close_date) == ("Other", 0, None)


def test_row_to_deal_reads_datetime_cells_as_dates() -> None:
    """Excel datetimes should decode to plain dates."""
    header_index = build_header_index(["DealId", "CreatedDate", "Tags"])

    deal = row_to_deal(["D-1", datetime(2025, 3, 1, 0, 0), "solar; battery"], header_index)

    assert (deal.created_date, deal.tags) == (date(2025, 3, 1), ("solar", "battery"))


def test_decode_deal_sheet_skips_blank_rows() -> None:
    """Blank rows inside the sheet should be ignored."""
    sheet = TableSheet(
        name="Deals",
        rows=[["DealId", "DealName"], ["D-1", "One"], [None, " "], ["D-2", "Two"]],
    )

    assert [deal.deal_id for deal in decode_deal_sheet(sheet)] == ["D-1", "D-2"]


def test_lookup_rows_place_stages_beside_regions() -> None:
    """Lookup rows should put stages in columns D and E."""
    rows = lookup_rows(LookupTables.create_default())

    assert (rows[0], rows[1][3:]) == (
        ["PostcodeArea", "Region", None, "Stage", "DefaultProbability"],
        ["Lead", 10],
    )


def test_decode_lookup_sheet_overrides_defaults() -> None:
    """Sheet rows should override defaults and skip bad probabilities."""
    sheet = TableSheet(
        name="Lookups",
        rows=[
            ["PostcodeArea", "Region", None, "Stage", "DefaultProbability"],
            ["zz", "Testland", None, "Lead", 25],
            [None, None, None, "Proposal", "often"],
        ],
    )

    lookups = decode_lookup_sheet(sheet, LookupTables.create_default())

    assert (
        lookups.region_for_postcode("ZZ1 1AA"),
        lookups.probability_for_stage("Lead"),
        lookups.probability_for_stage("Proposal"),
    ) == ("Testland", 25, 60)


def test_decode_lookup_sheet_without_sheet_returns_defaults() -> None:
    """A missing Lookups sheet should leave defaults untouched."""
    defaults = LookupTables.create_default()

    assert decode_lookup_sheet(None, defaults) is defaults
