"""Mapping between deals and workbook rows.

Headers are matched case-insensitively with spaces and underscores ignored,
and common alternative column names are accepted so hand-made sheets load.
Row decoding is lenient: an unparseable cell becomes the field default and
normalization fills derived values afterwards.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Mapping, TypeVar

from core.constants import DEFAULT_ACCOUNT_NAME, DEFAULT_DEAL_NAME
from core.deal_stages import DEAL_STAGES, DealStage, parse_stage
from core.lookup_tables import LookupTables
from core.types import Deal
from store.workbook_codec import TableSheet, is_blank_row
from transforms.field_parsing import (
    optional_text,
    parse_amount,
    parse_bool,
    parse_date,
    parse_probability,
    parse_tags,
)

DEAL_COLUMNS: tuple[str, ...] = (
    "DealId",
    "OrderNo",
    "UserId",
    "AccountName",
    "ContactName",
    "Email",
    "Phone",
    "Postcode",
    "PostcodeArea",
    "InstallationLocation",
    "Region",
    "MapLink",
    "LeadSource",
    "ProductLine",
    "DealName",
    "Stage",
    "Probability",
    "AmountGBP",
    "WeightedAmountGBP",
    "Owner",
    "CreatedDate",
    "LastContactedDate",
    "NextStep",
    "NextStepDueDate",
    "CloseDate",
    "ServicePlan",
    "LastServiceDate",
    "NextServiceDueDate",
    "Comments",
    "Tags",
    "PromoterId",
    "PromoCode",
    "PromoterCommission",
    "CommissionPaid",
    "CommissionPaidDate",
)
_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "DealId": ("ID",),
    "OrderNo": ("OrderNumber",),
    "AccountName": ("Account", "Company"),
    "ContactName": ("Contact",),
    "Email": ("E-mail",),
    "Phone": ("Telephone", "Tel"),
    "Postcode": ("Zip",),
    "InstallationLocation": ("Address",),
    "MapLink": ("Map",),
    "LeadSource": ("Source",),
    "ProductLine": ("Product",),
    "DealName": ("Deal", "Opportunity"),
    "Probability": ("Prob",),
    "AmountGBP": ("Amount", "Value"),
    "Owner": ("SalesRep", "Rep"),
    "CreatedDate": ("Created",),
    "LastContactedDate": ("LastContact",),
    "NextStepDueDate": ("NextStepDue",),
    "CloseDate": ("ExpectedClose",),
    "Comments": ("Notes",),
    "PromoterCommission": ("Commission",),
}
LOOKUP_REGION_HEADERS = ("PostcodeArea", "Region")
LOOKUP_STAGE_HEADERS = ("Stage", "DefaultProbability")

_T = TypeVar("_T")


def normalize_header(header: object) -> str:
    """Reduce a header cell to its matching key."""
    return str(header or "").strip().replace(" ", "").replace("_", "").casefold()


def build_header_index(header_row: list[object]) -> dict[str, int]:
    """Map normalized header keys to column positions; first occurrence wins."""
    index: dict[str, int] = {}
    for position, header in enumerate(header_row):
        key = normalize_header(header)
        if key and key not in index:
            index[key] = position
    return index


def deal_to_row(deal: Deal) -> list[object]:
    """Encode one deal in ``DEAL_COLUMNS`` order."""
    return [
        deal.deal_id,
        deal.order_no,
        deal.user_id,
        deal.account_name,
        deal.contact_name,
        deal.email,
        deal.phone,
        deal.postcode,
        deal.postcode_area,
        deal.installation_location,
        deal.region,
        deal.map_link,
        deal.lead_source,
        deal.product_line,
        deal.deal_name,
        deal.stage,
        deal.probability,
        deal.amount_gbp,
        deal.weighted_amount_gbp,
        deal.owner,
        deal.created_date,
        deal.last_contacted_date,
        deal.next_step,
        deal.next_step_due_date,
        deal.close_date,
        deal.service_plan,
        deal.last_service_date,
        deal.next_service_due_date,
        deal.comments,
        ", ".join(deal.tags) if deal.tags else None,
        deal.promoter_id,
        deal.promo_code,
        deal.promoter_commission,
        "Yes" if deal.commission_paid else "No",
        deal.commission_paid_date,
    ]


def decode_deal_sheet(sheet: TableSheet) -> list[Deal]:
    """Decode every non-blank data row of a Deals sheet."""
    header_index = build_header_index(sheet.header)
    return [row_to_deal(row, header_index) for row in sheet.data_rows]


def row_to_deal(row: list[object], header_index: Mapping[str, int]) -> Deal:
    """Decode one row leniently; unknown columns are ignored."""

    def text(column: str) -> str | None:
        return optional_text(_cell(row, header_index, column))

    def lenient(parser: Callable[[object], _T], column: str, default: _T) -> _T:
        value = _cell(row, header_index, column)
        if value is None:
            return default
        try:
            parsed = parser(value)
        except ValueError:
            return default
        return default if parsed is None else parsed

    no_date: date | None = None
    no_amount: Decimal | None = None
    return Deal(
        deal_id=text("DealId") or "",
        order_no=text("OrderNo"),
        user_id=text("UserId"),
        account_name=text("AccountName") or DEFAULT_ACCOUNT_NAME,
        contact_name=text("ContactName"),
        email=text("Email"),
        phone=text("Phone"),
        postcode=text("Postcode"),
        postcode_area=text("PostcodeArea"),
        installation_location=text("InstallationLocation"),
        region=text("Region"),
        map_link=text("MapLink"),
        lead_source=text("LeadSource"),
        product_line=text("ProductLine"),
        deal_name=text("DealName") or DEFAULT_DEAL_NAME,
        stage=parse_stage(text("Stage")),
        probability=lenient(parse_probability, "Probability", 0),
        amount_gbp=lenient(parse_amount, "AmountGBP", no_amount),
        owner=text("Owner"),
        created_date=lenient(parse_date, "CreatedDate", no_date),
        last_contacted_date=lenient(parse_date, "LastContactedDate", no_date),
        next_step=text("NextStep"),
        next_step_due_date=lenient(parse_date, "NextStepDueDate", no_date),
        close_date=lenient(parse_date, "CloseDate", no_date),
        service_plan=text("ServicePlan"),
        last_service_date=lenient(parse_date, "LastServiceDate", no_date),
        next_service_due_date=lenient(parse_date, "NextServiceDueDate", no_date),
        comments=text("Comments"),
        tags=parse_tags(text("Tags")),
        promoter_id=text("PromoterId"),
        promo_code=text("PromoCode"),
        promoter_commission=lenient(parse_amount, "PromoterCommission", no_amount),
        commission_paid=lenient(parse_bool, "CommissionPaid", False),
        commission_paid_date=lenient(parse_date, "CommissionPaidDate", no_date),
    )


def lookup_rows(lookups: LookupTables) -> list[list[object]]:
    """Encode lookup tables side by side: regions in A:B, stages in D:E."""
    region_rows = sorted(lookups.postcode_regions.items())
    stage_rows = [(stage, lookups.probability_for_stage(stage)) for stage in DEAL_STAGES]
    rows: list[list[object]] = [[*LOOKUP_REGION_HEADERS, None, *LOOKUP_STAGE_HEADERS]]
    for position in range(max(len(region_rows), len(stage_rows))):
        area, region = region_rows[position] if position < len(region_rows) else (None, None)
        stage, probability = stage_rows[position] if position < len(stage_rows) else (None, None)
        rows.append([area, region, None, stage, probability])
    return rows


def decode_lookup_sheet(sheet: TableSheet | None, defaults: LookupTables) -> LookupTables:
    """Merge a Lookups sheet over default tables.

    Rows with blank keys or non-integer probabilities are skipped.
    """
    if sheet is None:
        return defaults
    regions: dict[str, str] = {}
    probabilities: dict[DealStage, int] = {}
    for row in sheet.rows[1:]:
        if is_blank_row(row):
            continue
        area = optional_text(row[0] if len(row) > 0 else None)
        region = optional_text(row[1] if len(row) > 1 else None)
        if area and region:
            regions[area] = region
        stage_name = optional_text(row[3] if len(row) > 3 else None)
        raw_probability = row[4] if len(row) > 4 else None
        if stage_name and raw_probability is not None:
            try:
                probability = parse_probability(raw_probability)
            except ValueError:
                continue
            probabilities[parse_stage(stage_name)] = probability
    return defaults.with_overrides(regions, probabilities)


def _cell(row: list[object], header_index: Mapping[str, int], column: str) -> object:
    for name in (column, *_COLUMN_ALIASES.get(column, ())):
        position = header_index.get(normalize_header(name))
        if position is None or position >= len(row):
            continue
        value = row[position]
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None
