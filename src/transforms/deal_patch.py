"""Whitelist-driven partial updates for deals.

Patch requests map field names to raw values. Every key is resolved through
one static table built at import time: unknown keys, the identifier, and
derived fields are rejected individually while valid fields are parsed and
applied. Field-level failures are returned as data, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Mapping

from core.deal_stages import parse_stage_strict
from core.types import AppliedField, Deal, RejectedField
from transforms.field_parsing import (
    display_value,
    optional_text,
    parse_bool,
    parse_date,
    parse_non_negative_amount,
    parse_probability,
    parse_tags,
)

FieldParser = Callable[[object], object]


@dataclass(frozen=True)
class PatchField:
    """One patchable deal field.

    Attributes:
        name: Canonical column-style field name reported in results.
        attribute: ``Deal`` attribute written by the patch.
        parser: Converts a raw request value or raises ``ValueError``.
        required: True when the field cannot be cleared with ``None``.
        cleared_value: Value written when an optional field is cleared.
        invalidates: Derived attributes reset so normalization re-derives them.
    """

    name: str
    attribute: str
    parser: FieldParser
    required: bool = False
    cleared_value: object = None
    invalidates: tuple[str, ...] = ()


@dataclass(frozen=True)
class PatchApplication:
    """Deal after applying the valid subset of a patch request."""

    deal: Deal
    applied_fields: tuple[AppliedField, ...]
    rejected_fields: tuple[RejectedField, ...]


def _parse_text(value: object) -> str | None:
    if isinstance(value, (list, tuple, dict, set)):
        raise ValueError("Expected a text value")
    return optional_text(value)


def _parse_required_text(value: object) -> str:
    text = _parse_text(value)
    if text is None:
        raise ValueError("Value cannot be blank")
    return text


def _parse_stage(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("Stage must be text")
    return parse_stage_strict(value)


def _parse_amount(value: object) -> object:
    return parse_non_negative_amount(value, "Amount")


def _parse_commission(value: object) -> object:
    return parse_non_negative_amount(value, "Commission")


_PATCH_FIELDS: tuple[PatchField, ...] = (
    PatchField("OrderNo", "order_no", _parse_text),
    PatchField("UserId", "user_id", _parse_text),
    PatchField("AccountName", "account_name", _parse_required_text, required=True),
    PatchField("ContactName", "contact_name", _parse_text),
    PatchField("Email", "email", _parse_text),
    PatchField("Phone", "phone", _parse_text),
    PatchField(
        "Postcode",
        "postcode",
        _parse_text,
        invalidates=("postcode_area", "region", "map_link"),
    ),
    PatchField(
        "InstallationLocation", "installation_location", _parse_text, invalidates=("map_link",)
    ),
    PatchField("LeadSource", "lead_source", _parse_text),
    PatchField("ProductLine", "product_line", _parse_text),
    PatchField("DealName", "deal_name", _parse_required_text, required=True),
    PatchField("Stage", "stage", _parse_stage, required=True),
    PatchField("Probability", "probability", parse_probability, required=True),
    PatchField("AmountGBP", "amount_gbp", _parse_amount),
    PatchField("Owner", "owner", _parse_text),
    PatchField("CreatedDate", "created_date", parse_date),
    PatchField("LastContactedDate", "last_contacted_date", parse_date),
    PatchField("NextStep", "next_step", _parse_text),
    PatchField("NextStepDueDate", "next_step_due_date", parse_date),
    PatchField("CloseDate", "close_date", parse_date),
    PatchField("ServicePlan", "service_plan", _parse_text),
    PatchField("LastServiceDate", "last_service_date", parse_date),
    PatchField("NextServiceDueDate", "next_service_due_date", parse_date),
    PatchField("Comments", "comments", _parse_text),
    PatchField("Tags", "tags", parse_tags, cleared_value=()),
    PatchField("PromoterId", "promoter_id", _parse_text),
    PatchField("PromoCode", "promo_code", _parse_text),
    PatchField("PromoterCommission", "promoter_commission", _parse_commission),
    PatchField("CommissionPaid", "commission_paid", parse_bool, required=True),
    PatchField("CommissionPaidDate", "commission_paid_date", parse_date),
)
_FIELD_ALIASES = {"amount": "AmountGBP", "commission": "PromoterCommission"}
_PROTECTED_FIELDS = {"dealid": "DealId is the key and cannot be patched"}
_DERIVED_FIELDS = ("PostcodeArea", "Region", "MapLink", "WeightedAmountGBP")
_DERIVED_KEYS = frozenset(field_name.lower() for field_name in _DERIVED_FIELDS)


def normalize_field_key(field_name: str) -> str:
    """Lower-case a field name and drop spaces and underscores."""
    return field_name.strip().lower().replace(" ", "").replace("_", "")


def _build_field_table() -> dict[str, PatchField]:
    table = {normalize_field_key(field.name): field for field in _PATCH_FIELDS}
    for alias, target in _FIELD_ALIASES.items():
        table[alias] = table[normalize_field_key(target)]
    return table


PATCH_FIELD_TABLE: Mapping[str, PatchField] = _build_field_table()
PATCHABLE_FIELD_NAMES: tuple[str, ...] = tuple(field.name for field in _PATCH_FIELDS)


def apply_patch(deal: Deal, patch: Mapping[str, object]) -> PatchApplication:
    """Apply every valid field of a patch request to a deal.

    Args:
        deal: Current deal; never modified.
        patch: Field name to raw value. ``None`` clears optional fields.

    Returns:
        Updated deal with applied and rejected field reports in request order.
    """
    updates: dict[str, object] = {}
    applied: list[AppliedField] = []
    rejected: list[RejectedField] = []
    for field_name, raw_value in patch.items():
        key = normalize_field_key(field_name)
        field, reason = _resolve_field(field_name, key)
        if field is None:
            rejected.append(RejectedField(field_name, display_value(raw_value), reason))
            continue
        try:
            new_value = _parse_value(field, raw_value)
        except ValueError as error:
            rejected.append(RejectedField(field.name, display_value(raw_value), str(error)))
            continue
        old_value = updates.get(field.attribute, getattr(deal, field.attribute))
        updates[field.attribute] = new_value
        for derived_attribute in field.invalidates:
            updates[derived_attribute] = None
        applied.append(
            AppliedField(field.name, display_value(old_value), display_value(new_value))
        )
    patched_deal = replace(deal, **updates) if updates else deal
    return PatchApplication(
        deal=patched_deal,
        applied_fields=tuple(applied),
        rejected_fields=tuple(rejected),
    )


def _resolve_field(field_name: str, key: str) -> tuple[PatchField | None, str]:
    if key in _PROTECTED_FIELDS:
        return None, _PROTECTED_FIELDS[key]
    if key in _DERIVED_KEYS:
        return None, f"{field_name} is a derived field and cannot be patched directly"
    field = PATCH_FIELD_TABLE.get(key)
    if field is None:
        return None, f"Unknown field: {field_name}"
    return field, ""


def _parse_value(field: PatchField, raw_value: object) -> object:
    if raw_value is None:
        if field.required:
            raise ValueError(f"{field.name} is required and cannot be cleared")
        return field.cleared_value
    return field.parser(raw_value)
