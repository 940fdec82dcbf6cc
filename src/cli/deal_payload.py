"""JSON payload builders for CLI output."""

from __future__ import annotations

from dataclasses import asdict, fields
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

from core.types import Deal, PatchResult, ValidationResult


def deal_to_payload(deal: Deal) -> dict[str, Any]:
    """Render a deal as JSON-safe values, including the weighted amount."""
    payload = {item.name: _json_value(getattr(deal, item.name)) for item in fields(deal)}
    payload["weighted_amount_gbp"] = _json_value(deal.weighted_amount_gbp)
    return payload


def patch_result_to_payload(result: PatchResult) -> dict[str, Any]:
    return {
        "success": result.success,
        "error": result.error,
        "deal": None if result.deal is None else deal_to_payload(result.deal),
        "applied_fields": [asdict(item) for item in result.applied_fields],
        "rejected_fields": [asdict(item) for item in result.rejected_fields],
        "normalization_changes": [asdict(item) for item in result.normalization_changes],
    }


def validation_to_payload(result: ValidationResult) -> dict[str, Any]:
    payload = asdict(result)
    payload["errors"] = list(result.errors)
    payload["warnings"] = list(result.warnings)
    return payload


def backups_to_payload(backups: list[Path]) -> list[str]:
    return [str(path) for path in backups]


def _json_value(value: object) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, tuple):
        return list(value)
    return value
