"""Unit tests for stage parsing."""

from __future__ import annotations

import pytest

from core.deal_stages import DEAL_STAGES, parse_stage, parse_stage_strict


def test_parse_stage_accepts_compact_names() -> None:
    """Stage parsing should ignore case and spacing."""
    assert parse_stage("closed_won") == "Closed Won"


def test_parse_stage_defaults_blank_to_lead() -> None:
    """Blank cells should parse as Lead."""
    assert parse_stage("  ") == "Lead"


def test_parse_stage_maps_unknown_to_other() -> None:
    """Unknown row stages should parse leniently as Other."""
    assert parse_stage("Pending Legal") == "Other"


def test_parse_stage_strict_rejects_unknown() -> None:
    """Strict parsing should reject unknown stages."""
    with pytest.raises(ValueError):
        parse_stage_strict("Pending Legal")


def test_canonical_stage_names_parse_to_themselves() -> None:
    """Every stored display name should parse back unchanged."""
    assert [parse_stage_strict(stage) for stage in DEAL_STAGES] == list(DEAL_STAGES)
