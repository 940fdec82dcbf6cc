"""Unit tests for deal normalization."""

from __future__ import annotations

from datetime import date, datetime

from core.lookup_tables import LookupTables
from core.system_context import SystemContext
from core.types import Deal
from transforms.deal_normalizer import DealNormalizer, dedupe_tags


def _normalizer() -> DealNormalizer:
    return DealNormalizer(
        LookupTables.create_default(),
        SystemContext.for_testing(datetime(2025, 3, 15)),
    )


def _proposal_deal() -> Deal:
    return Deal(
        account_name="Acme",
        deal_name="Roof array",
        stage="Proposal",
        probability=0,
        postcode="SW1A 1AA",
    )


def test_normalize_generates_sequential_id() -> None:
    """A blank id should come from the injected generator."""
    deal = _normalizer().normalize(_proposal_deal())

    assert deal.deal_id == "D-20250315-00000001"


def test_normalize_sets_stage_probability() -> None:
    """Zero probability should take the stage default."""
    deal = _normalizer().normalize(_proposal_deal())

    assert deal.probability == 60


def test_normalize_derives_location_fields() -> None:
    """Postcode should drive area, region, and map link."""
    deal = _normalizer().normalize(_proposal_deal())

    assert (deal.postcode_area, deal.region, "SW1A%201AA" in (deal.map_link or "")) == (
        "SW",
        "London",
        True,
    )


def test_normalize_sets_created_date_from_clock() -> None:
    """Missing created date should be today on the injected clock."""
    deal = _normalizer().normalize(_proposal_deal())

    assert deal.created_date == date(2025, 3, 15)


def test_normalize_with_tracking_reports_each_rule() -> None:
    """Every rewritten field should appear in the change list."""
    result = _normalizer().normalize_with_tracking(_proposal_deal())

    assert [change.field_name for change in result.changes] == [
        "DealId",
        "Probability",
        "PostcodeArea",
        "Region",
        "MapLink",
        "CreatedDate",
    ]


def test_normalize_is_a_fixed_point() -> None:
    """Normalizing a normalized deal should change nothing."""
    normalizer = _normalizer()
    first = normalizer.normalize(_proposal_deal())

    second = normalizer.normalize_with_tracking(first)

    assert not second.has_changes and second.deal == first


def test_normalize_is_deterministic_across_contexts() -> None:
    """Identical contexts should produce identical output."""
    first = _normalizer().normalize_with_tracking(_proposal_deal())
    second = _normalizer().normalize_with_tracking(_proposal_deal())

    assert first == second


def test_normalize_keeps_zero_probability_for_closed_lost() -> None:
    """Closed Lost defaults to zero, so no probability change is recorded."""
    deal = Deal(deal_id="D-1", stage="Closed Lost", probability=0, created_date=date(2025, 1, 1))

    result = _normalizer().normalize_with_tracking(deal)

    assert not result.has_changes


def test_normalize_keeps_explicit_region() -> None:
    """An explicit region should not be overwritten by the lookup."""
    deal = Deal(deal_id="D-1", postcode="M1 1AE", region="Custom", probability=20)

    normalized = _normalizer().normalize(deal)

    assert normalized.region == "Custom"


def test_map_link_includes_installation_location() -> None:
    """Map link should encode the installation address before the postcode."""
    deal = Deal(deal_id="D-1", postcode="M1 1AE", installation_location="1 High St", probability=20)

    normalized = _normalizer().normalize(deal)

    assert (normalized.map_link or "").endswith("1%20High%20St%2C%20M1%201AE")


def test_dedupe_tags_keeps_first_spelling() -> None:
    """Tags should be trimmed and deduplicated case-insensitively."""
    assert dedupe_tags((" Solar", "solar", "", "EV ")) == ("Solar", "EV")
