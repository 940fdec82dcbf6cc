"""Unit tests for deal filter predicates."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from core.types import Deal, DealFilter
from store.deal_filtering import deal_matches, filter_deals

_REFERENCE_DATE = date(2025, 3, 15)


def _deals() -> list[Deal]:
    return [
        Deal(
            deal_id="D-1",
            account_name="Acme",
            deal_name="Roof array",
            owner="Alice",
            stage="Proposal",
            amount_gbp=Decimal("75000"),
            region="London",
            tags=("solar", "battery"),
            next_step_due_date=date(2025, 3, 10),
            last_contacted_date=date(2025, 3, 1),
            promoter_id="P-7",
        ),
        Deal(
            deal_id="D-2",
            account_name="Bolt Ltd",
            deal_name="Car park canopy",
            owner="alice",
            stage="Lead",
            amount_gbp=Decimal("20000"),
            region="North West",
            next_step_due_date=date(2025, 3, 20),
        ),
        Deal(
            deal_id="D-3",
            account_name="Crest",
            deal_name="Warehouse",
            owner="Bob",
            stage="Negotiation",
            amount_gbp=None,
            tags=("Solar",),
            last_contacted_date=date(2025, 3, 14),
        ),
    ]


def _ids(deal_filter: DealFilter) -> list[str]:
    return [deal.deal_id for deal in filter_deals(_deals(), deal_filter, _REFERENCE_DATE)]


def test_empty_filter_matches_every_deal() -> None:
    """An empty filter should match all deals."""
    assert _ids(DealFilter()) == ["D-1", "D-2", "D-3"]


def test_owner_and_min_amount_are_conjunctive() -> None:
    """Owner Alice with at least 50k should match only the large deal."""
    assert _ids(DealFilter(owner="Alice", min_amount=Decimal("50000"))) == ["D-1"]


def test_amount_bounds_exclude_deals_without_amount() -> None:
    """Deals without an amount should fail an amount bound."""
    assert _ids(DealFilter(max_amount=Decimal("1000000"))) == ["D-1", "D-2"]


def test_stage_filter_uses_membership() -> None:
    """Stage sets should keep any listed stage."""
    assert _ids(DealFilter(stages=("Lead", "Negotiation"))) == ["D-2", "D-3"]


def test_search_text_covers_account_and_id() -> None:
    """Search should look in account names and ids case-insensitively."""
    assert _ids(DealFilter(search_text="BOLT")) + _ids(DealFilter(search_text="d-3")) == [
        "D-2",
        "D-3",
    ]


def test_overdue_true_keeps_past_due_next_steps() -> None:
    """Overdue filter should keep steps due before the reference date."""
    assert _ids(DealFilter(has_overdue_next_step=True)) == ["D-1"]


def test_overdue_false_keeps_deals_without_overdue_steps() -> None:
    """Overdue false should keep future and missing next steps."""
    assert _ids(DealFilter(has_overdue_next_step=False)) == ["D-2", "D-3"]


def test_no_contact_days_counts_never_contacted_deals() -> None:
    """Never-contacted deals should count as uncontacted."""
    assert _ids(DealFilter(no_contact_days=7)) == ["D-1", "D-2"]


def test_no_contact_days_still_applies_other_predicates() -> None:
    """A never-contacted deal should still be checked against later predicates."""
    assert _ids(DealFilter(no_contact_days=7, tags=("battery",))) == ["D-1"]


def test_tags_require_every_tag_case_insensitively() -> None:
    """Tag filters should require a case-insensitive superset."""
    assert _ids(DealFilter(tags=("SOLAR",))) == ["D-1", "D-3"]


def test_has_promoter_false_keeps_unreferred_deals() -> None:
    """Promoter tri-state should select unreferred deals when False."""
    assert _ids(DealFilter(has_promoter=False)) == ["D-2", "D-3"]


def test_promoter_id_matches_case_insensitively() -> None:
    """Promoter id equality should ignore case."""
    assert deal_matches(_deals()[0], DealFilter(promoter_id="p-7"), _REFERENCE_DATE)


def test_next_step_due_before_excludes_later_steps() -> None:
    """Deals due after the cutoff should be excluded."""
    assert _ids(DealFilter(next_step_due_before=date(2025, 3, 15))) == ["D-1", "D-3"]
