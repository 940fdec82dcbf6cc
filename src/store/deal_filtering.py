"""Deal filtering helpers.

This module applies the conjunctive predicates of a ``DealFilter``.
It keeps query logic reusable across repositories and the CLI.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from core.types import Deal, DealFilter


def filter_deals(
    deals: Iterable[Deal],
    deal_filter: DealFilter,
    reference_date: date,
) -> list[Deal]:
    """Filter deals using every set predicate.

    Args:
        deals: Input deals to filter.
        deal_filter: Filter constraints.
        reference_date: Day used for overdue and no-contact checks.

    Returns:
        Matching deals in input order.
    """
    return [deal for deal in deals if deal_matches(deal, deal_filter, reference_date)]


def deal_matches(deal: Deal, deal_filter: DealFilter, reference_date: date) -> bool:
    """Return whether one deal satisfies every set predicate."""
    if deal_filter.search_text and deal_filter.search_text.strip():
        if not _matches_search(deal, deal_filter.search_text):
            return False
    if deal_filter.stages and deal.stage not in deal_filter.stages:
        return False
    if not _equals_ignoring_case(deal.owner, deal_filter.owner):
        return False
    if not _equals_ignoring_case(deal.region, deal_filter.region):
        return False
    if not _equals_ignoring_case(deal.product_line, deal_filter.product_line):
        return False
    if deal_filter.min_amount is not None:
        if deal.amount_gbp is None or deal.amount_gbp < deal_filter.min_amount:
            return False
    if deal_filter.max_amount is not None:
        if deal.amount_gbp is None or deal.amount_gbp > deal_filter.max_amount:
            return False
    if deal_filter.close_date_from is not None:
        if deal.close_date is None or deal.close_date < deal_filter.close_date_from:
            return False
    if deal_filter.close_date_to is not None:
        if deal.close_date is None or deal.close_date > deal_filter.close_date_to:
            return False
    if deal_filter.next_step_due_before is not None and deal.next_step_due_date is not None:
        if deal.next_step_due_date > deal_filter.next_step_due_before:
            return False
    if deal_filter.has_overdue_next_step is not None:
        if is_next_step_overdue(deal, reference_date) != deal_filter.has_overdue_next_step:
            return False
    if deal_filter.no_contact_days is not None and deal.last_contacted_date is not None:
        days_since_contact = (reference_date - deal.last_contacted_date).days
        if days_since_contact < deal_filter.no_contact_days:
            return False
    if deal_filter.tags:
        deal_tags = {tag.casefold() for tag in deal.tags}
        if not all(tag.casefold() in deal_tags for tag in deal_filter.tags):
            return False
    if not _equals_ignoring_case(deal.promoter_id, deal_filter.promoter_id):
        return False
    if not _equals_ignoring_case(deal.promo_code, deal_filter.promo_code):
        return False
    if deal_filter.has_promoter is not None:
        if has_promoter(deal) != deal_filter.has_promoter:
            return False
    return True


def is_next_step_overdue(deal: Deal, reference_date: date) -> bool:
    """Return whether the next step was due strictly before the reference date."""
    return deal.next_step_due_date is not None and deal.next_step_due_date < reference_date


def has_promoter(deal: Deal) -> bool:
    """Return whether a deal carries promoter attribution."""
    return bool((deal.promoter_id or "").strip() or (deal.promo_code or "").strip())


def _matches_search(deal: Deal, search_text: str) -> bool:
    needle = search_text.strip().casefold()
    haystacks = (deal.deal_name, deal.account_name, deal.contact_name, deal.deal_id, deal.owner)
    return any(needle in value.casefold() for value in haystacks if value)


def _equals_ignoring_case(value: str | None, expected: str | None) -> bool:
    if expected is None or not expected.strip():
        return True
    return value is not None and value.casefold() == expected.strip().casefold()
