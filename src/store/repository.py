"""Repository contract shared by the in-memory and workbook stores.

This module defines the async deal repository protocol plus the small
list operations both implementations use to keep upsert and delete
semantics identical.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol

from core.types import Deal, DealFilter


class DealRepository(Protocol):
    """Async deal storage contract."""

    async def get_all(self) -> list[Deal]:
        """Return every deal in stored order."""
        ...

    async def get_by_id(self, deal_id: str) -> Deal | None:
        """Return one deal by case-insensitive id, or None."""
        ...

    async def query(self, deal_filter: DealFilter, reference_date: date) -> list[Deal]:
        """Return deals matching every predicate of a filter."""
        ...

    async def upsert(self, deal: Deal) -> None:
        """Replace a deal with the same id in place, or append it."""
        ...

    async def upsert_many(self, deals: Iterable[Deal]) -> None:
        """Upsert several deals in order."""
        ...

    async def delete(self, deal_id: str) -> None:
        """Remove a deal by id; missing ids are ignored."""
        ...

    async def save_changes(self) -> None:
        """Persist pending changes."""
        ...


def find_deal_index(deals: list[Deal], deal_id: str) -> int | None:
    """Return the position of a deal by case-insensitive id."""
    for index, deal in enumerate(deals):
        if deal.has_id(deal_id):
            return index
    return None


def upsert_into(deals: list[Deal], deal: Deal) -> None:
    """Replace a deal with the same id in place, or append it."""
    index = find_deal_index(deals, deal.deal_id)
    if index is None:
        deals.append(deal)
    else:
        deals[index] = deal


def remove_from(deals: list[Deal], deal_id: str) -> bool:
    """Remove every deal with an id and return whether anything was removed."""
    remaining = [deal for deal in deals if not deal.has_id(deal_id)]
    removed = len(remaining) != len(deals)
    deals[:] = remaining
    return removed
