"""In-memory deal repository.

Reference implementation of the repository contract, used by tests and by
callers that do not need durability.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

from core.types import Deal, DealFilter
from store.deal_filtering import filter_deals
from store.repository import find_deal_index, remove_from, upsert_into


class InMemoryDealRepository:
    """List-backed repository; ``save_changes`` is a no-op."""

    def __init__(self, deals: Iterable[Deal] = ()) -> None:
        self._deals: list[Deal] = list(deals)

    async def get_all(self) -> list[Deal]:
        return list(self._deals)

    async def get_by_id(self, deal_id: str) -> Deal | None:
        index = find_deal_index(self._deals, deal_id)
        return None if index is None else self._deals[index]

    async def query(self, deal_filter: DealFilter, reference_date: date) -> list[Deal]:
        return filter_deals(self._deals, deal_filter, reference_date)

    async def upsert(self, deal: Deal) -> None:
        upsert_into(self._deals, deal)

    async def upsert_many(self, deals: Iterable[Deal]) -> None:
        for deal in deals:
            upsert_into(self._deals, deal)

    async def delete(self, deal_id: str) -> None:
        remove_from(self._deals, deal_id)

    async def save_changes(self) -> None:
        return None

    def clear(self) -> None:
        """Drop every stored deal."""
        self._deals.clear()

    def load_deals(self, deals: Iterable[Deal]) -> None:
        """Replace stored deals with a seed set."""
        self._deals = list(deals)
