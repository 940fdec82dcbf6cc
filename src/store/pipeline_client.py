"""Client facade for pipeline operations.

This module exposes high-level deal operations backed by any repository
implementation: listing, upsert with normalization, patch with per-field
feedback, and delete. Every write is followed by ``save_changes``.
"""

from __future__ import annotations

from datetime import date
from typing import Mapping

from core.config import DealbookConfig
from core.errors import DealNotFoundError
from core.logging_config import get_logger
from core.lookup_config import load_lookup_tables
from core.lookup_tables import LookupTables
from core.system_context import SystemContext
from core.types import Deal, DealFilter, NormalizationResult, PatchResult
from store.repository import DealRepository
from store.workbook_repository import WorkbookDealRepository
from transforms.deal_normalizer import DealNormalizer
from transforms.deal_patch import apply_patch

_LOGGER = get_logger(__name__)


class PipelineClient:
    """Primary SDK entry point for deal operations."""

    def __init__(
        self,
        repository: DealRepository,
        lookups: LookupTables | None = None,
        context: SystemContext | None = None,
    ) -> None:
        """Create a client over an existing repository.

        Args:
            repository: Deal storage backend.
            lookups: Optional lookup tables; defaults when omitted.
            context: Optional clock and id context; live context when omitted.
        """
        self._repository = repository
        self._context = context or SystemContext.default()
        self._normalizer = DealNormalizer(lookups or LookupTables.create_default(), self._context)

    @classmethod
    def from_config(
        cls,
        config: DealbookConfig | None = None,
        context: SystemContext | None = None,
    ) -> "PipelineClient":
        """Build a client over the workbook named by runtime configuration.

        Raises:
            DealbookConfigError: If environment values or the lookups file are invalid.
        """
        resolved_config = config or DealbookConfig.from_env()
        resolved_context = context or SystemContext.default()
        lookups = load_lookup_tables(resolved_config.lookups_file)
        repository = WorkbookDealRepository(
            resolved_config.data_file,
            lookups,
            resolved_context,
            resolved_config.store_settings(),
        )
        return cls(repository, lookups, resolved_context)

    @property
    def repository(self) -> DealRepository:
        return self._repository

    async def list_deals(
        self,
        deal_filter: DealFilter | None = None,
        reference_date: date | None = None,
    ) -> list[Deal]:
        """List deals, optionally filtered.

        Args:
            deal_filter: Optional filter; every deal when omitted.
            reference_date: Day for overdue checks; clock today when omitted.

        Returns:
            Matching deals in stored order.
        """
        if deal_filter is None:
            return await self._repository.get_all()
        day = reference_date or self._context.clock.today()
        return await self._repository.query(deal_filter, day)

    async def get_deal(self, deal_id: str) -> Deal | None:
        return await self._repository.get_by_id(deal_id)

    async def require_deal(self, deal_id: str) -> Deal:
        """Return a deal or raise when the id is unknown.

        Raises:
            DealNotFoundError: If no deal has the id.
        """
        deal = await self._repository.get_by_id(deal_id)
        if deal is None:
            raise DealNotFoundError(
                f"Deal not found: {deal_id}. Run `dealbook list` to see available ids."
            )
        return deal

    async def upsert_deal(self, deal: Deal) -> NormalizationResult:
        """Normalize, store, and save one deal.

        Returns:
            Stored deal plus normalization changes.
        """
        result = self._normalizer.normalize_with_tracking(deal)
        await self._repository.upsert(result.deal)
        await self._repository.save_changes()
        return result

    async def upsert_deals(self, deals: list[Deal]) -> list[Deal]:
        """Normalize, store, and save several deals with one commit."""
        normalized = [self._normalizer.normalize(deal) for deal in deals]
        await self._repository.upsert_many(normalized)
        await self._repository.save_changes()
        return normalized

    async def patch_deal(self, deal_id: str, patch: Mapping[str, object]) -> PatchResult:
        """Apply a partial update and report applied and rejected fields.

        Args:
            deal_id: Target deal id.
            patch: Field name to raw value.

        Returns:
            Not-found, validation-failed, or applied result. A request with some
            rejected fields still saves the valid ones but reports failure.
        """
        deal = await self._repository.get_by_id(deal_id)
        if deal is None:
            return PatchResult.not_found(deal_id)
        application = apply_patch(deal, patch)
        if not application.applied_fields and application.rejected_fields:
            return PatchResult.validation_failed(deal, application.rejected_fields)
        normalized = self._normalizer.normalize_with_tracking(application.deal)
        await self._repository.upsert(normalized.deal)
        await self._repository.save_changes()
        _LOGGER.info(
            "deal_patched",
            deal_id=normalized.deal.deal_id,
            applied_count=len(application.applied_fields),
            rejected_count=len(application.rejected_fields),
            normalization_count=len(normalized.changes),
        )
        return PatchResult.succeeded(
            normalized.deal,
            application.applied_fields,
            application.rejected_fields,
            normalized.changes,
        )

    async def delete_deal(self, deal_id: str) -> bool:
        """Delete a deal and save.

        Returns:
            True when a deal with the id existed.
        """
        existed = await self._repository.get_by_id(deal_id) is not None
        await self._repository.delete(deal_id)
        await self._repository.save_changes()
        return existed
