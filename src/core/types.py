"""Shared typed models.

This module defines immutable data models used by the normalization,
patch, repository, and workbook layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from core.deal_stages import DEFAULT_STAGE, DealStage


@dataclass(frozen=True)
class Deal:
    """Canonical sales pipeline deal.

    Attributes:
        deal_id: Unique case-insensitive identifier, generated when blank.
        account_name: Customer account name.
        deal_name: Opportunity title.
        stage: Pipeline stage.
        probability: Win probability in [0, 100].
        amount_gbp: Optional deal value.
        postcode_area: Derived leading letters of the postcode.
        region: Derived from postcode area unless set explicitly.
        map_link: Derived search link for the installation address.
        tags: Ordered, case-insensitively unique labels.
        promoter_id: Referring promoter identifier.
        promo_code: Promo code used for attribution.
    """

    deal_id: str = ""
    order_no: str | None = None
    user_id: str | None = None
    account_name: str = ""
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    postcode: str | None = None
    postcode_area: str | None = None
    installation_location: str | None = None
    region: str | None = None
    map_link: str | None = None
    lead_source: str | None = None
    product_line: str | None = None
    deal_name: str = ""
    stage: DealStage = DEFAULT_STAGE
    probability: int = 0
    amount_gbp: Decimal | None = None
    owner: str | None = None
    created_date: date | None = None
    last_contacted_date: date | None = None
    next_step: str | None = None
    next_step_due_date: date | None = None
    close_date: date | None = None
    service_plan: str | None = None
    last_service_date: date | None = None
    next_service_due_date: date | None = None
    comments: str | None = None
    tags: tuple[str, ...] = ()
    promoter_id: str | None = None
    promo_code: str | None = None
    promoter_commission: Decimal | None = None
    commission_paid: bool = False
    commission_paid_date: date | None = None

    @property
    def weighted_amount_gbp(self) -> Decimal | None:
        """Amount scaled by probability; never stored."""
        if self.amount_gbp is None:
            return None
        return self.amount_gbp * self.probability / Decimal(100)

    def has_id(self, deal_id: str) -> bool:
        """Return whether this deal matches an id case-insensitively."""
        return self.deal_id.casefold() == deal_id.casefold()


@dataclass(frozen=True)
class DealFilter:
    """Conjunctive query constraints; unset fields match everything.

    Attributes:
        search_text: Substring searched in name, account, contact, id and owner.
        stages: Allowed stages.
        owner: Case-insensitive owner equality.
        region: Case-insensitive region equality.
        product_line: Case-insensitive product line equality.
        min_amount: Inclusive lower amount bound.
        max_amount: Inclusive upper amount bound.
        close_date_from: Inclusive lower close date.
        close_date_to: Inclusive upper close date.
        next_step_due_before: Excludes deals whose next step is due later.
        has_overdue_next_step: True keeps overdue deals, False keeps the rest.
        no_contact_days: Minimum days since last contact.
        tags: Tags every match must carry.
        promoter_id: Case-insensitive promoter equality.
        promo_code: Case-insensitive promo code equality.
        has_promoter: True keeps referred deals, False keeps unreferred ones.
    """

    search_text: str | None = None
    stages: tuple[DealStage, ...] = ()
    owner: str | None = None
    region: str | None = None
    product_line: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    close_date_from: date | None = None
    close_date_to: date | None = None
    next_step_due_before: date | None = None
    has_overdue_next_step: bool | None = None
    no_contact_days: int | None = None
    tags: tuple[str, ...] = ()
    promoter_id: str | None = None
    promo_code: str | None = None
    has_promoter: bool | None = None


@dataclass(frozen=True)
class NormalizationChange:
    """One field rewritten by the normalization pass."""

    field_name: str
    old_value: str | None
    new_value: str | None
    reason: str


@dataclass(frozen=True)
class NormalizationResult:
    """Normalized deal plus the ordered list of applied changes."""

    deal: Deal
    changes: tuple[NormalizationChange, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


@dataclass(frozen=True)
class AppliedField:
    """One patch field written to the deal."""

    field_name: str
    old_value: str | None
    new_value: str | None


@dataclass(frozen=True)
class RejectedField:
    """One patch field refused with a reason."""

    field_name: str
    attempted_value: str | None
    reason: str


@dataclass(frozen=True)
class PatchResult:
    """Outcome of one patch request.

    Attributes:
        success: True only when every requested field was applied.
        deal: Resulting deal, or None when the id is unknown.
        applied_fields: Fields written as requested.
        rejected_fields: Fields refused, with reasons.
        normalization_changes: System-applied fixes made after the patch.
        error: Summary message when success is False.
    """

    success: bool
    deal: Deal | None = None
    applied_fields: tuple[AppliedField, ...] = ()
    rejected_fields: tuple[RejectedField, ...] = ()
    normalization_changes: tuple[NormalizationChange, ...] = ()
    error: str | None = None

    @classmethod
    def not_found(cls, deal_id: str) -> "PatchResult":
        return cls(success=False, error=f"Deal not found: {deal_id}")

    @classmethod
    def validation_failed(
        cls,
        deal: Deal,
        rejected: tuple[RejectedField, ...],
    ) -> "PatchResult":
        return cls(
            success=False,
            deal=deal,
            rejected_fields=rejected,
            error=f"Validation failed for {len(rejected)} field(s)",
        )

    @classmethod
    def succeeded(
        cls,
        deal: Deal,
        applied: tuple[AppliedField, ...],
        rejected: tuple[RejectedField, ...],
        changes: tuple[NormalizationChange, ...],
    ) -> "PatchResult":
        return cls(
            success=not rejected,
            deal=deal,
            applied_fields=applied,
            rejected_fields=rejected,
            normalization_changes=changes,
            error=f"Partial success: {len(rejected)} field(s) rejected" if rejected else None,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Structural health report for a workbook file.

    Attributes:
        is_valid: True when no errors were found.
        errors: Fatal structural problems.
        warnings: Non-fatal problems such as missing optional sheets.
        deal_count: Number of data rows in the Deals sheet.
        schema_version: Detected version, ``1.0`` when unstamped.
        requires_migration: True for older supported versions.
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    deal_count: int = 0
    has_deals_sheet: bool = False
    has_lookups_sheet: bool = False
    has_metadata_sheet: bool = False
    schema_version: str | None = None
    requires_migration: bool = False


@dataclass(frozen=True)
class StoreSettings:
    """Tunables for the durable workbook store.

    Attributes:
        max_backups: Backups retained after each commit.
        lock_retries: Attempts to create the lock marker.
        lock_retry_delay_seconds: Base delay, doubled after each failed attempt.
        lock_stale_seconds: Age after which an orphaned marker is broken.
        current_schema_version: Version stamped on every commit.
        supported_schema_versions: Versions that may be loaded or migrated.
    """

    max_backups: int
    lock_retries: int
    lock_retry_delay_seconds: float
    lock_stale_seconds: float
    current_schema_version: str
    supported_schema_versions: tuple[str, ...] = field(default_factory=tuple)
