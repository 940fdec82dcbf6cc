"""Deal normalization with change tracking.

This module fills derived and defaulted fields on a deal. It depends only on
lookup tables and the injected system context, so the same input always
yields the same output and the same change list. A change is recorded only
when a value actually differs, so normalizing a normalized deal is a no-op.
"""

from __future__ import annotations

from dataclasses import replace
from urllib.parse import quote

from core.constants import MAP_SEARCH_URL
from core.lookup_tables import LookupTables, extract_postcode_area
from core.system_context import SystemContext
from core.types import Deal, NormalizationChange, NormalizationResult


class DealNormalizer:
    """Apply id, probability, location, date, and tag rules to deals."""

    def __init__(self, lookups: LookupTables, context: SystemContext) -> None:
        self._lookups = lookups
        self._context = context

    def normalize(self, deal: Deal) -> Deal:
        """Return the normalized deal without the change list."""
        return self.normalize_with_tracking(deal).deal

    def normalize_with_tracking(self, deal: Deal) -> NormalizationResult:
        """Normalize a deal and report every field the pass rewrote.

        Args:
            deal: Input deal; never modified.

        Returns:
            New deal plus ordered normalization changes.
        """
        changes: list[NormalizationChange] = []
        updates: dict[str, object] = {}

        if not deal.deal_id.strip():
            new_id = self._context.id_generator.generate()
            changes.append(
                NormalizationChange("DealId", None, new_id, "Auto-generated missing DealId")
            )
            updates["deal_id"] = new_id

        if deal.probability <= 0:
            default_probability = self._lookups.probability_for_stage(deal.stage)
            if default_probability != deal.probability:
                changes.append(
                    NormalizationChange(
                        "Probability",
                        str(deal.probability),
                        str(default_probability),
                        f"Set default probability for stage {deal.stage}",
                    )
                )
                updates["probability"] = default_probability

        postcode = (deal.postcode or "").strip()
        if postcode:
            new_area = extract_postcode_area(postcode) or None
            if new_area != deal.postcode_area:
                changes.append(
                    NormalizationChange(
                        "PostcodeArea",
                        deal.postcode_area,
                        new_area,
                        f"Extracted from postcode {postcode}",
                    )
                )
                updates["postcode_area"] = new_area
            if deal.region is None:
                new_region = self._lookups.region_for_postcode(postcode)
                if new_region is not None:
                    changes.append(
                        NormalizationChange(
                            "Region", None, new_region, f"Derived from postcode area {new_area}"
                        )
                    )
                    updates["region"] = new_region
            if not (deal.map_link or "").strip():
                new_map_link = build_map_link(deal.installation_location, postcode)
                changes.append(
                    NormalizationChange(
                        "MapLink", deal.map_link, new_map_link, "Generated map link from address"
                    )
                )
                updates["map_link"] = new_map_link

        if deal.created_date is None:
            today = self._context.clock.today()
            changes.append(
                NormalizationChange(
                    "CreatedDate", None, today.isoformat(), "Set default creation date"
                )
            )
            updates["created_date"] = today

        cleaned_tags = dedupe_tags(deal.tags)
        if cleaned_tags != deal.tags:
            changes.append(
                NormalizationChange(
                    "Tags",
                    ", ".join(deal.tags),
                    ", ".join(cleaned_tags),
                    "Cleaned and deduplicated tags",
                )
            )
            updates["tags"] = cleaned_tags

        if not updates:
            return NormalizationResult(deal=deal)
        return NormalizationResult(deal=replace(deal, **updates), changes=tuple(changes))


def build_map_link(installation_location: str | None, postcode: str) -> str:
    """Build a map search URL for an installation address and postcode."""
    location = (installation_location or "").strip()
    address = f"{location}, {postcode}" if location else postcode
    return f"{MAP_SEARCH_URL}{quote(address, safe='')}"


def dedupe_tags(tags: tuple[str, ...]) -> tuple[str, ...]:
    """Trim tags, drop blanks, and keep the first spelling of each tag."""
    cleaned: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        stripped = tag.strip()
        if not stripped:
            continue
        key = stripped.casefold()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(stripped)
    return tuple(cleaned)
