"""Static lookup tables used for derived deal fields.

This module owns the postcode-area to region mapping and the stage to
default-probability mapping. Both are plain data so normalization stays a
pure function of the deal, the injected context, and these tables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from core.deal_stages import DEFAULT_STAGE_PROBABILITIES, DealStage

_DEFAULT_REGION_AREAS: dict[str, tuple[str, ...]] = {
    "London": ("E", "EC", "N", "NW", "SE", "SW", "W", "WC"),
    "South East": ("BN", "CT", "GU", "ME", "OX", "PO", "RG", "RH", "SL", "SO", "TN"),
    "South West": ("BA", "BH", "BS", "DT", "EX", "GL", "PL", "SN", "SP", "TA", "TQ", "TR"),
    "East of England": (
        "AL", "CB", "CM", "CO", "EN", "HP", "IP", "LU", "NR", "PE", "SG", "SS", "WD",
    ),
    "West Midlands": ("B", "CV", "DY", "HR", "ST", "TF", "WR", "WS", "WV"),
    "East Midlands": ("DE", "DN", "LE", "LN", "NG", "NN"),
    "Yorkshire": ("BD", "HD", "HG", "HU", "HX", "LS", "S", "WF", "YO"),
    "North West": (
        "BB", "BL", "CA", "CH", "CW", "FY", "L", "LA", "M", "OL", "PR", "SK", "WA", "WN",
    ),
    "North East": ("DH", "DL", "NE", "SR", "TS"),
    "Wales": ("CF", "LD", "LL", "NP", "SA", "SY"),
    "Scotland": (
        "AB", "DD", "DG", "EH", "FK", "G", "HS", "IV", "KA", "KW", "KY", "ML", "PA", "PH",
        "TD", "ZE",
    ),
    "Northern Ireland": ("BT",),
}


@dataclass(frozen=True)
class LookupTables:
    """Derivation tables for regions and default probabilities.

    Attributes:
        postcode_regions: Upper-case postcode area to region name.
        stage_probabilities: Stage to default win probability.
    """

    postcode_regions: Mapping[str, str] = field(default_factory=dict)
    stage_probabilities: Mapping[DealStage, int] = field(default_factory=dict)

    @classmethod
    def create_default(cls) -> "LookupTables":
        """Build the standard UK region map and stage defaults."""
        regions = {
            area: region
            for region, areas in _DEFAULT_REGION_AREAS.items()
            for area in areas
        }
        return cls(
            postcode_regions=regions,
            stage_probabilities=dict(DEFAULT_STAGE_PROBABILITIES),
        )

    def region_for_postcode(self, postcode: str | None) -> str | None:
        """Return the region for a raw postcode, or None when unmapped."""
        if postcode is None or not postcode.strip():
            return None
        return self.postcode_regions.get(extract_postcode_area(postcode))

    def probability_for_stage(self, stage: DealStage) -> int:
        """Return the configured default probability for a stage."""
        configured = self.stage_probabilities.get(stage)
        if configured is None:
            return DEFAULT_STAGE_PROBABILITIES[stage]
        return configured

    def with_overrides(
        self,
        postcode_regions: Mapping[str, str] | None = None,
        stage_probabilities: Mapping[DealStage, int] | None = None,
    ) -> "LookupTables":
        """Return a copy with entries replaced or added."""
        merged_regions = dict(self.postcode_regions)
        for area, region in (postcode_regions or {}).items():
            merged_regions[area.strip().upper()] = region
        merged_probabilities = dict(self.stage_probabilities)
        merged_probabilities.update(stage_probabilities or {})
        return LookupTables(
            postcode_regions=merged_regions,
            stage_probabilities=merged_probabilities,
        )


def extract_postcode_area(postcode: str) -> str:
    """Return the leading letters of a postcode, upper-cased.

    Args:
        postcode: Raw postcode such as ``sw1a 1aa``.

    Returns:
        Area code such as ``SW``; empty when the postcode starts with a digit.
    """
    clean = postcode.strip().upper().replace(" ", "")
    area_chars: list[str] = []
    for char in clean:
        if not char.isalpha():
            break
        area_chars.append(char)
    return "".join(area_chars)
