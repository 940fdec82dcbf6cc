"""Deal stage enumeration and parsing helpers.

Stages are stored by their display names in the workbook. File rows parse
leniently so hand-edited sheets keep loading, while patch requests parse
strictly so an unknown stage is reported instead of silently coerced.
"""

from __future__ import annotations

from typing import Literal

DealStage = Literal[
    "Lead",
    "Qualified",
    "Discovery",
    "Proposal",
    "Negotiation",
    "Closed Won",
    "Closed Lost",
    "On Hold",
    "Other",
]
DEAL_STAGES: tuple[DealStage, ...] = (
    "Lead",
    "Qualified",
    "Discovery",
    "Proposal",
    "Negotiation",
    "Closed Won",
    "Closed Lost",
    "On Hold",
    "Other",
)
DEFAULT_STAGE: DealStage = "Lead"
DEFAULT_STAGE_PROBABILITIES: dict[DealStage, int] = {
    "Lead": 10,
    "Qualified": 20,
    "Discovery": 40,
    "Proposal": 60,
    "Negotiation": 80,
    "Closed Won": 100,
    "Closed Lost": 0,
    "On Hold": 10,
    "Other": 10,
}
_STAGE_ALIASES: dict[str, DealStage] = {
    "lead": "Lead",
    "qualified": "Qualified",
    "discovery": "Discovery",
    "proposal": "Proposal",
    "negotiation": "Negotiation",
    "closedwon": "Closed Won",
    "won": "Closed Won",
    "closedlost": "Closed Lost",
    "lost": "Closed Lost",
    "onhold": "On Hold",
    "hold": "On Hold",
    "other": "Other",
}


def parse_stage(raw_value: str | None) -> DealStage:
    """Parse a stage leniently, as used for workbook rows.

    Args:
        raw_value: Stage text from a cell, possibly blank.

    Returns:
        Matching stage, ``Lead`` for blank input, ``Other`` when unrecognized.
    """
    if raw_value is None or not raw_value.strip():
        return DEFAULT_STAGE
    return _STAGE_ALIASES.get(_stage_key(raw_value), "Other")


def parse_stage_strict(raw_value: str) -> DealStage:
    """Parse a stage strictly, as used for patch requests.

    Args:
        raw_value: Requested stage text.

    Returns:
        Matching stage.

    Raises:
        ValueError: If the text names no known stage.
    """
    stage = _STAGE_ALIASES.get(_stage_key(raw_value))
    if stage is None:
        supported_rows = ", ".join(DEAL_STAGES)
        raise ValueError(f"Unknown stage '{raw_value}'. Use one of: {supported_rows}")
    return stage


def _stage_key(raw_value: str) -> str:
    return raw_value.strip().lower().replace(" ", "").replace("-", "").replace("_", "")
