"""YAML overrides for lookup tables.

Operators can extend or correct the default region and probability tables
with a small YAML file referenced by ``DEALBOOK_LOOKUPS_FILE``::

    postcode_regions:
      JE: Channel Islands
    stage_probabilities:
      Proposal: 55
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, cast

import yaml

from core.deal_stages import DealStage, parse_stage_strict
from core.errors import DealbookConfigError
from core.lookup_tables import LookupTables

_ALLOWED_KEYS = ("postcode_regions", "stage_probabilities")


def load_lookup_tables(lookups_path: Path | None) -> LookupTables:
    """Build lookup tables from defaults plus optional YAML overrides.

    Args:
        lookups_path: Optional YAML override file.

    Returns:
        Default tables, merged with overrides when a file is given.

    Raises:
        DealbookConfigError: If the file is missing or malformed.
    """
    defaults = LookupTables.create_default()
    if lookups_path is None:
        return defaults
    root_mapping = _expect_mapping(_load_yaml_payload(lookups_path), "lookups file root")
    unknown_keys = sorted(set(root_mapping) - set(_ALLOWED_KEYS))
    if unknown_keys:
        raise DealbookConfigError(
            f"Unknown keys in lookups file {lookups_path}: {', '.join(unknown_keys)}. "
            f"Allowed keys: {', '.join(_ALLOWED_KEYS)}."
        )
    regions = _parse_regions(root_mapping.get("postcode_regions"))
    probabilities = _parse_probabilities(root_mapping.get("stage_probabilities"))
    return defaults.with_overrides(regions, probabilities)


def _load_yaml_payload(lookups_path: Path) -> object:
    lookups_file = lookups_path.expanduser().resolve()
    if not lookups_file.exists():
        raise DealbookConfigError(
            f"Lookups file does not exist at {lookups_file}. "
            "Fix DEALBOOK_LOOKUPS_FILE or unset it to use defaults."
        )
    try:
        payload = cast(object, yaml.safe_load(lookups_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise DealbookConfigError(
            f"Failed to read lookups file at {lookups_file}: {error}."
        ) from error
    except yaml.YAMLError as error:
        raise DealbookConfigError(
            f"Failed to parse YAML lookups file at {lookups_file}: {error}. "
            "Fix YAML syntax and retry."
        ) from error
    return {} if payload is None else payload


def _parse_regions(value: object) -> dict[str, str]:
    if value is None:
        return {}
    mapping = _expect_mapping(value, "postcode_regions")
    regions: dict[str, str] = {}
    for area, region in mapping.items():
        if not isinstance(region, str) or not region.strip():
            raise DealbookConfigError(
                f"Invalid region for postcode area '{area}': expected non-empty text."
            )
        regions[area] = region.strip()
    return regions


def _parse_probabilities(value: object) -> dict[DealStage, int]:
    if value is None:
        return {}
    mapping = _expect_mapping(value, "stage_probabilities")
    probabilities: dict[DealStage, int] = {}
    for stage_name, probability in mapping.items():
        try:
            stage = parse_stage_strict(stage_name)
        except ValueError as error:
            raise DealbookConfigError(f"Invalid stage_probabilities entry: {error}.") from error
        if isinstance(probability, bool) or not isinstance(probability, int):
            raise DealbookConfigError(
                f"Invalid probability for stage '{stage_name}': expected integer."
            )
        if not 0 <= probability <= 100:
            raise DealbookConfigError(
                f"Invalid probability for stage '{stage_name}': expected 0-100, got {probability}."
            )
        probabilities[stage] = probability
    return probabilities


def _expect_mapping(value: object, context: str) -> Mapping[str, object]:
    if isinstance(value, Mapping):
        normalized_mapping: dict[str, object] = {}
        for key, payload in value.items():
            if not isinstance(key, str):
                raise DealbookConfigError(
                    f"Invalid {context}: expected string keys, got {type(key).__name__}."
                )
            normalized_mapping[key] = payload
        return normalized_mapping
    raise DealbookConfigError(
        f"Invalid {context}: expected mapping, got {type(value).__name__}."
    )
