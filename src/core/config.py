"""Runtime configuration model for Dealbook.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_DATA_FILE,
    DEFAULT_LOCK_RETRIES,
    DEFAULT_LOCK_RETRY_DELAY_SECONDS,
    DEFAULT_LOCK_STALE_SECONDS,
    DEFAULT_MAX_BACKUPS,
    SUPPORTED_SCHEMA_VERSIONS,
)
from core.errors import DealbookConfigError
from core.types import StoreSettings


@dataclass(frozen=True)
class DealbookConfig:
    """Validated runtime configuration.

    Attributes:
        data_file: Durable workbook path.
        max_backups: Backups retained after each commit.
        lock_retries: Attempts to acquire the cross-process lock marker.
        lock_retry_delay_seconds: Base backoff delay between lock attempts.
        lock_stale_seconds: Age after which an orphaned lock marker is broken.
        lookups_file: Optional YAML file overriding lookup tables.
    """

    data_file: Path
    max_backups: int
    lock_retries: int
    lock_retry_delay_seconds: float
    lock_stale_seconds: float
    lookups_file: Path | None

    @classmethod
    def from_env(cls) -> "DealbookConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            DealbookConfigError: If environment values are invalid.
        """
        data_file_value = os.getenv("DEALBOOK_DATA_FILE", str(DEFAULT_DATA_FILE))
        lookups_file_value = os.getenv("DEALBOOK_LOOKUPS_FILE")
        return cls(
            data_file=Path(data_file_value).expanduser().resolve(),
            max_backups=_parse_int(
                "DEALBOOK_MAX_BACKUPS", os.getenv("DEALBOOK_MAX_BACKUPS"), DEFAULT_MAX_BACKUPS, 0
            ),
            lock_retries=_parse_int(
                "DEALBOOK_LOCK_RETRIES", os.getenv("DEALBOOK_LOCK_RETRIES"), DEFAULT_LOCK_RETRIES, 1
            ),
            lock_retry_delay_seconds=_parse_seconds(
                "DEALBOOK_LOCK_RETRY_DELAY",
                os.getenv("DEALBOOK_LOCK_RETRY_DELAY"),
                DEFAULT_LOCK_RETRY_DELAY_SECONDS,
            ),
            lock_stale_seconds=_parse_seconds(
                "DEALBOOK_LOCK_STALE_SECONDS",
                os.getenv("DEALBOOK_LOCK_STALE_SECONDS"),
                DEFAULT_LOCK_STALE_SECONDS,
            ),
            lookups_file=(
                Path(lookups_file_value).expanduser().resolve()
                if lookups_file_value
                else None
            ),
        )

    def store_settings(self) -> StoreSettings:
        """Project the store tunables used by the workbook repository."""
        return StoreSettings(
            max_backups=self.max_backups,
            lock_retries=self.lock_retries,
            lock_retry_delay_seconds=self.lock_retry_delay_seconds,
            lock_stale_seconds=self.lock_stale_seconds,
            current_schema_version=CURRENT_SCHEMA_VERSION,
            supported_schema_versions=SUPPORTED_SCHEMA_VERSIONS,
        )


def _parse_int(env_name: str, raw_value: str | None, default: int, minimum: int) -> int:
    """Parse an integer environment value with a lower bound.

    Args:
        env_name: Variable name used in error messages.
        raw_value: Raw string from environment, or None when unset.
        default: Value used when unset.
        minimum: Smallest accepted value.

    Returns:
        Parsed integer.

    Raises:
        DealbookConfigError: If value is not an integer or is below minimum.
    """
    if raw_value is None:
        return default
    try:
        parsed_value = int(raw_value)
    except ValueError as error:
        raise DealbookConfigError(
            f"Invalid {env_name} value: expected integer, got '{raw_value}'. "
            f"Set {env_name} to a numeric value."
        ) from error
    if parsed_value < minimum:
        raise DealbookConfigError(
            f"Invalid {env_name} value: expected >= {minimum}, got {parsed_value}."
        )
    return parsed_value


def _parse_seconds(env_name: str, raw_value: str | None, default: float) -> float:
    if raw_value is None:
        return default
    try:
        parsed_value = float(raw_value)
    except ValueError as error:
        raise DealbookConfigError(
            f"Invalid {env_name} value: expected seconds, got '{raw_value}'. "
            f"Set {env_name} to a number such as 0.5."
        ) from error
    if parsed_value <= 0:
        raise DealbookConfigError(
            f"Invalid {env_name} value: expected positive seconds, got {parsed_value}."
        )
    return parsed_value
