"""Dealbook exception hierarchy.

Store failures share one base so callers can catch every durable-file
problem together. Field-level patch problems are reported as data instead.
"""

from __future__ import annotations


class DealbookError(Exception):
    """Base exception for all Dealbook failures."""


class DealbookConfigError(DealbookError):
    """Raised for invalid runtime configuration."""


class DealbookStoreError(DealbookError):
    """Raised for durable workbook store failures."""


class DealbookIntegrityError(DealbookStoreError):
    """Raised when a workbook fails structural validation and cannot be restored."""


class UnsupportedSchemaVersionError(DealbookStoreError):
    """Raised when a workbook carries a schema version outside the supported set."""


class LockTimeoutError(DealbookStoreError):
    """Raised when the cross-process lock marker cannot be acquired in time."""


class DealNotFoundError(DealbookError):
    """Raised when a caller requires a deal that does not exist."""
