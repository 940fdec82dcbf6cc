"""Public SDK surface for Dealbook.

This module provides a stable import path for library users.
It re-exports the client, repositories, and typed models.
"""

from __future__ import annotations

from core.config import DealbookConfig
from core.deal_stages import DEAL_STAGES, DealStage
from core.errors import (
    DealbookConfigError,
    DealbookError,
    DealbookIntegrityError,
    DealbookStoreError,
    DealNotFoundError,
    LockTimeoutError,
    UnsupportedSchemaVersionError,
)
from core.lookup_tables import LookupTables
from core.system_context import (
    FixedClock,
    SeededIdGenerator,
    SequentialIdGenerator,
    SystemClock,
    SystemContext,
)
from core.types import Deal, DealFilter, NormalizationResult, PatchResult, ValidationResult
from store.memory_repository import InMemoryDealRepository
from store.pipeline_client import PipelineClient
from store.workbook_repository import WorkbookDealRepository
from transforms.deal_normalizer import DealNormalizer

__all__ = [
    "DEAL_STAGES",
    "Deal",
    "DealFilter",
    "DealNormalizer",
    "DealNotFoundError",
    "DealStage",
    "DealbookConfig",
    "DealbookConfigError",
    "DealbookError",
    "DealbookIntegrityError",
    "DealbookStoreError",
    "FixedClock",
    "InMemoryDealRepository",
    "LockTimeoutError",
    "LookupTables",
    "NormalizationResult",
    "PatchResult",
    "PipelineClient",
    "SeededIdGenerator",
    "SequentialIdGenerator",
    "SystemClock",
    "SystemContext",
    "UnsupportedSchemaVersionError",
    "ValidationResult",
    "WorkbookDealRepository",
]
