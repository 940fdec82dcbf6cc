"""Core constants used across Dealbook modules.

This module centralizes workbook layout names, schema versions, and defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_FILE = Path(".dealbook") / "pipeline.xlsx"
DEALS_SHEET_NAME = "Deals"
LOOKUPS_SHEET_NAME = "Lookups"
METADATA_SHEET_NAME = "Metadata"
BACKUP_EXTENSION = ".bak"
LOCK_FILE_EXTENSION = ".lock"
TEMP_FILE_PREFIX = "~$"
TEMP_FILE_SUFFIX = ".tmp.xlsx"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"

SCHEMA_VERSION_1_0 = "1.0"
SCHEMA_VERSION_1_1 = "1.1"
SCHEMA_VERSION_1_2 = "1.2"
CURRENT_SCHEMA_VERSION = SCHEMA_VERSION_1_2
SUPPORTED_SCHEMA_VERSIONS = (SCHEMA_VERSION_1_0, SCHEMA_VERSION_1_1, SCHEMA_VERSION_1_2)
REQUIRED_DEAL_COLUMNS = ("DealId", "AccountName", "DealName", "Stage")

METADATA_PROPERTY_HEADER = "Property"
METADATA_VALUE_HEADER = "Value"
METADATA_VERSION_KEY = "Version"
METADATA_LAST_MODIFIED_KEY = "LastModified"
METADATA_DEAL_COUNT_KEY = "DealCount"
METADATA_GENERATED_BY_KEY = "GeneratedBy"
GENERATED_BY_VALUE = "Dealbook Sales Pipeline Manager"

DEFAULT_MAX_BACKUPS = 5
DEFAULT_LOCK_RETRIES = 10
DEFAULT_LOCK_RETRY_DELAY_SECONDS = 0.1
DEFAULT_LOCK_STALE_SECONDS = 30.0

DEFAULT_ACCOUNT_NAME = "Unknown"
DEFAULT_DEAL_NAME = "Unnamed Deal"
DEAL_ID_PREFIX = "D"
DEFAULT_ID_BASE_DATE = "2025-01-01"
MAP_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query="
