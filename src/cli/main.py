"""Dealbook CLI entry points.
This module exposes pipeline commands for listing, patching, and workbook care.
It maps argparse commands onto client calls and prints JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Sequence

from cli.deal_payload import backups_to_payload, deal_to_payload, validation_to_payload
from cli.patch_command import add_patch_command, run_patch_command
from core.config import DealbookConfig
from core.deal_stages import DealStage, parse_stage_strict
from core.errors import DealbookError
from core.types import DealFilter
from store.pipeline_client import PipelineClient
from store.workbook_repository import WorkbookDealRepository


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="dealbook", description="Dealbook pipeline CLI")
    parser.add_argument("--data-file", help="Override DEALBOOK_DATA_FILE for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_list_command(subparsers)
    _add_show_command(subparsers)
    add_patch_command(subparsers)
    _add_delete_command(subparsers)
    subparsers.add_parser("validate", help="Check workbook structure and schema version")
    subparsers.add_parser("backups", help="List workbook backups, newest first")
    subparsers.add_parser("restore", help="Restore the workbook from its newest backup")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Dealbook CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        client = _build_client(args.data_file)
        return asyncio.run(_dispatch(client, args))
    except DealbookError as error:
        print(f"error={error}", file=sys.stderr)
        return 1


def _build_client(data_file: str | None) -> PipelineClient:
    """Build a client with an optional data-file override.

    Args:
        data_file: Optional override path.

    Returns:
        Configured client.
    """
    config = DealbookConfig.from_env()
    if data_file:
        config = replace(config, data_file=Path(data_file).expanduser().resolve())
    return PipelineClient.from_config(config)


async def _dispatch(client: PipelineClient, args: argparse.Namespace) -> int:
    if args.command == "list":
        return await _run_list_command(client, args)
    if args.command == "show":
        return await _run_show_command(client, args)
    if args.command == "patch":
        return await run_patch_command(client, args)
    if args.command == "delete":
        return await _run_delete_command(client, args)
    repository = _workbook_repository(client)
    if args.command == "validate":
        result = await repository.validate()
        _print_json(validation_to_payload(result))
        return 0 if result.is_valid else 1
    if args.command == "backups":
        _print_json(backups_to_payload(repository.list_backups()))
        return 0
    if args.command == "restore":
        restored = await repository.restore_from_backup()
        _print_json({"restored": restored})
        return 0 if restored else 1
    raise DealbookError(f"Unsupported command: {args.command}")


async def _run_list_command(client: PipelineClient, args: argparse.Namespace) -> int:
    """Handle list command.

    Args:
        client: Pipeline client.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    deal_filter = DealFilter(
        search_text=args.search,
        stages=tuple(args.stage or ()),
        owner=args.owner,
        region=args.region,
        min_amount=args.min_amount,
        max_amount=args.max_amount,
        has_overdue_next_step=True if args.overdue else None,
        tags=tuple(args.tag or ()),
        promoter_id=args.promoter,
    )
    deals = await client.list_deals(deal_filter, args.reference_date)
    _print_json([deal_to_payload(deal) for deal in deals])
    return 0


async def _run_show_command(client: PipelineClient, args: argparse.Namespace) -> int:
    deal = await client.require_deal(args.deal_id)
    _print_json(deal_to_payload(deal))
    return 0


async def _run_delete_command(client: PipelineClient, args: argparse.Namespace) -> int:
    deleted = await client.delete_deal(args.deal_id)
    _print_json({"deal_id": args.deal_id, "deleted": deleted})
    return 0 if deleted else 1


def _add_list_command(subparsers: Any) -> None:
    """Register list command arguments."""
    parser = subparsers.add_parser("list", help="List deals matching optional filters")
    parser.add_argument("--owner", help="Owner, case-insensitive")
    parser.add_argument(
        "--stage",
        action="append",
        type=_stage_argument,
        help="Stage to include; repeat for several",
    )
    parser.add_argument("--region", help="Region, case-insensitive")
    parser.add_argument("--search", help="Text searched in name, account, contact, id, owner")
    parser.add_argument("--min-amount", type=_amount_argument, help="Minimum amount in GBP")
    parser.add_argument("--max-amount", type=_amount_argument, help="Maximum amount in GBP")
    parser.add_argument("--tag", action="append", help="Required tag; repeat for several")
    parser.add_argument("--promoter", help="Promoter id, case-insensitive")
    parser.add_argument("--overdue", action="store_true", help="Only deals with overdue next steps")
    parser.add_argument(
        "--reference-date",
        type=date.fromisoformat,
        help="Day used for overdue checks (YYYY-MM-DD); defaults to today",
    )


def _add_show_command(subparsers: Any) -> None:
    parser = subparsers.add_parser("show", help="Show one deal")
    parser.add_argument("deal_id", help="Deal id")


def _add_delete_command(subparsers: Any) -> None:
    parser = subparsers.add_parser("delete", help="Delete one deal")
    parser.add_argument("deal_id", help="Deal id")


def _workbook_repository(client: PipelineClient) -> WorkbookDealRepository:
    repository = client.repository
    if not isinstance(repository, WorkbookDealRepository):
        raise DealbookError("Workbook commands require a workbook-backed client.")
    return repository


def _stage_argument(raw_value: str) -> DealStage:
    try:
        return parse_stage_strict(raw_value)
    except ValueError as error:
        raise argparse.ArgumentTypeError(str(error)) from error


def _amount_argument(raw_value: str) -> Decimal:
    try:
        return Decimal(raw_value)
    except InvalidOperation as error:
        raise argparse.ArgumentTypeError(f"Invalid amount '{raw_value}'.") from error


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2))
