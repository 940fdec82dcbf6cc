"""CLI wiring for the patch command."""

from __future__ import annotations

import argparse
import json
from typing import Any

from cli.deal_payload import patch_result_to_payload
from store.pipeline_client import PipelineClient
from transforms.deal_patch import PATCHABLE_FIELD_NAMES


def add_patch_command(subparsers: Any) -> None:
    """Register patch command arguments."""
    parser = subparsers.add_parser(
        "patch",
        help="Update selected fields of one deal",
        description=(
            "Apply FIELD=VALUE updates to a deal. An empty VALUE clears optional fields. "
            f"Patchable fields: {', '.join(PATCHABLE_FIELD_NAMES)}"
        ),
    )
    parser.add_argument("deal_id", help="Deal id")
    parser.add_argument(
        "assignments",
        nargs="+",
        metavar="FIELD=VALUE",
        type=_parse_assignment,
        help="Field assignment, e.g. Owner=Alice or Probability=60",
    )


async def run_patch_command(client: PipelineClient, args: argparse.Namespace) -> int:
    """Execute a patch and print the structured result.

    Returns:
        Zero only when every requested field was applied.
    """
    patch: dict[str, object] = dict(args.assignments)
    result = await client.patch_deal(args.deal_id, patch)
    print(json.dumps(patch_result_to_payload(result), indent=2))
    return 0 if result.success else 1


def _parse_assignment(raw_value: str) -> tuple[str, str | None]:
    field_name, separator, value = raw_value.partition("=")
    if not separator or not field_name.strip():
        raise argparse.ArgumentTypeError(
            f"Invalid assignment '{raw_value}'. Use FIELD=VALUE, e.g. Owner=Alice."
        )
    return field_name.strip(), value if value else None
