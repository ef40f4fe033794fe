from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from dotenv import load_dotenv

from staffsync.app import collect_snapshots, match_staff, reconstruct_states
from staffsync.config import configure_logging
from staffsync.domain.model import CollectionMode, ReconstructionMode
from staffsync.triggers import handle_trigger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise Employes staff data")
    subparsers = parser.add_subparsers(dest="command", required=True)

    collect = subparsers.add_parser("collect", help="Collect Employes snapshots")
    collect.add_argument(
        "--mode",
        choices=[mode.value for mode in CollectionMode],
        default=CollectionMode.TEST.value,
        help="Which employees to collect (default: %(default)s)",
    )
    collect.add_argument(
        "--entity-id",
        dest="entity_ids",
        action="append",
        help="Employee id to collect in specific mode (repeatable)",
    )
    collect.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of employees fetched per batch (defaults to config)",
    )
    collect.add_argument(
        "--reconstruct",
        action="store_true",
        help="Reconstruct states for employees that received new events",
    )

    reconstruct = subparsers.add_parser("reconstruct", help="Reconstruct employee states")
    reconstruct.add_argument(
        "--mode",
        choices=[mode.value for mode in ReconstructionMode],
        required=True,
        help="Reconstruction scope",
    )
    reconstruct.add_argument(
        "--entity-id",
        type=str,
        help="Employee id for single_employee mode",
    )
    reconstruct.add_argument(
        "--event-id",
        type=str,
        help="Timeline event id for single_event mode",
    )
    reconstruct.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of employees reconstructed per batch (defaults to config)",
    )
    reconstruct.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute states without persisting them",
    )

    match = subparsers.add_parser("match", help="Match Employes employees to staff records")
    match.add_argument(
        "--dry-run",
        action="store_true",
        help="Report matches without creating, updating or logging anything",
    )

    trigger = subparsers.add_parser("trigger", help="Run a JSON invocation request")
    trigger.add_argument(
        "request",
        type=str,
        help='JSON request, e.g. \'{"mode": "backfill_all", "dry_run": true}\'',
    )

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _parse_request(value: str) -> dict[str, Any]:
    try:
        request = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON request: {exc}") from exc
    if not isinstance(request, dict):
        raise ValueError("Trigger request must be a JSON object")
    return request


def _emit(data: object) -> None:
    sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")


def _validate(parsed_args: argparse.Namespace) -> None:
    if parsed_args.command == "collect":
        if parsed_args.mode == CollectionMode.SPECIFIC and not parsed_args.entity_ids:
            raise ValueError("specific mode requires at least one --entity-id")
    elif parsed_args.command == "reconstruct":
        if parsed_args.mode == ReconstructionMode.SINGLE_EVENT and not parsed_args.event_id:
            raise ValueError("single_event mode requires --event-id")
        if parsed_args.mode == ReconstructionMode.SINGLE_EMPLOYEE and not parsed_args.entity_id:
            raise ValueError("single_employee mode requires --entity-id")
    if getattr(parsed_args, "batch_size", None) is not None and parsed_args.batch_size < 1:
        raise ValueError("Batch size must be positive")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
        event_id = (
            _parse_uuid(parsed_args.event_id)
            if parsed_args.command == "reconstruct" and parsed_args.event_id
            else None
        )
        request = (
            _parse_request(parsed_args.request) if parsed_args.command == "trigger" else None
        )
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "collect":
            run = collect_snapshots(
                parsed_args.mode,
                entity_ids=parsed_args.entity_ids,
                batch_size=parsed_args.batch_size,
                reconstruct=parsed_args.reconstruct,
            )
            _emit(run.summary())
        elif parsed_args.command == "reconstruct":
            result = reconstruct_states(
                parsed_args.mode,
                entity_id=parsed_args.entity_id,
                event_id=event_id,
                dry_run=parsed_args.dry_run,
                batch_size=parsed_args.batch_size,
            )
            _emit(result.summary())
        elif parsed_args.command == "match":
            _emit(match_staff(apply=not parsed_args.dry_run).summary())
        elif parsed_args.command == "trigger" and request is not None:
            response = handle_trigger(request)
            _emit(response.model_dump(mode="json"))
            if not response.success:
                sys.exit(1)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
