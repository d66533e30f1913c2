from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import AttributionQuery, ComponentKind, PowerProfile
from .estimator import estimate_attribution
from .io import load_usage_snapshot


logger = logging.getLogger("radio_power_calculator.cli")

EXIT_UNSUPPORTED = 3


def _existing_path(value: str) -> Path:
    path = Path(value)
    if not path.exists():
        raise argparse.ArgumentTypeError(f"File not found: {value}")
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="radio-power-calculator", add_help=True)
    parser.add_argument("--profile", required=True, type=_existing_path, help="Path to power profile (yaml)")
    parser.add_argument("--snapshot", required=True, type=_existing_path, help="Path to usage snapshot (json|yaml)")
    parser.add_argument("--query", type=_existing_path, default=None, help="Path to attribution query (yaml)")
    parser.add_argument(
        "--component",
        choices=[kind.value for kind in ComponentKind],
        default=None,
        help="Override the component kind recorded in the snapshot",
    )
    parser.add_argument("--per-state", action="store_true", help="Break consumer power down by process state")
    parser.add_argument(
        "--force-profile-model",
        action="store_true",
        help="Ignore controller-reported power and estimate from the power profile",
    )
    parser.add_argument(
        "--system-consumer",
        nargs="+",
        default=[],
        metavar="ID",
        help="Consumer ids folded into the system-only bucket (e.g. 1002)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write report JSON to this path (default: stdout)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log to stderr (-vv for debug)")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def _build_query(args: argparse.Namespace) -> AttributionQuery:
    # Command-line flags only ever switch options on; they never clear the file.
    base = AttributionQuery.from_yaml(args.query) if args.query is not None else AttributionQuery()
    return AttributionQuery(
        per_state_breakdown=base.per_state_breakdown or args.per_state,
        force_profile_model=base.force_profile_model or args.force_profile_model,
        system_consumer_ids=list(base.system_consumer_ids) + list(args.system_consumer),
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        profile = PowerProfile.from_yaml(args.profile)
        usage = load_usage_snapshot(args.snapshot)
        if args.component is not None:
            usage = usage.model_copy(update={"component": ComponentKind(args.component)})
        query = _build_query(args)
        report = estimate_attribution(
            usage,
            profile,
            query,
            paths={
                "profile": str(args.profile),
                "snapshot": str(args.snapshot),
            },
        )
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if report is None:
        print(f"error: {usage.component.value} activity reporting is not supported", file=sys.stderr)
        return EXIT_UNSUPPORTED

    logger.info("Attribution summary: %s", report.summary())
    payload = report.model_dump(mode="json")
    text = json.dumps(payload, indent=2, sort_keys=True)
    if args.output is None:
        print(text)
        return 0

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(text + "\n", encoding="utf-8")
    return 0
