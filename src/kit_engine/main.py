"""CLI entrypoint for the kit engine.

Lists the kit catalog and runs a kit for a single session, printing JSON.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from kit_engine import __version__
from kit_engine.config import EngineSettings
from kit_engine.kits.builtin import build_default_registry
from kit_engine.kits.errors import IntakeValidationError, KitError
from kit_engine.kits.models import KitExecutionState, KitIntakeData
from kit_engine.kits.orchestrator import KitOrchestrator
from kit_engine.kits.registry import KitRegistry
from kit_engine.logging import configure_logging

logger = logging.getLogger(__name__)


def _parse_fields(values: list[str] | None) -> dict[str, str]:
    fields: dict[str, str] = {}
    for raw in values or []:
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --field {raw!r}; expected KEY=VALUE")
        fields[key.strip()] = value
    return fields


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kit-engine",
        description="Run decision-support kits through their five-stage lifecycle",
    )
    parser.add_argument("--version", action="version", version=f"kit-engine {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_kits = subparsers.add_parser("list-kits", help="Show the active kit catalog")
    list_kits.add_argument("--domain", default=None, help="Only kits covering this domain")
    list_kits.add_argument("--tag", default=None, help="Only kits carrying this tag")

    run_kit = subparsers.add_parser("run-kit", help="Run a kit and print its result")
    run_kit.add_argument("--kit-id", required=True, help="Registered kit id, e.g. general-matter")
    run_kit.add_argument("--description", required=True, help="Description of the matter")
    run_kit.add_argument("--jurisdiction", default=None, help="Jurisdiction, e.g. Ontario")
    run_kit.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=None,
        help="Tag for the matter (repeatable)",
    )
    run_kit.add_argument(
        "--field",
        dest="fields",
        action="append",
        default=None,
        help="Kit-specific field as KEY=VALUE (repeatable)",
    )
    run_kit.add_argument("--session-id", default=None, help="Session id (generated if omitted)")
    run_kit.add_argument("--user-id", default=None, help="Optional user id")
    run_kit.add_argument(
        "--track",
        action="store_true",
        help="Run stage by stage and print a progress line after each stage",
    )

    return parser


def main(argv: list[str] | None = None, *, registry: KitRegistry | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_format)
    registry = registry if registry is not None else build_default_registry()

    try:
        if args.command == "list-kits":
            if args.domain or args.tag:
                matches = registry.search_kits(
                    domains=[args.domain] if args.domain else None,
                    tags=[args.tag] if args.tag else None,
                )
                _print_json([m.to_summary().model_dump(mode="json") for m in matches])
            else:
                _print_json(registry.get_summary().model_dump(mode="json"))
            return 0

        if args.command == "run-kit":
            try:
                custom_fields = _parse_fields(args.fields)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                return 2

            kit = registry.create_kit(args.kit_id, args.session_id, args.user_id)
            if kit is None:
                print(f"Unknown kit: {args.kit_id}", file=sys.stderr)
                return 2

            intake = KitIntakeData(
                description=args.description,
                jurisdiction=args.jurisdiction,
                tags=args.tags,
                custom_fields=custom_fields,
            )
            orchestrator = KitOrchestrator.from_settings(settings)

            if args.track:

                def report(stage: str, state: KitExecutionState) -> None:
                    print(f"[{state.progress:3d}%] {stage} completed", file=sys.stderr)

                result = orchestrator.execute_kit_with_tracking(
                    kit.session_id, kit, intake, on_stage_complete=report
                )
            else:
                result = orchestrator.execute_kit(kit.session_id, kit, intake)

            _print_json(result.model_dump(mode="json"))
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except IntakeValidationError as e:
        logger.warning(str(e), extra={"reason": e.reason})
        print(str(e), file=sys.stderr)
        return 3

    except KitError as e:
        logger.error(str(e))
        print(str(e), file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
