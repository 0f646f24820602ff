#!/usr/bin/env python3
"""Programmatic usage example.

This demonstrates using the engine components directly:

* build a registry and an orchestrator from `.env` settings
* run two kits concurrently under one session
* share a value between them and print the session's audit trail
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from kit_engine.config import EngineSettings
from kit_engine.kits import KitExecutionEvent, KitOrchestrator, KitRun
from kit_engine.kits.builtin import GENERAL_MATTER_KIT_ID, build_default_registry
from kit_engine.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run two kits concurrently in one session.")
    parser.add_argument("--session-id", default="example-session", help="Session id to use")
    parser.add_argument(
        "--jurisdiction", default="Ontario", help='Jurisdiction for both matters (e.g. "Ontario")'
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level, settings.log_format)

    registry = build_default_registry()
    orchestrator = KitOrchestrator.from_settings(settings)

    def print_event(event: KitExecutionEvent) -> None:
        print(f"event: {event.type.value:<15} kit={event.kit_id} stage={event.stage or '-'}")

    orchestrator.on_execution_event(print_event)
    orchestrator.create_context(args.session_id)
    orchestrator.share_state_to_kit(
        args.session_id, GENERAL_MATTER_KIT_ID, "jurisdiction", args.jurisdiction
    )

    first = registry.create_kit(GENERAL_MATTER_KIT_ID, args.session_id)
    second = registry.create_kit(GENERAL_MATTER_KIT_ID, args.session_id)
    if first is None or second is None:
        print(f"Unknown kit: {GENERAL_MATTER_KIT_ID}", file=sys.stderr)
        return 2

    where = {"jurisdiction": args.jurisdiction}
    results = orchestrator.execute_multiple_kits(
        args.session_id,
        [
            KitRun(first, {"description": "Landlord has not fixed the heating", **where}),
            KitRun(second, {"description": "Employer withheld final pay", **where}),
        ],
    )

    for result in results:
        print(json.dumps(result.classification, ensure_ascii=False))
    print(f"Shared state: {orchestrator.get_shared_state(args.session_id)}")
    print(f"Events logged: {len(orchestrator.get_execution_log(args.session_id))}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
