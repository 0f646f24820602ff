"""Background runner for kit runs started over HTTP."""

from __future__ import annotations

import logging
import threading
import uuid

from kit_engine.kits.base import Kit
from kit_engine.kits.errors import IntakeValidationError
from kit_engine.kits.models import KitExecutionState, KitIntakeData
from kit_engine.kits.orchestrator import KitOrchestrator
from kit_engine.server.run_store import RunStore

logger = logging.getLogger(__name__)


def start_kit_run(
    *,
    session_id: str,
    kit: Kit,
    intake: KitIntakeData,
    orchestrator: KitOrchestrator,
    run_store: RunStore,
) -> str:
    run_id = uuid.uuid4().hex
    run_store.create(run_id=run_id, session_id=session_id, kit_id=kit.kit_id)

    thread = threading.Thread(
        target=_run_job,
        name=f"kit-run-{kit.kit_id}-{run_id}",
        daemon=True,
        kwargs={
            "run_id": run_id,
            "session_id": session_id,
            "kit": kit,
            "intake": intake,
            "orchestrator": orchestrator,
            "run_store": run_store,
        },
    )
    thread.start()
    return run_id


def _update(run_store: RunStore, run_id: str, **updates: object) -> None:
    # The session may be deleted while its runs are still in flight.
    try:
        run_store.update(run_id, **updates)
    except KeyError:
        logger.debug("Run record no longer tracked", extra={"run_id": run_id})


def _run_job(
    *,
    run_id: str,
    session_id: str,
    kit: Kit,
    intake: KitIntakeData,
    orchestrator: KitOrchestrator,
    run_store: RunStore,
) -> None:
    _update(run_store, run_id, status="running")

    def on_stage_complete(_stage: str, state: KitExecutionState) -> None:
        _update(
            run_store,
            run_id,
            current_stage=state.current_stage.value,
            progress=state.progress,
            completed_stages=[s.value for s in state.completed_stages],
        )

    try:
        result = orchestrator.execute_kit_with_tracking(
            session_id, kit, intake, on_stage_complete=on_stage_complete
        )
    except IntakeValidationError as e:
        logger.warning("Kit run rejected", extra={"run_id": run_id, "reason": e.reason})
        _update(run_store, run_id, status="failed", error=str(e))
        return
    except Exception as e:
        logger.exception("Kit run failed", extra={"run_id": run_id, "kit_id": kit.kit_id})
        _update(run_store, run_id, status="failed", error=str(e))
        return

    state = kit.get_state()
    _update(
        run_store,
        run_id,
        status="succeeded",
        current_stage=state.current_stage.value,
        progress=state.progress,
        completed_stages=[s.value for s in state.completed_stages],
        result=result.model_dump(mode="json"),
    )
