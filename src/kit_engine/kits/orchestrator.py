"""Session-scoped kit execution.

The orchestrator owns one :class:`ExecutionContext` per session. It drives
kits through their lifecycle (atomically, stage by stage, or several at once),
lets kits in a session share state, and records every transition in the
session's event log.

Sessions live in memory for the lifetime of the process. Expired sessions are
only reclaimed when a caller runs :meth:`KitOrchestrator.cleanup_expired_sessions`;
the orchestrator starts no timers of its own.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kit_engine.config import EngineSettings
from kit_engine.kits.base import Kit
from kit_engine.kits.context import ExecutionContext, KitEventType, KitExecutionEvent
from kit_engine.kits.errors import UnknownSessionError
from kit_engine.kits.models import KitExecutionState, KitIntakeData, KitResult, utc_now
from kit_engine.kits.stages import KitStage

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT_SECONDS = 30 * 60
DEFAULT_MAX_CONCURRENT_KITS = 8

ExecutionListener = Callable[[KitExecutionEvent], None]
StageCallback = Callable[[str, KitExecutionState], None]
IntakeInput = KitIntakeData | Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class KitRun:
    """One entry for :meth:`KitOrchestrator.execute_multiple_kits`."""

    kit: Kit
    intake_data: IntakeInput


class KitOrchestrator:
    """Manage kit execution, state sharing and the audit trail per session."""

    def __init__(
        self,
        session_timeout_seconds: float | None = None,
        *,
        max_concurrent_kits: int = DEFAULT_MAX_CONCURRENT_KITS,
    ) -> None:
        if session_timeout_seconds is not None and session_timeout_seconds <= 0:
            raise ValueError("session_timeout_seconds must be positive")
        if max_concurrent_kits < 1:
            raise ValueError("max_concurrent_kits must be at least 1")

        self.session_timeout_seconds = float(
            session_timeout_seconds or DEFAULT_SESSION_TIMEOUT_SECONDS
        )
        self.max_concurrent_kits = max_concurrent_kits

        self._lock = threading.Lock()
        self._contexts: dict[str, ExecutionContext] = {}
        self._listeners: list[ExecutionListener] = []

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> KitOrchestrator:
        return cls(
            settings.session_timeout_seconds,
            max_concurrent_kits=settings.max_concurrent_kits,
        )

    # ------------------------------------------------------------------
    # Contexts
    # ------------------------------------------------------------------

    def create_context(self, session_id: str, user_id: str | None = None) -> ExecutionContext:
        """Create a fresh context, replacing any existing one for the session."""

        context = ExecutionContext(session_id, user_id)
        with self._lock:
            replaced = session_id in self._contexts
            self._contexts[session_id] = context
        if replaced:
            logger.warning("Execution context replaced", extra={"session_id": session_id})
        else:
            logger.debug("Execution context created", extra={"session_id": session_id})
        return context

    def get_or_create_context(
        self, session_id: str, user_id: str | None = None
    ) -> ExecutionContext:
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = ExecutionContext(session_id, user_id)
                self._contexts[session_id] = context
                logger.debug("Execution context created", extra={"session_id": session_id})
            return context

    def get_context(self, session_id: str) -> ExecutionContext | None:
        with self._lock:
            return self._contexts.get(session_id)

    def get_active_sessions(self) -> list[str]:
        with self._lock:
            return list(self._contexts)

    def cleanup_context(self, session_id: str) -> None:
        with self._lock:
            context = self._contexts.pop(session_id, None)
        if context is None:
            return
        context.clear()
        logger.info("Execution context cleaned up", extra={"session_id": session_id})

    def cleanup_expired_sessions(self) -> list[str]:
        """Drop every context older than the session timeout.

        Returns:
            The session ids that were removed.
        """

        with self._lock:
            expired = [
                session_id
                for session_id, context in self._contexts.items()
                if context.age_seconds() > self.session_timeout_seconds
            ]
        for session_id in expired:
            self.cleanup_context(session_id)
        if expired:
            logger.info(
                "Expired sessions swept",
                extra={"count": len(expired), "timeout_seconds": self.session_timeout_seconds},
            )
        return expired

    # ------------------------------------------------------------------
    # Registration and execution
    # ------------------------------------------------------------------

    def register_kit(self, session_id: str, kit: Kit) -> None:
        """Make ``kit`` the active instance of its kind in the session."""

        context = self.get_or_create_context(session_id, kit.user_id)
        context.put_kit(kit)
        self._log_event(context, KitEventType.STARTED, kit.kit_id)

    def execute_kit(self, session_id: str, kit: Kit, intake_data: IntakeInput) -> KitResult:
        """Run ``kit`` through its full workflow in one call."""

        context = self.get_or_create_context(session_id, kit.user_id)
        self.register_kit(session_id, kit)
        return self._run_full_workflow(context, kit, intake_data)

    def _run_full_workflow(
        self, context: ExecutionContext, kit: Kit, intake_data: IntakeInput
    ) -> KitResult:
        try:
            result = kit.execute_full_workflow(intake_data)
        except Exception as e:
            self._log_event(context, KitEventType.ERROR, kit.kit_id, data={"error": str(e)})
            raise

        self._log_event(context, KitEventType.COMPLETED, kit.kit_id, data={"result": result})
        return result

    def execute_kit_with_tracking(
        self,
        session_id: str,
        kit: Kit,
        intake_data: IntakeInput,
        on_stage_complete: StageCallback | None = None,
    ) -> KitResult:
        """Run ``kit`` stage by stage, reporting after each of the first four stages.

        ``on_stage_complete`` receives the stage name and a state snapshot taken
        right after that stage committed.
        """

        context = self.get_or_create_context(session_id, kit.user_id)
        self.register_kit(session_id, kit)

        steps: list[tuple[KitStage, Callable[[], KitExecutionState]]] = [
            (KitStage.INTAKE, lambda: kit.intake(intake_data)),
            (KitStage.ANALYSIS, kit.analysis),
            (KitStage.DOCUMENT, kit.document),
            (KitStage.GUIDANCE, kit.guidance),
        ]
        try:
            for stage, step in steps:
                state = step()
                # Stamped with the commit time so the log orders stage
                # completions by when they happened, not by who appended first.
                self._log_event(
                    context,
                    KitEventType.STAGE_COMPLETED,
                    kit.kit_id,
                    stage=stage.value,
                    data=state,
                    timestamp=state.last_modified,
                )
                if on_stage_complete is not None:
                    on_stage_complete(stage.value, state)

            result = kit.complete()
        except Exception as e:
            self._log_event(context, KitEventType.ERROR, kit.kit_id, data={"error": str(e)})
            raise

        self._log_event(context, KitEventType.COMPLETED, kit.kit_id, data={"result": result})
        return result

    def execute_multiple_kits(
        self,
        session_id: str,
        runs: Sequence[KitRun | tuple[Kit, IntakeInput]],
    ) -> list[KitResult]:
        """Run several kits of one session concurrently.

        Results come back in input order. Every kit is allowed to settle; if any
        failed, the failure of the earliest failing input is raised afterwards.
        The other failures are still recorded as ``error`` events.
        """

        entries = [r if isinstance(r, KitRun) else KitRun(*r) for r in runs]
        if not entries:
            return []

        context = self.get_or_create_context(session_id)
        for entry in entries:
            self.register_kit(session_id, entry.kit)

        workers = min(self.max_concurrent_kits, len(entries))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kit-run") as pool:
            futures = [
                pool.submit(self._run_full_workflow, context, entry.kit, entry.intake_data)
                for entry in entries
            ]

        results: list[KitResult] = []
        failure: BaseException | None = None
        for entry, future in zip(entries, futures):
            error = future.exception()
            if error is None:
                results.append(future.result())
                continue
            logger.warning(
                "Concurrent kit failed",
                extra={"session_id": session_id, "kit_id": entry.kit.kit_id, "error": str(error)},
            )
            if failure is None:
                failure = error

        if failure is not None:
            raise failure
        return results

    # ------------------------------------------------------------------
    # Shared state
    # ------------------------------------------------------------------

    def share_state_to_kit(self, session_id: str, kit_id: str, key: str, value: Any) -> None:
        context = self.get_context(session_id)
        if context is None:
            raise UnknownSessionError(session_id)
        context.set_shared(key, value)
        logger.debug(
            "Shared state updated",
            extra={"session_id": session_id, "kit_id": kit_id, "key": key},
        )

    def get_shared_state(self, session_id: str, key: str | None = None) -> Any:
        """Return one shared value, or a copy of the whole map when ``key`` is None."""

        context = self.get_context(session_id)
        if context is None:
            raise UnknownSessionError(session_id)
        if key is None:
            return context.shared_state
        return context.get_shared(key)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def get_execution_log(self, session_id: str) -> list[KitExecutionEvent]:
        context = self.get_context(session_id)
        return context.execution_log if context is not None else []

    def on_execution_event(self, listener: ExecutionListener) -> Callable[[], None]:
        """Subscribe to events from every session.

        Listeners run synchronously on the thread that produced the event, after
        the event has been appended and outside any orchestrator lock.

        Returns:
            A callable that removes the listener again.
        """

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _log_event(
        self,
        context: ExecutionContext,
        type: KitEventType,
        kit_id: str,
        *,
        stage: str | None = None,
        data: Any = None,
        timestamp: datetime | None = None,
    ) -> KitExecutionEvent:
        with self._lock:
            live = self._contexts.get(context.session_id) is context
            listeners = list(self._listeners)

        if live:
            event = context.record_event(
                type, kit_id, stage=stage, data=data, timestamp=timestamp
            )
        else:
            # The session was cleaned up mid-run; listeners still hear about it.
            event = KitExecutionEvent(
                type=type,
                kit_id=kit_id,
                session_id=context.session_id,
                timestamp=timestamp or utc_now(),
                stage=stage,
                data=copy.deepcopy(data),
            )

        logger.info(
            "Kit event",
            extra={
                "event_type": type.value,
                "kit_id": kit_id,
                "session_id": context.session_id,
                "stage": stage,
            },
        )

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Execution event listener failed",
                    extra={"event_type": type.value, "session_id": context.session_id},
                )
        return event
