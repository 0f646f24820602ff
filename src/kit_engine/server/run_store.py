"""In-memory tracking of kit runs started through the REST API.

Runs live as long as the process does. Durable storage of results belongs to
the caller, not to the engine.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime

from kit_engine.server.models import RunRecord


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RunStore:
    _runs: dict[str, RunRecord] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def list(self, *, session_id: str | None = None) -> list[RunRecord]:
        with self._lock:
            runs = list(self._runs.values())
        if session_id is not None:
            runs = [r for r in runs if r.session_id == session_id]
        return runs

    def get(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._runs.get(run_id)

    def create(self, *, run_id: str, session_id: str, kit_id: str) -> RunRecord:
        with self._lock:
            now = _utc_now()
            record = RunRecord(
                run_id=run_id,
                session_id=session_id,
                kit_id=kit_id,
                status="queued",
                created_at=now,
                updated_at=now,
            )
            self._runs[run_id] = record
            return record

    def update(self, run_id: str, **updates: object) -> RunRecord:
        with self._lock:
            current = self._runs.get(run_id)
            if current is None:
                raise KeyError(run_id)
            merged = current.model_copy(update={"updated_at": _utc_now(), **updates})
            self._runs[run_id] = merged
            return merged

    def forget_session(self, session_id: str) -> int:
        with self._lock:
            doomed = [rid for rid, r in self._runs.items() if r.session_id == session_id]
            for rid in doomed:
                del self._runs[rid]
            return len(doomed)
