"""Per-session bookkeeping owned by the orchestrator."""

from __future__ import annotations

import bisect
import copy
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from kit_engine.kits.models import utc_now

if TYPE_CHECKING:
    from kit_engine.kits.base import Kit


class KitEventType(str, Enum):
    STARTED = "started"
    STAGE_COMPLETED = "stage-completed"
    ERROR = "error"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class KitExecutionEvent:
    """An immutable entry in a session's audit trail."""

    type: KitEventType
    kit_id: str
    session_id: str
    timestamp: datetime = field(default_factory=utc_now)
    stage: str | None = None
    data: Any = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "type": self.type.value,
            "kit_id": self.kit_id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.stage is not None:
            out["stage"] = self.stage
        if self.data is not None:
            out["data"] = _jsonable(self.data)
        return out


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ExecutionContext:
    """Active kits, shared state and event log for one session.

    All three collections are guarded by a single lock. Accessors hand out
    copies; nothing here returns a live reference to internal storage.
    """

    def __init__(self, session_id: str, user_id: str | None = None) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.started_at: datetime = utc_now()
        self._started_monotonic = time.monotonic()
        self._lock = threading.Lock()
        self._active_kits: dict[str, Kit] = {}
        self._shared_state: dict[str, Any] = {}
        self._execution_log: list[KitExecutionEvent] = []

    def __repr__(self) -> str:
        return f"ExecutionContext(session_id={self.session_id!r}, user_id={self.user_id!r})"

    def age_seconds(self, now: float | None = None) -> float:
        current = time.monotonic() if now is None else now
        return current - self._started_monotonic

    @property
    def active_kits(self) -> dict[str, Kit]:
        with self._lock:
            return dict(self._active_kits)

    @property
    def shared_state(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._shared_state)

    @property
    def execution_log(self) -> list[KitExecutionEvent]:
        with self._lock:
            events = list(self._execution_log)
        # Stored payloads are never mutated, so copying outside the lock is safe.
        return [_detached(event) for event in events]

    def get_kit(self, kit_id: str) -> Kit | None:
        with self._lock:
            return self._active_kits.get(kit_id)

    def put_kit(self, kit: Kit) -> None:
        with self._lock:
            self._active_kits[kit.kit_id] = kit

    def set_shared(self, key: str, value: Any) -> None:
        with self._lock:
            self._shared_state[key] = value

    def get_shared(self, key: str) -> Any:
        with self._lock:
            return self._shared_state.get(key)

    def record_event(
        self,
        type: KitEventType,
        kit_id: str,
        *,
        stage: str | None = None,
        data: Any = None,
        timestamp: datetime | None = None,
    ) -> KitExecutionEvent:
        """Stamp and append an event in one step.

        The log stays sorted by timestamp. Without an explicit ``timestamp`` the
        event is stamped under the lock and lands at the end. An explicit one,
        such as the moment a stage committed, is slotted in by time after any
        event carrying the same stamp.

        The log keeps its own deep copy of ``data`` and the returned event carries
        another one, so neither the producer nor a listener can rewrite what was
        recorded.
        """

        payload = copy.deepcopy(data)
        with self._lock:
            event = KitExecutionEvent(
                type=type,
                kit_id=kit_id,
                session_id=self.session_id,
                timestamp=timestamp or utc_now(),
                stage=stage,
                data=payload,
            )
            bisect.insort(self._execution_log, event, key=_event_time)
        return _detached(event)

    def clear(self) -> None:
        with self._lock:
            self._active_kits.clear()
            self._execution_log.clear()


def _detached(event: KitExecutionEvent) -> KitExecutionEvent:
    if event.data is None:
        return event
    return replace(event, data=copy.deepcopy(event.data))


def _event_time(event: KitExecutionEvent) -> datetime:
    return event.timestamp
