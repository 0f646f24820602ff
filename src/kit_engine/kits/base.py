"""Kit driver and the hook protocol concrete workflows implement.

A concrete workflow never subclasses the driver. It implements
:class:`KitHooks`, and a :class:`Kit` holds those hooks together with the
run's :class:`KitExecutionState`:

    kit = Kit(RentIncreaseHooks(), session_id="s-1")
    result = kit.execute_full_workflow(KitIntakeData(description="..."))

Each lifecycle operation runs its hook against a private working copy of the
state and only swaps it in once the hook succeeded, so a failing stage leaves
the committed state exactly as it was.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, Protocol

from pydantic import ValidationError

from kit_engine.kits.errors import (
    IllegalTransitionError,
    IncompleteLifecycleError,
    IntakeValidationError,
    KitError,
    StageExecutionError,
)
from kit_engine.kits.models import (
    GuidanceArtifact,
    KitExecutionState,
    KitIntakeData,
    KitResult,
    utc_now,
)
from kit_engine.kits.stages import (
    PROGRESS_AFTER_STAGE,
    PROGRESS_COMPLETE,
    KitStage,
    check_transition,
    next_stage,
)

logger = logging.getLogger(__name__)


class KitWorkspace:
    """What a stage hook may see and touch while its stage runs.

    Hooks get a read-only view of the run plus two writable maps. Writes land
    in the stage's working copy and are committed only if the stage succeeds.
    """

    def __init__(self, state: KitExecutionState) -> None:
        self._state = state

    @property
    def kit_id(self) -> str:
        return self._state.kit_id

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def user_id(self) -> str | None:
        return self._state.user_id

    @property
    def state(self) -> KitExecutionState:
        return self._state.model_copy(deep=True)

    @property
    def user_inputs(self) -> Mapping[str, Any]:
        return MappingProxyType(self._state.user_inputs)

    @property
    def system_context(self) -> Mapping[str, Any]:
        return MappingProxyType(self._state.system_context)

    # Result slots are handed out as copies: once a stage has committed its
    # slot, later hooks must not be able to rewrite it.

    @property
    def analysis_result(self) -> Any | None:
        return copy.deepcopy(self._state.analysis_result)

    @property
    def documents(self) -> list[Any]:
        return copy.deepcopy(list(self._state.documents or []))

    @property
    def action_plan(self) -> Any | None:
        return copy.deepcopy(self._state.action_plan)

    @property
    def guidance(self) -> str | None:
        return self._state.guidance

    def update_user_inputs(self, key: str, value: Any) -> None:
        self._state.user_inputs[key] = value
        self._state.last_modified = utc_now()

    def update_system_context(self, key: str, value: Any) -> None:
        self._state.system_context[key] = value
        self._state.last_modified = utc_now()


class KitHooks(Protocol):
    """The workflow-specific half of a kit.

    ``validate_intake`` raises :class:`IntakeValidationError` (or ``ValueError``)
    to reject a submission. Any other exception raised by a hook is reported as
    a :class:`StageExecutionError` for that stage.
    """

    kit_id: str
    name: str
    description: str

    def validate_intake(self, data: KitIntakeData) -> None: ...

    def perform_intake(self, data: KitIntakeData, workspace: KitWorkspace) -> None: ...

    def perform_analysis(self, workspace: KitWorkspace) -> Any: ...

    def generate_documents(self, workspace: KitWorkspace) -> list[Any]: ...

    def generate_guidance(self, workspace: KitWorkspace) -> GuidanceArtifact: ...

    def finalize(self, workspace: KitWorkspace) -> KitResult: ...


def generate_session_id(kit_id: str) -> str:
    return f"kit-{kit_id}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class Kit:
    """One run of a workflow through the five-stage lifecycle."""

    def __init__(
        self,
        hooks: KitHooks,
        *,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self._hooks = hooks
        self._lock = threading.Lock()
        self._state = KitExecutionState(
            session_id=session_id or generate_session_id(hooks.kit_id),
            user_id=user_id,
            kit_id=hooks.kit_id,
        )

    def __repr__(self) -> str:
        return (
            f"Kit(kit_id={self.kit_id!r}, session_id={self.session_id!r}, "
            f"stage={self._state.current_stage.value!r})"
        )

    @property
    def hooks(self) -> KitHooks:
        return self._hooks

    @property
    def kit_id(self) -> str:
        return self._hooks.kit_id

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def user_id(self) -> str | None:
        return self._state.user_id

    @property
    def current_stage(self) -> KitStage:
        return self._state.current_stage

    @property
    def progress(self) -> int:
        return self._state.progress

    def get_state(self) -> KitExecutionState:
        """Return a copy of the current state, safe to hand to other threads."""

        # Committed states are never mutated in place, only replaced.
        return self._state.model_copy(deep=True)

    def get_metadata(self) -> dict[str, str | None]:
        return {
            "kit_id": self.kit_id,
            "kit_name": self._hooks.name,
            "kit_description": self._hooks.description,
            "session_id": self.session_id,
            "user_id": self.user_id,
        }

    def assign_session(self, session_id: str | None, user_id: str | None = None) -> None:
        """Rebind a fresh kit to a caller-chosen session and/or user."""

        with self._lock:
            if self._state.completed_stages:
                raise IllegalTransitionError(
                    "Cannot reassign the session of a kit that has already started",
                    current=self._state.current_stage.value,
                    expected=KitStage.INTAKE.value,
                )
            updates: dict[str, Any] = {"last_modified": utc_now()}
            if session_id:
                updates["session_id"] = session_id
            if user_id is not None:
                updates["user_id"] = user_id
            self._state = self._state.model_copy(update=updates, deep=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def intake(self, data: KitIntakeData | Mapping[str, Any]) -> KitExecutionState:
        """Validate and store the submission, then move to ``analysis``."""

        def run(workspace: KitWorkspace, working: KitExecutionState) -> None:
            intake_data = _coerce_intake(data)
            _validate(self._hooks, intake_data)
            working.user_inputs.update(
                {
                    "description": intake_data.description,
                    "jurisdiction": intake_data.jurisdiction,
                    "tags": intake_data.tags,
                    **intake_data.custom_fields,
                }
            )
            if intake_data.tags is not None:
                working.tags = list(intake_data.tags)
            self._hooks.perform_intake(intake_data, workspace)

        return self._run_stage(KitStage.INTAKE, run)

    def analysis(self) -> KitExecutionState:
        def run(workspace: KitWorkspace, working: KitExecutionState) -> None:
            working.analysis_result = self._hooks.perform_analysis(workspace)

        return self._run_stage(KitStage.ANALYSIS, run)

    def document(self) -> KitExecutionState:
        def run(workspace: KitWorkspace, working: KitExecutionState) -> None:
            working.documents = list(self._hooks.generate_documents(workspace))

        return self._run_stage(KitStage.DOCUMENT, run)

    def guidance(self) -> KitExecutionState:
        def run(workspace: KitWorkspace, working: KitExecutionState) -> None:
            action_plan, guidance = self._hooks.generate_guidance(workspace)
            working.action_plan = action_plan
            working.guidance = guidance

        return self._run_stage(KitStage.GUIDANCE, run)

    def complete(self) -> KitResult:
        """Finalize the run and return the packaged result.

        Terminal: succeeds once, after ``guidance()``.
        """

        with self._lock:
            current = self._state.current_stage
            if current != KitStage.COMPLETE:
                raise IncompleteLifecycleError(
                    "Kit is not yet at completion stage "
                    f"(current stage {current.value}, expected {KitStage.COMPLETE.value})",
                    current=current.value,
                    expected=KitStage.COMPLETE.value,
                )
            if self._state.progress == PROGRESS_COMPLETE:
                raise IllegalTransitionError(
                    "Illegal transition: kit has already completed",
                    current=current.value,
                    expected=None,
                )

            working = self._state.model_copy(deep=True)
            try:
                raw = self._hooks.finalize(KitWorkspace(working))
                result = raw if isinstance(raw, KitResult) else KitResult.model_validate(raw)
            except KitError:
                raise
            except Exception as e:
                logger.warning(
                    "Kit stage failed",
                    extra={"kit_id": self.kit_id, "stage": KitStage.COMPLETE.value},
                )
                raise StageExecutionError(KitStage.COMPLETE.value, e) from e

            working.progress = PROGRESS_COMPLETE
            working.last_modified = utc_now()
            self._state = working

        logger.info(
            "Kit completed",
            extra={"kit_id": self.kit_id, "session_id": self.session_id},
        )
        return result

    def execute_full_workflow(self, data: KitIntakeData | Mapping[str, Any]) -> KitResult:
        """Run all five stages in order, stopping at the first failure."""

        self.intake(data)
        self.analysis()
        self.document()
        self.guidance()
        return self.complete()

    def _run_stage(
        self,
        stage: KitStage,
        body: Callable[[KitWorkspace, KitExecutionState], None],
    ) -> KitExecutionState:
        with self._lock:
            to = next_stage(stage)
            check_transition(current=self._state.current_stage, source=stage, to=to)

            working = self._state.model_copy(deep=True)
            try:
                body(KitWorkspace(working), working)
            except KitError:
                raise
            except Exception as e:
                logger.warning(
                    "Kit stage failed",
                    extra={"kit_id": self.kit_id, "stage": stage.value},
                )
                raise StageExecutionError(stage.value, e) from e

            working.completed_stages.append(stage)
            working.current_stage = to
            working.progress = PROGRESS_AFTER_STAGE[stage]
            working.last_modified = utc_now()
            self._state = working
            snapshot = working.model_copy(deep=True)

        logger.debug(
            "Kit stage completed",
            extra={
                "kit_id": self.kit_id,
                "session_id": snapshot.session_id,
                "stage": stage.value,
                "progress": snapshot.progress,
            },
        )
        return snapshot


def _coerce_intake(data: KitIntakeData | Mapping[str, Any]) -> KitIntakeData:
    if isinstance(data, KitIntakeData):
        return data
    try:
        return KitIntakeData.model_validate(dict(data))
    except ValidationError as e:
        raise IntakeValidationError(_first_error(e)) from e


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'invalid value')}" if loc else str(first.get("msg"))


def _validate(hooks: KitHooks, data: KitIntakeData) -> None:
    try:
        hooks.validate_intake(data)
    except IntakeValidationError:
        raise
    except ValueError as e:
        raise IntakeValidationError(str(e)) from e
