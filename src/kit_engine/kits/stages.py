"""The kit lifecycle as an explicit state machine.

A kit moves strictly forward, one stage at a time:

    intake -> analysis -> document -> guidance -> complete
"""

from __future__ import annotations

from enum import Enum

from kit_engine.kits.errors import IllegalTransitionError


class KitStage(str, Enum):
    INTAKE = "intake"
    ANALYSIS = "analysis"
    DOCUMENT = "document"
    GUIDANCE = "guidance"
    COMPLETE = "complete"


STAGE_ORDER: tuple[KitStage, ...] = (
    KitStage.INTAKE,
    KitStage.ANALYSIS,
    KitStage.DOCUMENT,
    KitStage.GUIDANCE,
    KitStage.COMPLETE,
)

ALLOWED_TRANSITIONS: dict[KitStage, set[KitStage]] = {
    KitStage.INTAKE: {KitStage.ANALYSIS},
    KitStage.ANALYSIS: {KitStage.DOCUMENT},
    KitStage.DOCUMENT: {KitStage.GUIDANCE},
    KitStage.GUIDANCE: {KitStage.COMPLETE},
    KitStage.COMPLETE: set(),
}

# Progress reported once the keyed stage has completed.
PROGRESS_AFTER_STAGE: dict[KitStage, int] = {
    KitStage.INTAKE: 20,
    KitStage.ANALYSIS: 40,
    KitStage.DOCUMENT: 60,
    KitStage.GUIDANCE: 80,
}

PROGRESS_COMPLETE = 100


def next_stage(stage: KitStage) -> KitStage:
    allowed = ALLOWED_TRANSITIONS.get(stage, set())
    if not allowed:
        raise IllegalTransitionError(
            f"Illegal transition: {stage.value} is terminal",
            current=stage.value,
            expected=None,
        )
    (successor,) = allowed
    return successor


def check_transition(*, current: KitStage, source: KitStage, to: KitStage) -> None:
    """Fail loudly unless a kit sitting at ``current`` may run ``source`` and move to ``to``."""

    if current != source:
        raise IllegalTransitionError(
            f"Illegal transition: cannot run {source.value} while in {current.value} "
            f"(expected current stage {source.value})",
            current=current.value,
            expected=source.value,
        )
    if to not in ALLOWED_TRANSITIONS.get(source, set()):
        raise IllegalTransitionError(
            f"Illegal transition: {source.value} -> {to.value}",
            current=current.value,
            expected=source.value,
        )
