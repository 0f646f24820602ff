"""Pydantic models exchanged between kits and their callers."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from kit_engine.kits.stages import KitStage


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class KitIntakeData(BaseModel):
    """Initial submission from the user.

    ``description`` is required by shape only; whether an empty description is
    acceptable is decided by each kit's validator.
    """

    description: str
    jurisdiction: str | None = None
    tags: list[str] | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class KitExecutionState(BaseModel):
    """Progress, context and results of a single kit run."""

    session_id: str
    user_id: str | None = None
    kit_id: str
    started_at: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)

    current_stage: KitStage = KitStage.INTAKE
    completed_stages: list[KitStage] = Field(default_factory=list)
    progress: int = Field(default=0, ge=0, le=100)

    user_inputs: dict[str, Any] = Field(default_factory=dict)
    system_context: dict[str, Any] = Field(default_factory=dict)

    analysis_result: Any | None = None
    documents: list[Any] | None = None
    action_plan: Any | None = None
    guidance: str | None = None

    tags: list[str] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class GuidanceArtifact(NamedTuple):
    action_plan: Any
    guidance: str


class KitResult(BaseModel):
    """Packaged outcome returned by ``Kit.complete()``."""

    model_config = ConfigDict(frozen=True)

    kit_id: str
    session_id: str
    classification: Any
    action_plan: Any
    documents: list[Any] = Field(default_factory=list)
    guidance: str
    next_steps: list[str] = Field(default_factory=list)
    estimated_time_to_complete_minutes: int = Field(gt=0)
    risks: list[str] | None = None
    opportunities: list[str] | None = None
