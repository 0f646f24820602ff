"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from kit_engine.kits.models import KitIntakeData

RunStatus = Literal["queued", "running", "succeeded", "failed"]


class RunRequest(BaseModel):
    kit_id: str
    intake: KitIntakeData
    user_id: str | None = None


class RunRecord(BaseModel):
    run_id: str
    session_id: str
    kit_id: str
    status: RunStatus
    created_at: datetime
    updated_at: datetime

    current_stage: str = "intake"
    progress: int = 0
    completed_stages: list[str] = Field(default_factory=list)
    result: dict[str, Any] | None = None
    error: str | None = None


class SharedStateUpdate(BaseModel):
    kit_id: str
    key: str
    value: Any = None
