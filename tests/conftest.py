"""Test configuration and fixtures."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import pytest

from kit_engine.config import EngineSettings
from kit_engine.kits.base import Kit, KitWorkspace
from kit_engine.kits.errors import IntakeValidationError
from kit_engine.kits.models import GuidanceArtifact, KitIntakeData, KitResult
from kit_engine.kits.orchestrator import KitOrchestrator
from kit_engine.kits.registry import KitMetadata, KitRegistry, reset_global_registry


class EchoHooks:
    """Minimal kit: every stage echoes the intake description forward.

    ``delays`` maps a stage name to seconds to sleep inside that stage's hook;
    ``fail_at`` names a stage whose hook raises.
    """

    def __init__(
        self,
        kit_id: str = "test-kit",
        *,
        delays: dict[str, float] | None = None,
        fail_at: str | None = None,
    ) -> None:
        self.kit_id = kit_id
        self.name = f"Test Kit {kit_id}"
        self.description = "A test kit for unit testing"
        self.delays = delays or {}
        self.fail_at = fail_at
        self.calls: list[str] = []

    def _step(self, stage: str) -> None:
        self.calls.append(stage)
        delay = self.delays.get(stage)
        if delay:
            time.sleep(delay)
        if self.fail_at == stage:
            raise RuntimeError(f"{stage} hook exploded")

    def validate_intake(self, data: KitIntakeData) -> None:
        if not data.description:
            raise IntakeValidationError("Description required")

    def perform_intake(self, data: KitIntakeData, workspace: KitWorkspace) -> None:
        workspace.update_system_context("echo", data.description)
        self._step("intake")

    def perform_analysis(self, workspace: KitWorkspace) -> dict[str, Any]:
        self._step("analysis")
        return {
            "domain": "civil-negligence",
            "description": workspace.user_inputs["description"],
            "echo": workspace.system_context["echo"],
        }

    def generate_documents(self, workspace: KitWorkspace) -> list[dict[str, Any]]:
        self._step("document")
        return [{"type": "demand-letter", "title": "Demand", "for": workspace.kit_id}]

    def generate_guidance(self, workspace: KitWorkspace) -> GuidanceArtifact:
        self._step("guidance")
        return GuidanceArtifact(
            action_plan={"immediate_actions": ["Gather evidence"]},
            guidance="Test guidance text",
        )

    def finalize(self, workspace: KitWorkspace) -> KitResult:
        self._step("complete")
        return KitResult(
            kit_id=workspace.kit_id,
            session_id=workspace.session_id,
            classification=workspace.analysis_result,
            action_plan=workspace.action_plan,
            documents=workspace.documents,
            guidance=workspace.guidance or "",
            next_steps=["Step 1", "Step 2"],
            estimated_time_to_complete_minutes=10,
        )


MakeKit = Callable[..., Kit]


@pytest.fixture
def make_kit() -> MakeKit:
    """Build a kit around fresh :class:`EchoHooks`."""

    def _make(
        kit_id: str = "test-kit",
        *,
        session_id: str | None = "session-123",
        user_id: str | None = "user-123",
        **hook_options: Any,
    ) -> Kit:
        return Kit(EchoHooks(kit_id, **hook_options), session_id=session_id, user_id=user_id)

    return _make


@pytest.fixture
def kit(make_kit: MakeKit) -> Kit:
    return make_kit()


@pytest.fixture
def intake() -> KitIntakeData:
    return KitIntakeData(description="Tenant dispute about repairs", jurisdiction="Ontario")


@pytest.fixture
def orchestrator() -> KitOrchestrator:
    return KitOrchestrator()


@pytest.fixture
def make_metadata() -> Callable[..., KitMetadata]:
    def _make(kit_id: str, **overrides: Any) -> KitMetadata:
        fields: dict[str, Any] = {
            "kit_id": kit_id,
            "name": f"Kit {kit_id}",
            "description": "Test",
            "factory": lambda: Kit(EchoHooks(kit_id)),
            "domains": frozenset({"landlordTenant"}),
            "tags": frozenset({"housing"}),
            "estimated_duration_minutes": 30,
            "complexity": "moderate",
        }
        fields.update(overrides)
        return KitMetadata(**fields)

    return _make


@pytest.fixture
def registry() -> KitRegistry:
    return KitRegistry()


@pytest.fixture(autouse=True)
def _isolated_global_registry() -> None:
    reset_global_registry()


@pytest.fixture
def engine_settings() -> EngineSettings:
    """Provide test engine settings that ignore any local `.env`."""

    return EngineSettings(
        _env_file=None,
        log_level="DEBUG",
        log_format="text",
        session_timeout_seconds=60,
        max_concurrent_kits=4,
    )
