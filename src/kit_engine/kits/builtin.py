"""Kits shipped with the engine.

``general-matter`` is a deliberately plain workflow: it records the user's
description, produces a matter summary and a generic set of next steps. It
makes no legal determination and is meant as a default and a reference for
writing real kits.
"""

from __future__ import annotations

from typing import Any

from kit_engine.kits.base import Kit, KitWorkspace
from kit_engine.kits.errors import IntakeValidationError
from kit_engine.kits.models import GuidanceArtifact, KitIntakeData, KitResult
from kit_engine.kits.registry import KitMetadata, KitRegistry

GENERAL_MATTER_KIT_ID = "general-matter"

_MINUTES_PER_DOCUMENT = 10
_BASE_MINUTES = 15


class GeneralMatterHooks:
    kit_id = GENERAL_MATTER_KIT_ID
    name = "General Matter Intake Kit"
    description = "Summarizes a described matter and suggests first steps"

    def validate_intake(self, data: KitIntakeData) -> None:
        if not data.description.strip():
            raise IntakeValidationError("Description is required")

    def perform_intake(self, data: KitIntakeData, workspace: KitWorkspace) -> None:
        description = data.description.strip()
        workspace.update_system_context("word_count", len(description.split()))
        workspace.update_system_context("has_jurisdiction", bool(data.jurisdiction))

    def perform_analysis(self, workspace: KitWorkspace) -> dict[str, Any]:
        inputs = workspace.user_inputs
        description = str(inputs.get("description", "")).strip()
        return {
            "domain": "general",
            "jurisdiction": inputs.get("jurisdiction"),
            "description": description,
            "summary": description if len(description) <= 120 else description[:117] + "...",
            "tags": list(inputs.get("tags") or []),
        }

    def generate_documents(self, workspace: KitWorkspace) -> list[dict[str, Any]]:
        analysis = workspace.analysis_result or {}
        documents: list[dict[str, Any]] = [
            {
                "type": "matter-summary",
                "title": "Matter Summary",
                "content": analysis.get("description", ""),
            }
        ]
        if not analysis.get("jurisdiction"):
            documents.append(
                {
                    "type": "jurisdiction-checklist",
                    "title": "Confirm Your Jurisdiction",
                    "content": "Identify the province or territory where the matter arose.",
                }
            )
        return documents

    def generate_guidance(self, workspace: KitWorkspace) -> GuidanceArtifact:
        analysis = workspace.analysis_result or {}
        where = analysis.get("jurisdiction") or "your jurisdiction"
        action_plan = {
            "immediate_actions": [
                "Write down a timeline of what happened",
                "Collect documents and messages related to the matter",
                f"Check deadlines that apply in {where}",
            ],
        }
        guidance = (
            f"Matter: {analysis.get('summary', '')}\n"
            f"Start by organizing your evidence and confirming the deadlines in {where}."
        )
        return GuidanceArtifact(action_plan=action_plan, guidance=guidance)

    def finalize(self, workspace: KitWorkspace) -> KitResult:
        analysis = workspace.analysis_result or {}
        documents = workspace.documents
        minutes = _BASE_MINUTES + _MINUTES_PER_DOCUMENT * len(documents)
        return KitResult(
            kit_id=workspace.kit_id,
            session_id=workspace.session_id,
            classification={
                "domain": analysis.get("domain", "general"),
                "jurisdiction": analysis.get("jurisdiction"),
                "description": analysis.get("description", ""),
            },
            action_plan=workspace.action_plan,
            documents=documents,
            guidance=workspace.guidance or "",
            next_steps=list((workspace.action_plan or {}).get("immediate_actions", [])),
            estimated_time_to_complete_minutes=minutes,
        )


def general_matter_kit() -> Kit:
    return Kit(GeneralMatterHooks())


def general_matter_metadata() -> KitMetadata:
    return KitMetadata(
        kit_id=GENERAL_MATTER_KIT_ID,
        name=GeneralMatterHooks.name,
        description=GeneralMatterHooks.description,
        factory=general_matter_kit,
        domains=frozenset({"general"}),
        tags=frozenset({"intake", "starter"}),
        estimated_duration_minutes=_BASE_MINUTES,
        complexity="simple",
    )


def build_default_registry() -> KitRegistry:
    """A registry holding the kits that ship with the engine."""

    registry = KitRegistry()
    registry.register_kit(general_matter_metadata())
    return registry
