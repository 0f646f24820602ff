"""Kit execution engine.

- :class:`Kit` drives one workflow through intake, analysis, document,
  guidance and complete
- :class:`KitOrchestrator` runs kits per session and keeps the audit trail
- :class:`KitRegistry` catalogs kit kinds and instantiates them on demand
"""

from kit_engine.kits.base import Kit, KitHooks, KitWorkspace
from kit_engine.kits.context import ExecutionContext, KitEventType, KitExecutionEvent
from kit_engine.kits.errors import (
    DuplicateKitError,
    IllegalTransitionError,
    InactiveKitError,
    IncompleteLifecycleError,
    IntakeValidationError,
    KitError,
    RegistryError,
    StageExecutionError,
    UnknownKitError,
    UnknownSessionError,
)
from kit_engine.kits.models import (
    GuidanceArtifact,
    KitExecutionState,
    KitIntakeData,
    KitResult,
)
from kit_engine.kits.orchestrator import KitOrchestrator, KitRun
from kit_engine.kits.registry import (
    KitMetadata,
    KitRegistry,
    get_global_registry,
    reset_global_registry,
)
from kit_engine.kits.stages import KitStage

__all__ = [
    "DuplicateKitError",
    "ExecutionContext",
    "GuidanceArtifact",
    "IllegalTransitionError",
    "InactiveKitError",
    "IncompleteLifecycleError",
    "IntakeValidationError",
    "Kit",
    "KitError",
    "KitEventType",
    "KitExecutionEvent",
    "KitExecutionState",
    "KitHooks",
    "KitIntakeData",
    "KitMetadata",
    "KitOrchestrator",
    "KitRegistry",
    "KitResult",
    "KitRun",
    "KitStage",
    "KitWorkspace",
    "RegistryError",
    "StageExecutionError",
    "UnknownKitError",
    "UnknownSessionError",
    "get_global_registry",
    "reset_global_registry",
]
