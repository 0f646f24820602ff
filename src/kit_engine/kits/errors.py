"""Error taxonomy for the kit engine.

Every failure raised by a kit, the orchestrator or the registry derives from
:class:`KitError` so callers can catch the whole family at one seam.
"""

from __future__ import annotations


class KitError(Exception):
    """Base class for kit engine failures."""


class IntakeValidationError(KitError):
    """Intake data was rejected by the kit's validator.

    Recoverable: the kit stays at ``intake`` and the caller may retry with
    corrected data.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Intake validation failed: {reason}")
        self.reason = reason


class IllegalTransitionError(KitError, ValueError):
    """A lifecycle operation was invoked out of order."""

    def __init__(
        self, message: str, *, current: str | None = None, expected: str | None = None
    ) -> None:
        super().__init__(message)
        self.current = current
        self.expected = expected


class IncompleteLifecycleError(IllegalTransitionError):
    """``complete()`` was called before the guidance stage finished."""


class StageExecutionError(KitError):
    """A stage hook failed. The kit stays parked at its last completed stage."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage.capitalize()} stage failed: {cause}")
        self.stage = stage
        self.cause = cause


class UnknownSessionError(KitError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"No context found for session {session_id}")
        self.session_id = session_id


class RegistryError(KitError):
    """Base class for kit catalog failures."""


class DuplicateKitError(RegistryError):
    def __init__(self, kit_id: str) -> None:
        super().__init__(f"Kit with ID {kit_id} already registered")
        self.kit_id = kit_id


class UnknownKitError(RegistryError, LookupError):
    def __init__(self, kit_id: str) -> None:
        super().__init__(f"Kit {kit_id} not found")
        self.kit_id = kit_id


class InactiveKitError(RegistryError):
    def __init__(self, kit_id: str) -> None:
        super().__init__(f"Kit {kit_id} is not active")
        self.kit_id = kit_id
