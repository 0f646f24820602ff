"""Catalog of kit kinds: discovery, enable/disable and on-demand instantiation.

The registry knows nothing about running sessions. Build one at startup and
pass it to whatever needs it; :func:`get_global_registry` exists only as a
convenience for scripts.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel

from kit_engine.kits.base import Kit
from kit_engine.kits.errors import DuplicateKitError, InactiveKitError, UnknownKitError

logger = logging.getLogger(__name__)

Complexity = Literal["simple", "moderate", "complex"]
KitFactory = Callable[[], Kit]


class KitSummaryEntry(BaseModel):
    kit_id: str
    name: str
    description: str
    domains: list[str]
    tags: list[str]
    estimated_duration_minutes: int
    complexity: Complexity


class RegistrySummary(BaseModel):
    total_kits: int
    active_kits: int
    inactive_kits: int
    kits: list[KitSummaryEntry]


@dataclass(slots=True)
class KitMetadata:
    """Describes one registered kit kind.

    Only ``is_active`` is expected to change after registration, and only via
    :meth:`KitRegistry.set_kit_active`.
    """

    kit_id: str
    name: str
    description: str
    factory: KitFactory
    domains: frozenset[str] = field(default_factory=frozenset)
    tags: frozenset[str] = field(default_factory=frozenset)
    estimated_duration_minutes: int = 15
    complexity: Complexity = "moderate"
    is_active: bool = True

    def __post_init__(self) -> None:
        self.domains = frozenset(self.domains)
        self.tags = frozenset(self.tags)

    def to_summary(self) -> KitSummaryEntry:
        return KitSummaryEntry(
            kit_id=self.kit_id,
            name=self.name,
            description=self.description,
            domains=sorted(self.domains),
            tags=sorted(self.tags),
            estimated_duration_minutes=self.estimated_duration_minutes,
            complexity=self.complexity,
        )


class KitRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._kits: dict[str, KitMetadata] = {}

    def register_kit(self, metadata: KitMetadata) -> None:
        with self._lock:
            if metadata.kit_id in self._kits:
                raise DuplicateKitError(metadata.kit_id)
            self._kits[metadata.kit_id] = metadata
        logger.info("Kit registered", extra={"kit_id": metadata.kit_id})

    def register_kits(self, metadata_list: Iterable[KitMetadata]) -> None:
        """Register in order, stopping at the first duplicate.

        Entries registered before the duplicate stay registered.
        """

        for metadata in metadata_list:
            self.register_kit(metadata)

    def get_kit(self, kit_id: str) -> KitMetadata | None:
        with self._lock:
            return self._kits.get(kit_id)

    def create_kit(
        self,
        kit_id: str,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> Kit | None:
        """Instantiate a fresh kit, or return None if ``kit_id`` is unknown.

        Raises:
            InactiveKitError: If the kit kind is registered but disabled.
        """

        metadata = self.get_kit(kit_id)
        if metadata is None:
            return None
        if not metadata.is_active:
            raise InactiveKitError(kit_id)

        kit = metadata.factory()
        if session_id or user_id is not None:
            kit.assign_session(session_id, user_id)
        logger.debug("Kit instantiated", extra={"kit_id": kit_id, "session_id": kit.session_id})
        return kit

    def get_all_kits(self) -> list[KitMetadata]:
        with self._lock:
            return [m for m in self._kits.values() if m.is_active]

    def find_kits_by_domain(self, domain: str) -> list[KitMetadata]:
        return [m for m in self.get_all_kits() if domain in m.domains]

    def find_kits_by_tag(self, tag: str) -> list[KitMetadata]:
        return [m for m in self.get_all_kits() if tag in m.tags]

    def search_kits(
        self,
        *,
        domains: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
        complexity: Complexity | None = None,
        max_duration: int | None = None,
    ) -> list[KitMetadata]:
        """Filter active kits; every given criterion must hold.

        ``domains`` and ``tags`` match when the kit carries any of the requested
        values. ``max_duration`` is an inclusive upper bound in minutes.
        """

        wanted_domains = set(domains or ())
        wanted_tags = set(tags or ())

        results = self.get_all_kits()
        if wanted_domains:
            results = [m for m in results if m.domains & wanted_domains]
        if wanted_tags:
            results = [m for m in results if m.tags & wanted_tags]
        if complexity is not None:
            results = [m for m in results if m.complexity == complexity]
        if max_duration is not None:
            results = [m for m in results if m.estimated_duration_minutes <= max_duration]
        return results

    def set_kit_active(self, kit_id: str, is_active: bool) -> None:
        with self._lock:
            metadata = self._kits.get(kit_id)
            if metadata is None:
                raise UnknownKitError(kit_id)
            metadata.is_active = is_active
        logger.info("Kit active flag changed", extra={"kit_id": kit_id, "is_active": is_active})

    def unregister_kit(self, kit_id: str) -> None:
        with self._lock:
            removed = self._kits.pop(kit_id, None)
        if removed is not None:
            logger.info("Kit unregistered", extra={"kit_id": kit_id})

    def get_kit_count(self) -> int:
        with self._lock:
            return len(self._kits)

    def get_active_kit_count(self) -> int:
        return len(self.get_all_kits())

    def get_covered_domains(self) -> list[str]:
        domains: set[str] = set()
        for metadata in self.get_all_kits():
            domains.update(metadata.domains)
        return sorted(domains)

    def get_summary(self) -> RegistrySummary:
        with self._lock:
            all_kits = list(self._kits.values())
        active = [m for m in all_kits if m.is_active]
        return RegistrySummary(
            total_kits=len(all_kits),
            active_kits=len(active),
            inactive_kits=len(all_kits) - len(active),
            kits=[m.to_summary() for m in active],
        )


_global_registry: KitRegistry | None = None
_global_lock = threading.Lock()


def get_global_registry() -> KitRegistry:
    global _global_registry
    with _global_lock:
        if _global_registry is None:
            _global_registry = KitRegistry()
        return _global_registry


def reset_global_registry() -> None:
    """Forget the process-wide registry (mainly for tests)."""

    global _global_registry
    with _global_lock:
        _global_registry = None
