"""
EntityStore — latest authoritative snapshot of one entity domain plus the
optimistic patch overlay applied on top of it.

Authoritative data is only ever replaced wholesale by a new poll result.
User actions install patches; reading through effective()/values() overlays
them. reconcile() runs after every replace() and retires patches that the
backend confirmed, that target an entity which no longer exists, or that
outlived the staleness timeout. A patch whose command is still running is
never retired as stale; its timeout starts when the command answers.

All write methods are synchronous, so on the event loop they are atomic with
respect to each other. No HA dependencies.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from enum import StrEnum
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

_LOGGER = logging.getLogger(__name__)

E = TypeVar("E")


class PatchKind(StrEnum):
    UPDATE = "update"
    INSERT = "insert"
    REMOVE = "remove"


@dataclasses.dataclass(eq=False)
class OptimisticPatch:
    """Speculative overlay for one key. Compared by identity."""

    key: Hashable
    kind: PatchKind
    applied_at: float
    fields: dict[str, Any] = dataclasses.field(default_factory=dict)
    entity: Any = None
    # Set while the command behind the patch has not answered yet
    in_flight: bool = False


class EntityStore(Generic[E]):
    """Keyed collection of entities for a single domain."""

    def __init__(
        self,
        name: str,
        key_fn: Callable[[E], Hashable],
        staleness_timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._key_fn = key_fn
        self._staleness_timeout = staleness_timeout
        self._clock = clock
        self._entities: dict[Hashable, E] = {}
        self._patches: dict[Hashable, OptimisticPatch] = {}
        self._has_snapshot = False

    # ------------------------------------------------------------------
    # Authoritative data
    # ------------------------------------------------------------------

    @property
    def has_snapshot(self) -> bool:
        """True once a poll result has been installed."""
        return self._has_snapshot

    def replace(self, collection: Iterable[E]) -> None:
        """Install a new authoritative snapshot, then reconcile patches."""
        entities: dict[Hashable, E] = {}
        for entity in collection:
            key = self._key_fn(entity)
            if key in entities:
                _LOGGER.warning("Duplicate %s key %s in snapshot, keeping first", self.name, key)
                continue
            entities[key] = entity
        self._entities = entities
        self._has_snapshot = True
        self.reconcile()

    def authoritative(self, key: Hashable) -> E | None:
        """Last confirmed value for key, ignoring patches."""
        return self._entities.get(key)

    # ------------------------------------------------------------------
    # Optimistic overlay
    # ------------------------------------------------------------------

    def apply_patch(self, key: Hashable, fields: dict[str, Any]) -> OptimisticPatch:
        """Install (or overwrite) a field-level patch for key."""
        return self._install(OptimisticPatch(key, PatchKind.UPDATE, self._clock(), fields=dict(fields)))

    def apply_insert(self, key: Hashable, entity: E) -> OptimisticPatch:
        """Show entity under key before the backend reports it."""
        return self._install(OptimisticPatch(key, PatchKind.INSERT, self._clock(), entity=entity))

    def apply_removal(self, key: Hashable) -> OptimisticPatch:
        """Hide key before the backend stops reporting it."""
        return self._install(OptimisticPatch(key, PatchKind.REMOVE, self._clock()))

    def discard_patch(self, key: Hashable, patch: OptimisticPatch | None = None) -> bool:
        """
        Remove the patch for key.

        When patch is given, only that exact patch is removed; a newer patch
        installed for the same key is left alone.
        """
        current = self._patches.get(key)
        if current is None or (patch is not None and current is not patch):
            return False
        del self._patches[key]
        return True

    def settle(self, patch: OptimisticPatch) -> None:
        """Mark the command behind patch as answered; staleness counts from now."""
        patch.in_flight = False
        patch.applied_at = self._clock()

    def patch_for(self, key: Hashable) -> OptimisticPatch | None:
        return self._patches.get(key)

    @property
    def patched_keys(self) -> set[Hashable]:
        return set(self._patches)

    def _install(self, patch: OptimisticPatch) -> OptimisticPatch:
        self._patches[patch.key] = patch
        _LOGGER.debug("%s: %s patch applied to %s", self.name, patch.kind, patch.key)
        return patch

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def effective(self, key: Hashable) -> E | None:
        """Authoritative value for key with its patch overlaid."""
        patch = self._patches.get(key)
        entity = self._entities.get(key)
        if patch is None:
            return entity
        if patch.kind is PatchKind.REMOVE:
            return None
        if patch.kind is PatchKind.INSERT:
            return entity if entity is not None else patch.entity
        if entity is None:
            # The entity is gone; the patch has nothing left to modify
            del self._patches[key]
            return None
        return dataclasses.replace(entity, **patch.fields)

    def values(self) -> list[E]:
        """Effective collection in snapshot order, pending inserts last."""
        result = []
        for key in self._entities:
            entity = self.effective(key)
            if entity is not None:
                result.append(entity)
        for key, patch in list(self._patches.items()):
            if patch.kind is PatchKind.INSERT and key not in self._entities:
                result.append(patch.entity)
        return result

    def keys(self) -> list[Hashable]:
        return [self._key_fn(entity) for entity in self.values()]

    def __contains__(self, key: Hashable) -> bool:
        return self.effective(key) is not None

    def __len__(self) -> int:
        return len(self.values())

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, now: float | None = None) -> list[Hashable]:
        """
        Drop patches that are confirmed, orphaned or stale.

        Returns the keys whose patches were dropped.
        """
        if now is None:
            now = self._clock()
        dropped = []
        for key, patch in list(self._patches.items()):
            reason = self._retire_reason(patch, now)
            if reason is not None:
                del self._patches[key]
                dropped.append(key)
                _LOGGER.debug("%s: patch for %s dropped (%s)", self.name, key, reason)
        return dropped

    def _retire_reason(self, patch: OptimisticPatch, now: float) -> str | None:
        entity = self._entities.get(patch.key)
        if patch.kind is PatchKind.UPDATE:
            if entity is None:
                return "entity gone"
            if all(getattr(entity, f, None) == v for f, v in patch.fields.items()):
                return "confirmed"
        elif patch.kind is PatchKind.INSERT:
            if entity is not None:
                return "confirmed"
        elif entity is None:
            return "confirmed"

        if not patch.in_flight and now - patch.applied_at >= self._staleness_timeout:
            return "stale"
        return None
