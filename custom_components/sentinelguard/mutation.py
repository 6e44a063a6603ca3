"""
OptimisticMutationManager — speculative execution of user commands.

Sequence for one mutation:
  1. install the optimistic patch in the EntityStore (the view changes now);
  2. run the agent command once;
  3. success → keep the patch for the next poll to confirm (its staleness
     timeout starts now), notify success;
     failure → drop the patch (back to the last authoritative value),
     notify the backend's error message.

Mutations on the same (store, key) are serialised through KeyedRequestQueue,
so a second mutation only patches after the first one's outcome has been
processed. Nothing raises out of async_mutate: every failure becomes a
MutationOutcome and an error notification. No HA dependencies.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Awaitable, Callable, Hashable

from .entity_store import EntityStore, OptimisticPatch
from .key_queue import KeyedRequestQueue
from .notifications import NotificationChannel, NotificationKind

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class MutationOutcome:
    key: Hashable
    success: bool
    message: str
    result: Any = None


class OptimisticMutationManager:
    """Applies, sends and reconciles user mutations."""

    def __init__(
        self,
        notifications: NotificationChannel,
        queue: KeyedRequestQueue | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._notifications = notifications
        self._queue = queue if queue is not None else KeyedRequestQueue()
        self._on_change = on_change

    async def async_mutate(
        self,
        store: EntityStore | None,
        key: Hashable,
        patch_fields: dict[str, Any] | None,
        command: Callable[[], Awaitable[Any]],
        *,
        success_message: str | Callable[[Any], str],
        insert: Any = None,
        remove: bool = False,
        on_success: Callable[[Any], None] | None = None,
    ) -> MutationOutcome:
        """
        Run command for key with an optimistic overlay on store.

        Exactly one of patch_fields, insert or remove describes the overlay;
        with none of them (or store None) the command runs without a patch.
        on_success receives the command result, e.g. to request a refresh.
        """
        queue_key = (store.name if store is not None else None, key)

        async def job() -> MutationOutcome:
            return await self._run(
                store, key, patch_fields, command, success_message, insert, remove, on_success
            )

        return await self._queue.enqueue(queue_key, job)

    def pending(self, store: EntityStore | None, key: Hashable) -> int:
        """Mutations queued or running for key."""
        return self._queue.pending((store.name if store is not None else None, key))

    async def async_shutdown(self) -> None:
        await self._queue.shutdown()

    async def _run(
        self,
        store: EntityStore | None,
        key: Hashable,
        patch_fields: dict[str, Any] | None,
        command: Callable[[], Awaitable[Any]],
        success_message: str | Callable[[Any], str],
        insert: Any,
        remove: bool,
        on_success: Callable[[Any], None] | None,
    ) -> MutationOutcome:
        patch: OptimisticPatch | None = None
        if store is not None:
            if remove:
                patch = store.apply_removal(key)
            elif insert is not None:
                patch = store.apply_insert(key, insert)
            elif patch_fields:
                patch = store.apply_patch(key, patch_fields)
        if patch is not None:
            patch.in_flight = True
            self._changed()

        try:
            result = await command()
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            _LOGGER.debug("Command for %s failed, rolling back: %s", key, message)
            if patch is not None and store.discard_patch(key, patch):
                self._changed()
            self._notifications.notify(message, NotificationKind.ERROR)
            return MutationOutcome(key, False, message)
        finally:
            if patch is not None:
                store.settle(patch)

        # The patch stays until the next snapshot confirms or retires it
        message = success_message(result) if callable(success_message) else success_message
        self._notifications.notify(message, NotificationKind.SUCCESS)
        if on_success is not None:
            try:
                on_success(result)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Post-mutation hook for %s failed", key)
        return MutationOutcome(key, True, message, result)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
