"""
Tests for OptimisticMutationManager: patch-before-command, rollback on
failure, per-key serialisation and notification of outcomes.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import MagicMock

from custom_components.sentinelguard.entity_store import EntityStore
from custom_components.sentinelguard.mutation import OptimisticMutationManager
from custom_components.sentinelguard.notifications import NotificationChannel, NotificationKind
from custom_components.sentinelguard.requests import BackendError

from .test_common import FakeClock, make_device, make_process, make_service


def make_services_store() -> EntityStore:
    store = EntityStore("services", lambda s: s.key, 20.0)
    store.replace([make_service("svc-X", status="Stopped"), make_service("svc-Y", status="Stopped")])
    return store


class TestOptimisticMutation(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.notifications = NotificationChannel(duration=60)
        self.on_change = MagicMock()
        self.manager = OptimisticMutationManager(self.notifications, on_change=self.on_change)
        self.store = make_services_store()

    async def asyncTearDown(self):
        await self.manager.async_shutdown()
        self.notifications.shutdown()

    async def test_patch_visible_before_command_resolves(self):
        release = asyncio.Event()
        observed = []

        async def command():
            observed.append(self.store.effective("svc-X").status)
            await release.wait()

        task = asyncio.ensure_future(self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="started",
        ))
        await asyncio.sleep(0.01)

        self.assertEqual(observed, ["Running"])
        self.on_change.assert_called()
        release.set()
        outcome = await task
        self.assertTrue(outcome.success)

    async def test_success_keeps_patch_and_notifies(self):
        async def command():
            return None

        outcome = await self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="Service started: svc-X",
        )

        self.assertTrue(outcome.success)
        self.assertEqual(self.store.effective("svc-X").status, "Running")
        self.assertIsNotNone(self.store.patch_for("svc-X"))
        self.assertEqual(self.notifications.current.kind, NotificationKind.SUCCESS)
        self.assertEqual(self.notifications.current.message, "Service started: svc-X")

    async def test_failure_restores_authoritative_value(self):
        async def command():
            raise BackendError("access denied")

        outcome = await self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="started",
        )

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.message, "access denied")
        self.assertEqual(self.store.effective("svc-X").status, "Stopped")
        self.assertIsNone(self.store.patch_for("svc-X"))
        self.assertEqual(self.notifications.current.kind, NotificationKind.ERROR)
        self.assertEqual(self.notifications.current.message, "access denied")

    async def test_unexpected_exception_is_reported_not_raised(self):
        async def command():
            raise RuntimeError("socket closed")

        outcome = await self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="started",
        )

        self.assertFalse(outcome.success)
        self.assertEqual(outcome.message, "socket closed")

    async def test_success_message_from_result(self):
        async def command():
            return "C:\\logs.csv"

        outcome = await self.manager.async_mutate(
            None, "events", None, command, success_message=lambda path: f"Logs exported to: {path}",
        )

        self.assertEqual(outcome.message, "Logs exported to: C:\\logs.csv")
        self.assertEqual(outcome.result, "C:\\logs.csv")

    async def test_on_success_hook_receives_result(self):
        hook = MagicMock()

        async def command():
            return 42

        await self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="ok", on_success=hook,
        )

        hook.assert_called_once_with(42)

    async def test_on_success_not_called_on_failure(self):
        hook = MagicMock()

        async def command():
            raise BackendError("nope")

        await self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, command, success_message="ok", on_success=hook,
        )

        hook.assert_not_called()

    async def test_same_key_mutations_do_not_interleave(self):
        events = []
        first_release = asyncio.Event()

        async def first():
            events.append("first-start")
            await first_release.wait()
            events.append("first-end")
            raise BackendError("first failed")

        async def second():
            events.append(f"second-start:{self.store.effective('svc-X').status}")

        t1 = asyncio.ensure_future(self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, first, success_message="ok",
        ))
        t2 = asyncio.ensure_future(self.manager.async_mutate(
            self.store, "svc-X", {"status": "Paused"}, second, success_message="ok",
        ))
        await asyncio.sleep(0.01)

        self.assertEqual(events, ["first-start"])
        self.assertEqual(self.store.effective("svc-X").status, "Running")
        self.assertEqual(self.manager.pending(self.store, "svc-X"), 2)

        first_release.set()
        r1, r2 = await asyncio.gather(t1, t2)

        self.assertEqual(events, ["first-start", "first-end", "second-start:Paused"])
        self.assertFalse(r1.success)
        self.assertTrue(r2.success)

    async def test_different_keys_run_in_parallel(self):
        started = []
        release = asyncio.Event()

        def command_for(key):
            async def command():
                started.append(key)
                await release.wait()
            return command

        tasks = [
            asyncio.ensure_future(self.manager.async_mutate(
                self.store, key, {"status": "Running"}, command_for(key), success_message="ok",
            ))
            for key in ("svc-X", "svc-Y")
        ]
        await asyncio.sleep(0.01)

        self.assertEqual(sorted(started), ["svc-X", "svc-Y"])
        release.set()
        await asyncio.gather(*tasks)

    async def test_removal_mutation_rolls_back(self):
        store = EntityStore("processes", lambda p: p.key, 20.0)
        store.replace([make_process(7)])

        async def command():
            raise BackendError("Access is denied")

        await self.manager.async_mutate(store, 7, None, command, success_message="killed", remove=True)

        self.assertIsNotNone(store.effective(7))

    async def test_rollback_keeps_newer_patch(self):
        """A failing mutation only removes its own patch."""
        release = asyncio.Event()

        async def failing():
            await release.wait()
            raise BackendError("late failure")

        task = asyncio.ensure_future(self.manager.async_mutate(
            self.store, "svc-X", {"status": "Running"}, failing, success_message="ok",
        ))
        await asyncio.sleep(0.01)
        newer = self.store.apply_patch("svc-X", {"status": "Stopping"})
        release.set()
        await task

        self.assertIs(self.store.patch_for("svc-X"), newer)

    async def test_patch_survives_staleness_while_command_runs(self):
        """A slow command keeps its patch visible past the staleness timeout."""
        clock = FakeClock()
        store = EntityStore("devices", lambda d: d.key, 10.0, clock=clock)
        store.replace([make_device("1", is_trusted=False)])
        release = asyncio.Event()

        async def slow_command():
            await release.wait()

        task = asyncio.ensure_future(self.manager.async_mutate(
            store, "1", {"is_trusted": True}, slow_command, success_message="trusted",
        ))
        await asyncio.sleep(0.01)

        clock.now += 12.0
        store.replace([make_device("1", is_trusted=False)])

        self.assertTrue(store.effective("1").is_trusted)
        release.set()
        self.assertTrue((await task).success)

    async def test_staleness_counts_from_command_answer(self):
        clock = FakeClock()
        store = EntityStore("devices", lambda d: d.key, 10.0, clock=clock)
        store.replace([make_device("1", is_trusted=False)])
        release = asyncio.Event()

        async def slow_command():
            await release.wait()

        task = asyncio.ensure_future(self.manager.async_mutate(
            store, "1", {"is_trusted": True}, slow_command, success_message="trusted",
        ))
        await asyncio.sleep(0.01)
        clock.now += 30.0
        release.set()
        await task

        clock.now += 9.0
        store.replace([make_device("1", is_trusted=False)])
        self.assertTrue(store.effective("1").is_trusted)

        clock.now += 1.0
        store.replace([make_device("1", is_trusted=False)])
        self.assertFalse(store.effective("1").is_trusted)


if __name__ == "__main__":
    unittest.main()
