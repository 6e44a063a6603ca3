"""
Tests for SentinelGuardCoordinator lifecycle: initialisation, store wiring,
notification relay and shutdown.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock

from custom_components.sentinelguard.const import (
    DOMAIN_EVENTS,
    DOMAIN_FIREWALL,
    DOMAIN_FIREWALL_RULES,
    DOMAIN_SERVICES,
    EVENT_NOTIFICATION,
    FIREWALL_INTERVAL,
    PATCH_STALENESS_FACTOR,
    PROCESSES_INTERVAL,
)
from custom_components.sentinelguard.coordinator import POLL_INTERVALS, STORE_DOMAINS
from custom_components.sentinelguard.coordinator_data import ConsoleData
from custom_components.sentinelguard.notifications import NotificationKind

from .test_common import FakeGateway, make_coordinator


class TestCoordinatorInit(unittest.TestCase):

    def test_initial_snapshot_is_empty(self):
        coord = make_coordinator()
        self.assertIsInstance(coord.data, ConsoleData)
        self.assertEqual(coord.data.devices, [])

    def test_no_agent_url_means_degraded_gateway(self):
        self.assertTrue(make_coordinator().gateway.degraded)
        self.assertFalse(make_coordinator(agent_url="http://10.0.0.5:8765").gateway.degraded)

    def test_one_store_per_entity_domain(self):
        coord = make_coordinator()
        self.assertEqual(set(coord.stores), set(STORE_DOMAINS))

    def test_staleness_follows_poll_interval_of_feeding_domain(self):
        coord = make_coordinator()
        self.assertEqual(
            coord.stores[DOMAIN_FIREWALL_RULES]._staleness_timeout,
            FIREWALL_INTERVAL * PATCH_STALENESS_FACTOR,
        )
        self.assertEqual(
            coord.stores[DOMAIN_SERVICES]._staleness_timeout,
            PROCESSES_INTERVAL * PATCH_STALENESS_FACTOR,
        )

    def test_every_store_is_fed_by_a_polled_domain(self):
        for store, domain in STORE_DOMAINS.items():
            self.assertIn(domain, POLL_INTERVALS, store)

    def test_polling_not_started_before_first_refresh(self):
        coord = make_coordinator()
        self.assertEqual(coord.poller.handles, set())


class TestNotificationRelay(unittest.IsolatedAsyncioTestCase):

    async def test_notification_fires_bus_event(self):
        coord = make_coordinator()

        coord.notifications.notify("Whitelist cleared", NotificationKind.SUCCESS)

        coord.hass.bus.async_fire.assert_called_once_with(
            EVENT_NOTIFICATION, {"message": "Whitelist cleared", "kind": "success"}
        )
        await coord.async_shutdown()

    async def test_dismissal_does_not_fire_bus_event(self):
        coord = make_coordinator()
        coord.notifications.notify("done", NotificationKind.SUCCESS)
        coord.hass.bus.async_fire.reset_mock()

        coord.notifications.dismiss()

        coord.hass.bus.async_fire.assert_not_called()
        await coord.async_shutdown()


class TestShutdown(unittest.IsolatedAsyncioTestCase):

    async def test_shutdown_closes_gateway(self):
        coord = make_coordinator()
        coord.gateway = FakeGateway()

        await coord.async_shutdown()

        self.assertTrue(coord.gateway.closed)

    async def test_shutdown_stops_all_pollers(self):
        coord = make_coordinator()
        coord.async_start_polling()
        handles = coord.poller.handles
        self.assertEqual(len(handles), len(POLL_INTERVALS))

        await coord.async_shutdown()

        self.assertEqual(coord.poller.handles, set())
        self.assertTrue(all(handle.stopped for handle in handles))

    async def test_shutdown_drains_mutation_queue(self):
        coord = make_coordinator()
        gate = asyncio.Event()

        async def slow_clear(**_):
            await gate.wait()

        coord.gateway = FakeGateway({"clear_logs": slow_clear})
        task = asyncio.ensure_future(coord.async_clear_logs())
        await asyncio.sleep(0.01)
        self.assertEqual(coord.mutations.pending(None, DOMAIN_EVENTS), 1)

        await coord.async_shutdown()

        # The caller waiting on the in-flight command is released
        with self.assertRaises(asyncio.CancelledError):
            await task

    async def test_shutdown_detaches_notification_listener(self):
        coord = make_coordinator()

        await coord.async_shutdown()
        coord.notifications.notify("late", NotificationKind.ERROR)

        coord.hass.bus.async_fire.assert_not_called()

    async def test_shutdown_is_idempotent(self):
        coord = make_coordinator()
        coord.async_start_polling()
        coord.gateway.close = AsyncMock()

        await coord.async_shutdown()
        await coord.async_shutdown()

        self.assertEqual(coord.gateway.close.await_count, 2)
        self.assertEqual(coord.poller.handles, set())

    async def test_refresh_request_after_shutdown_is_ignored(self):
        coord = make_coordinator()
        coord.async_start_polling()
        await coord.async_shutdown()

        # No handles left to refresh
        coord.request_refresh(DOMAIN_EVENTS, DOMAIN_FIREWALL)
        self.assertEqual(coord.poller.handles, set())


if __name__ == "__main__":
    unittest.main()
