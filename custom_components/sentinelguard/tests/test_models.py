"""
Tests for mapping agent JSON onto the domain models.
"""

from __future__ import annotations

import unittest

from custom_components.sentinelguard.models import (
    EventLog,
    FirewallRule,
    FirewallStatus,
    ProcessInfo,
    ServiceInfo,
    UsbDevice,
    parse_collection,
)


class TestParseCollection(unittest.TestCase):

    def test_list_of_records(self):
        raw = [{"instance_id": "a"}, {"instance_id": "b"}]
        self.assertEqual([d.instance_id for d in parse_collection(raw, UsbDevice.from_json)], ["a", "b"])

    def test_single_object_becomes_one_element_list(self):
        raw = {"name": "WinDefend", "status": "Running"}
        result = parse_collection(raw, ServiceInfo.from_json)
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].status, "Running")

    def test_null_and_empty_mean_nothing(self):
        for raw in (None, "", "null", []):
            self.assertEqual(parse_collection(raw, UsbDevice.from_json), [], repr(raw))

    def test_unexpected_type_is_empty(self):
        with self.assertLogs("custom_components.sentinelguard.models", level="WARNING"):
            self.assertEqual(parse_collection(42, UsbDevice.from_json), [])

    def test_records_without_key_are_skipped(self):
        raw = [{"friendly_name": "no id"}, {"instance_id": "ok"}, "garbage"]
        result = parse_collection(raw, UsbDevice.from_json)
        self.assertEqual([d.instance_id for d in result], ["ok"])


class TestModels(unittest.TestCase):

    def test_usb_device_fields(self):
        device = UsbDevice.from_json({
            "instance_id": "USBSTOR\\DISK&VEN_SANDISK\\4C530001",
            "friendly_name": "SanDisk Cruzer",
            "device_class": "DiskDrive",
            "status": "OK",
            "is_trusted": "true",
        })

        self.assertTrue(device.is_trusted)
        self.assertEqual(device.serial_id, "4C530001")
        self.assertEqual(device.key, device.instance_id)
        self.assertEqual(device.to_json()["friendly_name"], "SanDisk Cruzer")

    def test_usb_device_defaults(self):
        device = UsbDevice.from_json({"instance_id": "x"})
        self.assertEqual(device.friendly_name, "Unknown")
        self.assertEqual(device.device_class, "USB")
        self.assertFalse(device.is_trusted)

    def test_firewall_status_missing_is_all_disabled(self):
        self.assertEqual(FirewallStatus.from_json(None), FirewallStatus(False, False, False))

    def test_firewall_rule(self):
        rule = FirewallRule.from_json({"name": "Block 8080", "enabled": 1, "protocol": "TCP", "local_port": 8080})
        self.assertTrue(rule.enabled)
        self.assertEqual(rule.local_port, "8080")

    def test_process_requires_numeric_id(self):
        self.assertIsNone(ProcessInfo.from_json({"id": "abc"}))
        process = ProcessInfo.from_json({"id": "12", "memory_mb": "300.5", "cpu_percent": None})
        self.assertEqual(process.id, 12)
        self.assertEqual(process.memory_mb, 300.5)
        self.assertEqual(process.cpu_percent, 0.0)

    def test_service_display_name_falls_back_to_name(self):
        self.assertEqual(ServiceInfo.from_json({"name": "Spooler"}).display_name, "Spooler")

    def test_event_keeps_unknown_level(self):
        event = EventLog.from_json({"id": 9, "level": "DEBUG", "message": "trace"})
        self.assertEqual(event.level, "DEBUG")
        self.assertEqual(event.id, "9")
        self.assertEqual(event.as_attribute(), {"timestamp": "", "level": "DEBUG", "message": "trace"})

    def test_event_attribute_includes_device(self):
        event = EventLog.from_json({"id": "1", "message": "blocked", "device_id": "USB\\X"})
        self.assertEqual(event.as_attribute()["device_id"], "USB\\X")


if __name__ == "__main__":
    unittest.main()
