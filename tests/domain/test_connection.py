"""Tests for the Connection aggregate."""

from __future__ import annotations

import logging

import pytest

from netprofile.domain.connection import Connection, ConnectionScope
from netprofile.domain.errors import MalformedValue, SchemaViolation, UnknownSettingType
from netprofile.domain.kinds import ConnectionSetting, WirelessSetting
from netprofile.domain.registry import SettingRegistry
from netprofile.domain.setting import CompareFlags, SecretHint, Severity
from netprofile.domain.values import Value


class TestConstruction:
    def test_empty(self, registry: SettingRegistry) -> None:
        connection = Connection(registry)
        assert len(connection) == 0
        assert connection.scope is ConnectionScope.UNKNOWN
        assert connection.path is None
        assert connection.to_generic_map() == {}

    def test_scope_and_path(self, registry: SettingRegistry) -> None:
        connection = Connection(registry, scope=ConnectionScope.SYSTEM, path="/a")
        connection.scope = ConnectionScope.USER
        connection.path = "/b"
        assert connection.scope is ConnectionScope.USER
        assert connection.path == "/b"

    def test_from_generic_map_unknown_setting(self, registry: SettingRegistry) -> None:
        with pytest.raises(UnknownSettingType) as excinfo:
            Connection.from_generic_map({"bluetooth": {}}, registry)
        assert excinfo.value.name == "bluetooth"

    def test_from_generic_map_type_mismatch(self, registry: SettingRegistry) -> None:
        with pytest.raises(MalformedValue):
            Connection.from_generic_map({"connection": {"id": Value.int64(3)}}, registry)

    def test_from_generic_map_unknown_property(self, registry: SettingRegistry) -> None:
        with pytest.raises(SchemaViolation):
            Connection.from_generic_map({"connection": {"colour": "red"}}, registry)

    def test_create_setting(self, wifi: Connection) -> None:
        setting = wifi.create_setting("ipv4")
        assert setting.name == "ipv4"
        assert "ipv4" not in wifi


class TestScenario:
    def test_to_generic_map(self, wifi: Connection) -> None:
        assert wifi.to_generic_map() == {
            "connection": {
                "id": Value.string("home"),
                "type": Value.string("802-11-wireless"),
            },
            "802-11-wireless": {
                "ssid": Value.string("MyNet"),
                "mode": Value.string("infrastructure"),
            },
        }

    def test_setting_at_defaults_adds_no_key(self, wifi: Connection) -> None:
        wifi.add_setting(wifi.create_setting("ipv4"))
        assert "ipv4" in wifi
        assert "ipv4" not in wifi.to_generic_map()

    def test_changed_ssid(self, wifi: Connection) -> None:
        other = wifi.duplicate()
        other.get_setting("802-11-wireless").set("ssid", "OtherNet")
        assert not wifi.compare(other)
        assert wifi.diff(other) == {"802-11-wireless": ["ssid"]}
        assert wifi.get_setting("802-11-wireless").get("ssid") == Value.string("MyNet")


class TestMembership:
    def test_add_replaces_not_merges(self, wifi: Connection) -> None:
        replacement = WirelessSetting({"ssid": "Fresh"})
        wifi.add_setting(replacement)
        current = wifi.get_setting("802-11-wireless")
        assert current is replacement
        assert current.get("mode") == Value.string(None)

    def test_replaced_setting_is_released(self, wifi: Connection) -> None:
        old = wifi.get_setting("802-11-wireless")
        assert old.owner is wifi
        wifi.add_setting(WirelessSetting({"ssid": "Fresh"}))
        assert old.owner is None

    def test_shared_setting_rejected(self, wifi: Connection, registry: SettingRegistry) -> None:
        other = Connection(registry)
        with pytest.raises(ValueError):
            other.add_setting(wifi.get_setting("connection"))
        other.add_setting(wifi.get_setting("connection").duplicate())
        assert "connection" in other

    def test_remove(self, wifi: Connection) -> None:
        removed = wifi.remove_setting("802-11-wireless")
        assert removed is not None
        assert removed.owner is None
        assert "802-11-wireless" not in wifi
        assert wifi.remove_setting("802-11-wireless") is None

    def test_get_by_type(self, wifi: Connection) -> None:
        assert isinstance(wifi.get_setting_by_type(ConnectionSetting), ConnectionSetting)
        wifi.remove_setting("connection")
        assert wifi.get_setting_by_type(ConnectionSetting) is None

    def test_settings_view_is_read_only(self, wifi: Connection) -> None:
        with pytest.raises(TypeError):
            wifi.settings["ipv4"] = None  # type: ignore[index]


class TestReplaceAllSettings:
    def test_replaces_everything(self, wifi: Connection) -> None:
        wifi.replace_all_settings({"connection": {"id": "work", "type": "ipv4"}, "ipv4": {"method": "auto"}})
        assert sorted(wifi.settings) == ["connection", "ipv4"]
        assert wifi.get_setting("connection").get("id") == Value.string("work")

    def test_atomic_on_unknown_setting(self, wifi: Connection) -> None:
        before = wifi.to_generic_map()
        old = wifi.get_setting("connection")
        with pytest.raises(UnknownSettingType):
            wifi.replace_all_settings(
                {
                    "connection": {"id": "changed", "type": "802-11-wireless"},
                    "zigbee": {"channel": 3},
                }
            )
        assert wifi.to_generic_map() == before
        assert wifi.get_setting("connection") is old
        assert old.owner is wifi

    def test_atomic_on_malformed_value(self, wifi: Connection) -> None:
        before = wifi.to_generic_map()
        with pytest.raises(MalformedValue):
            wifi.replace_all_settings({"connection": {"id": "x"}, "802-11-wireless": {"channel": "six"}})
        assert wifi.to_generic_map() == before

    def test_non_mapping_entry(self, wifi: Connection) -> None:
        with pytest.raises(MalformedValue):
            wifi.replace_all_settings({"connection": ["id"]})  # type: ignore[dict-item]

    def test_non_mapping_top_level(self, wifi: Connection, registry: SettingRegistry) -> None:
        before = wifi.to_generic_map()
        with pytest.raises(MalformedValue):
            wifi.replace_all_settings([("connection", {"id": "x"})])  # type: ignore[arg-type]
        assert wifi.to_generic_map() == before
        with pytest.raises(MalformedValue):
            Connection.from_generic_map([("connection", {"id": "x"})], registry)  # type: ignore[arg-type]


class TestCompare:
    def test_round_trip(self, secured_wifi: Connection, registry: SettingRegistry) -> None:
        secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "correct horse"}})
        ipv4 = secured_wifi.get_setting("ipv4")
        ipv4.set("dhcp_timeout", 2.5)
        ipv4.set("addresses", [{"address": "10.0.0.2", "prefix": 24}])
        ipv4.set("dhcp_send_options", {"hostname": "laptop", "retries": 3})
        parsed = Connection.from_generic_map(secured_wifi.to_generic_map(), registry)
        assert parsed.compare(secured_wifi, CompareFlags.EXACT)
        assert secured_wifi.compare(parsed, CompareFlags.EXACT_FLOATS)

    def test_different_setting_names(self, wifi: Connection) -> None:
        other = wifi.duplicate()
        other.remove_setting("802-11-wireless")
        assert not wifi.compare(other)
        assert wifi.diff(other)["802-11-wireless"] == WirelessSetting.property_names()
        assert other.diff(wifi) == {"802-11-wireless": WirelessSetting.property_names()}

    def test_fuzzy_ignores_identity_and_secrets(self, secured_wifi: Connection) -> None:
        other = secured_wifi.duplicate()
        other.get_setting("connection").set("timestamp", 1700000000)
        other.update_secrets({"802-11-wireless-security": {"psk": "another secret"}})
        assert not secured_wifi.compare(other)
        assert secured_wifi.compare(other, CompareFlags.FUZZY)

    def test_duplicate_is_deep(self, wifi: Connection) -> None:
        clone = wifi.duplicate()
        assert clone.compare(wifi)
        assert clone.path == wifi.path
        assert clone.get_setting("connection") is not wifi.get_setting("connection")
        assert clone.get_setting("connection").owner is clone


class TestVerify:
    def test_clean_profile(self, secured_wifi: Connection) -> None:
        assert secured_wifi.verify() == []

    def test_collects_warnings_from_every_setting(self, registry: SettingRegistry) -> None:
        connection = Connection.from_generic_map(
            {
                "connection": {"id": "mesh", "type": "802-11-wireless"},
                "802-11-wireless": {"ssid": "MeshNet", "mode": "adhoc"},
            },
            registry,
        )
        problems = connection.verify()
        assert {(p.setting, p.severity) for p in problems} == {
            ("connection", Severity.WARNING),
            ("802-11-wireless", Severity.WARNING),
        }
        assert Connection.is_usable(problems)

    def test_fatal_and_warning_reported_together(self, wifi: Connection) -> None:
        wifi.get_setting("802-11-wireless").set("mode", "mesh")
        problems = wifi.verify()
        severities = {p.severity for p in problems}
        assert severities == {Severity.WARNING, Severity.FATAL}
        assert not Connection.is_usable(problems)

    def test_missing_connection_setting(self, wifi: Connection) -> None:
        wifi.remove_setting("connection")
        problems = wifi.verify()
        assert any(p.setting == "connection" and p.is_fatal for p in problems)

    def test_type_without_setting(self, wifi: Connection) -> None:
        wifi.remove_setting("802-11-wireless")
        problems = wifi.verify()
        assert [p.property for p in problems if p.is_fatal] == ["type"]

    def test_missing_companion(self, secured_wifi: Connection) -> None:
        secured_wifi.remove_setting("802-11-wireless-security")
        problems = secured_wifi.verify()
        fatal = [p for p in problems if p.is_fatal]
        assert len(fatal) == 1
        assert fatal[0].setting == "802-11-wireless"
        assert "802-11-wireless-security" in fatal[0].message

    def test_problem_domain_resolves_to_setting(self, wifi: Connection) -> None:
        problem = wifi.verify()[0]
        assert wifi.setting_for_problem(problem) == problem.setting


class TestSecrets:
    def test_need_secrets(self, secured_wifi: Connection) -> None:
        assert secured_wifi.need_secrets() == {
            "802-11-wireless-security": [SecretHint("psk", True)],
        }

    def test_update_and_clear(self, secured_wifi: Connection) -> None:
        updated = secured_wifi.update_secrets(
            {
                "802-11-wireless-security": {"psk": "correct horse", "key_mgmt": "none"},
                "vpn": {"password": "x"},
            }
        )
        assert updated == {"802-11-wireless-security": ["psk"]}
        security = secured_wifi.get_setting("802-11-wireless-security")
        assert security.get("key_mgmt") == Value.string("wpa-psk")
        assert secured_wifi.need_secrets() == {}

        secured_wifi.clear_secrets()
        assert security.get("psk") == Value.string(None)
        assert "802-11-wireless-security" in secured_wifi.need_secrets()

    def test_listeners_notified(self, secured_wifi: Connection) -> None:
        seen: list[tuple[Connection, str]] = []
        listener = lambda connection, name: seen.append((connection, name))  # noqa: E731
        secured_wifi.subscribe_secrets_updated(listener)
        secured_wifi.subscribe_secrets_updated(listener)
        secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "correct horse"}})
        assert seen == [(secured_wifi, "802-11-wireless-security")]

        secured_wifi.unsubscribe_secrets_updated(listener)
        secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "another one"}})
        assert len(seen) == 1

    def test_no_notification_when_nothing_changed(self, secured_wifi: Connection) -> None:
        seen: list[str] = []
        secured_wifi.subscribe_secrets_updated(lambda _c, name: seen.append(name))
        secured_wifi.update_secrets({"802-11-wireless-security": {"key_mgmt": "none"}})
        assert seen == []

    def test_failing_listener_does_not_stop_others(
        self, secured_wifi: Connection, caplog: pytest.LogCaptureFixture
    ) -> None:
        seen: list[str] = []

        def broken(_connection: Connection, _name: str) -> None:
            raise RuntimeError("boom")

        secured_wifi.subscribe_secrets_updated(broken)
        secured_wifi.subscribe_secrets_updated(lambda _c, name: seen.append(name))
        with caplog.at_level(logging.WARNING, logger="netprofile"):
            secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "correct horse"}})
        assert seen == ["802-11-wireless-security"]
        assert "Secrets listener failed" in caplog.text

    def test_export_without_secrets(self, secured_wifi: Connection) -> None:
        secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "correct horse"}})
        exported = secured_wifi.to_generic_map(include_secrets=False)
        assert "psk" not in exported["802-11-wireless-security"]


class TestTraversal:
    def test_deterministic_order(self, wifi: Connection) -> None:
        triples = list(wifi.iter_properties())
        setting_names = [s for s, _, _ in triples]
        assert setting_names == sorted(setting_names)
        assert triples[0][:2] == ("802-11-wireless", "ssid")

    def test_restartable(self, wifi: Connection) -> None:
        traversal = wifi.iter_properties()
        assert list(traversal) == list(traversal)

    def test_lazy_reflects_current_state(self, wifi: Connection) -> None:
        traversal = wifi.iter_properties()
        wifi.get_setting("802-11-wireless").set("ssid", "Later")
        assert ("802-11-wireless", "ssid", Value.string("Later")) in list(traversal)

    def test_for_each_property(self, wifi: Connection) -> None:
        seen: list[tuple[str, str]] = []
        wifi.for_each_property(lambda s, p, _v: seen.append((s, p)))
        expected = len(WirelessSetting.PROPERTIES) + len(ConnectionSetting.PROPERTIES)
        assert len(seen) == expected

    def test_dump_masks_secrets(self, secured_wifi: Connection, caplog: pytest.LogCaptureFixture) -> None:
        secured_wifi.update_secrets({"802-11-wireless-security": {"psk": "correct horse"}})
        with caplog.at_level(logging.INFO, logger="netprofile"):
            secured_wifi.dump()
        assert "802-11-wireless.ssid = 'MyNet'" in caplog.text
        assert "correct horse" not in caplog.text
        assert "<hidden>" in caplog.text
