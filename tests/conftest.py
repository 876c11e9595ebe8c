"""Shared pytest fixtures and test helpers for netprofile tests."""

from __future__ import annotations

from typing import Any

import pytest

from netprofile.domain.connection import Connection
from netprofile.domain.registry import SettingRegistry, build_registry


def wifi_map(**wireless: Any) -> dict[str, dict[str, Any]]:
    """Generic map for the canonical home Wi-Fi profile."""
    return {
        "connection": {"id": "home", "type": "802-11-wireless"},
        "802-11-wireless": {"ssid": "MyNet", "mode": "infrastructure", **wireless},
    }


@pytest.fixture
def registry() -> SettingRegistry:
    """Fresh registry holding only the built-in setting kinds."""
    return build_registry()


@pytest.fixture
def wifi(registry: SettingRegistry) -> Connection:
    """The home Wi-Fi profile, parsed from its generic map."""
    return Connection.from_generic_map(wifi_map(), registry, path="/profiles/0")


@pytest.fixture
def secured_wifi(registry: SettingRegistry) -> Connection:
    """A WPA-PSK profile with all three related settings, secrets unset."""
    mapping = wifi_map(security="802-11-wireless-security")
    mapping["connection"]["uuid"] = "0b9a6c2e-7f41-4a53-9d0e-2f4c1f1f0a11"
    mapping["802-11-wireless-security"] = {"key_mgmt": "wpa-psk"}
    mapping["ipv4"] = {"method": "auto"}
    return Connection.from_generic_map(mapping, registry)
