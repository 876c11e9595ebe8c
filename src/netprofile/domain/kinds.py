"""Built-in setting kinds.

Just enough schema to describe a Wi-Fi profile: the ``connection`` identity
block, wireless parameters, wireless security, and IPv4 addressing.
Technology-specific settings beyond these are provided by plugins.
"""

from __future__ import annotations

import ipaddress
import re
from typing import TYPE_CHECKING

from netprofile.domain.setting import Problem, PropertySpec, SecretHint, Setting
from netprofile.domain.values import Value, ValueKind

if TYPE_CHECKING:
    from netprofile.domain.connection import Connection

_HEX_PSK = re.compile(r"^[0-9a-fA-F]{64}$")


class ConnectionSetting(Setting):
    """Identity and general behaviour of a profile.

    ``type`` names the setting that carries the primary technology
    (e.g. ``802-11-wireless``); the Connection checks that it is present.
    """

    NAME = "connection"
    PROPERTIES = (
        PropertySpec("id", ValueKind.STRING, required=True, description="User-visible name"),
        PropertySpec("uuid", ValueKind.STRING, identity=True),
        PropertySpec("type", ValueKind.STRING, required=True),
        PropertySpec("autoconnect", ValueKind.BOOL, default=Value.boolean(True)),
        PropertySpec("timestamp", ValueKind.UINT64, identity=True),
        PropertySpec("read_only", ValueKind.BOOL),
        PropertySpec("permissions", ValueKind.STRING_LIST),
    )

    def _verify(self, context: Connection | None) -> list[Problem]:
        problems: list[Problem] = []
        if self.get("uuid").is_empty():
            problems.append(self.warning("uuid", "connection has no uuid"))
        return problems


class WirelessSetting(Setting):
    """802.11 radio parameters."""

    NAME = "802-11-wireless"
    MODES = ("infrastructure", "adhoc")
    BANDS = ("a", "bg")
    PROPERTIES = (
        PropertySpec("ssid", ValueKind.STRING, required=True),
        PropertySpec("mode", ValueKind.STRING),
        PropertySpec("band", ValueKind.STRING),
        PropertySpec("channel", ValueKind.UINT64),
        PropertySpec("bssid", ValueKind.BYTE_ARRAY),
        PropertySpec("mtu", ValueKind.UINT64),
        PropertySpec("seen_bssids", ValueKind.STRING_LIST, identity=True),
        PropertySpec("security", ValueKind.STRING, description="Name of the security setting"),
    )

    def _verify(self, context: Connection | None) -> list[Problem]:
        problems: list[Problem] = []
        ssid = self.get("ssid").payload
        if ssid and len(ssid.encode("utf-8")) > 32:
            problems.append(self.fatal("ssid", "SSID is longer than 32 bytes"))

        mode = self.get("mode").payload
        if mode is not None and mode not in self.MODES:
            problems.append(self.fatal("mode", f"unknown mode {mode!r}"))

        band = self.get("band").payload
        if band is not None and band not in self.BANDS:
            problems.append(self.fatal("band", f"unknown band {band!r}"))

        channel = self.get("channel").payload
        if channel and band is None:
            problems.append(self.fatal("channel", "channel requires a band"))
        if mode == "adhoc" and not channel:
            problems.append(self.warning("channel", "ad-hoc network without a fixed channel"))

        bssid = self.get("bssid").payload
        if bssid is not None and len(bssid) != 6:
            problems.append(self.fatal("bssid", "BSSID must be 6 bytes"))
        return problems

    def required_companions(self) -> list[str]:
        security = self.get("security").payload
        return [security] if security else []


class WirelessSecuritySetting(Setting):
    """802.11 authentication and keys."""

    NAME = "802-11-wireless-security"
    KEY_MGMT = ("none", "ieee8021x", "wpa-none", "wpa-psk", "wpa-eap")
    PROPERTIES = (
        PropertySpec("key_mgmt", ValueKind.STRING, required=True),
        PropertySpec("wep_tx_keyidx", ValueKind.UINT64),
        PropertySpec("auth_alg", ValueKind.STRING),
        PropertySpec("proto", ValueKind.STRING_LIST),
        PropertySpec("pairwise", ValueKind.STRING_LIST),
        PropertySpec("group", ValueKind.STRING_LIST),
        PropertySpec("leap_username", ValueKind.STRING),
        PropertySpec("wep_key0", ValueKind.STRING, secret=True),
        PropertySpec("wep_key1", ValueKind.STRING, secret=True),
        PropertySpec("wep_key2", ValueKind.STRING, secret=True),
        PropertySpec("wep_key3", ValueKind.STRING, secret=True),
        PropertySpec("psk", ValueKind.STRING, secret=True),
        PropertySpec("leap_password", ValueKind.STRING, secret=True),
    )

    def _verify(self, context: Connection | None) -> list[Problem]:
        problems: list[Problem] = []
        key_mgmt = self.get("key_mgmt").payload
        if key_mgmt is not None and key_mgmt not in self.KEY_MGMT:
            problems.append(self.fatal("key_mgmt", f"unknown key management {key_mgmt!r}"))

        if self.get("wep_tx_keyidx").payload > 3:
            problems.append(self.fatal("wep_tx_keyidx", "WEP key index must be 0-3"))

        psk = self.get("psk").payload
        if psk and not (8 <= len(psk) <= 63 or _HEX_PSK.match(psk)):
            problems.append(self.fatal("psk", "PSK must be 8-63 characters or 64 hex digits"))

        if key_mgmt == "ieee8021x" and self.get("auth_alg").payload == "leap":
            if self.get("leap_username").is_empty():
                problems.append(self.fatal("leap_username", "LEAP requires a username"))
        return problems

    def need_secrets(self) -> list[SecretHint]:
        """Only the secrets the configured key management actually uses."""
        key_mgmt = self.get("key_mgmt").payload
        if key_mgmt == "wpa-psk" or key_mgmt == "wpa-none":
            wanted = ["psk"]
        elif key_mgmt == "none":
            index = self.get("wep_tx_keyidx").payload
            wanted = [f"wep_key{index if index <= 3 else 0}"]
        elif key_mgmt == "ieee8021x" and self.get("auth_alg").payload == "leap":
            wanted = ["leap_password"]
        else:
            return []
        return [SecretHint(name, True) for name in wanted if self.get(name).is_empty()]


class IP4ConfigSetting(Setting):
    """IPv4 addressing.

    ``addresses`` is a list of maps with ``address`` (str), ``prefix`` (int)
    and an optional ``gateway`` (str).
    """

    NAME = "ipv4"
    METHODS = ("auto", "link-local", "manual", "shared", "disabled")
    PROPERTIES = (
        PropertySpec("method", ValueKind.STRING, required=True),
        PropertySpec("dns", ValueKind.STRING_LIST),
        PropertySpec("dns_search", ValueKind.STRING_LIST),
        PropertySpec("addresses", ValueKind.LIST),
        PropertySpec("ignore_auto_dns", ValueKind.BOOL),
        PropertySpec("dhcp_client_id", ValueKind.STRING),
        PropertySpec("dhcp_timeout", ValueKind.DOUBLE),
        PropertySpec("route_metric", ValueKind.INT64, default=Value.int64(-1)),
        PropertySpec("dhcp_send_options", ValueKind.MAP),
    )

    def _verify(self, context: Connection | None) -> list[Problem]:
        problems: list[Problem] = []
        method = self.get("method").payload
        if method is not None and method not in self.METHODS:
            problems.append(self.fatal("method", f"unknown method {method!r}"))

        addresses = self.get("addresses")
        if method == "manual" and addresses.is_empty():
            problems.append(self.fatal("addresses", "manual method requires at least one address"))
        elif method in ("link-local", "disabled") and not addresses.is_empty():
            problems.append(self.warning("addresses", f"addresses are ignored with method {method!r}"))

        for index, entry in enumerate(addresses.payload or ()):
            message = _address_problem(entry)
            if message:
                problems.append(self.fatal("addresses", f"entry {index}: {message}"))

        for server in self.get("dns").payload or ():
            try:
                ipaddress.IPv4Address(server)
            except ValueError:
                problems.append(self.fatal("dns", f"invalid DNS server {server!r}"))

        if self.get("dhcp_timeout").payload < 0:
            problems.append(self.fatal("dhcp_timeout", "timeout must not be negative"))
        return problems


def _address_problem(entry: Value) -> str | None:
    if entry.kind is not ValueKind.MAP or entry.payload is None:
        return "must be a map"
    fields = entry.payload
    address = fields.get("address")
    prefix = fields.get("prefix")
    if address is None or address.kind is not ValueKind.STRING:
        return "missing address"
    try:
        ipaddress.IPv4Address(address.payload)
    except ValueError:
        return f"invalid address {address.payload!r}"
    if prefix is None or prefix.kind not in (ValueKind.UINT64, ValueKind.INT64):
        return "missing prefix"
    if not 1 <= prefix.payload <= 32:
        return f"invalid prefix {prefix.payload}"
    gateway = fields.get("gateway")
    if gateway is not None:
        try:
            ipaddress.IPv4Address(gateway.payload)
        except ValueError:
            return f"invalid gateway {gateway.payload!r}"
    return None


BUILTIN_SETTINGS: tuple[type[Setting], ...] = (
    ConnectionSetting,
    WirelessSetting,
    WirelessSecuritySetting,
    IP4ConfigSetting,
)
