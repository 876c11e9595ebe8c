"""Pluggy hook specifications for netprofile extensions.

Setup-time hook: plugins contribute setting kinds to a SettingRegistry.
Runtime hook: plugins observe secrets being applied to a Connection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from netprofile.domain.connection import Connection
    from netprofile.domain.setting import Setting

PROJECT_NAME = "netprofile"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class NetprofileHookSpec:
    """Hook specifications for the netprofile plugin system."""

    @hookspec
    def register_setting_types(self) -> dict[str, type[Setting]] | None:
        """Return setting name -> Setting subclass mappings to add to the registry."""

    @hookspec
    def secrets_updated(self, connection: Connection, setting_name: str) -> None:
        """Called after new secrets were merged into *setting_name*."""
