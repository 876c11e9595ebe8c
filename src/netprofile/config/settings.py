"""Unified settings — init kwargs, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   — explicit overrides from the host application
  2. Env vars      — ``NETPROFILE_*`` prefix, ``__`` for nested sections
  3. TOML file     — ``netprofile.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses ``find_config`` from :mod:`netprofile.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from netprofile.config.discovery import find_config
from netprofile.config.models import CompareConfig, RegistryConfig, SecretsConfig
from netprofile.domain.setting import CompareFlags


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``netprofile.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise ValueError(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class NetprofileSettings(BaseSettings):
    """Runtime settings for the profile model and its plugins.

    Attributes:
        config_path: The TOML file the settings were read from, if any.
        verbose: Enable DEBUG logging for the ``netprofile`` logger.
        log_json: Emit JSON log lines instead of console output.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "NETPROFILE_",
        "env_nested_delimiter": "__",
    }

    config_path: Path | None = None
    verbose: bool = False
    log_json: bool = False

    compare: CompareConfig = Field(default_factory=CompareConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def load(
        cls,
        *,
        config_path: str | Path | None = None,
        start: Path | None = None,
        **overrides: Any,
    ) -> NetprofileSettings:
        """Discover ``netprofile.toml`` (or use *config_path*) and build settings."""
        toml_path: Path | None
        if config_path:
            p = Path(config_path)
            toml_path = p if p.is_file() else None
        else:
            toml_path = find_config(start)

        _tls.toml_path = toml_path
        try:
            return cls(config_path=toml_path, **overrides)
        finally:
            _tls.toml_path = None

    def compare_flags(self) -> CompareFlags:
        """Default comparison flags derived from the ``[compare]`` section."""
        flags = CompareFlags.EXACT
        if self.compare.ignore_secrets:
            flags |= CompareFlags.IGNORE_SECRETS
        if self.compare.ignore_identity:
            flags |= CompareFlags.IGNORE_IDENTITY
        return flags
