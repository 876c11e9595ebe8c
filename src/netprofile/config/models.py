"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, netprofile.toml only contains
overrides.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from netprofile.domain.compare import FLOAT_TOLERANCE

# --- netprofile.toml sections ---


class CompareConfig(BaseModel):
    """[compare] section."""

    model_config = {"frozen": True}

    float_tolerance: float = Field(default=FLOAT_TOLERANCE, ge=0.0)
    ignore_secrets: bool = False
    ignore_identity: bool = False


class RegistryConfig(BaseModel):
    """[registry] section."""

    model_config = {"frozen": True}

    load_plugins: bool = True
    entry_point_group: str = "netprofile.plugins"
    disabled: list[str] = Field(default_factory=list)


class SecretsConfig(BaseModel):
    """[secrets] section."""

    model_config = {"frozen": True}

    export_secrets: bool = False
