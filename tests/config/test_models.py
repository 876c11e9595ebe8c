"""Tests for the configuration section models."""

import pytest
from pydantic import ValidationError

from netprofile.config.models import CompareConfig, RegistryConfig, SecretsConfig


class TestDefaults:
    def test_section_defaults(self) -> None:
        assert CompareConfig().float_tolerance == 1e-8
        assert CompareConfig().ignore_secrets is False
        assert RegistryConfig().load_plugins is True
        assert RegistryConfig().entry_point_group == "netprofile.plugins"
        assert RegistryConfig().disabled == []
        assert SecretsConfig().export_secrets is False

    def test_sparse_section(self) -> None:
        cfg = CompareConfig.model_validate({"ignore_identity": True})
        assert cfg.ignore_identity is True
        assert cfg.float_tolerance == 1e-8


class TestValidation:
    def test_negative_tolerance_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CompareConfig(float_tolerance=-0.1)

    def test_frozen(self) -> None:
        cfg = CompareConfig()
        with pytest.raises(ValidationError):
            cfg.ignore_secrets = True  # type: ignore[misc]
