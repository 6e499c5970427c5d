"""Tests for registry config — env-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from chainregistry.config import RegistryConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from any CHAINREGISTRY_* variables or .env in the cwd."""
    monkeypatch.chdir(tmp_path)
    for name in ("REGISTRY_PATH", "NAMESPACE", "NON_INTERACTIVE", "RPC_URLS", "SYNC_MAX_WORKERS", "SCRIPT_TIMEOUT_SECONDS"):
        monkeypatch.delenv(f"CHAINREGISTRY_{name}", raising=False)


class TestRegistryConfig:
    def test_defaults(self):
        config = RegistryConfig()
        assert config.registry_path == Path(".chainregistry/registry.json")
        assert config.namespace == "default"
        assert config.non_interactive is False
        assert config.sync_max_workers == 4
        assert config.rpc_urls == {}
        assert config.script_timeout_seconds == 1800.0

    def test_default_safe_services(self):
        config = RegistryConfig()
        assert 1 in config.safe_service_urls
        assert 11155111 in config.safe_service_urls

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_NAMESPACE", "staging")
        monkeypatch.setenv("CHAINREGISTRY_NON_INTERACTIVE", "true")
        monkeypatch.setenv("CHAINREGISTRY_RPC_URLS", '{"11155111": "https://rpc.sepolia.org"}')
        config = RegistryConfig()
        assert config.namespace == "staging"
        assert config.non_interactive is True
        assert config.rpc_urls == {11155111: "https://rpc.sepolia.org"}

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("CHAINREGISTRY_SYNC_MAX_WORKERS=2\n")
        assert RegistryConfig().sync_max_workers == 2

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_NAMESPACE", "staging")
        config = RegistryConfig(namespace="prod", registry_path=Path("x.json"))
        assert config.namespace == "prod"
        assert config.registry_path == Path("x.json")

    def test_script_timeout_from_env(self, monkeypatch):
        monkeypatch.setenv("CHAINREGISTRY_SCRIPT_TIMEOUT_SECONDS", "90")
        assert RegistryConfig().script_timeout_seconds == 90.0

    def test_script_timeout_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            RegistryConfig(script_timeout_seconds=0)
