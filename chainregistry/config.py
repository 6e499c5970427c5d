"""Runtime configuration — env-driven.

Centralized config using pydantic-settings. Reads from a .env file and
CHAINREGISTRY_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainregistry.bridge.safe_client import DEFAULT_SAFE_SERVICE_URLS


class RegistryConfig(BaseSettings):
    """Registry configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export CHAINREGISTRY_REGISTRY_PATH=deployments/registry.json
        export CHAINREGISTRY_NAMESPACE=staging
        export CHAINREGISTRY_RPC_URLS='{"11155111": "https://rpc.sepolia.org"}'

    Or via .env file::

        CHAINREGISTRY_NETWORK=sepolia
        CHAINREGISTRY_NON_INTERACTIVE=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CHAINREGISTRY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    registry_path: Path = Path(".chainregistry/registry.json")

    # Run defaults
    namespace: str = "default"
    network: str = ""
    log_level: str = "INFO"
    debug: bool = False
    non_interactive: bool = False

    # External services
    http_timeout_seconds: float = 30.0
    sync_max_workers: int = 4
    rpc_urls: dict[int, str] = {}
    safe_service_urls: dict[int, str] = Field(
        default_factory=lambda: dict(DEFAULT_SAFE_SERVICE_URLS)
    )

    # Script Runner command prefix; the script path is appended.
    script_command: str = "chainregistry-runner"
    script_timeout_seconds: float = Field(default=1800.0, gt=0)
