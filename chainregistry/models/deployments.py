"""Deployment record models — one on-chain contract instance per record."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Shared config for every persisted record: immutable, camelCase on disk.
RECORD_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentType(str, Enum):
    """Tagged kind of a deployment record."""

    SINGLETON = "SINGLETON"
    PROXY = "PROXY"
    LIBRARY = "LIBRARY"
    UNKNOWN = "UNKNOWN"


class DeploymentMethod(str, Enum):
    """How the contract address was derived."""

    CREATE = "CREATE"
    CREATE2 = "CREATE2"
    CREATE3 = "CREATE3"


class VerificationStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"


class DeploymentStrategy(BaseModel):
    """Deterministic-deployment parameters (salt, factory, init code)."""

    model_config = RECORD_CONFIG

    method: DeploymentMethod = DeploymentMethod.CREATE
    salt: str = ""
    init_code_hash: str = ""
    factory: str = ""  # e.g. CreateX
    constructor_args: str = ""  # hex encoded
    entropy: str = ""  # human-readable salt components


class ProxyUpgrade(BaseModel):
    """One entry in a proxy's additive upgrade history."""

    model_config = RECORD_CONFIG

    implementation_id: str
    upgraded_at: datetime = Field(default_factory=utcnow)
    upgrade_tx_id: str = ""


class ProxyInfo(BaseModel):
    model_config = RECORD_CONFIG

    type: str = ""  # ERC1967, UUPS, Transparent, ...
    implementation: str  # current implementation address
    admin: str = ""
    history: list[ProxyUpgrade] = []


class ArtifactInfo(BaseModel):
    model_config = RECORD_CONFIG

    path: str = ""  # e.g. src/Counter.sol:Counter
    compiler_version: str = ""
    bytecode_hash: str = ""
    script_path: str = ""
    git_commit: str = ""


class VerifierStatus(BaseModel):
    model_config = RECORD_CONFIG

    status: str  # verified / pending / failed
    url: str = ""
    reason: str = ""


class VerificationInfo(BaseModel):
    model_config = RECORD_CONFIG

    status: VerificationStatus = VerificationStatus.UNVERIFIED
    etherscan_url: str = ""
    verified_at: datetime | None = None
    reason: str = ""
    verifiers: dict[str, VerifierStatus] = {}


def make_deployment_id(
    namespace: str, chain_id: int, contract_name: str, label: str = ""
) -> str:
    """Build the canonical id ``namespace/chainId/contract[:label]``."""
    base = f"{namespace}/{chain_id}/{contract_name}"
    return f"{base}:{label}" if label else base


def format_display_name(contract_name: str, label: str = "") -> str:
    """Return ``contract[:label]``."""
    return f"{contract_name}:{label}" if label else contract_name


class Deployment(BaseModel):
    """A single deployed contract on a single chain.

    ``id`` is derived from (namespace, chainId, contractName, label) and is the
    primary key used by every lookup index.  Exactly one record may claim a
    given (chainId, address) pair; the Registry Store enforces that.
    """

    model_config = RECORD_CONFIG

    id: str = ""
    namespace: str
    chain_id: int
    contract_name: str
    label: str = ""
    address: str
    type: DeploymentType = DeploymentType.SINGLETON
    transaction_id: str = ""
    deployment_strategy: DeploymentStrategy = DeploymentStrategy()
    proxy_info: ProxyInfo | None = None
    artifact: ArtifactInfo = ArtifactInfo()
    verification: VerificationInfo = VerificationInfo()
    tags: list[str] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("tags")
    @classmethod
    def _tags_as_set(cls, value: list[str]) -> list[str]:
        return sorted(set(value))

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("id"):
            return data

        def pick(name: str, alias: str) -> Any:
            return data.get(name, data.get(alias))

        namespace = pick("namespace", "namespace")
        chain_id = pick("chain_id", "chainId")
        contract_name = pick("contract_name", "contractName")
        if namespace and chain_id is not None and contract_name:
            label = pick("label", "label") or ""
            data = {
                **data,
                "id": make_deployment_id(namespace, chain_id, contract_name, label),
            }
        return data

    @property
    def expected_id(self) -> str:
        """The id implied by this record's identifying fields."""
        return make_deployment_id(
            self.namespace, self.chain_id, self.contract_name, self.label
        )

    @property
    def display_name(self) -> str:
        return format_display_name(self.contract_name, self.label)

    @property
    def address_key(self) -> tuple[int, str]:
        """(chainId, lower-cased address) uniqueness key."""
        return (self.chain_id, self.address.lower())


class DeploymentFilter(BaseModel):
    """Optional predicates for ``RegistryStore.get_all_deployments``."""

    model_config = ConfigDict(frozen=True)

    namespace: str | None = None
    chain_id: int | None = None
    contract_name: str | None = None
    label: str | None = None
    type: DeploymentType | None = None
    tag: str | None = None

    def matches(self, deployment: Deployment) -> bool:
        if self.namespace is not None and deployment.namespace != self.namespace:
            return False
        if self.chain_id is not None and deployment.chain_id != self.chain_id:
            return False
        if (
            self.contract_name is not None
            and deployment.contract_name != self.contract_name
        ):
            return False
        if self.label is not None and deployment.label != self.label:
            return False
        if self.type is not None and deployment.type != self.type:
            return False
        if self.tag is not None and self.tag not in deployment.tags:
            return False
        return True
