"""Shared test fixtures for chainregistry."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from chainregistry.core.errors import ExternalServiceError, ScriptExecutionError
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import Deployment, DeploymentType, ProxyInfo
from chainregistry.models.execution import (
    DeploymentEvent,
    ExecutionRequest,
    ExecutionResult,
    TransactionEvent,
)
from chainregistry.models.sync import Receipt, ReceiptStatus, SafeExecutionInfo
from chainregistry.models.transactions import (
    SafeTransaction,
    Transaction,
    TransactionStatus,
    make_transaction_id,
)


def addr(n: int) -> str:
    """Deterministic checksum-free address for tests."""
    return "0x" + f"{n:040x}"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeChainClient:
    """In-memory Chain Client.

    ``receipts`` maps tx hash -> Receipt; ``code`` is the set of
    (chainId, lower address) with code; ``failing`` holds hashes or
    addresses whose lookup raises.
    """

    def __init__(self) -> None:
        self.receipts: dict[str, Receipt] = {}
        self.code: set[tuple[int, str]] = set()
        self.failing: set[str] = set()
        self.calls: list[tuple[str, int, str]] = []

    def get_receipt(self, chain_id: int, tx_hash: str) -> Receipt:
        self.calls.append(("receipt", chain_id, tx_hash))
        if tx_hash in self.failing:
            raise ExternalServiceError(f"rpc timeout for {tx_hash}")
        return self.receipts.get(tx_hash, Receipt(status=ReceiptStatus.NOT_FOUND))

    def address_exists(self, chain_id: int, address: str) -> bool:
        self.calls.append(("code", chain_id, address))
        if address.lower() in self.failing:
            raise ExternalServiceError(f"rpc timeout for {address}")
        return (chain_id, address.lower()) in self.code


class FakeSafeClient:
    """In-memory Safe API Client keyed by safe_tx_hash."""

    def __init__(self) -> None:
        self.transactions: dict[str, SafeExecutionInfo] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[int, str]] = []

    def get_transaction(self, chain_id: int, safe_tx_hash: str) -> SafeExecutionInfo:
        self.calls.append((chain_id, safe_tx_hash))
        if safe_tx_hash in self.failing:
            raise ExternalServiceError(f"Safe API unavailable for {safe_tx_hash}")
        return self.transactions.get(safe_tx_hash, SafeExecutionInfo())


class FakeScriptRunner:
    """Script Runner returning canned results by script path.

    A script mapped to an Exception instance raises it instead.
    """

    def __init__(self, results: dict[str, ExecutionResult | BaseException] | None = None) -> None:
        self.results = dict(results or {})
        self.requests: list[ExecutionRequest] = []

    @property
    def scripts_run(self) -> list[str]:
        return [r.script for r in self.requests]

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        self.requests.append(request)
        outcome = self.results.get(request.script)
        if outcome is None:
            raise ScriptExecutionError(f"no canned result for {request.script}")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    """Path of a not-yet-existing registry file in a temp directory."""
    return tmp_path / "registry.json"


@pytest.fixture
def store(registry_path: Path) -> RegistryStore:
    """A fresh, empty RegistryStore backed by a temp file."""
    return RegistryStore(registry_path)


@pytest.fixture
def chain_client() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def safe_client() -> FakeSafeClient:
    return FakeSafeClient()


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_deployment() -> Callable[..., Deployment]:
    """Factory fixture: build a Deployment with sensible defaults."""

    def _factory(
        contract_name: str = "Token",
        chain_id: int = 1,
        namespace: str = "prod",
        address: str | None = None,
        **overrides: Any,
    ) -> Deployment:
        defaults: dict[str, Any] = {
            "namespace": namespace,
            "chain_id": chain_id,
            "contract_name": contract_name,
            "address": address or addr(abs(hash((namespace, chain_id, contract_name,
                                                 overrides.get("label", "")))) % 10**12),
        }
        defaults.update(overrides)
        return Deployment(**defaults)

    return _factory


@pytest.fixture
def make_proxy(make_deployment: Callable[..., Deployment]) -> Callable[..., Deployment]:
    """Factory fixture: build a PROXY Deployment pointing at an address."""

    def _factory(implementation: str, contract_name: str = "TokenProxy", **overrides: Any) -> Deployment:
        return make_deployment(
            contract_name=contract_name,
            type=DeploymentType.PROXY,
            proxy_info=ProxyInfo(type="ERC1967", implementation=implementation),
            **overrides,
        )

    return _factory


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    def _factory(n: int = 1, chain_id: int = 1, **overrides: Any) -> Transaction:
        hash_ = tx_hash(n)
        defaults: dict[str, Any] = {
            "id": make_transaction_id(hash_),
            "chain_id": chain_id,
            "hash": hash_,
            "status": TransactionStatus.PENDING,
        }
        defaults.update(overrides)
        return Transaction(**defaults)

    return _factory


@pytest.fixture
def make_safe_tx() -> Callable[..., SafeTransaction]:
    def _factory(n: int = 1, chain_id: int = 100, **overrides: Any) -> SafeTransaction:
        defaults: dict[str, Any] = {
            "safe_tx_hash": tx_hash(10_000 + n),
            "safe_address": addr(0xA11CE),
            "chain_id": chain_id,
        }
        defaults.update(overrides)
        return SafeTransaction(**defaults)

    return _factory


@pytest.fixture
def make_result() -> Callable[..., ExecutionResult]:
    """Factory fixture: an ExecutionResult deploying the named contracts.

    Each contract gets a fixed address derived from ``base`` and its
    position, plus one executed transaction per deployment.
    """

    def _factory(
        *contracts: str,
        chain_id: int = 1,
        base: int = 0x1000,
        **overrides: Any,
    ) -> ExecutionResult:
        deployments = []
        transactions = []
        for offset, name in enumerate(contracts):
            hash_ = tx_hash(base + offset)
            deployments.append(
                DeploymentEvent(
                    contract_name=name,
                    address=addr(base + offset),
                    transaction_hash=hash_,
                )
            )
            transactions.append(
                TransactionEvent(
                    hash=hash_, status=TransactionStatus.EXECUTED, block_number=100 + offset
                )
            )
        defaults: dict[str, Any] = {
            "chain_id": chain_id,
            "deployments": deployments,
            "transactions": transactions,
        }
        defaults.update(overrides)
        return ExecutionResult(**defaults)

    return _factory
