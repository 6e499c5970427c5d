"""Collaborator answers and the sync / prune summaries built from them."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from chainregistry.models.transactions import Confirmation


class ReceiptStatus(str, Enum):
    EXECUTED = "executed"
    FAILED = "failed"
    NOT_FOUND = "not_found"


class Receipt(BaseModel):
    """Chain Client answer for ``get_receipt``."""

    model_config = ConfigDict(frozen=True)

    status: ReceiptStatus
    block_number: int | None = None


class SafeExecutionInfo(BaseModel):
    """Safe API Client answer for ``get_transaction``."""

    model_config = ConfigDict(frozen=True)

    executed: bool = False
    execution_tx_hash: str = ""
    confirmations: list[Confirmation] = []
    confirmations_required: int = 0
    successful: bool | None = None


class SyncIssue(BaseModel):
    """A per-record failure that was recovered locally."""

    model_config = ConfigDict(frozen=True)

    record_id: str
    chain_id: int
    message: str


class SyncReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    safe_txs_checked: int = 0
    safe_txs_executed: int = 0
    safe_txs_confirmations_updated: int = 0
    transactions_checked: int = 0
    transactions_updated: int = 0
    transactions_created: int = 0
    deployments_pruned: list[str] = []
    transactions_pruned: list[str] = []
    issues: list[SyncIssue] = []

    @property
    def changed(self) -> bool:
        return bool(
            self.safe_txs_executed
            or self.safe_txs_confirmations_updated
            or self.transactions_updated
            or self.transactions_created
            or self.deployments_pruned
            or self.transactions_pruned
        )


class PruneCandidates(BaseModel):
    """Record ids independently confirmed absent on-chain."""

    model_config = ConfigDict(frozen=True)

    chain_id: int
    deployment_ids: list[str] = []
    transaction_ids: list[str] = []
    safe_tx_hashes: list[str] = []
    unchecked: list[str] = []  # ids whose on-chain check raised

    @property
    def total(self) -> int:
        return (
            len(self.deployment_ids)
            + len(self.transaction_ids)
            + len(self.safe_tx_hashes)
        )
