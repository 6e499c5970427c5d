"""Transaction and Safe multisig transaction records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from chainregistry.models.deployments import RECORD_CONFIG, utcnow


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"


class SafeTxStatus(str, Enum):
    QUEUED = "QUEUED"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"


# Terminal states have no outgoing transitions during sync.
TERMINAL_TRANSACTION_STATES = frozenset(
    {TransactionStatus.EXECUTED, TransactionStatus.FAILED}
)
TERMINAL_SAFE_STATES = frozenset({SafeTxStatus.EXECUTED, SafeTxStatus.FAILED})


class Operation(BaseModel):
    """One operation performed inside a transaction (DEPLOY, CALL, ...)."""

    model_config = RECORD_CONFIG

    type: str
    target: str = ""
    method: str = ""
    result: dict[str, Any] = {}


class SafeContext(BaseModel):
    """Links a transaction to the Safe batch that carries it."""

    model_config = RECORD_CONFIG

    safe_address: str
    safe_tx_hash: str
    batch_index: int = 0
    proposer_address: str = ""


def make_transaction_id(tx_hash: str) -> str:
    """Transaction ids are ``tx-<hash>``."""
    return f"tx-{tx_hash.lower()}"


def make_safe_batch_transaction_id(safe_tx_hash: str, batch_index: int) -> str:
    """Id for a transaction that is still waiting inside a Safe batch."""
    return f"tx-safe-{safe_tx_hash.lower()}-{batch_index}"


class Transaction(BaseModel):
    """One broadcast transaction, possibly deploying several contracts."""

    model_config = RECORD_CONFIG

    id: str
    chain_id: int
    hash: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    block_number: int | None = None
    sender: str = ""
    nonce: int = 0
    deployments: list[str] = []
    operations: list[Operation] = []
    safe_context: SafeContext | None = None
    environment: str = ""
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRANSACTION_STATES


class SafeTxData(BaseModel):
    """A single call inside a Safe batch."""

    model_config = RECORD_CONFIG

    to: str
    value: str = "0"
    data: str = "0x"
    operation: int = 0  # 0 = Call, 1 = DelegateCall


class Confirmation(BaseModel):
    model_config = RECORD_CONFIG

    signer: str
    signature: str = ""
    confirmed_at: datetime | None = None


def merge_confirmations(
    existing: list[Confirmation], observed: list[Confirmation]
) -> list[Confirmation]:
    """Union two confirmation lists keyed by signer (case-insensitive).

    Previously recorded confirmations are kept; newly observed signers are
    added.  The result is sorted by signer so the merge is order-independent.
    """
    merged: dict[str, Confirmation] = {}
    for confirmation in existing:
        merged[confirmation.signer.lower()] = confirmation
    for confirmation in observed:
        key = confirmation.signer.lower()
        if key not in merged:
            merged[key] = confirmation
    return [merged[key] for key in sorted(merged)]


class SafeTransaction(BaseModel):
    """A multisig batch awaiting co-signatures, keyed by ``safe_tx_hash``."""

    model_config = RECORD_CONFIG

    safe_tx_hash: str
    safe_address: str
    chain_id: int
    status: SafeTxStatus = SafeTxStatus.QUEUED
    nonce: int = 0
    transactions: list[SafeTxData] = []
    transaction_ids: list[str] = []
    proposed_by: str = ""
    proposed_at: datetime = Field(default_factory=utcnow)
    confirmations: list[Confirmation] = []
    executed_at: datetime | None = None
    execution_tx_hash: str = ""

    @field_validator("confirmations")
    @classmethod
    def _confirmations_as_set(cls, value: list[Confirmation]) -> list[Confirmation]:
        return merge_confirmations([], value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_SAFE_STATES
