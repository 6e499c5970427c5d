"""Script Runner request / Execution Result models.

An Execution Result is the abstracted output of running one deployment
script: new addresses, broadcast transactions, and at most one queued Safe
multisig proposal.  Parsing forge output into this shape is the runner's job.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from chainregistry.models.deployments import DeploymentMethod, DeploymentType, RECORD_CONFIG
from chainregistry.models.transactions import SafeTxData, TransactionStatus


class ExecutionRequest(BaseModel):
    """Everything a Script Runner needs to execute one script."""

    model_config = ConfigDict(frozen=True)

    script: str
    network: str = ""
    namespace: str = "default"
    env: dict[str, str] = {}
    dry_run: bool = False
    debug: bool = False


class DeploymentEvent(BaseModel):
    model_config = RECORD_CONFIG

    contract_name: str
    address: str
    label: str = ""
    type: DeploymentType = DeploymentType.SINGLETON
    method: DeploymentMethod = DeploymentMethod.CREATE
    salt: str = ""
    init_code_hash: str = ""
    factory: str = ""
    constructor_args: str = ""
    bytecode_hash: str = ""
    artifact_path: str = ""
    compiler_version: str = ""
    implementation: str = ""  # proxies only: implementation address
    proxy_type: str = ""
    transaction_hash: str = ""
    safe_batch_index: int | None = None  # set when deployed through a Safe batch


class TransactionEvent(BaseModel):
    model_config = RECORD_CONFIG

    hash: str = ""
    status: TransactionStatus = TransactionStatus.PENDING
    block_number: int | None = None
    sender: str = ""
    nonce: int = 0
    operations: list[dict[str, Any]] = []
    safe_batch_index: int | None = None


class SafeProposal(BaseModel):
    model_config = RECORD_CONFIG

    safe_tx_hash: str
    safe_address: str
    nonce: int = 0
    transactions: list[SafeTxData] = []
    proposer: str = ""


class ExecutionResult(BaseModel):
    """Output of one Script Runner invocation."""

    model_config = RECORD_CONFIG

    chain_id: int
    deployments: list[DeploymentEvent] = []
    transactions: list[TransactionEvent] = []
    safe_proposal: SafeProposal | None = None
    script_path: str = ""
