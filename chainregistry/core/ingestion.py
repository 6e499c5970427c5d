"""Turn a Script Runner ``ExecutionResult`` into registry records.

Record construction is separated from writing: ``build_records`` is pure
and ``ingest_result`` validates the whole batch before the first ``put``,
so a result that would violate address uniqueness writes nothing.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import (
    ArtifactInfo,
    Deployment,
    DeploymentStrategy,
    DeploymentType,
    ProxyInfo,
    ProxyUpgrade,
    make_deployment_id,
    utcnow,
)
from chainregistry.models.execution import DeploymentEvent, ExecutionResult, TransactionEvent
from chainregistry.models.transactions import (
    Operation,
    SafeContext,
    SafeTransaction,
    Transaction,
    make_safe_batch_transaction_id,
    make_transaction_id,
)

logger = logging.getLogger(__name__)


class IngestedRecords(BaseModel):
    """Records produced from one Execution Result, ready to be put."""

    model_config = ConfigDict(frozen=True)

    deployments: list[Deployment] = []
    transactions: list[Transaction] = []
    safe_transactions: list[SafeTransaction] = []

    @property
    def deployment_ids(self) -> list[str]:
        return sorted(d.id for d in self.deployments)

    @property
    def transaction_ids(self) -> list[str]:
        return sorted(t.id for t in self.transactions)

    @property
    def safe_tx_hashes(self) -> list[str]:
        return sorted(s.safe_tx_hash for s in self.safe_transactions)


# ---------------------------------------------------------------------------
# Record construction
# ---------------------------------------------------------------------------


def _transaction_id_for(
    hash_: str, batch_index: int | None, result: ExecutionResult
) -> str:
    if hash_:
        return make_transaction_id(hash_)
    if batch_index is not None and result.safe_proposal is not None:
        return make_safe_batch_transaction_id(
            result.safe_proposal.safe_tx_hash, batch_index
        )
    return ""


def _safe_context(result: ExecutionResult, batch_index: int | None) -> SafeContext | None:
    proposal = result.safe_proposal
    if proposal is None or batch_index is None:
        return None
    return SafeContext(
        safe_address=proposal.safe_address,
        safe_tx_hash=proposal.safe_tx_hash,
        batch_index=batch_index,
        proposer_address=proposal.proposer,
    )


def _proxy_info(
    event: DeploymentEvent,
    dep_id: str,
    chain_id: int,
    address_ids: dict[str, str],
    store: RegistryStore,
) -> ProxyInfo:
    impl_id = address_ids.get(event.implementation.lower(), "")
    if not impl_id:
        existing_impl = store.get_by_address(chain_id, event.implementation)
        impl_id = existing_impl.id if existing_impl else ""

    history: list[ProxyUpgrade] = []
    previous = store.get(dep_id)
    if previous is not None and previous.proxy_info is not None:
        history = list(previous.proxy_info.history)
        old_impl = store.index.implementation_of(dep_id)
        if old_impl and old_impl not in {h.implementation_id for h in history}:
            history.append(
                ProxyUpgrade(implementation_id=old_impl, upgraded_at=previous.created_at)
            )
    if impl_id and (not history or history[-1].implementation_id != impl_id):
        tx_id = make_transaction_id(event.transaction_hash) if event.transaction_hash else ""
        history.append(ProxyUpgrade(implementation_id=impl_id, upgrade_tx_id=tx_id))

    return ProxyInfo(
        type=event.proxy_type,
        implementation=event.implementation,
        history=history,
    )


def build_records(
    store: RegistryStore,
    result: ExecutionResult,
    namespace: str,
) -> IngestedRecords:
    """Build the records an Execution Result describes without writing them.

    Re-recording an existing id keeps its tags and creation time; proxy
    history is carried forward.  The store is only read.
    """
    chain_id = result.chain_id
    now = utcnow()

    event_ids = [
        make_deployment_id(namespace, chain_id, e.contract_name, e.label)
        for e in result.deployments
    ]
    # First claim wins for proxy linking; clashes are rejected by put_many.
    address_ids: dict[str, str] = {}
    for event, dep_id in zip(result.deployments, event_ids):
        address_ids.setdefault(event.address.lower(), dep_id)

    # Transactions keyed by id; deployment links filled in below.
    tx_fields: dict[str, dict] = {}
    tx_links: dict[str, set[str]] = {}

    def touch_tx(tx_id: str, fields: dict) -> None:
        tx_fields.setdefault(tx_id, {}).update(fields)
        tx_links.setdefault(tx_id, set())

    for event in result.transactions:
        tx_id = _transaction_id_for(event.hash, event.safe_batch_index, result)
        if not tx_id:
            logger.warning("Skipping transaction without hash or Safe batch index")
            continue
        touch_tx(tx_id, _transaction_fields(event, result))

    deployments: list[Deployment] = []
    for event, dep_id in zip(result.deployments, event_ids):
        tx_id = _transaction_id_for(event.transaction_hash, event.safe_batch_index, result)
        if tx_id:
            if tx_id not in tx_fields:
                touch_tx(
                    tx_id,
                    {
                        "hash": event.transaction_hash,
                        "safe_context": _safe_context(result, event.safe_batch_index),
                    },
                )
            tx_links[tx_id].add(dep_id)

        previous = store.get(dep_id)
        proxy_info = None
        if event.type == DeploymentType.PROXY and event.implementation:
            proxy_info = _proxy_info(event, dep_id, chain_id, address_ids, store)

        deployments.append(
            Deployment(
                id=dep_id,
                namespace=namespace,
                chain_id=chain_id,
                contract_name=event.contract_name,
                label=event.label,
                address=event.address,
                type=event.type,
                transaction_id=tx_id,
                deployment_strategy=DeploymentStrategy(
                    method=event.method,
                    salt=event.salt,
                    init_code_hash=event.init_code_hash,
                    factory=event.factory,
                    constructor_args=event.constructor_args,
                ),
                proxy_info=proxy_info,
                artifact=ArtifactInfo(
                    path=event.artifact_path,
                    compiler_version=event.compiler_version,
                    bytecode_hash=event.bytecode_hash,
                    script_path=result.script_path,
                ),
                tags=previous.tags if previous else [],
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
        )

    transactions: list[Transaction] = []
    for tx_id, fields in sorted(tx_fields.items()):
        previous_tx = store.get_transaction(tx_id)
        links = set(tx_links[tx_id])
        if previous_tx is not None:
            links.update(previous_tx.deployments)
            if previous_tx.is_terminal:
                fields = {**fields, "status": previous_tx.status,
                          "block_number": previous_tx.block_number}
        transactions.append(
            Transaction(
                id=tx_id,
                chain_id=chain_id,
                deployments=sorted(links),
                environment=namespace,
                created_at=previous_tx.created_at if previous_tx else now,
                **fields,
            )
        )

    safe_transactions: list[SafeTransaction] = []
    proposal = result.safe_proposal
    if proposal is not None:
        batch_ids = sorted(
            t.id for t in transactions
            if t.safe_context is not None
            and t.safe_context.safe_tx_hash == proposal.safe_tx_hash
        )
        previous_safe = store.get_safe_transaction(proposal.safe_tx_hash)
        if previous_safe is not None:
            safe_transactions.append(
                previous_safe.model_copy(
                    update={
                        "transaction_ids": sorted(
                            {*previous_safe.transaction_ids, *batch_ids}
                        )
                    }
                )
            )
        else:
            safe_transactions.append(
                SafeTransaction(
                    safe_tx_hash=proposal.safe_tx_hash,
                    safe_address=proposal.safe_address,
                    chain_id=chain_id,
                    nonce=proposal.nonce,
                    transactions=proposal.transactions,
                    transaction_ids=batch_ids,
                    proposed_by=proposal.proposer,
                    proposed_at=now,
                )
            )

    return IngestedRecords(
        deployments=deployments,
        transactions=transactions,
        safe_transactions=safe_transactions,
    )


def _transaction_fields(event: TransactionEvent, result: ExecutionResult) -> dict:
    return {
        "hash": event.hash,
        "status": event.status,
        "block_number": event.block_number,
        "sender": event.sender,
        "nonce": event.nonce,
        "operations": [Operation.model_validate(op) for op in event.operations],
        "safe_context": _safe_context(result, event.safe_batch_index),
    }


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def ingest_result(
    store: RegistryStore,
    result: ExecutionResult,
    namespace: str,
) -> IngestedRecords:
    """Build and write every record of ``result``; all-or-nothing."""
    records = build_records(store, result, namespace)
    # Implementations before proxies keeps the index linking in one pass.
    ordered = sorted(records.deployments, key=lambda d: d.type == DeploymentType.PROXY)
    store.put_many([*ordered, *records.transactions, *records.safe_transactions])
    logger.info(
        "Ingested %d deployments, %d transactions, %d safe transactions on chain %d",
        len(records.deployments),
        len(records.transactions),
        len(records.safe_transactions),
        result.chain_id,
    )
    return records

