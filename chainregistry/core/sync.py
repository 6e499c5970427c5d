"""State reconciliation: advance pending records from external ground truth.

Two passes, each grouped by chain:

1. QUEUED Safe transactions are looked up in the Safe API.  Executed ones
   become EXECUTED (or FAILED) together with every Transaction they carry;
   the rest get their confirmation set unioned with what was observed.
2. PENDING plain transactions are checked against the Chain Client and move
   to EXECUTED or FAILED once a receipt exists.

Polling may run on a thread pool (one worker per chain group).  Writes are
always applied afterwards, one record at a time, and only when the record's
canonical digest actually changed, so a pass with nothing new writes
nothing.  A per-record ``ExternalServiceError`` is logged, recorded in the
report and leaves that record untouched.

With ``clean=True`` every chain holding deployments is checked for records
the Chain Client proves absent, whether or not anything was pending there.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from chainregistry.bridge.protocols import ChainClient, SafeApiClient
from chainregistry.core.errors import ExternalServiceError
from chainregistry.core.hasher import record_digest
from chainregistry.core.pruner import RegistryPruner
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import utcnow
from chainregistry.models.sync import (
    ReceiptStatus,
    SafeExecutionInfo,
    SyncIssue,
    SyncReport,
)
from chainregistry.models.transactions import (
    SafeTransaction,
    SafeTxStatus,
    Transaction,
    TransactionStatus,
    make_transaction_id,
    merge_confirmations,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class SyncEngine:
    """Reconcile a ``RegistryStore`` with chain and Safe service state.

    Parameters
    ----------
    store:
        Registry to update.
    chain_client:
        Receipt and code lookups.
    safe_client:
        Safe Transaction Service lookups.
    max_workers:
        Chain groups polled concurrently; 1 polls inline.
    """

    def __init__(
        self,
        store: RegistryStore,
        chain_client: ChainClient,
        safe_client: SafeApiClient,
        max_workers: int = 1,
    ) -> None:
        self._store = store
        self._chain = chain_client
        self._safe = safe_client
        self._max_workers = max(1, max_workers)

    def sync(self, clean: bool = False) -> SyncReport:
        issues: list[SyncIssue] = []
        touched: set[int] = set()

        safe_counts = self._sync_safe_transactions(issues, touched)
        tx_counts = self._sync_transactions(issues, touched)

        pruned_deployments: list[str] = []
        pruned_transactions: list[str] = []
        if clean:
            pruner = RegistryPruner(self._store, self._chain)
            for chain_id in sorted({*self._store.chain_ids(), *touched}):
                candidates = pruner.collect(chain_id)
                for record_id in candidates.unchecked:
                    issues.append(
                        SyncIssue(
                            record_id=record_id,
                            chain_id=chain_id,
                            message="existence check failed; not pruned",
                        )
                    )
                removed = self._store.prune(candidates)
                pruned_deployments.extend(removed.deployment_ids)
                pruned_transactions.extend(removed.transaction_ids)

        if self._store.dirty:
            self._store.save()

        report = SyncReport(
            **safe_counts,
            **tx_counts,
            deployments_pruned=pruned_deployments,
            transactions_pruned=pruned_transactions,
            issues=issues,
        )
        logger.info(
            "Sync done: %d safe txs checked (%d executed), %d transactions checked "
            "(%d updated), %d issues",
            report.safe_txs_checked,
            report.safe_txs_executed,
            report.transactions_checked,
            report.transactions_updated,
            len(report.issues),
        )
        return report

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _poll(
        self,
        records: Iterable[T],
        chain_of: Callable[[T], int],
        query: Callable[[T], R],
    ) -> list[tuple[T, R | ExternalServiceError]]:
        """Query every record, one worker per chain group.

        Results come back in the input order regardless of threading.
        """
        records = list(records)
        groups: dict[int, list[T]] = defaultdict(list)
        for record in records:
            groups[chain_of(record)].append(record)

        def poll_group(group: list[T]) -> list[tuple[T, R | ExternalServiceError]]:
            answers = []
            for record in group:
                try:
                    answers.append((record, query(record)))
                except ExternalServiceError as exc:
                    answers.append((record, exc))
            return answers

        chains = sorted(groups)
        if self._max_workers == 1 or len(chains) <= 1:
            results = [poll_group(groups[c]) for c in chains]
        else:
            with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
                results = list(pool.map(poll_group, [groups[c] for c in chains]))

        by_identity = {id(record): answer for group in results for record, answer in group}
        return [(record, by_identity[id(record)]) for record in records]

    # ------------------------------------------------------------------
    # Safe transactions
    # ------------------------------------------------------------------

    def _sync_safe_transactions(
        self, issues: list[SyncIssue], touched: set[int]
    ) -> dict[str, int]:
        queued = self._store.pending_safe_transactions()
        checked = executed = confirmations_updated = created = 0

        answers = self._poll(
            queued,
            lambda stx: stx.chain_id,
            lambda stx: self._safe.get_transaction(stx.chain_id, stx.safe_tx_hash),
        )
        for safe_tx, answer in answers:
            touched.add(safe_tx.chain_id)
            checked += 1
            if isinstance(answer, ExternalServiceError):
                logger.warning(
                    "Safe API lookup failed for %s on chain %d: %s",
                    safe_tx.safe_tx_hash,
                    safe_tx.chain_id,
                    answer,
                )
                issues.append(
                    SyncIssue(
                        record_id=safe_tx.safe_tx_hash,
                        chain_id=safe_tx.chain_id,
                        message=str(answer),
                    )
                )
                continue

            if answer.executed:
                created += self._apply_execution(safe_tx, answer)
                executed += 1
            elif self._apply_confirmations(safe_tx, answer):
                confirmations_updated += 1

        return {
            "safe_txs_checked": checked,
            "safe_txs_executed": executed,
            "safe_txs_confirmations_updated": confirmations_updated,
            "transactions_created": created,
        }

    def _apply_confirmations(self, safe_tx: SafeTransaction, info: SafeExecutionInfo) -> bool:
        merged = merge_confirmations(safe_tx.confirmations, info.confirmations)
        updated = safe_tx.model_copy(update={"confirmations": merged})
        if record_digest(updated) == record_digest(safe_tx):
            return False
        self._store.put(updated)
        logger.info(
            "Safe tx %s: %d/%d confirmations",
            safe_tx.safe_tx_hash,
            len(merged),
            info.confirmations_required,
        )
        return True

    def _apply_execution(self, safe_tx: SafeTransaction, info: SafeExecutionInfo) -> int:
        """Mark a Safe tx executed and advance its transactions.

        Returns the number of Transaction records created.
        """
        now = utcnow()
        failed = info.successful is False
        execution_hash = info.execution_tx_hash
        tx_status = TransactionStatus.FAILED if failed else TransactionStatus.EXECUTED

        tx_ids = list(safe_tx.transaction_ids)
        if not tx_ids and execution_hash:
            tx_ids = [make_transaction_id(execution_hash)]

        created = 0
        for tx_id in tx_ids:
            existing = self._store.get_transaction(tx_id)
            if existing is None:
                self._store.put(
                    Transaction(
                        id=tx_id,
                        chain_id=safe_tx.chain_id,
                        hash=execution_hash,
                        status=tx_status,
                    )
                )
                created += 1
            elif not existing.is_terminal:
                self._store.put(
                    existing.model_copy(
                        update={"hash": execution_hash or existing.hash, "status": tx_status}
                    )
                )

        self._store.put(
            safe_tx.model_copy(
                update={
                    "status": SafeTxStatus.FAILED if failed else SafeTxStatus.EXECUTED,
                    "execution_tx_hash": execution_hash,
                    "executed_at": now,
                    "transaction_ids": sorted(tx_ids),
                    "confirmations": merge_confirmations(
                        safe_tx.confirmations, info.confirmations
                    ),
                }
            )
        )
        logger.info(
            "Safe tx %s executed in %s", safe_tx.safe_tx_hash, execution_hash or "?"
        )
        return created

    # ------------------------------------------------------------------
    # Plain transactions
    # ------------------------------------------------------------------

    def _sync_transactions(
        self, issues: list[SyncIssue], touched: set[int]
    ) -> dict[str, int]:
        # Transactions inside a Safe batch advance with their batch.
        pending = [
            tx
            for tx in self._store.pending_transactions()
            if tx.safe_context is None and tx.hash
        ]
        checked = updated = 0

        answers = self._poll(
            pending,
            lambda tx: tx.chain_id,
            lambda tx: self._chain.get_receipt(tx.chain_id, tx.hash),
        )
        for tx, answer in answers:
            touched.add(tx.chain_id)
            checked += 1
            if isinstance(answer, ExternalServiceError):
                logger.warning(
                    "Receipt lookup failed for %s on chain %d: %s", tx.hash, tx.chain_id, answer
                )
                issues.append(
                    SyncIssue(record_id=tx.id, chain_id=tx.chain_id, message=str(answer))
                )
                continue
            if answer.status == ReceiptStatus.NOT_FOUND:
                continue

            status = (
                TransactionStatus.EXECUTED
                if answer.status == ReceiptStatus.EXECUTED
                else TransactionStatus.FAILED
            )
            new = tx.model_copy(update={"status": status, "block_number": answer.block_number})
            if record_digest(new) != record_digest(tx):
                self._store.put(new)
                updated += 1

        return {"transactions_checked": checked, "transactions_updated": updated}
