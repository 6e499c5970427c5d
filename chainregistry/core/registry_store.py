"""Registry Store: the persisted record set plus its derived Lookup Index.

The store owns three record collections (deployments by id, transactions by
id, Safe transactions by safe_tx_hash) and keeps a ``LookupIndex`` in step
with them through per-record deltas.  It is single-writer: every public
method holds one re-entrant lock, so sync workers may share an instance.

Lifecycle::

    with RegistryStore(path) as store:   # load
        store.put(deployment)            # mutate*
        store.save()                     # atomic write
                                         # close
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Union

from chainregistry.core.errors import (
    ConsistencyViolation,
    DuplicateLabelError,
    NotFoundError,
    RegistryError,
    ValidationError,
)
from chainregistry.core.lookup_index import LookupIndex
from chainregistry.core.persistence import read_document, write_document
from chainregistry.models.deployments import (
    Deployment,
    DeploymentFilter,
    DeploymentType,
    ProxyUpgrade,
    utcnow,
)
from chainregistry.models.registry import RegistryDocument
from chainregistry.models.sync import PruneCandidates
from chainregistry.models.transactions import (
    SafeTransaction,
    SafeTxStatus,
    Transaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

Record = Union[Deployment, Transaction, SafeTransaction]


def check_document(document: RegistryDocument) -> None:
    """Reject a decoded document that breaks the store's uniqueness rules.

    Every collection key must equal its record's id, every deployment id
    must match its identity, and no two deployments may share a
    (chainId, address).
    """
    claims: dict[tuple[int, str], str] = {}
    for key, dep in document.deployments.items():
        if key != dep.id:
            raise ValidationError(f"Deployment stored under {key!r} has id {dep.id!r}")
        if dep.id != dep.expected_id:
            raise DuplicateLabelError(
                f"Deployment id {dep.id!r} does not match its identity "
                f"{dep.expected_id!r}"
            )
        other = claims.setdefault(dep.address_key, dep.id)
        if other != dep.id:
            raise ConsistencyViolation(
                f"{other} and {dep.id} both claim address {dep.address} "
                f"on chain {dep.chain_id}"
            )
    for key, tx in document.transactions.items():
        if key != tx.id:
            raise ValidationError(f"Transaction stored under {key!r} has id {tx.id!r}")
    for key, safe_tx in document.safe_transactions.items():
        if key != safe_tx.safe_tx_hash:
            raise ValidationError(
                f"Safe transaction stored under {key!r} has hash {safe_tx.safe_tx_hash!r}"
            )


class RegistryStore:
    """Persisted deployment registry.

    Parameters
    ----------
    path:
        Location of ``registry.json``.  A missing file is an empty registry;
        it is created on the first ``save()``.
    autoload:
        Read the file immediately (default).  Pass ``False`` for a purely
        in-memory store that is populated with ``put``.
    """

    def __init__(self, path: Path | str, *, autoload: bool = True) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._deployments: dict[str, Deployment] = {}
        self._transactions: dict[str, Transaction] = {}
        self._safe_transactions: dict[str, SafeTransaction] = {}
        self._index = LookupIndex()
        self._dirty = False
        self._closed = False
        if autoload:
            self.load()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> RegistryStore:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is None and self._dirty:
            self.save()
        self.close()

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        """True when there are mutations not yet written by ``save()``."""
        return self._dirty

    @property
    def index(self) -> LookupIndex:
        return self._index

    def _check_open(self) -> None:
        if self._closed:
            raise RegistryError(f"Registry store {self._path} is closed")

    def load(self) -> None:
        """(Re)read the registry file and rebuild every index from scratch."""
        with self._lock:
            self._check_open()
            document = read_document(self._path)
            check_document(document)
            self._deployments = dict(document.deployments)
            self._transactions = dict(document.transactions)
            self._safe_transactions = dict(document.safe_transactions)
            self.rebuild_index()
            self._dirty = False
            logger.debug(
                "Loaded %s: %d deployments, %d transactions, %d safe transactions",
                self._path,
                len(self._deployments),
                len(self._transactions),
                len(self._safe_transactions),
            )

    def save(self) -> None:
        """Write the full document atomically, derived sections included."""
        with self._lock:
            self._check_open()
            write_document(self._path, self.document())
            self._dirty = False
            logger.debug("Saved registry to %s", self._path)

    def document(self) -> RegistryDocument:
        """Snapshot of the current state in its persisted shape."""
        with self._lock:
            return RegistryDocument(
                deployments=dict(sorted(self._deployments.items())),
                transactions=dict(sorted(self._transactions.items())),
                safe_transactions=dict(sorted(self._safe_transactions.items())),
                lookups=self._index.to_dict(),
                addresses=self.address_view(),
            )

    def rebuild_index(self) -> LookupIndex:
        """Replace the incremental index with a full rebuild."""
        with self._lock:
            self._index = LookupIndex.rebuild(
                self._deployments.values(),
                self._transactions.values(),
                self._safe_transactions.values(),
            )
            return self._index

    def verify_index(self) -> bool:
        """True when the incremental index equals a full rebuild."""
        with self._lock:
            rebuilt = LookupIndex.rebuild(
                self._deployments.values(),
                self._transactions.values(),
                self._safe_transactions.values(),
            )
            return rebuilt == self._index

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, record: Record) -> Record:
        """Insert or replace one record and apply its index delta.

        Validation happens before anything is touched, so a failing call
        leaves the store exactly as it was.
        """
        if isinstance(record, Deployment):
            return self._put_deployment(record)
        if isinstance(record, Transaction):
            return self._put_transaction(record)
        if isinstance(record, SafeTransaction):
            return self._put_safe_transaction(record)
        raise ValidationError(f"Cannot store record of type {type(record).__name__}")

    def put_many(self, records: Iterable[Record]) -> None:
        """Put several records; all of them are validated first."""
        records = list(records)
        with self._lock:
            self._check_open()
            self._validate_batch(records)
            for record in records:
                self.put(record)

    def _validate_batch(self, records: list[Record]) -> None:
        claims: dict[tuple[int, str], str] = {}
        ids: dict[str, str] = {}
        for record in records:
            if not isinstance(record, Deployment):
                continue
            self._validate_deployment(record)
            other = claims.setdefault(record.address_key, record.id)
            if other != record.id:
                raise ConsistencyViolation(
                    f"{other} and {record.id} both claim address "
                    f"{record.address} on chain {record.chain_id}"
                )
            first = ids.setdefault(record.id, record.address)
            if first.lower() != record.address.lower():
                raise DuplicateLabelError(
                    f"{record.id} appears at both {first} and {record.address}; "
                    "use a label to tell them apart"
                )

    def _validate_deployment(self, dep: Deployment) -> None:
        if dep.id != dep.expected_id:
            raise DuplicateLabelError(
                f"Deployment id {dep.id!r} does not match its identity "
                f"{dep.expected_id!r}"
            )
        existing = self._deployments.get(dep.id)
        if existing is not None and existing.address_key != dep.address_key:
            raise DuplicateLabelError(
                f"Deployment {dep.id} already exists at {existing.address}; "
                f"use a label to record {dep.address} separately"
            )
        claimant = self._index.lookup_address(dep.chain_id, dep.address)
        if claimant is not None and claimant != dep.id:
            raise ConsistencyViolation(
                f"Address {dep.address} on chain {dep.chain_id} already "
                f"belongs to {claimant}; refusing to record {dep.id}"
            )

    def _put_deployment(self, dep: Deployment) -> Deployment:
        with self._lock:
            self._check_open()
            self._validate_deployment(dep)
            old = self._deployments.get(dep.id)
            if old is not None:
                self._index.remove_deployment(old)
            self._deployments[dep.id] = dep
            self._index.add_deployment(dep)
            self._dirty = True
            logger.debug("put deployment %s at %s", dep.id, dep.address)
            return dep

    def _put_transaction(self, tx: Transaction) -> Transaction:
        with self._lock:
            self._check_open()
            old = self._transactions.get(tx.id)
            self._transactions[tx.id] = tx
            self._index.set_transaction(old, tx)
            self._dirty = True
            logger.debug("put transaction %s (%s)", tx.id, tx.status.value)
            return tx

    def _put_safe_transaction(self, safe_tx: SafeTransaction) -> SafeTransaction:
        with self._lock:
            self._check_open()
            old = self._safe_transactions.get(safe_tx.safe_tx_hash)
            self._safe_transactions[safe_tx.safe_tx_hash] = safe_tx
            self._index.set_safe_transaction(old, safe_tx)
            self._dirty = True
            logger.debug(
                "put safe transaction %s (%s)", safe_tx.safe_tx_hash, safe_tx.status.value
            )
            return safe_tx

    def tag(self, deployment_id: str, tag: str) -> Deployment:
        """Add ``tag`` to a deployment; a tag already present is a no-op."""
        with self._lock:
            dep = self.require(deployment_id)
            if tag in dep.tags:
                return dep
            updated = dep.model_copy(
                update={"tags": sorted({*dep.tags, tag}), "updated_at": utcnow()}
            )
            return self._put_deployment(updated)

    def untag(self, deployment_id: str, tag: str) -> Deployment:
        """Remove ``tag`` from a deployment; an absent tag is a no-op."""
        with self._lock:
            dep = self.require(deployment_id)
            if tag not in dep.tags:
                return dep
            updated = dep.model_copy(
                update={
                    "tags": [t for t in dep.tags if t != tag],
                    "updated_at": utcnow(),
                }
            )
            return self._put_deployment(updated)

    def add_proxy_upgrade(
        self, proxy_id: str, implementation_id: str, upgrade_tx_id: str = ""
    ) -> Deployment:
        """Point a proxy at a new implementation, keeping its history.

        The previous implementation stays linked to the proxy in the index
        because links are derived from the whole history.
        """
        with self._lock:
            proxy = self.require(proxy_id)
            impl = self.require(implementation_id)
            if proxy.type != DeploymentType.PROXY or proxy.proxy_info is None:
                raise ValidationError(f"{proxy_id} is not a proxy deployment")
            if impl.chain_id != proxy.chain_id:
                raise ValidationError(
                    f"Implementation {implementation_id} is on chain {impl.chain_id}, "
                    f"proxy {proxy_id} is on chain {proxy.chain_id}"
                )

            info = proxy.proxy_info
            history = list(info.history)
            previous = self._index.implementation_of(proxy_id)
            known = {h.implementation_id for h in history}
            if previous and previous not in known:
                history.append(
                    ProxyUpgrade(implementation_id=previous, upgraded_at=proxy.created_at)
                )
            history.append(
                ProxyUpgrade(implementation_id=implementation_id, upgrade_tx_id=upgrade_tx_id)
            )
            updated = proxy.model_copy(
                update={
                    "proxy_info": info.model_copy(
                        update={"implementation": impl.address, "history": history}
                    ),
                    "updated_at": utcnow(),
                }
            )
            logger.info("Upgraded proxy %s -> %s", proxy_id, implementation_id)
            return self._put_deployment(updated)

    def prune(
        self,
        candidates: PruneCandidates | None = None,
        *,
        deployment_ids: Iterable[str] = (),
        transaction_ids: Iterable[str] = (),
        safe_tx_hashes: Iterable[str] = (),
    ) -> PruneCandidates:
        """Delete records confirmed absent on-chain.

        The only deletion path.  Unknown ids are ignored.  Returns what was
        actually removed; transactions referencing a pruned deployment drop
        the dangling id.
        """
        dep_ids = set(deployment_ids)
        tx_ids = set(transaction_ids)
        safe_hashes = set(safe_tx_hashes)
        chain_id = 0
        if candidates is not None:
            dep_ids.update(candidates.deployment_ids)
            tx_ids.update(candidates.transaction_ids)
            safe_hashes.update(candidates.safe_tx_hashes)
            chain_id = candidates.chain_id

        with self._lock:
            self._check_open()
            removed_deps = []
            for dep_id in sorted(dep_ids):
                dep = self._deployments.pop(dep_id, None)
                if dep is None:
                    continue
                self._index.remove_deployment(dep)
                removed_deps.append(dep_id)

            removed_txs = []
            for tx_id in sorted(tx_ids):
                tx = self._transactions.pop(tx_id, None)
                if tx is None:
                    continue
                self._index.set_transaction(tx, None)
                removed_txs.append(tx_id)

            removed_safe = []
            for safe_hash in sorted(safe_hashes):
                safe_tx = self._safe_transactions.pop(safe_hash, None)
                if safe_tx is None:
                    continue
                self._index.set_safe_transaction(safe_tx, None)
                removed_safe.append(safe_hash)

            if removed_deps:
                gone = set(removed_deps)
                for tx in list(self._transactions.values()):
                    if gone.intersection(tx.deployments):
                        self._transactions[tx.id] = tx.model_copy(
                            update={"deployments": [d for d in tx.deployments if d not in gone]}
                        )

            if removed_deps or removed_txs or removed_safe:
                self._dirty = True
                logger.info(
                    "Pruned %d deployments, %d transactions, %d safe transactions",
                    len(removed_deps),
                    len(removed_txs),
                    len(removed_safe),
                )
            return PruneCandidates(
                chain_id=chain_id,
                deployment_ids=removed_deps,
                transaction_ids=removed_txs,
                safe_tx_hashes=removed_safe,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._deployments)

    def __contains__(self, deployment_id: object) -> bool:
        return deployment_id in self._deployments

    def get(self, deployment_id: str) -> Deployment | None:
        with self._lock:
            return self._deployments.get(deployment_id)

    def require(self, deployment_id: str) -> Deployment:
        """Like ``get`` but raises ``NotFoundError`` for an unknown id."""
        dep = self.get(deployment_id)
        if dep is None:
            raise NotFoundError(f"deployment '{deployment_id}' not found")
        return dep

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        with self._lock:
            return self._transactions.get(transaction_id)

    def get_safe_transaction(self, safe_tx_hash: str) -> SafeTransaction | None:
        with self._lock:
            return self._safe_transactions.get(safe_tx_hash)

    def get_by_address(self, chain_id: int, address: str) -> Deployment | None:
        with self._lock:
            dep_id = self._index.lookup_address(chain_id, address)
            return self._deployments.get(dep_id) if dep_id else None

    def get_all_deployments(
        self, filter: DeploymentFilter | None = None, **criteria: Any
    ) -> list[Deployment]:
        """Deployments matching ``filter`` (or keyword criteria), sorted by id."""
        if filter is None:
            filter = DeploymentFilter(**criteria)
        with self._lock:
            if filter.namespace is not None:
                ids = self._index.ids_for_namespace(filter.namespace, filter.chain_id)
            elif filter.contract_name is not None:
                ids = self._index.ids_for_contract(filter.contract_name)
            else:
                ids = sorted(self._deployments)
            return [
                self._deployments[i] for i in ids if filter.matches(self._deployments[i])
            ]

    def list_transactions(
        self,
        status: TransactionStatus | None = None,
        chain_id: int | None = None,
    ) -> list[Transaction]:
        with self._lock:
            return [
                tx
                for _, tx in sorted(self._transactions.items())
                if (status is None or tx.status == status)
                and (chain_id is None or tx.chain_id == chain_id)
            ]

    def list_safe_transactions(
        self,
        status: SafeTxStatus | None = None,
        chain_id: int | None = None,
    ) -> list[SafeTransaction]:
        with self._lock:
            return [
                stx
                for _, stx in sorted(self._safe_transactions.items())
                if (status is None or stx.status == status)
                and (chain_id is None or stx.chain_id == chain_id)
            ]

    def pending_safe_transactions(self) -> list[SafeTransaction]:
        """QUEUED Safe transactions, in safe_tx_hash order."""
        with self._lock:
            return [self._safe_transactions[h] for h in self._index.pending_safe_txs]

    def pending_transactions(self) -> list[Transaction]:
        """PENDING transactions, in id order."""
        with self._lock:
            return [self._transactions[i] for i in self._index.pending_transactions]

    def chain_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._index.by_address)

    def address_view(self) -> dict[str, dict[str, dict[str, str]]]:
        """``chainId -> namespace -> contract[:label] -> address``."""
        with self._lock:
            view: dict[str, dict[str, dict[str, str]]] = {}
            for dep in sorted(
                self._deployments.values(), key=lambda d: (d.chain_id, d.id)
            ):
                view.setdefault(str(dep.chain_id), {}).setdefault(dep.namespace, {})[
                    dep.display_name
                ] = dep.address
            return view
