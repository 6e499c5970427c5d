"""Derived lookup indexes over the registry record set.

The index is a cache, not a source of truth: ``LookupIndex.rebuild`` over
the records must always equal the incrementally maintained index.  To make
that hold byte-for-byte:

- every id list is kept sorted and de-duplicated;
- empty containers are deleted, never left behind;
- proxy links are derived from the full address map, so a proxy recorded
  before its implementation is re-linked once the implementation arrives.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable
from typing import Any

from chainregistry.core.hasher import canonical_json_bytes, sha256_hex
from chainregistry.models.deployments import Deployment, DeploymentType
from chainregistry.models.transactions import (
    SafeTransaction,
    SafeTxStatus,
    Transaction,
    TransactionStatus,
)

INDEX_VERSION = "1.0.0"


def _insert_sorted(items: list[str], value: str) -> None:
    pos = bisect.bisect_left(items, value)
    if pos == len(items) or items[pos] != value:
        items.insert(pos, value)


def _remove_sorted(items: list[str], value: str) -> None:
    pos = bisect.bisect_left(items, value)
    if pos < len(items) and items[pos] == value:
        del items[pos]


class LookupIndex:
    """Address, namespace, contract, proxy and pending-item indexes.

    Keyed throughout by Deployment ``id`` (and ``safe_tx_hash`` /
    Transaction ``id`` for pending items).
    """

    def __init__(self) -> None:
        # chainId -> lower(address) -> deployment id
        self.by_address: dict[int, dict[str, str]] = {}
        # namespace -> chainId -> [deployment ids]
        self.by_namespace: dict[str, dict[int, list[str]]] = {}
        # contractName -> [deployment ids]
        self.by_contract: dict[str, list[str]] = {}
        # implementation id -> [proxy ids] (additive across upgrades)
        self.implementations: dict[str, list[str]] = {}
        # proxy id -> current implementation id
        self.proxy_to_impl: dict[str, str] = {}
        self.pending_safe_txs: list[str] = []
        self.pending_transactions: list[str] = []

        # Bookkeeping needed to apply deltas; never serialised.
        self._proxies: dict[str, Deployment] = {}
        self._proxy_links: dict[str, tuple[frozenset[str], str]] = {}
        self._proxies_by_impl_address: dict[tuple[int, str], set[str]] = {}

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    @classmethod
    def rebuild(
        cls,
        deployments: Iterable[Deployment],
        transactions: Iterable[Transaction] = (),
        safe_transactions: Iterable[SafeTransaction] = (),
    ) -> LookupIndex:
        """Build an index from scratch by a full scan of the records."""
        index = cls()
        deployments = list(deployments)
        for dep in deployments:
            index._add_plain(dep)
        for dep in deployments:
            if dep.type == DeploymentType.PROXY and dep.proxy_info is not None:
                index._register_proxy(dep)
        for proxy_id in sorted(index._proxies):
            index._link_proxy(proxy_id)
        for tx in transactions:
            index.set_transaction(None, tx)
        for safe_tx in safe_transactions:
            index.set_safe_transaction(None, safe_tx)
        return index

    # ------------------------------------------------------------------
    # Deployment deltas
    # ------------------------------------------------------------------

    def add_deployment(self, dep: Deployment) -> None:
        """Index a new or replacement deployment (call remove first on replace)."""
        self._add_plain(dep)
        if dep.type == DeploymentType.PROXY and dep.proxy_info is not None:
            self._register_proxy(dep)
            self._link_proxy(dep.id)
        # Proxies waiting on this address can now resolve.
        for proxy_id in sorted(self._proxies_by_impl_address.get(dep.address_key, ())):
            if proxy_id != dep.id:
                self._relink_proxy(proxy_id)

    def remove_deployment(self, dep: Deployment) -> None:
        """Drop every entry contributed by ``dep``."""
        chain_map = self.by_address.get(dep.chain_id)
        if chain_map is not None and chain_map.get(dep.address.lower()) == dep.id:
            del chain_map[dep.address.lower()]
            if not chain_map:
                del self.by_address[dep.chain_id]

        ns_map = self.by_namespace.get(dep.namespace)
        if ns_map is not None and dep.chain_id in ns_map:
            _remove_sorted(ns_map[dep.chain_id], dep.id)
            if not ns_map[dep.chain_id]:
                del ns_map[dep.chain_id]
            if not ns_map:
                del self.by_namespace[dep.namespace]

        ids = self.by_contract.get(dep.contract_name)
        if ids is not None:
            _remove_sorted(ids, dep.id)
            if not ids:
                del self.by_contract[dep.contract_name]

        if dep.id in self._proxies:
            self._unlink_proxy(dep.id)
            proxy = self._proxies.pop(dep.id)
            key = (proxy.chain_id, proxy.proxy_info.implementation.lower())
            waiting = self._proxies_by_impl_address.get(key)
            if waiting is not None:
                waiting.discard(dep.id)
                if not waiting:
                    del self._proxies_by_impl_address[key]

        # Proxies that resolved through this address lose their current link.
        for proxy_id in sorted(self._proxies_by_impl_address.get(dep.address_key, ())):
            self._relink_proxy(proxy_id, removed_id=dep.id)

    def _add_plain(self, dep: Deployment) -> None:
        self.by_address.setdefault(dep.chain_id, {})[dep.address.lower()] = dep.id
        _insert_sorted(
            self.by_namespace.setdefault(dep.namespace, {}).setdefault(dep.chain_id, []),
            dep.id,
        )
        _insert_sorted(self.by_contract.setdefault(dep.contract_name, []), dep.id)

    # ------------------------------------------------------------------
    # Proxy links
    # ------------------------------------------------------------------

    def _register_proxy(self, dep: Deployment) -> None:
        self._proxies[dep.id] = dep
        key = (dep.chain_id, dep.proxy_info.implementation.lower())
        self._proxies_by_impl_address.setdefault(key, set()).add(dep.id)

    def _resolve_links(
        self, proxy: Deployment, removed_id: str | None = None
    ) -> tuple[frozenset[str], str]:
        """Return (all implementation ids ever used, current implementation id)."""
        info = proxy.proxy_info
        impl_ids = {h.implementation_id for h in info.history if h.implementation_id}
        current = self.by_address.get(proxy.chain_id, {}).get(
            info.implementation.lower(), ""
        )
        if current == removed_id:
            current = ""
        if not current and info.history:
            current = info.history[-1].implementation_id
        if current:
            impl_ids.add(current)
        return frozenset(impl_ids), current

    def _link_proxy(self, proxy_id: str, removed_id: str | None = None) -> None:
        proxy = self._proxies[proxy_id]
        impl_ids, current = self._resolve_links(proxy, removed_id)
        for impl_id in impl_ids:
            _insert_sorted(self.implementations.setdefault(impl_id, []), proxy_id)
        if current:
            self.proxy_to_impl[proxy_id] = current
        self._proxy_links[proxy_id] = (impl_ids, current)

    def _unlink_proxy(self, proxy_id: str) -> None:
        impl_ids, _ = self._proxy_links.pop(proxy_id, (frozenset(), ""))
        for impl_id in impl_ids:
            proxies = self.implementations.get(impl_id)
            if proxies is not None:
                _remove_sorted(proxies, proxy_id)
                if not proxies:
                    del self.implementations[impl_id]
        self.proxy_to_impl.pop(proxy_id, None)

    def _relink_proxy(self, proxy_id: str, removed_id: str | None = None) -> None:
        self._unlink_proxy(proxy_id)
        self._link_proxy(proxy_id, removed_id)

    # ------------------------------------------------------------------
    # Pending items
    # ------------------------------------------------------------------

    def set_transaction(self, old: Transaction | None, new: Transaction | None) -> None:
        if old is not None:
            _remove_sorted(self.pending_transactions, old.id)
        if new is not None and new.status == TransactionStatus.PENDING:
            _insert_sorted(self.pending_transactions, new.id)

    def set_safe_transaction(
        self, old: SafeTransaction | None, new: SafeTransaction | None
    ) -> None:
        if old is not None:
            _remove_sorted(self.pending_safe_txs, old.safe_tx_hash)
        if new is not None and new.status == SafeTxStatus.QUEUED:
            _insert_sorted(self.pending_safe_txs, new.safe_tx_hash)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lookup_address(self, chain_id: int, address: str) -> str | None:
        return self.by_address.get(chain_id, {}).get(address.lower())

    def ids_for_namespace(self, namespace: str, chain_id: int | None = None) -> list[str]:
        chains = self.by_namespace.get(namespace, {})
        if chain_id is not None:
            return list(chains.get(chain_id, []))
        return sorted(i for ids in chains.values() for i in ids)

    def ids_for_contract(self, contract_name: str) -> list[str]:
        return list(self.by_contract.get(contract_name, []))

    def proxies_of(self, implementation_id: str) -> list[str]:
        return list(self.implementations.get(implementation_id, []))

    def implementation_of(self, proxy_id: str) -> str | None:
        return self.proxy_to_impl.get(proxy_id)

    # ------------------------------------------------------------------
    # Serialisation / comparison
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form written to the ``lookups`` section."""
        return {
            "version": INDEX_VERSION,
            "byAddress": {
                str(chain): dict(sorted(addrs.items()))
                for chain, addrs in sorted(self.by_address.items())
            },
            "byNamespace": {
                ns: {str(chain): list(ids) for chain, ids in sorted(chains.items())}
                for ns, chains in sorted(self.by_namespace.items())
            },
            "byContract": {
                name: list(ids) for name, ids in sorted(self.by_contract.items())
            },
            "proxies": {
                "implementations": {
                    impl: list(ids) for impl, ids in sorted(self.implementations.items())
                },
                "proxyToImpl": dict(sorted(self.proxy_to_impl.items())),
            },
            "pending": {
                "safeTxs": list(self.pending_safe_txs),
                "transactions": list(self.pending_transactions),
            },
        }

    def to_bytes(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    def fingerprint(self) -> str:
        return sha256_hex(self.to_bytes())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LookupIndex):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

