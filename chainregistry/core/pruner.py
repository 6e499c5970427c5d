"""Collect records that the chain proves absent.

The pruner only asks questions; ``RegistryStore.prune`` does the deleting.
A record is a candidate only when the Chain Client positively answered
"no code" or "no receipt".  Anything whose check raised is reported as
unchecked and never pruned.
"""

from __future__ import annotations

import logging

from chainregistry.bridge.protocols import ChainClient
from chainregistry.core.errors import ExternalServiceError
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.sync import PruneCandidates, ReceiptStatus
from chainregistry.models.transactions import TransactionStatus

logger = logging.getLogger(__name__)


class RegistryPruner:
    def __init__(self, store: RegistryStore, chain_client: ChainClient) -> None:
        self._store = store
        self._chain = chain_client

    def collect(self, chain_id: int, include_pending: bool = False) -> PruneCandidates:
        """Ids on ``chain_id`` proven absent on-chain.

        Parameters
        ----------
        chain_id:
            Chain to inspect.
        include_pending:
            Also consider PENDING transactions whose receipt is missing.
            Off by default: a missing receipt may just mean "not mined yet".
        """
        deployment_ids: list[str] = []
        transaction_ids: list[str] = []
        unchecked: list[str] = []

        for dep in self._store.get_all_deployments(chain_id=chain_id):
            try:
                exists = self._chain.address_exists(chain_id, dep.address)
            except ExternalServiceError as exc:
                logger.warning("Could not check %s at %s: %s", dep.id, dep.address, exc)
                unchecked.append(dep.id)
                continue
            if not exists:
                logger.info("No code at %s for %s", dep.address, dep.id)
                deployment_ids.append(dep.id)

        if include_pending:
            for tx in self._store.list_transactions(
                status=TransactionStatus.PENDING, chain_id=chain_id
            ):
                if not tx.hash or tx.safe_context is not None:
                    continue
                try:
                    receipt = self._chain.get_receipt(chain_id, tx.hash)
                except ExternalServiceError as exc:
                    logger.warning("Could not check transaction %s: %s", tx.id, exc)
                    unchecked.append(tx.id)
                    continue
                if receipt.status == ReceiptStatus.NOT_FOUND:
                    transaction_ids.append(tx.id)

        return PruneCandidates(
            chain_id=chain_id,
            deployment_ids=deployment_ids,
            transaction_ids=transaction_ids,
            unchecked=unchecked,
        )
