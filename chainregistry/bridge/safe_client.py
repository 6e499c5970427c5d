"""Safe Transaction Service client over ``requests``."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import requests

from chainregistry.core.errors import ExternalServiceError
from chainregistry.models.sync import SafeExecutionInfo
from chainregistry.models.transactions import Confirmation

logger = logging.getLogger(__name__)

# Public Safe Transaction Service endpoints, by chain id.
DEFAULT_SAFE_SERVICE_URLS: dict[int, str] = {
    1: "https://safe-transaction-mainnet.safe.global",
    5: "https://safe-transaction-goerli.safe.global",
    10: "https://safe-transaction-optimism.safe.global",
    56: "https://safe-transaction-bsc.safe.global",
    100: "https://safe-transaction-gnosis-chain.safe.global",
    137: "https://safe-transaction-polygon.safe.global",
    324: "https://safe-transaction-zksync.safe.global",
    8453: "https://safe-transaction-base.safe.global",
    42161: "https://safe-transaction-arbitrum.safe.global",
    42220: "https://safe-transaction-celo.safe.global",
    43114: "https://safe-transaction-avalanche.safe.global",
    44787: "https://safe-transaction-alfajores.safe.global",
    11155111: "https://safe-transaction-sepolia.safe.global",
}


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_multisig_transaction(body: dict[str, Any]) -> SafeExecutionInfo:
    """Map a ``multisig-transactions`` response onto ``SafeExecutionInfo``."""
    confirmations = [
        Confirmation(
            signer=c["owner"],
            signature=c.get("signature") or "",
            confirmed_at=_parse_time(c.get("submissionDate")),
        )
        for c in body.get("confirmations") or []
    ]
    return SafeExecutionInfo(
        executed=bool(body.get("isExecuted")),
        execution_tx_hash=body.get("transactionHash") or "",
        confirmations=confirmations,
        confirmations_required=body.get("confirmationsRequired") or 0,
        successful=body.get("isSuccessful"),
    )


class SafeServiceClient:
    """Safe API Client backed by the public (or a self-hosted) service.

    Parameters
    ----------
    service_urls:
        chainId -> service base URL.  Defaults to the public endpoints.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        service_urls: dict[int, str] | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        urls = DEFAULT_SAFE_SERVICE_URLS if service_urls is None else service_urls
        self._urls = {int(k): v.rstrip("/") for k, v in urls.items()}
        self._timeout = timeout
        self._session = session or requests.Session()

    def supports(self, chain_id: int) -> bool:
        return chain_id in self._urls

    def get_transaction(self, chain_id: int, safe_tx_hash: str) -> SafeExecutionInfo:
        base = self._urls.get(chain_id)
        if base is None:
            raise ExternalServiceError(f"unsupported chain ID for Safe service: {chain_id}")
        url = f"{base}/api/v1/multisig-transactions/{safe_tx_hash}/"
        logger.debug("GET %s", url)
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise ExternalServiceError(f"failed to get Safe transaction: {e}") from e

        if response.status_code == 404:
            raise ExternalServiceError(f"Safe transaction {safe_tx_hash} not found")
        if response.status_code != 200:
            raise ExternalServiceError(
                f"Safe API error (status {response.status_code}): {response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError("failed to decode Safe API response") from e
        try:
            return parse_multisig_transaction(body)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            # pydantic's ValidationError is a ValueError.
            raise ExternalServiceError(
                f"malformed Safe API response for {safe_tx_hash}: {e!r}"
            ) from e
