"""JSON-RPC Chain Client over ``requests``."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import requests

from chainregistry.core.errors import ExternalServiceError
from chainregistry.models.sync import Receipt, ReceiptStatus

logger = logging.getLogger(__name__)


class RpcChainClient:
    """Chain Client that talks to one JSON-RPC endpoint per chain.

    Parameters
    ----------
    rpc_urls:
        chainId -> RPC endpoint URL.
    timeout:
        Per-request timeout in seconds.
    session:
        Optional ``requests.Session`` (shared connection pool).
    """

    def __init__(
        self,
        rpc_urls: dict[int, str],
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._rpc_urls = {int(k): v for k, v in rpc_urls.items()}
        self._timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def _url(self, chain_id: int) -> str:
        url = self._rpc_urls.get(chain_id)
        if not url:
            raise ExternalServiceError(f"no RPC URL configured for chain {chain_id}")
        return url

    def _call(self, chain_id: int, method: str, params: list[Any]) -> Any:
        url = self._url(chain_id)
        try:
            response = self._session.post(
                url,
                json={
                    "jsonrpc": "2.0",
                    "method": method,
                    "params": params,
                    "id": next(self._ids),
                },
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise ExternalServiceError(
                f"network error calling {method} on chain {chain_id}: {e}"
            ) from e

        if response.status_code != 200:
            raise ExternalServiceError(
                f"RPC request {method} on chain {chain_id} failed with status "
                f"{response.status_code}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ExternalServiceError(f"RPC {method} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise ExternalServiceError(f"RPC {method} returned a non-object response")
        if "error" in body:
            raise ExternalServiceError(f"RPC error from {method}: {body['error']}")
        return body.get("result")

    def get_receipt(self, chain_id: int, tx_hash: str) -> Receipt:
        result = self._call(chain_id, "eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return Receipt(status=ReceiptStatus.NOT_FOUND)
        try:
            block_hex = result.get("blockNumber")
            block_number = int(block_hex, 16) if block_hex else None
            status = (
                ReceiptStatus.EXECUTED
                if int(result.get("status", "0x0"), 16) == 1
                else ReceiptStatus.FAILED
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ExternalServiceError(
                f"malformed receipt for {tx_hash} on chain {chain_id}: {e!r}"
            ) from e
        logger.debug("receipt %s on %d: %s", tx_hash, chain_id, status.value)
        return Receipt(status=status, block_number=block_number)

    def address_exists(self, chain_id: int, address: str) -> bool:
        code = self._call(chain_id, "eth_getCode", [address, "latest"])
        return bool(code) and code not in ("0x", "0x0")
