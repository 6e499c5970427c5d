"""Collaborator protocols: Script Runner, Chain Client, Safe API Client.

The registry never signs or broadcasts anything itself; everything it knows
about the outside world comes through these three seams.  Any object with
the right methods satisfies them, so tests use plain in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chainregistry.models.execution import ExecutionRequest, ExecutionResult
from chainregistry.models.sync import Receipt, SafeExecutionInfo


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ScriptRunner(Protocol):
    """Runs one deployment script and reports what it did."""

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        """Execute ``request.script``.

        Parameters
        ----------
        request:
            Script path, target network, namespace, merged environment and
            the dry-run / debug flags.

        Returns
        -------
        ExecutionResult
            Addresses deployed, transactions broadcast and any queued Safe
            proposal.

        Raises
        ------
        ScriptExecutionError
            When the script fails.
        """
        ...


@runtime_checkable
class ChainClient(Protocol):
    """Read-only view of chain state."""

    def get_receipt(self, chain_id: int, tx_hash: str) -> Receipt:
        """Return the receipt status (executed, failed or not found)."""
        ...

    def address_exists(self, chain_id: int, address: str) -> bool:
        """Return ``True`` if code is deployed at ``address``."""
        ...


@runtime_checkable
class SafeApiClient(Protocol):
    """Read-only view of the multisig co-signing service."""

    def get_transaction(self, chain_id: int, safe_tx_hash: str) -> SafeExecutionInfo:
        """Return confirmations and execution state of a Safe transaction."""
        ...
