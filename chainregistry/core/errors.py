"""Error taxonomy shared by the store, resolver, executor and sync engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chainregistry.models.deployments import Deployment


class RegistryError(Exception):
    """Base class for every chainregistry error."""


class NotFoundError(RegistryError, KeyError):
    """Raised when no record matches an identifier."""

    def __str__(self) -> str:  # KeyError quotes its message otherwise
        return str(self.args[0]) if self.args else ""


class AmbiguousMatchError(RegistryError):
    """Raised when an identifier matches several deployments.

    Not an error per se: a request for the caller to disambiguate.  The
    candidates are attached sorted by id.
    """

    def __init__(self, identifier: str, candidates: list[Deployment]) -> None:
        self.identifier = identifier
        self.candidates = list(candidates)
        lines = [
            f"  - {d.id} (chain:{d.chain_id}/{d.namespace}/{d.display_name} at {d.address})"
            for d in self.candidates
        ]
        super().__init__(
            f"multiple deployments found matching '{identifier}', "
            f"please be more specific:\n" + "\n".join(lines)
        )


class ValidationError(RegistryError, ValueError):
    """Invalid input: bad plan, bad record, bad document."""


class CyclicDependencyError(ValidationError):
    """Raised when the component graph contains a cycle."""


class UnknownDependencyError(ValidationError):
    """Raised when a component depends on an undeclared component."""


class DuplicateLabelError(ValidationError):
    """Raised when a record's id disagrees with its namespace/chain/contract/label."""


class PlanDocumentError(ValidationError):
    """Raised when an orchestration plan document is malformed."""


class RegistryVersionError(ValidationError):
    """Raised when a registry document has an unknown version."""


class ConsistencyViolation(RegistryError):
    """Raised when two distinct ids claim the same (chainId, address)."""


class ExternalServiceError(RegistryError, RuntimeError):
    """A Chain Client, Safe API or Script Runner call failed or timed out."""


class ScriptExecutionError(ExternalServiceError):
    """Raised by a Script Runner when a script fails."""
