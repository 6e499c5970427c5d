"""Deployment Resolver: human identifier -> candidate records.

Matching families are tried in order and the first that yields anything
wins:

1. exact address (``0x`` + 40 hex chars, case-insensitive);
2. exact deployment id;
3. structured reference ``[namespace/][chainId/]contract[:label]``;
4. case-insensitive substring of ``contract[:label]``.

The resolver is pure.  It never prompts; disambiguation belongs to the
caller (the CLI asks the user, unattended callers use ``resolve_one``).
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict

from chainregistry.core.errors import AmbiguousMatchError, NotFoundError
from chainregistry.core.registry_store import RegistryStore
from chainregistry.models.deployments import Deployment, DeploymentFilter

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class ResolveOutcome(str, Enum):
    MATCH = "match"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


class Resolution(BaseModel):
    """Result of a resolve call: outcome plus candidates sorted by id."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    outcome: ResolveOutcome
    candidates: list[Deployment] = []

    @property
    def deployment(self) -> Deployment | None:
        """The single match, if there is exactly one."""
        return self.candidates[0] if self.outcome == ResolveOutcome.MATCH else None


class Reference(NamedTuple):
    """A parsed structured reference; ``None`` fields match anything."""

    namespace: str | None
    chain_id: int | None
    contract_name: str
    label: str | None


def is_address(identifier: str) -> bool:
    return bool(_ADDRESS_RE.match(identifier))


def parse_reference(identifier: str) -> Reference | None:
    """Decompose ``[namespace/][chainId/]contract[:label]``.

    In a two-segment reference a numeric first segment is a chain id,
    anything else a namespace.  Returns ``None`` for shapes that cannot be
    a reference.
    """
    segments = identifier.split("/")
    namespace: str | None = None
    chain_id: int | None = None
    if len(segments) == 1:
        tail = segments[0]
    elif len(segments) == 2:
        head, tail = segments
        if head.isdigit():
            chain_id = int(head)
        else:
            namespace = head
    elif len(segments) == 3:
        namespace, chain, tail = segments
        if not chain.isdigit():
            return None
        chain_id = int(chain)
    else:
        return None

    contract, sep, label = tail.partition(":")
    if not contract or (namespace is not None and not namespace):
        return None
    return Reference(namespace, chain_id, contract, label if sep else None)


class DeploymentResolver:
    """Resolve identifiers against a ``RegistryStore``.

    Parameters
    ----------
    store:
        The registry to search.  Only read methods are used.
    """

    def __init__(self, store: RegistryStore) -> None:
        self._store = store

    def resolve(
        self,
        identifier: str,
        namespace: str | None = None,
        chain_id: int | None = None,
    ) -> Resolution:
        identifier = identifier.strip()
        pool = self._store.get_all_deployments(
            DeploymentFilter(namespace=namespace, chain_id=chain_id)
        )
        candidates = self._match(identifier, pool)
        if not candidates:
            outcome = ResolveOutcome.NOT_FOUND
        elif len(candidates) == 1:
            outcome = ResolveOutcome.MATCH
        else:
            outcome = ResolveOutcome.AMBIGUOUS
        logger.debug("resolve %r -> %s (%d)", identifier, outcome.value, len(candidates))
        return Resolution(
            identifier=identifier,
            outcome=outcome,
            candidates=sorted(candidates, key=lambda d: d.id),
        )

    def resolve_one(
        self,
        identifier: str,
        namespace: str | None = None,
        chain_id: int | None = None,
    ) -> Deployment:
        """Resolve to exactly one deployment or raise."""
        resolution = self.resolve(identifier, namespace=namespace, chain_id=chain_id)
        if resolution.outcome == ResolveOutcome.NOT_FOUND:
            scope = []
            if namespace is not None:
                scope.append(f"namespace {namespace}")
            if chain_id is not None:
                scope.append(f"chain {chain_id}")
            where = f" in {', '.join(scope)}" if scope else ""
            raise NotFoundError(f"no deployment found matching '{identifier}'{where}")
        if resolution.outcome == ResolveOutcome.AMBIGUOUS:
            raise AmbiguousMatchError(identifier, resolution.candidates)
        return resolution.candidates[0]

    # ------------------------------------------------------------------
    # Matching families
    # ------------------------------------------------------------------

    def _match(self, identifier: str, pool: list[Deployment]) -> list[Deployment]:
        if not identifier:
            return []

        if is_address(identifier):
            lowered = identifier.lower()
            return [d for d in pool if d.address.lower() == lowered]

        by_id = [d for d in pool if d.id == identifier]
        if by_id:
            return by_id

        ref = parse_reference(identifier)
        if ref is not None:
            structured = [d for d in pool if _matches_reference(d, ref)]
            if structured:
                return structured

        needle = identifier.lower()
        return [d for d in pool if needle in d.display_name.lower()]


def _matches_reference(dep: Deployment, ref: Reference) -> bool:
    if ref.namespace is not None and dep.namespace != ref.namespace:
        return False
    if ref.chain_id is not None and dep.chain_id != ref.chain_id:
        return False
    if dep.contract_name != ref.contract_name:
        return False
    return ref.label is None or dep.label == ref.label
