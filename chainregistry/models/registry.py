"""On-disk registry document (current shape, version 2)."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from chainregistry.models.deployments import Deployment
from chainregistry.models.transactions import SafeTransaction, Transaction

CURRENT_REGISTRY_VERSION = 2


class RegistryDocument(BaseModel):
    """Full persisted record set plus its derived, regenerable sections.

    ``lookups`` and ``addresses`` are written for external consumers only;
    the loader discards them and rebuilds from the record collections.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: Literal[2] = CURRENT_REGISTRY_VERSION
    deployments: dict[str, Deployment] = {}
    transactions: dict[str, Transaction] = {}
    safe_transactions: dict[str, SafeTransaction] = Field(
        default={}, alias="safeTransactions"
    )
    lookups: dict[str, Any] = {}
    addresses: dict[str, dict[str, dict[str, str]]] = {}
