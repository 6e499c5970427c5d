"""Versioned registry document codec.

Two on-disk shapes exist:

- **version 1** (legacy): ``{"networks": {chainId: {"name", "deployments":
  {fqid: entry}}}, "libraries": {...}}`` with snake_case entry fields,
  proxies pointing at their target via ``target_deployment_fqid`` and
  execution state folded into each entry's ``deployment`` block.
- **version 2** (current): ``{"version": 2, "deployments", "transactions",
  "safeTransactions", "lookups", "addresses"}``.

``decode_document`` dispatches on the version tag and migrates v1 into the
v2 model.  Anything else is rejected with ``RegistryVersionError``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from chainregistry.core.errors import DuplicateLabelError, RegistryVersionError, ValidationError
from chainregistry.models.deployments import (
    ArtifactInfo,
    Deployment,
    DeploymentMethod,
    DeploymentStrategy,
    DeploymentType,
    ProxyInfo,
    VerificationInfo,
    VerificationStatus,
    VerifierStatus,
)
from chainregistry.models.registry import CURRENT_REGISTRY_VERSION, RegistryDocument
from chainregistry.models.transactions import (
    SafeContext,
    SafeTransaction,
    SafeTxStatus,
    Transaction,
    TransactionStatus,
    make_transaction_id,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Version dispatch
# ---------------------------------------------------------------------------


def detect_version(raw: dict[str, Any]) -> int:
    """Return the document version tag.

    Legacy documents carry no ``version`` key but always have ``networks``.
    """
    if "version" in raw:
        version = raw["version"]
        if isinstance(version, int) and not isinstance(version, bool):
            return version
        if isinstance(version, str) and version.isdigit():
            return int(version)
        raise RegistryVersionError(f"Registry version tag is not an integer: {version!r}")
    if "networks" in raw or isinstance(raw.get("deployments"), list):
        return 1
    if not raw:
        return CURRENT_REGISTRY_VERSION
    raise RegistryVersionError(
        "Registry document has no version tag and is not a legacy document"
    )


def decode_document(raw: dict[str, Any]) -> RegistryDocument:
    """Decode any supported registry document into the current model."""
    if not isinstance(raw, dict):
        raise ValidationError("Registry document must be a JSON object")
    version = detect_version(raw)
    decoder = _DECODERS.get(version)
    if decoder is None:
        raise RegistryVersionError(
            f"Unsupported registry version {version}; "
            f"supported: {sorted(_DECODERS)}"
        )
    try:
        return decoder(raw)
    except PydanticValidationError as exc:
        raise ValidationError(f"Malformed v{version} registry document: {exc}") from exc


def _decode_v2(raw: dict[str, Any]) -> RegistryDocument:
    # Derived sections are regenerated by the store; never trust them.
    payload = {k: v for k, v in raw.items() if k not in ("lookups", "addresses")}
    payload["version"] = CURRENT_REGISTRY_VERSION
    return RegistryDocument.model_validate(payload)


# ---------------------------------------------------------------------------
# v1 migration
# ---------------------------------------------------------------------------

_V1_TYPES = {t.value: t for t in DeploymentType}
_V1_VERIFICATION = {s.value: s for s in VerificationStatus}


def _v1_type(value: str) -> DeploymentType:
    return _V1_TYPES.get((value or "").upper(), DeploymentType.UNKNOWN)


def _v1_tx_status(value: str) -> TransactionStatus:
    # SIMULATED, QUEUED and PENDING_SAFE all collapse to PENDING.
    value = (value or "").upper()
    if value in ("EXECUTED", "FAILED"):
        return TransactionStatus(value)
    return TransactionStatus.PENDING


def _v1_method(entry: dict[str, Any]) -> DeploymentMethod:
    strategy = (entry.get("deployment", {}).get("strategy") or "").upper()
    if strategy == "CREATE3":
        return DeploymentMethod.CREATE3
    if strategy == "CREATE2" or entry.get("salt"):
        return DeploymentMethod.CREATE2
    return DeploymentMethod.CREATE


def _v1_verification(block: dict[str, Any]) -> VerificationInfo:
    status = _V1_VERIFICATION.get(
        (block.get("status") or "").upper(), VerificationStatus.UNVERIFIED
    )
    verifiers = {
        name: VerifierStatus(
            status=v.get("status", ""), url=v.get("url", ""), reason=v.get("reason", "")
        )
        for name, v in (block.get("verifiers") or {}).items()
    }
    return VerificationInfo(
        status=status,
        etherscan_url=block.get("explorer_url", ""),
        reason=block.get("reason", ""),
        verifiers=verifiers,
    )


def _decode_v1(raw: dict[str, Any]) -> RegistryDocument:
    deployments: dict[str, Deployment] = {}
    transactions: dict[str, Transaction] = {}
    safe_transactions: dict[str, SafeTransaction] = {}

    entries: list[tuple[int, dict[str, Any]]] = []
    for chain_key, network in (raw.get("networks") or {}).items():
        chain_id = int(chain_key)
        for entry in (network.get("deployments") or {}).values():
            entries.append((chain_id, entry))
    for chain_key, entry in (raw.get("libraries") or {}).items():
        # Libraries were keyed "<chainId>-<name>" or by chainId alone.
        chain_id = int(str(chain_key).split("-", 1)[0])
        entries.append((chain_id, {**entry, "type": entry.get("type") or "LIBRARY"}))
    # Flat variant: a plain list of entries each carrying its own chain id.
    if isinstance(raw.get("deployments"), list):
        for entry in raw["deployments"]:
            entries.append((int(entry.get("chain_id", entry.get("chainId"))), entry))

    by_fqid = {entry["fqid"]: entry for _, entry in entries if entry.get("fqid")}

    for chain_id, entry in entries:
        info = entry.get("deployment") or {}
        metadata = entry.get("metadata") or {}
        dep_type = _v1_type(entry.get("type", ""))

        proxy_info = None
        target = by_fqid.get(entry.get("target_deployment_fqid") or "")
        if dep_type == DeploymentType.PROXY:
            extra = metadata.get("extra") or {}
            impl_address = (target or {}).get("address") or extra.get("implementation", "")
            proxy_info = ProxyInfo(type=extra.get("proxyType", ""), implementation=impl_address)

        tx_id = ""
        tx_hash = info.get("tx_hash") or ""
        safe_tx_hash = info.get("safe_tx_hash") or ""
        status = info.get("status", "EXECUTED")
        namespace = entry.get("namespace") or "default"

        dep = Deployment(
            namespace=namespace,
            chain_id=chain_id,
            contract_name=entry["contract_name"],
            label=entry.get("label", ""),
            address=entry["address"],
            type=dep_type,
            deployment_strategy=DeploymentStrategy(
                method=_v1_method(entry),
                salt=entry.get("salt", ""),
                init_code_hash=entry.get("init_code_hash", ""),
                constructor_args=entry.get("constructor_args", ""),
            ),
            proxy_info=proxy_info,
            artifact=ArtifactInfo(
                path=metadata.get("contract_path", ""),
                compiler_version=metadata.get("compiler", ""),
                script_path=metadata.get("script_path", ""),
                git_commit=metadata.get("source_commit", ""),
            ),
            verification=_v1_verification(entry.get("verification") or {}),
            tags=entry.get("tags") or [],
            **({"created_at": info["timestamp"], "updated_at": info["timestamp"]}
               if info.get("timestamp") else {}),
        )

        if tx_hash:
            tx_id = make_transaction_id(tx_hash)
            existing = transactions.get(tx_id)
            transactions[tx_id] = Transaction(
                id=tx_id,
                chain_id=chain_id,
                hash=tx_hash,
                status=_v1_tx_status(status),
                block_number=info.get("block_number") or None,
                sender=info.get("deployer", ""),
                deployments=sorted({*(existing.deployments if existing else []), dep.id}),
                environment=namespace,
            )
        elif safe_tx_hash:
            tx_id = f"tx-safe-{safe_tx_hash.lower()}-0"
            existing = transactions.get(tx_id)
            transactions[tx_id] = Transaction(
                id=tx_id,
                chain_id=chain_id,
                status=TransactionStatus.PENDING,
                deployments=sorted({*(existing.deployments if existing else []), dep.id}),
                safe_context=SafeContext(
                    safe_address=info.get("safe_address", ""),
                    safe_tx_hash=safe_tx_hash,
                ),
                environment=namespace,
            )
            if safe_tx_hash not in safe_transactions:
                safe_transactions[safe_tx_hash] = SafeTransaction(
                    safe_tx_hash=safe_tx_hash,
                    safe_address=info.get("safe_address", ""),
                    chain_id=chain_id,
                    status=SafeTxStatus.QUEUED
                    if status == "PENDING_SAFE"
                    else SafeTxStatus.EXECUTED,
                    nonce=info.get("safe_nonce", 0),
                    transaction_ids=[tx_id],
                )

        seen = deployments.get(dep.id)
        if seen is not None and seen.address_key != dep.address_key:
            raise DuplicateLabelError(
                f"Legacy registry records {dep.id} at both {seen.address} and {dep.address}"
            )
        deployments[dep.id] = dep.model_copy(update={"transaction_id": tx_id})

    logger.info(
        "Migrated legacy registry: %d deployments, %d transactions, %d safe transactions",
        len(deployments),
        len(transactions),
        len(safe_transactions),
    )
    return RegistryDocument(
        deployments=deployments,
        transactions=transactions,
        safe_transactions=safe_transactions,
    )


_DECODERS: dict[int, Callable[[dict[str, Any]], RegistryDocument]] = {
    1: _decode_v1,
    2: _decode_v2,
}


# ---------------------------------------------------------------------------
# Encoding and file I/O
# ---------------------------------------------------------------------------


def encode_document(document: RegistryDocument) -> dict[str, Any]:
    """Dump a document in its stable, camelCase JSON form."""
    return document.model_dump(mode="json", by_alias=True)


def read_document(path: Path) -> RegistryDocument:
    """Read and decode the registry file; a missing file is an empty registry."""
    path = Path(path)
    if not path.exists():
        return RegistryDocument()
    try:
        raw = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Registry file {path} is not valid JSON: {exc}") from exc
    return decode_document(raw)


def write_document(path: Path, document: RegistryDocument) -> None:
    """Atomically replace ``path`` with the encoded document.

    Writes to a temp file in the same directory, fsyncs, then ``os.replace``
    so readers only ever see the old or the new file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(encode_document(document), indent=2, sort_keys=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
