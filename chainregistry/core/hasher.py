"""Canonical hashing helpers for index comparison and change detection."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def record_digest(record: BaseModel) -> str:
    """SHA-256 of a record's canonical on-disk form.

    Sync uses this to skip writes when nothing observable changed.
    """
    return sha256_hex(
        canonical_json_bytes(record.model_dump(mode="json", by_alias=True))
    )
