"""Canonical serialization and content-addressed hashing.

canonical_bytes(obj) -> Result[bytes, str]: deterministic JSON bytes.
content_hash(obj) -> Result[str, str]: SHA-256 hex of canonical bytes.
derive_contract_id(seller, underlying) -> str: contract address.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from enum import Enum
from typing import Any

from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime

CONTRACT_SEED_PREFIX: bytes = b"option"


def _to_serializable(obj: object) -> Any:  # noqa: PLR0911
    """Recursively convert a domain object to a JSON-compatible Python value."""
    if obj is None:
        return None
    # bool before int (bool is subclass of int)
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, int):
        # u64 amounts exceed the 2**53 safe range of most JSON readers
        return str(obj)
    if isinstance(obj, str):
        return obj
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, PartyKey):
        return obj.hex
    if isinstance(obj, UtcDatetime):
        return obj.value.isoformat()
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, (tuple, list)):
        return [_to_serializable(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _to_serializable(v) for k, v in sorted(obj.items())}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        field_names = sorted(f.name for f in dataclasses.fields(obj))
        result: dict[str, Any] = {"_type": type(obj).__name__}
        for name in field_names:
            result[name] = _to_serializable(getattr(obj, name))
        return result
    msg = f"Cannot serialize {type(obj).__name__}"
    raise TypeError(msg)


def canonical_bytes(obj: object) -> Ok[bytes] | Err[str]:
    """Convert any domain value to canonical JSON bytes. Never raises."""
    try:
        serializable = _to_serializable(obj)
    except TypeError as e:
        return Err(f"Unsupported type in canonical serialization: {e}")
    return Ok(
        json.dumps(serializable, sort_keys=True, separators=(",", ":")).encode("utf-8")
    )


def content_hash(obj: object) -> Ok[str] | Err[str]:
    """SHA-256 hex digest of canonical_bytes(obj)."""
    match canonical_bytes(obj):
        case Err() as e:
            return e
        case Ok(b):
            return Ok(hashlib.sha256(b).hexdigest())


def derive_contract_id(seller: PartyKey, underlying: str) -> str:
    """Contract address: one contract per (seller, underlying) pair."""
    digest = hashlib.sha256(
        CONTRACT_SEED_PREFIX + seller.value + underlying.encode("utf-8")
    )
    return digest.hexdigest()
