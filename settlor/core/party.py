"""Party identity: PartyKey, a 32-byte public key.

Sellers, owners and buyers are identified by 32-byte keys. The all-zero key
is reserved: the persisted layout uses it to mean "owner unset", so it can
never be parsed as a real party.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import final

from settlor.core.result import Err, Ok

KEY_LENGTH: int = 32
ZERO_KEY_BYTES: bytes = bytes(KEY_LENGTH)


@final
@dataclass(frozen=True, slots=True)
class PartyKey:
    """32-byte party identity. Construct via parse() or from_seed()."""

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, bytes) or len(self.value) != KEY_LENGTH:
            raise TypeError(f"PartyKey requires {KEY_LENGTH} bytes, got {self.value!r}")
        if self.value == ZERO_KEY_BYTES:
            raise TypeError("PartyKey must not be the all-zero key")

    @staticmethod
    def parse(raw: bytes | str) -> Ok[PartyKey] | Err[str]:
        """Accept 32 raw bytes or a 64-character hex string."""
        if isinstance(raw, str):
            try:
                raw = bytes.fromhex(raw)
            except ValueError:
                return Err(f"PartyKey hex is malformed: '{raw}'")
        if len(raw) != KEY_LENGTH:
            return Err(f"PartyKey must be {KEY_LENGTH} bytes, got {len(raw)}")
        if raw == ZERO_KEY_BYTES:
            return Err("PartyKey must not be the all-zero key")
        return Ok(PartyKey(value=raw))

    @staticmethod
    def from_seed(seed: str) -> PartyKey:
        """Deterministic key from a name. Fixtures and demos only."""
        return PartyKey(value=hashlib.sha256(seed.encode("utf-8")).digest())

    @property
    def hex(self) -> str:
        return self.value.hex()

    def __str__(self) -> str:
        return f"{self.hex[:8]}..{self.hex[-4:]}"
