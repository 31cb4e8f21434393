"""Fixed-width binary layout of a ContractRecord.

Little-endian, field order:

    kind u8 | underlying u32 len + bytes | seller 32s | initiation i64 |
    expiry i64 | status u8 | premium u64 | strike u64 | owner 32s |
    is_test u8 | initial_margin u64 | seller_margin u64 | buyer_margin u64 |
    last_settlement_at i64 | last_settlement_ratio u64

An all-zero owner means unset; last_settlement_at == 0 means never settled.
contract_id and version are not part of the layout: the id is derived from
(seller, underlying) and the version is held by the store.
"""

from __future__ import annotations

import struct

from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.errors import ErrorCode, FieldViolation, ValidationError
from settlor.core.party import KEY_LENGTH, ZERO_KEY_BYTES, PartyKey
from settlor.core.result import Err, Ok
from settlor.core.serialization import derive_contract_id
from settlor.core.types import UtcDatetime

MAX_UNDERLYING_BYTES: int = 32

_STATUS_TAGS: tuple[ContractStatus, ...] = (
    ContractStatus.LISTED,
    ContractStatus.OWNED,
    ContractStatus.EXPIRED,
    ContractStatus.DELISTED,
    ContractStatus.MARGIN_CALLED,
)

_HEAD = struct.Struct("<BI")
_BODY = struct.Struct(f"<{KEY_LENGTH}sqqBQQ{KEY_LENGTH}sBQQQqQ")

# Upper bound of an encoded record, underlying at its maximum length.
RECORD_SPACE: int = _HEAD.size + MAX_UNDERLYING_BYTES + _BODY.size


def encode_record(record: ContractRecord) -> bytes:
    """Serialize a record. Field ranges are guaranteed by the operations."""
    symbol = record.underlying.encode("utf-8")
    last = record.last_settlement_at.unix_seconds if record.last_settlement_at else 0
    return (
        _HEAD.pack(record.kind.value, len(symbol))
        + symbol
        + _BODY.pack(
            record.seller.value,
            record.initiation.unix_seconds,
            record.expiry.unix_seconds,
            _STATUS_TAGS.index(record.status),
            record.premium,
            record.strike,
            record.owner.value if record.owner else ZERO_KEY_BYTES,
            int(record.is_test),
            record.initial_margin,
            record.seller_margin,
            record.buyer_margin,
            last,
            record.last_settlement_ratio,
        )
    )


def _invalid(message: str, path: str, actual: str) -> Err[ValidationError]:
    return Err(ValidationError(
        message=message,
        code=ErrorCode.INVALID_RECORD,
        timestamp=UtcDatetime.now(),
        source="contract.codec.decode_record",
        fields=(FieldViolation(path=path, constraint=message, actual_value=actual),),
    ))


def decode_record(data: bytes, *, version: int = 0) -> Ok[ContractRecord] | Err[ValidationError]:
    """Parse bytes produced by encode_record. Rejects malformed input."""
    if len(data) < _HEAD.size:
        return _invalid("record truncated before header", "record", str(len(data)))
    kind_tag, symbol_len = _HEAD.unpack_from(data, 0)
    if symbol_len > MAX_UNDERLYING_BYTES:
        return _invalid("underlying longer than 32 bytes", "underlying", str(symbol_len))
    body_offset = _HEAD.size + symbol_len
    if len(data) != body_offset + _BODY.size:
        return _invalid("record length mismatch", "record", str(len(data)))

    match OptionKind.from_tag(kind_tag):
        case Err(e):
            return _invalid(e, "kind", str(kind_tag))
        case Ok(kind):
            pass
    try:
        underlying = data[_HEAD.size:body_offset].decode("utf-8")
    except UnicodeDecodeError:
        return _invalid("underlying is not valid UTF-8", "underlying", repr(data[_HEAD.size:body_offset]))

    (
        seller_raw, initiation, expiry, status_tag, premium, strike, owner_raw,
        is_test, initial_margin, seller_margin, buyer_margin, last, last_ratio,
    ) = _BODY.unpack_from(data, body_offset)

    if status_tag >= len(_STATUS_TAGS):
        return _invalid("unknown status tag", "status", str(status_tag))
    if is_test not in (0, 1):
        return _invalid("is_test must be 0 or 1", "is_test", str(is_test))
    match PartyKey.parse(seller_raw):
        case Err(e):
            return _invalid(e, "seller", seller_raw.hex())
        case Ok(seller):
            pass
    owner: PartyKey | None = None
    if owner_raw != ZERO_KEY_BYTES:
        owner = PartyKey(value=owner_raw)

    return Ok(ContractRecord(
        contract_id=derive_contract_id(seller, underlying),
        kind=kind,
        underlying=underlying,
        seller=seller,
        owner=owner,
        initiation=UtcDatetime.from_unix_seconds(initiation),
        expiry=UtcDatetime.from_unix_seconds(expiry),
        status=_STATUS_TAGS[status_tag],
        premium=premium,
        strike=strike,
        initial_margin=initial_margin,
        seller_margin=seller_margin,
        buyer_margin=buyer_margin,
        last_settlement_at=UtcDatetime.from_unix_seconds(last) if last else None,
        last_settlement_ratio=last_ratio,
        is_test=bool(is_test),
        version=version,
    ))
