"""Price ratio converter.

Turns two independently priced quantities (asset price, reference-currency
price, both in 6-implied-decimal integer units) into one fixed-point ratio:

    ratio = floor(asset_price * scale / reference_price),  scale = 10**9

The intermediate product is bounded at 128 bits and the result at 64 bits.
A ratio that does not fit u64 is an overflow error, never a silent wrap.
"""

from __future__ import annotations

from settlor.core.errors import CalculationError, ErrorCode, FieldViolation, ValidationError
from settlor.core.fixed_point import U64_MAX, U128_MAX, checked_div, checked_mul
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime

RATIO_SCALE: int = 10**9

_SOURCE = "oracle.ratio.compute_ratio"


def compute_ratio(
    asset_price: int,
    reference_price: int,
    timestamp: UtcDatetime,
    *,
    scale: int = RATIO_SCALE,
) -> Ok[int] | Err[ValidationError | CalculationError]:
    """Asset price expressed in reference-currency units, scaled by ``scale``."""
    if reference_price <= 0 or asset_price < 0:
        bad = "reference_price" if reference_price <= 0 else "asset_price"
        return Err(ValidationError(
            message="Invalid price provided",
            code=ErrorCode.INVALID_PRICE,
            timestamp=timestamp,
            source=_SOURCE,
            fields=(FieldViolation(
                path=bad,
                constraint="must be > 0" if bad == "reference_price" else "must be >= 0",
                actual_value=str(reference_price if bad == "reference_price" else asset_price),
            ),),
        ))
    if asset_price > U64_MAX or reference_price > U64_MAX:
        return Err(CalculationError(
            message="Price exceeds u64 range",
            code=ErrorCode.CALCULATION_OVERFLOW,
            timestamp=timestamp,
            source=_SOURCE,
            operation="ratio",
            operands=(asset_price, reference_price),
        ))

    match checked_mul(asset_price, scale, timestamp=timestamp, source=_SOURCE, limit=U128_MAX):
        case Err(e):
            return Err(e)
        case Ok(scaled):
            pass
    match checked_div(scaled, reference_price, timestamp=timestamp, source=_SOURCE):
        case Err(e):
            return Err(e)
        case Ok(ratio):
            pass

    if ratio > U64_MAX:
        return Err(CalculationError(
            message=f"Calculation overflow: ratio {ratio} does not fit u64",
            code=ErrorCode.CALCULATION_OVERFLOW,
            timestamp=timestamp,
            source=_SOURCE,
            operation="narrow",
            operands=(ratio,),
        ))
    return Ok(ratio)
