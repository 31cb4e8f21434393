"""Checked unsigned fixed-width integer arithmetic.

Python ints never overflow, so the u64/u128 bounds of the persisted record
are enforced explicitly. Every function returns Err[CalculationError]
instead of wrapping, and operands are expected to be non-negative.

checked_add / checked_sub / checked_mul / checked_div : fallible
saturating_sub                                         : floors at zero
fits_u64                                               : range predicate
"""

from __future__ import annotations

from settlor.core.errors import CalculationError, ErrorCode
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime

U64_MAX: int = 2**64 - 1
U128_MAX: int = 2**128 - 1


def fits_u64(value: int) -> bool:
    return 0 <= value <= U64_MAX


def _calc_err(
    message: str,
    code: ErrorCode,
    operation: str,
    operands: tuple[int, ...],
    timestamp: UtcDatetime,
    source: str,
) -> Err[CalculationError]:
    return Err(CalculationError(
        message=message, code=code, timestamp=timestamp, source=source,
        operation=operation, operands=operands,
    ))


def checked_add(
    a: int, b: int, *, timestamp: UtcDatetime, source: str, limit: int = U64_MAX,
) -> Ok[int] | Err[CalculationError]:
    total = a + b
    if total > limit:
        return _calc_err(
            f"Calculation overflow: {a} + {b} exceeds {limit}",
            ErrorCode.CALCULATION_OVERFLOW, "add", (a, b), timestamp, source,
        )
    return Ok(total)


def checked_sub(
    a: int, b: int, *, timestamp: UtcDatetime, source: str,
    code: ErrorCode = ErrorCode.CALCULATION_OVERFLOW,
) -> Ok[int] | Err[CalculationError]:
    """a - b, failing when the result would go below zero."""
    if b > a:
        return _calc_err(
            f"Subtraction underflow: {a} - {b} < 0",
            code, "sub", (a, b), timestamp, source,
        )
    return Ok(a - b)


def checked_mul(
    a: int, b: int, *, timestamp: UtcDatetime, source: str, limit: int = U64_MAX,
) -> Ok[int] | Err[CalculationError]:
    product = a * b
    if product > limit:
        return _calc_err(
            f"Calculation overflow: {a} * {b} exceeds {limit}",
            ErrorCode.CALCULATION_OVERFLOW, "mul", (a, b), timestamp, source,
        )
    return Ok(product)


def checked_div(
    a: int, b: int, *, timestamp: UtcDatetime, source: str,
) -> Ok[int] | Err[CalculationError]:
    """Floor division; a zero divisor is an arithmetic error, not a crash."""
    if b == 0:
        return _calc_err(
            f"Division by zero: {a} / 0",
            ErrorCode.CALCULATION_OVERFLOW, "div", (a, b), timestamp, source,
        )
    return Ok(a // b)


def saturating_sub(a: int, b: int) -> int:
    return a - b if a > b else 0
