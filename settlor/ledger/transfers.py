"""Transfer intents for purchase and resale.

Functions here only describe value movements; the desk executes them on the
value rail as one TransferBatch before committing the contract record.
Zero-amount legs are omitted. Account naming:

    party:<64 hex chars>       wallet of a seller, buyer or reseller
    custody:<contract_id>      margin held for one contract
"""

from __future__ import annotations

from settlor.contract.types import ContractRecord
from settlor.core.errors import ErrorCode, FieldViolation, ValidationError
from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.ledger.transactions import Transfer

type Leg = tuple[str, str, int, str]


def party_account(key: PartyKey) -> str:
    return f"party:{key.hex}"


def custody_account(contract_id: str) -> str:
    return f"custody:{contract_id}"


def _build(
    legs: list[Leg], now: UtcDatetime, fn_name: str,
) -> Ok[tuple[Transfer, ...]] | Err[ValidationError]:
    transfers: list[Transfer] = []
    for index, (src, dst, amount, memo) in enumerate(legs):
        if amount == 0:
            continue
        match Transfer.create(src, dst, amount, memo):
            case Err(reason):
                return Err(ValidationError(
                    message=f"{fn_name}: {reason}",
                    code=ErrorCode.INVALID_TRANSFER,
                    timestamp=now,
                    source=f"ledger.transfers.{fn_name}",
                    fields=(FieldViolation(
                        path=f"transfers[{index}]",
                        constraint="valid transfer",
                        actual_value=f"{src} -> {dst}: {amount}",
                    ),),
                ))
            case Ok(transfer):
                transfers.append(transfer)
    return Ok(tuple(transfers))


def purchase_transfers(
    record: ContractRecord, buyer: PartyKey, now: UtcDatetime,
) -> Ok[tuple[Transfer, ...]] | Err[ValidationError]:
    """Premium buyer -> seller, then both initial margins into custody."""
    custody = custody_account(record.contract_id)
    buyer_acct = party_account(buyer)
    seller_acct = party_account(record.seller)
    return _build([
        (buyer_acct, seller_acct, record.premium, "premium"),
        (buyer_acct, custody, record.initial_margin, "buyer margin deposit"),
        (seller_acct, custody, record.initial_margin, "seller margin deposit"),
    ], now, "purchase_transfers")


def resale_transfers(
    record: ContractRecord,
    current_owner: PartyKey,
    new_owner: PartyKey,
    price: int,
    now: UtcDatetime,
) -> Ok[tuple[Transfer, ...]] | Err[ValidationError]:
    """Price to the current owner; the new owner replaces the buyer margin.

    The custody balance is unchanged: the new owner deposits the current
    buyer_margin and the same amount is released to the previous owner.
    """
    custody = custody_account(record.contract_id)
    old_acct = party_account(current_owner)
    new_acct = party_account(new_owner)
    return _build([
        (new_acct, old_acct, price, "resale price"),
        (new_acct, custody, record.buyer_margin, "buyer margin deposit"),
        (custody, old_acct, record.buyer_margin, "buyer margin release"),
    ], now, "resale_transfers")
