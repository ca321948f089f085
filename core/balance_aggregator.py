"""
Balance Aggregator — Totals the storage balances of the fetched accounts.

Each account record is a pair [account_id, account] where
account["storage_balance"] is a u128 in yoctoNEAR serialized as a decimal
string (e.g., "1500000000000000000000000" = 1.5 NEAR). The total is only
printed for the operator; nothing downstream depends on it.

All arithmetic uses decimal.Decimal under a context wide enough that sums of
u128 values are exact. A malformed balance aborts the run, which is safe
because the report is printed before anything is written.
"""

from decimal import Decimal, Context, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from .errors import ParseError

YOCTO_PER_NEAR = Decimal(10) ** 24

# u128 needs 39 digits; leave room for the sum of any realistic number of them.
_CONTEXT = Context(prec=80, rounding=ROUND_HALF_UP, traps=[InvalidOperation])


def parse_balance(raw: Any, account_id: Any = None) -> Decimal:
    """Parse one storage_balance string into a finite Decimal."""
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise ParseError(
            f"storage_balance of {account_id} is not a decimal string: {raw!r}", account_id
        )
    try:
        value = _CONTEXT.create_decimal(raw.strip() if isinstance(raw, str) else raw)
    except InvalidOperation as e:
        raise ParseError(
            f"storage_balance of {account_id} is not a valid decimal: {raw!r}", account_id
        ) from e
    if not value.is_finite():
        raise ParseError(
            f"storage_balance of {account_id} is not a finite decimal: {raw!r}", account_id
        )
    return value


def sum_balances(accounts: Iterable[Any]) -> Decimal:
    """Sum storage_balance across account records, in yoctoNEAR.

    Raises:
        ParseError: If a record is not an [account_id, account] pair or its
            balance is missing or malformed.
    """
    total = Decimal(0)
    for record in accounts:
        try:
            account_id, account = record
            raw = account["storage_balance"]
        except (TypeError, ValueError, KeyError) as e:
            raise ParseError(f"Malformed account record: {record!r}") from e
        total = _CONTEXT.add(total, parse_balance(raw, account_id))
    return total


def to_near(total: Decimal, places: int = 3) -> Decimal:
    """Convert yoctoNEAR to NEAR, rounded half-up to `places` decimals."""
    near = _CONTEXT.divide(total, YOCTO_PER_NEAR)
    return near.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP, context=_CONTEXT)


def format_near(total: Decimal, places: int = 3) -> str:
    """Format a yoctoNEAR total for the report, e.g. "1.500 NEAR"."""
    return f"{to_near(total, places)} NEAR"
