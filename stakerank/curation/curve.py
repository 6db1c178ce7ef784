"""
Bonding-curve math with checked integer arithmetic.

For a candidate balance b:

    rate(b)         = decimals - (b * decimals // max)
    available(b)    = b * rate(b)
    votes_minted(b) = mantissa >> shift,
                      (mantissa, shift) = power(available(b), decimals, decimals, rate(b))

Dilution of an entry's balance by votes already cast:

    effect            = (votes_cast * rate * available) // (votes_minted * decimals * decimals)
    effective_balance = b - effect

All operations are bounded to the unsigned 256-bit range. Any overflow,
underflow or non-positive divisor raises CurveArithmeticError instead of
wrapping or producing a corrupted entry.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from .errors import CurveArithmeticError, InvariantViolationError
from .models import CurveParameters, DownvoteCost, Entry
from .power import PowerPrimitive

logger = logging.getLogger(__name__)


UINT256_MAX = 2**256 - 1

# Downvotes always target this share of the effective balance (1%).
DOWNVOTE_DIVISOR = 100


# -----------------------------------------------------------------------------
# Checked arithmetic
# -----------------------------------------------------------------------------

def _bounded(value: int, op: str) -> int:
    if value < 0:
        raise CurveArithmeticError(f"{op} underflow: result {value} is negative")
    if value > UINT256_MAX:
        raise CurveArithmeticError(f"{op} overflow: result exceeds 256 bits")
    return value


def checked_add(a: int, b: int) -> int:
    return _bounded(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return _bounded(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    return _bounded(a * b, "mul")


def checked_div(a: int, b: int) -> int:
    """Floor division that refuses zero or negative divisors."""
    if b <= 0:
        raise CurveArithmeticError(f"division by non-positive denominator {b}")
    return _bounded(a // b, "div")


# -----------------------------------------------------------------------------
# Curve
# -----------------------------------------------------------------------------

class CurvePoint(NamedTuple):
    """Curve-derived values at one balance."""
    balance: int
    rate: int
    available: int
    votes_minted: int


def curve_at(params: CurveParameters, power: PowerPrimitive, balance: int) -> CurvePoint:
    """Recompute rate, available and votes_minted from scratch at ``balance``."""
    decimals = params.decimals
    rate = checked_sub(decimals, checked_div(checked_mul(balance, decimals), params.max))
    available = checked_mul(balance, rate)
    if rate == 0:
        raise CurveArithmeticError(f"rate is zero at balance {balance}")
    mantissa, shift = power.power(available, decimals, decimals, rate)
    if mantissa < 0 or shift < 0:
        raise CurveArithmeticError(f"power returned invalid result ({mantissa}, {shift})")
    votes_minted = _bounded(mantissa >> shift, "power")
    logger.debug(
        f"curve at balance={balance}: rate={rate}, available={available}, "
        f"votes_minted={votes_minted}"
    )
    return CurvePoint(balance, rate, available, votes_minted)


def diluted_balance(point: CurvePoint, votes_cast: int, decimals: int) -> int:
    """
    Effective balance at ``point`` after ``votes_cast`` votes were spent.

    With no votes cast there is nothing to dilute and the full balance counts.
    """
    if votes_cast == 0:
        return point.balance
    numerator = checked_mul(checked_mul(votes_cast, point.rate), point.available)
    denominator = checked_mul(checked_mul(point.votes_minted, decimals), decimals)
    effect = checked_div(numerator, denominator)
    return checked_sub(point.balance, effect)


def apply_point(entry: Entry, point: CurvePoint) -> None:
    """Copy curve values onto ``entry``."""
    entry.balance = point.balance
    entry.rate = point.rate
    entry.available = point.available
    entry.votes_minted = point.votes_minted


def downvote_cost(entry: Entry, decimals: int) -> DownvoteCost:
    """
    Price of removing exactly 1% of ``entry.effective_balance``.

        balance_down_by = effective_balance // 100
        votes_required  = balance_down_by * votes_minted * rate // available
        votes_available = votes_minted - votes_cast - votes_required
        cost            = (available // votes_available) * votes_required // decimals

    Raises CurveArithmeticError once the entry's vote headroom is exhausted.
    """
    balance_down_by = entry.effective_balance // DOWNVOTE_DIVISOR
    votes_required = checked_div(
        checked_mul(checked_mul(balance_down_by, entry.votes_minted), entry.rate),
        entry.available,
    )
    votes_available = entry.votes_minted - entry.votes_cast - votes_required
    if votes_available <= 0:
        raise CurveArithmeticError(
            f"vote headroom exhausted for {entry.label}: votes_minted={entry.votes_minted}, "
            f"votes_cast={entry.votes_cast}, votes_required={votes_required}"
        )
    cost = checked_div(
        checked_mul(checked_div(entry.available, votes_available), votes_required),
        decimals,
    )
    return DownvoteCost(balance_down_by, votes_required, cost)


def check_invariants(entry: Entry, params: CurveParameters) -> None:
    """
    Verify the vote/balance invariants of a computed entry state.

    Invariants:
    - 0 <= votes_cast <= votes_minted
    - 0 <= effective_balance <= balance < safe_max
    """
    failed = []
    if not 0 <= entry.votes_cast <= entry.votes_minted:
        failed.append(f"votes_cast={entry.votes_cast} not in [0, votes_minted={entry.votes_minted}]")
    if not 0 <= entry.effective_balance <= entry.balance:
        failed.append(
            f"effective_balance={entry.effective_balance} not in [0, balance={entry.balance}]"
        )
    if not entry.balance < params.safe_max:
        failed.append(f"balance={entry.balance} not below safe_max={params.safe_max}")
    if failed:
        raise InvariantViolationError(f"entry {entry.label}: " + "; ".join(failed))
