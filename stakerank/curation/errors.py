"""
Curation error taxonomy.

Every error is raised before any ledger mutation or token movement is
committed, so a failed operation has no observable effect. Each failing
precondition has its own class so callers can tell "stake too high" from
"wrong payment amount" from "arithmetic exhausted".
"""

from __future__ import annotations


class CurationError(Exception):
    """Base class for all curation engine errors."""
    pass


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

class ValidationError(CurationError, ValueError):
    """A caller-supplied value failed a precondition."""
    pass


class InsufficientAmountError(ValidationError):
    """Amount is zero or negative."""
    pass


class ExceedsCeilingError(ValidationError):
    """Resulting stake would reach or pass the per-entry safe maximum."""
    pass


class ExceedsAvailableError(ValidationError):
    """Withdrawal larger than the entry's available stake."""
    pass


class DuplicateEntryError(ValidationError):
    """An entry with this id already exists."""
    pass


# -----------------------------------------------------------------------------
# Lookup / authorization / payment
# -----------------------------------------------------------------------------

class NotFoundError(CurationError, LookupError):
    """No entry is registered under the given id."""
    pass


class AuthorizationError(CurationError, PermissionError):
    """Caller is not allowed to perform the operation."""
    pass


class NotOwnerError(AuthorizationError):
    """Caller is not the owner of the entry."""
    pass


class MismatchError(CurationError, ValueError):
    """A supplied value does not match the freshly computed one."""
    pass


class AmountMismatchError(MismatchError):
    """Downvote payment differs from the current downvote cost."""
    pass


class EscrowError(CurationError):
    """The token adapter failed to move funds."""
    pass


class InsufficientAllowanceError(EscrowError):
    """Caller has not authorized enough tokens for the operation."""
    pass


# -----------------------------------------------------------------------------
# Arithmetic
# -----------------------------------------------------------------------------

class CurveArithmeticError(CurationError, ArithmeticError):
    """Overflow, underflow or division by a non-positive denominator."""
    pass


class InvariantViolationError(CurveArithmeticError):
    """A computed entry state breaks the vote/balance invariants."""
    pass
