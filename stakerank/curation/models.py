"""
Curation Data Models.

Defines the core data structures of the curation store:
- CurveParameters: process-wide bonding-curve constants
- Entry: one curated identifier and its curve-derived ranking state
- DownvoteCost: breakdown of the price of a 1% downvote

Design Principles:
- Parameters are immutable (frozen dataclass)
- Entries are plain mutable records owned by the EntryLedger
- Ids are fixed-width 32-byte values
- Serializable to JSON-friendly dicts
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Union

from .errors import ValidationError


ENTRY_ID_SIZE = 32
MAX_METADATA_SIZE = 64

# safe_max is kept at this percentage of the theoretical max.
SAFE_MAX_PERCENT = 98


# -----------------------------------------------------------------------------
# Identifiers
# -----------------------------------------------------------------------------

def entry_id(value: Union[str, bytes]) -> bytes:
    """
    Normalize an entry identifier to 32 bytes.

    Strings are UTF-8 encoded. Shorter values are right-padded with zero
    bytes; longer values are rejected.
    """
    raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if not raw:
        raise ValidationError("entry id cannot be empty")
    if len(raw) > ENTRY_ID_SIZE:
        raise ValidationError(f"entry id too long: {len(raw)} > {ENTRY_ID_SIZE}")
    return raw.ljust(ENTRY_ID_SIZE, b"\x00")


def display_id(value: bytes) -> str:
    """Render an id as text when it is padded UTF-8, hex otherwise."""
    stripped = value.rstrip(b"\x00")
    try:
        text = stripped.decode("utf-8")
    except UnicodeDecodeError:
        return value.hex()
    return text if text.isprintable() and text else value.hex()


# -----------------------------------------------------------------------------
# Curve Parameters
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class CurveParameters:
    """
    Bonding-curve constants, fixed at construction.

    Attributes:
        total: estimated total token supply at deploy time
        ceiling: per-entry stake bound, in units of ``decimals``
        decimals: fixed-point base; acts as both "100%" and the precision

    Derived:
        max: total * ceiling // decimals
        safe_max: 98% of max, the enforced per-entry stake ceiling
    """
    total: int
    ceiling: int
    decimals: int
    max: int = field(init=False)
    safe_max: int = field(init=False)

    def __post_init__(self) -> None:
        for name in ("total", "ceiling", "decimals"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError(f"{name} must be an int, got {type(value).__name__}")
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        max_stake = self.total * self.ceiling // self.decimals
        if max_stake <= 0:
            raise ValueError(
                f"derived max is zero for total={self.total}, ceiling={self.ceiling}, "
                f"decimals={self.decimals}"
            )
        object.__setattr__(self, "max", max_stake)
        object.__setattr__(self, "safe_max", max_stake * SAFE_MAX_PERCENT // 100)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "ceiling": self.ceiling,
            "decimals": self.decimals,
            "max": self.max,
            "safe_max": self.safe_max,
        }


# -----------------------------------------------------------------------------
# Entry
# -----------------------------------------------------------------------------

@dataclass
class Entry:
    """
    A curated identifier and its ranking state.

    Invariants (checked after every mutating operation):
    - 0 <= votes_cast <= votes_minted
    - 0 <= effective_balance <= balance < safe_max
    - owner and entry_id never change after creation
    """
    owner: str
    entry_id: bytes
    balance: int = 0
    rate: int = 0
    available: int = 0
    votes_minted: int = 0
    votes_cast: int = 0
    effective_balance: int = 0
    metadata: bytes = b""

    @property
    def label(self) -> str:
        return display_id(self.entry_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "id": self.entry_id.hex(),
            "label": self.label,
            "balance": self.balance,
            "rate": self.rate,
            "available": self.available,
            "votes_minted": self.votes_minted,
            "votes_cast": self.votes_cast,
            "effective_balance": self.effective_balance,
            "metadata": self.metadata.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entry":
        return cls(
            owner=data["owner"],
            entry_id=bytes.fromhex(data["id"]),
            balance=int(data["balance"]),
            rate=int(data["rate"]),
            available=int(data["available"]),
            votes_minted=int(data["votes_minted"]),
            votes_cast=int(data["votes_cast"]),
            effective_balance=int(data["effective_balance"]),
            metadata=bytes.fromhex(data.get("metadata", "")),
        )


class DownvoteCost(NamedTuple):
    """Price of removing 1% of an entry's effective balance."""
    balance_down_by: int
    votes_required: int
    cost: int

    def to_dict(self) -> Dict[str, int]:
        return self._asdict()
