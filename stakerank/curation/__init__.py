"""
Curation - bonding-curve accounting for stake-weighted rankings.

Provides:
- Curve parameters and per-entry ranking state
- An append-only entry ledger with JSON snapshots
- The curation engine (create, upvote, downvote, withdraw + previews)
- Typed commands and approval-payload dispatch
- Token adapter protocol with an in-memory ledger
"""

from .models import (
    CurveParameters,
    Entry,
    DownvoteCost,
    entry_id,
    display_id,
)
from .errors import (
    CurationError,
    ValidationError,
    InsufficientAmountError,
    ExceedsCeilingError,
    ExceedsAvailableError,
    DuplicateEntryError,
    NotFoundError,
    AuthorizationError,
    NotOwnerError,
    MismatchError,
    AmountMismatchError,
    EscrowError,
    InsufficientAllowanceError,
    CurveArithmeticError,
    InvariantViolationError,
)
from .power import PowerPrimitive, DecimalPower
from .curve import CurvePoint, curve_at, diluted_balance, downvote_cost
from .ledger import EntryLedger, save_ledger, load_ledger
from .token import TokenAdapter, InMemoryToken
from .hooks import (
    CurationHooks,
    NullHooks,
    LoggingHooks,
    RecordingHooks,
    EntryCreatedEvent,
    UpvotedEvent,
    DownvotedEvent,
    WithdrawnEvent,
    MetadataUpdatedEvent,
)
from .engine import CurationEngine
from .commands import (
    CreateCommand,
    UpvoteCommand,
    DownvoteCommand,
    WithdrawCommand,
    encode_approval,
    decode_approval,
    dispatch_approval,
)
from .ranking import top_entries, rank_of
from .config import (
    StakeRankConfig,
    CurveConfig,
    LoggingConfig,
    StorageConfig,
    get_config,
    set_config,
    reset_config,
)

__all__ = [
    # Models
    "CurveParameters",
    "Entry",
    "DownvoteCost",
    "entry_id",
    "display_id",
    # Errors
    "CurationError",
    "ValidationError",
    "InsufficientAmountError",
    "ExceedsCeilingError",
    "ExceedsAvailableError",
    "DuplicateEntryError",
    "NotFoundError",
    "AuthorizationError",
    "NotOwnerError",
    "MismatchError",
    "AmountMismatchError",
    "EscrowError",
    "InsufficientAllowanceError",
    "CurveArithmeticError",
    "InvariantViolationError",
    # Curve
    "PowerPrimitive",
    "DecimalPower",
    "CurvePoint",
    "curve_at",
    "diluted_balance",
    "downvote_cost",
    # Ledger
    "EntryLedger",
    "save_ledger",
    "load_ledger",
    # Token
    "TokenAdapter",
    "InMemoryToken",
    # Hooks
    "CurationHooks",
    "NullHooks",
    "LoggingHooks",
    "RecordingHooks",
    "EntryCreatedEvent",
    "UpvotedEvent",
    "DownvotedEvent",
    "WithdrawnEvent",
    "MetadataUpdatedEvent",
    # Engine
    "CurationEngine",
    # Commands
    "CreateCommand",
    "UpvoteCommand",
    "DownvoteCommand",
    "WithdrawCommand",
    "encode_approval",
    "decode_approval",
    "dispatch_approval",
    # Ranking
    "top_entries",
    "rank_of",
    # Config
    "StakeRankConfig",
    "CurveConfig",
    "LoggingConfig",
    "StorageConfig",
    "get_config",
    "set_config",
    "reset_config",
]
