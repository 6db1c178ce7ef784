"""
Curation Engine - stake-weighted ranking over the Entry Ledger.

Operations:
1. create(caller, id, amount)       stake a new entry
2. upvote_preview(id, amount)       effective-balance gain of an upvote (read-only)
3. upvote(caller, id, amount)       add stake to an entry
4. downvote_cost(id)                price of removing 1% of an entry (read-only)
5. downvote(caller, id, amount)     pay the owner to remove 1% of an entry
6. withdraw(caller, id, amount)     owner takes stake back
7. set_metadata(caller, id, data)   owner replaces the entry's metadata

Every mutating operation runs under a per-entry asyncio.Lock:
read entry -> compute candidate copy -> check invariants -> move tokens -> commit.
A rejection at any step leaves both the ledger and the token balances
untouched. Different entries proceed concurrently.

Invariants (after every committed operation):
- 0 <= votes_cast <= votes_minted
- 0 <= effective_balance <= balance < safe_max
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from dataclasses import replace
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from .curve import (
    apply_point,
    check_invariants,
    checked_add,
    checked_div,
    checked_sub,
    curve_at,
    diluted_balance,
    downvote_cost,
)
from .errors import (
    AmountMismatchError,
    CurationError,
    DuplicateEntryError,
    EscrowError,
    ExceedsAvailableError,
    ExceedsCeilingError,
    InsufficientAllowanceError,
    InsufficientAmountError,
    NotOwnerError,
    ValidationError,
)
from .hooks import (
    CurationEvent,
    CurationHooks,
    DownvotedEvent,
    EntryCreatedEvent,
    MetadataUpdatedEvent,
    NullHooks,
    UpvotedEvent,
    WithdrawnEvent,
)
from .ledger import EntryLedger
from .models import MAX_METADATA_SIZE, CurveParameters, DownvoteCost, Entry, display_id, entry_id
from .power import DecimalPower, PowerPrimitive
from .token import TokenAdapter

logger = logging.getLogger(__name__)

EntryKey = Union[str, bytes]
T = TypeVar("T")
E = TypeVar("E")


def _logs_rejections(op: str) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Log a warning for every CurationError raised by the wrapped operation."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(self: "CurationEngine", caller: str, *args: Any, **kwargs: Any) -> T:
            try:
                return await func(self, caller, *args, **kwargs)
            except CurationError as exc:
                logger.warning(
                    f"{op} rejected: caller={caller}, {type(exc).__name__}: {exc}",
                    extra={"context": {"op": op, "caller": caller, "error": type(exc).__name__}},
                )
                raise

        return wrapper

    return decorator


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InsufficientAmountError(f"amount must be positive, got {amount}")


class CurationEngine:
    """
    Stake-weighted curation over an EntryLedger.

    The engine holds no per-call state; entry state lives in the ledger and
    tokens live behind the TokenAdapter.
    """

    def __init__(
        self,
        params: CurveParameters,
        token: TokenAdapter,
        power: Optional[PowerPrimitive] = None,
        ledger: Optional[EntryLedger] = None,
        hooks: Optional[CurationHooks] = None,
    ) -> None:
        self.params = params
        self.ledger = ledger if ledger is not None else EntryLedger()
        self._token = token
        self._power = power if power is not None else DecimalPower()
        self._hooks = hooks if hooks is not None else NullHooks()
        self._locks: Dict[bytes, asyncio.Lock] = {}
        self._lock_users: Dict[bytes, int] = {}

        logger.info(
            f"CurationEngine initialized: max={params.max}, safe_max={params.safe_max}, "
            f"decimals={params.decimals}, entries={len(self.ledger)}"
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_entry(self, key: EntryKey) -> Entry:
        """Detached copy of an entry's current state."""
        return self.ledger.snapshot(entry_id(key))

    def entries(self) -> List[Entry]:
        """Copies of all entries in creation order."""
        return [replace(entry) for entry in self.ledger]

    def upvote_preview(self, key: EntryKey, amount: int) -> int:
        """
        Increase in effective balance an upvote of ``amount`` would produce.

        Performs the same computation as upvote() without mutating state or
        moving tokens. With no votes cast there is no dilution and the gain
        is ``amount`` itself.
        """
        _require_positive(amount)
        current = self.get_entry(key)
        if current.votes_cast == 0:
            self._check_ceiling(current.balance, amount)
            return amount
        candidate = self._upvoted(current, amount)
        return checked_sub(candidate.effective_balance, current.effective_balance)

    def downvote_cost(self, key: EntryKey) -> DownvoteCost:
        """Current (balance_down_by, votes_required, cost) for a 1% downvote."""
        return downvote_cost(self.get_entry(key), self.params.decimals)

    def withdraw_max(self, key: EntryKey) -> int:
        """Stake the owner can take back in balance units."""
        current = self.get_entry(key)
        return checked_div(current.available, current.rate)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    @_logs_rejections("create")
    async def create(
        self,
        caller: str,
        key: EntryKey,
        amount: int,
        metadata: bytes = b"",
    ) -> EntryCreatedEvent:
        """
        Create an entry staked with ``amount`` and escrow the stake.

        Raises:
            InsufficientAmountError: amount <= 0
            ExceedsCeilingError: amount >= safe_max
            DuplicateEntryError: id already registered
            EscrowError: the stake could not be escrowed
        """
        eid = entry_id(key)
        _require_positive(amount)
        self._check_ceiling(0, amount)
        self._check_metadata(metadata)

        async with self._entry_lock(eid):
            if eid in self.ledger:
                raise DuplicateEntryError(f"entry already exists: {display_id(eid)}")

            candidate = Entry(owner=caller, entry_id=eid, metadata=bytes(metadata))
            apply_point(candidate, curve_at(self.params, self._power, amount))
            candidate.votes_cast = 0
            candidate.effective_balance = amount
            check_invariants(candidate, self.params)

            await self._escrow(caller, amount)
            index = self.ledger.insert(caller, eid)
            self.ledger.store(index, candidate)

        logger.info(
            f"Entry created: id={candidate.label}, owner={caller}, index={index}, "
            f"balance={amount}, votes_minted={candidate.votes_minted}"
        )
        return self._emit(EntryCreatedEvent(eid, candidate.votes_minted, candidate.effective_balance))

    @_logs_rejections("upvote")
    async def upvote(self, caller: str, key: EntryKey, amount: int) -> UpvotedEvent:
        """
        Add ``amount`` of stake to an entry.

        Raises:
            InsufficientAmountError: amount <= 0
            NotFoundError: unknown id
            ExceedsCeilingError: balance + amount >= safe_max
            EscrowError: the stake could not be escrowed
        """
        eid = entry_id(key)
        _require_positive(amount)

        async with self._entry_lock(eid):
            index = self.ledger.lookup(eid)
            candidate = self._upvoted(self.ledger.get(index), amount)
            await self._escrow(caller, amount)
            self.ledger.store(index, candidate)

        logger.info(
            f"Upvoted: id={candidate.label}, caller={caller}, amount={amount}, "
            f"effective_balance={candidate.effective_balance}"
        )
        return self._emit(UpvotedEvent(eid, candidate.effective_balance))

    @_logs_rejections("downvote")
    async def downvote(self, caller: str, key: EntryKey, amount: int) -> DownvotedEvent:
        """
        Pay ``amount`` to the entry owner to remove 1% of its effective balance.

        ``amount`` must equal the cost computed at call time.

        Raises:
            NotFoundError: unknown id
            CurveArithmeticError: vote headroom exhausted
            InsufficientAmountError: the current cost rounds to zero
            AmountMismatchError: amount != current cost
            EscrowError: payment could not be escrowed or forwarded
        """
        eid = entry_id(key)

        async with self._entry_lock(eid):
            index = self.ledger.lookup(eid)
            current = self.ledger.get(index)
            quote = downvote_cost(current, self.params.decimals)
            if quote.cost == 0:
                raise InsufficientAmountError(
                    f"downvote cost for {current.label} rounds to zero "
                    f"(effective_balance={current.effective_balance})"
                )
            if amount != quote.cost:
                raise AmountMismatchError(f"downvote amount {amount} != current cost {quote.cost}")

            candidate = replace(current)
            candidate.available = checked_sub(current.available, amount)
            candidate.votes_cast = checked_add(current.votes_cast, quote.votes_required)
            candidate.effective_balance = checked_sub(current.effective_balance, quote.balance_down_by)
            check_invariants(candidate, self.params)

            await self._escrow(caller, amount)
            try:
                await self._release(current.owner, amount)
            except EscrowError:
                await self._refund(caller, amount)
                raise
            self.ledger.store(index, candidate)

        logger.info(
            f"Downvoted: id={candidate.label}, caller={caller}, cost={amount}, "
            f"votes_required={quote.votes_required}, effective_balance={candidate.effective_balance}"
        )
        return self._emit(DownvotedEvent(eid, candidate.effective_balance))

    @_logs_rejections("withdraw")
    async def withdraw(self, caller: str, key: EntryKey, amount: int) -> WithdrawnEvent:
        """
        Return ``amount`` of stake to the entry owner.

        votes_cast is clamped to the recomputed votes_minted when the
        withdrawal shrinks voting capacity below what was already cast.

        Raises:
            NotFoundError: unknown id
            NotOwnerError: caller is not the owner
            InsufficientAmountError: amount <= 0
            ExceedsAvailableError: amount > available
            CurveArithmeticError: amount exceeds the remaining balance
            EscrowError: the payout failed
        """
        eid = entry_id(key)

        async with self._entry_lock(eid):
            index = self.ledger.lookup(eid)
            current = self.ledger.get(index)
            if caller != current.owner:
                raise NotOwnerError(f"{caller} is not the owner of {current.label}")
            _require_positive(amount)
            if amount > current.available:
                raise ExceedsAvailableError(
                    f"withdraw amount {amount} exceeds available {current.available}"
                )

            point = curve_at(self.params, self._power, checked_sub(current.balance, amount))
            candidate = replace(current)
            apply_point(candidate, point)
            if current.votes_cast > point.votes_minted:
                logger.info(
                    f"Clamping votes_cast for {current.label}: "
                    f"{current.votes_cast} -> {point.votes_minted}"
                )
                candidate.votes_cast = point.votes_minted
            candidate.effective_balance = diluted_balance(point, candidate.votes_cast, self.params.decimals)
            check_invariants(candidate, self.params)

            await self._release(caller, amount)
            self.ledger.store(index, candidate)

        logger.info(
            f"Withdrawn: id={candidate.label}, amount={amount}, balance={candidate.balance}, "
            f"effective_balance={candidate.effective_balance}"
        )
        return self._emit(WithdrawnEvent(eid, candidate.effective_balance))

    @_logs_rejections("set_metadata")
    async def set_metadata(self, caller: str, key: EntryKey, metadata: bytes) -> MetadataUpdatedEvent:
        """Replace an entry's metadata. Owner only."""
        eid = entry_id(key)
        self._check_metadata(metadata)

        async with self._entry_lock(eid):
            index = self.ledger.lookup(eid)
            current = self.ledger.get(index)
            if caller != current.owner:
                raise NotOwnerError(f"{caller} is not the owner of {current.label}")
            self.ledger.store(index, replace(current, metadata=bytes(metadata)))

        return self._emit(MetadataUpdatedEvent(eid, bytes(metadata)))

    async def execute(self, caller: str, command: Any) -> CurationEvent:
        """Run a typed command (see commands.py)."""
        return await command.apply(self, caller)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _entry_lock(self, eid: bytes) -> AsyncIterator[None]:
        """Hold the lock for ``eid``; it is dropped once no task holds or awaits it."""
        lock = self._locks.get(eid)
        if lock is None:
            lock = self._locks[eid] = asyncio.Lock()
        self._lock_users[eid] = self._lock_users.get(eid, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[eid] -= 1
            if not self._lock_users[eid]:
                del self._lock_users[eid]
                del self._locks[eid]

    def _check_ceiling(self, balance: int, amount: int) -> None:
        total = checked_add(balance, amount)
        if total >= self.params.safe_max:
            raise ExceedsCeilingError(
                f"stake {total} must stay below safe_max {self.params.safe_max}"
            )

    @staticmethod
    def _check_metadata(metadata: bytes) -> None:
        if len(metadata) > MAX_METADATA_SIZE:
            raise ValidationError(f"metadata too long: {len(metadata)} > {MAX_METADATA_SIZE}")

    def _upvoted(self, current: Entry, amount: int) -> Entry:
        """Candidate state of ``current`` after staking ``amount`` more."""
        self._check_ceiling(current.balance, amount)
        point = curve_at(self.params, self._power, current.balance + amount)
        candidate = replace(current)
        apply_point(candidate, point)
        candidate.effective_balance = diluted_balance(point, current.votes_cast, self.params.decimals)
        check_invariants(candidate, self.params)
        return candidate

    async def _escrow(self, owner: str, amount: int) -> None:
        allowance = self._token.allowance_of(owner)
        if allowance < amount:
            raise InsufficientAllowanceError(
                f"allowance of {owner} is {allowance}, {amount} required"
            )
        try:
            ok = await self._token.escrow(owner, amount)
        except Exception as exc:
            raise EscrowError(f"escrow of {amount} from {owner} failed: {exc}") from exc
        if not ok:
            raise EscrowError(f"escrow of {amount} from {owner} was refused")

    async def _release(self, recipient: str, amount: int) -> None:
        try:
            ok = await self._token.release(recipient, amount)
        except Exception as exc:
            raise EscrowError(f"release of {amount} to {recipient} failed: {exc}") from exc
        if not ok:
            raise EscrowError(f"release of {amount} to {recipient} was refused")

    async def _refund(self, caller: str, amount: int) -> None:
        """Return an escrowed payment after a later step of the same operation failed."""
        try:
            await self._release(caller, amount)
        except EscrowError:
            logger.error(f"Refund of {amount} to {caller} failed; custody holds the payment")
            raise

    def _emit(self, event: E) -> E:
        try:
            self._hooks.on_event(event)
        except Exception as e:
            logger.warning(f"Hook exception (ignored): {e}")
        return event
