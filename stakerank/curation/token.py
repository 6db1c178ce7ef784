"""
Token adapter - escrow interface to the external fungible-token ledger.

The engine needs three things from the token ledger:
- allowance_of(owner): how much the owner has authorized this system to pull
- escrow(owner, amount): pull tokens from owner into custody
- release(recipient, amount): pay tokens out of custody

InMemoryToken is an in-process ledger implementing the adapter, with
balance mutation serialized per account.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Protocol

logger = logging.getLogger(__name__)


CUSTODY_ACCOUNT = "__custody__"


class TokenAdapter(Protocol):
    """Protocol for the escrowing token ledger."""

    def allowance_of(self, owner: str) -> int:
        """Amount ``owner`` has approved this system to escrow."""
        ...

    async def escrow(self, owner: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` into custody. Returns success."""
        ...

    async def release(self, recipient: str, amount: int) -> bool:
        """Move ``amount`` out of custody to ``recipient``. Returns success."""
        ...


class InMemoryToken:
    """
    In-process token ledger.

    Balances and allowances live in dicts keyed by account. Escrowed funds
    are held under CUSTODY_ACCOUNT. Every mutation of an account takes that
    account's asyncio.Lock.
    """

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[str, int] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, account: str) -> asyncio.Lock:
        lock = self._locks.get(account)
        if lock is None:
            lock = self._locks[account] = asyncio.Lock()
        return lock

    # -------------------------------------------------------------------------
    # Ledger management
    # -------------------------------------------------------------------------

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("mint amount must be non-negative")
        self._balances[account] = self._balances.get(account, 0) + amount

    def approve(self, owner: str, amount: int) -> None:
        """Set the allowance ``owner`` grants this system (replaces, not adds)."""
        if amount < 0:
            raise ValueError("allowance must be non-negative")
        self._allowances[owner] = amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    @property
    def custody_balance(self) -> int:
        return self.balance_of(CUSTODY_ACCOUNT)

    # -------------------------------------------------------------------------
    # TokenAdapter
    # -------------------------------------------------------------------------

    def allowance_of(self, owner: str) -> int:
        return self._allowances.get(owner, 0)

    async def escrow(self, owner: str, amount: int) -> bool:
        if amount < 0:
            return False
        async with self._lock(owner):
            if self.allowance_of(owner) < amount or self.balance_of(owner) < amount:
                logger.warning(
                    f"Escrow refused: owner={owner}, amount={amount}, "
                    f"balance={self.balance_of(owner)}, allowance={self.allowance_of(owner)}"
                )
                return False
            self._balances[owner] -= amount
            self._allowances[owner] -= amount
        async with self._lock(CUSTODY_ACCOUNT):
            self.mint(CUSTODY_ACCOUNT, amount)
        return True

    async def release(self, recipient: str, amount: int) -> bool:
        if amount < 0:
            return False
        async with self._lock(CUSTODY_ACCOUNT):
            if self.custody_balance < amount:
                logger.warning(
                    f"Release refused: recipient={recipient}, amount={amount}, "
                    f"custody={self.custody_balance}"
                )
                return False
            self._balances[CUSTODY_ACCOUNT] -= amount
        async with self._lock(recipient):
            self.mint(recipient, amount)
        return True
