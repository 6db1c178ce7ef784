"""Test doubles shared by the curation tests."""

from __future__ import annotations

import asyncio
from typing import Set, Tuple

from stakerank.curation.token import InMemoryToken


FUNDING = 100_000_000


class IdentityPower:
    """Power stub that ignores the exponent: votes_minted == available // decimals."""

    def power(self, base_n: int, base_d: int, exp_n: int, exp_d: int) -> Tuple[int, int]:
        return base_n * 2**32 // base_d, 32


class YieldingToken(InMemoryToken):
    """Yields to the event loop before every transfer to force interleaving."""

    async def escrow(self, owner: str, amount: int) -> bool:
        await asyncio.sleep(0)
        return await super().escrow(owner, amount)

    async def release(self, recipient: str, amount: int) -> bool:
        await asyncio.sleep(0)
        return await super().release(recipient, amount)


class BlockingToken(InMemoryToken):
    """Refuses releases to blocked recipients and raises on blocked escrows."""

    def __init__(self) -> None:
        super().__init__()
        self.blocked_recipients: Set[str] = set()
        self.broken_owners: Set[str] = set()

    async def escrow(self, owner: str, amount: int) -> bool:
        if owner in self.broken_owners:
            raise ConnectionError("token ledger unreachable")
        return await super().escrow(owner, amount)

    async def release(self, recipient: str, amount: int) -> bool:
        if recipient in self.blocked_recipients:
            return False
        return await super().release(recipient, amount)


def fund(token: InMemoryToken, account: str, amount: int) -> None:
    """Give ``account`` FUNDING tokens and approve ``amount`` for escrow."""
    token.mint(account, FUNDING)
    token.approve(account, amount)
