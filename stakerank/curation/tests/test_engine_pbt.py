from __future__ import annotations

import asyncio
from dataclasses import astuple

from hypothesis import given, settings
from hypothesis import strategies as st

from stakerank.curation.curve import check_invariants, curve_at
from stakerank.curation.engine import CurationEngine
from stakerank.curation.errors import CurationError
from stakerank.curation.models import CurveParameters
from stakerank.curation.power import DecimalPower
from stakerank.curation.token import InMemoryToken

from .helpers import IdentityPower, fund

SMALL = CurveParameters(total=1_000_000, ceiling=100_000, decimals=1_000_000)
DEFAULT = CurveParameters(total=3_470_483_788, ceiling=588, decimals=1_000_000)

_OPS = st.lists(
    st.tuples(
        st.sampled_from(["upvote", "downvote", "withdraw", "withdraw_max"]),
        st.integers(min_value=-10, max_value=30_000),
    ),
    min_size=1,
    max_size=25,
)


async def _apply(engine: CurationEngine, token: InMemoryToken, n: int, op: str, amount: int) -> None:
    if op == "upvote":
        fund(token, f"backer-{n}", max(amount, 0))
        await engine.upvote(f"backer-{n}", "a", amount)
    elif op == "downvote":
        cost = engine.downvote_cost("a").cost
        fund(token, f"voter-{n}", cost)
        await engine.downvote(f"voter-{n}", "a", cost)
    elif op == "withdraw":
        await engine.withdraw("alice", "a", amount)
    else:
        limit = engine.withdraw_max("a")
        if limit:
            await engine.withdraw("alice", "a", limit)


@given(stake=st.integers(min_value=1, max_value=50_000), ops=_OPS)
@settings(max_examples=150, deadline=None, derandomize=True)
def test_invariants_hold_and_rejections_have_no_effect(stake: int, ops) -> None:
    token = InMemoryToken()
    engine = CurationEngine(SMALL, token, power=IdentityPower())

    async def scenario() -> None:
        fund(token, "alice", stake)
        await engine.create("alice", "a", stake)
        for n, (op, amount) in enumerate(ops):
            before = astuple(engine.get_entry("a"))
            custody = token.custody_balance
            try:
                await _apply(engine, token, n, op, amount)
            except CurationError:
                assert astuple(engine.get_entry("a")) == before
                assert token.custody_balance == custody
                continue
            entry = engine.get_entry("a")
            check_invariants(entry, SMALL)
            assert token.custody_balance == entry.balance

    asyncio.run(scenario())


@given(stake=st.integers(min_value=100, max_value=50_000), amount=st.integers(min_value=1, max_value=40_000))
@settings(max_examples=100, deadline=None, derandomize=True)
def test_preview_is_pure_and_exact(stake: int, amount: int) -> None:
    token = InMemoryToken()
    engine = CurationEngine(SMALL, token, power=IdentityPower())

    async def scenario() -> None:
        fund(token, "alice", stake)
        await engine.create("alice", "a", stake)
        cost = engine.downvote_cost("a").cost
        if cost:
            fund(token, "voter", cost)
            await engine.downvote("voter", "a", cost)

        current = engine.get_entry("a")
        before = astuple(current)
        try:
            preview = engine.upvote_preview("a", amount)
        except CurationError:
            assert astuple(engine.get_entry("a")) == before
            return
        assert engine.upvote_preview("a", amount) == preview
        assert astuple(engine.get_entry("a")) == before

        fund(token, "bob", amount)
        event = await engine.upvote("bob", "a", amount)
        assert event.effective_balance - current.effective_balance == preview

    asyncio.run(scenario())


@given(balance=st.integers(min_value=1_000, max_value=900_000), delta=st.integers(min_value=1_000, max_value=100_000))
@settings(max_examples=60, deadline=None, derandomize=True)
def test_votes_minted_increase_with_balance(balance: int, delta: int) -> None:
    power = DecimalPower()
    low = curve_at(DEFAULT, power, balance)
    high = curve_at(DEFAULT, power, balance + delta)
    assert high.votes_minted > low.votes_minted
    assert high.rate < low.rate


@given(stake=st.integers(min_value=1, max_value=SMALL.safe_max - 1))
@settings(max_examples=100, deadline=None, derandomize=True)
def test_fresh_entry_is_fully_effective(stake: int) -> None:
    token = InMemoryToken()
    engine = CurationEngine(SMALL, token, power=IdentityPower())

    async def scenario() -> None:
        fund(token, "alice", stake)
        event = await engine.create("alice", "a", stake)
        assert event.effective_balance == stake
        assert engine.withdraw_max("a") == stake

    asyncio.run(scenario())
