"""Shared pytest fixtures for curation tests.

Two parameter sets are used:
- ``params``: the production-like defaults (max 2,040,644)
- ``small_params``: max 100,000 with a 1% ceiling base, paired with
  IdentityPower so expected values can be worked out by hand
"""

from __future__ import annotations

import pytest

from stakerank.curation.engine import CurationEngine
from stakerank.curation.hooks import RecordingHooks
from stakerank.curation.models import CurveParameters
from stakerank.curation.power import DecimalPower
from stakerank.curation.token import InMemoryToken

from .helpers import IdentityPower


@pytest.fixture
def params() -> CurveParameters:
    return CurveParameters(total=3_470_483_788, ceiling=588, decimals=1_000_000)


@pytest.fixture
def small_params() -> CurveParameters:
    return CurveParameters(total=1_000_000, ceiling=100_000, decimals=1_000_000)


@pytest.fixture
def token() -> InMemoryToken:
    return InMemoryToken()


@pytest.fixture
def hooks() -> RecordingHooks:
    return RecordingHooks()


@pytest.fixture
def engine(params: CurveParameters, token: InMemoryToken, hooks: RecordingHooks) -> CurationEngine:
    return CurationEngine(params, token, power=DecimalPower(), hooks=hooks)


@pytest.fixture
def small_engine(small_params: CurveParameters, token: InMemoryToken, hooks: RecordingHooks) -> CurationEngine:
    return CurationEngine(small_params, token, power=IdentityPower(), hooks=hooks)
