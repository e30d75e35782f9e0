# tests/conftest.py
"""Shared fixtures: settings, in-memory store, fakes and a wired ServiceContext.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from rollbridge.core.config import BridgeSettings
from rollbridge.core.store import BridgeDB
from rollbridge.engine.context import ServiceContext
from rollbridge.engine.retry import RetryPolicy
from tests.fakes import FakeChain, FakeL2, FakeProofService, RecordingAlertHook, SleepRecorder

CONTRACT_ADDRESS = "0x" + "11" * 20


def make_settings(**sections: Any) -> BridgeSettings:
    """BridgeSettings with the two required sections filled in."""
    sections.setdefault("chain", {"settlement_contract_address": CONTRACT_ADDRESS, "settler_private_key": "0x" + "01" * 32})
    sections.setdefault("proof_service", {"image_md5": "0123456789abcdef"})
    sections.setdefault("l2", {"admin_key": "1234"})
    return BridgeSettings(**sections)


@pytest.fixture
def db() -> Iterator[BridgeDB]:
    database = BridgeDB.in_memory()
    yield database
    database.close()


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def l2() -> FakeL2:
    return FakeL2()


@pytest.fixture
def proof_service() -> FakeProofService:
    return FakeProofService()


@pytest.fixture
def alerts() -> RecordingAlertHook:
    return RecordingAlertHook()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_ctx(
    db: BridgeDB,
    chain: FakeChain,
    l2: FakeL2,
    proof_service: FakeProofService,
    alerts: RecordingAlertHook,
    sleeps: SleepRecorder,
) -> Callable[..., ServiceContext]:
    """Factory for a context over the shared fakes; keyword args become settings sections."""

    def _make(**sections: Any) -> ServiceContext:
        return ServiceContext(
            settings=make_settings(**sections),
            db=db,
            chain=chain,
            retry=RetryPolicy(max_attempts=3, initial_delay=2.0, multiplier=1.5),
            alerts=alerts,
            l2=l2,
            writer=chain,
            proof_service=proof_service,
            sleep=sleeps,
        )

    return _make


@pytest.fixture
def ctx(make_ctx: Callable[..., ServiceContext]) -> ServiceContext:
    return make_ctx()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
