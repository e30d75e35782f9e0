# tests/property/test_ingestion_properties.py
"""Property-based tests for deposit ingestion.

INGESTION INVARIANTS:
1. However often an event is delivered, one record exists per tx hash
2. A deposit is funded at most once
3. Every delivered event for a registered token ends COMPLETED
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from rollbridge.contracts.enums import TxState
from rollbridge.core.store import BridgeDB
from rollbridge.engine.context import ServiceContext
from rollbridge.engine.deposit import DepositExecutor, EventIngestor
from rollbridge.engine.retry import RetryPolicy
from tests.conftest import make_settings
from tests.fakes import UNIT, FakeChain, FakeL2, RecordingAlertHook, SleepRecorder, make_event

tx_hashes = st.integers(min_value=1, max_value=20).map(lambda n: "0x" + f"{n:064x}")
deliveries = st.lists(
    st.tuples(tx_hashes, st.integers(min_value=UNIT, max_value=50 * UNIT)),
    min_size=1,
    max_size=30,
)


@given(delivered=deliveries)
def test_redelivery_funds_each_deposit_once(delivered: list[tuple[str, int]]) -> None:
    # Fresh store per example; function-scoped fixtures are shared across examples
    with BridgeDB.in_memory() as db:
        chain = FakeChain()
        l2 = FakeL2()
        ctx = ServiceContext(
            settings=make_settings(),
            db=db,
            chain=chain,
            retry=RetryPolicy(max_attempts=3, initial_delay=0.0, multiplier=1.0),
            alerts=RecordingAlertHook(),
            l2=l2,
            sleep=SleepRecorder(),
        )
        ingestor = EventIngestor(ctx, DepositExecutor(ctx))

        first_amount: dict[str, int] = {}
        for tx_hash, amount in delivered:
            first_amount.setdefault(tx_hash, amount)
            ingestor.handle(make_event(tx_hash, amount=amount))

        assert len(l2.deposits) == len(first_amount)
        funded = sorted(units for _, _, units in l2.deposits)
        assert funded == sorted(amount // UNIT for amount in first_amount.values())
        for tx_hash in first_amount:
            record = ctx.tx_store.get(tx_hash)
            assert record is not None
            assert record.state is TxState.COMPLETED
