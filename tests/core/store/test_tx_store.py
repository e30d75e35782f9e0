# tests/core/store/test_tx_store.py
"""Tests for the deposit ledger."""

import pytest
from sqlalchemy import text

from rollbridge.contracts.enums import TxState
from rollbridge.contracts.errors import StateConflictError
from rollbridge.contracts.records import AccountPair
from rollbridge.core.store import BridgeDB, TxStore
from tests.fakes import TOKEN_UID, make_event


class TestObserve:
    def test_creates_pending_record(self, db: BridgeDB) -> None:
        event = make_event(amount=(1 << 255) + 1, account=AccountPair(pid_1=1 << 200, pid_2=5))

        record, created = TxStore(db).observe(event)

        assert created is True
        assert record.state is TxState.PENDING
        assert record.amount == (1 << 255) + 1
        assert record.account == AccountPair(pid_1=1 << 200, pid_2=5)
        assert record.l1_token == TOKEN_UID
        assert record.l1_account == event.l1_account

    def test_second_observation_returns_existing(self, db: BridgeDB) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)
        store.transition(event.tx_hash, TxState.PENDING, TxState.IN_PROGRESS)

        record, created = store.observe(event)

        assert created is False
        assert record.state is TxState.IN_PROGRESS
        with db.connection() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM deposit_txs")).scalar_one()
        assert count == 1


class TestTransition:
    def test_allowed_transition(self, db: BridgeDB) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)

        store.transition(event.tx_hash, TxState.PENDING, TxState.IN_PROGRESS)

        record = store.get(event.tx_hash)
        assert record is not None
        assert record.state is TxState.IN_PROGRESS

    @pytest.mark.parametrize(
        ("expected", "new"),
        [
            (TxState.PENDING, TxState.COMPLETED),
            (TxState.COMPLETED, TxState.IN_PROGRESS),
            (TxState.IN_PROGRESS, TxState.PENDING),
            (TxState.FAILED, TxState.COMPLETED),
        ],
    )
    def test_disallowed_transition_never_touches_the_row(self, db: BridgeDB, expected: TxState, new: TxState) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)

        with pytest.raises(StateConflictError):
            store.transition(event.tx_hash, expected, new)

        record = store.get(event.tx_hash)
        assert record is not None
        assert record.state is TxState.PENDING

    def test_stale_expected_state_is_a_conflict(self, db: BridgeDB) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)
        store.transition(event.tx_hash, TxState.PENDING, TxState.IN_PROGRESS)

        with pytest.raises(StateConflictError) as exc_info:
            store.transition(event.tx_hash, TxState.PENDING, TxState.IN_PROGRESS)

        assert exc_info.value.observed is TxState.IN_PROGRESS

    def test_unknown_hash_is_a_conflict_with_no_observed_state(self, db: BridgeDB) -> None:
        with pytest.raises(StateConflictError) as exc_info:
            TxStore(db).transition("0xmissing", TxState.PENDING, TxState.IN_PROGRESS)

        assert exc_info.value.observed is None


class TestResolveManually:
    def test_in_progress_can_be_resolved(self, db: BridgeDB) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)
        store.transition(event.tx_hash, TxState.PENDING, TxState.IN_PROGRESS)

        record = store.resolve_manually(event.tx_hash, TxState.COMPLETED)

        assert record.state is TxState.COMPLETED

    def test_only_terminal_targets_are_accepted(self, db: BridgeDB) -> None:
        with pytest.raises(ValueError, match="completed or failed"):
            TxStore(db).resolve_manually("0xabc", TxState.PENDING)

    def test_record_not_in_progress_is_refused(self, db: BridgeDB) -> None:
        store = TxStore(db)
        event = make_event()
        store.observe(event)

        with pytest.raises(StateConflictError):
            store.resolve_manually(event.tx_hash, TxState.COMPLETED)


class TestListByState:
    def test_filters_and_limits(self, db: BridgeDB) -> None:
        store = TxStore(db)
        for i in range(3):
            store.observe(make_event(f"0x{i:064x}"))
        store.transition(f"0x{0:064x}", TxState.PENDING, TxState.IN_PROGRESS)

        pending = store.list_by_state(TxState.PENDING)

        assert [r.tx_hash for r in pending] == [f"0x{1:064x}", f"0x{2:064x}"]
        assert len(store.list_by_state(TxState.PENDING, limit=1)) == 1
        assert store.list_by_state(TxState.FAILED) == []
