"""Deposit ledger: by-hash lookup, insert-if-absent and state transitions."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rollbridge.contracts.enums import TX_TRANSITIONS, TxState
from rollbridge.contracts.errors import StateConflictError
from rollbridge.contracts.events import DepositEvent
from rollbridge.contracts.records import TxRecord
from rollbridge.core.store.database import BridgeDB
from rollbridge.core.store.repositories import TxRecordRepository
from rollbridge.core.store.schema import deposit_txs_table

logger = structlog.get_logger(__name__)


class TxStore:
    """Owns the deposit_txs table.

    Every state change goes through transition(), a compare-and-set on
    the stored state. Two writers racing on the same hash cannot both
    win, and a transition not listed in TX_TRANSITIONS is refused before
    touching the database.
    """

    def __init__(self, db: BridgeDB) -> None:
        self._db = db
        self._repo = TxRecordRepository()

    def get(self, tx_hash: str) -> TxRecord | None:
        with self._db.connection() as conn:
            row = conn.execute(select(deposit_txs_table).where(deposit_txs_table.c.tx_hash == tx_hash)).fetchone()
        return self._repo.load(row) if row is not None else None

    def observe(self, event: DepositEvent) -> tuple[TxRecord, bool]:
        """Create a pending record for event unless one already exists.

        Returns:
            (stored record, created) - created is False when the hash was
            already known; the stored record is returned unchanged.
        """
        now = datetime.now(UTC)
        try:
            with self._db.connection() as conn:
                conn.execute(
                    deposit_txs_table.insert().values(
                        tx_hash=event.tx_hash,
                        state=TxState.PENDING.value,
                        l1_token=str(event.l1_token),
                        l1_account=event.l1_account,
                        pid_1=str(event.account.pid_1),
                        pid_2=str(event.account.pid_2),
                        amount=str(event.amount),
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            existing = self.get(event.tx_hash)
            if existing is None:
                raise
            logger.info("deposit_already_recorded", tx_hash=event.tx_hash, state=existing.state.value)
            return existing, False

        logger.info("deposit_recorded", tx_hash=event.tx_hash, amount=str(event.amount))
        record = self.get(event.tx_hash)
        if record is None:
            raise RuntimeError(f"record for {event.tx_hash} vanished after insert")
        return record, True

    def transition(self, tx_hash: str, expected: TxState, new: TxState) -> None:
        """Move tx_hash from expected to new, atomically.

        Raises:
            StateConflictError: transition not allowed, or the stored state
                was not `expected` at the time of the update
        """
        if new not in TX_TRANSITIONS[expected]:
            raise StateConflictError(tx_hash, expected, new)
        self._compare_and_set(tx_hash, expected, new)
        logger.info("deposit_state_changed", tx_hash=tx_hash, old=expected.value, new=new.value)

    def resolve_manually(self, tx_hash: str, new: TxState) -> TxRecord:
        """Operator resolution of a record stuck in-progress.

        Only completed (the funding happened) or failed (it did not, retry
        allowed) are accepted.
        """
        if new not in (TxState.COMPLETED, TxState.FAILED):
            raise ValueError(f"manual resolution must be completed or failed, got {new}")
        self._compare_and_set(tx_hash, TxState.IN_PROGRESS, new)
        logger.warning("deposit_resolved_manually", tx_hash=tx_hash, new=new.value)
        record = self.get(tx_hash)
        assert record is not None
        return record

    def list_by_state(self, state: TxState, *, limit: int | None = None) -> list[TxRecord]:
        query = (
            select(deposit_txs_table)
            .where(deposit_txs_table.c.state == state.value)
            .order_by(deposit_txs_table.c.created_at)
        )
        if limit is not None:
            query = query.limit(limit)
        with self._db.connection() as conn:
            rows = conn.execute(query).fetchall()
        return [self._repo.load(row) for row in rows]

    def _compare_and_set(self, tx_hash: str, expected: TxState, new: TxState) -> None:
        with self._db.connection() as conn:
            result = conn.execute(
                deposit_txs_table.update()
                .where(deposit_txs_table.c.tx_hash == tx_hash)
                .where(deposit_txs_table.c.state == expected.value)
                .values(state=new.value, updated_at=datetime.now(UTC))
            )
            if result.rowcount == 1:
                return
            row = conn.execute(
                select(deposit_txs_table.c.state).where(deposit_txs_table.c.tx_hash == tx_hash)
            ).fetchone()
        observed = TxState(row.state) if row is not None else None
        raise StateConflictError(tx_hash, observed, new)
