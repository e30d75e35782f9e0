"""Proof bundle collection: by-root lookup and settlement update."""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from sqlalchemy import Connection, desc, select

from rollbridge.contracts.enums import SettleStatus
from rollbridge.contracts.records import ProofBundleRecord, Withdrawal
from rollbridge.core.store.database import BridgeDB
from rollbridge.core.store.repositories import ProofBundleRepository
from rollbridge.core.store.schema import bundle_withdrawals_table, proof_bundles_table

logger = structlog.get_logger(__name__)


class BundleStore:
    """Owns the proof_bundles and bundle_withdrawals tables.

    Bundles are created by whoever requests the proof; this side only
    records the settlement outcome.
    """

    def __init__(self, db: BridgeDB) -> None:
        self._db = db
        self._repo = ProofBundleRepository()

    def create(self, merkle_root: str, task_id: str) -> ProofBundleRecord:
        with self._db.connection() as conn:
            conn.execute(
                proof_bundles_table.insert().values(
                    merkle_root=merkle_root,
                    task_id=task_id,
                    created_at=datetime.now(UTC),
                )
            )
            record = self._load(conn, merkle_root)
        assert record is not None
        return record

    def find_by_root(self, merkle_root: str) -> ProofBundleRecord | None:
        with self._db.connection() as conn:
            return self._load(conn, merkle_root)

    def find_by_task_id(self, task_id: str) -> ProofBundleRecord | None:
        with self._db.connection() as conn:
            row = conn.execute(
                select(proof_bundles_table.c.merkle_root).where(proof_bundles_table.c.task_id == task_id)
            ).fetchone()
            if row is None:
                return None
            return self._load(conn, row.merkle_root)

    def latest(self, limit: int = 10) -> list[ProofBundleRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                select(proof_bundles_table.c.merkle_root)
                .order_by(desc(proof_bundles_table.c.created_at), desc(proof_bundles_table.c.merkle_root))
                .limit(limit)
            ).fetchall()
            records = [self._load(conn, row.merkle_root) for row in rows]
        return [r for r in records if r is not None]

    def find_unconfirmed(self) -> ProofBundleRecord | None:
        """Oldest bundle whose verify was broadcast but has no recorded outcome."""
        with self._db.connection() as conn:
            row = conn.execute(
                select(proof_bundles_table.c.merkle_root)
                .where(proof_bundles_table.c.settle_tx_hash.is_not(None))
                .where(proof_bundles_table.c.settle_status.is_(None))
                .order_by(proof_bundles_table.c.created_at, proof_bundles_table.c.merkle_root)
            ).first()
            if row is None:
                return None
            return self._load(conn, row.merkle_root)

    def record_submitted(self, merkle_root: str, settle_tx_hash: str) -> None:
        """Note a broadcast verify before its receipt is known.

        Raises:
            KeyError: no unsettled bundle with that root
        """
        with self._db.connection() as conn:
            result = conn.execute(
                proof_bundles_table.update()
                .where(proof_bundles_table.c.merkle_root == merkle_root)
                .where(proof_bundles_table.c.settle_status.is_(None))
                .values(settle_tx_hash=settle_tx_hash)
            )
            if result.rowcount != 1:
                raise KeyError(merkle_root)
        logger.info("bundle_verify_submitted", merkle_root=merkle_root, settle_tx_hash=settle_tx_hash)

    def clear_submission(self, merkle_root: str, settle_tx_hash: str) -> None:
        """Forget a broadcast verify that reverted, so the bundle can be submitted again."""
        with self._db.connection() as conn:
            conn.execute(
                proof_bundles_table.update()
                .where(proof_bundles_table.c.merkle_root == merkle_root)
                .where(proof_bundles_table.c.settle_tx_hash == settle_tx_hash)
                .where(proof_bundles_table.c.settle_status.is_(None))
                .values(settle_tx_hash=None)
            )
        logger.info("bundle_verify_cleared", merkle_root=merkle_root, settle_tx_hash=settle_tx_hash)

    def record_settlement(
        self,
        merkle_root: str,
        *,
        settle_tx_hash: str,
        status: SettleStatus,
        confirmed: Sequence[Withdrawal],
    ) -> ProofBundleRecord:
        """Append confirmed withdrawals and set tx hash + status, in one transaction.

        Raises:
            KeyError: no bundle with that root
        """
        with self._db.connection() as conn:
            existing = self._load(conn, merkle_root)
            if existing is None:
                raise KeyError(merkle_root)
            offset = len(existing.withdrawals)
            if confirmed:
                conn.execute(
                    bundle_withdrawals_table.insert(),
                    [
                        {
                            "merkle_root": merkle_root,
                            "position": offset + i,
                            "address": w.address,
                            "amount": str(w.amount),
                        }
                        for i, w in enumerate(confirmed)
                    ],
                )
            conn.execute(
                proof_bundles_table.update()
                .where(proof_bundles_table.c.merkle_root == merkle_root)
                .values(
                    settle_tx_hash=settle_tx_hash,
                    settle_status=status.value,
                    settled_at=datetime.now(UTC),
                )
            )
            record = self._load(conn, merkle_root)
        assert record is not None
        logger.info(
            "bundle_settlement_recorded",
            merkle_root=merkle_root,
            settle_tx_hash=settle_tx_hash,
            status=status.value,
            confirmed=len(confirmed),
        )
        return record

    def _load(self, conn: Connection, merkle_root: str) -> ProofBundleRecord | None:
        row = conn.execute(
            select(proof_bundles_table).where(proof_bundles_table.c.merkle_root == merkle_root)
        ).fetchone()
        if row is None:
            return None
        withdrawal_rows = conn.execute(
            select(bundle_withdrawals_table)
            .where(bundle_withdrawals_table.c.merkle_root == merkle_root)
            .order_by(bundle_withdrawals_table.c.position)
        ).fetchall()
        return self._repo.load(row, withdrawal_rows)
