"""Repository layer for record rows.

Handles the seam between SQLAlchemy rows (strings) and domain objects
(strict enum and int types). This is NOT a trust boundary - if the
database has bad data, we crash.
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy.engine import Row as SARow

from rollbridge.contracts.enums import SettleStatus, TxState
from rollbridge.contracts.records import AccountPair, ProofBundleRecord, TxRecord, Withdrawal


class TxRecordRepository:
    """Repository for deposit ledger rows."""

    def load(self, row: SARow[Any]) -> TxRecord:
        """Load TxRecord from database row.

        Converts state to TxState and decimal strings back to ints.
        """
        return TxRecord(
            tx_hash=row.tx_hash,
            state=TxState(row.state),  # Convert HERE
            l1_token=int(row.l1_token),
            account=AccountPair(pid_1=int(row.pid_1), pid_2=int(row.pid_2)),
            amount=int(row.amount),
            created_at=row.created_at,
            l1_account=row.l1_account,
            updated_at=row.updated_at,
        )


class ProofBundleRepository:
    """Repository for proof bundle rows and their confirmed withdrawals."""

    def load(self, row: SARow[Any], withdrawal_rows: Iterable[SARow[Any]] = ()) -> ProofBundleRecord:
        """Load ProofBundleRecord from a bundle row plus its withdrawal rows.

        withdrawal_rows must already be ordered by position.
        """
        # Explicit is-not-None: empty string must crash, not become "unset"
        status = SettleStatus(row.settle_status) if row.settle_status is not None else None
        return ProofBundleRecord(
            merkle_root=row.merkle_root,
            task_id=row.task_id,
            settle_status=status,
            settle_tx_hash=row.settle_tx_hash,
            withdrawals=[Withdrawal(address=w.address, amount=int(w.amount)) for w in withdrawal_rows],
            created_at=row.created_at,
        )
