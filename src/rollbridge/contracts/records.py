"""Ledger record contracts for the two persistent stores.

These are strict contracts - enum fields must be proper enum types.
The repository layer handles string -> enum conversion for DB reads.
If our own tables hold garbage, something catastrophic happened: crash.
"""

from dataclasses import dataclass, field
from datetime import datetime

from rollbridge.contracts.enums import SettleStatus, TxState


def _validate_enum(value: object, enum_type: type, field_name: str) -> None:
    """Raise TypeError unless value is None or an instance of enum_type."""
    if value is not None and not isinstance(value, enum_type):
        raise TypeError(f"{field_name} must be {enum_type.__name__}, got {type(value).__name__}: {value!r}")


@dataclass(frozen=True, slots=True)
class AccountPair:
    """Destination L2 account, addressed by two large integers."""

    pid_1: int
    pid_2: int


@dataclass(frozen=True, slots=True)
class Withdrawal:
    """One (destination address, amount) pair.

    Amount is in the token's smallest unit (wei for 18 decimals).
    """

    address: str
    amount: int


@dataclass
class TxRecord:
    """Deposit ledger entry, keyed by the L1 transaction hash.

    Records are never deleted; they form the audit trail of every deposit
    the ingestor has ever observed.
    """

    tx_hash: str
    state: TxState  # Strict: enum only
    l1_token: int
    account: AccountPair
    amount: int
    created_at: datetime
    l1_account: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        _validate_enum(self.state, TxState, "state")


@dataclass
class ProofBundleRecord:
    """A generated proof keyed by the state-root it commits to.

    Created when a proof is requested. The settlement side records the
    verify tx hash when it is broadcast, then appends confirmed
    withdrawals and sets a terminal status.
    """

    merkle_root: str
    task_id: str
    settle_status: SettleStatus | None = None  # None = unset
    settle_tx_hash: str | None = None
    withdrawals: list[Withdrawal] = field(default_factory=list)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        _validate_enum(self.settle_status, SettleStatus, "settle_status")

    @property
    def is_settled(self) -> bool:
        return self.settle_status is not None
