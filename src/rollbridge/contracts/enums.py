"""All status codes and modes used across subsystem boundaries.

Values marked "stored" are persisted verbatim; renaming one breaks every
existing database.
"""

from enum import StrEnum


class TxState(StrEnum):
    """State of a deposit ledger entry.

    Stored in the database (deposit_txs.state).
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Allowed compare-and-set transitions. FAILED -> IN_PROGRESS is the
# retry edge and is only taken when deposit.retry_failed is enabled.
TX_TRANSITIONS: dict[TxState, frozenset[TxState]] = {
    TxState.PENDING: frozenset({TxState.IN_PROGRESS}),
    TxState.IN_PROGRESS: frozenset({TxState.COMPLETED, TxState.FAILED}),
    TxState.FAILED: frozenset({TxState.IN_PROGRESS}),
    TxState.COMPLETED: frozenset(),
}


class SettleStatus(StrEnum):
    """Settlement outcome of a proof bundle.

    Stored in the database (proof_bundles.settle_status). NULL means unset.
    """

    DONE = "Done"
    FAIL = "Fail"


class SubmitMode(StrEnum):
    """How the proof service submits a proof.

    MANUAL: the single proof is submitted directly by us.
    AUTO: the proof is aggregated into a batch before submission.
    """

    MANUAL = "Manual"
    AUTO = "Auto"


class AutoSubmitStatus(StrEnum):
    """Auto-submit sub-status reported by the proof service."""

    ROUND1 = "Round1"
    ROUND2 = "Round2"
    REGISTERED_PROOF = "RegisteredProof"
    PROOF_NOT_REGISTERED = "ProofNotRegistered"


class TaskStatus(StrEnum):
    """Lifecycle status of a proof task."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    DRY_RUN_SUCCESS = "DryRunSuccess"
    DRY_RUN_FAILED = "DryRunFailed"
    DONE = "Done"
    FAIL = "Fail"
    STALE = "Stale"


class Round1Status(StrEnum):
    """Status of an aggregation (round 1) record."""

    PENDING = "Pending"
    BATCHED = "Batched"


class CycleOutcome(StrEnum):
    """Result of one settlement cycle.

    NO_BUNDLE and NOT_READY ("Auto-mode proof not registered yet") are
    normal outcomes, not failures. ALREADY_SETTLED means the current root
    belongs to a bundle that already carries a terminal status; it is
    never submitted twice.
    """

    NO_BUNDLE = "no_bundle"
    ALREADY_SETTLED = "already_settled"
    NOT_READY = "not_ready"
    SETTLED = "settled"
    ESCALATED = "escalated"
