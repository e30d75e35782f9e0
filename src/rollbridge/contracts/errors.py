"""Exception hierarchy shared by the deposit and settlement services.

RpcError subclasses are the transient class: RetryPolicy retries them.
Everything else is either a control-flow signal or a condition that
needs a human.
"""

from rollbridge.contracts.enums import TxState


class BridgeError(Exception):
    """Base class for all rollbridge errors."""


class ConfigurationError(BridgeError):
    """Settings are missing a value a service needs before it can start."""


# =============================================================================
# Transport errors (retryable)
# =============================================================================


class RpcError(BridgeError):
    """An external call failed in transport or returned an error response."""


class ChainRpcError(RpcError):
    """L1 node call failed."""


class L2RpcError(RpcError):
    """L2 rollup RPC call failed."""


class ProofServiceError(RpcError):
    """Proof service call failed."""


class ProofTaskTimeout(ProofServiceError):
    """Proof task fetch exceeded its explicit deadline."""

    def __init__(self, task_id: str, timeout: float) -> None:
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"load proof task {task_id} timed out after {timeout}s")


# =============================================================================
# Deposit path
# =============================================================================


class StateConflictError(BridgeError):
    """Stored deposit state does not allow the requested transition.

    Raised by the compare-and-set in TxStore. When the observed state is
    IN_PROGRESS on process entry, the previous attempt crashed with an
    unknown external effect and a human has to decide.
    """

    def __init__(self, tx_hash: str, observed: TxState | None, wanted: TxState) -> None:
        self.tx_hash = tx_hash
        self.observed = observed
        self.wanted = wanted
        super().__init__(f"tx {tx_hash}: cannot move from {observed} to {wanted}")


class DepositFailedError(BridgeError):
    """The L2 funding command was not acknowledged."""

    def __init__(self, tx_hash: str, detail: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"deposit failed for transaction {tx_hash}: {detail}")


class ManualReviewRequired(BridgeError):
    """An escalation was recorded; the service must stop and wait for an operator.

    Attributes:
        subject: tx hash or merkle root the escalation is about
        reason: human-readable description
    """

    def __init__(self, subject: str, reason: str) -> None:
        self.subject = subject
        self.reason = reason
        super().__init__(f"manual review required for {subject}: {reason}")


# =============================================================================
# Settlement path
# =============================================================================


class ProofTaskNotFound(ProofServiceError):
    """The proof service returned no task for the requested id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"proof task {task_id} not found")


class AggregationNotFound(ProofServiceError):
    """An Auto-mode task has no Batched round-1 record yet."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"no batched aggregation for task {task_id}")


class ReceiptError(BridgeError):
    """The verify transaction reverted or its receipt never confirmed.

    reverted=True means the chain rejected it and nothing changed. Otherwise
    the outcome is unknown until a later receipt lookup for tx_hash succeeds.
    """

    def __init__(self, tx_hash: str, detail: str, *, reverted: bool = False) -> None:
        self.tx_hash = tx_hash
        self.reverted = reverted
        super().__init__(f"verify transaction {tx_hash}: {detail}")


class PayloadDecodeError(BridgeError):
    """An instruction or proof payload has an impossible shape."""
