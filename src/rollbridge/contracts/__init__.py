"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from
rollbridge.core.config.
"""

from rollbridge.contracts.enums import (
    TX_TRANSITIONS,
    AutoSubmitStatus,
    CycleOutcome,
    Round1Status,
    SettleStatus,
    SubmitMode,
    TaskStatus,
    TxState,
)
from rollbridge.contracts.errors import (
    AggregationNotFound,
    BridgeError,
    ChainRpcError,
    ConfigurationError,
    DepositFailedError,
    L2RpcError,
    ManualReviewRequired,
    PayloadDecodeError,
    ProofServiceError,
    ProofTaskNotFound,
    ProofTaskTimeout,
    ReceiptError,
    RpcError,
    StateConflictError,
)
from rollbridge.contracts.events import DepositEvent, VerifyReceipt, WithdrawEvent
from rollbridge.contracts.proofs import NotReady, ProofTask, Round1Info, VerifyArguments
from rollbridge.contracts.protocols import AlertHook, ChainReader, L2Rpc, ProofService, SettlementWriter
from rollbridge.contracts.records import AccountPair, ProofBundleRecord, TxRecord, Withdrawal

__all__ = [
    "TX_TRANSITIONS",
    "AccountPair",
    "AggregationNotFound",
    "AlertHook",
    "AutoSubmitStatus",
    "BridgeError",
    "ChainReader",
    "ChainRpcError",
    "ConfigurationError",
    "CycleOutcome",
    "DepositEvent",
    "DepositFailedError",
    "L2Rpc",
    "L2RpcError",
    "ManualReviewRequired",
    "NotReady",
    "PayloadDecodeError",
    "ProofBundleRecord",
    "ProofService",
    "ProofServiceError",
    "ProofTask",
    "ProofTaskNotFound",
    "ProofTaskTimeout",
    "ReceiptError",
    "Round1Info",
    "Round1Status",
    "RpcError",
    "SettleStatus",
    "SettlementWriter",
    "StateConflictError",
    "SubmitMode",
    "TaskStatus",
    "TxRecord",
    "TxState",
    "VerifyArguments",
    "VerifyReceipt",
    "WithdrawEvent",
    "Withdrawal",
]
