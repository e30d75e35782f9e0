"""Protocols for the external collaborators.

The engine only ever talks to these interfaces; concrete adapters live in
rollbridge.clients and tests substitute in-process fakes.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from rollbridge.contracts.events import DepositEvent, VerifyReceipt
from rollbridge.contracts.proofs import ProofTask, Round1Info, VerifyArguments
from rollbridge.contracts.records import AccountPair


@runtime_checkable
class ChainReader(Protocol):
    """Read side of the L1 settlement contract."""

    def block_number(self) -> int:
        """Current chain tip."""
        ...

    def deposit_events(self, from_block: int, to_block: int) -> Sequence[DepositEvent]:
        """TopUp events emitted by the contract in [from_block, to_block]."""
        ...

    def state_root(self) -> int:
        """The contract's current 256-bit state-root."""
        ...

    def token_registry(self) -> Sequence[int]:
        """Registered token identifiers in registry order."""
        ...


@runtime_checkable
class SettlementWriter(Protocol):
    """Write side of the L1 settlement contract."""

    def send_verify(self, args: VerifyArguments) -> str:
        """Sign and broadcast verify(); returns the transaction hash."""
        ...

    def wait_for_receipt(self, tx_hash: str) -> VerifyReceipt:
        """Block until tx_hash is mined.

        Raises:
            ReceiptError: transaction reverted (reverted=True) or was not
                confirmed in time (outcome still unknown)
        """
        ...


@runtime_checkable
class L2Rpc(Protocol):
    """Admin-side access to the rollup's account RPC."""

    def create_account(self) -> Any:
        """Install the admin account (reserved opcode 1, nonce 0)."""
        ...

    def deposit(self, account: AccountPair, token_index: int, amount: int) -> Any:
        """Fund account from the bridge's L2 custody.

        Returns a truthy acknowledgement on success.
        """
        ...


@runtime_checkable
class ProofService(Protocol):
    """Opaque proof-generation task queue."""

    def load_task(self, task_id: str, *, status: str | None, timeout: float) -> ProofTask:
        """Fetch one Prove task.

        Raises:
            ProofTaskNotFound: no task with that id/status
            ProofTaskTimeout: deadline exceeded
        """
        ...

    def query_round1_info(self, task_id: str) -> Round1Info:
        """Fetch the Batched aggregation record containing task_id.

        Raises:
            AggregationNotFound: task has not been batched yet
        """
        ...


@runtime_checkable
class AlertHook(Protocol):
    """Receives escalations that need an operator."""

    def escalate(self, subject: str, reason: str, context: Mapping[str, Any]) -> None: ...
