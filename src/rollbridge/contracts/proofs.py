"""Proof-service data contracts.

ProofTask and Round1Info mirror what the proof service returns; they are
read-only to this package. VerifyArguments is what the assembler hands
to the submitter.
"""

from dataclasses import dataclass, field

from rollbridge.contracts.enums import AutoSubmitStatus, Round1Status, SubmitMode, TaskStatus


@dataclass(frozen=True)
class ProofTask:
    """A proof task as reported by the proof service.

    Byte payloads are kept raw; decoding into argument words happens in
    the assembler.
    """

    task_id: str
    status: TaskStatus
    submit_mode: SubmitMode
    proof: bytes
    aux: bytes
    instances: bytes
    input_context: bytes
    auto_submit_status: AutoSubmitStatus | None = None
    shadow_instances: bytes = b""
    batch_instances: bytes = b""


@dataclass(frozen=True)
class Round1Info:
    """Aggregation record for a batch of Auto-mode proofs.

    target_instances is ordered by round; task_ids gives each member's
    position inside the aggregation.
    """

    task_ids: tuple[str, ...]
    target_instances: tuple[bytes, ...]
    shadow_instances: bytes
    status: Round1Status = Round1Status.BATCHED


@dataclass(frozen=True)
class VerifyArguments:
    """Arguments for the settlement contract's verify() entry point.

    The four arrays hold uint256 values rendered as decimal strings.
    """

    tx_data: bytes
    proof: list[str] = field(default_factory=list)
    verify_instances: list[str] = field(default_factory=list)
    aux: list[str] = field(default_factory=list)
    instances: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NotReady:
    """Control-flow signal: the task cannot be submitted yet.

    This is NOT an error. The caller ends the cycle and tries again on
    the next scheduled one.
    """

    reason: str
