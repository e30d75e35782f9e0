# src/rollbridge/engine/settlement/assembler.py
"""ProofAssembler: turn a proof task into verify() arguments.

Manual mode submits the task's own proof. Auto mode submits the shared
aggregation proof: the round-1 target instances followed by the
aggregation's shadow instance, with the task's position inside the
aggregation as the single aux word. An Auto task whose proof is not yet
registered is not an error; the cycle just ends with NotReady.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

import structlog

from rollbridge.contracts.enums import AutoSubmitStatus, Round1Status, SubmitMode
from rollbridge.contracts.errors import AggregationNotFound, PayloadDecodeError
from rollbridge.contracts.proofs import NotReady, VerifyArguments
from rollbridge.core.payloads import bytes_to_field_strings

if TYPE_CHECKING:
    from rollbridge.contracts.proofs import ProofTask
    from rollbridge.contracts.protocols import ProofService

logger = structlog.get_logger(__name__)


def select_verify_instances(task: ProofTask) -> bytes:
    """Shadow instances when present, otherwise the batch instances."""
    return task.shadow_instances if task.shadow_instances else task.batch_instances


class ManualAssembler:
    def assemble(self, task: ProofTask) -> VerifyArguments:
        return VerifyArguments(
            tx_data=task.input_context,
            proof=bytes_to_field_strings(task.proof),
            verify_instances=bytes_to_field_strings(select_verify_instances(task)),
            aux=bytes_to_field_strings(task.aux),
            instances=bytes_to_field_strings(task.instances),
        )


class AutoAssembler:
    def __init__(self, proof_service: ProofService) -> None:
        self._proof_service = proof_service

    def assemble(self, task: ProofTask) -> VerifyArguments | NotReady:
        if task.auto_submit_status is not AutoSubmitStatus.REGISTERED_PROOF:
            status = task.auto_submit_status.value if task.auto_submit_status else None
            logger.info("auto_proof_not_registered", task_id=task.task_id, auto_submit_status=status)
            return NotReady(f"auto submit status is {status}")

        info = self._proof_service.query_round1_info(task.task_id)
        if info.status is not Round1Status.BATCHED:
            raise AggregationNotFound(task.task_id)
        try:
            position = info.task_ids.index(task.task_id)
        except ValueError:
            raise PayloadDecodeError(f"task {task.task_id} is not a member of its aggregation") from None

        shadow = bytes_to_field_strings(info.shadow_instances)
        if not shadow:
            raise PayloadDecodeError(f"aggregation for task {task.task_id} has no shadow instance")
        proof = [word for target in info.target_instances for word in bytes_to_field_strings(target)]
        proof.append(shadow[0])

        return VerifyArguments(
            tx_data=task.input_context,
            proof=proof,
            verify_instances=bytes_to_field_strings(select_verify_instances(task)),
            aux=[str(position)],
            instances=bytes_to_field_strings(task.instances),
        )


class ProofAssembler:
    """Dispatches on the task's submit mode."""

    def __init__(self, proof_service: ProofService) -> None:
        self._manual = ManualAssembler()
        self._auto = AutoAssembler(proof_service)

    def assemble(self, task: ProofTask) -> VerifyArguments | NotReady:
        match task.submit_mode:
            case SubmitMode.MANUAL:
                return self._manual.assemble(task)
            case SubmitMode.AUTO:
                return self._auto.assemble(task)
            case _:
                assert_never(task.submit_mode)
