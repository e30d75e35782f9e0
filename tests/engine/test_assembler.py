# tests/engine/test_assembler.py
"""Tests for ProofAssembler."""

import pytest

from rollbridge.contracts.enums import AutoSubmitStatus, Round1Status
from rollbridge.contracts.errors import AggregationNotFound, PayloadDecodeError
from rollbridge.contracts.proofs import NotReady, Round1Info, VerifyArguments
from rollbridge.engine.settlement.assembler import ProofAssembler, select_verify_instances
from tests.engine.settlement_helpers import auto_task, manual_task, round1, words
from tests.fakes import FakeProofService


class TestManualMode:
    def test_arrays_are_decoded_from_task_payloads(self, proof_service: FakeProofService) -> None:
        task = manual_task(tx_data=b"\x01\x02", batch=words(8))

        args = ProofAssembler(proof_service).assemble(task)

        assert args == VerifyArguments(
            tx_data=b"\x01\x02",
            proof=["1", "2", "3"],
            verify_instances=["8"],
            aux=["4"],
            instances=["5", "6"],
        )
        assert proof_service.round1_queries == []

    def test_shadow_instances_take_precedence(self, proof_service: FakeProofService) -> None:
        task = manual_task(shadow=words(11), batch=words(22, 33))

        args = ProofAssembler(proof_service).assemble(task)

        assert isinstance(args, VerifyArguments)
        assert args.verify_instances == ["11"]

    def test_empty_shadow_and_batch_gives_empty_verify_instances(self) -> None:
        assert select_verify_instances(manual_task()) == b""


class TestAutoMode:
    @pytest.mark.parametrize(
        "status",
        [None, AutoSubmitStatus.ROUND1, AutoSubmitStatus.ROUND2, AutoSubmitStatus.PROOF_NOT_REGISTERED],
    )
    def test_unregistered_proof_is_not_ready(
        self, proof_service: FakeProofService, status: AutoSubmitStatus | None
    ) -> None:
        result = ProofAssembler(proof_service).assemble(auto_task(status=status))

        assert isinstance(result, NotReady)
        assert proof_service.round1_queries == []

    def test_proof_is_targets_then_shadow(self, proof_service: FakeProofService) -> None:
        proof_service.round1["task-a"] = round1(
            ("task-x", "task-a", "task-y"),
            words(100, 101),
            words(200),
            shadow=words(300, 301),
        )
        task = auto_task(tx_data=b"\xaa", shadow=words(12))

        args = ProofAssembler(proof_service).assemble(task)

        assert isinstance(args, VerifyArguments)
        assert args.proof == ["100", "101", "200", "300"]
        assert args.aux == ["1"]
        assert args.verify_instances == ["12"]
        assert args.instances == ["7"]
        assert args.tx_data == b"\xaa"

    def test_missing_aggregation_propagates(self, proof_service: FakeProofService) -> None:
        with pytest.raises(AggregationNotFound):
            ProofAssembler(proof_service).assemble(auto_task())

    def test_task_absent_from_aggregation_is_an_error(self, proof_service: FakeProofService) -> None:
        proof_service.round1["task-a"] = round1(("task-x",), words(1), shadow=words(2))

        with pytest.raises(PayloadDecodeError, match="not a member"):
            ProofAssembler(proof_service).assemble(auto_task())

    def test_aggregation_without_shadow_is_an_error(self, proof_service: FakeProofService) -> None:
        proof_service.round1["task-a"] = round1(("task-a",), words(1))

        with pytest.raises(PayloadDecodeError, match="shadow"):
            ProofAssembler(proof_service).assemble(auto_task())

    def test_unbatched_aggregation_is_not_found(self, proof_service: FakeProofService) -> None:
        proof_service.round1["task-a"] = Round1Info(
            task_ids=("task-a",),
            target_instances=(words(1),),
            shadow_instances=words(2),
            status=Round1Status.PENDING,
        )

        with pytest.raises(AggregationNotFound):
            ProofAssembler(proof_service).assemble(auto_task())
