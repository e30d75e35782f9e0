# src/rollbridge/engine/settlement/cycle.py
"""SettlementService: one settlement cycle, and the loop that repeats it.

A cycle first finishes any verify that an earlier cycle broadcast but
never saw confirmed: it looks up that receipt and reconciles it, and
never sends a second verify for the same bundle. Otherwise it reads the
on-chain root, finds its proof bundle, fetches the finished proof task,
assembles and submits verify(), then reconciles the receipt.

The whole cycle runs under RetryPolicy. A reverted verify is resent from
a fresh root read; an unconfirmed one is looked up again. A cycle that
still fails is logged and the loop carries on at the next interval.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rollbridge.contracts.enums import CycleOutcome, TaskStatus
from rollbridge.contracts.errors import ConfigurationError, ManualReviewRequired
from rollbridge.contracts.proofs import NotReady, VerifyArguments
from rollbridge.engine.settlement.assembler import ProofAssembler
from rollbridge.engine.settlement.matcher import SettlementMatcher
from rollbridge.engine.settlement.reconciler import ReconciliationChecker
from rollbridge.engine.settlement.submitter import VerificationSubmitter

if TYPE_CHECKING:
    from rollbridge.contracts.events import VerifyReceipt
    from rollbridge.contracts.proofs import ProofTask
    from rollbridge.contracts.protocols import ProofService
    from rollbridge.contracts.records import ProofBundleRecord
    from rollbridge.engine.context import ServiceContext

logger = structlog.get_logger(__name__)


class SettlementService:
    """Settles stored proof bundles against the L1 contract.

    Example:
        service = SettlementService(ServiceContext.for_settlement(settings))
        service.serve()
    """

    def __init__(self, ctx: ServiceContext) -> None:
        if ctx.proof_service is None:
            raise ConfigurationError("settlement service needs a proof service client")
        self._ctx = ctx
        self._proof_service: ProofService = ctx.proof_service
        self._settings = ctx.settings.settlement
        self._bundles = ctx.bundle_store
        self._matcher = SettlementMatcher(ctx)
        self._assembler = ProofAssembler(ctx.proof_service)
        self._submitter = VerificationSubmitter(ctx)
        self._reconciler = ReconciliationChecker(ctx)

    def run_cycle(self) -> CycleOutcome:
        """One attempt, no retries."""
        pending = self._bundles.find_unconfirmed()
        if pending is not None:
            return self._finish_pending(pending)

        bundle = self._matcher.match()
        if bundle is None:
            return CycleOutcome.NO_BUNDLE
        if bundle.is_settled:
            logger.warning(
                "bundle_already_settled",
                merkle_root=bundle.merkle_root,
                settle_status=bundle.settle_status,
                settle_tx_hash=bundle.settle_tx_hash,
            )
            return CycleOutcome.ALREADY_SETTLED

        task = self._load_task(bundle)
        assembled = self._assembler.assemble(task)
        if isinstance(assembled, NotReady):
            logger.info("settlement_not_ready", merkle_root=bundle.merkle_root, reason=assembled.reason)
            return CycleOutcome.NOT_READY

        receipt = self._submitter.submit(bundle.merkle_root, assembled)
        return self._reconcile(bundle, assembled, receipt)

    def _finish_pending(self, bundle: ProofBundleRecord) -> CycleOutcome:
        assert bundle.settle_tx_hash is not None
        logger.info("verify_pending", merkle_root=bundle.merkle_root, tx_hash=bundle.settle_tx_hash)
        receipt = self._submitter.confirm(bundle.merkle_root, bundle.settle_tx_hash)
        # The submitted payload is the task's input context in both modes
        task = self._load_task(bundle)
        return self._reconcile(bundle, VerifyArguments(tx_data=task.input_context), receipt)

    def _load_task(self, bundle: ProofBundleRecord) -> ProofTask:
        return self._proof_service.load_task(
            bundle.task_id,
            status=TaskStatus.DONE.value,
            timeout=self._ctx.settings.proof_service.task_timeout_seconds,
        )

    def _reconcile(self, bundle: ProofBundleRecord, args: VerifyArguments, receipt: VerifyReceipt) -> CycleOutcome:
        result = self._reconciler.reconcile(bundle, args, receipt)
        if result.ok:
            return CycleOutcome.SETTLED
        if self._settings.halt_on_mismatch:
            assert result.reason is not None
            raise ManualReviewRequired(bundle.merkle_root, result.reason)
        return CycleOutcome.ESCALATED

    def try_settle(self) -> CycleOutcome:
        """run_cycle under the retry policy."""
        outcome = self._ctx.retry.call(
            self.run_cycle,
            name="settlement_cycle",
            sleep=self._ctx.sleep,
        )
        logger.info("settlement_cycle_finished", outcome=outcome.value)
        return outcome

    def serve(self, *, max_cycles: int | None = None) -> None:
        """Run cycles forever, sleeping settlement.interval_seconds between them.

        Raises:
            ManualReviewRequired: an escalation stopped the service
        """
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            try:
                self.try_settle()
            except ManualReviewRequired:
                logger.critical("settlement_service_halted")
                raise
            except Exception as e:
                logger.error("settlement_cycle_failed", error=str(e), error_type=type(e).__name__)
            if max_cycles is None or cycles < max_cycles:
                self._ctx.sleep(self._settings.interval_seconds)
