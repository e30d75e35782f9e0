# src/rollbridge/engine/settlement/reconciler.py
"""ReconciliationChecker: compare decoded instructions with emitted events.

The withdraw instructions in tx_data say what the settlement SHOULD pay
out; the WithDraw events in the receipt say what it DID pay out. They
must agree in count and, position by position, in address and amount.
The matched prefix is persisted either way so the audit trail shows how
far agreement went.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from rollbridge.contracts.enums import SettleStatus
from rollbridge.contracts.errors import ManualReviewRequired, PayloadDecodeError
from rollbridge.core.payloads import decode_withdrawals

if TYPE_CHECKING:
    from rollbridge.contracts.events import VerifyReceipt
    from rollbridge.contracts.proofs import VerifyArguments
    from rollbridge.contracts.records import ProofBundleRecord, Withdrawal
    from rollbridge.engine.context import ServiceContext

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    status: SettleStatus
    confirmed: list[Withdrawal] = field(default_factory=list)
    mismatch_index: int | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is SettleStatus.DONE


def _same(expected: Withdrawal, actual: Withdrawal) -> bool:
    return expected.address.lower() == actual.address.lower() and expected.amount == actual.amount


def compare_withdrawals(expected: Sequence[Withdrawal], actual: Sequence[Withdrawal]) -> ReconciliationResult:
    """Positional comparison.

    A count mismatch confirms nothing. Otherwise every agreeing position
    up to the first disagreement is confirmed.
    """
    if len(expected) != len(actual):
        return ReconciliationResult(
            status=SettleStatus.FAIL,
            reason=f"expected {len(expected)} withdrawals, receipt has {len(actual)}",
        )

    confirmed: list[Withdrawal] = []
    for index, (want, got) in enumerate(zip(expected, actual, strict=True)):
        if not _same(want, got):
            return ReconciliationResult(
                status=SettleStatus.FAIL,
                confirmed=confirmed,
                mismatch_index=index,
                reason=(
                    f"withdrawal {index}: expected {want.address} {want.amount}, receipt has {got.address} {got.amount}"
                ),
            )
        confirmed.append(want)
    return ReconciliationResult(status=SettleStatus.DONE, confirmed=confirmed)


class ReconciliationChecker:
    def __init__(self, ctx: ServiceContext) -> None:
        self._ctx = ctx
        self._bundles = ctx.bundle_store
        self._decimals = ctx.settings.settlement.token_decimals

    def reconcile(self, bundle: ProofBundleRecord, args: VerifyArguments, receipt: VerifyReceipt) -> ReconciliationResult:
        """Compare, persist the outcome, and escalate a mismatch.

        A payload that does not decode cannot be reconciled; it is recorded
        as Fail with nothing confirmed and escalated like any mismatch.

        Raises:
            ManualReviewRequired: the outcome could not be persisted
        """
        actual = [event.as_withdrawal() for event in receipt.withdrawals]
        expected: list[Withdrawal] | None
        try:
            expected = decode_withdrawals(args.tx_data, token_decimals=self._decimals)
        except PayloadDecodeError as e:
            expected = None
            result = ReconciliationResult(status=SettleStatus.FAIL, reason=f"settled payload does not decode: {e}")
        else:
            result = compare_withdrawals(expected, actual)

        try:
            self._bundles.record_settlement(
                bundle.merkle_root,
                settle_tx_hash=receipt.tx_hash,
                status=result.status,
                confirmed=result.confirmed,
            )
        except Exception as e:
            reason = f"verify {receipt.tx_hash} confirmed but its outcome was not recorded: {e}"
            self._ctx.alerts.escalate(bundle.merkle_root, reason, {"status": result.status.value})
            raise ManualReviewRequired(bundle.merkle_root, reason) from e

        if result.ok:
            logger.info("settlement_reconciled", merkle_root=bundle.merkle_root, withdrawals=len(result.confirmed))
            return result

        assert result.reason is not None
        self._ctx.alerts.escalate(
            bundle.merkle_root,
            result.reason,
            {
                "settle_tx_hash": receipt.tx_hash,
                "task_id": bundle.task_id,
                "confirmed": len(result.confirmed),
                "expected": "undecodable" if expected is None else len(expected),
                "actual": len(actual),
            },
        )
        return result
