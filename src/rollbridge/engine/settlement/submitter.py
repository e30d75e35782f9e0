"""VerificationSubmitter: send verify() and wait for the receipt.

The transaction hash is written to the bundle as soon as verify() is
broadcast, before the receipt is awaited. A bundle with a hash and no
settle status is an outstanding verify: later cycles look its receipt up
instead of sending a second one. A revert clears the hash again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rollbridge.contracts.errors import ConfigurationError, ManualReviewRequired, ReceiptError

if TYPE_CHECKING:
    from rollbridge.contracts.events import VerifyReceipt
    from rollbridge.contracts.proofs import VerifyArguments
    from rollbridge.contracts.protocols import SettlementWriter
    from rollbridge.engine.context import ServiceContext

logger = structlog.get_logger(__name__)


class VerificationSubmitter:
    def __init__(self, ctx: ServiceContext) -> None:
        if ctx.writer is None:
            raise ConfigurationError("verification submitter needs a settlement writer")
        self._ctx = ctx
        self._writer: SettlementWriter = ctx.writer
        self._bundles = ctx.bundle_store

    def submit(self, merkle_root: str, args: VerifyArguments) -> VerifyReceipt:
        """Broadcast verify(), record its hash, then wait for the receipt.

        Raises:
            ReceiptError: reverted (hash cleared) or not yet confirmed (hash kept)
            ManualReviewRequired: broadcast, but the hash could not be recorded
        """
        logger.info(
            "verify_sending",
            merkle_root=merkle_root,
            proof_words=len(args.proof),
            tx_data_bytes=len(args.tx_data),
        )
        tx_hash = self._writer.send_verify(args)
        try:
            self._bundles.record_submitted(merkle_root, tx_hash)
        except Exception as e:
            reason = f"verify {tx_hash} was broadcast but not recorded: {e}"
            self._ctx.alerts.escalate(merkle_root, reason, {"settle_tx_hash": tx_hash})
            raise ManualReviewRequired(merkle_root, reason) from e
        return self.confirm(merkle_root, tx_hash)

    def confirm(self, merkle_root: str, tx_hash: str) -> VerifyReceipt:
        """Wait for the receipt of an already broadcast verify."""
        try:
            receipt = self._writer.wait_for_receipt(tx_hash)
        except ReceiptError as e:
            if e.reverted:
                self._bundles.clear_submission(merkle_root, tx_hash)
                logger.warning("verify_reverted", merkle_root=merkle_root, tx_hash=tx_hash)
            else:
                logger.warning("verify_unconfirmed", merkle_root=merkle_root, tx_hash=tx_hash, error=str(e))
            raise
        logger.info(
            "verify_confirmed",
            merkle_root=merkle_root,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            withdrawals=len(receipt.withdrawals),
        )
        return receipt
