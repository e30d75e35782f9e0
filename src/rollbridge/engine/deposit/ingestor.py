# src/rollbridge/engine/deposit/ingestor.py
"""EventIngestor: the deposit state machine.

    pending -> in-progress -> completed
                           -> failed -> in-progress (retry, if enabled)

A record is moved to in-progress BEFORE the funding command is sent and
out of it only after the outcome is known. Finding a record already
in-progress on entry therefore means a previous attempt died with an
unknown effect; the ingestor escalates and stops instead of funding the
account a second time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import structlog

from rollbridge.contracts.enums import TxState
from rollbridge.contracts.errors import DepositFailedError, ManualReviewRequired, StateConflictError
from rollbridge.engine.retry import default_is_retryable

if TYPE_CHECKING:
    from rollbridge.contracts.events import DepositEvent
    from rollbridge.contracts.records import TxRecord
    from rollbridge.engine.context import ServiceContext
    from rollbridge.engine.deposit.executor import DepositExecutor

logger = structlog.get_logger(__name__)

# Errors that must stop the service rather than be logged per window
_FATAL = (ManualReviewRequired, StateConflictError)


def _poll_is_retryable(error: BaseException) -> bool:
    # A failed funding is left to the next poll and deposit.retry_failed.
    return default_is_retryable(error) and not isinstance(error, DepositFailedError)


class EventIngestor:
    """Turns TopUp events into exactly one L2 funding each.

    Example:
        ingestor = EventIngestor(ctx, DepositExecutor(ctx))
        ingestor.serve()
    """

    def __init__(self, ctx: ServiceContext, executor: DepositExecutor) -> None:
        self._ctx = ctx
        self._executor = executor
        self._store = ctx.tx_store
        self._settings = ctx.settings.deposit

    # === Single event ===

    def handle(self, event: DepositEvent) -> TxRecord | None:
        """Record and process one event.

        Returns:
            The record after processing, or None when the token is not
            registered (nothing is stored for such events).
        """
        token_index = self._executor.resolve_token_index(event.l1_token)
        if token_index is None:
            logger.warning("deposit_token_not_registered", tx_hash=event.tx_hash, l1_token=str(event.l1_token))
            return None
        self._store.observe(event)
        return self.process(event.tx_hash, token_index=token_index)

    def process(self, tx_hash: str, *, token_index: int | None = None) -> TxRecord:
        """Drive one stored record to a terminal state.

        Args:
            tx_hash: Key of an already observed record
            token_index: Registry index if the caller already resolved it

        Raises:
            KeyError: tx_hash was never observed
            ManualReviewRequired: record found in-progress
            DepositFailedError: the funding call failed (record is failed)
        """
        record = self._store.get(tx_hash)
        if record is None:
            raise KeyError(tx_hash)

        match record.state:
            case TxState.COMPLETED:
                logger.debug("deposit_already_completed", tx_hash=tx_hash)
                return record
            case TxState.IN_PROGRESS:
                self._escalate_in_progress(record)
            case TxState.FAILED if not self._settings.retry_failed:
                logger.info("deposit_failed_not_retried", tx_hash=tx_hash)
                return record
            case TxState.PENDING | TxState.FAILED:
                pass

        if token_index is None:
            token_index = self._executor.resolve_token_index(record.l1_token)
            if token_index is None:
                logger.warning("deposit_token_not_registered", tx_hash=tx_hash, l1_token=str(record.l1_token))
                return record

        try:
            self._store.transition(tx_hash, record.state, TxState.IN_PROGRESS)
        except StateConflictError as e:
            if e.observed is TxState.IN_PROGRESS:
                self._escalate_in_progress(record)
            raise

        units = record.amount // 10**self._settings.token_decimals
        if units < 1:
            logger.info("deposit_below_minimum", tx_hash=tx_hash, amount=str(record.amount))
            self._store.transition(tx_hash, TxState.IN_PROGRESS, TxState.COMPLETED)
            return self._reload(tx_hash)

        try:
            self._executor.deposit(tx_hash, record.account, token_index, units)
        except Exception as e:
            logger.error("deposit_funding_failed", tx_hash=tx_hash, error=str(e), error_type=type(e).__name__)
            self._store.transition(tx_hash, TxState.IN_PROGRESS, TxState.FAILED)
            if isinstance(e, DepositFailedError):
                raise
            raise DepositFailedError(tx_hash, f"{type(e).__name__}: {e}") from e

        self._store.transition(tx_hash, TxState.IN_PROGRESS, TxState.COMPLETED)
        return self._reload(tx_hash)

    def _escalate_in_progress(self, record: TxRecord) -> NoReturn:
        reason = "deposit found in-progress; the previous funding attempt has an unknown outcome"
        self._ctx.alerts.escalate(
            record.tx_hash,
            reason,
            {"amount": str(record.amount), "l1_token": str(record.l1_token), "l1_account": record.l1_account},
        )
        raise ManualReviewRequired(record.tx_hash, reason)

    def _reload(self, tx_hash: str) -> TxRecord:
        record = self._store.get(tx_hash)
        assert record is not None
        return record

    # === Block ranges ===

    def ingest_range(self, from_block: int, to_block: int) -> int:
        """Handle every event in [from_block, to_block]; returns how many were seen.

        A failed funding does not stop the events after it. The first such
        failure is raised once the whole range has been handled.
        """
        events = self._ctx.chain.deposit_events(from_block, to_block)
        first_failure: DepositFailedError | None = None
        for event in events:
            try:
                self.handle(event)
            except DepositFailedError as e:
                first_failure = first_failure or e
        if first_failure is not None:
            raise first_failure
        return len(events)

    def backfill(self, tip: int) -> None:
        """Replay the configured window behind tip in fixed-size batches.

        A batch that fails is logged and skipped; escalations still stop
        the backfill.
        """
        start = max(0, tip - self._settings.backfill_blocks)
        batch = self._settings.backfill_batch_size
        logger.info("backfill_started", from_block=start, to_block=tip)
        for from_block in range(start, tip + 1, batch):
            to_block = min(from_block + batch - 1, tip)
            try:
                count = self.ingest_range(from_block, to_block)
            except _FATAL:
                raise
            except Exception as e:
                logger.error(
                    "backfill_batch_failed",
                    from_block=from_block,
                    to_block=to_block,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            logger.debug("backfill_batch_done", from_block=from_block, to_block=to_block, events=count)
        logger.info("backfill_finished", to_block=tip)

    def poll_once(self, last_block: int) -> int:
        """Process blocks after last_block up to the tip.

        Returns:
            The new high-water mark (unchanged when no new blocks exist)
        """
        tip = self._ctx.chain.block_number()
        if tip <= last_block:
            return last_block
        count = self.ingest_range(last_block + 1, tip)
        if count:
            logger.info("deposit_poll_processed", from_block=last_block + 1, to_block=tip, events=count)
        return tip

    # === Service loop ===

    def serve(self, *, max_polls: int | None = None) -> None:
        """Install the admin account, backfill, then poll forever.

        The high-water mark only advances after a poll succeeds, so a
        failed window is retried on the next interval. ManualReviewRequired
        ends the loop.
        """
        retry = self._ctx.retry
        self._executor.install_admin()
        tip = retry.call(self._ctx.chain.block_number, name="block_number", sleep=self._ctx.sleep)
        self.backfill(tip)
        last = tip

        polls = 0
        while max_polls is None or polls < max_polls:
            self._ctx.sleep(self._settings.poll_interval_seconds)
            polls += 1
            mark = last
            try:
                last = retry.call(
                    lambda: self.poll_once(mark),
                    name="deposit_poll",
                    is_retryable=_poll_is_retryable,
                    sleep=self._ctx.sleep,
                )
            except _FATAL:
                logger.critical("deposit_service_halted", last_block=last)
                raise
            except Exception as e:
                logger.error(
                    "deposit_poll_failed",
                    last_block=last,
                    error=str(e),
                    error_type=type(e).__name__,
                )
