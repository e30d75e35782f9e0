# src/rollbridge/engine/deposit/executor.py
"""DepositExecutor: the L2 side effects of a deposit.

This is the only place that issues funding commands. They are never
wrapped in RetryPolicy: a command that timed out may still have been
applied. Whether a failed record is attempted again on a later poll is
decided by deposit.retry_failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from rollbridge.contracts.errors import ConfigurationError, DepositFailedError, L2RpcError

if TYPE_CHECKING:
    from rollbridge.contracts.protocols import L2Rpc
    from rollbridge.contracts.records import AccountPair
    from rollbridge.engine.context import ServiceContext

logger = structlog.get_logger(__name__)


class DepositExecutor:
    """Token lookup and L2 funding for the ingestor."""

    def __init__(self, ctx: ServiceContext) -> None:
        if ctx.l2 is None:
            raise ConfigurationError("deposit executor needs an L2 RPC client")
        self._ctx = ctx
        self._l2: L2Rpc = ctx.l2

    def resolve_token_index(self, l1_token: int) -> int | None:
        """Position of l1_token in the on-chain registry, or None if unregistered."""
        registry = self._ctx.retry.call(self._ctx.chain.token_registry, name="token_registry", sleep=self._ctx.sleep)
        for index, token_uid in enumerate(registry):
            if token_uid == l1_token:
                return index
        return None

    def deposit(self, tx_hash: str, account: AccountPair, token_index: int, units: int) -> None:
        """Fund account with units of token_index.

        Raises:
            DepositFailedError: the RPC did not acknowledge the command
            L2RpcError: transport failure (effect unknown)
        """
        ack = self._l2.deposit(account, token_index, units)
        if not ack:
            raise DepositFailedError(tx_hash, "command not acknowledged")
        logger.info("deposit_funded", tx_hash=tx_hash, token_index=token_index, units=units)

    def install_admin(self) -> None:
        """Create the admin account; an existing one is fine."""
        try:
            self._l2.create_account()
        except L2RpcError as e:
            logger.info("admin_account_not_created", reason=str(e))
        else:
            logger.info("admin_account_created")
