"""Service context: everything a service needs, built once at startup.

Components receive the context explicitly instead of reaching for
module-level provider/contract singletons. Tests build one from fakes
with ServiceContext(...) directly.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from rollbridge.contracts.protocols import AlertHook, ChainReader, L2Rpc, ProofService, SettlementWriter
from rollbridge.core.config import resolve_config
from rollbridge.core.store import BridgeDB, BundleStore, TxStore
from rollbridge.engine.alerts import CompositeAlertHook, LoggingAlertHook
from rollbridge.engine.retry import RetryPolicy

if TYPE_CHECKING:
    from rollbridge.core.config import BridgeSettings

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContext:
    """Dependencies shared by the components of one service.

    l2 is only present for the deposit service; writer and proof_service
    only for the settlement service.
    """

    settings: BridgeSettings
    db: BridgeDB
    chain: ChainReader
    retry: RetryPolicy
    alerts: AlertHook
    l2: L2Rpc | None = None
    writer: SettlementWriter | None = None
    proof_service: ProofService | None = None
    sleep: Callable[[float], None] = time.sleep
    _closers: list[Callable[[], None]] = field(default_factory=list, repr=False)

    @property
    def tx_store(self) -> TxStore:
        return TxStore(self.db)

    @property
    def bundle_store(self) -> BundleStore:
        return BundleStore(self.db)

    def close(self) -> None:
        for closer in reversed(self._closers):
            closer()
        self._closers.clear()
        self.db.close()

    @classmethod
    def for_deposit(cls, settings: BridgeSettings) -> ServiceContext:
        """Wire the deposit service against real endpoints."""
        from rollbridge.clients.chain import Web3ChainClient
        from rollbridge.clients.l2 import L2RpcClient

        settings.require_deposit()
        l2 = L2RpcClient(settings.l2)
        closers: list[Callable[[], None]] = []
        ctx = cls(
            settings=settings,
            db=BridgeDB(settings.database.url),
            chain=Web3ChainClient(settings.chain),
            retry=RetryPolicy.from_settings(settings.retry),
            alerts=build_alert_hook(settings, closers),
            l2=l2,
            _closers=closers,
        )
        ctx._closers.append(l2.close)
        logger.info("deposit_context_ready", contract=settings.chain.settlement_contract_address)
        logger.debug("deposit_settings", settings=resolve_config(settings))
        return ctx

    @classmethod
    def for_settlement(cls, settings: BridgeSettings) -> ServiceContext:
        """Wire the settlement service against real endpoints."""
        from rollbridge.clients.chain import Web3ChainClient
        from rollbridge.clients.proof_service import ProofServiceClient

        settings.require_settlement()
        chain = Web3ChainClient(settings.chain)
        proof_service = ProofServiceClient(settings.proof_service, chain_id=settings.chain.chain_id)
        closers: list[Callable[[], None]] = []
        ctx = cls(
            settings=settings,
            db=BridgeDB(settings.database.url),
            chain=chain,
            retry=RetryPolicy.from_settings(settings.retry),
            alerts=build_alert_hook(settings, closers),
            writer=chain,
            proof_service=proof_service,
            _closers=closers,
        )
        ctx._closers.append(proof_service.close)
        logger.info("settlement_context_ready", contract=settings.chain.settlement_contract_address)
        logger.debug("settlement_settings", settings=resolve_config(settings))
        return ctx


def build_alert_hook(settings: BridgeSettings, closers: list[Callable[[], None]]) -> AlertHook:
    """Logging always; webhook when alerts.webhook_url is set.

    The webhook client's close() is appended to closers.
    """
    hooks: list[AlertHook] = [LoggingAlertHook()]
    if settings.alerts.webhook_url:
        from rollbridge.clients.webhook import WebhookAlertHook

        webhook = WebhookAlertHook(settings.alerts.webhook_url, timeout=settings.alerts.timeout_seconds)
        closers.append(webhook.close)
        hooks.append(webhook)
    return CompositeAlertHook(hooks)
