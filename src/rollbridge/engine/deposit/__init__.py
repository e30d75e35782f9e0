"""Deposit ingestion: L1 TopUp events to L2 funding commands."""

from rollbridge.engine.deposit.executor import DepositExecutor
from rollbridge.engine.deposit.ingestor import EventIngestor

__all__ = ["DepositExecutor", "EventIngestor"]
