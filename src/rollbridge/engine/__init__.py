"""Service engine: retry policy, service context, deposit and settlement flows."""

from rollbridge.engine.context import ServiceContext
from rollbridge.engine.retry import RetryPolicy

__all__ = ["RetryPolicy", "ServiceContext"]
