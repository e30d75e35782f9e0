"""Persistent record stores.

Primary API:
    BridgeDB - Database connection management
    TxStore - Deposit ledger (by-hash lookup, insert-if-absent, transitions)
    BundleStore - Proof bundles (by-root lookup, settlement update)
"""

from rollbridge.core.store.bundle_store import BundleStore
from rollbridge.core.store.database import BridgeDB
from rollbridge.core.store.tx_store import TxStore

__all__ = [
    "BridgeDB",
    "BundleStore",
    "TxStore",
]
