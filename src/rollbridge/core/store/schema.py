# src/rollbridge/core/store/schema.py
"""SQLAlchemy table definitions for the record stores.

Uses SQLAlchemy Core (not ORM) for explicit control over queries and
compatibility with multiple database backends. 256-bit quantities are
stored as decimal strings so no backend truncates them.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
)

metadata = MetaData()

# === Deposit ledger ===

deposit_txs_table = Table(
    "deposit_txs",
    metadata,
    Column("tx_hash", String(66), primary_key=True),
    Column("state", String(16), nullable=False),
    Column("l1_token", String(80), nullable=False),
    Column("l1_account", String(42)),
    Column("pid_1", String(80), nullable=False),
    Column("pid_2", String(80), nullable=False),
    Column("amount", String(80), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True)),
    CheckConstraint(
        "state IN ('pending', 'in-progress', 'completed', 'failed')",
        name="ck_deposit_txs_state",
    ),
)

Index("ix_deposit_txs_state", deposit_txs_table.c.state)

# === Proof bundles ===

proof_bundles_table = Table(
    "proof_bundles",
    metadata,
    Column("merkle_root", String(66), primary_key=True),
    Column("task_id", String(64), nullable=False),
    Column("settle_tx_hash", String(66)),
    Column("settle_status", String(8)),  # NULL = unset, Done, Fail
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("settled_at", DateTime(timezone=True)),
)

Index("ix_proof_bundles_task_id", proof_bundles_table.c.task_id)

# Confirmed withdrawals, in payload order
bundle_withdrawals_table = Table(
    "bundle_withdrawals",
    metadata,
    Column("merkle_root", String(66), ForeignKey("proof_bundles.merkle_root"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("address", String(42), nullable=False),
    Column("amount", String(80), nullable=False),
    UniqueConstraint("merkle_root", "position"),
)
