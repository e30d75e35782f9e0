"""Tests for BridgeDB."""

from pathlib import Path

import pytest
from sqlalchemy import inspect, text

from rollbridge.core.store import BridgeDB


class TestBridgeDB:
    def test_in_memory_has_all_tables(self) -> None:
        with BridgeDB.in_memory() as db:
            tables = set(inspect(db.engine).get_table_names())

        assert {"deposit_txs", "proof_bundles", "bundle_withdrawals"} <= tables

    def test_file_database_creates_parent_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state" / "bridge.db"

        with BridgeDB(f"sqlite:///{path}") as db:
            with db.connection() as conn:
                mode = conn.execute(text("PRAGMA journal_mode")).scalar_one()

        assert path.exists()
        assert mode == "wal"

    def test_foreign_keys_are_enforced(self) -> None:
        from sqlalchemy.exc import IntegrityError

        with BridgeDB.in_memory() as db, pytest.raises(IntegrityError), db.connection() as conn:
            conn.execute(
                text(
                    "INSERT INTO bundle_withdrawals (merkle_root, position, address, amount) "
                    "VALUES ('0xnone', 0, '0xabc', '1')"
                )
            )

    def test_failed_block_rolls_back(self) -> None:
        with BridgeDB.in_memory() as db:
            with pytest.raises(RuntimeError), db.connection() as conn:
                conn.execute(
                    text(
                        "INSERT INTO proof_bundles (merkle_root, task_id, created_at) "
                        "VALUES ('0x01', 't', '2026-01-01 00:00:00')"
                    )
                )
                raise RuntimeError("boom")

            with db.connection() as conn:
                count = conn.execute(text("SELECT COUNT(*) FROM proof_bundles")).scalar_one()

        assert count == 0

    def test_closed_database_refuses_use(self) -> None:
        db = BridgeDB.in_memory()
        db.close()

        with pytest.raises(RuntimeError, match="not initialized"):
            _ = db.engine
