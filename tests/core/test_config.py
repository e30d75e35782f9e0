# tests/core/test_config.py
"""Tests for configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rollbridge.contracts.errors import ConfigurationError

MINIMAL_YAML = """
chain:
  settlement_contract_address: "0x1111111111111111111111111111111111111111"
proof_service:
  image_md5: "0123abcd"
"""


class TestSectionDefaults:
    def test_deposit_defaults(self) -> None:
        from rollbridge.core.config import DepositSettings

        settings = DepositSettings()

        assert settings.poll_interval_seconds == 30
        assert settings.backfill_blocks == 200_000
        assert settings.backfill_batch_size == 50_000
        assert settings.retry_failed is True
        assert settings.token_decimals == 18

    def test_retry_defaults(self) -> None:
        from rollbridge.core.config import RetrySettings

        settings = RetrySettings()

        assert settings.max_attempts == 3
        assert settings.initial_delay_seconds == 2.0
        assert settings.multiplier == 1.5

    def test_settlement_and_proof_service_defaults(self) -> None:
        from rollbridge.core.config import ProofServiceSettings, SettlementSettings

        assert SettlementSettings().interval_seconds == 60
        assert SettlementSettings().halt_on_mismatch is True
        assert ProofServiceSettings(image_md5="x").task_timeout_seconds == 60

    def test_l2_declares_only_the_deposit_opcode(self) -> None:
        from rollbridge.core.config import L2Settings

        assert L2Settings().deposit_opcode == 9
        assert [name for name in L2Settings.model_fields if name.endswith("_opcode")] == ["deposit_opcode"]

    def test_max_attempts_must_be_positive(self) -> None:
        from rollbridge.core.config import RetrySettings

        with pytest.raises(ValidationError):
            RetrySettings(max_attempts=0)

    def test_contract_address_is_validated(self) -> None:
        from rollbridge.core.config import ChainSettings

        with pytest.raises(ValidationError, match="20-byte"):
            ChainSettings(settlement_contract_address="0x1234")

    def test_settings_are_frozen(self) -> None:
        from rollbridge.core.config import DatabaseSettings

        settings = DatabaseSettings()
        with pytest.raises(ValidationError):
            settings.url = "sqlite:///other.db"  # type: ignore[misc]


class TestServiceRequirements:
    def test_deposit_needs_admin_key(self) -> None:
        from tests.conftest import make_settings

        with pytest.raises(ConfigurationError, match="admin_key"):
            make_settings(l2={}).require_deposit()

    def test_settlement_needs_settler_key(self) -> None:
        from tests.conftest import CONTRACT_ADDRESS, make_settings

        with pytest.raises(ConfigurationError, match="settler_private_key"):
            make_settings(chain={"settlement_contract_address": CONTRACT_ADDRESS}).require_settlement()


class TestLoadSettings:
    """Test Dynaconf-based settings loading."""

    def test_load_from_yaml_file(self, tmp_path: Path) -> None:
        from rollbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(MINIMAL_YAML + "retry:\n  max_attempts: 5\n")

        settings = load_settings(config_file)

        assert settings.proof_service.image_md5 == "0123abcd"
        assert settings.retry.max_attempts == 5
        assert settings.deposit.backfill_blocks == 200_000

    def test_load_with_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from rollbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(MINIMAL_YAML)
        monkeypatch.setenv("ROLLBRIDGE_CHAIN__RPC_URL", "http://node.internal:8545")

        settings = load_settings(config_file)

        assert settings.chain.rpc_url == "http://node.internal:8545"

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        from rollbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(MINIMAL_YAML + 'l2:\n  admin_key: "${TEST_ADMIN_KEY}"\n  rpc_url: "${TEST_L2_URL:-http://l2:3000}"\n')
        monkeypatch.setenv("TEST_ADMIN_KEY", "s3cret")
        monkeypatch.delenv("TEST_L2_URL", raising=False)

        settings = load_settings(config_file)

        assert settings.l2.admin_key == "s3cret"
        assert settings.l2.rpc_url == "http://l2:3000"

    def test_load_validates_schema(self, tmp_path: Path) -> None:
        from rollbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text(MINIMAL_YAML + "deposit:\n  backfill_batch_size: 0\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_load_missing_required_field(self, tmp_path: Path) -> None:
        from rollbridge.core.config import load_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("retry:\n  max_attempts: 5\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_load_missing_file_raises_file_not_found(self, tmp_path: Path) -> None:
        from rollbridge.core.config import load_settings

        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "nonexistent.yaml")


class TestResolveConfig:
    def test_secrets_are_masked(self) -> None:
        from rollbridge.core.config import resolve_config
        from tests.conftest import make_settings

        resolved = resolve_config(make_settings())

        assert resolved["l2"]["admin_key"] == "***"
        assert resolved["chain"]["settler_private_key"] == "***"
        assert resolved["chain"]["settlement_contract_address"].startswith("0x")

    def test_unset_secrets_stay_none(self) -> None:
        from rollbridge.core.config import resolve_config
        from tests.conftest import CONTRACT_ADDRESS, make_settings

        resolved = resolve_config(make_settings(l2={}, chain={"settlement_contract_address": CONTRACT_ADDRESS}))

        assert resolved["l2"]["admin_key"] is None
