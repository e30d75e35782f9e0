"""Tests for the settlement contract adapter's ABI handling."""

import json
from pathlib import Path

import pytest
from web3 import Web3

from rollbridge.clients.chain import (
    SETTLEMENT_ABI,
    TOPUP_SIGNATURE,
    WITHDRAW_SIGNATURE,
    _merkle_root_index,
    event_topic,
    load_abi,
)


class TestAbi:
    def test_bundled_abi_by_default(self) -> None:
        assert load_abi(None) is SETTLEMENT_ABI

    def test_artifact_and_bare_list_are_accepted(self, tmp_path: Path) -> None:
        bare = tmp_path / "bare.json"
        artifact = tmp_path / "artifact.json"
        bare.write_text(json.dumps(SETTLEMENT_ABI))
        artifact.write_text(json.dumps({"contractName": "Proxy", "abi": SETTLEMENT_ABI}))

        assert load_abi(bare) == SETTLEMENT_ABI
        assert load_abi(artifact) == SETTLEMENT_ABI

    def test_merkle_root_position_follows_abi(self) -> None:
        assert _merkle_root_index(SETTLEMENT_ABI) == 4

    def test_abi_without_proxy_info_rejected(self) -> None:
        with pytest.raises(ValueError, match="getProxyInfo"):
            _merkle_root_index([])

    def test_event_topics(self) -> None:
        assert event_topic(WITHDRAW_SIGNATURE) == Web3.to_hex(Web3.keccak(text="WithDraw(address,address,uint256)"))
        assert event_topic(TOPUP_SIGNATURE).startswith("0x")
        assert len(event_topic(TOPUP_SIGNATURE)) == 66
