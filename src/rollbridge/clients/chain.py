# src/rollbridge/clients/chain.py
"""L1 settlement contract adapter over web3.py.

Implements ChainReader and SettlementWriter. Transport and node errors are
wrapped in ChainRpcError so RetryPolicy can tell them apart from
conditions that need a human.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception
from web3.logs import DISCARD

from rollbridge.contracts.errors import ChainRpcError, ConfigurationError, ReceiptError
from rollbridge.contracts.events import DepositEvent, VerifyReceipt, WithdrawEvent
from rollbridge.contracts.records import AccountPair

if TYPE_CHECKING:
    from pathlib import Path

    from rollbridge.contracts.proofs import VerifyArguments
    from rollbridge.core.config import ChainSettings

logger = structlog.get_logger(__name__)

# Subset of the settlement contract ABI this package touches. Deployments
# with a different ProxyInfo layout point chain.abi_path at the full ABI.
SETTLEMENT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "getProxyInfo",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "chain_id", "type": "uint32"},
                    {"name": "amount_token", "type": "uint64"},
                    {"name": "amount_pool", "type": "uint64"},
                    {"name": "owner", "type": "address"},
                    {"name": "merkle_root", "type": "uint256"},
                    {"name": "rollup_tx_number", "type": "uint256"},
                    {"name": "verifier", "type": "uint32"},
                ],
            }
        ],
    },
    {
        "type": "function",
        "name": "allTokens",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {
                "name": "",
                "type": "tuple[]",
                "components": [{"name": "token_uid", "type": "uint256"}],
            }
        ],
    },
    {
        "type": "function",
        "name": "verify",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "tx_data", "type": "bytes"},
            {"name": "proof", "type": "uint256[]"},
            {"name": "verify_instance", "type": "uint256[]"},
            {"name": "aux", "type": "uint256[]"},
            {"name": "instances", "type": "uint256[][]"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "TopUp",
        "anonymous": False,
        "inputs": [
            {"name": "l1token", "type": "uint256", "indexed": False},
            {"name": "account", "type": "address", "indexed": False},
            {"name": "pid_1", "type": "uint256", "indexed": False},
            {"name": "pid_2", "type": "uint256", "indexed": False},
            {"name": "amount", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "WithDraw",
        "anonymous": False,
        "inputs": [
            {"name": "l1token", "type": "address", "indexed": False},
            {"name": "l1account", "type": "address", "indexed": False},
            {"name": "amount", "type": "uint256", "indexed": False},
        ],
    },
]

TOPUP_SIGNATURE = "TopUp(uint256,address,uint256,uint256,uint256)"
WITHDRAW_SIGNATURE = "WithDraw(address,address,uint256)"


def load_abi(path: Path | None) -> list[dict[str, Any]]:
    """Bundled ABI, or the one at path (a bare list or a {"abi": [...]} artifact)."""
    if path is None:
        return SETTLEMENT_ABI
    data = json.loads(path.read_text())
    abi: list[dict[str, Any]] = data["abi"] if isinstance(data, dict) else data
    return abi


def event_topic(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))


def _merkle_root_index(abi: list[dict[str, Any]]) -> int:
    for item in abi:
        if item.get("type") == "function" and item.get("name") == "getProxyInfo":
            components = item["outputs"][0]["components"]
            return next(i for i, c in enumerate(components) if c["name"] == "merkle_root")
    raise ValueError("getProxyInfo not found in settlement ABI")


class Web3ChainClient:
    """Settlement contract access for both services.

    Example:
        client = Web3ChainClient(settings.chain)
        tip = client.block_number()
        events = client.deposit_events(tip - 100, tip)
    """

    def __init__(self, settings: ChainSettings, *, w3: Web3 | None = None) -> None:
        """Initialize the client.

        Args:
            settings: Chain section of the settings
            w3: Pre-built Web3 instance (tests); built from settings.rpc_url otherwise
        """
        self._settings = settings
        self._w3 = w3 or Web3(
            Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.request_timeout_seconds})
        )
        self._abi = load_abi(settings.abi_path)
        self._address = Web3.to_checksum_address(settings.settlement_contract_address)
        self._contract = self._w3.eth.contract(address=self._address, abi=self._abi)
        self._root_index = _merkle_root_index(self._abi)
        self._topup_topic = event_topic(TOPUP_SIGNATURE)
        self._account = Account.from_key(settings.settler_private_key) if settings.settler_private_key else None

    # === ChainReader ===

    def block_number(self) -> int:
        try:
            return int(self._w3.eth.block_number)
        except (Web3Exception, OSError) as e:
            raise ChainRpcError(f"eth_blockNumber failed: {e}") from e

    def deposit_events(self, from_block: int, to_block: int) -> list[DepositEvent]:
        try:
            logs = self._w3.eth.get_logs(
                {
                    "address": self._address,
                    "topics": [self._topup_topic],
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            )
        except (Web3Exception, OSError) as e:
            raise ChainRpcError(f"eth_getLogs [{from_block}, {to_block}] failed: {e}") from e

        topup = self._contract.events.TopUp()
        events = []
        for log in logs:
            decoded = topup.process_log(log)
            args = decoded["args"]
            events.append(
                DepositEvent(
                    tx_hash=Web3.to_hex(decoded["transactionHash"]),
                    block_number=int(decoded["blockNumber"]),
                    log_index=int(decoded["logIndex"]),
                    l1_token=int(args["l1token"]),
                    l1_account=args["account"],
                    account=AccountPair(pid_1=int(args["pid_1"]), pid_2=int(args["pid_2"])),
                    amount=int(args["amount"]),
                )
            )
        return events

    def state_root(self) -> int:
        try:
            info = self._contract.functions.getProxyInfo().call()
        except (Web3Exception, OSError) as e:
            raise ChainRpcError(f"getProxyInfo failed: {e}") from e
        return int(info[self._root_index])

    def token_registry(self) -> list[int]:
        try:
            tokens = self._contract.functions.allTokens().call()
        except (Web3Exception, OSError) as e:
            raise ChainRpcError(f"allTokens failed: {e}") from e
        return [int(token[0]) for token in tokens]

    # === SettlementWriter ===

    def send_verify(self, args: VerifyArguments) -> str:
        if self._account is None:
            raise ConfigurationError("chain.settler_private_key is required to send verify()")

        call = self._contract.functions.verify(
            args.tx_data,
            [int(v) for v in args.proof],
            [int(v) for v in args.verify_instances],
            [int(v) for v in args.aux],
            [[int(v) for v in args.instances]],
        )
        try:
            tx = call.build_transaction(
                {
                    "from": self._account.address,
                    "nonce": self._w3.eth.get_transaction_count(self._account.address, "pending"),
                    "chainId": self._settings.chain_id,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self._w3.eth.send_raw_transaction(signed.raw_transaction))
        except (Web3Exception, OSError) as e:
            raise ChainRpcError(f"verify submission failed: {e}") from e

        logger.info("verify_submitted", tx_hash=tx_hash)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str) -> VerifyReceipt:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._settings.receipt_timeout_seconds
            )
        except TimeExhausted as e:
            raise ReceiptError(tx_hash, f"not confirmed within {self._settings.receipt_timeout_seconds}s") from e
        except (Web3Exception, OSError) as e:
            raise ReceiptError(tx_hash, f"receipt lookup failed: {e}") from e

        if receipt["status"] != 1:
            raise ReceiptError(tx_hash, "transaction reverted", reverted=True)

        return VerifyReceipt(
            tx_hash=tx_hash,
            block_number=int(receipt["blockNumber"]),
            status=int(receipt["status"]),
            withdrawals=tuple(self._withdraw_events(receipt)),
        )

    def _withdraw_events(self, receipt: Any) -> Sequence[WithdrawEvent]:
        """WithDraw events emitted by the settlement contract, in log order."""
        decoded = self._contract.events.WithDraw().process_receipt(receipt, errors=DISCARD)
        return [
            WithdrawEvent(
                l1_token=entry["args"]["l1token"],
                address=entry["args"]["l1account"],
                amount=int(entry["args"]["amount"]),
            )
            for entry in decoded
            if entry["address"] == self._address
        ]
