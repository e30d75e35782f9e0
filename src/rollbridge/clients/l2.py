# src/rollbridge/clients/l2.py
"""Rollup account RPC client.

Commands are sequences of u64 words. The first word packs

    (nonce << 16) + ((len(params) + 1) << 8) + opcode

and the parameters follow as raw words. The RPC endpoint signs with the
processing key it is given and queues the command as a job; a command
counts as acknowledged once its job reports finished.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from rollbridge.clients.base import HttpClientBase
from rollbridge.contracts.errors import ConfigurationError, L2RpcError

if TYPE_CHECKING:
    from rollbridge.contracts.records import AccountPair
    from rollbridge.core.config import L2Settings

logger = structlog.get_logger(__name__)

U64_MAX = (1 << 64) - 1

# Reserved by the rollup convention
CREATE_ACCOUNT_OPCODE = 1


def create_command(nonce: int, opcode: int, params: Sequence[int]) -> list[int]:
    """Pack a command header and append params.

    Raises:
        ValueError: any resulting word does not fit in u64
    """
    if not 0 <= opcode < 256:
        raise ValueError(f"opcode out of range: {opcode}")
    if len(params) + 1 >= 256:
        raise ValueError(f"too many params: {len(params)}")
    header = (nonce << 16) + ((len(params) + 1) << 8) + opcode
    words = [header, *params]
    for word in words:
        if not 0 <= word <= U64_MAX:
            raise ValueError(f"command word out of range for u64: {word}")
    return words


class L2RpcClient(HttpClientBase):
    """Admin identity on the rollup RPC.

    Example:
        with L2RpcClient(settings.l2) as rpc:
            rpc.create_account()
            rpc.deposit(AccountPair(pid_1=1, pid_2=2), token_index=0, amount=5)
    """

    error_class = L2RpcError

    def __init__(
        self,
        settings: L2Settings,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not settings.admin_key:
            raise ConfigurationError("l2.admin_key is required")
        super().__init__(settings.rpc_url, timeout=settings.timeout_seconds, transport=transport)
        self._settings = settings
        self._key = settings.admin_key
        self._sleep = sleep

    def send_transaction(self, words: Sequence[int]) -> dict[str, Any]:
        """Submit a command and wait for its job to finish.

        Returns:
            The finished job document

        Raises:
            L2RpcError: rejected, failed, or not finished within the poll budget
        """
        body = self._request_json(
            "POST",
            "/send",
            json={"cmd": [str(w) for w in words], "key": self._key},
        )
        if not body.get("success"):
            raise L2RpcError(f"transaction rejected: {body.get('error', body)}")
        job_id = body.get("jobid")
        if job_id is None:
            return dict(body)
        return self._await_job(str(job_id))

    def _await_job(self, job_id: str) -> dict[str, Any]:
        for _ in range(self._settings.job_poll_attempts):
            job = self._request_json("GET", f"/job/{job_id}")
            if job.get("failedReason"):
                raise L2RpcError(f"job {job_id} failed: {job['failedReason']}")
            if job.get("finishedOn"):
                return dict(job)
            self._sleep(self._settings.job_poll_interval_seconds)
        raise L2RpcError(f"job {job_id} not finished after {self._settings.job_poll_attempts} polls")

    def query_nonce(self) -> int:
        """Current command nonce of the admin account (0 before it exists)."""
        body = self._request_json("POST", "/query", json={"key": self._key})
        if not body.get("success"):
            raise L2RpcError(f"state query rejected: {body.get('error', body)}")
        data = body.get("data")
        state = json.loads(data) if isinstance(data, str) else (data or {})
        player = state.get("player")
        if player is None:
            return 0
        return int(player["nonce"])

    def create_account(self) -> dict[str, Any]:
        return self.send_transaction(create_command(0, CREATE_ACCOUNT_OPCODE, []))

    def deposit(self, account: AccountPair, token_index: int, amount: int) -> dict[str, Any]:
        nonce = self.query_nonce()
        words = create_command(
            nonce,
            self._settings.deposit_opcode,
            [account.pid_1, account.pid_2, token_index, amount],
        )
        logger.debug("l2_deposit_command", nonce=nonce, token_index=token_index, amount=amount)
        return self.send_transaction(words)
