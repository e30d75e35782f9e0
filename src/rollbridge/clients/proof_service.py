# src/rollbridge/clients/proof_service.py
"""Proof service client.

The proof service is an opaque task queue. We only read from it: one Prove
task by id, and the aggregation (round 1) record an Auto-mode task was
batched into. Responses are external data, so every field is validated
here and anything malformed becomes ProofServiceError.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from rollbridge.clients.base import HttpClientBase
from rollbridge.contracts.enums import AutoSubmitStatus, Round1Status, SubmitMode, TaskStatus
from rollbridge.contracts.errors import (
    AggregationNotFound,
    ProofServiceError,
    ProofTaskNotFound,
    ProofTaskTimeout,
)
from rollbridge.contracts.proofs import ProofTask, Round1Info

if TYPE_CHECKING:
    from rollbridge.core.config import ProofServiceSettings

logger = structlog.get_logger(__name__)


def _to_bytes(value: Any, field: str) -> bytes:
    """Byte payloads arrive as int arrays or 0x-hex strings."""
    if value is None:
        return b""
    if isinstance(value, str):
        digits = value[2:] if value.startswith("0x") else value
        try:
            return bytes.fromhex(digits)
        except ValueError as e:
            raise ProofServiceError(f"{field}: not a hex string") from e
    if isinstance(value, list):
        try:
            return bytes(value)
        except (TypeError, ValueError) as e:
            raise ProofServiceError(f"{field}: not a byte array") from e
    raise ProofServiceError(f"{field}: unexpected type {type(value).__name__}")


def _task_id(raw: dict[str, Any]) -> str:
    ident = raw.get("_id")
    if isinstance(ident, dict) and "$oid" in ident:
        return str(ident["$oid"])
    if isinstance(ident, str):
        return ident
    raise ProofServiceError(f"task without usable _id: {ident!r}")


def parse_task(raw: dict[str, Any]) -> ProofTask:
    """Build a ProofTask from a task document.

    Raises:
        ProofServiceError: missing fields or unknown enum values
    """
    try:
        auto_status = raw.get("auto_submit_status")
        return ProofTask(
            task_id=_task_id(raw),
            status=TaskStatus(raw["status"]),
            submit_mode=SubmitMode(raw["proof_submit_mode"]),
            auto_submit_status=AutoSubmitStatus(auto_status) if auto_status is not None else None,
            proof=_to_bytes(raw.get("proof"), "proof"),
            aux=_to_bytes(raw.get("aux"), "aux"),
            instances=_to_bytes(raw.get("instances"), "instances"),
            input_context=_to_bytes(raw.get("input_context"), "input_context"),
            shadow_instances=_to_bytes(raw.get("shadow_instances"), "shadow_instances"),
            batch_instances=_to_bytes(raw.get("batch_instances"), "batch_instances"),
        )
    except KeyError as e:
        raise ProofServiceError(f"task document missing field {e.args[0]!r}") from e
    except ValueError as e:
        raise ProofServiceError(f"task document has invalid value: {e}") from e


def parse_round1_info(raw: dict[str, Any]) -> Round1Info:
    try:
        return Round1Info(
            task_ids=tuple(str(t) for t in raw["task_ids"]),
            target_instances=tuple(
                _to_bytes(inst, f"target_instances[{i}]") for i, inst in enumerate(raw["target_instances"])
            ),
            shadow_instances=_to_bytes(raw.get("shadow_instances"), "shadow_instances"),
            status=Round1Status(raw.get("status", Round1Status.BATCHED.value)),
        )
    except KeyError as e:
        raise ProofServiceError(f"round1 document missing field {e.args[0]!r}") from e
    except ValueError as e:
        raise ProofServiceError(f"round1 document has invalid value: {e}") from e


class ProofServiceClient(HttpClientBase):
    """Read-only client for the proof service.

    Example:
        client = ProofServiceClient(settings.proof_service, chain_id=settings.chain.chain_id)
        task = client.load_task(task_id, status="Done", timeout=60.0)
    """

    error_class = ProofServiceError

    def __init__(
        self,
        settings: ProofServiceSettings,
        *,
        chain_id: int,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(settings.url, timeout=settings.task_timeout_seconds, transport=transport, clock=clock)
        self._settings = settings
        self._chain_id = chain_id

    def load_task(self, task_id: str, *, status: str | None, timeout: float) -> ProofTask:
        """Fetch one Prove task. timeout bounds the whole request, body included.

        Raises:
            ProofTaskTimeout: the task did not arrive within timeout seconds
            ProofTaskNotFound: no task with that id (and status)
        """
        params: dict[str, Any] = {
            "id": task_id,
            "tasktype": "Prove",
            "md5": self._settings.image_md5,
            "total": 1,
        }
        if status is not None:
            params["taskstatus"] = status
        body = self._request_json_within(
            "GET",
            "/tasks",
            params=params,
            deadline=timeout,
            on_timeout=lambda t: ProofTaskTimeout(task_id, t),
        )
        tasks = self._page(body)
        if not tasks:
            raise ProofTaskNotFound(task_id)
        task = parse_task(tasks[0])
        logger.debug("proof_task_loaded", task_id=task.task_id, mode=task.submit_mode.value, status=task.status.value)
        return task

    def query_round1_info(self, task_id: str) -> Round1Info:
        body = self._request_json(
            "GET",
            "/round1_info",
            params={
                "task_id": task_id,
                "chain_id": self._chain_id,
                "status": Round1Status.BATCHED.value,
                "total": 1,
            },
        )
        records = self._page(body)
        if not records:
            raise AggregationNotFound(task_id)
        return parse_round1_info(records[0])

    def _page(self, body: Any) -> list[dict[str, Any]]:
        """Unwrap {"success": ..., "result": {"data": [...], "total": n}}."""
        if not isinstance(body, dict) or not body.get("success", True):
            raise ProofServiceError(f"proof service error: {body!r:.200}")
        result = body.get("result", body)
        data = result.get("data") if isinstance(result, dict) else None
        if not isinstance(data, list):
            raise ProofServiceError("proof service response has no data list")
        return data
