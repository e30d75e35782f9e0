# src/rollbridge/clients/base.py
"""Base class for the httpx-backed adapters."""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, ClassVar, Self

import httpx

from rollbridge.contracts.errors import RpcError


class HttpClientBase:
    """Shared httpx plumbing for the L2 RPC, proof service and webhook clients.

    Provides:
    - One pooled httpx.Client per adapter, closed via close() / context manager
    - JSON request helpers that turn transport failures, non-2xx responses
      and undecodable bodies into `error_class`, the adapter's RpcError subclass

    Subclasses set error_class and build requests from their own settings.
    Tests pass an httpx.MockTransport as `transport`, and a fake `clock`
    where a deadline is involved.
    """

    error_class: ClassVar[type[RpcError]] = RpcError

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._clock = clock
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            headers=headers or {},
            transport=transport,
        )

    @contextmanager
    def _translate_errors(
        self,
        method: str,
        path: str,
        timeout: float,
        on_timeout: Callable[[float], RpcError] | None,
    ) -> Iterator[None]:
        try:
            yield
        except httpx.TimeoutException as e:
            if on_timeout is not None:
                raise on_timeout(timeout) from e
            raise self.error_class(f"{method} {path} timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise self.error_class(
                f"{method} {path} returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise self.error_class(f"{method} {path} failed: {e}") from e

    def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float | None = None,
        on_timeout: Callable[[float], RpcError] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and require a 2xx response.

        Args:
            on_timeout: Builds the error raised when the deadline passes;
                error_class with a generic message otherwise

        Raises:
            error_class: transport failure or HTTP error status
        """
        request_timeout = timeout if timeout is not None else self._timeout
        with self._translate_errors(method, path, request_timeout, on_timeout):
            response = self._client.request(method, path, timeout=request_timeout, **kwargs)
            response.raise_for_status()
        return response

    def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """_request, then decode the JSON body.

        Raises:
            error_class: as _request, or the body is not JSON
        """
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise self.error_class(f"{method} {path} returned non-JSON body") from e

    def _request_json_within(
        self,
        method: str,
        path: str,
        *,
        deadline: float,
        on_timeout: Callable[[float], RpcError],
        **kwargs: Any,
    ) -> Any:
        """_request_json bounded by one deadline for the whole exchange.

        httpx timeouts apply per connect and per read, so a body that keeps
        trickling in is never cut off by them. The body is streamed and the
        clock checked after every chunk.

        Raises:
            RpcError: on_timeout(deadline) once the deadline has passed
            error_class: as _request_json
        """
        started = self._clock()
        chunks: list[bytes] = []
        with self._translate_errors(method, path, deadline, on_timeout):
            with self._client.stream(method, path, timeout=deadline, **kwargs) as response:
                if response.is_error:
                    response.read()
                response.raise_for_status()
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if self._clock() - started > deadline:
                        raise on_timeout(deadline)
        try:
            return json.loads(b"".join(chunks))
        except ValueError as e:
            raise self.error_class(f"{method} {path} returned non-JSON body") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
