"""
musicboard/net/rpc.py
Wallet transport over HTTP JSON-RPC.

Exposes the same surface a browser wallet does: `request(method, params)` for
calls and `on(event, handler)` for lifecycle notifications (`chainChanged`,
`accountsChanged`). Host applications that learn about such changes out of
band call `emit()` to fan them out.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from musicboard.base.config import RpcConfig

logger = logging.getLogger(__name__)


class RpcError(Exception):
    """JSON-RPC error response or transport failure."""
    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class JsonRpcTransport:
    """
    EIP-1193 style transport backed by an httpx.AsyncClient.
    """
    def __init__(
        self,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.url = url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    @classmethod
    def from_config(cls, config: RpcConfig, client: Optional[httpx.AsyncClient] = None) -> "JsonRpcTransport":
        return cls(config.url, client=client, timeout=config.request_timeout)

    async def request(self, method: str, params: Optional[Sequence[Any]] = None) -> Any:
        """
        Send one JSON-RPC call and return its result.

        Raises:
            RpcError: on transport failure, non-2xx status or an error member
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params or []),
        }
        try:
            response = await self.client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"[JsonRpcTransport] {method} failed: {e}")
            raise RpcError(f"{method}: {e}") from e

        body = response.json()
        if body.get("error"):
            err = body["error"]
            raise RpcError(err.get("message", "JSON-RPC error"), code=err.get("code"), data=err.get("data"))
        return body.get("result")

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._listeners.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._listeners.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception(f"[JsonRpcTransport] Listener for {event} failed")

    async def aclose(self):
        await self.client.aclose()
