"""
chains/providers.py - JSON-RPC client handles for fork endpoints.

Provides:
- RPCProvider: async JSON-RPC client bound to one endpoint
- Request/latency statistics per provider
- ProviderRegistry: chain name -> provider, owned by a ChainManager
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.logging import get_logger
from core.exceptions import NetworkConnectionError

logger = get_logger(__name__)


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


class RPCProvider:
    """
    Async JSON-RPC client for a single endpoint.

    Used both as the readiness probe and as the long-lived handle
    returned to callers of ChainManager.setup_chains().
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_seconds: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0
        self.stats = RPCStats(url=rpc_url)

    def __repr__(self) -> str:
        return f"RPCProvider({self.rpc_url!r})"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _next_request_id(self) -> int:
        """Generate next request ID."""
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPCResponse with result and metadata

        Raises:
            NetworkConnectionError: On transport failure or JSON-RPC error
        """
        client = await self._get_client()
        stats = self.stats
        stats.total_requests += 1

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": self._next_request_id(),
        }

        start_ms = int(time.time() * 1000)

        try:
            resp = await client.post(self.rpc_url, json=payload)
            resp.raise_for_status()
            result = resp.json()
        except httpx.TimeoutException as e:
            latency_ms = int(time.time() * 1000) - start_ms
            stats.failed_requests += 1
            stats.last_error = f"Timeout after {latency_ms}ms"
            logger.debug(f"RPC timeout for {self.rpc_url}: {latency_ms}ms")
            raise NetworkConnectionError(self.rpc_url, e) from e
        except (httpx.HTTPError, ValueError) as e:
            stats.failed_requests += 1
            stats.last_error = str(e) or type(e).__name__
            logger.debug(f"RPC failed for {self.rpc_url}: {stats.last_error}")
            raise NetworkConnectionError(self.rpc_url, e) from e

        latency_ms = int(time.time() * 1000) - start_ms

        if not isinstance(result, dict):
            stats.failed_requests += 1
            stats.last_error = "Malformed JSON-RPC response"
            raise NetworkConnectionError(self.rpc_url, ValueError(stats.last_error))

        if "error" in result:
            error = result["error"]
            error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            stats.failed_requests += 1
            stats.last_error = error_msg
            logger.debug(f"RPC error from {self.rpc_url}: {error_msg}")
            raise NetworkConnectionError(self.rpc_url, RuntimeError(f"RPC error: {error_msg}"))

        stats.successful_requests += 1
        stats.total_latency_ms += latency_ms
        stats.last_success_ts = int(time.time() * 1000)

        return RPCResponse(
            result=result.get("result"),
            latency_ms=latency_ms,
            endpoint_used=self.rpc_url,
        )

    async def get_chain_id(self) -> int:
        """Get chain ID from RPC."""
        response = await self.call("eth_chainId")
        return int(response.result, 16)

    async def get_block_number(self) -> tuple[int, int]:
        """
        Get latest block number.

        Returns:
            (block_number, latency_ms)
        """
        response = await self.call("eth_blockNumber")
        try:
            block_number = int(response.result, 16)
        except (TypeError, ValueError) as e:
            raise NetworkConnectionError(self.rpc_url, e) from e
        return block_number, response.latency_ms

    def get_stats_summary(self) -> dict:
        """Get statistics summary for the endpoint."""
        s = self.stats
        return {
            "url": s.url,
            "total_requests": s.total_requests,
            "success_rate": round(s.success_rate, 3),
            "avg_latency_ms": s.avg_latency_ms,
            "last_error": s.last_error,
        }


class ProviderRegistry:
    """
    Registry of RPC providers by chain name.

    Safe to mutate from concurrent provisioning tasks.
    """

    def __init__(self):
        self._providers: dict[str, RPCProvider] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)

    def __contains__(self, chain_name: str) -> bool:
        with self._lock:
            return chain_name in self._providers

    def register(self, chain_name: str, provider: RPCProvider) -> RPCProvider:
        """Register a provider for a chain."""
        with self._lock:
            self._providers[chain_name] = provider
        return provider

    def get(self, chain_name: str) -> RPCProvider | None:
        """Get provider for a chain."""
        with self._lock:
            return self._providers.get(chain_name)

    def snapshot(self) -> dict[str, RPCProvider]:
        """Independent copy of the name -> provider mapping."""
        with self._lock:
            return dict(self._providers)

    async def close_all(self) -> None:
        """Close every provider's HTTP client; the registry keeps its entries."""
        for chain_name, provider in self.snapshot().items():
            try:
                await provider.close()
            except Exception as e:
                logger.warning(
                    f"Failed to close provider for {chain_name}: {e}",
                    extra={"context": {"chain": chain_name}},
                )

    def clear(self) -> None:
        with self._lock:
            self._providers.clear()

    @property
    def chain_names(self) -> list[str]:
        """List of registered chain names."""
        with self._lock:
            return list(self._providers.keys())
