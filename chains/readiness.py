"""
chains/readiness.py - Network readiness probing.

Polls eth_blockNumber until the endpoint answers or the timeout elapses.
"""

import asyncio
import time
from typing import Any, Callable, Optional

from core.constants import DEFAULT_READY_TIMEOUT_S, PROBE_RETRY_INTERVAL_S
from core.exceptions import NetworkConnectionError
from core.logging import get_logger
from core.validators import validate_rpc_url
from chains.providers import RPCProvider

logger = get_logger(__name__)

ProviderFactory = Callable[[str], Any]


async def wait_for_network(
    url: str,
    timeout: float = DEFAULT_READY_TIMEOUT_S,
    *,
    retry_interval: float = PROBE_RETRY_INTERVAL_S,
    provider_factory: ProviderFactory = RPCProvider,
) -> int:
    """
    Wait until an RPC endpoint reports its block number.

    Args:
        url: Endpoint to probe
        timeout: Seconds allowed since the first attempt
        retry_interval: Seconds to wait between failed attempts
        provider_factory: Builds the client used to probe

    Returns:
        Block number reported by the endpoint

    Raises:
        NetworkConnectionError: If the URL is invalid or the endpoint
            did not respond within the timeout
    """
    validation = validate_rpc_url(url)
    if not validation.is_valid:
        raise NetworkConnectionError(
            url, ValueError(f"Invalid URL: {', '.join(validation.errors)}")
        )

    provider = provider_factory(url)
    start = time.monotonic()
    last_error: Optional[BaseException] = None

    try:
        while time.monotonic() - start < timeout:
            try:
                block_number, _ = await provider.get_block_number()
                logger.info(
                    f"Network at {url} is ready",
                    extra={"context": {"url": url, "block_number": block_number}},
                )
                return block_number
            except Exception as e:
                last_error = e
                logger.debug(f"Waiting for network at {url}...")
                await asyncio.sleep(retry_interval)
    finally:
        await provider.close()

    raise NetworkConnectionError(
        url,
        last_error or TimeoutError(f"Network at {url} did not respond within {timeout}s"),
    )


async def validate_network(
    url: str,
    timeout: float = DEFAULT_READY_TIMEOUT_S,
    **probe_kwargs: Any,
) -> bool:
    """Return True if the endpoint becomes ready within the timeout."""
    try:
        await wait_for_network(url, timeout, **probe_kwargs)
    except Exception as e:
        logger.debug(f"Network validation failed for {url}: {e}")
        return False
    return True
