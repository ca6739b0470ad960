"""
chains/cleanup.py - Two-phase teardown of fork processes.

For each process, concurrently:
1. Already exited -> done
2. Graceful stop (SIGINT), raced against the grace period
3. Still alive after the grace period -> forceful kill (SIGKILL)

Signal delivery failures are collected as ProcessCleanupError and never
abort the teardown of other processes.
"""

import asyncio
from typing import Mapping

from core.constants import CLEANUP_GRACE_PERIOD_S
from core.exceptions import ProcessCleanupError
from core.logging import get_logger
from chains.process import ForkProcess

logger = get_logger(__name__)


async def stop_process(
    chain_name: str,
    process: ForkProcess,
    grace_period: float = CLEANUP_GRACE_PERIOD_S,
) -> list[ProcessCleanupError]:
    """
    Stop one process, escalating to a kill after the grace period.

    Returns:
        Errors raised while delivering signals (empty on success)
    """
    if not process.is_running:
        return []

    logger.info(
        f"Stopping forked process for {chain_name}",
        extra={"context": {"chain": chain_name, "pid": process.pid}},
    )

    try:
        process.terminate()
    except Exception as e:
        return [ProcessCleanupError(chain_name, e)]

    try:
        await asyncio.wait_for(process.wait(), timeout=grace_period)
        return []
    except asyncio.TimeoutError:
        pass

    if not process.is_running:
        return []

    try:
        process.kill()
    except Exception as e:
        return [ProcessCleanupError(chain_name, e)]

    logger.warning(
        f"Force killed process for {chain_name}",
        extra={"context": {"chain": chain_name, "pid": process.pid}},
    )
    return []


async def cleanup_processes(
    processes: Mapping[str, ForkProcess],
    grace_period: float = CLEANUP_GRACE_PERIOD_S,
) -> list[ProcessCleanupError]:
    """
    Stop every process concurrently.

    Returns:
        All ProcessCleanupErrors, in registry order
    """
    results = await asyncio.gather(
        *(stop_process(name, process, grace_period) for name, process in processes.items())
    )
    return [error for errors in results for error in errors]
