"""
chains/manager.py - Multi-chain fork provisioning.

A ChainManager is one session: it owns the process, provider and status
registries and the port plan for the chains it provisions.

Flow of setup_chains():
1. Short-circuit if providers are already registered
2. Validate every chain name (nothing is spawned on failure)
3. Assign ports: base_port + position in the request
4. Provision every chain concurrently
5. Any failure: cancel in-flight siblings, clean up everything, re-raise

USAGE:
    manager = ChainManager()
    providers = await manager.setup_chains(["hardhat", "mainnet"], config)
    ...
    await manager.cleanup()
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from config import ForkSettings, resolve_chain_config
from core.constants import DEFAULT_READY_TIMEOUT_S, HARDHAT_CHAIN, ChainState
from core.exceptions import ChainConfigError, NetworkConnectionError
from core.logging import close_fork_logger, create_fork_logger, get_logger
from core.models import ChainStatus, ProcessEvent
from core.validators import validate_chain_name, validate_port, validate_rpc_url
from chains.cleanup import cleanup_processes
from chains.process import ForkProcess, build_fork_command, build_fork_env
from chains.providers import ProviderRegistry, RPCProvider
from chains.readiness import validate_network, wait_for_network
from chains.status import StatusTracker

logger = get_logger(__name__)

Spawner = Callable[..., Awaitable[ForkProcess]]


class ChainManager:
    """
    Provisions and supervises local forks of remote chains.

    Args:
        settings: Ports, timeouts and node command
        spawner: Launches a fork node; defaults to ForkProcess.spawn
        provider_factory: Builds RPC clients for probing and for callers
        env: Environment used for config fallbacks and the node process
            (defaults to os.environ)
    """

    def __init__(
        self,
        settings: Optional[ForkSettings] = None,
        *,
        spawner: Optional[Spawner] = None,
        provider_factory: Callable[[str], Any] = RPCProvider,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings or ForkSettings()
        self.providers = ProviderRegistry()
        self.statuses = StatusTracker()
        self._spawner = spawner or ForkProcess.spawn
        self._provider_factory = provider_factory
        self._env = env
        self._processes: dict[str, ForkProcess] = {}
        self._processes_lock = threading.Lock()
        self._fork_loggers: dict[str, logging.Logger] = {}
        self._events: Optional[asyncio.Queue] = None
        self._status_task: Optional[asyncio.Task] = None

    # =========================================================================
    # PROVISIONING
    # =========================================================================

    async def setup_chains(
        self,
        chain_names: Sequence[str],
        config: Optional[Mapping[str, Any]] = None,
        log_dir: Optional[Union[str, Path]] = None,
    ) -> dict[str, Any]:
        """
        Provision every chain, all or nothing.

        While providers are registered, further calls skip validation and
        spawning and return them again. The result is always a fresh dict
        holding the same provider objects, so callers cannot mutate the
        registry through it.

        Args:
            chain_names: Chains to fork; order determines ports
            config: Mapping with an optional "chains" override section
            log_dir: Directory for per-chain node logs

        Returns:
            Chain name -> RPC provider (a copy of the registry)

        Raises:
            ChainConfigError: Invalid names, ports, URLs or missing config
            NetworkConnectionError: A chain did not become ready in time
        """
        if len(self.providers) > 0:
            return self.providers.snapshot()

        chain_names = list(chain_names or [])
        if not chain_names:
            raise ChainConfigError("general", "No chains specified for setup")

        self._validate_chain_names(chain_names)
        ports = self.assign_ports(chain_names)

        self._start_status_worker()
        tasks = [
            asyncio.create_task(
                self._setup_chain(name, ports[name], config, log_dir),
                name=f"fork-{name}",
            )
            for name in chain_names
        ]

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            await self._abort(tasks)
            raise

        failure = self._first_failure(tasks)
        if failure is not None:
            logger.error(
                f"Chain setup failed, tearing down all chains: {failure}",
                extra={"context": {"chains": chain_names}},
            )
            await self._abort(tasks)
            raise failure

        logger.info(
            "All chains ready",
            extra={"context": {"chains": chain_names, "ports": ports}},
        )
        return self.providers.snapshot()

    def assign_ports(self, chain_names: Sequence[str]) -> dict[str, int]:
        """Hardhat keeps its well-known port; forks get base_port + index."""
        return {
            name: (
                self.settings.hardhat_port
                if name == HARDHAT_CHAIN
                else self.settings.base_port + index
            )
            for index, name in enumerate(chain_names)
        }

    def _validate_chain_names(self, chain_names: Sequence[str]) -> None:
        seen = set()
        for chain_name in chain_names:
            validation = validate_chain_name(chain_name)
            if not validation.is_valid:
                raise ChainConfigError(str(chain_name), ", ".join(validation.errors))
            for warning in validation.warnings:
                logger.warning(
                    f"Warning for chain '{chain_name}': {warning}",
                    extra={"context": {"chain": chain_name}},
                )
            if chain_name in seen:
                raise ChainConfigError(chain_name, "Chain specified more than once")
            seen.add(chain_name)

    async def _setup_chain(
        self,
        chain_name: str,
        port: int,
        config: Optional[Mapping[str, Any]],
        log_dir: Optional[Union[str, Path]],
    ) -> None:
        try:
            if chain_name == HARDHAT_CHAIN:
                await self._setup_hardhat(chain_name)
            else:
                await self._setup_fork(chain_name, port, config, log_dir)
        except Exception as e:
            self._stop_failed_process(chain_name)
            self.statuses.fail(chain_name, error=str(e))
            raise

    async def _setup_hardhat(self, chain_name: str) -> None:
        url = self.settings.hardhat_url
        logger.info(
            f"Using local {chain_name} node at {url}",
            extra={"context": {"chain": chain_name, "url": url}},
        )
        await self._wait_ready(url, self.settings.hardhat_timeout)

        self.providers.register(chain_name, self._provider_factory(url))
        self.statuses.record(ChainStatus(
            name=chain_name,
            state=ChainState.RUNNING,
            rpc_url=url,
            port=self.settings.hardhat_port,
        ))

    async def _setup_fork(
        self,
        chain_name: str,
        port: int,
        config: Optional[Mapping[str, Any]],
        log_dir: Optional[Union[str, Path]],
    ) -> None:
        port_validation = validate_port(port)
        if not port_validation.is_valid:
            raise ChainConfigError(
                chain_name, f"Port validation failed: {', '.join(port_validation.errors)}"
            )
        for warning in port_validation.warnings:
            logger.warning(
                f"Warning for chain '{chain_name}': {warning}",
                extra={"context": {"chain": chain_name, "port": port}},
            )

        runtime = resolve_chain_config(
            chain_name, config, self._env, self.settings.default_chain_id
        )

        url_validation = validate_rpc_url(runtime.rpc_url)
        if not url_validation.is_valid:
            raise ChainConfigError(
                chain_name, f"RPC URL validation failed: {', '.join(url_validation.errors)}"
            )

        logger.info(
            f"Forking {chain_name} on port {port}",
            extra={"context": {
                "chain": chain_name,
                "port": port,
                "chain_id": runtime.chain_id,
                "block_number": runtime.block_number,
            }},
        )
        self.statuses.record(ChainStatus(
            name=chain_name,
            state=ChainState.UNKNOWN,
            rpc_url=runtime.rpc_url,
            port=port,
            chain_id=runtime.chain_id,
            block_number=runtime.block_number,
        ))

        node_logger = None
        if log_dir is not None:
            node_logger = create_fork_logger(chain_name, log_dir)
            self._fork_loggers[chain_name] = node_logger

        command = build_fork_command(self.settings.node_command, runtime, port)
        env = build_fork_env(runtime, self.settings.chain_id_env, self._env)
        try:
            process = await self._spawner(chain_name, command, env, self._events, node_logger)
        except OSError as e:
            raise ChainConfigError(chain_name, f"Failed to launch fork node: {e}") from e

        with self._processes_lock:
            self._processes[chain_name] = process
        self.statuses.update(chain_name, process_id=process.pid)

        provider_url = self.settings.local_url(port)
        try:
            await self._wait_ready(provider_url, self.settings.fork_timeout)
        except NetworkConnectionError as e:
            self.statuses.transition(chain_name, ChainState.ERROR, error=str(e))
            logger.warning(
                f"Network validation failed for {chain_name}: {e.message}",
                extra={"context": {"chain": chain_name, "url": provider_url}},
            )
            raise

        self.statuses.transition(chain_name, ChainState.RUNNING)
        logger.info(
            f"Connecting to {chain_name} at {provider_url}",
            extra={"context": {"chain": chain_name, "pid": process.pid}},
        )
        self.providers.register(chain_name, self._provider_factory(provider_url))

    async def _wait_ready(self, url: str, timeout: float) -> int:
        return await wait_for_network(
            url,
            timeout,
            retry_interval=self.settings.retry_interval,
            provider_factory=self._provider_factory,
        )

    def _stop_failed_process(self, chain_name: str) -> None:
        # Stays registered so session cleanup can escalate to a kill
        with self._processes_lock:
            process = self._processes.get(chain_name)
        if process is None or not process.is_running:
            return
        try:
            process.terminate()
        except Exception as e:
            logger.warning(
                f"Failed to kill process for {chain_name}: {e}",
                extra={"context": {"chain": chain_name}},
            )

    @staticmethod
    def _first_failure(tasks: Sequence[asyncio.Task]) -> Optional[BaseException]:
        failure = None
        for task in tasks:
            if not task.done() or task.cancelled():
                continue
            error = task.exception()
            if error is not None and failure is None:
                failure = error
        return failure

    async def _abort(self, tasks: Sequence[asyncio.Task]) -> None:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.cleanup()

    # =========================================================================
    # LIFECYCLE EVENTS
    # =========================================================================

    def _start_status_worker(self) -> None:
        if self._status_task is not None and not self._status_task.done():
            return
        self._events = asyncio.Queue()
        self._status_task = asyncio.create_task(
            self._apply_events(self._events), name="fork-status-events"
        )

    async def _apply_events(self, events: asyncio.Queue) -> None:
        while True:
            event: ProcessEvent = await events.get()
            try:
                if self.statuses.apply_event(event):
                    logger.info(
                        f"Chain {event.chain_name} is now "
                        f"{self.statuses.get_chain_status(event.chain_name).value}",
                        extra={"context": {
                            "chain": event.chain_name,
                            "exit_code": event.exit_code,
                            "error": event.error,
                        }},
                    )
            finally:
                events.task_done()

    async def wait_for_events(self) -> None:
        """Wait until every published process event has been applied."""
        if self._events is not None and self._status_task is not None and not self._status_task.done():
            await self._events.join()

    async def _stop_status_worker(self) -> None:
        task = self._status_task
        self._status_task = None
        self._events = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    # =========================================================================
    # CLEANUP
    # =========================================================================

    async def cleanup(self) -> None:
        """
        Stop every fork and clear all registries.

        Never raises; signal delivery failures are logged as a summary.
        """
        logger.info("Cleaning up forked chains...")
        processes = self._snapshot_processes()
        errors = []

        try:
            errors = await cleanup_processes(processes, self.settings.grace_period)
        finally:
            await self._stop_status_worker()
            for process in processes.values():
                process.detach()
            await self.providers.close_all()
            for node_logger in self._fork_loggers.values():
                close_fork_logger(node_logger)
            self._fork_loggers.clear()

            with self._processes_lock:
                self._processes.clear()
            self.providers.clear()
            self.statuses.clear()

        if errors:
            logger.warning(
                f"Cleanup completed with {len(errors)} errors",
                extra={"context": {"errors": [e.message for e in errors]}},
            )
            for error in errors:
                logger.warning(f"  - {error.message}")
        else:
            logger.info("All forked chains cleaned up successfully")

    def _snapshot_processes(self) -> dict[str, ForkProcess]:
        with self._processes_lock:
            return dict(self._processes)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_provider(self, chain_name: str) -> Optional[Any]:
        validation = validate_chain_name(chain_name)
        if not validation.is_valid:
            logger.warning(
                f"Invalid chain name '{chain_name}': {', '.join(validation.errors)}"
            )
            return None
        return self.providers.get(chain_name)

    def get_providers(self) -> dict[str, Any]:
        return self.providers.snapshot()

    def get_processes(self) -> dict[str, ForkProcess]:
        return self._snapshot_processes()

    def get_chain_status(self, chain_name: str) -> ChainState:
        return self.statuses.get_chain_status(chain_name)

    def get_chain_status_details(self, chain_name: str) -> Optional[ChainStatus]:
        return self.statuses.get_chain_status_details(chain_name)

    def get_all_chain_statuses(self) -> dict[str, ChainStatus]:
        return self.statuses.get_all_chain_statuses()

    async def validate_network(self, url: str, timeout: float = DEFAULT_READY_TIMEOUT_S) -> bool:
        """True if url answers eth_blockNumber within timeout."""
        return await validate_network(
            url,
            timeout,
            retry_interval=self.settings.retry_interval,
            provider_factory=self._provider_factory,
        )
