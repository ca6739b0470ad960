"""
chains/process.py - Forked node process ownership.

A ForkProcess owns one node subprocess: its pid, its output streams,
signal delivery, and a watcher that publishes lifecycle events
(ProcessEvent) onto a queue instead of touching shared state directly.
"""

import asyncio
import logging
import os
import signal
from typing import Mapping, Optional, Sequence

from core.constants import ProcessEventKind
from core.logging import get_logger
from core.models import ChainRuntimeConfig, ProcessEvent

logger = get_logger(__name__)

_HAS_PROCESS_GROUPS = hasattr(os, "killpg")

# Longest line forwarded in one piece; longer output is split
OUTPUT_CHUNK_SIZE = 64 * 1024


def build_fork_command(
    node_command: Sequence[str],
    runtime: ChainRuntimeConfig,
    port: int,
) -> list[str]:
    """Command line for a fork node listening on port."""
    command = [
        *node_command,
        "--fork",
        runtime.rpc_url,
        "--port",
        str(port),
    ]
    if runtime.block_number is not None:
        command += ["--fork-block-number", str(runtime.block_number)]
    return command


def build_fork_env(
    runtime: ChainRuntimeConfig,
    chain_id_env: str,
    base_env: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Environment for a fork node: the parent's plus the chain id variable."""
    env = dict(os.environ if base_env is None else base_env)
    env[chain_id_env] = str(runtime.chain_id)
    return env


class ForkProcess:
    """
    Handle on a running fork node.

    Created through ForkProcess.spawn(); wraps asyncio.subprocess.Process.
    """

    def __init__(
        self,
        chain_name: str,
        process: asyncio.subprocess.Process,
        events: Optional[asyncio.Queue] = None,
        node_logger: Optional[logging.Logger] = None,
    ):
        self.chain_name = chain_name
        self._process = process
        self._events = events
        self._node_logger = node_logger
        self._tasks: list[asyncio.Task] = []

        if node_logger is not None:
            for stream in (process.stdout, process.stderr):
                if stream is not None:
                    self._tasks.append(asyncio.create_task(self._forward_output(stream)))
        self._tasks.append(asyncio.create_task(self._watch()))

    @classmethod
    async def spawn(
        cls,
        chain_name: str,
        command: Sequence[str],
        env: Mapping[str, str],
        events: Optional[asyncio.Queue] = None,
        node_logger: Optional[logging.Logger] = None,
    ) -> "ForkProcess":
        """
        Launch a fork node.

        Output is piped only when a node logger will consume it.

        Raises:
            OSError: If the node command cannot be executed
        """
        output = asyncio.subprocess.PIPE if node_logger is not None else asyncio.subprocess.DEVNULL
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=output,
            stderr=output,
            env=dict(env),
            # Own process group, so signals also reach the node behind npx
            start_new_session=_HAS_PROCESS_GROUPS,
        )
        logger.info(
            f"Spawned fork node for {chain_name}",
            extra={"context": {"chain": chain_name, "pid": process.pid}},
        )
        return cls(chain_name, process, events, node_logger)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def is_running(self) -> bool:
        return self._process.returncode is None

    def send_signal(self, sig: int) -> None:
        """
        Deliver a signal.

        Raises:
            ProcessLookupError: If the process has already exited
        """
        if self.returncode is not None:
            raise ProcessLookupError(f"Process {self.pid} has already exited")
        if _HAS_PROCESS_GROUPS:
            os.killpg(self.pid, sig)
        else:
            self._process.send_signal(sig)

    def terminate(self) -> None:
        """Graceful stop; hardhat shuts down cleanly on SIGINT."""
        self.send_signal(signal.SIGINT)

    def kill(self) -> None:
        if _HAS_PROCESS_GROUPS:
            self.send_signal(signal.SIGKILL)
        else:
            self._process.kill()

    async def wait(self) -> int:
        return await self._process.wait()

    def detach(self) -> None:
        """Stop forwarding output and publishing events."""
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self._tasks.clear()

    async def _watch(self) -> None:
        try:
            exit_code = await self._process.wait()
        except Exception as e:
            if self._node_logger is not None:
                self._node_logger.info(f"Error in forked process for {self.chain_name}: {e}")
            await self._publish(ProcessEvent(self.chain_name, ProcessEventKind.ERROR, error=str(e)))
            return

        if self._node_logger is not None:
            self._node_logger.info(f"Forked process for {self.chain_name} exited with code {exit_code}")
        await self._publish(ProcessEvent(self.chain_name, ProcessEventKind.EXIT, exit_code=exit_code))

    async def _publish(self, event: ProcessEvent) -> None:
        if self._events is not None:
            await self._events.put(event)

    async def _forward_output(self, stream: asyncio.StreamReader) -> None:
        # Chunked reads: readline() fails on lines longer than the stream limit
        pending = b""
        while True:
            chunk = await stream.read(OUTPUT_CHUNK_SIZE)
            if not chunk:
                break
            *lines, pending = (pending + chunk).split(b"\n")
            for line in lines:
                self._log_output(line)
            if len(pending) >= OUTPUT_CHUNK_SIZE:
                self._log_output(pending)
                pending = b""
        self._log_output(pending)

    def _log_output(self, line: bytes) -> None:
        decoded = line.decode("utf-8", errors="replace").rstrip()
        if decoded:
            self._node_logger.info(decoded)
