#!/usr/bin/env python3
"""
run_forks.py - CLI entrypoint for local chain forks.

Usage:
    python run_forks.py --chain mainnet --chain sepolia
    python run_forks.py -c hardhat -c mainnet --config config/forks.yaml --log-dir logs
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from chains.manager import ChainManager
from config import ForkSettings, load_fork_config
from core.exceptions import ForkError
from core.logging import get_logger, setup_logging

logger = get_logger("forkman.cli")


def format_status_table(manager: ChainManager) -> str:
    """Render one line per chain: name, state, port, pid, upstream."""
    rows = [("CHAIN", "STATE", "PORT", "PID", "UPSTREAM")]
    for name, status in sorted(manager.get_all_chain_statuses().items()):
        rows.append((
            name,
            status.state.value,
            str(status.port or "-"),
            str(status.process_id or "-"),
            status.rpc_url or "-",
        ))
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in rows
    )


async def serve_forks(
    manager: ChainManager,
    chains: list[str],
    config: dict,
    log_dir: Optional[str],
    stop: Optional[asyncio.Event] = None,
) -> None:
    """
    Provision chains, block until stopped, then tear down.

    Without an explicit stop event, SIGINT/SIGTERM set one. A stop during
    startup cancels provisioning.
    """
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    setup = asyncio.create_task(manager.setup_chains(chains, config, log_dir))
    stopped = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait({setup, stopped}, return_when=asyncio.FIRST_COMPLETED)
        if not setup.done():
            logger.info("Shutdown requested during startup")
            setup.cancel()
            await asyncio.gather(setup, return_exceptions=True)
            return

        setup.result()
        click.echo(format_status_table(manager))
        click.echo("\nForks running, press Ctrl+C to stop")
        await stopped
        logger.info("Shutdown requested")
    finally:
        for task in (setup, stopped):
            if not task.done():
                task.cancel()
        await asyncio.gather(setup, stopped, return_exceptions=True)
        await manager.cleanup()


@click.command()
@click.option(
    "--chain",
    "-c",
    "chains",
    multiple=True,
    required=True,
    help="Chain to fork (repeatable; 'hardhat' uses the local node on 8545)",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with settings and per-chain overrides",
)
@click.option(
    "--log-dir",
    default=None,
    help="Directory for per-chain node logs",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON log format",
)
def main(
    chains: tuple[str, ...],
    config_path: Optional[str],
    log_dir: Optional[str],
    log_level: str,
    json_logs: bool,
) -> None:
    """
    FORKMAN local forks.

    Forks every requested chain, keeps them running until interrupted,
    then stops all of them.
    """
    setup_logging(level=log_level, json_format=json_logs)
    load_dotenv()

    try:
        config = load_fork_config(config_path) if config_path else {}
        settings = ForkSettings.from_mapping(config.get("settings"))
    except (ForkError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    manager = ChainManager(settings)

    logger.info(
        "Starting forks",
        extra={
            "context": {
                "chains": list(chains),
                "base_port": settings.base_port,
                "log_dir": log_dir,
            }
        }
    )

    try:
        asyncio.run(serve_forks(manager, list(chains), config, log_dir))
    except ForkError as e:
        logger.error(
            f"Fork setup failed: {e}",
            extra={"context": {"error_code": e.code.value, **e.details}},
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
