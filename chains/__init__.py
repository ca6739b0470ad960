"""
chains/ - Fork provisioning and supervision.

Modules:
- providers: JSON-RPC client handles and the provider registry
- readiness: Network readiness probing
- process: Fork node process ownership and lifecycle events
- status: Per-chain status tracking
- cleanup: Graceful-then-forceful process teardown
- manager: ChainManager, the multi-chain orchestrator
"""

from chains.providers import (
    RPCProvider,
    RPCResponse,
    RPCStats,
    ProviderRegistry,
)
from chains.readiness import validate_network, wait_for_network
from chains.process import ForkProcess, build_fork_command, build_fork_env
from chains.status import StatusTracker
from chains.cleanup import cleanup_processes, stop_process
from chains.manager import ChainManager

__all__ = [
    # Providers
    "RPCProvider",
    "RPCResponse",
    "RPCStats",
    "ProviderRegistry",
    # Readiness
    "validate_network",
    "wait_for_network",
    # Process
    "ForkProcess",
    "build_fork_command",
    "build_fork_env",
    # Status
    "StatusTracker",
    # Cleanup
    "cleanup_processes",
    "stop_process",
    # Orchestration
    "ChainManager",
]
