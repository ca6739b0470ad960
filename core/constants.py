# PATH: core/constants.py
"""
Constants for FORKMAN.

Contains enums, defaults, and configuration constants.
"""

from enum import Enum
from typing import Final, FrozenSet

# =============================================================================
# CHAIN NAMES
# =============================================================================

# Pre-existing local node, never spawned
HARDHAT_CHAIN: Final[str] = "hardhat"

CHAIN_NAME_PATTERN: Final[str] = r"^[A-Za-z0-9_-]+$"
CHAIN_NAME_SOFT_LIMIT: Final[int] = 50

# =============================================================================
# NETWORK
# =============================================================================

LOCAL_HOST: Final[str] = "127.0.0.1"
HARDHAT_PORT: Final[int] = 8545
DEFAULT_BASE_PORT: Final[int] = 8546

MIN_PORT: Final[int] = 1024
MAX_PORT: Final[int] = 65535
SAFE_PORT_FLOOR: Final[int] = 8000

ALLOWED_RPC_SCHEMES: FrozenSet[str] = frozenset({"http", "https", "ws", "wss"})

# =============================================================================
# TIMING (seconds)
# =============================================================================

FORK_READY_TIMEOUT_S: Final[float] = 100.0
HARDHAT_READY_TIMEOUT_S: Final[float] = 5.0
DEFAULT_READY_TIMEOUT_S: Final[float] = 30.0
PROBE_RETRY_INTERVAL_S: Final[float] = 1.0
CLEANUP_GRACE_PERIOD_S: Final[float] = 5.0

# =============================================================================
# FORK PROCESS
# =============================================================================

DEFAULT_CHAIN_ID: Final[int] = 31337
CHAIN_ID_ENV_VAR: Final[str] = "HH_CHAIN_ID"
DEFAULT_NODE_COMMAND: tuple[str, ...] = ("npx", "hardhat", "node")

# Environment fallbacks, prefixed with the upper-cased chain name
ENV_RPC_SUFFIX: Final[str] = "_RPC"
ENV_BLOCK_SUFFIX: Final[str] = "_BLOCK"
ENV_CHAIN_ID_SUFFIX: Final[str] = "_MOCK_CHAIN_ID"


class ChainState(str, Enum):
    """Lifecycle state of a provisioned chain."""
    UNKNOWN = "unknown"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


# Allowed transitions; STOPPED and ERROR are terminal until a fresh record
CHAIN_STATE_TRANSITIONS: dict[ChainState, FrozenSet[ChainState]] = {
    ChainState.UNKNOWN: frozenset({ChainState.RUNNING, ChainState.ERROR}),
    ChainState.RUNNING: frozenset({ChainState.STOPPED, ChainState.ERROR}),
    ChainState.STOPPED: frozenset(),
    ChainState.ERROR: frozenset(),
}


class ProcessEventKind(str, Enum):
    """Lifecycle notifications published by a fork process."""
    EXIT = "exit"
    ERROR = "error"


class ErrorCode(str, Enum):
    """
    Error codes carried by every FORKMAN exception.

    Stable strings, safe to match on in callers and logs.
    """
    CONFIG_INVALID = "CONFIG_INVALID"
    NETWORK_UNREACHABLE = "NETWORK_UNREACHABLE"
    PROCESS_CLEANUP_FAILED = "PROCESS_CLEANUP_FAILED"
    UNKNOWN = "UNKNOWN"
