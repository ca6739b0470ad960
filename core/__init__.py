"""
core - Core utilities and models for FORKMAN.

This package contains:
- constants.py: Enums, ports, timeouts and defaults
- exceptions.py: Typed exceptions with error codes
- models.py: Data models (ChainRuntimeConfig, ChainStatus, ProcessEvent)
- validators.py: Chain name, RPC URL and port validation
- logging.py: Structured JSON logging and per-chain node loggers
"""

from core.constants import (
    ChainState,
    ErrorCode,
    ProcessEventKind,
)
from core.exceptions import (
    ChainConfigError,
    ForkError,
    NetworkConnectionError,
    ProcessCleanupError,
)
from core.logging import create_fork_logger, get_logger, setup_logging
from core.models import (
    ChainRuntimeConfig,
    ChainStatus,
    ProcessEvent,
    ValidationResult,
)
from core.validators import (
    validate_chain_name,
    validate_port,
    validate_rpc_url,
)

__all__ = [
    # Constants
    "ChainState",
    "ErrorCode",
    "ProcessEventKind",
    # Exceptions
    "ChainConfigError",
    "ForkError",
    "NetworkConnectionError",
    "ProcessCleanupError",
    # Logging
    "create_fork_logger",
    "get_logger",
    "setup_logging",
    # Models
    "ChainRuntimeConfig",
    "ChainStatus",
    "ProcessEvent",
    "ValidationResult",
    # Validators
    "validate_chain_name",
    "validate_port",
    "validate_rpc_url",
]
