# PATH: config/__init__.py
"""
Configuration loading utilities for FORKMAN.

Sources, highest precedence first:
- Per-chain overrides in the config mapping: config["chains"][name]
- Environment fallbacks: <NAME>_RPC, <NAME>_BLOCK, <NAME>_MOCK_CHAIN_ID
- Built-in defaults (chain id 31337, no block pinning)

Config files are YAML; .env loading is left to the entrypoint.
"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from core.constants import (
    CHAIN_ID_ENV_VAR,
    CLEANUP_GRACE_PERIOD_S,
    DEFAULT_BASE_PORT,
    DEFAULT_CHAIN_ID,
    DEFAULT_NODE_COMMAND,
    ENV_BLOCK_SUFFIX,
    ENV_CHAIN_ID_SUFFIX,
    ENV_RPC_SUFFIX,
    FORK_READY_TIMEOUT_S,
    HARDHAT_PORT,
    HARDHAT_READY_TIMEOUT_S,
    LOCAL_HOST,
    PROBE_RETRY_INTERVAL_S,
)
from core.exceptions import ChainConfigError
from core.logging import get_logger
from core.models import ChainRuntimeConfig

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).parent


def load_yaml(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory

    Returns:
        Parsed YAML as dict
    """
    return load_fork_config(CONFIG_DIR / filename)


def load_fork_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a fork configuration file from an arbitrary path.

    Raises:
        FileNotFoundError: If the file does not exist
        ChainConfigError: If the document is not a mapping
    """
    filepath = Path(path)
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ChainConfigError("general", f"Config file {filepath} must contain a mapping")
    return _expand_env_recursive(data)


_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} placeholders; unset variables are left as-is."""

    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


@dataclass(frozen=True)
class ForkSettings:
    """Session-wide knobs for fork provisioning and teardown."""
    base_port: int = DEFAULT_BASE_PORT
    host: str = LOCAL_HOST
    hardhat_port: int = HARDHAT_PORT
    fork_timeout: float = FORK_READY_TIMEOUT_S
    hardhat_timeout: float = HARDHAT_READY_TIMEOUT_S
    retry_interval: float = PROBE_RETRY_INTERVAL_S
    grace_period: float = CLEANUP_GRACE_PERIOD_S
    node_command: tuple = field(default=DEFAULT_NODE_COMMAND)
    chain_id_env: str = CHAIN_ID_ENV_VAR
    default_chain_id: int = DEFAULT_CHAIN_ID

    @property
    def hardhat_url(self) -> str:
        return self.local_url(self.hardhat_port)

    def local_url(self, port: int) -> str:
        return f"http://{self.host}:{port}"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ForkSettings":
        """
        Build settings from the "settings" section of a config file.

        Unknown keys are rejected so typos do not silently fall back to defaults.
        """
        if not data:
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ChainConfigError("general", f"Unknown settings: {', '.join(unknown)}")

        values = dict(data)
        if "node_command" in values:
            command = values["node_command"]
            if isinstance(command, str):
                command = command.split()
            values["node_command"] = tuple(command)
        return cls(**values)


def resolve_chain_config(
    chain_name: str,
    config: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    default_chain_id: int = DEFAULT_CHAIN_ID,
) -> ChainRuntimeConfig:
    """
    Resolve the fork parameters for a chain.

    Args:
        chain_name: Validated chain name
        config: Config mapping with optional "chains" section
        env: Environment mapping (defaults to os.environ)
        default_chain_id: Chain id used when nothing else is configured

    Returns:
        ChainRuntimeConfig

    Raises:
        ChainConfigError: If no RPC URL is configured or a value is malformed
    """
    env = os.environ if env is None else env
    overrides = _chain_overrides(chain_name, config)
    prefix = chain_name.upper()

    rpc_env = prefix + ENV_RPC_SUFFIX
    rpc_url = overrides.get("rpc_url") or env.get(rpc_env)
    if not rpc_url:
        raise ChainConfigError(
            chain_name,
            f"Missing required rpc_url for {chain_name} or {rpc_env} in environment",
        )

    try:
        chain_id = overrides.get("chain_id")
        if chain_id is None:
            chain_id = int(env.get(prefix + ENV_CHAIN_ID_SUFFIX) or default_chain_id)
        else:
            chain_id = int(chain_id)

        block_number = overrides.get("block_number")
        if block_number is None:
            block_env = env.get(prefix + ENV_BLOCK_SUFFIX)
            block_number = int(block_env) if block_env else None
        else:
            block_number = int(block_number)
    except (TypeError, ValueError) as e:
        raise ChainConfigError(chain_name, f"Configuration parsing failed: {e}") from e

    if block_number is None:
        logger.info(
            f"No fork block number configured for {chain_name}, forking from latest",
            extra={"context": {"chain": chain_name}},
        )

    return ChainRuntimeConfig(
        rpc_url=str(rpc_url),
        chain_id=chain_id,
        block_number=block_number,
    )


def _chain_overrides(chain_name: str, config: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not config:
        return {}
    chains = config.get("chains") or {}
    if not isinstance(chains, Mapping):
        raise ChainConfigError(chain_name, "'chains' section must be a mapping")
    overrides = chains.get(chain_name) or {}
    if not isinstance(overrides, Mapping):
        raise ChainConfigError(chain_name, "chain overrides must be a mapping")
    return overrides
