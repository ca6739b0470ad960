# PATH: core/models.py
"""
Data models for FORKMAN.

Records are frozen: a status change produces a new ChainStatus
rather than mutating the stored one.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from core.constants import ChainState, ProcessEventKind


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validator: hard errors plus non-fatal warnings."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ChainRuntimeConfig:
    """Resolved fork parameters for one chain."""
    rpc_url: str
    chain_id: int
    block_number: Optional[int] = None


@dataclass(frozen=True)
class ChainStatus:
    """
    Status record for one chain.

    rpc_url is the upstream URL for forked chains and the local
    endpoint for the hardhat chain; it is blanked when provisioning fails.
    """
    name: str
    state: ChainState = ChainState.UNKNOWN
    rpc_url: str = ""
    port: Optional[int] = None
    chain_id: Optional[int] = None
    block_number: Optional[int] = None
    process_id: Optional[int] = None
    exit_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass(frozen=True)
class ProcessEvent:
    """Lifecycle notification from a fork process."""
    chain_name: str
    kind: ProcessEventKind
    exit_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def clean_exit(self) -> bool:
        return self.kind == ProcessEventKind.EXIT and self.exit_code == 0
