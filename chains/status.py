"""
chains/status.py - Per-chain status tracking.

States:
- UNKNOWN: Provisioning started, node not yet answering
- RUNNING: Readiness probe succeeded
- STOPPED: Node exited with code 0
- ERROR: Non-zero exit, process error, probe timeout or failed provisioning

Transitions:
- UNKNOWN -> RUNNING | ERROR
- RUNNING -> STOPPED | ERROR
- Failed provisioning forces ERROR from any state (fail())
- STOPPED and ERROR are left only by record(), i.e. a fresh provisioning cycle
"""

import threading
from dataclasses import replace
from typing import Any, Optional

from core.constants import CHAIN_STATE_TRANSITIONS, ChainState, ProcessEventKind
from core.logging import get_logger
from core.models import ChainStatus, ProcessEvent

logger = get_logger(__name__)


class StatusTracker:
    """Thread-safe name -> ChainStatus registry enforcing the transition table."""

    def __init__(self):
        self._statuses: dict[str, ChainStatus] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._statuses)

    def __contains__(self, chain_name: str) -> bool:
        with self._lock:
            return chain_name in self._statuses

    def record(self, status: ChainStatus) -> ChainStatus:
        """Create or replace the record for status.name."""
        with self._lock:
            self._statuses[status.name] = status
        return status

    def update(self, chain_name: str, **changes: Any) -> Optional[ChainStatus]:
        """Change non-state fields of an existing record."""
        if "state" in changes:
            raise ValueError("Use transition() or fail() to change state")
        with self._lock:
            current = self._statuses.get(chain_name)
            if current is None:
                return None
            updated = replace(current, **changes)
            self._statuses[chain_name] = updated
            return updated

    def can_transition(self, chain_name: str, target: ChainState) -> bool:
        with self._lock:
            current = self._statuses.get(chain_name)
        if current is None:
            return False
        return target in CHAIN_STATE_TRANSITIONS[current.state]

    def transition(self, chain_name: str, target: ChainState, **changes: Any) -> bool:
        """
        Attempt a state transition.

        Returns:
            True if applied, False if the chain is untracked or the
            transition is not allowed from its current state
        """
        with self._lock:
            current = self._statuses.get(chain_name)
            if current is None or target not in CHAIN_STATE_TRANSITIONS[current.state]:
                allowed = False
            else:
                self._statuses[chain_name] = replace(current, state=target, **changes)
                allowed = True

        if not allowed:
            logger.debug(
                f"Ignored status transition for {chain_name}",
                extra={"context": {
                    "chain": chain_name,
                    "from": current.state.value if current else None,
                    "to": target.value,
                }},
            )
        return allowed

    def fail(self, chain_name: str, error: Optional[str] = None) -> ChainStatus:
        """Force ERROR after failed provisioning; the RPC URL is blanked."""
        with self._lock:
            current = self._statuses.get(chain_name) or ChainStatus(name=chain_name)
            failed = replace(current, state=ChainState.ERROR, rpc_url="", error=error)
            self._statuses[chain_name] = failed
            return failed

    def apply_event(self, event: ProcessEvent) -> bool:
        """Map a process lifecycle event onto a transition."""
        if event.clean_exit:
            return self.transition(event.chain_name, ChainState.STOPPED, exit_code=0)
        if event.kind == ProcessEventKind.EXIT:
            return self.transition(event.chain_name, ChainState.ERROR, exit_code=event.exit_code)
        return self.transition(event.chain_name, ChainState.ERROR, error=event.error)

    def get_chain_status(self, chain_name: str) -> ChainState:
        with self._lock:
            status = self._statuses.get(chain_name)
        return status.state if status else ChainState.UNKNOWN

    def get_chain_status_details(self, chain_name: str) -> Optional[ChainStatus]:
        with self._lock:
            return self._statuses.get(chain_name)

    def get_all_chain_statuses(self) -> dict[str, ChainStatus]:
        """Independent snapshot; records themselves are immutable."""
        with self._lock:
            return dict(self._statuses)

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()
