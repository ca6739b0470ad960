# PATH: core/validators.py
"""
Validators for chain names, RPC URLs and ports.

CONTRACTS:
- Pure functions, no shared state, never raise
- Always return ValidationResult(errors, warnings)
- Warnings are advisory; callers decide whether to log and continue

USAGE:
    from core.validators import validate_chain_name

    result = validate_chain_name("mainnet")
    if not result.is_valid:
        ...
"""

import re
from typing import Any
from urllib.parse import urlsplit

from core.constants import (
    ALLOWED_RPC_SCHEMES,
    CHAIN_NAME_PATTERN,
    CHAIN_NAME_SOFT_LIMIT,
    MAX_PORT,
    MIN_PORT,
    SAFE_PORT_FLOOR,
)
from core.models import ValidationResult

_CHAIN_NAME_RE = re.compile(CHAIN_NAME_PATTERN)


def validate_chain_name(chain_name: Any) -> ValidationResult:
    """
    Validate chain name format.

    Args:
        chain_name: Candidate chain name

    Returns:
        ValidationResult; long names only produce a warning
    """
    errors = []
    warnings = []

    if not isinstance(chain_name, str) or not chain_name.strip():
        errors.append("Chain name cannot be empty")
        return ValidationResult(errors, warnings)

    if not _CHAIN_NAME_RE.fullmatch(chain_name):
        errors.append(
            "Chain name can only contain letters, numbers, underscores, and hyphens"
        )

    if len(chain_name) > CHAIN_NAME_SOFT_LIMIT:
        warnings.append("Chain name is quite long, consider using a shorter name")

    return ValidationResult(errors, warnings)


def validate_rpc_url(url: Any) -> ValidationResult:
    """
    Validate RPC URL format.

    Accepts absolute http, https, ws and wss URLs only.
    """
    errors = []
    warnings = []

    if not isinstance(url, str) or not url.strip():
        errors.append("RPC URL cannot be empty")
        return ValidationResult(errors, warnings)

    try:
        parsed = urlsplit(url.strip())
        # Port access raises on out-of-range or non-numeric ports
        parsed.port
    except ValueError:
        errors.append("Invalid RPC URL format")
        return ValidationResult(errors, warnings)

    if not parsed.scheme or not parsed.netloc:
        errors.append("Invalid RPC URL format")
    elif parsed.scheme.lower() not in ALLOWED_RPC_SCHEMES:
        errors.append("RPC URL must use http, https, ws, or wss protocol")

    return ValidationResult(errors, warnings)


def validate_port(port: Any) -> ValidationResult:
    """Validate that a port is usable for a local fork."""
    errors = []
    warnings = []

    if isinstance(port, bool) or not isinstance(port, int):
        errors.append("Port must be an integer")
        return ValidationResult(errors, warnings)

    if port < MIN_PORT or port > MAX_PORT:
        errors.append(f"Port must be between {MIN_PORT} and {MAX_PORT}")

    if port < SAFE_PORT_FLOOR:
        warnings.append(
            f"Using a port below {SAFE_PORT_FLOOR} might conflict with system services"
        )

    return ValidationResult(errors, warnings)
