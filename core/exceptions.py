# PATH: core/exceptions.py
"""
Typed exceptions for FORKMAN.

Closed set: configuration, network connection, process cleanup.
Each carries the chain or URL it concerns and, where there is one,
the underlying cause.
"""

from typing import Optional

from core.constants import ErrorCode


class ForkError(Exception):
    """Base exception for FORKMAN."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[dict] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self):
        return f"[{self.code.value}] {self.message}"


class ChainConfigError(ForkError):
    """Invalid or missing chain configuration (name, URL, port, RPC URL)."""

    def __init__(self, chain_name: str, issue: str):
        super().__init__(
            f"Chain '{chain_name}' configuration error: {issue}",
            code=ErrorCode.CONFIG_INVALID,
            details={"chain": chain_name, "issue": issue},
        )
        self.chain_name = chain_name
        self.issue = issue


class NetworkConnectionError(ForkError):
    """Endpoint unreachable in the allotted time, or the URL was invalid."""

    def __init__(self, url: str, cause: BaseException):
        super().__init__(
            f"Failed to connect to network at {url}: {_describe(cause)}",
            code=ErrorCode.NETWORK_UNREACHABLE,
            details={"url": url},
            cause=cause,
        )
        self.url = url


class ProcessCleanupError(ForkError):
    """A termination signal could not be delivered to a fork process."""

    def __init__(self, chain_name: str, cause: BaseException):
        super().__init__(
            f"Failed to cleanup process for chain '{chain_name}': {_describe(cause)}",
            code=ErrorCode.PROCESS_CLEANUP_FAILED,
            details={"chain": chain_name},
            cause=cause,
        )
        self.chain_name = chain_name


def _describe(error: BaseException) -> str:
    # Nested ForkErrors read better without their code prefix
    if isinstance(error, ForkError):
        return error.message
    return str(error) or type(error).__name__
