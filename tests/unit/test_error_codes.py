# PATH: tests/unit/test_error_codes.py
"""
Tests for the exception taxonomy and error codes.
"""

import unittest

from core.constants import ErrorCode
from core.exceptions import (
    ChainConfigError,
    ForkError,
    NetworkConnectionError,
    ProcessCleanupError,
)


class TestChainConfigError(unittest.TestCase):

    def test_message_and_code(self):
        error = ChainConfigError("mainnet", "Missing required rpc_url")

        self.assertIsInstance(error, ForkError)
        self.assertEqual(error.code, ErrorCode.CONFIG_INVALID)
        self.assertEqual(error.chain_name, "mainnet")
        self.assertEqual(error.issue, "Missing required rpc_url")
        self.assertEqual(
            str(error),
            "[CONFIG_INVALID] Chain 'mainnet' configuration error: Missing required rpc_url",
        )

    def test_details(self):
        error = ChainConfigError("general", "No chains specified for setup")

        self.assertEqual(error.details, {"chain": "general", "issue": "No chains specified for setup"})
        self.assertIsNone(error.cause)


class TestNetworkConnectionError(unittest.TestCase):

    def test_wraps_cause(self):
        cause = ConnectionRefusedError("connection refused")
        error = NetworkConnectionError("http://127.0.0.1:8546", cause)

        self.assertEqual(error.code, ErrorCode.NETWORK_UNREACHABLE)
        self.assertEqual(error.url, "http://127.0.0.1:8546")
        self.assertIs(error.cause, cause)
        self.assertIs(error.__cause__, cause)
        self.assertIn("connection refused", str(error))

    def test_nested_fork_error_drops_code_prefix(self):
        inner = NetworkConnectionError("http://a", RuntimeError("boom"))
        outer = NetworkConnectionError("http://b", inner)

        self.assertEqual(
            outer.message,
            "Failed to connect to network at http://b: Failed to connect to network at http://a: boom",
        )

    def test_empty_cause_message_uses_type_name(self):
        error = NetworkConnectionError("http://a", TimeoutError())

        self.assertTrue(error.message.endswith("TimeoutError"))


class TestProcessCleanupError(unittest.TestCase):

    def test_names_chain(self):
        cause = ProcessLookupError("No such process")
        error = ProcessCleanupError("sepolia", cause)

        self.assertEqual(error.code, ErrorCode.PROCESS_CLEANUP_FAILED)
        self.assertEqual(error.chain_name, "sepolia")
        self.assertIs(error.cause, cause)
        self.assertEqual(
            error.message,
            "Failed to cleanup process for chain 'sepolia': No such process",
        )


if __name__ == "__main__":
    unittest.main()
