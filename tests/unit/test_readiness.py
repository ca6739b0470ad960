# PATH: tests/unit/test_readiness.py
"""
Tests for the network readiness probe.
"""

import asyncio
import unittest

from chains.readiness import validate_network, wait_for_network
from core.exceptions import NetworkConnectionError


class FlakyProvider:
    """Fails a fixed number of times before reporting a block."""

    def __init__(self, url: str, failures: int, block_number: int = 42):
        self.url = url
        self.failures = failures
        self.block_number = block_number
        self.calls = 0
        self.closed = False

    async def get_block_number(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionRefusedError(f"attempt {self.calls} refused")
        return self.block_number, 1

    async def close(self):
        self.closed = True


class ProviderFactory:
    def __init__(self, failures: int):
        self.failures = failures
        self.created: list[FlakyProvider] = []

    def __call__(self, url: str) -> FlakyProvider:
        provider = FlakyProvider(url, self.failures)
        self.created.append(provider)
        return provider


class TestWaitForNetwork(unittest.TestCase):

    def test_ready_after_retries(self):
        factory = ProviderFactory(failures=2)

        block_number = asyncio.run(wait_for_network(
            "http://127.0.0.1:8546", 5.0, retry_interval=0.01, provider_factory=factory,
        ))

        self.assertEqual(block_number, 42)
        self.assertEqual(factory.created[0].calls, 3)
        self.assertTrue(factory.created[0].closed)

    def test_timeout_wraps_last_error(self):
        factory = ProviderFactory(failures=10_000)

        with self.assertRaises(NetworkConnectionError) as ctx:
            asyncio.run(wait_for_network(
                "http://127.0.0.1:8546", 0.1, retry_interval=0.01, provider_factory=factory,
            ))

        error = ctx.exception
        self.assertEqual(error.url, "http://127.0.0.1:8546")
        self.assertIsInstance(error.cause, ConnectionRefusedError)
        self.assertIn("refused", str(error))
        self.assertTrue(factory.created[0].closed)

    def test_zero_timeout_generic_error(self):
        """No attempt within the window gives a generic timeout cause."""
        factory = ProviderFactory(failures=0)

        with self.assertRaises(NetworkConnectionError) as ctx:
            asyncio.run(wait_for_network(
                "http://127.0.0.1:8546", 0, provider_factory=factory,
            ))

        self.assertIsInstance(ctx.exception.cause, TimeoutError)
        self.assertIn("did not respond within", str(ctx.exception))

    def test_invalid_url_fails_without_probing(self):
        factory = ProviderFactory(failures=0)

        with self.assertRaises(NetworkConnectionError) as ctx:
            asyncio.run(wait_for_network("ftp://example.org", 5.0, provider_factory=factory))

        self.assertIn("Invalid URL", str(ctx.exception))
        self.assertEqual(factory.created, [])


class TestValidateNetwork(unittest.TestCase):

    def test_true_when_ready(self):
        result = asyncio.run(validate_network(
            "http://127.0.0.1:8545", 1.0, retry_interval=0.01, provider_factory=ProviderFactory(0),
        ))

        self.assertTrue(result)

    def test_false_on_timeout(self):
        result = asyncio.run(validate_network(
            "http://127.0.0.1:8545", 0.05, retry_interval=0.01, provider_factory=ProviderFactory(10_000),
        ))

        self.assertFalse(result)

    def test_false_on_invalid_url(self):
        self.assertFalse(asyncio.run(validate_network("not a url", 1.0)))


if __name__ == "__main__":
    unittest.main()
