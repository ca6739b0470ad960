# PATH: tests/unit/test_logging_contract.py
"""
Tests specifically for logging contract enforcement.

No kwargs to logger; only extra={"context": {...}} allowed.
Fork node output goes to its own file and never reaches the console.
"""

import ast
import logging
import tempfile
import unittest
from pathlib import Path
from typing import List, Dict, Any

from core.logging import (
    ConsoleFormatter,
    StructuredFormatter,
    close_fork_logger,
    create_fork_logger,
)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

CHECKED_SOURCES = ["core", "chains", "config", "run_forks.py"]


class TestLoggingContractEnforcement(unittest.TestCase):
    """AST-based tests for logging contract."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}

    def _find_logger_violations(self, source_code: str) -> List[Dict[str, Any]]:
        """Find logger calls with invalid kwargs using AST."""
        violations = []

        try:
            tree = ast.parse(source_code)
        except SyntaxError:
            return violations

        for node in ast.walk(tree):
            if not isinstance(node, ast.Call):
                continue

            if not isinstance(node.func, ast.Attribute):
                continue

            method_name = node.func.attr
            if method_name not in ("debug", "info", "warning", "error", "critical", "exception"):
                continue

            obj = node.func.value
            is_logger = False

            if isinstance(obj, ast.Name):
                is_logger = "log" in obj.id.lower() or obj.id == "logger"
            elif isinstance(obj, ast.Attribute):
                is_logger = "log" in obj.attr.lower() or obj.attr == "logger"

            if not is_logger:
                continue

            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    violations.append({
                        "line": node.lineno,
                        "method": method_name,
                        "invalid_kwarg": kw.arg,
                    })

        return violations

    def _source_files(self) -> List[Path]:
        files = []
        for entry in CHECKED_SOURCES:
            path = PROJECT_ROOT / entry
            if path.is_dir():
                files.extend(sorted(path.rglob("*.py")))
            elif path.exists():
                files.append(path)
        return files

    def test_detects_violation(self):
        source = 'logger.info("Chain ready", chain="mainnet")'

        violations = self._find_logger_violations(source)

        self.assertEqual(violations, [{"line": 1, "method": "info", "invalid_kwarg": "chain"}])

    def test_sources_have_no_invalid_kwargs(self):
        """Every logger call in the package passes context through extra only."""
        files = self._source_files()
        self.assertTrue(files, "no sources found")

        messages = []
        for filepath in files:
            source = filepath.read_text(encoding="utf-8")
            for v in self._find_logger_violations(source):
                messages.append(
                    f"  {filepath.relative_to(PROJECT_ROOT)}:{v['line']}: "
                    f"logger.{v['method']}(..., {v['invalid_kwarg']}=...)"
                )

        if messages:
            self.fail(f"Found {len(messages)} logging violations:\n" + "\n".join(messages))


class TestLoggingContextCapture(unittest.TestCase):
    """Tests that context is properly captured in log records."""

    def setUp(self):
        self.captured_records = []

        class CapturingHandler(logging.Handler):
            def __init__(self, records_list):
                super().__init__()
                self.records = records_list

            def emit(self, record):
                self.records.append(record)

        self.logger = logging.getLogger(f"test_capture_{id(self)}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers = []
        self.handler = CapturingHandler(self.captured_records)
        self.logger.addHandler(self.handler)

    def test_context_captured_in_record(self):
        self.logger.info(
            "Forking mainnet on port 8546",
            extra={"context": {"chain": "mainnet", "port": 8546}}
        )

        self.assertEqual(len(self.captured_records), 1)
        record = self.captured_records[0]

        self.assertTrue(hasattr(record, "context"))
        self.assertEqual(record.context["chain"], "mainnet")
        self.assertEqual(record.context["port"], 8546)

    def test_structured_formatter(self):
        self.logger.warning(
            "Force killed process for mainnet",
            extra={"context": {"chain": "mainnet", "pid": 4242}}
        )

        line = StructuredFormatter().format(self.captured_records[0])

        self.assertIn('"level": "WARNING"', line)
        self.assertIn('"pid": 4242', line)

    def test_console_formatter_truncates_context(self):
        self.logger.info(
            "All chains ready",
            extra={"context": {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5}}
        )

        line = ConsoleFormatter().format(self.captured_records[0])

        self.assertIn("All chains ready", line)
        self.assertIn("a=1, b=2, c=3", line)
        self.assertIn("(+2 more)", line)

    def test_exc_info_with_context(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            self.logger.error(
                "Caught error",
                exc_info=True,
                extra={"context": {"operation": "cleanup"}}
            )

        record = self.captured_records[0]
        self.assertIsNotNone(record.exc_info)
        self.assertEqual(record.context["operation"], "cleanup")


class TestForkLogger(unittest.TestCase):

    def test_writes_node_output_to_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_dir = Path(tmp) / "logs"
            node_logger = create_fork_logger("mainnet", log_dir)
            try:
                node_logger.info("Started HTTP and WebSocket JSON-RPC server at 127.0.0.1:8546")
                node_logger.info("eth_blockNumber")
            finally:
                close_fork_logger(node_logger)

            content = (log_dir / "mainnet-node.log").read_text(encoding="utf-8")

        self.assertEqual(
            content.splitlines(),
            ["Started HTTP and WebSocket JSON-RPC server at 127.0.0.1:8546", "eth_blockNumber"],
        )
        self.assertFalse(node_logger.propagate)
        self.assertEqual(node_logger.handlers, [])

    def test_recreate_truncates(self):
        with tempfile.TemporaryDirectory() as tmp:
            first = create_fork_logger("sepolia", tmp)
            first.info("old run")
            close_fork_logger(first)

            second = create_fork_logger("sepolia", tmp)
            second.info("new run")
            close_fork_logger(second)

            content = (Path(tmp) / "sepolia-node.log").read_text(encoding="utf-8")

        self.assertEqual(content, "new run\n")


if __name__ == "__main__":
    unittest.main()
