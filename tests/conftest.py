"""
Pytest fixtures for the statement engine test suite.

Provides:
- Structured logging configuration and a log capture fixture
- Deterministic clock
- Default classifier and service instances
"""

import json
import logging
from io import StringIO

import pytest

from statement_kernel.clock import DeterministicClock
from statement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from statement_engine.chart import ChartOfAccounts
from statement_engine.classifier import AccountClassifier
from statement_engine.config import ReportingConfig
from statement_engine.service import StatementService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture statement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, statement_service):
            statement_service.generate_statements(entries)
            logs = captured_logs()
            assert any(r["message"] == "statements_generated" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("statement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture(scope="session")
def default_chart() -> ChartOfAccounts:
    """The packaged chart of accounts, loaded once."""
    return ChartOfAccounts.default()


@pytest.fixture
def classifier(default_chart) -> AccountClassifier:
    return AccountClassifier(default_chart)


@pytest.fixture
def reporting_config() -> ReportingConfig:
    """Standard reporting configuration for tests."""
    return ReportingConfig.with_defaults()


@pytest.fixture
def statement_service(reporting_config, classifier, deterministic_clock) -> StatementService:
    """StatementService wired to the default chart and a fixed clock."""
    return StatementService(
        config=reporting_config,
        classifier=classifier,
        clock=deterministic_clock,
    )
