"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the entire test suite.
"""

import tempfile
from pathlib import Path

import pytest

from rapprochement.core import config as config_module
from rapprochement.core.config import MatchingConfig
from rapprochement.reconciliation.datastore import JsonReconciliationStore

_MATCHING_ENV = [
    "MATCH_AMOUNT_TOLERANCE_PCT",
    "MATCH_DATE_WINDOW_DAYS",
    "MATCH_SUGGESTION_THRESHOLD",
    "MATCH_AUTO_THRESHOLD",
    "ANOMALY_AMOUNT_THRESHOLD",
    "MATCH_SUPPLIER_BOOST_MAX",
    "MATCH_ASSIGNMENT_STRATEGY",
    "MATCH_MAX_RUNTIME_SECONDS",
    "RAPPROCHEMENT_MATCHING_FILE",
]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def matching_config() -> MatchingConfig:
    """Default matching configuration."""
    return MatchingConfig()


@pytest.fixture
def store(temp_dir) -> JsonReconciliationStore:
    """JSON store rooted in a temporary tenants directory."""
    return JsonReconciliationStore(temp_dir / "tenants")


@pytest.fixture
def currency_test_cases() -> list[dict]:
    """Test cases for euro parsing and formatting."""
    return [
        {"input": "45,99 €", "cents": 4599, "formatted": "45,99 €"},
        {"input": "0,00", "cents": 0, "formatted": "0,00 €"},
        {"input": "1 234,56", "cents": 123456, "formatted": "1 234,56 €"},
        {"input": "-118.50", "cents": -11850, "formatted": "-118,50 €"},
    ]


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Set up test environment variables."""
    # Ensure tests don't use production data
    monkeypatch.setenv("RAPPROCHEMENT_ENV", "test")
    monkeypatch.setenv("RAPPROCHEMENT_DATA_DIR", str(tmp_path / "rapprochement_data"))

    # Tuning from the developer's shell must not leak into tests
    for name in _MATCHING_ENV:
        monkeypatch.delenv(name, raising=False)

    # Drop any cached global configuration
    monkeypatch.setattr(config_module, "_config", None)


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for complete workflows")
    config.addinivalue_line("markers", "matching: Tests for invoice/transaction matching")
    config.addinivalue_line("markers", "anomalies: Tests for anomaly detection")
    config.addinivalue_line("markers", "reconciliation: Tests for orchestration, storage and review")
    config.addinivalue_line("markers", "currency: Tests for currency handling and precision")
    config.addinivalue_line("markers", "cli: Tests for the command-line interface")
    config.addinivalue_line("markers", "slow: Tests that take significant time to run")
