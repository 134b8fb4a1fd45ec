"""
Pytest configuration and fixtures for the simulator test suite

Markers:
    - unit: Fast unit tests
    - property: Property-based tests (Hypothesis)
    - metamorphic: Metamorphic relation tests
    - slow: Performance and stress tests (excluded by default)
    - integration: API tests through the FastAPI app
"""

import pytest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Fix Windows console encoding
if sys.platform == 'win32':
    import codecs
    sys.stdout = codecs.getwriter('utf-8')(sys.stdout.buffer, 'strict')
    sys.stderr = codecs.getwriter('utf-8')(sys.stderr.buffer, 'strict')

from simulation_config import DEFAULT_CONFIG, SimulationConfig
from simulation_models import BaselineFinancials
from simulation_engine import compute_statements


# ═══════════════════════════════════════════════════════════════════════════════
# PYTEST CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "property: Property-based tests (Hypothesis)")
    config.addinivalue_line("markers", "metamorphic: Metamorphic relation tests")
    config.addinivalue_line("markers", "slow: Performance/stress tests (excluded by default)")
    config.addinivalue_line("markers", "integration: API tests through the FastAPI app")


def pytest_addoption(parser):
    """Add custom CLI options."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests"
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# ═══════════════════════════════════════════════════════════════════════════════
# SIMULATION FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def config():
    """The default baseline company."""
    return DEFAULT_CONFIG


@pytest.fixture(scope="session")
def baseline(config):
    return config.financials


@pytest.fixture(scope="session")
def defaults(config):
    """Neutral parameter vector."""
    return config.defaults


@pytest.fixture(scope="session")
def baseline_run(config):
    """Engine output at the neutral parameters."""
    return compute_statements(config.defaults, config)


@pytest.fixture(scope="session")
def small_company_config():
    """A second, smaller baseline that still balances."""
    financials = BaselineFinancials(
        revenue=5_000_000,
        cogs=3_000_000,
        sga=1_000_000,
        rd=200_000,
        da=300_000,
        interest_expense=60_000,
        other_income=10_000,
        income_tax=100_000,
        cash=1_000_000,
        ar=600_000,
        inventory=400_000,
        prepaid=50_000,
        ppe=2_500_000,
        intangibles=300_000,
        goodwill=150_000,
        ap=450_000,
        short_term_debt=200_000,
        accrued_expenses=150_000,
        long_term_debt=1_000_000,
        deferred_tax=100_000,
        common_stock=1_000_000,
        retained_earnings=1_900_000,
        apic=200_000,
        capex_maintenance=200_000,
        capex_growth=100_000,
        acquisitions=0,
        debt_repayment=100_000,
        dividends=50_000,
    )
    return SimulationConfig.from_financials(financials)
