"""
Sensitivity Analyzer

Re-runs the statement engine with one headline parameter forced to a low
and a high value, holding every other parameter at the caller's vector, and
reports the swing in revenue, net income and operating cash flow relative to
the caller's own run.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from financial_math import quantize
from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import SimulationParameters, EngineNumbers, SensitivityDataPoint
from simulation_engine import compute_statements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensitivityTest:
    """A headline parameter and the extremes it is pushed to."""
    label: str
    parameter: str
    low: float
    high: float


SENSITIVITY_TESTS: Tuple[SensitivityTest, ...] = (
    SensitivityTest("Market Demand", "market_demand", 80, 120),
    SensitivityTest("Production Capacity", "production_capacity", 60, 100),
    SensitivityTest("Commodity Prices", "commodity_index", 80, 130),
    SensitivityTest("Interest Rate", "interest_rate", 3.0, 8.0),
    SensitivityTest("Inflation Rate", "inflation_rate", 1.0, 5.0),
)


def _impact(high: int, low: int, base: int) -> float:
    # A zero base metric is floored to 1.
    return quantize((high - low) / (abs(base) or 1) * 100, 1)


def compute_sensitivity(
    params: SimulationParameters,
    base_run: Optional[EngineNumbers] = None,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> List[SensitivityDataPoint]:
    """
    Build the sensitivity table for a parameter vector.

    Args:
        params: The caller's parameter vector
        base_run: Engine output for ``params``; computed if not supplied
        config: Baseline configuration shared by every re-run

    Returns:
        One SensitivityDataPoint per headline parameter, in fixed order
    """
    if base_run is None:
        base_run = compute_statements(params, config)

    points = []
    for test in SENSITIVITY_TESTS:
        low_run = compute_statements(params.replace(**{test.parameter: test.low}), config)
        high_run = compute_statements(params.replace(**{test.parameter: test.high}), config)

        points.append(SensitivityDataPoint(
            parameter=test.label,
            low_value=test.low,
            base_value=getattr(params, test.parameter),
            high_value=test.high,
            revenue_impact=_impact(high_run.revenue, low_run.revenue, base_run.revenue),
            net_income_impact=_impact(high_run.net_income, low_run.net_income, base_run.net_income),
            cash_flow_impact=_impact(high_run.cf_ops, low_run.cf_ops, base_run.cf_ops),
        ))

    logger.debug(f"Sensitivity computed for {len(points)} parameters")
    return points
