"""
Ratio & Health Scorer

Derives the standard ratio set from restated statements, and maps an engine
run to a 0-100 health score and a risk tier.

The thresholds and point values below are policy constants. They are not
derived from first principles; changing any of them changes scoring parity
with previously reported runs.
"""

from typing import Tuple
import logging

from financial_math import safe_div, quantize, to_pct, round_currency
from simulation_models import (
    BaselineFinancials,
    EngineNumbers,
    FinancialRatios,
    RiskLevel,
)

logger = logging.getLogger(__name__)


BASE_SCORE = 50
MIN_SCORE = 0
MAX_SCORE = 100

# (minimum score, tier), checked top-down
RISK_TIERS: Tuple[Tuple[int, RiskLevel], ...] = (
    (72, RiskLevel.LOW),
    (52, RiskLevel.MEDIUM),
    (32, RiskLevel.HIGH),
)


def compute_ratios(
    revenue: float,
    gross_profit: float,
    ebit: float,
    net_income: float,
    interest_expense: float,
    current_assets: float,
    current_liabilities: float,
    total_debt: float,
    total_equity: float,
    total_assets: float,
    ar_days: float,
    inventory_days: float,
    ap_days: float,
) -> FinancialRatios:
    """
    Compute the ratio set. Every division falls back to 0 on a zero denominator.

    Margins, ROE and ROA are percentages with one decimal; liquidity,
    leverage and efficiency ratios are multiples with two decimals.
    """
    return FinancialRatios(
        gross_margin=to_pct(safe_div(gross_profit, revenue)),
        operating_margin=to_pct(safe_div(ebit, revenue)),
        net_margin=to_pct(safe_div(net_income, revenue)),
        roe=to_pct(safe_div(net_income, total_equity)),
        roa=to_pct(safe_div(net_income, total_assets)),
        current_ratio=quantize(safe_div(current_assets, current_liabilities), 2),
        debt_to_equity=quantize(safe_div(total_debt, total_equity), 2),
        interest_coverage=quantize(safe_div(ebit, interest_expense), 2),
        asset_turnover=quantize(safe_div(revenue, total_assets), 2),
        cash_conversion_cycle=round_currency(ar_days + inventory_days - ap_days),
    )


def compute_health_score(engine: EngineNumbers, baseline: BaselineFinancials) -> int:
    """
    Score a run from 0 to 100.

    Starts at 50 and accumulates bounded adjustments from profitability,
    liquidity, leverage, growth, operating cash flow and net income trend.

    Args:
        engine: Output of the statement engine
        baseline: Baseline the growth and net income trend are measured against

    Returns:
        Score clamped to [0, 100]
    """
    r = engine.ratios
    score = BASE_SCORE

    # Profitability
    if r.gross_margin >= 45:
        score += 5
    elif r.gross_margin >= 35:
        score += 2
    elif r.gross_margin < 25:
        score -= 5

    if r.operating_margin >= 15:
        score += 5
    elif r.operating_margin >= 10:
        score += 2
    elif r.operating_margin < 5:
        score -= 5

    if r.net_margin >= 10:
        score += 5
    elif r.net_margin >= 5:
        score += 2
    elif r.net_margin < 0:
        score -= 10

    if r.roe >= 14:
        score += 5
    elif r.roe >= 10:
        score += 2
    elif r.roe < 5:
        score -= 5

    # Liquidity
    if r.current_ratio >= 2.0:
        score += 5
    elif r.current_ratio >= 1.5:
        score += 3
    elif r.current_ratio < 1.0:
        score -= 10

    # Leverage
    if r.debt_to_equity <= 0.5:
        score += 5
    elif r.debt_to_equity <= 1.0:
        score += 2
    elif r.debt_to_equity > 2.0:
        score -= 10

    if r.interest_coverage >= 8:
        score += 5
    elif r.interest_coverage >= 3:
        score += 2
    elif r.interest_coverage < 1.5:
        score -= 10

    # Growth against baseline revenue
    growth = safe_div(engine.revenue - baseline.revenue, baseline.revenue)
    if growth > 0.05:
        score += 5
    elif growth > 0:
        score += 2
    elif growth < -0.05:
        score -= 5

    # Operating cash flow
    if engine.cf_ops > 0:
        score += 3
    else:
        score -= 5

    # Net income trend
    if engine.net_income > baseline.net_income:
        score += 3
    elif engine.net_income < 0:
        score -= 8

    clamped = max(MIN_SCORE, min(MAX_SCORE, score))
    logger.debug(f"Health score raw={score} clamped={clamped}")
    return clamped


def risk_level_for_score(score: int) -> RiskLevel:
    """Map a health score to its risk tier (>=72 low, >=52 medium, >=32 high, else critical)."""
    for threshold, level in RISK_TIERS:
        if score >= threshold:
            return level
    return RiskLevel.CRITICAL
