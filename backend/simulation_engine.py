"""
Deterministic Financial Statement Engine

Restates P&L, Balance Sheet and Cash Flow from a parameter vector and an
immutable baseline position. No AI is involved in any number produced here.

Key invariants:
- same inputs = same outputs (pure function, no hidden state)
- total assets == total liabilities + total equity, by construction (cash plug)
- net cash change == CFO + CFI + CFF, by construction (CFO residual)

Every line item is rounded to whole currency units at the point where it is
computed; subtotals are sums of already-rounded lines.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple
import logging

from financial_math import safe_div, round_currency, DAYS_PER_YEAR
from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import (
    SimulationParameters,
    EngineNumbers,
    DriverContribution,
)
from ratio_scorer import compute_ratios

logger = logging.getLogger(__name__)


# =============================================================================
# ELASTICITY TABLES
# =============================================================================

class DeviationMode(str, Enum):
    """How a parameter's deviation from its default is measured."""
    RELATIVE = "relative"              # (value - default) / default
    POINTS = "points"                  # value - default
    PERCENT_POINTS = "percent_points"  # (value - default) / 100
    PERCENT_LEVEL = "percent_level"    # value / 100
    DAYS_LEVEL = "days_level"          # value / 365


# (parameter, weight, mode). Order is the order of accumulation.
REVENUE_ELASTICITIES: Tuple[Tuple[str, float, DeviationMode], ...] = (
    ("production_capacity", 0.35, DeviationMode.RELATIVE),
    ("market_demand", 0.55, DeviationMode.RELATIVE),
    ("sales_conversion", 0.12, DeviationMode.RELATIVE),
    ("customer_churn", -0.70, DeviationMode.PERCENT_POINTS),
    ("discount", -0.006, DeviationMode.POINTS),
    ("consumer_confidence", 0.20, DeviationMode.RELATIVE),
    ("gdp_growth", 0.022, DeviationMode.POINTS),
    ("competition_index", -0.18, DeviationMode.RELATIVE),
    ("customer_sentiment", 0.15, DeviationMode.RELATIVE),
    ("pmi", 0.12, DeviationMode.RELATIVE),
    ("unemployment_rate", -0.018, DeviationMode.POINTS),
    ("cyber_attack_downtime", -1.0, DeviationMode.DAYS_LEVEL),
    ("revenue_shock", 1.0, DeviationMode.PERCENT_LEVEL),
    ("forex_rate", 0.08, DeviationMode.RELATIVE),  # export exposure
)

# (parameter, weight, mode, COGS-mix share the weight is scaled by)
COGS_COST_DRIVERS: Tuple[Tuple[str, float, DeviationMode, Optional[str]], ...] = (
    ("commodity_index", 0.85, DeviationMode.RELATIVE, "materials"),
    ("freight_rates", 0.12, DeviationMode.RELATIVE, None),
    ("salary_inflation", 0.55, DeviationMode.RELATIVE, "labor"),
    ("headcount_change", 0.70, DeviationMode.PERCENT_LEVEL, "labor"),
    ("supply_disruption", 0.35, DeviationMode.PERCENT_LEVEL, None),
    ("inflation_rate", 0.18, DeviationMode.RELATIVE, None),
    ("supplier_lead_time", 0.04, DeviationMode.RELATIVE, None),
    ("inventory_turnover", -0.025, DeviationMode.RELATIVE, None),
)

SGA_COST_DRIVERS: Tuple[Tuple[str, float, DeviationMode], ...] = (
    ("salary_inflation", 0.55, DeviationMode.RELATIVE),   # people share
    ("headcount_change", 0.45, DeviationMode.PERCENT_LEVEL),
    ("inflation_rate", 0.12, DeviationMode.RELATIVE),     # non-people share
)

VARIABLE_COGS_SHARE = 0.70
SEMI_FIXED_COGS_SHARE = 0.30
FALLBACK_MIX = {"materials": 0.4, "labor": 0.3}

INCREMENTAL_DEPRECIATION_RATE = 0.10  # 10-year life on capex above baseline
YIELD_CURVE_PENALTY_PER_POINT = 50_000
GROWTH_CAPEX_DEBT_SHARE = 0.50


def _deviation(value: float, default: float, mode: DeviationMode) -> float:
    if mode == DeviationMode.RELATIVE:
        return safe_div(value - default, default)
    if mode == DeviationMode.POINTS:
        return value - default
    if mode == DeviationMode.PERCENT_POINTS:
        return (value - default) / 100
    if mode == DeviationMode.PERCENT_LEVEL:
        return value / 100
    return value / DAYS_PER_YEAR


def _cogs_mix(params: SimulationParameters) -> Dict[str, float]:
    """Materials and labor shares of COGS, normalised over the three-way mix."""
    total = params.cogs_materials + params.cogs_labor + params.cogs_overhead
    if total <= 0:
        return dict(FALLBACK_MIX)
    return {
        "materials": params.cogs_materials / total,
        "labor": params.cogs_labor / total,
    }


# =============================================================================
# STAGES
# =============================================================================

def _compute_revenue(
    params: SimulationParameters,
    config: SimulationConfig,
    drivers: List[DriverContribution],
) -> int:
    defaults = config.defaults
    revenue_delta = 0.0
    for name, weight, mode in REVENUE_ELASTICITIES:
        contribution = _deviation(getattr(params, name), getattr(defaults, name), mode) * weight
        revenue_delta += contribution
        drivers.append(DriverContribution("revenue", name, weight, contribution))

    drivers.append(DriverContribution(
        "revenue", "new_product_impact", 1.0, params.new_product_impact, unit="currency",
    ))
    return round_currency(config.financials.revenue * (1 + revenue_delta) + params.new_product_impact)


def _compute_cogs(
    params: SimulationParameters,
    config: SimulationConfig,
    revenue: int,
    drivers: List[DriverContribution],
) -> int:
    """Variable share scales with volume and cost drivers; semi-fixed share with cost drivers only."""
    base = config.financials
    defaults = config.defaults
    mix = _cogs_mix(params)

    cost_multiplier = 1.0
    for name, weight, mode, share in COGS_COST_DRIVERS:
        effective_weight = weight * mix[share] if share else weight
        contribution = _deviation(getattr(params, name), getattr(defaults, name), mode) * effective_weight
        cost_multiplier += contribution
        drivers.append(DriverContribution("cogs", name, effective_weight, contribution))

    revenue_ratio = revenue / base.revenue
    variable = base.cogs * VARIABLE_COGS_SHARE * revenue_ratio * cost_multiplier
    semi_fixed = base.cogs * SEMI_FIXED_COGS_SHARE * cost_multiplier
    return round_currency(variable + semi_fixed)


def _compute_operating_expenses(
    params: SimulationParameters,
    config: SimulationConfig,
    drivers: List[DriverContribution],
) -> Dict[str, int]:
    base = config.financials
    defaults = config.defaults

    sga_multiplier = 1.0
    for name, weight, mode in SGA_COST_DRIVERS:
        contribution = _deviation(getattr(params, name), getattr(defaults, name), mode) * weight
        sga_multiplier += contribution
        drivers.append(DriverContribution("sga", name, weight, contribution))
    drivers.append(DriverContribution("sga", "esg_penalty", 1.0, params.esg_penalty, unit="currency"))
    sga = round_currency(base.sga * sga_multiplier + params.esg_penalty)

    rd = round_currency(params.rd_expenditure)

    capex_excess = max(0.0, params.capex_maintenance + params.capex_growth - base.total_capex)
    incremental = capex_excess * INCREMENTAL_DEPRECIATION_RATE
    drivers.append(DriverContribution("da", "depreciation", 1.0, params.depreciation, unit="currency"))
    drivers.append(DriverContribution(
        "da", "capex", INCREMENTAL_DEPRECIATION_RATE, incremental, unit="currency",
    ))
    da = round_currency(params.depreciation + incremental)

    return {"sga": sga, "rd": rd, "da": da, "total_opex": sga + rd + da}


def _compute_interest(
    params: SimulationParameters,
    config: SimulationConfig,
    drivers: List[DriverContribution],
) -> int:
    """Debt cost at the shifted blended rate, plus a penalty on yield-curve flattening/inversion."""
    base = config.financials
    defaults = config.defaults

    rate_shift = 0.0
    for name in ("interest_rate", "credit_spread"):
        contribution = _deviation(getattr(params, name), getattr(defaults, name), DeviationMode.PERCENT_POINTS)
        rate_shift += contribution
        drivers.append(DriverContribution("interest", name, 1.0, contribution, unit="rate"))

    effective_rate = max(0.0, base.effective_rate + rate_shift)
    interest = round_currency(base.total_debt * effective_rate)

    spread_delta = params.bond_yield_spread - defaults.bond_yield_spread
    penalty = round_currency(abs(spread_delta) * YIELD_CURVE_PENALTY_PER_POINT) if spread_delta < 0 else 0
    drivers.append(DriverContribution(
        "interest", "bond_yield_spread", YIELD_CURVE_PENALTY_PER_POINT, penalty, unit="currency",
    ))
    return interest + penalty


def _compute_balance_sheet(
    params: SimulationParameters,
    config: SimulationConfig,
    pl: Dict[str, int],
) -> Dict[str, int]:
    """Working capital from day counts; cash is solved as the balancing plug."""
    base = config.financials

    daily_revenue = pl["revenue"] / DAYS_PER_YEAR
    daily_cogs = pl["cogs"] / DAYS_PER_YEAR
    ar = round_currency(daily_revenue * params.ar_days)
    inventory = round_currency(daily_cogs * params.inventory_days)
    ap = round_currency(daily_cogs * params.ap_days)

    ppe = round_currency(base.opening_ppe + params.capex_maintenance + params.capex_growth - pl["da"])
    non_current_assets = ppe + base.intangibles + base.goodwill

    growth_excess = max(0.0, params.capex_growth - config.defaults.capex_growth)
    long_term_debt = round_currency(base.long_term_debt + growth_excess * GROWTH_CAPEX_DEBT_SHARE)

    current_liabilities = ap + base.short_term_debt + base.accrued_expenses
    non_current_liabilities = long_term_debt + base.deferred_tax
    total_liabilities = current_liabilities + non_current_liabilities

    retained_earnings = round_currency(base.retained_earnings + pl["net_income"] - base.net_income)
    total_equity = base.common_stock + retained_earnings + base.apic

    non_cash_assets = ar + inventory + base.prepaid + non_current_assets
    cash = total_liabilities + total_equity - non_cash_assets

    current_assets = cash + ar + inventory + base.prepaid
    total_assets = current_assets + non_current_assets

    logger.debug(f"Balance sheet plug: cash={cash:,} total_assets={total_assets:,}")

    return {
        "cash": cash,
        "ar": ar,
        "inventory": inventory,
        "prepaid": base.prepaid,
        "current_assets": current_assets,
        "ppe": ppe,
        "intangibles": base.intangibles,
        "goodwill": base.goodwill,
        "non_current_assets": non_current_assets,
        "total_assets": total_assets,
        "ap": ap,
        "short_term_debt": base.short_term_debt,
        "accrued_expenses": base.accrued_expenses,
        "current_liabilities": current_liabilities,
        "long_term_debt": long_term_debt,
        "deferred_tax": base.deferred_tax,
        "non_current_liabilities": non_current_liabilities,
        "total_liabilities": total_liabilities,
        "common_stock": base.common_stock,
        "retained_earnings": retained_earnings,
        "apic": base.apic,
        "total_equity": total_equity,
    }


def _compute_cash_flow(
    params: SimulationParameters,
    config: SimulationConfig,
    pl: Dict[str, int],
    bs: Dict[str, int],
) -> Dict[str, int]:
    """CFI and CFF are explicit; CFO and then working capital are residuals."""
    base = config.financials

    capex = -round_currency(params.capex_maintenance + params.capex_growth)
    acquisitions = -base.acquisitions
    cf_investing = capex + acquisitions

    new_borrowings = max(0, bs["long_term_debt"] - base.long_term_debt)
    debt_repayment = -base.debt_repayment
    dividends = -base.dividends
    cf_financing = debt_repayment + new_borrowings + dividends

    net_cash_change = bs["cash"] - base.cash
    cf_ops = net_cash_change - cf_investing - cf_financing
    wc_changes = cf_ops - pl["net_income"] - pl["da"]

    return {
        "cf_ops": cf_ops,
        "cf_investing": cf_investing,
        "cf_financing": cf_financing,
        "net_cash_change": net_cash_change,
        "wc_changes": wc_changes,
        "capex": capex,
        "acquisitions": acquisitions,
        "debt_repayment": debt_repayment,
        "new_borrowings": new_borrowings,
        "dividends": dividends,
    }


# =============================================================================
# ENTRY POINT
# =============================================================================

def compute_statements(
    params: SimulationParameters,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> EngineNumbers:
    """
    Compute one internally consistent set of restated statements.

    Never raises for numeric input: out-of-range parameters are computed
    through the formulas as given.

    Args:
        params: Parameter vector for this run
        config: Baseline financials and neutral parameter vector

    Returns:
        EngineNumbers with every P&L, Balance Sheet and Cash Flow line,
        the derived ratios and the per-parameter driver contributions
    """
    base = config.financials
    drivers: List[DriverContribution] = []

    revenue = _compute_revenue(params, config, drivers)
    cogs = _compute_cogs(params, config, revenue, drivers)
    gross_profit = revenue - cogs

    opex = _compute_operating_expenses(params, config, drivers)
    ebit = gross_profit - opex["total_opex"]

    interest_expense = _compute_interest(params, config, drivers)
    other_income = base.other_income
    ebt = ebit - interest_expense + other_income
    # No loss carry-back or carry-forward is recognised.
    tax = round_currency(ebt * base.tax_rate) if ebt > 0 else 0
    net_income = ebt - tax

    logger.debug(f"Computed revenue={revenue:,} ebit={ebit:,} net_income={net_income:,}")

    pl = {
        "revenue": revenue,
        "cogs": cogs,
        "gross_profit": gross_profit,
        **opex,
        "ebit": ebit,
        "interest_expense": interest_expense,
        "other_income": other_income,
        "ebt": ebt,
        "tax": tax,
        "net_income": net_income,
    }
    bs = _compute_balance_sheet(params, config, pl)
    cf = _compute_cash_flow(params, config, pl, bs)

    ratios = compute_ratios(
        revenue=revenue,
        gross_profit=gross_profit,
        ebit=ebit,
        net_income=net_income,
        interest_expense=interest_expense,
        current_assets=bs["current_assets"],
        current_liabilities=bs["current_liabilities"],
        total_debt=bs["short_term_debt"] + bs["long_term_debt"],
        total_equity=bs["total_equity"],
        total_assets=bs["total_assets"],
        ar_days=params.ar_days,
        inventory_days=params.inventory_days,
        ap_days=params.ap_days,
    )

    return EngineNumbers(**pl, **bs, **cf, ratios=ratios, drivers=tuple(drivers))
