"""
Result Assembler

Packages statement engine, scorer, sensitivity and waterfall output into the
externally consumed SimulationResult. Only numeric fields are filled here;
the narrative fields are merged later by the commentary step.
"""

from typing import Dict, List, Optional
import logging

from financial_math import format_value
from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import (
    SimulationParameters,
    EngineNumbers,
    SensitivityDataPoint,
    SimulationResult,
    StatementLine,
    BalanceSheetStatement,
    MetricComparison,
    EconomicTrend,
    RatioComparison,
)
from simulation_engine import compute_statements
from ratio_scorer import compute_health_score, risk_level_for_score
from sensitivity_analyzer import compute_sensitivity
from waterfall_builder import build_waterfall

logger = logging.getLogger(__name__)


NO_CHANGES_SUMMARY = "All parameters at baseline (no changes)."

# (label, ratio attribute, unit)
RATIO_ROWS = (
    ("Gross Margin", "gross_margin", "%"),
    ("Operating Margin", "operating_margin", "%"),
    ("Net Margin", "net_margin", "%"),
    ("ROE", "roe", "%"),
    ("ROA", "roa", "%"),
    ("Current Ratio", "current_ratio", "x"),
    ("Debt/Equity", "debt_to_equity", "x"),
    ("Interest Coverage", "interest_coverage", "x"),
    ("Asset Turnover", "asset_turnover", "x"),
    ("Cash Conversion Cycle", "cash_conversion_cycle", "days"),
)

# (label, parameter)
ECONOMIC_TREND_FIELDS = (
    ("GDP Growth", "gdp_growth"),
    ("Inflation Rate", "inflation_rate"),
    ("Interest Rate", "interest_rate"),
    ("Unemployment", "unemployment_rate"),
    ("Consumer Confidence", "consumer_confidence"),
    ("PMI", "pmi"),
    ("Forex (USD/INR)", "forex_rate"),
    ("Commodity Index", "commodity_index"),
)


# ═══════════════════════════════════════════════════════════════════════════════
# STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════════

def build_profit_and_loss(engine: EngineNumbers) -> List[StatementLine]:
    """P&L lines with expenses shown as negative amounts."""
    return [
        StatementLine("Revenue", engine.revenue),
        StatementLine("Cost of Goods Sold", -engine.cogs),
        StatementLine("Gross Profit", engine.gross_profit, is_total=True),
        StatementLine("Selling, General & Admin", -engine.sga),
        StatementLine("Research & Development", -engine.rd),
        StatementLine("Depreciation & Amortization", -engine.da),
        StatementLine("Total Operating Expenses", -engine.total_opex, is_total=True),
        StatementLine("Operating Income (EBIT)", engine.ebit, is_total=True),
        StatementLine("Interest Expense", -engine.interest_expense),
        StatementLine("Other Income / (Expense)", engine.other_income),
        StatementLine("Earnings Before Tax (EBT)", engine.ebt, is_total=True),
        StatementLine("Income Tax Expense", -engine.tax),
        StatementLine("Net Income", engine.net_income, is_total=True),
    ]


def build_balance_sheet(engine: EngineNumbers) -> BalanceSheetStatement:
    return BalanceSheetStatement(
        assets=(
            StatementLine("Cash and Equivalents", engine.cash),
            StatementLine("Accounts Receivable", engine.ar),
            StatementLine("Inventory", engine.inventory),
            StatementLine("Prepaid Expenses", engine.prepaid),
            StatementLine("Current Assets", engine.current_assets, is_total=True),
            StatementLine("Property, Plant & Equipment", engine.ppe),
            StatementLine("Intangible Assets", engine.intangibles),
            StatementLine("Goodwill", engine.goodwill),
            StatementLine("Non-Current Assets", engine.non_current_assets, is_total=True),
            StatementLine("Total Assets", engine.total_assets, is_total=True),
        ),
        liabilities=(
            StatementLine("Accounts Payable", engine.ap),
            StatementLine("Short-term Debt", engine.short_term_debt),
            StatementLine("Accrued Expenses", engine.accrued_expenses),
            StatementLine("Current Liabilities", engine.current_liabilities, is_total=True),
            StatementLine("Long-term Debt", engine.long_term_debt),
            StatementLine("Deferred Tax Liabilities", engine.deferred_tax),
            StatementLine("Non-Current Liabilities", engine.non_current_liabilities, is_total=True),
            StatementLine("Total Liabilities", engine.total_liabilities, is_total=True),
        ),
        equity=(
            StatementLine("Common Stock", engine.common_stock),
            StatementLine("Retained Earnings", engine.retained_earnings),
            StatementLine("Additional Paid-in Capital", engine.apic),
            StatementLine("Total Equity", engine.total_equity, is_total=True),
            StatementLine(
                "Total Liabilities & Equity",
                engine.total_liabilities + engine.total_equity,
                is_total=True,
            ),
        ),
    )


def build_cash_flow(engine: EngineNumbers) -> List[StatementLine]:
    return [
        StatementLine("Net Income", engine.net_income),
        StatementLine("Depreciation & Amortization", engine.da),
        StatementLine("Changes in Working Capital", engine.wc_changes),
        StatementLine("Cash from Operations", engine.cf_ops, is_total=True),
        StatementLine("Capital Expenditures", engine.capex),
        StatementLine("Acquisitions", engine.acquisitions),
        StatementLine("Cash from Investing", engine.cf_investing, is_total=True),
        StatementLine("Debt Repayment", engine.debt_repayment),
        StatementLine("New Borrowings", engine.new_borrowings),
        StatementLine("Dividends Paid", engine.dividends),
        StatementLine("Cash from Financing", engine.cf_financing, is_total=True),
        StatementLine("Net Change in Cash", engine.net_cash_change, is_total=True),
    ]


def statement_amounts(engine: EngineNumbers) -> Dict[str, int]:
    """
    Amount of every assembled line keyed by its label.

    "Net Income" and "Depreciation & Amortization" appear on two statements;
    the P&L occurrence is kept.
    """
    balance_sheet = build_balance_sheet(engine)
    lines = (
        build_profit_and_loss(engine)
        + list(balance_sheet.assets + balance_sheet.liabilities + balance_sheet.equity)
        + build_cash_flow(engine)
    )
    amounts: Dict[str, int] = {}
    for line in lines:
        amounts.setdefault(line.item, line.amount)
    return amounts


# ═══════════════════════════════════════════════════════════════════════════════
# COMPARISONS
# ═══════════════════════════════════════════════════════════════════════════════

def build_key_metrics(engine: EngineNumbers, baseline_run: EngineNumbers) -> List[MetricComparison]:
    """Headline metrics, original vs simulated."""
    pairs = (
        ("Revenue", "revenue"),
        ("Gross Profit", "gross_profit"),
        ("EBIT", "ebit"),
        ("Net Income", "net_income"),
        ("Total Assets", "total_assets"),
        ("Operating Cash Flow", "cf_ops"),
    )
    metrics = [
        MetricComparison(name, getattr(baseline_run, attr), getattr(engine, attr))
        for name, attr in pairs
    ]
    # capex is already signed as an outflow
    metrics.append(MetricComparison(
        "Free Cash Flow",
        baseline_run.cf_ops + baseline_run.capex,
        engine.cf_ops + engine.capex,
    ))
    return metrics


def build_ratio_comparison(engine: EngineNumbers, baseline_run: EngineNumbers) -> List[RatioComparison]:
    return [
        RatioComparison(
            name=label,
            original=getattr(baseline_run.ratios, attr),
            simulated=getattr(engine.ratios, attr),
            unit=unit,
        )
        for label, attr, unit in RATIO_ROWS
    ]


def build_economic_trends(params: SimulationParameters) -> List[EconomicTrend]:
    return [EconomicTrend(label, getattr(params, attr)) for label, attr in ECONOMIC_TREND_FIELDS]


def summarize_parameter_changes(
    params: SimulationParameters,
    defaults: SimulationParameters,
) -> str:
    """
    One-line summary of the parameters that moved from their defaults.

    Example: "Modified parameters: discount: 5 → 15; pmi: 50 → 55"
    """
    changed = [
        f"{name}: {format_value(default)} → {format_value(value)}"
        for name, default, value in params.changed_fields(defaults)
    ]
    if not changed:
        return NO_CHANGES_SUMMARY
    return f"Modified parameters: {'; '.join(changed)}"


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINTS
# ═══════════════════════════════════════════════════════════════════════════════

def build_simulation_result(
    params: SimulationParameters,
    engine: EngineNumbers,
    sensitivity: List[SensitivityDataPoint],
    config: SimulationConfig = DEFAULT_CONFIG,
    baseline_run: Optional[EngineNumbers] = None,
) -> SimulationResult:
    """
    Assemble the numeric SimulationResult for one run.

    Args:
        params: Parameter vector the run used
        engine: Engine output for ``params``
        sensitivity: Sensitivity rows for ``params``
        config: Baseline configuration
        baseline_run: Engine output at the neutral parameters; computed if
            not supplied. The "original" side of every comparison comes
            from it.

    Returns:
        SimulationResult with empty narrative fields
    """
    if baseline_run is None:
        baseline_run = compute_statements(config.defaults, config)

    score = compute_health_score(engine, config.financials)

    return SimulationResult(
        simulation_parameters=summarize_parameter_changes(params, config.defaults),
        simulated_profit_and_loss=build_profit_and_loss(engine),
        simulated_balance_sheet=build_balance_sheet(engine),
        simulated_cash_flow=build_cash_flow(engine),
        key_metrics=build_key_metrics(engine, baseline_run),
        economic_trends=build_economic_trends(params),
        financial_ratios=build_ratio_comparison(engine, baseline_run),
        waterfall_data=build_waterfall(engine, config),
        sensitivity_data=list(sensitivity),
        overall_score=score,
        risk_level=risk_level_for_score(score),
        engine=engine,
    )


def run_full_simulation(
    params: SimulationParameters,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> SimulationResult:
    """Engine run, sensitivity table and assembly in one call."""
    engine = compute_statements(params, config)
    sensitivity = compute_sensitivity(params, engine, config)
    result = build_simulation_result(params, engine, sensitivity, config)
    logger.debug(
        f"Simulation complete: revenue={engine.revenue:,} net_income={engine.net_income:,} "
        f"score={result.overall_score} risk={result.risk_level.value}"
    )
    return result
