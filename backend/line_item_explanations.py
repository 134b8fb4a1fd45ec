"""
Line-Item Explanations

For every line in the three statements, explains:
1. What the item represents
2. Which parameters drive it
3. How those parameters moved the simulated value (only when it changed)

Revenue, COGS, SG&A and interest narratives are read off the driver
contributions the statement engine records, so the prose cannot drift from
the formulas. Other lines describe their formula.
"""

from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Any, Callable
import logging

from financial_math import format_currency, format_value
from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import (
    SimulationParameters,
    EngineNumbers,
    DriverContribution,
    BaselineFinancials,
)
from simulation_engine import compute_statements, VARIABLE_COGS_SHARE, SEMI_FIXED_COGS_SHARE
from result_assembler import statement_amounts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItemExplanation:
    definition: str
    drivers: List[str]
    narrative: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


PARAMETER_LABELS: Dict[str, str] = {
    "production_capacity": "Production Capacity",
    "inventory_turnover": "Inventory Turnover",
    "supplier_lead_time": "Supplier Lead Time",
    "cogs_materials": "COGS Materials Share",
    "cogs_labor": "COGS Labor Share",
    "cogs_overhead": "COGS Overhead Share",
    "salary_inflation": "Salary Inflation",
    "headcount_change": "Headcount Change",
    "capex_maintenance": "Maintenance Capex",
    "capex_growth": "Growth Capex",
    "capex": "Capex above baseline",
    "depreciation": "Depreciation Schedule",
    "rd_expenditure": "R&D Expenditure",
    "sales_conversion": "Sales Conversion",
    "customer_churn": "Customer Churn",
    "ar_days": "AR Days (DSO)",
    "ap_days": "AP Days (DPO)",
    "inventory_days": "Inventory Days (DIO)",
    "discount": "Discount",
    "new_product_impact": "New Product Impact",
    "market_demand": "Market Demand",
    "competition_index": "Competition Index",
    "commodity_index": "Commodity Index",
    "supply_disruption": "Supply Disruption",
    "freight_rates": "Freight Rates",
    "customer_sentiment": "Customer Sentiment",
    "inflation_rate": "Inflation Rate",
    "interest_rate": "Interest Rate",
    "unemployment_rate": "Unemployment Rate",
    "gdp_growth": "GDP Growth",
    "consumer_confidence": "Consumer Confidence",
    "pmi": "PMI",
    "forex_rate": "Forex Rate",
    "bond_yield_spread": "Bond Yield Spread",
    "credit_spread": "Credit Spread",
    "revenue_shock": "Revenue Shock",
    "cyber_attack_downtime": "Cyber-Attack Downtime",
    "esg_penalty": "ESG Penalties",
}

# (line item, parameter) -> short mechanism note
DRIVER_NOTES: Dict[tuple, str] = {
    ("revenue", "market_demand"): "the strongest top-line driver",
    ("revenue", "production_capacity"): "constrains max output",
    ("revenue", "customer_churn"): "erodes recurring revenue",
    ("revenue", "discount"): "price concessions reduce net revenue",
    ("revenue", "competition_index"): "more competition reduces market share",
    ("revenue", "unemployment_rate"): "higher unemployment suppresses demand",
    ("revenue", "cyber_attack_downtime"): "lost selling days",
    ("revenue", "forex_rate"): "moves export-denominated revenue",
    ("cogs", "commodity_index"): "material input costs",
    ("cogs", "freight_rates"): "logistics costs",
    ("cogs", "salary_inflation"): "labor costs within COGS",
    ("cogs", "headcount_change"): "direct labor cost",
    ("cogs", "supply_disruption"): "expediting and alt-sourcing premiums",
    ("cogs", "inflation_rate"): "raises all input costs",
    ("cogs", "inventory_turnover"): "higher turnover reduces waste",
    ("sga", "salary_inflation"): "people-cost portion",
    ("sga", "headcount_change"): "sales and admin staff",
    ("sga", "inflation_rate"): "non-people costs",
    ("sga", "esg_penalty"): "added directly to SG&A",
    ("interest", "interest_rate"): "shifts the effective borrowing rate",
    ("interest", "credit_spread"): "risk premium on debt",
    ("interest", "bond_yield_spread"): "curve flattening signals recession risk",
}


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def _delta_pct(original: float, simulated: float) -> str:
    if original == 0:
        return "N/A"
    pct = (simulated - original) / abs(original) * 100
    return f"{pct:+.1f}%"


def _delta_str(original: float, simulated: float) -> str:
    diff = simulated - original
    sign = "+" if diff >= 0 else ""
    return f"{sign}{format_currency(diff)} ({_delta_pct(original, simulated)})"


def _bullets(parts: List[str]) -> str:
    return "\n• " + "\n• ".join(parts)


def _moved(value: float, default: float) -> str:
    return "increased" if value > default else "decreased"


def _describe_driver(
    driver: DriverContribution,
    params: SimulationParameters,
    defaults: SimulationParameters,
    scale_label: str,
) -> str:
    label = PARAMETER_LABELS.get(driver.parameter, driver.parameter)

    if hasattr(params, driver.parameter):
        value = getattr(params, driver.parameter)
        default = getattr(defaults, driver.parameter)
        head = f"{label} {_moved(value, default)} ({format_value(default)} → {format_value(value)})"
    else:
        head = label

    if driver.unit == "currency":
        effect = f"{'+' if driver.contribution >= 0 else ''}{format_currency(driver.contribution)}"
    elif driver.unit == "rate":
        effect = f"{driver.contribution * 100:+.2f}pp on the borrowing rate"
    else:
        effect = f"{driver.contribution * 100:+.1f}% {scale_label}"

    note = DRIVER_NOTES.get((driver.line_item, driver.parameter))
    return f"{head}: {effect}" + (f" ({note})" if note else "")


def _active(drivers: List[DriverContribution]) -> List[DriverContribution]:
    return [d for d in drivers if d.contribution != 0]


# ═══════════════════════════════════════════════════════════════════════════════
# NARRATIVES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _NarrativeContext:
    params: SimulationParameters
    config: SimulationConfig
    engine: EngineNumbers

    @property
    def defaults(self) -> SimulationParameters:
        return self.config.defaults

    @property
    def base(self) -> BaselineFinancials:
        return self.config.financials


def _revenue(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = [
        _describe_driver(d, ctx.params, ctx.defaults, "of baseline revenue")
        for d in _active(ctx.engine.drivers_for("revenue"))
    ]
    if not parts:
        parts.append("All revenue drivers are at baseline; the difference is rounding")
    return f"Revenue changed by {_delta_str(orig, sim)}. Key factors:" + _bullets(parts)


def _cogs(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = [
        f"{VARIABLE_COGS_SHARE:.0%} of COGS is variable (scales with revenue volume), "
        f"{SEMI_FIXED_COGS_SHARE:.0%} is semi-fixed"
    ]
    parts.extend(
        _describe_driver(d, ctx.params, ctx.defaults, "on unit costs")
        for d in _active(ctx.engine.drivers_for("cogs"))
    )
    return f"COGS changed by {_delta_str(orig, sim)}." + _bullets(parts)


def _sga(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = ["SG&A is mostly people costs (salary and headcount) plus rent, marketing and admin"]
    parts.extend(
        _describe_driver(d, ctx.params, ctx.defaults, "on SG&A")
        for d in _active(ctx.engine.drivers_for("sga"))
    )
    return f"SG&A changed by {_delta_str(orig, sim)}." + _bullets(parts)


def _interest(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    base = ctx.base
    parts = [
        f"Applied to {format_currency(base.total_debt)} total debt (short-term "
        f"{format_currency(base.short_term_debt)} + long-term {format_currency(base.long_term_debt)})"
    ]
    parts.extend(
        _describe_driver(d, ctx.params, ctx.defaults, "")
        for d in _active(ctx.engine.drivers_for("interest"))
    )
    return f"Interest Expense changed by {_delta_str(orig, sim)}." + _bullets(parts)


def _rd(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    return (
        f"R&D changed by {_delta_str(orig, sim)}."
        + _bullets([
            f"R&D Expenditure is set directly by the parameter "
            f"({format_currency(ctx.defaults.rd_expenditure)} → {format_currency(ctx.params.rd_expenditure)})"
        ])
    )


def _da(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = [
        f"Depreciation parameter set to {format_currency(ctx.params.depreciation)} "
        f"(baseline: {format_currency(ctx.defaults.depreciation)})"
    ]
    for d in _active(ctx.engine.drivers_for("da")):
        if d.parameter == "capex":
            parts.append(
                f"Capex above baseline adds {format_currency(d.contribution)} of incremental "
                f"depreciation ({d.weight:.0%} a year, about a 10-year useful life)"
            )
    return f"D&A changed by {_delta_str(orig, sim)}." + _bullets(parts)


def _tax(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    return (
        f"Tax changed by {_delta_str(orig, sim)}."
        + _bullets([
            f"Effective tax rate of {ctx.base.tax_rate:.1%} applied to positive EBT; "
            "tax is zero when EBT is negative (no loss carry-forward recognised)"
        ])
    )


def _working_capital_line(label: str, formula: str, days_param: str, flow: str) -> Callable:
    def narrative(ctx: _NarrativeContext, orig: float, sim: float) -> str:
        parts = [formula]
        value = getattr(ctx.params, days_param)
        default = getattr(ctx.defaults, days_param)
        if abs(value - default) > 0.01:
            parts.append(
                f"{PARAMETER_LABELS[days_param]} {_moved(value, default)} "
                f"({format_value(default)} → {format_value(value)})"
            )
        parts.append(f"{flow} changes also proportionally scale {label}")
        return f"{label} changed by {_delta_str(orig, sim)}." + _bullets(parts)
    return narrative


def _ppe(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = ["PP&E = Opening PP&E + Capex - D&A"]
    new_capex = ctx.params.capex_maintenance + ctx.params.capex_growth
    base_capex = ctx.defaults.capex_maintenance + ctx.defaults.capex_growth
    if new_capex != base_capex:
        parts.append(
            f"Total Capex {_moved(new_capex, base_capex)} "
            f"({format_currency(base_capex)} → {format_currency(new_capex)})"
        )
    if abs(ctx.params.depreciation - ctx.defaults.depreciation) > 0.01:
        parts.append(
            f"Depreciation schedule changed ({format_currency(ctx.defaults.depreciation)} → "
            f"{format_currency(ctx.params.depreciation)})"
        )
    return f"PP&E changed by {_delta_str(orig, sim)}." + _bullets(parts)


def _long_term_debt(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    growth_delta = max(0.0, ctx.params.capex_growth - ctx.defaults.capex_growth)
    return (
        f"Long-term Debt changed by {_delta_str(orig, sim)}."
        + _bullets([
            f"Growth Capex increase of {format_currency(growth_delta)} is assumed to be half "
            f"debt-financed, adding {format_currency(ctx.engine.new_borrowings)} in new borrowings"
        ])
    )


def _fixed_text(label: str, text: str) -> Callable:
    def narrative(ctx: _NarrativeContext, orig: float, sim: float) -> str:
        return f"{label} changed by {_delta_str(orig, sim)}." + _bullets([text])
    return narrative


def _cf_investing(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    return (
        f"Cash from Investing changed by {_delta_str(orig, sim)}."
        + _bullets([
            f"Driven by Maintenance Capex ({format_currency(ctx.params.capex_maintenance)}) + "
            f"Growth Capex ({format_currency(ctx.params.capex_growth)}) + fixed Acquisitions"
        ])
    )


def _capex(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    return (
        f"Capital Expenditures changed by {_delta_str(orig, sim)}."
        + _bullets([
            f"Maintenance Capex: {format_currency(ctx.defaults.capex_maintenance)} → "
            f"{format_currency(ctx.params.capex_maintenance)}",
            f"Growth Capex: {format_currency(ctx.defaults.capex_growth)} → "
            f"{format_currency(ctx.params.capex_growth)}",
        ])
    )


def _cf_financing(ctx: _NarrativeContext, orig: float, sim: float) -> str:
    parts = ["CFF = New Borrowings - Debt Repayment - Dividends"]
    if ctx.engine.new_borrowings > 0:
        parts.append(f"New debt of {format_currency(ctx.engine.new_borrowings)} raised to finance growth capex")
    return f"Cash from Financing changed by {_delta_str(orig, sim)}." + _bullets(parts)


NARRATIVES: Dict[str, Callable[[_NarrativeContext, float, float], str]] = {
    "Revenue": _revenue,
    "Cost of Goods Sold": _cogs,
    "Selling, General & Admin": _sga,
    "Research & Development": _rd,
    "Depreciation & Amortization": _da,
    "Interest Expense": _interest,
    "Income Tax Expense": _tax,
    "Accounts Receivable": _working_capital_line(
        "Accounts Receivable", "AR = (Revenue / 365) x AR Days", "ar_days", "Revenue"),
    "Inventory": _working_capital_line(
        "Inventory", "Inventory = (COGS / 365) x Inventory Days", "inventory_days", "COGS"),
    "Accounts Payable": _working_capital_line(
        "Accounts Payable", "AP = (COGS / 365) x AP Days", "ap_days", "COGS"),
    "Property, Plant & Equipment": _ppe,
    "Long-term Debt": _long_term_debt,
    "Retained Earnings": _fixed_text(
        "Retained Earnings",
        "RE = Base RE + (Simulated Net Income - Baseline Net Income). "
        "Changes in profitability flow directly through to equity.",
    ),
    "Cash and Equivalents": _fixed_text(
        "Cash",
        "Cash is the balance-sheet plug: it absorbs the net effect of every other "
        "balance-sheet change so Total Assets = Total Liabilities + Equity.",
    ),
    "Cash from Operations": _fixed_text(
        "Cash from Operations",
        "CFO = Net Income + D&A + Working Capital Changes. All P&L and balance-sheet "
        "changes propagate here.",
    ),
    "Cash from Investing": _cf_investing,
    "Cash from Financing": _cf_financing,
    "Capital Expenditures": _capex,
    "Changes in Working Capital": _fixed_text(
        "Working Capital Changes",
        "Reflects movements in AR, Inventory, AP and Prepaid balances against the "
        "baseline. Absorbs rounding to keep CFO consistent with the balance sheet and P&L.",
    ),
    "Net Change in Cash": _fixed_text(
        "Net Cash Change",
        "Sum of Operating + Investing + Financing cash flows. All parameter changes flow through here.",
    ),
}


# ═══════════════════════════════════════════════════════════════════════════════
# DEFINITIONS
# ═══════════════════════════════════════════════════════════════════════════════

_FIXED = "Fixed at baseline{amount} - not affected by simulation parameters"

# item -> (definition, drivers); {placeholders} are filled from the baseline
DEFINITIONS: Dict[str, tuple] = {
    # P&L
    "Revenue": (
        "Total sales generated from goods and services in the period.",
        ["Market Demand", "Production Capacity", "Sales Conversion", "Customer Churn", "Discount",
         "Consumer Confidence", "GDP Growth", "Competition Index", "Customer Sentiment", "PMI",
         "Unemployment Rate", "Cyber-Attack Downtime", "Revenue Shock", "Forex Rate",
         "New Product Impact"],
    ),
    "Cost of Goods Sold": (
        "Direct costs attributable to producing goods sold (materials, labor, overhead). "
        "70% is variable (scales with volume), 30% is semi-fixed.",
        ["Revenue Volume", "Commodity Index", "Freight Rates", "Salary Inflation", "Headcount Change",
         "Supply Disruption", "Inflation Rate", "Supplier Lead Time", "Inventory Turnover",
         "COGS Mix (Materials/Labor/Overhead)"],
    ),
    "Gross Profit": (
        "Revenue minus Cost of Goods Sold; measures core production profitability.",
        ["All Revenue drivers", "All COGS drivers"],
    ),
    "Selling, General & Admin": (
        "Operating expenses for selling, marketing, rent and G&A.",
        ["Salary Inflation", "Headcount Change", "Inflation Rate", "ESG Penalties"],
    ),
    "Research & Development": (
        "Investment in new products, technology and innovation.",
        ["R&D Expenditure (direct parameter)"],
    ),
    "Depreciation & Amortization": (
        "Non-cash charge allocating the cost of fixed and intangible assets over their useful lives.",
        ["Depreciation Schedule", "Maintenance Capex", "Growth Capex"],
    ),
    "Total Operating Expenses": (
        "Sum of SG&A + R&D + D&A.",
        ["All SG&A drivers", "R&D Expenditure", "Depreciation & Capex parameters"],
    ),
    "Operating Income (EBIT)": (
        "Earnings Before Interest & Tax; core operating profitability.",
        ["All Revenue and Cost drivers"],
    ),
    "Interest Expense": (
        "Cost of servicing {total_debt} total debt at the effective borrowing rate.",
        ["Interest Rate", "Credit Spread", "Bond Yield Spread"],
    ),
    "Other Income / (Expense)": (
        "Non-operating income from investments, foreign exchange, etc.",
        [_FIXED.format(amount=" ({other_income})")],
    ),
    "Earnings Before Tax (EBT)": (
        "EBIT minus Interest plus Other Income.",
        ["All operating and financing parameters"],
    ),
    "Income Tax Expense": (
        "Corporate income tax at an effective rate of {tax_rate} on positive EBT.",
        ["All parameters that affect EBT (tax scales proportionally)"],
    ),
    "Net Income": (
        "Bottom-line profit after all expenses and taxes.",
        ["All simulation parameters flow through here"],
    ),

    # Balance Sheet - assets
    "Cash and Equivalents": (
        "Liquid cash and short-term investments. Acts as the balance-sheet plug so "
        "Assets = Liabilities + Equity.",
        ["All parameters (cash absorbs the net effect of all balance-sheet changes)"],
    ),
    "Accounts Receivable": (
        "Amounts owed by customers for goods and services already delivered.",
        ["AR Days (DSO)", "Revenue (higher sales mean more outstanding receivables)"],
    ),
    "Inventory": (
        "Goods held for sale or in production, valued at cost.",
        ["Inventory Days (DIO)", "COGS (higher production cost means higher inventory value)"],
    ),
    "Prepaid Expenses": (
        "Payments made in advance for services (insurance, rent, etc.).",
        [_FIXED.format(amount="")],
    ),
    "Current Assets": (
        "Sum of Cash + AR + Inventory + Prepaid Expenses.",
        ["All working capital parameters"],
    ),
    "Property, Plant & Equipment": (
        "Tangible long-term assets (factories, machinery, buildings). PP&E = Opening + Capex - D&A.",
        ["Maintenance Capex", "Growth Capex", "Depreciation Schedule"],
    ),
    "Intangible Assets": (
        "Non-physical assets like patents, trademarks and software.",
        [_FIXED.format(amount="")],
    ),
    "Goodwill": (
        "Premium paid over fair value in past acquisitions.",
        [_FIXED.format(amount="")],
    ),
    "Non-Current Assets": (
        "Sum of PP&E + Intangibles + Goodwill.",
        ["Capex and Depreciation parameters"],
    ),
    "Total Assets": (
        "Sum of Current + Non-Current Assets. Must equal Total Liabilities + Equity.",
        ["All parameters affect Total Assets through various channels"],
    ),

    # Balance Sheet - liabilities
    "Accounts Payable": (
        "Amounts owed to suppliers for goods and services received but not yet paid.",
        ["AP Days (DPO)", "COGS (higher purchases mean more outstanding payables)"],
    ),
    "Short-term Debt": (
        "Debt obligations due within one year.",
        [_FIXED.format(amount=" ({short_term_debt})")],
    ),
    "Accrued Expenses": (
        "Expenses incurred but not yet paid (wages, utilities, taxes).",
        [_FIXED.format(amount=" ({accrued_expenses})")],
    ),
    "Current Liabilities": (
        "Sum of AP + Short-term Debt + Accrued Expenses.",
        ["AP Days", "COGS volume"],
    ),
    "Long-term Debt": (
        "Debt obligations due beyond one year.",
        ["Growth Capex (increases above baseline are 50% debt-financed)"],
    ),
    "Deferred Tax Liabilities": (
        "Tax obligations deferred to future periods due to timing differences.",
        [_FIXED.format(amount=" ({deferred_tax})")],
    ),
    "Non-Current Liabilities": (
        "Sum of Long-term Debt + Deferred Tax.",
        ["Growth Capex (via Long-term Debt)"],
    ),
    "Total Liabilities": (
        "Sum of Current + Non-Current Liabilities.",
        ["AP Days, COGS volume, Growth Capex"],
    ),

    # Balance Sheet - equity
    "Common Stock": (
        "Par value of shares issued to investors.",
        [_FIXED.format(amount=" ({common_stock})")],
    ),
    "Retained Earnings": (
        "Cumulative profits retained in the business. RE = Base RE + (Simulated NI - Baseline NI).",
        ["All parameters that affect Net Income"],
    ),
    "Additional Paid-in Capital": (
        "Capital received from investors above par value of stock.",
        [_FIXED.format(amount=" ({apic})")],
    ),
    "Total Equity": (
        "Common Stock + Retained Earnings + APIC; represents shareholder value.",
        ["Net Income (via Retained Earnings)"],
    ),
    "Total Liabilities & Equity": (
        "Must equal Total Assets (accounting identity).",
        ["All parameters; this is a check figure"],
    ),

    # Cash Flow
    "Net Change in Cash": (
        "Total change in cash position = Operating + Investing + Financing cash flows.",
        ["All parameters"],
    ),
    "Cash from Operations": (
        "Cash generated from core business operations (= NI + D&A + WC Changes).",
        ["All P&L parameters + Working Capital Days (AR, Inventory, AP)"],
    ),
    "Capital Expenditures": (
        "Cash spent on acquiring or maintaining physical assets.",
        ["Maintenance Capex", "Growth Capex"],
    ),
    "Acquisitions": (
        "Cash spent on acquiring other businesses.",
        [_FIXED.format(amount=" ({acquisitions})")],
    ),
    "Cash from Investing": (
        "Cash used for Capex + Acquisitions. Typically negative (cash outflow).",
        ["Maintenance Capex", "Growth Capex"],
    ),
    "Debt Repayment": (
        "Scheduled repayment of existing debt obligations.",
        [_FIXED.format(amount=" ({debt_repayment}/yr)")],
    ),
    "New Borrowings": (
        "New debt raised to finance growth investments.",
        ["Growth Capex (50% of growth capex increase is debt-financed)"],
    ),
    "Dividends Paid": (
        "Cash distributed to shareholders as dividends.",
        [_FIXED.format(amount=" ({dividends})")],
    ),
    "Cash from Financing": (
        "Net cash from debt and equity activities (= New Borrowings - Repayments - Dividends).",
        ["Growth Capex (via new borrowings)"],
    ),
    "Changes in Working Capital": (
        "Cash impact of changes in AR, Inventory, AP and Prepaid balances between periods.",
        ["AR Days", "Inventory Days", "AP Days", "Revenue", "COGS"],
    ),
}

# P&L lines assembled as negative amounts
EXPENSE_LINES = frozenset({
    "Cost of Goods Sold",
    "Selling, General & Admin",
    "Research & Development",
    "Depreciation & Amortization",
    "Total Operating Expenses",
    "Interest Expense",
    "Income Tax Expense",
})

GENERIC_DEFINITION = "Financial statement line item."
GENERIC_DRIVERS = ["See statement engine documentation"]


def _baseline_amounts(base: BaselineFinancials) -> Dict[str, str]:
    return {
        "total_debt": format_currency(base.total_debt),
        "other_income": format_currency(base.other_income),
        "tax_rate": f"{base.tax_rate:.0%}",
        "short_term_debt": format_currency(base.short_term_debt),
        "accrued_expenses": format_currency(base.accrued_expenses),
        "deferred_tax": format_currency(base.deferred_tax),
        "common_stock": format_currency(base.common_stock),
        "apic": format_currency(base.apic),
        "acquisitions": format_currency(base.acquisitions),
        "debt_repayment": format_currency(base.debt_repayment),
        "dividends": format_currency(base.dividends),
    }


def _subtotal(name: str, orig: float, sim: float) -> str:
    return (
        f"{name} changed by {_delta_str(orig, sim)}."
        + _bullets(["This is a subtotal; the change reflects the net impact of its component line items."])
    )


# ═══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════════

def get_line_item_explanation(
    item: str,
    original: float,
    simulated: Optional[float] = None,
    params: Optional[SimulationParameters] = None,
    config: SimulationConfig = DEFAULT_CONFIG,
    engine: Optional[EngineNumbers] = None,
) -> LineItemExplanation:
    """
    Explain a statement line item.

    Args:
        item: Line label as it appears in the assembled statements
        original: Baseline amount of the line
        simulated: Simulated amount (None before any run)
        params: Parameter vector of the run (None before any run)
        config: Baseline configuration
        engine: Engine output for ``params``; computed if needed and not supplied

    Returns:
        LineItemExplanation; ``narrative`` is None when nothing was simulated or
        the line moved by less than one currency unit
    """
    amounts = _baseline_amounts(config.financials)
    definition, drivers = DEFINITIONS.get(item, (GENERIC_DEFINITION, GENERIC_DRIVERS))
    definition = definition.format(**amounts)
    drivers = [d.format(**amounts) for d in drivers]

    narrative = None
    if simulated is not None and params is not None and abs(simulated - original) >= 1:
        builder = NARRATIVES.get(item)
        if builder is not None:
            if engine is None:
                engine = compute_statements(params, config)
            narrative = builder(_NarrativeContext(params, config, engine), original, simulated)
        else:
            narrative = _subtotal(item, original, simulated)

    return LineItemExplanation(definition=definition, drivers=drivers, narrative=narrative)


def explain_line_item(
    item: str,
    params: SimulationParameters,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> LineItemExplanation:
    """
    Run the baseline and the given parameters, then explain one line item.

    Raises:
        KeyError: If ``item`` is not a line of any assembled statement
    """
    baseline_run = compute_statements(config.defaults, config)
    engine = compute_statements(params, config)
    original_amounts = statement_amounts(baseline_run)
    if item not in original_amounts:
        logger.warning(f"Explanation requested for unknown line item: {item}")
        raise KeyError(item)
    simulated_amounts = statement_amounts(engine)

    # Narratives describe expenses as positive costs.
    sign = -1 if item in EXPENSE_LINES else 1
    return get_line_item_explanation(
        item,
        sign * original_amounts[item],
        sign * simulated_amounts[item],
        params,
        config,
        engine=engine,
    )
