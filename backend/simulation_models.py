"""
Simulation Models

Data structures for the financial impact simulator:
- BaselineFinancials: the company's original statements (never mutated)
- SimulationParameters: the 37-field parameter vector for one run
- EngineNumbers: the complete computed state of one run
- Sensitivity, waterfall and result structures consumed by the UI layer
"""

from dataclasses import dataclass, field, fields, asdict, replace
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple, Mapping

from financial_math import safe_div, DAYS_PER_YEAR


class BaselineConfigurationError(ValueError):
    """Raised when a baseline position is not internally consistent."""


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class RiskLevel(str, Enum):
    """Qualitative risk tier mapped from the health score."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WaterfallEntryType(str, Enum):
    """Bucket type of a net income bridge entry."""
    TOTAL = "total"
    INCREASE = "increase"
    DECREASE = "decrease"


class ParameterGroup(str, Enum):
    """Conceptual grouping of parameters (display only, not structural)."""
    OPERATIONAL = "operational"
    PRICING = "pricing"
    MICRO = "micro_economic"
    MACRO = "macro_economic"
    FINANCIAL_MARKETS = "financial_markets"
    RISK = "risk"


# ═══════════════════════════════════════════════════════════════════════════════
# BASELINE FINANCIALS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BaselineFinancials:
    """
    Original statements of the company at the neutral parameter setting,
    plus the constants derived from them (effective borrowing rate, total
    debt, total capex, opening PP&E).
    """

    # P&L
    revenue: int = 22_500_000
    cogs: int = 12_300_000  # positive value
    sga: int = 4_200_000
    rd: int = 800_000
    da: int = 1_700_000
    interest_expense: int = 440_000
    other_income: int = 120_000
    income_tax: int = 700_000

    # Balance Sheet - assets
    cash: int = 5_200_000
    ar: int = 3_400_000
    inventory: int = 2_100_000
    prepaid: int = 450_000
    ppe: int = 15_800_000
    intangibles: int = 2_200_000
    goodwill: int = 1_850_000

    # Balance Sheet - liabilities
    ap: int = 2_800_000
    short_term_debt: int = 1_200_000
    accrued_expenses: int = 950_000
    long_term_debt: int = 8_000_000
    deferred_tax: int = 650_000

    # Balance Sheet - equity
    common_stock: int = 5_000_000
    retained_earnings: int = 10_400_000
    apic: int = 2_000_000

    # Cash Flow constants
    capex_maintenance: int = 1_000_000
    capex_growth: int = 500_000
    acquisitions: int = 1_000_000
    debt_repayment: int = 800_000
    dividends: int = 600_000

    def __post_init__(self):
        if self.revenue <= 0 or self.cogs <= 0:
            raise BaselineConfigurationError("Baseline revenue and COGS must be positive")
        if self.total_assets != self.total_liabilities + self.total_equity:
            raise BaselineConfigurationError(
                f"Baseline balance sheet does not balance: assets {self.total_assets:,} "
                f"vs liabilities + equity {self.total_liabilities + self.total_equity:,}"
            )

    # ── P&L subtotals ────────────────────────────────────────────────────

    @property
    def gross_profit(self) -> int:
        return self.revenue - self.cogs

    @property
    def total_opex(self) -> int:
        return self.sga + self.rd + self.da

    @property
    def ebit(self) -> int:
        return self.gross_profit - self.total_opex

    @property
    def ebt(self) -> int:
        return self.ebit - self.interest_expense + self.other_income

    @property
    def net_income(self) -> int:
        return self.ebt - self.income_tax

    @property
    def tax_rate(self) -> float:
        """Effective tax rate on positive EBT (700K / 3,180K, about 22%)."""
        return safe_div(self.income_tax, self.ebt)

    # ── Balance Sheet subtotals ──────────────────────────────────────────

    @property
    def current_assets(self) -> int:
        return self.cash + self.ar + self.inventory + self.prepaid

    @property
    def non_current_assets(self) -> int:
        return self.ppe + self.intangibles + self.goodwill

    @property
    def total_assets(self) -> int:
        return self.current_assets + self.non_current_assets

    @property
    def current_liabilities(self) -> int:
        return self.ap + self.short_term_debt + self.accrued_expenses

    @property
    def non_current_liabilities(self) -> int:
        return self.long_term_debt + self.deferred_tax

    @property
    def total_liabilities(self) -> int:
        return self.current_liabilities + self.non_current_liabilities

    @property
    def total_equity(self) -> int:
        return self.common_stock + self.retained_earnings + self.apic

    # ── Derived constants ────────────────────────────────────────────────

    @property
    def total_debt(self) -> int:
        return self.short_term_debt + self.long_term_debt

    @property
    def effective_rate(self) -> float:
        """Blended borrowing rate implied by baseline interest over total debt."""
        return safe_div(self.interest_expense, self.total_debt)

    @property
    def total_capex(self) -> int:
        return self.capex_maintenance + self.capex_growth

    @property
    def opening_ppe(self) -> int:
        # closing PP&E - capex + D&A
        return self.ppe - self.total_capex + self.da

    @property
    def implied_ar_days(self) -> float:
        return self.ar * DAYS_PER_YEAR / self.revenue

    @property
    def implied_inventory_days(self) -> float:
        return self.inventory * DAYS_PER_YEAR / self.cogs

    @property
    def implied_ap_days(self) -> float:
        return self.ap * DAYS_PER_YEAR / self.cogs

    # ── Cash Flow (articulated baseline) ─────────────────────────────────

    @property
    def cf_investing(self) -> int:
        return -self.total_capex - self.acquisitions

    @property
    def cf_financing(self) -> int:
        return -self.debt_repayment - self.dividends

    @property
    def cf_ops(self) -> int:
        # The baseline period closes at baseline cash, so net change is zero.
        return -self.cf_investing - self.cf_financing

    @property
    def wc_changes(self) -> int:
        return self.cf_ops - self.net_income - self.da

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update({
            "gross_profit": self.gross_profit,
            "ebit": self.ebit,
            "ebt": self.ebt,
            "net_income": self.net_income,
            "total_assets": self.total_assets,
            "total_liabilities": self.total_liabilities,
            "total_equity": self.total_equity,
            "total_debt": self.total_debt,
            "effective_rate": self.effective_rate,
            "tax_rate": self.tax_rate,
            "cf_ops": self.cf_ops,
            "cf_investing": self.cf_investing,
            "cf_financing": self.cf_financing,
        })
        return data


_DEFAULT_FINANCIALS = BaselineFinancials()


# ═══════════════════════════════════════════════════════════════════════════════
# PARAMETER VECTOR
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SimulationParameters:
    """
    The complete set of simulation inputs for one run.

    Defaults are the baseline setting. Valid ranges are enforced by the
    caller, not here: out-of-range values are computed through as given.
    """

    # Operational
    production_capacity: float = 80.0  # % utilisation
    inventory_turnover: float = 5.86
    supplier_lead_time: float = 30.0  # days
    cogs_materials: float = 40.0  # % of COGS
    cogs_labor: float = 30.0
    cogs_overhead: float = 30.0
    salary_inflation: float = 3.0  # %
    headcount_change: float = 0.0  # %
    capex_maintenance: float = float(_DEFAULT_FINANCIALS.capex_maintenance)
    capex_growth: float = float(_DEFAULT_FINANCIALS.capex_growth)
    depreciation: float = float(_DEFAULT_FINANCIALS.da)
    rd_expenditure: float = float(_DEFAULT_FINANCIALS.rd)
    sales_conversion: float = 10.0  # %
    customer_churn: float = 5.0  # %
    ar_days: float = _DEFAULT_FINANCIALS.implied_ar_days
    ap_days: float = _DEFAULT_FINANCIALS.implied_ap_days
    inventory_days: float = _DEFAULT_FINANCIALS.implied_inventory_days

    # Pricing & revenue
    discount: float = 5.0  # %
    new_product_impact: float = 0.0  # currency

    # Micro-economic
    market_demand: float = 100.0  # index
    competition_index: float = 50.0
    commodity_index: float = 100.0
    supply_disruption: float = 0.0  # %
    freight_rates: float = 100.0
    customer_sentiment: float = 100.0

    # Macro-economic
    inflation_rate: float = 2.5  # %
    interest_rate: float = 5.5  # %
    unemployment_rate: float = 4.0  # %
    gdp_growth: float = 2.1  # %
    consumer_confidence: float = 100.0
    pmi: float = 50.0
    forex_rate: float = 87.0  # USD/INR

    # Financial markets
    bond_yield_spread: float = 0.5  # % (2Y/10Y)
    credit_spread: float = 1.5  # %

    # Risk & stress
    revenue_shock: float = 0.0  # %
    cyber_attack_downtime: float = 0.0  # days
    esg_penalty: float = 0.0  # currency

    @classmethod
    def for_baseline(cls, financials: BaselineFinancials) -> "SimulationParameters":
        """Neutral parameter vector for an arbitrary baseline company."""
        return cls(
            capex_maintenance=float(financials.capex_maintenance),
            capex_growth=float(financials.capex_growth),
            depreciation=float(financials.da),
            rd_expenditure=float(financials.rd),
            ar_days=financials.implied_ar_days,
            ap_days=financials.implied_ap_days,
            inventory_days=financials.implied_inventory_days,
        )

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        base: Optional["SimulationParameters"] = None,
    ) -> "SimulationParameters":
        """
        Build a parameter vector from a (possibly partial) mapping.

        Missing keys keep the value from ``base`` (or the class default);
        unknown keys are ignored. Values are coerced to float, so a
        non-numeric value raises ``ValueError``/``TypeError``.
        """
        known = set(cls.field_names())
        changes = {k: float(v) for k, v in data.items() if k in known}
        return replace(base or cls(), **changes)

    def replace(self, **changes: float) -> "SimulationParameters":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def changed_fields(
        self,
        defaults: "SimulationParameters",
        tolerance: float = 0.01,
    ) -> List[Tuple[str, float, float]]:
        """(name, default, value) for every field that moved beyond the tolerance."""
        changed = []
        for name in self.field_names():
            value = getattr(self, name)
            default = getattr(defaults, name)
            if abs(value - default) > tolerance:
                changed.append((name, default, value))
        return changed


PARAMETER_GROUPS: Dict[ParameterGroup, Tuple[str, ...]] = {
    ParameterGroup.OPERATIONAL: (
        "production_capacity", "inventory_turnover", "supplier_lead_time",
        "cogs_materials", "cogs_labor", "cogs_overhead", "salary_inflation",
        "headcount_change", "capex_maintenance", "capex_growth", "depreciation",
        "rd_expenditure", "sales_conversion", "customer_churn", "ar_days",
        "ap_days", "inventory_days",
    ),
    ParameterGroup.PRICING: ("discount", "new_product_impact"),
    ParameterGroup.MICRO: (
        "market_demand", "competition_index", "commodity_index",
        "supply_disruption", "freight_rates", "customer_sentiment",
    ),
    ParameterGroup.MACRO: (
        "inflation_rate", "interest_rate", "unemployment_rate", "gdp_growth",
        "consumer_confidence", "pmi", "forex_rate",
    ),
    ParameterGroup.FINANCIAL_MARKETS: ("bond_yield_spread", "credit_spread"),
    ParameterGroup.RISK: ("revenue_shock", "cyber_attack_downtime", "esg_penalty"),
}


# ═══════════════════════════════════════════════════════════════════════════════
# ENGINE OUTPUT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DriverContribution:
    """
    Contribution of one parameter to one line item.

    ``contribution`` is a fraction of the baseline line (unit "fraction") or
    a currency amount (unit "currency").
    """
    line_item: str
    parameter: str
    weight: float
    contribution: float
    unit: str = "fraction"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FinancialRatios:
    """Ratios derived from one run. Margins/returns in %, others as multiples."""
    gross_margin: float
    operating_margin: float
    net_margin: float
    roe: float
    roa: float
    current_ratio: float
    debt_to_equity: float
    interest_coverage: float
    asset_turnover: float
    cash_conversion_cycle: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EngineNumbers:
    """Full computed state of one run. Created fresh per run, never shared."""

    # P&L
    revenue: int
    cogs: int
    gross_profit: int
    sga: int
    rd: int
    da: int
    total_opex: int
    ebit: int
    interest_expense: int
    other_income: int
    ebt: int
    tax: int
    net_income: int

    # Balance Sheet
    cash: int
    ar: int
    inventory: int
    prepaid: int
    current_assets: int
    ppe: int
    intangibles: int
    goodwill: int
    non_current_assets: int
    total_assets: int
    ap: int
    short_term_debt: int
    accrued_expenses: int
    current_liabilities: int
    long_term_debt: int
    deferred_tax: int
    non_current_liabilities: int
    total_liabilities: int
    common_stock: int
    retained_earnings: int
    apic: int
    total_equity: int

    # Cash Flow
    cf_ops: int
    cf_investing: int
    cf_financing: int
    net_cash_change: int
    wc_changes: int
    capex: int
    acquisitions: int
    debt_repayment: int
    new_borrowings: int
    dividends: int

    ratios: FinancialRatios
    drivers: Tuple[DriverContribution, ...] = ()

    def drivers_for(self, line_item: str) -> List[DriverContribution]:
        return [d for d in self.drivers if d.line_item == line_item]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["drivers"] = [d.to_dict() for d in self.drivers]
        return data


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYSIS & RESULT STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SensitivityDataPoint:
    """One row of the sensitivity table."""
    parameter: str
    low_value: float
    base_value: float
    high_value: float
    revenue_impact: float
    net_income_impact: float
    cash_flow_impact: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameter": self.parameter,
            "lowValue": self.low_value,
            "baseValue": self.base_value,
            "highValue": self.high_value,
            "revenueImpact": self.revenue_impact,
            "netIncomeImpact": self.net_income_impact,
            "cashFlowImpact": self.cash_flow_impact,
        }


@dataclass(frozen=True)
class WaterfallEntry:
    """A named, signed bucket of the net income bridge."""
    name: str
    value: int
    type: WaterfallEntryType

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "type": self.type.value}


@dataclass(frozen=True)
class StatementLine:
    """A single financial statement line item."""
    item: str
    amount: int
    is_total: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"item": self.item, "amount": self.amount}
        if self.is_total:
            data["isTotal"] = True
        return data


@dataclass(frozen=True)
class BalanceSheetStatement:
    assets: Tuple[StatementLine, ...]
    liabilities: Tuple[StatementLine, ...]
    equity: Tuple[StatementLine, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assets": [line.to_dict() for line in self.assets],
            "liabilities": [line.to_dict() for line in self.liabilities],
            "equity": [line.to_dict() for line in self.equity],
        }


@dataclass(frozen=True)
class MetricComparison:
    """Original vs simulated value of a headline metric."""
    name: str
    original: float
    simulated: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "original": self.original, "simulated": self.simulated}


@dataclass(frozen=True)
class RatioComparison:
    name: str
    original: float
    simulated: float
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "original": self.original,
            "simulated": self.simulated,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class EconomicTrend:
    name: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass
class SimulationResult:
    """
    Externally visible aggregate of one simulation.

    Numeric fields are filled by the result assembler. The three narrative
    fields stay empty until commentary is merged with ``with_commentary``.
    """
    simulation_parameters: str
    simulated_profit_and_loss: List[StatementLine]
    simulated_balance_sheet: BalanceSheetStatement
    simulated_cash_flow: List[StatementLine]
    key_metrics: List[MetricComparison]
    economic_trends: List[EconomicTrend]
    financial_ratios: List[RatioComparison]
    waterfall_data: List[WaterfallEntry]
    sensitivity_data: List[SensitivityDataPoint]
    overall_score: int
    risk_level: RiskLevel
    engine: Optional[EngineNumbers] = field(default=None, repr=False, compare=False)
    simulation_analysis: str = ""
    suggestions: str = ""
    risk_assessment: str = ""

    def with_commentary(
        self,
        simulation_analysis: str,
        suggestions: str,
        risk_assessment: str,
    ) -> "SimulationResult":
        """Copy of this result with the narrative fields set; numbers untouched."""
        return replace(
            self,
            simulation_analysis=simulation_analysis,
            suggestions=suggestions,
            risk_assessment=risk_assessment,
        )

    def metric(self, name: str) -> Optional[MetricComparison]:
        for m in self.key_metrics:
            if m.name == name:
                return m
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "simulationParameters": self.simulation_parameters,
            "simulationAnalysis": self.simulation_analysis,
            "suggestions": self.suggestions,
            "riskAssessment": self.risk_assessment,
            "simulatedBalanceSheet": self.simulated_balance_sheet.to_dict(),
            "simulatedProfitAndLoss": [line.to_dict() for line in self.simulated_profit_and_loss],
            "simulatedCashFlow": [line.to_dict() for line in self.simulated_cash_flow],
            "keyMetrics": [m.to_dict() for m in self.key_metrics],
            "economicTrends": [t.to_dict() for t in self.economic_trends],
            "financialRatios": [r.to_dict() for r in self.financial_ratios],
            "waterfallData": [w.to_dict() for w in self.waterfall_data],
            "sensitivityData": [s.to_dict() for s in self.sensitivity_data],
            "overallScore": self.overall_score,
            "riskLevel": self.risk_level.value,
        }
