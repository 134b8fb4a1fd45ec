"""
Result Assembler Tests

Covers statement assembly, comparisons, parameter summaries and the
externally visible JSON shape of SimulationResult.
"""

import pytest

from simulation_models import RiskLevel
from simulation_engine import compute_statements
from result_assembler import (
    NO_CHANGES_SUMMARY,
    build_profit_and_loss,
    build_balance_sheet,
    build_cash_flow,
    build_key_metrics,
    build_ratio_comparison,
    build_economic_trends,
    statement_amounts,
    summarize_parameter_changes,
    run_full_simulation,
)


# ═══════════════════════════════════════════════════════════════════════════════
# PARAMETER SUMMARY
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestParameterSummary:

    def test_no_changes(self, defaults):
        assert summarize_parameter_changes(defaults, defaults) == NO_CHANGES_SUMMARY

    def test_single_change(self, defaults):
        params = defaults.replace(discount=15)
        assert summarize_parameter_changes(params, defaults) == "Modified parameters: discount: 5 → 15"

    def test_changes_in_field_order(self, defaults):
        params = defaults.replace(pmi=55, market_demand=92.5)
        assert summarize_parameter_changes(params, defaults) == (
            "Modified parameters: market_demand: 100 → 92.5; pmi: 50 → 55"
        )

    def test_tolerance(self, defaults):
        params = defaults.replace(gdp_growth=defaults.gdp_growth + 0.005)
        assert summarize_parameter_changes(params, defaults) == NO_CHANGES_SUMMARY

    def test_derived_default_is_rounded(self, defaults):
        params = defaults.replace(ar_days=60)
        assert summarize_parameter_changes(params, defaults) == (
            "Modified parameters: ar_days: 55.16 → 60"
        )


# ═══════════════════════════════════════════════════════════════════════════════
# STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestStatements:

    def test_profit_and_loss_signs(self, baseline_run):
        lines = {line.item: line for line in build_profit_and_loss(baseline_run)}
        assert lines["Revenue"].amount == 22_500_000
        assert lines["Cost of Goods Sold"].amount == -12_300_000
        assert lines["Interest Expense"].amount == -440_000
        assert lines["Other Income / (Expense)"].amount == 120_000
        assert lines["Net Income"].amount == 2_480_000
        assert lines["Net Income"].is_total
        assert not lines["Revenue"].is_total

    def test_balance_sheet_sections(self, baseline_run):
        bs = build_balance_sheet(baseline_run)
        assert bs.assets[-1].item == "Total Assets"
        assert bs.liabilities[-1].item == "Total Liabilities"
        assert bs.equity[-1].item == "Total Liabilities & Equity"
        assert bs.assets[-1].amount == bs.equity[-1].amount == 31_000_000

    def test_balance_sheet_to_dict(self, baseline_run):
        data = build_balance_sheet(baseline_run).to_dict()
        assert set(data) == {"assets", "liabilities", "equity"}
        assert data["assets"][0] == {"item": "Cash and Equivalents", "amount": 5_200_000}
        assert data["assets"][-1] == {"item": "Total Assets", "amount": 31_000_000, "isTotal": True}

    def test_cash_flow_lines(self, baseline_run):
        lines = {line.item: line.amount for line in build_cash_flow(baseline_run)}
        assert lines["Cash from Operations"] == 3_900_000
        assert lines["Capital Expenditures"] == -1_500_000
        assert lines["Dividends Paid"] == -600_000
        assert lines["Net Change in Cash"] == 0

    def test_statement_amounts_prefers_profit_and_loss(self, baseline_run):
        amounts = statement_amounts(baseline_run)
        assert amounts["Depreciation & Amortization"] == -1_700_000
        assert amounts["Net Income"] == 2_480_000
        assert amounts["Accounts Payable"] == 2_800_000
        assert amounts["Changes in Working Capital"] == -280_000


# ═══════════════════════════════════════════════════════════════════════════════
# COMPARISONS
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestComparisons:

    def test_key_metrics(self, defaults, config, baseline_run):
        engine = compute_statements(defaults.replace(market_demand=110), config)
        metrics = {m.name: m for m in build_key_metrics(engine, baseline_run)}
        assert list(metrics) == [
            "Revenue", "Gross Profit", "EBIT", "Net Income",
            "Total Assets", "Operating Cash Flow", "Free Cash Flow",
        ]
        assert metrics["Revenue"].original == 22_500_000
        assert metrics["Revenue"].simulated == engine.revenue
        assert metrics["Free Cash Flow"].original == 3_900_000 - 1_500_000

    def test_ratio_rows(self, baseline_run):
        rows = build_ratio_comparison(baseline_run, baseline_run)
        assert len(rows) == 10
        units = {row.name: row.unit for row in rows}
        assert units["Gross Margin"] == "%"
        assert units["Current Ratio"] == "x"
        assert units["Cash Conversion Cycle"] == "days"
        assert all(row.original == row.simulated for row in rows)

    def test_economic_trends_echo_parameters(self, defaults):
        trends = {t.name: t.value for t in build_economic_trends(defaults.replace(pmi=48))}
        assert trends["PMI"] == 48
        assert trends["Forex (USD/INR)"] == 87.0
        assert len(trends) == 8


# ═══════════════════════════════════════════════════════════════════════════════
# FULL RESULT
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestSimulationResult:

    def test_identity_result(self, defaults, config):
        result = run_full_simulation(defaults, config)
        assert result.simulation_parameters == NO_CHANGES_SUMMARY
        assert result.overall_score == 82
        assert result.risk_level == RiskLevel.LOW
        assert len(result.sensitivity_data) == 5
        assert len(result.waterfall_data) == 9
        assert result.simulation_analysis == ""

    def test_to_dict_shape(self, defaults, config):
        data = run_full_simulation(defaults.replace(discount=15), config).to_dict()
        assert set(data) == {
            "simulationParameters", "simulationAnalysis", "suggestions", "riskAssessment",
            "simulatedBalanceSheet", "simulatedProfitAndLoss", "simulatedCashFlow",
            "keyMetrics", "economicTrends", "financialRatios", "waterfallData",
            "sensitivityData", "overallScore", "riskLevel",
        }
        assert data["simulationParameters"] == "Modified parameters: discount: 5 → 15"
        assert data["riskLevel"] in {"low", "medium", "high", "critical"}

    def test_with_commentary_keeps_numbers(self, defaults, config):
        result = run_full_simulation(defaults, config)
        merged = result.with_commentary("analysis", "suggestions", "risks")
        assert merged.simulation_analysis == "analysis"
        assert merged.risk_assessment == "risks"
        assert merged.key_metrics == result.key_metrics
        assert merged.overall_score == result.overall_score
        assert result.simulation_analysis == ""

    def test_ratio_originals_come_from_baseline_run(self, defaults, config, baseline_run):
        result = run_full_simulation(defaults.replace(commodity_index=120), config)
        originals = {row.name: row.original for row in result.financial_ratios}
        assert originals["Gross Margin"] == baseline_run.ratios.gross_margin
        assert originals["Interest Coverage"] == baseline_run.ratios.interest_coverage
