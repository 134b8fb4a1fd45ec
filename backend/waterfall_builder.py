"""
Waterfall Builder

Bridges baseline net income to simulated net income through one signed
entry per P&L driver. Expense increases show up as net income decreases.
"""

from typing import List

from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import EngineNumbers, WaterfallEntry, WaterfallEntryType


def _driver_entry(name: str, value: int) -> WaterfallEntry:
    entry_type = WaterfallEntryType.INCREASE if value >= 0 else WaterfallEntryType.DECREASE
    return WaterfallEntry(name=name, value=value, type=entry_type)


def build_waterfall(
    engine: EngineNumbers,
    config: SimulationConfig = DEFAULT_CONFIG,
) -> List[WaterfallEntry]:
    """
    Build the ordered net income bridge.

    The first and last entries are totals; the middle entries sum to their
    difference. Other income is a pass-through of the baseline and so has no
    entry of its own.
    """
    base = config.financials

    return [
        WaterfallEntry("Original Net Income", base.net_income, WaterfallEntryType.TOTAL),
        _driver_entry("Revenue Change", engine.revenue - base.revenue),
        _driver_entry("COGS Change", -(engine.cogs - base.cogs)),
        _driver_entry("SG&A Change", -(engine.sga - base.sga)),
        _driver_entry("R&D Change", -(engine.rd - base.rd)),
        _driver_entry("D&A Change", -(engine.da - base.da)),
        _driver_entry("Interest Change", -(engine.interest_expense - base.interest_expense)),
        _driver_entry("Tax Change", -(engine.tax - base.income_tax)),
        WaterfallEntry("Simulated Net Income", engine.net_income, WaterfallEntryType.TOTAL),
    ]
