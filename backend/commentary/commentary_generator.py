"""
Commentary Generator

Turns the compact numeric summary of a simulation run into three prose
fields: analysis, suggestions and risk assessment.

The step is best-effort. ``generate_safe`` bounds it with a timeout and falls
back to deterministic placeholder text built from the same numbers, so a slow
or failing LLM never invalidates the numeric result.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
import asyncio
import json
import logging

from financial_math import pct_change, quantize
from simulation_models import SimulationResult

from .llm_client import CommentaryLLMClient, CommentaryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommentaryInput:
    """Compact numeric summary handed to the commentary step."""
    parameter_summary: str
    revenue_change: float  # % vs baseline
    net_income_change: float  # % vs baseline
    gross_margin: float
    operating_margin: float
    net_margin: float
    current_ratio: float
    debt_to_equity: float
    interest_coverage: float
    health_score: int
    risk_level: str
    scenario_note: Optional[str] = None

    @classmethod
    def from_result(
        cls,
        result: SimulationResult,
        scenario_note: Optional[str] = None,
    ) -> "CommentaryInput":
        revenue = result.metric("Revenue")
        net_income = result.metric("Net Income")
        ratios = {row.name: row.simulated for row in result.financial_ratios}

        return cls(
            parameter_summary=result.simulation_parameters,
            revenue_change=quantize(pct_change(revenue.original, revenue.simulated), 1),
            net_income_change=quantize(pct_change(net_income.original, net_income.simulated), 1),
            gross_margin=ratios["Gross Margin"],
            operating_margin=ratios["Operating Margin"],
            net_margin=ratios["Net Margin"],
            current_ratio=ratios["Current Ratio"],
            debt_to_equity=ratios["Debt/Equity"],
            interest_coverage=ratios["Interest Coverage"],
            health_score=result.overall_score,
            risk_level=result.risk_level.value,
            scenario_note=scenario_note or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CommentaryOutput:
    """The three prose fields merged into a SimulationResult."""
    simulation_analysis: str
    suggestions: str
    risk_assessment: str
    is_placeholder: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CommentaryGenerator:
    """
    Generates qualitative commentary for a simulation run.

    Used for:
    - Executive summary of the run
    - Numbered recommendations tied to adjustable parameters
    - Risk assessment with mitigations
    """

    def __init__(
        self,
        llm_client: Optional[CommentaryLLMClient] = None,
        timeout: Optional[float] = None,
    ):
        self.llm = llm_client or CommentaryLLMClient()
        self.timeout = timeout if timeout is not None else self.llm.config.timeout

    def build_prompt(self, data: CommentaryInput) -> str:
        prompt = f"""Provide a concise qualitative assessment of a simulation run.

## Pre-computed Results (use these numbers - do NOT recalculate)
- Parameter changes: {data.parameter_summary}
- Revenue change: {data.revenue_change}%
- Net income change: {data.net_income_change}%
- Gross margin: {data.gross_margin}% | Operating margin: {data.operating_margin}% | Net margin: {data.net_margin}%
- Current ratio: {data.current_ratio}x | Debt/equity: {data.debt_to_equity}x | Interest coverage: {data.interest_coverage}x
- Health score: {data.health_score}/100 | Risk level: {data.risk_level}
"""
        if data.scenario_note:
            prompt += f"""
## User's Scenario Note
"{data.scenario_note}"
Factor this context into your analysis.
"""
        prompt += """
## Your Task

1. simulation_analysis - a 3-5 sentence executive summary: what drove the revenue and
   income change, how margins and cost structure shifted, cash-flow and balance-sheet
   implications, overall outlook (positive / cautious / negative).
2. suggestions - 3-5 numbered, actionable recommendations the user can implement by
   adjusting simulation parameters.
3. risk_assessment - 2-4 key risks with likelihood (low/medium/high) and one mitigation
   each. Consider liquidity squeeze, over-leverage, margin compression, demand
   contraction, input-cost inflation.

Format your response as JSON with keys: simulation_analysis, suggestions, risk_assessment"""
        return prompt

    @staticmethod
    def _parse_response(text: str) -> CommentaryOutput:
        if "```json" in text:
            text = text.split("```json")[1].split("```")[0]
        elif "```" in text:
            text = text.split("```")[1].split("```")[0]

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise CommentaryError(f"Commentary response is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise CommentaryError("Commentary response is not a JSON object")

        fields = {}
        for key in ("simulation_analysis", "suggestions", "risk_assessment"):
            value = payload.get(key)
            if isinstance(value, list):
                value = "\n".join(str(v) for v in value)
            if not value:
                raise CommentaryError(f"Commentary response is missing '{key}'")
            fields[key] = str(value).strip()
        return CommentaryOutput(**fields)

    async def generate(self, data: CommentaryInput) -> CommentaryOutput:
        """
        Generate commentary from the LLM.

        Raises:
            CommentaryError: On transport failure or an unusable response
        """
        response = await self.llm.complete(self.build_prompt(data))
        output = self._parse_response(response.text)
        logger.info(f"Commentary generated ({response.tokens_used} tokens, {response.latency_ms}ms)")
        return output

    async def generate_safe(self, data: CommentaryInput) -> CommentaryOutput:
        """
        Generate commentary, falling back to placeholder text on any failure.

        Bounded by ``self.timeout``. Cancellation by the caller propagates.
        """
        if not self.llm.enabled:
            logger.info("Commentary LLM not configured - using placeholder commentary")
            return self.placeholder(data)

        try:
            return await asyncio.wait_for(self.generate(data), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Commentary timed out after {self.timeout}s - using placeholder commentary")
        except Exception as e:
            logger.error(f"Commentary failed - using placeholder commentary: {e}")
        return self.placeholder(data)

    @staticmethod
    def placeholder(data: CommentaryInput) -> CommentaryOutput:
        """Deterministic commentary built only from the numeric summary."""
        revenue_dir = "up" if data.revenue_change >= 0 else "down"
        income_dir = "up" if data.net_income_change >= 0 else "down"

        analysis = (
            f"Revenue is {revenue_dir} {abs(data.revenue_change)}% and net income is "
            f"{income_dir} {abs(data.net_income_change)}% against the baseline. "
            f"Margins stand at {data.gross_margin}% gross, {data.operating_margin}% operating "
            f"and {data.net_margin}% net. The health score is {data.health_score}/100 "
            f"({data.risk_level} risk). Automated commentary is unavailable for this run."
        )
        suggestions = (
            "Automated suggestions are unavailable for this run. Review the sensitivity "
            "table to see which parameters move revenue, net income and operating cash "
            "flow the most."
        )
        risk_assessment = (
            f"Current ratio {data.current_ratio}x, debt/equity {data.debt_to_equity}x, "
            f"interest coverage {data.interest_coverage}x. Automated risk assessment is "
            "unavailable for this run."
        )
        return CommentaryOutput(analysis, suggestions, risk_assessment, is_placeholder=True)
