"""
Simulation Service

Orchestrates one simulation request: numbers first (synchronous, pure),
then best-effort commentary merged into the finished result.
"""

from typing import Optional, Dict, Any, Mapping
import logging

from simulation_config import SimulationConfig, DEFAULT_CONFIG
from simulation_models import PARAMETER_GROUPS, SimulationParameters, SimulationResult
from simulation_engine import compute_statements
from result_assembler import run_full_simulation, build_profit_and_loss, build_balance_sheet, build_cash_flow
from line_item_explanations import LineItemExplanation, explain_line_item
from commentary import CommentaryGenerator, CommentaryInput

logger = logging.getLogger(__name__)


class SimulationService:
    """
    Service for running simulations.

    One generator (and so one LLM client) lives as long as the service.
    Without an API key it fills the narrative fields with placeholder text.
    """

    def __init__(
        self,
        config: SimulationConfig = DEFAULT_CONFIG,
        commentary: Optional[CommentaryGenerator] = None,
    ):
        self.config = config
        self.commentary = commentary if commentary is not None else CommentaryGenerator()

    def parameters_from(self, data: Optional[Mapping[str, Any]]) -> SimulationParameters:
        """Partial mapping over this service's defaults. Non-numeric values raise ValueError/TypeError."""
        return SimulationParameters.from_dict(data or {}, base=self.config.defaults)

    def run(self, params: SimulationParameters) -> SimulationResult:
        """Numeric result only; narrative fields stay empty."""
        result = run_full_simulation(params, self.config)
        logger.info(
            f"Simulation run: {result.simulation_parameters} | "
            f"score={result.overall_score} risk={result.risk_level.value}"
        )
        return result

    async def run_async(
        self,
        params: SimulationParameters,
        scenario_note: Optional[str] = None,
        include_commentary: bool = True,
    ) -> SimulationResult:
        """
        Numeric result plus commentary.

        Commentary failures and timeouts never surface here: the generator
        substitutes placeholder text and the numbers are returned unchanged.
        """
        result = self.run(params)
        if not include_commentary:
            return result

        data = CommentaryInput.from_result(result, scenario_note)
        output = await self.commentary.generate_safe(data)
        if output.is_placeholder:
            logger.info("Simulation returned with placeholder commentary")

        return result.with_commentary(
            simulation_analysis=output.simulation_analysis,
            suggestions=output.suggestions,
            risk_assessment=output.risk_assessment,
        )

    async def aclose(self):
        await self.commentary.llm.aclose()

    def explain(self, item: str, params: SimulationParameters) -> LineItemExplanation:
        return explain_line_item(item, params, self.config)

    def baseline(self) -> Dict[str, Any]:
        """Baseline statements as assembled lines, plus the neutral parameter vector and its grouping."""
        engine = compute_statements(self.config.defaults, self.config)
        return {
            "profitAndLoss": [line.to_dict() for line in build_profit_and_loss(engine)],
            "balanceSheet": build_balance_sheet(engine).to_dict(),
            "cashFlow": [line.to_dict() for line in build_cash_flow(engine)],
            "parameters": self.config.defaults.to_dict(),
            "parameterGroups": {group.value: list(names) for group, names in PARAMETER_GROUPS.items()},
            "financials": self.config.financials.to_dict(),
        }
