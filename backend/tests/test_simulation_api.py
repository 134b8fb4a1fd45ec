"""
Simulation API and Service Tests

Runs the FastAPI app in-process with a commentary generator whose LLM is
mocked, so no network access is needed.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from commentary import CommentaryConfig, CommentaryGenerator, CommentaryLLMClient, LLMResponse
from main import app
from simulation_api import get_simulation_service
from simulation_models import SimulationParameters
from simulation_service import SimulationService


COMMENTARY = {
    "simulation_analysis": "Stable quarter.",
    "suggestions": "1. Hold pricing.",
    "risk_assessment": "Low liquidity risk.",
}


def _generator(enabled=True, text=None, side_effect=None, timeout=5.0):
    llm = MagicMock(spec=CommentaryLLMClient)
    llm.enabled = enabled
    llm.config = CommentaryConfig(api_key="test-key", timeout=timeout)
    llm.complete = AsyncMock(
        return_value=LLMResponse(
            text=text if text is not None else json.dumps(COMMENTARY),
            tokens_used=10, model="gpt-4o", finish_reason="stop", latency_ms=5,
        ),
        side_effect=side_effect,
    )
    return CommentaryGenerator(llm_client=llm, timeout=timeout)


@pytest.fixture
def client():
    service = SimulationService(commentary=_generator())
    app.dependency_overrides[get_simulation_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


# ═══════════════════════════════════════════════════════════════════════════════
# SERVICE
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestSimulationService:

    def test_run_has_no_commentary(self, defaults):
        result = SimulationService().run(defaults)
        assert result.simulation_analysis == ""
        assert result.overall_score == 82

    def test_run_async_merges_commentary(self, defaults):
        service = SimulationService(commentary=_generator())
        result = asyncio.run(service.run_async(defaults.replace(discount=10)))
        assert result.simulation_analysis == "Stable quarter."
        assert result.suggestions == "1. Hold pricing."

    def test_commentary_failure_keeps_numbers(self, defaults):
        params = defaults.replace(discount=10)
        numbers = SimulationService().run(params)

        service = SimulationService(commentary=_generator(side_effect=RuntimeError("boom")))
        result = asyncio.run(service.run_async(params))

        assert "Automated commentary is unavailable" in result.simulation_analysis
        assert result.key_metrics == numbers.key_metrics
        assert result.waterfall_data == numbers.waterfall_data
        assert result.overall_score == numbers.overall_score

    def test_commentary_can_be_skipped(self, defaults):
        generator = _generator()
        service = SimulationService(commentary=generator)
        result = asyncio.run(service.run_async(defaults, include_commentary=False))
        assert result.simulation_analysis == ""
        generator.llm.complete.assert_not_awaited()

    def test_parameters_from_partial_mapping(self, defaults):
        params = SimulationService().parameters_from({"pmi": 45})
        assert params.pmi == 45
        assert params.discount == defaults.discount

    def test_service_uses_its_own_baseline(self, small_company_config):
        service = SimulationService(config=small_company_config)
        result = service.run(service.parameters_from({}))
        revenue = result.metric("Revenue")
        assert revenue.original == revenue.simulated == 5_000_000

    def test_one_generator_per_service(self, defaults, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        service = SimulationService()
        generator = service.commentary
        assert isinstance(generator, CommentaryGenerator)
        asyncio.run(service.run_async(defaults))
        assert service.commentary is generator

    def test_aclose_closes_llm_client(self):
        generator = _generator()
        generator.llm.aclose = AsyncMock()
        asyncio.run(SimulationService(commentary=generator).aclose())
        generator.llm.aclose.assert_awaited_once()

    def test_provider_returns_shared_service(self):
        get_simulation_service.cache_clear()
        try:
            assert get_simulation_service() is get_simulation_service()
        finally:
            get_simulation_service.cache_clear()


# ═══════════════════════════════════════════════════════════════════════════════
# API
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.integration
class TestSimulationAPI:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Financial Impact Simulator API is running"}

    def test_baseline(self, client):
        response = client.get("/simulation/baseline")
        assert response.status_code == 200
        data = response.json()
        assert data["parameters"]["discount"] == 5.0
        assert data["financials"]["net_income"] == 2_480_000
        assert data["profitAndLoss"][0] == {"item": "Revenue", "amount": 22_500_000}
        assert set(data["balanceSheet"]) == {"assets", "liabilities", "equity"}

    def test_baseline_parameter_groups(self, client):
        groups = client.get("/simulation/baseline").json()["parameterGroups"]
        assert groups["pricing"] == ["discount", "new_product_impact"]
        grouped = [name for names in groups.values() for name in names]
        assert sorted(grouped) == sorted(SimulationParameters.field_names())

    def test_run_identity(self, client):
        response = client.post("/simulation/run", json={"parameters": {}})
        assert response.status_code == 200
        data = response.json()
        assert data["simulationParameters"] == "All parameters at baseline (no changes)."
        assert data["overallScore"] == 82
        assert data["riskLevel"] == "low"
        assert data["simulationAnalysis"] == "Stable quarter."
        assert len(data["sensitivityData"]) == 5
        assert len(data["waterfallData"]) == 9

    def test_run_balances(self, client):
        response = client.post(
            "/simulation/run",
            json={"parameters": {"market_demand": 85, "interest_rate": 8.5}, "include_commentary": False},
        )
        assert response.status_code == 200
        data = response.json()
        bs = data["simulatedBalanceSheet"]
        total_assets = bs["assets"][-1]["amount"]
        total_le = bs["equity"][-1]["amount"]
        assert total_assets == total_le
        assert data["simulationAnalysis"] == ""

    def test_run_rejects_non_numeric(self, client):
        response = client.post("/simulation/run", json={"parameters": {"discount": "lots"}})
        assert response.status_code == 422

    def test_run_extreme_values(self, client):
        response = client.post(
            "/simulation/run",
            json={"parameters": {"market_demand": 1e308, "rd_expenditure": 1e32}, "include_commentary": False},
        )
        assert response.status_code == 200
        bs = response.json()["simulatedBalanceSheet"]
        assert bs["assets"][-1]["amount"] == bs["equity"][-1]["amount"]

    def test_run_rejects_non_finite(self, client):
        response = client.post(
            "/simulation/run",
            content='{"parameters": {"discount": Infinity}}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422

    def test_run_rejects_long_note(self, client):
        response = client.post("/simulation/run", json={"parameters": {}, "scenario_note": "x" * 2001})
        assert response.status_code == 422

    def test_explain(self, client):
        response = client.post(
            "/simulation/explain",
            json={"item": "Revenue", "parameters": {"market_demand": 110}},
        )
        assert response.status_code == 200
        data = response.json()
        assert "Market Demand" in data["drivers"]
        assert "Market Demand increased (100 → 110)" in data["narrative"]

    def test_explain_unknown_item(self, client):
        response = client.post("/simulation/explain", json={"item": "Crypto Holdings"})
        assert response.status_code == 404
