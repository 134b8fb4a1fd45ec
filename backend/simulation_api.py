"""
Financial Impact Simulation API

Endpoints:
- Baseline statements and default parameters
- Full simulation run (numbers + optional commentary)
- Line-item explanations
"""

from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Optional
from pydantic import BaseModel, Field, FiniteFloat

from simulation_service import SimulationService


router = APIRouter(prefix="/simulation", tags=["Financial Simulation"])


@lru_cache()
def get_simulation_service() -> SimulationService:
    """Process-wide service, so the commentary LLM client is shared across requests."""
    return SimulationService()


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════

class SimulationRunRequest(BaseModel):
    """Run a simulation. Omitted parameters keep their baseline value."""
    parameters: Dict[str, FiniteFloat] = Field(default_factory=dict)
    scenario_note: Optional[str] = Field(None, max_length=2000)
    include_commentary: bool = True


class ExplainRequest(BaseModel):
    """Explain one statement line for a parameter vector."""
    item: str
    parameters: Dict[str, FiniteFloat] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/baseline")
def get_baseline(service: SimulationService = Depends(get_simulation_service)):
    """Baseline statements and the default parameter vector."""
    return service.baseline()


@router.post("/run")
async def run_simulation(
    data: SimulationRunRequest,
    service: SimulationService = Depends(get_simulation_service),
):
    """Run the full simulation and return the SimulationResult JSON."""
    try:
        params = service.parameters_from(data.parameters)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {e}")

    result = await service.run_async(
        params,
        scenario_note=data.scenario_note,
        include_commentary=data.include_commentary,
    )
    return result.to_dict()


@router.post("/explain")
def explain_line_item(
    data: ExplainRequest,
    service: SimulationService = Depends(get_simulation_service),
):
    """Explain a statement line item for the given parameters."""
    try:
        params = service.parameters_from(data.parameters)
    except (ValueError, TypeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid parameters: {e}")

    try:
        explanation = service.explain(data.item, params)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown line item: {data.item}")
    return explanation.to_dict()
