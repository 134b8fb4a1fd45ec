"""
Simulation Baseline Configuration

Immutable configuration handed to every simulation entry point: the
company's baseline statements and the neutral parameter vector derived from
them.

Every simulation run is expressed as a delta or ratio against these values.
Nothing in here is ever mutated; a different company is a different
``BaselineFinancials`` instance wrapped with ``SimulationConfig.from_financials``.
"""

from dataclasses import dataclass

from simulation_models import (
    BaselineConfigurationError,
    BaselineFinancials,
    SimulationParameters,
)

__all__ = [
    "BaselineConfigurationError",
    "BaselineFinancials",
    "SimulationConfig",
    "DEFAULT_CONFIG",
]


@dataclass(frozen=True)
class SimulationConfig:
    """
    Everything a run needs besides the parameter vector.

    ``defaults`` is the neutral parameter vector; each parameter's deviation
    is measured against it.
    """
    financials: BaselineFinancials
    defaults: SimulationParameters

    @classmethod
    def from_financials(cls, financials: BaselineFinancials) -> "SimulationConfig":
        return cls(financials=financials, defaults=SimulationParameters.for_baseline(financials))


DEFAULT_CONFIG = SimulationConfig.from_financials(BaselineFinancials())
