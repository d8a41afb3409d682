from __future__ import annotations

"""
Roof energy-model API: one protocol, two interchangeable strategies.

- EnergyBalanceModel: solve(state, weather, geometry, ctf, is_first_surface)
  -> EnergyBalanceResult. Models store new node temperatures into the write
  buffers of state.thermal; the orchestrator owns the swap.
- make_energy_model(kind): name -> model factory.

Notes
- Both strategies share the convection and psychrometric helpers; neither
  touches the moisture state (the orchestrator runs the moisture updater first).
"""

from typing import Protocol

from pyecoroof.config import ENERGY_MODELS
from pyecoroof.errors import ConfigurationError
from pyecoroof.roof.plant_coverage import PlantCoverageModel
from pyecoroof.roof.ports import (
    ConductionCoefficients,
    DrivingConditions,
    EnergyBalanceResult,
    SurfaceGeometry,
)
from pyecoroof.roof.state import EcoRoofState
from pyecoroof.roof.two_node import TwoNodeModel

__all__ = ["ENERGY_MODELS", "EnergyBalanceModel", "make_energy_model"]


class EnergyBalanceModel(Protocol):
    name: str

    def solve(
        self,
        state: EcoRoofState,
        weather: DrivingConditions,
        geometry: SurfaceGeometry,
        ctf: ConductionCoefficients,
        is_first_surface: bool,
    ) -> EnergyBalanceResult:
        ...


def make_energy_model(kind: str = "plant_coverage", **kwargs) -> EnergyBalanceModel:
    """
    kind:
      - "plant_coverage" (aliases: "node", "green_roof"): three-node Newton solve
      - "two_node" (aliases: "fasst", "ecoroof"): FASST simultaneous leaf/ground solve
    kwargs are forwarded to the model constructor.
    """
    k = (kind or "").strip().lower()
    if k in ("plant_coverage", "node", "green_roof"):
        return PlantCoverageModel(**kwargs)
    if k in ("two_node", "fasst", "ecoroof"):
        return TwoNodeModel(**kwargs)
    raise ConfigurationError(f"Unknown energy model kind: {kind!r}")
