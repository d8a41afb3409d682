from __future__ import annotations

"""
Side-effect-free closure checks for the ecoroof.

Purpose
- Water balance: storage change vs. precipitation + irrigation - ET - runoff,
  from a MoistureStepReport.
- Energy closure: residual of each node balance at the solved temperatures
  (plant-coverage model), and of the bulk soil surface for either model.
- The moisture and temperature bounds that must hold after every timestep.

Notes
- All functions are pure (no global mutation). Callers decide where to log/print.
- Energy residuals are W/m^2 of roof; water residuals are m of water.
"""

from typing import Any

import numpy as np

from pyecoroof.constants import KELVIN
from pyecoroof.moisture import RESIDUAL_FLOOR, SATURATION_CAP, MoistureStepReport
from pyecoroof.roof.ports import EnergyBalanceResult
from pyecoroof.roof.state import EcoRoofState


def _as_value(x: Any) -> float:
    """Accept a DoubleBufferedValue (we use .read) or a plain number."""
    if hasattr(x, "read"):
        return float(x.read)
    return float(x)


def water_balance_residual(report: MoistureStepReport) -> float:
    return float(report.closure_error)


def soil_surface_residual(result: EnergyBalanceResult, model_name: str = "plant_coverage") -> float:
    """
    Net gain of the (area-weighted) soil surface, W/m^2.

    plant_coverage reports sensible and latent heat as losses from the soil:
        SW + LW - sensible - latent - conduction
    two_node reports both as fluxes to the ground (FASST sign convention):
        SW + LW + sensible + latent - conduction
    Both vanish at steady state; within a timestep the first carries the
    lag of the sequential node solves, the second the linearisation error
    of the closed-form solve.
    """
    sign = 1.0 if model_name == "two_node" else -1.0
    return float(
        result.net_sw_soil
        + result.net_lw_soil
        + sign * (result.sensible_soil + result.latent_soil)
        - result.conduction_soil
    )


def node_residuals(model, state: EcoRoofState, weather, geometry, ctf, result: EnergyBalanceResult) -> dict[str, float]:
    """
    Re-evaluate the plant-coverage node balances at the solved temperatures.

    The nodes are solved in sequence (leaf, soil, bare soil), each against the
    newest neighbour values available; neighbours not yet solved are the
    previous-timestep values still in the read buffers, so this must run
    before end_timestep(). Requires a model exposing build_context()
    (PlantCoverageModel). Nodes skipped for sigma_f in {0, 1} are omitted.
    """
    from pyecoroof.roof import plant_coverage as pc

    ctx = model.build_context(state, weather, geometry, ctf)
    th = state.thermal
    out: dict[str, float] = {}
    if "leaf" in result.solves:
        out["leaf"] = pc.leaf_fluxes(result.leaf_temp, th.soil.read, ctx).residual
    if "soil" in result.solves:
        out["soil"] = pc.soil_fluxes(result.soil_temp, result.leaf_temp, th.bare_soil.read, ctx).residual
    if "bare_soil" in result.solves:
        out["bare_soil"] = pc.bare_soil_fluxes(result.bare_soil_temp, result.soil_temp, ctx).residual
    return out


def moisture_within_bounds(state: EcoRoofState) -> bool:
    m = state.material
    hi = SATURATION_CAP * m.moisture_max
    lo = RESIDUAL_FLOOR * m.moisture_residual
    tol = 1.0e-12
    return all(lo - tol <= x <= hi + tol for x in (state.moisture.top, state.moisture.root))


def temperatures_finite(state: EcoRoofState) -> bool:
    vals = [_as_value(b) for b in state.thermal.buffers()]
    return bool(np.all(np.isfinite(vals)))


def step_report(
    state: EcoRoofState,
    result: EnergyBalanceResult,
    water: MoistureStepReport | None = None,
    model_name: str = "plant_coverage",
) -> dict[str, float]:
    """Flat dict for logging one timestep."""
    rep: dict[str, float] = {
        "t_seconds": float(state.t_seconds),
        "T_surface_C": float(result.boundary_temperature_c),
        "T_leaf_C": float(result.leaf_temp - KELVIN),
        "moisture_top": float(state.moisture.top),
        "moisture_root": float(state.moisture.root),
        "soil_surface_residual": soil_surface_residual(result, model_name),
        "converged": float(result.converged),
    }
    if water is not None:
        rep["water_residual"] = water_balance_residual(water)
        rep["runoff"] = float(water.runoff)
        rep["et"] = float(water.et)
    return rep
