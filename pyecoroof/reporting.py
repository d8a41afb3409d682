"""
reporting.py

Named report quantities of the ecoroof simulation and their export.

- REPORT_VARIABLES: fixed list of (name, units, kind); kind is "State" for
  instantaneous values and "Sum" for depths accumulated over a period.
- ReportRegistry: registers the fixed set once, accepts per-timestep updates,
  keeps a history of snapshots and writes it to netCDF.
- report_values(state, result): map the simulation state + last energy
  balance onto the report names.

The netCDF writer imports netCDF4 lazily so the core model runs without it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from pyecoroof.constants import KELVIN

if TYPE_CHECKING:  # pragma: no cover
    from pyecoroof.roof.ports import EnergyBalanceResult
    from pyecoroof.roof.state import EcoRoofState


@dataclass(frozen=True)
class ReportVariable:
    name: str
    units: str
    kind: str  # "State" | "Sum"

    @property
    def key(self) -> str:
        """netCDF-safe identifier."""
        out = []
        for ch in self.name.lower():
            out.append(ch if ch.isalnum() else "_")
        key = "".join(out)
        while "__" in key:
            key = key.replace("__", "_")
        return key.strip("_")


REPORT_VARIABLES: tuple[ReportVariable, ...] = (
    ReportVariable("Green Roof Soil Temperature", "C", "State"),
    ReportVariable("Green Roof Vegetation Temperature", "C", "State"),
    ReportVariable("Green Roof Soil Root Moisture Ratio", "", "State"),
    ReportVariable("Green Roof Soil Near Surface Moisture Ratio", "", "State"),
    ReportVariable("Green Roof Soil Sensible Heat Transfer Rate per Area", "W/m2", "State"),
    ReportVariable("Green Roof Vegetation Sensible Heat Transfer Rate per Area", "W/m2", "State"),
    ReportVariable("Green Roof Vegetation Moisture Transfer Rate", "m/s", "State"),
    ReportVariable("Green Roof Soil Moisture Transfer Rate", "m/s", "State"),
    ReportVariable("Green Roof Vegetation Latent Heat Transfer Rate per Area", "W/m2", "State"),
    ReportVariable("Green Roof Soil Latent Heat Transfer Rate per Area", "W/m2", "State"),
    ReportVariable("Green Roof Cumulative Precipitation Depth", "m", "Sum"),
    ReportVariable("Green Roof Cumulative Irrigation Depth", "m", "Sum"),
    ReportVariable("Green Roof Cumulative Runoff Depth", "m", "Sum"),
    ReportVariable("Green Roof Cumulative Evapotranspiration Depth", "m", "Sum"),
    ReportVariable("Green Roof Current Precipitation Depth", "m", "Sum"),
    ReportVariable("Green Roof Current Irrigation Depth", "m", "Sum"),
    ReportVariable("Green Roof Current Runoff Depth", "m", "Sum"),
    ReportVariable("Green Roof Current Evapotranspiration Depth", "m", "Sum"),
    ReportVariable("Green Roof Soil Net SW Rad", "W/m2", "State"),
    ReportVariable("Green Roof Soil Net LW Rad", "W/m2", "State"),
    ReportVariable("Green Roof Soil Conduction", "W/m2", "State"),
)


def report_values(state: EcoRoofState, result: EnergyBalanceResult) -> dict[str, float]:
    fx = state.fluxes
    has_plants = result.latent_foliage != 0.0 or result.sensible_foliage != 0.0 or state.material.plant_coverage > 0.0
    return {
        "Green Roof Soil Temperature": result.boundary_temperature_c,
        "Green Roof Vegetation Temperature": (result.leaf_temp - KELVIN) if has_plants else 0.0,
        "Green Roof Soil Root Moisture Ratio": state.moisture.root,
        "Green Roof Soil Near Surface Moisture Ratio": state.moisture.top,
        "Green Roof Soil Sensible Heat Transfer Rate per Area": result.sensible_soil,
        "Green Roof Vegetation Sensible Heat Transfer Rate per Area": result.sensible_foliage,
        "Green Roof Vegetation Moisture Transfer Rate": result.vflux_f,
        "Green Roof Soil Moisture Transfer Rate": result.vflux_g,
        "Green Roof Vegetation Latent Heat Transfer Rate per Area": result.latent_foliage,
        "Green Roof Soil Latent Heat Transfer Rate per Area": result.latent_soil,
        "Green Roof Cumulative Precipitation Depth": fx.cumulative_precipitation,
        "Green Roof Cumulative Irrigation Depth": fx.cumulative_irrigation,
        "Green Roof Cumulative Runoff Depth": fx.cumulative_runoff,
        "Green Roof Cumulative Evapotranspiration Depth": fx.cumulative_et,
        "Green Roof Current Precipitation Depth": fx.current_precipitation,
        "Green Roof Current Irrigation Depth": fx.current_irrigation,
        "Green Roof Current Runoff Depth": fx.current_runoff,
        "Green Roof Current Evapotranspiration Depth": fx.current_et,
        "Green Roof Soil Net SW Rad": result.net_sw_soil,
        "Green Roof Soil Net LW Rad": result.net_lw_soil,
        "Green Roof Soil Conduction": result.conduction_soil,
    }


class ReportRegistry:
    """
    Use:
      reg = ReportRegistry()
      reg.register()                # idempotent
      reg.update(report_values(state, result))
      reg.record(t_seconds)         # append a snapshot to the history
      reg.to_netcdf("output/ecoroof.nc")
    """

    def __init__(self, variables: tuple[ReportVariable, ...] = REPORT_VARIABLES):
        self._catalog = {v.name: v for v in variables}
        self._values: dict[str, float] = {}
        self._registered = False
        self.times: list[float] = []
        self.history: list[dict[str, float]] = []

    @property
    def registered(self) -> bool:
        return self._registered

    @property
    def names(self) -> list[str]:
        return list(self._catalog)

    def variable(self, name: str) -> ReportVariable:
        return self._catalog[name]

    def register(self) -> None:
        if self._registered:
            return
        self._values = {name: 0.0 for name in self._catalog}
        self._registered = True

    def update(self, values: dict[str, float]) -> None:
        if not self._registered:
            self.register()
        unknown = [k for k in values if k not in self._catalog]
        if unknown:
            raise KeyError(f"Unknown report quantities: {unknown}")
        for k, v in values.items():
            self._values[k] = float(v)

    def snapshot(self) -> dict[str, float]:
        return dict(self._values)

    def record(self, t_seconds: float) -> None:
        self.times.append(float(t_seconds))
        self.history.append(self.snapshot())

    def series(self, name: str) -> np.ndarray:
        if name not in self._catalog:
            raise KeyError(f"Unknown report quantity: {name!r}")
        return np.asarray([h[name] for h in self.history], dtype=float)

    def clear_history(self) -> None:
        self.times.clear()
        self.history.clear()

    def to_netcdf(self, out_path: str) -> str:
        """Write the recorded history to a netCDF file with a 'time' dimension."""
        # Lazy import to keep core runnable without netCDF4 present
        try:
            from netCDF4 import Dataset
        except Exception as e:
            raise RuntimeError("netCDF4 is required for export. Please install 'netCDF4' and retry.") from e

        out_dir = os.path.dirname(out_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)

        with Dataset(out_path, "w") as ds:
            ds.title = "Green roof surface energy and moisture balance"
            ds.createDimension("time", len(self.times))
            t = ds.createVariable("time", "f8", ("time",))
            t.units = "seconds since start of environment"
            t[:] = np.asarray(self.times, dtype=float)
            for name, var in self._catalog.items():
                v = ds.createVariable(var.key, "f8", ("time",))
                v.long_name = name
                v.units = var.units
                v.report_kind = var.kind
                v[:] = self.series(name)
        return out_path
