from __future__ import annotations

"""
Roof state containers (double-buffered temperatures + moisture bookkeeping).

- SurfaceThermalState: node temperatures as DoubleBufferedValue (K).
  Solvers start from .read and store into .write; swap_all() at the end of a
  timestep makes the new values the previous ones.
- CanopyFactors: quantities the plant-coverage model refreshes only on the
  first ecoroof surface and that every other surface reuses.
- EcoRoofState: everything that persists across timesteps.
"""

from dataclasses import dataclass, field

from pyecoroof.constants import KELVIN
from pyecoroof.materials import LiveSoilProperties, MaterialParameters
from pyecoroof.moisture import FluxAccumulators, MoistureState
from pyecoroof.numerics.double_buffer import DoubleBufferedValue


@dataclass
class SurfaceThermalState:
    leaf: DoubleBufferedValue
    soil: DoubleBufferedValue  # under canopy
    bare_soil: DoubleBufferedValue
    soil_avg: DoubleBufferedValue

    @classmethod
    def uniform(cls, temp_k: float) -> SurfaceThermalState:
        return cls(
            leaf=DoubleBufferedValue(temp_k),
            soil=DoubleBufferedValue(temp_k),
            bare_soil=DoubleBufferedValue(temp_k),
            soil_avg=DoubleBufferedValue(temp_k),
        )

    def buffers(self) -> tuple[DoubleBufferedValue, ...]:
        return (self.leaf, self.soil, self.bare_soil, self.soil_avg)

    def reset(self, temp_k: float) -> None:
        for b in self.buffers():
            b.reset(temp_k)

    def swap_all(self) -> None:
        for b in self.buffers():
            b.swap()


@dataclass
class CanopyFactors:
    f_vwc: float = 1.0  # stomatal moisture factor
    ground_albedo: float = 0.3143  # moisture-dependent soil albedo (dry value at Mg=0)
    r_s_sub: float = 34.52  # sub-canopy soil surface resistance (s/m)
    refreshed: bool = False


@dataclass
class EcoRoofState:
    material: MaterialParameters
    moisture: MoistureState
    fluxes: FluxAccumulators
    live: LiveSoilProperties
    thermal: SurfaceThermalState
    canopy: CanopyFactors = field(default_factory=CanopyFactors)
    first_surface: int | str | None = None
    t_seconds: float = 0.0
    steps: int = 0

    @classmethod
    def initial(cls, material: MaterialParameters, outdoor_temp_c: float = 10.0) -> EcoRoofState:
        m0 = material.moisture_initial
        return cls(
            material=material,
            moisture=MoistureState(top=m0, root=m0),
            fluxes=FluxAccumulators(),
            live=LiveSoilProperties.from_material(material),
            thermal=SurfaceThermalState.uniform(outdoor_temp_c + KELVIN),
        )

    def reset_moisture(self) -> None:
        """Initial moisture in both layers and the dry soil albedo."""
        m0 = self.material.moisture_initial
        self.moisture.top = m0
        self.moisture.root = m0
        self.live.albedo = self.material.dry_albedo

    def reset_environment(self, outdoor_temp_c: float) -> None:
        self.reset_moisture()
        self.thermal.reset(outdoor_temp_c + KELVIN)
        self.fluxes.reset()
        self.canopy = CanopyFactors()

    def swap_all(self) -> None:
        self.thermal.swap_all()
