from __future__ import annotations

"""
Typed ports between the host heat-balance program and the roof energy models.

Goal
- Replace implicit global lookups (weather, surface tables, CTF history) with
  explicit, immutable per-call inputs, and give the models one result type.

Notes
- These are light dataclasses; the only logic is conduction_split(), which
  reproduces the host's linearisation of the conduction flux into the roof.
- Temperatures: *_c fields are °C, everything else K.

Examples
--------
weather = DrivingConditions(
    outdoor_temp_c=25.0, wind_speed=3.0, relative_humidity=50.0,
    pressure=101325.0, beam_solar=600.0, diffuse_solar=100.0,
    sky_temp=280.0, ground_temp=298.15,
)
geometry = SurfaceGeometry(area=100.0, view_factor_sky=1.0, view_factor_ground=0.0)
q1, q2 = conduction_split(ConductionCoefficients(ctf_outside=5.0))
"""

from dataclasses import dataclass, field

from pyecoroof.constants import KELVIN
from pyecoroof.moisture import IrrigationMode, WaterInputs
from pyecoroof.numerics.newton import RootResult

__all__ = [
    "DrivingConditions",
    "SurfaceGeometry",
    "ConductionCoefficients",
    "conduction_split",
    "WaterInputs",
    "IrrigationMode",
    "EnergyBalanceResult",
]


# ------------------------------
# Host -> roof
# ------------------------------


@dataclass(frozen=True)
class DrivingConditions:
    outdoor_temp_c: float  # dry-bulb at roof height (°C)
    wind_speed: float  # m/s at roof height
    relative_humidity: float  # %
    pressure: float  # Pa
    beam_solar: float  # W/m^2 on the roof plane
    diffuse_solar: float  # W/m^2 (isotropic sky)
    sky_temp: float  # K
    ground_temp: float  # K
    aniso_sky_mult: float = 1.0  # anisotropic-sky multiplier for diffuse

    @property
    def outdoor_temp(self) -> float:
        return self.outdoor_temp_c + KELVIN

    @property
    def incident_solar(self) -> float:
        """RS = beam + anisotropic-sky-weighted diffuse (W/m^2)."""
        return self.beam_solar + self.aniso_sky_mult * self.diffuse_solar


@dataclass(frozen=True)
class SurfaceGeometry:
    area: float  # m^2
    view_factor_sky: float = 1.0
    view_factor_ground: float = 0.0


@dataclass(frozen=True)
class ConductionCoefficients:
    """Current CTF terms of the roof construction, as seen by the exterior face."""

    ctf_cross: float = 0.0
    ctf_inside: float = 0.0
    ctf_outside: float = 0.0
    ctf_source_in: float = 0.0
    const_out_part: float = 0.0
    const_in_part: float = 0.0
    qrad_sw_in_abs: float = 0.0
    qrad_therm_in_abs: float = 0.0
    qsrc_hist: float = 0.0
    h_conv_in: float = 0.0
    zone_air_temp: float = 0.0  # °C
    net_lw_rad_to_surf: float = 0.0
    temp_surf_in: float = 0.0  # °C


def conduction_split(ctf: ConductionCoefficients) -> tuple[float, float]:
    """
    Linearised conduction into the roof, Q_cond = -Q1 + Q2 * T_ext[°C].
    Returns (Q1, Q2) = (Qsoilpart1, Qsoilpart2).

    With significant cross coupling (ctf_cross > 0.01) the inside face is
    eliminated through the inside heat balance; otherwise the last inside
    surface temperature is used directly.
    """
    if ctf.ctf_cross > 0.01:
        f1 = ctf.ctf_cross / (ctf.ctf_inside + ctf.h_conv_in)
        q1 = -ctf.const_out_part + f1 * (
            ctf.const_in_part
            + ctf.qrad_sw_in_abs
            + ctf.qrad_therm_in_abs
            + ctf.ctf_source_in * ctf.qsrc_hist
            + ctf.h_conv_in * ctf.zone_air_temp
            + ctf.net_lw_rad_to_surf
        )
    else:
        f1 = 0.0
        q1 = -ctf.const_out_part + ctf.ctf_cross * ctf.temp_surf_in
    q2 = ctf.ctf_outside - f1 * ctf.ctf_cross
    return q1, q2


# ------------------------------
# Roof -> host
# ------------------------------


@dataclass
class EnergyBalanceResult:
    """Outcome of one energy-balance solve; W/m^2 unless noted."""

    boundary_temperature_c: float  # handed to the host conduction solver
    leaf_temp: float  # K
    soil_temp: float  # K, soil under canopy (two-node: the ground node)
    bare_soil_temp: float  # K
    vflux_f: float = 0.0  # m/s
    vflux_g: float = 0.0  # m/s
    sensible_foliage: float = 0.0
    sensible_soil: float = 0.0
    latent_foliage: float = 0.0
    latent_soil: float = 0.0
    net_sw_soil: float = 0.0
    net_lw_soil: float = 0.0
    conduction_soil: float = 0.0
    solves: dict[str, RootResult] = field(default_factory=dict)
    recomputed: bool = True  # False when a gated model returned its previous answer

    @property
    def converged(self) -> bool:
        return all(r.ok for r in self.solves.values())
