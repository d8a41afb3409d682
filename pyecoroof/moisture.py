"""
moisture.py

Two-layer soil moisture bookkeeping and moisture-dependent soil thermal
properties for the ecoroof growing medium.

This module provides:
- MoistureParams: van Genuchten-Mualem constants, intake ceiling, diffusion
  rates and the property rate limit, loaded from environment variables.
- WaterInputs / IrrigationMode: per-timestep precipitation and irrigation port.
- MoistureState, FluxAccumulators: the persistent water state of the roof.
- split_layers(thickness): fixed top (near-surface) / root layer depths.
- check_stability(minutes, thickness): fatal guard for the unsaturated-flow model.
- MoistureUpdater: once-per-timestep update (ET, inputs, runoff, redistribution,
  residual-deficit propagation, thermal properties).

Conventions and units:
- Moisture is volumetric (m^3 water / m^3 soil).
- Water amounts (precipitation, irrigation, ET, runoff) are depths in m per timestep;
  ET rates vflux_f / vflux_g are m/s of liquid water.
- Stored water of a layer = moisture * layer depth (m).

Per call the update conserves water exactly:
    d(top*D_top + root*D_root) = P + I - ET - runoff
where ET is the evapotranspiration actually withdrawn (demand minus any part
that would have dried the soil below residual moisture).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

import numpy as np

from pyecoroof.constants import (
    INCH,
    MAX_ABSORPTANCE,
    MIN_ABSORPTANCE,
    RHO_WATER,
    WATER_SPECIFIC_HEAT_TERM,
    WET_ABSORPTANCE,
)
from pyecoroof.errors import ConfigurationError
from pyecoroof.materials import LiveSoilProperties, MaterialParameters
from pyecoroof.messages import RecurringWarning, diag_print

SIMPLE = "simple"
ADVANCED = "advanced"
MOISTURE_MODELS = (SIMPLE, ADVANCED)

# Moisture bounds as fractions of residual / saturation
RESIDUAL_FLOOR = 1.00001
FLOW_FLOOR = 1.01
SATURATION_CAP = 0.9999


@dataclass
class MoistureParams:
    # van Genuchten-Mualem (Schaap & van Genuchten 2006)
    vg_alpha: float = 23.0  # 1/m
    vg_n: float = 1.27
    vg_lambda: float = 0.5
    k_sat: float = 5.157e-7  # m/s

    # Inputs / runoff
    intake_ceiling_in_per_hr: float = 0.5  # larger single-timestep inputs run off

    # Simple diffusion rates (1/s); downward moves more easily than upward
    diffusion_down: float = 5.0e-5
    diffusion_up: float = 1.0e-5

    # Layering
    top_layer_depth: float = 0.06  # m, used when the soil is thicker than 2x this

    # Bottom drainage below one drop per hour (m/h) is ignored
    drainage_floor_m_per_hr: float = 2.33e-7
    min_relative_saturation: float = 1.0e-4

    # Soil thermal property rate limit: fraction per 15 minutes
    rate_limit_per_15min: float = 0.20

    diag: bool = True


def get_moisture_params_from_env() -> MoistureParams:
    def _f(env: str, default: float) -> float:
        try:
            return float(os.getenv(env, str(default)))
        except Exception:
            return default

    def _i(env: str, default: int) -> int:
        try:
            return int(os.getenv(env, str(default)))
        except Exception:
            return default

    return MoistureParams(
        vg_alpha=_f("ER_VG_ALPHA", 23.0),
        vg_n=_f("ER_VG_N", 1.27),
        vg_lambda=_f("ER_VG_LAMBDA", 0.5),
        k_sat=_f("ER_KSAT", 5.157e-7),
        intake_ceiling_in_per_hr=_f("ER_INTAKE_CEILING_IN_HR", 0.5),
        diffusion_down=_f("ER_DIFFUSION_DOWN", 5.0e-5),
        diffusion_up=_f("ER_DIFFUSION_UP", 1.0e-5),
        top_layer_depth=_f("ER_TOP_LAYER_DEPTH", 0.06),
        rate_limit_per_15min=_f("ER_RATE_LIMIT", 0.20),
        diag=(_i("ER_DIAG", 1) == 1),
    )


class IrrigationMode(Enum):
    NONE = "none"
    SCHEDULE = "schedule"  # scheduled amount always applied
    SMART = "smart"  # scheduled amount applied only while the top layer is dry


@dataclass(frozen=True)
class WaterInputs:
    """Per-timestep water supplied to the roof (depths in m)."""

    precipitation: float | None = None  # None: no precipitation schedule
    irrigation: float = 0.0
    irrigation_mode: IrrigationMode = IrrigationMode.NONE
    irrigation_threshold: float = 0.4  # fraction of moisture_max for SMART

    def irrigation_applied(self, top_moisture: float, moisture_max: float) -> float:
        if self.irrigation_mode == IrrigationMode.SCHEDULE:
            return max(self.irrigation, 0.0)
        if self.irrigation_mode == IrrigationMode.SMART:
            if top_moisture < self.irrigation_threshold * moisture_max:
                return max(self.irrigation, 0.0)
        return 0.0


@dataclass
class MoistureState:
    top: float  # near-surface layer
    root: float  # root-zone mean

    def stored_water(self, top_depth: float, root_depth: float) -> float:
        return self.top * top_depth + self.root * root_depth


@dataclass
class FluxAccumulators:
    # Latest evapotranspiration rates from the energy balance (m/s)
    vflux_f: float = 0.0  # vegetation (transpiration, root layer)
    vflux_g: float = 0.0  # soil surface (evaporation, top layer)

    # Current timestep depths (m)
    current_precipitation: float = 0.0
    current_irrigation: float = 0.0
    current_et: float = 0.0
    current_runoff: float = 0.0

    # Cumulative depths (m), not advanced during warm-up
    cumulative_precipitation: float = 0.0
    cumulative_irrigation: float = 0.0
    cumulative_et: float = 0.0
    cumulative_runoff: float = 0.0

    def reset(self) -> None:
        for name in self.__dataclass_fields__:
            setattr(self, name, 0.0)


@dataclass(frozen=True)
class LayerGeometry:
    top_depth: float
    root_depth: float

    @property
    def total(self) -> float:
        return self.top_depth + self.root_depth


def split_layers(thickness: float, top_layer_depth: float = 0.06) -> LayerGeometry:
    """Top layer is top_layer_depth, or half the soil when it is thin."""
    if thickness > 2.0 * top_layer_depth:
        top = top_layer_depth
    else:
        top = 0.5 * thickness
    return LayerGeometry(top_depth=top, root_depth=thickness - top)


def stability_limit_minutes(thickness: float) -> float:
    """Largest stable timestep (min) of the two-layer unsaturated-flow scheme."""
    depth_fac = 161240.0 * 2.0**-2.3 / 60.0
    return depth_fac * thickness**2.07


def required_substeps(minutes_per_timestep: int, thickness: float) -> int:
    """Smallest k in 1..20 with floor(minutes/k) within the stability limit; 21 if none."""
    limit = stability_limit_minutes(thickness)
    for k in range(1, 21):
        if (minutes_per_timestep // k) <= limit:
            return k
    return 21


def check_stability(minutes_per_timestep: int, thickness: float) -> None:
    k = required_substeps(minutes_per_timestep, thickness)
    if k > 1:
        steps_per_hour = 60 * k // minutes_per_timestep
        raise ConfigurationError(
            "Too few timesteps per hour for stability of the unsaturated-flow moisture model: "
            f"timestep={minutes_per_timestep} min, soil thickness={thickness} m. "
            f"Use more than {steps_per_hour} timesteps per hour."
        )


def relative_saturation(theta: float, residual: float, maximum: float) -> float:
    return (theta - residual) / (maximum - residual)


def hydraulic_conductivity(s: float, params: MoistureParams) -> float:
    """Unsaturated hydraulic conductivity K(S) (m/s), Mualem-van Genuchten."""
    n = params.vg_n
    m = (n - 1.0) / n
    inner = 1.0 - s ** (n / (n - 1.0))
    return params.k_sat * s**params.vg_lambda * (1.0 - max(inner, 0.0) ** m) ** 2


def capillary_potential(s: float, params: MoistureParams) -> float:
    """Matric potential psi(S) (m, negative)."""
    n = params.vg_n
    return (-1.0 / params.vg_alpha) * max((1.0 / s) ** (n / (n - 1.0)) - 1.0, 0.0) ** (1.0 / n)


def _rate_limited(current: float, target: float, ratio_min: float, ratio_max: float) -> float:
    if current == 0.0:
        return target
    ratio = float(np.clip(target / current, ratio_min, ratio_max))
    return current * ratio


@dataclass
class MoistureStepReport:
    storage_before: float
    storage_after: float
    precipitation: float
    irrigation: float
    et: float
    runoff: float
    drainage: float = 0.0

    @property
    def closure_error(self) -> float:
        """Storage change minus net input; zero to round-off."""
        return (self.storage_after - self.storage_before) - (
            self.precipitation + self.irrigation - self.et - self.runoff
        )


class MoistureUpdater:
    """
    Once-per-timestep moisture update for the shared ecoroof soil.

    The first update captures the dry soil baselines from the live properties,
    splits the soil into top/root layers and, for the unsaturated-flow model,
    checks the timestep against the stability limit (ConfigurationError).
    """

    def __init__(
        self,
        material: MaterialParameters,
        minutes_per_timestep: int,
        method: str = ADVANCED,
        params: MoistureParams | None = None,
    ):
        if minutes_per_timestep <= 0:
            raise ConfigurationError(f"minutes_per_timestep must be positive, got {minutes_per_timestep}")
        if method not in MOISTURE_MODELS:
            raise ConfigurationError(f"Unknown moisture model: {method!r}")
        self.material = material
        self.minutes_per_timestep = int(minutes_per_timestep)
        self.method = method
        self.params = params or get_moisture_params_from_env()

        self.layers: LayerGeometry | None = None
        self.dry: LiveSoilProperties | None = None
        self.saturation_warning = RecurringWarning(
            tag="Moisture",
            message="Relative soil saturation of the top layer fell below "
            f"{self.params.min_relative_saturation}",
            continuation=(
                f"Value is set to {self.params.min_relative_saturation} and simulation continues.",
                "You may wish to increase the number of timesteps to attempt to alleviate the problem.",
            ),
            enabled=self.params.diag,
        )

    @property
    def seconds_per_timestep(self) -> float:
        return self.minutes_per_timestep * 60.0

    @property
    def initialized(self) -> bool:
        return self.layers is not None

    def initialize(self, live: LiveSoilProperties) -> None:
        if self.initialized:
            return
        self.dry = LiveSoilProperties(
            conductivity=live.conductivity,
            density=live.density,
            specific_heat=live.specific_heat,
            albedo=live.albedo,
        )
        self.layers = split_layers(self.material.thickness, self.params.top_layer_depth)
        if self.method == ADVANCED:
            check_stability(self.minutes_per_timestep, self.layers.total)
        diag_print(
            "Moisture",
            f"layers: top={self.layers.top_depth:.3f} m root={self.layers.root_depth:.3f} m; "
            f"model={self.method}; dt={self.minutes_per_timestep} min",
            self.params.diag,
        )

    # ---------------------------
    # Main update
    # ---------------------------

    def update(
        self,
        state: MoistureState,
        fluxes: FluxAccumulators,
        live: LiveSoilProperties,
        water: WaterInputs,
        warmup: bool = False,
    ) -> MoistureStepReport:
        self.initialize(live)
        assert self.layers is not None
        d_top, d_root = self.layers.top_depth, self.layers.root_depth
        dt = self.seconds_per_timestep
        m_max = self.material.moisture_max
        cap = SATURATION_CAP * m_max

        before = state.stored_water(d_top, d_root)

        # Evapotranspiration: soil surface from the top layer, plants from the root layer
        state.top -= fluxes.vflux_g * dt / d_top
        state.root -= fluxes.vflux_f * dt / d_root
        et = (fluxes.vflux_g + fluxes.vflux_f) * dt

        # Precipitation and irrigation into the top layer
        precipitation = max(water.precipitation, 0.0) if water.precipitation is not None else 0.0
        state.top += precipitation / d_top
        irrigation = water.irrigation_applied(state.top, m_max)
        state.top += irrigation / d_top

        runoff = 0.0
        ceiling = self.params.intake_ceiling_in_per_hr * INCH * self.minutes_per_timestep / 60.0
        incoming = precipitation + irrigation
        if incoming > ceiling:
            runoff += incoming - ceiling
            state.top -= (incoming - ceiling) / d_top
        if state.top > cap:
            runoff += (state.top - cap) * d_top
            state.top = cap

        drainage = 0.0
        if self.method == SIMPLE:
            self._diffuse(state)
        else:
            shed, drainage = self._unsaturated_flow(state)
            runoff += shed + drainage

        et -= self._fill_residual_deficit(state)

        self._update_properties(state, live)

        fluxes.current_precipitation = precipitation
        fluxes.current_irrigation = irrigation
        fluxes.current_et = et
        fluxes.current_runoff = runoff
        if not warmup:
            fluxes.cumulative_precipitation += precipitation
            fluxes.cumulative_irrigation += irrigation
            fluxes.cumulative_et += et
            fluxes.cumulative_runoff += runoff

        return MoistureStepReport(
            storage_before=before,
            storage_after=state.stored_water(d_top, d_root),
            precipitation=precipitation,
            irrigation=irrigation,
            et=et,
            runoff=runoff,
            drainage=drainage,
        )

    # ---------------------------
    # Redistribution
    # ---------------------------

    def _diffuse(self, state: MoistureState) -> None:
        """Bulk diffusion with a downward bias; amounts in m of water."""
        d_top, d_root = self.layers.top_depth, self.layers.root_depth
        cap = SATURATION_CAP * self.material.moisture_max
        dt = self.seconds_per_timestep
        if state.top > state.root:
            move = min((cap - state.root) * d_root, (state.top - state.root) * d_top)
            move = max(0.0, move) * self.params.diffusion_down * dt
            state.top -= move / d_top
            state.root += move / d_root
        elif state.root > state.top:
            move = min((cap - state.top) * d_top, (state.root - state.top) * d_root)
            move = max(0.0, move) * self.params.diffusion_up * dt
            state.top += move / d_top
            state.root -= move / d_root

    def _unsaturated_flow(self, state: MoistureState) -> tuple[float, float]:
        """
        Darcy exchange between the layers plus free drainage from the root layer.
        Returns (saturation runoff, bottom drainage) in m.
        """
        p = self.params
        d_top, d_root = self.layers.top_depth, self.layers.root_depth
        res, m_max = self.material.moisture_residual, self.material.moisture_max
        cap = SATURATION_CAP * m_max
        floor = FLOW_FLOOR * res
        dt = self.seconds_per_timestep

        s_top = relative_saturation(state.top, res, m_max)
        if s_top < p.min_relative_saturation:
            self.saturation_warning.emit(s_top)
            s_top = p.min_relative_saturation
        s_root = max(relative_saturation(state.root, res, m_max), p.min_relative_saturation)

        k_top = hydraulic_conductivity(s_top, p)
        k_root = hydraulic_conductivity(s_root, p)
        psi_top = capillary_potential(s_top, p)
        psi_root = capillary_potential(s_root, p)
        k_avg = 0.5 * (k_top + k_root)

        # Downward-positive exchange (m): gravity minus the capillary pull upward
        q = k_avg * (1.0 - (psi_top - psi_root) / d_top) * dt
        if q > 0.0:
            q = min(q, max(0.0, (state.top - floor) * d_top), max(0.0, (cap - state.root) * d_root))
        else:
            q = -min(-q, max(0.0, (state.root - floor) * d_root), max(0.0, (cap - state.top) * d_top))
        state.top -= q / d_top
        state.root += q / d_root

        k_drain = k_root if k_root * 3600.0 > p.drainage_floor_m_per_hr else 0.0
        drainage = min(k_drain * dt, max(0.0, (state.root - floor) * d_root))
        state.root -= drainage / d_root

        shed = 0.0
        if state.top > cap:
            shed += (state.top - cap) * d_top
            state.top = cap
        if state.root > cap:
            shed += (state.root - cap) * d_root
            state.root = cap
        return shed, drainage

    def _fill_residual_deficit(self, state: MoistureState) -> float:
        """
        Root-layer deficit below residual is drawn from the top layer; whatever
        the top layer cannot supply was never available to evaporate.
        Returns that unmet evapotranspiration (m).
        """
        d_top, d_root = self.layers.top_depth, self.layers.root_depth
        floor = RESIDUAL_FLOOR * self.material.moisture_residual
        if state.root <= floor:
            state.top -= (floor - state.root) * d_root / d_top
            state.root = floor
        unmet = 0.0
        if state.top < floor:
            unmet = (floor - state.top) * d_top
            state.top = floor
        return unmet

    # ---------------------------
    # Thermal properties
    # ---------------------------

    def target_properties(self, state: MoistureState) -> LiveSoilProperties:
        """Properties the soil ought to have at the current moisture (no rate limit)."""
        dry = self.dry
        d_top, d_root = self.layers.top_depth, self.layers.root_depth
        res, m_max = self.material.moisture_residual, self.material.moisture_max

        dry_abs = 1.0 - dry.albedo
        absorptance = dry_abs + (WET_ABSORPTANCE - dry_abs) * relative_saturation(state.top, res, m_max)
        absorptance = float(np.clip(absorptance, MIN_ABSORPTANCE, MAX_ABSORPTANCE))

        avg = (d_root * state.root + d_top * state.top) / self.layers.total
        sat = relative_saturation(avg, res, m_max)
        e = float(np.exp(4.411 * sat))
        return LiveSoilProperties(
            conductivity=(dry.conductivity / 1.15) * 1.45 * e / (1.0 + 0.45 * e),
            density=dry.density + (avg - res) * RHO_WATER,
            specific_heat=dry.specific_heat + WATER_SPECIFIC_HEAT_TERM * avg,
            albedo=1.0 - absorptance,
        )

    def ratio_bounds(self) -> tuple[float, float]:
        step = self.params.rate_limit_per_15min * self.minutes_per_timestep / 15.0
        return 1.0 - step, 1.0 + step

    def _update_properties(self, state: MoistureState, live: LiveSoilProperties) -> None:
        target = self.target_properties(state)
        lo, hi = self.ratio_bounds()
        live.albedo = _rate_limited(live.albedo, target.albedo, lo, hi)
        live.conductivity = _rate_limited(live.conductivity, target.conductivity, lo, hi)
        live.density = _rate_limited(live.density, target.density, lo, hi)
        live.specific_heat = _rate_limited(live.specific_heat, target.specific_heat, lo, hi)
