"""
Plant-coverage ecoroof model: three coupled surface nodes.

Nodes (temperatures in K)
- leaf            : canopy foliage, present when sigma_f > 0
- soil            : soil surface beneath the canopy, present when sigma_f > 0
- bare soil       : uncovered soil, present when sigma_f < 1

Each node balance F(T) = absorbed SW + net LW - convection - latent - conduction
is solved with the Newton/bisection solver, one node after the other, each
using the latest temperature of the nodes it couples to. The exterior boundary
temperature handed to the host is the coverage-weighted soil temperature
    T_avg = sigma_f * T_soil + (1 - sigma_f) * T_bare.

Sign conventions follow the node: convection/latent/conduction are losses
from the node when positive. Conduction uses the host's linearisation
Q_cond = -Q1 + Q2 * T_avg[°C] (see ports.conduction_split).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from pyecoroof import convection as conv
from pyecoroof import psychrometrics as psy
from pyecoroof.constants import CP_AIR, EPSILON, KELVIN, RHO_WATER, SIGMA
from pyecoroof.messages import RecurringWarning
from pyecoroof.numerics.newton import (
    DEFAULT_HISTORY_CAPACITY,
    DEFAULT_MAX_ITER,
    DEFAULT_TOL,
    RootResult,
    solve_newton_bisect,
)
from pyecoroof.roof.ports import (
    ConductionCoefficients,
    DrivingConditions,
    EnergyBalanceResult,
    SurfaceGeometry,
    conduction_split,
)
from pyecoroof.roof.state import EcoRoofState

# Keeps the sub-canopy surface resistance finite for bone-dry soil
_MIN_MOISTURE_RATIO = 1.0e-6


@dataclass(frozen=True)
class NodeContext:
    """Everything the three node balances need apart from the node temperatures."""

    sigma_f: float
    lai: float
    leaf_albedo: float
    leaf_emissivity: float
    soil_emissivity: float
    ground_albedo: float
    tau_sw: float
    tau_lw: float
    rs: float  # incident shortwave (W/m^2)
    T_air: float
    T_sky: float
    view_factor_sky: float
    pressure: float
    rho_air: float
    e_air: float  # kPa
    wind: float
    area: float
    h_por: float
    f_solar: float
    f_vwc: float
    r_s_sub: float
    rs_min: float
    q1: float
    q2: float

    @property
    def eps_one(self) -> float:
        ep, eg = self.leaf_emissivity, self.soil_emissivity
        return ep + eg - eg * ep

    @property
    def sky_lw(self) -> float:
        return self.view_factor_sky * self.T_sky**4


@dataclass(frozen=True)
class NodeFluxes:
    absorbed_sw: float = 0.0
    lw_sky: float = 0.0
    lw_exchange: float = 0.0
    convection: float = 0.0
    latent: float = 0.0
    conduction: float = 0.0

    @property
    def net_lw(self) -> float:
        return self.lw_sky + self.lw_exchange

    @property
    def residual(self) -> float:
        return self.absorbed_sw + self.net_lw - self.convection - self.latent - self.conduction


# ---------------------------
# Leaf
# ---------------------------


def _stomatal_resistance(T: float, ctx: NodeContext) -> float:
    return (ctx.rs_min / ctx.lai) * ctx.f_solar * psy.humidity_stress(T, ctx.e_air) * ctx.f_vwc * psy.temperature_stress(T)


def leaf_fluxes(T: float, T_soil: float, ctx: NodeContext) -> NodeFluxes:
    ep, eg = ctx.leaf_emissivity, ctx.soil_emissivity
    h = conv.h_conv_canopy(ctx.area, ctx.T_air, T, ctx.wind)
    r_a = ctx.rho_air * CP_AIR / h
    r_s = _stomatal_resistance(T, ctx)
    gamma = psy.psychrometric_constant(T_soil, CP_AIR, ctx.pressure)
    return NodeFluxes(
        absorbed_sw=(1.0 - ctx.leaf_albedo - ctx.tau_sw) * (1.0 + ctx.tau_sw * ctx.ground_albedo) * ctx.rs,
        lw_sky=(1.0 - ctx.tau_lw) * ep * SIGMA * (ctx.sky_lw - T**4 - (1.0 - ep) * ctx.sky_lw),
        lw_exchange=(1.0 - ctx.tau_lw) * SIGMA * ep * eg * (T_soil**4 - T**4) / ctx.eps_one,
        convection=ctx.lai * h * (T - ctx.T_air),
        latent=(ctx.lai * ctx.rho_air * CP_AIR / gamma) * (psy.saturation_vapor_pressure(T) - ctx.e_air) / (r_s + r_a),
    )


def leaf_residual_slope(T: float, T_soil: float, ctx: NodeContext) -> float:
    """dF/dT of the leaf balance; h_conv and r_a held at their current values."""
    ep, eg = ctx.leaf_emissivity, ctx.soil_emissivity
    h = conv.h_conv_canopy(ctx.area, ctx.T_air, T, ctx.wind)
    r_a = ctx.rho_air * CP_AIR / h
    gamma = psy.psychrometric_constant(T_soil, CP_AIR, ctx.pressure)
    a = ctx.lai * ctx.rho_air * CP_AIR / gamma

    b = (ctx.rs_min / ctx.lai) * ctx.f_solar * ctx.f_vwc
    f_hum = psy.humidity_stress(T, ctx.e_air)
    f_temp = psy.temperature_stress(T)
    r_s = b * f_hum * f_temp
    dr_s = b * (psy.humidity_stress_slope(T, ctx.e_air) * f_temp + f_hum * psy.temperature_stress_slope(T))
    vpd = psy.saturation_vapor_pressure(T) - ctx.e_air
    r = r_s + r_a
    d_latent = a * (psy.saturation_vapor_pressure_slope(T) * r - vpd * dr_s) / (r * r)

    return (
        -4.0 * (1.0 - ctx.tau_lw) * ep * SIGMA * T**3
        - 4.0 * (1.0 - ctx.tau_lw) * SIGMA * ep * eg * T**3 / ctx.eps_one
        - ctx.lai * h
        - d_latent
    )


# ---------------------------
# Soil under canopy
# ---------------------------


def _evaporation_coefficient(ctx: NodeContext, resistance: float) -> float:
    # rho*cp/gamma(T) = C * i_fg(T) with C independent of T
    return ctx.rho_air * EPSILON * 1000.0 / (ctx.pressure * resistance)


def soil_fluxes(T: float, T_plant: float, T_bare: float, ctx: NodeContext) -> NodeFluxes:
    eg, ep = ctx.soil_emissivity, ctx.leaf_emissivity
    hc = conv.h_conv_canopy(ctx.area, ctx.T_air, T_plant, ctx.wind)
    h_eff = ctx.h_por * hc / (ctx.h_por + hc)
    r_a_sub = ctx.rho_air * CP_AIR * (1.0 / ctx.h_por + 1.0 / hc)
    c = _evaporation_coefficient(ctx, ctx.r_s_sub + r_a_sub)
    latent = max(0.0, c * psy.latent_heat_vaporization(T) * (psy.saturation_vapor_pressure(T) - ctx.e_air))
    return NodeFluxes(
        absorbed_sw=ctx.tau_sw * (1.0 - ctx.ground_albedo) * ctx.rs,
        lw_sky=ctx.tau_lw * eg * SIGMA * (ctx.sky_lw - T**4 - (1.0 - eg) * ctx.sky_lw),
        lw_exchange=(1.0 - ctx.tau_lw) * SIGMA * ep * eg * (T_plant**4 - T**4) / ctx.eps_one,
        convection=h_eff * (T - ctx.T_air),
        latent=latent,
        conduction=-ctx.q1 + ctx.q2 * (ctx.sigma_f * (T - KELVIN) + (1.0 - ctx.sigma_f) * (T_bare - KELVIN)),
    )


def _latent_slope(T: float, c: float, e_air: float) -> float:
    return c * (
        psy.latent_heat_vaporization_slope() * (psy.saturation_vapor_pressure(T) - e_air)
        + psy.latent_heat_vaporization(T) * psy.saturation_vapor_pressure_slope(T)
    )


def soil_residual_slope(T: float, T_plant: float, ctx: NodeContext) -> float:
    eg, ep = ctx.soil_emissivity, ctx.leaf_emissivity
    hc = conv.h_conv_canopy(ctx.area, ctx.T_air, T_plant, ctx.wind)
    h_eff = ctx.h_por * hc / (ctx.h_por + hc)
    r_a_sub = ctx.rho_air * CP_AIR * (1.0 / ctx.h_por + 1.0 / hc)
    c = _evaporation_coefficient(ctx, ctx.r_s_sub + r_a_sub)
    latent = c * psy.latent_heat_vaporization(T) * (psy.saturation_vapor_pressure(T) - ctx.e_air)
    d_latent = _latent_slope(T, c, ctx.e_air) if latent > 0.0 else 0.0
    return (
        -4.0 * ctx.tau_lw * eg * SIGMA * T**3
        - 4.0 * (1.0 - ctx.tau_lw) * SIGMA * ep * eg * T**3 / ctx.eps_one
        - h_eff
        - d_latent
        - ctx.q2 * ctx.sigma_f
    )


# ---------------------------
# Bare soil
# ---------------------------


def bare_soil_fluxes(T: float, T_soil: float, ctx: NodeContext) -> NodeFluxes:
    eg = ctx.soil_emissivity
    h = conv.h_conv_bare(ctx.area, ctx.T_air, T, ctx.wind)
    r_a_bare = ctx.rho_air * CP_AIR / h
    c = _evaporation_coefficient(ctx, ctx.r_s_sub + r_a_bare)
    return NodeFluxes(
        absorbed_sw=(1.0 - ctx.ground_albedo) * ctx.rs,
        lw_sky=eg * SIGMA * (ctx.sky_lw - T**4 - (1.0 - eg) * ctx.sky_lw),
        convection=h * (T - ctx.T_air),
        # condensation (negative latent) allowed on bare soil
        latent=c * psy.latent_heat_vaporization(T) * (psy.saturation_vapor_pressure(T) - ctx.e_air),
        conduction=-ctx.q1 + ctx.q2 * (ctx.sigma_f * (T_soil - KELVIN) + (1.0 - ctx.sigma_f) * (T - KELVIN)),
    )


def bare_soil_residual_slope(T: float, ctx: NodeContext) -> float:
    eg = ctx.soil_emissivity
    h = conv.h_conv_bare(ctx.area, ctx.T_air, T, ctx.wind)
    r_a_bare = ctx.rho_air * CP_AIR / h
    c = _evaporation_coefficient(ctx, ctx.r_s_sub + r_a_bare)
    return -4.0 * eg * SIGMA * T**3 - h - _latent_slope(T, c, ctx.e_air) - ctx.q2 * (1.0 - ctx.sigma_f)


# ---------------------------
# Model
# ---------------------------


def ground_albedo_from_moisture(moisture_ratio: float) -> float:
    """Soil albedo as a quadratic in Mg = moisture / moisture_max."""
    return 0.2171 * moisture_ratio**2 - 0.4336 * moisture_ratio + 0.3143


def sub_canopy_resistance(moisture_ratio: float) -> float:
    """Soil surface resistance to evaporation beneath the canopy (s/m)."""
    return 34.52 * max(moisture_ratio, _MIN_MOISTURE_RATIO) ** -3.2678


@dataclass
class PlantCoverageModel:
    tol: float = DEFAULT_TOL
    max_iter: int = DEFAULT_MAX_ITER
    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    diag: bool = True
    name: str = "plant_coverage"
    nonconvergence: RecurringWarning = field(init=False)

    def __post_init__(self):
        self.nonconvergence = RecurringWarning(
            tag="EcoRoof",
            message="Node temperature solve did not converge; last Newton estimate used",
            continuation=("No sign change between the final iterates, bisection not possible.",),
            enabled=self.diag,
        )

    def refresh_canopy_factors(self, state: EcoRoofState) -> None:
        """Moisture-dependent factors, recomputed on the first ecoroof surface only."""
        m = state.material
        mg = state.moisture.top / m.moisture_max
        cf = state.canopy
        cf.ground_albedo = ground_albedo_from_moisture(mg)
        cf.r_s_sub = sub_canopy_resistance(mg)
        cf.f_vwc = psy.moisture_stress(state.moisture.top, m.field_capacity, m.moisture_residual)
        cf.refreshed = True

    def build_context(
        self,
        state: EcoRoofState,
        weather: DrivingConditions,
        geometry: SurfaceGeometry,
        ctf: ConductionCoefficients,
    ) -> NodeContext:
        m = state.material
        cf = state.canopy
        f_vwc = cf.f_vwc
        if state.moisture.top < m.moisture_residual:
            f_vwc = 1000.0
        T_air = weather.outdoor_temp
        rho = psy.air_density(weather.pressure, T_air)
        rs = weather.incident_solar
        q1, q2 = conduction_split(ctf)
        lengths = conv.characteristic_lengths(geometry.area)
        return NodeContext(
            sigma_f=m.plant_coverage,
            lai=m.lai,
            leaf_albedo=m.leaf_reflectivity,
            leaf_emissivity=m.leaf_emissivity,
            soil_emissivity=m.soil_emissivity,
            ground_albedo=cf.ground_albedo,
            tau_sw=float(np.exp(-m.k_sw * m.lai)),
            tau_lw=float(np.exp(-m.k_lw * m.lai)),
            rs=rs,
            T_air=T_air,
            T_sky=weather.sky_temp,
            view_factor_sky=geometry.view_factor_sky,
            pressure=weather.pressure,
            rho_air=rho,
            e_air=psy.actual_vapor_pressure(T_air, weather.relative_humidity),
            wind=weather.wind_speed,
            area=geometry.area,
            h_por=conv.h_porous_media(weather.wind_speed, lengths.length, rho),
            f_solar=psy.solar_stress(rs),
            f_vwc=f_vwc,
            r_s_sub=cf.r_s_sub,
            rs_min=m.stomatal_resistance_min,
            q1=q1,
            q2=q2,
        )

    def _solve(self, label: str, func, dfunc, x0: float) -> RootResult:
        res = solve_newton_bisect(
            func, dfunc, x0, tol=self.tol, max_iter=self.max_iter, history_capacity=self.history_capacity
        )
        if not res.ok:
            self.nonconvergence.emit(res.root, detail=f"node={label} status={res.status}")
        return res

    def solve(
        self,
        state: EcoRoofState,
        weather: DrivingConditions,
        geometry: SurfaceGeometry,
        ctf: ConductionCoefficients,
        is_first_surface: bool,
    ) -> EnergyBalanceResult:
        if is_first_surface or not state.canopy.refreshed:
            self.refresh_canopy_factors(state)
        ctx = self.build_context(state, weather, geometry, ctf)
        th = state.thermal
        sigma = ctx.sigma_f

        T_plant = th.leaf.read
        T_soil = th.soil.read
        T_bare = th.bare_soil.read
        solves: dict[str, RootResult] = {}

        leaf = soil = NodeFluxes()
        if sigma != 0.0:
            r = self._solve(
                "leaf",
                lambda T: leaf_fluxes(T, T_soil, ctx).residual,
                lambda T: leaf_residual_slope(T, T_soil, ctx),
                T_plant,
            )
            solves["leaf"], T_plant = r, r.root
            leaf = leaf_fluxes(T_plant, T_soil, ctx)

            r = self._solve(
                "soil",
                lambda T: soil_fluxes(T, T_plant, T_bare, ctx).residual,
                lambda T: soil_residual_slope(T, T_plant, ctx),
                T_soil,
            )
            solves["soil"], T_soil = r, r.root
            soil = soil_fluxes(T_soil, T_plant, T_bare, ctx)

        bare = NodeFluxes()
        if sigma != 1.0:
            r = self._solve(
                "bare_soil",
                lambda T: bare_soil_fluxes(T, T_soil, ctx).residual,
                lambda T: bare_soil_residual_slope(T, ctx),
                T_bare,
            )
            solves["bare_soil"], T_bare = r, r.root
            bare = bare_soil_fluxes(T_bare, T_soil, ctx)

        T_avg = sigma * T_soil + (1.0 - sigma) * T_bare

        latent_soil = sigma * soil.latent + (1.0 - sigma) * bare.latent
        if sigma == 0.0:
            vflux_f = 0.0
        else:
            vflux_f = leaf.latent / psy.latent_heat_vaporization(T_plant, allow_ice=True) / RHO_WATER
        vflux_g = latent_soil / psy.latent_heat_vaporization(T_avg, allow_ice=True) / RHO_WATER

        th.leaf.write = T_plant
        th.soil.write = T_soil
        th.bare_soil.write = T_bare
        th.soil_avg.write = T_avg

        return EnergyBalanceResult(
            boundary_temperature_c=T_avg - KELVIN,
            leaf_temp=T_plant,
            soil_temp=T_soil,
            bare_soil_temp=T_bare,
            vflux_f=max(vflux_f, 0.0),
            vflux_g=max(vflux_g, 0.0),
            sensible_foliage=leaf.convection,
            sensible_soil=sigma * soil.convection + (1.0 - sigma) * bare.convection,
            latent_foliage=leaf.latent,
            latent_soil=latent_soil,
            net_sw_soil=sigma * soil.absorbed_sw + (1.0 - sigma) * bare.absorbed_sw,
            net_lw_soil=sigma * soil.net_lw + (1.0 - sigma) * bare.net_lw,
            conduction_soil=-ctx.q1 + ctx.q2 * (sigma * (T_soil - KELVIN) + (1.0 - sigma) * (T_bare - KELVIN)),
            solves=solves,
        )
