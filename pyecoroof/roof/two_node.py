"""
Two-node ecoroof model (FASST vegetation/ground formulation).

The foliage and ground energy balances are linearised about the previous
temperatures and solved together in closed form:

    leaf   : P1 + P2 * T_g + P3 * T_f = 0
    ground : T1G + T2G * T_g + T3G * T_f = 0

Three passes are made, each averaging the closed-form solution with the
previous estimate (50/50 relaxation) before re-linearising the radiative terms.

Only the first ecoroof surface drives a solve; every other surface in the same
timestep receives the stored ground temperature.

References: Frankenstein & Koenig (2004) FASST, ERDC/CRREL TR-04-25;
Deardorff (1978) for the canopy air temperature; Garratt (1992) A21.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from pyecoroof import psychrometrics as psy
from pyecoroof.constants import (
    CP_AIR_FASST,
    GRAVITY,
    KELVIN,
    L_SUBLIMATION,
    MIN_WIND_FASST,
    PRANDTL_TURB,
    REFERENCE_HEIGHT,
    RHO_WATER,
    SCHMIDT_TURB,
    SIGMA,
    VON_KARMAN,
    WINDLESS_EXCHANGE,
)
from pyecoroof.materials import roughness_length
from pyecoroof.messages import RecurringWarning
from pyecoroof.roof.ports import (
    ConductionCoefficients,
    DrivingConditions,
    EnergyBalanceResult,
    SurfaceGeometry,
    conduction_split,
)
from pyecoroof.roof.state import EcoRoofState

RELAXATION_PASSES = 3
# Largest change (K) the final relaxation pass may make before it is flagged
SETTLE_TOL = 1.0


def vegetation_fraction(lai: float) -> float:
    """sigma_f = 0.9 - 0.7 exp(-0.75 LAI), bounded to [0.2, 0.9] by construction."""
    return 0.9 - 0.7 * float(np.exp(-0.75 * lai))


def stability_factor(rib: float) -> float:
    """Gamma_h from the bulk Richardson number (stable branch capped at Ri=0.19)."""
    if rib < 0.0:
        return (1.0 - 16.0 * rib) ** -0.5
    rib = min(rib, 0.19)
    return (1.0 - 5.0 * rib) ** -0.5


@dataclass
class TwoNodeTerms:
    """Intermediate exchange terms of one timestep (kept for reporting/tests)."""

    sigma_f: float
    sheat_f: float
    sheat_g: float
    latent_f: float
    latent_g: float
    lef: float
    leg: float
    waf: float
    t_af: float  # K
    gamma_h: float
    last_pass_change: float = 0.0  # K


@dataclass
class TwoNodeModel:
    diag: bool = True
    settle_tol: float = SETTLE_TOL
    name: str = "two_node"
    last_terms: TwoNodeTerms | None = None
    nonconvergence: RecurringWarning = field(init=False)

    def __post_init__(self):
        self.nonconvergence = RecurringWarning(
            tag="EcoRoof",
            message="Two-node relaxation did not settle; final linearised estimate used",
            continuation=(f"The last of {RELAXATION_PASSES} passes moved a node by more than {self.settle_tol} K.",),
            enabled=self.diag,
        )

    def solve(
        self,
        state: EcoRoofState,
        weather: DrivingConditions,
        geometry: SurfaceGeometry,
        ctf: ConductionCoefficients,
        is_first_surface: bool,
    ) -> EnergyBalanceResult:
        th = state.thermal
        if not is_first_surface:
            return EnergyBalanceResult(
                boundary_temperature_c=th.soil.write - KELVIN,
                leaf_temp=th.leaf.write,
                soil_temp=th.soil.write,
                bare_soil_temp=th.soil.write,
                vflux_f=state.fluxes.vflux_f,
                vflux_g=state.fluxes.vflux_g,
                recomputed=False,
            )

        m = state.material
        lai = m.lai
        eps_f, eps_g = m.leaf_emissivity, m.soil_emissivity
        alpha_f, alpha_g = m.leaf_reflectivity, state.live.albedo
        res, m_max = m.moisture_residual, m.moisture_max

        Tf = th.leaf.read - KELVIN  # previous foliage temperature (°C)
        Tg = th.soil.read - KELVIN  # previous ground temperature (°C)
        Ta = weather.outdoor_temp_c
        Tak = Ta + KELVIN
        Tgk = Tg + KELVIN
        Pa = weather.pressure
        ws = max(weather.wind_speed, MIN_WIND_FASST)
        rs = weather.incident_solar
        l_atm = SIGMA * geometry.view_factor_ground * weather.ground_temp**4 + SIGMA * geometry.view_factor_sky * weather.sky_temp**4
        q1, q2 = conduction_split(ctf)

        sigma_f = vegetation_fraction(lai)
        eps_one = eps_f + eps_g - eps_g * eps_f
        e_air = (weather.relative_humidity / 100.0) * psy.saturation_vapor_pressure_garratt(Ta)
        qa = psy.mixing_ratio(e_air, Pa)
        rho_a = psy.air_density(Pa, Tak)

        # Canopy air (Deardorff 1978) and aerodynamics
        t_afk = (1.0 - sigma_f) * Tak + sigma_f * (0.3 * Tak + 0.6 * (Tf + KELVIN) + 0.1 * Tgk)
        t_af = t_afk - KELVIN
        rho_af = 0.5 * (rho_a + psy.air_density(Pa, t_afk))
        zf = m.plant_height
        zd = 0.701 * zf**0.979
        zo = max(0.131 * zf**0.997, 0.02)
        c_fhn = (VON_KARMAN / np.log((REFERENCE_HEIGHT - zd) / zo)) ** 2
        waf = 0.83 * np.sqrt(c_fhn) * sigma_f * ws + (1.0 - sigma_f) * ws
        c_f = 0.01 * (1.0 + 0.3 / waf)
        sheat_f = WINDLESS_EXCHANGE + 1.1 * lai * rho_af * CP_AIR_FASST * c_f * waf

        # Foliage saturation and stomatal control
        esf = psy.saturation_vapor_pressure_garratt(Tf)
        qsf = psy.mixing_ratio(esf, Pa)
        ra = 1.0 / (c_f * waf)
        f1 = 1.0 / min(1.0, (0.004 * rs + 0.005) / (0.81 * (0.004 * rs + 1.0)))
        f2inv = 1.0e10 if m_max == res else (state.moisture.root - res) / (m_max - res)
        f2inv = max(f2inv, 1.0e-10)
        f2 = 1.0 / f2inv
        f3 = 1.0
        r_s = m.stomatal_resistance_min * f1 * f2 * f3 / lai
        rn = ra / (ra + r_s)  # foliage wetness, not a resistance

        mg = state.moisture.top / m_max
        d_one = 1.0 - sigma_f * (0.6 * (1.0 - rn) + 0.1 * (1.0 - mg))

        lef = L_SUBLIMATION if Tf < 0.0 else psy.latent_heat_henderson_sellers(Tf)
        dqf = psy.mixing_ratio_slope(esf, psy.saturation_vapor_pressure_garratt_slope(Tf), Pa)
        esg = psy.saturation_vapor_pressure_garratt(Tg)
        qsg = psy.mixing_ratio(esg, Pa)
        leg = L_SUBLIMATION if Tg < 0.0 else psy.latent_heat_henderson_sellers(Tg)
        dqg = psy.mixing_ratio_slope(esg, psy.saturation_vapor_pressure_garratt_slope(Tg), Pa)

        # Ground exchange
        rho_ag = 0.5 * (rho_a + psy.air_density(Pa, Tgk))
        rib = 2.0 * GRAVITY * REFERENCE_HEIGHT * (t_af - Tg) / ((t_afk + Tgk) * waf**2)
        gamma_h = stability_factor(rib)
        zog = roughness_length(m.roughness)
        log_g = np.log(REFERENCE_HEIGHT / zog)
        chng = (VON_KARMAN / log_g) ** 2 / SCHMIDT_TURB
        chg = gamma_h * ((1.0 - sigma_f) * chng + sigma_f * c_fhn)
        sheat_g = WINDLESS_EXCHANGE + rho_ag * CP_AIR_FASST * chg * waf
        chne = (VON_KARMAN / log_g) ** 2 / PRANDTL_TURB
        ce = gamma_h * ((1.0 - sigma_f) * chne + sigma_f * c_fhn)

        qaf = ((1.0 - sigma_f) * qa + sigma_f * (0.3 * qa + 0.6 * qsf * rn + 0.1 * qsg * mg)) / d_one
        qg = mg * qsg + (1.0 - mg) * qaf
        latent_f = lef * lai * rho_af * c_f * waf * rn * (qaf - qsf)
        latent_g = ce * leg * waf * rho_ag * (qaf - qg) * mg
        vflux_f = max(-latent_f / lef / RHO_WATER, 0.0)
        vflux_g = max(-latent_g / leg / RHO_WATER, 0.0)

        # Simultaneous leaf/ground solution
        lf_coef = lai * rho_af * c_f * lef * waf * rn
        lg_coef = rho_ag * ce * leg * waf * mg
        rad_fg = sigma_f * eps_f * eps_g * SIGMA / eps_one
        leaf_tk = Tf + KELVIN
        soil_tk = Tg + KELVIN
        last_change = 0.0
        for _ in range(RELAXATION_PASSES):
            p1 = (
                sigma_f * (rs * (1.0 - alpha_f) + eps_f * l_atm)
                - 3.0 * rad_fg * soil_tk**4
                - 3.0 * (-sigma_f * eps_f * SIGMA - rad_fg) * leaf_tk**4
                + sheat_f * (1.0 - 0.7 * sigma_f) * Tak
                + lf_coef * ((1.0 - 0.7 * sigma_f) / d_one) * qa
                + lf_coef * ((0.6 * sigma_f * rn) / d_one - 1.0) * (qsf - leaf_tk * dqf)
                + lf_coef * ((0.1 * sigma_f * mg) / d_one) * (qsg - soil_tk * dqg)
            )
            p2 = 4.0 * rad_fg * soil_tk**3 + 0.1 * sigma_f * sheat_f + lf_coef * (0.1 * sigma_f * mg) / d_one * dqg
            p3 = (
                4.0 * (-sigma_f * eps_f * SIGMA - rad_fg) * leaf_tk**3
                + (0.6 * sigma_f - 1.0) * sheat_f
                + lf_coef * ((0.6 * sigma_f * rn) / d_one - 1.0) * dqf
            )

            t1g = (
                (1.0 - sigma_f) * (rs * (1.0 - alpha_g) + eps_g * l_atm)
                - 3.0 * rad_fg * leaf_tk**4
                - 3.0 * (-(1.0 - sigma_f) * eps_g * SIGMA - rad_fg) * soil_tk**4
                + sheat_g * (1.0 - 0.7 * sigma_f) * Tak
                + lg_coef * ((1.0 - 0.7 * sigma_f) / d_one) * qa
                + lg_coef * (0.1 * sigma_f * mg / d_one - mg) * (qsg - soil_tk * dqg)
                + lg_coef * (0.6 * sigma_f * rn / d_one) * (qsf - leaf_tk * dqf)
                + q1
                + q2 * KELVIN
            )
            t2g = (
                4.0 * (-(1.0 - sigma_f) * eps_g * SIGMA - rad_fg) * soil_tk**3
                + (0.1 * sigma_f - 1.0) * sheat_g
                + lg_coef * (0.1 * sigma_f * mg / d_one - mg) * dqg
                - q2
            )
            t3g = 4.0 * rad_fg * leaf_tk**3 + 0.6 * sigma_f * sheat_g + lg_coef * (0.6 * sigma_f * rn / d_one) * dqf

            leaf_new = 0.5 * (leaf_tk + (p1 * t2g - p2 * t1g) / (-p3 * t2g + t3g * p2))
            soil_new = 0.5 * (soil_tk + (p1 * t3g - p3 * t1g) / (-p2 * t3g + p3 * t2g))
            last_change = max(abs(leaf_new - leaf_tk), abs(soil_new - soil_tk))
            leaf_tk, soil_tk = leaf_new, soil_new

        if not last_change <= self.settle_tol:
            self.nonconvergence.emit(last_change, detail=f"T_f={leaf_tk - KELVIN:.2f} C T_g={soil_tk - KELVIN:.2f} C")

        q_soil = -(q1 - q2 * (soil_tk - KELVIN))

        th.leaf.write = leaf_tk
        th.soil.write = soil_tk
        th.bare_soil.write = soil_tk
        th.soil_avg.write = soil_tk

        self.last_terms = TwoNodeTerms(
            sigma_f=sigma_f,
            sheat_f=sheat_f,
            sheat_g=sheat_g,
            latent_f=latent_f,
            latent_g=latent_g,
            lef=lef,
            leg=leg,
            waf=float(waf),
            t_af=t_afk,
            gamma_h=gamma_h,
            last_pass_change=float(last_change),
        )

        return EnergyBalanceResult(
            boundary_temperature_c=soil_tk - KELVIN,
            leaf_temp=leaf_tk,
            soil_temp=soil_tk,
            bare_soil_temp=soil_tk,
            vflux_f=vflux_f,
            vflux_g=vflux_g,
            # sensible flux from the air TO foliage / ground
            sensible_foliage=sheat_f * (t_af - Tf),
            sensible_soil=sheat_g * (t_af - Tg),
            latent_foliage=latent_f,
            latent_soil=latent_g,
            net_sw_soil=(1.0 - sigma_f) * rs * (1.0 - alpha_g),
            net_lw_soil=(1.0 - sigma_f) * eps_g * (l_atm - SIGMA * soil_tk**4)
            + rad_fg * (leaf_tk**4 - soil_tk**4),
            conduction_soil=q_soil,
        )
