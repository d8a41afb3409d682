"""
psychrometrics.py

Moist-air helpers shared by the plant-coverage and two-node roof models.

This module provides:
- saturation_vapor_pressure(T) / _slope(T): Tetens e_s (kPa) and de_s/dT.
- humidity_stress(T, e_air) / _slope: stomatal vapour-pressure-deficit factor f_Hum.
- temperature_stress(T) / _slope: stomatal temperature factor f_temp.
- solar_stress(RS), moisture_stress(theta, fc, wp): remaining stomatal factors.
- latent_heat_vaporization(T, allow_ice): i_fg (J/kg).
- psychrometric_constant(T, cp, Pa): gamma (kPa/K).
- Garratt (1992, A21) forms used by the two-node model: vapour pressure in Pa,
  its slope, mixing ratio and the Henderson-Sellers latent heat.

Conventions:
- Temperatures in K unless the argument is named *_c.
- Pressures in Pa, except the Tetens family which returns kPa to match the
  resistance formulation of the canopy model.
"""

from __future__ import annotations

import numpy as np

from pyecoroof.constants import EPSILON, KELVIN, L_SUBLIMATION, R_AIR

# Tetens coefficients (Tc in °C, e_s in kPa)
_TETENS_A = 0.6108
_TETENS_B = 17.27
_TETENS_C = 237.3

_F_TEMP_EPS = 1.0e-6


def saturation_vapor_pressure(T: float) -> float:
    """Saturation vapour pressure (kPa) over water at temperature T (K)."""
    Tc = T - KELVIN
    return float(_TETENS_A * np.exp(_TETENS_B * Tc / (Tc + _TETENS_C)))


def saturation_vapor_pressure_slope(T: float) -> float:
    """de_s/dT in kPa/K."""
    Tc = T - KELVIN
    return saturation_vapor_pressure(T) * _TETENS_B * _TETENS_C / (Tc + _TETENS_C) ** 2


def actual_vapor_pressure(T: float, rh_percent: float) -> float:
    """Ambient vapour pressure (kPa) from air temperature (K) and RH (%)."""
    return (rh_percent / 100.0) * saturation_vapor_pressure(T)


def _vpd_factor(T: float, e_air: float) -> tuple[float, bool]:
    # Returns (f_VPD, on_log_branch)
    vpd = saturation_vapor_pressure(T) - e_air
    if vpd <= 0.0:
        return 1.0, False
    f = 1.0 - 0.41 * float(np.log(vpd))
    if f > 1.0:
        return 1.0, False
    if f <= 0.0:
        return 0.05, False
    return f, True


def humidity_stress(T: float, e_air: float) -> float:
    """f_Hum = 1/f_VPD, the vapour-pressure-deficit stomatal factor (>= 1)."""
    f, _ = _vpd_factor(T, e_air)
    return 1.0 / f


def humidity_stress_slope(T: float, e_air: float) -> float:
    """d f_Hum / dT; zero on the clipped branches."""
    f, on_log = _vpd_factor(T, e_air)
    if not on_log:
        return 0.0
    vpd = saturation_vapor_pressure(T) - e_air
    df = -0.41 * saturation_vapor_pressure_slope(T) / vpd
    return -df / (f * f)


def _temperature_stress_denominator(T: float) -> float:
    # Singular at 10 °C and 60 °C; held a hair away from zero
    g = 1.0 - 0.0016 * (35.0 - (T - KELVIN)) ** 2
    if abs(g) < _F_TEMP_EPS:
        g = _F_TEMP_EPS if g >= 0.0 else -_F_TEMP_EPS
    return g


def temperature_stress(T: float) -> float:
    """f_temp = |1 / (1 - 0.0016 (35 - Tc)^2)|."""
    return abs(1.0 / _temperature_stress_denominator(T))


def temperature_stress_slope(T: float) -> float:
    Tc = T - KELVIN
    g = _temperature_stress_denominator(T)
    dg = 0.0032 * (35.0 - Tc)
    return -float(np.sign(g)) * dg / (g * g)


def solar_stress(rs: float) -> float:
    """f_solar for incident shortwave rs (W/m^2)."""
    return float(1.0 + np.exp(-0.034 * (rs - 3.5)))


def moisture_stress(theta: float, field_capacity: float, wilting_point: float) -> float:
    """
    f_VWC stomatal moisture factor.

    1 above 70% of field capacity, rising as 1/relative-availability below it,
    and 1000 (stomata effectively shut) at or below the wilting point.
    """
    if theta > 0.7 * field_capacity:
        return 1.0
    if theta <= wilting_point:
        return 1000.0
    return max(0.0, 1.0 / ((theta - wilting_point) / (0.7 * field_capacity - wilting_point)))


def latent_heat_vaporization(T: float, allow_ice: bool = False) -> float:
    """i_fg (J/kg); with allow_ice the sublimation value applies below 0 °C."""
    Tc = T - KELVIN
    if allow_ice and Tc < 0.0:
        return L_SUBLIMATION
    return (-2.3793 * Tc + 2501.1) * 1000.0


def latent_heat_vaporization_slope() -> float:
    """d i_fg / dT (J/kg/K) on the liquid branch."""
    return -2.3793 * 1000.0


def psychrometric_constant(T: float, cp: float, pressure: float) -> float:
    """gamma (kPa/K) = cp (Pa/1000) / (0.622 i_fg(T))."""
    return cp * (pressure / 1000.0) / (EPSILON * latent_heat_vaporization(T))


def air_density(pressure: float, T: float) -> float:
    """Dry-air density (kg/m^3) with the roof models' gas constant."""
    return pressure / (R_AIR * T)


# ---------------------------
# Garratt / FASST forms (Pa)
# ---------------------------


def saturation_vapor_pressure_garratt(Tc: float) -> float:
    """e_sat (Pa) at Tc (°C), Garratt (1992) eq. A21."""
    return float(611.2 * np.exp(17.67 * Tc / (Tc + KELVIN - 29.65)))


def saturation_vapor_pressure_garratt_slope(Tc: float) -> float:
    """de_sat/dT (Pa/K) at Tc (°C), Garratt (1992) eq. A21."""
    Tk = Tc + KELVIN
    return 611.2 * float(np.exp(17.67 * Tc / (Tk - 29.65))) * 17.67 * (KELVIN - 29.65) / (Tk - 29.65) ** 2


def mixing_ratio(e: float, pressure: float) -> float:
    """Mixing ratio (kg/kg) from vapour pressure e and total pressure (Pa)."""
    return EPSILON * e / (pressure - e)


def mixing_ratio_slope(e: float, de_dT: float, pressure: float) -> float:
    """d q_sat / dT from the vapour pressure and its slope."""
    return EPSILON * pressure * de_dT / (pressure - e) ** 2


def latent_heat_henderson_sellers(Tc: float) -> float:
    """Henderson-Sellers (1984) latent heat (J/kg) at Tc (°C)."""
    Tk = Tc + KELVIN
    return 1.91846e6 * (Tk / (Tk - 33.91)) ** 2
