import numpy as np
import pytest

from pyecoroof import psychrometrics as psy
from pyecoroof.constants import KELVIN, L_SUBLIMATION


def _numeric_slope(f, x, h=1e-3):
    return (f(x + h) - f(x - h)) / (2.0 * h)


def test_tetens_reference_values():
    # 0.6108 kPa at 0 °C and about 3.17 kPa at 25 °C
    assert psy.saturation_vapor_pressure(KELVIN) == pytest.approx(0.6108)
    assert psy.saturation_vapor_pressure(KELVIN + 25.0) == pytest.approx(3.168, rel=2e-3)
    assert psy.actual_vapor_pressure(KELVIN + 25.0, 50.0) == pytest.approx(
        0.5 * psy.saturation_vapor_pressure(KELVIN + 25.0)
    )


@pytest.mark.parametrize("Tc", [-10.0, 5.0, 20.0, 35.0])
def test_tetens_slope_matches_finite_difference(Tc):
    T = KELVIN + Tc
    assert psy.saturation_vapor_pressure_slope(T) == pytest.approx(
        _numeric_slope(psy.saturation_vapor_pressure, T), rel=1e-5
    )


def test_humidity_stress_branches():
    T = KELVIN + 25.0
    es = psy.saturation_vapor_pressure(T)
    # saturated or supersaturated air: no stress
    assert psy.humidity_stress(T, es) == 1.0
    assert psy.humidity_stress(T, es + 0.1) == 1.0
    assert psy.humidity_stress_slope(T, es + 0.1) == 0.0
    # small deficit: log term above 1, clipped to 1
    assert psy.humidity_stress(T, es - 0.5) == 1.0
    # large deficit drives f_VPD <= 0, clipped to 0.05 -> f_Hum = 20
    assert psy.humidity_stress(KELVIN + 55.0, 0.0) == pytest.approx(20.0)
    # on the log branch f_Hum > 1
    e_air = es - 2.0
    assert psy.humidity_stress(T, e_air) == pytest.approx(1.0 / (1.0 - 0.41 * np.log(2.0)))


def test_humidity_stress_slope_on_log_branch():
    T = KELVIN + 30.0
    e_air = psy.saturation_vapor_pressure(T) - 2.5
    num = _numeric_slope(lambda x: psy.humidity_stress(x, e_air), T, h=1e-4)
    assert psy.humidity_stress_slope(T, e_air) == pytest.approx(num, rel=1e-4)


def test_temperature_stress_minimum_and_slope():
    assert psy.temperature_stress(KELVIN + 35.0) == pytest.approx(1.0)
    assert psy.temperature_stress_slope(KELVIN + 35.0) == pytest.approx(0.0, abs=1e-12)
    for Tc in (15.0, 25.0, 45.0):
        T = KELVIN + Tc
        num = _numeric_slope(psy.temperature_stress, T, h=1e-4)
        assert psy.temperature_stress_slope(T) == pytest.approx(num, rel=1e-4)


@pytest.mark.parametrize("Tc", [10.0, 60.0])
def test_temperature_stress_is_finite_at_singularities(Tc):
    v = psy.temperature_stress(KELVIN + Tc)
    assert np.isfinite(v) and v > 0.0
    assert np.isfinite(psy.temperature_stress_slope(KELVIN + Tc))


def test_moisture_stress_regimes():
    fc, wp = 0.3, 0.01
    assert psy.moisture_stress(0.25, fc, wp) == 1.0
    assert psy.moisture_stress(wp, fc, wp) == 1000.0
    assert psy.moisture_stress(0.005, fc, wp) == 1000.0
    mid = 0.5 * (0.7 * fc + wp)
    assert psy.moisture_stress(mid, fc, wp) == pytest.approx(2.0)


def test_solar_stress_decreases_with_radiation():
    assert psy.solar_stress(0.0) > psy.solar_stress(200.0) > psy.solar_stress(800.0) > 1.0


def test_latent_heat_liquid_and_ice():
    assert psy.latent_heat_vaporization(KELVIN) == pytest.approx(2.5011e6)
    assert psy.latent_heat_vaporization(KELVIN - 5.0, allow_ice=True) == L_SUBLIMATION
    assert psy.latent_heat_vaporization(KELVIN - 5.0) > psy.latent_heat_vaporization(KELVIN)
    T = KELVIN + 20.0
    assert psy.latent_heat_vaporization_slope() == pytest.approx(
        _numeric_slope(psy.latent_heat_vaporization, T)
    )


def test_psychrometric_constant_near_textbook_value():
    # ~0.066 kPa/K at sea level and 20 °C
    gamma = psy.psychrometric_constant(KELVIN + 20.0, 1005.0, 101325.0)
    assert gamma == pytest.approx(0.066, rel=0.03)


def test_garratt_forms():
    assert psy.saturation_vapor_pressure_garratt(0.0) == pytest.approx(611.2)
    for Tc in (-5.0, 10.0, 30.0):
        num = _numeric_slope(psy.saturation_vapor_pressure_garratt, Tc)
        assert psy.saturation_vapor_pressure_garratt_slope(Tc) == pytest.approx(num, rel=1e-5)
    e, P = 2000.0, 101325.0
    de = psy.saturation_vapor_pressure_garratt_slope(17.5)
    num = (psy.mixing_ratio(e + de * 1e-3, P) - psy.mixing_ratio(e - de * 1e-3, P)) / 2e-3
    assert psy.mixing_ratio_slope(e, de, P) == pytest.approx(num, rel=1e-5)
    # Henderson-Sellers close to 2.45e6 J/kg at 20 °C
    assert psy.latent_heat_henderson_sellers(20.0) == pytest.approx(2.45e6, rel=5e-3)
