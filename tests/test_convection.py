import numpy as np
import pytest

from pyecoroof import convection as conv
from pyecoroof.constants import KELVIN


def test_characteristic_lengths_square_plan():
    cl = conv.characteristic_lengths(100.0)
    assert cl.length == pytest.approx(10.0)
    assert cl.l_cha == pytest.approx(2.5)
    assert conv.characteristic_lengths(0.0).l_cha == 0.0


def test_regime_examples():
    assert conv.classify_regime(0.0, 1000.0) == conv.FORCED
    assert conv.classify_regime(1.0e6, 0.0) == conv.NATURAL
    assert conv.classify_regime(0.0, 0.0) == conv.NATURAL
    # Re=100: forced below ~1.7e3, natural above ~1.2e5
    assert conv.classify_regime(1.0e4, 100.0) == conv.MIXED
    assert conv.classify_regime(1.0e6, 100.0) == conv.NATURAL


@pytest.mark.parametrize("re", [0.0, 1.0, 50.0, 1.0e3, 1.0e5, 1.0e7])
@pytest.mark.parametrize("gr", [0.0, 1.0, 1.0e3, 1.0e6, 1.0e9, 1.0e12])
def test_regimes_partition_the_plane(gr, re):
    regime = conv.classify_regime(gr, re)
    forced = gr < 0.068 * re**2.2
    natural = not forced and (re <= 0.0 or gr > 55.3 * re ** (5.0 / 3.0))
    expected = conv.FORCED if forced else (conv.NATURAL if natural else conv.MIXED)
    assert regime == expected
    nu, r2 = conv.nusselt(gr, re)
    assert r2 == regime
    assert np.isfinite(nu) and nu >= 0.0


@pytest.mark.parametrize("wind", [0.0, 0.5, 3.0, 12.0])
@pytest.mark.parametrize("dT", [0.0, 2.0, 15.0])
def test_coefficients_positive_and_finite(wind, dT):
    T_air = KELVIN + 20.0
    for fn in (conv.h_conv_canopy, conv.h_conv_bare):
        h = fn(100.0, T_air, T_air + dT, wind)
        assert np.isfinite(h)
        assert h >= conv.H_CONV_FLOOR


def test_canopy_and_bare_differ_by_multiplier():
    T_air = KELVIN + 20.0
    hc = conv.h_conv_canopy(50.0, T_air, T_air + 5.0, 3.0)
    hb = conv.h_conv_bare(50.0, T_air, T_air + 5.0, 3.0)
    assert hc / hb == pytest.approx(conv.CANOPY_MULTIPLIER / conv.BARE_SOIL_MULTIPLIER)


def test_forced_convection_grows_with_wind():
    T_air = KELVIN + 20.0
    h_low = conv.h_conv_canopy(100.0, T_air, T_air + 0.1, 2.0)
    h_high = conv.h_conv_canopy(100.0, T_air, T_air + 0.1, 8.0)
    assert h_high > h_low


def test_still_isothermal_air_hits_floor():
    T = KELVIN + 20.0
    assert conv.h_conv_canopy(100.0, T, T, 0.0) == conv.H_CONV_FLOOR
    assert conv.h_conv_canopy(0.0, T, T + 5.0, 3.0) == conv.H_CONV_FLOOR


def test_porous_media_conductance():
    rho = 1.2
    assert conv.h_porous_media(0.0, 10.0, rho) == conv.H_CONV_FLOOR
    h1 = conv.h_porous_media(1.0, 10.0, rho)
    h4 = conv.h_porous_media(4.0, 10.0, rho)
    # Nu ~ sqrt(Pe) -> h ~ sqrt(wind)
    assert h4 / h1 == pytest.approx(2.0)
