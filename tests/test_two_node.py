import numpy as np
import pytest

from pyecoroof.constants import KELVIN
from pyecoroof.materials import MaterialParameters, Roughness, roughness_length
from pyecoroof.roof import diagnostics
from pyecoroof.roof.ports import ConductionCoefficients, DrivingConditions, SurfaceGeometry
from pyecoroof.roof.state import EcoRoofState
from pyecoroof.roof.two_node import TwoNodeModel, stability_factor, vegetation_fraction

GEOM = SurfaceGeometry(area=100.0)
CTF = ConductionCoefficients(ctf_outside=0.5, const_out_part=-11.0, temp_surf_in=22.0)


def _weather(T_c=25.0, beam=600.0, diffuse=100.0, wind=3.0, rh=50.0):
    return DrivingConditions(
        outdoor_temp_c=T_c,
        wind_speed=wind,
        relative_humidity=rh,
        pressure=101325.0,
        beam_solar=beam,
        diffuse_solar=diffuse,
        sky_temp=T_c + KELVIN - 10.0,
        ground_temp=T_c + KELVIN,
    )


def _state(**kwargs):
    return EcoRoofState.initial(MaterialParameters(**kwargs), outdoor_temp_c=25.0)


def test_vegetation_fraction_bounds():
    assert vegetation_fraction(0.0) == pytest.approx(0.2)
    assert vegetation_fraction(20.0) == pytest.approx(0.9, abs=1e-6)
    assert vegetation_fraction(1.0) < vegetation_fraction(3.0)


def test_stability_factor_branches():
    assert stability_factor(0.0) == pytest.approx(1.0)
    # unstable: (1 - 16 Ri)^-1/2 < 1
    assert stability_factor(-0.1) == pytest.approx(1.0 / np.sqrt(2.6))
    # stable Ri is capped at 0.19
    assert stability_factor(5.0) == pytest.approx(stability_factor(0.19))
    assert np.isfinite(stability_factor(5.0))


def test_roughness_lengths():
    assert roughness_length(Roughness.VERY_ROUGH) == pytest.approx(0.005)
    assert roughness_length("very_smooth") == pytest.approx(0.0008)
    with pytest.raises(ValueError):
        roughness_length("glassy")


def test_first_surface_solve_writes_buffers():
    st = _state()
    model = TwoNodeModel(diag=False)
    res = model.solve(st, _weather(), GEOM, CTF, is_first_surface=True)
    assert res.recomputed
    assert np.isfinite(res.leaf_temp) and np.isfinite(res.soil_temp)
    assert 0.0 < res.leaf_temp - KELVIN < 80.0
    assert 0.0 < res.boundary_temperature_c < 80.0
    assert st.thermal.leaf.write == res.leaf_temp
    assert st.thermal.soil.write == res.soil_temp
    assert st.thermal.soil.read == pytest.approx(25.0 + KELVIN)
    assert res.vflux_f >= 0.0 and res.vflux_g >= 0.0
    assert model.last_terms is not None
    assert model.last_terms.sigma_f == pytest.approx(vegetation_fraction(st.material.lai))
    assert np.isfinite(diagnostics.soil_surface_residual(res, model.name))


def test_other_surfaces_reuse_stored_answer():
    st = _state()
    model = TwoNodeModel(diag=False)
    first = model.solve(st, _weather(), GEOM, CTF, is_first_surface=True)
    st.fluxes.vflux_f, st.fluxes.vflux_g = first.vflux_f, first.vflux_g
    terms = model.last_terms
    other = model.solve(st, _weather(T_c=5.0, beam=0.0), GEOM, CTF, is_first_surface=False)
    assert not other.recomputed
    assert other.boundary_temperature_c == pytest.approx(first.boundary_temperature_c)
    assert other.leaf_temp == first.leaf_temp
    assert other.vflux_f == first.vflux_f
    assert model.last_terms is terms


def test_dry_root_zone_cuts_transpiration():
    wet = _state(moisture_initial=0.35)
    dry = _state(moisture_initial=0.0105)
    w = _weather(rh=30.0)
    r_wet = TwoNodeModel(diag=False).solve(wet, w, GEOM, CTF, True)
    r_dry = TwoNodeModel(diag=False).solve(dry, w, GEOM, CTF, True)
    assert r_dry.vflux_f < r_wet.vflux_f


def test_ground_roughness_changes_exchange():
    w = _weather()
    rough = TwoNodeModel(diag=False)
    rough.solve(_state(roughness=Roughness.VERY_ROUGH), w, GEOM, CTF, True)
    smooth = TwoNodeModel(diag=False)
    smooth.solve(_state(roughness=Roughness.VERY_SMOOTH), w, GEOM, CTF, True)
    assert rough.last_terms.sheat_g > smooth.last_terms.sheat_g


def test_windless_floor_keeps_exchange_finite():
    st = _state()
    res = TwoNodeModel(diag=False).solve(st, _weather(wind=0.0), GEOM, CTF, True)
    assert np.isfinite(res.boundary_temperature_c)


def test_settled_relaxation_is_quiet(capsys):
    st = _state()
    model = TwoNodeModel(diag=True, settle_tol=1.0e6)
    model.solve(st, _weather(), GEOM, CTF, True)
    assert model.nonconvergence.count == 0
    assert model.last_terms.last_pass_change >= 0.0
    assert capsys.readouterr().out == ""


def test_unsettled_relaxation_is_reported_once(capsys):
    # a cold start far from the hot-day answer: halving leaves a large last step
    st = EcoRoofState.initial(MaterialParameters(), outdoor_temp_c=-20.0)
    model = TwoNodeModel(diag=True)
    res = model.solve(st, _weather(T_c=35.0, beam=800.0), GEOM, CTF, True)
    assert np.isfinite(res.boundary_temperature_c)
    assert model.last_terms.last_pass_change > model.settle_tol
    assert model.nonconvergence.count == 1
    out = capsys.readouterr().out
    assert out.count("[EcoRoof] Two-node relaxation did not settle") == 1

    model.solve(st, _weather(T_c=35.0, beam=800.0), GEOM, CTF, True)
    assert model.nonconvergence.count == 2
    assert "Two-node relaxation" not in capsys.readouterr().out
    assert "occurred 2 time(s)" in model.nonconvergence.summary()


def test_quiet_model_counts_without_printing(capsys):
    st = EcoRoofState.initial(MaterialParameters(), outdoor_temp_c=-20.0)
    model = TwoNodeModel(diag=False)
    model.solve(st, _weather(T_c=35.0, beam=800.0), GEOM, CTF, True)
    assert model.nonconvergence.count == 1
    assert capsys.readouterr().out == ""
