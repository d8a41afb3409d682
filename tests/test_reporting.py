import os
import sys

import numpy as np
import pytest

from pyecoroof.config import EcoRoofConfig
from pyecoroof.constants import KELVIN
from pyecoroof.materials import MaterialParameters
from pyecoroof.messages import RecurringWarning
from pyecoroof.reporting import REPORT_VARIABLES, ReportRegistry
from pyecoroof.roof import EcoRoofSimulation
from pyecoroof.roof.ports import ConductionCoefficients, DrivingConditions, SurfaceGeometry, WaterInputs


def _run_sim(n=8):
    sim = EcoRoofSimulation(EcoRoofConfig(diag=False, moisture_model="simple"), MaterialParameters())
    sim.on_environment_start(18.0)
    w = DrivingConditions(
        outdoor_temp_c=18.0,
        wind_speed=2.0,
        relative_humidity=60.0,
        pressure=101325.0,
        beam_solar=400.0,
        diffuse_solar=80.0,
        sky_temp=18.0 + KELVIN - 8.0,
        ground_temp=18.0 + KELVIN,
    )
    for _ in range(n):
        sim.step("roof", w, SurfaceGeometry(area=50.0), ConductionCoefficients(ctf_outside=0.4), WaterInputs(precipitation=0.0005))
        sim.end_timestep()
    return sim


def test_fixed_report_set():
    names = [v.name for v in REPORT_VARIABLES]
    assert len(names) == len(set(names)) == 21
    keys = [v.key for v in REPORT_VARIABLES]
    assert len(keys) == len(set(keys))
    assert all(k.isidentifier() for k in keys)
    assert {v.kind for v in REPORT_VARIABLES} == {"State", "Sum"}
    assert ReportRegistry().variable("Green Roof Soil Temperature").units == "C"


def test_register_is_idempotent_and_update_rejects_unknown():
    reg = ReportRegistry()
    reg.register()
    reg.update({"Green Roof Soil Temperature": 21.5})
    reg.register()
    assert reg.snapshot()["Green Roof Soil Temperature"] == 21.5
    assert set(reg.snapshot()) == set(reg.names)
    with pytest.raises(KeyError):
        reg.update({"Roof Flux Capacitor": 1.0})
    reg.record(0.0)
    reg.update({"Green Roof Soil Temperature": 22.0})
    reg.record(900.0)
    np.testing.assert_allclose(reg.series("Green Roof Soil Temperature"), [21.5, 22.0])
    assert reg.times == [0.0, 900.0]


def test_simulation_reports_vegetation_and_water():
    sim = _run_sim()
    snap = sim.registry.snapshot()
    assert snap["Green Roof Soil Temperature"] == pytest.approx(sim.last_result.boundary_temperature_c)
    assert snap["Green Roof Cumulative Precipitation Depth"] == pytest.approx(8 * 0.0005)
    assert snap["Green Roof Current Precipitation Depth"] == pytest.approx(0.0005)
    assert snap["Green Roof Soil Near Surface Moisture Ratio"] == sim.state.moisture.top
    assert snap["Green Roof Vegetation Temperature"] == pytest.approx(sim.last_result.leaf_temp - KELVIN)


def test_netcdf_export_roundtrip(tmp_path):
    netCDF4 = pytest.importorskip("netCDF4")
    sim = _run_sim()
    path = str(tmp_path / "out" / "ecoroof.nc")
    assert sim.registry.to_netcdf(path) == path
    with netCDF4.Dataset(path) as ds:
        assert len(ds.dimensions["time"]) == 8
        np.testing.assert_allclose(ds.variables["time"][:], np.arange(8) * 900.0)
        for var in REPORT_VARIABLES:
            v = ds.variables[var.key]
            assert v.long_name == var.name
            assert v.units == var.units
            np.testing.assert_allclose(v[:], sim.registry.series(var.name))


def test_netcdf_export_without_library(monkeypatch, tmp_path):
    monkeypatch.setitem(sys.modules, "netCDF4", None)
    with pytest.raises(RuntimeError, match="netCDF4"):
        ReportRegistry().to_netcdf(str(tmp_path / "x.nc"))


def test_plot_report_history(tmp_path):
    pytest.importorskip("matplotlib")
    from pyecoroof.ploter import plot_report_history

    sim = _run_sim()
    out = plot_report_history(sim.registry.history, path=str(tmp_path / "fig.png"), times=sim.registry.times)
    assert os.path.exists(out) and os.path.getsize(out) > 0
    out2 = plot_report_history(sim.registry.history, ["Green Roof Soil Conduction"], str(tmp_path / "one.png"))
    assert os.path.exists(out2)
    with pytest.raises(ValueError):
        plot_report_history([], path=str(tmp_path / "empty.png"))


def test_recurring_warning_prints_once_then_counts(capsys):
    w = RecurringWarning(tag="Moisture", message="value low", continuation=("clamped",))
    w.emit(0.5, detail="layer=top")
    w.emit(0.1)
    w.emit(0.9)
    out = capsys.readouterr().out
    assert out.count("[Moisture] value low") == 1
    assert "[Moisture]    ...clamped" in out
    assert w.count == 3
    text = w.summary()
    assert "occurred 3 time(s)" in text
    assert "min=0.1" in text and "max=0.9" in text
    w.reset()
    assert w.summary() is None

    quiet = RecurringWarning(tag="X", message="m", enabled=False)
    quiet.emit()
    assert capsys.readouterr().out == ""
    assert quiet.lines == ["m"]
