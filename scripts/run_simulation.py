# scripts/run_simulation.py

"""
Synthetic diurnal driver for the ecoroof model.

A single 100 m^2 roof surface is forced with a sinusoidal air temperature and
clear-sky-like solar cycle, plus one afternoon rain burst per day, for
ER_DAYS days. The roof construction is a lumped CTF with a fixed interior.

Env:
  ER_DAYS         number of simulated days (3)
  ER_WARMUP_DAYS  warm-up days before the reported run (1)
  ER_RAIN_MM      rain burst depth per day, mm (8)
  ER_OUT_NC       optional netCDF output path
  ER_OUT_PNG      optional figure output path
plus the EcoRoofConfig / MaterialParameters / MoistureParams variables.
"""

import math
import os
import sys

import numpy as np

# Add the project root to the Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pyecoroof.constants import KELVIN
from pyecoroof.roof import EcoRoofSimulation
from pyecoroof.roof.ports import (
    ConductionCoefficients,
    DrivingConditions,
    SurfaceGeometry,
    WaterInputs,
)

SURFACE_ID = "roof"


def synthetic_weather(t_seconds: float) -> DrivingConditions:
    hour = (t_seconds / 3600.0) % 24.0
    T_out = 22.0 + 8.0 * math.sin(2.0 * math.pi * (hour - 9.0) / 24.0)
    sun = max(0.0, math.sin(math.pi * (hour - 6.0) / 12.0)) if 6.0 <= hour <= 18.0 else 0.0
    rh = float(np.clip(60.0 - 25.0 * math.sin(2.0 * math.pi * (hour - 9.0) / 24.0), 15.0, 100.0))
    return DrivingConditions(
        outdoor_temp_c=T_out,
        wind_speed=2.5 + 1.5 * sun,
        relative_humidity=rh,
        pressure=101325.0,
        beam_solar=750.0 * sun,
        diffuse_solar=120.0 * sun,
        sky_temp=T_out + KELVIN - 12.0,
        ground_temp=T_out + KELVIN,
    )


def synthetic_rain(t_seconds: float, minutes: int, depth_mm: float) -> WaterInputs:
    hour = (t_seconds / 3600.0) % 24.0
    # one-hour burst starting at 15:00
    if 15.0 <= hour < 16.0:
        return WaterInputs(precipitation=depth_mm / 1000.0 * minutes / 60.0)
    return WaterInputs(precipitation=0.0)


def roof_ctf(t_inside_c: float = 22.0) -> ConductionCoefficients:
    # Lightly insulated deck: U ~ 0.5 W/m2K, no cross-coupling history
    return ConductionCoefficients(
        ctf_outside=0.5,
        const_out_part=-0.5 * t_inside_c,
        temp_surf_in=t_inside_c,
    )


def main():
    days = int(os.getenv("ER_DAYS", "3"))
    warmup_days = int(os.getenv("ER_WARMUP_DAYS", "1"))
    rain_mm = float(os.getenv("ER_RAIN_MM", "8"))

    sim = EcoRoofSimulation.create_default()
    cfg = sim.config
    minutes = cfg.minutes_per_timestep
    steps_per_day = 24 * cfg.timesteps_per_hour
    geometry = SurfaceGeometry(area=100.0)
    ctf = roof_ctf()

    print(
        f"[EcoRoof] model={cfg.energy_model} moisture={cfg.moisture_model} dt={minutes} min "
        f"days={days} warmup={warmup_days}"
    )
    sim.on_environment_start(synthetic_weather(0.0).outdoor_temp_c)

    for day in range(warmup_days + days):
        warmup = day < warmup_days
        if warmup:
            sim.on_warmup_day()
        t_min, t_max = np.inf, -np.inf
        for _ in range(steps_per_day):
            t = sim.state.t_seconds
            res = sim.step(SURFACE_ID, synthetic_weather(t), geometry, ctf, synthetic_rain(t, minutes, rain_mm), warmup)
            t_min = min(t_min, res.boundary_temperature_c)
            t_max = max(t_max, res.boundary_temperature_c)
            sim.end_timestep()
        if warmup:
            # reported run restarts the clock and the accumulators
            sim.state.t_seconds = 0.0
            sim.registry.clear_history()
            continue
        fx = sim.state.fluxes
        print(
            f"[EcoRoof] day {day - warmup_days + 1}: T_surf {t_min:.1f}..{t_max:.1f} C, "
            f"moisture top={sim.state.moisture.top:.3f} root={sim.state.moisture.root:.3f}, "
            f"P={fx.cumulative_precipitation * 1000:.2f} mm ET={fx.cumulative_et * 1000:.2f} mm "
            f"runoff={fx.cumulative_runoff * 1000:.2f} mm"
        )

    sim.summary()

    out_nc = os.getenv("ER_OUT_NC")
    if out_nc:
        try:
            sim.registry.to_netcdf(out_nc)
            print(f"[EcoRoof] report history written to '{out_nc}'")
        except RuntimeError as e:
            print(f"[EcoRoof] netCDF export skipped: {e}")

    out_png = os.getenv("ER_OUT_PNG")
    if out_png:
        from pyecoroof.ploter import plot_report_history

        try:
            plot_report_history(sim.registry.history, path=out_png, times=sim.registry.times)
            print(f"[EcoRoof] figure written to '{out_png}'")
        except RuntimeError as e:
            print(f"[EcoRoof] plotting skipped: {e}")


if __name__ == "__main__":
    main()
