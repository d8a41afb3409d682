"""
roof/: ecoroof façade over the energy models, moisture updater and reports.

EcoRoofSimulation is what a host heat-balance program drives, once per
ecoroof surface per timestep:

    sim = EcoRoofSimulation.create_default()
    sim.on_environment_start(outdoor_temp_c=10.0)
    res = sim.step("roof-1", weather, geometry, ctf, water)
    ... hand res.boundary_temperature_c to the conduction solver ...
    sim.end_timestep()

The first surface id ever seen owns the shared soil: only its step advances
the moisture state and refreshes the moisture-dependent canopy factors.
"""

from __future__ import annotations

from pyecoroof.config import EcoRoofConfig
from pyecoroof.materials import MaterialParameters, get_material_from_env
from pyecoroof.messages import diag_print
from pyecoroof.moisture import MoistureStepReport, MoistureUpdater, get_moisture_params_from_env
from pyecoroof.reporting import ReportRegistry, report_values
from pyecoroof.roof.api import EnergyBalanceModel, make_energy_model
from pyecoroof.roof.ports import (
    ConductionCoefficients,
    DrivingConditions,
    EnergyBalanceResult,
    SurfaceGeometry,
    WaterInputs,
)
from pyecoroof.roof.state import EcoRoofState


class EcoRoofSimulation:
    """
    Façade:
    - Supports DI (dependency injection) via constructor keyword args.
    - Provides create_default() to assemble from env.
    - Owns the double-buffered node temperatures; end_timestep() swaps them.
    """

    def __init__(
        self,
        config: EcoRoofConfig,
        material: MaterialParameters,
        *,
        model: EnergyBalanceModel | None = None,
        updater: MoistureUpdater | None = None,
        registry: ReportRegistry | None = None,
        state: EcoRoofState | None = None,
    ) -> None:
        self.config = config
        self.material = material
        self.state = state or EcoRoofState.initial(material)

        if model is None:
            kwargs: dict = {"diag": config.diag}
            if config.energy_model == "plant_coverage":
                kwargs.update(
                    tol=config.newton_tol,
                    max_iter=config.newton_max_iter,
                    history_capacity=config.history_capacity,
                )
            model = make_energy_model(config.energy_model, **kwargs)
        self.model = model

        if updater is None:
            params = get_moisture_params_from_env()
            updater = MoistureUpdater(material, config.minutes_per_timestep, config.moisture_model, params)
        self.updater = updater

        self.registry = registry or ReportRegistry()
        self.registry.register()

        self.last_result: EnergyBalanceResult | None = None
        self.last_water: MoistureStepReport | None = None

    @classmethod
    def create_default(cls) -> EcoRoofSimulation:
        cfg = EcoRoofConfig.from_env()
        mat = get_material_from_env()
        return cls(cfg, mat)

    @property
    def first_surface(self) -> int | str | None:
        return self.state.first_surface

    # ---------------------------
    # Environment lifecycle
    # ---------------------------

    def on_environment_start(self, outdoor_temp_c: float) -> None:
        """Initial moisture + dry albedo, all nodes at the outdoor dry-bulb, zero accumulators."""
        self.state.reset_environment(outdoor_temp_c)
        self.state.t_seconds = 0.0
        self.state.steps = 0
        self.registry.clear_history()
        diag_print(
            "EcoRoof",
            f"environment start: T_out={outdoor_temp_c:.2f} C, moisture={self.state.moisture.top:.4f}, "
            f"model={self.model.name}",
            self.config.diag,
        )

    def on_warmup_day(self) -> None:
        self.state.reset_moisture()

    # ---------------------------
    # Per surface / per timestep
    # ---------------------------

    def step(
        self,
        surface_id: int | str,
        weather: DrivingConditions,
        geometry: SurfaceGeometry,
        ctf: ConductionCoefficients,
        water: WaterInputs | None = None,
        warmup: bool = False,
    ) -> EnergyBalanceResult:
        st = self.state
        if st.first_surface is None:
            st.first_surface = surface_id
        is_first = surface_id == st.first_surface

        if is_first:
            self.last_water = self.updater.update(
                st.moisture, st.fluxes, st.live, water or WaterInputs(), warmup=warmup
            )

        result = self.model.solve(st, weather, geometry, ctf, is_first)
        if result.recomputed:
            st.fluxes.vflux_f = result.vflux_f
            st.fluxes.vflux_g = result.vflux_g

        self.last_result = result
        self.registry.update(report_values(st, result))
        if is_first:
            self.registry.record(st.t_seconds)
        return result

    def end_timestep(self) -> None:
        """Make this timestep's node temperatures the previous ones and advance the clock."""
        self.state.swap_all()
        self.state.t_seconds += self.config.seconds_per_timestep
        self.state.steps += 1

    def summary(self) -> list[str]:
        """Print and return the recurring-warning summaries issued so far."""
        out = []
        for w in (getattr(self.model, "nonconvergence", None), self.updater.saturation_warning):
            if w is None:
                continue
            text = w.summary()
            if text:
                out.append(text)
        return out


__all__ = [
    "EcoRoofSimulation",
    "EcoRoofState",
    "DrivingConditions",
    "SurfaceGeometry",
    "ConductionCoefficients",
    "WaterInputs",
    "EnergyBalanceResult",
]
