"""
materials.py

Ecoroof material description and the live soil thermal properties that the
moisture updater writes back for the host conduction solver.

- MaterialParameters: immutable description of the vegetated soil layer.
- LiveSoilProperties: mutable conductivity / density / specific heat / albedo.
- Roughness: six exterior roughness classes and their ground roughness length
  used by the two-node model's near-ground transfer coefficient.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class Roughness(Enum):
    VERY_ROUGH = "very_rough"
    ROUGH = "rough"
    MEDIUM_ROUGH = "medium_rough"
    MEDIUM_SMOOTH = "medium_smooth"
    SMOOTH = "smooth"
    VERY_SMOOTH = "very_smooth"


# Ground roughness length Zog (m)
ROUGHNESS_LENGTH: dict[Roughness, float] = {
    Roughness.VERY_ROUGH: 0.005,
    Roughness.ROUGH: 0.0030,
    Roughness.MEDIUM_ROUGH: 0.0020,
    Roughness.MEDIUM_SMOOTH: 0.0015,
    Roughness.SMOOTH: 0.0010,
    Roughness.VERY_SMOOTH: 0.0008,
}


def roughness_length(roughness: Roughness | str) -> float:
    if isinstance(roughness, str):
        try:
            roughness = Roughness(roughness.strip().lower())
        except ValueError as e:
            raise ValueError(f"Unknown roughness class: {roughness!r}") from e
    return ROUGHNESS_LENGTH[roughness]


@dataclass(frozen=True)
class MaterialParameters:
    # Vegetation
    lai: float = 1.0  # leaf area index (-)
    leaf_reflectivity: float = 0.22  # leaf albedo (-)
    leaf_emissivity: float = 0.95
    stomatal_resistance_min: float = 180.0  # s/m
    plant_height: float = 0.2  # m
    plant_coverage: float = 0.8  # sigma_f for the plant-coverage model (-)
    k_sw: float = 0.5  # shortwave extinction coefficient
    k_lw: float = 0.5  # longwave extinction coefficient

    # Soil optics
    soil_emissivity: float = 0.95  # thermal absorptance
    soil_absorptance: float = 0.7  # solar absorptance (dry)

    # Soil water (volumetric, m^3/m^3)
    moisture_max: float = 0.5  # porosity
    moisture_residual: float = 0.01
    moisture_initial: float = 0.15
    field_capacity: float = 0.3  # wilting point is taken as moisture_residual

    # Soil layer
    thickness: float = 0.2  # m
    conductivity: float = 0.35  # dry, W/m/K
    density: float = 1100.0  # dry, kg/m^3
    specific_heat: float = 1200.0  # dry, J/kg/K
    roughness: Roughness = Roughness.MEDIUM_ROUGH

    def __post_init__(self):
        if self.moisture_max <= self.moisture_residual:
            raise ValueError(
                f"moisture_max ({self.moisture_max}) must exceed moisture_residual ({self.moisture_residual})"
            )
        if not self.moisture_residual <= self.moisture_initial <= self.moisture_max:
            raise ValueError(
                f"moisture_initial ({self.moisture_initial}) must lie in "
                f"[{self.moisture_residual}, {self.moisture_max}]"
            )
        if self.lai <= 0.0:
            raise ValueError(f"lai must be positive, got {self.lai}")
        if self.thickness <= 0.0:
            raise ValueError(f"thickness must be positive, got {self.thickness}")
        if not 0.0 <= self.plant_coverage <= 1.0:
            raise ValueError(f"plant_coverage must lie in [0, 1], got {self.plant_coverage}")

    @property
    def dry_albedo(self) -> float:
        return 1.0 - self.soil_absorptance


def get_material_from_env(base: MaterialParameters | None = None) -> MaterialParameters:
    """Override selected MaterialParameters fields from ER_* environment variables."""
    base = base or MaterialParameters()

    def _f(env: str, default: float) -> float:
        try:
            return float(os.getenv(env, str(default)))
        except Exception:
            return default

    def _s(env: str, default: str) -> str:
        v = os.getenv(env)
        return v if v else default

    return MaterialParameters(
        lai=_f("ER_LAI", base.lai),
        leaf_reflectivity=_f("ER_LEAF_REFLECTIVITY", base.leaf_reflectivity),
        leaf_emissivity=_f("ER_LEAF_EMISSIVITY", base.leaf_emissivity),
        stomatal_resistance_min=_f("ER_RS_MIN", base.stomatal_resistance_min),
        plant_height=_f("ER_PLANT_HEIGHT", base.plant_height),
        plant_coverage=_f("ER_PLANT_COVERAGE", base.plant_coverage),
        k_sw=_f("ER_K_SW", base.k_sw),
        k_lw=_f("ER_K_LW", base.k_lw),
        soil_emissivity=_f("ER_SOIL_EMISSIVITY", base.soil_emissivity),
        soil_absorptance=_f("ER_SOIL_ABSORPTANCE", base.soil_absorptance),
        moisture_max=_f("ER_MOISTURE_MAX", base.moisture_max),
        moisture_residual=_f("ER_MOISTURE_RESIDUAL", base.moisture_residual),
        moisture_initial=_f("ER_MOISTURE_INITIAL", base.moisture_initial),
        field_capacity=_f("ER_FIELD_CAPACITY", base.field_capacity),
        thickness=_f("ER_SOIL_THICKNESS", base.thickness),
        conductivity=_f("ER_SOIL_CONDUCTIVITY", base.conductivity),
        density=_f("ER_SOIL_DENSITY", base.density),
        specific_heat=_f("ER_SOIL_SPECIFIC_HEAT", base.specific_heat),
        roughness=Roughness(_s("ER_ROUGHNESS", base.roughness.value)),
    )


@dataclass
class LiveSoilProperties:
    """Moisture-dependent soil properties handed back to the host each timestep."""

    conductivity: float
    density: float
    specific_heat: float
    albedo: float

    @property
    def absorptance(self) -> float:
        return 1.0 - self.albedo

    @classmethod
    def from_material(cls, material: MaterialParameters) -> LiveSoilProperties:
        return cls(
            conductivity=material.conductivity,
            density=material.density,
            specific_heat=material.specific_heat,
            albedo=material.dry_albedo,
        )
