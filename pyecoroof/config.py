"""
Simulation configuration (env-driven).

Environment variables (defaults in parentheses):
  ER_TIMESTEP_MINUTES   host timestep in minutes (15)
  ER_ENERGY_MODEL       plant_coverage | two_node (plant_coverage)
  ER_MOISTURE_MODEL     simple | advanced (advanced)
  ER_NEWTON_TOL         node solver tolerance, K (1e-4)
  ER_NEWTON_MAX_ITER    Newton iterations before the bisection fallback (100)
  ER_HISTORY_CAPACITY   solver history capacity (500)
  ER_DIAG               1 to print [EcoRoof]/[Moisture] diagnostics (1)
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from pyecoroof.errors import ConfigurationError
from pyecoroof.moisture import MOISTURE_MODELS

ENERGY_MODELS = ("plant_coverage", "two_node")


@dataclass(frozen=True)
class EcoRoofConfig:
    minutes_per_timestep: int = 15
    energy_model: str = "plant_coverage"
    moisture_model: str = "advanced"
    newton_tol: float = 1.0e-4
    newton_max_iter: int = 100
    history_capacity: int = 500
    diag: bool = True

    def __post_init__(self):
        if self.minutes_per_timestep <= 0 or 60 % self.minutes_per_timestep != 0:
            raise ConfigurationError(
                f"minutes_per_timestep must divide an hour, got {self.minutes_per_timestep}"
            )
        if self.energy_model not in ENERGY_MODELS:
            raise ConfigurationError(f"Unknown energy model kind: {self.energy_model!r}")
        if self.moisture_model not in MOISTURE_MODELS:
            raise ConfigurationError(f"Unknown moisture model: {self.moisture_model!r}")

    @property
    def seconds_per_timestep(self) -> float:
        return self.minutes_per_timestep * 60.0

    @property
    def timesteps_per_hour(self) -> int:
        return 60 // self.minutes_per_timestep

    @classmethod
    def from_env(cls) -> EcoRoofConfig:
        def _ibool(name: str, default: str = "1") -> bool:
            try:
                return int(os.getenv(name, default)) == 1
            except Exception:
                return default == "1"

        def _int(name: str, default: str) -> int:
            try:
                return int(os.getenv(name, default))
            except Exception:
                return int(default)

        def _float(name: str, default: str) -> float:
            try:
                return float(os.getenv(name, default))
            except Exception:
                return float(default)

        def _str(name: str, default: str) -> str:
            return (os.getenv(name) or default).strip().lower()

        return cls(
            minutes_per_timestep=_int("ER_TIMESTEP_MINUTES", "15"),
            energy_model=_str("ER_ENERGY_MODEL", "plant_coverage"),
            moisture_model=_str("ER_MOISTURE_MODEL", "advanced"),
            newton_tol=_float("ER_NEWTON_TOL", "1e-4"),
            newton_max_iter=_int("ER_NEWTON_MAX_ITER", "100"),
            history_capacity=_int("ER_HISTORY_CAPACITY", "500"),
            diag=_ibool("ER_DIAG", "1"),
        )
