"""Exception taxonomy for pyecoroof."""

from __future__ import annotations


class EcoRoofError(Exception):
    """Base class for all pyecoroof errors."""


class ConfigurationError(EcoRoofError, ValueError):
    """Fatal: the requested configuration cannot be simulated (e.g. unstable timestep)."""


class SolverHistoryOverflow(EcoRoofError, RuntimeError):
    """A root solve recorded more iterates than its history capacity allows."""
