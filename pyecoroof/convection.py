"""
convection.py

Exterior convection correlations for vegetated roofs.

Pure functions of explicit geometry, temperatures and wind speed; there is no
surface table to consult. The canopy and bare-soil coefficients share one
Nusselt/regime machinery and differ only in their empirical multiplier.

Regimes (Gr = Grashof, Re = Reynolds):
- forced   : Gr < 0.068 Re^2.2
- natural  : Gr > 55.3 Re^(5/3)
- mixed    : otherwise
Every (Gr, Re) pair falls in exactly one regime; when the forced bound
exceeds the natural bound the natural test wins above it.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from pyecoroof.constants import (
    CANOPY_POROSITY,
    CP_AIR,
    GRAVITY,
    K_AIR,
    K_PLANTS,
    NU_AIR,
    PRANDTL_AIR,
)

FORCED = "forced"
MIXED = "mixed"
NATURAL = "natural"

CANOPY_MULTIPLIER = 3.0
BARE_SOIL_MULTIPLIER = 2.1

# Keeps 1/h finite in still, isothermal air
H_CONV_FLOOR = 1.0e-3


@dataclass(frozen=True)
class CharacteristicLengths:
    length: float  # plan side (m), sqrt(area)
    l_cha: float  # area / perimeter (m)


def characteristic_lengths(area: float) -> CharacteristicLengths:
    """Square-plan lengths for a roof of the given area (m^2)."""
    length = float(np.sqrt(max(area, 0.0)))
    width = length
    l_cha = length * width / (2.0 * length + 2.0 * width) if length > 0.0 else 0.0
    return CharacteristicLengths(length=length, l_cha=l_cha)


def grashof(T_air: float, T_surface: float, l_cha: float) -> float:
    beta = 1.0 / (0.5 * (T_air + T_surface))
    return float(abs(GRAVITY * beta * (T_surface - T_air) * l_cha**3 / NU_AIR**2))


def reynolds(wind: float, length: float) -> float:
    return max(wind, 0.0) * length / NU_AIR


def classify_regime(gr: float, re: float) -> str:
    if gr < 0.068 * re**2.2:
        return FORCED
    if gr > 55.3 * re ** (5.0 / 3.0) or re <= 0.0:
        return NATURAL
    return MIXED


def nusselt(gr: float, re: float) -> tuple[float, str]:
    """Return (Nu, regime)."""
    regime = classify_regime(gr, re)
    if regime == FORCED:
        return 3.0 + 1.25 * 0.0253 * re**0.8, regime
    if regime == NATURAL:
        return 0.15 * (gr * PRANDTL_AIR) ** (1.0 / 3.0), regime
    nu = 2.7 * (gr / re**2.2) ** (1.0 / 3.0) * (3.0 * 15.0 / 4.0 + 0.0253 * 15.0 / 16.0 * re**0.8)
    return nu, regime


def _h_conv(
    multiplier: float,
    area: float,
    T_air: float,
    T_surface: float,
    wind: float,
    k_air: float,
) -> float:
    lengths = characteristic_lengths(area)
    if lengths.length <= 0.0:
        return H_CONV_FLOOR
    gr = grashof(T_air, T_surface, lengths.l_cha)
    re = reynolds(wind, lengths.length)
    nu, regime = nusselt(gr, re)
    if regime == FORCED:
        scale = lengths.length
    elif regime == NATURAL:
        scale = lengths.l_cha
    else:
        norm = (gr / re ** (5.0 / 3.0)) / 60.0
        scale = lengths.l_cha * norm + lengths.length * (1.0 - norm)
    return max(multiplier * nu * k_air / scale, H_CONV_FLOOR)


def h_conv_canopy(
    area: float, T_air: float, T_surface: float, wind: float, k_air: float = K_AIR
) -> float:
    """Convection coefficient (W/m^2/K) between canopy foliage and outdoor air."""
    return _h_conv(CANOPY_MULTIPLIER, area, T_air, T_surface, wind, k_air)


def h_conv_bare(
    area: float, T_air: float, T_surface: float, wind: float, k_air: float = K_AIR
) -> float:
    """Convection coefficient (W/m^2/K) between bare soil and outdoor air."""
    return _h_conv(BARE_SOIL_MULTIPLIER, area, T_air, T_surface, wind, k_air)


def h_porous_media(wind: float, length: float, rho_air: float) -> float:
    """
    Conductance (W/m^2/K) through the canopy treated as a porous medium,
    from the Peclet-number Nusselt correlation Nu = 1.128 sqrt(Pe).
    """
    k_por = CANOPY_POROSITY * K_AIR + (1.0 - CANOPY_POROSITY) * K_PLANTS
    alpha_por = k_por / (rho_air * CP_AIR)
    if length <= 0.0:
        return H_CONV_FLOOR
    pe = 0.3 * max(wind, 0.0) * length / alpha_por
    nu_por = 1.128 * float(np.sqrt(pe))
    return max(nu_por * k_por / length, H_CONV_FLOOR)
