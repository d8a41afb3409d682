# pyecoroof/constants.py

"""
Central repository for the physical constants and empirical coefficients
shared by the ecoroof energy and moisture models.
"""

# --- Physical Constants (SI units) ---
SIGMA = 5.6697e-8  # Stefan-Boltzmann constant (W m^-2 K^-4)
KELVIN = 273.15  # 0 °C in K
GRAVITY = 9.81  # m s^-2
R_AIR = 286.0  # Specific gas constant of air used by the roof models (J kg^-1 K^-1)
RHO_WATER = 990.0  # Density of soil water (kg m^-3), used for mass <-> depth conversion
EPSILON = 0.622  # Ratio of molecular weights Mw/Md
INCH = 0.0254  # m

# --- Air properties near the surface ---
CP_AIR = 1005.0  # Specific heat of air (J kg^-1 K^-1)
K_AIR = 0.0267  # Thermal conductivity of air (W m^-1 K^-1)
NU_AIR = 15.66e-6  # Kinematic viscosity of air (m^2 s^-1)
PRANDTL_AIR = 0.71

# --- Canopy as a porous medium ---
CANOPY_POROSITY = 0.85
K_PLANTS = 0.5  # Thermal conductivity of plant material (W m^-1 K^-1)

# --- Latent heat ---
L_SUBLIMATION = 2.838e6  # J kg^-1, used below 0 °C

# --- Two-node (FASST) constants ---
VON_KARMAN = 0.4
SCHMIDT_TURB = 0.63  # turbulent Schmidt number
PRANDTL_TURB = 0.71  # turbulent Prandtl number
CP_AIR_FASST = 1005.6  # J kg^-1 K^-1
WINDLESS_EXCHANGE = 2.0  # e0 (W m^-2 K^-1)
REFERENCE_HEIGHT = 2.0  # Za, instrument height (m)
MIN_WIND_FASST = 2.0  # m s^-1

# --- Soil moisture / thermal property correlations ---
WET_ABSORPTANCE = 0.92
MIN_ABSORPTANCE = 0.20
MAX_ABSORPTANCE = 0.95
WATER_SPECIFIC_HEAT_TERM = 1900.0  # J kg^-1 K^-1 per unit volumetric moisture
