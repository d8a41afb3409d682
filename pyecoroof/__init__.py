"""Green-roof (ecoroof) surface energy and soil moisture balance."""

__version__ = "0.1.0"
