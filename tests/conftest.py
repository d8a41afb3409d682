"""
pytest configuration

Goals:
- keep tests fast, deterministic and quiet
- avoid display requirements when a test draws a figure
- start every test from the default configuration unless it overrides one
"""

import os
import sys

import pytest

# Ensure project root on sys.path for 'pyecoroof' and 'scripts' imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _ecoroof_env(monkeypatch):
    # Silence [EcoRoof]/[Moisture] diagnostics
    monkeypatch.setenv("ER_DIAG", "0")
    # Force non-interactive backend for matplotlib
    monkeypatch.setenv("MPLBACKEND", os.getenv("MPLBACKEND", "Agg"))
    # Config and material overrides come from the test itself
    for name in list(os.environ):
        if name.startswith("ER_") and name != "ER_DIAG":
            monkeypatch.delenv(name, raising=False)
    yield
