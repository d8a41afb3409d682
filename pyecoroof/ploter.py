from __future__ import annotations

import os
from typing import Optional, Sequence

import numpy as np

try:
    import matplotlib.pyplot as plt  # type: ignore
except Exception:
    plt = None

DEFAULT_PANELS = (
    ("Green Roof Soil Temperature", "Green Roof Vegetation Temperature"),
    ("Green Roof Soil Near Surface Moisture Ratio", "Green Roof Soil Root Moisture Ratio"),
    ("Green Roof Cumulative Precipitation Depth", "Green Roof Cumulative Runoff Depth",
     "Green Roof Cumulative Evapotranspiration Depth"),
)


def _require_matplotlib():
    if plt is None:
        raise RuntimeError("matplotlib is required for plotting. Please install 'matplotlib'.")


def _series(history: Sequence[dict], name: str) -> np.ndarray:
    return np.asarray([h.get(name, np.nan) for h in history], dtype=float)


def plot_report_history(
    history: Sequence[dict],
    names: Optional[Sequence[str]] = None,
    path: str = "output/ecoroof_report.png",
    times: Optional[Sequence[float]] = None,
    title: str = "Green roof",
) -> str:
    """
    Quick-look time series of recorded report snapshots.

    history : list of {name: value} snapshots (ReportRegistry.history)
    names   : quantities to draw, one panel each; default is three grouped
              panels (temperatures, moisture ratios, cumulative water depths)
    times   : seconds for the x-axis; step index when omitted
    Returns the written path.
    """
    _require_matplotlib()
    if not history:
        raise ValueError("plot_report_history: empty history")

    panels = [(n,) for n in names] if names else list(DEFAULT_PANELS)
    x = np.asarray(times, dtype=float) / 3600.0 if times is not None else np.arange(len(history))
    xlabel = "hours" if times is not None else "step"

    fig, axes = plt.subplots(len(panels), 1, figsize=(9, 2.6 * len(panels)), sharex=True, squeeze=False)
    for ax, group in zip(axes[:, 0], panels):
        for n in group:
            ax.plot(x, _series(history, n), lw=1.2, label=n.replace("Green Roof ", ""))
        ax.grid(alpha=0.3)
        ax.legend(fontsize=7, loc="best")
    axes[-1, 0].set_xlabel(xlabel)
    axes[0, 0].set_title(title)
    fig.tight_layout()

    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    fig.savefig(path, dpi=120)
    plt.close(fig)
    return path
