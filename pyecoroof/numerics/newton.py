"""
Scalar root finding for node energy balances: Newton-Raphson with a bisection
fallback, written as an explicit two-phase state machine.

Phase 1 (newton_phase)
- Newton steps x_{k+1} = x_k - F(x_k)/F'(x_k), every (x_k, F(x_k)) recorded.
- Converged when |x_{k+1} - x_k| <= tol.
- Stalled after max_iter steps, or on a zero/non-finite derivative. A stalled
  outcome carries a bracket when the two most recent residuals differ in sign.

Phase 2 (bisection_phase)
- Halves the bracket keeping the sign change until the update is <= tol.

solve_newton_bisect() composes both and reports one of:
  "converged"     Newton met the tolerance
  "bisected"      Newton stalled, bisection met the tolerance
  "nonconvergent" Newton stalled without a sign change; root is the last
                  Newton estimate and must be treated as approximate
  "failed"        bisection exhausted its own iteration cap
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import numpy as np

from pyecoroof.errors import SolverHistoryOverflow

CONVERGED = "converged"
STALLED = "stalled"
BISECTED = "bisected"
NONCONVERGENT = "nonconvergent"
FAILED = "failed"

DEFAULT_TOL = 1.0e-4
DEFAULT_MAX_ITER = 100
DEFAULT_HISTORY_CAPACITY = 500
DEFAULT_MAX_BISECTIONS = 200


class SolverHistory:
    """Growable record of (x, F(x)) pairs with a hard capacity."""

    __slots__ = ("capacity", "_x", "_f")

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        self.capacity = int(capacity)
        self._x: list[float] = []
        self._f: list[float] = []

    def append(self, x: float, f: float) -> None:
        if len(self._x) >= self.capacity:
            raise SolverHistoryOverflow(
                f"solver history exceeded its capacity of {self.capacity} iterates"
            )
        self._x.append(float(x))
        self._f.append(float(f))

    def __len__(self) -> int:
        return len(self._x)

    @property
    def points(self) -> list[tuple[float, float]]:
        return list(zip(self._x, self._f))

    def sign_change_bracket(self) -> tuple[float, float] | None:
        """Bracket from the last two iterates if their residuals straddle zero."""
        if len(self._x) < 2:
            return None
        f1, f2 = self._f[-2], self._f[-1]
        if (f1 < 0.0 < f2) or (f2 < 0.0 < f1):
            x1, x2 = self._x[-2], self._x[-1]
            return (min(x1, x2), max(x1, x2))
        return None


@dataclass
class NewtonOutcome:
    status: str  # CONVERGED | STALLED
    x: float
    iterations: int
    bracket: tuple[float, float] | None = None


@dataclass
class RootResult:
    root: float
    status: str
    iterations: int
    bisections: int = 0
    bracket: tuple[float, float] | None = None
    history: list[tuple[float, float]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (CONVERGED, BISECTED)


def newton_phase(
    func: Callable[[float], float],
    dfunc: Callable[[float], float],
    x0: float,
    tol: float = DEFAULT_TOL,
    max_iter: int = DEFAULT_MAX_ITER,
    history: SolverHistory | None = None,
) -> NewtonOutcome:
    if history is None:
        history = SolverHistory()
    x_new = float(x0)
    for k in range(1, max_iter + 1):
        x_old = x_new
        f = float(func(x_old))
        history.append(x_old, f)
        if f == 0.0:
            return NewtonOutcome(CONVERGED, x_old, k)
        df = float(dfunc(x_old))
        if df == 0.0 or not np.isfinite(df) or not np.isfinite(f):
            return NewtonOutcome(STALLED, x_old, k, history.sign_change_bracket())
        x_new = x_old - f / df
        if not np.isfinite(x_new):
            return NewtonOutcome(STALLED, x_old, k, history.sign_change_bracket())
        if abs(x_new - x_old) <= tol:
            return NewtonOutcome(CONVERGED, x_new, k)
    return NewtonOutcome(STALLED, x_new, max_iter, history.sign_change_bracket())


def bisection_phase(
    func: Callable[[float], float],
    bracket: tuple[float, float],
    tol: float = DEFAULT_TOL,
    max_iter: int = DEFAULT_MAX_BISECTIONS,
) -> tuple[str, float, int]:
    """Return (status, root, iterations) with status CONVERGED or FAILED."""
    lo, hi = float(bracket[0]), float(bracket[1])
    f_lo = float(func(lo))
    mid = 0.5 * (lo + hi)
    for k in range(1, max_iter + 1):
        mid = 0.5 * (lo + hi)
        f_mid = float(func(mid))
        if f_mid == 0.0:
            return CONVERGED, mid, k
        if (f_mid < 0.0) == (f_lo < 0.0):
            lo, f_lo = mid, f_mid
        else:
            hi = mid
        if abs(0.5 * (lo + hi) - mid) <= tol:
            return CONVERGED, 0.5 * (lo + hi), k
    return FAILED, mid, max_iter


def solve_newton_bisect(
    func: Callable[[float], float],
    dfunc: Callable[[float], float],
    x0: float,
    tol: float = DEFAULT_TOL,
    max_iter: int = DEFAULT_MAX_ITER,
    history_capacity: int = DEFAULT_HISTORY_CAPACITY,
    max_bisections: int = DEFAULT_MAX_BISECTIONS,
) -> RootResult:
    history = SolverHistory(history_capacity)
    outcome = newton_phase(func, dfunc, x0, tol=tol, max_iter=max_iter, history=history)
    if outcome.status == CONVERGED:
        return RootResult(outcome.x, CONVERGED, outcome.iterations, history=history.points)
    if outcome.bracket is None:
        return RootResult(outcome.x, NONCONVERGENT, outcome.iterations, history=history.points)

    status, root, n_bis = bisection_phase(func, outcome.bracket, tol=tol, max_iter=max_bisections)
    return RootResult(
        root,
        BISECTED if status == CONVERGED else FAILED,
        outcome.iterations,
        bisections=n_bis,
        bracket=outcome.bracket,
        history=history.points,
    )
