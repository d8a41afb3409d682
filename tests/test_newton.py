import numpy as np
import pytest

from pyecoroof.errors import EcoRoofError, SolverHistoryOverflow
from pyecoroof.numerics import newton
from pyecoroof.numerics.newton import SolverHistory, solve_newton_bisect

brentq = pytest.importorskip("scipy.optimize").brentq


def test_newton_converges_on_smooth_balance():
    # radiative-convective balance of a flat plate, root near 300 K
    sigma = 5.67e-8

    def f(T):
        return 500.0 + sigma * 280.0**4 - sigma * T**4 - 10.0 * (T - 295.0)

    def df(T):
        return -4.0 * sigma * T**3 - 10.0

    res = solve_newton_bisect(f, df, 295.0, tol=1e-6)
    assert res.status == newton.CONVERGED
    assert res.ok
    assert res.root == pytest.approx(brentq(f, 250.0, 400.0, xtol=1e-10), abs=1e-5)
    assert 1 <= res.iterations < 20
    assert len(res.history) == res.iterations


def test_zero_derivative_falls_back_to_bisection():
    # flat derivative at x=0 stalls Newton; a deliberately bad slope creates the sign change
    calls = {"n": 0}

    def f(x):
        return x**3 - 2.0

    def df(x):
        calls["n"] += 1
        # first step overshoots across the root, second is flat
        return 0.5 if calls["n"] == 1 else 0.0

    res = solve_newton_bisect(f, df, 1.0, tol=1e-8)
    assert res.status == newton.BISECTED
    assert res.ok
    assert res.bracket is not None
    assert res.root == pytest.approx(2.0 ** (1.0 / 3.0), abs=1e-7)
    assert res.bisections > 0


def test_stall_without_sign_change_is_nonconvergent():
    # no root: Newton iterates, never brackets, returns the last estimate
    res = solve_newton_bisect(lambda x: x * x + 1.0, lambda x: 2.0 * x, 3.0, tol=1e-12, max_iter=25)
    assert res.status == newton.NONCONVERGENT
    assert not res.ok
    assert res.iterations == 25
    assert np.isfinite(res.root)


def test_history_capacity_overflow_raises():
    h = SolverHistory(capacity=3)
    for k in range(3):
        h.append(k, -1.0)
    with pytest.raises(SolverHistoryOverflow):
        h.append(4.0, 1.0)
    with pytest.raises(EcoRoofError):
        solve_newton_bisect(lambda x: x * x + 1.0, lambda x: 2.0 * x, 3.0, max_iter=10, history_capacity=5)


def test_sign_change_bracket_uses_last_two_iterates():
    h = SolverHistory()
    assert h.sign_change_bracket() is None
    h.append(1.0, -2.0)
    h.append(3.0, 4.0)
    assert h.sign_change_bracket() == (1.0, 3.0)
    h.append(2.0, 1.0)
    assert h.sign_change_bracket() is None


def test_bisection_phase_reports_failure_when_capped():
    status, root, n = newton.bisection_phase(lambda x: x - 0.3, (0.0, 1.0), tol=1e-12, max_iter=3)
    assert status == newton.FAILED
    assert n == 3
    assert 0.0 <= root <= 1.0
