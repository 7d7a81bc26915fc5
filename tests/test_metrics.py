import numpy as np

from remipk.metrics import (
    auc_trapz, cmax, cmax_tmax, max_abs_diff, mean_abs_diff, relative_diff_pct, rmse,
    time_above, tmax,
)


def test_exponential_decay_auc():
    """AUC of C0*exp(-k t) over a long horizon approaches C0/k."""
    k, C0 = 0.1, 2.0
    t = np.linspace(0.0, 200.0, 4001)
    C = C0 * np.exp(-k * t)
    assert np.isclose(auc_trapz(t, C), C0 / k, rtol=1e-3)
    assert cmax(C) == C0
    assert tmax(t, C) == 0.0
    assert cmax_tmax(t, C) == (C0, 0.0)


def test_time_above_threshold():
    t = np.arange(0.0, 6.0)
    C = np.array([0.0, 1.0, 2.0, 2.0, 1.0, 0.0])
    assert time_above(t, C, 1.5) == 2.0
    assert time_above(t[:1], C[:1], 0.0) == 0.0


def test_trace_differences():
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([1.0, 2.5, 2.0])
    assert mean_abs_diff(a, b) == 0.5
    assert max_abs_diff(a, b) == 1.0
    assert np.isclose(rmse(a, b), np.sqrt((0.25 + 1.0) / 3))
    assert np.allclose(relative_diff_pct(a, b), [0.0, 20.0, 50.0])
    # the floor keeps a zero reference finite
    assert np.all(np.isfinite(relative_diff_pct(np.array([1e-3]), np.array([0.0]))))
