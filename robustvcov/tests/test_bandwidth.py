import logging

import numpy as np
import pytest

from robustvcov.core import bandwidth as bw
from robustvcov.core.errors import ConfigurationError, InvalidBandwidth
from robustvcov.estimators.base import BartlettKernel, ParzenKernel


def _ar1(n, rho, rng):
    e = rng.standard_normal(n + 200)
    z = np.empty_like(e)
    z[0] = e[0]
    for t in range(1, e.size):
        z[t] = rho * z[t - 1] + e[t]
    return z[200:].reshape(-1, 1)


@pytest.fixture
def deterministic_series():
    t = np.arange(10, dtype=float)
    return (t + 0.5 * (-1.0) ** t).reshape(-1, 1)


# ---------------------------------------------------------------------
# Newey-West lag truncation
# ---------------------------------------------------------------------

def test_nw_lag_truncation_values():
    assert bw.nw_lag_truncation("bartlett", 100) == 4
    assert bw.nw_lag_truncation("bartlett", 100, prewhitened=True) == 3
    assert bw.nw_lag_truncation("bartlett", 500) == 5
    assert bw.nw_lag_truncation("qs", 500) == 4
    assert bw.nw_lag_truncation("parzen", 1) == 1


# ---------------------------------------------------------------------
# Andrews (1991)
# ---------------------------------------------------------------------

def test_fit_ar1_deterministic(deterministic_series):
    rho, sigma2 = bw.fit_ar1(deterministic_series)
    assert rho[0] == pytest.approx(52.0 / 56.0, rel=1e-3)
    assert sigma2[0] > 0.0


def test_andrews_compact_kernel_clipped_to_n_minus_one(deterministic_series):
    assert bw.bandwidth_andrews("bartlett", deterministic_series) == pytest.approx(9.0)


def test_andrews_qs_not_clipped(deterministic_series):
    assert bw.bandwidth_andrews("qs", deterministic_series) > 9.0


def test_andrews_short_or_degenerate_falls_back(caplog):
    caplog.set_level(logging.DEBUG, logger="robustvcov.core.bandwidth")
    assert bw.bandwidth_andrews("bartlett", np.ones((2, 1))) == bw.MIN_BANDWIDTH
    assert bw.bandwidth_andrews("parzen", np.zeros((20, 2))) == bw.MIN_BANDWIDTH
    assert "using 1.0" in caplog.text


def test_andrews_increases_with_persistence():
    rng = np.random.default_rng(42)
    n = 2000
    persistent = bw.bandwidth_andrews("bartlett", _ar1(n, 0.8, rng))
    white = bw.bandwidth_andrews("bartlett", rng.standard_normal((n, 1)))
    assert persistent > white
    assert white >= 0.0


def test_andrews_weights_ignore_zero_weight_columns():
    rng = np.random.default_rng(42)
    n = 500
    Z = np.column_stack([_ar1(n, 0.6, rng)[:, 0], rng.standard_normal(n)])
    only_first = bw.bandwidth_andrews("bartlett", Z, weights=[1.0, 0.0])
    assert only_first == pytest.approx(bw.bandwidth_andrews("bartlett", Z[:, :1]))


def test_weights_validation():
    Z = np.ones((10, 2))
    with pytest.raises(ConfigurationError, match="length"):
        bw.bandwidth_andrews("bartlett", Z, weights=[1.0])
    with pytest.raises(ConfigurationError, match="not all zero"):
        bw.bandwidth_newey_west("bartlett", Z, weights=[0.0, 0.0])


def test_default_weights_zero_for_constant_regressor():
    X = np.column_stack([np.ones(5), np.arange(5.0)])
    w = bw.default_bandwidth_weights(X * 2.0, X)
    assert w.tolist() == [0.0, 1.0]
    w_all = bw.default_bandwidth_weights(np.ones((5, 1)), np.ones((5, 1)))
    assert w_all.tolist() == [1.0]


# ---------------------------------------------------------------------
# Newey-West (1994)
# ---------------------------------------------------------------------

def test_newey_west_increases_with_persistence():
    rng = np.random.default_rng(42)
    n = 2000
    persistent = bw.bandwidth_newey_west("bartlett", _ar1(n, 0.8, rng))
    white = bw.bandwidth_newey_west("bartlett", rng.standard_normal((n, 1)))
    assert persistent > white
    assert persistent <= n - 1


def test_newey_west_short_sample_falls_back():
    # m = floor(4 * (2/100)^(2/9)) = 1, capped by n - 1 = 1, then zero series
    assert bw.bandwidth_newey_west("bartlett", np.zeros((2, 1))) == bw.MIN_BANDWIDTH
    assert bw.bandwidth_newey_west("qs", np.zeros((50, 1))) == bw.MIN_BANDWIDTH


# ---------------------------------------------------------------------
# Rule dispatch and validation
# ---------------------------------------------------------------------

@pytest.mark.parametrize("value", [0, 0.0, -1.0, np.nan, np.inf, True, "abc", None])
def test_validate_bandwidth_rejects(value):
    with pytest.raises(InvalidBandwidth):
        bw.validate_bandwidth(value)


def test_invalid_bandwidth_is_configuration_error():
    with pytest.raises(ConfigurationError):
        BartlettKernel(bandwidth=-2.0)


def test_normalize_rule_spellings():
    assert bw.normalize_rule("Newey-West") == "neweywest"
    assert bw.normalize_rule("NW94") == "neweywest"
    assert bw.normalize_rule(" Andrews ") == "andrews"
    with pytest.raises(ConfigurationError, match="unknown bandwidth rule"):
        bw.normalize_rule("silverman")


def test_select_bandwidth_dispatch(deterministic_series):
    assert bw.select_bandwidth(ParzenKernel(bandwidth=3.5), deterministic_series) == 3.5
    assert bw.select_bandwidth("bartlett", deterministic_series, 2) == 2.0
    assert bw.select_bandwidth(BartlettKernel(), deterministic_series) == pytest.approx(
        bw.bandwidth_andrews("bartlett", deterministic_series),
    )
    nw = bw.select_bandwidth(BartlettKernel(bandwidth="neweywest"), deterministic_series)
    assert nw == pytest.approx(bw.bandwidth_newey_west("bartlett", deterministic_series))
    with pytest.raises(ConfigurationError, match="no bandwidth rule"):
        bw.select_bandwidth("bartlett", deterministic_series)
