import numpy as np
import pandas as pd
import pytest

from robustvcov.core.errors import ConfigurationError, NumericalWarning
from robustvcov.core.kernels import kernel_weight
from robustvcov.estimators.base import (
    BartlettKernel,
    ParzenKernel,
    QuadraticSpectralKernel,
    TruncatedKernel,
)
from robustvcov.estimators.hac import (
    FFT_LAG_THRESHOLD,
    hac_covariance,
    kernel_lags,
    lagged_crossproducts,
    long_run_covariance,
)
from robustvcov.estimators.hc import hc_covariance


def _ar1(n, rho, rng):
    e = rng.standard_normal(n + 200)
    z = np.empty_like(e)
    z[0] = e[0]
    for t in range(1, e.size):
        z[t] = rho * z[t - 1] + e[t]
    return z[200:]


@pytest.fixture
def small_data():
    rng = np.random.default_rng(42)
    n = 80
    X = np.column_stack([np.ones(n), rng.standard_normal((n, 2))])
    u = rng.standard_normal(n)
    return X, u


@pytest.fixture
def persistent_data():
    rng = np.random.default_rng(42)
    n = 500
    X = np.column_stack([np.ones(n)] + [_ar1(n, 0.78, rng) for _ in range(4)])
    u = _ar1(n, 0.78, rng)
    return X, u


def _manual_hac(X, u, weights):
    n = X.shape[0]
    W = X * u[:, None]
    S = W.T @ W / n
    for k, w in weights.items():
        G = W[k:].T @ W[: n - k] / n
        S = S + w * (G + G.T)
    B = np.linalg.inv(X.T @ X)
    return n * B @ S @ B


# ---------------------------------------------------------------------
# Lags and cross-products
# ---------------------------------------------------------------------

def test_kernel_lags_compact_and_qs():
    lags, w = kernel_lags(BartlettKernel(bandwidth=3), 3.0, 50)
    assert lags.tolist() == [1, 2]
    assert np.allclose(w, [2.0 / 3.0, 1.0 / 3.0])
    lags, _w = kernel_lags("bartlett", 100.0, 20)
    assert lags.max() == 19
    lags, _w = kernel_lags("truncated", 0.5, 20)
    assert lags.size == 0
    lags, _w = kernel_lags("qs", 2.0, 30)
    assert lags.tolist() == list(range(1, 30))


def test_lagged_crossproducts_fft_matches_direct():
    rng = np.random.default_rng(42)
    W = rng.standard_normal((300, 3))
    lags = np.arange(1, FFT_LAG_THRESHOLD + 40)
    fft = lagged_crossproducts(W, lags)
    direct = np.stack([W[k:].T @ W[: 300 - k] for k in lags])
    assert fft.shape == (lags.size, 3, 3)
    assert np.allclose(fft, direct, atol=1e-9)
    assert lagged_crossproducts(W, []).shape == (0, 3, 3)


# ---------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------

def test_truncated_small_bandwidth_equals_hc0(small_data):
    X, u = small_data
    hac = hac_covariance(X, u, TruncatedKernel(bandwidth=0.5))
    hc0 = hc_covariance(X, u, variant="HC0")
    assert np.allclose(hac.cov, hc0.cov)
    assert hac.extra["n_lags"] == 0


def test_bartlett_fixed_bandwidth_matches_manual(small_data):
    X, u = small_data
    res = hac_covariance(X, u, BartlettKernel(bandwidth=3))
    expected = _manual_hac(X, u, {1: 2.0 / 3.0, 2: 1.0 / 3.0})
    assert np.allclose(res.cov, expected)
    assert np.allclose(res.cov, res.cov.T)
    assert res.extra["bandwidth"] == 3.0
    assert res.extra["kernel"] == "bartlett"
    assert res.estimator == "HAC[bartlett]"


def test_qs_fft_path_matches_manual(small_data):
    X, u = small_data
    n = X.shape[0]
    res = hac_covariance(X, u, QuadraticSpectralKernel(bandwidth=2.5))
    weights = {k: kernel_weight("qs", k / 2.5) for k in range(1, n)}
    assert res.extra["n_lags"] == n - 1 > FFT_LAG_THRESHOLD
    assert np.allclose(res.cov, _manual_hac(X, u, weights))


def test_dof_adjust(small_data):
    X, u = small_data
    n, p = X.shape
    base = hac_covariance(X, u, ParzenKernel(bandwidth=4))
    adj = hac_covariance(X, u, ParzenKernel(bandwidth=4), dof_adjust=True)
    assert np.allclose(adj.cov, base.cov * n / (n - p))


def test_non_psd_estimate_warns():
    n = 50
    X = np.ones((n, 1))
    u = (-1.0) ** np.arange(n)
    with pytest.warns(NumericalWarning, match="not positive semi-definite"):
        res = hac_covariance(X, u, TruncatedKernel(bandwidth=1))
    assert res.extra["psd"] is False
    assert res.extra["min_eigenvalue"] < 0.0
    assert res.cov[0, 0] == pytest.approx((1.0 - 2.0 * 49.0 / 50.0) / n)
    # a negative variance is reported as a missing standard error, not zero
    assert np.isnan(res.se.iloc[0])


def test_persistent_errors_qs_andrews(persistent_data):
    X, u = persistent_data
    res = hac_covariance(X, u, QuadraticSpectralKernel(bandwidth="andrews"))
    hc0 = hc_covariance(X, u, variant="HC0")
    assert res.cov.shape == (5, 5)
    assert np.all(np.linalg.eigvalsh(res.cov) > 0.0)
    assert res.extra["psd"] is True
    assert np.all(np.diag(res.cov) > np.diag(hc0.cov))
    assert res.extra["bandwidth"] > 1.0


def test_prewhitened_bartlett_newey_west(persistent_data):
    X, u = persistent_data
    res = hac_covariance(X, u, BartlettKernel(bandwidth="neweywest", prewhiten=True))
    assert res.extra["prewhiten"] is True
    assert res.extra["D"].shape == (5, 5)
    assert np.all(np.isfinite(res.cov))
    assert np.allclose(res.cov, res.cov.T)
    assert np.all(np.diag(res.cov) > 0.0)


def test_dataframe_names_carried(small_data):
    X, u = small_data
    df = pd.DataFrame(X, columns=["const", "a", "b"])
    res = hac_covariance(df, pd.Series(u), BartlettKernel(bandwidth=2))
    assert res.names == ["const", "a", "b"]
    assert list(res.se.index) == ["const", "a", "b"]
    assert res.to_frame().loc["a", "b"] == pytest.approx(res.cov[1, 2])


def test_requires_kernel_spec(small_data):
    X, u = small_data
    with pytest.raises(ConfigurationError, match="kernel specification"):
        hac_covariance(X, u, "bartlett")


# ---------------------------------------------------------------------
# Long-run covariance
# ---------------------------------------------------------------------

def test_long_run_covariance_demean():
    rng = np.random.default_rng(42)
    z = rng.standard_normal((200, 1))
    S_shift, _ = long_run_covariance(z + 5.0, BartlettKernel(bandwidth=3), demean=True)
    S_base, info = long_run_covariance(z - z.mean(), BartlettKernel(bandwidth=3))
    assert np.allclose(S_shift, S_base)
    assert info["D"] is None
    assert info["n_lags"] == 2


def test_long_run_covariance_white_noise_close_to_variance():
    rng = np.random.default_rng(42)
    z = rng.standard_normal((5000, 2))
    S, info = long_run_covariance(z, BartlettKernel(bandwidth="andrews"))
    assert np.allclose(S, np.eye(2), atol=0.1)
    assert info["bandwidth"] > 0.0


def test_lagged_crossproducts_fft_selected_lags():
    rng = np.random.default_rng(42)
    W = rng.standard_normal((400, 4))
    lags = np.arange(3, 3 * (FFT_LAG_THRESHOLD + 10), 3)
    fft = lagged_crossproducts(W, lags)
    direct = np.stack([W[k:].T @ W[: 400 - k] for k in lags])
    assert fft.shape == (lags.size, 4, 4)
    assert np.allclose(fft, direct, atol=1e-9)
    # Cross-lags are not symmetric in general
    assert not np.allclose(fft[0], fft[0].T)
