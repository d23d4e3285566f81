"""Heteroskedasticity- and autocorrelation-consistent (HAC) covariance.

Kernel estimator of the long-run covariance of the estimating equations
$\\Omega_t = u_t x_t$,

    S = Gamma_0 + sum_{k>=1} k(k / b) (Gamma_k + Gamma_k'),
    Gamma_k = (1/n) sum_t Omega_t' Omega_{t-k},

optionally after VAR(1) prewhitening, sandwiched as
$n (X'X)^{-1} S (X'X)^{-1}$. Bandwidths are fixed or selected with the
Andrews (1991) / Newey-West (1994) plug-in rules.
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Any

import numpy as np

from robustvcov.core import bandwidth as bw_core
from robustvcov.core import linalg as la
from robustvcov.core.errors import ConfigurationError, NumericalWarning
from robustvcov.core.kernels import COMPACT_SUPPORT, kernel_name, kernel_weight
from robustvcov.core.prewhiten import prewhiten, recolor
from robustvcov.estimators.base import CovarianceResult, KernelSpec

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = [
    "hac_covariance",
    "kernel_lags",
    "lagged_crossproducts",
    "long_run_covariance",
]

# Above this many lags the cross-products are computed for all lags at once by FFT.
FFT_LAG_THRESHOLD: int = 64


def _require_kernel(kernel: Any) -> KernelSpec:
    if not isinstance(kernel, KernelSpec):
        msg = (
            "HAC estimation requires a kernel specification such as "
            f"BartlettKernel(bandwidth=...); got {kernel!r}"
        )
        raise ConfigurationError(msg)
    return kernel


def kernel_lags(kernel: Any, bandwidth: float, n: int) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """Positive lags with non-zero weight and their kernel weights.

    Compact kernels visit lags ``1..min(floor(bandwidth), n-1)``; the
    Quadratic-Spectral kernel visits every lag ``1..n-1``.
    """
    name = kernel_name(kernel)
    if COMPACT_SUPPORT[name]:
        maxlag = min(int(np.floor(bandwidth)), n - 1)
    else:
        maxlag = n - 1
    if maxlag < 1:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64)
    lags = np.arange(1, maxlag + 1, dtype=np.int64)
    w = np.asarray(kernel_weight(name, lags / float(bandwidth)), dtype=np.float64)
    keep = w != 0.0
    return lags[keep], w[keep]


def lagged_crossproducts(
    W: NDArray[np.float64], lags: Sequence[int] | NDArray[np.int64],
) -> NDArray[np.float64]:
    """Unnormalized lagged cross-products ``sum_t W_t' W_{t-k}`` for each lag.

    Returns an array of shape ``(len(lags), p, p)``. Many lags are batched
    through a zero-padded FFT cross-correlation; few lags use direct
    products.
    """
    Wd = np.asarray(W, dtype=np.float64)
    n, p = Wd.shape
    lag_arr = np.asarray(lags, dtype=np.int64).reshape(-1)
    if lag_arr.size == 0:
        return np.zeros((0, p, p), dtype=np.float64)
    if lag_arr.size <= FFT_LAG_THRESHOLD:
        return np.stack([Wd[k:].T @ Wd[: n - k] for k in lag_arr], axis=0)

    nfft = 1 << int(np.ceil(np.log2(2 * n - 1)))
    F = np.fft.rfft(Wd, n=nfft, axis=0)
    out = np.empty((lag_arr.size, p, p), dtype=np.float64)
    # One column pair at a time: out[:, a, b] = sum_t W[t+k, a] W[t, b]
    for a in range(p):
        for b in range(p):
            corr = np.fft.irfft(F[:, a] * np.conj(F[:, b]), n=nfft)
            out[:, a, b] = corr[lag_arr]
    return out


def long_run_covariance(
    omega: NDArray[np.float64],
    kernel: KernelSpec,
    *,
    weights: Sequence[float] | None = None,
    demean: bool = False,
) -> tuple[NDArray[np.float64], dict[str, Any]]:
    """Kernel estimate of the long-run covariance of the rows of ``omega``.

    Parameters
    ----------
    omega : ndarray
        Estimating equations / moment conditions (n x p).
    kernel : KernelSpec
        Kernel, bandwidth (fixed or rule) and prewhitening flag.
    weights : sequence of float, optional
        Per-moment weights for the bandwidth plug-in. Overrides
        ``kernel.weights``; defaults to all ones.
    demean : bool, default False
        Centre the moments before estimation.

    Returns
    -------
    S : ndarray
        Symmetric (p x p) long-run covariance (per observation).
    info : dict
        ``bandwidth`` actually used, ``prewhiten`` flag, VAR(1) matrix ``D``
        (or None) and number of lags with non-zero weight.

    """
    kernel = _require_kernel(kernel)
    W = la.to_dense(omega)
    if W.ndim == 1:
        W = W.reshape(-1, 1)
    la._assert_all_finite(W)
    if demean:
        W = W - W.mean(axis=0, keepdims=True)
    if weights is None and kernel.weights is not None:
        weights = kernel.weights

    D = None
    if kernel.prewhiten:
        pw = prewhiten(W)
        W, D = pw.filtered, pw.D
    n_eff, _p = W.shape

    bw = bw_core.select_bandwidth(kernel, W, weights=weights, prewhitened=kernel.prewhiten)
    lags, kw = kernel_lags(kernel, bw, n_eff)
    LOGGER.debug("HAC %s: bandwidth=%.6g, %d lag(s), prewhiten=%s", kernel.name, bw, lags.size, kernel.prewhiten)

    S = W.T @ W
    if lags.size:
        G = lagged_crossproducts(W, lags)
        Gw = np.tensordot(kw, G, axes=(0, 0))
        S = S + Gw + Gw.T
    S = la.symmetrize(S / float(n_eff))

    if D is not None:
        S = recolor(S, D)
    info = {
        "bandwidth": float(bw),
        "prewhiten": bool(kernel.prewhiten),
        "D": D,
        "n_lags": int(lags.size),
    }
    return S, info


def hac_covariance(
    X: Any,
    u: Any,
    kernel: KernelSpec,
    *,
    weights: Sequence[float] | None = None,
    demean: bool = False,
    dof_adjust: bool = False,
) -> CovarianceResult:
    """HAC covariance of OLS-type coefficients.

    Parameters
    ----------
    X : array-like or DataFrame
        Design matrix (n x p), full column rank, rows in time order.
    u : array-like
        Residuals (n,).
    kernel : KernelSpec
        e.g. ``BartlettKernel(bandwidth="neweywest", prewhiten=True)``.
    weights : sequence of float, optional
        Bandwidth plug-in weights. By default moments of constant
        regressors (the intercept) get weight 0.
    demean : bool, default False
        Centre the estimating equations before estimation.
    dof_adjust : bool, default False
        Multiply the result by ``n / (n - p)``.

    Returns
    -------
    CovarianceResult
        Symmetric (p x p) estimate. Kernel HAC estimates are not guaranteed
        PSD; a non-PSD estimate is returned with a :class:`NumericalWarning`
        and ``extra["psd"] = False``.

    """
    kernel = _require_kernel(kernel)
    Xd, names = la.as_design(X)
    n, p = Xd.shape
    ud = la.as_vector(u, n, "residuals")
    omega = Xd * ud[:, None]
    if weights is None and kernel.weights is None and not kernel.is_fixed:
        weights = bw_core.default_bandwidth_weights(omega, Xd)

    S, info = long_run_covariance(omega, kernel, weights=weights, demean=demean)
    bread = la.xtx_inv(Xd)
    V = float(n) * la.sandwich(bread, S)
    if dof_adjust:
        V = V * (float(n) / float(n - p))

    psd = la.is_psd(V)
    if not psd:
        warnings.warn(
            f"HAC estimate with {kernel.name} kernel (bandwidth {info['bandwidth']:.4g}) "
            f"is not positive semi-definite (min eigenvalue {la.min_eigenvalue(V):.3g}).",
            NumericalWarning,
            stacklevel=2,
        )
    extra = dict(info)
    extra.update({"kernel": kernel.name, "psd": psd, "min_eigenvalue": la.min_eigenvalue(V)})
    return CovarianceResult(
        cov=V, names=names, estimator=f"HAC[{kernel.name}]", n_obs=n, extra=extra,
    )
