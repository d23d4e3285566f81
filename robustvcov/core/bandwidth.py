"""Automatic HAC bandwidth selection.

Implements the Andrews (1991) AR(1) plug-in rule and the Newey-West (1994)
nonparametric plug-in rule for every kernel in :mod:`robustvcov.core.kernels`.
Both rules take the estimating-equation matrix (or its prewhitened residuals)
and never raise on short samples: they fall back to a bandwidth of 1.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from .errors import ConfigurationError, InvalidBandwidth
from .kernels import (
    ANDREWS_CONSTANTS,
    CHARACTERISTIC_EXPONENT,
    COMPACT_SUPPORT,
    NW_LAG_RATE,
    kernel_name,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = [
    "BANDWIDTH_RULES",
    "MIN_BANDWIDTH",
    "bandwidth_andrews",
    "bandwidth_newey_west",
    "default_bandwidth_weights",
    "fit_ar1",
    "nw_lag_truncation",
    "select_bandwidth",
    "validate_bandwidth",
]

BANDWIDTH_RULES: frozenset[str] = frozenset({"andrews", "neweywest"})

# Fallback bandwidth used when a plug-in rule cannot be evaluated.
MIN_BANDWIDTH: float = 1.0

# AR(1) coefficients are clipped to this magnitude in the Andrews plug-in so
# that the (1 - rho)^-8 terms stay finite near a unit root.
AR1_RHO_CLIP: float = 0.97


def normalize_rule(rule: str) -> str:
    """Map user spellings ("Newey-West", "nw94", "Andrews") to a rule key."""
    key = str(rule).strip().lower().replace("-", "").replace("_", "").replace(" ", "")
    if key in {"andrews", "andrews91"}:
        return "andrews"
    if key in {"neweywest", "nw", "nw94", "neweywest94"}:
        return "neweywest"
    msg = f"unknown bandwidth rule: {rule!r}; expected 'andrews' or 'neweywest'"
    raise ConfigurationError(msg)


def validate_bandwidth(bw: Any) -> float:
    """Return ``bw`` as float or raise :class:`InvalidBandwidth`."""
    if isinstance(bw, bool):
        msg = f"bandwidth must be a positive number; got {bw!r}"
        raise InvalidBandwidth(msg)
    try:
        val = float(bw)
    except (TypeError, ValueError) as exc:
        msg = f"bandwidth must be a positive number; got {bw!r}"
        raise InvalidBandwidth(msg) from exc
    if not np.isfinite(val) or val <= 0.0:
        msg = f"bandwidth must be finite and > 0; got {val}"
        raise InvalidBandwidth(msg)
    return val


def default_bandwidth_weights(
    omega: NDArray[np.float64], X: NDArray[np.float64] | None = None,
) -> NDArray[np.float64]:
    """Andrews weights: 1 per moment, 0 for moments from constant regressors.

    The intercept's estimating equation is the residual itself, which would
    otherwise dominate the plug-in. If every column is constant the weights
    fall back to all ones.
    """
    p = omega.shape[1]
    w = np.ones(p, dtype=np.float64)
    if X is not None and X.shape[0] > 1:
        const = np.all(X == X[0:1, :], axis=0)
        w[const] = 0.0
    if not np.any(w > 0.0):
        w = np.ones(p, dtype=np.float64)
    return w


def _check_weights(weights: Sequence[float] | None, p: int) -> NDArray[np.float64]:
    if weights is None:
        return np.ones(p, dtype=np.float64)
    w = np.asarray(weights, dtype=np.float64).reshape(-1)
    if w.shape[0] != p:
        msg = f"bandwidth weights length {w.shape[0]} != number of moments {p}."
        raise ConfigurationError(msg)
    if np.any(~np.isfinite(w)) or np.any(w < 0.0) or not np.any(w > 0.0):
        msg = "bandwidth weights must be finite, nonnegative and not all zero."
        raise ConfigurationError(msg)
    return w


def fit_ar1(omega: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Column-wise demeaned AR(1) fit.

    Returns ``(rho, sigma2)``: the OLS autoregressive coefficient and the
    innovation variance of each column of ``omega``.
    """
    Z = np.asarray(omega, dtype=np.float64)
    n = Z.shape[0]
    y = Z[1:, :]
    x = Z[:-1, :]
    y = y - y.mean(axis=0)
    x = x - x.mean(axis=0)
    den = np.sum(x * x, axis=0)
    num = np.sum(x * y, axis=0)
    rho = np.divide(num, den, out=np.zeros_like(num), where=den > 0.0)
    resid = y - x * rho
    sigma2 = np.sum(resid * resid, axis=0) / float(n - 1)
    return rho, sigma2


def _clip_bandwidth(bw: float, n: int, name: str) -> float:
    if not np.isfinite(bw) or bw <= 0.0:
        LOGGER.debug("%s plug-in bandwidth not positive (%s); using %s", name, bw, MIN_BANDWIDTH)
        return MIN_BANDWIDTH
    if COMPACT_SUPPORT[name]:
        bw = min(bw, float(max(n - 1, 1)))
    return float(bw)


def bandwidth_andrews(
    kernel: Any,
    omega: NDArray[np.float64],
    *,
    weights: Sequence[float] | None = None,
) -> float:
    """Andrews (1991) AR(1) plug-in bandwidth.

    With per-column AR(1) estimates $(\\rho_a, \\sigma_a^2)$ and weights $w_a$,

        alpha(1) = sum w 4 rho^2 sigma^4 / ((1-rho)^6 (1+rho)^2) / sum w sigma^4 / (1-rho)^4
        alpha(2) = sum w 4 rho^2 sigma^4 / (1-rho)^8 / sum w sigma^4 / (1-rho)^4

    and the bandwidth is ``c_k * (alpha(q) * n) ** (1 / (2q + 1))`` with the
    kernel's Andrews constant ``c_k`` and characteristic exponent ``q``.
    """
    name = kernel_name(kernel)
    Z = np.asarray(omega, dtype=np.float64)
    if Z.ndim == 1:
        Z = Z.reshape(-1, 1)
    n, p = Z.shape
    w = _check_weights(weights, p)
    if n < 3:
        LOGGER.debug("Andrews bandwidth: n=%d too small for AR(1) fit; using %s", n, MIN_BANDWIDTH)
        return MIN_BANDWIDTH

    rho, sigma2 = fit_ar1(Z)
    rho = np.clip(rho, -AR1_RHO_CLIP, AR1_RHO_CLIP)
    sigma4 = sigma2 * sigma2
    den = float(np.sum(w * sigma4 / (1.0 - rho) ** 4))
    if den <= 0.0 or not np.isfinite(den):
        LOGGER.debug("Andrews bandwidth: degenerate moment variance; using %s", MIN_BANDWIDTH)
        return MIN_BANDWIDTH

    q = CHARACTERISTIC_EXPONENT[name]
    if q == 1:
        num = float(np.sum(w * 4.0 * rho**2 * sigma4 / ((1.0 - rho) ** 6 * (1.0 + rho) ** 2)))
    else:
        num = float(np.sum(w * 4.0 * rho**2 * sigma4 / (1.0 - rho) ** 8))
    alpha = num / den
    bw = ANDREWS_CONSTANTS[name] * (alpha * n) ** (1.0 / (2.0 * q + 1.0))
    LOGGER.debug("Andrews bandwidth (%s): alpha(%d)=%.6g, bw=%.6g", name, q, alpha, bw)
    return _clip_bandwidth(bw, n, name)


def nw_lag_truncation(kernel: Any, n: int, *, prewhitened: bool = False) -> int:
    """Newey-West (1994) lag truncation ``floor(c * (n/100) ** rate)``.

    ``c`` is 3 for prewhitened series and 4 otherwise.
    """
    name = kernel_name(kernel)
    c = 3.0 if prewhitened else 4.0
    return int(np.floor(c * (float(n) / 100.0) ** NW_LAG_RATE[name]))


def bandwidth_newey_west(
    kernel: Any,
    omega: NDArray[np.float64],
    *,
    weights: Sequence[float] | None = None,
    prewhitened: bool = False,
) -> float:
    """Newey-West (1994) nonparametric plug-in bandwidth.

    The weighted series ``sigma_t = omega_t' w`` is summarized by its sample
    autocovariances up to the lag truncation ``m``:

        s(0) = g(0) + 2 sum_{j=1}^m g(j),    s(q) = 2 sum_{j=1}^m j^q g(j)

    and ``bw = c_k * ((s(q)/s(0))^2)^(1/(2q+1)) * n^(1/(2q+1))``.
    """
    name = kernel_name(kernel)
    Z = np.asarray(omega, dtype=np.float64)
    if Z.ndim == 1:
        Z = Z.reshape(-1, 1)
    n, p = Z.shape
    w = _check_weights(weights, p)
    m = min(nw_lag_truncation(name, n, prewhitened=prewhitened), n - 1)
    if m < 1:
        LOGGER.debug("Newey-West bandwidth: lag truncation %d < 1 (n=%d); using %s", m, n, MIN_BANDWIDTH)
        return MIN_BANDWIDTH

    s = Z @ w
    g = np.array([s[j:] @ s[: n - j] for j in range(m + 1)], dtype=np.float64) / float(n)
    lags = np.arange(1, m + 1, dtype=np.float64)
    s0 = g[0] + 2.0 * float(np.sum(g[1:]))
    q = CHARACTERISTIC_EXPONENT[name]
    sq = 2.0 * float(np.sum(lags**q * g[1:]))
    if s0 <= 0.0 or not np.isfinite(s0):
        LOGGER.debug("Newey-West bandwidth: s(0)=%s not positive; using %s", s0, MIN_BANDWIDTH)
        return MIN_BANDWIDTH
    expo = 1.0 / (2.0 * q + 1.0)
    gamma = ANDREWS_CONSTANTS[name] * ((sq / s0) ** 2) ** expo
    bw = gamma * float(n) ** expo
    LOGGER.debug("Newey-West bandwidth (%s): m=%d, s(0)=%.6g, s(%d)=%.6g, bw=%.6g", name, m, s0, q, sq, bw)
    return _clip_bandwidth(bw, n, name)


def select_bandwidth(
    kernel: Any,
    omega: NDArray[np.float64],
    rule: str | float | None = None,
    *,
    weights: Sequence[float] | None = None,
    prewhitened: bool = False,
) -> float:
    """Bandwidth for ``kernel`` on the estimating equations ``omega``.

    ``rule`` is a fixed positive bandwidth, ``"andrews"`` or ``"neweywest"``.
    When omitted it is taken from ``kernel.bandwidth``.
    """
    if rule is None:
        rule = getattr(kernel, "bandwidth", None)
        if rule is None:
            msg = "select_bandwidth: no bandwidth rule given and kernel carries none"
            raise ConfigurationError(msg)
    if isinstance(rule, str):
        key = normalize_rule(rule)
        if key == "andrews":
            return bandwidth_andrews(kernel, omega, weights=weights)
        return bandwidth_newey_west(kernel, omega, weights=weights, prewhitened=prewhitened)
    return validate_bandwidth(rule)
