"""Heteroskedasticity-consistent (HC) sandwich covariance.

    V = (X'X)^{-1} [sum_i m_i u_i^2 x_i x_i'] (X'X)^{-1}

with leverage-driven multipliers ``m_i``:

    HC0   1
    HC1   n / (n - p)
    HC2   (1 - h_i)^-1
    HC3   (1 - h_i)^-2
    HC4   (1 - h_i)^-d_i,      d_i = min(4, n h_i / p)               (Cribari-Neto 2004)
    HC4m  (1 - h_i)^-d_i,      d_i = min(1, n h_i / p) + min(1.5, n h_i / p)
                                                                     (Cribari-Neto & da Silva 2011)
    HC5   (1 - h_i)^-(a_i/2),  a_i = min(n h_i / p, max(4, n k h_max / p)), k = 0.7
                                                                     (Cribari-Neto et al. 2007)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from robustvcov.core import linalg as la
from robustvcov.core.errors import DomainError
from robustvcov.estimators.base import CovarianceResult, HCType, parse_hc

if TYPE_CHECKING:
    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = ["HC5_K", "hc_covariance", "hc_multipliers"]

# HC5 scaling constant for the maximal leverage (Cribari-Neto et al. 2007).
HC5_K: float = 0.7

_NEEDS_LEVERAGE = frozenset({HCType.HC2, HCType.HC3, HCType.HC4, HCType.HC4m, HCType.HC5})


def hc_multipliers(
    variant: HCType | str, h: NDArray[np.float64] | None, n: int, p: int,
) -> NDArray[np.float64]:
    """Per-observation multipliers applied to the squared residuals.

    ``h`` may be None for HC0 and HC1. Leverage values must lie in [0, 1).
    """
    v = parse_hc(variant)
    if n <= p:
        msg = f"need more observations than parameters (n={n}, p={p})"
        raise DomainError(msg)
    if v is HCType.HC0:
        return np.ones(n, dtype=np.float64)
    if v is HCType.HC1:
        return np.full(n, float(n) / float(n - p), dtype=np.float64)

    if h is None:
        msg = f"{v.value} requires leverage values"
        raise DomainError(msg)
    hd = np.asarray(h, dtype=np.float64).reshape(-1)
    la.check_leverage(hd)
    one_minus_h = 1.0 - hd
    if v is HCType.HC2:
        return 1.0 / one_minus_h
    if v is HCType.HC3:
        return 1.0 / (one_minus_h * one_minus_h)

    nh_p = float(n) * hd / float(p)
    if v is HCType.HC4:
        delta = np.minimum(4.0, nh_p)
    elif v is HCType.HC4m:
        delta = np.minimum(1.0, nh_p) + np.minimum(1.5, nh_p)
    else:
        cap = max(4.0, float(n) * HC5_K * float(np.max(hd)) / float(p))
        delta = 0.5 * np.minimum(nh_p, cap)
    return np.power(one_minus_h, -delta)


def hc_covariance(
    X: Any,
    u: Any,
    h: Any = None,
    variant: HCType | str = HCType.HC1,
) -> CovarianceResult:
    """Heteroskedasticity-consistent covariance.

    Parameters
    ----------
    X : array-like or DataFrame
        Design matrix (n x p), full column rank.
    u : array-like
        Residuals (n,).
    h : array-like, optional
        Leverage values (n,). Computed from ``X`` when omitted and the
        variant needs them.
    variant : HCType or str, default "HC1"
        One of HC0, HC1, HC2, HC3, HC4, HC4m, HC5.

    Returns
    -------
    CovarianceResult

    Raises
    ------
    DomainError
        If any leverage value is >= 1.

    """
    v = parse_hc(variant)
    Xd, names = la.as_design(X)
    n, p = Xd.shape
    ud = la.as_vector(u, n, "residuals")
    bread = la.xtx_inv(Xd)
    if h is not None:
        hd = la.as_vector(h, n, "leverage")
    elif v in _NEEDS_LEVERAGE:
        hd = la.hat_diag(Xd, bread=bread)
    else:
        hd = None
    if hd is not None:
        la.check_leverage(hd)

    m = hc_multipliers(v, hd, n, p)
    Xs = Xd * (m * ud * ud)[:, None]
    meat = Xs.T @ Xd
    V = la.sandwich(bread, meat)
    LOGGER.debug("%s: n=%d, p=%d, max multiplier=%.6g", v.value, n, p, float(np.max(m)))
    return CovarianceResult(
        cov=V,
        names=names,
        estimator=v.value,
        n_obs=n,
        extra={"max_multiplier": float(np.max(m))},
    )
