"""Cluster-robust (CRHC) sandwich covariance.

Scores are summed within clusters before forming the meat,

    V = c (X'X)^{-1} [sum_g s_g s_g'] (X'X)^{-1},    s_g = X_g' u~_g,

with

    CRHC0  u~_g = u_g, c = 1
    CRHC1  u~_g = u_g, c = G/(G-1) * (n-1)/(n-p)           (Liang-Zeger / Stata)
    CRHC2  u~_g = (I - H_gg)^{-1/2} u_g, c = 1             (Bell-McCaffrey 2002)
    CRHC3  u~_g = (I - H_gg)^{-1} u_g, c = 1               (cluster jackknife approx.)

where ``H_gg = X_g (X'X)^{-1} X_g'`` is the cluster's block of the hat
matrix. Only the partition induced by the labels matters.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from robustvcov.core import linalg as la
from robustvcov.core.errors import DomainError
from robustvcov.estimators.base import CovarianceResult, CRHCType, parse_crhc

if TYPE_CHECKING:
    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = ["cluster_codes", "crhc_correction_factor", "crhc_covariance"]

# Smallest admissible eigenvalue of I - H_gg (eigenvalues lie in [0, 1]).
BLOCK_EIG_TOL: float = 1e-10


def cluster_codes(clusters: Any, n: int) -> tuple[NDArray[np.int64], int]:
    """Factorize cluster labels into integer codes ``0..G-1``.

    Labels may be any hashable values (ints, strings, tuples via an object
    array). Missing labels are rejected.
    """
    if isinstance(clusters, (pd.Series, pd.Index, pd.Categorical, np.ndarray)):
        labels = clusters
    else:
        # object dtype keeps labels such as 1 and "1" distinct
        labels = np.asarray(clusters, dtype=object)
    if labels.ndim != 1:
        labels = pd.Series(list(map(tuple, labels.reshape(labels.shape[0], -1))))
    if len(labels) != n:
        msg = f"cluster labels length {len(labels)} != n_obs {n}."
        raise DomainError(msg)
    codes, uniques = pd.factorize(labels)
    if np.any(codes < 0):
        raise DomainError("cluster labels contain missing values.")
    return codes.astype(np.int64), len(uniques)


def crhc_correction_factor(n: int, p: int, G: int) -> float:
    """Finite-cluster correction ``G/(G-1) * (n-1)/(n-p)``."""
    if G < 2:
        msg = f"CRHC1 needs at least two clusters; got G={G}."
        raise DomainError(msg)
    if n <= p:
        msg = f"need more observations than parameters (n={n}, p={p})"
        raise DomainError(msg)
    return (float(G) / float(G - 1)) * (float(n - 1) / float(n - p))


def _adjust_block(
    A: NDArray[np.float64], ug: NDArray[np.float64], power: float,
) -> NDArray[np.float64]:
    """``A^{-power} u_g`` for the symmetric block ``A = I - H_gg``."""
    evals, evecs = np.linalg.eigh(la.symmetrize(A))
    if float(np.min(evals)) <= BLOCK_EIG_TOL:
        msg = (
            "I - H_gg is singular for a cluster (a regressor is constant within "
            "or perfectly fits the cluster); CRHC2/CRHC3 are undefined."
        )
        raise DomainError(msg)
    return evecs @ ((evecs.T @ ug) * np.power(evals, -power))


def crhc_covariance(
    X: Any,
    u: Any,
    clusters: Any,
    variant: CRHCType | str = CRHCType.CRHC1,
    *,
    h: Any = None,
) -> CovarianceResult:
    """Cluster-robust covariance.

    Parameters
    ----------
    X : array-like or DataFrame
        Design matrix (n x p), full column rank.
    u : array-like
        Residuals (n,).
    clusters : array-like
        Cluster label per observation; equal labels share a cluster.
    variant : CRHCType or str, default "CRHC1"
        One of CRHC0, CRHC1, CRHC2, CRHC3.
    h : array-like, optional
        Leverage values; validated (< 1) when given. CRHC2/CRHC3 always use
        the full within-cluster block of the hat matrix computed from ``X``.

    Returns
    -------
    CovarianceResult
        ``extra`` holds the number of clusters and the correction factor.

    """
    v = parse_crhc(variant)
    Xd, names = la.as_design(X)
    n, p = Xd.shape
    ud = la.as_vector(u, n, "residuals")
    codes, G = cluster_codes(clusters, n)
    if h is not None:
        la.check_leverage(la.as_vector(h, n, "leverage"))
    factor = crhc_correction_factor(n, p, G) if v is CRHCType.CRHC1 else 1.0
    bread = la.xtx_inv(Xd)

    if v in (CRHCType.CRHC2, CRHCType.CRHC3):
        power = 0.5 if v is CRHCType.CRHC2 else 1.0
        u_adj = np.empty_like(ud)
        order = np.argsort(codes, kind="stable")
        bounds = np.cumsum(np.bincount(codes, minlength=G))[:-1]
        for idx in np.split(order, bounds):
            Xg = Xd[idx]
            A = np.eye(idx.size, dtype=np.float64) - Xg @ bread @ Xg.T
            u_adj[idx] = _adjust_block(A, ud[idx], power)
    else:
        u_adj = ud

    scores = la.group_sum(Xd * u_adj[:, None], codes)
    meat = scores.T @ scores
    V = factor * la.sandwich(bread, meat)
    LOGGER.debug("%s: n=%d, p=%d, G=%d, factor=%.6g", v.value, n, p, G, factor)
    return CovarianceResult(
        cov=V,
        names=names,
        estimator=v.value,
        n_obs=n,
        extra={"n_clusters": G, "correction_factor": factor},
    )
