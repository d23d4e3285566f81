"""VAR(1) prewhitening of estimating equations (Andrews & Monahan 1992).

The estimating-equation series is filtered with a first-order vector
autoregression fitted jointly by least squares,

    omega_t = D omega_{t-1} + e_t,

the long-run covariance of the residuals ``e_t`` is estimated with a kernel,
and the result is recolored with ``(I - D)^{-1} S (I - D)^{-T}``.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy.linalg as sla

from .errors import DomainError, NumericalWarning, SingularRecoloringError

if TYPE_CHECKING:
    from numpy.typing import NDArray

LOGGER = logging.getLogger(__name__)

__all__ = [
    "RECOLOR_COND_LIMIT",
    "RECOLOR_COND_WARN",
    "PrewhitenResult",
    "prewhiten",
    "recolor",
]

# Condition-number limits for I - D.
RECOLOR_COND_LIMIT: float = 1e10
RECOLOR_COND_WARN: float = 1e6


@dataclass(frozen=True)
class PrewhitenResult:
    """Filtered estimating equations and the VAR(1) coefficient matrix.

    ``filtered`` has ``n - 1`` rows; ``D`` is ``p x p`` with
    ``omega_t ~ D omega_{t-1}``.
    """

    filtered: NDArray[np.float64]
    D: NDArray[np.float64]


def prewhiten(omega: NDArray[np.float64]) -> PrewhitenResult:
    """Fit a joint VAR(1) without intercept and return its residuals.

    The coefficients solve ``min ||Y - Z B||`` with ``Y = omega[1:]`` and
    ``Z = omega[:-1]`` (``D = B'``) via LAPACK ``gelsd``, so the result is
    deterministic for a given input.
    """
    W = np.asarray(omega, dtype=np.float64)
    if W.ndim == 1:
        W = W.reshape(-1, 1)
    n, p = W.shape
    if n < p + 2:
        msg = f"prewhitening needs at least p + 2 = {p + 2} observations; got n={n}"
        raise DomainError(msg)
    Y = W[1:, :]
    Z = W[:-1, :]
    B, _res, rank, _sv = sla.lstsq(Z, Y, lapack_driver="gelsd", check_finite=False)
    if rank < p:
        LOGGER.debug("prewhitening VAR(1) regressors rank deficient (rank %d < p=%d)", rank, p)
    E = Y - Z @ B
    D = np.asarray(B.T, dtype=np.float64)
    LOGGER.debug("prewhitening VAR(1): spectral radius of D = %.4g", float(np.max(np.abs(np.linalg.eigvals(D)))))
    return PrewhitenResult(filtered=E, D=D)


def recolor(S: NDArray[np.float64], D: NDArray[np.float64]) -> NDArray[np.float64]:
    """Recolor a prewhitened long-run covariance: ``(I-D)^{-1} S (I-D)^{-T}``.

    Raises :class:`SingularRecoloringError` when ``cond(I - D)`` exceeds
    :data:`RECOLOR_COND_LIMIT`; warns with :class:`NumericalWarning` above
    :data:`RECOLOR_COND_WARN`.
    """
    p = D.shape[0]
    A = np.eye(p, dtype=np.float64) - D
    cond = float(np.linalg.cond(A))
    if not np.isfinite(cond) or cond > RECOLOR_COND_LIMIT:
        msg = (
            f"I - D is numerically singular (condition number {cond:.3g} > "
            f"{RECOLOR_COND_LIMIT:.0e}); the VAR(1) prewhitening filter has a unit root."
        )
        raise SingularRecoloringError(msg)
    if cond > RECOLOR_COND_WARN:
        warnings.warn(
            f"recoloring matrix I - D is ill-conditioned (condition number {cond:.3g}).",
            NumericalWarning,
            stacklevel=2,
        )
    Ainv = sla.solve(A, np.eye(p, dtype=np.float64), check_finite=False)
    out = Ainv @ S @ Ainv.T
    return (out + out.T) * 0.5
