"""Linear algebra routines for sandwich covariance assembly.

This module provides the shared dense building blocks used by every
estimator family: input coercion and finiteness checks, the bread
$(X'X)^{-1}$ via pivoted QR, leverage values, group sums, PSD checks
and the final sandwich product. Explicit inversion of $X'X$ is
avoided; the bread is formed from the triangular factor of $X$.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
import scipy.linalg as sla
import scipy.sparse as sp

from .errors import DomainError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

# Matrix type alias
Matrix = Any

# Relative eigenvalue tolerance for PSD checks; overridable via environment.
PSD_REL_TOL: float = 1e-10


def _psd_rel_tol() -> float:
    raw = str(os.environ.get("ROBUSTVCOV_PSD_TOL", "")).strip()
    if not raw:
        return PSD_REL_TOL
    try:
        tol = float(raw)
    except ValueError:
        return PSD_REL_TOL
    return tol if np.isfinite(tol) and tol >= 0.0 else PSD_REL_TOL


def _is_sparse(A: Matrix) -> bool:
    return sp.issparse(A)


def to_dense(A: Matrix) -> NDArray[np.float64]:
    """Convert a matrix-like object (ndarray, DataFrame, sparse) to dense float64."""
    if _is_sparse(A):
        return np.asarray(A.todense(), dtype=np.float64)
    return np.asarray(A, dtype=np.float64)


def _assert_all_finite(*arrays: NDArray[np.float64] | None) -> None:
    """Raise DomainError if any input contains NaN or Inf."""
    for a in arrays:
        if a is None:
            continue
        ad = np.asarray(a)
        if not np.all(np.isfinite(ad)):
            raise DomainError(
                "Input contains NA/NaN/Inf; please drop/clean rows before estimation.",
            )


def as_design(X: Matrix) -> tuple[NDArray[np.float64], list[str]]:
    """Coerce a design matrix to a 2-D float64 array and recover column names.

    DataFrame columns are used verbatim; otherwise names are ``x0..x{p-1}``.
    A 1-D input is treated as a single regressor.
    """
    if isinstance(X, pd.DataFrame):
        names = [str(c) for c in X.columns]
        Xd = X.to_numpy(dtype=np.float64)
    elif isinstance(X, pd.Series):
        names = [str(X.name) if X.name is not None else "x0"]
        Xd = X.to_numpy(dtype=np.float64).reshape(-1, 1)
    else:
        Xd = to_dense(X)
        if Xd.ndim == 1:
            Xd = Xd.reshape(-1, 1)
        names = [f"x{j}" for j in range(Xd.shape[1] if Xd.ndim == 2 else 0)]
    if Xd.ndim != 2:
        msg = f"design matrix must be 2-dimensional (n x p); got ndim={Xd.ndim}"
        raise DomainError(msg)
    _assert_all_finite(Xd)
    n, p = Xd.shape
    if p == 0:
        raise DomainError("design matrix has no columns")
    if n <= p:
        msg = f"need more observations than parameters (n={n}, p={p})"
        raise DomainError(msg)
    return Xd, names


def as_vector(v: Sequence[float] | Matrix, n: int, label: str) -> NDArray[np.float64]:
    """Coerce a length-n numeric vector (array, Series, list, n x 1 matrix)."""
    vd = to_dense(v).reshape(-1)
    if vd.shape[0] != n:
        msg = f"{label} length {vd.shape[0]} != n_obs {n}."
        raise DomainError(msg)
    _assert_all_finite(vd)
    return vd


def check_leverage(h: NDArray[np.float64]) -> None:
    """Validate leverage values lie in [0, 1)."""
    if np.any(h >= 1.0):
        idx = np.flatnonzero(h >= 1.0)
        msg = (
            f"leverage must be strictly below 1; {idx.size} observation(s) have "
            f"h >= 1 (first index {int(idx[0])})."
        )
        raise DomainError(msg)
    if np.any(h < 0.0):
        raise DomainError("leverage must be nonnegative.")


def _rank_from_diag(diagR: NDArray[np.float64], ncols: int) -> int:
    """Numerical rank from |diag(R)| using the R ``lm.fit`` tolerance."""
    if diagR.size == 0:
        return 0
    tol = 1e-7 * float(np.max(diagR))
    return min(int(np.sum(diagR > tol)), ncols)


def xtx_inv(X: Matrix) -> NDArray[np.float64]:
    """Compute $(X'X)^{-1}$ via pivoted QR on $X$.

    Forming the inverse from $R^{-1} R^{-T}$ avoids squaring the condition
    number of $X$. The design must have full column rank; a rank-deficient
    design raises :class:`DomainError` since the sandwich is then undefined.

    Parameters
    ----------
    X : Matrix
        Design matrix (n x p).

    Returns
    -------
    ndarray
        (X'X)^{-1} as a symmetric (p x p) matrix.

    """
    Xd = to_dense(X)
    _assert_all_finite(Xd)
    _n, p = Xd.shape
    _Q, R, P = sla.qr(Xd, mode="economic", pivoting=True)
    r = _rank_from_diag(np.abs(np.diag(R)), p)
    if r < p:
        msg = f"design matrix is rank deficient (rank {r} < p={p})"
        raise DomainError(msg)
    Rinv = sla.solve_triangular(R, np.eye(p, dtype=np.float64), lower=False, check_finite=False)
    A = Rinv @ Rinv.T
    invp = np.argsort(P[:p])
    A = A[invp][:, invp]
    return symmetrize(A)


def hat_diag(X: Matrix, bread: NDArray[np.float64] | None = None) -> NDArray[np.float64]:
    """Leverage values $h_i = x_i' (X'X)^{-1} x_i$.

    ``bread`` may be supplied to reuse a previously computed $(X'X)^{-1}$.
    """
    Xd = to_dense(X)
    B = xtx_inv(Xd) if bread is None else np.asarray(bread, dtype=np.float64)
    return np.einsum("ij,jk,ik->i", Xd, B, Xd).astype(np.float64)


def symmetrize(A: Matrix) -> NDArray[np.float64]:
    """Return (A + A') / 2."""
    Ad = to_dense(A)
    return (Ad + Ad.T) * 0.5


def sandwich(bread: NDArray[np.float64], meat: NDArray[np.float64]) -> NDArray[np.float64]:
    """Symmetrized sandwich ``bread @ meat @ bread``."""
    return symmetrize(bread @ meat @ bread)


def group_sum(X: Matrix, codes: Matrix) -> NDArray[np.float64]:
    """Sum rows of X within groups defined by a single integer-like codes vector.

    Parameters
    ----------
    X : (n x p) matrix
    codes : (n,) integer codes in ``0..G-1``

    Returns
    -------
    (G x p) dense float64 array of within-group row sums, ordered by code.

    """
    Xd = to_dense(X)
    codes_arr = np.asarray(codes).reshape(-1)
    if codes_arr.shape[0] != Xd.shape[0]:
        msg = "codes length must match number of rows in X"
        raise DomainError(msg)
    G = int(codes_arr.max()) + 1 if codes_arr.size else 0
    out = np.zeros((G, Xd.shape[1]), dtype=np.float64)
    np.add.at(out, codes_arr, Xd)
    return out


def min_eigenvalue(A: Matrix) -> float:
    """Smallest eigenvalue of the symmetric part of A."""
    vals = np.linalg.eigvalsh(symmetrize(A))
    return float(vals[0]) if vals.size else 0.0


def is_psd(A: Matrix, *, tol: float | None = None) -> bool:
    """PSD check with a relative threshold on the smallest eigenvalue.

    The default threshold is ``-PSD_REL_TOL * max|eigenvalue|`` (the
    relative tolerance can be overridden with ``ROBUSTVCOV_PSD_TOL``).
    """
    vals = np.linalg.eigvalsh(symmetrize(A))
    if vals.size == 0:
        return True
    rel = _psd_rel_tol() if tol is None else float(tol)
    scale = float(np.max(np.abs(vals)))
    return bool(vals[0] >= -rel * scale)
