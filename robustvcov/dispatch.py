"""Single entry point dispatching to the HAC, HC and CRHC assemblers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from robustvcov.core.errors import ConfigurationError
from robustvcov.core.kernels import kernel_name
from robustvcov.estimators.base import (
    CovarianceResult,
    CRHCType,
    HCType,
    KernelSpec,
    make_kernel,
    parse_crhc,
    parse_hc,
)
from robustvcov.estimators.crhc import crhc_covariance
from robustvcov.estimators.hac import hac_covariance
from robustvcov.estimators.hc import hc_covariance

if TYPE_CHECKING:
    import pandas as pd

    from robustvcov.estimators.base import Estimator

__all__ = ["resolve_estimator", "stderror", "vcov"]

_HAC_OPTIONS = frozenset({"weights", "demean", "dof_adjust"})


def _reject_kernel_keywords(estimator: Any, bandwidth: Any, prewhiten: Any) -> None:
    given = [k for k, v in (("bandwidth", bandwidth), ("prewhiten", prewhiten)) if v is not None]
    if given:
        msg = (
            f"{', '.join(given)} only apply when the estimator is a kernel name; "
            f"got {estimator!r}"
        )
        raise ConfigurationError(msg)


def resolve_estimator(
    estimator: Estimator,
    *,
    bandwidth: float | str | None = None,
    prewhiten: bool | None = None,
) -> KernelSpec | HCType | CRHCType:
    """Turn a configuration value or string ("HC3", "CRHC2", "bartlett") into its tag.

    ``bandwidth`` (default ``"andrews"``) and ``prewhiten`` (default False)
    may only be given when ``estimator`` names a kernel; a ready-made
    :class:`KernelSpec` already carries both.
    """
    if isinstance(estimator, (KernelSpec, HCType, CRHCType)):
        _reject_kernel_keywords(estimator, bandwidth, prewhiten)
        return estimator
    if not isinstance(estimator, str):
        msg = f"unknown estimator: {estimator!r}"
        raise ConfigurationError(msg)
    key = estimator.strip().upper()
    if key.startswith("HC"):
        _reject_kernel_keywords(estimator, bandwidth, prewhiten)
        return parse_hc(estimator)
    if key.startswith("CR"):
        _reject_kernel_keywords(estimator, bandwidth, prewhiten)
        return parse_crhc(estimator)
    try:
        kernel_name(estimator)
    except ConfigurationError as exc:
        msg = f"unknown estimator: {estimator!r}; expected an HC/CRHC variant or a kernel name"
        raise ConfigurationError(msg) from exc
    return make_kernel(
        estimator,
        "andrews" if bandwidth is None else bandwidth,
        prewhiten=False if prewhiten is None else prewhiten,
    )

def vcov(
    X: Any,
    u: Any,
    estimator: Estimator,
    *,
    h: Any = None,
    clusters: Any = None,
    bandwidth: float | str | None = None,
    prewhiten: bool | None = None,
    **options: Any,
) -> CovarianceResult:
    """Robust coefficient covariance for a fitted model.

    Parameters
    ----------
    X : array-like or DataFrame
        Design matrix (n x p) of the fitted model.
    u : array-like
        Residuals (n,).
    estimator : KernelSpec, HCType, CRHCType or str
        ``BartlettKernel(bandwidth=4)``, ``HCType.HC3``, ``"CRHC1"``,
        ``"qs"`` ... Strings naming a kernel take ``bandwidth`` (default
        ``"andrews"``) and ``prewhiten`` (default False); passing either with
        any other estimator raises :class:`ConfigurationError`.
    h : array-like, optional
        Leverage values (HC, CRHC).
    clusters : array-like, optional
        Cluster labels; required for CRHC estimators.
    **options
        HAC-only keywords: ``weights``, ``demean``, ``dof_adjust``.

    """
    est = resolve_estimator(estimator, bandwidth=bandwidth, prewhiten=prewhiten)
    unknown = set(options) - _HAC_OPTIONS
    if unknown:
        msg = f"unknown options: {sorted(unknown)}"
        raise ConfigurationError(msg)
    if options and not isinstance(est, KernelSpec):
        msg = f"options {sorted(options)} apply to HAC estimators only"
        raise ConfigurationError(msg)

    if isinstance(est, KernelSpec):
        return hac_covariance(X, u, est, **options)
    if isinstance(est, HCType):
        return hc_covariance(X, u, h, est)
    if clusters is None:
        msg = f"{est.value} requires cluster labels (clusters=...)"
        raise ConfigurationError(msg)
    return crhc_covariance(X, u, clusters, est, h=h)


def stderror(X: Any, u: Any, estimator: Estimator, **kwargs: Any) -> pd.Series:
    """Standard errors (square root of the diagonal of :func:`vcov`)."""
    return vcov(X, u, estimator, **kwargs).se
