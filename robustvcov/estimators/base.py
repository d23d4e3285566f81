"""Estimator configurations and the covariance result container.

This module defines the closed set of estimator configurations (kernel
specifications for HAC, HC and CRHC variant tags) and the standardized
result returned by every assembler.
"""

# robustvcov/estimators/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Union

import numpy as np
import pandas as pd

from robustvcov.core import bandwidth as bw_core
from robustvcov.core import linalg as la
from robustvcov.core.errors import ConfigurationError
from robustvcov.core.kernels import kernel_name

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "BartlettKernel",
    "CRHCType",
    "CovarianceResult",
    "HCType",
    "KernelSpec",
    "ParzenKernel",
    "QuadraticSpectralKernel",
    "TruncatedKernel",
    "TukeyHanningKernel",
    "make_kernel",
    "parse_crhc",
    "parse_hc",
]


# ---------------------------------------------------------------------
# HAC kernel specifications
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class KernelSpec:
    """HAC kernel configuration.

    Parameters
    ----------
    bandwidth : float or str
        A fixed positive bandwidth, or a selection rule: ``"andrews"``
        (Andrews 1991 AR(1) plug-in) or ``"neweywest"`` (Newey-West 1994).
    prewhiten : bool
        Filter the estimating equations with a VAR(1) before kernel
        estimation and recolor afterwards (Andrews-Monahan 1992).
    weights : tuple of float, optional
        Per-moment weights for the plug-in rules. By default moments of
        constant regressors get weight 0 and all others 1.

    """

    name: ClassVar[str] = ""

    bandwidth: float | str = "andrews"
    prewhiten: bool = False
    weights: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        if not self.name:
            msg = "KernelSpec is abstract; use one of the concrete kernel classes."
            raise ConfigurationError(msg)
        if isinstance(self.bandwidth, str):
            object.__setattr__(self, "bandwidth", bw_core.normalize_rule(self.bandwidth))
        else:
            object.__setattr__(self, "bandwidth", bw_core.validate_bandwidth(self.bandwidth))
        if not isinstance(self.prewhiten, (bool, np.bool_)):
            msg = f"prewhiten must be a bool; got {self.prewhiten!r}"
            raise ConfigurationError(msg)
        object.__setattr__(self, "prewhiten", bool(self.prewhiten))
        if self.weights is not None:
            w = tuple(float(v) for v in self.weights)
            if any((not np.isfinite(v)) or v < 0.0 for v in w) or not any(v > 0.0 for v in w):
                msg = "kernel weights must be finite, nonnegative and not all zero."
                raise ConfigurationError(msg)
            object.__setattr__(self, "weights", w)

    @property
    def is_fixed(self) -> bool:
        """True when the bandwidth is a fixed number rather than a rule."""
        return not isinstance(self.bandwidth, str)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bandwidth={self.bandwidth!r}, prewhiten={self.prewhiten})"


@dataclass(frozen=True, repr=False)
class TruncatedKernel(KernelSpec):
    name: ClassVar[str] = "truncated"


@dataclass(frozen=True, repr=False)
class BartlettKernel(KernelSpec):
    name: ClassVar[str] = "bartlett"


@dataclass(frozen=True, repr=False)
class ParzenKernel(KernelSpec):
    name: ClassVar[str] = "parzen"


@dataclass(frozen=True, repr=False)
class TukeyHanningKernel(KernelSpec):
    name: ClassVar[str] = "tukey_hanning"


@dataclass(frozen=True, repr=False)
class QuadraticSpectralKernel(KernelSpec):
    name: ClassVar[str] = "quadratic_spectral"


_KERNEL_CLASSES: dict[str, type[KernelSpec]] = {
    cls.name: cls
    for cls in (
        TruncatedKernel,
        BartlettKernel,
        ParzenKernel,
        TukeyHanningKernel,
        QuadraticSpectralKernel,
    )
}


def make_kernel(
    kernel: str, bandwidth: float | str = "andrews", *, prewhiten: bool = False,
) -> KernelSpec:
    """Build a kernel specification from a kernel name ("bartlett", "qs", ...)."""
    return _KERNEL_CLASSES[kernel_name(kernel)](bandwidth=bandwidth, prewhiten=prewhiten)


# ---------------------------------------------------------------------
# HC / CRHC variant tags
# ---------------------------------------------------------------------
class HCType(str, Enum):
    """Heteroskedasticity-consistent variants (MacKinnon-White, Cribari-Neto)."""

    HC0 = "HC0"
    HC1 = "HC1"
    HC2 = "HC2"
    HC3 = "HC3"
    HC4 = "HC4"
    HC4m = "HC4m"
    HC5 = "HC5"


class CRHCType(str, Enum):
    """Cluster-robust variants (Liang-Zeger, Bell-McCaffrey)."""

    CRHC0 = "CRHC0"
    CRHC1 = "CRHC1"
    CRHC2 = "CRHC2"
    CRHC3 = "CRHC3"


Estimator = Union[KernelSpec, HCType, CRHCType, str]


def parse_hc(variant: HCType | str) -> HCType:
    """Coerce ``variant`` ("hc3", ``HCType.HC3``) to :class:`HCType`."""
    if isinstance(variant, HCType):
        return variant
    key = str(variant).strip().upper()
    for member in HCType:
        if member.value.upper() == key:
            return member
    msg = f"unknown HC variant: {variant!r}; expected one of {[m.value for m in HCType]}"
    raise ConfigurationError(msg)


def parse_crhc(variant: CRHCType | str) -> CRHCType:
    """Coerce ``variant`` ("CRHC1", "cr1", ``CRHCType.CRHC1``) to :class:`CRHCType`."""
    if isinstance(variant, CRHCType):
        return variant
    key = str(variant).strip().upper()
    if key.startswith("CR") and not key.startswith("CRHC"):
        key = "CRHC" + key[2:]
    for member in CRHCType:
        if member.value == key:
            return member
    msg = f"unknown CRHC variant: {variant!r}; expected one of {[m.value for m in CRHCType]}"
    raise ConfigurationError(msg)


# ---------------------------------------------------------------------
# Results container
# ---------------------------------------------------------------------
@dataclass
class CovarianceResult:
    """Container for an estimated coefficient covariance matrix.

    ``cov`` is the symmetrized (p x p) estimate; ``names`` label its rows and
    columns. ``extra`` carries estimator-specific diagnostics (bandwidth,
    prewhitening matrix, cluster count, correction factor, PSD check).
    """

    cov: NDArray[np.float64]
    names: list[str]
    estimator: str
    n_obs: int
    extra: dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        return f"CovarianceResult(estimator={self.estimator}, k={len(self.names)}, n={self.n_obs})"

    @property
    def se(self) -> pd.Series:
        """Standard errors (square root of the diagonal; NaN where it is negative)."""
        d = np.diag(self.cov).astype(np.float64)
        se = np.full_like(d, np.nan)
        ok = d >= 0.0
        se[ok] = np.sqrt(d[ok])
        return pd.Series(se, index=self.names, name="se")

    @property
    def is_psd(self) -> bool:
        return la.is_psd(self.cov)

    def to_frame(self) -> pd.DataFrame:
        """Covariance as a labelled DataFrame."""
        return pd.DataFrame(self.cov, index=self.names, columns=self.names)
