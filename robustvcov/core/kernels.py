"""HAC kernel weights (Andrews 1991 family).

Each kernel maps a normalized lag ``x = lag / bandwidth`` to a weight. The
weights are evaluated at ``|x|``. Compact kernels vanish for ``|x| > 1``;
the Quadratic-Spectral kernel has unbounded support and is evaluated at
every lag.
"""

from __future__ import annotations

from math import pi
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from numpy.typing import ArrayLike, NDArray

__all__ = [
    "ANDREWS_CONSTANTS",
    "CHARACTERISTIC_EXPONENT",
    "COMPACT_SUPPORT",
    "KERNEL_NAMES",
    "NW_LAG_RATE",
    "bartlett",
    "kernel_name",
    "kernel_weight",
    "parzen",
    "quadratic_spectral",
    "truncated",
    "tukey_hanning",
]

KERNEL_NAMES: tuple[str, ...] = (
    "truncated",
    "bartlett",
    "parzen",
    "tukey_hanning",
    "quadratic_spectral",
)

_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "truncated": "truncated",
        "tru": "truncated",
        "bartlett": "bartlett",
        "bar": "bartlett",
        "nw": "bartlett",
        "newey-west": "bartlett",
        "parzen": "parzen",
        "par": "parzen",
        "tukey_hanning": "tukey_hanning",
        "tukey-hanning": "tukey_hanning",
        "tukeyhanning": "tukey_hanning",
        "th": "tukey_hanning",
        "quadratic_spectral": "quadratic_spectral",
        "quadratic-spectral": "quadratic_spectral",
        "quadraticspectral": "quadratic_spectral",
        "qs": "quadratic_spectral",
    },
)

# Andrews (1991) Table 1: optimal-bandwidth scale c_k and characteristic exponent q.
ANDREWS_CONSTANTS: Mapping[str, float] = MappingProxyType(
    {
        "truncated": 0.6611,
        "bartlett": 1.1447,
        "parzen": 2.6614,
        "tukey_hanning": 1.7462,
        "quadratic_spectral": 1.3221,
    },
)
CHARACTERISTIC_EXPONENT: Mapping[str, int] = MappingProxyType(
    {
        "truncated": 2,
        "bartlett": 1,
        "parzen": 2,
        "tukey_hanning": 2,
        "quadratic_spectral": 2,
    },
)
COMPACT_SUPPORT: Mapping[str, bool] = MappingProxyType(
    {
        "truncated": True,
        "bartlett": True,
        "parzen": True,
        "tukey_hanning": True,
        "quadratic_spectral": False,
    },
)
# Newey-West (1994) lag-truncation growth rate: m = c * (n/100)^rate.
NW_LAG_RATE: Mapping[str, float] = MappingProxyType(
    {
        "truncated": 4.0 / 25.0,
        "bartlett": 2.0 / 9.0,
        "parzen": 4.0 / 25.0,
        "tukey_hanning": 4.0 / 25.0,
        "quadratic_spectral": 2.0 / 25.0,
    },
)


def kernel_name(kernel: Any) -> str:
    """Canonical kernel name from a string alias or a kernel specification."""
    raw = getattr(kernel, "name", kernel)
    if not isinstance(raw, str):
        msg = f"unknown kernel: {kernel!r}"
        raise ConfigurationError(msg)
    key = raw.strip().lower().replace(" ", "_")
    if key not in _ALIASES:
        msg = f"unknown kernel: {raw!r}; expected one of {list(KERNEL_NAMES)}"
        raise ConfigurationError(msg)
    return _ALIASES[key]


def truncated(x: ArrayLike) -> NDArray[np.float64]:
    az = np.abs(np.asarray(x, dtype=np.float64))
    return np.where(az <= 1.0, 1.0, 0.0)


def bartlett(x: ArrayLike) -> NDArray[np.float64]:
    az = np.abs(np.asarray(x, dtype=np.float64))
    return np.maximum(0.0, 1.0 - az)


def parzen(x: ArrayLike) -> NDArray[np.float64]:
    az = np.abs(np.asarray(x, dtype=np.float64))
    return np.where(
        az <= 0.5,
        1.0 - 6.0 * az * az + 6.0 * (az**3),
        np.where(az <= 1.0, 2.0 * np.power(1.0 - az, 3.0), 0.0),
    )


def tukey_hanning(x: ArrayLike) -> NDArray[np.float64]:
    az = np.abs(np.asarray(x, dtype=np.float64))
    return np.where(az <= 1.0, 0.5 * (1.0 + np.cos(pi * az)), 0.0)


def quadratic_spectral(x: ArrayLike) -> NDArray[np.float64]:
    """Compute Quadratic-Spectral (QS) kernel (Andrews 1991).

    Uses exact formula with series expansion for small values.
    """
    z = np.abs(np.asarray(x, dtype=np.float64))
    out = np.ones_like(z, dtype=np.float64)
    nz = z != 0.0
    if not np.any(nz):
        return out
    zz = z[nz]
    # t = 6*pi*z/5 per Andrews
    t = (6.0 * pi / 5.0) * zz
    const = 25.0 / (12.0 * pi * pi)
    small = t < 1e-2
    num = np.empty_like(t, dtype=np.float64)
    if np.any(~small):
        tt = t[~small]
        num[~small] = (np.sin(tt) / tt) - np.cos(tt)
    if np.any(small):
        ts = t[small]
        # (sin t)/t - cos t = t^2/3 - t^4/30 + t^6/840 + O(t^8)
        num[small] = (ts * ts) / 3.0 - (ts**4) / 30.0 + (ts**6) / 840.0
    out[nz] = const * num / (zz * zz)
    return out


_KERNEL_FUNCS: Mapping[str, Callable[[ArrayLike], NDArray[np.float64]]] = MappingProxyType(
    {
        "truncated": truncated,
        "bartlett": bartlett,
        "parzen": parzen,
        "tukey_hanning": tukey_hanning,
        "quadratic_spectral": quadratic_spectral,
    },
)


def kernel_weight(kernel: Any, x: ArrayLike) -> NDArray[np.float64] | float:
    """Kernel weight at normalized lag(s) ``x``.

    ``kernel`` is a name ("bartlett", "qs", ...) or a kernel specification
    carrying a ``name`` attribute. Scalars return a float.
    """
    func = _KERNEL_FUNCS[kernel_name(kernel)]
    out = func(x)
    if np.ndim(x) == 0:
        return float(out)
    return out
