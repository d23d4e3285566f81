"""robustvcov: robust coefficient covariance matrices for fitted regressions.

This package provides heteroskedasticity-consistent (HC),
heteroskedasticity- and autocorrelation-consistent (HAC) and cluster-robust
(CRHC) sandwich estimators computed from a model's design matrix, residuals
and leverage values.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "BartlettKernel",
    "CRHCType",
    "ConfigurationError",
    "CovarianceResult",
    "DomainError",
    "HCType",
    "InvalidBandwidth",
    "KernelSpec",
    "NumericalWarning",
    "ParzenKernel",
    "QuadraticSpectralKernel",
    "SingularRecoloringError",
    "TruncatedKernel",
    "TukeyHanningKernel",
    "crhc_covariance",
    "hac_covariance",
    "hc_covariance",
    "kernel_weight",
    "long_run_covariance",
    "select_bandwidth",
    "stderror",
    "vcov",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BartlettKernel": ("robustvcov.estimators.base", "BartlettKernel"),
    "CRHCType": ("robustvcov.estimators.base", "CRHCType"),
    "CovarianceResult": ("robustvcov.estimators.base", "CovarianceResult"),
    "HCType": ("robustvcov.estimators.base", "HCType"),
    "KernelSpec": ("robustvcov.estimators.base", "KernelSpec"),
    "ParzenKernel": ("robustvcov.estimators.base", "ParzenKernel"),
    "QuadraticSpectralKernel": ("robustvcov.estimators.base", "QuadraticSpectralKernel"),
    "TruncatedKernel": ("robustvcov.estimators.base", "TruncatedKernel"),
    "TukeyHanningKernel": ("robustvcov.estimators.base", "TukeyHanningKernel"),
    "ConfigurationError": ("robustvcov.core.errors", "ConfigurationError"),
    "DomainError": ("robustvcov.core.errors", "DomainError"),
    "InvalidBandwidth": ("robustvcov.core.errors", "InvalidBandwidth"),
    "NumericalWarning": ("robustvcov.core.errors", "NumericalWarning"),
    "SingularRecoloringError": ("robustvcov.core.errors", "SingularRecoloringError"),
    "hac_covariance": ("robustvcov.estimators.hac", "hac_covariance"),
    "long_run_covariance": ("robustvcov.estimators.hac", "long_run_covariance"),
    "hc_covariance": ("robustvcov.estimators.hc", "hc_covariance"),
    "crhc_covariance": ("robustvcov.estimators.crhc", "crhc_covariance"),
    "kernel_weight": ("robustvcov.core.kernels", "kernel_weight"),
    "select_bandwidth": ("robustvcov.core.bandwidth", "select_bandwidth"),
    "vcov": ("robustvcov.dispatch", "vcov"),
    "stderror": ("robustvcov.dispatch", "stderror"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public estimators and utilities on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'robustvcov' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
