"""Estimator exports with lazy loading.

Covariance assemblers, configuration tags and the result container. Uses
lazy imports so that importing a single assembler stays cheap.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

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
    "crhc_covariance",
    "hac_covariance",
    "hc_covariance",
    "long_run_covariance",
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
    "hac_covariance": ("robustvcov.estimators.hac", "hac_covariance"),
    "long_run_covariance": ("robustvcov.estimators.hac", "long_run_covariance"),
    "hc_covariance": ("robustvcov.estimators.hc", "hc_covariance"),
    "crhc_covariance": ("robustvcov.estimators.crhc", "crhc_covariance"),
}


def __getattr__(name: str) -> Any:
    """Lazily import estimator functions and shared containers."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'robustvcov.estimators' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily loaded attributes to ``dir()``."""
    return sorted(set(globals()) | set(__all__))
