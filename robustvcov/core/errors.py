"""Exception and warning classes raised by the covariance estimators.

Configuration problems are rejected before any computation; domain problems
are detected while assembling an estimate. Numerical issues that do not
invalidate the estimate are reported as warnings instead.
"""
from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "DomainError",
    "InvalidBandwidth",
    "NumericalWarning",
    "SingularRecoloringError",
]


class ConfigurationError(ValueError):
    """Invalid estimator configuration (unknown kernel or variant, bad option)."""


class InvalidBandwidth(ConfigurationError):
    """Bandwidth is not a finite positive number."""


class DomainError(ValueError):
    """Inputs are outside the domain of the requested estimator."""


class SingularRecoloringError(DomainError):
    """``I - D`` from the prewhitening VAR(1) is numerically singular."""


class NumericalWarning(RuntimeWarning):
    """Estimate was computed but has a numerical defect (e.g. not PSD)."""
