# robustvcov/core/__init__.py
"""Core computational modules for robustvcov."""
from . import bandwidth, errors, kernels, linalg, prewhiten

__all__ = ["bandwidth", "errors", "kernels", "linalg", "prewhiten"]
