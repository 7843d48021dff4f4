"""
Module `ingestion.indices` provides normalized-difference vegetation index
computation on reflectance bands.
"""

import numpy as np

from mrvkit.core.utils import EPSILON


def normalized_difference(a, b):
    """Return ``(a - b) / (a + b)`` with a guarded denominator, clipped to [-1, 1].

    Works element-wise on scalars or numpy arrays.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    denom = a + b
    denom = np.where(np.abs(denom) < EPSILON, EPSILON, denom)
    return np.clip((a - b) / denom, -1.0, 1.0)


def ndvi(red, nir):
    """Normalized Difference Vegetation Index from RED and NIR reflectance."""
    return normalized_difference(nir, red)


def vegetation_index(nir: float, red: float) -> float:
    """Scalar NDVI for a single observation; NaN when a band is not finite."""
    if not (np.isfinite(nir) and np.isfinite(red)):
        return float("nan")
    return float(normalized_difference(nir, red))
