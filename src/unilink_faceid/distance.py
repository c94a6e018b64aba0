"""
Distance metric between face descriptors.

Euclidean (L2) distance is the unit of comparison for matching. Lower is
more similar; identical descriptors are at distance zero.
"""

from typing import Any
import numpy as np

from .exceptions import DimensionMismatchError


def euclidean_distance(a: Any, b: Any) -> float:
    """
    Compute the Euclidean distance between two descriptors.

    Parameters
    ----------
    a, b : array-like
        One-dimensional descriptors of equal length.

    Returns
    -------
    float
        ``sqrt(sum((a_i - b_i) ** 2))``.

    Raises
    ------
    DimensionMismatchError
        If the descriptors are not 1-D or differ in length.

    Examples
    --------
    >>> euclidean_distance([0.0, 0.0], [3.0, 4.0])
    5.0
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if a.ndim != 1 or a.shape != b.shape:
        raise DimensionMismatchError(a.shape, b.shape)

    diff = a - b
    return float(np.sqrt(np.dot(diff, diff)))
