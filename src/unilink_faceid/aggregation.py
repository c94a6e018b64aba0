"""
Descriptor aggregation for the UniLink FaceID core.

Several samples of the same face can be collapsed into one summary
descriptor (their elementwise mean). The default enrollment policy does not
do this: it keeps every raw sample, because more samples per identity give a
query more chances to land under the early-exit bound. Averaging trades that
recall for a smaller gallery and a faster worst-case scan, and is enabled
with ``STORE_AVERAGE_DESCRIPTOR``.
"""

from itertools import combinations
from typing import Any, Dict, Sequence
import numpy as np
import structlog

from .distance import euclidean_distance
from .exceptions import DimensionMismatchError, EmptyInputError

# Initialize structured logger
logger = structlog.get_logger(__name__)


def average_descriptor(samples: Sequence[Any]) -> np.ndarray:
    """
    Compute the elementwise arithmetic mean of same-person descriptors.

    Parameters
    ----------
    samples : Sequence[array-like]
        Non-empty sequence of descriptors of equal length.

    Returns
    -------
    np.ndarray
        Mean descriptor with the common length of the inputs.

    Raises
    ------
    EmptyInputError
        If ``samples`` is empty.
    DimensionMismatchError
        If the samples do not all have the same length.

    Examples
    --------
    >>> average_descriptor([[1, 2], [3, 4]]).tolist()
    [2.0, 3.0]
    """
    if samples is None or len(samples) == 0:
        raise EmptyInputError()

    arrays = [np.asarray(sample, dtype=np.float64) for sample in samples]
    reference = arrays[0].shape
    for array in arrays[1:]:
        if array.shape != reference or array.ndim != 1:
            raise DimensionMismatchError(reference, array.shape)
    if len(reference) != 1:
        raise DimensionMismatchError(reference, reference)

    return np.vstack(arrays).mean(axis=0)


def get_gallery_statistics(gallery: Sequence[Any]) -> Dict[str, Any]:
    """
    Summarize the spread of an enrolled gallery.

    A tight gallery (small pairwise distances) means the samples agree; a
    sample far from the centroid is usually a poor capture.

    Parameters
    ----------
    gallery : Sequence[array-like]
        Validated descriptors of one identity.

    Returns
    -------
    Dict[str, Any]
        Sample count, mean and maximum pairwise distance, and each sample's
        distance to the centroid. Empty galleries yield only the count.
    """
    stats: Dict[str, Any] = {"descriptor_count": len(gallery)}
    if len(gallery) == 0:
        return stats

    centroid = average_descriptor(gallery)
    pairwise = [euclidean_distance(a, b) for a, b in combinations(gallery, 2)]

    stats["centroid_distances"] = [
        euclidean_distance(sample, centroid) for sample in gallery
    ]
    stats["mean_pairwise_distance"] = float(np.mean(pairwise)) if pairwise else 0.0
    stats["max_pairwise_distance"] = float(np.max(pairwise)) if pairwise else 0.0

    logger.debug(
        "Computed gallery statistics",
        descriptor_count=len(gallery),
        max_pairwise_distance=stats["max_pairwise_distance"],
    )
    return stats
