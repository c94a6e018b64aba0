"""
Gallery matching for the UniLink FaceID core.

The match engine compares a query descriptor against the gallery enrolled
for one identity, finds the minimum Euclidean distance and renders a
match/no-match verdict against the configured threshold.

Early exit
----------
Scanning stops as soon as the running minimum reaches the early-exit
threshold, which is tighter than the match threshold. The reported distance
therefore depends on gallery order when several members fall under the
early-exit bound: the first one encountered wins. With
``early_exit_threshold=None`` the whole gallery is scanned and the true
minimum is reported.
"""

import math
from typing import Any, Optional, Sequence
import numpy as np
import structlog

from .constants import (
    DESCRIPTOR_DIM,
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_EARLY_EXIT_THRESHOLD,
)
from .data_models import MatchPolicy, MatchVerdict
from .distance import euclidean_distance
from .exceptions import DescriptorValidationError
from .validation import validate_descriptor

# Initialize structured logger
logger = structlog.get_logger(__name__)


def find_best_match(
    query: Any,
    gallery: Sequence[Any],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    early_exit_threshold: Optional[float] = DEFAULT_EARLY_EXIT_THRESHOLD,
    dim: int = DESCRIPTOR_DIM,
) -> MatchVerdict:
    """
    Find the closest gallery member to a query descriptor.

    Parameters
    ----------
    query : array-like
        Query descriptor of length ``dim``.
    gallery : Sequence[array-like]
        Enrolled descriptors, scanned in their given order. Members that are
        not valid descriptors of length ``dim`` are skipped and counted.
    threshold : float, default=DEFAULT_MATCH_THRESHOLD
        Maximum distance accepted as a match.
    early_exit_threshold : Optional[float], default=DEFAULT_EARLY_EXIT_THRESHOLD
        Stop scanning once the best distance is at or below this bound.
        ``None`` scans the whole gallery.
    dim : int, default=DESCRIPTOR_DIM
        Descriptor dimensionality.

    Returns
    -------
    MatchVerdict
        ``distance=inf, is_match=False`` for an empty gallery.

    Raises
    ------
    DescriptorValidationError
        If the query itself is not a valid descriptor.

    Examples
    --------
    >>> verdict = find_best_match(query, [stored_a, stored_b])
    >>> verdict.to_dict()
    {'distance': 0.42, 'isMatch': True}
    """
    return scan_gallery(
        validate_descriptor(query, dim), gallery, threshold, early_exit_threshold, dim
    )


def scan_gallery(
    query: np.ndarray,
    gallery: Sequence[Any],
    threshold: float = DEFAULT_MATCH_THRESHOLD,
    early_exit_threshold: Optional[float] = DEFAULT_EARLY_EXIT_THRESHOLD,
    dim: int = DESCRIPTOR_DIM,
) -> MatchVerdict:
    """
    Scan a gallery with a query already returned by ``validate_descriptor``.

    Same semantics as ``find_best_match`` without re-validating the query.
    """
    if gallery is None or len(gallery) == 0:
        return MatchVerdict.no_match()

    best = math.inf
    compared = 0
    skipped = 0

    for index, member in enumerate(gallery):
        try:
            candidate = validate_descriptor(member, dim)
        except DescriptorValidationError as e:
            skipped += 1
            logger.warning(
                "Skipping malformed gallery descriptor",
                index=index,
                reason=e.error_code,
            )
            continue

        compared += 1
        distance = euclidean_distance(query, candidate)
        if distance < best:
            best = distance
            if early_exit_threshold is not None and best <= early_exit_threshold:
                logger.debug(
                    "Early exit on confident match",
                    index=index,
                    gallery_size=len(gallery),
                )
                break

    if compared == 0:
        return MatchVerdict.no_match(skipped=skipped)

    return MatchVerdict(
        distance=best,
        is_match=best <= threshold,
        compared=compared,
        skipped=skipped,
    )


class MatchEngine:
    """
    Match engine bound to a match policy.

    The engine holds no mutable state and is safe to share across threads
    and requests.

    Parameters
    ----------
    policy : Optional[MatchPolicy], default=None
        Thresholds to apply. Defaults to the environment configuration.
    dim : int, default=DESCRIPTOR_DIM
        Descriptor dimensionality.

    Examples
    --------
    >>> engine = MatchEngine(MatchPolicy(threshold=0.6, early_exit_threshold=None))
    >>> engine.match(query, gallery).is_match
    True
    """

    def __init__(
        self, policy: Optional[MatchPolicy] = None, dim: int = DESCRIPTOR_DIM
    ) -> None:
        self.policy = policy or MatchPolicy.from_config()
        self.dim = dim

        logger.debug("MatchEngine initialized", **self.policy.to_dict())

    def match(self, query: Any, gallery: Sequence[Any]) -> MatchVerdict:
        """Match ``query`` against one identity's gallery."""
        return self.scan(validate_descriptor(query, self.dim), gallery)

    def scan(self, query: np.ndarray, gallery: Sequence[Any]) -> MatchVerdict:
        """Match an already validated query against one identity's gallery."""
        verdict = scan_gallery(
            query,
            gallery,
            threshold=self.policy.threshold,
            early_exit_threshold=self.policy.early_exit_threshold,
            dim=self.dim,
        )
        if verdict.skipped:
            logger.warning(
                "Gallery contained malformed descriptors",
                skipped=verdict.skipped,
                compared=verdict.compared,
            )
        return verdict
