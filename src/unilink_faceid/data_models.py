"""
Data models for the UniLink FaceID core.

This module defines the value objects passed across the core's boundaries:
the match policy, verification verdicts, enrollment summaries and records,
and 1:N identification results. All models are dataclasses; ``to_dict``
methods produce the outbound payloads consumed by the web layer.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import numpy as np

from . import config
from .constants import (
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_EARLY_EXIT_THRESHOLD,
    DEFAULT_IDENTIFY_EARLY_EXIT_THRESHOLD,
)
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class MatchPolicy:
    """
    Distance thresholds governing a match decision.

    Parameters
    ----------
    threshold : float
        Maximum Euclidean distance accepted as the same person.
    early_exit_threshold : Optional[float]
        Tighter bound that stops a gallery scan as soon as the best distance
        reaches it. ``None`` disables early exit so the true minimum over the
        gallery is always reported.
    identification_early_exit_threshold : Optional[float]
        Bound that stops a 1:N identification search across identities. Only
        matching galleries are compared against it, so it may exceed
        ``threshold``.

    Raises
    ------
    ConfigurationError
        If a threshold is negative or not finite, or the gallery early-exit
        bound is looser than the match threshold.
    """

    threshold: float = DEFAULT_MATCH_THRESHOLD
    early_exit_threshold: Optional[float] = DEFAULT_EARLY_EXIT_THRESHOLD
    identification_early_exit_threshold: Optional[float] = (
        DEFAULT_IDENTIFY_EARLY_EXIT_THRESHOLD
    )

    def __post_init__(self) -> None:
        if not _is_non_negative(self.threshold):
            raise ConfigurationError(
                "threshold must be a finite non-negative number",
                config_key="threshold",
                config_value=str(self.threshold),
            )

        for name in ("early_exit_threshold", "identification_early_exit_threshold"):
            value = getattr(self, name)
            if value is None:
                continue
            if not _is_non_negative(value):
                raise ConfigurationError(
                    f"{name} must be a finite non-negative number or None",
                    config_key=name,
                    config_value=str(value),
                )
            if name == "early_exit_threshold" and value > self.threshold:
                raise ConfigurationError(
                    f"{name} must not exceed the match threshold",
                    config_key=name,
                    config_value=str(value),
                )

    @classmethod
    def from_config(cls) -> "MatchPolicy":
        """Build a policy from the environment configuration."""
        return cls(
            threshold=config.FACE_MATCH_THRESHOLD,
            early_exit_threshold=config.FACE_EARLY_EXIT_THRESHOLD,
            identification_early_exit_threshold=config.FACE_IDENTIFY_EARLY_EXIT_THRESHOLD,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "early_exit_threshold": self.early_exit_threshold,
            "identification_early_exit_threshold": self.identification_early_exit_threshold,
        }


def _is_non_negative(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )


def _payload_distance(distance: float) -> Optional[float]:
    # JSON has no infinity; "nothing compared" goes out as null.
    return distance if math.isfinite(distance) else None


@dataclass(frozen=True)
class MatchVerdict:
    """
    Result of comparing a query descriptor against one gallery.

    Derived and never persisted. ``distance`` is ``inf`` when no gallery
    member could be compared.

    Parameters
    ----------
    distance : float
        Best (lowest) Euclidean distance found by the scan.
    is_match : bool
        Whether ``distance`` is within the match threshold.
    compared : int, default=0
        Number of gallery members actually compared.
    skipped : int, default=0
        Number of malformed gallery members skipped.
    """

    distance: float
    is_match: bool
    compared: int = 0
    skipped: int = 0

    @classmethod
    def no_match(cls, skipped: int = 0) -> "MatchVerdict":
        """Verdict for an empty (or entirely unusable) gallery."""
        return cls(distance=math.inf, is_match=False, compared=0, skipped=skipped)

    def to_dict(self) -> Dict[str, Any]:
        """Return the outbound verification payload."""
        return {
            "distance": _payload_distance(self.distance),
            "isMatch": self.is_match,
        }


@dataclass(frozen=True)
class EnrollmentSummary:
    """Outcome of a successful enrollment."""

    descriptor_count: int
    was_update: bool
    has_face_recognition: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasFaceRecognition": self.has_face_recognition,
            "descriptorCount": self.descriptor_count,
            "wasUpdate": self.was_update,
        }


@dataclass
class EnrollmentRecord:
    """
    Enrollment state of one identity as held by the storage collaborator.

    Parameters
    ----------
    identity : str
        Owning identity; records are never shared across identities.
    gallery : List[Any], default_factory=list
        Stored descriptors in storage order. Members loaded from storage are
        not re-validated here; the match engine screens them.
    has_face_recognition : bool, default=False
        Whether face login is enabled for the identity.
    """

    identity: str
    gallery: List[Any] = field(default_factory=list)
    has_face_recognition: bool = False

    @property
    def is_enrolled(self) -> bool:
        """True only when the flag is set and the gallery is non-empty."""
        return self.has_face_recognition and len(self.gallery) > 0

    @property
    def descriptor_count(self) -> int:
        return len(self.gallery) if self.has_face_recognition else 0

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the record to a JSON-compatible dictionary.

        NumPy arrays are converted to plain lists of floats.
        """
        return {
            "identity": self.identity,
            "faceDescriptors": [
                d.tolist() if isinstance(d, np.ndarray) else list(d)
                for d in self.gallery
            ],
            "hasFaceRecognition": self.has_face_recognition,
        }


@dataclass(frozen=True)
class IdentificationResult:
    """
    Result of a 1:N search of a query descriptor across enrolled identities.

    ``identity`` is ``None`` unless some gallery matched.
    """

    identity: Optional[str]
    distance: float
    is_match: bool
    candidates_searched: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "distance": _payload_distance(self.distance),
            "isMatch": self.is_match,
            "candidatesSearched": self.candidates_searched,
        }
