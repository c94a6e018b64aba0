"""
Enrollment lifecycle for the UniLink FaceID core.

An identity is either unenrolled or enrolled. ``enroll`` moves it to
enrolled (or re-enrolls it) by replacing its gallery wholesale; ``revoke``
returns it to unenrolled by clearing the gallery. There is no pending state:
every write is one atomic replace-or-clear through the repository, issued
only after the whole request has been validated.

Each operation follows load -> pure transform -> save. Validation and
matching never touch storage, and storage errors propagate to the caller
unchanged; the core does not retry.
"""

import math
from typing import Any, Dict, List, Optional
import numpy as np
import structlog

from . import config
from .aggregation import average_descriptor, get_gallery_statistics
from .constants import DESCRIPTOR_DIM
from .data_models import (
    EnrollmentSummary,
    IdentificationResult,
    MatchPolicy,
    MatchVerdict,
)
from .exceptions import DescriptorValidationError, InvalidIdentityError
from .matching import MatchEngine
from .storage import GalleryRepository
from .utils import timer
from .validation import validate_batch, validate_descriptor

# Initialize structured logger
logger = structlog.get_logger(__name__)


def _check_identity(identity: Any) -> str:
    # Surrounding whitespace never distinguishes two identities.
    if not isinstance(identity, str) or not identity.strip():
        raise InvalidIdentityError(identity)
    return identity.strip()


def build_gallery(
    validated: List[np.ndarray], store_average: bool = False
) -> List[np.ndarray]:
    """
    Turn validated samples into the gallery to persist.

    By default every raw sample is kept. With ``store_average`` the samples
    are collapsed into their mean descriptor.
    """
    if store_average and len(validated) > 1:
        return [average_descriptor(validated)]
    return list(validated)


class EnrollmentLifecycle:
    """
    Register, verify and revoke face descriptor galleries.

    Parameters
    ----------
    repository : GalleryRepository
        Storage collaborator holding each identity's gallery.
    policy : Optional[MatchPolicy], default=None
        Match thresholds. Defaults to the environment configuration.
    store_average : Optional[bool], default=None
        Persist only the mean of the enrollment samples instead of every
        sample. Defaults to ``STORE_AVERAGE_DESCRIPTOR``.
    dim : int, default=DESCRIPTOR_DIM
        Descriptor dimensionality.

    Examples
    --------
    >>> lifecycle = EnrollmentLifecycle(InMemoryGalleryRepository())
    >>> lifecycle.enroll("user-1", samples).to_dict()
    {'hasFaceRecognition': True, 'descriptorCount': 3, 'wasUpdate': False}
    >>> lifecycle.verify("user-1", query).is_match
    True
    """

    def __init__(
        self,
        repository: GalleryRepository,
        policy: Optional[MatchPolicy] = None,
        store_average: Optional[bool] = None,
        dim: int = DESCRIPTOR_DIM,
    ) -> None:
        self.repository = repository
        self.policy = policy or MatchPolicy.from_config()
        self.store_average = (
            config.STORE_AVERAGE_DESCRIPTOR if store_average is None else store_average
        )
        self.dim = dim
        self.engine = MatchEngine(self.policy, dim=dim)

        logger.info(
            "EnrollmentLifecycle initialized",
            repository=type(repository).__name__,
            store_average=self.store_average,
            **self.policy.to_dict(),
        )

    @timer
    def enroll(self, identity: str, samples: Any) -> EnrollmentSummary:
        """
        Enroll (or re-enroll) an identity with a batch of descriptor samples.

        The identity's previous gallery is replaced, never merged. Nothing is
        written unless every sample is valid.

        Parameters
        ----------
        identity : str
            Identity being enrolled.
        samples : Sequence[array-like]
            Raw descriptors captured for the identity.

        Returns
        -------
        EnrollmentSummary
            Count of accepted samples and whether a prior gallery existed.

        Raises
        ------
        EmptyBatchError
            If ``samples`` is empty.
        InvalidBatchError
            If ``samples`` is not an array or any sample is invalid.
        StorageError
            If the repository fails to load or save.
        """
        identity = _check_identity(identity)
        validated = validate_batch(samples, self.dim)

        current = self.repository.load_gallery(identity)
        was_update = current is not None and current.is_enrolled

        gallery = build_gallery(validated, self.store_average)
        self.repository.save_gallery(identity, gallery)

        logger.info(
            "Face gallery enrolled",
            identity=identity,
            descriptor_count=len(validated),
            stored_count=len(gallery),
            was_update=was_update,
        )
        return EnrollmentSummary(descriptor_count=len(validated), was_update=was_update)

    @timer
    def verify(self, identity: str, query: Any) -> MatchVerdict:
        """
        Verify a query descriptor against an identity's gallery.

        An unenrolled (or unknown) identity yields a no-match verdict with
        infinite distance rather than an error.

        Raises
        ------
        BadDimensionalityError, NonNumericValueError
            If the query is malformed.
        StorageError
            If the repository fails to load.
        """
        identity = _check_identity(identity)
        query = validate_descriptor(query, self.dim)

        record = self.repository.load_gallery(identity)
        if record is None or not record.is_enrolled:
            logger.info("Verification against unenrolled identity", identity=identity)
            return MatchVerdict.no_match()

        verdict = self.engine.scan(query, record.gallery)

        logger.info(
            "Face verification completed",
            identity=identity,
            is_match=verdict.is_match,
            distance=verdict.distance,
            compared=verdict.compared,
        )
        return verdict

    @timer
    def revoke(self, identity: str) -> None:
        """
        Remove an identity's gallery and disable face recognition.

        Idempotent: revoking an unenrolled identity succeeds.
        """
        identity = _check_identity(identity)
        self.repository.clear_gallery(identity)

        logger.info("Face recognition revoked", identity=identity)

    def status(self, identity: str) -> Dict[str, Any]:
        """
        Report the enrollment state of an identity.

        Returns
        -------
        Dict[str, Any]
            ``hasFaceRecognition``, ``descriptorCount`` and gallery spread
            statistics computed over the valid stored descriptors.
        """
        identity = _check_identity(identity)
        record = self.repository.load_gallery(identity)

        if record is None or not record.is_enrolled:
            return {
                "identity": identity,
                "hasFaceRecognition": False,
                "descriptorCount": 0,
                "statistics": {"descriptor_count": 0},
            }

        valid = []
        for member in record.gallery:
            try:
                valid.append(validate_descriptor(member, self.dim))
            except DescriptorValidationError:
                logger.warning("Stored descriptor failed validation", identity=identity)

        return {
            "identity": identity,
            "hasFaceRecognition": True,
            "descriptorCount": len(record.gallery),
            "statistics": get_gallery_statistics(valid),
        }

    @timer
    def identify(self, query: Any) -> IdentificationResult:
        """
        Search every enrolled identity for the closest matching gallery.

        Identities are visited in repository order. Only matching galleries
        are candidates; the search stops once a candidate is at or below the
        identification early-exit bound.

        Returns
        -------
        IdentificationResult
            The best matching identity, or ``identity=None`` when no gallery
            matched (including when nobody is enrolled).
        """
        query = validate_descriptor(query, self.dim)
        early_exit = self.policy.identification_early_exit_threshold

        best_identity: Optional[str] = None
        best_distance = math.inf
        searched = 0

        for record in self.repository.iter_enrolled():
            searched += 1
            verdict = self.engine.scan(query, record.gallery)
            if verdict.is_match and verdict.distance < best_distance:
                best_identity = record.identity
                best_distance = verdict.distance
                if early_exit is not None and best_distance <= early_exit:
                    break

        logger.info(
            "Face identification completed",
            candidates_searched=searched,
            matched=best_identity is not None,
            distance=best_distance,
        )
        return IdentificationResult(
            identity=best_identity,
            distance=best_distance,
            is_match=best_identity is not None,
            candidates_searched=searched,
        )
