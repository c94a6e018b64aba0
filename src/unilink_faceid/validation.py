"""
Face descriptor validation for the UniLink FaceID core.

Every descriptor is screened here before it is trusted anywhere else:
enrollment samples, verification queries, and (defensively) stored gallery
members. Validation is a pure check-and-coerce step. Values arriving as
strings (documents written by older clients) are parsed explicitly, and
anything that does not parse to a finite real number is rejected rather
than propagated as NaN.
"""

import math
import numbers
from collections.abc import Sequence
from typing import Any, List
import numpy as np
import structlog

from .constants import DESCRIPTOR_DIM
from .exceptions import (
    BadDimensionalityError,
    NonNumericValueError,
    EmptyBatchError,
    InvalidBatchError,
    DescriptorValidationError,
)

# Initialize structured logger
logger = structlog.get_logger(__name__)


def _coerce_value(value: Any, position: int) -> float:
    """Coerce one descriptor element to a finite float."""
    if isinstance(value, (bool, np.bool_)):
        raise NonNumericValueError(position, value)

    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise NonNumericValueError(position, value) from None
    else:
        raise NonNumericValueError(position, value)

    if not math.isfinite(number):
        raise NonNumericValueError(position, value)

    return number


def _is_ordered_sequence(candidate: Any) -> bool:
    if isinstance(candidate, np.ndarray):
        return True
    return isinstance(candidate, Sequence) and not isinstance(
        candidate, (str, bytes, bytearray)
    )


def validate_descriptor(candidate: Any, dim: int = DESCRIPTOR_DIM) -> np.ndarray:
    """
    Validate and coerce a raw face descriptor.

    Parameters
    ----------
    candidate : Any
        Raw descriptor: a list, tuple or 1-D array of numbers or numeric
        strings.
    dim : int, default=DESCRIPTOR_DIM
        Required dimensionality.

    Returns
    -------
    np.ndarray
        Read-only float64 array of shape ``(dim,)``.

    Raises
    ------
    BadDimensionalityError
        If the candidate is not an ordered sequence or its length is not
        ``dim``.
    NonNumericValueError
        If any element is not representable as a finite real number.

    Examples
    --------
    >>> descriptor = validate_descriptor(["0.5"] * 128)
    >>> descriptor.dtype, descriptor.shape
    (dtype('float64'), (128,))
    """
    if not _is_ordered_sequence(candidate):
        raise BadDimensionalityError(
            None, dim, reason=f"got {type(candidate).__name__}"
        )

    if isinstance(candidate, np.ndarray):
        if candidate.ndim != 1:
            raise BadDimensionalityError(
                None, dim, reason=f"got a {candidate.ndim}D array"
            )
        if len(candidate) != dim:
            raise BadDimensionalityError(len(candidate), dim)

        # Numeric arrays can be screened in one pass
        if candidate.dtype.kind in ("f", "i", "u"):
            values = candidate.astype(np.float64)
            finite = np.isfinite(values)
            if not finite.all():
                position = int(np.argmin(finite))
                raise NonNumericValueError(position, candidate[position])
            values.flags.writeable = False
            return values

    if len(candidate) != dim:
        raise BadDimensionalityError(len(candidate), dim)

    values = np.fromiter(
        (_coerce_value(value, i) for i, value in enumerate(candidate)),
        dtype=np.float64,
        count=dim,
    )
    values.flags.writeable = False
    return values


def validate_batch(samples: Any, dim: int = DESCRIPTOR_DIM) -> List[np.ndarray]:
    """
    Validate every sample of an enrollment batch.

    The batch is accepted only if every sample validates; validation stops
    at the first invalid sample.

    Parameters
    ----------
    samples : Any
        Ordered sequence of raw descriptors.
    dim : int, default=DESCRIPTOR_DIM
        Required dimensionality of each sample.

    Returns
    -------
    List[np.ndarray]
        Validated descriptors in input order.

    Raises
    ------
    InvalidBatchError
        If ``samples`` is not an array, or a sample is invalid (``index``
        names the first failing sample).
    EmptyBatchError
        If ``samples`` is empty.
    """
    if not _is_ordered_sequence(samples):
        raise InvalidBatchError(
            f"Samples must be an array of descriptors, got {type(samples).__name__}"
        )

    if len(samples) == 0:
        raise EmptyBatchError()

    validated = []
    for index, sample in enumerate(samples):
        try:
            validated.append(validate_descriptor(sample, dim))
        except DescriptorValidationError as e:
            logger.info(
                "Rejected descriptor batch",
                index=index,
                batch_size=len(samples),
                reason=e.error_code,
            )
            raise InvalidBatchError(
                f"Invalid face descriptor at index {index}: {e.message}",
                index=index,
                cause=e,
            ) from e

    return validated
