"""Shared fixtures for the UniLink FaceID tests."""

from __future__ import annotations

import numpy as np
import pytest
import structlog

from unilink_faceid.constants import DESCRIPTOR_DIM
from unilink_faceid.data_models import MatchPolicy
from unilink_faceid.enrollment import EnrollmentLifecycle
from unilink_faceid.storage import InMemoryGalleryRepository


def offset(base: np.ndarray, distance: float, axis: int = 0) -> np.ndarray:
    """Return a copy of ``base`` moved ``distance`` along one axis."""
    moved = np.array(base, dtype=np.float64)
    moved[axis] += distance
    return moved


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def make_descriptor(rng):
    def _make() -> np.ndarray:
        # face-api style embeddings sit roughly in [-0.25, 0.25]
        return rng.uniform(-0.25, 0.25, DESCRIPTOR_DIM)

    return _make


@pytest.fixture
def query() -> np.ndarray:
    return np.zeros(DESCRIPTOR_DIM)


@pytest.fixture
def policy() -> MatchPolicy:
    return MatchPolicy(
        threshold=0.6,
        early_exit_threshold=0.3,
        identification_early_exit_threshold=0.4,
    )


@pytest.fixture
def repository() -> InMemoryGalleryRepository:
    return InMemoryGalleryRepository()


@pytest.fixture
def lifecycle(repository, policy) -> EnrollmentLifecycle:
    return EnrollmentLifecycle(repository, policy=policy, store_average=False)


@pytest.fixture
def shifted():
    return offset


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # the CLI binds structlog to the captured stderr of the running test
    structlog.reset_defaults()
