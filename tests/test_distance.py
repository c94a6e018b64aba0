"""Tests for the Euclidean distance metric."""

from __future__ import annotations

import numpy as np
import pytest

from unilink_faceid.distance import euclidean_distance
from unilink_faceid.exceptions import DimensionMismatchError


def test_known_distance() -> None:
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)


def test_identity_is_zero(make_descriptor) -> None:
    for _ in range(20):
        a = make_descriptor()
        assert euclidean_distance(a, a) == 0.0


def test_symmetry(make_descriptor) -> None:
    for _ in range(50):
        a, b = make_descriptor(), make_descriptor()
        assert euclidean_distance(a, b) == euclidean_distance(b, a)


def test_positive_for_distinct(make_descriptor) -> None:
    a = make_descriptor()
    b = a.copy()
    b[100] += 1e-6

    assert euclidean_distance(a, b) > 0.0


def test_triangle_inequality(make_descriptor) -> None:
    for _ in range(50):
        a, b, c = make_descriptor(), make_descriptor(), make_descriptor()
        assert euclidean_distance(a, c) <= (
            euclidean_distance(a, b) + euclidean_distance(b, c) + 1e-12
        )


def test_deterministic(make_descriptor) -> None:
    a, b = make_descriptor(), make_descriptor()

    assert euclidean_distance(a, b) == euclidean_distance(a.copy(), b.copy())


def test_matches_numpy_norm(make_descriptor) -> None:
    a, b = make_descriptor(), make_descriptor()

    assert euclidean_distance(a, b) == pytest.approx(np.linalg.norm(a - b))


def test_returns_builtin_float(make_descriptor) -> None:
    assert type(euclidean_distance(make_descriptor(), make_descriptor())) is float


@pytest.mark.parametrize(
    "a, b",
    [
        ([0.0] * 128, [0.0] * 127),
        ([0.0, 1.0], [0.0, 1.0, 2.0]),
        (np.zeros((2, 2)), np.zeros((2, 2))),
    ],
)
def test_dimension_mismatch(a, b) -> None:
    with pytest.raises(DimensionMismatchError):
        euclidean_distance(a, b)
