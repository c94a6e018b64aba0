"""Tests for the gallery match engine."""

from __future__ import annotations

import math

import numpy as np
import pytest

from unilink_faceid.constants import DESCRIPTOR_DIM
from unilink_faceid.data_models import MatchPolicy, MatchVerdict
from unilink_faceid.exceptions import BadDimensionalityError, ConfigurationError
from unilink_faceid.matching import MatchEngine, find_best_match, scan_gallery
from unilink_faceid.validation import validate_descriptor


@pytest.mark.parametrize(
    "threshold, early_exit", [(0.6, 0.3), (0.0, 0.0), (10.0, None)]
)
def test_empty_gallery_never_matches(query, threshold, early_exit) -> None:
    verdict = find_best_match(query, [], threshold, early_exit)

    assert verdict.distance == math.inf
    assert verdict.is_match is False
    assert verdict.to_dict() == {"distance": None, "isMatch": False}


def test_early_exit_keeps_first_confident_member(query, shifted) -> None:
    d1 = shifted(query, 0.2)
    d2 = shifted(query, 0.1)

    verdict = find_best_match(query, [d1, d2], threshold=0.6, early_exit_threshold=0.3)

    assert verdict.distance == pytest.approx(0.2)
    assert verdict.is_match is True
    assert verdict.compared == 1


def test_early_exit_result_depends_on_gallery_order(query, shifted) -> None:
    d1 = shifted(query, 0.2)
    d2 = shifted(query, 0.1)

    forward = find_best_match(query, [d1, d2], 0.6, 0.3)
    backward = find_best_match(query, [d2, d1], 0.6, 0.3)

    assert forward.distance == pytest.approx(0.2)
    assert backward.distance == pytest.approx(0.1)


def test_full_scan_between_thresholds(query, shifted) -> None:
    d1 = shifted(query, 0.5)
    d2 = shifted(query, 0.45, axis=1)

    verdict = find_best_match(query, [d1, d2], threshold=0.6, early_exit_threshold=0.3)

    assert verdict.distance == pytest.approx(0.45)
    assert verdict.is_match is True
    assert verdict.compared == 2


def test_above_threshold_is_not_a_match(query, shifted) -> None:
    verdict = find_best_match(query, [shifted(query, 0.9)], threshold=0.6)

    assert verdict.distance == pytest.approx(0.9)
    assert verdict.is_match is False


def test_distance_equal_to_threshold_matches(query) -> None:
    member = np.zeros(DESCRIPTOR_DIM)
    member[0] = 0.5

    verdict = find_best_match(query, [member], threshold=0.5, early_exit_threshold=None)

    assert verdict.is_match is True


def test_disabled_early_exit_reports_true_minimum(query, shifted) -> None:
    gallery = [shifted(query, 0.2), shifted(query, 0.1), shifted(query, 0.25)]

    verdict = find_best_match(query, gallery, 0.6, early_exit_threshold=None)

    assert verdict.distance == pytest.approx(0.1)
    assert verdict.compared == 3


def test_skips_malformed_members(query, shifted) -> None:
    gallery = [
        [0.0] * 64,
        ["bad"] * DESCRIPTOR_DIM,
        shifted(query, 0.5),
    ]

    verdict = find_best_match(query, gallery, 0.6, 0.3)

    assert verdict.distance == pytest.approx(0.5)
    assert verdict.skipped == 2
    assert verdict.compared == 1


def test_accepts_string_encoded_members(query) -> None:
    member = ["0"] * DESCRIPTOR_DIM
    member[3] = "0.4"

    verdict = find_best_match(query, [member], 0.6, 0.3)

    assert verdict.distance == pytest.approx(0.4)
    assert verdict.skipped == 0


def test_all_members_malformed_is_no_match(query) -> None:
    verdict = find_best_match(query, [[1.0], [2.0]], 0.6, 0.3)

    assert verdict.distance == math.inf
    assert verdict.is_match is False
    assert verdict.skipped == 2


def test_invalid_query_raises() -> None:
    with pytest.raises(BadDimensionalityError):
        find_best_match([0.0] * 3, [np.zeros(DESCRIPTOR_DIM)])


def test_accepts_numpy_gallery(query) -> None:
    gallery = np.ones((3, DESCRIPTOR_DIM))

    verdict = find_best_match(query, gallery, 0.6, 0.3)

    assert verdict.distance == pytest.approx(math.sqrt(DESCRIPTOR_DIM))
    assert verdict.is_match is False


def test_engine_applies_policy(query, shifted) -> None:
    gallery = [shifted(query, 0.2), shifted(query, 0.1)]

    strict = MatchEngine(
        MatchPolicy(
            threshold=0.15,
            early_exit_threshold=None,
            identification_early_exit_threshold=None,
        )
    )
    lenient = MatchEngine(MatchPolicy(threshold=0.6, early_exit_threshold=0.3))

    assert strict.match(query, gallery).distance == pytest.approx(0.1)
    assert strict.match(query, gallery).is_match is True
    assert lenient.match(query, gallery).distance == pytest.approx(0.2)


def test_engine_is_repeatable(query, make_descriptor) -> None:
    engine = MatchEngine(MatchPolicy())
    gallery = [make_descriptor() for _ in range(5)]

    first = engine.match(query, gallery)
    second = engine.match(query, gallery)

    assert first == second


def test_no_match_verdict_helper() -> None:
    assert MatchVerdict.no_match() == MatchVerdict(math.inf, False, 0, 0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"threshold": -0.1},
        {"threshold": math.nan},
        {"threshold": 0.6, "early_exit_threshold": 0.7},
        {"threshold": 0.6, "early_exit_threshold": -1.0},
    ],
)
def test_policy_rejects_invalid_thresholds(kwargs) -> None:
    with pytest.raises(ConfigurationError):
        MatchPolicy(**kwargs)


def test_default_policy_values() -> None:
    policy = MatchPolicy()

    assert policy.threshold == 0.6
    assert policy.early_exit_threshold == 0.3


def test_identification_bound_may_exceed_threshold() -> None:
    policy = MatchPolicy(threshold=0.35, early_exit_threshold=0.2)

    assert policy.identification_early_exit_threshold == 0.4


def test_scan_gallery_takes_validated_query(query, shifted) -> None:
    validated = validate_descriptor(query)

    verdict = scan_gallery(validated, [shifted(query, 0.5)], 0.6, 0.3)

    assert verdict.distance == pytest.approx(0.5)
    assert verdict == find_best_match(query, [shifted(query, 0.5)], 0.6, 0.3)
