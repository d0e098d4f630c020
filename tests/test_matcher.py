import math

import numpy as np
import pytest

from faceaccess.core.errors import DimensionMismatch
from faceaccess.recognition.matcher import euclidean_distance, find_duplicate, identify


def _vec(*values):
    return np.array(values, dtype=np.float32)


def test_exact_match_has_zero_distance():
    e1 = _vec(0.1, -0.4, 2.0)
    result = identify(e1.copy(), {"Alice": [e1]})
    assert result.name == "Alice"
    assert result.distance == 0.0
    assert result.matched


def test_nearest_identity_wins():
    query = _vec(0.0, 0.0)
    identities = {
        "Bob": [_vec(2.3, 0.0)],
        "Carol": [_vec(0.0, 0.7)],
    }
    result = identify(query, identities, threshold=1.9)
    assert result.name == "Carol"
    assert result.distance == pytest.approx(0.7)


def test_minimum_over_identity_embeddings():
    query = _vec(0.0, 0.0)
    identities = {"Alice": [_vec(5.0, 0.0), _vec(0.0, 1.0)]}
    assert identify(query, identities).distance == pytest.approx(1.0)


def test_distance_at_threshold_is_not_a_match():
    result = identify(_vec(0.0), {"Alice": [_vec(1.5)]}, threshold=1.5)
    assert result.name is None
    assert result.distance == 1.5


def test_empty_store_returns_none_and_infinity():
    result = identify(_vec(1.0, 2.0), {})
    assert result.name is None
    assert math.isinf(result.distance)


def test_insertion_order_does_not_change_result():
    query = _vec(0.0, 0.0)
    a = {"zed": [_vec(1.0, 0.0)], "Amy": [_vec(0.0, 1.0)], "bob": [_vec(-1.0, 0.0)]}
    b = dict(reversed(list(a.items())))
    assert identify(query, a) == identify(query, b)
    # Equal distances resolve to the case-folded first name
    assert identify(query, a).name == "Amy"


def test_length_mismatch_raises():
    with pytest.raises(DimensionMismatch) as exc:
        euclidean_distance(_vec(1.0, 2.0), _vec(1.0, 2.0, 3.0))
    assert exc.value.expected == 2
    assert exc.value.actual == 3


def test_find_duplicate_uses_its_own_threshold():
    identities = {"Alice": [_vec(0.0, 0.0)]}
    assert find_duplicate(_vec(0.9, 0.0), identities, threshold=0.92).name == "Alice"
    assert find_duplicate(_vec(1.0, 0.0), identities, threshold=0.92) is None
    assert find_duplicate(_vec(1.0, 0.0), {}, threshold=0.92) is None
