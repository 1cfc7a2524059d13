"""Tests for field bounds."""

import pytest

from assetledger.errors import CapacityExceededError, ValidationError
from assetledger.validation import (
    MAX_SIZE,
    MAX_TAGS,
    Violations,
    check_sequence,
    validate_rating,
    validate_registration,
    validate_revision,
)

from .helpers import HASH_A, KEY_HASH


def _registration(**overrides):
    fields = dict(
        name="spec.pdf",
        size=2048,
        description="design doc",
        tags=["draft"],
        key_hash="",
        content_hash=HASH_A,
        metadata="{}",
    )
    fields.update(overrides)
    return validate_registration(**fields)


def test_valid_registration_has_no_violations():
    assert not _registration()
    assert not _registration(key_hash=KEY_HASH, metadata="")


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"name": ""}, "name must not be empty"),
        ({"name": "n" * 65}, "name exceeds 64"),
        ({"description": "d" * 129}, "description exceeds 128"),
        ({"metadata": "m" * 257}, "metadata exceeds 256"),
        ({"size": 0}, "size must be at least"),
        ({"tags": []}, "at least one tag"),
        ({"tags": ["t" * 33]}, "tag 0 exceeds 32"),
        ({"tags": ["ok", ""]}, "tag 1 must not be empty"),
        ({"key_hash": "short"}, "key_hash must be empty or exactly 64"),
        ({"content_hash": ""}, "content_hash must be exactly 64"),
    ],
)
def test_registration_bounds(overrides, fragment):
    v = _registration(**overrides)
    with pytest.raises(ValidationError, match=fragment):
        v.raise_if_any()


def test_oversized_content_is_capacity_error():
    with pytest.raises(CapacityExceededError, match="size exceeds"):
        _registration(size=MAX_SIZE + 1).raise_if_any()


def test_too_many_tags_is_capacity_error():
    tags = [f"t{i}" for i in range(MAX_TAGS + 1)]
    with pytest.raises(CapacityExceededError):
        _registration(tags=tags).raise_if_any()
    assert not _registration(tags=tags[:MAX_TAGS])


def test_capacity_error_is_a_validation_error():
    assert issubclass(CapacityExceededError, ValidationError)
    assert issubclass(ValidationError, ValueError)


def test_all_violations_reported_together():
    v = _registration(name="", size=-1, content_hash="x")
    with pytest.raises(ValidationError) as excinfo:
        v.raise_if_any()
    assert len(excinfo.value.violations) == 3


def test_revision_requires_summary():
    v = validate_revision(description="fix", size=10, content_hash=HASH_A, summary="")
    with pytest.raises(ValidationError, match="summary must not be empty"):
        v.raise_if_any()


@pytest.mark.parametrize("rating", [0, 6, -1, True, "5"])
def test_rating_out_of_range(rating):
    assert validate_rating(rating)


@pytest.mark.parametrize("rating", [1, 3, 5])
def test_rating_in_range(rating):
    assert not validate_rating(rating)


def test_sequence_floor():
    v = Violations()
    check_sequence(v, 4, floor=5)
    assert v.errors == ["sequence number 4 precedes last committed sequence 5"]

    v = Violations()
    check_sequence(v, -1)
    assert v
