"""
Field bounds for registry inputs.

All checks run before any mutation. Violations are collected rather than
raised one at a time so a caller sees every problem with a request at once.
"""

from __future__ import annotations

from typing import Sequence

from .errors import CapacityExceededError, ValidationError

MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 128
MAX_METADATA_LENGTH = 256
MAX_SUMMARY_LENGTH = 256
MAX_TAGS = 10
MAX_TAG_LENGTH = 32
MIN_SIZE = 1
MAX_SIZE = 10**9
HASH_LENGTH = 64
MIN_RATING = 1
MAX_RATING = 5


class Violations:
    """Collects bound violations for one request."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.capacity: list[str] = []

    def add(self, message: str) -> None:
        self.errors.append(message)

    def over_capacity(self, message: str) -> None:
        self.capacity.append(message)

    def __bool__(self) -> bool:
        return bool(self.errors or self.capacity)

    def raise_if_any(self) -> None:
        if not self:
            return
        messages = self.capacity + self.errors
        if self.capacity:
            raise CapacityExceededError("; ".join(messages), messages)
        raise ValidationError("; ".join(messages), messages)


def check_text(v: Violations, field: str, value: str, max_length: int, *, allow_empty: bool = False) -> None:
    if not isinstance(value, str):
        v.add(f"{field} must be a string")
        return
    if not value and not allow_empty:
        v.add(f"{field} must not be empty")
    elif len(value) > max_length:
        v.add(f"{field} exceeds {max_length} characters")


def check_size(v: Violations, size: int) -> None:
    if isinstance(size, bool) or not isinstance(size, int):
        v.add("size must be an integer")
    elif size < MIN_SIZE:
        v.add(f"size must be at least {MIN_SIZE} byte")
    elif size > MAX_SIZE:
        v.over_capacity(f"size exceeds {MAX_SIZE} bytes")


def check_tags(v: Violations, tags: Sequence[str]) -> None:
    if isinstance(tags, str):
        v.add("tags must be a list of strings")
        return
    if not tags:
        v.add("at least one tag is required")
        return
    if len(tags) > MAX_TAGS:
        v.over_capacity(f"no more than {MAX_TAGS} tags are allowed")
    for i, tag in enumerate(tags):
        if not isinstance(tag, str) or not tag:
            v.add(f"tag {i} must not be empty")
        elif len(tag) > MAX_TAG_LENGTH:
            v.add(f"tag {i} exceeds {MAX_TAG_LENGTH} characters")


def check_content_hash(v: Violations, content_hash: str, field: str = "content_hash") -> None:
    if not isinstance(content_hash, str) or len(content_hash) != HASH_LENGTH:
        v.add(f"{field} must be exactly {HASH_LENGTH} characters")


def check_key_hash(v: Violations, key_hash: str) -> None:
    if not isinstance(key_hash, str) or (key_hash and len(key_hash) != HASH_LENGTH):
        v.add(f"key_hash must be empty or exactly {HASH_LENGTH} characters")


def check_sequence(v: Violations, now: int, *, floor: int = 0) -> None:
    if isinstance(now, bool) or not isinstance(now, int) or now < 0:
        v.add("sequence number must be a non-negative integer")
    elif now < floor:
        v.add(f"sequence number {now} precedes last committed sequence {floor}")


def check_identity(v: Violations, field: str, identity: str) -> None:
    if not isinstance(identity, str) or not identity.strip():
        v.add(f"{field} identity must not be empty")


def validate_registration(
    *,
    name: str,
    size: int,
    description: str,
    tags: Sequence[str],
    key_hash: str,
    content_hash: str,
    metadata: str,
) -> Violations:
    v = Violations()
    check_text(v, "name", name, MAX_NAME_LENGTH)
    check_size(v, size)
    check_text(v, "description", description, MAX_DESCRIPTION_LENGTH)
    check_tags(v, tags)
    check_key_hash(v, key_hash)
    check_content_hash(v, content_hash)
    check_text(v, "metadata", metadata, MAX_METADATA_LENGTH, allow_empty=True)
    return v


def validate_revision(*, description: str, size: int, content_hash: str, summary: str) -> Violations:
    v = Violations()
    check_text(v, "description", description, MAX_DESCRIPTION_LENGTH)
    check_size(v, size)
    check_content_hash(v, content_hash)
    check_text(v, "summary", summary, MAX_SUMMARY_LENGTH)
    return v


def validate_metadata_update(*, name: str, size: int, description: str, tags: Sequence[str]) -> Violations:
    v = Violations()
    check_text(v, "name", name, MAX_NAME_LENGTH)
    check_size(v, size)
    check_text(v, "description", description, MAX_DESCRIPTION_LENGTH)
    check_tags(v, tags)
    return v


def validate_rating(rating: int) -> Violations:
    v = Violations()
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        v.add(f"rating must be an integer between {MIN_RATING} and {MAX_RATING}")
    return v
