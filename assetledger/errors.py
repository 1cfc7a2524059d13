"""
Error kinds raised by the registry core.

Every error carries a stable ``kind`` tag so that a service layer can map it
onto whatever result framing it uses. ``Outcome`` / ``attempt()`` provide that
framing for in-process callers (the CLI uses them).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class RegistryError(Exception):
    """Base class for all registry errors."""

    kind = "registry"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RegistryError):
    """Unknown asset, version or session."""

    kind = "not_found"


class ValidationError(RegistryError, ValueError):
    """One or more fields are out of bounds."""

    kind = "validation"

    def __init__(self, message: str, violations: list[str] | None = None):
        super().__init__(message)
        self.violations = violations or [message]


class CapacityExceededError(ValidationError):
    """A size or list-length bound was exceeded."""

    kind = "capacity_exceeded"


class ForbiddenError(RegistryError):
    """Read attempted without a live grant or ownership."""

    kind = "forbidden"


class UnauthorizedError(RegistryError):
    """Write or administration attempted without sufficient authority."""

    kind = "unauthorized"


# Name used by the access-control surface.
AuthorizationError = UnauthorizedError


class DuplicateEntryError(RegistryError):
    """Attempt to overwrite an append-only key."""

    kind = "duplicate_entry"


ERROR_KINDS = frozenset({
    NotFoundError.kind,
    ValidationError.kind,
    CapacityExceededError.kind,
    ForbiddenError.kind,
    UnauthorizedError.kind,
    DuplicateEntryError.kind,
})


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Tagged result of a registry call."""

    ok: bool
    value: T | None = None
    error_kind: str | None = None
    message: str | None = None
    violations: list[str] = field(default_factory=list)

    def unwrap(self) -> T:
        if not self.ok:
            raise RuntimeError(f"{self.error_kind}: {self.message}")
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        if self.ok:
            return {"ok": True, "value": self.value}
        result: dict[str, Any] = {
            "ok": False,
            "error": self.error_kind,
            "message": self.message,
        }
        if self.violations:
            result["violations"] = self.violations
        return result


def attempt(fn: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """
    Run a registry call and capture its result as an ``Outcome``.

    Only ``RegistryError`` is captured; anything else is a bug and propagates.
    """
    try:
        value = fn(*args, **kwargs)
    except ValidationError as e:
        return Outcome(ok=False, error_kind=e.kind, message=e.message, violations=list(e.violations))
    except RegistryError as e:
        return Outcome(ok=False, error_kind=e.kind, message=e.message)
    return Outcome(ok=True, value=value)
