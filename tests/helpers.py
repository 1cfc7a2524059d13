"""Shared constants and builders for the test suite."""

from assetledger.registry import Registry

OWNER = "alice"
ADMIN = "system:admin"

HASH_A = "a" * 64
HASH_B = "b" * 64
HASH_C = "c" * 64
KEY_HASH = "k" * 64


def register_spec_pdf(registry: Registry, *, actor: str = OWNER, now: int = 1) -> int:
    return registry.register(
        "spec.pdf", 2048, "design doc", ["draft"], False, "", HASH_A, "{}", actor, now
    )
