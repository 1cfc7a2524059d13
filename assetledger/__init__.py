"""
Permissioned registry for immutable digital-asset records.

Each asset carries an owner, an append-only version history, a per-user
access-control matrix and an append-only, hash-chained audit trail.

- Registry: orchestrates every public operation under one lock
- AccessControlMatrix: per-(asset, user) grants with lazy expiry
- VersionLedger / AuditTrail: insert-only ledgers
- AnalyticsBook: usage counters and the truncating running rating mean
- OperationJournal: JSONL journal replayed to rebuild state between runs
"""

__version__ = "0.1.0"

from .access import AccessControlMatrix, AccessPolicy, capabilities
from .analytics import AnalyticsBook, running_mean
from .audit import AuditTrail
from .config import RegistryConfig, load_config
from .errors import (
    AuthorizationError,
    CapacityExceededError,
    DuplicateEntryError,
    ForbiddenError,
    NotFoundError,
    Outcome,
    RegistryError,
    UnauthorizedError,
    ValidationError,
    attempt,
)
from .journal import OperationJournal, open_registry
from .registry import Registry
from .store import RegistryStore
from .versions import VersionLedger

__all__ = [
    "__version__",
    # Core
    "Registry",
    "RegistryStore",
    "AccessControlMatrix",
    "AccessPolicy",
    "capabilities",
    "VersionLedger",
    "AuditTrail",
    "AnalyticsBook",
    "running_mean",
    # Persistence / config
    "OperationJournal",
    "open_registry",
    "RegistryConfig",
    "load_config",
    # Errors
    "RegistryError",
    "NotFoundError",
    "ValidationError",
    "CapacityExceededError",
    "ForbiddenError",
    "UnauthorizedError",
    "AuthorizationError",
    "DuplicateEntryError",
    "Outcome",
    "attempt",
]
