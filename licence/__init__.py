"""
Licence Lifecycle Module.

Issues, verifies, cancels, revokes and deletes licence keys, keeping the
sales statistics consistent with the licence set.
"""

from licence.errors import (
    InvalidArgument,
    KeyGenerationError,
    LicenceError,
    NotFound,
    StorageFailure,
)
from licence.generator import KeyGenerator, product_id_for
from licence.manager import LicenceManager
from licence.models import IssueOrigin, Licence, LicenceStatus, StatsAggregate, SubscriptionType
from licence.store import LicenceStore
from licence.validator import VerificationResult, VerifyReason

__all__ = [
    "InvalidArgument",
    "IssueOrigin",
    "KeyGenerationError",
    "KeyGenerator",
    "Licence",
    "LicenceError",
    "LicenceManager",
    "LicenceStatus",
    "LicenceStore",
    "NotFound",
    "StatsAggregate",
    "StorageFailure",
    "SubscriptionType",
    "VerificationResult",
    "VerifyReason",
    "product_id_for",
]
