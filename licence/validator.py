"""Licence verification outcome."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from licence.models import Licence, LicenceStatus


class VerifyReason(str, Enum):
    UNKNOWN_KEY = "unknown key"
    PRODUCT_MISMATCH = "product mismatch"
    CANCELLED = "cancelled"
    REVOKED = "revoked"
    EXPIRED = "expired"


_STATUS_REASONS = {
    LicenceStatus.CANCELLED: VerifyReason.CANCELLED,
    LicenceStatus.REVOKED: VerifyReason.REVOKED,
}


@dataclass
class VerificationResult:
    """Result of a licence verification check."""

    is_valid: bool
    licence_key: str
    reason: Optional[VerifyReason] = None
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
    subscription_type: Optional[str] = None
    product_name: Optional[str] = None
    product_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.is_valid,
            "reason": self.reason.value if self.reason else None,
            "email": self.email,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "subscriptionType": self.subscription_type,
            "extensionName": self.product_name,
            "extensionId": self.product_id,
        }


def evaluate(
    licence_key: str,
    licence: Optional[Licence],
    product_id: str,
    now: datetime,
) -> VerificationResult:
    """Decide whether a stored licence is valid for ``product_id`` at ``now``.

    The checks run in a fixed order: existence, product binding, status,
    then expiry. Nothing is written back; an expired licence keeps its
    stored status.
    """
    if licence is None:
        return VerificationResult(False, licence_key, VerifyReason.UNKNOWN_KEY)

    if licence.product_id != product_id:
        return VerificationResult(False, licence_key, VerifyReason.PRODUCT_MISMATCH)

    if licence.status != LicenceStatus.ACTIVE:
        return VerificationResult(False, licence_key, _STATUS_REASONS[licence.status])

    if licence.is_expired(now):
        return VerificationResult(False, licence_key, VerifyReason.EXPIRED)

    return VerificationResult(
        is_valid=True,
        licence_key=licence_key,
        email=licence.email,
        expires_at=licence.expires_at,
        subscription_type=licence.subscription_type.value,
        product_name=licence.product_name,
        product_id=licence.product_id,
    )
