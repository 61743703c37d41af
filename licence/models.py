"""Licence records and the aggregate sales statistics."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class SubscriptionType(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"
    LIFETIME = "lifetime"


class LicenceStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    REVOKED = "revoked"


class IssueOrigin(str, Enum):
    AUTOMATED = "automated"
    MANUAL = "manual"


def _parse_dt(value) -> Optional[datetime]:
    if not value:
        return None
    # Older records were written with a trailing "Z".
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_subscription_type(key: str, value) -> SubscriptionType:
    try:
        return SubscriptionType(value)
    except ValueError:
        logger.warning(
            "Licence %s has unknown subscription type %r, reading it as monthly",
            key, value,
        )
        return SubscriptionType.MONTHLY


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Licence:
    """A single issued licence.

    Records are immutable; status transitions produce a new record with
    ``dataclasses.replace`` so that readers holding an older snapshot never
    observe a half-updated licence.
    """

    key: str
    email: str
    product_name: str
    product_id: str
    subscription_type: SubscriptionType
    status: LicenceStatus
    created_at: datetime
    expires_at: Optional[datetime]
    origin: IssueOrigin = IssueOrigin.AUTOMATED
    payment_reference: Optional[str] = None
    subscription_id: Optional[str] = None
    revocation_reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == LicenceStatus.ACTIVE

    def is_expired(self, now: datetime) -> bool:
        # A record with no recorded expiry never verifies.
        if self.expires_at is None:
            return True
        return now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "product_name": self.product_name,
            "product_id": self.product_id,
            "subscription_type": self.subscription_type.value,
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "expires_at": _iso(self.expires_at),
            "origin": self.origin.value,
            "payment_reference": self.payment_reference,
            "subscription_id": self.subscription_id,
            "revocation_reason": self.revocation_reason,
            "revoked_at": _iso(self.revoked_at),
            "cancelled_at": _iso(self.cancelled_at),
        }

    @classmethod
    def from_dict(cls, key: str, data: dict, default_product: str = "ReplyBolt") -> "Licence":
        """Build a record from its stored form.

        Accepts both the current snake_case layout and the legacy camelCase
        layout. Legacy records without a product identifier get one derived
        from their product name here, at read time. An unknown or missing
        subscription type reads as monthly. A missing expiry is kept as
        ``None`` and the licence counts as expired.

        Args:
            key: The licence key the record is stored under.
            data: Stored field mapping.
            default_product: Product name assumed when a legacy record has none.
        """
        from licence.generator import product_id_for

        def pick(*names):
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return None

        product_name = pick("product_name", "extensionName") or default_product
        product_id = pick("product_id", "extensionId") or product_id_for(product_name)

        manual = data.get("manual")
        origin = pick("origin") or (IssueOrigin.MANUAL.value if manual else IssueOrigin.AUTOMATED.value)

        return cls(
            key=key,
            email=pick("email") or "",
            product_name=product_name,
            product_id=product_id,
            subscription_type=_parse_subscription_type(key, pick("subscription_type", "subscriptionType")),
            status=LicenceStatus(pick("status") or LicenceStatus.ACTIVE.value),
            created_at=_parse_dt(pick("created_at", "createdAt")),
            expires_at=_parse_dt(pick("expires_at", "expiresAt")),
            origin=IssueOrigin(origin),
            payment_reference=pick("payment_reference", "paypalSubscriptionId"),
            subscription_id=pick("subscription_id", "subscriptionId"),
            revocation_reason=pick("revocation_reason", "revocationReason"),
            revoked_at=_parse_dt(pick("revoked_at", "revokedAt")),
            cancelled_at=_parse_dt(pick("cancelled_at", "cancelledAt")),
        )


@dataclass
class StatsAggregate:
    """Running totals kept in lock-step with licence transitions."""

    total_sales: int = 0
    active_subscriptions: int = 0
    revenue: float = 0.0

    def record_sale(self, amount: float) -> None:
        self.total_sales += 1
        self.active_subscriptions += 1
        self.revenue = round(self.revenue + float(amount), 2)

    def deactivate(self) -> None:
        if self.active_subscriptions <= 0:
            logger.warning("Active subscription count already at zero, not decrementing")
            return
        self.active_subscriptions -= 1

    def remove_sale(self) -> None:
        if self.total_sales <= 0:
            logger.warning("Total sales already at zero, not decrementing")
            return
        self.total_sales -= 1

    def copy(self) -> "StatsAggregate":
        return StatsAggregate(self.total_sales, self.active_subscriptions, self.revenue)

    def to_dict(self) -> dict:
        return {
            "total_sales": self.total_sales,
            "active_subscriptions": self.active_subscriptions,
            "revenue": self.revenue,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StatsAggregate":
        return cls(
            total_sales=int(data.get("total_sales", data.get("totalSales", 0))),
            active_subscriptions=int(
                data.get("active_subscriptions", data.get("activeSubscriptions", 0))
            ),
            revenue=float(data.get("revenue", data.get("monthlyRevenue", 0.0))),
        )


@dataclass
class StatsDrift:
    """Difference between the stored active count and the real one."""

    recorded_active: int
    actual_active: int
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def in_sync(self) -> bool:
        return self.recorded_active == self.actual_active
