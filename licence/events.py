"""Normalised payment events and their effect on licences."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from licence.manager import LicenceManager
from licence.models import Licence, SubscriptionType

logger = logging.getLogger(__name__)

ISSUE_EVENTS = ("BILLING.SUBSCRIPTION.ACTIVATED", "PAYMENT.SALE.COMPLETED")
CANCEL_EVENTS = ("BILLING.SUBSCRIPTION.CANCELLED",)


class EventAction(str, Enum):
    ISSUED = "issued"
    DUPLICATE = "duplicate"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


@dataclass
class PaymentEvent:
    """A payment-provider event reduced to the fields licences care about."""

    event_kind: str
    reference_id: Optional[str] = None
    email: Optional[str] = None
    plan_id: Optional[str] = None
    amount: Optional[float] = None
    product_name: Optional[str] = None


@dataclass
class EventOutcome:
    action: EventAction
    licence: Optional[Licence] = None


def subscription_type_for_plan(plan_id: Optional[str]) -> SubscriptionType:
    """Infer the subscription type from a provider plan identifier."""
    plan = (plan_id or "").lower()
    if "annual" in plan or "yearly" in plan:
        return SubscriptionType.ANNUAL
    if "lifetime" in plan:
        return SubscriptionType.LIFETIME
    return SubscriptionType.MONTHLY


def handle_payment_event(manager: LicenceManager, event: PaymentEvent) -> EventOutcome:
    """Apply a payment event to the licence set.

    Activation and sale events issue a licence (once per reference id),
    cancellation events cancel the matching licence, anything else is
    ignored.
    """
    if event.event_kind in ISSUE_EVENTS:
        licence, created = manager.issue_for_payment(
            email=event.email,
            product_name=event.product_name,
            subscription_type=subscription_type_for_plan(event.plan_id),
            payment_reference=event.reference_id,
            amount=event.amount,
        )
        action = EventAction.ISSUED if created else EventAction.DUPLICATE
        return EventOutcome(action, licence)

    if event.event_kind in CANCEL_EVENTS:
        licence = manager.cancel(event.reference_id)
        if licence is None:
            return EventOutcome(EventAction.IGNORED)
        return EventOutcome(EventAction.CANCELLED, licence)

    logger.debug("Ignoring payment event %s", event.event_kind)
    return EventOutcome(EventAction.IGNORED)
