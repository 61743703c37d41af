"""Tests for payment event handling."""

import tempfile
import unittest
from pathlib import Path

from licence.errors import InvalidArgument
from licence.events import (
    EventAction,
    PaymentEvent,
    handle_payment_event,
    subscription_type_for_plan,
)
from licence.manager import LicenceManager
from licence.models import IssueOrigin, LicenceStatus, SubscriptionType
from licence.store import LicenceStore


class TestPlanMapping(unittest.TestCase):

    def test_plans(self):
        self.assertEqual(subscription_type_for_plan("P-ANNUAL-99"), SubscriptionType.ANNUAL)
        self.assertEqual(subscription_type_for_plan("replybolt-yearly"), SubscriptionType.ANNUAL)
        self.assertEqual(subscription_type_for_plan("lifetime-deal"), SubscriptionType.LIFETIME)
        self.assertEqual(subscription_type_for_plan("P-5ML4271244454362W"), SubscriptionType.MONTHLY)
        self.assertEqual(subscription_type_for_plan(None), SubscriptionType.MONTHLY)


class TestHandlePaymentEvent(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = LicenceStore.open(Path(self._tmp.name) / "licences.json")
        self.mgr = LicenceManager(self.store)

    def tearDown(self):
        self.store.close()
        self._tmp.cleanup()

    def _activate(self, reference="I-SUB1", **kwargs):
        event = PaymentEvent(
            event_kind="BILLING.SUBSCRIPTION.ACTIVATED",
            reference_id=reference,
            email=kwargs.pop("email", "buyer@x.com"),
            plan_id=kwargs.pop("plan_id", "P-ANNUAL"),
            **kwargs,
        )
        return handle_payment_event(self.mgr, event)

    def test_activation_issues_licence(self):
        outcome = self._activate(amount=89.0)
        self.assertEqual(outcome.action, EventAction.ISSUED)
        lic = outcome.licence
        self.assertEqual(lic.subscription_type, SubscriptionType.ANNUAL)
        self.assertEqual(lic.payment_reference, "I-SUB1")
        self.assertEqual(lic.origin, IssueOrigin.AUTOMATED)
        self.assertEqual(lic.product_id, "reply-bolt")
        self.assertAlmostEqual(self.mgr.stats().revenue, 89.0)

    def test_sale_after_activation_is_duplicate(self):
        first = self._activate()
        sale = PaymentEvent(
            event_kind="PAYMENT.SALE.COMPLETED",
            reference_id="I-SUB1",
            email="buyer@x.com",
            amount=99.0,
        )
        outcome = handle_payment_event(self.mgr, sale)
        self.assertEqual(outcome.action, EventAction.DUPLICATE)
        self.assertEqual(outcome.licence.key, first.licence.key)
        self.assertEqual(self.mgr.stats().total_sales, 1)

    def test_sale_without_email_after_activation_is_duplicate(self):
        first = self._activate()
        sale = PaymentEvent(
            event_kind="PAYMENT.SALE.COMPLETED",
            reference_id="I-SUB1",
            amount=99.0,
        )
        outcome = handle_payment_event(self.mgr, sale)
        self.assertEqual(outcome.action, EventAction.DUPLICATE)
        self.assertEqual(outcome.licence.key, first.licence.key)
        self.assertEqual(self.mgr.stats().total_sales, 1)

    def test_custom_product(self):
        outcome = self._activate(product_name="QuickReply Pro")
        self.assertEqual(outcome.licence.product_id, "quick-reply-pro")

    def test_cancellation(self):
        issued = self._activate()
        outcome = handle_payment_event(
            self.mgr,
            PaymentEvent(event_kind="BILLING.SUBSCRIPTION.CANCELLED", reference_id="I-SUB1"),
        )
        self.assertEqual(outcome.action, EventAction.CANCELLED)
        self.assertEqual(self.mgr.get(issued.licence.key).status, LicenceStatus.CANCELLED)
        self.assertEqual(self.mgr.stats().active_subscriptions, 0)

    def test_cancellation_unknown_subscription(self):
        outcome = handle_payment_event(
            self.mgr,
            PaymentEvent(event_kind="BILLING.SUBSCRIPTION.CANCELLED", reference_id="I-NONE"),
        )
        self.assertEqual(outcome.action, EventAction.IGNORED)
        self.assertIsNone(outcome.licence)

    def test_other_events_ignored(self):
        outcome = handle_payment_event(
            self.mgr,
            PaymentEvent(event_kind="BILLING.SUBSCRIPTION.UPDATED", reference_id="I-SUB1"),
        )
        self.assertEqual(outcome.action, EventAction.IGNORED)
        self.assertEqual(self.mgr.stats().total_sales, 0)

    def test_activation_without_email_rejected(self):
        with self.assertRaises(InvalidArgument):
            self._activate(email=None)
        self.assertEqual(self.mgr.stats().total_sales, 0)


if __name__ == "__main__":
    unittest.main()
