"""Licence lifecycle: issue, verify, cancel, revoke and delete."""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from licence.errors import InvalidArgument, KeyGenerationError, NotFound
from licence.generator import (
    KeyGenerator,
    calculate_expiry,
    parse_subscription_type,
    product_id_for,
)
from licence.models import (
    IssueOrigin,
    Licence,
    LicenceStatus,
    StatsAggregate,
    StatsDrift,
    SubscriptionType,
)
from licence.store import LicenceStore, Snapshot
from licence.validator import VerificationResult, evaluate

logger = logging.getLogger(__name__)

DEFAULT_PRICES = {
    SubscriptionType.MONTHLY.value: 9.99,
    SubscriptionType.ANNUAL.value: 99.0,
    SubscriptionType.LIFETIME.value: 199.0,
}

KEY_GENERATION_ATTEMPTS = 5

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LicenceManager:
    """High-level licence lifecycle over a :class:`LicenceStore`.

    Every mutating operation runs as one store transaction, so the licence
    change and its statistics delta become durable together or not at all.
    Verification reads the published snapshot and never writes.
    """

    def __init__(
        self,
        store: LicenceStore,
        key_generator: Optional[KeyGenerator] = None,
        prices: Optional[dict] = None,
        default_product: str = "ReplyBolt",
        clock: Optional[Callable[[], datetime]] = None,
        max_key_attempts: int = KEY_GENERATION_ATTEMPTS,
    ):
        """Initialize the licence manager.

        Args:
            store: The process-wide licence store.
            key_generator: Key source; defaults to ``RB``-prefixed keys.
            prices: Price per subscription type added to revenue on issue.
            default_product: Product name used when none is supplied.
            clock: Returns the current UTC time; injectable for tests.
            max_key_attempts: Key collisions tolerated before giving up.
        """
        self._store = store
        self._keys = key_generator or KeyGenerator()
        self._prices = dict(DEFAULT_PRICES)
        if prices:
            self._prices.update(prices)
        self._default_product = default_product
        self._clock = clock or _utcnow
        self._max_key_attempts = max_key_attempts

    @property
    def default_product(self) -> str:
        return self._default_product

    # ---- Mutations ----

    def issue(
        self,
        email: str,
        product_name: Optional[str],
        subscription_type,
        origin: IssueOrigin = IssueOrigin.MANUAL,
        payment_reference: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> Licence:
        """Issue a new active licence and record the sale.

        Args:
            email: Owner email address.
            product_name: Product the licence is bound to.
            subscription_type: ``monthly``, ``annual`` or ``lifetime``.
            origin: Whether a payment event or an operator created it.
            payment_reference: External subscription id, used by ``cancel``.
            amount: Paid amount; the configured price is used when omitted.

        Returns:
            The stored Licence.

        Raises:
            InvalidArgument: A required field is missing or invalid.
            KeyGenerationError: No unused key could be generated.
            StorageFailure: The new state could not be persisted.
        """
        request = self._prepare_issue(
            email, product_name, subscription_type, origin, payment_reference, amount
        )
        with self._store.transaction() as txn:
            licence = self._insert(txn, *request)
        self._log_issued(licence)
        return licence

    def issue_for_payment(
        self,
        email: str,
        product_name: Optional[str],
        subscription_type,
        payment_reference: str,
        amount: Optional[float] = None,
    ) -> tuple[Licence, bool]:
        """Issue a licence for a payment unless one already exists for it.

        Payment providers deliver the same subscription more than once
        (e.g. an activation and a first sale). The lookup happens inside the
        same transaction as the insert and before the other fields are
        validated, since later deliveries often carry no payer email.

        Returns:
            ``(licence, created)``; ``created`` is False for a duplicate.
        """
        if not payment_reference:
            raise InvalidArgument("Payment reference is required")
        with self._store.transaction() as txn:
            existing = txn.find_by_payment_reference(payment_reference)
            if existing is not None:
                logger.info(
                    "Licence %s already issued for payment %s",
                    existing.key, payment_reference,
                )
                return existing, False
            request = self._prepare_issue(
                email, product_name, subscription_type,
                IssueOrigin.AUTOMATED, payment_reference, amount,
            )
            licence = self._insert(txn, *request)
        self._log_issued(licence)
        return licence, True

    def cancel(self, payment_reference: str) -> Optional[Licence]:
        """Cancel the licence tied to an upstream subscription.

        Unknown references are a no-op. Cancelling a licence that is no
        longer active leaves it untouched.

        Returns:
            The licence after the call, or None if no licence matched.
        """
        if not payment_reference:
            raise InvalidArgument("Payment reference is required")
        with self._store.transaction() as txn:
            licence = txn.find_by_payment_reference(payment_reference)
            if licence is None:
                logger.info("No licence for cancelled subscription %s", payment_reference)
                return None
            if not licence.is_active:
                return licence
            licence = dataclasses.replace(
                licence, status=LicenceStatus.CANCELLED, cancelled_at=self._clock()
            )
            txn.licences[licence.key] = licence
            txn.stats.deactivate()
        logger.info("Licence cancelled: %s", licence.key)
        return licence

    def revoke(self, licence_key: str, reason: Optional[str] = None) -> Licence:
        """Revoke a licence.

        Revoking again re-stamps the revocation time and, when a reason is
        given, replaces the stored reason.

        Raises:
            NotFound: The key does not exist.
        """
        with self._store.transaction() as txn:
            licence = txn.licences.get(licence_key)
            if licence is None:
                raise NotFound(licence_key)
            was_active = licence.is_active
            licence = dataclasses.replace(
                licence,
                status=LicenceStatus.REVOKED,
                revoked_at=self._clock(),
                revocation_reason=reason or licence.revocation_reason,
            )
            txn.licences[licence_key] = licence
            if was_active:
                txn.stats.deactivate()
        logger.info("Licence revoked: %s (reason: %s)", licence_key, reason or "-")
        return licence

    def delete(self, licence_key: str) -> Licence:
        """Permanently remove a licence and back it out of the totals.

        Returns:
            The removed licence.

        Raises:
            NotFound: The key does not exist.
        """
        with self._store.transaction() as txn:
            licence = txn.licences.pop(licence_key, None)
            if licence is None:
                raise NotFound(licence_key)
            txn.stats.remove_sale()
            if licence.is_active:
                txn.stats.deactivate()
        logger.info("Licence deleted: %s", licence_key)
        return licence

    # ---- Reads ----

    def verify(self, licence_key: str, product_id: str) -> VerificationResult:
        """Check whether ``licence_key`` is currently valid for ``product_id``.

        Raises:
            InvalidArgument: The key or product identifier is blank.
        """
        if not licence_key:
            raise InvalidArgument("No licence key provided")
        if not product_id:
            raise InvalidArgument("Product identifier is required")
        snapshot = self._store.snapshot()
        return evaluate(licence_key, snapshot.licences.get(licence_key), product_id, self._clock())

    def get(self, licence_key: str) -> Optional[Licence]:
        return self._store.snapshot().licences.get(licence_key)

    def list_licences(
        self,
        status: Optional[str] = None,
        subscription_type: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Licence]:
        """Return licences, newest first, optionally filtered.

        ``search`` matches email, key or product name, case-insensitively.
        """
        licences = list(self._store.snapshot().licences.values())
        if status:
            licences = [l for l in licences if l.status.value == status]
        if subscription_type:
            licences = [l for l in licences if l.subscription_type.value == subscription_type]
        if search:
            needle = search.lower()
            licences = [
                l for l in licences
                if needle in l.email.lower()
                or needle in l.key.lower()
                or needle in l.product_name.lower()
            ]
        return sorted(licences, key=lambda l: l.created_at or _EPOCH, reverse=True)

    def stats(self) -> StatsAggregate:
        return self._store.snapshot().stats.copy()

    def audit_stats(self) -> StatsDrift:
        """Compare the recorded active count with the licence set."""
        snapshot = self._store.snapshot()
        drift = StatsDrift(
            recorded_active=snapshot.stats.active_subscriptions,
            actual_active=snapshot.count_active(),
            checked_at=self._clock(),
        )
        if not drift.in_sync:
            logger.warning(
                "Active subscription count drift: recorded %d, actual %d",
                drift.recorded_active, drift.actual_active,
            )
        return drift

    # ---- Internals ----

    def _prepare_issue(self, email, product_name, subscription_type, origin, payment_reference, amount):
        email = (email or "").strip()
        if not email:
            raise InvalidArgument("Email required")
        product_name = (product_name or "").strip() or self._default_product
        subscription_type = parse_subscription_type(subscription_type)
        try:
            origin = IssueOrigin(origin)
        except ValueError:
            raise InvalidArgument(f"Invalid issue origin '{origin}'") from None

        if amount is None:
            amount = self._prices[subscription_type.value]
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise InvalidArgument(f"Invalid amount '{amount}'") from None
        if amount < 0:
            raise InvalidArgument("Amount cannot be negative")

        return email, product_name, subscription_type, origin, payment_reference, amount

    def _insert(
        self,
        txn: Snapshot,
        email: str,
        product_name: str,
        subscription_type: SubscriptionType,
        origin: IssueOrigin,
        payment_reference: Optional[str],
        amount: float,
    ) -> Licence:
        key = self._unused_key(txn)
        now = self._clock()
        if origin == IssueOrigin.MANUAL:
            subscription_id = f"MANUAL-{int(now.timestamp() * 1000)}"
        else:
            subscription_id = payment_reference

        licence = Licence(
            key=key,
            email=email,
            product_name=product_name,
            product_id=product_id_for(product_name),
            subscription_type=subscription_type,
            status=LicenceStatus.ACTIVE,
            created_at=now,
            expires_at=calculate_expiry(subscription_type, now),
            origin=origin,
            payment_reference=payment_reference,
            subscription_id=subscription_id,
        )
        txn.licences[key] = licence
        txn.stats.record_sale(amount)
        return licence

    def _unused_key(self, txn: Snapshot) -> str:
        for _ in range(self._max_key_attempts):
            key = self._keys.generate()
            if key not in txn.licences:
                return key
            logger.warning("Licence key collision on %s, regenerating", key)
        raise KeyGenerationError(
            f"Could not generate an unused licence key after {self._max_key_attempts} attempts"
        )

    @staticmethod
    def _log_issued(licence: Licence) -> None:
        logger.info(
            "Licence issued: %s for %s (%s, %s, expires %s)",
            licence.key, licence.email, licence.product_id,
            licence.subscription_type.value, licence.expires_at.isoformat(),
        )
