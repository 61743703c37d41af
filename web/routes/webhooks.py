"""Payment provider webhooks."""

import logging
from typing import Optional

from flask import Blueprint, jsonify, request

from licence.errors import InvalidArgument, KeyGenerationError, StorageFailure
from licence.events import EventAction, PaymentEvent, handle_payment_event
from web.services import get_licence_manager, get_mailer, notify

logger = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__)


def _parse_amount(value) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable payment amount %r", value)
        return None


def parse_paypal_event(payload: dict) -> PaymentEvent:
    """Reduce a PayPal webhook body to a :class:`PaymentEvent`.

    Sale events carry the subscription id as ``billing_agreement_id``;
    subscription events carry it as ``id``.
    """
    resource = payload.get("resource") or {}
    subscriber = resource.get("subscriber") or {}
    payer = resource.get("payer") or {}
    payer_info = payer.get("payer_info") or {}

    email = (
        subscriber.get("email_address")
        or payer.get("email_address")
        or payer_info.get("email")
    )

    amount = (resource.get("amount") or {}).get("total")
    if amount is None:
        last_payment = (resource.get("billing_info") or {}).get("last_payment") or {}
        amount = (last_payment.get("amount") or {}).get("value")

    return PaymentEvent(
        event_kind=payload.get("event_type", ""),
        reference_id=resource.get("billing_agreement_id") or resource.get("id"),
        email=email,
        plan_id=resource.get("plan_id"),
        amount=_parse_amount(amount),
        product_name=resource.get("custom_id") or resource.get("custom"),
    )


@bp.route("/paypal", methods=["POST"])
def paypal():
    payload = request.get_json(silent=True) or {}
    event = parse_paypal_event(payload)
    logger.info("PayPal webhook received: %s", event.event_kind or "<none>")

    try:
        outcome = handle_payment_event(get_licence_manager(), event)
    except InvalidArgument as e:
        logger.warning("Rejected PayPal event %s: %s", event.event_kind, e)
        return jsonify({"error": str(e)}), 400
    except (StorageFailure, KeyGenerationError):
        logger.exception("Webhook processing failed for %s", event.event_kind)
        return jsonify({"error": "Webhook processing failed"}), 500

    if outcome.action == EventAction.ISSUED:
        notify(get_mailer().send_licence_email, outcome.licence)

    return "OK", 200
