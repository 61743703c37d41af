"""JSON API: licence verification and admin licence management."""

import logging

from flask import Blueprint, jsonify, request

from licence.errors import InvalidArgument, KeyGenerationError, NotFound, StorageFailure
from licence.models import IssueOrigin, Licence
from licence.validator import VerifyReason
from web.auth import admin_required, current_username
from web.services import get_licence_manager, get_mailer, notify

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)

VERIFY_ERRORS = {
    VerifyReason.UNKNOWN_KEY: "Invalid license key",
    VerifyReason.PRODUCT_MISMATCH: "This license is for a different extension",
    VerifyReason.CANCELLED: "License has been cancelled",
    VerifyReason.REVOKED: "License has been revoked",
    VerifyReason.EXPIRED: "License has expired",
}


def _error(message, status=400, **extra):
    return jsonify({"error": message, **extra}), status


def licence_to_json(licence: Licence) -> dict:
    return {"key": licence.key, **licence.to_dict()}


@bp.errorhandler(StorageFailure)
def storage_failure(e):
    logger.error("Licence storage failure: %s", e)
    return _error("Storage unavailable, please retry", 503, retryable=True)


@bp.errorhandler(KeyGenerationError)
def key_generation_failure(e):
    logger.error("Licence key generation failed: %s", e)
    return _error("Could not generate a licence key", 500)


# ── Verification ─────────────────────────────────────────────────────

@bp.route("/verify", methods=["POST"])
def verify():
    data = request.get_json(silent=True) or {}
    licence_key = (data.get("licenseKey") or "").strip()
    product_id = (data.get("extensionId") or "").strip()

    if not licence_key:
        return jsonify({"valid": False, "error": "No license key provided"})
    if not product_id:
        return jsonify({"valid": False, "error": "Extension ID is required"})

    result = get_licence_manager().verify(licence_key, product_id)
    body = result.to_dict()
    if not result.is_valid:
        body["error"] = VERIFY_ERRORS[result.reason]
    return jsonify(body)


# ── Admin ────────────────────────────────────────────────────────────

@bp.route("/admin/create-license", methods=["POST"])
@admin_required
def create_licence():
    data = request.get_json(silent=True) or {}
    mgr = get_licence_manager()
    try:
        licence = mgr.issue(
            email=data.get("email"),
            product_name=data.get("extensionName") or mgr.default_product,
            subscription_type=data.get("subscriptionType") or "monthly",
            origin=IssueOrigin.MANUAL,
        )
    except InvalidArgument as e:
        return _error(str(e))

    logger.info("Licence %s created manually by %s", licence.key, current_username())
    email_sent = notify(get_mailer().send_licence_email, licence)
    return jsonify({
        "success": True,
        "licenseKey": licence.key,
        "expiresAt": licence.expires_at.isoformat(),
        "emailSent": email_sent,
    })


@bp.route("/admin/revoke-license", methods=["POST"])
@admin_required
def revoke_licence():
    data = request.get_json(silent=True) or {}
    licence_key = (data.get("licenseKey") or "").strip()
    if not licence_key:
        return _error("License key required")

    try:
        licence = get_licence_manager().revoke(licence_key, data.get("reason") or None)
    except NotFound:
        return _error("License not found", 404)

    logger.info("Licence %s revoked by %s", licence_key, current_username())
    email_sent = notify(get_mailer().send_revocation_email, licence)
    return jsonify({
        "success": True,
        "message": "License revoked successfully",
        "emailSent": email_sent,
    })


@bp.route("/admin/delete-license", methods=["POST"])
@admin_required
def delete_licence():
    data = request.get_json(silent=True) or {}
    licence_key = (data.get("licenseKey") or "").strip()
    if not licence_key:
        return _error("License key required")

    try:
        licence = get_licence_manager().delete(licence_key)
    except NotFound:
        return _error("License not found", 404)

    logger.info("Licence %s deleted by %s", licence_key, current_username())
    email_sent = notify(get_mailer().send_deletion_email, licence)
    return jsonify({
        "success": True,
        "message": "License deleted successfully",
        "emailSent": email_sent,
    })


@bp.route("/admin/licenses")
@admin_required
def list_licences():
    licences = get_licence_manager().list_licences(
        status=request.args.get("status"),
        subscription_type=request.args.get("type"),
        search=request.args.get("q"),
    )
    return jsonify([licence_to_json(l) for l in licences])


@bp.route("/admin/licenses/<licence_key>")
@admin_required
def get_licence(licence_key):
    licence = get_licence_manager().get(licence_key)
    if licence is None:
        return _error("License not found", 404)
    return jsonify(licence_to_json(licence))


@bp.route("/admin/stats")
@admin_required
def stats():
    mgr = get_licence_manager()
    drift = mgr.audit_stats()
    return jsonify({
        **mgr.stats().to_dict(),
        "actual_active": drift.actual_active,
        "in_sync": drift.in_sync,
    })
