"""Admin dashboard: stats, licence list, and create, revoke and delete forms."""

from flask import Blueprint, flash, redirect, render_template, request, url_for

from licence.errors import InvalidArgument, LicenceError, NotFound
from licence.models import IssueOrigin, LicenceStatus, SubscriptionType
from web.auth import admin_required
from web.services import get_licence_manager, get_mailer, notify

bp = Blueprint("dashboard", __name__)


@bp.route("/")
@admin_required
def index():
    mgr = get_licence_manager()
    status = request.args.get("status", "")
    subscription_type = request.args.get("type", "")
    search = request.args.get("q", "").strip()
    licences = mgr.list_licences(
        status=status or None,
        subscription_type=subscription_type or None,
        search=search or None,
    )
    return render_template(
        "admin/dashboard.html",
        licences=licences,
        total=len(mgr.list_licences()),
        stats=mgr.stats(),
        email_configured=get_mailer().is_configured(),
        default_product=mgr.default_product,
        statuses=list(LicenceStatus),
        subscription_types=list(SubscriptionType),
        status=status,
        subscription_type=subscription_type,
        search=search,
    )


@bp.route("/licences/create", methods=["POST"])
@admin_required
def create():
    mgr = get_licence_manager()
    try:
        licence = mgr.issue(
            email=request.form.get("email", ""),
            product_name=request.form.get("extension_name", "") or mgr.default_product,
            subscription_type=request.form.get("subscription_type", ""),
            origin=IssueOrigin.MANUAL,
        )
    except InvalidArgument as e:
        flash(f"Error: {e}", "danger")
        return redirect(url_for("dashboard.index"))
    except LicenceError as e:
        flash(f"Licence could not be created: {e}", "danger")
        return redirect(url_for("dashboard.index"))

    message = f"Licence created: {licence.key}"
    if notify(get_mailer().send_licence_email, licence):
        message += f". Email sent to {licence.email}"
    else:
        message += ". Please share this licence key with the user"
    flash(message, "success")
    return redirect(url_for("dashboard.index"))


@bp.route("/licences/<licence_key>/revoke", methods=["POST"])
@admin_required
def revoke(licence_key):
    reason = request.form.get("reason", "").strip() or None
    try:
        licence = get_licence_manager().revoke(licence_key, reason)
    except NotFound:
        flash(f"Licence not found: {licence_key}", "danger")
        return redirect(url_for("dashboard.index"))
    except LicenceError as e:
        flash(f"Licence could not be revoked: {e}", "danger")
        return redirect(url_for("dashboard.index"))

    notify(get_mailer().send_revocation_email, licence)
    flash(f"Licence revoked: {licence_key}", "success")
    return redirect(url_for("dashboard.index"))


@bp.route("/licences/<licence_key>/delete", methods=["POST"])
@admin_required
def delete(licence_key):
    try:
        licence = get_licence_manager().delete(licence_key)
    except NotFound:
        flash(f"Licence not found: {licence_key}", "danger")
        return redirect(url_for("dashboard.index"))
    except LicenceError as e:
        flash(f"Licence could not be deleted: {e}", "danger")
        return redirect(url_for("dashboard.index"))

    notify(get_mailer().send_deletion_email, licence)
    flash(f"Licence deleted: {licence_key}", "success")
    return redirect(url_for("dashboard.index"))
