"""Admin authentication via HTTP Basic auth."""

import functools
import secrets

from flask import Response, current_app, has_request_context, jsonify, request


def check_admin_credentials(username: str, password: str) -> bool:
    """Compare credentials against the configured admin account."""
    expected_user = current_app.config["ADMIN_USERNAME"]
    expected_password = current_app.config["ADMIN_PASSWORD"]
    return secrets.compare_digest(username or "", expected_user) and secrets.compare_digest(
        password or "", expected_password
    )


def admin_required(f):
    """Decorator: require the admin's Basic auth credentials."""
    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        auth = request.authorization
        if auth is None or not check_admin_credentials(auth.username, auth.password):
            if request.is_json or request.path.startswith("/api/"):
                return jsonify({"error": "Unauthorized"}), 401
            return Response(
                "Authentication required",
                401,
                {"WWW-Authenticate": 'Basic realm="Admin Area"'},
            )
        return f(*args, **kwargs)
    return decorated_function


def current_username() -> str:
    """Return the authenticated admin's username, or 'system'."""
    if not has_request_context():
        return "system"
    auth = request.authorization
    if auth and auth.username:
        return auth.username
    return "system"
