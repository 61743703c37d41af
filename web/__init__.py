"""Flask application factory for the licence server."""

import logging
import time
from datetime import datetime, timezone

from dotenv import load_dotenv
load_dotenv()  # Load .env file if present (already gitignored)

from flask import Flask, jsonify, render_template, request
from flask_wtf.csrf import CSRFProtect

csrf = CSRFProtect()

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(test_config=None):
    """Create and configure the Flask application.

    Args:
        test_config: Optional mapping applied over the defaults, e.g.
            ``{"TESTING": True, "LICENCE_STORAGE_PATH": tmp_path}``.
    """
    from config import settings

    app = Flask(
        __name__,
        template_folder="templates",
    )
    app.config["SECRET_KEY"] = settings.FLASK_SECRET_KEY
    app.config["WTF_CSRF_TIME_LIMIT"] = 3600
    app.config["LICENCE_STORAGE_PATH"] = str(settings.LICENCE_STORAGE_PATH)
    app.config["KEY_PREFIX"] = settings.KEY_PREFIX
    app.config["DEFAULT_PRODUCT_NAME"] = settings.DEFAULT_PRODUCT_NAME
    app.config["SUBSCRIPTION_PRICES"] = dict(settings.SUBSCRIPTION_PRICES)
    app.config["ADMIN_USERNAME"] = settings.ADMIN_USERNAME
    app.config["ADMIN_PASSWORD"] = settings.ADMIN_PASSWORD
    app.config["EMAIL_HOST"] = settings.EMAIL_HOST
    app.config["EMAIL_PORT"] = settings.EMAIL_PORT
    app.config["EMAIL_USER"] = settings.EMAIL_USER
    app.config["EMAIL_PASS"] = settings.EMAIL_PASS
    app.config["EMAIL_FROM"] = settings.EMAIL_FROM
    app.config["EMAIL_USE_TLS"] = settings.EMAIL_USE_TLS
    app.config["SCHEDULER_ENABLED"] = settings.SCHEDULER_ENABLED
    if test_config:
        app.config.update(test_config)

    csrf.init_app(app)

    from web.services import init_services
    init_services(app)

    from web.routes.api import bp as api_bp
    from web.routes.dashboard import bp as dashboard_bp
    from web.routes.webhooks import bp as webhooks_bp

    app.register_blueprint(dashboard_bp, url_prefix="/admin")
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(webhooks_bp, url_prefix="/webhook")
    csrf.exempt(api_bp)
    csrf.exempt(webhooks_bp)

    started = time.monotonic()

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith(("/api/", "/webhook/")):
            return jsonify({"error": "Not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def server_error(e):
        if request.path.startswith(("/api/", "/webhook/")):
            return jsonify({"error": "Internal server error"}), 500
        return render_template("errors/500.html"), 500

    @app.route("/health")
    def health_check():
        from web.services import get_mailer
        return jsonify({
            "status": "ok",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "emailConfigured": get_mailer().is_configured(),
        }), 200

    # Start scheduler (only in non-testing mode)
    if not app.config.get("TESTING") and app.config.get("SCHEDULER_ENABLED"):
        from web.scheduler import init_scheduler
        init_scheduler(app)

    return app
