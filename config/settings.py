"""Project-wide settings and defaults."""

import os
from pathlib import Path

# Base paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("LICENCE_DATA_DIR", str(PROJECT_ROOT / "data")))

# Licence store
LICENCE_STORAGE_PATH = DATA_DIR / "licences.json"
KEY_PREFIX = os.environ.get("LICENCE_KEY_PREFIX", "RB")
DEFAULT_PRODUCT_NAME = os.environ.get("DEFAULT_PRODUCT_NAME", "ReplyBolt")

# Revenue recorded per sale when the payment event carries no amount
SUBSCRIPTION_PRICES = {
    "monthly": float(os.environ.get("PRICE_MONTHLY", "9.99")),
    "annual": float(os.environ.get("PRICE_ANNUAL", "99")),
    "lifetime": float(os.environ.get("PRICE_LIFETIME", "199")),
}

# Admin (HTTP Basic auth)
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "changeme")
FLASK_SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-licence-server-key")

# Web server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))

# Outbound email
EMAIL_HOST = os.environ.get("EMAIL_HOST", "")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "587"))
EMAIL_USER = os.environ.get("EMAIL_USER", "")
EMAIL_PASS = os.environ.get("EMAIL_PASS", "")
EMAIL_FROM = os.environ.get("EMAIL_FROM", "")
EMAIL_USE_TLS = os.environ.get("EMAIL_USE_TLS", "true").lower() == "true"

# Scheduler
SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true"
STATS_AUDIT_INTERVAL_HOURS = int(os.environ.get("STATS_AUDIT_INTERVAL_HOURS", "24"))

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
