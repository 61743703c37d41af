"""Backend service initialization for the web layer.

One licence store and manager exist per application; they are created by
:func:`init_services` and live in ``app.extensions`` until process exit.
"""

import atexit
import logging
import weakref

from flask import current_app

from licence.generator import KeyGenerator
from licence.manager import LicenceManager
from licence.models import Licence
from licence.store import LicenceStore
from notifications.mailer import LicenceMailer

logger = logging.getLogger(__name__)

EXTENSION_KEY = "licence_server"

# Stores opened by init_services, closed once at interpreter exit.
_open_stores = weakref.WeakSet()


@atexit.register
def _close_open_stores() -> None:
    for store in list(_open_stores):
        store.close()


def init_services(app) -> None:
    """Open the licence store and build the manager and mailer for ``app``."""
    config = app.config
    store = LicenceStore.open(
        config["LICENCE_STORAGE_PATH"],
        default_product=config["DEFAULT_PRODUCT_NAME"],
    )
    manager = LicenceManager(
        store,
        key_generator=KeyGenerator(config["KEY_PREFIX"]),
        prices=config["SUBSCRIPTION_PRICES"],
        default_product=config["DEFAULT_PRODUCT_NAME"],
    )
    mailer = LicenceMailer(
        smtp_host=config["EMAIL_HOST"],
        smtp_port=config["EMAIL_PORT"],
        username=config["EMAIL_USER"],
        password=config["EMAIL_PASS"],
        from_addr=config["EMAIL_FROM"],
        use_tls=config["EMAIL_USE_TLS"],
        prices=config["SUBSCRIPTION_PRICES"],
    )
    app.extensions[EXTENSION_KEY] = {
        "store": store,
        "manager": manager,
        "mailer": mailer,
    }
    _open_stores.add(store)


def get_licence_store() -> LicenceStore:
    return current_app.extensions[EXTENSION_KEY]["store"]


def get_licence_manager() -> LicenceManager:
    return current_app.extensions[EXTENSION_KEY]["manager"]


def get_mailer() -> LicenceMailer:
    return current_app.extensions[EXTENSION_KEY]["mailer"]


def notify(send, licence: Licence) -> bool:
    """Run a mailer method after a licence change, never raising."""
    try:
        return bool(send(licence))
    except Exception:
        logger.exception("Notification failed for licence %s", licence.key)
        return False
