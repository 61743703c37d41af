#!/usr/bin/env python3
"""
Licence Server - Main Entry Point.

Usage:
    python main.py licence issue <email> [--product <name>] [--type monthly|annual|lifetime]
    python main.py licence verify <key> <product_id>
    python main.py licence list [--status <s>] [--type <t>] [--search <q>]
    python main.py licence revoke <key> [--reason <text>]
    python main.py licence cancel <payment_reference>
    python main.py licence delete <key>
    python main.py licence stats
    python main.py serve [--host <h>] [--port <p>]
"""

import argparse
import logging
import sys

from config.settings import (
    DEFAULT_PRODUCT_NAME,
    HOST,
    KEY_PREFIX,
    LICENCE_STORAGE_PATH,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
    SUBSCRIPTION_PRICES,
)
from licence.errors import LicenceError, NotFound
from licence.generator import KeyGenerator
from licence.manager import LicenceManager
from licence.models import IssueOrigin, LicenceStatus, SubscriptionType
from licence.store import LicenceStore

logger = logging.getLogger(__name__)


def _open_manager() -> tuple[LicenceStore, LicenceManager]:
    store = LicenceStore.open(LICENCE_STORAGE_PATH, default_product=DEFAULT_PRODUCT_NAME)
    manager = LicenceManager(
        store,
        key_generator=KeyGenerator(KEY_PREFIX),
        prices=SUBSCRIPTION_PRICES,
        default_product=DEFAULT_PRODUCT_NAME,
    )
    return store, manager


# ============================================================
# Licence Commands
# ============================================================

def cmd_licence_issue(args, mgr: LicenceManager):
    """Issue a new licence."""
    lic = mgr.issue(
        email=args.email,
        product_name=args.product,
        subscription_type=args.type,
        origin=IssueOrigin.MANUAL,
    )
    print(f"Key:       {lic.key}")
    print(f"Email:     {lic.email}")
    print(f"Product:   {lic.product_name} ({lic.product_id})")
    print(f"Type:      {lic.subscription_type.value}")
    print(f"Expires:   {lic.expires_at.isoformat()}")


def cmd_licence_verify(args, mgr: LicenceManager):
    """Verify a licence key for a product."""
    result = mgr.verify(args.key, args.product_id)
    if result.is_valid:
        print(f"VALID - {result.subscription_type}, expires {result.expires_at.isoformat()}")
    else:
        print(f"INVALID - {result.reason.value}")


def cmd_licence_list(args, mgr: LicenceManager):
    """List licences."""
    licences = mgr.list_licences(status=args.status, subscription_type=args.type, search=args.search)
    if not licences:
        print("No licences found.")
        return
    for lic in licences:
        print(
            f"  {lic.key:24s}  {lic.email:30s}  {lic.product_id:20s}  "
            f"{lic.subscription_type.value:9s}  [{lic.status.value}]"
        )


def cmd_licence_revoke(args, mgr: LicenceManager):
    """Revoke a licence."""
    mgr.revoke(args.key, args.reason)
    print(f"Licence revoked: {args.key}")


def cmd_licence_cancel(args, mgr: LicenceManager):
    """Cancel the licence bound to a payment subscription."""
    lic = mgr.cancel(args.reference)
    if lic is None:
        print(f"No licence for subscription: {args.reference}")
    else:
        print(f"Licence {lic.key} is {lic.status.value}")


def cmd_licence_delete(args, mgr: LicenceManager):
    """Delete a licence."""
    mgr.delete(args.key)
    print(f"Licence deleted: {args.key}")


def cmd_licence_stats(args, mgr: LicenceManager):
    """Show sales statistics."""
    stats = mgr.stats()
    drift = mgr.audit_stats()
    print(f"Total sales:          {stats.total_sales}")
    print(f"Active subscriptions: {stats.active_subscriptions}")
    print(f"Revenue:              ${stats.revenue:.2f}")
    if not drift.in_sync:
        print(f"WARNING: {drift.actual_active} licence(s) are actually active")


def cmd_serve(args):
    """Run the web server."""
    from web import create_app

    app = create_app()
    app.run(host=args.host, port=args.port)


# ============================================================
# Parser
# ============================================================

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(description="Licence Server")
    subparsers = parser.add_subparsers(dest="module", help="Module")

    # --- Licence commands ---
    lic_parser = subparsers.add_parser("licence", help="Licence management")
    lic_sub = lic_parser.add_subparsers(dest="action")

    issue = lic_sub.add_parser("issue", help="Issue a new licence")
    issue.add_argument("email", help="Owner email")
    issue.add_argument("--product", default=DEFAULT_PRODUCT_NAME, help="Product name")
    issue.add_argument(
        "--type",
        choices=[t.value for t in SubscriptionType],
        default=SubscriptionType.MONTHLY.value,
    )
    issue.set_defaults(func=cmd_licence_issue)

    ver = lic_sub.add_parser("verify", help="Verify a licence key")
    ver.add_argument("key", help="Licence key")
    ver.add_argument("product_id", help="Product identifier, e.g. reply-bolt")
    ver.set_defaults(func=cmd_licence_verify)

    lst = lic_sub.add_parser("list", help="List licences")
    lst.add_argument("--status", choices=[s.value for s in LicenceStatus])
    lst.add_argument("--type", choices=[t.value for t in SubscriptionType])
    lst.add_argument("--search", help="Match email, key or product name")
    lst.set_defaults(func=cmd_licence_list)

    rev = lic_sub.add_parser("revoke", help="Revoke a licence")
    rev.add_argument("key", help="Licence key to revoke")
    rev.add_argument("--reason", help="Revocation reason")
    rev.set_defaults(func=cmd_licence_revoke)

    can = lic_sub.add_parser("cancel", help="Cancel by payment subscription id")
    can.add_argument("reference", help="Payment subscription id")
    can.set_defaults(func=cmd_licence_cancel)

    dele = lic_sub.add_parser("delete", help="Delete a licence")
    dele.add_argument("key", help="Licence key to delete")
    dele.set_defaults(func=cmd_licence_delete)

    st = lic_sub.add_parser("stats", help="Show sales statistics")
    st.set_defaults(func=cmd_licence_stats)

    # --- Web server ---
    srv = subparsers.add_parser("serve", help="Run the web server")
    srv.add_argument("--host", default=HOST)
    srv.add_argument("--port", type=int, default=PORT)
    srv.set_defaults(func=cmd_serve)

    return parser


def main():
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    parser = build_parser()
    args = parser.parse_args()

    if not args.module:
        parser.print_help()
        sys.exit(1)

    if not hasattr(args, "func"):
        parser.parse_args([args.module, "--help"])
        sys.exit(1)

    if args.module == "serve":
        args.func(args)
        return

    store, mgr = _open_manager()
    try:
        args.func(args, mgr)
    except NotFound as e:
        print(str(e))
        sys.exit(1)
    except LicenceError as e:
        logger.error("%s", e)
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
