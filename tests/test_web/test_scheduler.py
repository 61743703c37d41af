"""Tests for the background scheduler."""

import tempfile
import unittest
from pathlib import Path
from unittest import mock

from web import create_app
from web.scheduler import run_stats_audit, scheduler
from web.services import get_licence_manager, get_licence_store


class TestScheduler(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.app = create_app({
            "TESTING": True,
            "LICENCE_STORAGE_PATH": str(Path(self._tmp.name) / "licences.json"),
            "EMAIL_HOST": "",
        })

    def tearDown(self):
        with self.app.app_context():
            get_licence_store().close()
        self._tmp.cleanup()

    def test_scheduler_not_started_in_testing_mode(self):
        """Scheduler should not be running when TESTING=True."""
        self.assertFalse(scheduler.running)

    def test_audit_in_sync(self):
        with self.app.app_context():
            get_licence_manager().issue("a@x.com", "ReplyBolt", "monthly")
        drift = run_stats_audit(self.app)
        self.assertTrue(drift.in_sync)
        self.assertEqual(drift.actual_active, 1)

    def test_audit_reports_drift(self):
        with self.app.app_context():
            get_licence_manager().issue("a@x.com", "ReplyBolt", "monthly")
            with get_licence_store().transaction() as txn:
                txn.stats.active_subscriptions = 5
        with self.assertLogs("licence.manager", level="WARNING"):
            drift = run_stats_audit(self.app)
        self.assertFalse(drift.in_sync)
        self.assertEqual(drift.recorded_active, 5)
        self.assertEqual(drift.actual_active, 1)

    def test_audit_failure_returns_none(self):
        with self.app.app_context():
            mgr = get_licence_manager()
        with mock.patch.object(mgr, "audit_stats", side_effect=RuntimeError("boom")):
            self.assertIsNone(run_stats_audit(self.app))


if __name__ == "__main__":
    unittest.main()
