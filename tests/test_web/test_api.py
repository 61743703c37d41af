"""Tests for the JSON API endpoints."""

import base64
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from web import create_app
from web.services import get_licence_manager, get_licence_store

ADMIN_AUTH = {
    "Authorization": "Basic " + base64.b64encode(b"admin:secret").decode(),
}


def make_test_app(tmpdir, **overrides):
    config = {
        "TESTING": True,
        "WTF_CSRF_ENABLED": False,
        "LICENCE_STORAGE_PATH": str(Path(tmpdir) / "licences.json"),
        "ADMIN_USERNAME": "admin",
        "ADMIN_PASSWORD": "secret",
        "EMAIL_HOST": "",
    }
    config.update(overrides)
    return create_app(config)


class APITestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.app = make_test_app(self._tmp.name)
        self.client = self.app.test_client()

    def tearDown(self):
        with self.app.app_context():
            get_licence_store().close()
        self._tmp.cleanup()

    def post_json(self, url, payload, headers=None):
        return self.client.post(
            url,
            data=json.dumps(payload),
            content_type="application/json",
            headers=headers or {},
        )

    def create_licence(self, **payload):
        body = {"email": "a@x.com", "subscriptionType": "monthly", **payload}
        response = self.post_json("/api/admin/create-license", body, ADMIN_AUTH)
        self.assertEqual(response.status_code, 200)
        return response.get_json()["licenseKey"]


class TestVerifyEndpoint(APITestCase):

    def test_valid_licence(self):
        key = self.create_licence(extensionName="My Extension")
        response = self.post_json("/api/verify", {"licenseKey": key, "extensionId": "my-extension"})
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertTrue(data["valid"])
        self.assertEqual(data["email"], "a@x.com")
        self.assertEqual(data["subscriptionType"], "monthly")
        self.assertEqual(data["extensionName"], "My Extension")

    def test_product_mismatch(self):
        key = self.create_licence(extensionName="My Extension")
        data = self.post_json(
            "/api/verify", {"licenseKey": key, "extensionId": "other-extension"}
        ).get_json()
        self.assertFalse(data["valid"])
        self.assertEqual(data["reason"], "product mismatch")
        self.assertIn("different extension", data["error"])
        self.assertIsNone(data["email"])

    def test_unknown_key(self):
        data = self.post_json(
            "/api/verify", {"licenseKey": "RB-0000-0000-0000-0000", "extensionId": "reply-bolt"}
        ).get_json()
        self.assertFalse(data["valid"])
        self.assertEqual(data["reason"], "unknown key")

    def test_missing_fields(self):
        data = self.post_json("/api/verify", {}).get_json()
        self.assertFalse(data["valid"])
        self.assertIn("error", data)
        data = self.post_json("/api/verify", {"licenseKey": "RB-0000-0000-0000-0000"}).get_json()
        self.assertEqual(data["error"], "Extension ID is required")

    def test_verify_needs_no_auth(self):
        response = self.post_json("/api/verify", {"licenseKey": "x", "extensionId": "y"})
        self.assertEqual(response.status_code, 200)


class TestAdminEndpoints(APITestCase):

    def test_requires_auth(self):
        response = self.post_json("/api/admin/create-license", {"email": "a@x.com"})
        self.assertEqual(response.status_code, 401)
        bad = {"Authorization": "Basic " + base64.b64encode(b"admin:wrong").decode()}
        response = self.post_json("/api/admin/create-license", {"email": "a@x.com"}, bad)
        self.assertEqual(response.status_code, 401)

    def test_create(self):
        response = self.post_json(
            "/api/admin/create-license",
            {"email": "a@x.com", "subscriptionType": "lifetime"},
            ADMIN_AUTH,
        )
        data = response.get_json()
        self.assertTrue(data["success"])
        self.assertRegex(data["licenseKey"], r"^RB-[0-9A-F]{4}(-[0-9A-F]{4}){3}$")
        self.assertFalse(data["emailSent"])
        with self.app.app_context():
            lic = get_licence_manager().get(data["licenseKey"])
        self.assertEqual(lic.product_id, "reply-bolt")

    def test_create_missing_email(self):
        response = self.post_json("/api/admin/create-license", {}, ADMIN_AUTH)
        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.get_json())

    def test_create_invalid_type(self):
        response = self.post_json(
            "/api/admin/create-license",
            {"email": "a@x.com", "subscriptionType": "weekly"},
            ADMIN_AUTH,
        )
        self.assertEqual(response.status_code, 400)

    def test_revoke(self):
        key = self.create_licence()
        response = self.post_json(
            "/api/admin/revoke-license", {"licenseKey": key, "reason": "refund"}, ADMIN_AUTH
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["success"])
        data = self.post_json("/api/verify", {"licenseKey": key, "extensionId": "reply-bolt"}).get_json()
        self.assertEqual(data["reason"], "revoked")

    def test_revoke_not_found(self):
        response = self.post_json(
            "/api/admin/revoke-license", {"licenseKey": "RB-0000-0000-0000-0000"}, ADMIN_AUTH
        )
        self.assertEqual(response.status_code, 404)

    def test_revoke_missing_key(self):
        response = self.post_json("/api/admin/revoke-license", {}, ADMIN_AUTH)
        self.assertEqual(response.status_code, 400)

    def test_delete(self):
        key = self.create_licence()
        response = self.post_json("/api/admin/delete-license", {"licenseKey": key}, ADMIN_AUTH)
        self.assertEqual(response.status_code, 200)
        stats = self.client.get("/api/admin/stats", headers=ADMIN_AUTH).get_json()
        self.assertEqual(stats["total_sales"], 0)
        self.assertEqual(stats["active_subscriptions"], 0)

    def test_delete_not_found_leaves_stats(self):
        self.create_licence()
        response = self.post_json(
            "/api/admin/delete-license", {"licenseKey": "RB-0000-0000-0000-0000"}, ADMIN_AUTH
        )
        self.assertEqual(response.status_code, 404)
        stats = self.client.get("/api/admin/stats", headers=ADMIN_AUTH).get_json()
        self.assertEqual(stats["total_sales"], 1)

    def test_list_and_get(self):
        key = self.create_licence(email="bob@x.com")
        self.create_licence(email="carol@x.com", subscriptionType="annual")
        response = self.client.get("/api/admin/licenses?type=monthly", headers=ADMIN_AUTH)
        data = response.get_json()
        self.assertEqual([l["key"] for l in data], [key])
        response = self.client.get(f"/api/admin/licenses/{key}", headers=ADMIN_AUTH)
        self.assertEqual(response.get_json()["email"], "bob@x.com")
        response = self.client.get("/api/admin/licenses/RB-0000-0000-0000-0000", headers=ADMIN_AUTH)
        self.assertEqual(response.status_code, 404)

    def test_stats(self):
        self.create_licence()
        self.create_licence(subscriptionType="annual")
        data = self.client.get("/api/admin/stats", headers=ADMIN_AUTH).get_json()
        self.assertEqual(data["total_sales"], 2)
        self.assertEqual(data["active_subscriptions"], 2)
        self.assertAlmostEqual(data["revenue"], 108.99)
        self.assertTrue(data["in_sync"])

    def test_storage_failure_returns_503(self):
        with mock.patch("licence.store.os.replace", side_effect=OSError("disk full")):
            response = self.post_json("/api/admin/create-license", {"email": "a@x.com"}, ADMIN_AUTH)
        self.assertEqual(response.status_code, 503)
        self.assertTrue(response.get_json()["retryable"])

    def test_email_failure_does_not_fail_request(self):
        with self.app.app_context():
            from web.services import get_mailer
            mailer = get_mailer()
        with mock.patch.object(mailer, "send_licence_email", side_effect=RuntimeError("smtp down")):
            response = self.post_json("/api/admin/create-license", {"email": "a@x.com"}, ADMIN_AUTH)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.get_json()["emailSent"])


if __name__ == "__main__":
    unittest.main()
