"""Tests for licence key generation, product identifiers and expiry."""

import unittest
from datetime import datetime, timezone

from licence.errors import InvalidArgument
from licence.generator import (
    KeyGenerator,
    add_months,
    calculate_expiry,
    parse_subscription_type,
    product_id_for,
)
from licence.models import SubscriptionType


class TestKeyGenerator(unittest.TestCase):
    """Test KeyGenerator methods."""

    def setUp(self):
        self.generator = KeyGenerator("RB")

    def test_key_format(self):
        key = self.generator.generate()
        parts = key.split("-")
        self.assertEqual(parts[0], "RB")
        self.assertEqual(len(parts), 5)
        for group in parts[1:]:
            self.assertEqual(len(group), 4)
            int(group, 16)
        self.assertRegex(key, r"^RB-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}$")

    def test_unique_keys(self):
        keys = {self.generator.generate() for _ in range(500)}
        self.assertEqual(len(keys), 500)

    def test_format_check(self):
        self.assertTrue(self.generator.is_key_format_valid(self.generator.generate()))
        self.assertFalse(self.generator.is_key_format_valid("not-a-key"))
        self.assertFalse(self.generator.is_key_format_valid("XX-1234-5678-9ABC-DEF0"))
        self.assertFalse(self.generator.is_key_format_valid(""))

    def test_custom_prefix(self):
        key = KeyGenerator("QP").generate()
        self.assertTrue(key.startswith("QP-"))

    def test_invalid_prefix_raises(self):
        with self.assertRaises(InvalidArgument):
            KeyGenerator("replybolt")


class TestProductId(unittest.TestCase):

    def test_camel_case(self):
        self.assertEqual(product_id_for("ReplyBolt"), "reply-bolt")

    def test_spaces(self):
        self.assertEqual(product_id_for("My Extension"), "my-extension")

    def test_whitespace_runs_collapse(self):
        self.assertEqual(product_id_for("QuickReply   Pro"), "quick-reply-pro")

    def test_single_word(self):
        self.assertEqual(product_id_for("Bidlancer"), "bidlancer")

    def test_deterministic(self):
        self.assertEqual(product_id_for("AutoResponder"), product_id_for("AutoResponder"))


class TestExpiry(unittest.TestCase):

    def setUp(self):
        self.issued = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

    def test_monthly(self):
        expires = calculate_expiry("monthly", self.issued)
        self.assertEqual(expires, datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc))

    def test_annual(self):
        expires = calculate_expiry(SubscriptionType.ANNUAL, self.issued)
        self.assertEqual(expires, datetime(2027, 3, 15, 12, 0, tzinfo=timezone.utc))

    def test_lifetime(self):
        expires = calculate_expiry("lifetime", self.issued)
        self.assertEqual(expires.year, 2126)

    def test_month_end_clamps(self):
        jan31 = datetime(2026, 1, 31, tzinfo=timezone.utc)
        self.assertEqual(add_months(jan31, 1), datetime(2026, 2, 28, tzinfo=timezone.utc))

    def test_december_rolls_year(self):
        dec = datetime(2026, 12, 10, tzinfo=timezone.utc)
        self.assertEqual(add_months(dec, 1), datetime(2027, 1, 10, tzinfo=timezone.utc))

    def test_leap_day_annual(self):
        leap = datetime(2028, 2, 29, tzinfo=timezone.utc)
        expires = calculate_expiry("annual", leap)
        self.assertEqual(expires, datetime(2029, 2, 28, tzinfo=timezone.utc))

    def test_unknown_type_raises(self):
        with self.assertRaises(InvalidArgument):
            calculate_expiry("weekly", self.issued)

    def test_parse_subscription_type(self):
        self.assertEqual(parse_subscription_type("annual"), SubscriptionType.ANNUAL)
        with self.assertRaises(InvalidArgument):
            parse_subscription_type(None)


if __name__ == "__main__":
    unittest.main()
