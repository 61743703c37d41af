"""Licence key generation, product identifiers and expiry dates."""

import calendar
import re
import secrets
from datetime import datetime

from licence.errors import InvalidArgument
from licence.models import SubscriptionType

LIFETIME_YEARS = 100

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WHITESPACE = re.compile(r"\s+")


class KeyGenerator:
    """Generate unguessable licence keys.

    Keys look like ``RB-1A2B-3C4D-5E6F-7A8B``: a product family prefix
    followed by four groups of four hex characters drawn from ``secrets``.
    """

    GROUPS = 4
    GROUP_SIZE = 4

    def __init__(self, prefix: str = "RB"):
        """Initialize the generator.

        Args:
            prefix: Product family prefix, two upper-case letters or digits.
        """
        if not re.fullmatch(r"[A-Z0-9]{2}", prefix):
            raise InvalidArgument(f"Invalid key prefix '{prefix}'")
        self.prefix = prefix
        self.pattern = re.compile(
            rf"^{prefix}(-[0-9A-F]{{{self.GROUP_SIZE}}}){{{self.GROUPS}}}$"
        )

    def generate(self) -> str:
        """Return a new random licence key."""
        random_hex = secrets.token_hex(self.GROUPS * self.GROUP_SIZE // 2).upper()
        groups = [
            random_hex[i:i + self.GROUP_SIZE]
            for i in range(0, len(random_hex), self.GROUP_SIZE)
        ]
        return "-".join([self.prefix, *groups])

    def is_key_format_valid(self, licence_key: str) -> bool:
        """Quick check if the key matches the expected format."""
        return bool(self.pattern.match(licence_key or ""))


def product_id_for(product_name: str) -> str:
    """Canonicalise a product name into the identifier licences bind to.

    ``"ReplyBolt"`` becomes ``"reply-bolt"`` and ``"My Extension"`` becomes
    ``"my-extension"``.
    """
    slug = _CAMEL_BOUNDARY.sub(r"\1-\2", product_name)
    slug = _WHITESPACE.sub("-", slug)
    return slug.lower()


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def add_years(moment: datetime, years: int) -> datetime:
    return add_months(moment, years * 12)


def parse_subscription_type(value) -> SubscriptionType:
    """Map a raw value onto the closed set of subscription types."""
    if isinstance(value, SubscriptionType):
        return value
    try:
        return SubscriptionType(value)
    except ValueError:
        raise InvalidArgument(
            f"Invalid subscription type '{value}'. "
            f"Must be one of: {[t.value for t in SubscriptionType]}"
        ) from None


def calculate_expiry(subscription_type, issued_at: datetime) -> datetime:
    """Compute the expiry timestamp for a licence issued at ``issued_at``."""
    subscription_type = parse_subscription_type(subscription_type)
    if subscription_type == SubscriptionType.MONTHLY:
        return add_months(issued_at, 1)
    if subscription_type == SubscriptionType.ANNUAL:
        return add_years(issued_at, 1)
    return add_years(issued_at, LIFETIME_YEARS)
