"""Outbound notifications for licence owners."""

from notifications.mailer import LicenceMailer

__all__ = ["LicenceMailer"]
