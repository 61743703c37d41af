"""Licence emails sent over SMTP.

Sending is best effort: every method returns ``True`` on success and
``False`` otherwise, logging the failure. Callers never see an exception
from here, so a licence change is never undone by a mail problem.
"""

import html
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from licence.models import Licence, SubscriptionType

logger = logging.getLogger(__name__)

SUPPORT_ADDRESS = "support@replybolt.com"


class LicenceMailer:
    """Send licence, revocation and deletion emails to licence owners."""

    def __init__(
        self,
        smtp_host: str = "",
        smtp_port: int = 587,
        username: str = "",
        password: str = "",
        from_addr: str = "",
        use_tls: bool = True,
        prices: dict | None = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.use_tls = use_tls
        self.prices = prices or {}

    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.username and self.password)

    def send_licence_email(self, licence: Licence) -> bool:
        """Email a newly issued licence key to its owner."""
        plan = licence.subscription_type.value.capitalize()
        if licence.subscription_type == SubscriptionType.LIFETIME:
            expiry = "This licence never expires!"
        else:
            expiry = f"Valid until: {_format_date(licence.expires_at)}"

        text = (
            f"Your {licence.product_name} Licence is Ready!\n\n"
            f"Thank you for your purchase! Your licence has been activated.\n\n"
            f"LICENCE KEY: {licence.key}\n\n"
            f"Licence Details:\n"
            f"- Extension: {licence.product_name}\n"
            f"- Plan: {plan} Subscription\n"
            f"- Email: {licence.email}\n"
            f"- Status: Active\n"
            f"- {expiry}\n\n"
            f"How to Activate:\n"
            f"1. Open {licence.product_name} in Chrome\n"
            f"2. Go to Settings/Options\n"
            f"3. Enter your licence key\n"
            f"4. Click Activate\n\n"
            f"Need help? Contact {SUPPORT_ADDRESS}\n"
        )
        return self._send(
            licence,
            subject=f"Your {licence.product_name} Licence Key - {plan} Plan",
            text=text,
            heading=f"Your {licence.product_name} Licence is Ready!",
        )

    def send_revocation_email(self, licence: Licence) -> bool:
        """Tell the owner their licence has been revoked."""
        reason = (
            f"Reason for revocation: {licence.revocation_reason}\n\n"
            if licence.revocation_reason else ""
        )
        text = (
            f"Licence Revoked - {licence.product_name}\n\n"
            f"We're writing to inform you that your licence has been revoked.\n\n"
            f"REVOKED LICENCE KEY: {licence.key}\n\n"
            f"{reason}"
            f"What happens next:\n"
            f"- The extension will stop working with this licence key\n"
            f"- You will need a new licence to continue using {licence.product_name}\n\n"
            f"If you believe this was made in error, please contact {SUPPORT_ADDRESS}\n"
        )
        return self._send(
            licence,
            subject=f"Important: Your {licence.product_name} Licence Has Been Revoked",
            text=text,
            heading=f"Licence Revoked - {licence.product_name}",
        )

    def send_deletion_email(self, licence: Licence) -> bool:
        """Confirm to the owner that their licence was deleted."""
        offers = "".join(
            f"- {plan.capitalize()} - ${price:.2f}\n"
            for plan, price in self.prices.items()
        )
        text = (
            f"Licence Deleted - {licence.product_name}\n\n"
            f"This email confirms that your {licence.product_name} licence has been "
            f"permanently deleted from our system.\n\n"
            f"What this means:\n"
            f"- Your {licence.subscription_type.value} subscription has been removed\n"
            f"- The extension will no longer function with your previous licence key\n"
            f"- This action cannot be undone\n\n"
            + (f"Want to continue? You'll need to purchase a new licence:\n{offers}\n" if offers else "")
            + f"If you have any questions, please contact {SUPPORT_ADDRESS}\n"
        )
        return self._send(
            licence,
            subject=f"{licence.product_name} Licence Deleted - Confirmation",
            text=text,
            heading=f"Licence Deleted - {licence.product_name}",
        )

    def _send(self, licence: Licence, subject: str, text: str, heading: str) -> bool:
        if not self.is_configured():
            logger.info("Email not configured, skipping '%s'", subject)
            return False

        footer = (
            f"This is an automated email regarding your {licence.product_name} licence.\n"
            f"© {datetime.now(timezone.utc).year} {licence.product_name}. All rights reserved.\n"
        )
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_addr or f"{licence.product_name} <noreply@replybolt.com>"
        msg["To"] = licence.email
        msg.attach(MIMEText(text + "\n" + footer, "plain"))
        msg.attach(MIMEText(self._build_html_body(heading, text, footer), "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(msg["From"], [licence.email], msg.as_string())
            logger.info("Email '%s' sent to %s", subject, licence.email)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email '%s' to %s: %s", subject, licence.email, e)
            return False

    @staticmethod
    def _build_html_body(heading: str, text: str, footer: str) -> str:
        paragraphs = "".join(
            f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
            for block in text.split("\n\n")[1:] if block.strip()
        )
        return f"""
        <html><body style="font-family: sans-serif">
        <h2>{html.escape(heading)}</h2>
        {paragraphs}
        <p style="color:#666;font-size:12px">{html.escape(footer).replace(chr(10), '<br>')}</p>
        </body></html>
        """


def _format_date(moment: datetime) -> str:
    return moment.strftime("%B %d, %Y")
