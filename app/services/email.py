"""Outbound mail.

Sends through SMTP when it is configured. Without SMTP settings the message is
written to the application log outside production. In production nothing is
sent and `send` returns False.
"""

import logging
import smtplib
from email.mime.text import MIMEText

from app.config import get_settings

logger = logging.getLogger("tourbook")


class EmailService:
    """Delivers plain-text notifications."""

    def __init__(self) -> None:
        settings = get_settings()
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME
        self.password = settings.SMTP_PASSWORD
        self.sender = settings.EMAIL_FROM
        self.is_production = settings.is_production

    def send(self, to_email: str, subject: str, body: str) -> bool:
        """Send a message. Returns True if it was handed off, False otherwise."""
        if not self.host:
            if self.is_production:
                logger.error("SMTP_HOST is not set; cannot send email to %s", to_email)
                return False
            logger.info("EMAIL to=%s subject=%r\n%s", to_email, subject, body)
            return True

        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_email

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.sender, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False

        logger.info("Email sent to %s: %s", to_email, subject)
        return True


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
