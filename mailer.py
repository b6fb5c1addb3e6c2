# mailer.py
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from config import config

logger = logging.getLogger(__name__)


class Mailer:
    """SMTP sender used by the password reset flow"""

    def __init__(self, host: str, port: int, user: str, password: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password

    def send(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = self.user
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as smtp:
            smtp.login(self.user, self.password)
            smtp.send_message(message)
        logger.info(f"Sent '{subject}' to {to}")

    def send_password_reset(self, to: str, name: str, reset_link: str) -> None:
        html = f"""
            <h1>Password Reset Request</h1>
            <p>Hello {name},</p>
            <p>You requested to reset your password. Please click the link below to reset it:</p>
            <a href="{reset_link}">Reset Password</a>
            <p>This link will expire in 1 hour.</p>
            <p>If you didn't request this, please ignore this email.</p>
        """
        self.send(to, "Password Reset - E-Learning Platform", html)


def build_mailer() -> Optional[Mailer]:
    """A configured Mailer, or None when credentials are absent"""
    if not config.EMAIL_USER or not config.EMAIL_PASS:
        logger.warning("Email credentials not configured; password reset links will be returned in responses")
        return None
    return Mailer(config.SMTP_HOST, config.SMTP_PORT, config.EMAIL_USER, config.EMAIL_PASS)
