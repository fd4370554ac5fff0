"""SMTP delivery of drop-box upload notifications."""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger(__name__)


class SmtpMailer:
    """
    Send mail through an SMTP relay.

    Port 465 uses implicit TLS, anything else upgrades with STARTTLS when the
    server offers it. Credentials are only sent when a user is configured.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "sealbox@localhost",
        timeout: float = 30.0,
    ):
        if not host:
            raise ValueError("SMTP host is required")
        self.host = host
        self.port = int(port)
        self.user = user or None
        self.password = password or ""
        self.sender = sender
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        client = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        client.ehlo()
        if client.has_extn("starttls"):
            client.starttls()
            client.ehlo()
        return client

    def send(self, message: EmailMessage) -> None:
        if "From" not in message:
            message["From"] = self.sender
        with self._connect() as client:
            if self.user:
                client.login(self.user, self.password)
            client.send_message(message)
        logger.info("Sent mail to %s", message["To"])

    def send_upload_notification(self, recipient: str, view_url: str, password: str) -> None:
        self.send(build_upload_notification(recipient, view_url, password, self.sender))


def build_upload_notification(recipient: str, view_url: str, password: str, sender: str) -> EmailMessage:
    """Plain-text + HTML notice carrying the view link and the generated password."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = "Someone uploaded data to your request"
    message.set_content(
        "Someone has uploaded data to your upload request.\n\n"
        f"View link: {view_url}\n"
        f"Password: {password}\n\n"
        "Use the password above when prompted on the view page.\n"
    )
    url = html.escape(view_url)
    message.add_alternative(
        "<h2>Upload Received</h2>"
        "<p>Someone has uploaded data to your upload request.</p>"
        f'<p><strong>View link:</strong> <a href="{url}">{url}</a></p>'
        f"<p><strong>Password:</strong> <code>{html.escape(password)}</code></p>"
        "<p>Use the password above when prompted on the view page.</p>",
        subtype="html",
    )
    return message
