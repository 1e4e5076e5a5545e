"""
SMTP email sender for chainwatch alerts.

Handles:
  - SMTP connection with TLS
  - MIME multipart construction (HTML + plaintext fallback)
  - Credential management (env vars > config file)

No external dependencies beyond Python stdlib (email, smtplib, ssl).
"""
import os
import ssl
import json
import smtplib
import logging
from html import escape
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

logger = logging.getLogger("chainwatch.notifications.email_sender")

SEVERITY_COLORS = {
    "critical": "#FF1744",
    "high": "#FF5722",
    "medium": "#FFC107",
    "low": "#2196F3",
}


class EmailSender:
    """
    SMTP email sender.

    Credential resolution order:
      1. Environment variables: CHAINWATCH_SMTP_USER, CHAINWATCH_SMTP_PASS
      2. Config file: config.email.smtp_username, config.email.smtp_password
    """

    def __init__(self, config: dict):
        email_config = config.get("email", {})
        self.smtp_host = email_config.get("smtp_host", "smtp.gmail.com")
        self.smtp_port = email_config.get("smtp_port", 587)
        self.use_tls = email_config.get("use_tls", True)
        self.from_address = email_config.get("from_address", "")
        self.from_name = email_config.get("from_name", "chainwatch")

        # Credential resolution: env vars take priority
        self.username = os.environ.get(
            "CHAINWATCH_SMTP_USER",
            email_config.get("smtp_username", ""),
        )
        self.password = os.environ.get(
            "CHAINWATCH_SMTP_PASS",
            email_config.get("smtp_password", ""),
        )

    def is_configured(self) -> bool:
        """Check if all required SMTP fields are present."""
        return all([self.smtp_host, self.from_address, self.username, self.password])

    def build_alert_message(self, to_address, title, severity, message, metadata=None):
        subject = f"[{severity.upper()}] chainwatch: {title}"
        color = SEVERITY_COLORS.get(severity, "#FFC107")
        metadata_html = ""
        if metadata:
            metadata_html = (
                '<pre style="color: #636E72; font-size: 12px;">'
                f"{escape(json.dumps(metadata, indent=2, default=str))}</pre>"
            )

        html = f"""
        <div style="font-family: system-ui, sans-serif; max-width: 500px; margin: 0 auto;
                    padding: 20px; background: #FFFFFF; color: #1E272E; border-radius: 12px;">
            <div style="background: #F0F1F6; padding: 16px; border-radius: 8px;
                        border-left: 4px solid {color};">
                <h3 style="margin-top: 0; color: {color};">
                    {escape(severity.upper())}: {escape(title)}
                </h3>
                <p>{escape(message)}</p>
                {metadata_html}
            </div>
            <p style="color: #636E72; font-size: 12px; margin-top: 16px;">
                chainwatch &mdash; automated alert
            </p>
        </div>
        """

        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to_address
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(f"{severity.upper()}: {title}\n{message}", "plain"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send_alert(self, to_address, title, severity, message, metadata=None, timeout=10) -> bool:
        """Send a single alert email."""
        if not self.is_configured():
            return False
        msg = self.build_alert_message(to_address, title, severity, message, metadata)
        return self._send(msg, timeout)

    def _send(self, msg: MIMEMultipart, timeout=30) -> bool:
        """Internal: send a constructed MIME message via SMTP."""
        try:
            context = ssl.create_default_context()
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=timeout) as server:
                server.ehlo()
                if self.use_tls:
                    server.starttls(context=context)
                    server.ehlo()
                server.login(self.username, self.password)
                server.send_message(msg)
            logger.info(f"Email sent to {msg['To']}: {msg['Subject']}")
            return True
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed. Check username/password.")
            return False
        except smtplib.SMTPRecipientsRefused:
            logger.error(f"Recipient refused: {msg['To']}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email send failed: {e}")
            return False
