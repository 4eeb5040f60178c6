import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

import config

logger = logging.getLogger(__name__)

# Порт 465 - сразу TLS, остальные - STARTTLS
IMPLICIT_TLS_PORT = 465


class SMTPProvider:
    """Donor receipts through the organization's own SMTP server"""

    def __init__(self, smtp_host: str, smtp_port: int, username: str, password: str,
                 sender: Optional[str] = None):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.sender = sender or f"{config.EMAIL_FROM_NAME} <{config.EMAIL_FROM}>"

    @classmethod
    def from_config(cls) -> Optional["SMTPProvider"]:
        """None when SMTP_HOST or SMTP_USER is not set; e-mail receipts are optional."""
        if not (config.SMTP_HOST and config.SMTP_USER):
            logger.debug("SMTP is not configured, e-mail receipts disabled")
            return None
        return cls(config.SMTP_HOST, config.SMTP_PORT, config.SMTP_USER, config.SMTP_PASSWORD)

    def build_message(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None):
        if html_body:
            message = MIMEMultipart('alternative')
            message.attach(MIMEText(text_body, 'plain', 'utf-8'))
            message.attach(MIMEText(html_body, 'html', 'utf-8'))
        else:
            message = MIMEText(text_body, 'plain', 'utf-8')

        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        return message

    async def send_email(self, to: str, subject: str, text_body: str, html_body: Optional[str] = None) -> bool:
        """
        Send a receipt. Never raises.

        Returns:
            bool: True if the server accepted the message
        """
        message = self.build_message(to, subject, text_body, html_body)
        implicitTls = self.smtp_port == IMPLICIT_TLS_PORT

        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.username,
                password=self.password,
                use_tls=implicitTls,
                start_tls=not implicitTls,
                timeout=config.NOTIFICATION_TIMEOUT
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP rejected receipt for {to} ({subject}): {e}")
            return False
        except OSError as e:
            logger.error(f"Could not reach SMTP server {self.smtp_host}:{self.smtp_port}: {e}")
            return False

        logger.info(f"Receipt e-mailed to {to}")
        return True
