from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from leasing_auth.application.ports.mailer_port import MailerPort
from leasing_auth.domain.exceptions import MailDeliveryError


logger = logging.getLogger(__name__)


class SmtpMailer(MailerPort):
    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        use_tls: bool = True,
        timeout_seconds: float = 10.0,
    ):
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._use_tls = use_tls
        self._timeout = timeout_seconds

    def send(self, *, to: str, subject: str, html: str) -> None:
        msg = MIMEMultipart()
        msg["From"] = self._sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("smtp_mailer: send_failed host=%s detail=%s", self._host, exc)
            raise MailDeliveryError("Email sending failed.") from exc

        logger.info("smtp_mailer: sent subject=%r", subject)
