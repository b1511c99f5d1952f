"""
Mail Transports — Interchangeable ways of getting a message out.

  * smtp     — direct relay through smtplib (STARTTLS, or SSL on port 465)
  * sendgrid — SendGrid v3 HTTP API through httpx
  * console  — logs the message instead of sending (local development)

Every transport raises TransportError, never a library-specific exception.
"""
import base64
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import parseaddr
from pathlib import Path
from typing import List, Optional

import httpx

from imfpay.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content_type: str
    path: Path

    def read(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class MailMessage:
    sender: str
    to: str
    subject: str
    text: str
    html: str = ""
    attachments: List[Attachment] = field(default_factory=list)


class TransportError(Exception):
    """Provider failure; `kind` is "timeout" or "provider"."""

    def __init__(self, provider: str, message: str, kind: str = "provider"):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.message = message
        self.kind = kind


class MailTransport:
    name = "abstract"

    def is_configured(self) -> bool:
        return True

    def verify(self) -> None:
        raise NotImplementedError

    def send(self, message: MailMessage) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ─── SMTP ───────────────────────────────────────────────────────────

class SMTPTransport(MailTransport):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_ssl: Optional[bool] = None,
        connect_timeout: float = 10.0,
        socket_timeout: float = 60.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = (port == 465) if use_ssl is None else use_ssl
        self.connect_timeout = connect_timeout
        self.socket_timeout = socket_timeout

    def is_configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def _connect(self) -> smtplib.SMTP:
        # Constructor timeout bounds TCP connect and the server greeting
        context = ssl.create_default_context()
        if self.use_ssl:
            smtp = smtplib.SMTP_SSL(self.host, self.port, timeout=self.connect_timeout, context=context)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=self.connect_timeout)
        try:
            if not self.use_ssl:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls(context=context)
                    smtp.ehlo()
            if smtp.sock is not None:
                smtp.sock.settimeout(self.socket_timeout)
            if self.username:
                smtp.login(self.username, self.password)
        except Exception:
            smtp.close()
            raise
        return smtp

    @staticmethod
    def _error(exc: Exception) -> TransportError:
        kind = "timeout" if isinstance(exc, TimeoutError) else "provider"
        return TransportError("smtp", str(exc) or exc.__class__.__name__, kind)

    def verify(self) -> None:
        try:
            smtp = self._connect()
            smtp.quit()
        except (smtplib.SMTPException, OSError) as exc:
            raise self._error(exc) from exc

    @staticmethod
    def build_message(message: MailMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = message.sender
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        if message.html:
            msg.add_alternative(message.html, subtype="html")
        for att in message.attachments:
            maintype, _, subtype = att.content_type.partition("/")
            msg.add_attachment(
                att.read(),
                maintype=maintype or "application",
                subtype=subtype or "octet-stream",
                filename=att.filename,
            )
        return msg

    def send(self, message: MailMessage) -> None:
        try:
            msg = self.build_message(message)
            smtp = self._connect()
            try:
                smtp.send_message(msg)
            finally:
                try:
                    smtp.quit()
                except smtplib.SMTPException:
                    pass
        except (smtplib.SMTPException, OSError) as exc:
            raise self._error(exc) from exc


# ─── SendGrid ───────────────────────────────────────────────────────

class SendGridTransport(MailTransport):
    name = "sendgrid"

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.sendgrid.com/v3",
        connect_timeout: float = 10.0,
        socket_timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self._client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=httpx.Timeout(socket_timeout, connect=connect_timeout),
            headers={"Authorization": f"Bearer {api_key}", "accept": "application/json"},
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException as exc:
            raise TransportError("sendgrid", f"timeout: {exc}", "timeout") from exc
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:500]
            raise TransportError("sendgrid", f"HTTP {exc.response.status_code}: {detail}") from exc
        except httpx.HTTPError as exc:
            raise TransportError("sendgrid", str(exc)) from exc

    def verify(self) -> None:
        self._request("GET", "/scopes")

    @staticmethod
    def build_payload(message: MailMessage) -> dict:
        sender_name, sender_email = parseaddr(message.sender)
        sender = {"email": sender_email or message.sender}
        if sender_name:
            sender["name"] = sender_name
        content = [{"type": "text/plain", "value": message.text}]
        if message.html:
            content.append({"type": "text/html", "value": message.html})
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": sender,
            "subject": message.subject,
            "content": content,
        }
        if message.attachments:
            payload["attachments"] = [
                {
                    "content": base64.b64encode(att.read()).decode("ascii"),
                    "filename": att.filename,
                    "type": att.content_type,
                    "disposition": "attachment",
                }
                for att in message.attachments
            ]
        return payload

    def send(self, message: MailMessage) -> None:
        try:
            payload = self.build_payload(message)
        except OSError as exc:
            raise TransportError("sendgrid", f"attachment unreadable: {exc}") from exc
        self._request("POST", "/mail/send", json=payload)

    def close(self) -> None:
        self._client.close()


# ─── Console ────────────────────────────────────────────────────────

class ConsoleTransport(MailTransport):
    name = "console"

    def verify(self) -> None:
        return None

    def send(self, message: MailMessage) -> None:
        logger.info(
            "[EMAIL] to=%s subject=%r attachments=%s",
            message.to, message.subject, [a.filename for a in message.attachments],
        )


def build_transport(settings: Settings) -> Optional[MailTransport]:
    """Transport named by MAIL_TRANSPORT, or None when mail is switched off."""
    choice = settings.MAIL_TRANSPORT.strip().lower()
    if choice == "smtp":
        return SMTPTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            use_ssl=settings.SMTP_USE_SSL or None,
            connect_timeout=settings.EMAIL_CONNECT_TIMEOUT,
            socket_timeout=settings.EMAIL_SOCKET_TIMEOUT,
        )
    if choice == "sendgrid":
        return SendGridTransport(
            api_key=settings.SENDGRID_API_KEY,
            api_url=settings.SENDGRID_API_URL,
            connect_timeout=settings.EMAIL_CONNECT_TIMEOUT,
            socket_timeout=settings.EMAIL_SOCKET_TIMEOUT,
        )
    if choice == "console":
        return ConsoleTransport()
    if choice not in ("none", ""):
        logger.warning("Unknown MAIL_TRANSPORT %r; email notifications disabled", settings.MAIL_TRANSPORT)
    return None
