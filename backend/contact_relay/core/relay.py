# contact_relay/core/relay.py
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid
from typing import List

from starlette.concurrency import run_in_threadpool

from contact_relay.core.settings import Settings
from contact_relay.lib.message import MailEnvelope

log = logging.getLogger("uvicorn.error")


class DeliveryError(Exception):
    """The relay refused, dropped or never acknowledged a message."""


class MailRelay(ABC):
    provider = "unknown"

    @abstractmethod
    def verify(self) -> None:
        """Check connectivity and credentials; raise DeliveryError on failure."""

    @abstractmethod
    def send(self, envelope: MailEnvelope) -> str:
        """Deliver one envelope and return its delivery id (Message-ID)."""


def build_email_message(envelope: MailEnvelope, message_id: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = envelope.sender
    msg["To"] = envelope.recipient
    msg["Subject"] = envelope.subject
    msg["Reply-To"] = envelope.reply_to
    msg["Message-ID"] = message_id
    msg.set_content(envelope.text)
    msg.add_alternative(envelope.html, subtype="html")
    return msg


class SmtpRelay(MailRelay):
    provider = "smtp"

    def __init__(self, host: str, port: int, user: str, password: str,
                 secure: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.secure = secure
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self.secure:
            smtp = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        else:
            smtp = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            try:
                smtp.starttls(context=context)
            except Exception:
                smtp.close()
                raise
        try:
            smtp.login(self.user, self._password)
        except Exception:
            smtp.close()
            raise
        return smtp

    def verify(self) -> None:
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP verify failed for {self.host}:{self.port}: {exc}") from exc

    def send(self, envelope: MailEnvelope) -> str:
        domain = self.user.rsplit("@", 1)[-1] if "@" in self.user else None
        message_id = make_msgid(domain=domain)
        msg = build_email_message(envelope, message_id)
        try:
            with self._connect() as smtp:
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP send failed via {self.host}:{self.port}: {exc}") from exc
        return message_id


class FakeRelay(MailRelay):
    """In-process relay: records envelopes instead of sending them."""

    provider = "fake"

    def __init__(self, fail_send: bool = False, fail_verify: bool = False):
        self.fail_send = fail_send
        self.fail_verify = fail_verify
        self.sent: List[MailEnvelope] = []
        self.verify_calls = 0

    def verify(self) -> None:
        self.verify_calls += 1
        if self.fail_verify:
            raise DeliveryError("fake relay: verify failed")

    def send(self, envelope: MailEnvelope) -> str:
        if self.fail_send:
            raise DeliveryError("fake relay: send failed")
        self.sent.append(envelope)
        return f"<fake-{len(self.sent)}@contact-relay.local>"


def get_relay(settings: Settings) -> MailRelay:
    provider = (settings.mail_provider or "smtp").lower()
    if provider == "smtp":
        return SmtpRelay(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.zoho_user,
            password=settings.zoho_pass,
            secure=settings.smtp_secure,
            timeout=settings.smtp_timeout,
        )
    if provider == "fake":
        log.warning("[relay] MAIL_PROVIDER=fake; messages are recorded, not delivered")
        return FakeRelay()
    raise RuntimeError(f"Unknown MAIL_PROVIDER: {settings.mail_provider!r} (expected 'smtp' or 'fake')")


async def verify_relay(relay: MailRelay) -> bool:
    """Startup diagnostic: log whether the relay accepts our credentials. Never raises."""
    try:
        await run_in_threadpool(relay.verify)
    except DeliveryError as exc:
        log.error(f"[relay] Error verifying {relay.provider} relay: {exc}")
        return False
    log.info(f"[relay] {relay.provider.upper()} relay is ready")
    return True
