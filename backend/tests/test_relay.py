import smtplib

import pytest

from contact_relay.core.relay import (
    DeliveryError,
    FakeRelay,
    SmtpRelay,
    build_email_message,
    get_relay,
    verify_relay,
)
from contact_relay.lib.message import MailEnvelope


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None, context=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logged_in = None
        self.tls = False
        self.closed = False
        self.sent = []
        self.noops = 0
        FakeSMTP.instances.append(self)

    def starttls(self, context=None):
        self.tls = True

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"Authentication Failed")
        self.logged_in = (user, password)

    def noop(self):
        self.noops += 1
        return (250, b"OK")

    def send_message(self, msg):
        if msg["To"] == "bounce@example.com":
            raise smtplib.SMTPRecipientsRefused({"bounce@example.com": (550, b"no such user")})
        self.sent.append(msg)
        return {}

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class UnreachableSMTP:
    def __init__(self, *args, **kwargs):
        raise ConnectionRefusedError(111, "Connection refused")


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr("contact_relay.core.relay.smtplib.SMTP_SSL", FakeSMTP)
    monkeypatch.setattr("contact_relay.core.relay.smtplib.SMTP", FakeSMTP)
    return FakeSMTP


def _envelope(**overrides):
    values = dict(
        sender="relay@example.com",
        recipient="relay@example.com",
        subject="CLIENT CONTACT FROM WEBSITE",
        text="Name: Ada\n",
        html="<p><strong>Name:</strong> Ada</p>\n",
        reply_to="ada@example.com",
    )
    values.update(overrides)
    return MailEnvelope(**values)


def _relay(**overrides):
    values = dict(host="smtp.zoho.com", port=465, user="relay@example.com", password="pw", timeout=5.0)
    values.update(overrides)
    return SmtpRelay(**values)


def test_build_email_message_sets_headers_and_both_parts():
    msg = build_email_message(_envelope(), "<id-1@example.com>")
    assert msg["From"] == "relay@example.com"
    assert msg["To"] == "relay@example.com"
    assert msg["Reply-To"] == "ada@example.com"
    assert msg["Subject"] == "CLIENT CONTACT FROM WEBSITE"
    assert msg["Message-ID"] == "<id-1@example.com>"
    assert msg.get_content_type() == "multipart/alternative"
    assert msg.get_body(("plain",)).get_content() == "Name: Ada\n"
    assert "<strong>Name:</strong>" in msg.get_body(("html",)).get_content()


def test_smtp_send_uses_implicit_tls_and_returns_message_id():
    message_id = _relay().send(_envelope())

    conn = FakeSMTP.instances[-1]
    assert (conn.host, conn.port, conn.timeout) == ("smtp.zoho.com", 465, 5.0)
    assert conn.tls is False
    assert conn.logged_in == ("relay@example.com", "pw")
    assert conn.closed is True
    assert len(conn.sent) == 1
    assert conn.sent[0]["Message-ID"] == message_id
    assert message_id.endswith("@example.com>")


def test_smtp_send_with_starttls_when_not_secure():
    _relay(port=587, secure=False).send(_envelope())
    conn = FakeSMTP.instances[-1]
    assert conn.port == 587
    assert conn.tls is True


def test_smtp_auth_failure_becomes_delivery_error():
    with pytest.raises(DeliveryError) as excinfo:
        _relay(password="wrong").send(_envelope())
    assert isinstance(excinfo.value.__cause__, smtplib.SMTPAuthenticationError)
    assert FakeSMTP.instances[-1].closed is True


def test_smtp_refused_recipient_becomes_delivery_error():
    with pytest.raises(DeliveryError):
        _relay().send(_envelope(recipient="bounce@example.com"))


def test_smtp_network_failure_becomes_delivery_error(monkeypatch):
    monkeypatch.setattr("contact_relay.core.relay.smtplib.SMTP_SSL", UnreachableSMTP)
    with pytest.raises(DeliveryError):
        _relay().send(_envelope())
    with pytest.raises(DeliveryError):
        _relay().verify()


def test_smtp_verify_logs_in_and_noops():
    _relay().verify()
    conn = FakeSMTP.instances[-1]
    assert conn.logged_in == ("relay@example.com", "pw")
    assert conn.noops == 1


def test_fake_relay_records_and_fails_on_demand():
    relay = FakeRelay()
    assert relay.send(_envelope()) == "<fake-1@contact-relay.local>"
    assert relay.sent == [_envelope()]

    with pytest.raises(DeliveryError):
        FakeRelay(fail_send=True).send(_envelope())
    with pytest.raises(DeliveryError):
        FakeRelay(fail_verify=True).verify()


def test_get_relay_picks_provider(make_settings):
    smtp = get_relay(make_settings(MAIL_PROVIDER="smtp", SMTP_PORT=587, SMTP_SECURE=False, SMTP_TIMEOUT=3))
    assert isinstance(smtp, SmtpRelay)
    assert (smtp.host, smtp.port, smtp.secure, smtp.timeout) == ("smtp.zoho.com", 587, False, 3.0)
    assert smtp.user == "relay@example.com"

    assert isinstance(get_relay(make_settings(MAIL_PROVIDER="FAKE")), FakeRelay)

    with pytest.raises(RuntimeError):
        get_relay(make_settings(MAIL_PROVIDER="sendgrid"))


@pytest.mark.asyncio
async def test_verify_relay_reports_success():
    relay = FakeRelay()
    assert await verify_relay(relay) is True
    assert relay.verify_calls == 1


@pytest.mark.asyncio
async def test_verify_relay_failure_is_not_fatal():
    relay = FakeRelay(fail_verify=True)
    assert await verify_relay(relay) is False
    assert relay.verify_calls == 1
