# contact_relay/lib/message.py
import html
from dataclasses import dataclass

SUBJECT = "CLIENT CONTACT FROM WEBSITE"


@dataclass(frozen=True)
class MailEnvelope:
    sender: str
    recipient: str
    subject: str
    text: str
    html: str
    reply_to: str


def escape_html(value: str) -> str:
    """Escape &, <, >, " and ' so user text can be interpolated into HTML."""
    return html.escape(value or "", quote=True)


def _html_lines(value: str) -> str:
    return escape_html(value).replace("\r\n", "\n").replace("\n", "<br>")


def build_text_body(name: str, email: str, phone: str, message: str) -> str:
    return (
        "Contact form submission\n"
        "\n"
        f"Name: {name}\n"
        f"Email: {email}\n"
        f"Phone: {phone or 'N/A'}\n"
        "Message:\n"
        f"{message}\n"
    )


def build_html_body(name: str, email: str, phone: str, message: str) -> str:
    safe_email = escape_html(email)
    return (
        f"<p><strong>Name:</strong> {escape_html(name)}</p>\n"
        f'<p><strong>Email:</strong> <a href="mailto:{safe_email}">{safe_email}</a></p>\n'
        f"<p><strong>Phone:</strong> {escape_html(phone) if phone else 'N/A'}</p>\n"
        "<p><strong>Message:</strong></p>\n"
        f"<p>{_html_lines(message)}</p>\n"
    )


def build_envelope(submission, relay_user: str) -> MailEnvelope:
    """
    Turn a validated ContactSubmission into the envelope handed to the relay.

    Many SMTP providers (Zoho included) only accept a From address matching the
    authenticated account, so the message is self-addressed and the visitor's
    address goes into Reply-To.
    """
    email = str(submission.email)
    fields = dict(
        name=submission.name,
        email=email,
        phone=submission.phone or "",
        message=submission.message,
    )
    return MailEnvelope(
        sender=relay_user,
        recipient=relay_user,
        subject=SUBJECT,
        text=build_text_body(**fields),
        html=build_html_body(**fields),
        reply_to=email,
    )
