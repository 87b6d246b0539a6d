# contact_relay/dependencies.py
from fastapi import Request

from contact_relay.core.relay import MailRelay
from contact_relay.core.settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_app_relay(request: Request) -> MailRelay:
    return request.app.state.relay
