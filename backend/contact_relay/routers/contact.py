# contact_relay/routers/contact.py
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from starlette.concurrency import run_in_threadpool

from contact_relay.core.relay import DeliveryError, MailRelay
from contact_relay.core.settings import Settings
from contact_relay.dependencies import get_app_relay, get_app_settings
from contact_relay.lib.message import build_envelope

log = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["contact"])

SENT_MESSAGE = "Message sent."
FAILED_MESSAGE = "Failed to send message."


class ContactSubmission(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(default="", max_length=15)
    message: str = Field(min_length=1, max_length=5000)


class ContactResult(BaseModel):
    success: bool
    message: str


@router.post("/contact", response_model=ContactResult)
async def contact(
    payload: ContactSubmission,
    relay: MailRelay = Depends(get_app_relay),
    settings: Settings = Depends(get_app_settings),
):
    envelope = build_envelope(payload, settings.zoho_user)
    try:
        message_id = await run_in_threadpool(relay.send, envelope)
    except DeliveryError as exc:
        # Relay details stay in the server log; the caller only gets the generic message
        log.error(f"[contact] Error sending mail: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": FAILED_MESSAGE},
        )
    log.info(f"[contact] Email sent: {message_id}")
    return {"success": True, "message": SENT_MESSAGE}
