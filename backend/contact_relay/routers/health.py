# contact_relay/routers/health.py
from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from contact_relay.core.relay import DeliveryError, MailRelay
from contact_relay.dependencies import get_app_relay

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
async def health_root():
    return {"status": "ok"}

@router.get("/relay")
async def health_relay(relay: MailRelay = Depends(get_app_relay)):
    try:
        await run_in_threadpool(relay.verify)
        ok = True
    except DeliveryError:
        ok = False
    return {"ok": ok, "provider": relay.provider}
