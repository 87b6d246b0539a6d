# contact_relay/main.py
# run it with: uvicorn contact_relay.main:app --reload  (or python -m contact_relay)
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from contact_relay.core.middleware import (
    OriginGateMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
)
from contact_relay.core.ratelimit import ContactRateLimiter, build_rate_limiter
from contact_relay.core.relay import MailRelay, get_relay, verify_relay
from contact_relay.core.settings import Settings, load_settings
from contact_relay.lib.origins import parse_origins
from contact_relay.routers.contact import router as contact_router
from contact_relay.routers.health import router as health_router

log = logging.getLogger("uvicorn.error")


def first_error_message(exc: RequestValidationError) -> str:
    """Describe only the first validation failure, prefixed with the offending field."""
    errors = exc.errors()
    if not errors:
        return "Invalid request body."
    err = errors[0]
    loc = list(err.get("loc") or ())
    if loc and loc[0] == "body":
        loc = loc[1:]
    field = ".".join(str(p) for p in loc)
    if err.get("type") == "json_invalid" or not field:
        field = "body"
    return f"{field}: {err.get('msg', 'invalid value')}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay_check = None
    if app.state.settings.verify_on_startup:
        # Soft check: the result is only logged, startup never waits on it
        relay_check = asyncio.create_task(verify_relay(app.state.relay))
    app.state.relay_check = relay_check
    log.info(f"[main] contact relay ready (provider={app.state.relay.provider}, port={app.state.settings.port})")
    yield
    if relay_check is not None:
        await relay_check


def create_app(
    settings: Optional[Settings] = None,
    relay: Optional[MailRelay] = None,
    limiter: Optional[ContactRateLimiter] = None,
) -> FastAPI:
    if settings is None:
        settings = load_settings()
    if relay is None:
        relay = get_relay(settings)
    if limiter is None:
        limiter = build_rate_limiter(settings)
    allowed_origins = parse_origins(settings.cors_origin)

    app = FastAPI(title=settings.api_title, lifespan=lifespan)
    app.state.settings = settings
    app.state.relay = relay
    app.state.limiter = limiter

    # Added innermost first: security headers wrap everything, the rate limiter sits next to the routes
    app.add_middleware(
        RateLimitMiddleware,
        limiter=limiter,
        path_prefix="/api/contact",
        trust_proxy=settings.trust_proxy,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(OriginGateMiddleware, allow_origins=allowed_origins)
    app.add_middleware(SecurityHeadersMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": first_error_message(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception(f"[main] Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error."},
        )

    # Routers
    app.include_router(contact_router)
    app.include_router(health_router)

    return app


app = create_app()
