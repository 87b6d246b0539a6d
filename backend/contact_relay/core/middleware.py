# contact_relay/core/middleware.py
from typing import Iterable

from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from contact_relay.core.ratelimit import RATE_LIMIT_MESSAGE, ContactRateLimiter
from contact_relay.lib.origins import is_allowed_origin

CORS_REJECTED_MESSAGE = "Not allowed by CORS"

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


class OriginGateMiddleware(BaseHTTPMiddleware):
    """Reject browser requests from origins outside the allow-list before routing."""

    def __init__(self, app, allow_origins: Iterable[str]):
        super().__init__(app)
        self.allow_origins = frozenset(allow_origins)

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not is_allowed_origin(origin, self.allow_origins):
            return JSONResponse(
                status_code=403,
                content={"success": False, "message": CORS_REJECTED_MESSAGE},
            )
        return await call_next(request)


def client_identifier(request: Request, trust_proxy: bool = False) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: ContactRateLimiter, path_prefix: str = "/api/contact",
                 trust_proxy: bool = False):
        super().__init__(app)
        self.limiter = limiter
        self.path_prefix = path_prefix.rstrip("/")
        self.trust_proxy = trust_proxy

    def _applies_to(self, path: str) -> bool:
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    async def dispatch(self, request: Request, call_next):
        if not self._applies_to(request.url.path):
            return await call_next(request)

        client_id = client_identifier(request, self.trust_proxy)
        # redis-backed storage blocks; keep it off the event loop
        result = await run_in_threadpool(self.limiter.check, client_id)
        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.retry_after),
        }
        if not result.allowed:
            headers["Retry-After"] = str(result.retry_after)
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": RATE_LIMIT_MESSAGE},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
