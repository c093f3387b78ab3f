"""
Request admission for the Interview Prep LLM Engine.
====================================================

Every inbound request (except CORS preflight) consumes one unit from each
configured quota window for its client. Rate-limit headers are attached to
every admitted response; exhausted clients get a 429 without reaching any
route.

Usage:
    from core.security import RateLimitMiddleware
    app.add_middleware(RateLimitMiddleware, limiter_provider=lambda: limiter)
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from rate_limiter import AdmissionDenied, QuotaLimiter

logger = logging.getLogger(__name__)

FORWARDED_CHAIN_HEADER = "X-Forwarded-For"
UNKNOWN_CLIENT = "unknown"

# Methods that bypass quota accounting
EXEMPT_METHODS = {"OPTIONS"}


def _parse_forwarded_for(value: str) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def resolve_client_ip(request: Request) -> str:
    """
    Identify the client for quota accounting.

    The first X-Forwarded-For entry wins (the service sits behind a load
    balancer); otherwise the socket peer address.
    """
    chain = _parse_forwarded_for(request.headers.get(FORWARDED_CHAIN_HEADER, ""))
    if chain:
        return chain[0]
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def build_denied_response(exc: AdmissionDenied) -> JSONResponse:
    body = {"error": exc.public_message}
    body.update(exc.decision.to_payload())
    return JSONResponse(status_code=429, content=body, headers=exc.decision.headers())


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware applying the multi-window quota limiter to every request.

    limiter_provider is called per request; returning None disables
    limiting (RATE_LIMIT_ENABLED=false).
    """

    def __init__(self, app, limiter_provider: Callable[[], Optional[QuotaLimiter]]):
        super().__init__(app)
        self.limiter_provider = limiter_provider

    async def dispatch(self, request: Request, call_next):
        if request.method in EXEMPT_METHODS:
            return await call_next(request)

        limiter = self.limiter_provider()
        if limiter is None:
            return await call_next(request)

        client_ip = resolve_client_ip(request)
        decision = await limiter.consume(client_ip)

        if not decision.allowed:
            logger.warning(
                "Rate limit: rejected %s %s from %s (remaining=%d, reset=%ds)",
                request.method,
                request.url.path,
                client_ip,
                decision.remaining,
                decision.reset_seconds,
            )
            return build_denied_response(AdmissionDenied(decision))

        response = await call_next(request)
        for name, value in decision.headers().items():
            response.headers[name] = value
        return response
