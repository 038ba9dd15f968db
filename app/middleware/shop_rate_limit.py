from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)

RATE_LIMITED_ROUTES = {("POST", "/app_proxy")}


class ShopRateLimitMiddleware(BaseHTTPMiddleware):
    """Throttle public storefront bookings per shop."""

    def __init__(self, app, *, rate_limiter: RateLimiterService | None = None) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter or InMemoryRateLimiterService()

    async def dispatch(self, request: Request, call_next):
        endpoint = request.url.path.rstrip("/") or "/"
        if (request.method, endpoint) not in RATE_LIMITED_ROUTES:
            return await call_next(request)

        shop = _extract_shop(request)
        if not shop:
            return await call_next(request)

        decision = self._rate_limiter.check(shop=shop, endpoint=endpoint)
        if not decision.allowed:
            logger.warning("[RATE_LIMIT] blocked shop=%s endpoint=%s", shop, endpoint)
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests"},
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


def _extract_shop(request: Request) -> str | None:
    raw = request.query_params.get("shop") or request.headers.get("X-Shopify-Shop-Domain")
    if not raw:
        return None
    return normalize_shop_domain(raw) or None
