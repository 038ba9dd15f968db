from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.metrics import request_metrics
from app.core.request_context import clear_request_context, set_request_context
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id, shop=_extract_shop(request))

        status_code = 500
        endpoint = request.url.path
        method = request.method
        response = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            shop = _extract_shop(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            set_request_context(shop=shop)
            request_metrics.observe(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                duration_ms=duration_ms,
                shop=shop,
            )

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "shop": shop,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _extract_shop(request: Request) -> str | None:
    # Set by the admin auth dependency or the storefront proxy once resolved
    resolved = getattr(request.state, "shop_domain", None)
    if resolved:
        return resolved
    raw = request.query_params.get("shop") or request.headers.get("X-Shopify-Shop-Domain")
    if not raw:
        return None
    return normalize_shop_domain(raw) or None
