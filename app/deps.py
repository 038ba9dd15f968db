# app/deps.py
from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.request_context import set_request_context
from app.models.shop import Shop
from app.services.shop_bootstrap import bootstrap_shop, get_shop_or_raise
from app.services.shopify_auth import (
    RETRY_INVALID_SESSION_HEADER,
    AdminSession,
    InvalidSessionTokenError,
    build_bounce_url,
    decode_session_token,
    ensure_offline_session,
    extract_session_token,
)
from app.services.shopify_client import ShopifyAdminClient, ShopifyApiError
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)

_shopify_client = ShopifyAdminClient()


def get_shopify_client() -> ShopifyAdminClient:
    return _shopify_client


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={RETRY_INVALID_SESSION_HEADER: "1"},
    )


def _redirect(location: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_302_FOUND, headers={"Location": location})


def _redirect_to_login(shop: str) -> HTTPException:
    return _redirect(f"/auth/shopify?{urlencode({'shop': shop})}")


def _is_embedded_document(request: Request) -> bool:
    return (
        request.method == "GET"
        and request.query_params.get("embedded") == "1"
        and not request.headers.get("authorization")
    )


def authenticate_admin(
    request: Request,
    db: Session = Depends(get_db),
    client: ShopifyAdminClient = Depends(get_shopify_client),
) -> AdminSession:
    """Resolve the embedded-admin caller from its App Bridge session token.

    Embedded page loads without a usable token bounce through App Bridge for a
    fresh one. Other GETs naming a shop are sent into OAuth; everything else
    without a valid token gets a 401 that App Bridge retries.
    """
    requested_shop = normalize_shop_domain(request.query_params.get("shop", ""))
    token = extract_session_token(request.headers, request.query_params)
    if not token:
        if requested_shop and _is_embedded_document(request):
            raise _redirect(build_bounce_url(request.url.path, request.query_params, requested_shop))
        if requested_shop and request.method == "GET":
            raise _redirect_to_login(requested_shop)
        raise _unauthorized("Missing session token")

    try:
        payload = decode_session_token(token)
    except InvalidSessionTokenError as exc:
        logger.warning("Rejected session token path=%s reason=%s", request.url.path, exc)
        if requested_shop and _is_embedded_document(request):
            raise _redirect(build_bounce_url(request.url.path, request.query_params, requested_shop)) from exc
        raise _unauthorized("Invalid session token") from exc

    shop = payload["shop"]
    try:
        stored = ensure_offline_session(db, shop, token, client)
    except ShopifyApiError as exc:
        logger.warning("Token exchange failed shop=%s reason=%s", shop, exc)
        raise _unauthorized("Unable to obtain an access token") from exc

    user_id = payload.get("sub")
    request.state.shop_domain = shop
    set_request_context(shop=shop, user_id=str(user_id) if user_id is not None else None)

    return AdminSession(
        shop=shop,
        access_token=stored.access_token,
        scope=stored.scope or "",
        user_id=str(user_id) if user_id is not None else None,
        session_token=token,
    )


def bootstrap_admin_shop(
    admin: AdminSession = Depends(authenticate_admin),
    db: Session = Depends(get_db),
) -> Shop:
    return bootstrap_shop(db, admin.shop)


def require_admin_shop(
    admin: AdminSession = Depends(authenticate_admin),
    db: Session = Depends(get_db),
) -> Shop:
    return get_shop_or_raise(db, admin.shop)


def wants_html(request: Request) -> bool:
    return "text/html" in (request.headers.get("accept") or "").lower()
