from __future__ import annotations

import json
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import AUTH_PATH_PREFIX
from app.core.database import get_db
from app.deps import authenticate_admin, get_shopify_client
from app.services.session_storage import store_offline_session
from app.services.shopify_auth import (
    AUTH_PREFIX,
    OAUTH_STATE_COOKIE,
    RELOAD_PARAM,
    AdminSession,
    add_document_response_headers,
    build_authorize_url,
    clear_oauth_state_cookie,
    create_oauth_state,
    run_after_auth_hook,
    set_oauth_state_cookie,
    verify_oauth_state,
    verify_query_hmac,
)
from app.services.shopify_client import ShopifyAdminClient, ShopifyApiError
from app.ui.pages import page_response, render_session_token_bounce
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix=AUTH_PATH_PREFIX, tags=["auth"])


def _exit_iframe_page(url: str, shop: str) -> HTMLResponse:
    # The authorize page refuses to render inside the admin iframe
    response = HTMLResponse(
        "<!doctype html><html><head><meta charset='utf-8' /></head><body>"
        f"<script>window.open({json.dumps(url)}, '_top');</script>"
        "</body></html>"
    )
    add_document_response_headers(response, shop)
    return response


@router.get("/shopify")
def begin_oauth(request: Request):
    shop = normalize_shop_domain(request.query_params.get("shop", ""))
    if not shop:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid shop domain is required")

    if request.query_params.get("embedded") == "1":
        # Restart at the top level so the state cookie is set first-party
        logger.info("%s leaving admin iframe for oauth shop=%s", AUTH_PREFIX, shop)
        return _exit_iframe_page(f"{AUTH_PATH_PREFIX}/shopify?{urlencode({'shop': shop})}", shop)

    nonce, cookie_value = create_oauth_state()
    response = RedirectResponse(build_authorize_url(shop, nonce), status_code=status.HTTP_302_FOUND)
    set_oauth_state_cookie(response, cookie_value)
    logger.info("%s oauth started shop=%s", AUTH_PREFIX, shop)
    return response


@router.get("/session-token")
def session_token_bounce(request: Request):
    shop = normalize_shop_domain(request.query_params.get("shop", ""))
    reload_target = request.query_params.get(RELOAD_PARAM, "")
    if not shop or not reload_target.startswith("/") or reload_target.startswith("//"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid session token bounce")
    return page_response(render_session_token_bounce(), shop)


@router.get("/callback")
def oauth_callback(
    request: Request,
    db: Session = Depends(get_db),
    client: ShopifyAdminClient = Depends(get_shopify_client),
):
    params = request.query_params
    if not verify_query_hmac(params.multi_items()):
        logger.warning("%s callback rejected: bad hmac", AUTH_PREFIX)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth callback signature")

    shop = normalize_shop_domain(params.get("shop", ""))
    if not shop:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid shop domain is required")

    if not verify_oauth_state(params.get("state"), request.cookies.get(OAUTH_STATE_COOKIE)):
        logger.warning("%s callback rejected: state mismatch shop=%s", AUTH_PREFIX, shop)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OAuth state mismatch")

    code = params.get("code")
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code")

    try:
        token = client.exchange_code(shop, code)
    except ShopifyApiError as exc:
        logger.warning("%s code exchange failed shop=%s reason=%s", AUTH_PREFIX, shop, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Unable to complete OAuth") from exc

    session = store_offline_session(db, shop, token, state=params.get("state") or "")
    run_after_auth_hook(client, session)
    logger.info("%s oauth completed shop=%s", AUTH_PREFIX, shop)

    target = {"shop": shop}
    if params.get("host"):
        target["host"] = params["host"]
    response = RedirectResponse(f"/app?{urlencode(target)}", status_code=status.HTTP_302_FOUND)
    clear_oauth_state_cookie(response)
    return response


@router.get("/{path:path}")
def auth_catch_all(request: Request, path: str):
    query = request.url.query
    location = f"{AUTH_PATH_PREFIX}/shopify" + (f"?{query}" if query else "")
    logger.info("%s redirecting /auth/%s to login", AUTH_PREFIX, path)
    return RedirectResponse(location, status_code=status.HTTP_302_FOUND)


@router.post("/{path:path}")
def auth_catch_all_post(path: str, admin: AdminSession = Depends(authenticate_admin)):
    return RedirectResponse(f"/app?{urlencode({'shop': admin.shop})}", status_code=status.HTTP_302_FOUND)
