from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import urlencode, urlsplit

from fastapi import Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.core.config import (
    AUTH_PATH_PREFIX,
    OAUTH_STATE_COOKIE_SECURE,
    OAUTH_STATE_MAX_AGE_SECONDS,
    SCOPES,
    SESSION_TOKEN_LEEWAY_SECONDS,
    SHOPIFY_API_KEY,
    SHOPIFY_API_SECRET,
    SHOPIFY_APP_URL,
    WEBHOOK_TOPICS,
    WEBHOOKS_PATH,
)
from app.models.shopify_session import ShopifySession
from app.services.session_storage import load_offline_session, store_offline_session
from app.services.shopify_client import ShopifyAdminClient, ShopifyApiError
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)
AUTH_PREFIX = "[AUTH]"

OAUTH_STATE_COOKIE = "shopify_app_state"
OAUTH_STATE_SALT = "shopify-oauth-state"
RETRY_INVALID_SESSION_HEADER = "X-Shopify-Retry-Invalid-Session-Request"
SESSION_TOKEN_BOUNCE_PATH = f"{AUTH_PATH_PREFIX}/session-token"
RELOAD_PARAM = "shopify-reload"


class InvalidSessionTokenError(Exception):
    pass


@dataclass
class AdminSession:
    """Authenticated admin context resolved from a session token."""

    shop: str
    access_token: str
    scope: str = ""
    user_id: str | None = None
    session_token: str | None = None


def decode_session_token(token: str, *, api_key: str | None = None, api_secret: str | None = None) -> Dict[str, Any]:
    """Validate an App Bridge session token and return its claims.

    The token is an HS256 JWT signed with the app secret whose ``aud`` is the
    app's API key. ``dest`` names the shop and ``iss`` must point at the same
    shop's admin.
    """
    api_key = SHOPIFY_API_KEY if api_key is None else api_key
    api_secret = SHOPIFY_API_SECRET if api_secret is None else api_secret
    if not api_key or not api_secret:
        raise InvalidSessionTokenError("Shopify credentials are not configured")

    try:
        payload = jwt.decode(
            token,
            api_secret,
            algorithms=["HS256"],
            audience=api_key,
            options={"leeway": SESSION_TOKEN_LEEWAY_SECONDS},
        )
    except JWTError as exc:
        raise InvalidSessionTokenError(str(exc)) from exc

    dest_host = urlsplit(str(payload.get("dest") or "")).hostname or ""
    iss_host = urlsplit(str(payload.get("iss") or "")).hostname or ""
    shop = normalize_shop_domain(dest_host)
    if not shop:
        raise InvalidSessionTokenError("Invalid dest claim")
    if iss_host != shop:
        raise InvalidSessionTokenError("Issuer does not match destination")

    payload["shop"] = shop
    return payload


def _hmac_sha256(secret: str, message: bytes) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def verify_query_hmac(params: Iterable[tuple[str, str]], *, api_secret: str | None = None) -> bool:
    """Check the ``hmac`` parameter Shopify appends to OAuth redirects."""
    api_secret = SHOPIFY_API_SECRET if api_secret is None else api_secret
    pairs = list(params)
    provided = next((value for key, value in pairs if key == "hmac"), None)
    if not provided or not api_secret:
        return False

    message = "&".join(
        f"{key}={value}" for key, value in sorted(pairs) if key not in {"hmac", "signature"}
    )
    computed = _hmac_sha256(api_secret, message.encode("utf-8")).hex()
    return hmac.compare_digest(computed, provided)


def verify_app_proxy_signature(params: Iterable[tuple[str, str]], *, api_secret: str | None = None) -> bool:
    """Check the ``signature`` parameter Shopify adds to app proxy requests.

    Unlike the OAuth hmac, repeated keys are joined with commas and the
    ``key=value`` pairs are concatenated without a separator.
    """
    api_secret = SHOPIFY_API_SECRET if api_secret is None else api_secret
    grouped: dict[str, list[str]] = {}
    provided = None
    for key, value in params:
        if key == "signature":
            provided = value
            continue
        grouped.setdefault(key, []).append(value)
    if not provided or not api_secret:
        return False

    message = "".join(f"{key}={','.join(values)}" for key, values in sorted(grouped.items()))
    computed = _hmac_sha256(api_secret, message.encode("utf-8")).hex()
    return hmac.compare_digest(computed, provided)


def verify_webhook_hmac(body: bytes, provided: str | None, *, api_secret: str | None = None) -> bool:
    api_secret = SHOPIFY_API_SECRET if api_secret is None else api_secret
    if not provided or not api_secret:
        return False
    computed = base64.b64encode(_hmac_sha256(api_secret, body)).decode("utf-8")
    return hmac.compare_digest(computed, provided.strip())


def _state_serializer() -> URLSafeTimedSerializer:
    if not SHOPIFY_API_SECRET:
        raise RuntimeError("SHOPIFY_API_SECRET is not configured")
    return URLSafeTimedSerializer(SHOPIFY_API_SECRET, salt=OAUTH_STATE_SALT)


def create_oauth_state() -> tuple[str, str]:
    """Return ``(nonce, signed_cookie_value)`` for a new OAuth attempt."""
    nonce = secrets.token_urlsafe(24)
    return nonce, _state_serializer().dumps(nonce)


def verify_oauth_state(nonce: str | None, cookie_value: str | None) -> bool:
    if not nonce or not cookie_value:
        return False
    try:
        expected = _state_serializer().loads(cookie_value, max_age=OAUTH_STATE_MAX_AGE_SECONDS)
    except (BadSignature, SignatureExpired):
        return False
    return hmac.compare_digest(str(expected), nonce)


def set_oauth_state_cookie(response: Response, cookie_value: str) -> None:
    response.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=cookie_value,
        max_age=OAUTH_STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=OAUTH_STATE_COOKIE_SECURE,
        samesite="lax",
        path=AUTH_PATH_PREFIX,
    )


def clear_oauth_state_cookie(response: Response) -> None:
    response.delete_cookie(key=OAUTH_STATE_COOKIE, path=AUTH_PATH_PREFIX)


def build_authorize_url(shop: str, nonce: str) -> str:
    query = urlencode(
        {
            "client_id": SHOPIFY_API_KEY,
            "scope": ",".join(SCOPES),
            "redirect_uri": f"{SHOPIFY_APP_URL}{AUTH_PATH_PREFIX}/callback",
            "state": nonce,
        }
    )
    return f"https://{shop}/admin/oauth/authorize?{query}"


def add_document_response_headers(response: Response, shop: Optional[str]) -> None:
    """Allow the admin to frame the page for the given shop."""
    ancestors = ["https://admin.shopify.com"]
    if shop:
        ancestors.insert(0, f"https://{shop}")
    response.headers["Content-Security-Policy"] = f"frame-ancestors {' '.join(ancestors)};"


def run_after_auth_hook(client: ShopifyAdminClient, session: ShopifySession) -> None:
    """Register the app's webhooks; failures are logged and never block login."""
    callback_url = f"{SHOPIFY_APP_URL}{WEBHOOKS_PATH}"
    for topic in WEBHOOK_TOPICS:
        try:
            subscription_id = client.register_webhook(
                session.shop,
                session.access_token,
                topic=topic,
                callback_url=callback_url,
            )
        except ShopifyApiError:
            logger.exception("%s webhook registration failed shop=%s topic=%s", AUTH_PREFIX, session.shop, topic)
            continue
        logger.info(
            "%s webhook registered shop=%s topic=%s subscription_id=%s",
            AUTH_PREFIX,
            session.shop,
            topic,
            subscription_id,
        )


def ensure_offline_session(
    db: Session,
    shop: str,
    session_token: str,
    client: ShopifyAdminClient,
) -> ShopifySession:
    """Return the stored offline session, exchanging the session token when missing."""
    stored = load_offline_session(db, shop)
    if stored is not None:
        return stored

    logger.info("%s no offline session; exchanging session token shop=%s", AUTH_PREFIX, shop)
    token = client.exchange_session_token(shop, session_token)
    stored = store_offline_session(db, shop, token)
    run_after_auth_hook(client, stored)
    return stored


def extract_session_token(headers: Mapping[str, str], query: Mapping[str, str]) -> str | None:
    authorization = headers.get("authorization") or ""
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    id_token = (query.get("id_token") or "").strip()
    return id_token or None


def embedded_query(params: Mapping[str, str], shop: str) -> dict[str, str]:
    """Query keys a document request needs to stay inside the embedded admin."""
    query = {"shop": shop}
    if params.get("host"):
        query["host"] = params["host"]
    if params.get("embedded") == "1":
        query["embedded"] = "1"
    return query


def build_bounce_url(path: str, params: Mapping[str, str], shop: str) -> str:
    """Send a document request through App Bridge to pick up a fresh ``id_token``.

    The reload target never carries the stale token; App Bridge appends a new one.
    """
    query = embedded_query(params, shop)
    reload_target = f"{path}?{urlencode(query)}"
    return f"{SESSION_TOKEN_BOUNCE_PATH}?{urlencode({**query, RELOAD_PARAM: reload_target})}"
