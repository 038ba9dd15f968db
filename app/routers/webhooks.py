from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from app.core.config import WEBHOOKS_PATH
from app.core.database import get_db
from app.services.session_storage import delete_sessions_for_shop, load_offline_session
from app.services.shop_bootstrap import deactivate_shop
from app.services.shopify_auth import verify_webhook_hmac
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)
WEBHOOK_PREFIX = "[WEBHOOK]"

router = APIRouter(tags=["webhooks"])


def normalize_topic(raw: str | None) -> str:
    """``app/uninstalled`` -> ``APP_UNINSTALLED``."""
    return (raw or "").strip().replace("/", "_").replace(".", "_").upper()


@router.post(WEBHOOKS_PATH)
async def receive_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    if not verify_webhook_hmac(body, request.headers.get("X-Shopify-Hmac-Sha256")):
        logger.warning("%s rejected: invalid hmac", WEBHOOK_PREFIX)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")

    topic = normalize_topic(request.headers.get("X-Shopify-Topic"))
    raw_shop = request.headers.get("X-Shopify-Shop-Domain") or ""
    shop = normalize_shop_domain(raw_shop) or raw_shop.strip().lower()
    request.state.shop_domain = shop or None
    logger.info(
        "%s received topic=%s shop=%s webhook_id=%s",
        WEBHOOK_PREFIX,
        topic,
        shop,
        request.headers.get("X-Shopify-Webhook-Id"),
    )

    # Without a stored session there is nothing to act on for this shop
    if not shop or load_offline_session(db, shop) is None:
        logger.info("%s no session; acknowledged without action shop=%s", WEBHOOK_PREFIX, shop)
        return Response(status_code=status.HTTP_200_OK)

    if topic == "APP_UNINSTALLED":
        deactivate_shop(db, shop)
        delete_sessions_for_shop(db, shop)
        return Response(status_code=status.HTTP_200_OK)

    logger.warning("%s unhandled topic=%s shop=%s", WEBHOOK_PREFIX, topic, shop)
    return Response(content="Unhandled webhook topic", status_code=status.HTTP_404_NOT_FOUND, media_type="text/plain")
