from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.models.shopify_session import ShopifySession
from app.services.shopify_client import AccessTokenResponse

logger = logging.getLogger(__name__)
SESSION_PREFIX = "[SESSION_STORAGE]"


def offline_session_id(shop: str) -> str:
    return f"offline_{shop}"


def load_offline_session(db: Session, shop: str) -> ShopifySession | None:
    session = db.query(ShopifySession).filter(ShopifySession.id == offline_session_id(shop)).first()
    if session is None:
        return None
    expires = session.expires
    if expires is not None:
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if expires <= datetime.now(timezone.utc):
            logger.info("%s offline session expired shop=%s", SESSION_PREFIX, shop)
            return None
    return session


def find_sessions_by_shop(db: Session, shop: str) -> list[ShopifySession]:
    return db.query(ShopifySession).filter(ShopifySession.shop == shop).all()


def store_offline_session(db: Session, shop: str, token: AccessTokenResponse, *, state: str = "") -> ShopifySession:
    session_id = offline_session_id(shop)
    session = db.query(ShopifySession).filter(ShopifySession.id == session_id).first()
    if session is None:
        session = ShopifySession(id=session_id, shop=shop, is_online=False)
        db.add(session)

    session.state = state
    session.scope = token.scope
    session.access_token = token.access_token
    session.user_id = token.associated_user_id
    session.expires = (
        datetime.now(timezone.utc) + timedelta(seconds=int(token.expires_in)) if token.expires_in else None
    )
    db.commit()
    db.refresh(session)
    logger.info("%s stored offline session shop=%s scope=%s", SESSION_PREFIX, shop, token.scope)
    return session


def delete_sessions_for_shop(db: Session, shop: str) -> int:
    deleted = db.query(ShopifySession).filter(ShopifySession.shop == shop).delete(synchronize_session=False)
    db.commit()
    logger.info("%s deleted sessions shop=%s count=%s", SESSION_PREFIX, shop, deleted)
    return deleted
