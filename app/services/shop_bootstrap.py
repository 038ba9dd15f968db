from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models.shop import Shop
from utils.shop_domain import shop_name_from_domain

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[SHOP_BOOTSTRAP]"
DEFAULT_SUBSCRIPTION_STATUS = "trial"


class ShopNotFoundError(Exception):
    def __init__(self, shop_domain: str) -> None:
        super().__init__("Shop not found")
        self.shop_domain = shop_domain


def find_shop(db: Session, shop_domain: str) -> Shop | None:
    return db.query(Shop).filter(Shop.shop_domain == shop_domain).first()


def get_shop_or_raise(db: Session, shop_domain: str) -> Shop:
    shop = find_shop(db, shop_domain)
    if shop is None:
        raise ShopNotFoundError(shop_domain)
    return shop


def bootstrap_shop(db: Session, shop_domain: str) -> Shop:
    """Create the shop on first visit and reactivate it after a reinstall."""
    shop = find_shop(db, shop_domain)
    if shop is None:
        shop = Shop(
            shop_domain=shop_domain,
            shop_name=shop_name_from_domain(shop_domain),
            is_active=True,
            subscription_status=DEFAULT_SUBSCRIPTION_STATUS,
        )
        db.add(shop)
        db.commit()
        db.refresh(shop)
        logger.info("%s created shop_id=%s shop=%s", BOOTSTRAP_PREFIX, shop.id, shop_domain)
        return shop

    if not shop.is_active:
        shop.is_active = True
        db.commit()
        db.refresh(shop)
        logger.info("%s reactivated shop_id=%s shop=%s", BOOTSTRAP_PREFIX, shop.id, shop_domain)

    return shop


def deactivate_shop(db: Session, shop_domain: str) -> Shop | None:
    shop = find_shop(db, shop_domain)
    if shop is None:
        logger.warning("%s deactivate skipped; unknown shop=%s", BOOTSTRAP_PREFIX, shop_domain)
        return None
    shop.is_active = False
    db.commit()
    db.refresh(shop)
    logger.info("%s deactivated shop_id=%s shop=%s", BOOTSTRAP_PREFIX, shop.id, shop_domain)
    return shop
