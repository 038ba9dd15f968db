import base64
import hashlib
import hmac
import json

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.models.shop import Shop
from app.models.shopify_session import ShopifySession
from app.routers.webhooks import normalize_topic, router as webhooks_router
from app.services import shopify_auth
from tests.fixtures_data import ADMIN_ACCESS_TOKEN, OTHER_SHOP_DOMAIN, SHOP_DOMAIN, TEST_API_SECRET


def _build_client(monkeypatch, *, with_session: bool = True):
    monkeypatch.setattr(shopify_auth, "SHOPIFY_API_SECRET", TEST_API_SECRET)
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    db.add(Shop(shop_domain=SHOP_DOMAIN, shop_name="fade-factory", is_active=True))
    if with_session:
        db.add(
            ShopifySession(
                id=f"offline_{SHOP_DOMAIN}",
                shop=SHOP_DOMAIN,
                state="",
                is_online=False,
                scope="write_products",
                access_token=ADMIN_ACCESS_TOKEN,
            )
        )
    db.commit()

    app = FastAPI()
    app.include_router(webhooks_router)
    app.dependency_overrides[get_db] = lambda: db
    return TestClient(app), db


def _signed_headers(body: bytes, topic: str, shop: str = SHOP_DOMAIN) -> dict:
    digest = hmac.new(TEST_API_SECRET.encode(), body, hashlib.sha256).digest()
    return {
        "X-Shopify-Hmac-Sha256": base64.b64encode(digest).decode(),
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": shop,
        "Content-Type": "application/json",
    }


def test_normalize_topic():
    assert normalize_topic("app/uninstalled") == "APP_UNINSTALLED"
    assert normalize_topic("customers/data_request") == "CUSTOMERS_DATA_REQUEST"
    assert normalize_topic(None) == ""


def test_invalid_signature_is_rejected(monkeypatch):
    client, db = _build_client(monkeypatch)
    body = json.dumps({"id": 1}).encode()
    headers = _signed_headers(body, "app/uninstalled")
    headers["X-Shopify-Hmac-Sha256"] = base64.b64encode(b"forged").decode()

    response = client.post("/webhooks", content=body, headers=headers)

    assert response.status_code == 401
    assert db.query(Shop).one().is_active is True


def test_app_uninstalled_deactivates_shop_and_drops_sessions(monkeypatch):
    client, db = _build_client(monkeypatch)
    body = json.dumps({"id": 1, "domain": SHOP_DOMAIN}).encode()

    response = client.post("/webhooks", content=body, headers=_signed_headers(body, "app/uninstalled"))

    assert response.status_code == 200
    assert response.content == b""
    db.expire_all()
    assert db.query(Shop).one().is_active is False
    assert db.query(ShopifySession).count() == 0


def test_webhook_without_stored_session_is_acknowledged_without_action(monkeypatch):
    client, db = _build_client(monkeypatch, with_session=False)
    body = b"{}"

    response = client.post("/webhooks", content=body, headers=_signed_headers(body, "app/uninstalled"))

    assert response.status_code == 200
    assert response.content == b""
    assert db.query(Shop).one().is_active is True


def test_webhook_for_unknown_shop_session_is_acknowledged(monkeypatch):
    client, _db = _build_client(monkeypatch)
    body = b"{}"

    response = client.post(
        "/webhooks",
        content=body,
        headers=_signed_headers(body, "app/uninstalled", shop=OTHER_SHOP_DOMAIN),
    )

    assert response.status_code == 200


def test_compliance_topics_are_unhandled(monkeypatch):
    client, db = _build_client(monkeypatch)
    body = json.dumps({"shop_domain": SHOP_DOMAIN}).encode()

    response = client.post("/webhooks", content=body, headers=_signed_headers(body, "shop/redact"))

    assert response.status_code == 404
    assert response.text == "Unhandled webhook topic"
    assert db.query(Shop).one().is_active is True
