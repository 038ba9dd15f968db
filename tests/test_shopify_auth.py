import hashlib
import html
import re
import hmac
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.deps import authenticate_admin, get_shopify_client
from app.models.shopify_session import ShopifySession
from app.routers.auth import router as auth_router
from app.routers.barbers import router as barbers_router
from app.routers.dashboard import router as dashboard_router
from app.services import shopify_auth
from app.services.shopify_auth import (
    OAUTH_STATE_COOKIE,
    RELOAD_PARAM,
    RETRY_INVALID_SESSION_HEADER,
    AdminSession,
    InvalidSessionTokenError,
    create_oauth_state,
    decode_session_token,
    extract_session_token,
    verify_oauth_state,
    verify_query_hmac,
)
from app.services.shopify_client import AccessTokenResponse, ShopifyApiError
from tests.fixtures_data import ADMIN_ACCESS_TOKEN, SHOP_DOMAIN, TEST_API_KEY, TEST_API_SECRET


class FakeShopifyClient:
    def __init__(self, *, fail_exchange: bool = False) -> None:
        self.fail_exchange = fail_exchange
        self.exchanged_tokens: list[str] = []
        self.exchanged_codes: list[str] = []
        self.registered: list[tuple[str, str]] = []

    def exchange_session_token(self, shop, session_token):
        if self.fail_exchange:
            raise ShopifyApiError("boom", status_code=400)
        self.exchanged_tokens.append(session_token)
        return AccessTokenResponse(access_token="shpat_exchanged", scope="write_products")

    def exchange_code(self, shop, code):
        self.exchanged_codes.append(code)
        return AccessTokenResponse(access_token="shpat_from_code", scope="write_products")

    def register_webhook(self, shop, access_token, *, topic, callback_url):
        self.registered.append((topic, callback_url))
        return "gid://shopify/WebhookSubscription/1"


@pytest.fixture(autouse=True)
def _credentials(monkeypatch):
    monkeypatch.setattr(shopify_auth, "SHOPIFY_API_KEY", TEST_API_KEY)
    monkeypatch.setattr(shopify_auth, "SHOPIFY_API_SECRET", TEST_API_SECRET)
    monkeypatch.setattr(shopify_auth, "SHOPIFY_APP_URL", "https://barber.example.com")


def _session_token(**overrides) -> str:
    now = int(time.time())
    claims = {
        "iss": f"https://{SHOP_DOMAIN}/admin",
        "dest": f"https://{SHOP_DOMAIN}",
        "aud": TEST_API_KEY,
        "sub": "42",
        "exp": now + 60,
        "nbf": now - 5,
        "iat": now - 5,
        "jti": "6f3c1b2a",
        "sid": "session-id",
    }
    claims.update(overrides)
    return jwt.encode(claims, TEST_API_SECRET, algorithm="HS256")


def _build_client(fake_client: FakeShopifyClient, *, seed_session: bool = False, session_expires=None):
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    if seed_session:
        db.add(
            ShopifySession(
                id=f"offline_{SHOP_DOMAIN}",
                shop=SHOP_DOMAIN,
                state="",
                is_online=False,
                scope="write_products",
                access_token=ADMIN_ACCESS_TOKEN,
                expires=session_expires,
            )
        )
        db.commit()

    app = FastAPI()

    @app.api_route("/whoami", methods=["GET", "POST"])
    def whoami(admin: AdminSession = Depends(authenticate_admin)):
        return {"shop": admin.shop, "accessToken": admin.access_token, "userId": admin.user_id}

    app.include_router(auth_router)
    app.include_router(dashboard_router)
    app.include_router(barbers_router)
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_shopify_client] = lambda: fake_client
    return TestClient(app), db


def test_decode_session_token_resolves_shop_from_dest():
    payload = decode_session_token(_session_token())

    assert payload["shop"] == SHOP_DOMAIN
    assert payload["sub"] == "42"


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "someone-else"},
        {"iss": "https://other-shop.myshopify.com/admin"},
        {"dest": "https://evil.example.com"},
        {"exp": int(time.time()) - 3600},
    ],
)
def test_decode_session_token_rejects_bad_claims(overrides):
    with pytest.raises(InvalidSessionTokenError):
        decode_session_token(_session_token(**overrides))


def test_decode_session_token_rejects_wrong_signature():
    token = jwt.encode({"aud": TEST_API_KEY, "dest": f"https://{SHOP_DOMAIN}"}, "not-the-secret", algorithm="HS256")

    with pytest.raises(InvalidSessionTokenError):
        decode_session_token(token)


def test_extract_session_token_prefers_bearer_header():
    assert extract_session_token({"authorization": "Bearer abc"}, {"id_token": "xyz"}) == "abc"
    assert extract_session_token({}, {"id_token": "xyz"}) == "xyz"
    assert extract_session_token({"authorization": "Basic abc"}, {}) is None


def _signed_query(params: dict[str, str]) -> dict[str, str]:
    message = "&".join(f"{key}={value}" for key, value in sorted(params.items()))
    digest = hmac.new(TEST_API_SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()
    return {**params, "hmac": digest}


def test_verify_query_hmac():
    signed = _signed_query({"shop": SHOP_DOMAIN, "code": "abc", "timestamp": "1761900000"})

    assert verify_query_hmac(signed.items()) is True
    assert verify_query_hmac({**signed, "code": "tampered"}.items()) is False
    assert verify_query_hmac({"shop": SHOP_DOMAIN}.items()) is False


def test_oauth_state_round_trip_and_mismatch():
    nonce, cookie_value = create_oauth_state()

    assert verify_oauth_state(nonce, cookie_value) is True
    assert verify_oauth_state("other-nonce", cookie_value) is False
    assert verify_oauth_state(nonce, "garbage") is False


def test_missing_token_with_shop_redirects_to_login():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/whoami", params={"shop": SHOP_DOMAIN}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == f"/auth/shopify?shop={SHOP_DOMAIN}"


def test_missing_token_without_shop_returns_retryable_401():
    client, _db = _build_client(FakeShopifyClient())

    response = client.post("/whoami")

    assert response.status_code == 401
    assert response.headers[RETRY_INVALID_SESSION_HEADER] == "1"


def test_invalid_token_returns_retryable_401():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/whoami", headers={"Authorization": f"Bearer {_session_token(aud='nope')}"})

    assert response.status_code == 401
    assert response.headers[RETRY_INVALID_SESSION_HEADER] == "1"


def test_valid_token_uses_stored_offline_session():
    fake = FakeShopifyClient()
    client, _db = _build_client(fake, seed_session=True)

    response = client.get("/whoami", headers={"Authorization": f"Bearer {_session_token()}"})

    assert response.status_code == 200
    assert response.json() == {"shop": SHOP_DOMAIN, "accessToken": ADMIN_ACCESS_TOKEN, "userId": "42"}
    assert fake.exchanged_tokens == []


def test_valid_token_without_session_exchanges_and_registers_webhook():
    fake = FakeShopifyClient()
    client, db = _build_client(fake)
    token = _session_token()

    response = client.get("/whoami", params={"id_token": token})

    assert response.status_code == 200
    assert response.json()["accessToken"] == "shpat_exchanged"
    assert fake.exchanged_tokens == [token]
    assert fake.registered == [("APP_UNINSTALLED", "https://barber.example.com/webhooks")]
    stored = db.query(ShopifySession).one()
    assert stored.id == f"offline_{SHOP_DOMAIN}"
    assert stored.access_token == "shpat_exchanged"


def test_failed_token_exchange_returns_401():
    client, db = _build_client(FakeShopifyClient(fail_exchange=True))

    response = client.get("/whoami", headers={"Authorization": f"Bearer {_session_token()}"})

    assert response.status_code == 401
    assert db.query(ShopifySession).count() == 0


def test_begin_oauth_redirects_to_authorize_url_with_state_cookie():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/auth/shopify", params={"shop": SHOP_DOMAIN}, follow_redirects=False)

    assert response.status_code == 302
    location = urlsplit(response.headers["location"])
    assert location.netloc == SHOP_DOMAIN
    assert location.path == "/admin/oauth/authorize"
    query = parse_qs(location.query)
    assert query["client_id"] == [TEST_API_KEY]
    assert query["redirect_uri"] == ["https://barber.example.com/auth/callback"]
    assert OAUTH_STATE_COOKIE in response.headers["set-cookie"]


def test_begin_oauth_rejects_invalid_shop():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/auth/shopify", params={"shop": "example.com"}, follow_redirects=False)

    assert response.status_code == 400


def test_oauth_callback_stores_session_and_redirects_to_app():
    fake = FakeShopifyClient()
    client, db = _build_client(fake)
    nonce, cookie_value = create_oauth_state()
    cookie_header = {"Cookie": f"{OAUTH_STATE_COOKIE}={cookie_value}"}
    params = _signed_query(
        {"shop": SHOP_DOMAIN, "code": "auth-code", "state": nonce, "host": "YWRtaW4", "timestamp": "1761900000"}
    )

    response = client.get(f"/auth/callback?{urlencode(params)}", headers=cookie_header, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == f"/app?shop={SHOP_DOMAIN}&host=YWRtaW4"
    assert fake.exchanged_codes == ["auth-code"]
    assert fake.registered[0][0] == "APP_UNINSTALLED"
    assert db.query(ShopifySession).one().access_token == "shpat_from_code"


def test_oauth_callback_rejects_bad_hmac_and_state():
    fake = FakeShopifyClient()
    client, db = _build_client(fake)
    nonce, cookie_value = create_oauth_state()
    cookie_header = {"Cookie": f"{OAUTH_STATE_COOKIE}={cookie_value}"}

    tampered = _signed_query({"shop": SHOP_DOMAIN, "code": "auth-code", "state": nonce})
    tampered["code"] = "swapped"
    wrong_state = _signed_query({"shop": SHOP_DOMAIN, "code": "auth-code", "state": "not-the-nonce"})

    bad_hmac = client.get(f"/auth/callback?{urlencode(tampered)}", headers=cookie_header, follow_redirects=False)
    bad_state = client.get(f"/auth/callback?{urlencode(wrong_state)}", headers=cookie_header, follow_redirects=False)

    assert bad_hmac.status_code == 400
    assert bad_state.status_code == 400
    assert fake.exchanged_codes == []
    assert db.query(ShopifySession).count() == 0


def test_other_auth_paths_redirect_to_login_preserving_query():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/auth/login", params={"shop": SHOP_DOMAIN}, follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == f"/auth/shopify?shop={SHOP_DOMAIN}"


def test_auth_post_authenticates_and_redirects_to_app():
    client, _db = _build_client(FakeShopifyClient(), seed_session=True)

    response = client.post(
        "/auth/session-token",
        headers={"Authorization": f"Bearer {_session_token()}"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == f"/app?shop={SHOP_DOMAIN}"


def test_expired_offline_session_is_exchanged_again():
    fake = FakeShopifyClient()
    expired = datetime.now(timezone.utc) - timedelta(hours=1)
    client, db = _build_client(fake, seed_session=True, session_expires=expired)
    token = _session_token()

    response = client.get("/whoami", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["accessToken"] == "shpat_exchanged"
    assert fake.exchanged_tokens == [token]
    assert db.query(ShopifySession).one().access_token == "shpat_exchanged"


EMBEDDED_PARAMS = {"shop": SHOP_DOMAIN, "host": "YWRtaW4", "embedded": "1"}
HTML = {"Accept": "text/html"}


def _nav_links(page: str) -> dict[str, str]:
    return {
        html.unescape(label): html.unescape(href)
        for href, label in re.findall(r"<a href='([^']+)'>([^<]+)</a>", page)
    }


def test_nav_links_keep_embedded_context_and_bounce_for_a_fresh_token():
    client, _db = _build_client(FakeShopifyClient(), seed_session=True)
    dashboard = client.get("/app", params={**EMBEDDED_PARAMS, "id_token": _session_token()}, headers=HTML)
    assert dashboard.status_code == 200

    barbers_link = _nav_links(dashboard.text)["Barbers"]
    assert barbers_link == f"/app/barbers?{urlencode(EMBEDDED_PARAMS)}"
    assert "id_token" not in barbers_link

    followed = client.get(barbers_link, headers=HTML, follow_redirects=False)
    assert followed.status_code == 302
    bounce = urlsplit(followed.headers["location"])
    assert bounce.path == "/auth/session-token"
    assert parse_qs(bounce.query)[RELOAD_PARAM] == [barbers_link]

    bounce_page = client.get(followed.headers["location"])
    assert bounce_page.status_code == 200
    assert "app-bridge.js" in bounce_page.text
    assert f"https://{SHOP_DOMAIN}" in bounce_page.headers["content-security-policy"]

    reloaded = client.get(f"{barbers_link}&id_token={_session_token()}", headers=HTML)
    assert reloaded.status_code == 200
    assert "Barber Management" in reloaded.text


def test_page_reload_after_an_action_drops_the_stale_token():
    client, _db = _build_client(FakeShopifyClient(), seed_session=True)

    page = client.get("/app/barbers", params={**EMBEDDED_PARAMS, "id_token": _session_token()}, headers=HTML)

    assert f'window.location.assign(window.location.pathname + "?{urlencode(EMBEDDED_PARAMS)}")' in page.text


def test_expired_token_on_embedded_page_load_bounces():
    client, _db = _build_client(FakeShopifyClient(), seed_session=True)
    stale = _session_token(exp=int(time.time()) - 3600)

    response = client.get("/app", params={**EMBEDDED_PARAMS, "id_token": stale}, follow_redirects=False)

    assert response.status_code == 302
    reload_target = parse_qs(urlsplit(response.headers["location"]).query)[RELOAD_PARAM][0]
    assert reload_target == f"/app?{urlencode(EMBEDDED_PARAMS)}"


def test_expired_bearer_token_still_gets_retryable_401():
    client, _db = _build_client(FakeShopifyClient(), seed_session=True)
    stale = _session_token(exp=int(time.time()) - 3600)

    response = client.get(
        "/app",
        params=EMBEDDED_PARAMS,
        headers={"Authorization": f"Bearer {stale}"},
        follow_redirects=False,
    )

    assert response.status_code == 401
    assert response.headers[RETRY_INVALID_SESSION_HEADER] == "1"


def test_session_token_bounce_rejects_external_reload_target():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get(
        "/auth/session-token",
        params={"shop": SHOP_DOMAIN, RELOAD_PARAM: "//evil.example.com/app"},
    )

    assert response.status_code == 400


def test_embedded_oauth_start_breaks_out_of_iframe_without_setting_state():
    client, _db = _build_client(FakeShopifyClient())

    response = client.get("/auth/shopify", params={"shop": SHOP_DOMAIN, "embedded": "1"}, follow_redirects=False)

    assert response.status_code == 200
    assert f'window.open("/auth/shopify?shop={SHOP_DOMAIN}", \'_top\')' in response.text
    assert "set-cookie" not in response.headers
    assert "/admin/oauth/authorize" not in response.text
