import json

import httpx
import pytest

from app.services.shopify_client import (
    OFFLINE_ACCESS_TOKEN_TYPE,
    TOKEN_EXCHANGE_GRANT_TYPE,
    ShopifyAdminClient,
    ShopifyApiError,
)
from tests.fixtures_data import SHOP_DOMAIN, TEST_API_KEY, TEST_API_SECRET


def _client(handler) -> ShopifyAdminClient:
    return ShopifyAdminClient(
        api_key=TEST_API_KEY,
        api_secret=TEST_API_SECRET,
        api_version="2024-07",
        transport=httpx.MockTransport(handler),
    )


def test_exchange_session_token_requests_offline_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"access_token": "shpat_offline", "scope": "write_products"})

    token = _client(handler).exchange_session_token(SHOP_DOMAIN, "session.jwt")

    assert seen["url"] == f"https://{SHOP_DOMAIN}/admin/oauth/access_token"
    assert seen["body"]["grant_type"] == TOKEN_EXCHANGE_GRANT_TYPE
    assert seen["body"]["requested_token_type"] == OFFLINE_ACCESS_TOKEN_TYPE
    assert seen["body"]["subject_token"] == "session.jwt"
    assert token.access_token == "shpat_offline"
    assert token.expires_in is None


def test_error_status_is_raised_as_shopify_api_error():
    client = _client(lambda request: httpx.Response(401, json={"errors": "invalid"}))

    with pytest.raises(ShopifyApiError) as excinfo:
        client.exchange_code(SHOP_DOMAIN, "bad-code")

    assert excinfo.value.status_code == 401


def test_transport_failure_is_wrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(ShopifyApiError):
        _client(handler).exchange_code(SHOP_DOMAIN, "code")


def test_register_webhook_sends_topic_and_callback():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["token"] = request.headers["X-Shopify-Access-Token"]
        seen["variables"] = json.loads(request.content)["variables"]
        return httpx.Response(
            200,
            json={
                "data": {
                    "webhookSubscriptionCreate": {
                        "webhookSubscription": {"id": "gid://shopify/WebhookSubscription/7"},
                        "userErrors": [],
                    }
                }
            },
        )

    subscription_id = _client(handler).register_webhook(
        SHOP_DOMAIN,
        "shpat_offline",
        topic="APP_UNINSTALLED",
        callback_url="https://barber.example.com/webhooks",
    )

    assert subscription_id == "gid://shopify/WebhookSubscription/7"
    assert seen["path"] == "/admin/api/2024-07/graphql.json"
    assert seen["token"] == "shpat_offline"
    assert seen["variables"]["topic"] == "APP_UNINSTALLED"
    assert seen["variables"]["webhookSubscription"]["callbackUrl"] == "https://barber.example.com/webhooks"


def test_register_webhook_user_errors_raise():
    client = _client(
        lambda request: httpx.Response(
            200,
            json={
                "data": {
                    "webhookSubscriptionCreate": {
                        "webhookSubscription": None,
                        "userErrors": [{"field": ["callbackUrl"], "message": "Address is invalid"}],
                    }
                }
            },
        )
    )

    with pytest.raises(ShopifyApiError):
        client.register_webhook(SHOP_DOMAIN, "shpat", topic="APP_UNINSTALLED", callback_url="http://bad")
