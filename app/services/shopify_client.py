from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import SHOPIFY_API_KEY, SHOPIFY_API_SECRET, SHOPIFY_API_VERSION

logger = logging.getLogger(__name__)
SHOPIFY_API_PREFIX = "[SHOPIFY_API]"

TOKEN_EXCHANGE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:token-exchange"
ID_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:id_token"
OFFLINE_ACCESS_TOKEN_TYPE = "urn:shopify:params:oauth:token-type:offline-access-token"

WEBHOOK_SUBSCRIPTION_CREATE = """
mutation webhookSubscriptionCreate($topic: WebhookSubscriptionTopic!, $webhookSubscription: WebhookSubscriptionInput!) {
  webhookSubscriptionCreate(topic: $topic, webhookSubscription: $webhookSubscription) {
    webhookSubscription { id }
    userErrors { field message }
  }
}
"""


class ShopifyApiError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AccessTokenResponse:
    access_token: str
    scope: str
    expires_in: int | None = None
    associated_user_id: int | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AccessTokenResponse":
        access_token = payload.get("access_token")
        if not access_token:
            raise ShopifyApiError("Access token missing from response")
        associated_user = payload.get("associated_user") or {}
        return cls(
            access_token=access_token,
            scope=payload.get("scope") or "",
            expires_in=payload.get("expires_in"),
            associated_user_id=associated_user.get("id"),
        )


class ShopifyAdminClient:
    """Thin synchronous client for the Shopify OAuth and Admin GraphQL endpoints."""

    def __init__(
        self,
        *,
        api_key: str = SHOPIFY_API_KEY,
        api_secret: str = SHOPIFY_API_SECRET,
        api_version: str = SHOPIFY_API_VERSION,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    def _post(self, url: str, *, json: dict[str, Any], headers: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=json, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("%s request failed url=%s error=%s", SHOPIFY_API_PREFIX, url, exc)
            raise ShopifyApiError(f"Shopify request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "%s unexpected status url=%s status_code=%s",
                SHOPIFY_API_PREFIX,
                url,
                response.status_code,
            )
            raise ShopifyApiError(
                f"Shopify responded with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ShopifyApiError("Shopify returned a non-JSON body") from exc

    def exchange_code(self, shop: str, code: str) -> AccessTokenResponse:
        payload = self._post(
            f"https://{shop}/admin/oauth/access_token",
            json={"client_id": self.api_key, "client_secret": self.api_secret, "code": code},
        )
        return AccessTokenResponse.from_payload(payload)

    def exchange_session_token(self, shop: str, session_token: str) -> AccessTokenResponse:
        payload = self._post(
            f"https://{shop}/admin/oauth/access_token",
            json={
                "client_id": self.api_key,
                "client_secret": self.api_secret,
                "grant_type": TOKEN_EXCHANGE_GRANT_TYPE,
                "subject_token": session_token,
                "subject_token_type": ID_TOKEN_TYPE,
                "requested_token_type": OFFLINE_ACCESS_TOKEN_TYPE,
            },
        )
        return AccessTokenResponse.from_payload(payload)

    def graphql(self, shop: str, access_token: str, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = self._post(
            f"https://{shop}/admin/api/{self.api_version}/graphql.json",
            json={"query": query, "variables": variables or {}},
            headers={"X-Shopify-Access-Token": access_token},
        )
        if payload.get("errors"):
            raise ShopifyApiError(f"GraphQL errors: {payload['errors']}")
        return payload.get("data") or {}

    def register_webhook(self, shop: str, access_token: str, *, topic: str, callback_url: str) -> str | None:
        data = self.graphql(
            shop,
            access_token,
            WEBHOOK_SUBSCRIPTION_CREATE,
            {"topic": topic, "webhookSubscription": {"callbackUrl": callback_url, "format": "JSON"}},
        )
        result = data.get("webhookSubscriptionCreate") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyApiError(f"Webhook registration rejected: {user_errors}")
        subscription = result.get("webhookSubscription") or {}
        return subscription.get("id")
