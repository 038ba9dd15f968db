from __future__ import annotations

from contextvars import ContextVar

from utils.shop_domain import normalize_shop_domain

_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_SHOP_CTX: ContextVar[str | None] = ContextVar("shop", default=None)
_USER_ID_CTX: ContextVar[str | None] = ContextVar("user_id", default=None)


def set_request_context(
    *, request_id: str | None = None, shop: str | None = None, user_id: str | None = None
) -> None:
    """Record who a request belongs to for log lines emitted while it runs.

    ``shop`` is stored as its canonical ``*.myshopify.com`` domain; values that
    are not shop domains leave the current shop untouched.
    """
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if shop is not None:
        shop_domain = normalize_shop_domain(shop)
        if shop_domain:
            _SHOP_CTX.set(shop_domain)
    if user_id is not None:
        _USER_ID_CTX.set(user_id)


def request_context_snapshot() -> dict[str, str | None]:
    return {
        "request_id": _REQUEST_ID_CTX.get(),
        "shop": _SHOP_CTX.get(),
        "user_id": _USER_ID_CTX.get(),
    }


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _SHOP_CTX.set(None)
    _USER_ID_CTX.set(None)
