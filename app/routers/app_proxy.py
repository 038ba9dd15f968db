"""Storefront endpoints reached through the shop's app proxy.

These requests are not authenticated by a session token. The shop is named by
the ``shop`` query parameter the proxy appends, and with
``SHOPIFY_APP_PROXY_STRICT`` enabled the proxy signature must also verify.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core import config
from app.core.database import get_db
from app.models.barber import Barber
from app.models.service import Service
from app.models.shop import Shop
from app.services.appointments import AppointmentInput, create_appointment
from app.services.form_data import form_required_str, form_str
from app.services.serializers import barber_to_dict, service_to_dict, shop_to_dict
from app.services.shop_bootstrap import find_shop
from app.services.shopify_auth import verify_app_proxy_signature
from utils.shop_domain import normalize_shop_domain

logger = logging.getLogger(__name__)
APP_PROXY_PREFIX = "[APP_PROXY]"

REQUIRED_BOOKING_FIELDS = ("customerName", "customerEmail", "customerPhone", "serviceId", "appointmentDate")

router = APIRouter(prefix="/app_proxy", tags=["app-proxy"])


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content = {"error": error}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _resolve_shop(request: Request, db: Session) -> Shop | JSONResponse:
    if config.SHOPIFY_APP_PROXY_STRICT and not verify_app_proxy_signature(request.query_params.multi_items()):
        logger.warning("%s invalid signature path=%s", APP_PROXY_PREFIX, request.url.path)
        return _error(401, "Invalid signature")

    raw_shop = request.query_params.get("shop")
    if not raw_shop:
        return _error(400, "Shop parameter is required")

    shop_domain = normalize_shop_domain(raw_shop) or raw_shop.strip().lower()
    shop = find_shop(db, shop_domain)
    if shop is None:
        logger.info("%s unknown shop=%s", APP_PROXY_PREFIX, shop_domain)
        return _error(404, "Shop not found")

    request.state.shop_domain = shop.shop_domain
    return shop


@router.get("")
def storefront_catalog(request: Request, db: Session = Depends(get_db)):
    shop = _resolve_shop(request, db)
    if isinstance(shop, JSONResponse):
        return shop

    services = (
        db.query(Service)
        .filter(Service.shop_id == shop.id, Service.is_active.is_(True))
        .order_by(Service.name.asc())
        .all()
    )
    barbers = (
        db.query(Barber)
        .filter(Barber.shop_id == shop.id, Barber.is_active.is_(True))
        .order_by(Barber.name.asc())
        .all()
    )
    return {
        "shop": shop_to_dict(shop),
        "services": [service_to_dict(service) for service in services],
        "barbers": [barber_to_dict(barber) for barber in barbers],
    }


@router.post("")
async def storefront_booking(request: Request, db: Session = Depends(get_db)):
    shop = _resolve_shop(request, db)
    if isinstance(shop, JSONResponse):
        return shop

    form = await request.form()
    if any(form_required_str(form, field) is None for field in REQUIRED_BOOKING_FIELDS):
        return _error(
            400,
            "Missing required fields",
            "Name, email, phone, service, and appointment date are required",
        )

    data = AppointmentInput(
        customer_name=form_str(form, "customerName"),
        customer_email=form_str(form, "customerEmail"),
        customer_phone=form_str(form, "customerPhone"),
        service_id=form_str(form, "serviceId"),
        appointment_date=form_str(form, "appointmentDate"),
        barber_id=form_str(form, "barberId"),
        notes=form_str(form, "notes"),
    )
    try:
        appointment = create_appointment(db, shop, data)
    except Exception:
        logger.exception("%s booking failed shop=%s", APP_PROXY_PREFIX, shop.shop_domain)
        return _error(500, "Failed to create appointment", "Please try again or contact the shop directly")

    logger.info(
        "%s booking created appointment_id=%s shop=%s",
        APP_PROXY_PREFIX,
        appointment.id,
        shop.shop_domain,
    )
    return {
        "success": True,
        "appointment": {
            "id": appointment.id,
            "customerName": appointment.customer_name,
            "service": appointment.service.name if appointment.service else None,
            "barber": appointment.barber.name if appointment.barber else None,
            "appointmentDate": appointment.appointment_date.isoformat(),
            "status": appointment.status,
        },
    }


@router.api_route("", methods=["PUT", "PATCH", "DELETE"], include_in_schema=False)
def storefront_method_not_allowed():
    return _error(405, "Method not allowed")
