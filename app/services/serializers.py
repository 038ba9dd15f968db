from __future__ import annotations

from datetime import datetime
from typing import Any

from app.models.appointment import Appointment
from app.models.barber import Barber
from app.models.inquiry import Inquiry
from app.models.service import Service
from app.models.shop import Shop


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def shop_to_dict(shop: Shop) -> dict[str, Any]:
    return {
        "id": shop.id,
        "shopDomain": shop.shop_domain,
        "shopName": shop.shop_name,
        "isActive": shop.is_active,
        "subscriptionStatus": shop.subscription_status,
        "createdAt": _iso(shop.created_at),
        "updatedAt": _iso(shop.updated_at),
    }


def barber_to_dict(barber: Barber) -> dict[str, Any]:
    return {
        "id": barber.id,
        "shopId": barber.shop_id,
        "name": barber.name,
        "specialty": barber.specialty,
        "bio": barber.bio,
        "imageUrl": barber.image_url,
        "isActive": barber.is_active,
        "createdAt": _iso(barber.created_at),
        "updatedAt": _iso(barber.updated_at),
    }


def service_to_dict(service: Service) -> dict[str, Any]:
    return {
        "id": service.id,
        "shopId": service.shop_id,
        "name": service.name,
        "description": service.description,
        "price": service.price,
        "duration": service.duration,
        "isActive": service.is_active,
        "createdAt": _iso(service.created_at),
        "updatedAt": _iso(service.updated_at),
    }


def appointment_to_dict(appointment: Appointment, *, include_relations: bool = True) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": appointment.id,
        "shopId": appointment.shop_id,
        "customerName": appointment.customer_name,
        "customerEmail": appointment.customer_email,
        "customerPhone": appointment.customer_phone,
        "serviceId": appointment.service_id,
        "barberId": appointment.barber_id,
        "appointmentDate": _iso(appointment.appointment_date),
        "notes": appointment.notes,
        "status": appointment.status,
        "createdAt": _iso(appointment.created_at),
        "updatedAt": _iso(appointment.updated_at),
    }
    if include_relations:
        payload["service"] = service_to_dict(appointment.service) if appointment.service else None
        payload["barber"] = barber_to_dict(appointment.barber) if appointment.barber else None
    return payload


def inquiry_to_dict(inquiry: Inquiry) -> dict[str, Any]:
    return {
        "id": inquiry.id,
        "shopId": inquiry.shop_id,
        "name": inquiry.name,
        "email": inquiry.email,
        "phone": inquiry.phone,
        "message": inquiry.message,
        "status": inquiry.status,
        "createdAt": _iso(inquiry.created_at),
    }
