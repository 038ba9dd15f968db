from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session, joinedload

from app.models.appointment import APPOINTMENT_STATUS_SCHEDULED, APPOINTMENT_STATUSES, Appointment
from app.models.barber import Barber
from app.models.service import Service
from app.models.shop import Shop

logger = logging.getLogger(__name__)
APPOINTMENTS_PREFIX = "[APPOINTMENTS]"


class AppointmentBookingError(Exception):
    pass


class AppointmentInput(BaseModel):
    customer_name: str
    customer_email: str
    customer_phone: str
    service_id: str
    appointment_date: str
    barber_id: Optional[str] = None
    notes: Optional[str] = None


def parse_appointment_date(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time (``datetime-local`` inputs included).

    Aware values are converted to naive UTC; naive values are stored as given.
    """
    raw = (value or "").strip()
    if not raw:
        raise AppointmentBookingError("Appointment date is required")
    if raw.endswith("Z"):
        raw = f"{raw[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise AppointmentBookingError(f"Invalid appointment date: {value}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_id(value: str | None, label: str) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise AppointmentBookingError(f"Invalid {label} id: {value}") from exc


def _resolve_service(db: Session, shop: Shop, raw_id: str) -> Service:
    service_id = _parse_id(raw_id, "service")
    service = db.query(Service).filter(Service.id == service_id, Service.shop_id == shop.id).first()
    if service is None:
        raise AppointmentBookingError(f"Unknown service: {service_id}")
    return service


def _resolve_barber(db: Session, shop: Shop, raw_id: str | None) -> Barber | None:
    if raw_id is None or not str(raw_id).strip():
        return None
    barber_id = _parse_id(raw_id, "barber")
    barber = db.query(Barber).filter(Barber.id == barber_id, Barber.shop_id == shop.id).first()
    if barber is None:
        raise AppointmentBookingError(f"Unknown barber: {barber_id}")
    return barber


def create_appointment(db: Session, shop: Shop, data: AppointmentInput) -> Appointment:
    appointment_date = parse_appointment_date(data.appointment_date)
    service = _resolve_service(db, shop, data.service_id)
    barber = _resolve_barber(db, shop, data.barber_id)

    appointment = Appointment(
        shop_id=shop.id,
        customer_name=data.customer_name,
        customer_email=data.customer_email,
        customer_phone=data.customer_phone,
        service_id=service.id,
        barber_id=barber.id if barber else None,
        appointment_date=appointment_date,
        notes=data.notes or None,
        status=APPOINTMENT_STATUS_SCHEDULED,
    )
    db.add(appointment)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)
    logger.info(
        "%s created appointment_id=%s shop_id=%s service_id=%s barber_id=%s",
        APPOINTMENTS_PREFIX,
        appointment.id,
        shop.id,
        appointment.service_id,
        appointment.barber_id,
    )
    return appointment


def update_appointment_status(db: Session, shop: Shop, appointment_id: int, status: str) -> Appointment | None:
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id, Appointment.shop_id == shop.id)
        .first()
    )
    if appointment is None:
        return None

    if status not in APPOINTMENT_STATUSES:
        logger.warning(
            "%s non-standard status appointment_id=%s status=%s",
            APPOINTMENTS_PREFIX,
            appointment_id,
            status,
        )
    appointment.status = status
    db.commit()
    db.refresh(appointment)
    return appointment


def list_shop_appointments(db: Session, shop: Shop) -> list[Appointment]:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.service), joinedload(Appointment.barber))
        .filter(Appointment.shop_id == shop.id)
        .order_by(Appointment.appointment_date.desc(), Appointment.id.desc())
        .all()
    )


def list_recent_appointments(db: Session, shop: Shop, limit: int = 5) -> list[Appointment]:
    return (
        db.query(Appointment)
        .options(joinedload(Appointment.service), joinedload(Appointment.barber))
        .filter(Appointment.shop_id == shop.id)
        .order_by(Appointment.created_at.desc(), Appointment.id.desc())
        .limit(limit)
        .all()
    )
