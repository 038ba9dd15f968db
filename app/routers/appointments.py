import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import bootstrap_admin_shop, require_admin_shop, wants_html
from app.models.barber import Barber
from app.models.service import Service
from app.models.shop import Shop
from app.services.appointments import (
    APPOINTMENTS_PREFIX,
    AppointmentBookingError,
    AppointmentInput,
    create_appointment,
    list_shop_appointments,
    update_appointment_status,
)
from app.services.form_data import form_int, form_required_str, form_str
from app.services.serializers import appointment_to_dict, barber_to_dict, service_to_dict, shop_to_dict
from app.ui.pages import page_query, page_response, render_appointments

logger = logging.getLogger(__name__)

REQUIRED_CUSTOMER_FIELDS = ("customerName", "customerEmail", "customerPhone")

router = APIRouter(
    prefix="/app/appointments",
    tags=["appointments"],
    dependencies=[Depends(bootstrap_admin_shop)],
)


def _failure(status_code: int, error: str | None = None) -> JSONResponse:
    content = {"success": False}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


@router.get("")
def list_appointments(
    request: Request,
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    appointments = [appointment_to_dict(item) for item in list_shop_appointments(db, shop)]
    services = [
        service_to_dict(service)
        for service in db.query(Service)
        .filter(Service.shop_id == shop.id, Service.is_active.is_(True))
        .order_by(Service.name.asc())
        .all()
    ]
    barbers = [
        barber_to_dict(barber)
        for barber in db.query(Barber)
        .filter(Barber.shop_id == shop.id, Barber.is_active.is_(True))
        .order_by(Barber.name.asc())
        .all()
    ]

    if wants_html(request):
        nav_query = page_query(request, shop.shop_domain)
        return page_response(render_appointments(appointments, services, barbers, nav_query), shop.shop_domain)
    return {
        "appointments": appointments,
        "services": services,
        "barbers": barbers,
        "shop": shop_to_dict(shop),
    }


@router.post("")
async def appointment_action(
    request: Request,
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    form = await request.form()
    action = form_str(form, "action")

    if action == "updateStatus":
        appointment_id = form_int(form, "id")
        status = form_required_str(form, "status")
        if status is None:
            return _failure(400, "Status is required")
        appointment = (
            update_appointment_status(db, shop, appointment_id, status) if appointment_id is not None else None
        )
        if appointment is None:
            return _failure(404, "Appointment not found")
        return {"success": True, "appointment": appointment_to_dict(appointment)}

    if action == "create":
        missing = [field for field in REQUIRED_CUSTOMER_FIELDS if form_required_str(form, field) is None]
        if missing:
            return _failure(400, f"Missing required fields: {', '.join(missing)}")
        data = AppointmentInput(
            customer_name=form_str(form, "customerName"),
            customer_email=form_str(form, "customerEmail"),
            customer_phone=form_str(form, "customerPhone"),
            service_id=form_str(form, "serviceId") or "",
            appointment_date=form_str(form, "appointmentDate") or "",
            barber_id=form_str(form, "barberId"),
            notes=form_str(form, "notes"),
        )
        try:
            appointment = create_appointment(db, shop, data)
        except AppointmentBookingError as exc:
            logger.warning("%s admin booking rejected shop_id=%s reason=%s", APPOINTMENTS_PREFIX, shop.id, exc)
            return _failure(400, str(exc))
        return {"success": True, "appointment": appointment_to_dict(appointment)}

    logger.warning("%s unknown action=%s shop_id=%s", APPOINTMENTS_PREFIX, action, shop.id)
    return _failure(400)
