import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import bootstrap_admin_shop, require_admin_shop, wants_html
from app.models.appointment import Appointment
from app.models.service import Service
from app.models.shop import Shop
from app.services.form_data import form_flag, form_int, form_required_str, form_str
from app.services.serializers import service_to_dict, shop_to_dict
from app.ui.pages import page_query, page_response, render_services

logger = logging.getLogger(__name__)
SERVICES_PREFIX = "[SERVICES]"

router = APIRouter(prefix="/app/services", tags=["services"], dependencies=[Depends(bootstrap_admin_shop)])


def _failure(status_code: int, error: str | None = None) -> JSONResponse:
    content = {"success": False}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def _get_service(db: Session, shop: Shop, service_id: int | None) -> Service | None:
    if service_id is None:
        return None
    return db.query(Service).filter(Service.id == service_id, Service.shop_id == shop.id).first()


def _apply_fields(service: Service, form) -> None:
    service.description = form_str(form, "description")
    service.price = form_str(form, "price")
    service.duration = form_str(form, "duration")


@router.get("")
def list_services(
    request: Request,
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    services = (
        db.query(Service)
        .filter(Service.shop_id == shop.id)
        .order_by(Service.created_at.desc(), Service.id.desc())
        .all()
    )
    payload = [service_to_dict(service) for service in services]
    if wants_html(request):
        nav_query = page_query(request, shop.shop_domain)
        return page_response(render_services(payload, nav_query), shop.shop_domain)
    return {"services": payload, "shop": shop_to_dict(shop)}


@router.post("")
async def service_action(
    request: Request,
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    form = await request.form()
    action = form_str(form, "action")

    if action == "create":
        name = form_required_str(form, "name")
        if name is None:
            return _failure(400, "Name is required")
        service = Service(shop_id=shop.id, name=name, is_active=True)
        _apply_fields(service, form)
        db.add(service)
        db.commit()
        db.refresh(service)
        logger.info("%s created service_id=%s shop_id=%s", SERVICES_PREFIX, service.id, shop.id)
        return {"success": True, "service": service_to_dict(service)}

    if action == "update":
        service = _get_service(db, shop, form_int(form, "id"))
        if service is None:
            return _failure(404, "Service not found")
        name = form_required_str(form, "name")
        if name is None:
            return _failure(400, "Name is required")
        service.name = name
        _apply_fields(service, form)
        service.is_active = form_flag(form, "isActive")
        db.commit()
        db.refresh(service)
        return {"success": True, "service": service_to_dict(service)}

    if action == "delete":
        service = _get_service(db, shop, form_int(form, "id"))
        if service is None:
            return _failure(404, "Service not found")
        booked = db.query(Appointment.id).filter(Appointment.service_id == service.id).count()
        if booked:
            logger.warning(
                "%s delete blocked service_id=%s appointments=%s", SERVICES_PREFIX, service.id, booked
            )
            return _failure(409, "Service has appointments and cannot be deleted")
        service_id = service.id
        db.delete(service)
        db.commit()
        logger.info("%s deleted service_id=%s shop_id=%s", SERVICES_PREFIX, service_id, shop.id)
        return {"success": True}

    logger.warning("%s unknown action=%s shop_id=%s", SERVICES_PREFIX, action, shop.id)
    return _failure(400)
