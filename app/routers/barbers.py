import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import bootstrap_admin_shop, require_admin_shop, wants_html
from app.models.barber import Barber
from app.models.shop import Shop
from app.services.form_data import form_flag, form_int, form_required_str, form_str
from app.services.serializers import barber_to_dict, shop_to_dict
from app.ui.pages import page_query, page_response, render_barbers

logger = logging.getLogger(__name__)
BARBERS_PREFIX = "[BARBERS]"

router = APIRouter(prefix="/app/barbers", tags=["barbers"], dependencies=[Depends(bootstrap_admin_shop)])


def _failure(status_code: int, error: str | None = None) -> JSONResponse:
    content = {"success": False}
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def _get_barber(db: Session, shop: Shop, barber_id: int | None) -> Barber | None:
    if barber_id is None:
        return None
    return db.query(Barber).filter(Barber.id == barber_id, Barber.shop_id == shop.id).first()


@router.get("")
def list_barbers(
    request: Request,
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    barbers = (
        db.query(Barber)
        .filter(Barber.shop_id == shop.id)
        .order_by(Barber.created_at.desc(), Barber.id.desc())
        .all()
    )
    payload = [barber_to_dict(barber) for barber in barbers]
    if wants_html(request):
        nav_query = page_query(request, shop.shop_domain)
        return page_response(render_barbers(payload, nav_query), shop.shop_domain)
    return {"barbers": payload, "shop": shop_to_dict(shop)}


@router.post("")
async def barber_action(
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
        barber = Barber(
            shop_id=shop.id,
            name=name,
            specialty=form_str(form, "specialty"),
            bio=form_str(form, "bio"),
            image_url=form_str(form, "imageUrl"),
            is_active=True,
        )
        db.add(barber)
        db.commit()
        db.refresh(barber)
        logger.info("%s created barber_id=%s shop_id=%s", BARBERS_PREFIX, barber.id, shop.id)
        return {"success": True, "barber": barber_to_dict(barber)}

    if action == "update":
        barber = _get_barber(db, shop, form_int(form, "id"))
        if barber is None:
            return _failure(404, "Barber not found")
        name = form_required_str(form, "name")
        if name is None:
            return _failure(400, "Name is required")
        barber.name = name
        barber.specialty = form_str(form, "specialty")
        barber.bio = form_str(form, "bio")
        barber.image_url = form_str(form, "imageUrl")
        barber.is_active = form_flag(form, "isActive")
        db.commit()
        db.refresh(barber)
        return {"success": True, "barber": barber_to_dict(barber)}

    if action == "delete":
        barber = _get_barber(db, shop, form_int(form, "id"))
        if barber is None:
            return _failure(404, "Barber not found")
        barber_id = barber.id
        db.delete(barber)
        db.commit()
        logger.info("%s deleted barber_id=%s shop_id=%s", BARBERS_PREFIX, barber_id, shop.id)
        return {"success": True}

    logger.warning("%s unknown action=%s shop_id=%s", BARBERS_PREFIX, action, shop.id)
    return _failure(400)
