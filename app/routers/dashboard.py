import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import authenticate_admin, bootstrap_admin_shop, wants_html
from app.models.appointment import Appointment
from app.models.barber import Barber
from app.models.inquiry import INQUIRY_STATUS_NEW, Inquiry
from app.models.service import Service
from app.models.shop import Shop
from app.services.appointments import list_recent_appointments
from app.services.serializers import appointment_to_dict, inquiry_to_dict, shop_to_dict
from app.services.shop_bootstrap import BOOTSTRAP_PREFIX, find_shop
from app.services.shopify_auth import AdminSession
from app.ui.pages import page_query, page_response, render_dashboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app", tags=["dashboard"], dependencies=[Depends(bootstrap_admin_shop)])

EMPTY_STATS = {"barbers": 0, "services": 0, "appointments": 0, "inquiries": 0}


def _shop_stats(db: Session, shop: Shop) -> dict:
    return {
        "barbers": db.query(Barber).filter(Barber.shop_id == shop.id).count(),
        "services": db.query(Service).filter(Service.shop_id == shop.id).count(),
        "appointments": db.query(Appointment).filter(Appointment.shop_id == shop.id).count(),
        "inquiries": db.query(Inquiry).filter(Inquiry.shop_id == shop.id).count(),
    }


@router.get("")
def dashboard(
    request: Request,
    admin: AdminSession = Depends(authenticate_admin),
    db: Session = Depends(get_db),
):
    shop = find_shop(db, admin.shop)
    if shop is None:
        shop_payload = None
        stats = dict(EMPTY_STATS)
        recent = []
        pending = []
    else:
        shop_payload = shop_to_dict(shop)
        stats = _shop_stats(db, shop)
        recent = [appointment_to_dict(item) for item in list_recent_appointments(db, shop, limit=5)]
        pending = [
            inquiry_to_dict(inquiry)
            for inquiry in db.query(Inquiry)
            .filter(Inquiry.shop_id == shop.id, Inquiry.status == INQUIRY_STATUS_NEW)
            .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
            .limit(5)
            .all()
        ]

    if wants_html(request):
        nav_query = page_query(request, admin.shop)
        return page_response(render_dashboard(shop_payload or {}, stats, recent, pending, nav_query), admin.shop)
    return {
        "shop": shop_payload,
        "stats": stats,
        "recentAppointments": recent,
        "pendingInquiries": pending,
    }


@router.post("")
def bootstrap(shop: Shop = Depends(bootstrap_admin_shop)):
    logger.info("%s explicit bootstrap shop_id=%s", BOOTSTRAP_PREFIX, shop.id)
    return {"success": True, "shop": shop_to_dict(shop)}
