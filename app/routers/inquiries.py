from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.deps import bootstrap_admin_shop, require_admin_shop, wants_html
from app.models.inquiry import Inquiry
from app.models.shop import Shop
from app.services.serializers import inquiry_to_dict, shop_to_dict
from app.ui.pages import page_query, page_response, render_inquiries

router = APIRouter(prefix="/app/inquiries", tags=["inquiries"], dependencies=[Depends(bootstrap_admin_shop)])


@router.get("")
def list_inquiries(
    request: Request,
    status: Optional[str] = Query(None),
    shop: Shop = Depends(require_admin_shop),
    db: Session = Depends(get_db),
):
    query = db.query(Inquiry).filter(Inquiry.shop_id == shop.id)
    if status:
        query = query.filter(Inquiry.status == status)
    inquiries = [
        inquiry_to_dict(inquiry)
        for inquiry in query.order_by(Inquiry.created_at.desc(), Inquiry.id.desc()).all()
    ]
    if wants_html(request):
        nav_query = page_query(request, shop.shop_domain)
        return page_response(render_inquiries(inquiries, nav_query), shop.shop_domain)
    return {"inquiries": inquiries, "shop": shop_to_dict(shop)}
