from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.metrics import request_metrics
from app.deps import authenticate_admin
from app.services.shopify_auth import AdminSession

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/shops")
def shop_metrics(admin: AdminSession = Depends(authenticate_admin)):
    # A merchant only ever sees its own counters
    per_shop = request_metrics.snapshot_per_shop()
    return {"shops": {admin.shop: per_shop[admin.shop]} if admin.shop in per_shop else {}}
