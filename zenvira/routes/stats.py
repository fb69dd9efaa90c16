from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_db, require_auth, require_role, resolve_seller_id
from ..database import Database
from ..identity import Principal
from ..services.stats import StatsService
from .common import ok

router = APIRouter(prefix="/api/stats", tags=["stats"])


def get_service(db: Database = Depends(get_db)) -> StatsService:
    return StatsService(db)


@router.get("/seller", dependencies=[Depends(require_auth), Depends(require_role("seller", "admin"))])
def seller_stats(
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    principal: Principal = Depends(require_auth),
    service: StatsService = Depends(get_service),
):
    target = resolve_seller_id(principal, seller_id)
    return ok(service.seller_stats(target))


@router.get("/admin", dependencies=[Depends(require_auth), Depends(require_role("admin"))])
def admin_stats(service: StatsService = Depends(get_service)):
    return ok(service.admin_stats())
