from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from ..auth import get_db, require_auth, require_role
from ..database import Database, page_params
from ..identity import Principal
from ..schemas import Payload
from ..services.medicine import MedicineService, parse_sort
from .common import ok, parse_float

router = APIRouter(prefix="/api/medicines", tags=["medicines"])

sellers = [Depends(require_auth), Depends(require_role("seller", "admin"))]
admin_only = [Depends(require_auth), Depends(require_role("admin"))]


class MedicinePayload(Payload):
    name: Optional[str] = None
    slug: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    status: Optional[str] = None
    category_id: Optional[str] = None
    images: Optional[List[str]] = None
    seller_id: Optional[str] = None


def get_service(db: Database = Depends(get_db)) -> MedicineService:
    return MedicineService(db)


@router.get("")
def list_medicines(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    manufacturer: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    service: MedicineService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit, default_limit=12, max_limit=100)
    sort_field, sort_order = parse_sort(sort_by)
    data, pagination = service.list(
        page=page_no,
        limit=page_size,
        search=search,
        category_id=category_id,
        min_price=parse_float(min_price),
        max_price=parse_float(max_price),
        manufacturer=manufacturer,
        sort_by=sort_field,
        sort_order=sort_order,
        active_only=True,
    )
    return ok(data, pagination=pagination)


@router.get("/admin", dependencies=admin_only)
def list_medicines_for_admin(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    search: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    status: Optional[str] = None,
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    service: MedicineService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit, default_limit=10, max_limit=100)
    data, pagination = service.list(
        page=page_no,
        limit=page_size,
        search=search,
        category_id=category_id,
        status=status,
        seller_id=seller_id,
        active_only=False,
    )
    return ok(data, pagination=pagination)


@router.get("/id/{medicine_id}", dependencies=sellers)
def get_medicine_by_id(
    medicine_id: str,
    principal: Principal = Depends(require_auth),
    service: MedicineService = Depends(get_service),
):
    return ok(service.get_by_id(medicine_id, principal))


@router.get("/{slug}")
def get_medicine_by_slug(slug: str, service: MedicineService = Depends(get_service)):
    return ok(service.get_by_slug(slug))


@router.post("", status_code=201, dependencies=sellers)
def create_medicine(
    payload: MedicinePayload,
    principal: Principal = Depends(require_auth),
    service: MedicineService = Depends(get_service),
):
    return ok(service.create(payload.model_dump(), principal))


@router.put("/{medicine_id}", dependencies=sellers)
def update_medicine(
    medicine_id: str,
    payload: MedicinePayload,
    principal: Principal = Depends(require_auth),
    service: MedicineService = Depends(get_service),
):
    return ok(service.update(medicine_id, payload.model_dump(), principal))


@router.delete("/{medicine_id}", dependencies=sellers)
def delete_medicine(
    medicine_id: str,
    principal: Principal = Depends(require_auth),
    service: MedicineService = Depends(get_service),
):
    service.delete(medicine_id, principal)
    return ok(message="Medicine deleted")
