from typing import Optional

from fastapi import APIRouter, Depends

from ..auth import get_db, require_auth, require_role
from ..database import Database
from ..schemas import Payload
from ..services.category import CategoryService
from .common import ok

router = APIRouter(prefix="/api/categories", tags=["categories"])

admin_only = [Depends(require_auth), Depends(require_role("admin"))]


class CategoryPayload(Payload):
    name: Optional[str] = None
    slug: Optional[str] = None


def get_service(db: Database = Depends(get_db)) -> CategoryService:
    return CategoryService(db)


@router.get("")
def list_categories(service: CategoryService = Depends(get_service)):
    return ok(service.list_all())


@router.get("/{category_id}")
def get_category(category_id: str, service: CategoryService = Depends(get_service)):
    return ok(service.get(category_id))


@router.post("", status_code=201, dependencies=admin_only)
def create_category(payload: CategoryPayload, service: CategoryService = Depends(get_service)):
    return ok(service.create(payload.name, payload.slug))


@router.put("/{category_id}", dependencies=admin_only)
def update_category(
    category_id: str, payload: CategoryPayload, service: CategoryService = Depends(get_service)
):
    return ok(service.update(category_id, name=payload.name, slug=payload.slug))


@router.delete("/{category_id}", dependencies=admin_only)
def delete_category(category_id: str, service: CategoryService = Depends(get_service)):
    service.delete(category_id)
    return ok(message="Category deleted")
