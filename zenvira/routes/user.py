from typing import Optional

from fastapi import APIRouter, Depends

from ..auth import get_db, require_auth, require_role
from ..database import Database, page_params
from ..identity import Principal
from ..schemas import Payload
from ..services.user import UserService
from .common import ok

router = APIRouter(prefix="/api/users", tags=["users"])

admin_only = [Depends(require_auth), Depends(require_role("admin"))]


class SellerApplicationPayload(Payload):
    store_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None


class ApplicationDecisionPayload(Payload):
    status: Optional[str] = None


class ProfilePayload(Payload):
    name: Optional[str] = None
    image: Optional[str] = None


class AdminUserPayload(Payload):
    name: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
    image: Optional[str] = None


def get_service(db: Database = Depends(get_db)) -> UserService:
    return UserService(db)


# Seller applications


@router.post("/seller/apply")
def apply_as_seller(
    payload: SellerApplicationPayload,
    principal: Principal = Depends(require_auth),
    service: UserService = Depends(get_service),
):
    application = service.submit_application(
        principal.id, payload.store_name, payload.phone, payload.address, payload.note
    )
    return ok(application, message="Application submitted for review")


@router.get("/seller/application")
def get_my_application(
    principal: Principal = Depends(require_auth), service: UserService = Depends(get_service)
):
    return ok(service.get_my_application(principal.id))


@router.get("/seller-applications", dependencies=admin_only)
def list_seller_applications(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    status: Optional[str] = None,
    service: UserService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit)
    data, pagination = service.list_applications(page=page_no, limit=page_size, status=status)
    return ok(data, pagination=pagination)


@router.put("/seller-applications/{application_id}", dependencies=admin_only)
def decide_seller_application(
    application_id: str,
    payload: ApplicationDecisionPayload,
    service: UserService = Depends(get_service),
):
    application = service.decide_application(application_id, payload.status)
    return ok(application, message=f"Application {payload.status}")


# Current user; registered before /{user_id}


@router.get("/me")
def get_my_profile(principal: Principal = Depends(require_auth), service: UserService = Depends(get_service)):
    return ok(service.get_profile(principal.id))


@router.put("/me")
def update_my_profile(
    payload: ProfilePayload,
    principal: Principal = Depends(require_auth),
    service: UserService = Depends(get_service),
):
    return ok(service.update_profile(principal.id, name=payload.name, image=payload.image))


# Admin user management


@router.get("", dependencies=admin_only)
def list_users(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    service: UserService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit)
    data, pagination = service.list(page=page_no, limit=page_size, role=role, status=status, search=search)
    return ok(data, pagination=pagination)


@router.get("/{user_id}", dependencies=admin_only)
def get_user(user_id: str, service: UserService = Depends(get_service)):
    return ok(service.get(user_id))


@router.put("/{user_id}", dependencies=admin_only)
def update_user(
    user_id: str,
    payload: AdminUserPayload,
    principal: Principal = Depends(require_auth),
    service: UserService = Depends(get_service),
):
    user = service.update(
        user_id, principal, name=payload.name, role=payload.role, status=payload.status, image=payload.image
    )
    return ok(user)


@router.delete("/{user_id}", dependencies=admin_only)
def delete_user(
    user_id: str,
    principal: Principal = Depends(require_auth),
    service: UserService = Depends(get_service),
):
    service.delete(user_id, principal)
    return ok(message="User deleted successfully")
