from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_db, require_auth, require_role, resolve_seller_id
from ..database import Database, page_params
from ..identity import Principal
from ..schemas import Payload
from ..services.order import OrderService
from .common import ok

router = APIRouter(prefix="/api/orders", tags=["orders"])

sellers = [Depends(require_auth), Depends(require_role("seller", "admin"))]
admin_only = [Depends(require_auth), Depends(require_role("admin"))]


class OrderItemPayload(Payload):
    medicine_id: Optional[str] = None
    quantity: Optional[int] = None


class CreateOrderPayload(Payload):
    shipping_name: Optional[str] = None
    shipping_phone: Optional[str] = None
    shipping_email: Optional[str] = None
    address: Optional[str] = None
    payment_method: str = "cod"
    items: Optional[List[OrderItemPayload]] = None


class StatusPayload(Payload):
    status: Optional[str] = None


class PaymentStatusPayload(Payload):
    payment_status: Optional[str] = None


def get_service(db: Database = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.get("/seller", dependencies=sellers)
def list_seller_orders(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    status: Optional[str] = None,
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit)
    target = resolve_seller_id(principal, seller_id)
    data, pagination = service.list_for_seller(target, page=page_no, limit=page_size, status=status)
    return ok(data, pagination=pagination)


@router.get("/seller/{order_id}", dependencies=sellers)
def get_seller_order(
    order_id: str,
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    return ok(service.get_for_seller(order_id, principal))


@router.get("")
def list_orders(
    page: Optional[str] = None,
    limit: Optional[str] = None,
    status: Optional[str] = None,
    customer_id: Optional[str] = Query(None, alias="customerId"),
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    page_no, page_size = page_params(page, limit)
    if principal.role != "admin":
        customer_id = principal.id
    data, pagination = service.list(page=page_no, limit=page_size, status=status, customer_id=customer_id)
    return ok(data, pagination=pagination)


@router.get("/{order_id}")
def get_order(
    order_id: str,
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    return ok(service.get(order_id, principal))


@router.post("", status_code=201)
def create_order(
    payload: CreateOrderPayload,
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    order = service.create(
        customer_id=principal.id,
        shipping_name=payload.shipping_name,
        shipping_phone=payload.shipping_phone,
        shipping_email=payload.shipping_email,
        address=payload.address,
        payment_method=payload.payment_method,
        items=[i.model_dump() for i in payload.items] if payload.items else None,
    )
    return ok(order)


@router.put("/{order_id}/status", dependencies=sellers)
def update_order_status(
    order_id: str,
    payload: StatusPayload,
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    return ok(service.update_status(order_id, payload.status, principal))


@router.put("/{order_id}/payment", dependencies=admin_only)
def update_payment_status(
    order_id: str, payload: PaymentStatusPayload, service: OrderService = Depends(get_service)
):
    return ok(service.update_payment_status(order_id, payload.payment_status))


@router.delete("/{order_id}")
def delete_order(
    order_id: str,
    principal: Principal = Depends(require_auth),
    service: OrderService = Depends(get_service),
):
    service.delete(order_id, principal)
    return ok(message="Order deleted successfully")
