import logging
from typing import List, Optional, Set, Tuple

from ..database import Database, canonical_id, id_list, serialize, session_kwargs, to_obj_id
from ..errors import Forbidden, NotFound, ValidationError
from ..identity import Principal
from ..money import line_total, round_half_up
from ..schemas import ORDER_STATUSES, PAYMENT_METHODS, PAYMENT_STATUSES, Order, OrderItem

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = {"name": 1, "email": 1, "image": 1}
MEDICINE_FIELDS = {"name": 1, "slug": 1, "images": 1, "price": 1, "manufacturer": 1, "seller_id": 1}
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def seller_totals(items: List[dict]) -> Tuple[float, int]:
    total = line_total((i["price"], i["quantity"]) for i in items)
    return round_half_up(total, 2), sum(i["quantity"] for i in items)


class OrderService:
    def __init__(self, db: Database):
        self.db = db

    def _attach(self, orders: List[dict]) -> List[dict]:
        customers = {
            str(u["_id"]): u
            for u in self.db["user"].find(
                {"_id": {"$in": id_list([o["customer_id"] for o in orders])}}, CUSTOMER_FIELDS
            )
        }
        medicine_ids = [i["medicine_id"] for o in orders for i in o.get("items", [])]
        medicines = {
            str(m["_id"]): m
            for m in self.db["medicine"].find({"_id": {"$in": id_list(medicine_ids)}}, MEDICINE_FIELDS)
        }
        for o in orders:
            o["customer"] = customers.get(o["customer_id"])
            for item in o.get("items", []):
                item["medicine"] = medicines.get(item["medicine_id"])
        return orders

    def _seller_medicine_ids(self, seller_id: str) -> Set[str]:
        return {str(m["_id"]) for m in self.db["medicine"].find({"seller_id": seller_id}, {"_id": 1})}

    def _find(self, id: str) -> dict:
        order = self.db.find_by_id("order", id)
        if not order:
            raise NotFound("Order not found")
        return order

    def list(
        self, page: int = 1, limit: int = 10, status: Optional[str] = None, customer_id: Optional[str] = None
    ) -> Tuple[List[dict], dict]:
        query = {}
        if customer_id:
            query["customer_id"] = canonical_id(customer_id) or customer_id
        if status:
            query["status"] = status
        docs, pagination = self.db.paginate("order", query, page, limit, sort=NEWEST_FIRST)
        return serialize(self._attach(docs)), pagination

    def get(self, id: str, principal: Principal) -> dict:
        order = self._find(id)
        if principal.role != "admin" and order["customer_id"] != principal.id:
            raise Forbidden("Access denied")
        return serialize(self._attach([order])[0])

    def list_for_seller(
        self, seller_id: str, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Tuple[List[dict], dict]:
        own = self._seller_medicine_ids(seller_id)
        query = {"items.medicine_id": {"$in": list(own)}}
        if status:
            query["status"] = status
        docs, pagination = self.db.paginate("order", query, page, limit, sort=NEWEST_FIRST)
        for order in docs:
            order["items"] = [i for i in order["items"] if i["medicine_id"] in own]
            order["seller_total"], order["total_items"] = seller_totals(order["items"])
        return serialize(self._attach(docs)), pagination

    def get_for_seller(self, id: str, principal: Principal) -> dict:
        order = self._find(id)
        if principal.role != "admin":
            own = self._seller_medicine_ids(principal.id)
            order["items"] = [i for i in order["items"] if i["medicine_id"] in own]
        if not order["items"]:
            raise Forbidden("No items from this seller in this order")
        order["seller_total"], order["total_items"] = seller_totals(order["items"])
        return serialize(self._attach([order])[0])

    def has_seller_items(self, order: dict, seller_id: str) -> bool:
        own = self._seller_medicine_ids(seller_id)
        return any(i["medicine_id"] in own for i in order.get("items", []))

    def create(
        self,
        customer_id: str,
        shipping_name: Optional[str],
        shipping_phone: Optional[str],
        shipping_email: Optional[str],
        address: Optional[str],
        items: Optional[List[dict]],
        payment_method: str = "cod",
    ) -> dict:
        if not shipping_name or not shipping_phone or not shipping_email or not address:
            raise ValidationError("Shipping name, phone, email, and address are required")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}")
        if not items:
            raise ValidationError("Order items are required")

        requested = [(canonical_id(i.get("medicine_id")), i.get("quantity")) for i in items]
        if any(medicine_id is None for medicine_id, _ in requested):
            raise ValidationError("One or more medicines not found or inactive")
        medicines = {
            str(m["_id"]): m
            for m in self.db["medicine"].find(
                {"_id": {"$in": id_list([mid for mid, _ in requested])}, "status": "active"}
            )
        }
        if len(medicines) != len({mid for mid, _ in requested}):
            raise ValidationError("One or more medicines not found or inactive")

        order_items = []
        for medicine_id, quantity in requested:
            medicine = medicines[medicine_id]
            if not isinstance(quantity, int) or quantity < 1:
                raise ValidationError(f"Invalid quantity for {medicine['name']}")
            if medicine["stock"] < quantity:
                raise ValidationError(
                    f"Insufficient stock for {medicine['name']}. Available: {medicine['stock']}"
                )
            order_items.append(OrderItem(medicine_id=medicine_id, quantity=quantity, price=medicine["price"]))

        total = round_half_up(line_total((i.price, i.quantity) for i in order_items), 2)
        order = Order(
            customer_id=customer_id,
            items=order_items,
            total=total,
            payment_method=payment_method,
            shipping_name=shipping_name,
            shipping_phone=shipping_phone,
            shipping_email=shipping_email,
            address=address,
        )
        with self.db.transaction() as session:
            taken = []
            try:
                for item in order_items:
                    res = self.db["medicine"].update_one(
                        {"_id": to_obj_id(item.medicine_id), "stock": {"$gte": item.quantity}},
                        {"$inc": {"stock": -item.quantity}},
                        **session_kwargs(session),
                    )
                    if res.modified_count == 0:
                        raise ValidationError(f"Insufficient stock for {medicines[item.medicine_id]['name']}")
                    taken.append(item.model_dump())
                order_id = self.db.create_document("order", order, session=session)
            except Exception:
                if session is None:
                    self._restock(taken)
                raise
        logger.info("Customer %s placed order %s (%d items)", customer_id, order_id, len(order_items))
        return serialize(self._attach([self.db.find_by_id("order", order_id)])[0])

    def _restock(self, items, session=None) -> None:
        for item in items:
            self.db["medicine"].update_one(
                {"_id": to_obj_id(item["medicine_id"])},
                {"$inc": {"stock": item["quantity"]}},
                **session_kwargs(session),
            )

    def update_status(self, id: str, status: Optional[str], principal: Principal) -> dict:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")
        order = self._find(id)
        if principal.role != "admin" and not self.has_seller_items(order, principal.id):
            raise Forbidden("Access denied")

        if status == "cancelled" and order["status"] != "cancelled":
            with self.db.transaction() as session:
                self._restock(order["items"], session)
                self.db.update_by_id("order", id, {"status": status}, session=session)
        else:
            self.db.update_by_id("order", id, {"status": status})
        logger.info("Order %s status %s -> %s by %s", id, order["status"], status, principal.id)
        return serialize(self._attach([self._find(id)])[0])

    def update_payment_status(self, id: str, payment_status: Optional[str]) -> dict:
        if payment_status not in PAYMENT_STATUSES:
            raise ValidationError(
                f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}"
            )
        self._find(id)
        order = self.db.update_by_id("order", id, {"payment_status": payment_status})
        logger.info("Order %s payment status -> %s", id, payment_status)
        return serialize(self._attach([order])[0])

    def delete(self, id: str, principal: Principal) -> None:
        order = self._find(id)
        if principal.role != "admin":
            if order["customer_id"] != principal.id:
                raise Forbidden("Access denied")
            if order["status"] != "placed":
                raise ValidationError("Can only cancel orders with 'placed' status")
        with self.db.transaction() as session:
            if order["status"] != "cancelled":
                self._restock(order["items"], session)
            self.db.delete_by_id("order", id, session=session)
        logger.info("Deleted order %s", id)
