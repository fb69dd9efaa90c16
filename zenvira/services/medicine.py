import logging
import re
from typing import List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from ..database import Database, canonical_id, id_list, serialize
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..identity import Principal
from ..schemas import MEDICINE_STATUSES, Medicine

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "price", "created_at", "stock")
REQUIRED_FIELDS = ("name", "slug", "price", "stock", "description", "manufacturer", "category_id")
UPDATABLE_FIELDS = (
    "name",
    "slug",
    "price",
    "stock",
    "description",
    "manufacturer",
    "status",
    "category_id",
    "images",
)
SELLER_FIELDS = {"name": 1, "email": 1, "image": 1}
SLUG_TAKEN = "Medicine with this slug already exists"


def parse_sort(sort_by: Optional[str]) -> Tuple[str, int]:
    """Storefront sort parameter: ``-field`` is descending, name/price ascend."""
    field = sort_by or "createdAt"
    direction = -1
    if field.startswith("-"):
        field = field[1:]
    elif field in ("price", "name"):
        direction = 1
    field = "created_at" if field == "createdAt" else field
    if field not in SORT_FIELDS:
        field = "created_at"
    return field, direction


def contains(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


class MedicineService:
    def __init__(self, db: Database):
        self.db = db

    def _attach(self, medicines: List[dict]) -> List[dict]:
        category_ids = {m.get("category_id") for m in medicines}
        seller_ids = {m.get("seller_id") for m in medicines}
        categories = {
            str(c["_id"]): c
            for c in self.db["category"].find({"_id": {"$in": id_list(list(category_ids))}})
        }
        sellers = {
            str(u["_id"]): u
            for u in self.db["user"].find({"_id": {"$in": id_list(list(seller_ids))}}, SELLER_FIELDS)
        }
        for m in medicines:
            m["category"] = categories.get(m.get("category_id"))
            m["seller"] = sellers.get(m.get("seller_id"))
        return medicines

    def list(
        self,
        page: int = 1,
        limit: int = 12,
        search: Optional[str] = None,
        category_id: Optional[str] = None,
        status: Optional[str] = None,
        seller_id: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        manufacturer: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: int = -1,
        active_only: bool = True,
    ) -> Tuple[List[dict], dict]:
        query: dict = {}
        if active_only:
            query["status"] = "active"
        elif status in MEDICINE_STATUSES:
            query["status"] = status
        if seller_id:
            query["seller_id"] = canonical_id(seller_id) or seller_id
        if category_id:
            query["category_id"] = canonical_id(category_id) or category_id
        if search:
            query["$or"] = [
                {"name": contains(search)},
                {"description": contains(search)},
                {"manufacturer": contains(search)},
            ]
        price = {}
        if min_price is not None:
            price["$gte"] = min_price
        if max_price is not None:
            price["$lte"] = max_price
        if price:
            query["price"] = price
        if manufacturer:
            query["manufacturer"] = contains(manufacturer)
        if sort_by not in SORT_FIELDS:
            sort_by = "created_at"

        docs, pagination = self.db.paginate(
            "medicine", query, page, limit, sort=[(sort_by, sort_order), ("_id", sort_order)]
        )
        return serialize(self._attach(docs)), pagination

    def get_by_slug(self, slug: str) -> dict:
        medicine = self.db["medicine"].find_one({"slug": slug})
        if not medicine:
            raise NotFound("Medicine not found")
        self._attach([medicine])
        reviews = list(
            self.db["review"]
            .find({"medicine_id": str(medicine["_id"])})
            .sort([("created_at", -1), ("_id", -1)])
        )
        authors = {
            str(u["_id"]): u
            for u in self.db["user"].find(
                {"_id": {"$in": id_list([r["user_id"] for r in reviews])}}, {"name": 1, "image": 1}
            )
        }
        for r in reviews:
            r["user"] = authors.get(r["user_id"])
        medicine["reviews"] = reviews
        return serialize(medicine)

    def _owned(self, id: str, principal: Principal) -> dict:
        medicine = self.db.find_by_id("medicine", id)
        if not medicine:
            raise NotFound("Medicine not found")
        if principal.role != "admin" and medicine.get("seller_id") != principal.id:
            raise Forbidden("Access denied")
        return medicine

    def get_by_id(self, id: str, principal: Principal) -> dict:
        medicine = self._owned(id, principal)
        return serialize(self._attach([medicine])[0])

    def _check_category(self, category_id: str) -> str:
        category = self.db.find_by_id("category", category_id)
        if not category:
            raise ValidationError("Category not found")
        return str(category["_id"])

    def _check_slug(self, slug: str, exclude_id: Optional[str] = None) -> None:
        existing = self.db["medicine"].find_one({"slug": slug})
        if existing and str(existing["_id"]) != exclude_id:
            raise Conflict(SLUG_TAKEN)

    @staticmethod
    def _check_values(changes: dict) -> None:
        if "price" in changes and changes["price"] < 0:
            raise ValidationError("Price cannot be negative")
        if "stock" in changes and changes["stock"] < 0:
            raise ValidationError("Stock cannot be negative")
        if "status" in changes and changes["status"] not in MEDICINE_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(MEDICINE_STATUSES)}")

    def _seller_for(self, data: dict, principal: Principal) -> Optional[str]:
        if principal.role != "admin" or not data.get("seller_id"):
            return None
        seller_id = canonical_id(data["seller_id"])
        if seller_id is None:
            raise ValidationError("Invalid seller ID")
        return seller_id

    def create(self, data: dict, principal: Principal) -> dict:
        if any(data.get(f) is None or data.get(f) == "" for f in REQUIRED_FIELDS):
            raise ValidationError("Missing required fields")
        seller_id = self._seller_for(data, principal) or principal.id
        values = {
            "price": float(data["price"]),
            "stock": int(data["stock"]),
            "status": data.get("status") or "active",
        }
        self._check_values(values)
        category_id = self._check_category(data["category_id"])
        self._check_slug(data["slug"])
        medicine = Medicine(
            name=data["name"],
            slug=data["slug"],
            description=data["description"],
            manufacturer=data["manufacturer"],
            category_id=category_id,
            seller_id=seller_id,
            images=data.get("images") or [],
            **values,
        )
        try:
            medicine_id = self.db.create_document("medicine", medicine)
        except DuplicateKeyError:
            raise Conflict(SLUG_TAKEN)
        logger.info("Seller %s listed medicine %s", seller_id, medicine_id)
        return serialize(self.db.find_by_id("medicine", medicine_id))

    def update(self, id: str, data: dict, principal: Principal) -> dict:
        self._owned(id, principal)
        changes = {f: data[f] for f in UPDATABLE_FIELDS if data.get(f) is not None}
        if "price" in changes:
            changes["price"] = float(changes["price"])
        if "stock" in changes:
            changes["stock"] = int(changes["stock"])
        self._check_values(changes)
        seller_id = self._seller_for(data, principal)
        if seller_id:
            changes["seller_id"] = seller_id
        if "category_id" in changes:
            changes["category_id"] = self._check_category(changes["category_id"])
        if "slug" in changes:
            self._check_slug(changes["slug"], exclude_id=canonical_id(id))
        try:
            medicine = self.db.update_by_id("medicine", id, changes)
        except DuplicateKeyError:
            raise Conflict(SLUG_TAKEN)
        return serialize(medicine)

    def delete(self, id: str, principal: Principal) -> None:
        self._owned(id, principal)
        self.db.delete_by_id("medicine", id)
        logger.info("Deleted medicine %s", id)
