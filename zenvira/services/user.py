import logging
import re
from typing import List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from ..database import Database, id_list, serialize
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..identity import PUBLIC_USER_FIELDS, Principal
from ..schemas import APPLICATION_STATUSES, ROLES, USER_STATUSES, SellerApplication

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", -1), ("_id", -1)]
DECISIONS = ("approved", "rejected")


class UserService:
    def __init__(self, db: Database):
        self.db = db

    # User management

    def _with_counts(self, users: List[dict]) -> List[dict]:
        for u in users:
            user_id = str(u["_id"])
            u["_count"] = {
                "medicines": self.db["medicine"].count_documents({"seller_id": user_id}),
                "orders": self.db["order"].count_documents({"customer_id": user_id}),
                "reviews": self.db["review"].count_documents({"user_id": user_id}),
            }
        return users

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[dict], dict]:
        query: dict = {}
        # unknown role/status values are ignored rather than rejected
        if role in ROLES:
            query["role"] = role
        if status in USER_STATUSES:
            query["status"] = status
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"email": pattern}]
        docs, pagination = self.db.paginate(
            "user", query, page, limit, sort=NEWEST_FIRST, projection=PUBLIC_USER_FIELDS
        )
        return serialize(self._with_counts(docs)), pagination

    def _find(self, id: str) -> dict:
        user = self.db.find_by_id("user", id, PUBLIC_USER_FIELDS)
        if not user:
            raise NotFound("User not found")
        return user

    def get(self, id: str) -> dict:
        return serialize(self._with_counts([self._find(id)])[0])

    def get_role(self, id: str) -> Optional[str]:
        user = self.db.find_by_id("user", id, {"role": 1})
        return user.get("role") if user else None

    def update(
        self,
        id: str,
        admin: Principal,
        name: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        image: Optional[str] = None,
    ) -> dict:
        if id == admin.id and role and role != "admin":
            raise ValidationError("You cannot change your own role")
        existing = self._find(id)
        if existing.get("role") == "admin" and id != admin.id:
            raise Forbidden("You cannot modify another admin account")

        changes = {}
        if name is not None:
            changes["name"] = name
        if image is not None:
            changes["image"] = image
        if role in ROLES:
            changes["role"] = role
        if status in USER_STATUSES:
            changes["status"] = status
        self.db.update_by_id("user", id, changes)
        if "role" in changes and changes["role"] != existing.get("role"):
            logger.info("Admin %s changed role of %s to %s", admin.id, id, changes["role"])
        return serialize(self._find(id))

    def delete(self, id: str, admin: Principal) -> None:
        if id == admin.id:
            raise ValidationError("You cannot delete your own account")
        existing = self._find(id)
        if existing.get("role") == "admin":
            raise Forbidden("You cannot delete another admin account")
        self.db.delete_by_id("user", id)
        self.db["session"].delete_many({"user_id": id})
        logger.info("Admin %s deleted user %s", admin.id, id)

    # Profile

    def get_profile(self, id: str) -> dict:
        return serialize(self._find(id))

    def update_profile(self, id: str, name: Optional[str] = None, image: Optional[str] = None) -> dict:
        self._find(id)
        changes = {}
        if name is not None:
            changes["name"] = name
        if image is not None:
            changes["image"] = image
        self.db.update_by_id("user", id, changes)
        return serialize(self._find(id))

    # Seller applications

    def get_my_application(self, user_id: str) -> Optional[dict]:
        application = self.db["seller_application"].find_one({"user_id": user_id})
        return serialize(application) if application else None

    def submit_application(
        self,
        user_id: str,
        store_name: Optional[str],
        phone: Optional[str],
        address: Optional[str],
        note: Optional[str] = None,
    ) -> dict:
        if self.get_role(user_id) == "seller":
            raise Conflict("You are already a seller")
        existing = self.db["seller_application"].find_one({"user_id": user_id})
        if existing:
            raise Conflict(
                "You already have a pending application"
                if existing.get("status") == "pending"
                else "You have already submitted an application"
            )
        if not store_name or not phone or not address:
            raise ValidationError("Store name, phone, and address are required")
        application = SellerApplication(
            user_id=user_id, store_name=store_name, phone=phone, address=address, note=note or None
        )
        try:
            application_id = self.db.create_document("seller_application", application)
        except DuplicateKeyError:
            raise Conflict("You have already submitted an application")
        logger.info("User %s applied to become a seller", user_id)
        return serialize(self.db.find_by_id("seller_application", application_id))

    def list_applications(
        self, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Tuple[List[dict], dict]:
        query = {}
        if status in APPLICATION_STATUSES:
            query["status"] = status
        docs, pagination = self.db.paginate("seller_application", query, page, limit, sort=NEWEST_FIRST)
        users = {
            str(u["_id"]): u
            for u in self.db["user"].find(
                {"_id": {"$in": id_list([a["user_id"] for a in docs])}},
                {"name": 1, "email": 1, "image": 1, "role": 1},
            )
        }
        for a in docs:
            a["user"] = users.get(a["user_id"])
        return serialize(docs), pagination

    def get_application(self, id: str) -> dict:
        application = self.db.find_by_id("seller_application", id)
        if not application:
            raise NotFound("Application not found")
        return application

    def update_application_status(self, id: str, status: Optional[str], user_id: str) -> dict:
        """Record the admin's decision; approval also promotes the applicant.

        Both writes share one transaction when the store supports them.
        """
        if status not in DECISIONS:
            raise ValidationError("Status must be 'approved' or 'rejected'")
        with self.db.transaction() as session:
            application = self.db.update_by_id("seller_application", id, {"status": status}, session=session)
            if application is None:
                raise NotFound("Application not found")
            if status == "approved":
                promoted = self.db.update_by_id("user", user_id, {"role": "seller"}, session=session)
                if promoted is None:
                    raise NotFound("User not found")
        logger.info("Seller application %s %s for user %s", id, status, user_id)
        return serialize(application)

    def decide_application(self, id: str, status: Optional[str]) -> dict:
        if status not in DECISIONS:
            raise ValidationError("Status must be 'approved' or 'rejected'")
        application = self.get_application(id)
        if application.get("status") != "pending":
            raise Conflict("This application has already been processed")
        return self.update_application_status(id, status, application["user_id"])
