import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from ..database import Database, canonical_id, id_list, serialize
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from ..identity import Principal
from ..schemas import Review

logger = logging.getLogger(__name__)

ALREADY_REVIEWED = "You have already reviewed this medicine"
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


def check_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)) or int(rating) != rating:
        raise ValidationError("Rating must be a whole number between 1 and 5")
    if rating < 1 or rating > 5:
        raise ValidationError("Rating must be between 1 and 5")
    return int(rating)


class ReviewService:
    def __init__(self, db: Database):
        self.db = db

    def _attach(self, reviews: List[dict], with_medicine: bool = True) -> List[dict]:
        users = {
            str(u["_id"]): u
            for u in self.db["user"].find(
                {"_id": {"$in": id_list([r["user_id"] for r in reviews])}},
                {"name": 1, "image": 1, "email": 1},
            )
        }
        medicines = {}
        if with_medicine:
            medicines = {
                str(m["_id"]): m
                for m in self.db["medicine"].find(
                    {"_id": {"$in": id_list([r["medicine_id"] for r in reviews])}},
                    {"name": 1, "slug": 1},
                )
            }
        for r in reviews:
            r["user"] = users.get(r["user_id"])
            if with_medicine:
                r["medicine"] = medicines.get(r["medicine_id"])
        return reviews

    def list_all(self) -> List[dict]:
        return serialize(self._attach(list(self.db["review"].find({}).sort(NEWEST_FIRST))))

    def list_by_medicine(self, medicine_id: str) -> List[dict]:
        medicine_id = canonical_id(medicine_id) or medicine_id
        reviews = list(self.db["review"].find({"medicine_id": medicine_id}).sort(NEWEST_FIRST))
        return serialize(self._attach(reviews, with_medicine=False))

    def get(self, id: str) -> dict:
        review = self.db.find_by_id("review", id)
        if not review:
            raise NotFound("Review not found")
        return serialize(self._attach([review])[0])

    def has_user_reviewed(self, user_id: str, medicine_id: str) -> bool:
        query = {"user_id": user_id, "medicine_id": canonical_id(medicine_id) or medicine_id}
        return self.db["review"].find_one(query) is not None

    def create(self, user_id: str, medicine_id: Optional[str], rating, comment: Optional[str] = None) -> dict:
        if not medicine_id or rating is None:
            raise ValidationError("Medicine ID and rating are required")
        rating = check_rating(rating)
        medicine = self.db.find_by_id("medicine", medicine_id)
        if not medicine:
            raise NotFound("Medicine not found")
        medicine_id = str(medicine["_id"])
        if self.has_user_reviewed(user_id, medicine_id):
            raise Conflict(ALREADY_REVIEWED)
        review = Review(user_id=user_id, medicine_id=medicine_id, rating=rating, comment=comment or "")
        try:
            review_id = self.db.create_document("review", review)
        except DuplicateKeyError:
            raise Conflict(ALREADY_REVIEWED)
        return self.get(review_id)

    def _authored(self, id: str, principal: Principal) -> dict:
        review = self.db.find_by_id("review", id)
        if not review:
            raise NotFound("Review not found")
        if principal.role != "admin" and review["user_id"] != principal.id:
            raise Forbidden("Access denied")
        return review

    def update(self, id: str, principal: Principal, rating=None, comment: Optional[str] = None) -> dict:
        self._authored(id, principal)
        changes = {}
        if rating is not None:
            changes["rating"] = check_rating(rating)
        if comment is not None:
            changes["comment"] = comment
        self.db.update_by_id("review", id, changes)
        return self.get(id)

    def delete(self, id: str, principal: Principal) -> None:
        self._authored(id, principal)
        self.db.delete_by_id("review", id)
