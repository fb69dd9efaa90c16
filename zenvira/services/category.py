import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from ..database import Database, canonical_id, serialize
from ..errors import Conflict, NotFound, ValidationError
from ..schemas import Category

logger = logging.getLogger(__name__)

SLUG_TAKEN = "Category with this slug already exists"


class CategoryService:
    def __init__(self, db: Database):
        self.db = db

    def list_all(self) -> List[dict]:
        categories = list(self.db["category"].find({}).sort("name", 1))
        for c in categories:
            c["medicines"] = list(self.db["medicine"].find({"category_id": str(c["_id"])}))
        return serialize(categories)

    def get(self, id: str) -> dict:
        category = self.db.find_by_id("category", id)
        if not category:
            raise NotFound("Category not found")
        category["medicines"] = list(
            self.db["medicine"].find({"category_id": str(category["_id"]), "status": "active"})
        )
        return serialize(category)

    def exists(self, id: str) -> bool:
        return self.db.find_by_id("category", id) is not None

    def slug_exists(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        category = self.db["category"].find_one({"slug": slug})
        if not category:
            return False
        if exclude_id and str(category["_id"]) == canonical_id(exclude_id):
            return False
        return True

    def has_medicines(self, id: str) -> bool:
        return self.db["medicine"].count_documents({"category_id": canonical_id(id) or id}) > 0

    def create(self, name: Optional[str], slug: Optional[str]) -> dict:
        if not name or not slug:
            raise ValidationError("Name and slug are required")
        if self.slug_exists(slug):
            raise Conflict(SLUG_TAKEN)
        try:
            category_id = self.db.create_document("category", Category(name=name, slug=slug))
        except DuplicateKeyError:
            raise Conflict(SLUG_TAKEN)
        return serialize(self.db.find_by_id("category", category_id))

    def update(self, id: str, name: Optional[str] = None, slug: Optional[str] = None) -> dict:
        if not self.exists(id):
            raise NotFound("Category not found")
        if slug and self.slug_exists(slug, exclude_id=id):
            raise Conflict(SLUG_TAKEN)
        changes = {}
        if isinstance(name, str) and name:
            changes["name"] = name
        if isinstance(slug, str) and slug:
            changes["slug"] = slug
        try:
            category = self.db.update_by_id("category", id, changes)
        except DuplicateKeyError:
            raise Conflict(SLUG_TAKEN)
        return serialize(category)

    def delete(self, id: str) -> None:
        if not self.exists(id):
            raise NotFound("Category not found")
        if self.has_medicines(id):
            raise Conflict("Cannot delete category with existing medicines")
        self.db.delete_by_id("category", id)
        logger.info("Deleted category %s", id)
