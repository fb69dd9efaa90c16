"""
Persistence gateway over MongoDB.

A ``Database`` is built explicitly and handed to the application; the app
lifespan opens it on startup and closes it on shutdown. Services receive it
through the ``get_db`` dependency and never touch a global client.
"""

import logging
import math
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

SortSpec = List[Tuple[str, int]]


def to_obj_id(id_str: Any) -> Optional[ObjectId]:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(str(id_str))
    except (InvalidId, TypeError):
        return None


def canonical_id(value: Any) -> Optional[str]:
    """The stored form of a reference id (lowercase hex), or None if invalid."""
    oid = to_obj_id(value) if value else None
    return str(oid) if oid is not None else None


def serialize(value: Any) -> Any:
    """Convert stored documents into their wire form.

    ``_id`` becomes ``id``, ObjectIds become strings and snake_case keys
    become camelCase, recursively through nested documents and lists.
    """
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if key == "_id":
                out["id"] = serialize(item)
            else:
                out[to_camel(key)] = serialize(item)
        return out
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    return value


def session_kwargs(session) -> Dict[str, Any]:
    return {"session": session} if session is not None else {}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    def __init__(
        self,
        url: Optional[str] = None,
        name: str = "zenvira",
        use_transactions: bool = False,
        client: Optional[MongoClient] = None,
    ):
        self.url = url
        self.name = name
        self.use_transactions = use_transactions
        self._client = client
        self._owns_client = client is None
        self._db = None

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            raise RuntimeError("Database is not open")
        return self._client

    def open(self) -> "Database":
        if self._db is not None:
            return self
        if self._client is None:
            logger.info("Connecting to MongoDB database %s", self.name)
            self._client = MongoClient(self.url)
        self._db = self._client[self.name]
        self.ensure_indexes()
        return self

    def close(self) -> None:
        if self._client is None:
            return
        if self._owns_client:
            self._client.close()
            self._client = None
        self._db = None

    def __getitem__(self, collection: str):
        if self._db is None:
            raise RuntimeError("Database is not open")
        return self._db[collection]

    def ensure_indexes(self) -> None:
        self["user"].create_index("email", unique=True)
        self["category"].create_index("slug", unique=True)
        self["medicine"].create_index("slug", unique=True)
        self["medicine"].create_index("seller_id")
        self["review"].create_index(
            [("user_id", ASCENDING), ("medicine_id", ASCENDING)], unique=True
        )
        self["seller_application"].create_index("user_id", unique=True)
        self["order"].create_index("items.medicine_id")
        self["session"].create_index("expires_at", expireAfterSeconds=0)

    def ping(self) -> bool:
        try:
            self.client.admin.command("ping")
            return True
        except (PyMongoError, RuntimeError) as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield a session bound to a transaction, or None when disabled.

        Multi-document transactions need a replica set; on a standalone server
        the writes run one by one.
        """
        if not self.use_transactions:
            yield None
            return
        with self.client.start_session() as session:
            with session.start_transaction():
                yield session

    # Document helpers

    def create_document(
        self, collection: str, data: Union[BaseModel, dict], session=None
    ) -> str:
        doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        now = utcnow()
        doc["created_at"] = now
        doc["updated_at"] = now
        result = self[collection].insert_one(doc, **session_kwargs(session))
        return str(result.inserted_id)

    def get_documents(
        self, collection: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None
    ) -> List[dict]:
        cursor = self[collection].find(filter_dict or {})
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def find_by_id(
        self, collection: str, id_str: Any, projection: Optional[dict] = None
    ) -> Optional[dict]:
        oid = to_obj_id(id_str)
        if oid is None:
            return None
        return self[collection].find_one({"_id": oid}, projection)

    def update_by_id(
        self, collection: str, id_str: Any, changes: dict, session=None
    ) -> Optional[dict]:
        oid = to_obj_id(id_str)
        if oid is None:
            return None
        return self[collection].find_one_and_update(
            {"_id": oid},
            {"$set": {**changes, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
            **session_kwargs(session),
        )

    def delete_by_id(self, collection: str, id_str: Any, session=None) -> bool:
        oid = to_obj_id(id_str)
        if oid is None:
            return False
        res = self[collection].delete_one({"_id": oid}, **session_kwargs(session))
        return res.deleted_count > 0

    def paginate(
        self,
        collection: str,
        filter_dict: dict,
        page: int,
        limit: int,
        sort: Optional[SortSpec] = None,
        projection: Optional[dict] = None,
    ) -> Tuple[List[dict], dict]:
        total = self[collection].count_documents(filter_dict)
        cursor = self[collection].find(filter_dict, projection)
        if sort:
            cursor = cursor.sort(sort)
        docs = list(cursor.skip((page - 1) * limit).limit(limit))
        return docs, pagination(page, limit, total)


def pagination(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def page_params(
    page: Optional[str], limit: Optional[str], default_limit: int = 10, max_limit: int = 50
) -> Tuple[int, int]:
    """Parse lenient ``page``/``limit`` query values, clamping them to range."""
    return (
        max(1, _to_int(page) or 1),
        min(max_limit, max(1, _to_int(limit) or default_limit)),
    )


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def id_list(ids: Sequence[Any]) -> List[ObjectId]:
    return [oid for oid in (to_obj_id(i) for i in ids) if oid is not None]
