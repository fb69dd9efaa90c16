import itertools
from types import SimpleNamespace

import mongomock
import pytest
from fastapi.testclient import TestClient

from zenvira.config import Settings
from zenvira.database import Database
from zenvira.identity import Principal
from zenvira.main import create_app
from zenvira.money import line_total, round_half_up

PASSWORD = "Password123!"


@pytest.fixture
def settings():
    return Settings(auth_secret="test-secret", bcrypt_rounds=4, database_name="zenvira_test")


@pytest.fixture
def database():
    db = Database(name="zenvira_test", client=mongomock.MongoClient())
    db.open()
    yield db
    db.close()


@pytest.fixture
def app(settings, database):
    return create_app(settings, database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


class Seeder:
    """Writes fixtures straight into the store, bypassing the API."""

    def __init__(self, app, database):
        self.identity = app.state.identity
        self.db = database
        self._n = itertools.count(1)

    def user(self, role="customer", name=None, email=None, status="active"):
        n = next(self._n)
        email = email or f"{role}{n}@example.com"
        user, token = self.identity.sign_up(name or f"{role.title()} {n}", email, PASSWORD)
        changes = {}
        if role != "customer":
            changes["role"] = role
        if status != "active":
            changes["status"] = status
        if changes:
            self.db.update_by_id("user", user["id"], changes)
        return SimpleNamespace(
            id=user["id"],
            email=email,
            name=user["name"],
            token=token,
            headers={"Authorization": f"Bearer {token}"},
            principal=Principal(id=user["id"], email=email, name=user["name"], role=role),
        )

    def category(self, name=None, slug=None):
        n = next(self._n)
        category_id = self.db.create_document(
            "category", {"name": name or f"Category {n}", "slug": slug or f"category-{n}"}
        )
        return category_id

    def medicine(self, seller_id, category_id, **overrides):
        n = next(self._n)
        doc = {
            "name": f"Medicine {n}",
            "slug": f"medicine-{n}",
            "price": 10.0,
            "stock": 100,
            "description": "Pain relief tablets",
            "manufacturer": "Acme Pharma",
            "status": "active",
            "category_id": category_id,
            "seller_id": seller_id,
            "images": [],
        }
        doc.update(overrides)
        return self.db.create_document("medicine", doc)

    def order(self, customer_id, items, status="placed", payment_status="pending"):
        """``items`` is a list of (medicine_id, price, quantity)."""
        total = round_half_up(line_total((price, quantity) for _, price, quantity in items), 2)
        return self.db.create_document(
            "order",
            {
                "customer_id": customer_id,
                "items": [
                    {"medicine_id": m, "price": price, "quantity": quantity} for m, price, quantity in items
                ],
                "total": total,
                "status": status,
                "payment_status": payment_status,
                "payment_method": "cod",
                "shipping_name": "Jane Doe",
                "shipping_phone": "0123456789",
                "shipping_email": "jane@example.com",
                "address": "1 Main St",
            },
        )

    def review(self, user_id, medicine_id, rating, comment=""):
        return self.db.create_document(
            "review", {"user_id": user_id, "medicine_id": medicine_id, "rating": rating, "comment": comment}
        )


@pytest.fixture
def seed(app, database):
    return Seeder(app, database)
