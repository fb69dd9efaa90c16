import pytest

from zenvira.errors import Conflict, NotFound, ValidationError
from zenvira.services.category import CategoryService


@pytest.fixture
def service(database):
    return CategoryService(database)


def test_create_and_list_categories(client, seed):
    admin = seed.user("admin")
    res = client.post("/api/categories", json={"name": "Pain Relief", "slug": "pain-relief"}, headers=admin.headers)
    assert res.status_code == 201
    created = res.json()["data"]
    assert created["slug"] == "pain-relief"
    assert "createdAt" in created

    listed = client.get("/api/categories").json()["data"]
    assert [c["slug"] for c in listed] == ["pain-relief"]
    assert listed[0]["medicines"] == []


def test_category_writes_are_admin_only(client, seed):
    seller = seed.user("seller")
    body = {"name": "Vitamins", "slug": "vitamins"}
    assert client.post("/api/categories", json=body).status_code == 401
    assert client.post("/api/categories", json=body, headers=seller.headers).status_code == 403


def test_missing_name_or_slug(client, seed):
    admin = seed.user("admin")
    res = client.post("/api/categories", json={"name": "No slug"}, headers=admin.headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Name and slug are required"


def test_duplicate_slug_rejected(client, seed):
    admin = seed.user("admin")
    seed.category(slug="vitamins")
    res = client.post("/api/categories", json={"name": "Vits", "slug": "vitamins"}, headers=admin.headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Category with this slug already exists"


def test_slug_exists_tracks_lifecycle(service):
    assert service.slug_exists("cold-flu") is False
    category = service.create("Cold & Flu", "cold-flu")
    assert service.slug_exists("cold-flu") is True
    assert service.slug_exists("cold-flu", exclude_id=category["id"]) is False
    service.delete(category["id"])
    assert service.slug_exists("cold-flu") is False


def test_update_keeps_own_slug_but_not_anothers(service):
    first = service.create("First", "first")
    service.create("Second", "second")
    updated = service.update(first["id"], name="First!", slug="first")
    assert updated["name"] == "First!"
    with pytest.raises(Conflict):
        service.update(first["id"], slug="second")


def test_update_and_delete_unknown_category(service):
    with pytest.raises(NotFound):
        service.update("64b000000000000000000000", name="x")
    with pytest.raises(NotFound):
        service.delete("not-an-id")


def test_cannot_delete_category_with_medicines(client, seed, service):
    admin = seed.user("admin")
    seller = seed.user("seller")
    category_id = seed.category()
    seed.medicine(seller.id, category_id)

    res = client.delete(f"/api/categories/{category_id}", headers=admin.headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete category with existing medicines"
    assert service.exists(category_id)


def test_delete_empty_category(client, seed):
    admin = seed.user("admin")
    category_id = seed.category()
    res = client.delete(f"/api/categories/{category_id}", headers=admin.headers)
    assert res.json() == {"success": True, "message": "Category deleted"}
    assert client.get(f"/api/categories/{category_id}").status_code == 404


def test_get_category_lists_only_active_medicines(client, seed):
    seller = seed.user("seller")
    category_id = seed.category()
    seed.medicine(seller.id, category_id, slug="on-sale")
    seed.medicine(seller.id, category_id, slug="hidden", status="inactive")

    data = client.get(f"/api/categories/{category_id}").json()["data"]
    assert [m["slug"] for m in data["medicines"]] == ["on-sale"]


def test_create_requires_fields(service):
    with pytest.raises(ValidationError):
        service.create("", "slug")


def test_uppercase_category_id_still_blocks_delete(client, seed, database):
    admin = seed.user("admin")
    seller = seed.user("seller")
    category_id = seed.category()
    res = client.post(
        "/api/medicines",
        json={
            "name": "Napa",
            "slug": "napa",
            "price": 2.5,
            "stock": 10,
            "description": "Fever relief",
            "manufacturer": "Beximco",
            "categoryId": category_id.upper(),
        },
        headers=seller.headers,
    )
    assert res.status_code == 201
    assert database["medicine"].find_one({"slug": "napa"})["category_id"] == category_id

    res = client.delete(f"/api/categories/{category_id}", headers=admin.headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete category with existing medicines"
