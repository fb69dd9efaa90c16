import pytest

from zenvira.errors import Conflict, Forbidden, NotFound, ValidationError
from zenvira.services.review import ReviewService, check_rating


@pytest.fixture
def service(database):
    return ReviewService(database)


@pytest.fixture
def catalog(seed):
    seller = seed.user("seller")
    category_id = seed.category()
    return [seed.medicine(seller.id, category_id) for _ in range(5)]


@pytest.mark.parametrize("rating", [0, 6, -1, 4.5, "5", True])
def test_out_of_range_ratings_rejected(rating):
    with pytest.raises(ValidationError):
        check_rating(rating)


def test_every_rating_from_one_to_five_accepted(service, seed, catalog):
    user = seed.user()
    for rating, medicine_id in zip(range(1, 6), catalog):
        assert service.create(user.id, medicine_id, rating)["rating"] == rating


def test_one_review_per_user_and_medicine(service, seed, catalog):
    user = seed.user()
    service.create(user.id, catalog[0], 5, "Great")
    assert service.has_user_reviewed(user.id, catalog[0])
    with pytest.raises(Conflict):
        service.create(user.id, catalog[0], 3)
    # a different user may still review it
    service.create(seed.user().id, catalog[0], 3)


def test_review_for_missing_medicine(service, seed):
    with pytest.raises(NotFound):
        service.create(seed.user().id, "64b000000000000000000000", 4)
    with pytest.raises(ValidationError):
        service.create(seed.user().id, None, 4)


def test_reviews_for_medicine_newest_first(service, seed, catalog):
    first = service.create(seed.user().id, catalog[0], 2)
    second = service.create(seed.user().id, catalog[0], 5)
    service.create(seed.user().id, catalog[1], 4)

    reviews = service.list_by_medicine(catalog[0])
    assert [r["id"] for r in reviews] == [second["id"], first["id"]]
    assert reviews[0]["user"]["name"]


def test_post_review_over_http(client, seed, catalog):
    user = seed.user()
    res = client.post(
        "/api/reviews", json={"medicineId": catalog[0], "rating": 6}, headers=user.headers
    )
    assert res.status_code == 400

    res = client.post(
        "/api/reviews", json={"medicineId": catalog[0], "rating": 4, "comment": "Fine"}, headers=user.headers
    )
    assert res.status_code == 201
    assert res.json()["data"]["medicine"]["id"] == catalog[0]

    res = client.post(
        "/api/reviews", json={"medicineId": catalog[0], "rating": 2}, headers=user.headers
    )
    assert res.status_code == 400
    assert res.json()["message"] == "You have already reviewed this medicine"

    assert client.post("/api/reviews", json={"medicineId": catalog[0], "rating": 2}).status_code == 401


def test_only_author_or_admin_may_change_review(service, seed, catalog):
    author = seed.user()
    stranger = seed.user()
    admin = seed.user("admin")
    review = service.create(author.id, catalog[0], 3)

    with pytest.raises(Forbidden):
        service.update(review["id"], stranger.principal, rating=1)
    with pytest.raises(Forbidden):
        service.delete(review["id"], stranger.principal)
    with pytest.raises(ValidationError):
        service.update(review["id"], author.principal, rating=9)

    updated = service.update(review["id"], author.principal, rating=4, comment="Better")
    assert (updated["rating"], updated["comment"]) == (4, "Better")

    service.delete(review["id"], admin.principal)
    with pytest.raises(NotFound):
        service.get(review["id"])


def test_uppercase_medicine_id_counts_as_same_medicine(client, service, seed, catalog, database):
    user = seed.user()
    review = service.create(user.id, catalog[0].upper(), 5)
    assert review["medicineId"] == catalog[0]
    assert service.has_user_reviewed(user.id, catalog[0].upper())

    res = client.post(
        "/api/reviews", json={"medicineId": catalog[0].upper(), "rating": 1}, headers=user.headers
    )
    assert res.status_code == 400
    assert res.json()["message"] == "You have already reviewed this medicine"
    assert database["review"].count_documents({"medicine_id": catalog[0]}) == 1
    assert [r["rating"] for r in service.list_by_medicine(catalog[0].upper())] == [5]
