from typing import Any, Optional

from fastapi import APIRouter, Depends

from ..auth import get_db, require_auth
from ..database import Database
from ..identity import Principal
from ..schemas import Payload
from ..services.review import ReviewService
from .common import ok

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


class ReviewPayload(Payload):
    medicine_id: Optional[str] = None
    # range checked by the service so the client gets its message
    rating: Any = None
    comment: Optional[str] = None


def get_service(db: Database = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


@router.get("")
def list_reviews(service: ReviewService = Depends(get_service)):
    return ok(service.list_all())


@router.get("/medicine/{medicine_id}")
def list_reviews_for_medicine(medicine_id: str, service: ReviewService = Depends(get_service)):
    return ok(service.list_by_medicine(medicine_id))


@router.get("/{review_id}")
def get_review(review_id: str, service: ReviewService = Depends(get_service)):
    return ok(service.get(review_id))


@router.post("", status_code=201)
def create_review(
    payload: ReviewPayload,
    principal: Principal = Depends(require_auth),
    service: ReviewService = Depends(get_service),
):
    return ok(service.create(principal.id, payload.medicine_id, payload.rating, payload.comment))


@router.put("/{review_id}")
def update_review(
    review_id: str,
    payload: ReviewPayload,
    principal: Principal = Depends(require_auth),
    service: ReviewService = Depends(get_service),
):
    return ok(service.update(review_id, principal, rating=payload.rating, comment=payload.comment))


@router.delete("/{review_id}")
def delete_review(
    review_id: str,
    principal: Principal = Depends(require_auth),
    service: ReviewService = Depends(get_service),
):
    service.delete(review_id, principal)
    return ok(message="Review deleted")
