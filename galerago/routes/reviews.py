# galerago/routes/reviews.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from galerago import schemas, database, auth
from galerago.access import Caller
from galerago.services import reviews as review_service

MAX_PAGE_SIZE = 100

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"]
)

# Tourist - Review a completed booking
@router.post("/", status_code=201, response_model=schemas.ReviewResponse)
def create_review(
    payload: schemas.ReviewCreate,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return review_service.create_review(db, caller, payload.booking_id, payload.rating, payload.comment)

# My reviews
@router.get("/my")
def list_my_reviews(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return review_service.get_user_reviews(db, caller)

# Public - Recent reviews
@router.get("/recent")
def list_recent_reviews(
    limit: int = Query(review_service.RECENT_REVIEWS_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(database.get_db)
):
    return review_service.recent_reviews(db, limit)

# Admin - All reviews with filters
@router.get("/")
def list_reviews(
    package_id: Optional[int] = None,
    rating: Optional[int] = None,
    user_id: Optional[int] = None,
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return review_service.list_reviews(db, caller, package_id, rating, user_id, limit)

# Owner - Update a review
@router.patch("/{review_id}", response_model=schemas.ReviewResponse)
def update_review(
    review_id: int,
    patch: schemas.ReviewPatch,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return review_service.update_review(db, caller, review_id, patch)

# Owner - Delete a review
@router.delete("/{review_id}")
def delete_review(review_id: int, db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    review_service.delete_review(db, caller, review_id)
    return {"message": "Review deleted successfully"}
