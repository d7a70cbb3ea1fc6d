"""
Review eligibility and CRUD.

A review belongs to exactly one booking, and only the tourist who made that
booking may write it, once the provider has completed the activity.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from galerago import models
from galerago.access import Caller, require_active, require_admin
from galerago.database import commit
from galerago.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from galerago.schemas import ReviewPatch

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
RECENT_REVIEWS_LIMIT = 6


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


def empty_breakdown() -> dict:
    return {star: 0 for star in range(MAX_RATING, MIN_RATING - 1, -1)}


def rating_stats(db: Session, *criteria) -> dict:
    """Count, one-decimal average and per-star histogram over matching reviews."""
    rows = db.query(models.Review.rating, func.count(models.Review.id)).filter(
        *criteria
    ).group_by(models.Review.rating).all()

    breakdown = empty_breakdown()
    total = 0
    rating_sum = 0
    for rating, count in rows:
        breakdown[rating] = count
        total += count
        rating_sum += rating * count
    return {
        "total_reviews": total,
        "average_rating": round(rating_sum / total, 1) if total else 0.0,
        "rating_breakdown": breakdown,
    }


def review_to_dict(review: models.Review) -> dict:
    package = review.package
    user = review.user
    return {
        "id": review.id,
        "booking_id": review.booking_id,
        "user_id": review.user_id,
        "package_id": review.package_id,
        "rating": review.rating,
        "comment": review.comment,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
        "reviewer_name": user.full_name if user else None,
        "package_name": package.name if package else None,
        "activity_type": package.activity_type if package else None,
    }


def _listing_query(db: Session):
    return db.query(models.Review).options(
        joinedload(models.Review.user),
        joinedload(models.Review.package),
    ).order_by(models.Review.created_at.desc(), models.Review.id.desc())


def _owned_review(db: Session, caller: Caller, review_id: int) -> models.Review:
    require_active(caller)
    review = db.query(models.Review).filter(models.Review.id == review_id).first()
    if not review:
        raise NotFoundError("Review not found")
    if review.user_id != caller.user_id:
        raise AuthorizationError("You can only modify your own reviews")
    return review


def create_review(db: Session, caller: Caller, booking_id: int, rating: int, comment: str = None) -> models.Review:
    require_active(caller)
    if booking_id is None:
        raise ValidationError("Booking ID and rating are required")
    validate_rating(rating)

    booking = db.query(models.Booking).filter(
        models.Booking.id == booking_id,
        models.Booking.user_id == caller.user_id,
        models.Booking.status == models.STATUS_COMPLETED,
        models.Booking.activity_completed.is_(True),
    ).first()
    if not booking:
        raise AuthorizationError("You can only review your own completed bookings")

    existing = db.query(models.Review.id).filter(models.Review.booking_id == booking.id).first()
    if existing:
        raise ConflictError("You have already reviewed this booking")

    review = models.Review(
        booking_id=booking.id,
        user_id=caller.user_id,
        package_id=booking.package_id,
        rating=rating,
        comment=comment or None,
    )
    db.add(review)
    commit(db, "submit review", conflict_message="You have already reviewed this booking")
    db.refresh(review)
    logger.info("Review %s created for booking %s by user %s", review.id, booking.id, caller.user_id)
    return review


def update_review(db: Session, caller: Caller, review_id: int, patch: ReviewPatch) -> models.Review:
    review = _owned_review(db, caller, review_id)
    changes = patch.model_dump(exclude_unset=True)
    if "rating" in changes:
        if changes["rating"] is None:
            raise ValidationError("Rating cannot be removed")
        validate_rating(changes["rating"])
    if not changes:
        raise ValidationError("No fields to update")

    for field, value in changes.items():
        setattr(review, field, value)
    review.updated_at = models.utcnow()
    commit(db, "update review")
    db.refresh(review)
    logger.info("Review %s updated by user %s", review.id, caller.user_id)
    return review


def delete_review(db: Session, caller: Caller, review_id: int) -> None:
    review = _owned_review(db, caller, review_id)
    db.delete(review)
    commit(db, "delete review")
    logger.info("Review %s deleted by user %s", review_id, caller.user_id)


def get_package_reviews(db: Session, package_id: int, rating_filter=None) -> dict:
    package = db.query(models.Package.id).filter(models.Package.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found")

    query = _listing_query(db).filter(models.Review.package_id == package_id)
    if rating_filter not in (None, "", "all"):
        try:
            rating_filter = int(rating_filter)
        except (TypeError, ValueError):
            raise ValidationError("Rating filter must be a number between 1 and 5")
        query = query.filter(models.Review.rating == validate_rating(rating_filter))

    return {
        "reviews": [review_to_dict(r) for r in query.all()],
        "stats": rating_stats(db, models.Review.package_id == package_id),
    }


def get_user_reviews(db: Session, caller: Caller) -> list:
    reviews = _listing_query(db).filter(models.Review.user_id == caller.user_id).all()
    return [review_to_dict(r) for r in reviews]


def list_reviews(db: Session, caller: Caller, package_id: int = None, rating: int = None,
                 user_id: int = None, limit: int = None) -> list:
    require_admin(caller)
    query = _listing_query(db)
    if package_id:
        query = query.filter(models.Review.package_id == package_id)
    if rating:
        query = query.filter(models.Review.rating == validate_rating(rating))
    if user_id:
        query = query.filter(models.Review.user_id == user_id)
    if limit:
        query = query.limit(limit)
    return [review_to_dict(r) for r in query.all()]


def recent_reviews(db: Session, limit: int = RECENT_REVIEWS_LIMIT) -> list:
    return [review_to_dict(r) for r in _listing_query(db).limit(limit).all()]
