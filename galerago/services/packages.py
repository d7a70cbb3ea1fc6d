# galerago/services/packages.py
import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from galerago import models
from galerago.access import Caller, can_manage_package, require_role
from galerago.database import commit
from galerago.exceptions import AuthorizationError, NotFoundError, StateError, ValidationError
from galerago.schemas import PackageCreate, PackagePatch

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "activity_type", "description", "price", "duration", "max_participants", "includes")


def _validate_fields(values: dict):
    if "activity_type" in values and values["activity_type"] not in models.ACTIVITY_TYPES:
        raise ValidationError(
            "Invalid activity type. Only 'Island Hopping' and 'Snorkeling' are allowed."
        )
    if "price" in values and Decimal(values["price"]) <= 0:
        raise ValidationError("Price must be greater than zero")
    if "duration" in values and values["duration"] < 1:
        raise ValidationError("Duration must be at least 1 hour")
    if "max_participants" in values and values["max_participants"] < 1:
        raise ValidationError("Maximum participants must be at least 1")


def _owned_package(db: Session, caller: Caller, package_id: int) -> models.Package:
    require_role(caller, models.ROLE_ACTIVITY_PROVIDER, models.ROLE_ADMIN)
    package = db.query(models.Package).filter(models.Package.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found")
    if not can_manage_package(caller, package):
        raise AuthorizationError("You do not have permission to manage this package")
    return package


def _with_rating(package: models.Package, review_count: int, average_rating) -> dict:
    return {
        "id": package.id,
        "name": package.name,
        "activity_type": package.activity_type,
        "description": package.description,
        "price": package.price,
        "duration": package.duration,
        "max_participants": package.max_participants,
        "includes": package.includes,
        "gcash_number": package.gcash_number,
        "gcash_name": package.gcash_name,
        "created_by": package.created_by,
        "created_at": package.created_at,
        "review_count": review_count or 0,
        "average_rating": round(float(average_rating), 1) if average_rating is not None else 0.0,
    }


def _rated_packages_query(db: Session):
    ratings = db.query(
        models.Review.package_id.label("package_id"),
        func.count(models.Review.id).label("review_count"),
        func.avg(models.Review.rating).label("average_rating"),
    ).group_by(models.Review.package_id).subquery()
    return db.query(models.Package, ratings.c.review_count, ratings.c.average_rating).outerjoin(
        ratings, models.Package.id == ratings.c.package_id
    )


def create_package(db: Session, caller: Caller, data: PackageCreate) -> models.Package:
    require_role(caller, models.ROLE_ACTIVITY_PROVIDER)
    values = data.model_dump()
    missing = [name for name in REQUIRED_FIELDS if values.get(name) in (None, "")]
    if missing:
        raise ValidationError("All fields are required")
    _validate_fields(values)
    values["gcash_number"] = values.get("gcash_number") or ""
    values["gcash_name"] = values.get("gcash_name") or ""

    package = models.Package(created_by=caller.user_id, **values)
    db.add(package)
    commit(db, "create package")
    db.refresh(package)
    logger.info("Package %s created by provider %s", package.id, caller.user_id)
    return package


def update_package(db: Session, caller: Caller, package_id: int, patch: PackagePatch) -> models.Package:
    package = _owned_package(db, caller, package_id)
    changes = {field: value for field, value in patch.model_dump(exclude_unset=True).items() if value is not None}
    if not changes:
        raise ValidationError("No fields to update")
    _validate_fields(changes)

    for field, value in changes.items():
        setattr(package, field, value)
    commit(db, "update package")
    db.refresh(package)
    logger.info("Package %s updated by user %s: %s", package.id, caller.user_id, sorted(changes))
    return package


def delete_package(db: Session, caller: Caller, package_id: int) -> None:
    package = _owned_package(db, caller, package_id)
    active = db.query(func.count(models.Booking.id)).filter(
        models.Booking.package_id == package.id,
        models.Booking.status.in_(models.ACTIVE_STATUSES),
    ).scalar()
    if active:
        raise StateError(
            "Cannot delete package with active bookings. Please complete or cancel all bookings first."
        )

    db.delete(package)
    commit(db, "delete package")
    logger.info("Package %s deleted by user %s", package_id, caller.user_id)


def get_package(db: Session, package_id: int) -> dict:
    row = _rated_packages_query(db).filter(models.Package.id == package_id).first()
    if not row:
        raise NotFoundError("Package not found")
    return _with_rating(*row)


def list_packages(db: Session, activity_type: str = None, provider_id: int = None) -> list:
    query = _rated_packages_query(db)
    if activity_type:
        query = query.filter(models.Package.activity_type == activity_type)
    if provider_id:
        query = query.filter(models.Package.created_by == provider_id)
    rows = query.order_by(models.Package.created_at.desc(), models.Package.id.desc()).all()
    return [_with_rating(*row) for row in rows]
