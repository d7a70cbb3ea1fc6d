"""
Read-side rollups over bookings, reviews and tourist registrations.

Every aggregate answers with a zero-filled structure when there is nothing to
count, so dashboards never have to special-case an empty database.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from galerago import models
from galerago.access import PROVIDER_ROLES, Caller, require_admin, require_role
from galerago.exceptions import ValidationError
from galerago.services.reviews import empty_breakdown, rating_stats

TRAILING_MONTHS = 12
POPULAR_LIMIT = 10
CENT = Decimal("0.01")

GENDERS = ("Male", "Female", "Other", "Unspecified")
# (label, inclusive upper age)
AGE_BUCKET_BOUNDS = (
    ("0-12", 12),
    ("13-17", 17),
    ("18-24", 24),
    ("25-34", 34),
    ("35-44", 44),
    ("45-54", 54),
)
AGE_BUCKETS = tuple(label for label, _ in AGE_BUCKET_BOUNDS) + ("55+", "Unknown")


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT)


def _shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _revenue_amount():
    return case((models.Booking.status.in_(models.REVENUE_STATUSES), models.Booking.total_amount), else_=0)


def review_statistics(db: Session) -> dict:
    return rating_stats(db)


def review_stats_by_activity_type(db: Session) -> list:
    rows = db.query(
        models.Package.activity_type, models.Review.rating, func.count(models.Review.id)
    ).select_from(models.Review).join(
        models.Package, models.Review.package_id == models.Package.id
    ).group_by(models.Package.activity_type, models.Review.rating).all()

    grouped = {activity: empty_breakdown() for activity in models.ACTIVITY_TYPES}
    for activity, rating, count in rows:
        grouped.setdefault(activity, empty_breakdown())[rating] = count

    results = []
    for activity, breakdown in grouped.items():
        total = sum(breakdown.values())
        rating_sum = sum(star * count for star, count in breakdown.items())
        results.append({
            "activity_type": activity,
            "review_count": total,
            "average_rating": round(rating_sum / total, 1) if total else 0.0,
            "rating_breakdown": breakdown,
        })
    return results


def _trailing_months(months: int, now: datetime = None):
    """Start of the window plus an ordered `{"YYYY-MM": label}` map, oldest first."""
    now = now or models.utcnow()
    first_year, first_month = _shift_month(now.year, now.month, -(months - 1))
    keys = {}
    for offset in range(months):
        year, month = _shift_month(first_year, first_month, offset)
        keys[f"{year:04d}-{month:02d}"] = datetime(year, month, 1).strftime("%b %Y")
    return datetime(first_year, first_month, 1), keys


def _month_key(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def monthly_booking_trends(db: Session, months: int = TRAILING_MONTHS, provider_id: int = None,
                           now: datetime = None) -> list:
    """
    Booking count and revenue per calendar month, oldest first, covering the
    current month and the `months - 1` before it.
    """
    start, keys = _trailing_months(months, now)
    buckets = {
        key: {"month": key, "label": label, "booking_count": 0, "revenue": Decimal("0.00")}
        for key, label in keys.items()
    }

    query = db.query(models.Booking.created_at, models.Booking.total_amount, models.Booking.status).filter(
        models.Booking.created_at >= start
    )
    if provider_id is not None:
        query = query.join(models.Package, models.Booking.package_id == models.Package.id).filter(
            models.Package.created_by == provider_id
        )

    for created_at, total_amount, status in query.all():
        bucket = buckets.get(_month_key(created_at))
        if bucket is None:
            continue
        bucket["booking_count"] += 1
        if status in models.REVENUE_STATUSES:
            bucket["revenue"] += _money(total_amount)
    return list(buckets.values())


def age_bucket(age) -> str:
    if age is None:
        return "Unknown"
    for label, upper in AGE_BUCKET_BOUNDS:
        if age <= upper:
            return label
    return "55+"


def gender_bucket(gender) -> str:
    if not gender or not gender.strip():
        return "Unspecified"
    normalized = gender.strip().capitalize()
    return normalized if normalized in GENDERS else "Other"


def monthly_tourist_demographics(db: Session, caller: Caller, months: int = TRAILING_MONTHS,
                                 now: datetime = None) -> list:
    """
    New tourist profiles per calendar month, split by gender and age bucket.

    Months without registrations still appear with every counter at zero.
    """
    require_admin(caller)
    start, keys = _trailing_months(months, now)
    buckets = {
        key: {
            "month": key,
            "label": label,
            "total": 0,
            "gender": {gender: 0 for gender in GENDERS},
            "age": {bucket: 0 for bucket in AGE_BUCKETS},
        }
        for key, label in keys.items()
    }

    rows = db.query(models.Tourist.created_at, models.Tourist.gender, models.Tourist.age).filter(
        models.Tourist.created_at >= start
    ).all()
    for created_at, gender, age in rows:
        bucket = buckets.get(_month_key(created_at))
        if bucket is None:
            continue
        bucket["total"] += 1
        bucket["gender"][gender_bucket(gender)] += 1
        bucket["age"][age_bucket(age)] += 1
    return list(buckets.values())


def popular_packages(db: Session, by: str = "bookings", limit: int = POPULAR_LIMIT) -> list:
    if by == "reviews":
        review_count = func.count(models.Review.id)
        average_rating = func.avg(models.Review.rating)
        rows = db.query(models.Package, review_count, average_rating).join(
            models.Review, models.Review.package_id == models.Package.id
        ).group_by(models.Package.id).order_by(
            review_count.desc(), average_rating.desc()
        ).limit(limit).all()
        return [{
            "package_id": package.id,
            "name": package.name,
            "activity_type": package.activity_type,
            "review_count": count,
            "average_rating": round(float(average), 1),
        } for package, count, average in rows]

    if by == "bookings":
        booking_count = func.count(models.Booking.id)
        revenue = func.coalesce(func.sum(_revenue_amount()), 0)
        rows = db.query(models.Package, booking_count, revenue).join(
            models.Booking, models.Booking.package_id == models.Package.id
        ).group_by(models.Package.id).order_by(
            booking_count.desc(), revenue.desc()
        ).limit(limit).all()
        return [{
            "package_id": package.id,
            "name": package.name,
            "activity_type": package.activity_type,
            "booking_count": count,
            "total_revenue": _money(total),
        } for package, count, total in rows]

    raise ValidationError("Popular packages can be ranked by 'bookings' or 'reviews'")


def booking_totals(db: Session, provider_id: int = None) -> dict:
    """Per-status counts with sum and average of total_amount, plus overall revenue."""
    query = db.query(
        models.Booking.status,
        func.count(models.Booking.id),
        func.sum(models.Booking.total_amount),
        func.avg(models.Booking.total_amount),
    )
    refunds = db.query(func.count(models.Booking.id)).filter(
        models.Booking.status == models.STATUS_CANCELLED,
        models.Booking.refund_processed.is_(True),
    )
    if provider_id is not None:
        query = query.join(models.Package, models.Booking.package_id == models.Package.id).filter(
            models.Package.created_by == provider_id
        )
        refunds = refunds.join(models.Package, models.Booking.package_id == models.Package.id).filter(
            models.Package.created_by == provider_id
        )

    by_status = {
        status: {"count": 0, "total_amount": Decimal("0.00"), "average_amount": Decimal("0.00")}
        for status in models.BOOKING_STATUSES
    }
    for status, count, total, average in query.group_by(models.Booking.status).all():
        by_status[status] = {"count": count, "total_amount": _money(total), "average_amount": _money(average)}

    revenue_count = sum(by_status[s]["count"] for s in models.REVENUE_STATUSES)
    total_revenue = sum((by_status[s]["total_amount"] for s in models.REVENUE_STATUSES), Decimal("0.00"))
    return {
        "total_bookings": sum(entry["count"] for entry in by_status.values()),
        "by_status": by_status,
        "total_revenue": total_revenue,
        "average_booking_value": (total_revenue / revenue_count).quantize(CENT) if revenue_count else Decimal("0.00"),
        "refunds_processed": refunds.scalar() or 0,
    }


def admin_booking_stats(db: Session, caller: Caller) -> dict:
    require_admin(caller)
    return {
        "overall": booking_totals(db),
        "monthly": monthly_booking_trends(db),
        "popular_packages": popular_packages(db, by="bookings"),
    }


def provider_dashboard(db: Session, caller: Caller) -> dict:
    require_role(caller, *PROVIDER_ROLES)
    totals = booking_totals(db, provider_id=caller.user_id)
    package_count = db.query(func.count(models.Package.id)).filter(
        models.Package.created_by == caller.user_id
    ).scalar()
    return {
        "total_packages": package_count or 0,
        "total_bookings": totals["total_bookings"],
        "active_bookings": totals["by_status"][models.STATUS_CONFIRMED]["count"],
        "pending_bookings": totals["by_status"][models.STATUS_PENDING]["count"],
        "totals": totals,
        "monthly": monthly_booking_trends(db, provider_id=caller.user_id),
    }
