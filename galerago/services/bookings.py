"""
Booking lifecycle.

Covers creation, provider status changes, tourist cancellation, the
cancelled-booking recovery path, refund bookkeeping and the caller-scoped
booking listings. Status changes all go through `transition`, a conditional
update guarded by the status the caller last saw.
"""

import logging

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session, joinedload

from galerago import models, state_machine
from galerago.access import (
    PROVIDER_ROLES,
    Caller,
    can_manage_package,
    require_active,
    require_admin,
    require_role,
)
from galerago.config import settings
from galerago.database import commit
from galerago.exceptions import (
    AuthorizationError,
    CapacityError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from galerago.references import generate_unique_reference
from galerago.schemas import ContactInfo

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 20


def _reference_exists(db: Session, column):
    return lambda reference: db.query(models.Booking.id).filter(column == reference).first() is not None


def _get_booking(db: Session, booking_id: int) -> models.Booking:
    booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _managed_booking(db: Session, caller: Caller, booking_id: int) -> models.Booking:
    require_role(caller, *PROVIDER_ROLES)
    booking = _get_booking(db, booking_id)
    if not can_manage_package(caller, booking.package):
        raise AuthorizationError("You can only manage bookings for your own packages")
    return booking


def _require_affected(db: Session, affected: int, booking_id: int):
    if affected == 0:
        db.rollback()
        logger.warning("Booking %s changed concurrently, conditional update affected no rows", booking_id)
        raise ConflictError("Booking was modified by another request. Reload it and try again.")


def booking_to_dict(booking: models.Booking) -> dict:
    package = booking.package
    provider = package.provider if package else None
    review = booking.review
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "package_id": booking.package_id,
        "booking_reference": booking.booking_reference,
        "booking_date": booking.booking_date,
        "number_of_participants": booking.number_of_participants,
        "total_amount": booking.total_amount,
        "contact_number": booking.contact_number,
        "emergency_contact": booking.emergency_contact,
        "emergency_phone": booking.emergency_phone,
        "special_requests": booking.special_requests,
        "payment_method": booking.payment_method,
        "payment_reference": booking.payment_reference,
        "status": booking.status,
        "next_statuses": sorted(state_machine.allowed_transitions(booking.status)),
        "admin_notes": booking.admin_notes,
        "cancellation_reason": booking.cancellation_reason,
        "cancellation_notes": booking.cancellation_notes,
        "cancelled_at": booking.cancelled_at,
        "provider_confirmed_at": booking.provider_confirmed_at,
        "provider_completed_at": booking.provider_completed_at,
        "activity_completed": booking.activity_completed,
        "refund_processed": booking.refund_processed,
        "refund_processed_at": booking.refund_processed_at,
        "created_at": booking.created_at,
        "package_name": package.name if package else None,
        "activity_type": package.activity_type if package else None,
        "package_price": package.price if package else None,
        "provider_name": provider.full_name if provider else None,
        "provider_contact": provider.contact_number if provider else None,
        "provider_gcash_number": package.gcash_number if package else None,
        "provider_gcash_name": package.gcash_name if package else None,
        "tourist_name": f"{booking.tourist.first_name} {booking.tourist.last_name}" if booking.tourist else None,
        "review_id": review.id if review else None,
        "user_rating": review.rating if review else None,
    }


def _listing_query(db: Session):
    return db.query(models.Booking).options(
        joinedload(models.Booking.package).joinedload(models.Package.provider),
        joinedload(models.Booking.tourist),
        joinedload(models.Booking.review),
    )


def transition(db: Session, booking_id: int, expected_status: str, new_status: str,
               values: dict = None, enforce: bool = True) -> int:
    """
    Move a booking from `expected_status` to `new_status` in one conditional
    UPDATE and return the number of affected rows.

    Zero rows means the booking no longer has `expected_status` (or does not
    exist); callers must treat that as a lost race. `enforce=False` skips the
    transition table for the cancelled-booking recovery path.
    """
    if enforce:
        state_machine.check_transition(expected_status, new_status)
    changes = dict(values or {})
    changes["status"] = new_status
    changes["updated_at"] = models.utcnow()
    return db.query(models.Booking).filter(
        models.Booking.id == booking_id,
        models.Booking.status == expected_status,
    ).update(changes, synchronize_session=False)


def create_booking(db: Session, caller: Caller, package_id: int, booking_date, participants: int,
                   contact_info: ContactInfo, payment_method: str) -> models.Booking:
    require_active(caller)
    contact_info = contact_info or ContactInfo()

    required = (
        ("package_id", package_id),
        ("booking_date", booking_date),
        ("number_of_participants", participants),
        ("contact_number", (contact_info.contact_number or "").strip()),
        ("payment_method", payment_method),
    )
    missing = [name for name, value in required if value is None or value == ""]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if payment_method not in models.PAYMENT_METHODS:
        raise ValidationError("Invalid payment method. Must be 'cash' or 'gcash'")
    if participants < 1:
        raise ValidationError("Number of participants must be at least 1")

    tourist = db.query(models.Tourist).filter(models.Tourist.user_id == caller.user_id).first()
    if not tourist:
        raise NotFoundError("Tourist profile not found. Please complete your profile first.")

    package = db.query(models.Package).filter(models.Package.id == package_id).first()
    if not package:
        raise NotFoundError("Package not found")
    if participants > package.max_participants:
        raise CapacityError(
            f"{participants} participants exceeds the maximum of {package.max_participants} for this package"
        )

    booking_reference = generate_unique_reference(
        settings.BOOKING_REFERENCE_PREFIX, _reference_exists(db, models.Booking.booking_reference)
    )
    payment_reference = None
    if payment_method == models.PAYMENT_GCASH:
        payment_reference = generate_unique_reference(
            settings.PAYMENT_REFERENCE_PREFIX, _reference_exists(db, models.Booking.payment_reference)
        )

    booking = models.Booking(
        user_id=caller.user_id,
        tourist_id=tourist.id,
        package_id=package.id,
        booking_reference=booking_reference,
        booking_date=booking_date,
        number_of_participants=participants,
        total_amount=package.price * participants,
        contact_number=contact_info.contact_number.strip(),
        emergency_contact=contact_info.emergency_contact or None,
        emergency_phone=contact_info.emergency_phone or None,
        special_requests=contact_info.special_requests or None,
        payment_method=payment_method,
        payment_reference=payment_reference,
        status=models.STATUS_PENDING,
    )
    db.add(booking)
    commit(db, "create booking", conflict_message="Booking reference already in use. Please try again.")
    db.refresh(booking)
    logger.info("Booking %s (%s) created by user %s", booking.id, booking.booking_reference, caller.user_id)
    return booking


def cancel_booking(db: Session, caller: Caller, booking_id: int, reason: str) -> models.Booking:
    """Tourist cancellation; only the owner, only while pending."""
    require_active(caller)
    booking = _get_booking(db, booking_id)
    if booking.user_id != caller.user_id:
        raise AuthorizationError("You can only cancel your own bookings")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Cancellation reason is required")
    if booking.status != models.STATUS_PENDING:
        raise StateError(
            "Only pending bookings can be cancelled",
            current=booking.status,
            target=models.STATUS_CANCELLED,
        )

    affected = transition(db, booking.id, models.STATUS_PENDING, models.STATUS_CANCELLED, {
        "cancellation_reason": reason,
        "cancelled_at": models.utcnow(),
    })
    _require_affected(db, affected, booking.id)
    commit(db, "cancel booking")
    db.refresh(booking)
    logger.info("Booking %s cancelled by its owner %s", booking.id, caller.user_id)
    return booking


def update_status(db: Session, caller: Caller, booking_id: int, new_status: str, notes: str = None,
                  reason: str = None, expected_status: str = None) -> models.Booking:
    """
    Provider/admin status change.

    `expected_status` lets a caller assert the status it last displayed; a
    mismatch is reported as a conflict instead of silently applying.
    """
    state_machine.validate_status(new_status)
    booking = _managed_booking(db, caller, booking_id)
    current = booking.status
    if expected_status is not None and expected_status != current:
        raise ConflictError(f"Booking is now '{current}', not '{expected_status}'. Reload it and try again.")

    state_machine.check_transition(current, new_status)

    now = models.utcnow()
    values = {}
    if notes is not None:
        values["admin_notes"] = notes
    if new_status == models.STATUS_CONFIRMED:
        values["provider_confirmed_at"] = now
    elif new_status == models.STATUS_COMPLETED:
        values["provider_completed_at"] = now
        values["activity_completed"] = True
    elif new_status == models.STATUS_CANCELLED:
        values["cancellation_reason"] = reason or notes or "Cancelled by provider"
        values["cancellation_notes"] = notes
        values["cancelled_at"] = now

    affected = transition(db, booking.id, current, new_status, values)
    _require_affected(db, affected, booking.id)
    commit(db, "update booking status")
    db.refresh(booking)
    logger.info("Booking %s moved %s -> %s by user %s", booking.id, current, new_status, caller.user_id)
    return booking


def reactivate(db: Session, caller: Caller, booking_id: int, status: str = models.STATUS_PENDING) -> models.Booking:
    if status not in state_machine.REACTIVATION_TARGETS:
        raise ValidationError("A booking can only be reactivated as 'pending' or 'confirmed'")
    booking = _managed_booking(db, caller, booking_id)
    if booking.status != models.STATUS_CANCELLED:
        raise StateError("Only cancelled bookings can be reactivated", current=booking.status, target=status)

    values = {
        "cancellation_reason": None,
        "cancellation_notes": None,
        "cancelled_at": None,
    }
    if status == models.STATUS_CONFIRMED:
        values["provider_confirmed_at"] = models.utcnow()
    affected = transition(db, booking.id, models.STATUS_CANCELLED, status, values, enforce=False)
    _require_affected(db, affected, booking.id)
    commit(db, "reactivate booking")
    db.refresh(booking)
    logger.info("Booking %s reactivated as %s by user %s", booking.id, status, caller.user_id)
    return booking


def mark_refund_processed(db: Session, caller: Caller, booking_id: int) -> models.Booking:
    booking = _managed_booking(db, caller, booking_id)
    if booking.status != models.STATUS_CANCELLED:
        raise StateError("Refunds can only be processed for cancelled bookings", current=booking.status)
    if booking.refund_processed:
        logger.info("Refund for booking %s already marked as processed", booking.id)
        return booking

    now = models.utcnow()
    affected = db.query(models.Booking).filter(
        models.Booking.id == booking.id,
        models.Booking.status == models.STATUS_CANCELLED,
        models.Booking.refund_processed.is_(False),
    ).update({
        "refund_processed": True,
        "refund_processed_at": now,
        "updated_at": now,
    }, synchronize_session=False)
    if affected == 0:
        db.rollback()
        db.refresh(booking)
        # Another request marked it first
        if booking.status == models.STATUS_CANCELLED and booking.refund_processed:
            return booking
        raise ConflictError("Booking was modified by another request. Reload it and try again.")
    commit(db, "mark refund as processed")
    db.refresh(booking)
    logger.info("Refund for booking %s marked as processed by user %s", booking.id, caller.user_id)
    return booking


def get_booking(db: Session, caller: Caller, booking_id: int) -> dict:
    booking = _listing_query(db).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.user_id != caller.user_id and not can_manage_package(caller, booking.package):
        raise AuthorizationError("You do not have access to this booking")
    return booking_to_dict(booking)


def list_by_user(db: Session, caller: Caller) -> list:
    bookings = _listing_query(db).filter(
        models.Booking.user_id == caller.user_id
    ).order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()
    return [booking_to_dict(b) for b in bookings]


def list_reviewable_bookings(db: Session, caller: Caller) -> list:
    bookings = _listing_query(db).filter(
        models.Booking.user_id == caller.user_id,
        models.Booking.status == models.STATUS_COMPLETED,
    ).order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()
    return [booking_to_dict(b) for b in bookings]


def list_by_status(db: Session, caller: Caller, status: str) -> list:
    require_admin(caller)
    state_machine.validate_status(status)
    bookings = _listing_query(db).filter(
        models.Booking.status == status
    ).order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()
    return [booking_to_dict(b) for b in bookings]


def list_by_package_owner(db: Session, caller: Caller, status: str = None) -> list:
    """Bookings on the caller's packages; admins see every booking."""
    require_role(caller, *PROVIDER_ROLES)
    query = _listing_query(db)
    if not caller.is_admin:
        query = query.join(models.Package, models.Booking.package_id == models.Package.id).filter(
            models.Package.created_by == caller.user_id
        )
    if status:
        state_machine.validate_status(status)
        query = query.filter(models.Booking.status == status)
    bookings = query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).all()
    return [booking_to_dict(b) for b in bookings]


def search_bookings(db: Session, caller: Caller, q: str) -> list:
    require_role(caller, *PROVIDER_ROLES)
    q = (q or "").strip()
    if len(q) < SEARCH_MIN_LENGTH:
        raise ValidationError(f"Please enter at least {SEARCH_MIN_LENGTH} characters to search")

    query = _listing_query(db).join(
        models.Package, models.Booking.package_id == models.Package.id
    ).outerjoin(
        models.Tourist, models.Booking.tourist_id == models.Tourist.id
    ).filter(or_(
        models.Booking.booking_reference.icontains(q, autoescape=True),
        cast(models.Booking.id, String).contains(q, autoescape=True),
        models.Tourist.first_name.icontains(q, autoescape=True),
        models.Tourist.last_name.icontains(q, autoescape=True),
        models.Tourist.email.icontains(q, autoescape=True),
        models.Tourist.phone.contains(q, autoescape=True),
        models.Booking.contact_number.contains(q, autoescape=True),
    ))
    if not caller.is_admin:
        query = query.filter(models.Package.created_by == caller.user_id)
    bookings = query.order_by(models.Booking.created_at.desc()).limit(SEARCH_LIMIT).all()
    return [booking_to_dict(b) for b in bookings]
