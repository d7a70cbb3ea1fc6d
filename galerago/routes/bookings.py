# galerago/routes/bookings.py
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session
from typing import Optional
from galerago import schemas, database, auth, notifications
from galerago.access import Caller
from galerago.services import bookings as booking_service

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"]
)


def _notify(background_tasks: BackgroundTasks, booking, reason: Optional[str] = None):
    # Resolve the address now; the session is closed by the time the task runs
    background_tasks.add_task(
        notifications.notify_booking_status,
        booking.user.email,
        booking.booking_reference,
        booking.status,
        reason,
    )

# Tourist - Create a Booking
@router.post("/", status_code=201, response_model=schemas.BookingCreated)
def create_booking(
    payload: schemas.BookingCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    booking = booking_service.create_booking(
        db,
        caller,
        package_id=payload.package_id,
        booking_date=payload.booking_date,
        participants=payload.number_of_participants,
        contact_info=payload,
        payment_method=payload.payment_method,
    )
    _notify(background_tasks, booking)
    return {
        "booking_id": booking.id,
        "booking_reference": booking.booking_reference,
        "payment_reference": booking.payment_reference,
        "total_amount": booking.total_amount,
        "status": booking.status,
    }

# Tourist - My Bookings (with review status)
@router.get("/my")
def list_my_bookings(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return booking_service.list_by_user(db, caller)

# Tourist - Completed bookings that can be reviewed
@router.get("/completed-for-review")
def list_reviewable_bookings(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return booking_service.list_reviewable_bookings(db, caller)

# Provider - Bookings on my packages
@router.get("/owner")
def list_owner_bookings(
    status: Optional[str] = None,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return booking_service.list_by_package_owner(db, caller, status)

# Provider - Search bookings by reference, tourist or contact
@router.get("/search")
def search_bookings(q: str = "", db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return booking_service.search_bookings(db, caller, q)

# Admin - Bookings by status
@router.get("/status/{status}")
def list_bookings_by_status(
    status: str,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return booking_service.list_by_status(db, caller, status)

# Booking details (owner, package provider or admin)
@router.get("/{booking_id}")
def get_booking(booking_id: int, db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return booking_service.get_booking(db, caller, booking_id)

# Tourist - Cancel a pending booking
@router.post("/{booking_id}/cancel", response_model=schemas.BookingResponse)
def cancel_booking(
    booking_id: int,
    payload: schemas.CancelRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    booking = booking_service.cancel_booking(db, caller, booking_id, payload.cancellation_reason)
    _notify(background_tasks, booking, booking.cancellation_reason)
    return booking

# Provider/Admin - Update booking status
@router.put("/{booking_id}/status", response_model=schemas.BookingResponse)
def update_booking_status(
    booking_id: int,
    payload: schemas.StatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    booking = booking_service.update_status(
        db,
        caller,
        booking_id,
        payload.status,
        notes=payload.notes,
        reason=payload.cancellation_reason,
        expected_status=payload.expected_status,
    )
    _notify(background_tasks, booking, booking.cancellation_reason)
    return booking

# Provider/Admin - Reactivate a cancelled booking
@router.post("/{booking_id}/reactivate", response_model=schemas.BookingResponse)
def reactivate_booking(
    booking_id: int,
    payload: schemas.ReactivateRequest,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return booking_service.reactivate(db, caller, booking_id, payload.status)

# Provider/Admin - Mark refund as processed
@router.post("/{booking_id}/refund-processed", response_model=schemas.BookingResponse)
def mark_refund_processed(
    booking_id: int,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return booking_service.mark_refund_processed(db, caller, booking_id)
