# galerago/routes/stats.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from galerago import database, auth
from galerago.access import Caller
from galerago.services import statistics

MAX_PAGE_SIZE = 100

router = APIRouter(
    prefix="/stats",
    tags=["Statistics"]
)

# Public - Overall review statistics
@router.get("/reviews")
def review_statistics(db: Session = Depends(database.get_db)):
    return statistics.review_statistics(db)

# Public - Review statistics per activity type
@router.get("/reviews/activity-types")
def review_stats_by_activity_type(db: Session = Depends(database.get_db)):
    return statistics.review_stats_by_activity_type(db)

# Public - Top rated packages
@router.get("/packages/top-rated")
def top_rated_packages(
    limit: int = Query(statistics.POPULAR_LIMIT, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(database.get_db)
):
    return statistics.popular_packages(db, by="reviews", limit=limit)

# Admin - Booking statistics dashboard
@router.get("/bookings")
def booking_statistics(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return statistics.admin_booking_stats(db, caller)

# Admin - Monthly tourist registrations by gender and age
@router.get("/tourists")
def tourist_demographics(
    months: int = Query(statistics.TRAILING_MONTHS, ge=1, le=60),
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return statistics.monthly_tourist_demographics(db, caller, months=months)

# Provider - Dashboard and monthly income
@router.get("/provider")
def provider_dashboard(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return statistics.provider_dashboard(db, caller)
