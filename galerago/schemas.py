# galerago/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


# Users

class UserCreate(BaseModel):
    username: str
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    contact_number: Optional[str] = None
    role: str = "tourist"

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    is_suspended: bool
    suspended_at: Optional[datetime] = None
    suspension_reason: Optional[str] = None

class SuspendRequest(BaseModel):
    reason: Optional[str] = None

class TouristCreate(BaseModel):
    first_name: str
    last_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    nationality: Optional[str] = None

class TouristResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: Optional[str] = None
    age: Optional[int] = None
    nationality: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class QRScanRequest(BaseModel):
    qr_data: str


# Packages

class PackageCreate(BaseModel):
    name: str
    activity_type: str
    description: str
    price: Decimal
    duration: int
    max_participants: int
    includes: str
    gcash_number: Optional[str] = ""
    gcash_name: Optional[str] = ""

class PackagePatch(BaseModel):
    """Fields a provider may change on an existing package."""

    name: Optional[str] = None
    activity_type: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    duration: Optional[int] = None
    max_participants: Optional[int] = None
    includes: Optional[str] = None
    gcash_number: Optional[str] = None
    gcash_name: Optional[str] = None

class PackageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    activity_type: str
    description: str
    price: Decimal
    duration: int
    max_participants: int
    includes: str
    gcash_number: Optional[str] = ""
    gcash_name: Optional[str] = ""
    created_by: int
    created_at: Optional[datetime] = None


# Bookings

class ContactInfo(BaseModel):
    contact_number: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    special_requests: Optional[str] = None

class BookingCreate(ContactInfo):
    package_id: Optional[int] = None
    booking_date: Optional[date] = None
    number_of_participants: Optional[int] = None
    payment_method: Optional[str] = None

class BookingCreated(BaseModel):
    booking_id: int
    booking_reference: str
    payment_reference: Optional[str] = None
    total_amount: Decimal
    status: str

class CancelRequest(BaseModel):
    cancellation_reason: Optional[str] = None

class StatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    expected_status: Optional[str] = None

class ReactivateRequest(BaseModel):
    status: str = "pending"

class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    package_id: Optional[int] = None
    booking_reference: str
    booking_date: date
    number_of_participants: int
    total_amount: Decimal
    contact_number: str
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    special_requests: Optional[str] = None
    payment_method: str
    payment_reference: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancellation_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    provider_confirmed_at: Optional[datetime] = None
    provider_completed_at: Optional[datetime] = None
    activity_completed: bool
    refund_processed: bool
    refund_processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# Reviews

class ReviewCreate(BaseModel):
    booking_id: int
    rating: int
    comment: Optional[str] = None

class ReviewPatch(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None

class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    user_id: int
    package_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class RatingStats(BaseModel):
    total_reviews: int
    average_rating: float
    rating_breakdown: dict

class PackageReviews(BaseModel):
    reviews: List[dict]
    stats: RatingStats
