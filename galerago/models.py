# galerago/models.py
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Date, Numeric, Text
from sqlalchemy.orm import relationship
from galerago.database import Base
import datetime


def utcnow():
    # Naive UTC, the way the DateTime columns store it
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# User roles
ROLE_TOURIST = "tourist"
ROLE_ACTIVITY_PROVIDER = "activity_provider"
ROLE_ENTRY_PROVIDER = "entry_provider"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_TOURIST, ROLE_ACTIVITY_PROVIDER, ROLE_ENTRY_PROVIDER, ROLE_ADMIN)

# Package activity types
ACTIVITY_TYPES = ("Island Hopping", "Snorkeling")

# Booking statuses
STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
BOOKING_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_COMPLETED, STATUS_CANCELLED)
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED)
REVENUE_STATUSES = (STATUS_CONFIRMED, STATUS_COMPLETED)

# Payment methods
PAYMENT_CASH = "cash"
PAYMENT_GCASH = "gcash"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_GCASH)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    contact_number = Column(String(30))
    role = Column(String(30), default=ROLE_TOURIST, nullable=False)

    is_suspended = Column(Boolean, default=False, nullable=False)
    suspended_at = Column(DateTime, nullable=True)
    suspended_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    suspension_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow)

    tourist = relationship("Tourist", back_populates="user", uselist=False)
    packages = relationship("Package", back_populates="provider")

    @property
    def full_name(self):
        name = " ".join(part.strip() for part in (self.first_name or "", self.last_name or "") if part.strip())
        return name or self.username


class Tourist(Base):
    __tablename__ = "tourists"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255))
    phone = Column(String(30))
    gender = Column(String(20))
    age = Column(Integer)
    nationality = Column(String(100))
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="tourist")


class Package(Base):
    __tablename__ = "packages"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    activity_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(Integer, nullable=False)  # hours
    max_participants = Column(Integer, nullable=False)
    includes = Column(Text, nullable=False)
    gcash_number = Column(String(30), default="")
    gcash_name = Column(String(100), default="")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    provider = relationship("User", back_populates="packages")
    # Deleting a package detaches its history instead of destroying it
    bookings = relationship("Booking", back_populates="package")
    reviews = relationship("Review", back_populates="package")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    tourist_id = Column(Integer, ForeignKey("tourists.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="SET NULL"), nullable=True, index=True)

    booking_reference = Column(String(20), unique=True, index=True, nullable=False)
    booking_date = Column(Date, nullable=False)
    number_of_participants = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    contact_number = Column(String(30), nullable=False)
    emergency_contact = Column(String(100))
    emergency_phone = Column(String(30))
    special_requests = Column(Text)

    payment_method = Column(String(10), nullable=False)
    payment_reference = Column(String(20), unique=True, nullable=True)

    status = Column(String(20), default=STATUS_PENDING, nullable=False, index=True)
    admin_notes = Column(Text)
    cancellation_reason = Column(Text)
    cancellation_notes = Column(Text)
    cancelled_at = Column(DateTime)
    provider_confirmed_at = Column(DateTime)
    provider_completed_at = Column(DateTime)
    activity_completed = Column(Boolean, default=False, nullable=False)
    refund_processed = Column(Boolean, default=False, nullable=False)
    refund_processed_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User")
    tourist = relationship("Tourist")
    package = relationship("Package", back_populates="bookings")
    review = relationship("Review", back_populates="booking", uselist=False)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id", ondelete="SET NULL"), nullable=True, index=True)
    rating = Column(Integer, nullable=False)  # 1..5
    comment = Column(Text)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, nullable=True)

    booking = relationship("Booking", back_populates="review")
    user = relationship("User")
    package = relationship("Package", back_populates="reviews")
