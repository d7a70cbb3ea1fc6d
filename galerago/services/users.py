# galerago/services/users.py
import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from galerago import auth, models
from galerago.access import Caller, require_active, require_admin
from galerago.database import commit
from galerago.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from galerago.schemas import TouristCreate, UserCreate

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = (models.ROLE_TOURIST, models.ROLE_ACTIVITY_PROVIDER, models.ROLE_ENTRY_PROVIDER)


def _get_user(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def register_user(db: Session, data: UserCreate, role: str = None) -> models.User:
    role = role or data.role
    if role not in models.USER_ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(models.USER_ROLES)}")

    existing = db.query(models.User).filter(
        or_(models.User.email == data.email, models.User.username == data.username)
    ).first()
    if existing:
        raise ConflictError("Email or username already registered")

    user = models.User(
        username=data.username,
        email=data.email,
        password=auth.get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        contact_number=data.contact_number,
        role=role,
    )
    db.add(user)
    commit(db, "register user", conflict_message="Email or username already registered")
    db.refresh(user)
    logger.info("Registered user %s with role %s", user.id, role)
    return user


def self_register(db: Session, data: UserCreate) -> models.User:
    if data.role not in SELF_REGISTER_ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(SELF_REGISTER_ROLES)}")
    return register_user(db, data)


def register_admin(db: Session, caller: Caller, data: UserCreate) -> models.User:
    require_admin(caller)
    return register_user(db, data, role=models.ROLE_ADMIN)


def authenticate(db: Session, email: str, password: str) -> models.User:
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not auth.verify_password(password, user.password):
        raise AuthorizationError("Invalid credentials. Please check your email and password.")
    if user.is_suspended:
        raise AuthorizationError("Your account has been suspended and you cannot log in at this time.")
    return user


def create_tourist_profile(db: Session, caller: Caller, data: TouristCreate) -> models.Tourist:
    require_active(caller)
    if caller.role != models.ROLE_TOURIST:
        raise AuthorizationError("Only tourist accounts can have a tourist profile")
    if db.query(models.Tourist.id).filter(models.Tourist.user_id == caller.user_id).first():
        raise ConflictError("Tourist profile already exists")

    tourist = models.Tourist(user_id=caller.user_id, **data.model_dump())
    db.add(tourist)
    commit(db, "create tourist profile", conflict_message="Tourist profile already exists")
    db.refresh(tourist)
    return tourist


def suspend_user(db: Session, caller: Caller, user_id: int, reason: str = None) -> models.User:
    require_admin(caller)
    if user_id == caller.user_id:
        raise ValidationError("You cannot suspend your own account")
    user = _get_user(db, user_id)
    if user.is_suspended:
        raise StateError("User is already suspended")

    user.is_suspended = True
    user.suspended_at = models.utcnow()
    user.suspended_by = caller.user_id
    user.suspension_reason = reason
    commit(db, "suspend user")
    db.refresh(user)
    logger.info("User %s suspended by admin %s", user.id, caller.user_id)
    return user


def unsuspend_user(db: Session, caller: Caller, user_id: int) -> models.User:
    require_admin(caller)
    user = _get_user(db, user_id)
    if not user.is_suspended:
        raise StateError("User is not suspended")

    user.is_suspended = False
    user.suspended_at = None
    user.suspended_by = None
    user.suspension_reason = None
    commit(db, "unsuspend user")
    db.refresh(user)
    logger.info("User %s unsuspended by admin %s", user.id, caller.user_id)
    return user


def list_users(db: Session, caller: Caller, role: str = None) -> list:
    require_admin(caller)
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    return query.order_by(models.User.id).all()
