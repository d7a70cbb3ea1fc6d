# galerago/routes/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from galerago import schemas, database, auth
from galerago.access import Caller
from galerago.services import users as user_service


router = APIRouter(
    prefix="/users",
    tags=["Users"]
)


# User Registration (tourists and providers)
@router.post("/register", status_code=201)
def register_user(user: schemas.UserCreate, db: Session = Depends(database.get_db)):
    new_user = user_service.self_register(db, user)
    return {"message": "User registered successfully", "user_id": new_user.id}

# Admin Registration (Admin Only - Protected)
@router.post("/admin/register", status_code=201)
def register_admin(
    user: schemas.UserCreate,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    new_admin = user_service.register_admin(db, caller, user)
    return {"message": f"Admin {new_admin.email} registered successfully", "user_id": new_admin.id}

# User Login (JWT)
@router.post("/login")
def login_user(user: schemas.UserLogin, db: Session = Depends(database.get_db)):
    db_user = user_service.authenticate(db, user.email, user.password)
    return {
        "access_token": auth.token_for(db_user),
        "token_type": "bearer",
        "username": db_user.username,
        "email": db_user.email,
        "role": db_user.role
    }

# Current user
@router.get("/me", response_model=schemas.UserResponse)
def read_me(current_user=Depends(auth.get_current_user)):
    return current_user

# Tourist profile, required before booking
@router.post("/me/tourist-profile", status_code=201)
def create_tourist_profile(
    profile: schemas.TouristCreate,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    tourist = user_service.create_tourist_profile(db, caller, profile)
    return {"message": "Tourist registered successfully", "tourist_id": tourist.id}

# Admin - List users
@router.get("/", response_model=list[schemas.UserResponse])
def list_users(
    role: Optional[str] = None,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return user_service.list_users(db, caller, role)

# Admin - Suspend a user
@router.post("/{user_id}/suspend", response_model=schemas.UserResponse)
def suspend_user(
    user_id: int,
    payload: schemas.SuspendRequest,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return user_service.suspend_user(db, caller, user_id, payload.reason)

# Admin - Lift a suspension
@router.post("/{user_id}/unsuspend", response_model=schemas.UserResponse)
def unsuspend_user(
    user_id: int,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return user_service.unsuspend_user(db, caller, user_id)
