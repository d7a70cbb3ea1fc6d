# galerago/routes/packages.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from galerago import schemas, database, auth
from galerago.access import Caller
from galerago.services import packages as package_service
from galerago.services import reviews as review_service

router = APIRouter(
    prefix="/packages",
    tags=["Packages"]
)

# Provider Only - Create a Package
@router.post("/", status_code=201, response_model=schemas.PackageResponse)
def create_package(
    package: schemas.PackageCreate,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return package_service.create_package(db, caller, package)

# Public - List Packages with ratings
@router.get("/")
def list_packages(
    activity_type: Optional[str] = None,
    provider_id: Optional[int] = None,
    db: Session = Depends(database.get_db)
):
    return package_service.list_packages(db, activity_type, provider_id)

# Public - Package details
@router.get("/{package_id}")
def get_package(package_id: int, db: Session = Depends(database.get_db)):
    return package_service.get_package(db, package_id)

# Public - Package reviews with rating breakdown
@router.get("/{package_id}/reviews", response_model=schemas.PackageReviews)
def get_package_reviews(package_id: int, rating: Optional[str] = None, db: Session = Depends(database.get_db)):
    return review_service.get_package_reviews(db, package_id, rating)

# Owner Only - Update a Package
@router.patch("/{package_id}", response_model=schemas.PackageResponse)
def update_package(
    package_id: int,
    patch: schemas.PackagePatch,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    return package_service.update_package(db, caller, package_id, patch)

# Owner Only - Delete a Package
@router.delete("/{package_id}")
def delete_package(
    package_id: int,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    package_service.delete_package(db, caller, package_id)
    return {"message": "Package deleted successfully"}
