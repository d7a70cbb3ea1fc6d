# galerago/routes/entry.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from galerago import schemas, database, auth
from galerago.access import Caller
from galerago.services import entry as entry_service


router = APIRouter(
    prefix="/entry",
    tags=["Entry"]
)


def _tourist(tourist) -> dict:
    return schemas.TouristResponse.model_validate(tourist).model_dump()

# Entry provider - Dashboard with verification counts and recent tourists
@router.get("/dashboard")
def entry_dashboard(db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    dashboard = entry_service.entry_dashboard(db, caller)
    return {
        "stats": dashboard["stats"],
        "recent_tourists": [_tourist(t) for t in dashboard["recent_tourists"]],
    }

# Entry provider - Search tourists by name or email
@router.get("/search", response_model=list[schemas.TouristResponse])
def search_tourists(q: str = "", db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    return entry_service.search_tourists(db, caller, q)

# Entry provider - Mark a tourist as verified
@router.post("/verify/{tourist_id}")
def verify_tourist(tourist_id: int, db: Session = Depends(database.get_db), caller: Caller = Depends(auth.get_caller)):
    tourist = entry_service.verify_tourist(db, caller, tourist_id)
    return {"message": "Tourist verified successfully", "tourist": _tourist(tourist)}

# Entry provider - Look up a tourist from a pass QR code
@router.post("/scan-qr")
def scan_qr(
    payload: schemas.QRScanRequest,
    db: Session = Depends(database.get_db),
    caller: Caller = Depends(auth.get_caller)
):
    result = entry_service.scan_qr(db, caller, payload.qr_data)
    return {"tourist": _tourist(result["tourist"]), "match_count": result["match_count"]}
