# galerago/services/entry.py
"""
Entry desk: the checkpoint staff who verify arriving tourists.

Entry providers look tourists up by name, email, phone or the QR code on a
tourist's pass, then stamp the profile as verified.
"""

import json
import logging
import re

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from galerago import models
from galerago.access import Caller, require_role
from galerago.database import commit
from galerago.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

RECENT_TOURISTS_LIMIT = 50
SEARCH_LIMIT = 20
MIN_SEARCH_LENGTH = 2

QR_FIELD_PATTERNS = {
    "name": re.compile(r"Name:\s*(.+)", re.IGNORECASE),
    "phone": re.compile(r"Phone:\s*(\S+)", re.IGNORECASE),
    "id": re.compile(r"ID:\s*(\d+)", re.IGNORECASE),
}


def _require_entry_provider(caller: Caller) -> Caller:
    return require_role(caller, models.ROLE_ENTRY_PROVIDER)


def entry_dashboard(db: Session, caller: Caller) -> dict:
    _require_entry_provider(caller)
    total = db.query(func.count(models.Tourist.id)).scalar() or 0
    verified = db.query(func.count(models.Tourist.id)).filter(
        models.Tourist.verified_at.isnot(None)
    ).scalar() or 0
    recent = db.query(models.Tourist).order_by(
        models.Tourist.created_at.desc(), models.Tourist.id.desc()
    ).limit(RECENT_TOURISTS_LIMIT).all()
    return {
        "stats": {
            "total_tourists": total,
            "verified_tourists": verified,
            "pending_verification": total - verified,
        },
        "recent_tourists": recent,
    }


def verify_tourist(db: Session, caller: Caller, tourist_id: int) -> models.Tourist:
    """Stamp a tourist as verified. Verifying again refreshes the timestamp."""
    _require_entry_provider(caller)
    tourist = db.query(models.Tourist).filter(models.Tourist.id == tourist_id).first()
    if not tourist:
        raise NotFoundError("Tourist not found")

    tourist.verified_at = models.utcnow()
    commit(db, "verify tourist")
    db.refresh(tourist)
    logger.info("Tourist %s verified by entry provider %s", tourist.id, caller.user_id)
    return tourist


def search_tourists(db: Session, caller: Caller, q: str) -> list:
    _require_entry_provider(caller)
    q = (q or "").strip()
    if len(q) < MIN_SEARCH_LENGTH:
        raise ValidationError(f"Search query must be at least {MIN_SEARCH_LENGTH} characters")

    return db.query(models.Tourist).filter(
        or_(
            models.Tourist.first_name.icontains(q, autoescape=True),
            models.Tourist.last_name.icontains(q, autoescape=True),
            models.Tourist.email.icontains(q, autoescape=True),
        )
    ).order_by(models.Tourist.created_at.desc(), models.Tourist.id.desc()).limit(SEARCH_LIMIT).all()


def parse_qr_data(qr_data: str) -> dict:
    """
    Pull tourist id, name and phone out of a pass QR payload.

    Accepts a JSON object (``tourist_id`` or ``id``, ``name``, ``phone``) or
    the plain text layout printed on passes (``Name: ...`` / ``Phone: ...`` /
    ``ID: 12``). Returns an empty dict when nothing usable is found.
    """
    qr_data = (qr_data or "").strip()
    if not qr_data:
        return {}

    try:
        payload = json.loads(qr_data)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        info = {
            "id": payload.get("tourist_id") or payload.get("id"),
            "name": payload.get("name"),
            "phone": payload.get("phone"),
        }
    else:
        info = {}
        for field, pattern in QR_FIELD_PATTERNS.items():
            match = pattern.search(qr_data)
            if match:
                info[field] = match.group(1).strip()

    if info.get("id") is not None:
        try:
            info["id"] = int(info["id"])
        except (TypeError, ValueError):
            info["id"] = None
    for field in ("name", "phone"):
        if info.get(field) is not None:
            info[field] = str(info[field]).strip() or None
    return {field: value for field, value in info.items() if value is not None}


def scan_qr(db: Session, caller: Caller, qr_data: str) -> dict:
    """Find the tourist a pass QR code belongs to; the first match wins."""
    _require_entry_provider(caller)
    info = parse_qr_data(qr_data)
    if not info:
        raise ValidationError("Could not extract tourist information from QR code")

    query = db.query(models.Tourist)
    if "id" in info:
        query = query.filter(models.Tourist.id == info["id"])
    if "name" in info:
        parts = info["name"].split()
        first, last = parts[0], parts[-1]
        if len(parts) >= 2:
            query = query.filter(
                models.Tourist.first_name.icontains(first, autoescape=True),
                models.Tourist.last_name.icontains(last, autoescape=True),
            )
        else:
            query = query.filter(or_(
                models.Tourist.first_name.icontains(first, autoescape=True),
                models.Tourist.last_name.icontains(first, autoescape=True),
            ))
    if "phone" in info:
        query = query.filter(models.Tourist.phone.contains(info["phone"], autoescape=True))

    matches = query.order_by(models.Tourist.id).all()
    if not matches:
        raise NotFoundError(
            f"Tourist not found. Searched for: {info.get('name', 'Unknown')}, Phone: {info.get('phone', 'Unknown')}"
        )
    logger.info("QR scan by entry provider %s matched %d tourist(s)", caller.user_id, len(matches))
    return {"tourist": matches[0], "match_count": len(matches)}
