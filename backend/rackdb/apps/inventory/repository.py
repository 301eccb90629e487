"""
Data access for materials and their ledger rows.

No business rules live here: functions read and write rows on the caller's
session and never commit. Constraint violations surface as narrow errors that
the ledger service translates for callers.
"""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models


class DuplicateCodeError(Exception):
    """Raised when a material code is already taken."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Material {code} already exists.")
        self.code = code


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def find_by_code(db: Session, code: str, *, for_update: bool = False) -> Optional[models.Material]:
    query = db.query(models.Material).filter(models.Material.code == normalize_code(code))
    if for_update:
        # Row lock on PostgreSQL; SQLite ignores it and relies on the
        # version column instead.
        query = query.with_for_update()
    return query.first()


def create(db: Session, material: models.Material) -> models.Material:
    material.code = normalize_code(material.code)
    material.last_updated = models._utcnow()
    db.add(material)
    try:
        db.flush()
    except IntegrityError as exc:
        # The session must be rolled back by the caller before reuse.
        raise DuplicateCodeError(material.code) from exc
    return material


def update(db: Session, material: models.Material, **fields) -> models.Material:
    for name, value in fields.items():
        setattr(material, name, value)
    material.last_updated = models._utcnow()
    db.add(material)
    db.flush()
    return material


def delete(db: Session, code: str) -> int:
    code = normalize_code(code)
    material = find_by_code(db, code, for_update=True)
    if material is None:
        return 0
    # Orphan the audit trail explicitly; SQLite does not enforce ON DELETE.
    db.query(models.Log).filter(models.Log.material_id == material.id).update(
        {models.Log.material_id: None},
        synchronize_session=False,
    )
    db.delete(material)
    db.flush()
    return 1


def _contains_pattern(term: str) -> str:
    # Wildcards in the term are matched literally.
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search(
    db: Session,
    term: Optional[str] = None,
    *,
    rack: Optional[str] = None,
    bin: Optional[str] = None,
) -> List[models.Material]:
    query = db.query(models.Material)
    term = (term or "").strip()
    if term:
        pattern = _contains_pattern(term.lower())
        location = func.lower(models.Material.rack + "-" + models.Material.bin)
        query = query.filter(
            or_(
                func.lower(models.Material.code).like(pattern, escape="\\"),
                func.lower(models.Material.rack).like(pattern, escape="\\"),
                func.lower(models.Material.bin).like(pattern, escape="\\"),
                location.like(pattern, escape="\\"),
            )
        )
    if rack:
        query = query.filter(func.lower(models.Material.rack) == rack.strip().lower())
    if bin:
        query = query.filter(func.lower(models.Material.bin) == bin.strip().lower())
    return query.all()


def list_all(db: Session) -> List[models.Material]:
    return db.query(models.Material).order_by(models.Material.code.asc()).all()


def append_log(db: Session, log: models.Log) -> models.Log:
    if log.timestamp is None:
        log.timestamp = models._utcnow()
    db.add(log)
    db.flush()
    return log


def list_logs(db: Session, limit: int = 50) -> List[models.Log]:
    return (
        db.query(models.Log)
        .order_by(models.Log.timestamp.desc(), models.Log.id.desc())
        .limit(limit)
        .all()
    )


def logs_for_material(db: Session, code: str) -> List[models.Log]:
    return (
        db.query(models.Log)
        .filter(models.Log.material_code == normalize_code(code))
        .order_by(models.Log.timestamp.asc(), models.Log.id.asc())
        .all()
    )


def start_of_local_day(now: Optional[datetime] = None) -> datetime:
    """
    Midnight of the server's local calendar day, expressed as naive UTC to
    match stored timestamps.
    """
    local_now = (now or datetime.now(timezone.utc)).astimezone()
    local_midnight = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
    return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)


def _count_actions_since(db: Session, action: models.LogActionEnum, since: datetime) -> int:
    return (
        db.query(func.count(models.Log.id))
        .filter(models.Log.action == action, models.Log.timestamp >= since)
        .scalar()
        or 0
    )


def compute_stats(db: Session, *, now: Optional[datetime] = None) -> dict:
    since = start_of_local_day(now)
    total_materials = db.query(func.count(models.Material.id)).scalar() or 0
    return {
        "total_materials": total_materials,
        "entered_today": _count_actions_since(db, models.LogActionEnum.ENTRY, since),
        "issued_today": _count_actions_since(db, models.LogActionEnum.ISSUE, since),
        "recent_logs": list_logs(db, limit=10),
    }


def reset_all_quantities(db: Session) -> int:
    return db.query(models.Material).update(
        {
            models.Material.quantity: 0,
            models.Material.last_updated: models._utcnow(),
            models.Material.version: models.Material.version + 1,
        },
        synchronize_session=False,
    )


def clear_logs(db: Session) -> int:
    return db.query(models.Log).delete(synchronize_session=False)
