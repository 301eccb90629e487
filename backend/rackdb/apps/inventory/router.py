from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from rackdb.database import get_read_db, get_write_db
from rackdb.security import require_admin

from . import schemas, services

router = APIRouter(prefix="/api", tags=["inventory"])

_STATUS_BY_ERROR = {
    services.ValidationError: status.HTTP_400_BAD_REQUEST,
    services.NotFoundError: status.HTTP_404_NOT_FOUND,
    services.ConflictError: status.HTTP_409_CONFLICT,
}


def _http_error(exc: services.InventoryError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(
        status_code=status_code,
        detail={"message": exc.message, "field": exc.field},
    )


# ---------------------------------------------------------------------------
# MATERIALS
# ---------------------------------------------------------------------------


@router.get("/materials", response_model=List[schemas.MaterialRead])
def list_materials(
    search: Optional[str] = None,
    rack: Optional[str] = None,
    bin: Optional[str] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_materials(db, search=search, rack=rack, bin=bin)


@router.get("/materials/low-stock", response_model=List[schemas.MaterialRead])
def list_low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    db: Session = Depends(get_read_db),
):
    return services.low_stock(db, threshold=threshold)


@router.post("/materials/reset", response_model=schemas.AdminActionResult)
def reset_inventory(
    db: Session = Depends(get_write_db),
    _admin: str = Depends(require_admin),
):
    affected = services.reset_inventory(db)
    return schemas.AdminActionResult(message="Inventory quantities reset.", affected=affected)


@router.get("/materials/{code}", response_model=schemas.MaterialRead)
def get_material(code: str, db: Session = Depends(get_read_db)):
    try:
        return services.get_material(db, code=code)
    except services.InventoryError as exc:
        raise _http_error(exc)


@router.get("/materials/{code}/bin-card", response_model=List[schemas.BinTransactionRead])
def get_bin_card(code: str, db: Session = Depends(get_read_db)):
    try:
        return services.bin_card(db, code=code)
    except services.InventoryError as exc:
        raise _http_error(exc)


@router.delete("/materials/{code}", response_model=schemas.AdminActionResult)
def delete_material(
    code: str,
    db: Session = Depends(get_write_db),
    _admin: str = Depends(require_admin),
):
    deleted = services.delete_material(db, code=code)
    return schemas.AdminActionResult(message="Material deleted.", affected=deleted)


# ---------------------------------------------------------------------------
# LEDGER ACTIONS
# ---------------------------------------------------------------------------


@router.post("/actions/entry", response_model=schemas.MaterialRead)
def record_entry(payload: schemas.EntryRequest, db: Session = Depends(get_write_db)):
    try:
        return services.record_entry(
            db,
            material_code=payload.material_code,
            quantity=payload.quantity,
            rack=payload.rack,
            bin=payload.bin,
            entered_by=payload.entered_by,
        )
    except services.InventoryError as exc:
        raise _http_error(exc)


@router.post("/actions/issue", response_model=schemas.MaterialRead)
def record_issue(payload: schemas.IssueRequest, db: Session = Depends(get_write_db)):
    try:
        return services.record_issue(
            db,
            material_code=payload.material_code,
            quantity=payload.quantity,
            rack=payload.rack,
            bin=payload.bin,
            issued_by=payload.issued_by,
        )
    except services.InventoryError as exc:
        raise _http_error(exc)


# ---------------------------------------------------------------------------
# LOGS, STATS, READ MODELS
# ---------------------------------------------------------------------------


@router.get("/logs", response_model=List[schemas.LogRead])
def list_logs(
    limit: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_read_db),
):
    return services.list_logs(db, limit=limit)


@router.delete("/logs", response_model=schemas.AdminActionResult)
def clear_logs(
    db: Session = Depends(get_write_db),
    _admin: str = Depends(require_admin),
):
    removed = services.clear_logs(db)
    return schemas.AdminActionResult(message="Logs cleared.", affected=removed)


@router.get("/stats", response_model=schemas.StatsRead)
def get_stats(db: Session = Depends(get_read_db)):
    return services.get_stats(db)


@router.get("/locations", response_model=List[schemas.LocationSummary])
def list_locations(db: Session = Depends(get_read_db)):
    return services.location_summaries(db)


@router.get("/reports/materials", response_model=List[schemas.MaterialRead])
def materials_report(
    range_key: str = Query("all", alias="range"),
    db: Session = Depends(get_read_db),
):
    try:
        return services.materials_report(db, range_key=range_key)
    except services.InventoryError as exc:
        raise _http_error(exc)
