from __future__ import annotations

import calendar
import logging
import os
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import models, repository, schemas

logger = logging.getLogger(__name__)

T = TypeVar("T")

try:
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "100"))
except ValueError:
    LOW_STOCK_THRESHOLD = 100

try:
    LEDGER_MAX_RETRIES: int = max(1, int(os.getenv("LEDGER_MAX_RETRIES", "3")))
except ValueError:
    LEDGER_MAX_RETRIES = 3

REPORT_DAY_RANGES = {"30days": 30}
REPORT_MONTH_RANGES = {"3months": 3, "5months": 5, "8months": 8}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InventoryError(Exception):
    """Base class for failures reported back to API callers."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(InventoryError):
    """Bad input, insufficient stock or a location mismatch."""


class NotFoundError(InventoryError):
    """Unknown material code."""


class ConflictError(InventoryError):
    """Duplicate code or a write that kept losing a concurrent race."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_text(value: Optional[str], field: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required.", field=field)
    return value


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer.", field="quantity")
    if quantity > models.MAX_QUANTITY:
        raise ValidationError(
            f"Quantity must not exceed {models.MAX_QUANTITY}.", field="quantity"
        )
    return quantity


def _same_location(material: models.Material, rack: str, bin: str) -> bool:
    return (
        material.rack.strip().casefold() == rack.casefold()
        and material.bin.strip().casefold() == bin.casefold()
    )


def _run_atomic(db: Session, operation: Callable[[], T], *, code: str) -> T:
    """
    Run one read-modify-write unit and commit it.

    A unit that loses a race (stale version or duplicate first insert) is
    rolled back and replayed from scratch so it sees the winner's row.
    """
    for attempt in range(1, LEDGER_MAX_RETRIES + 1):
        try:
            result = operation()
            db.commit()
            return result
        except (StaleDataError, repository.DuplicateCodeError):
            db.rollback()
            logger.warning(
                "Ledger write lost a concurrent update; retrying",
                extra={"material_code": code, "attempt": attempt},
            )
        except Exception:
            db.rollback()
            raise
    raise ConflictError(
        f"Material {code} is being updated concurrently; please retry.",
        field="materialCode",
    )


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


def record_entry(
    db: Session,
    *,
    material_code: str,
    quantity: int,
    rack: str,
    bin: str,
    entered_by: str,
) -> models.Material:
    code = repository.normalize_code(_require_text(material_code, "materialCode"))
    quantity = _require_quantity(quantity)
    rack = _require_text(rack, "rack")
    bin = _require_text(bin, "bin")
    entered_by = _require_text(entered_by, "enteredBy")

    def _apply() -> models.Material:
        material = repository.find_by_code(db, code, for_update=True)
        if material is None:
            material = repository.create(
                db,
                models.Material(code=code, quantity=quantity, rack=rack, bin=bin),
            )
        else:
            if not _same_location(material, rack, bin):
                logger.warning(
                    "Entry location differs from stored location; keeping stored location",
                    extra={
                        "material_code": code,
                        "stored_location": material.location,
                        "supplied_location": f"{rack}-{bin}",
                    },
                )
            if material.quantity + quantity > models.MAX_QUANTITY:
                raise ValidationError(
                    f"Entry would raise {code} above the maximum balance of {models.MAX_QUANTITY}.",
                    field="quantity",
                )
            repository.update(db, material, quantity=material.quantity + quantity)
        repository.append_log(
            db,
            models.Log(
                material_id=material.id,
                material_code=material.code,
                action=models.LogActionEnum.ENTRY,
                quantity=quantity,
                rack=material.rack,
                bin=material.bin,
                entered_by=entered_by,
                balance_qty=material.quantity,
            ),
        )
        return material

    material = _run_atomic(db, _apply, code=code)
    db.refresh(material)
    logger.info(
        "Material entry recorded",
        extra={"material_code": code, "quantity": quantity, "balance_qty": material.quantity},
    )
    return material


def record_issue(
    db: Session,
    *,
    material_code: str,
    quantity: int,
    rack: str,
    bin: str,
    issued_by: str,
) -> models.Material:
    code = repository.normalize_code(_require_text(material_code, "materialCode"))
    quantity = _require_quantity(quantity)
    rack = _require_text(rack, "rack")
    bin = _require_text(bin, "bin")
    issued_by = _require_text(issued_by, "issuedBy")

    def _apply() -> models.Material:
        material = repository.find_by_code(db, code, for_update=True)
        if material is None:
            raise NotFoundError(f"Material {code} not found.", field="materialCode")
        if not _same_location(material, rack, bin):
            raise ValidationError(
                f"Location mismatch: {code} is stored at {material.location}, not {rack}-{bin}.",
                field="rack" if material.rack.strip().casefold() != rack.casefold() else "bin",
            )
        if quantity > material.quantity:
            raise ValidationError(
                f"Insufficient stock: requested {quantity}, available {material.quantity}.",
                field="quantity",
            )
        repository.update(db, material, quantity=material.quantity - quantity)
        repository.append_log(
            db,
            models.Log(
                material_id=material.id,
                material_code=material.code,
                action=models.LogActionEnum.ISSUE,
                quantity=quantity,
                rack=material.rack,
                bin=material.bin,
                issued_by=issued_by,
                balance_qty=material.quantity,
            ),
        )
        return material

    try:
        material = _run_atomic(db, _apply, code=code)
    except InventoryError as exc:
        logger.warning(
            "Material issue rejected",
            extra={"material_code": code, "quantity": quantity, "reason": exc.message},
        )
        raise
    db.refresh(material)
    logger.info(
        "Material issue recorded",
        extra={"material_code": code, "quantity": quantity, "balance_qty": material.quantity},
    )
    return material


# ---------------------------------------------------------------------------
# Read queries
# ---------------------------------------------------------------------------


def list_materials(
    db: Session,
    *,
    search: Optional[str] = None,
    rack: Optional[str] = None,
    bin: Optional[str] = None,
) -> List[models.Material]:
    return repository.search(db, search, rack=rack, bin=bin)


def get_material(db: Session, *, code: str) -> models.Material:
    material = repository.find_by_code(db, code)
    if material is None:
        raise NotFoundError(f"Material {repository.normalize_code(code)} not found.", field="code")
    return material


def list_logs(db: Session, *, limit: int = 50) -> List[models.Log]:
    return repository.list_logs(db, limit=limit)


def get_stats(db: Session, *, now: Optional[datetime] = None) -> schemas.StatsRead:
    stats = repository.compute_stats(db, now=now)
    return schemas.StatsRead(
        total_materials=stats["total_materials"],
        entered_today=stats["entered_today"],
        issued_today=stats["issued_today"],
        recent_logs=[schemas.LogRead.model_validate(log) for log in stats["recent_logs"]],
    )


def low_stock(db: Session, *, threshold: Optional[int] = None) -> List[models.Material]:
    limit = LOW_STOCK_THRESHOLD if threshold is None else threshold
    return sorted(
        (material for material in repository.list_all(db) if material.quantity <= limit),
        key=lambda material: (material.quantity, material.code),
    )


def location_summaries(db: Session) -> List[schemas.LocationSummary]:
    groups: "OrderedDict[str, dict]" = OrderedDict()
    for material in repository.list_all(db):
        group = groups.setdefault(
            material.location,
            {"rack": material.rack, "bin": material.bin, "total": 0, "codes": []},
        )
        group["total"] += material.quantity
        if material.code not in group["codes"]:
            group["codes"].append(material.code)

    return [
        schemas.LocationSummary(
            rack=group["rack"],
            bin=group["bin"],
            location=key,
            total_quantity=group["total"],
            material_count=len(group["codes"]),
            materials=group["codes"],
        )
        for key, group in sorted(groups.items())
    ]


def _months_before(now: datetime, months: int) -> datetime:
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def _report_cutoff(range_key: str, now: datetime) -> Optional[datetime]:
    if range_key == "all":
        return None
    if range_key in REPORT_DAY_RANGES:
        return now - timedelta(days=REPORT_DAY_RANGES[range_key])
    if range_key in REPORT_MONTH_RANGES:
        return _months_before(now, REPORT_MONTH_RANGES[range_key])
    if range_key.startswith("year_"):
        try:
            year = int(range_key.split("_", 1)[1])
        except ValueError:
            year = None
        if year and 1 <= year <= 9999:
            return datetime(year, 1, 1)
    raise ValidationError(f"Unknown report range {range_key!r}.", field="range")


def materials_report(
    db: Session,
    *,
    range_key: str = "all",
    now: Optional[datetime] = None,
) -> List[models.Material]:
    """
    Materials touched within a reporting window, as offered by the dashboard
    export menu (`30days`, `3months`, `5months`, `8months`, `year_<YYYY>`,
    `all`).
    """
    now = now or models._utcnow()
    cutoff = _report_cutoff((range_key or "all").strip().lower(), now)
    materials = repository.list_all(db)
    if cutoff is None:
        return materials
    return [m for m in materials if m.last_updated is not None and m.last_updated > cutoff]


def bin_card(db: Session, *, code: str) -> List[schemas.BinTransactionRead]:
    """
    Per-location running ledger for one material, projected from its logs.
    """
    logs = repository.logs_for_material(db, code)
    if not logs and repository.find_by_code(db, code) is None:
        raise NotFoundError(f"Material {repository.normalize_code(code)} not found.", field="code")
    return [
        schemas.BinTransactionRead(
            material_code=log.material_code,
            bin_location=f"{log.rack}-{log.bin}",
            received_qty=log.quantity if log.action == models.LogActionEnum.ENTRY else 0,
            issued_qty=log.quantity if log.action == models.LogActionEnum.ISSUE else 0,
            balance_qty=log.balance_qty,
            person_name=log.actor,
            created_at=log.timestamp,
        )
        for log in logs
    ]


# ---------------------------------------------------------------------------
# Administrative operations
# ---------------------------------------------------------------------------


def delete_material(db: Session, *, code: str) -> int:
    try:
        deleted = repository.delete(db, code)
        db.commit()
        db.expire_all()
    except Exception:
        db.rollback()
        raise
    logger.warning(
        "Material deleted",
        extra={"material_code": repository.normalize_code(code), "deleted": deleted},
    )
    return deleted


def reset_inventory(db: Session) -> int:
    try:
        affected = repository.reset_all_quantities(db)
        db.commit()
        # Bulk UPDATE bypasses the identity map.
        db.expire_all()
    except Exception:
        db.rollback()
        raise
    logger.warning("Inventory quantities reset to zero", extra={"materials": affected})
    return affected


def clear_logs(db: Session) -> int:
    try:
        removed = repository.clear_logs(db)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.warning("Inventory logs cleared", extra={"logs": removed})
    return removed
