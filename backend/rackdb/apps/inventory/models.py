from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    event,
)

from rackdb.database import Base


# Quantities live in INTEGER columns (int4 on PostgreSQL).
MAX_QUANTITY = 2**31 - 1


def _utcnow() -> datetime:
    # Naive UTC so SQLite and PostgreSQL compare timestamps the same way.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LogActionEnum(str, enum.Enum):
    ENTRY = "entry"
    ISSUE = "issue"


class Material(Base):
    __tablename__ = "materials"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_materials_quantity_non_negative"),
        Index("ix_materials_rack_bin", "rack", "bin"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    rack = Column(String(32), nullable=False)
    bin = Column(String(32), nullable=False)
    last_updated = Column(DateTime, nullable=False, default=_utcnow)
    version = Column(Integer, nullable=False, default=1)

    # Every UPDATE checks and bumps `version`; a concurrent writer that read
    # the same row loses with StaleDataError.
    __mapper_args__ = {"version_id_col": version}

    @property
    def location(self) -> str:
        return f"{self.rack}-{self.bin}"


class Log(Base):
    __tablename__ = "inventory_logs"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inventory_logs_quantity_positive"),
        CheckConstraint("balance_qty >= 0", name="ck_inventory_logs_balance_non_negative"),
        Index("ix_inventory_logs_code_ts", "material_code", "timestamp"),
        Index("ix_inventory_logs_action_ts", "action", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Deleting a material orphans its logs; the audit trail is kept.
    material_id = Column(
        Integer,
        ForeignKey("materials.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    material_code = Column(String(64), nullable=False, index=True)
    action = Column(
        SAEnum(
            LogActionEnum,
            name="inventory_log_action_enum",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    rack = Column(String(32), nullable=False)
    bin = Column(String(32), nullable=False)
    entered_by = Column(String(128), nullable=True)
    issued_by = Column(String(128), nullable=True)
    balance_qty = Column(Integer, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=_utcnow, index=True)

    @property
    def actor(self) -> str | None:
        if self.action == LogActionEnum.ENTRY:
            return self.entered_by
        return self.issued_by


class ImmutableLogError(RuntimeError):
    """Raised when code tries to rewrite a persisted ledger row."""


@event.listens_for(Log, "before_update")
def _block_log_updates(mapper, connection, target: Log) -> None:
    raise ImmutableLogError(f"Log {target.id} is append-only and cannot be modified.")
