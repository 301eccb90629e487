from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import models


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


class _ActionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    material_code: str = Field(..., alias="materialCode", min_length=1, max_length=64)
    quantity: int = Field(..., gt=0, le=models.MAX_QUANTITY, strict=True)
    rack: str = Field(..., min_length=1, max_length=32)
    bin: str = Field(..., min_length=1, max_length=32)

    @field_validator("material_code", "rack", "bin", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return _strip(value)


class EntryRequest(_ActionRequest):
    entered_by: str = Field(..., alias="enteredBy", min_length=1, max_length=128)

    @field_validator("entered_by", mode="before")
    @classmethod
    def _strip_actor(cls, value):
        return _strip(value)


class IssueRequest(_ActionRequest):
    issued_by: str = Field(..., alias="issuedBy", min_length=1, max_length=128)

    @field_validator("issued_by", mode="before")
    @classmethod
    def _strip_actor(cls, value):
        return _strip(value)


class MaterialRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    quantity: int
    rack: str
    bin: str
    last_updated: Optional[datetime] = Field(default=None, serialization_alias="lastUpdated")


class LogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    material_code: str = Field(serialization_alias="materialCode")
    action: models.LogActionEnum
    quantity: int
    rack: str
    bin: str
    entered_by: Optional[str] = Field(default=None, serialization_alias="enteredBy")
    issued_by: Optional[str] = Field(default=None, serialization_alias="issuedBy")
    balance_qty: int = Field(serialization_alias="balanceQty")
    timestamp: Optional[datetime] = None


class StatsRead(BaseModel):
    total_materials: int = Field(serialization_alias="totalMaterials")
    entered_today: int = Field(serialization_alias="enteredToday")
    issued_today: int = Field(serialization_alias="issuedToday")
    recent_logs: List[LogRead] = Field(default_factory=list, serialization_alias="recentLogs")


class BinTransactionRead(BaseModel):
    material_code: str = Field(serialization_alias="materialCode")
    bin_location: str = Field(serialization_alias="binLocation")
    received_qty: int = Field(serialization_alias="receivedQty")
    issued_qty: int = Field(serialization_alias="issuedQty")
    balance_qty: int = Field(serialization_alias="balanceQty")
    person_name: Optional[str] = Field(default=None, serialization_alias="personName")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")


class LocationSummary(BaseModel):
    rack: str
    bin: str
    location: str
    total_quantity: int = Field(serialization_alias="totalQuantity")
    material_count: int = Field(serialization_alias="materialCount")
    materials: List[str] = Field(default_factory=list)


class AdminActionResult(BaseModel):
    message: str
    affected: int = 0
