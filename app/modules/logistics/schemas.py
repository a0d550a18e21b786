from pydantic import Field
from typing import Literal, Optional
from datetime import datetime

from app.core.schemas import CamelModel


# =========================
# STOCK
# =========================

class StockLevelResponse(CamelModel):
    base_code: str
    equipment_code: str
    quantity: int


# =========================
# PURCHASES / EXPENDITURES
# =========================

class StockEventBase(CamelModel):
    # Defaults to the caller's own base when omitted
    base_code: Optional[str] = None
    equipment_code: str

    quantity: int = Field(..., gt=0)

    notes: Optional[str] = None


class PurchaseCreate(StockEventBase):
    purchased_at: Optional[datetime] = None


class PurchaseResponse(StockEventBase):
    id: str = Field(..., alias="_id")
    base_code: str
    purchased_at: datetime
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: datetime


class ExpenditureCreate(StockEventBase):
    kind: Literal["assignment", "consumption"] = Field(
        ..., description="assignment or consumption"
    )


class ExpenditureResponse(ExpenditureCreate):
    id: str = Field(..., alias="_id")
    base_code: str
    created_by: Optional[str] = None
    created_by_name: Optional[str] = None
    created_at: datetime


# =========================
# TRANSFERS
# =========================

class TransferRequestCreate(CamelModel):
    # Destination base; defaults to the caller's own base when omitted
    request_base: Optional[str] = None
    equipment_code: str
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None


class TransferClaim(CamelModel):
    supplier_base: Optional[str] = None


class TransferResponse(CamelModel):
    id: str = Field(..., alias="_id")
    request_base: str
    supplier_base: Optional[str] = None
    equipment_code: str
    quantity: int
    notes: Optional[str] = None
    status: Literal["pending", "open", "claimed", "sent", "received"]

    requested_by: Optional[str] = None
    created_by_name: Optional[str] = None
    requested_at: datetime

    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    claimed_by: Optional[str] = None
    sent_at: Optional[datetime] = None
    sent_by: Optional[str] = None
    received_at: Optional[datetime] = None
    received_by: Optional[str] = None
