from pydantic import Field
from typing import Optional
from datetime import datetime

from app.core.schemas import CamelModel


# =========================
# BASES
# =========================

class Location(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BaseCreate(CamelModel):
    base_code: str = Field(..., description="A-Z, 0-9 and underscore, up to 20 chars")
    location: Optional[Location] = None


class BaseUpdate(CamelModel):
    location: Optional[Location] = None


class BaseResponse(CamelModel):
    base_code: str
    location: Optional[Location] = None
    created_at: datetime


# =========================
# EQUIPMENT TYPES
# =========================

class EquipmentCreate(CamelModel):
    code: str = Field(..., description="A-Z, 0-9 and underscore, up to 30 chars")
    name: str
    category: str = ""
    unit: str = "unit"
    active: bool = True


class EquipmentUpdate(CamelModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    active: Optional[bool] = None


class EquipmentResponse(CamelModel):
    code: str
    name: str
    category: str
    unit: str
    active: bool
    created_at: datetime
    updated_at: datetime
