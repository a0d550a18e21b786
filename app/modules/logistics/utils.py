# app/modules/logistics/utils.py
from datetime import date, datetime, time, timezone
from typing import Dict, Optional

from fastapi import Query

from app.core.config import settings
from app.core.errors import ValidationError


def validate_quantity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Quantity must be a whole number")
    if value <= 0:
        raise ValidationError("Quantity must be greater than zero")
    return value


def as_utc(moment: datetime | None) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def build_movement_description(movement_type: str, quantity: int, equipment_code: str, from_base=None, to_base=None) -> str:
    q = quantity

    if movement_type == "IN":
        return f"Purchase of {q} {equipment_code} into {to_base}"

    if movement_type == "OUT":
        return f"Expenditure of {q} {equipment_code} from {from_base}"

    if movement_type == "TRANSFER":
        return f"Transfer of {q} {equipment_code} from {from_base} to {to_base}"

    if movement_type == "RETURN":
        return f"Reversal of {q} {equipment_code} back to {to_base}"

    return "Unknown movement"


# =========================
# LIST QUERIES
# =========================

def list_params(
    base: Optional[str] = None,
    equipment_code: Optional[str] = Query(None, alias="equipmentCode"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, alias="pageSize", ge=1),
) -> Dict:
    """Server-side filters and paging shared by every event listing."""
    return {
        "base": base,
        "equipment_code": equipment_code,
        "date_from": date_from,
        "date_to": date_to,
        "page": page,
        "page_size": page_size,
    }


def paging(params: Dict) -> tuple[int, int, int]:
    """Return (page, page_size, offset) with the configured bounds applied."""
    page = max(params.get("page") or 1, 1)
    page_size = params.get("page_size") or settings.DEFAULT_PAGE_SIZE
    page_size = min(page_size, settings.MAX_PAGE_SIZE)
    return page, page_size, (page - 1) * page_size


def date_range(params: Dict) -> Dict:
    """Inclusive calendar-day bounds as UTC datetimes."""
    bounds = {}
    if params.get("date_from") is not None:
        bounds["date_from"] = datetime.combine(params["date_from"], time.min, tzinfo=timezone.utc)
    if params.get("date_to") is not None:
        bounds["date_to"] = datetime.combine(params["date_to"], time.max, tzinfo=timezone.utc)
    if "date_from" in bounds and "date_to" in bounds and bounds["date_from"] > bounds["date_to"]:
        raise ValidationError("'from' must not be after 'to'")
    return bounds
