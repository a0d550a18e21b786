from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """JSON fields are camelCase; Python attributes stay snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# =========================
# ENVELOPES
# =========================

class ItemEnvelope(CamelModel, Generic[T]):
    ok: bool = True
    item: T


class ListEnvelope(CamelModel, Generic[T]):
    ok: bool = True
    items: List[T]
    total: int
    page: Optional[int] = None
    page_size: Optional[int] = None


class ErrorEnvelope(CamelModel):
    ok: bool = False
    error: str
    code: str


def item(record) -> dict:
    return {"ok": True, "item": record}


def items(records, total: int | None = None, page: int | None = None, page_size: int | None = None) -> dict:
    return {
        "ok": True,
        "items": records,
        "total": len(records) if total is None else total,
        "page": page,
        "page_size": page_size,
    }
