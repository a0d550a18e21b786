from fastapi import APIRouter, Depends, Query
from typing import Optional

from app.core.schemas import ItemEnvelope, ListEnvelope, item, items
from app.core.security.dependencies import get_current_user
from app.modules.catalog.schemas import (
    BaseCreate,
    BaseUpdate,
    BaseResponse,
    EquipmentCreate,
    EquipmentUpdate,
    EquipmentResponse
)
from app.modules.catalog.service import CatalogService
from app.store.base import get_store

router = APIRouter(
    tags=["Catalog"]
)


def get_catalog_service(store = Depends(get_store)) -> CatalogService:
    return CatalogService(store)


# =========================
# BASES
# =========================

@router.get("/bases", response_model=ListEnvelope[BaseResponse])
def list_bases(
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return items(service.list_bases())


@router.get("/bases/{code}", response_model=ItemEnvelope[BaseResponse])
def get_base(
    code: str,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.get_base(code))


@router.post("/bases", response_model=ItemEnvelope[BaseResponse], status_code=201)
def create_base(
    payload: BaseCreate,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.create_base(payload.model_dump(), user))


@router.put("/bases/{code}", response_model=ItemEnvelope[BaseResponse])
def update_base(
    code: str,
    payload: BaseUpdate,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.update_base(code, payload.model_dump(), user))


@router.delete("/bases/{code}", response_model=ItemEnvelope[BaseResponse])
def delete_base(
    code: str,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.delete_base(code, user))


# =========================
# EQUIPMENT TYPES
# =========================

@router.get("/equipment", response_model=ListEnvelope[EquipmentResponse])
def list_equipment(
    q: Optional[str] = None,
    category: Optional[str] = None,
    unit: Optional[str] = None,
    active: Optional[bool] = Query(None),
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    filters = {"q": q, "category": category, "unit": unit, "active": active}
    return items(service.list_equipment(filters))


@router.get("/equipment/{code}", response_model=ItemEnvelope[EquipmentResponse])
def get_equipment(
    code: str,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.get_equipment(code))


@router.post("/equipment", response_model=ItemEnvelope[EquipmentResponse], status_code=201)
def create_equipment(
    payload: EquipmentCreate,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.create_equipment(payload.model_dump(), user))


@router.put("/equipment/{code}", response_model=ItemEnvelope[EquipmentResponse])
def update_equipment(
    code: str,
    payload: EquipmentUpdate,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.update_equipment(code, payload.model_dump(), user))


@router.delete("/equipment/{code}", response_model=ItemEnvelope[EquipmentResponse])
def delete_equipment(
    code: str,
    user = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service)
):
    return item(service.delete_equipment(code, user))
