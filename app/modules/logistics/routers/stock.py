from fastapi import APIRouter, Depends, Query
from typing import Optional

from app.core.schemas import ListEnvelope, items
from app.core.security.dependencies import get_current_user
from app.modules.logistics.routers.purchases import get_logistics_service
from app.modules.logistics.schemas import StockLevelResponse
from app.modules.logistics.service import LogisticsService

router = APIRouter(
    prefix="/stock",
    tags=["Stock"]
)


@router.get("", response_model=ListEnvelope[StockLevelResponse])
def list_stock(
    base: Optional[str] = None,
    equipment_code: Optional[str] = Query(None, alias="equipmentCode"),
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    return items(service.list_stock(user, base, equipment_code))
