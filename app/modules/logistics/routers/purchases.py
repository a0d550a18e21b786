from fastapi import APIRouter, Depends

from app.core.schemas import ItemEnvelope, ListEnvelope, item, items
from app.core.security.dependencies import get_current_user
from app.modules.logistics.schemas import PurchaseCreate, PurchaseResponse
from app.modules.logistics.service import LogisticsService
from app.modules.logistics.utils import list_params
from app.store.base import get_store

router = APIRouter(
    prefix="/purchases",
    tags=["Purchases"]
)


def get_logistics_service(store = Depends(get_store)) -> LogisticsService:
    return LogisticsService(store)


@router.post("", response_model=ItemEnvelope[PurchaseResponse], status_code=201)
def create_purchase(
    payload: PurchaseCreate,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    """
    Record a purchase: credits the base's stock.
    """
    return item(service.record_purchase(payload.model_dump(), user))


@router.get("", response_model=ListEnvelope[PurchaseResponse])
def list_purchases(
    params: dict = Depends(list_params),
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    records, total, page, page_size = service.list_purchases(user, params)
    return items(records, total, page, page_size)


@router.get("/{purchase_id}", response_model=ItemEnvelope[PurchaseResponse])
def get_purchase(
    purchase_id: str,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    return item(service.get_purchase(purchase_id, user))


@router.delete("/{purchase_id}", response_model=ItemEnvelope[PurchaseResponse])
def delete_purchase(
    purchase_id: str,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    """
    Reverse a purchase. Blocked with INSUFFICIENT_STOCK once the units are gone.
    """
    return item(service.delete_purchase(purchase_id, user))
