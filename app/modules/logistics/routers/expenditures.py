from fastapi import APIRouter, Depends
from typing import Optional

from app.core.schemas import ItemEnvelope, ListEnvelope, item, items
from app.core.security.dependencies import get_current_user
from app.modules.logistics.routers.purchases import get_logistics_service
from app.modules.logistics.schemas import ExpenditureCreate, ExpenditureResponse
from app.modules.logistics.service import LogisticsService
from app.modules.logistics.utils import list_params

router = APIRouter(
    prefix="/expenditures",
    tags=["Expenditures"]
)


@router.post("", response_model=ItemEnvelope[ExpenditureResponse], status_code=201)
def create_expenditure(
    payload: ExpenditureCreate,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    """
    Record an assignment or consumption: debits the base's stock.
    """
    return item(service.record_expenditure(payload.model_dump(), user))


@router.get("", response_model=ListEnvelope[ExpenditureResponse])
def list_expenditures(
    kind: Optional[str] = None,
    params: dict = Depends(list_params),
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    records, total, page, page_size = service.list_expenditures(user, params, kind)
    return items(records, total, page, page_size)


@router.get("/{expenditure_id}", response_model=ItemEnvelope[ExpenditureResponse])
def get_expenditure(
    expenditure_id: str,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    return item(service.get_expenditure(expenditure_id, user))


@router.delete("/{expenditure_id}", response_model=ItemEnvelope[ExpenditureResponse])
def delete_expenditure(
    expenditure_id: str,
    user = Depends(get_current_user),
    service: LogisticsService = Depends(get_logistics_service)
):
    return item(service.delete_expenditure(expenditure_id, user))
