from fastapi import APIRouter, Depends
from typing import Optional

from app.core.security.dependencies import get_current_user
from app.modules.dashboard.schemas import AdminDashboardResponse, BaseDashboardResponse
from app.modules.dashboard.service import DashboardService
from app.store.base import get_store

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"]
)


def get_dashboard_service(store = Depends(get_store)) -> DashboardService:
    return DashboardService(store)


@router.get("/admin", response_model=AdminDashboardResponse)
def admin_dashboard(
    user = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    return service.admin_dashboard(user)


@router.get("/base", response_model=BaseDashboardResponse)
def base_dashboard(
    base: Optional[str] = None,
    user = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    return service.base_dashboard(user, base)
