from fastapi import APIRouter

from app.modules.logistics.routers.expenditures import router as expenditures_router
from app.modules.logistics.routers.purchases import router as purchases_router
from app.modules.logistics.routers.stock import router as stock_router
from app.modules.logistics.routers.transfers import router as transfers_router

router = APIRouter()

router.include_router(purchases_router)
router.include_router(expenditures_router)
router.include_router(transfers_router)
router.include_router(stock_router)


@router.get("/logistics/health", tags=["Logistics"])
def logistics_health():
    return {"status": "Logistics module OK"}
