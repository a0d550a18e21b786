from pydantic import Field
from typing import List

from app.core.schemas import CamelModel


class Totals(CamelModel):
    total_count: int = 0
    total_qty: int = 0


class ExpenditureTotals(Totals):
    assignment_qty: int = 0
    consumption_qty: int = 0


class TransfersByStatus(CamelModel):
    pending: int = 0
    open: int = 0
    claimed: int = 0
    sent: int = 0
    received: int = 0


# =========================
# ADMIN VIEW
# =========================

class GlobalStats(CamelModel):
    base_count: int
    equipment_active_count: int
    on_hand_total_qty: int
    transfers_by_status: TransfersByStatus


class BaseOnHand(CamelModel):
    base_code: str
    on_hand_total_qty: int


class AdminDashboardResponse(CamelModel):
    ok: bool = True
    global_stats: GlobalStats = Field(..., alias="global")
    bases: List[BaseOnHand]


# =========================
# BASE VIEW
# =========================

class EquipmentOnHand(CamelModel):
    equipment_code: str
    on_hand: int


class BaseKpis(CamelModel):
    on_hand_total_qty: int
    purchases: Totals
    expenditures: ExpenditureTotals
    transfers_in: Totals
    transfers_out: Totals
    requests: TransfersByStatus


class BaseDashboardResponse(CamelModel):
    ok: bool = True
    base: str
    kpis: BaseKpis
    on_hand_by_equipment: List[EquipmentOnHand]
