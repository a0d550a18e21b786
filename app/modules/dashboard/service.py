# app/modules/dashboard/service.py

from typing import Dict

import pandas as pd

from app.core.errors import NotFound, ValidationError
from app.core.security.permissions import Action, require
from app.modules.logistics.transfers import STATUS_ORDER, TransferStatus

STOCK_COLUMNS = ["base_code", "equipment_code", "quantity"]
EVENT_COLUMNS = ["base_code", "equipment_code", "quantity", "kind"]
TRANSFER_COLUMNS = ["request_base", "supplier_base", "equipment_code", "quantity", "status"]


def _frame(records, columns) -> pd.DataFrame:
    return pd.DataFrame(records, columns=columns)


def _totals(df: pd.DataFrame) -> Dict:
    return {
        "total_count": int(len(df)),
        "total_qty": int(df["quantity"].sum()) if len(df) else 0,
    }


def _by_status(df: pd.DataFrame) -> Dict:
    counts = df["status"].value_counts()
    return {status: int(counts.get(status, 0)) for status in STATUS_ORDER}


class DashboardService:
    """
    Read-only rollups, computed from the stores on every request.
    """

    def __init__(self, store):
        self.store = store

    def admin_dashboard(self, actor: Dict) -> Dict:
        require(actor, Action.VIEW_ADMIN_DASHBOARD)

        with self.store.transaction() as tx:
            bases = tx.list_bases()
            active_equipment = tx.list_equipment({"active": True})
            stock = _frame(tx.stock_levels(), STOCK_COLUMNS)
            transfers = _frame(tx.list_transfers({}, 0, None)[0], TRANSFER_COLUMNS)

        on_hand_by_base = stock.groupby("base_code")["quantity"].sum()

        return {
            "ok": True,
            "global_stats": {
                "base_count": len(bases),
                "equipment_active_count": len(active_equipment),
                "on_hand_total_qty": int(stock["quantity"].sum()) if len(stock) else 0,
                "transfers_by_status": _by_status(transfers),
            },
            "bases": [
                {
                    "base_code": base["base_code"],
                    "on_hand_total_qty": int(on_hand_by_base.get(base["base_code"], 0)),
                }
                for base in bases
            ],
        }

    def base_dashboard(self, actor: Dict, base_code: str | None = None) -> Dict:
        base_code = base_code or actor.get("base_code")
        if not base_code:
            raise ValidationError("Base code is required")
        require(actor, Action.VIEW_BASE, base_code)

        with self.store.transaction() as tx:
            if not tx.get_base(base_code):
                raise NotFound(f"Base {base_code} not found")
            stock = _frame(tx.stock_levels(base_code), STOCK_COLUMNS)
            purchases = _frame(tx.list_purchases({"base_code": base_code}, 0, None)[0], EVENT_COLUMNS)
            expenditures = _frame(tx.list_expenditures({"base_code": base_code}, 0, None)[0], EVENT_COLUMNS)
            transfers = _frame(tx.list_transfers({"involving_base": base_code}, 0, None)[0], TRANSFER_COLUMNS)

        by_kind = expenditures.groupby("kind")["quantity"].sum()
        incoming = transfers[
            (transfers["request_base"] == base_code)
            & (transfers["status"] == TransferStatus.RECEIVED.value)
        ]
        outgoing = transfers[
            (transfers["supplier_base"] == base_code)
            & (transfers["status"].isin([TransferStatus.SENT.value, TransferStatus.RECEIVED.value]))
        ]
        requests = transfers[transfers["request_base"] == base_code]

        on_hand = stock.groupby("equipment_code")["quantity"].sum().sort_index()

        return {
            "ok": True,
            "base": base_code,
            "kpis": {
                "on_hand_total_qty": int(stock["quantity"].sum()) if len(stock) else 0,
                "purchases": _totals(purchases),
                "expenditures": {
                    **_totals(expenditures),
                    "assignment_qty": int(by_kind.get("assignment", 0)),
                    "consumption_qty": int(by_kind.get("consumption", 0)),
                },
                "transfers_in": _totals(incoming),
                "transfers_out": _totals(outgoing),
                "requests": _by_status(requests),
            },
            "on_hand_by_equipment": [
                {"equipment_code": code, "on_hand": int(qty)}
                for code, qty in on_hand.items()
            ],
        }
