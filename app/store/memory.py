# app/store/memory.py

import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Hashable, List, Optional, Tuple

from app.core.errors import Conflict
from app.store.base import Store
from app.store.ledger import KeyedLocks, StockLedger


def _matches(record: Dict, filters: Dict, date_field: str) -> bool:
    for field in ("base_code", "equipment_code", "kind", "status", "request_base", "supplier_base"):
        wanted = filters.get(field)
        if wanted is not None and record.get(field) != wanted:
            return False

    excluded = filters.get("exclude_request_base")
    if excluded is not None and record.get("request_base") == excluded:
        return False

    involving = filters.get("involving_base")
    if involving is not None and involving not in (record.get("request_base"), record.get("supplier_base")):
        return False

    moment = record.get(date_field)
    if filters.get("date_from") is not None and moment < filters["date_from"]:
        return False
    if filters.get("date_to") is not None and moment > filters["date_to"]:
        return False

    return True


def _page(records: List[Dict], offset: int, limit: Optional[int]) -> Tuple[List[Dict], int]:
    total = len(records)
    window = records[offset:] if limit is None else records[offset:offset + limit]
    return [dict(r) for r in window], total


class MemoryStore(Store):
    """
    Process-local store.

    Collections are plain dicts; single dict operations are atomic, and
    read-modify-write sequences are serialized by transaction() keys, so
    there is no store-wide lock. The audit trail keeps the newest
    audit_limit entries.
    Stock lives in the StockLedger, which has its own per-key locks.
    """

    def __init__(self, audit_limit: int = 10000):
        self.ledger = StockLedger()
        self._locks = KeyedLocks()

        self._bases: Dict[str, Dict] = {}
        self._equipment: Dict[str, Dict] = {}
        self._purchases: Dict[str, Dict] = {}
        self._expenditures: Dict[str, Dict] = {}
        self._transfers: Dict[str, Dict] = {}
        self._audit: Deque[Dict] = deque(maxlen=audit_limit)
        self._audit_lock = threading.Lock()

    @contextmanager
    def transaction(self, *keys: Hashable):
        with self._locks.hold(*keys):
            yield self

    # =========================
    # BASES
    # =========================

    def get_base(self, code: str) -> Optional[Dict]:
        record = self._bases.get(code)
        return dict(record) if record else None

    def list_bases(self) -> List[Dict]:
        return [dict(r) for r in sorted(list(self._bases.values()), key=lambda r: r["base_code"])]

    def insert_base(self, record: Dict) -> Dict:
        stored = dict(record)
        if self._bases.setdefault(record["base_code"], stored) is not stored:
            raise Conflict(f"Base {record['base_code']} already exists")
        return dict(record)

    def update_base(self, code: str, fields: Dict) -> Dict:
        updated = self._bases[code] = {**self._bases[code], **fields}
        return dict(updated)

    def delete_base(self, code: str) -> None:
        self._bases.pop(code, None)

    def base_in_use(self, code: str) -> bool:
        if any(level["quantity"] > 0 for level in self.ledger.levels(base_code=code)):
            return True
        if any(r["base_code"] == code for r in list(self._purchases.values())):
            return True
        if any(r["base_code"] == code for r in list(self._expenditures.values())):
            return True
        return any(
            code in (r["request_base"], r["supplier_base"])
            for r in list(self._transfers.values())
        )

    # =========================
    # EQUIPMENT
    # =========================

    def get_equipment(self, code: str) -> Optional[Dict]:
        record = self._equipment.get(code)
        return dict(record) if record else None

    def list_equipment(self, filters: Dict) -> List[Dict]:
        term = (filters.get("q") or "").lower()
        items = []
        for record in sorted(list(self._equipment.values()), key=lambda r: r["code"]):
            if term and term not in record["code"].lower() and term not in record["name"].lower():
                continue
            if filters.get("category") is not None and record["category"] != filters["category"]:
                continue
            if filters.get("unit") is not None and record["unit"] != filters["unit"]:
                continue
            if filters.get("active") is not None and record["active"] != filters["active"]:
                continue
            items.append(dict(record))
        return items

    def insert_equipment(self, record: Dict) -> Dict:
        stored = dict(record)
        if self._equipment.setdefault(record["code"], stored) is not stored:
            raise Conflict(f"Equipment {record['code']} already exists")
        return dict(record)

    def update_equipment(self, code: str, fields: Dict) -> Dict:
        updated = self._equipment[code] = {**self._equipment[code], **fields}
        return dict(updated)

    def delete_equipment(self, code: str) -> None:
        self._equipment.pop(code, None)

    def equipment_in_use(self, code: str) -> bool:
        if any(level["quantity"] > 0 for level in self.ledger.levels(equipment_code=code)):
            return True
        return any(
            r["equipment_code"] == code
            for collection in (self._purchases, self._expenditures, self._transfers)
            for r in list(collection.values())
        )

    # =========================
    # STOCK
    # =========================

    def adjust_stock(self, base_code: str, equipment_code: str, delta: int) -> int:
        return self.ledger.adjust(base_code, equipment_code, delta)

    def stock_quantity(self, base_code: str, equipment_code: str) -> int:
        return self.ledger.quantity(base_code, equipment_code)

    def stock_levels(self, base_code: str | None = None, equipment_code: str | None = None) -> List[Dict]:
        return self.ledger.levels(base_code, equipment_code)

    # =========================
    # PURCHASES
    # =========================

    def insert_purchase(self, record: Dict) -> Dict:
        self._purchases[record["id"]] = dict(record)
        return dict(record)

    def get_purchase(self, purchase_id: str) -> Optional[Dict]:
        record = self._purchases.get(purchase_id)
        return dict(record) if record else None

    def list_purchases(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        records = [r for r in list(self._purchases.values()) if _matches(r, filters, "purchased_at")]
        records.sort(key=lambda r: r["purchased_at"], reverse=True)
        return _page(records, offset, limit)

    def delete_purchase(self, purchase_id: str) -> None:
        self._purchases.pop(purchase_id, None)

    # =========================
    # EXPENDITURES
    # =========================

    def insert_expenditure(self, record: Dict) -> Dict:
        self._expenditures[record["id"]] = dict(record)
        return dict(record)

    def get_expenditure(self, expenditure_id: str) -> Optional[Dict]:
        record = self._expenditures.get(expenditure_id)
        return dict(record) if record else None

    def list_expenditures(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        records = [r for r in list(self._expenditures.values()) if _matches(r, filters, "created_at")]
        records.sort(key=lambda r: r["created_at"], reverse=True)
        return _page(records, offset, limit)

    def delete_expenditure(self, expenditure_id: str) -> None:
        self._expenditures.pop(expenditure_id, None)

    # =========================
    # TRANSFERS
    # =========================

    def insert_transfer(self, record: Dict) -> Dict:
        self._transfers[record["id"]] = dict(record)
        return dict(record)

    def get_transfer(self, transfer_id: str) -> Optional[Dict]:
        record = self._transfers.get(transfer_id)
        return dict(record) if record else None

    def list_transfers(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        records = [r for r in list(self._transfers.values()) if _matches(r, filters, "requested_at")]
        records.sort(key=lambda r: r["requested_at"], reverse=True)
        return _page(records, offset, limit)

    def update_transfer(self, transfer_id: str, expected_status: str, fields: Dict) -> Optional[Dict]:
        # Callers hold the transfer key, which serializes this check-and-set
        record = self._transfers.get(transfer_id)
        if record is None or record["status"] != expected_status:
            return None
        updated = self._transfers[transfer_id] = {**record, **fields}
        return dict(updated)

    def delete_transfer(self, transfer_id: str) -> None:
        self._transfers.pop(transfer_id, None)

    # =========================
    # AUDIT
    # =========================

    def insert_audit(self, record: Dict) -> None:
        with self._audit_lock:
            self._audit.append(dict(record))

    def list_audit(self, offset: int = 0, limit: Optional[int] = None):
        with self._audit_lock:
            records = list(reversed(self._audit))
        return _page(records, offset, limit)
