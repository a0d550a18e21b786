# app/store/postgres.py

import json
import logging
from contextlib import contextmanager
from typing import Dict, Hashable, List, Optional, Tuple

import psycopg2
from psycopg2 import errorcodes

from app.core.database import db_connection
from app.core.errors import Conflict, InsufficientStock, LedgerError, StorageUnavailable
from app.store.base import Store

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS bases (
    base_code   VARCHAR(20) PRIMARY KEY,
    lat         DOUBLE PRECISION,
    lng         DOUBLE PRECISION,
    created_at  TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS equipment_types (
    code        VARCHAR(30) PRIMARY KEY,
    name        TEXT NOT NULL,
    category    TEXT NOT NULL DEFAULT '',
    unit        TEXT NOT NULL DEFAULT 'unit',
    active      BOOLEAN NOT NULL DEFAULT TRUE,
    created_at  TIMESTAMPTZ NOT NULL,
    updated_at  TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS stock_levels (
    base_code       VARCHAR(20) NOT NULL REFERENCES bases(base_code),
    equipment_code  VARCHAR(30) NOT NULL REFERENCES equipment_types(code),
    quantity        INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    PRIMARY KEY (base_code, equipment_code)
);

CREATE TABLE IF NOT EXISTS purchases (
    id               TEXT PRIMARY KEY,
    base_code        VARCHAR(20) NOT NULL REFERENCES bases(base_code),
    equipment_code   VARCHAR(30) NOT NULL REFERENCES equipment_types(code),
    quantity         INTEGER NOT NULL CHECK (quantity > 0),
    purchased_at     TIMESTAMPTZ NOT NULL,
    notes            TEXT,
    created_by       TEXT,
    created_by_name  TEXT,
    created_at       TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS expenditures (
    id               TEXT PRIMARY KEY,
    base_code        VARCHAR(20) NOT NULL REFERENCES bases(base_code),
    equipment_code   VARCHAR(30) NOT NULL REFERENCES equipment_types(code),
    quantity         INTEGER NOT NULL CHECK (quantity > 0),
    kind             VARCHAR(20) NOT NULL,
    notes            TEXT,
    created_by       TEXT,
    created_by_name  TEXT,
    created_at       TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS transfers (
    id               TEXT PRIMARY KEY,
    request_base     VARCHAR(20) NOT NULL REFERENCES bases(base_code),
    supplier_base    VARCHAR(20) REFERENCES bases(base_code),
    equipment_code   VARCHAR(30) NOT NULL REFERENCES equipment_types(code),
    quantity         INTEGER NOT NULL CHECK (quantity > 0),
    notes            TEXT,
    status           VARCHAR(10) NOT NULL,
    requested_by     TEXT,
    created_by_name  TEXT,
    requested_at     TIMESTAMPTZ NOT NULL,
    approved_at      TIMESTAMPTZ,
    approved_by      TEXT,
    claimed_at       TIMESTAMPTZ,
    claimed_by       TEXT,
    sent_at          TIMESTAMPTZ,
    sent_by          TEXT,
    received_at      TIMESTAMPTZ,
    received_by      TEXT
);

CREATE TABLE IF NOT EXISTS audit_logs (
    id          BIGSERIAL PRIMARY KEY,
    user_id     TEXT,
    username    TEXT,
    action      TEXT NOT NULL,
    endpoint    TEXT NOT NULL,
    module      TEXT,
    payload     JSONB,
    ip_address  TEXT,
    created_at  TIMESTAMPTZ NOT NULL
);
"""

# Date column used by from/to filters, per table
DATE_FIELDS = {
    "purchases": "purchased_at",
    "expenditures": "created_at",
    "transfers": "requested_at",
}


def _base_row(row: Dict) -> Dict:
    row = dict(row)
    lat, lng = row.pop("lat"), row.pop("lng")
    row["location"] = {"lat": lat, "lng": lng} if lat is not None and lng is not None else None
    return row


def _base_columns(fields: Dict) -> Dict:
    columns = {k: v for k, v in fields.items() if k != "location"}
    if "location" in fields:
        location = fields["location"] or {}
        columns["lat"] = location.get("lat")
        columns["lng"] = location.get("lng")
    return columns


def _where(filters: Dict, table: str) -> Tuple[str, list]:
    clauses, params = [], []

    for field in ("base_code", "equipment_code", "kind", "status", "request_base", "supplier_base"):
        if filters.get(field) is not None:
            clauses.append(f"{field} = %s")
            params.append(filters[field])

    if filters.get("involving_base") is not None:
        clauses.append("(request_base = %s OR supplier_base = %s)")
        params += [filters["involving_base"], filters["involving_base"]]

    if filters.get("exclude_request_base") is not None:
        clauses.append("request_base <> %s")
        params.append(filters["exclude_request_base"])

    date_field = DATE_FIELDS[table]
    if filters.get("date_from") is not None:
        clauses.append(f"{date_field} >= %s")
        params.append(filters["date_from"])
    if filters.get("date_to") is not None:
        clauses.append(f"{date_field} <= %s")
        params.append(filters["date_to"])

    return (" WHERE " + " AND ".join(clauses)) if clauses else "", params


class PostgresSession:
    """Session methods bound to one open cursor / transaction."""

    def __init__(self, cur):
        self.cur = cur

    # ---------- helpers ----------

    def _insert(self, table: str, record: Dict) -> None:
        columns = list(record.keys())
        self.cur.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(['%s'] * len(columns))})",
            [record[c] for c in columns],
        )

    def _fetch_one(self, sql: str, params) -> Optional[Dict]:
        self.cur.execute(sql, params)
        row = self.cur.fetchone()
        return dict(row) if row else None

    def _list(self, table: str, filters: Dict, offset: int, limit: Optional[int]):
        where, params = _where(filters, table)
        self.cur.execute(f"SELECT COUNT(*) AS total FROM {table}{where}", params)
        total = self.cur.fetchone()["total"]

        sql = f"SELECT * FROM {table}{where} ORDER BY {DATE_FIELDS[table]} DESC"
        if limit is not None:
            sql += " LIMIT %s"
            params = params + [limit]
        sql += " OFFSET %s"
        self.cur.execute(sql, params + [offset])
        return [dict(r) for r in self.cur.fetchall()], total

    def _exists(self, sql: str, params) -> bool:
        self.cur.execute(f"SELECT EXISTS ({sql}) AS found", params)
        return bool(self.cur.fetchone()["found"])

    # ---------- bases ----------

    def get_base(self, code: str) -> Optional[Dict]:
        row = self._fetch_one("SELECT * FROM bases WHERE base_code = %s", (code,))
        return _base_row(row) if row else None

    def list_bases(self) -> List[Dict]:
        self.cur.execute("SELECT * FROM bases ORDER BY base_code")
        return [_base_row(r) for r in self.cur.fetchall()]

    def insert_base(self, record: Dict) -> Dict:
        self._insert("bases", _base_columns(record))
        return dict(record)

    def update_base(self, code: str, fields: Dict) -> Dict:
        columns = _base_columns(fields)
        assignments = ", ".join(f"{c} = %s" for c in columns)
        self.cur.execute(
            f"UPDATE bases SET {assignments} WHERE base_code = %s",
            list(columns.values()) + [code],
        )
        return self.get_base(code)

    def delete_base(self, code: str) -> None:
        self.cur.execute("DELETE FROM stock_levels WHERE base_code = %s AND quantity = 0", (code,))
        self.cur.execute("DELETE FROM bases WHERE base_code = %s", (code,))

    def base_in_use(self, code: str) -> bool:
        return self._exists(
            """
            SELECT 1 FROM stock_levels WHERE base_code = %s AND quantity > 0
            UNION ALL SELECT 1 FROM purchases WHERE base_code = %s
            UNION ALL SELECT 1 FROM expenditures WHERE base_code = %s
            UNION ALL SELECT 1 FROM transfers WHERE request_base = %s OR supplier_base = %s
            """,
            (code, code, code, code, code),
        )

    # ---------- equipment ----------

    def get_equipment(self, code: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM equipment_types WHERE code = %s", (code,))

    def list_equipment(self, filters: Dict) -> List[Dict]:
        clauses, params = [], []
        if filters.get("q"):
            clauses.append("(code ILIKE %s OR name ILIKE %s)")
            params += [f"%{filters['q']}%"] * 2
        for field in ("category", "unit", "active"):
            if filters.get(field) is not None:
                clauses.append(f"{field} = %s")
                params.append(filters[field])
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        self.cur.execute(f"SELECT * FROM equipment_types{where} ORDER BY code", params)
        return [dict(r) for r in self.cur.fetchall()]

    def insert_equipment(self, record: Dict) -> Dict:
        self._insert("equipment_types", record)
        return dict(record)

    def update_equipment(self, code: str, fields: Dict) -> Dict:
        assignments = ", ".join(f"{c} = %s" for c in fields)
        self.cur.execute(
            f"UPDATE equipment_types SET {assignments} WHERE code = %s",
            list(fields.values()) + [code],
        )
        return self.get_equipment(code)

    def delete_equipment(self, code: str) -> None:
        self.cur.execute("DELETE FROM stock_levels WHERE equipment_code = %s AND quantity = 0", (code,))
        self.cur.execute("DELETE FROM equipment_types WHERE code = %s", (code,))

    def equipment_in_use(self, code: str) -> bool:
        return self._exists(
            """
            SELECT 1 FROM stock_levels WHERE equipment_code = %s AND quantity > 0
            UNION ALL SELECT 1 FROM purchases WHERE equipment_code = %s
            UNION ALL SELECT 1 FROM expenditures WHERE equipment_code = %s
            UNION ALL SELECT 1 FROM transfers WHERE equipment_code = %s
            """,
            (code, code, code, code),
        )

    # ---------- stock ----------

    def adjust_stock(self, base_code: str, equipment_code: str, delta: int) -> int:
        # The row is created on first touch, then updated only if it stays >= 0
        self.cur.execute(
            """
            INSERT INTO stock_levels (base_code, equipment_code, quantity)
            VALUES (%s, %s, 0)
            ON CONFLICT (base_code, equipment_code) DO NOTHING
            """,
            (base_code, equipment_code),
        )
        self.cur.execute(
            """
            UPDATE stock_levels
            SET quantity = quantity + %s
            WHERE base_code = %s AND equipment_code = %s AND quantity + %s >= 0
            RETURNING quantity
            """,
            (delta, base_code, equipment_code, delta),
        )
        row = self.cur.fetchone()
        if row is None:
            raise InsufficientStock(
                base_code, equipment_code, self.stock_quantity(base_code, equipment_code), -delta
            )
        return row["quantity"]

    def stock_quantity(self, base_code: str, equipment_code: str) -> int:
        row = self._fetch_one(
            "SELECT quantity FROM stock_levels WHERE base_code = %s AND equipment_code = %s",
            (base_code, equipment_code),
        )
        return row["quantity"] if row else 0

    def stock_levels(self, base_code: str | None = None, equipment_code: str | None = None) -> List[Dict]:
        clauses, params = [], []
        if base_code is not None:
            clauses.append("base_code = %s")
            params.append(base_code)
        if equipment_code is not None:
            clauses.append("equipment_code = %s")
            params.append(equipment_code)
        where = (" WHERE " + " AND ".join(clauses)) if clauses else ""
        self.cur.execute(
            f"SELECT base_code, equipment_code, quantity FROM stock_levels{where} "
            "ORDER BY base_code, equipment_code",
            params,
        )
        return [dict(r) for r in self.cur.fetchall()]

    # ---------- purchases ----------

    def insert_purchase(self, record: Dict) -> Dict:
        self._insert("purchases", record)
        return dict(record)

    def get_purchase(self, purchase_id: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM purchases WHERE id = %s", (purchase_id,))

    def list_purchases(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        return self._list("purchases", filters, offset, limit)

    def delete_purchase(self, purchase_id: str) -> None:
        self.cur.execute("DELETE FROM purchases WHERE id = %s", (purchase_id,))

    # ---------- expenditures ----------

    def insert_expenditure(self, record: Dict) -> Dict:
        self._insert("expenditures", record)
        return dict(record)

    def get_expenditure(self, expenditure_id: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM expenditures WHERE id = %s", (expenditure_id,))

    def list_expenditures(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        return self._list("expenditures", filters, offset, limit)

    def delete_expenditure(self, expenditure_id: str) -> None:
        self.cur.execute("DELETE FROM expenditures WHERE id = %s", (expenditure_id,))

    # ---------- transfers ----------

    def insert_transfer(self, record: Dict) -> Dict:
        self._insert("transfers", record)
        return dict(record)

    def get_transfer(self, transfer_id: str) -> Optional[Dict]:
        return self._fetch_one("SELECT * FROM transfers WHERE id = %s", (transfer_id,))

    def list_transfers(self, filters: Dict, offset: int = 0, limit: Optional[int] = None):
        return self._list("transfers", filters, offset, limit)

    def update_transfer(self, transfer_id: str, expected_status: str, fields: Dict) -> Optional[Dict]:
        assignments = ", ".join(f"{c} = %s" for c in fields)
        return self._fetch_one(
            f"UPDATE transfers SET {assignments} WHERE id = %s AND status = %s RETURNING *",
            list(fields.values()) + [transfer_id, expected_status],
        )

    def delete_transfer(self, transfer_id: str) -> None:
        self.cur.execute("DELETE FROM transfers WHERE id = %s", (transfer_id,))

    # ---------- audit ----------

    def insert_audit(self, record: Dict) -> None:
        record = dict(record)
        record["payload"] = json.dumps(record["payload"]) if record.get("payload") else None
        self._insert("audit_logs", record)

    def list_audit(self, offset: int = 0, limit: Optional[int] = None):
        self.cur.execute("SELECT COUNT(*) AS total FROM audit_logs")
        total = self.cur.fetchone()["total"]
        self.cur.execute(
            "SELECT * FROM audit_logs ORDER BY id DESC LIMIT %s OFFSET %s",
            (limit, offset),
        )
        return [dict(r) for r in self.cur.fetchall()], total


class PostgresStore(Store):
    """
    One connection and one transaction per unit of work.

    transaction() keys become pg_advisory_xact_lock()s, released on commit or
    rollback, so only callers on the same entity serialize. Stock rows are
    additionally protected by the conditional UPDATE in adjust_stock().
    """

    def __init__(self, dsn: str | None):
        if not dsn:
            raise ValueError("DATABASE_URL is required for the postgres backend")
        self.dsn = dsn

    def init(self) -> None:
        with db_connection(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA)
            conn.commit()
        logger.info("PostgreSQL schema ready")

    @contextmanager
    def transaction(self, *keys: Hashable):
        with db_connection(self.dsn) as conn:
            try:
                with conn.cursor() as cur:
                    for key in sorted({repr(k) for k in keys}):
                        cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (key,))
                    yield PostgresSession(cur)
                conn.commit()
            except LedgerError:
                conn.rollback()
                raise
            except psycopg2.IntegrityError as e:
                conn.rollback()
                raise Conflict(f"Integrity constraint violated: {e.diag.message_primary}") from e
            except psycopg2.Error as e:
                conn.rollback()
                if e.pgcode == errorcodes.DEADLOCK_DETECTED:
                    raise Conflict("Concurrent update detected, retry the operation") from e
                logger.exception("Storage failure")
                raise StorageUnavailable(f"Storage failure: {e}") from e
            except Exception:
                conn.rollback()
                raise
