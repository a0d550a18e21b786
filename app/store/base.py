# app/store/base.py
"""
Persistence contract shared by the memory and PostgreSQL backends.

Services never touch collections directly. They open a transaction scoped to
the entity keys they mutate and call the session methods below:

    with store.transaction(("transfer", transfer_id)) as tx:
        transfer = tx.get_transfer(transfer_id)
        tx.adjust_stock(base, equipment, -quantity)
        tx.update_transfer(transfer_id, "claimed", {...})

Session methods (records are plain dicts with snake_case keys):

    bases        get_base, list_bases, insert_base, update_base, delete_base,
                 base_in_use
    equipment    get_equipment, list_equipment, insert_equipment,
                 update_equipment, delete_equipment, equipment_in_use
    stock        adjust_stock, stock_quantity, stock_levels
    purchases    insert_purchase, get_purchase, list_purchases, delete_purchase
    expenditures insert_expenditure, get_expenditure, list_expenditures,
                 delete_expenditure
    transfers    insert_transfer, get_transfer, list_transfers,
                 update_transfer (compare-and-swap on status), delete_transfer
    audit        insert_audit, list_audit

list_* methods for events take (filters, offset, limit) and return
(items, total). A limit of None returns everything.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Hashable

from fastapi import Request


class Store(ABC):

    @abstractmethod
    def transaction(self, *keys: Hashable) -> AbstractContextManager:
        """Run a unit of work holding the locks of ``keys``."""

    def init(self) -> None:
        """Prepare the backend (schema, connections). No-op by default."""


def transfer_key(transfer_id: str):
    return ("transfer", transfer_id)


def purchase_key(purchase_id: str):
    return ("purchase", purchase_id)


def expenditure_key(expenditure_id: str):
    return ("expenditure", expenditure_id)


def base_key(base_code: str):
    return ("base", base_code)


def equipment_key(equipment_code: str):
    return ("equipment", equipment_code)


def get_store(request: Request) -> Store:
    return request.app.state.store


def build_store(settings) -> Store:
    backend = (settings.STORAGE_BACKEND or "memory").lower()

    if backend == "memory":
        from app.store.memory import MemoryStore
        return MemoryStore(audit_limit=settings.MEMORY_AUDIT_LIMIT)

    if backend == "postgres":
        from app.store.postgres import PostgresStore
        return PostgresStore(settings.DATABASE_URL)

    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
