# app/modules/logistics/service.py

import logging
from datetime import datetime, timezone
from typing import Dict, List, Tuple
from uuid import uuid4

from app.core.errors import Forbidden, NotFound, ValidationError
from app.core.security.permissions import Action, is_admin, require
from app.modules.logistics.utils import (
    as_utc,
    build_movement_description,
    date_range,
    paging,
    validate_quantity,
)
from app.store.base import expenditure_key, purchase_key

logger = logging.getLogger(__name__)

EXPENDITURE_KINDS = ("assignment", "consumption")


def scope_base(actor: Dict, requested_base: str | None) -> str | None:
    """
    Base a listing is restricted to.

    Admins see everything (or the base they ask for); everybody else only
    their own base.
    """
    if is_admin(actor):
        return requested_base

    own_base = actor.get("base_code")
    target = requested_base or own_base
    if not own_base or target != own_base:
        raise Forbidden("You can only view records of your own base")
    return own_base


def resolve_references(tx, base_code: str, equipment_code: str, require_active: bool = False) -> Dict:
    if not tx.get_base(base_code):
        raise NotFound(f"Base {base_code} not found")

    equipment = tx.get_equipment(equipment_code)
    if not equipment:
        raise NotFound(f"Equipment {equipment_code} not found")
    if require_active and not equipment["active"]:
        raise ValidationError(f"Equipment {equipment_code} is inactive")
    return equipment


class LogisticsService:
    """
    Purchase / expenditure recorder.

    No FastAPI here, no HTTP. Only business rules.
    Every stock change goes through tx.adjust_stock(), which refuses to take
    a quantity below zero before anything is written.
    """

    def __init__(self, store):
        self.store = store

    # =========================
    # PURCHASES
    # =========================

    def record_purchase(self, data: Dict, actor: Dict) -> Dict:
        # 1️⃣ Basic validations
        quantity = validate_quantity(data.get("quantity"))
        base_code = data.get("base_code") or actor.get("base_code")
        equipment_code = data.get("equipment_code")
        if not base_code:
            raise ValidationError("Base code is required")
        if not equipment_code:
            raise ValidationError("Equipment code is required")

        # 2️⃣ Authorization
        require(actor, Action.RECORD_PURCHASE, base_code)

        now = datetime.now(timezone.utc)
        record = {
            "id": uuid4().hex,
            "base_code": base_code,
            "equipment_code": equipment_code,
            "quantity": quantity,
            "purchased_at": as_utc(data.get("purchased_at")) or now,
            "notes": data.get("notes"),
            "created_by": actor["id"],
            "created_by_name": actor.get("username"),
            "created_at": now,
        }

        # 3️⃣ References, then the stock credit, then the event
        with self.store.transaction(purchase_key(record["id"])) as tx:
            resolve_references(tx, base_code, equipment_code, require_active=True)
            on_hand = tx.adjust_stock(base_code, equipment_code, quantity)
            created = tx.insert_purchase(record)

        logger.info(
            "%s (on hand %s) by %s",
            build_movement_description("IN", quantity, equipment_code, to_base=base_code),
            on_hand,
            actor["id"],
        )
        return created

    def get_purchase(self, purchase_id: str, actor: Dict) -> Dict:
        with self.store.transaction() as tx:
            purchase = tx.get_purchase(purchase_id)
        if not purchase:
            raise NotFound(f"Purchase {purchase_id} not found")
        scope_base(actor, purchase["base_code"])
        return purchase

    def list_purchases(self, actor: Dict, params: Dict) -> Tuple[List[Dict], int, int, int]:
        page, page_size, offset = paging(params)
        filters = {
            "base_code": scope_base(actor, params.get("base")),
            "equipment_code": params.get("equipment_code"),
            **date_range(params),
        }
        with self.store.transaction() as tx:
            records, total = tx.list_purchases(filters, offset, page_size)
        return records, total, page, page_size

    def delete_purchase(self, purchase_id: str, actor: Dict) -> Dict:
        """
        Reverse a purchase.

        Fails with InsufficientStock when later events already consumed the
        purchased units; the purchase is then kept as is.
        """
        with self.store.transaction(purchase_key(purchase_id)) as tx:
            purchase = tx.get_purchase(purchase_id)
            if not purchase:
                raise NotFound(f"Purchase {purchase_id} not found")
            require(actor, Action.DELETE_PURCHASE, purchase["base_code"])

            on_hand = tx.adjust_stock(purchase["base_code"], purchase["equipment_code"], -purchase["quantity"])
            tx.delete_purchase(purchase_id)

        logger.info(
            "Purchase %s deleted by %s: %s removed from %s (on hand %s)",
            purchase_id, actor["id"], purchase["quantity"], purchase["base_code"], on_hand,
        )
        return purchase

    # =========================
    # EXPENDITURES
    # =========================

    def record_expenditure(self, data: Dict, actor: Dict) -> Dict:
        # 1️⃣ Basic validations
        quantity = validate_quantity(data.get("quantity"))
        kind = data.get("kind")
        if kind not in EXPENDITURE_KINDS:
            raise ValidationError("Kind must be 'assignment' or 'consumption'")
        base_code = data.get("base_code") or actor.get("base_code")
        equipment_code = data.get("equipment_code")
        if not base_code:
            raise ValidationError("Base code is required")
        if not equipment_code:
            raise ValidationError("Equipment code is required")

        # 2️⃣ Authorization
        require(actor, Action.RECORD_EXPENDITURE, base_code)

        record = {
            "id": uuid4().hex,
            "base_code": base_code,
            "equipment_code": equipment_code,
            "quantity": quantity,
            "kind": kind,
            "notes": data.get("notes"),
            "created_by": actor["id"],
            "created_by_name": actor.get("username"),
            "created_at": datetime.now(timezone.utc),
        }

        # 3️⃣ The debit may fail: it runs before the event is written
        with self.store.transaction(expenditure_key(record["id"])) as tx:
            resolve_references(tx, base_code, equipment_code)
            on_hand = tx.adjust_stock(base_code, equipment_code, -quantity)
            created = tx.insert_expenditure(record)

        logger.info(
            "%s (%s, on hand %s) by %s",
            build_movement_description("OUT", quantity, equipment_code, from_base=base_code),
            kind,
            on_hand,
            actor["id"],
        )
        return created

    def get_expenditure(self, expenditure_id: str, actor: Dict) -> Dict:
        with self.store.transaction() as tx:
            expenditure = tx.get_expenditure(expenditure_id)
        if not expenditure:
            raise NotFound(f"Expenditure {expenditure_id} not found")
        scope_base(actor, expenditure["base_code"])
        return expenditure

    def list_expenditures(self, actor: Dict, params: Dict, kind: str | None = None) -> Tuple[List[Dict], int, int, int]:
        if kind is not None and kind not in EXPENDITURE_KINDS:
            raise ValidationError("Kind must be 'assignment' or 'consumption'")

        page, page_size, offset = paging(params)
        filters = {
            "base_code": scope_base(actor, params.get("base")),
            "equipment_code": params.get("equipment_code"),
            "kind": kind,
            **date_range(params),
        }
        with self.store.transaction() as tx:
            records, total = tx.list_expenditures(filters, offset, page_size)
        return records, total, page, page_size

    def delete_expenditure(self, expenditure_id: str, actor: Dict) -> Dict:
        """Reverse an expenditure. Restoring stock always succeeds."""
        with self.store.transaction(expenditure_key(expenditure_id)) as tx:
            expenditure = tx.get_expenditure(expenditure_id)
            if not expenditure:
                raise NotFound(f"Expenditure {expenditure_id} not found")
            require(actor, Action.DELETE_EXPENDITURE, expenditure["base_code"])

            on_hand = tx.adjust_stock(expenditure["base_code"], expenditure["equipment_code"], expenditure["quantity"])
            tx.delete_expenditure(expenditure_id)

        logger.info(
            "Expenditure %s deleted by %s: %s (on hand %s)",
            expenditure_id,
            actor["id"],
            build_movement_description("RETURN", expenditure["quantity"], expenditure["equipment_code"], to_base=expenditure["base_code"]),
            on_hand,
        )
        return expenditure

    # =========================
    # STOCK
    # =========================

    def list_stock(self, actor: Dict, base: str | None = None, equipment_code: str | None = None) -> List[Dict]:
        base_code = scope_base(actor, base)
        with self.store.transaction() as tx:
            return tx.stock_levels(base_code, equipment_code)
