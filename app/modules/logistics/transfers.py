# app/modules/logistics/transfers.py
"""
Transfer workflow.

    pending --approve--> open --claim--> claimed --send--> sent --receive--> received

Each transition is legal only from its source status; anything else is a
Conflict and leaves the transfer untouched. send debits the supplier and
receive credits the requester; both are idempotent under retries. claim is a
compare-and-swap on the status so exactly one concurrent claimant wins.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Tuple
from uuid import uuid4

from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.core.security.permissions import Action, is_admin, is_allowed, require
from app.modules.logistics.service import resolve_references, scope_base
from app.modules.logistics.utils import (
    build_movement_description,
    date_range,
    paging,
    validate_quantity,
)
from app.store.base import transfer_key

logger = logging.getLogger(__name__)


class TransferStatus(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    CLAIMED = "claimed"
    SENT = "sent"
    RECEIVED = "received"


STATUS_ORDER = [s.value for s in TransferStatus]


def reached(transfer: Dict, status: TransferStatus) -> bool:
    return STATUS_ORDER.index(transfer["status"]) >= STATUS_ORDER.index(status.value)


def _now():
    return datetime.now(timezone.utc)


class TransferWorkflow:

    def __init__(self, store):
        self.store = store

    def _load(self, tx, transfer_id: str) -> Dict:
        transfer = tx.get_transfer(transfer_id)
        if not transfer:
            raise NotFound(f"Transfer {transfer_id} not found")
        return transfer

    @staticmethod
    def _expect(transfer: Dict, source: TransferStatus, event: str) -> None:
        if transfer["status"] != source.value:
            raise Conflict(
                f"Cannot {event} transfer {transfer['id']}: status is "
                f"'{transfer['status']}', expected '{source.value}'"
            )

    # =========================
    # REQUEST
    # =========================

    def create_request(self, data: Dict, actor: Dict) -> Dict:
        quantity = validate_quantity(data.get("quantity"))
        request_base = data.get("request_base") or actor.get("base_code")
        equipment_code = data.get("equipment_code")
        if not request_base:
            raise ValidationError("Request base is required")
        if not equipment_code:
            raise ValidationError("Equipment code is required")

        require(actor, Action.CREATE_REQUEST, request_base)

        record = {
            "id": uuid4().hex,
            "request_base": request_base,
            "supplier_base": None,
            "equipment_code": equipment_code,
            "quantity": quantity,
            "notes": data.get("notes"),
            "status": TransferStatus.PENDING.value,
            "requested_by": actor["id"],
            "created_by_name": actor.get("username"),
            "requested_at": _now(),
        }

        with self.store.transaction(transfer_key(record["id"])) as tx:
            resolve_references(tx, request_base, equipment_code, require_active=True)
            created = tx.insert_transfer(record)

        logger.info(
            "Transfer %s requested by %s: %s x %s for %s",
            created["id"], actor["id"], quantity, equipment_code, request_base,
        )
        return created

    # =========================
    # TRANSITIONS
    # =========================

    def approve(self, transfer_id: str, actor: Dict) -> Dict:
        with self.store.transaction(transfer_key(transfer_id)) as tx:
            transfer = self._load(tx, transfer_id)
            require(actor, Action.APPROVE_TRANSFER, transfer["request_base"])
            self._expect(transfer, TransferStatus.PENDING, "approve")

            updated = tx.update_transfer(transfer_id, TransferStatus.PENDING.value, {
                "status": TransferStatus.OPEN.value,
                "approved_at": _now(),
                "approved_by": actor["id"],
            })
            if updated is None:
                raise Conflict(f"Transfer {transfer_id} changed concurrently")

        logger.info("Transfer %s approved by %s", transfer_id, actor["id"])
        return updated

    def claim(self, transfer_id: str, actor: Dict, supplier_base: str | None = None) -> Dict:
        """
        Commit a supplying base to an open request.

        Admins name the supplier explicitly (falling back to their own base);
        commanders always supply from their own base.
        """
        supplier_base = supplier_base or actor.get("base_code")
        if not supplier_base:
            raise ValidationError("Supplier base is required")

        with self.store.transaction(transfer_key(transfer_id)) as tx:
            transfer = self._load(tx, transfer_id)
            require(actor, Action.CLAIM_TRANSFER, supplier_base)

            if transfer["status"] != TransferStatus.OPEN.value:
                raise Conflict(f"Transfer {transfer_id} is no longer open (status '{transfer['status']}')")
            if supplier_base == transfer["request_base"]:
                raise ValidationError("A base cannot supply its own request")
            if not tx.get_base(supplier_base):
                raise NotFound(f"Base {supplier_base} not found")

            # Only one claimant sees the status still 'open'
            updated = tx.update_transfer(transfer_id, TransferStatus.OPEN.value, {
                "status": TransferStatus.CLAIMED.value,
                "supplier_base": supplier_base,
                "claimed_at": _now(),
                "claimed_by": actor["id"],
            })
            if updated is None:
                raise Conflict(f"Transfer {transfer_id} was already claimed")

        logger.info("Transfer %s claimed by %s for supplier %s", transfer_id, actor["id"], supplier_base)
        return updated

    def send(self, transfer_id: str, actor: Dict) -> Dict:
        with self.store.transaction(transfer_key(transfer_id)) as tx:
            transfer = self._load(tx, transfer_id)
            if transfer["supplier_base"] is None:
                self._expect(transfer, TransferStatus.CLAIMED, "send")
            require(actor, Action.SEND_TRANSFER, transfer["supplier_base"])

            if reached(transfer, TransferStatus.SENT):
                return transfer
            self._expect(transfer, TransferStatus.CLAIMED, "send")

            # Debit first: an InsufficientStock here leaves everything as it was
            tx.adjust_stock(transfer["supplier_base"], transfer["equipment_code"], -transfer["quantity"])
            updated = tx.update_transfer(transfer_id, TransferStatus.CLAIMED.value, {
                "status": TransferStatus.SENT.value,
                "sent_at": _now(),
                "sent_by": actor["id"],
            })
            if updated is None:
                tx.adjust_stock(transfer["supplier_base"], transfer["equipment_code"], transfer["quantity"])
                raise Conflict(f"Transfer {transfer_id} changed concurrently")

        logger.info(
            "Transfer %s sent by %s: %s",
            transfer_id,
            actor["id"],
            build_movement_description(
                "TRANSFER", transfer["quantity"], transfer["equipment_code"],
                from_base=transfer["supplier_base"], to_base=transfer["request_base"],
            ),
        )
        return updated

    def receive(self, transfer_id: str, actor: Dict) -> Dict:
        with self.store.transaction(transfer_key(transfer_id)) as tx:
            transfer = self._load(tx, transfer_id)
            require(actor, Action.RECEIVE_TRANSFER, transfer["request_base"])

            if reached(transfer, TransferStatus.RECEIVED):
                return transfer
            self._expect(transfer, TransferStatus.SENT, "receive")

            # Status first: the credit that follows cannot fail
            updated = tx.update_transfer(transfer_id, TransferStatus.SENT.value, {
                "status": TransferStatus.RECEIVED.value,
                "received_at": _now(),
                "received_by": actor["id"],
            })
            if updated is None:
                raise Conflict(f"Transfer {transfer_id} changed concurrently")
            tx.adjust_stock(transfer["request_base"], transfer["equipment_code"], transfer["quantity"])

        logger.info(
            "Transfer %s received by %s: %s x %s into %s",
            transfer_id, actor["id"], transfer["quantity"], transfer["equipment_code"], transfer["request_base"],
        )
        return updated

    def delete(self, transfer_id: str, actor: Dict) -> Dict:
        """
        Remove a transfer in any status, undoing its stock effects.

        received: debit the requester (may fail, nothing changes), then credit
        the supplier. sent: credit the supplier.
        """
        with self.store.transaction(transfer_key(transfer_id)) as tx:
            transfer = self._load(tx, transfer_id)
            require(actor, Action.DELETE_TRANSFER, transfer["request_base"])

            if transfer["status"] == TransferStatus.RECEIVED.value:
                tx.adjust_stock(transfer["request_base"], transfer["equipment_code"], -transfer["quantity"])
            if transfer["status"] in (TransferStatus.SENT.value, TransferStatus.RECEIVED.value):
                tx.adjust_stock(transfer["supplier_base"], transfer["equipment_code"], transfer["quantity"])

            tx.delete_transfer(transfer_id)

        logger.info("Transfer %s (%s) deleted by %s", transfer_id, transfer["status"], actor["id"])
        return transfer

    # =========================
    # READ MODELS
    # =========================

    def get_transfer(self, transfer_id: str, actor: Dict) -> Dict:
        with self.store.transaction() as tx:
            transfer = self._load(tx, transfer_id)

        own_base = actor.get("base_code")
        visible = (
            is_admin(actor)
            or own_base in (transfer["request_base"], transfer["supplier_base"])
            or (transfer["status"] == TransferStatus.OPEN.value
                and is_allowed(actor.get("role"), own_base, Action.CLAIM_TRANSFER, own_base))
        )
        if not visible:
            raise Forbidden(f"Transfer {transfer_id} does not involve your base")
        return transfer

    def list_transfers(self, actor: Dict, params: Dict, status: str | None = None) -> Tuple[List[Dict], int, int, int]:
        """Transfers where the caller's base is the requester or the supplier."""
        if status is not None and status not in STATUS_ORDER:
            raise ValidationError(f"Unknown status '{status}'")

        page, page_size, offset = paging(params)
        filters = {
            "involving_base": scope_base(actor, params.get("base")),
            "equipment_code": params.get("equipment_code"),
            "status": status,
            **date_range(params),
        }
        with self.store.transaction() as tx:
            records, total = tx.list_transfers(filters, offset, page_size)
        return records, total, page, page_size

    def list_open(self, actor: Dict, params: Dict) -> Tuple[List[Dict], int, int, int]:
        """Approved requests waiting for a supplier, minus the caller's own requests."""
        if not is_allowed(actor.get("role"), actor.get("base_code"), Action.CLAIM_TRANSFER, actor.get("base_code")):
            raise Forbidden("Only principals able to claim transfers can browse approved requests")

        page, page_size, offset = paging(params)
        filters = {
            "status": TransferStatus.OPEN.value,
            "equipment_code": params.get("equipment_code"),
            "exclude_request_base": None if is_admin(actor) else actor.get("base_code"),
            **date_range(params),
        }
        with self.store.transaction() as tx:
            records, total = tx.list_transfers(filters, offset, page_size)
        return records, total, page, page_size
