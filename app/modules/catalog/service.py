# app/modules/catalog/service.py

import logging
import re
from datetime import datetime, timezone
from typing import Dict, List

from app.core.errors import Conflict, NotFound, ValidationError
from app.core.security.permissions import Action, require
from app.store.base import base_key, equipment_key

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9_]+$")
BASE_CODE_MAX = 20
EQUIPMENT_CODE_MAX = 30


def validate_code(value, max_length: int, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")

    code = value.strip()
    if len(code) > max_length:
        raise ValidationError(f"{label} must be at most {max_length} characters")
    if not CODE_PATTERN.match(code):
        raise ValidationError(f"{label} must contain only A-Z, 0-9 and underscore")
    return code


def _now():
    return datetime.now(timezone.utc)


class CatalogService:
    """
    Bases and equipment types.

    Every other component reads these registries to validate references;
    only admins mutate them.
    """

    def __init__(self, store):
        self.store = store

    # =========================
    # BASES
    # =========================

    def list_bases(self) -> List[Dict]:
        with self.store.transaction() as tx:
            return tx.list_bases()

    def get_base(self, code: str) -> Dict:
        with self.store.transaction() as tx:
            base = tx.get_base(code)
        if not base:
            raise NotFound(f"Base {code} not found")
        return base

    def create_base(self, data: Dict, actor: Dict) -> Dict:
        require(actor, Action.MANAGE_CATALOG)
        code = validate_code(data.get("base_code"), BASE_CODE_MAX, "Base code")

        record = {
            "base_code": code,
            "location": data.get("location"),
            "created_at": _now(),
        }

        with self.store.transaction(base_key(code)) as tx:
            if tx.get_base(code):
                raise Conflict(f"Base {code} already exists")
            created = tx.insert_base(record)

        logger.info("Base %s created by %s", code, actor["id"])
        return created

    def update_base(self, code: str, data: Dict, actor: Dict) -> Dict:
        require(actor, Action.MANAGE_CATALOG)

        with self.store.transaction(base_key(code)) as tx:
            if not tx.get_base(code):
                raise NotFound(f"Base {code} not found")
            if tx.base_in_use(code):
                raise Conflict(f"Base {code} is referenced by stock or events and cannot be modified")
            updated = tx.update_base(code, {"location": data.get("location")})

        logger.info("Base %s updated by %s", code, actor["id"])
        return updated

    def delete_base(self, code: str, actor: Dict) -> Dict:
        require(actor, Action.MANAGE_CATALOG)

        with self.store.transaction(base_key(code)) as tx:
            base = tx.get_base(code)
            if not base:
                raise NotFound(f"Base {code} not found")
            if tx.base_in_use(code):
                raise Conflict(f"Base {code} is in use by stock, purchases, expenditures or transfers")
            tx.delete_base(code)

        logger.info("Base %s deleted by %s", code, actor["id"])
        return base

    # =========================
    # EQUIPMENT TYPES
    # =========================

    def list_equipment(self, filters: Dict | None = None) -> List[Dict]:
        with self.store.transaction() as tx:
            return tx.list_equipment(filters or {})

    def get_equipment(self, code: str) -> Dict:
        with self.store.transaction() as tx:
            equipment = tx.get_equipment(code)
        if not equipment:
            raise NotFound(f"Equipment {code} not found")
        return equipment

    def create_equipment(self, data: Dict, actor: Dict) -> Dict:
        require(actor, Action.MANAGE_CATALOG)
        code = validate_code(data.get("code"), EQUIPMENT_CODE_MAX, "Equipment code")

        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Equipment name is required")

        now = _now()
        record = {
            "code": code,
            "name": name,
            "category": (data.get("category") or "").strip(),
            "unit": (data.get("unit") or "").strip() or "unit",
            "active": bool(data.get("active", True)),
            "created_at": now,
            "updated_at": now,
        }

        with self.store.transaction(equipment_key(code)) as tx:
            if tx.get_equipment(code):
                raise Conflict(f"Equipment {code} already exists")
            created = tx.insert_equipment(record)

        logger.info("Equipment %s created by %s", code, actor["id"])
        return created

    def update_equipment(self, code: str, data: Dict, actor: Dict) -> Dict:
        """Update name / category / unit / active. The code never changes."""
        require(actor, Action.MANAGE_CATALOG)

        if data.get("code") not in (None, code):
            raise ValidationError("Equipment code cannot be changed")

        fields = {}
        if data.get("name") is not None:
            name = data["name"].strip()
            if not name:
                raise ValidationError("Equipment name is required")
            fields["name"] = name
        if data.get("category") is not None:
            fields["category"] = data["category"].strip()
        if data.get("unit") is not None:
            fields["unit"] = data["unit"].strip() or "unit"
        if data.get("active") is not None:
            fields["active"] = bool(data["active"])
        fields["updated_at"] = _now()

        with self.store.transaction(equipment_key(code)) as tx:
            if not tx.get_equipment(code):
                raise NotFound(f"Equipment {code} not found")
            updated = tx.update_equipment(code, fields)

        logger.info("Equipment %s updated by %s", code, actor["id"])
        return updated

    def delete_equipment(self, code: str, actor: Dict) -> Dict:
        require(actor, Action.MANAGE_CATALOG)

        with self.store.transaction(equipment_key(code)) as tx:
            equipment = tx.get_equipment(code)
            if not equipment:
                raise NotFound(f"Equipment {code} not found")
            if tx.equipment_in_use(code):
                raise Conflict(f"Equipment {code} is in use by stock, purchases, expenditures or transfers")
            tx.delete_equipment(code)

        logger.info("Equipment %s deleted by %s", code, actor["id"])
        return equipment
