# app/core/security/permissions.py
"""
Authorization Gate.

is_allowed() is the single source of truth for who may do what on which
base. Services call require() before every mutation; the UI only mirrors
the outcome through GET /me.
"""

from enum import Enum
from typing import Dict, List

from fastapi import Depends

from app.core.errors import Forbidden
from app.core.security.dependencies import get_current_user


class Role(str, Enum):
    ADMIN = "admin"
    BASE_COMMANDER = "base_commander"
    LOGISTICS_OFFICER = "logistics_officer"


class Action(str, Enum):
    CREATE_REQUEST = "create_request"
    APPROVE_TRANSFER = "approve_transfer"
    CLAIM_TRANSFER = "claim_transfer"
    SEND_TRANSFER = "send_transfer"
    RECEIVE_TRANSFER = "receive_transfer"
    DELETE_TRANSFER = "delete_transfer"
    RECORD_PURCHASE = "record_purchase"
    DELETE_PURCHASE = "delete_purchase"
    RECORD_EXPENDITURE = "record_expenditure"
    DELETE_EXPENDITURE = "delete_expenditure"
    MANAGE_CATALOG = "manage_catalog"
    VIEW_ADMIN_DASHBOARD = "view_admin_dashboard"
    VIEW_AUDIT = "view_audit"
    VIEW_BASE = "view_base"


# Base-scoped roles: the action is allowed only on the principal's own base.
# Roles missing here (e.g. inventory_manager) get nothing.
BASE_CAPABILITIES = {
    Role.BASE_COMMANDER.value: {
        Action.CREATE_REQUEST,
        Action.APPROVE_TRANSFER,
        Action.CLAIM_TRANSFER,
        Action.SEND_TRANSFER,
        Action.RECEIVE_TRANSFER,
        Action.RECORD_PURCHASE,
        Action.RECORD_EXPENDITURE,
        Action.VIEW_BASE,
    },
    Role.LOGISTICS_OFFICER.value: {
        Action.CREATE_REQUEST,
        Action.RECEIVE_TRANSFER,
        Action.RECORD_PURCHASE,
        Action.RECORD_EXPENDITURE,
        Action.VIEW_BASE,
    },
}


def is_allowed(role: str | None, principal_base: str | None, action: Action, target_base: str | None = None) -> bool:
    if role == Role.ADMIN:
        return True

    capabilities = BASE_CAPABILITIES.get(getattr(role, "value", role))
    if not capabilities or action not in capabilities:
        return False

    return principal_base is not None and target_base == principal_base


def require(user: Dict, action: Action, target_base: str | None = None) -> None:
    if not is_allowed(user.get("role"), user.get("base_code"), action, target_base):
        scope = f" for base {target_base}" if target_base else ""
        raise Forbidden(f"Role {user.get('role')} may not {action.value.replace('_', ' ')}{scope}")


def is_admin(user: Dict) -> bool:
    return user.get("role") == Role.ADMIN


def allowed_actions(user: Dict) -> List[str]:
    """Actions the principal may perform on their own base (all of them for admins)."""
    return [
        action.value
        for action in Action
        if is_allowed(user.get("role"), user.get("base_code"), action, user.get("base_code"))
    ]


def require_permission(action: Action):
    def dependency(user = Depends(get_current_user)):
        require(user, action, user.get("base_code"))
        return user
    return dependency
