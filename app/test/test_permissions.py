import pytest

from app.core.errors import Forbidden
from app.core.security.permissions import Action, allowed_actions, is_allowed, require

from conftest import ADMIN, commander, officer


BASE_SCOPED = [
    Action.CREATE_REQUEST,
    Action.RECEIVE_TRANSFER,
    Action.RECORD_PURCHASE,
    Action.RECORD_EXPENDITURE,
    Action.VIEW_BASE,
]

COMMANDER_ONLY = [
    Action.APPROVE_TRANSFER,
    Action.CLAIM_TRANSFER,
    Action.SEND_TRANSFER,
]

ADMIN_ONLY = [
    Action.DELETE_TRANSFER,
    Action.DELETE_PURCHASE,
    Action.DELETE_EXPENDITURE,
    Action.MANAGE_CATALOG,
    Action.VIEW_ADMIN_DASHBOARD,
    Action.VIEW_AUDIT,
]


@pytest.mark.parametrize("action", list(Action))
def test_admin_may_do_everything_everywhere(action):
    assert is_allowed("admin", None, action, "A")
    assert is_allowed("admin", None, action, None)


@pytest.mark.parametrize("action", BASE_SCOPED + COMMANDER_ONLY)
def test_commander_limited_to_own_base(action):
    assert is_allowed("base_commander", "A", action, "A")
    assert not is_allowed("base_commander", "A", action, "B")


@pytest.mark.parametrize("action", BASE_SCOPED)
def test_officer_limited_to_own_base(action):
    assert is_allowed("logistics_officer", "B", action, "B")
    assert not is_allowed("logistics_officer", "B", action, "A")


@pytest.mark.parametrize("action", COMMANDER_ONLY + ADMIN_ONLY)
def test_officer_denied_commander_and_admin_actions(action):
    assert not is_allowed("logistics_officer", "B", action, "B")


@pytest.mark.parametrize("action", ADMIN_ONLY)
def test_commander_denied_admin_actions(action):
    assert not is_allowed("base_commander", "A", action, "A")


@pytest.mark.parametrize("role", ["inventory_manager", "", None])
def test_unknown_roles_are_denied(role):
    for action in Action:
        assert not is_allowed(role, "A", action, "A")


def test_base_scoped_role_without_base_is_denied():
    assert not is_allowed("base_commander", None, Action.CREATE_REQUEST, None)


def test_require_raises_forbidden():
    require(commander("A"), Action.APPROVE_TRANSFER, "A")

    with pytest.raises(Forbidden):
        require(commander("A"), Action.APPROVE_TRANSFER, "B")
    with pytest.raises(Forbidden):
        require(officer("B"), Action.MANAGE_CATALOG)


def test_allowed_actions_per_role():
    assert allowed_actions(ADMIN) == [a.value for a in Action]
    assert set(allowed_actions(officer("B"))) == {a.value for a in BASE_SCOPED}
    assert set(allowed_actions(commander("A"))) == {a.value for a in BASE_SCOPED + COMMANDER_ONLY}
    assert allowed_actions({"id": "x", "role": "inventory_manager", "base_code": "A"}) == []
