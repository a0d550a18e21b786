import pytest

from app.core.errors import Forbidden, NotFound, ValidationError
from app.modules.dashboard.service import DashboardService
from app.modules.logistics.service import LogisticsService
from app.modules.logistics.transfers import TransferWorkflow

from conftest import ADMIN, commander, officer


@pytest.fixture
def activity(seeded):
    """B buys 10 rifles and ships 4 to A; A buys radios and spends some of them."""
    service = LogisticsService(seeded)
    workflow = TransferWorkflow(seeded)

    service.record_purchase({"base_code": "B", "equipment_code": "RIFLE_556", "quantity": 10}, ADMIN)
    service.record_purchase({"base_code": "A", "equipment_code": "RADIO_VHF", "quantity": 6}, ADMIN)
    service.record_expenditure(
        {"base_code": "A", "equipment_code": "RADIO_VHF", "quantity": 2, "kind": "assignment"}, ADMIN
    )
    service.record_expenditure(
        {"base_code": "A", "equipment_code": "RADIO_VHF", "quantity": 1, "kind": "consumption"}, ADMIN
    )

    delivered = workflow.create_request(
        {"request_base": "A", "equipment_code": "RIFLE_556", "quantity": 4}, officer("A")
    )
    workflow.approve(delivered["id"], commander("A"))
    workflow.claim(delivered["id"], commander("B"))
    workflow.send(delivered["id"], commander("B"))
    workflow.receive(delivered["id"], officer("A"))

    workflow.create_request({"request_base": "A", "equipment_code": "RIFLE_556", "quantity": 1}, officer("A"))
    return seeded


def test_admin_dashboard(activity):
    view = DashboardService(activity).admin_dashboard(ADMIN)
    stats = view["global_stats"]

    assert stats["base_count"] == 3
    assert stats["equipment_active_count"] == 2
    assert stats["on_hand_total_qty"] == 4 + 6 + 3
    assert stats["transfers_by_status"] == {
        "pending": 1, "open": 0, "claimed": 0, "sent": 0, "received": 1,
    }
    assert view["bases"] == [
        {"base_code": "A", "on_hand_total_qty": 7},
        {"base_code": "B", "on_hand_total_qty": 6},
        {"base_code": "C", "on_hand_total_qty": 0},
    ]


def test_admin_dashboard_on_empty_store(store):
    view = DashboardService(store).admin_dashboard(ADMIN)

    assert view["global_stats"]["base_count"] == 0
    assert view["global_stats"]["on_hand_total_qty"] == 0
    assert view["bases"] == []


def test_admin_dashboard_is_admin_only(activity):
    with pytest.raises(Forbidden):
        DashboardService(activity).admin_dashboard(commander("A"))


def test_base_dashboard_for_requesting_base(activity):
    view = DashboardService(activity).base_dashboard(officer("A"))
    kpis = view["kpis"]

    assert view["base"] == "A"
    assert kpis["on_hand_total_qty"] == 7
    assert kpis["purchases"] == {"total_count": 1, "total_qty": 6}
    assert kpis["expenditures"] == {
        "total_count": 2, "total_qty": 3, "assignment_qty": 2, "consumption_qty": 1,
    }
    assert kpis["transfers_in"] == {"total_count": 1, "total_qty": 4}
    assert kpis["transfers_out"] == {"total_count": 0, "total_qty": 0}
    assert kpis["requests"]["pending"] == 1
    assert kpis["requests"]["received"] == 1
    assert view["on_hand_by_equipment"] == [
        {"equipment_code": "RADIO_VHF", "on_hand": 3},
        {"equipment_code": "RIFLE_556", "on_hand": 4},
    ]


def test_base_dashboard_for_supplying_base(activity):
    kpis = DashboardService(activity).base_dashboard(ADMIN, "B")["kpis"]

    assert kpis["on_hand_total_qty"] == 6
    assert kpis["transfers_out"] == {"total_count": 1, "total_qty": 4}
    assert kpis["transfers_in"]["total_count"] == 0
    assert sum(kpis["requests"].values()) == 0


def test_base_dashboard_scope(activity):
    service = DashboardService(activity)

    with pytest.raises(Forbidden):
        service.base_dashboard(officer("A"), "B")
    with pytest.raises(NotFound):
        service.base_dashboard(ADMIN, "ZULU")
    with pytest.raises(ValidationError):
        service.base_dashboard(ADMIN)

    assert service.base_dashboard(ADMIN, "C")["on_hand_by_equipment"] == []
