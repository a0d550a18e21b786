import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.errors import Conflict, Forbidden, InsufficientStock, NotFound, ValidationError
from app.modules.catalog.service import CatalogService
from app.modules.logistics.service import LogisticsService
from app.modules.logistics.transfers import TransferWorkflow

from conftest import ADMIN, commander, officer


@pytest.fixture
def service(seeded):
    return LogisticsService(seeded)


@pytest.fixture
def workflow(seeded):
    return TransferWorkflow(seeded)


@pytest.fixture
def stocked(seeded, service):
    """B holds 10 rifles."""
    service.record_purchase({"base_code": "B", "equipment_code": "RIFLE_556", "quantity": 10}, ADMIN)
    return seeded


def on_hand(store, base):
    return store.stock_quantity(base, "RIFLE_556")


def request(workflow, quantity=5, actor=None):
    return workflow.create_request(
        {"request_base": "A", "equipment_code": "RIFLE_556", "quantity": quantity},
        actor or officer("A"),
    )


def open_request(workflow, quantity=5):
    transfer = request(workflow, quantity)
    return workflow.approve(transfer["id"], commander("A"))


def claimed_request(workflow, quantity=5):
    transfer = open_request(workflow, quantity)
    return workflow.claim(transfer["id"], commander("B"))


def test_full_lifecycle_moves_stock(stocked, workflow):
    transfer = request(workflow)
    assert transfer["status"] == "pending"
    assert transfer["supplier_base"] is None
    assert transfer["created_by_name"] == "Officer A"

    transfer = workflow.approve(transfer["id"], commander("A"))
    assert transfer["status"] == "open"
    assert transfer["approved_by"] == "cmd-A"

    transfer = workflow.claim(transfer["id"], commander("B"))
    assert transfer["status"] == "claimed"
    assert transfer["supplier_base"] == "B"
    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (0, 10)

    transfer = workflow.send(transfer["id"], commander("B"))
    assert transfer["status"] == "sent"
    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (0, 5)

    transfer = workflow.receive(transfer["id"], officer("A"))
    assert transfer["status"] == "received"
    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (5, 5)

    for field in ("requested_at", "approved_at", "claimed_at", "sent_at", "received_at"):
        assert transfer[field] is not None


def test_send_on_open_transfer_is_conflict(stocked, workflow):
    transfer = open_request(workflow)

    with pytest.raises(Conflict):
        workflow.send(transfer["id"], commander("B"))

    assert workflow.get_transfer(transfer["id"], ADMIN)["status"] == "open"
    assert on_hand(stocked, "B") == 10


@pytest.mark.parametrize("step", ["claim", "send", "receive"])
def test_pending_transfer_rejects_later_steps(stocked, workflow, step):
    transfer = request(workflow)
    actor = officer("A") if step == "receive" else commander("B")

    with pytest.raises(Conflict):
        getattr(workflow, step)(transfer["id"], ADMIN if step == "send" else actor)

    assert workflow.get_transfer(transfer["id"], ADMIN)["status"] == "pending"


def test_approve_twice_is_conflict(workflow):
    transfer = open_request(workflow)

    with pytest.raises(Conflict):
        workflow.approve(transfer["id"], commander("A"))


def test_receive_before_send_is_conflict(stocked, workflow):
    transfer = claimed_request(workflow)

    with pytest.raises(Conflict):
        workflow.receive(transfer["id"], officer("A"))

    assert workflow.get_transfer(transfer["id"], ADMIN)["status"] == "claimed"
    assert on_hand(stocked, "A") == 0


def test_send_without_supplier_stock_leaves_claim(stocked, workflow):
    transfer = claimed_request(workflow, quantity=50)

    with pytest.raises(InsufficientStock):
        workflow.send(transfer["id"], commander("B"))

    assert workflow.get_transfer(transfer["id"], ADMIN)["status"] == "claimed"
    assert on_hand(stocked, "B") == 10


def test_send_and_receive_are_idempotent(stocked, workflow):
    transfer = claimed_request(workflow)

    workflow.send(transfer["id"], commander("B"))
    again = workflow.send(transfer["id"], commander("B"))
    assert again["status"] == "sent"
    assert on_hand(stocked, "B") == 5

    workflow.receive(transfer["id"], officer("A"))
    again = workflow.receive(transfer["id"], officer("A"))
    assert again["status"] == "received"
    assert on_hand(stocked, "A") == 5

    # A late send retry after delivery changes nothing either
    workflow.send(transfer["id"], commander("B"))
    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (5, 5)


def test_concurrent_claims_have_exactly_one_winner(stocked, workflow):
    catalog = CatalogService(stocked)
    suppliers = ["B", "C"] + [f"S{i}" for i in range(8)]
    for code in suppliers[2:]:
        catalog.create_base({"base_code": code}, ADMIN)

    transfer = open_request(workflow)
    barrier = threading.Barrier(len(suppliers))

    def attempt(base):
        barrier.wait()
        try:
            workflow.claim(transfer["id"], commander(base))
            return base
        except Conflict:
            return None

    with ThreadPoolExecutor(max_workers=len(suppliers)) as pool:
        results = list(pool.map(attempt, suppliers))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    final = workflow.get_transfer(transfer["id"], ADMIN)
    assert final["status"] == "claimed"
    assert final["supplier_base"] == winners[0]


def test_claim_rules(stocked, workflow):
    transfer = open_request(workflow)

    with pytest.raises(Forbidden):
        workflow.claim(transfer["id"], officer("B"))
    with pytest.raises(Forbidden):
        workflow.claim(transfer["id"], commander("B"), supplier_base="C")
    with pytest.raises(ValidationError):
        workflow.claim(transfer["id"], commander("A"))
    with pytest.raises(ValidationError):
        workflow.claim(transfer["id"], ADMIN)
    with pytest.raises(NotFound):
        workflow.claim(transfer["id"], ADMIN, supplier_base="ZULU")

    claimed = workflow.claim(transfer["id"], ADMIN, supplier_base="C")
    assert claimed["supplier_base"] == "C"
    assert claimed["claimed_by"] == "admin-1"

    with pytest.raises(Conflict):
        workflow.claim(transfer["id"], commander("B"))


def test_role_guards_on_transitions(stocked, workflow):
    transfer = request(workflow)

    with pytest.raises(Forbidden):
        workflow.approve(transfer["id"], officer("A"))
    with pytest.raises(Forbidden):
        workflow.approve(transfer["id"], commander("B"))

    workflow.approve(transfer["id"], commander("A"))
    workflow.claim(transfer["id"], commander("B"))

    with pytest.raises(Forbidden):
        workflow.send(transfer["id"], commander("C"))
    with pytest.raises(Forbidden):
        workflow.send(transfer["id"], officer("B"))

    workflow.send(transfer["id"], commander("B"))

    with pytest.raises(Forbidden):
        workflow.receive(transfer["id"], commander("B"))
    workflow.receive(transfer["id"], commander("A"))


def test_request_validation(workflow):
    with pytest.raises(Forbidden):
        workflow.create_request({"request_base": "B", "equipment_code": "RIFLE_556", "quantity": 1}, officer("A"))
    with pytest.raises(ValidationError):
        workflow.create_request({"request_base": "A", "equipment_code": "OLD_HELMET", "quantity": 1}, officer("A"))
    with pytest.raises(ValidationError):
        workflow.create_request({"request_base": "A", "equipment_code": "RIFLE_556", "quantity": 0}, officer("A"))
    with pytest.raises(NotFound):
        workflow.create_request({"request_base": "A", "equipment_code": "LASER", "quantity": 1}, officer("A"))
    with pytest.raises(ValidationError):
        workflow.create_request({"equipment_code": "RIFLE_556", "quantity": 1}, ADMIN)


def test_missing_transfer_is_not_found(workflow):
    with pytest.raises(NotFound):
        workflow.approve("nope", ADMIN)
    with pytest.raises(NotFound):
        workflow.get_transfer("nope", ADMIN)


# =========================
# DELETE
# =========================

def test_delete_received_transfer_restores_both_sides(stocked, workflow):
    transfer = claimed_request(workflow)
    workflow.send(transfer["id"], commander("B"))
    workflow.receive(transfer["id"], officer("A"))

    workflow.delete(transfer["id"], ADMIN)

    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (0, 10)
    with pytest.raises(NotFound):
        workflow.get_transfer(transfer["id"], ADMIN)


def test_delete_sent_transfer_credits_supplier(stocked, workflow):
    transfer = claimed_request(workflow)
    workflow.send(transfer["id"], commander("B"))

    workflow.delete(transfer["id"], ADMIN)

    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (0, 10)


def test_delete_pending_transfer_touches_no_stock(stocked, workflow):
    transfer = request(workflow)

    workflow.delete(transfer["id"], ADMIN)

    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (0, 10)


def test_delete_received_transfer_after_consumption_fails(stocked, service, workflow):
    transfer = claimed_request(workflow)
    workflow.send(transfer["id"], commander("B"))
    workflow.receive(transfer["id"], officer("A"))
    service.record_expenditure(
        {"base_code": "A", "equipment_code": "RIFLE_556", "quantity": 3, "kind": "consumption"}, officer("A")
    )

    with pytest.raises(InsufficientStock):
        workflow.delete(transfer["id"], ADMIN)

    assert workflow.get_transfer(transfer["id"], ADMIN)["status"] == "received"
    assert (on_hand(stocked, "A"), on_hand(stocked, "B")) == (2, 5)


def test_only_admin_deletes_transfers(workflow):
    transfer = request(workflow)

    with pytest.raises(Forbidden):
        workflow.delete(transfer["id"], commander("A"))


# =========================
# READ MODELS
# =========================

def test_visibility_and_listing(stocked, workflow):
    pending = request(workflow)
    opened = open_request(workflow, quantity=2)

    # open requests are visible to would-be suppliers, pending ones are not
    assert workflow.get_transfer(opened["id"], commander("C"))["status"] == "open"
    with pytest.raises(Forbidden):
        workflow.get_transfer(pending["id"], commander("C"))
    with pytest.raises(Forbidden):
        workflow.get_transfer(opened["id"], officer("C"))

    records, total, _, _ = workflow.list_open(commander("C"), {})
    assert total == 1 and records[0]["id"] == opened["id"]
    with pytest.raises(Forbidden):
        workflow.list_open(officer("C"), {})

    records, total, _, _ = workflow.list_transfers(officer("A"), {})
    assert total == 2
    records, total, _, _ = workflow.list_transfers(officer("A"), {}, status="pending")
    assert [r["id"] for r in records] == [pending["id"]]
    records, total, _, _ = workflow.list_transfers(commander("B"), {})
    assert total == 0

    workflow.claim(opened["id"], commander("B"))
    records, total, _, _ = workflow.list_transfers(commander("B"), {})
    assert [r["id"] for r in records] == [opened["id"]]

    with pytest.raises(ValidationError):
        workflow.list_transfers(ADMIN, {}, status="lost")
    with pytest.raises(Forbidden):
        workflow.list_transfers(officer("A"), {"base": "B"})


def test_open_list_leaves_out_own_requests(stocked, workflow):
    own = open_request(workflow)
    theirs = workflow.create_request({"request_base": "B", "equipment_code": "RIFLE_556", "quantity": 1}, officer("B"))
    workflow.approve(theirs["id"], commander("B"))

    records, total, _, _ = workflow.list_open(commander("A"), {})
    assert [r["id"] for r in records] == [theirs["id"]]
    assert total == 1

    records, total, _, _ = workflow.list_open(ADMIN, {})
    assert {r["id"] for r in records} == {own["id"], theirs["id"]}
