import random
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.errors import InsufficientStock, ValidationError
from app.store.ledger import KeyedLocks, StockLedger


def test_adjust_credits_and_debits():
    ledger = StockLedger()

    assert ledger.adjust("A", "RIFLE_556", 10) == 10
    assert ledger.adjust("A", "RIFLE_556", -3) == 7
    assert ledger.quantity("A", "RIFLE_556") == 7
    assert ledger.quantity("B", "RIFLE_556") == 0


def test_adjust_below_zero_is_rejected_and_leaves_quantity():
    ledger = StockLedger()
    ledger.adjust("A", "RIFLE_556", 7)

    with pytest.raises(InsufficientStock) as exc:
        ledger.adjust("A", "RIFLE_556", -100)

    assert exc.value.available == 7
    assert exc.value.requested == 100
    assert ledger.quantity("A", "RIFLE_556") == 7


def test_adjust_rejects_non_integer_delta():
    ledger = StockLedger()

    with pytest.raises(ValidationError):
        ledger.adjust("A", "RIFLE_556", 1.5)
    with pytest.raises(ValidationError):
        ledger.adjust("A", "RIFLE_556", True)


def test_levels_filters_by_base_and_equipment():
    ledger = StockLedger()
    ledger.adjust("A", "RIFLE_556", 4)
    ledger.adjust("A", "RADIO_VHF", 2)
    ledger.adjust("B", "RIFLE_556", 1)

    assert [l["equipment_code"] for l in ledger.levels(base_code="A")] == ["RADIO_VHF", "RIFLE_556"]
    assert [l["base_code"] for l in ledger.levels(equipment_code="RIFLE_556")] == ["A", "B"]


def test_random_sequences_never_go_negative():
    rng = random.Random(20240611)
    ledger = StockLedger()
    expected = 0

    for _ in range(2000):
        delta = rng.randint(-15, 15) or 1
        try:
            ledger.adjust("A", "RIFLE_556", delta)
            expected += delta
        except InsufficientStock:
            assert expected + delta < 0
        assert ledger.quantity("A", "RIFLE_556") == expected >= 0


def test_concurrent_debits_on_same_key_never_oversell():
    ledger = StockLedger()
    ledger.adjust("A", "RIFLE_556", 10)
    barrier = threading.Barrier(25)

    def take_one():
        barrier.wait()
        try:
            ledger.adjust("A", "RIFLE_556", -1)
            return True
        except InsufficientStock:
            return False

    with ThreadPoolExecutor(max_workers=25) as pool:
        results = list(pool.map(lambda _: take_one(), range(25)))

    assert results.count(True) == 10
    assert ledger.quantity("A", "RIFLE_556") == 0


def test_held_key_does_not_block_other_keys():
    ledger = StockLedger()
    done = threading.Event()

    with ledger._locks.hold(("A", "RIFLE_556")):
        worker = threading.Thread(target=lambda: (ledger.adjust("B", "RIFLE_556", 1), done.set()))
        worker.start()
        assert done.wait(timeout=2)
        worker.join()

    assert ledger.quantity("B", "RIFLE_556") == 1


def test_keyed_locks_hold_multiple_keys_in_any_order():
    locks = KeyedLocks()

    def grab(keys):
        for _ in range(200):
            with locks.hold(*keys):
                pass

    first = threading.Thread(target=grab, args=(["x", "y"],))
    second = threading.Thread(target=grab, args=(["y", "x"],))
    first.start()
    second.start()
    first.join(timeout=5)
    second.join(timeout=5)

    assert not first.is_alive() and not second.is_alive()


def test_keyed_locks_forget_keys_once_released():
    locks = KeyedLocks()

    with locks.hold("x", "y"):
        assert len(locks) == 2
    assert len(locks) == 0


def test_keyed_lock_entry_survives_while_someone_waits():
    locks = KeyedLocks()
    entered = threading.Event()

    def waiter():
        with locks.hold("x"):
            entered.set()

    with locks.hold("x"):
        worker = threading.Thread(target=waiter)
        worker.start()
        assert not entered.wait(timeout=0.2)
        assert len(locks) == 1
    worker.join(timeout=2)

    assert entered.is_set()
    assert len(locks) == 0
