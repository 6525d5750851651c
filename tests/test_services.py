from datetime import datetime

from fintrack.config import Settings
from fintrack.domain import EMI, ERROR, Bill, Goal, Transaction
from fintrack.events import (
    BILL_SKIPPED,
    EMI_PAID,
    EMI_SKIPPED,
    TRANSACTION_ADDED,
    EventBus,
    register_default_handlers,
)
from fintrack.ledger import Ledger
from fintrack.services import FinanceService
from fintrack.validation import Left, Right

NOW = datetime(2025, 5, 10, 12, 0)


class FakeDisplay:
    def __init__(self):
        self.shown = []
        self.lists = {}
        self.messages = []

    def show(self, totals, insights):
        self.shown.append((totals, insights))

    def list_transactions(self, items):
        self.lists["transactions"] = items

    def list_emis(self, items):
        self.lists["emis"] = items

    def list_goals(self, items):
        self.lists["goals"] = items

    def list_bills(self, items):
        self.lists["bills"] = items

    def notify(self, message, duration_ms):
        self.messages.append((message, duration_ms))


class FakeStore:
    def __init__(self, data=None, failing=()):
        self.data = dict(data or {})
        self.failing = set(failing)
        self.saved = []

    def load(self, key):
        return list(self.data.get(key, []))

    def save(self, key, records):
        if key in self.failing:
            return Left({"error": "persistence_failed", "message": f"Could not save {key}", "key": key})
        self.data[key] = records
        self.saved.append(key)
        return Right(len(records))


def income(amount, id="t0"):
    return Transaction(id=id, description="Salary", amount=amount, kind="income", date="2025-05-01")


def make_service(ledger, settings=None, store=None, bus=None):
    display = FakeDisplay()
    service = FinanceService(ledger=ledger, settings=settings, store=store, display=display, bus=bus)
    return service, display


def test_empty_startup_cycle():
    store = FakeStore()
    service, display = make_service(None, store=store)

    report = service.start(now=NOW)

    assert report.totals.balance == 0
    assert report.insights.health_score == 20
    assert report.insights.survival_days == 0
    assert len(display.shown) == 1
    assert set(display.lists) == {"transactions", "emis", "goals", "bills"}
    assert sorted(store.saved) == ["bills", "emis", "goals", "transactions"]


def test_start_loads_saved_collections():
    store = FakeStore({
        "transactions": [{"id": "t1", "description": "Salary", "amount": 10000, "kind": "income", "date": "2025-05-01"}],
        "emis": [{"id": "e1", "name": "Car", "amount": 2000, "next_due": "2025-06-10"}],
        "goals": [{"id": "g1", "name": "Trip", "target": 50000, "saved": 0}],
        "bills": [],
    })
    service, _ = make_service(None, store=store)

    report = service.start(now=NOW)

    assert report.totals.balance == 10000
    assert report.emis[0].next_due == "2025-06-10"
    assert report.goals[0].saved == 7000
    assert store.data["goals"][0]["saved"] == 7000


def test_due_emi_fires_and_is_logged():
    emi = EMI("e1", "Car Loan", 2000, "2025-05-10")
    ledger = Ledger(transactions=(income(10000),), emis=(emi,))
    bus = EventBus()
    paid = []
    bus.subscribe(EMI_PAID, lambda event, payload: paid.append(payload) or {})
    service, _ = make_service(ledger, bus=bus)

    report = service.run_cycle(now=NOW)

    assert report.totals.balance == 8000
    assert report.transactions[-1].description == "EMI - Car Loan"
    assert report.transactions[-1].amount == 2000
    assert report.emis[0].next_due == "2025-06-10"
    assert paid == [{"description": "EMI - Car Loan", "amount": 2000, "date": "2025-05-10"}]


def test_low_balance_emi_is_skipped_and_notified():
    emi = EMI("e1", "Car Loan", 2000, "2025-05-10")
    ledger = Ledger(transactions=(income(4000),), emis=(emi,))
    bus = EventBus()
    skipped = []
    bus.subscribe(EMI_SKIPPED, lambda event, payload: skipped.append(payload) or {})
    service, display = make_service(ledger, bus=bus)

    report = service.run_cycle(now=NOW)

    assert report.totals.balance == 4000
    assert len(report.transactions) == 1
    assert report.emis == (emi,)
    assert len(report.notifications) == 1
    assert "Low Balance" in display.messages[0][0]
    assert display.messages[0][1] == 2500
    assert skipped[0]["emi_id"] == "e1"


def test_cycle_without_due_items_only_moves_goals():
    ledger = Ledger(
        transactions=(income(10000),),
        emis=(EMI("e1", "Car", 2000, "2025-06-01"),),
        goals=(Goal("g1", "House", 100000),),
        bills=(Bill("b1", "Power", 900, "2025-05-20", autopay=True),),
    )
    service, _ = make_service(ledger)

    first = service.run_cycle(now=NOW)
    second = service.run_cycle(now=NOW)

    assert first.transactions == second.transactions
    assert first.emis == second.emis
    assert first.bills == second.bills
    # goals are funded from current savings on every cycle, so they keep growing
    assert first.goals[0].saved == 7000
    assert second.goals[0].saved == 14000


def test_goals_are_funded_after_emi_debit():
    ledger = Ledger(
        transactions=(income(10000),),
        emis=(EMI("e1", "Car", 2000, "2025-05-10"),),
        goals=(Goal("g1", "A", 1000), Goal("g2", "B", 100000)),
    )
    service, _ = make_service(ledger)

    report = service.run_cycle(now=NOW)

    # savings = 8000 - 3000, split in two, first goal capped
    assert report.goals[0].saved == 1000
    assert report.goals[1].saved == 2500


def test_bill_autopay_not_in_ledger_by_default():
    ledger = Ledger(
        transactions=(income(10000),),
        bills=(Bill("b1", "Netflix", 500, "2025-05-10", "subscription", True),),
    )
    service, display = make_service(ledger)

    report = service.run_cycle(now=NOW)

    assert report.display_balance == 9500
    assert report.totals.balance == 10000
    assert len(report.transactions) == 1
    assert report.bills[0].date == "2025-06-10"
    assert display.messages[0][0] == "Autopay successful for Netflix ₹500"


def test_bill_autopay_recorded_when_configured():
    ledger = Ledger(
        transactions=(income(10000),),
        bills=(Bill("b1", "Netflix", 500, "2025-05-10", "subscription", True),),
    )
    service, _ = make_service(ledger, settings=Settings(record_bill_payments=True))

    report = service.run_cycle(now=NOW)

    assert report.totals.balance == 9500
    assert report.display_balance == 9500
    assert report.transactions[-1].description == "Bill - Netflix"


def test_emi_and_bill_share_running_balance():
    ledger = Ledger(
        transactions=(income(6000),),
        emis=(EMI("e1", "Car", 2000, "2025-05-10"),),
        bills=(Bill("b1", "Power", 1500, "2025-05-01", autopay=True),),
    )
    bus = EventBus()
    skipped = []
    bus.subscribe(BILL_SKIPPED, lambda event, payload: skipped.append(payload) or {})
    service, _ = make_service(ledger, bus=bus)

    report = service.run_cycle(now=NOW)

    # 6000 - 2000 leaves 4000, and 1500 more would breach the minimum
    assert report.display_balance == 4000
    assert report.bills[0].date == "2025-05-01"
    assert report.notifications[-1].level == ERROR
    assert skipped[0]["bill_id"] == "b1"


def test_add_transaction_runs_a_cycle():
    bus = EventBus()
    added = []
    bus.subscribe(TRANSACTION_ADDED, lambda event, payload: added.append(payload) or {})
    service, display = make_service(Ledger(), bus=bus)

    result = service.add_transaction("Salary", "12000", "income", "2025-05-01", now=NOW)

    assert result.is_right()
    report = result.get_or_else(None)
    assert report.totals.income == 12000
    assert len(display.shown) == 1
    assert added[0]["amount"] == 12000


def test_rejected_expense_leaves_state_untouched():
    service, display = make_service(Ledger(transactions=(income(4000),)))

    result = service.add_transaction("TV", 1500, "expense", "2025-05-02", now=NOW)

    assert result.is_left()
    assert result.get_error()["error"] == "minimum_balance"
    assert len(service.ledger.transactions) == 1
    assert display.shown == []


def test_add_emi_goal_and_bill():
    service, _ = make_service(Ledger(transactions=(income(20000),)))

    emi_report = service.add_emi("Car", 2000, "2025-05-10", now=NOW).get_or_else(None)
    assert emi_report.emis[0].next_due == "2025-06-10"
    assert emi_report.totals.balance == 18000

    goal_report = service.add_goal("Trip", 4000, now=NOW).get_or_else(None)
    assert goal_report.goals[0].saved == 4000

    bill_report = service.add_bill("Hotstar", 299, "2025-05-25", "ott", True, now=NOW).get_or_else(None)
    assert bill_report.bills[0].category == "subscription"


def test_add_bill_missing_fields_rejected():
    service, display = make_service(Ledger())
    result = service.add_bill("", 500, "2025-05-10", now=NOW)
    assert result.is_left()
    assert service.ledger.bills == ()
    assert display.shown == []


def test_persistence_failure_is_notified_not_raised():
    store = FakeStore(failing={"goals"})
    service, display = make_service(Ledger(transactions=(income(5000),)), store=store)

    report = service.run_cycle(now=NOW)

    assert sorted(store.saved) == ["bills", "emis", "transactions"]
    assert report.notifications[-1].level == ERROR
    assert display.messages[-1][0] == "Could not save goals"
    assert report.totals.balance == 5000


def test_cycle_alerts_from_bus_handlers():
    bus = EventBus()
    register_default_handlers(bus)
    service, _ = make_service(Ledger(transactions=(income(1000),)), bus=bus)

    report = service.run_cycle(now=NOW)

    assert len(report.alerts) == 1
    assert "protected minimum" in report.alerts[0]


def test_ancient_emi_date_is_rejected_and_cycles_keep_running():
    service, _ = make_service(Ledger(transactions=(income(20000),)))

    assert service.add_emi("Car", 500, "0202-05-10", now=NOW).is_left()
    assert service.ledger.emis == ()
    assert service.run_cycle(now=NOW).totals.balance == 20000


def test_notifications_carry_configured_duration():
    emi = EMI("e1", "Car Loan", 2000, "2025-05-10")
    ledger = Ledger(transactions=(income(4000),), emis=(emi,))
    service, display = make_service(ledger, settings=Settings(notify_ms=4000))

    report = service.run_cycle(now=NOW)

    assert report.notifications[0].duration_ms == 4000
    assert display.messages[0][1] == 4000
