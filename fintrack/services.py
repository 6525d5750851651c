import logging
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from fintrack.allocation import allocate
from fintrack.config import Settings
from fintrack.domain import (
    EMI,
    ERROR,
    INFO,
    Bill,
    Goal,
    Insights,
    Notification,
    Totals,
    Transaction,
)
from fintrack.events import (
    BILL_PAID,
    BILL_SKIPPED,
    CYCLE_COMPLETED,
    EMI_PAID,
    EMI_SKIPPED,
    TRANSACTION_ADDED,
    EventBus,
)
from fintrack.insights import compute_insights
from fintrack.ledger import Ledger
from fintrack.recurrence import process_bill_autopay, process_emis
from fintrack.storage import KEYS, from_records, to_records
from fintrack.validation import (
    Either,
    validate_bill_input,
    validate_emi_input,
    validate_goal_input,
    validate_transaction_input,
)

logger = logging.getLogger(__name__)


class Persistence(Protocol):
    def load(self, key: str) -> List[Dict[str, Any]]: ...

    def save(self, key: str, records: List[Dict[str, Any]]) -> Either[dict, int]: ...


class Display(Protocol):
    def show(self, totals: Totals, insights: Insights) -> None: ...

    def list_transactions(self, items: Sequence[Transaction]) -> None: ...

    def list_emis(self, items: Sequence[EMI]) -> None: ...

    def list_goals(self, items: Sequence[Goal]) -> None: ...

    def list_bills(self, items: Sequence[Bill]) -> None: ...

    def notify(self, message: str, duration_ms: int) -> None: ...


@dataclass
class CycleReport:
    totals: Totals
    insights: Insights
    display_balance: float  # balance after autopay, which may not be in the log
    notifications: Tuple[Notification, ...]
    transactions: Tuple[Transaction, ...]
    emis: Tuple[EMI, ...]
    goals: Tuple[Goal, ...]
    bills: Tuple[Bill, ...]
    alerts: List[str] = field(default_factory=list)


class FinanceService:
    """Runs the update cycle over a ledger and pushes results to collaborators.

    One cycle: totals -> EMIs -> bill autopay -> totals again -> goal
    allocation -> insights, then notifications, display and persistence.
    Every user mutation validates, appends and runs exactly one cycle.
    """

    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        settings: Optional[Settings] = None,
        store: Optional[Persistence] = None,
        display: Optional[Display] = None,
        bus: Optional[EventBus] = None,
    ):
        self.settings = settings or Settings()
        self.ledger = ledger or Ledger(minimum=self.settings.min_balance)
        # savings and automatic debits must use the same floor
        self.ledger.minimum = self.settings.min_balance
        self.store = store
        self.display = display
        self.bus = bus or EventBus()

    def start(self, now: Optional[datetime] = None) -> CycleReport:
        """Load saved collections (if there is a store) and run the first cycle."""
        if self.store is not None:
            loaded = {key: from_records(key, self.store.load(key)) for key in KEYS}
            self.ledger = Ledger(
                transactions=loaded["transactions"],
                emis=loaded["emis"],
                goals=loaded["goals"],
                bills=loaded["bills"],
                minimum=self.settings.min_balance,
            )
            logger.info(
                "Loaded %d transactions, %d EMIs, %d goals, %d bills",
                *(len(loaded[key]) for key in KEYS),
            )
        return self.run_cycle(now)

    def run_cycle(self, now: Optional[datetime] = None) -> CycleReport:
        now = now or datetime.now()
        today = now.date()
        s = self.settings
        ledger = self.ledger

        totals = ledger.compute_totals()

        emi_run = process_emis(ledger.emis, totals.balance, now, s.min_balance)
        ledger.extend_transactions(emi_run.new_transactions)
        ledger.replace_emis(emi_run.emis)

        bill_run = process_bill_autopay(
            ledger.bills,
            emi_run.balance,
            today,
            s.min_balance,
            record_payments=s.record_bill_payments,
            currency=s.currency,
        )
        ledger.replace_bills(bill_run.bills)
        ledger.extend_transactions(bill_run.new_transactions)

        totals = ledger.compute_totals()
        ledger.replace_goals(allocate(totals.savings, ledger.goals))
        insights = compute_insights(totals, today)

        self._publish_recurrence_events(emi_run.new_transactions, emi_run.notifications, bill_run.notifications)

        notifications = [
            replace(n, duration_ms=s.notify_ms) for n in emi_run.notifications + bill_run.notifications
        ]
        for n in notifications:
            self._notify(n)

        if self.display is not None:
            self.display.show(totals, insights)
            self.display.list_transactions(ledger.transactions)
            self.display.list_emis(ledger.emis)
            self.display.list_goals(ledger.goals)
            self.display.list_bills(ledger.bills)

        notifications.extend(self._persist())

        results = self.bus.publish(CYCLE_COMPLETED, {
            "balance": bill_run.balance,
            "minimum": s.min_balance,
            "savings": totals.savings,
            "health_score": insights.health_score,
        })

        logger.debug(
            "Cycle done: balance=%.2f savings=%.2f score=%d notifications=%d",
            totals.balance, totals.savings, insights.health_score, len(notifications),
        )

        return CycleReport(
            totals=totals,
            insights=insights,
            display_balance=bill_run.balance,
            notifications=tuple(notifications),
            transactions=ledger.transactions,
            emis=ledger.emis,
            goals=ledger.goals,
            bills=ledger.bills,
            alerts=[r["alert"] for r in results if isinstance(r, dict) and "alert" in r],
        )

    def add_transaction(self, description, amount, kind, date, now=None) -> Either[dict, CycleReport]:
        balance = self.ledger.compute_totals().balance
        validated = validate_transaction_input(
            description, amount, kind, date, balance, self.settings.min_balance
        )
        return self._commit(validated, self._append_transaction, now)

    def add_emi(self, name, amount, next_due, now=None) -> Either[dict, CycleReport]:
        return self._commit(validate_emi_input(name, amount, next_due), self.ledger.add_emi, now)

    def add_goal(self, name, target, now=None) -> Either[dict, CycleReport]:
        return self._commit(validate_goal_input(name, target), self.ledger.add_goal, now)

    def add_bill(self, name, amount, date, category=None, autopay=False, now=None) -> Either[dict, CycleReport]:
        return self._commit(
            validate_bill_input(name, amount, date, category, autopay), self.ledger.add_bill, now
        )

    def _commit(self, validated: Either, append: Callable[[Any], None], now) -> Either[dict, CycleReport]:
        if validated.is_left():
            logger.info("Rejected input: %s", validated.get_error()["message"])
            return validated

        def apply(record) -> CycleReport:
            append(record)
            return self.run_cycle(now)

        return validated.map(apply)

    def _append_transaction(self, tx: Transaction) -> None:
        self.ledger.add_transaction(tx)
        self.bus.publish(TRANSACTION_ADDED, asdict(tx))

    def _notify(self, n: Notification) -> None:
        if self.display is not None:
            self.display.notify(n.message, n.duration_ms)

    def _persist(self) -> List[Notification]:
        if self.store is None:
            return []

        failures = []
        for key, items in self.ledger.snapshot().items():
            result = self.store.save(key, to_records(items))
            if result.is_left():
                n = Notification(result.get_error()["message"], ERROR, duration_ms=self.settings.notify_ms)
                self._notify(n)
                failures.append(n)
        return failures

    def _publish_recurrence_events(self, emi_transactions, emi_notes, bill_notes) -> None:
        for t in emi_transactions:
            self.bus.publish(EMI_PAID, {"description": t.description, "amount": t.amount, "date": t.date})
        for n in emi_notes:
            self.bus.publish(EMI_SKIPPED, {"emi_id": n.source_id, "message": n.message})
        for n in bill_notes:
            name = BILL_PAID if n.level == INFO else BILL_SKIPPED
            self.bus.publish(name, {"bill_id": n.source_id, "message": n.message})
