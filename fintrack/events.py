from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

__all__ = [
    'Event', 'EventBus',
    'TRANSACTION_ADDED', 'EMI_PAID', 'EMI_SKIPPED', 'BILL_PAID', 'BILL_SKIPPED', 'CYCLE_COMPLETED',
    'history_row', 'check_balance_handler', 'register_default_handlers',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event, dict], dict]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        return [handler(event, payload) for handler in self._subscribers[name]]

    def unsubscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if handler in self._subscribers.get(name, []):
            self._subscribers[name].remove(handler)


TRANSACTION_ADDED = "TRANSACTION_ADDED"
EMI_PAID = "EMI_PAID"
EMI_SKIPPED = "EMI_SKIPPED"
BILL_PAID = "BILL_PAID"
BILL_SKIPPED = "BILL_SKIPPED"
CYCLE_COMPLETED = "CYCLE_COMPLETED"


def history_row(event: Event, payload: dict) -> dict:
    """Flatten an event into a row for an event log table."""
    return {"event": event.name, "ts": event.ts[:19], **payload}


def check_balance_handler(event: Event, payload: dict) -> dict:
    balance = payload.get("balance", 0)
    minimum = payload.get("minimum", 0)

    if balance < minimum:
        return {
            "alert": f"Balance {balance:,.0f} is below the protected minimum of {minimum:,.0f}",
            "balance": balance,
            "minimum": minimum,
        }
    return {}


def register_default_handlers(bus: EventBus) -> None:
    bus.subscribe(CYCLE_COMPLETED, check_balance_handler)
