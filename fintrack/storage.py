"""JSON file persistence, one file per collection.

Records are stored as plain dicts with ISO date strings. Loading also
accepts the camelCase field names of the old browser export (``desc``,
``type``, ``nextDue``) so existing data can be imported as is.
Records with negative amounts or a non-positive goal target are skipped;
a goal's ``saved`` is clamped into ``[0, target]``.
"""
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Tuple

from fintrack.config import TRUTHY
from fintrack.domain import EMI, EXPENSE, ORDINARY, Bill, Goal, Transaction
from fintrack.validation import Either, Left, Right, normalize_category, parse_date

logger = logging.getLogger(__name__)

KEYS = ("transactions", "emis", "goals", "bills")


def _iso(value: Any) -> str:
    parsed = parse_date(value)
    if parsed.is_none():
        raise ValueError(f"bad date {value!r}")
    return parsed.get_or_else("")


def _amount(value: Any) -> float:
    amount = float(value)
    if amount < 0:
        raise ValueError(f"negative amount {amount}")
    return amount


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    return bool(value)


def transaction_from_record(r: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=str(r["id"]),
        description=r.get("description", r.get("desc", "")) or "",
        amount=_amount(r.get("amount", 0)),
        kind=r.get("kind", r.get("type", EXPENSE)),
        date=_iso(r.get("date")),
    )


def emi_from_record(r: Dict[str, Any]) -> EMI:
    return EMI(
        id=str(r["id"]),
        name=r.get("name", ""),
        amount=_amount(r.get("amount", 0)),
        next_due=_iso(r.get("next_due", r.get("nextDue"))),
    )


def goal_from_record(r: Dict[str, Any]) -> Goal:
    target = float(r["target"])
    if target <= 0:
        raise ValueError(f"non-positive target {target}")
    saved = float(r.get("saved") or 0)
    return Goal(
        id=str(r["id"]),
        name=r.get("name", ""),
        target=target,
        saved=min(max(saved, 0.0), target),
    )


def bill_from_record(r: Dict[str, Any]) -> Bill:
    category = normalize_category(r.get("category", r.get("type"))).get_or_else(ORDINARY)
    return Bill(
        id=str(r["id"]),
        name=r.get("name", ""),
        amount=_amount(r.get("amount", 0)),
        date=_iso(r.get("date")),
        category=category,
        autopay=_flag(r.get("autopay", False)),
    )


FROM_RECORD: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "transactions": transaction_from_record,
    "emis": emi_from_record,
    "goals": goal_from_record,
    "bills": bill_from_record,
}


def to_records(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [asdict(item) for item in items]


def from_records(key: str, records: Iterable[Dict[str, Any]]) -> Tuple[Any, ...]:
    convert = FROM_RECORD[key]
    items = []
    for r in records:
        try:
            items.append(convert(r))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed %s record %r: %s", key, r, e)
    return tuple(items)


class JsonStore:
    def __init__(self, data_dir: str = "data"):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> List[Dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read %s: %s", path, e)
            return []
        if not isinstance(data, list):
            logger.error("Expected a list in %s, got %s", path, type(data).__name__)
            return []
        return data

    def save(self, key: str, records: List[Dict[str, Any]]) -> Either[dict, int]:
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
        except (OSError, TypeError) as e:
            logger.error("Could not write %s: %s", path, e)
            return Left({"error": "persistence_failed", "message": f"Could not save {key}: {e}", "key": key})
        return Right(len(records))
