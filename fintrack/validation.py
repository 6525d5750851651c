import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Callable, Generic, Optional, TypeVar
from uuid import uuid4

from fintrack.domain import (
    BILL_CATEGORIES,
    BILL_CATEGORY_ALIASES,
    EMI,
    EXPENSE,
    ORDINARY,
    TRANSACTION_KINDS,
    Bill,
    Goal,
    Transaction,
)
from fintrack.policy import PROTECTED_MINIMUM, can_debit, shortfall

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')

# due dates have to survive month arithmetic on pandas timestamps
MIN_YEAR = 1900
MAX_YEAR = 2200


class Maybe(Generic[T], ABC):

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_none(self) -> bool:
        pass


class Some(Generic[T], Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_none(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Some({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Generic[T], Maybe[T]):

    def get_or_else(self, default: T) -> T:
        return default

    def is_none(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    @abstractmethod
    def is_left(self) -> bool:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Generic[E, T], Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Right(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def is_left(self) -> bool:
        return False

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Generic[E, T], Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        return Left(self._error)

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def is_left(self) -> bool:
        return True

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


def parse_amount(raw: Any) -> Maybe[float]:
    if raw is None or isinstance(raw, bool):
        return Nothing()
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return Nothing()
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return Nothing()
    if math.isnan(value) or math.isinf(value):
        return Nothing()
    return Some(value)


def parse_date(raw: Any) -> Maybe[str]:
    """Normalise a date object or ISO string to ``YYYY-MM-DD``.

    Years outside ``MIN_YEAR..MAX_YEAR`` are rejected.
    """
    if isinstance(raw, date):
        day = raw.date() if isinstance(raw, datetime) else raw
    elif not isinstance(raw, str) or raw.strip() == "":
        return Nothing()
    else:
        try:
            day = date.fromisoformat(raw.strip()[:10])
        except ValueError:
            return Nothing()
    if not MIN_YEAR <= day.year <= MAX_YEAR:
        return Nothing()
    return Some(day.isoformat())


def normalize_category(raw: Optional[str]) -> Maybe[str]:
    if raw is None or raw == "":
        return Some(ORDINARY)
    key = str(raw).strip().lower()
    key = BILL_CATEGORY_ALIASES.get(key, key)
    return Some(key) if key in BILL_CATEGORIES else Nothing()


def _error(code: str, message: str, **extra) -> Left:
    return Left({"error": code, "message": message, **extra})


def validate_transaction_input(
    description: Optional[str],
    amount: Any,
    kind: str,
    tx_date: Any,
    balance: float,
    minimum: float = PROTECTED_MINIMUM,
) -> Either[dict, Transaction]:
    parsed = parse_amount(amount)
    if parsed.is_none():
        return _error("invalid_amount", "Amount must be a number", amount=amount)
    value = parsed.get_or_else(0.0)
    if value < 0:
        return _error("negative_amount", "Amount cannot be negative", amount=value)

    if kind not in TRANSACTION_KINDS:
        return _error("unknown_kind", f"Unknown transaction type {kind!r}", kind=kind)

    day = date.today().isoformat() if tx_date in (None, "") else parse_date(tx_date).get_or_else(None)
    if day is None:
        return _error("invalid_date", "Date must be YYYY-MM-DD", date=tx_date)

    if kind == EXPENSE and not can_debit(balance, value, minimum):
        return _error(
            "minimum_balance",
            "Minimum balance required!",
            balance=balance,
            minimum=minimum,
            shortfall=shortfall(balance, value, minimum),
        )

    return Right(Transaction(
        id=str(uuid4()),
        description=(description or "").strip(),
        amount=value,
        kind=kind,
        date=day,
    ))


def validate_emi_input(name: Optional[str], amount: Any, next_due: Any) -> Either[dict, EMI]:
    if not name or not str(name).strip():
        return _error("missing_name", "Loan name is required")

    parsed = parse_amount(amount)
    if parsed.is_none() or parsed.get_or_else(-1.0) < 0:
        return _error("invalid_amount", "EMI amount must be a non-negative number", amount=amount)

    due = parse_date(next_due)
    if due.is_none():
        return _error("invalid_date", "Next due date must be YYYY-MM-DD", date=next_due)

    return Right(EMI(
        id=str(uuid4()),
        name=str(name).strip(),
        amount=parsed.get_or_else(0.0),
        next_due=due.get_or_else(""),
    ))


def validate_goal_input(name: Optional[str], target: Any) -> Either[dict, Goal]:
    if not name or not str(name).strip():
        return _error("missing_name", "Goal name is required")

    parsed = parse_amount(target)
    if parsed.is_none() or parsed.get_or_else(0.0) <= 0:
        return _error("invalid_target", "Goal target must be a positive number", target=target)

    return Right(Goal(id=str(uuid4()), name=str(name).strip(), target=parsed.get_or_else(0.0)))


def validate_bill_input(
    name: Optional[str],
    amount: Any,
    bill_date: Any,
    category: Optional[str] = ORDINARY,
    autopay: bool = False,
) -> Either[dict, Bill]:
    parsed = parse_amount(amount)
    due = parse_date(bill_date)
    # a zero amount counts as a missing field
    if not name or not str(name).strip() or parsed.get_or_else(0.0) == 0 or due.is_none():
        return _error("missing_fields", "Fill all fields", name=name, amount=amount, date=bill_date)
    if parsed.get_or_else(0.0) < 0:
        return _error("negative_amount", "Bill amount cannot be negative", amount=amount)

    cat = normalize_category(category)
    if cat.is_none():
        return _error("unknown_category", f"Unknown bill category {category!r}", category=category)

    return Right(Bill(
        id=str(uuid4()),
        name=str(name).strip(),
        amount=parsed.get_or_else(0.0),
        date=due.get_or_else(""),
        category=cat.get_or_else(ORDINARY),
        autopay=bool(autopay),
    ))
