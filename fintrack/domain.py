from dataclasses import dataclass
from typing import Optional

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_KINDS = (INCOME, EXPENSE)

ORDINARY = "ordinary"
SUBSCRIPTION = "subscription"
BILL_CATEGORIES = (ORDINARY, SUBSCRIPTION)
# older saves used "ott" for streaming subscriptions
BILL_CATEGORY_ALIASES = {"ott": SUBSCRIPTION}

INFO = "info"
WARNING = "warning"
ERROR = "error"


@dataclass(frozen=True)
class Transaction:
    id: str
    description: str
    amount: float    # always non-negative, sign comes from kind
    kind: str        # "income" or "expense"
    date: str        # "YYYY-MM-DD"


# A recurring loan installment
@dataclass(frozen=True)
class EMI:
    id: str
    name: str
    amount: float
    next_due: str    # "YYYY-MM-DD"


@dataclass(frozen=True)
class Bill:
    id: str
    name: str
    amount: float
    date: str
    category: str = ORDINARY
    autopay: bool = False


@dataclass(frozen=True)
class Goal:
    id: str
    name: str
    target: float
    saved: float = 0.0

    @property
    def progress(self) -> float:
        return min(1.0, self.saved / self.target) if self.target > 0 else 0.0


@dataclass(frozen=True)
class Totals:
    income: float
    expense: float
    balance: float
    savings: float


@dataclass(frozen=True)
class Insights:
    health_score: int
    survival_days: int
    forecast: int


DEFAULT_NOTIFY_MS = 2500


@dataclass(frozen=True)
class Notification:
    message: str
    level: str = INFO
    source_id: Optional[str] = None  # EMI or bill id, if any
    duration_ms: int = DEFAULT_NOTIFY_MS
