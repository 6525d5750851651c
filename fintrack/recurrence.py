"""Date-driven recurring obligations: EMIs and bill autopay.

Both processors walk their collection in insertion order and thread a
running balance through it, so an earlier debit in the same pass can make a
later one fail the protection check. Each due obligation fires at most once
per call, however far overdue it is.
"""
import logging
from dataclasses import replace
from datetime import date, datetime, time
from typing import List, NamedTuple, Optional, Tuple
from uuid import uuid4

import pandas as pd

from fintrack.domain import (
    EMI,
    ERROR,
    EXPENSE,
    INFO,
    WARNING,
    Bill,
    Notification,
    Transaction,
)
from fintrack.policy import PROTECTED_MINIMUM, can_debit

logger = logging.getLogger(__name__)


class EmiRun(NamedTuple):
    new_transactions: Tuple[Transaction, ...]
    emis: Tuple[EMI, ...]
    balance: float
    notifications: Tuple[Notification, ...]


class BillRun(NamedTuple):
    bills: Tuple[Bill, ...]
    balance: float
    notifications: Tuple[Notification, ...]
    new_transactions: Tuple[Transaction, ...] = ()


def add_months(iso_date: str, months: int = 1) -> str:
    """Shift an ISO date by whole calendar months, clamping to the month end."""
    shifted = pd.Timestamp(iso_date) + pd.DateOffset(months=months)
    return shifted.date().isoformat()


def format_amount(amount: float, currency: str = "") -> str:
    text = f"{amount:,.2f}".rstrip("0").rstrip(".")
    return f"{currency}{text}"


def is_emi_due(emi: EMI, now: datetime) -> bool:
    due = datetime.combine(date.fromisoformat(emi.next_due), time.min)
    return now >= due


def is_bill_due(bill: Bill, today: date) -> bool:
    # zero-padded ISO strings order the same way as the dates they encode
    return bill.autopay and bill.date <= today.isoformat()


def process_emis(
    emis: Tuple[EMI, ...],
    balance: float,
    now: Optional[datetime] = None,
    minimum: float = PROTECTED_MINIMUM,
) -> EmiRun:
    now = now or datetime.now()
    new_transactions: List[Transaction] = []
    updated: List[EMI] = []
    notifications: List[Notification] = []

    for emi in emis:
        if not is_emi_due(emi, now):
            updated.append(emi)
            continue

        if not can_debit(balance, emi.amount, minimum):
            logger.warning("EMI %s skipped: balance %.2f too low for %.2f", emi.name, balance, emi.amount)
            notifications.append(
                Notification(f"EMI failed for {emi.name} (Low Balance)", WARNING, emi.id)
            )
            updated.append(emi)
            continue

        new_transactions.append(
            Transaction(
                id=str(uuid4()),
                description=f"EMI - {emi.name}",
                amount=emi.amount,
                kind=EXPENSE,
                date=emi.next_due,
            )
        )
        balance -= emi.amount
        updated.append(replace(emi, next_due=add_months(emi.next_due)))
        logger.info("EMI %s paid for %s, next due %s", emi.name, emi.next_due, updated[-1].next_due)

    return EmiRun(tuple(new_transactions), tuple(updated), balance, tuple(notifications))


def process_bill_autopay(
    bills: Tuple[Bill, ...],
    balance: float,
    today: Optional[date] = None,
    minimum: float = PROTECTED_MINIMUM,
    record_payments: bool = False,
    currency: str = "₹",
) -> BillRun:
    """Pay every due autopay bill the protected balance can cover.

    With ``record_payments`` off, a payment only lowers the returned balance
    and leaves no trace in the transaction log.
    """
    today = today or date.today()
    updated: List[Bill] = []
    notifications: List[Notification] = []
    new_transactions: List[Transaction] = []

    for bill in bills:
        if not is_bill_due(bill, today):
            updated.append(bill)
            continue

        if not can_debit(balance, bill.amount, minimum):
            logger.warning("Autopay for %s refused by minimum balance protection", bill.name)
            notifications.append(
                Notification(
                    f"Autopay failed for {bill.name}. Minimum {format_amount(minimum, currency)} protection.",
                    ERROR,
                    bill.id,
                )
            )
            updated.append(bill)
            continue

        balance -= bill.amount
        notifications.append(
            Notification(
                f"Autopay successful for {bill.name} {format_amount(bill.amount, currency)}",
                INFO,
                bill.id,
            )
        )
        if record_payments:
            new_transactions.append(
                Transaction(
                    id=str(uuid4()),
                    description=f"Bill - {bill.name}",
                    amount=bill.amount,
                    kind=EXPENSE,
                    date=bill.date,
                )
            )
        updated.append(replace(bill, date=add_months(bill.date)))
        logger.info("Autopay paid %s due %s", bill.name, bill.date)

    return BillRun(tuple(updated), balance, tuple(notifications), tuple(new_transactions))
