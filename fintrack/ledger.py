from functools import reduce
from typing import Dict, Iterable, Tuple

from fintrack.domain import EMI, INCOME, Bill, Goal, Totals, Transaction
from fintrack.policy import PROTECTED_MINIMUM


def add_transaction(
    trans: Tuple[Transaction, ...], t: Transaction
) -> Tuple[Transaction, ...]:
    return trans + (t,)


def income_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.kind == INCOME, trans))


# anything that is not income counts as an expense
def expense_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.kind != INCOME, trans))


def transaction_amounts(trans: Tuple[Transaction, ...]) -> Tuple[float, ...]:
    return tuple(map(lambda t: t.amount, trans))


def compute_totals(
    trans: Tuple[Transaction, ...], minimum: float = PROTECTED_MINIMUM
) -> Totals:
    income = reduce(lambda acc, a: acc + a, transaction_amounts(income_transactions(trans)), 0.0)
    expense = reduce(lambda acc, a: acc + a, transaction_amounts(expense_transactions(trans)), 0.0)
    balance = income - expense
    return Totals(
        income=income,
        expense=expense,
        balance=balance,
        savings=max(balance - minimum, 0.0),
    )


class Ledger:
    """Owns the four record collections.

    Collections are tuples of frozen records; every change swaps in a new
    tuple, so a reference handed out earlier never changes under the caller.
    """

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        emis: Iterable[EMI] = (),
        goals: Iterable[Goal] = (),
        bills: Iterable[Bill] = (),
        minimum: float = PROTECTED_MINIMUM,
    ):
        self.transactions: Tuple[Transaction, ...] = tuple(transactions)
        self.emis: Tuple[EMI, ...] = tuple(emis)
        self.goals: Tuple[Goal, ...] = tuple(goals)
        self.bills: Tuple[Bill, ...] = tuple(bills)
        self.minimum = minimum

    def compute_totals(self) -> Totals:
        return compute_totals(self.transactions, self.minimum)

    def add_transaction(self, t: Transaction) -> None:
        self.transactions = add_transaction(self.transactions, t)

    def extend_transactions(self, new: Iterable[Transaction]) -> None:
        self.transactions = self.transactions + tuple(new)

    def add_emi(self, emi: EMI) -> None:
        self.emis = self.emis + (emi,)

    def add_goal(self, goal: Goal) -> None:
        self.goals = self.goals + (goal,)

    def add_bill(self, bill: Bill) -> None:
        self.bills = self.bills + (bill,)

    def replace_emis(self, emis: Iterable[EMI]) -> None:
        self.emis = tuple(emis)

    def replace_bills(self, bills: Iterable[Bill]) -> None:
        self.bills = tuple(bills)

    def replace_goals(self, goals: Iterable[Goal]) -> None:
        self.goals = tuple(goals)

    def snapshot(self) -> Dict[str, tuple]:
        return {
            "transactions": self.transactions,
            "emis": self.emis,
            "goals": self.goals,
            "bills": self.bills,
        }
