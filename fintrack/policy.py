"""Minimum-balance protection shared by every automatic debit."""

PROTECTED_MINIMUM = 3000.0


def can_debit(current_balance: float, amount: float, minimum: float = PROTECTED_MINIMUM) -> bool:
    """True when debiting ``amount`` keeps the balance at or above ``minimum``.

    Callers pass the running balance, so debits earlier in the same cycle
    are already accounted for.
    """
    return current_balance - amount >= minimum


def shortfall(current_balance: float, amount: float, minimum: float = PROTECTED_MINIMUM) -> float:
    """How much more balance a debit would need to pass the protection check."""
    return max(0.0, minimum - (current_balance - amount))
