import math
from datetime import date
from typing import Optional

from fintrack.domain import Insights, Totals

BASELINE_SCORE = 20
DAYS_PER_MONTH = 30


def round_half_up(x: float) -> int:
    """Round .5 towards +inf instead of to the nearest even integer."""
    return math.floor(x + 0.5)


def health_score(totals: Totals) -> int:
    ratio = (totals.savings / totals.balance) * 100 if totals.balance > 0 else 0
    return min(100, round_half_up(ratio + BASELINE_SCORE))


def survival_days(totals: Totals) -> int:
    if totals.expense == 0:
        return 0
    return math.floor(totals.balance / (totals.expense / DAYS_PER_MONTH))


def forecast(totals: Totals, today: Optional[date] = None) -> int:
    """Projected balance at the end of a 30-day month at the current burn rate.

    On the 31st the remaining-days count goes negative and the projection
    adds a day of spending back.
    """
    today = today or date.today()
    avg_daily = totals.expense / DAYS_PER_MONTH
    days_left = DAYS_PER_MONTH - today.day
    return round_half_up(totals.balance - avg_daily * days_left)


def compute_insights(totals: Totals, today: Optional[date] = None) -> Insights:
    return Insights(
        health_score=health_score(totals),
        survival_days=survival_days(totals),
        forecast=forecast(totals, today),
    )
