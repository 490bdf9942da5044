"""Budget and expense aggregation.

Pure functions over already-fetched expense snapshots.  Nothing here touches
a backend, and nothing raises for empty or zero input: divisions are guarded
and fall back to the documented defaults.

``now`` is injected everywhere a window is relative to the current time.  A
``datetime`` is truncated to its calendar date, because expenses carry dates
only.
"""
import math
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from spendwise.domain import (
    BudgetSummary,
    CategoryBreakdown,
    EssentialSplit,
    Exhaustion,
    Expense,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (towards +inf)."""
    return int(math.floor(value + 0.5))


def as_date(now) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def months_ago(day: date, months: int) -> date:
    """Calendar month subtraction keeping the day of month.

    A day that does not exist in the target month rolls forward into the next
    one, so March 31 minus one month is March 3 (March 2 in leap years).
    """
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    return date(year, month + 1, 1) + timedelta(days=day.day - 1)


def since(expenses: Iterable[Expense], start: date) -> List[Expense]:
    return [e for e in expenses if e.expense_date >= start]


def window_start(now, days: int) -> date:
    """First date of a trailing window of ``days`` dates ending today."""
    return as_date(now) - timedelta(days=days - 1)


def total_spent(expenses: Iterable[Expense]) -> float:
    return sum((e.amount for e in expenses), 0)


def weekly_spent(expenses: Iterable[Expense], now=None) -> float:
    return total_spent(since(expenses, window_start(now, 7)))


def monthly_spent(expenses: Iterable[Expense], now=None) -> float:
    return total_spent(since(expenses, months_ago(as_date(now), 1)))


def budget_percentage(spent: float, budget: float) -> int:
    if budget <= 0:
        return 0
    return round_half_up(spent / budget * 100)


def remaining(budget: float, spent: float) -> float:
    return budget - spent


def budget_summary(budget: float, expenses: Sequence[Expense], now=None) -> BudgetSummary:
    spent = total_spent(expenses)
    return BudgetSummary(
        total_budget=budget,
        total_spent=spent,
        remaining=remaining(budget, spent),
        weekly_spent=weekly_spent(expenses, now),
        monthly_spent=monthly_spent(expenses, now),
        percentage=budget_percentage(spent, budget),
    )


def category_totals(expenses: Iterable[Expense]) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for e in expenses:
        totals[e.category] += e.amount
    return dict(totals)


def category_breakdown(expenses: Sequence[Expense]) -> List[CategoryBreakdown]:
    """Per-category totals sorted by amount, largest first.

    ``is_essential`` for a category is the flag of the first expense seen in
    it, not a majority vote.  Rounded percentages may not add up to 100.
    """
    totals = category_totals(expenses)
    essential_flag: Dict[str, bool] = {}
    for e in expenses:
        essential_flag.setdefault(e.category, e.is_essential)

    total = sum(totals.values())
    rows = [
        CategoryBreakdown(
            category=name,
            amount=amount,
            percentage=round_half_up(amount / total * 100) if total > 0 else 0,
            is_essential=essential_flag[name],
        )
        for name, amount in totals.items()
    ]
    return sorted(rows, key=lambda row: row.amount, reverse=True)


def filter_by_essential(expenses: Iterable[Expense], is_essential: bool) -> List[Expense]:
    return [e for e in expenses if e.is_essential == is_essential]


def essential_split(expenses: Iterable[Expense]) -> EssentialSplit:
    essential = 0
    non_essential = 0
    for e in expenses:
        if e.is_essential:
            essential += e.amount
        else:
            non_essential += e.amount

    total = essential + non_essential
    percentage = round_half_up(essential / total * 100) if total > 0 else 50
    return EssentialSplit(essential=essential, non_essential=non_essential, essential_percentage=percentage)


def daily_average(expenses: Iterable[Expense], days: int = 30, now=None) -> float:
    """Spend in the trailing window divided by the window length (not by active days)."""
    if days <= 0:
        return 0
    return total_spent(since(expenses, window_start(now, days))) / days


def predict_exhaustion(budget: float, expenses: Sequence[Expense], now=None) -> Optional[Exhaustion]:
    average = daily_average(expenses, 7, now)
    left = remaining(budget, total_spent(expenses))

    if left <= 0 or average <= 0:
        return None

    days = math.floor(left / average)
    return Exhaustion(days=days, date=as_date(now) + timedelta(days=days))
