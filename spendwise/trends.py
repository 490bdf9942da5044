from datetime import date, timedelta
from typing import Callable, Iterable, List, Sequence

from spendwise.aggregation import as_date, months_ago, round_half_up, total_spent
from spendwise.domain import Expense, TrendPoint

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
GRANULARITIES = (DAILY, WEEKLY, MONTHLY)


def _bucket(expenses: Iterable[Expense], pred: Callable[[date], bool]) -> float:
    return total_spent(e for e in expenses if pred(e.expense_date))


def _between(start: date, end: date) -> Callable[[date], bool]:
    def _filter(d: date) -> bool:
        return start <= d <= end

    return _filter


def _half_open(start: date, end: date) -> Callable[[date], bool]:
    def _filter(d: date) -> bool:
        return start <= d < end

    return _filter


def _day_label(day: date, today: date) -> str:
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return day.strftime("%a")


def daily_series(expenses: Sequence[Expense], now=None) -> List[TrendPoint]:
    today = as_date(now)
    points = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        points.append(TrendPoint(_day_label(day, today), _bucket(expenses, _between(day, day))))
    return points


def weekly_series(expenses: Sequence[Expense], now=None) -> List[TrendPoint]:
    # The newest window ends after today so today's spending lands in Week 4.
    end_of_today = as_date(now) + timedelta(days=1)
    points = []
    for week in range(4):
        end = end_of_today - timedelta(days=7 * (3 - week))
        start = end - timedelta(days=7)
        points.append(TrendPoint(f"Week {week + 1}", _bucket(expenses, _half_open(start, end))))
    return points


def monthly_series(expenses: Sequence[Expense], now=None) -> List[TrendPoint]:
    first_of_month = as_date(now).replace(day=1)
    points = []
    for offset in range(5, -1, -1):
        start = months_ago(first_of_month, offset)
        end = months_ago(first_of_month, offset - 1) - timedelta(days=1)
        points.append(TrendPoint(start.strftime("%b"), _bucket(expenses, _between(start, end))))
    return points


_SERIES = {
    DAILY: daily_series,
    WEEKLY: weekly_series,
    MONTHLY: monthly_series,
}


def trend_series(expenses: Sequence[Expense], granularity: str = WEEKLY, now=None) -> List[TrendPoint]:
    """Fixed-length spend series, oldest bucket first.

    daily: 7 calendar days; weekly: 4 rolling 7-day windows; monthly: 6
    calendar months.  An unknown granularity yields an empty series.
    """
    builder = _SERIES.get(granularity)
    if builder is None:
        return []
    return builder(expenses, now)


def trend_comparison(series: Sequence[TrendPoint]) -> str:
    if len(series) < 2:
        return "Not enough data to compare."

    previous = series[-2].amount
    last = series[-1].amount

    if previous == 0 and last == 0:
        return "No spending recorded in the last two periods."
    if previous == 0:
        return "Spending started this period."

    change = round_half_up((last - previous) / previous * 100)
    if change > 0:
        return f"Spending increased by {change}% compared to the previous period."
    if change < 0:
        return f"Spending decreased by {abs(change)}% compared to the previous period."
    return "Spending remained stable compared to the previous period."
