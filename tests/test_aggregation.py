from datetime import date, datetime

from spendwise.aggregation import (
    budget_percentage,
    budget_summary,
    category_breakdown,
    category_totals,
    daily_average,
    essential_split,
    filter_by_essential,
    monthly_spent,
    months_ago,
    predict_exhaustion,
    remaining,
    round_half_up,
    total_spent,
    weekly_spent,
)
from spendwise.domain import Expense

NOW = datetime(2025, 3, 15, 10, 30)


def make_exp(id, amount, day, category="Food & Dining", is_essential=True, budget_id=None):
    return Expense(
        id=id,
        user_id="u1",
        amount=amount,
        category=category,
        description=f"expense {id}",
        expense_date=day,
        is_essential=is_essential,
        budget_id=budget_id,
    )


def test_total_spent():
    assert total_spent([]) == 0
    expenses = [make_exp("e1", 100, date(2025, 3, 1)), make_exp("e2", 250.5, date(2025, 3, 2))]
    assert total_spent(expenses) == 350.5


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(13.5) == 14
    assert round_half_up(12.49) == 12
    assert round_half_up(-0.5) == 0


def test_budget_percentage():
    assert budget_percentage(1200, 5000) == 24
    assert budget_percentage(4200, 5000) == 84
    assert budget_percentage(1, 8) == 13
    assert budget_percentage(1, 3) == 33
    assert budget_percentage(500, 0) == 0
    assert budget_percentage(500, -10) == 0


def test_remaining_can_go_negative():
    assert remaining(1000, 600) == 400
    assert remaining(1000, 1200) == -200


def test_months_ago_calendar_arithmetic():
    assert months_ago(date(2025, 3, 15), 1) == date(2025, 2, 15)
    assert months_ago(date(2025, 1, 15), 1) == date(2024, 12, 15)
    assert months_ago(date(2025, 3, 31), 1) == date(2025, 3, 3)
    assert months_ago(date(2024, 3, 31), 1) == date(2024, 3, 2)
    assert months_ago(date(2025, 1, 10), -1) == date(2025, 2, 10)


def test_weekly_spent_covers_seven_dates_ending_today():
    expenses = [
        make_exp("e1", 100, date(2025, 3, 9)),
        make_exp("e2", 50, date(2025, 3, 8)),
        make_exp("e3", 20, date(2025, 3, 15)),
    ]
    assert weekly_spent(expenses, NOW) == 120


def test_monthly_spent_uses_calendar_month():
    expenses = [
        make_exp("e1", 100, date(2025, 2, 15)),
        make_exp("e2", 50, date(2025, 2, 14)),
        make_exp("e3", 20, date(2025, 3, 10)),
    ]
    assert monthly_spent(expenses, NOW) == 120


def test_budget_summary():
    expenses = [make_exp("e1", 1200, date(2025, 3, 14))]
    summary = budget_summary(5000, expenses, NOW)
    assert summary.total_budget == 5000
    assert summary.total_spent == 1200
    assert summary.remaining == 3800
    assert summary.weekly_spent == 1200
    assert summary.monthly_spent == 1200
    assert summary.percentage == 24


def test_category_totals():
    expenses = [
        make_exp("e1", 100, date(2025, 3, 1), "Shopping"),
        make_exp("e2", 50, date(2025, 3, 1), "Shopping"),
        make_exp("e3", 30, date(2025, 3, 1), "Other"),
    ]
    assert category_totals(expenses) == {"Shopping": 150, "Other": 30}


def test_category_breakdown_sorted_with_first_seen_flag():
    expenses = [
        make_exp("e1", 300, date(2025, 3, 1), "Food & Dining", True),
        make_exp("e2", 500, date(2025, 3, 2), "Shopping", False),
        make_exp("e3", 100, date(2025, 3, 3), "Food & Dining", False),
        make_exp("e4", 100, date(2025, 3, 4), "Other", True),
    ]
    rows = category_breakdown(expenses)
    assert [r.category for r in rows] == ["Shopping", "Food & Dining", "Other"]
    assert [r.amount for r in rows] == [500, 400, 100]
    assert [r.percentage for r in rows] == [50, 40, 10]
    assert rows[1].is_essential is True
    assert rows[0].is_essential is False


def test_category_breakdown_rounding_slack():
    expenses = [
        make_exp("e1", 100, date(2025, 3, 1), "A"),
        make_exp("e2", 100, date(2025, 3, 1), "B"),
        make_exp("e3", 100, date(2025, 3, 1), "C"),
    ]
    rows = category_breakdown(expenses)
    assert abs(sum(r.percentage for r in rows) - 100) <= len(rows)
    assert category_breakdown([]) == []


def test_essential_split():
    empty = essential_split([])
    assert (empty.essential, empty.non_essential, empty.essential_percentage) == (0, 0, 50)

    expenses = [
        make_exp("e1", 300, date(2025, 3, 1), is_essential=True),
        make_exp("e2", 100, date(2025, 3, 1), is_essential=False),
    ]
    split = essential_split(expenses)
    assert split.essential == 300
    assert split.non_essential == 100
    assert split.essential_percentage == 75


def test_filter_by_essential():
    expenses = [
        make_exp("e1", 300, date(2025, 3, 1), is_essential=True),
        make_exp("e2", 100, date(2025, 3, 1), is_essential=False),
    ]
    assert [e.id for e in filter_by_essential(expenses, False)] == ["e2"]
    assert [e.id for e in filter_by_essential(expenses, True)] == ["e1"]


def test_daily_average_divides_by_window_length():
    expenses = [make_exp("e1", 300, date(2025, 3, 10)), make_exp("e2", 900, date(2025, 1, 1))]
    assert daily_average(expenses, 30, NOW) == 10
    assert daily_average(expenses, 0, NOW) == 0

    week = [make_exp("e3", 70, date(2025, 3, 9)), make_exp("e4", 700, date(2025, 3, 8))]
    assert daily_average(week, 7, NOW) == 10


def test_predict_exhaustion():
    expenses = [make_exp("e1", 140, date(2025, 3, 14))]
    result = predict_exhaustion(1000, expenses, NOW)
    assert result.days == 43
    assert result.date == date(2025, 4, 27)


def test_predict_exhaustion_none_cases():
    assert predict_exhaustion(1000, [], NOW) is None
    old = [make_exp("e1", 100, date(2025, 1, 1))]
    assert predict_exhaustion(1000, old, NOW) is None
    over = [make_exp("e1", 1500, date(2025, 3, 14))]
    assert predict_exhaustion(1000, over, NOW) is None
