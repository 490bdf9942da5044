import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from spendwise import aggregation, trends
from spendwise.alerts import analytics_alerts, budget_alert
from spendwise.budgets import BudgetManager
from spendwise.charts import DonutChart, donut_gradient_stops
from spendwise.domain import (
    MONTH,
    Alert,
    Budget,
    BudgetSummary,
    CategoryBreakdown,
    EssentialSplit,
    Exhaustion,
    Expense,
    GoalProgress,
    Result,
    SavingsGoal,
    TrendPoint,
)
from spendwise.expenses import ExpenseManager
from spendwise.goals import SavingsGoalManager
from spendwise.savings import months_to_goal, savings_progress

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = 4


@dataclass(frozen=True)
class Dashboard:
    budget: Optional[Budget]
    summary: BudgetSummary
    alert: Optional[Alert]
    goal: Optional[SavingsGoal]
    goal_progress: Optional[GoalProgress]
    months_to_goal: Union[int, str, None]
    essential_split: EssentialSplit
    exhaustion: Optional[Exhaustion]
    recent_expenses: Tuple[Expense, ...]


@dataclass(frozen=True)
class Analytics:
    categories: Tuple[CategoryBreakdown, ...]
    donut: DonutChart
    trend: Tuple[TrendPoint, ...]
    trend_message: str
    summary: BudgetSummary
    alerts: Tuple[Alert, ...]
    goal: Optional[SavingsGoal] = None
    months_to_goal: Union[int, str, None] = None


def monthly_remaining_budget(budget: Optional[Budget], summary: BudgetSummary) -> float:
    """What is left of the budget, scaled to a month for weekly budgets."""
    if budget is None:
        return 0
    if budget.timeframe == MONTH:
        return summary.remaining
    return summary.remaining * WEEKS_PER_MONTH


class DashboardService:
    """Composes manager reads and the aggregation engine into view models."""

    def __init__(
        self,
        expenses: ExpenseManager,
        budgets: BudgetManager,
        goals: SavingsGoalManager,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.expenses = expenses
        self.budgets = budgets
        self.goals = goals
        self.clock = clock

    async def _sweep(self, user_id: str) -> None:
        # the dashboard still loads when finalization fails
        try:
            result = await self.budgets.process_finished_budgets(user_id)
        except Exception:
            logger.exception("Budget finalization crashed for user %s", user_id)
            return
        if not result.success:
            logger.warning("Budget finalization failed for user %s: %s", user_id, result.message)

    async def _snapshot(self, user_id: str):
        budget_res, expenses_res, goal_res = await asyncio.gather(
            self.budgets.get_active_budget(user_id),
            self.expenses.get_all_expenses(user_id),
            self.goals.get_latest_goal(user_id),
        )
        if not expenses_res.success:
            return None, expenses_res
        if not budget_res.success:
            return None, budget_res
        goal = goal_res.data if goal_res.success else None
        return (budget_res.data, expenses_res.data, goal), None

    async def load_dashboard(self, user_id: str) -> Result:
        now = self.clock()
        await self._sweep(user_id)

        snapshot, failure = await self._snapshot(user_id)
        if failure is not None:
            return Result(False, failure.message)
        budget, expenses, goal = snapshot

        linked = [e for e in expenses if e.budget_id == budget.id] if budget else expenses
        summary = aggregation.budget_summary(budget.amount if budget else 0, linked, now)

        dashboard = Dashboard(
            budget=budget,
            summary=summary,
            alert=budget_alert(summary.percentage),
            goal=goal,
            goal_progress=savings_progress(goal) if goal else None,
            months_to_goal=months_to_goal(goal, monthly_remaining_budget(budget, summary)) if goal else None,
            essential_split=aggregation.essential_split(expenses),
            exhaustion=aggregation.predict_exhaustion(budget.amount, linked, now) if budget else None,
            recent_expenses=tuple(expenses[:5]),
        )
        return Result(True, "Dashboard loaded", dashboard)

    async def load_analytics(self, user_id: str, granularity: str = trends.WEEKLY, essential_only: bool = False) -> Result:
        now = self.clock()
        snapshot, failure = await self._snapshot(user_id)
        if failure is not None:
            return Result(False, failure.message)
        budget, expenses, goal = snapshot

        shown: List[Expense] = aggregation.filter_by_essential(expenses, True) if essential_only else expenses
        categories = aggregation.category_breakdown(shown)
        series = trends.trend_series(expenses, granularity, now)

        linked = [e for e in expenses if e.budget_id == budget.id] if budget else expenses
        summary = aggregation.budget_summary(budget.amount if budget else 0, linked, now)

        non_essential_weeks = trends.weekly_series(aggregation.filter_by_essential(expenses, False), now)
        alerts = analytics_alerts(
            summary.percentage if budget else 0,
            summary.remaining,
            non_essential_weeks[-1].amount,
            non_essential_weeks[-2].amount,
        )

        analytics = Analytics(
            categories=tuple(categories),
            donut=donut_gradient_stops(categories),
            trend=tuple(series),
            trend_message=trends.trend_comparison(series),
            summary=summary,
            alerts=tuple(alerts),
            goal=goal,
            months_to_goal=months_to_goal(goal, monthly_remaining_budget(budget, summary)) if goal else None,
        )
        return Result(True, "Analytics loaded", analytics)
