import math
from typing import Optional, Tuple, Union

from spendwise.aggregation import round_half_up
from spendwise.domain import GoalProgress, SavingsGoal

GOAL_ACHIEVED = "achieved"
GOAL_NOT_POSSIBLE = "not possible"

SAVINGS_RATE_DAYS = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
}


def is_goal_achieved(goal: SavingsGoal) -> bool:
    return goal.current_amount >= goal.target_amount


def goal_remaining(goal: SavingsGoal) -> float:
    return goal.target_amount - goal.current_amount


def savings_progress(goal: SavingsGoal) -> GoalProgress:
    if goal.target_amount > 0:
        percentage = round_half_up(goal.current_amount / goal.target_amount * 100)
    else:
        percentage = 0
    return GoalProgress(
        percentage=percentage,
        remaining=goal_remaining(goal),
        achieved=is_goal_achieved(goal),
    )


def months_to_goal(goal: SavingsGoal, monthly_remaining_budget: float) -> Union[int, str]:
    """Months until the goal is reached if the unspent budget is saved each month.

    Returns GOAL_ACHIEVED or GOAL_NOT_POSSIBLE instead of a count when no
    projection makes sense.
    """
    if is_goal_achieved(goal):
        return GOAL_ACHIEVED
    if monthly_remaining_budget <= 0:
        return GOAL_NOT_POSSIBLE
    return math.ceil(goal_remaining(goal) / monthly_remaining_budget)


def savings_rate(goal: SavingsGoal, timeframe: str = "monthly") -> float:
    """Amount to put aside per day, week or month (30 days) to close the gap."""
    left = goal_remaining(goal)
    if left <= 0:
        return 0
    return left / SAVINGS_RATE_DAYS.get(timeframe, 30)


def estimate_time_to_goal(goal: SavingsGoal, monthly_savings: float) -> Optional[Tuple[int, int]]:
    """(months, days) to reach the goal at a fixed monthly saving, or None."""
    left = goal_remaining(goal)
    if left <= 0 or monthly_savings <= 0:
        return None
    months = math.ceil(left / monthly_savings)
    days = math.ceil(left / monthly_savings * 30)
    return months, days
