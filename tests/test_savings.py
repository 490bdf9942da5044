from spendwise.domain import SavingsGoal
from spendwise.savings import (
    GOAL_ACHIEVED,
    GOAL_NOT_POSSIBLE,
    estimate_time_to_goal,
    goal_remaining,
    is_goal_achieved,
    months_to_goal,
    savings_progress,
    savings_rate,
)


def make_goal(target, saved, name="New Phone"):
    return SavingsGoal(id="g1", user_id="u1", goal_name=name, target_amount=target, current_amount=saved)


def test_savings_progress_partial():
    progress = savings_progress(make_goal(15000, 9000))
    assert progress.percentage == 60
    assert progress.remaining == 6000
    assert progress.achieved is False


def test_savings_progress_overfunded():
    progress = savings_progress(make_goal(100, 150))
    assert progress.percentage == 150
    assert progress.remaining == -50
    assert progress.achieved is True


def test_savings_progress_zero_target():
    assert savings_progress(make_goal(0, 0)).percentage == 0


def test_goal_achieved_and_remaining():
    assert is_goal_achieved(make_goal(100, 100))
    assert not is_goal_achieved(make_goal(100, 99.5))
    assert goal_remaining(make_goal(15000, 9000)) == 6000


def test_months_to_goal():
    goal = make_goal(15000, 9000)
    assert months_to_goal(goal, 2000) == 3
    assert months_to_goal(goal, 2500) == 3
    assert months_to_goal(goal, 0) == GOAL_NOT_POSSIBLE
    assert months_to_goal(goal, -300) == GOAL_NOT_POSSIBLE
    assert months_to_goal(make_goal(100, 120), 0) == GOAL_ACHIEVED


def test_savings_rate():
    goal = make_goal(15000, 9000)
    assert savings_rate(goal, "monthly") == 200
    assert savings_rate(goal, "weekly") == 6000 / 7
    assert savings_rate(goal, "daily") == 6000
    assert savings_rate(make_goal(100, 100)) == 0


def test_estimate_time_to_goal():
    goal = make_goal(15000, 9000)
    assert estimate_time_to_goal(goal, 2000) == (3, 90)
    assert estimate_time_to_goal(goal, 0) is None
    assert estimate_time_to_goal(make_goal(100, 100), 50) is None
