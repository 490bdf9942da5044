import pytest

from spendwise import config
from spendwise.backend import MemoryBackend
from spendwise.domain import SavingsGoal
from spendwise.errors import PersistenceError
from spendwise.events import GOAL_FUNDED, EventBus
from spendwise.goals import SavingsGoalManager


class BrokenBackend(MemoryBackend):
    async def select(self, table, filters=(), order_by=None, descending=False, limit=None):
        raise PersistenceError("timeout")


@pytest.fixture(autouse=True)
def peso(monkeypatch):
    monkeypatch.setattr(config, "CURRENCY_SYMBOL", "₱")


@pytest.mark.asyncio
async def test_create_and_fetch_latest_goal():
    goals = SavingsGoalManager(MemoryBackend())
    assert (await goals.get_latest_goal("u1")).message == "No savings goal found"

    created = await goals.create_goal("u1", " Laptop ", 40000, 1000)
    assert created.success
    assert created.data.goal_name == "Laptop"

    latest = await goals.get_latest_goal("u1")
    assert latest.success
    assert latest.data == created.data


@pytest.mark.asyncio
async def test_create_goal_validation():
    goals = SavingsGoalManager(MemoryBackend())
    assert (await goals.create_goal("u1", "", 100)).message == "Goal name is required"
    assert (await goals.create_goal("u1", "Bike", 100, 200)).message == "Current amount cannot exceed target amount"


@pytest.mark.asyncio
async def test_create_and_edit_goal_with_form_values():
    goals = SavingsGoalManager(MemoryBackend())

    blank = await goals.create_goal("u1", "Car", 1000, None)
    assert blank.success
    assert blank.data.current_amount == 0

    typed = await goals.create_goal("u1", "Bike", "1000", "50")
    assert typed.success
    assert (typed.data.target_amount, typed.data.current_amount) == (1000, 50)

    bad = await goals.edit_goal(typed.data.id, "Bike", "1000", "lots")
    assert not bad.success
    assert bad.message == "Current amount must be a valid number"
    assert (await goals.get_goal(typed.data.id)).current_amount == 50


@pytest.mark.asyncio
async def test_default_goal_created_once():
    goals = SavingsGoalManager(MemoryBackend())

    first = await goals.get_or_create_default_goal("u1")
    assert first.success
    assert first.data.goal_name == "New Phone"
    assert first.data.target_amount == 15000
    assert first.data.current_amount == 9000

    second = await goals.get_or_create_default_goal("u1")
    assert second.data.id == first.data.id


@pytest.mark.asyncio
async def test_default_goal_not_created_when_lookup_fails():
    goals = SavingsGoalManager(BrokenBackend())
    res = await goals.get_or_create_default_goal("u1")
    assert not res.success
    assert res.message == "Failed to fetch savings goal"


@pytest.mark.asyncio
async def test_add_to_goal():
    bus = EventBus()
    funded = []
    bus.subscribe(GOAL_FUNDED, lambda event, payload: funded.append(payload))
    goals = SavingsGoalManager(MemoryBackend(), bus)
    goal = (await goals.create_goal("u1", "New Phone", 15000, 9000)).data

    res = await goals.add_to_goal(goal.id, 500)
    assert res.success
    assert res.message == "Added ₱500 to savings goal!"
    assert res.data.current_amount == 9500
    assert funded == [{"goal_id": goal.id, "user_id": "u1", "amount": 500}]

    assert (await goals.add_to_goal(goal.id, 0)).message == "Amount must be greater than 0"
    assert (await goals.add_to_goal("missing", 10)).message == "Failed to fetch goal"


@pytest.mark.asyncio
async def test_edit_reset_delete():
    goals = SavingsGoalManager(MemoryBackend())
    goal = (await goals.create_goal("u1", "New Phone", 15000, 9000)).data

    edited = await goals.edit_goal(goal.id, "Tablet", 20000, 5000)
    assert edited.success
    assert (edited.data.goal_name, edited.data.target_amount, edited.data.current_amount) == ("Tablet", 20000, 5000)

    assert (await goals.edit_goal(goal.id, "Tablet", 100, 500)).message == "Current amount cannot exceed target amount"
    assert (await goals.update_goal(goal.id, user_id="u2")).message == "Cannot update field(s): user_id"

    reset = await goals.reset_goal(goal.id)
    assert reset.data.current_amount == 0

    assert (await goals.delete_goal(goal.id)).success
    assert await goals.get_goal(goal.id) is None


def test_calculate_progress():
    goal = SavingsGoal("g1", "u1", "New Phone", 15000, 9000)
    progress = SavingsGoalManager.calculate_progress(goal)
    assert progress.percentage == 60
    assert progress.remaining == 6000
