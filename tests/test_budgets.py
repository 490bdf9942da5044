import asyncio
from datetime import date, datetime

import pytest

from spendwise.backend import MemoryBackend
from spendwise.budgets import period_end
from spendwise.errors import PersistenceError
from spendwise.events import BUDGET_PROCESSED, EventBus
from spendwise.services import build_services


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_services(now=datetime(2025, 3, 1, 9, 0), bus=None):
    clock = Clock(now)
    return build_services(MemoryBackend(), clock=clock, bus=bus or EventBus()), clock


def test_period_end():
    assert period_end(date(2025, 3, 1), "week") == date(2025, 3, 8)
    assert period_end(date(2025, 1, 31), "month") == date(2025, 3, 3)
    assert period_end(date(2025, 3, 15), "month") == date(2025, 4, 15)


@pytest.mark.asyncio
async def test_create_budget_sets_period():
    services, _ = make_services(datetime(2025, 3, 15, 20, 0))

    res = await services.budgets.create_budget("u1", 5000, "week")
    assert res.success
    assert res.message == "Budget saved successfully!"
    assert res.data.start_date == date(2025, 3, 15)
    assert res.data.end_date == date(2025, 3, 22)
    assert res.data.is_active
    assert not res.data.processed

    monthly = await services.budgets.create_budget("u1", 20000, "month")
    assert monthly.data.end_date == date(2025, 4, 15)


@pytest.mark.asyncio
async def test_only_one_active_budget():
    services, _ = make_services()
    await services.budgets.create_budget("u1", 1000, "week")
    await services.budgets.create_budget("u1", 2000, "week")
    await services.budgets.create_budget("u2", 3000, "week")
    latest = await services.budgets.create_budget("u1", 3000, "month")

    budgets = (await services.budgets.get_budgets("u1")).data
    assert len(budgets) == 3
    assert [b.id for b in budgets if b.is_active] == [latest.data.id]

    active = await services.budgets.get_active_budget("u1")
    assert active.data.id == latest.data.id
    assert (await services.budgets.get_active_budget("u2")).data.amount == 3000


@pytest.mark.asyncio
async def test_no_active_budget_is_empty_state():
    services, _ = make_services()
    res = await services.budgets.get_active_budget("u1")
    assert res.success
    assert res.data is None
    assert res.message == "No active budget"


@pytest.mark.asyncio
async def test_create_budget_rejects_bad_input():
    services, _ = make_services()
    assert (await services.budgets.create_budget("u1", 0, "week")).message == "Budget amount must be greater than 0"
    assert (await services.budgets.create_budget("u1", 100, "year")).message == "Time frame must be week or month"


@pytest.mark.asyncio
async def test_edit_active_budget_recomputes_dates():
    services, clock = make_services()
    assert (await services.budgets.edit_active_budget("u1", 100, "week")).message == "No active budget to edit"

    original = (await services.budgets.create_budget("u1", 1000, "week")).data
    clock.now = datetime(2025, 3, 5, 9, 0)

    res = await services.budgets.edit_active_budget("u1", 8000, "month")
    assert res.success
    assert res.data.id == original.id
    assert res.data.amount == 8000
    assert res.data.timeframe == "month"
    assert res.data.start_date == date(2025, 3, 5)
    assert res.data.end_date == date(2025, 4, 5)


async def setup_finished_budget(services, clock, spent=600):
    goal = (await services.goals.create_goal("u1", "New Phone", 15000, 9000)).data
    budget = (await services.budgets.create_budget("u1", 1000, "week", goal.id)).data
    await services.expenses.create_expense("u1", spent, "Groceries", date(2025, 3, 2))
    clock.now = datetime(2025, 3, 9, 8, 0)
    return goal, budget


@pytest.mark.asyncio
async def test_finalization_moves_leftover_once():
    bus = EventBus()
    processed = []
    bus.subscribe(BUDGET_PROCESSED, lambda event, payload: processed.append(payload))
    services, clock = make_services(bus=bus)
    goal, budget = await setup_finished_budget(services, clock)

    first = await services.budgets.process_finished_budgets("u1")
    assert first.success
    assert first.message == "Processed 1 budget(s)"
    assert len(first.data) == 1
    assert first.data[0].leftover == 400
    assert first.data[0].transferred

    assert (await services.goals.get_goal(goal.id)).current_amount == 9400
    stored = (await services.budgets.get_budgets("u1")).data[0]
    assert stored.processed
    assert not stored.is_active

    second = await services.budgets.process_finished_budgets("u1")
    assert second.success
    assert second.data == []
    assert (await services.goals.get_goal(goal.id)).current_amount == 9400
    assert len(processed) == 1


@pytest.mark.asyncio
async def test_overlapping_sweeps_transfer_once():
    services, clock = make_services()
    goal, _ = await setup_finished_budget(services, clock)

    results = await asyncio.gather(
        services.budgets.process_finished_budgets("u1"),
        services.budgets.process_finished_budgets("u1"),
    )
    assert sum(len(r.data) for r in results) == 1
    assert (await services.goals.get_goal(goal.id)).current_amount == 9400


@pytest.mark.asyncio
async def test_budget_ending_today_is_not_finalized():
    services, clock = make_services()
    await services.budgets.create_budget("u1", 1000, "week")
    clock.now = datetime(2025, 3, 8, 23, 0)

    res = await services.budgets.process_finished_budgets("u1")
    assert res.data == []


@pytest.mark.asyncio
async def test_overspent_budget_moves_nothing():
    services, clock = make_services()
    goal, _ = await setup_finished_budget(services, clock, spent=1200)

    res = await services.budgets.process_finished_budgets("u1")
    assert res.data[0].leftover == -200
    assert not res.data[0].transferred
    assert (await services.goals.get_goal(goal.id)).current_amount == 9000


@pytest.mark.asyncio
async def test_missing_goal_still_marks_processed():
    services, clock = make_services()
    goal, _ = await setup_finished_budget(services, clock)
    await services.goals.delete_goal(goal.id)

    res = await services.budgets.process_finished_budgets("u1")
    assert res.success
    assert res.data[0].leftover == 400
    assert not res.data[0].transferred
    assert (await services.budgets.process_finished_budgets("u1")).data == []


class FlakyBackend(MemoryBackend):
    """Fails the next savings goal write, then recovers."""

    def __init__(self):
        super().__init__()
        self.goal_write_failures = 0

    async def update(self, table, filters, changes):
        if table == "savings_goal" and self.goal_write_failures:
            self.goal_write_failures -= 1
            raise PersistenceError("network timeout")
        return await super().update(table, filters, changes)


@pytest.mark.asyncio
async def test_failed_transfer_is_retried_on_next_sweep():
    backend = FlakyBackend()
    clock = Clock(datetime(2025, 3, 1, 9, 0))
    services = build_services(backend, clock=clock, bus=EventBus())
    goal, budget = await setup_finished_budget(services, clock)
    backend.goal_write_failures = 1

    failed = await services.budgets.process_finished_budgets("u1")
    assert not failed.success
    assert failed.message == "Failed to process finished budgets"
    assert failed.data == []
    assert (await services.goals.get_goal(goal.id)).current_amount == 9000
    stored = (await services.budgets.get_budgets("u1")).data[0]
    assert stored.id == budget.id
    assert not stored.processed

    retried = await services.budgets.process_finished_budgets("u1")
    assert retried.success
    assert retried.data[0].transferred
    assert (await services.goals.get_goal(goal.id)).current_amount == 9400

    assert (await services.budgets.process_finished_budgets("u1")).data == []
    assert (await services.goals.get_goal(goal.id)).current_amount == 9400
