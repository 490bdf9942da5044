from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from spendwise.auth import AuthenticationManager
from spendwise.backend import Backend
from spendwise.budgets import BudgetManager
from spendwise.config import create_backend
from spendwise.dashboard import DashboardService
from spendwise.events import EventBus, register_default_handlers
from spendwise.expenses import ExpenseManager
from spendwise.goals import SavingsGoalManager


@dataclass(frozen=True)
class Services:
    """One instance of every manager, built once at start-up and passed around."""
    backend: Backend
    bus: EventBus
    auth: AuthenticationManager
    expenses: ExpenseManager
    budgets: BudgetManager
    goals: SavingsGoalManager
    dashboard: DashboardService


def build_services(
    backend: Optional[Backend] = None,
    clock: Callable[[], datetime] = datetime.now,
    bus: Optional[EventBus] = None,
) -> Services:
    backend = backend if backend is not None else create_backend()
    bus = bus if bus is not None else register_default_handlers(EventBus())

    goals = SavingsGoalManager(backend, bus)
    expenses = ExpenseManager(backend, bus)
    budgets = BudgetManager(backend, goals, bus, clock)

    return Services(
        backend=backend,
        bus=bus,
        auth=AuthenticationManager(backend),
        expenses=expenses,
        budgets=budgets,
        goals=goals,
        dashboard=DashboardService(expenses, budgets, goals, clock),
    )
