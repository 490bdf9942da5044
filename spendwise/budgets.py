"""Budget lifecycle.

A user has at most one active budget.  Creating a budget deactivates every
other one first; editing rewrites the active record in place.  Once a
budget's end date has passed it is finalized exactly once by
``process_finished_budgets``: its leftover (amount minus the expenses linked
to it) goes to the linked savings goal and ``processed`` becomes true.

The sweep claims a budget with a conditional update (``processed`` false to
true) before moving any money, so two overlapping sweeps can never both
transfer the same leftover.  If the transfer then fails the claim is released
so the next sweep retries it.  A goal that no longer exists counts as no goal:
the budget is processed and the leftover stays put.  This client-side sweep is
the only finalization path; there is no server-side copy.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from spendwise import aggregation
from spendwise.aggregation import as_date, months_ago
from spendwise.backend import Backend, eq, lt
from spendwise.domain import MONTH, TIMEFRAMES, WEEK, Budget, Expense, Result
from spendwise.errors import PersistenceError
from spendwise.events import BUDGET_PROCESSED, EventBus
from spendwise.functional import first
from spendwise.goals import SavingsGoalManager
from spendwise.validation import validate_budget_form

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class BudgetTransfer:
    budget_id: str
    goal_id: Optional[str]
    leftover: float
    transferred: bool


def period_end(start: date, timeframe: str) -> date:
    if timeframe == MONTH:
        return months_ago(start, -1)
    return start + timedelta(days=7)


class BudgetManager:
    def __init__(
        self,
        backend: Backend,
        goals: SavingsGoalManager,
        bus: Optional[EventBus] = None,
        clock: Clock = datetime.now,
    ):
        self.backend = backend
        self.goals = goals
        self.bus = bus or EventBus()
        self.clock = clock

    def today(self) -> date:
        return as_date(self.clock())

    async def create_budget(self, user_id: str, amount: float, timeframe: str = WEEK, goal_id: Optional[str] = None) -> Result:
        check = validate_budget_form(amount)
        if not check.is_valid:
            return Result(False, check.message)
        if timeframe not in TIMEFRAMES:
            return Result(False, "Time frame must be week or month")

        start = self.today()
        try:
            await self.backend.update(
                "budgets", [eq("user_id", user_id), eq("is_active", True)], {"is_active": False},
            )
            row = await self.backend.insert("budgets", {
                "user_id": user_id,
                "amount": float(amount),
                "timeframe": timeframe,
                "is_active": True,
                "start_date": start,
                "end_date": period_end(start, timeframe),
                "processed": False,
                "goal_id": goal_id,
            })
        except Exception as exc:
            logger.error("Error saving budget: %s", exc)
            return Result(False, "Failed to save budget. Please try again.")

        budget = Budget.from_row(row)
        logger.info("Budget %s created for user %s (%s %s)", budget.id, user_id, budget.amount, timeframe)
        return Result(True, "Budget saved successfully!", budget)

    async def get_active_budget(self, user_id: str) -> Result:
        """Success with ``data=None`` when the user has no active budget."""
        try:
            rows = await self.backend.select(
                "budgets", [eq("user_id", user_id), eq("is_active", True)],
                order_by="created_at", descending=True, limit=1,
            )
        except Exception as exc:
            logger.error("Error fetching budget: %s", exc)
            return Result(False, "Failed to fetch budget")
        budget = first(rows).map(Budget.from_row).get_or_else(None)
        if budget is None:
            return Result(True, "No active budget", None)
        return Result(True, "Budget fetched successfully", budget)

    async def get_budgets(self, user_id: str) -> Result:
        try:
            rows = await self.backend.select("budgets", [eq("user_id", user_id)], order_by="created_at", descending=True)
        except Exception as exc:
            logger.error("Error fetching budgets: %s", exc)
            return Result(False, "Failed to fetch budgets")
        return Result(True, "Budgets fetched successfully", [Budget.from_row(r) for r in rows])

    async def edit_active_budget(self, user_id: str, amount: float, timeframe: str) -> Result:
        check = validate_budget_form(amount)
        if not check.is_valid:
            return Result(False, check.message)
        if timeframe not in TIMEFRAMES:
            return Result(False, "Time frame must be week or month")

        current = await self.get_active_budget(user_id)
        if not current.success:
            return current
        if current.data is None:
            return Result(False, "No active budget to edit")

        start = self.today()
        try:
            rows = await self.backend.update("budgets", [eq("id", current.data.id)], {
                "amount": float(amount),
                "timeframe": timeframe,
                "start_date": start,
                "end_date": period_end(start, timeframe),
            })
        except Exception as exc:
            logger.error("Error updating budget: %s", exc)
            return Result(False, "Failed to update budget")
        if not rows:
            return Result(False, "Failed to update budget")
        return Result(True, "Budget updated successfully!", Budget.from_row(rows[0]))

    async def budget_expenses(self, budget_id: str) -> List[Expense]:
        rows = await self.backend.select("expenses", [eq("budget_id", budget_id)])
        return [Expense.from_row(r) for r in rows]

    async def _release(self, budget: Budget) -> None:
        try:
            await self.backend.update(
                "budgets",
                [eq("id", budget.id), eq("processed", True)],
                {"processed": False, "is_active": budget.is_active},
            )
        except Exception as exc:
            logger.error("Could not release budget %s for retry: %s", budget.id, exc)

    async def _move_leftover(self, budget: Budget, leftover: float) -> bool:
        if leftover <= 0 or not budget.goal_id:
            return False
        if await self.goals.get_goal(budget.goal_id) is None:
            logger.warning("Goal %s of budget %s no longer exists; leftover %s kept out",
                           budget.goal_id, budget.id, leftover)
            return False
        result = await self.goals.add_to_goal(budget.goal_id, leftover)
        if not result.success:
            raise PersistenceError(result.message)
        return True

    async def _finalize(self, budget: Budget) -> Optional[BudgetTransfer]:
        claimed = await self.backend.update(
            "budgets",
            [eq("id", budget.id), eq("processed", False)],
            {"processed": True, "is_active": False},
        )
        if not claimed:
            # another sweep got here first
            return None

        try:
            spent = aggregation.total_spent(await self.budget_expenses(budget.id))
            leftover = aggregation.remaining(budget.amount, spent)
            transferred = await self._move_leftover(budget, leftover)
        except Exception:
            await self._release(budget)
            raise

        transfer = BudgetTransfer(budget.id, budget.goal_id, leftover, transferred)
        self.bus.publish(BUDGET_PROCESSED, {
            "user_id": budget.user_id,
            "budget_id": budget.id,
            "goal_id": budget.goal_id,
            "leftover": leftover,
            "transferred": transferred,
        })
        return transfer

    async def process_finished_budgets(self, user_id: str) -> Result:
        """Finalize every unprocessed budget whose end date is before today.

        A budget whose transfer fails is left unprocessed for the next sweep;
        the rest of the batch still runs.
        """
        try:
            rows = await self.backend.select(
                "budgets",
                [eq("user_id", user_id), eq("processed", False), lt("end_date", self.today())],
                order_by="end_date",
            )
        except Exception as exc:
            logger.error("Error processing finished budgets for %s: %s", user_id, exc)
            return Result(False, "Failed to process finished budgets")

        transfers, failed = [], 0
        for budget in (Budget.from_row(r) for r in rows):
            try:
                transfer = await self._finalize(budget)
            except Exception as exc:
                failed += 1
                logger.error("Error finalizing budget %s: %s", budget.id, exc)
                continue
            if transfer is not None:
                transfers.append(transfer)

        if transfers:
            logger.info("Processed %d finished budget(s) for user %s", len(transfers), user_id)
        if failed:
            return Result(False, "Failed to process finished budgets", transfers)
        return Result(True, f"Processed {len(transfers)} budget(s)", transfers)
