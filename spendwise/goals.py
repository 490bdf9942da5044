import logging
from typing import Optional

from spendwise import config
from spendwise.backend import Backend, eq
from spendwise.domain import GoalProgress, Result, SavingsGoal
from spendwise.errors import NotFoundError
from spendwise.events import GOAL_FUNDED, EventBus
from spendwise.formatting import format_currency
from spendwise.functional import first
from spendwise.savings import savings_progress
from spendwise.validation import as_amount, validate_amount, validate_savings_goal_form

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("goal_name", "target_amount", "current_amount")


class SavingsGoalManager:
    def __init__(self, backend: Backend, bus: Optional[EventBus] = None):
        self.backend = backend
        self.bus = bus or EventBus()

    async def create_goal(self, user_id: str, goal_name: str, target_amount: float, current_amount: float = 0) -> Result:
        check = validate_savings_goal_form(goal_name, target_amount, current_amount)
        if not check.is_valid:
            return Result(False, check.message)
        try:
            row = await self.backend.insert("savings_goal", {
                "user_id": user_id,
                "goal_name": goal_name.strip(),
                "target_amount": float(target_amount),
                "current_amount": as_amount(current_amount),
            })
        except Exception as exc:
            logger.error("Error creating goal: %s", exc)
            return Result(False, "Failed to create savings goal")
        return Result(True, "Savings goal created successfully!", SavingsGoal.from_row(row))

    async def get_goal(self, goal_id: str) -> Optional[SavingsGoal]:
        """Raw lookup; callers handle backend errors."""
        rows = await self.backend.select("savings_goal", [eq("id", goal_id)], limit=1)
        return first(rows).map(SavingsGoal.from_row).get_or_else(None)

    async def get_latest_goal(self, user_id: str) -> Result:
        try:
            rows = await self.backend.select(
                "savings_goal", [eq("user_id", user_id)], order_by="created_at", descending=True, limit=1,
            )
        except Exception as exc:
            logger.error("Error fetching goal: %s", exc)
            return Result(False, "Failed to fetch savings goal")
        if not rows:
            return Result(False, "No savings goal found")
        return Result(True, "Goal fetched successfully", SavingsGoal.from_row(rows[0]))

    async def update_goal(self, goal_id: str, **changes) -> Result:
        unknown = [k for k in changes if k not in EDITABLE_FIELDS]
        if unknown:
            return Result(False, f"Cannot update field(s): {', '.join(unknown)}")
        try:
            rows = await self.backend.update("savings_goal", [eq("id", goal_id)], changes)
        except Exception as exc:
            logger.error("Error updating goal: %s", exc)
            return Result(False, "Failed to update goal")
        if not rows:
            return Result(False, "Failed to update goal")
        return Result(True, "Goal updated successfully!", SavingsGoal.from_row(rows[0]))

    async def edit_goal(self, goal_id: str, goal_name: str, target_amount: float, current_amount: float) -> Result:
        check = validate_savings_goal_form(goal_name, target_amount, current_amount)
        if not check.is_valid:
            return Result(False, check.message)
        return await self.update_goal(
            goal_id,
            goal_name=goal_name.strip(),
            target_amount=float(target_amount),
            current_amount=as_amount(current_amount),
        )

    async def reset_goal(self, goal_id: str) -> Result:
        return await self.update_goal(goal_id, current_amount=0)

    async def add_to_goal(self, goal_id: str, amount: float) -> Result:
        check = validate_amount(amount)
        if not check.is_valid:
            return Result(False, check.message)
        try:
            goal = await self.get_goal(goal_id)
            if goal is None:
                raise NotFoundError(f"Savings goal {goal_id} not found")
            rows = await self.backend.update(
                "savings_goal", [eq("id", goal_id)], {"current_amount": goal.current_amount + amount},
            )
        except NotFoundError as exc:
            logger.error("Error adding to goal: %s", exc)
            return Result(False, "Failed to fetch goal")
        except Exception as exc:
            logger.error("Error adding to goal: %s", exc)
            return Result(False, "Failed to add to goal")
        if not rows:
            return Result(False, "Failed to add to goal")

        updated = SavingsGoal.from_row(rows[0])
        self.bus.publish(GOAL_FUNDED, {"goal_id": goal_id, "user_id": updated.user_id, "amount": amount})
        return Result(True, f"Added {format_currency(amount)} to savings goal!", updated)

    async def delete_goal(self, goal_id: str) -> Result:
        try:
            await self.backend.delete("savings_goal", [eq("id", goal_id)])
        except Exception as exc:
            logger.error("Error deleting goal: %s", exc)
            return Result(False, "Failed to delete goal")
        return Result(True, "Goal deleted successfully!")

    async def get_or_create_default_goal(self, user_id: str) -> Result:
        existing = await self.get_latest_goal(user_id)
        if existing.success or existing.message != "No savings goal found":
            return existing
        return await self.create_goal(
            user_id,
            config.DEFAULT_GOAL_NAME,
            config.DEFAULT_GOAL_TARGET,
            config.DEFAULT_GOAL_CURRENT,
        )

    @staticmethod
    def calculate_progress(goal: SavingsGoal) -> GoalProgress:
        return savings_progress(goal)
