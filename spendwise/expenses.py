import logging
from datetime import date
from typing import List, Optional

from spendwise import aggregation
from spendwise.alerts import budget_alert
from spendwise.backend import Backend, eq, gte, lte
from spendwise.domain import EXPENSE_CATEGORIES, Budget, Expense, Result, parse_date
from spendwise.errors import PersistenceError, ValidationError
from spendwise.events import BUDGET_ALERT, EXPENSE_ADDED, EventBus
from spendwise.functional import first
from spendwise.validation import (
    ensure_valid,
    validate_amount,
    validate_date,
    validate_expense_form,
    validate_required,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("amount", "category", "description", "expense_date", "is_essential", "budget_id")


def _to_expenses(rows: List[dict]) -> List[Expense]:
    return [Expense.from_row(r) for r in rows]


class ExpenseManager:
    def __init__(self, backend: Backend, bus: Optional[EventBus] = None):
        self.backend = backend
        self.bus = bus or EventBus()

    async def _active_budget(self, user_id: str) -> Optional[Budget]:
        rows = await self.backend.select("budgets", [eq("user_id", user_id), eq("is_active", True)], limit=1)
        return first(rows).map(Budget.from_row).get_or_else(None)

    async def create_expense(
        self,
        user_id: str,
        amount: float,
        description: str,
        expense_date,
        category: str = "Other",
        is_essential: bool = True,
        budget_id: Optional[str] = None,
    ) -> Result:
        """Save an expense, linking it to the user's active budget unless a budget id is given."""
        check = validate_expense_form(amount, description, expense_date)
        if not check.is_valid:
            return Result(False, check.message)

        try:
            budget = None
            if budget_id is None:
                budget = await self._active_budget(user_id)
                budget_id = budget.id if budget else None

            row = await self.backend.insert("expenses", {
                "user_id": user_id,
                "amount": float(amount),
                "category": category,
                "description": description.strip(),
                "expense_date": parse_date(expense_date),
                "is_essential": bool(is_essential),
                "budget_id": budget_id,
            })
            expense = Expense.from_row(row)
            self.bus.publish(EXPENSE_ADDED, {
                "user_id": user_id,
                "expense_id": expense.id,
                "amount": expense.amount,
                "budget_id": budget_id,
            })
        except PersistenceError as exc:
            logger.error("Error creating expense: %s", exc)
            return Result(False, f"Error: {exc.message}")
        except Exception:
            logger.exception("Error creating expense")
            return Result(False, "Failed to save expense. Please try again.")

        if budget is not None:
            try:
                await self._check_budget(budget)
            except Exception as exc:
                logger.error("Budget check after expense %s failed: %s", expense.id, exc)

        return Result(True, "Expense saved successfully!", expense)

    async def _check_budget(self, budget: Budget) -> None:
        rows = await self.backend.select("expenses", [eq("budget_id", budget.id)])
        spent = aggregation.total_spent(_to_expenses(rows))
        percentage = aggregation.budget_percentage(spent, budget.amount)
        alert = budget_alert(percentage)
        if alert is not None:
            self.bus.publish(BUDGET_ALERT, {
                "user_id": budget.user_id,
                "budget_id": budget.id,
                "percentage": percentage,
                "alert": alert,
            })

    async def _fetch(self, filters, failure: str) -> Result:
        try:
            rows = await self.backend.select("expenses", filters, order_by="expense_date", descending=True)
        except Exception as exc:
            logger.error("Error fetching expenses: %s", exc)
            return Result(False, failure)
        return Result(True, "Expenses fetched successfully", _to_expenses(rows))

    async def get_all_expenses(self, user_id: str) -> Result:
        return await self._fetch([eq("user_id", user_id)], "Failed to fetch expenses")

    async def get_expenses_by_date_range(self, user_id: str, start_date: date, end_date: date) -> Result:
        return await self._fetch(
            [eq("user_id", user_id), gte("expense_date", parse_date(start_date)), lte("expense_date", parse_date(end_date))],
            "Failed to fetch expenses",
        )

    async def get_expenses_by_category(self, user_id: str, category: str) -> Result:
        return await self._fetch([eq("user_id", user_id), eq("category", category)], "Failed to fetch expenses")

    async def get_budget_expenses(self, budget_id: str) -> Result:
        return await self._fetch([eq("budget_id", budget_id)], "Failed to fetch expenses")

    async def update_expense(self, expense_id: str, **changes) -> Result:
        unknown = [k for k in changes if k not in EDITABLE_FIELDS]
        if unknown:
            return Result(False, f"Cannot update field(s): {', '.join(unknown)}")
        try:
            if "amount" in changes:
                ensure_valid(validate_amount(changes["amount"]))
            if "description" in changes:
                ensure_valid(validate_required(changes["description"], "Description"))
            if "expense_date" in changes:
                ensure_valid(validate_date(changes["expense_date"]))
                changes["expense_date"] = parse_date(changes["expense_date"])
            rows = await self.backend.update("expenses", [eq("id", expense_id)], changes)
        except ValidationError as exc:
            return Result(False, exc.message)
        except Exception as exc:
            logger.error("Error updating expense: %s", exc)
            return Result(False, "Failed to update expense")
        if not rows:
            return Result(False, "Failed to update expense")
        return Result(True, "Expense updated successfully!", Expense.from_row(rows[0]))

    async def delete_expense(self, expense_id: str) -> Result:
        try:
            await self.backend.delete("expenses", [eq("id", expense_id)])
        except Exception as exc:
            logger.error("Error deleting expense: %s", exc)
            return Result(False, "Failed to delete expense")
        return Result(True, "Expense deleted successfully!")

    @staticmethod
    def filter_expenses_by_type(expenses: List[Expense], is_essential: bool) -> List[Expense]:
        return aggregation.filter_by_essential(expenses, is_essential)

    @staticmethod
    def expense_categories() -> List[str]:
        return list(EXPENSE_CATEGORIES)
