from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

WEEK = "week"
MONTH = "month"
TIMEFRAMES = (WEEK, MONTH)

EXPENSE_CATEGORIES = (
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Healthcare",
    "Education",
    "Personal Care",
    "Gifts & Donations",
    "Other",
)


def parse_date(value) -> Optional[date]:
    """Accept a date, datetime or ISO string ('2025-01-03' or '2025-01-03T10:00:00')."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    full_name: str
    password: str     # stored as entered, see DESIGN.md
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "User":
        return cls(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            full_name=row.get("full_name") or "",
            password=row.get("password") or "",
            created_at=row.get("created_at") or "",
        )


@dataclass(frozen=True)
class UserData:
    id: str
    username: str
    email: str
    full_name: str

    @classmethod
    def from_user(cls, user: User) -> "UserData":
        return cls(id=user.id, username=user.username, email=user.email, full_name=user.full_name)


@dataclass(frozen=True)
class Expense:
    id: str
    user_id: str
    amount: float
    category: str
    description: str
    expense_date: date
    is_essential: bool = True
    budget_id: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Expense":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            amount=float(row["amount"] or 0),
            category=row.get("category") or "Other",
            description=row.get("description") or "",
            expense_date=parse_date(row["expense_date"]),
            is_essential=bool(row.get("is_essential")),
            budget_id=row.get("budget_id"),
            created_at=row.get("created_at") or "",
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "expense_date": _iso(self.expense_date),
            "is_essential": self.is_essential,
            "budget_id": self.budget_id,
        }


@dataclass(frozen=True)
class Budget:
    id: str
    user_id: str
    amount: float
    timeframe: str      # "week" or "month"
    is_active: bool
    start_date: date
    end_date: date
    processed: bool = False
    goal_id: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Budget":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            amount=float(row["amount"] or 0),
            timeframe=row.get("timeframe") or WEEK,
            is_active=bool(row.get("is_active")),
            start_date=parse_date(row["start_date"]),
            end_date=parse_date(row["end_date"]),
            processed=bool(row.get("processed")),
            goal_id=row.get("goal_id"),
            created_at=row.get("created_at") or "",
        )


@dataclass(frozen=True)
class SavingsGoal:
    id: str
    user_id: str
    goal_name: str
    target_amount: float
    current_amount: float
    created_at: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "SavingsGoal":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            goal_name=row.get("goal_name") or "",
            target_amount=float(row["target_amount"] or 0),
            current_amount=float(row["current_amount"] or 0),
            created_at=row.get("created_at") or "",
        )


# Derived records, never persisted

@dataclass(frozen=True)
class BudgetSummary:
    total_budget: float
    total_spent: float
    remaining: float
    weekly_spent: float
    monthly_spent: float
    percentage: int


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    amount: float
    percentage: int
    is_essential: bool


@dataclass(frozen=True)
class EssentialSplit:
    essential: float
    non_essential: float
    essential_percentage: int


@dataclass(frozen=True)
class Exhaustion:
    days: int
    date: date


@dataclass(frozen=True)
class TrendPoint:
    period: str
    amount: float


@dataclass(frozen=True)
class Alert:
    type: str       # warning | danger | info | success
    title: str
    message: str


@dataclass(frozen=True)
class GoalProgress:
    percentage: int
    remaining: float
    achieved: bool


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    message: str = ""


@dataclass(frozen=True)
class Result:
    """Envelope returned by every manager operation."""
    success: bool
    message: str
    data: Any = None
