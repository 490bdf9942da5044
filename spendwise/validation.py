"""Form-level input checks.

Every validator returns a ``ValidationResult``.  The composite form validators
chain the single-field checks through ``Either.bind`` so the first failure
short-circuits the rest; errors are never aggregated.
"""
import math
import re
from datetime import date, datetime
from typing import Callable

from spendwise.domain import ValidationResult
from spendwise.errors import ValidationError
from spendwise.functional import Either, Left, Right

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")

OK = ValidationResult(True, "")


def _fail(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def validate_email(email) -> ValidationResult:
    if not email:
        return _fail("Email is required")
    if not EMAIL_RE.match(email):
        return _fail("Invalid email format")
    return OK


def validate_username(username) -> ValidationResult:
    if not username:
        return _fail("Username is required")
    if len(username) < 3:
        return _fail("Username must be at least 3 characters")
    if len(username) > 20:
        return _fail("Username must be less than 20 characters")
    if not USERNAME_RE.match(username):
        return _fail("Username can only contain letters, numbers, and underscores")
    return OK


def validate_password(password) -> ValidationResult:
    if not password:
        return _fail("Password is required")
    if len(password) < 6:
        return _fail("Password must be at least 6 characters")
    return OK


def validate_password_match(password, confirm_password) -> ValidationResult:
    if password != confirm_password:
        return _fail("Passwords do not match!")
    return OK


def validate_required(value, field_name: str) -> ValidationResult:
    if not value or str(value).strip() == "":
        return _fail(f"{field_name} is required")
    return OK


def validate_amount(amount, field_name: str = "Amount") -> ValidationResult:
    # NaN and empty input both read as "not greater than 0"
    if not amount or (isinstance(amount, float) and math.isnan(amount)):
        return _fail(f"{field_name} must be greater than 0")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return _fail(f"{field_name} must be a valid number")
    if math.isnan(value):
        return _fail(f"{field_name} must be a valid number")
    if value <= 0:
        return _fail(f"{field_name} must be greater than 0")
    return OK


def validate_date(value) -> ValidationResult:
    if not value:
        return _fail("Date is required")
    if isinstance(value, (date, datetime)):
        return OK
    try:
        datetime.fromisoformat(str(value))
    except ValueError:
        return _fail("Invalid date format")
    return OK


def _check(validator: Callable[[], ValidationResult]) -> Callable[[object], Either]:
    def _step(_):
        result = validator()
        return Right(result) if result.is_valid else Left(result)
    return _step


def _chain(*validators: Callable[[], ValidationResult]) -> ValidationResult:
    outcome: Either = Right(OK)
    for validator in validators:
        outcome = outcome.bind(_check(validator))
    return OK if outcome.is_right() else outcome.get_error()


def validate_expense_form(amount, description, expense_date) -> ValidationResult:
    return _chain(
        lambda: validate_amount(amount),
        lambda: validate_required(description, "Description"),
        lambda: validate_date(expense_date),
    )


def validate_budget_form(amount) -> ValidationResult:
    return validate_amount(amount, "Budget amount")


def as_amount(value) -> float:
    """Numeric form value; blank input reads as 0. Raises ValueError otherwise."""
    if value is None or value == "":
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"not a number: {value!r}") from exc
    if math.isnan(amount):
        raise ValueError("not a number: nan")
    return amount


def _current_amount_in_range(target_amount, current_amount) -> ValidationResult:
    try:
        current = as_amount(current_amount)
    except ValueError:
        return _fail("Current amount must be a valid number")
    if current < 0:
        return _fail("Current amount cannot be negative")
    if current > float(target_amount):
        return _fail("Current amount cannot exceed target amount")
    return OK


def validate_savings_goal_form(goal_name, target_amount, current_amount) -> ValidationResult:
    return _chain(
        lambda: validate_required(goal_name, "Goal name"),
        lambda: validate_amount(target_amount, "Target amount"),
        lambda: _current_amount_in_range(target_amount, current_amount),
    )


def validate_registration_form(full_name, email, username, password, confirm_password) -> ValidationResult:
    return _chain(
        lambda: validate_required(full_name, "Full name"),
        lambda: validate_email(email),
        lambda: validate_username(username),
        lambda: validate_password(password),
        lambda: validate_password_match(password, confirm_password),
    )


def validate_login_form(username, password) -> ValidationResult:
    if not username or not password:
        return _fail("Please enter username and password!")
    return OK


def ensure_valid(result: ValidationResult) -> None:
    """Raise ``ValidationError`` carrying the message of a failed check."""
    if not result.is_valid:
        raise ValidationError(result.message)
