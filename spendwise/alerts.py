from typing import List, Optional

from spendwise.domain import Alert

WARNING_THRESHOLD = 80
DANGER_THRESHOLD = 90
EXCEEDED_THRESHOLD = 100


def should_show_alert(percentage: int) -> bool:
    return percentage >= WARNING_THRESHOLD


def budget_alert(percentage: int) -> Optional[Alert]:
    if percentage >= EXCEEDED_THRESHOLD:
        return Alert(
            type="danger",
            title="Budget Exceeded!",
            message="You have exceeded your budget. Consider reviewing your expenses.",
        )
    if percentage >= DANGER_THRESHOLD:
        return Alert(
            type="danger",
            title="Budget Alert",
            message=f"You've spent {percentage}% of your budget. Budget exceeded soon!",
        )
    if percentage >= WARNING_THRESHOLD:
        return Alert(
            type="warning",
            title="Budget Alert",
            message=f"You've spent {percentage}% of your budget. Try to reduce non-essential expenses.",
        )
    return None


def analytics_alerts(
    percentage: int,
    remaining: float,
    non_essential_this_week: float,
    non_essential_last_week: float,
) -> List[Alert]:
    """Alert feed for the analytics view, most severe first."""
    alerts = []

    alert = budget_alert(percentage)
    if alert is not None:
        alerts.append(alert)

    if non_essential_this_week > non_essential_last_week:
        alerts.append(Alert(
            type="info",
            title="Spending Update",
            message="Non-essential expenses increased this week.",
        ))

    if not should_show_alert(percentage) and remaining > 0:
        alerts.append(Alert(
            type="success",
            title="Great Job!",
            message="Staying under budget helped increase your savings.",
        ))

    return alerts
