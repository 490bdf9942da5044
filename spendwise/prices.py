from dataclasses import dataclass
from typing import Iterable, Optional

from spendwise.aggregation import round_half_up
from spendwise.domain import Expense


@dataclass(frozen=True)
class PriceComparison:
    category: str
    item: str
    user_spending: float
    market_price: float
    variance: float
    variance_percent: int
    is_overpaying: bool

    @property
    def message(self) -> str:
        direction = "more" if self.is_overpaying else "less"
        return f"You are paying {abs(self.variance_percent)}% {direction} than average."


def compare_price(category: str, item: str, user_spending: float, market_price: float) -> PriceComparison:
    """Compare what the user paid for an item against the average market price."""
    variance = user_spending - market_price
    percent = round_half_up(variance / market_price * 100) if market_price > 0 else 0
    return PriceComparison(
        category=category,
        item=item,
        user_spending=user_spending,
        market_price=market_price,
        variance=variance,
        variance_percent=percent,
        is_overpaying=variance > 0,
    )


# Average market prices per item, used when no live price feed is configured.
MARKET_PRICES = {
    "Food": {"Tomatoes": 110.0, "Rice": 52.0, "Chicken": 190.0},
    "Transportation": {"Jeepney Fare": 13.0, "Gasoline (1L)": 62.0, "Bus Fare": 15.0},
    "Utilities": {"Electricity (kWh)": 11.5, "Water (m3)": 32.0, "Mobile Load": 100.0},
}


def market_price(category: str, item: str) -> Optional[float]:
    return MARKET_PRICES.get(category, {}).get(item)


def user_spending_for(expenses: Iterable[Expense], item: str) -> float:
    """Average amount the user paid for expenses whose description names the item."""
    needle = item.lower()
    amounts = [e.amount for e in expenses if needle in e.description.lower()]
    if not amounts:
        return 0
    return sum(amounts) / len(amounts)
