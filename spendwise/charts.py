from dataclasses import dataclass
from typing import List, Sequence, Tuple

from spendwise.domain import CategoryBreakdown

DEFAULT_PALETTE = ("#10b981", "#3b82f6", "#f59e0b", "#ef4444", "#8b5cf6", "#ec4899")
OTHERS_COLOR = "#9ca3af"
OTHERS_LABEL = "Others"
MAX_SLICES = 6


@dataclass(frozen=True)
class GradientStop:
    category: str
    color: str
    start: float
    end: float


@dataclass(frozen=True)
class DonutChart:
    stops: Tuple[GradientStop, ...]
    overflow_count: int   # categories beyond the coloured slices


def donut_gradient_stops(categories: Sequence[CategoryBreakdown], palette: Sequence[str] = DEFAULT_PALETTE) -> DonutChart:
    """Colour stops for the spending donut.

    The six largest categories get palette colours in descending amount order
    (cycling through ``palette`` if it is shorter).  The rest share one grey
    ``Others`` stop that runs to 100.  Without overflow the last stop is
    stretched to 100 instead, so rounding slack never leaves a gap.
    """
    ordered = sorted(categories, key=lambda c: c.amount, reverse=True)
    shown = ordered[:MAX_SLICES]
    overflow_count = len(ordered) - len(shown)

    stops: List[GradientStop] = []
    offset = 0.0
    for index, cat in enumerate(shown):
        end = offset + cat.percentage
        stops.append(GradientStop(cat.category, palette[index % len(palette)], offset, end))
        offset = end

    if overflow_count:
        stops.append(GradientStop(OTHERS_LABEL, OTHERS_COLOR, offset, 100.0))
    elif stops and stops[-1].end < 100:
        last = stops[-1]
        stops[-1] = GradientStop(last.category, last.color, last.start, 100.0)

    return DonutChart(stops=tuple(stops), overflow_count=overflow_count)


def conic_gradient(chart: DonutChart, empty_color: str = "#e5e7eb") -> str:
    if not chart.stops:
        return f"conic-gradient({empty_color} 0% 100%)"
    parts = [f"{s.color} {s.start:g}% {s.end:g}%" for s in chart.stops]
    return "conic-gradient(" + ", ".join(parts) + ")"
