"""
Weighting strategies that bias which slot is picked from a chunk.

Each strategy maps a chunk position to a weight in ``[0, 1]``. Weights from
several strategies are added up by the sampler.
"""

from enum import Enum
from typing import Optional

from .models import WEEKDAY_NAMES, Slot, weekday_index


class Strategy(str, Enum):
    """Named weighting rules accepted by the sampler."""

    LINEAR = "linear"
    HEAVY_FIRSTS = "heavy-firsts"
    HEAVY_LASTS = "heavy-lasts"
    HEAVY_CORNERS = "heavy-corners"
    HEAVY_SUNDAY = "heavy-sunday"
    HEAVY_MONDAY = "heavy-monday"
    HEAVY_TUESDAY = "heavy-tuesday"
    HEAVY_WEDNESDAY = "heavy-wednesday"
    HEAVY_THURSDAY = "heavy-thursday"
    HEAVY_FRIDAY = "heavy-friday"
    HEAVY_SATURDAY = "heavy-saturday"
    HEAVY_MORNINGS = "heavy-mornings"
    HEAVY_AFTERNOONS = "heavy-afternoons"
    HEAVY_EVENINGS = "heavy-evenings"
    LIGHT_FIRSTS = "light-firsts"
    LIGHT_LASTS = "light-lasts"
    LIGHT_CORNERS = "light-corners"
    LIGHT_SUNDAY = "light-sunday"
    LIGHT_MONDAY = "light-monday"
    LIGHT_TUESDAY = "light-tuesday"
    LIGHT_WEDNESDAY = "light-wednesday"
    LIGHT_THURSDAY = "light-thursday"
    LIGHT_FRIDAY = "light-friday"
    LIGHT_SATURDAY = "light-saturday"
    LIGHT_MORNINGS = "light-mornings"
    LIGHT_AFTERNOONS = "light-afternoons"
    LIGHT_EVENINGS = "light-evenings"

    @property
    def weekday(self) -> Optional[int]:
        """Weekday number (0=Sunday) for heavy-<weekday> strategies, else None."""
        prefix, _, name = self.value.partition("-")
        if prefix == "heavy" and name in WEEKDAY_NAMES:
            return WEEKDAY_NAMES.index(name)
        return None


def _hour_in(slot: Slot, timezone: str, low: int, high: int) -> bool:
    hour = slot.start.in_timezone(timezone).hour
    return hour > low and hour < high


def strategy_weight(
    strategy: Strategy,
    index: int,
    length: int,
    slot: Slot,
    timezone: Optional[str] = None,
) -> float:
    """
    Weight of the element at ``index`` in a chunk of ``length`` slots.

    Weekday and time-of-day strategies need a timezone and weigh nothing
    without one. ``linear`` and the ``light-*`` family weigh nothing.
    """
    if strategy is Strategy.HEAVY_FIRSTS:
        return (length - index) / length
    if strategy is Strategy.HEAVY_LASTS:
        return index / length
    if strategy is Strategy.HEAVY_CORNERS:
        half = length / 2
        return abs(half - index) / half

    if timezone is None:
        return 0.0

    weekday = strategy.weekday
    if weekday is not None:
        return 1.0 if weekday_index(slot.start.in_timezone(timezone)) == weekday else 0.0

    if strategy is Strategy.HEAVY_MORNINGS:
        return 1.0 if _hour_in(slot, timezone, 5, 12) else 0.0
    if strategy is Strategy.HEAVY_AFTERNOONS:
        # Never true for hours 0-23; kept as the established behaviour.
        return 1.0 if _hour_in(slot, timezone, 11, 4) else 0.0
    if strategy is Strategy.HEAVY_EVENINGS:
        return 1.0 if _hour_in(slot, timezone, 3, 6) else 0.0

    return 0.0
