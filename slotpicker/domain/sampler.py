"""
Weighted sampling of surviving slots down to a requested count.

Algorithm:
1. Split the slots into ``count`` contiguous chunks, each taking
   ``ceil(remaining / parts_left)`` elements from the front
2. Weigh every element of a chunk: 1 plus the rounded, multiplier-scaled
   weight of each active strategy
3. Draw one element per chunk, redrawing a bounded number of times when
   the draw was already picked for an earlier chunk
"""

import bisect
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .models import Slot
from .strategies import Strategy, strategy_weight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingConfig:
    """How many slots to recommend and how to bias the choice."""
    count: Optional[int] = None
    strategies: Tuple[Strategy, ...] = field(default=(Strategy.LINEAR,))
    weight_multiplier: float = 2


def chunk(items: Sequence[Slot], parts: int) -> List[List[Slot]]:
    """
    Partition ``items`` into ``parts`` contiguous chunks.

    Each chunk takes ``ceil(len(remaining) / parts_left)`` elements, so chunk
    sizes shrink towards the end of the list.
    """
    remaining = list(items)
    chunks: List[List[Slot]] = []

    for parts_left in range(parts, 0, -1):
        size = math.ceil(len(remaining) / parts_left)
        chunks.append(remaining[:size])
        remaining = remaining[size:]

    return chunks


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def chunk_weights(
    items: Sequence[Slot],
    config: SamplingConfig,
    timezone: Optional[str] = None,
) -> List[int]:
    """
    Integer weight per element: one base share plus the extra shares each
    strategy grants. Strategies add up, they do not multiply. A multiplier
    below 1 grants no extra shares.
    """
    length = len(items)
    extra_factor = config.weight_multiplier - 1
    weights: List[int] = []

    for index, slot in enumerate(items):
        weight = 1
        for strategy in config.strategies:
            bias = strategy_weight(strategy, index, length, slot, timezone)
            weight += max(0, _round_half_up(bias * extra_factor))
        weights.append(weight)

    return weights


class WeightedSampler:
    """
    Picks one representative per chunk using cumulative weights.
    """

    def __init__(
        self,
        config: SamplingConfig,
        timezone: Optional[str] = None,
        rng: Optional[random.Random] = None,
        log: Optional[Callable[..., None]] = None,
    ):
        self.config = config
        self.timezone = timezone
        self.rng = rng or random.Random()
        self.log = log

    def sample(self, slots: Sequence[Slot]) -> List[Slot]:
        """Return the chosen representatives in chunk order; a count of 0 or None keeps everything."""
        count = self.config.count
        if not count or count >= len(slots):
            return list(slots)

        chosen: List[Slot] = []
        for group in chunk(slots, count):
            chosen.append(self._pick(group, chosen))

        return chosen

    def _pick(self, group: List[Slot], chosen: List[Slot]) -> Slot:
        cumulative = self._cumulative(group)
        total = cumulative[-1]

        for _ in range(len(group)):
            draw = self.rng.random() * total
            candidate = group[bisect.bisect_right(cumulative, draw)]
            if candidate not in chosen:
                return candidate

        fallback = next((slot for slot in group if slot not in chosen), group[0])
        logger.warning(
            "Sampling exhausted after %d attempts; falling back to %s",
            len(group),
            fallback.start,
        )
        if self.log:
            self.log("Sampling exhausted, falling back to", fallback.start)
        return fallback

    def _cumulative(self, group: List[Slot]) -> List[int]:
        cumulative: List[int] = []
        running = 0
        for weight in chunk_weights(group, self.config, self.timezone):
            running += weight
            cumulative.append(running)
        return cumulative


def sample_slots(
    slots: Sequence[Slot],
    config: SamplingConfig,
    *,
    timezone: Optional[str] = None,
    rng: Optional[random.Random] = None,
    log: Optional[Callable[..., None]] = None,
) -> List[Slot]:
    """Convenience wrapper around :class:`WeightedSampler`."""
    return WeightedSampler(config, timezone=timezone, rng=rng, log=log).sample(slots)
