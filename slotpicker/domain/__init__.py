"""
Domain layer - Pure business logic without external dependencies.
"""

from .candidates import WindowFilter, filter_candidates, generate_candidates
from .conflicts import remove_conflicts
from .models import BusyInterval, DailyWindow, Slot, TimeOfDay, TimeRange
from .sampler import SamplingConfig, WeightedSampler, sample_slots
from .strategies import Strategy

__all__ = [
    "BusyInterval",
    "DailyWindow",
    "SamplingConfig",
    "Slot",
    "Strategy",
    "TimeOfDay",
    "TimeRange",
    "WeightedSampler",
    "WindowFilter",
    "filter_candidates",
    "generate_candidates",
    "remove_conflicts",
    "sample_slots",
]
