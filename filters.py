"""Visibility filtering by diameter, speed and distance, plus range-pair syncing."""
import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Slider bounds for each range pair: (lower, upper)
RANGE_BOUNDS = {
    "diameter": (0.0, 1000.0),
    "speed": (0.0, 50.0),
    "distance": (0.0, 70.0),
}


def parse_bound(value, default):
    """Float value of a form input, ``default`` when it can't be read."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(number) else number


@dataclass(frozen=True)
class FilterThresholds:
    min_diameter: float = 0.0
    max_diameter: float = math.inf
    min_speed: float = 0.0
    max_speed: float = math.inf
    min_distance: float = 0.0
    max_distance: float = math.inf

    @classmethod
    def from_inputs(cls, min_diameter=None, max_diameter=None, min_speed=None,
                    max_speed=None, min_distance=None, max_distance=None):
        return cls(
            min_diameter=parse_bound(min_diameter, 0.0),
            max_diameter=parse_bound(max_diameter, math.inf),
            min_speed=parse_bound(min_speed, 0.0),
            max_speed=parse_bound(max_speed, math.inf),
            min_distance=parse_bound(min_distance, 0.0),
            max_distance=parse_bound(max_distance, math.inf),
        )

    def accepts(self, record):
        return (
            self.min_diameter <= record.diameter_m <= self.max_diameter
            and self.min_speed <= record.velocity_km_s <= self.max_speed
            and self.min_distance <= record.distance_ld <= self.max_distance
        )


DEFAULT_THRESHOLDS = FilterThresholds(
    min_diameter=RANGE_BOUNDS["diameter"][0],
    max_diameter=RANGE_BOUNDS["diameter"][1],
    min_speed=RANGE_BOUNDS["speed"][0],
    max_speed=RANGE_BOUNDS["speed"][1],
    min_distance=RANGE_BOUNDS["distance"][0],
    max_distance=RANGE_BOUNDS["distance"][1],
)


def apply_filters(tracked, thresholds):
    """Set body and trail visibility of each tracked entry; returns the visible count."""
    shown = 0
    for entry in tracked:
        show = thresholds.accepts(entry.record)
        entry.body.visible = show
        entry.trail.visible = show
        shown += show
    logger.debug("Filters applied: %d of %d visible", shown, len(tracked))
    return shown


def sync_range_pair(min_value, max_value, source, lower, upper, min_gap=1.0):
    """
    Reconcile a min/max pair after one end changed.

    ``source`` names the end the user moved ("min" or "max"); that end is
    pushed back when the pair would come closer than ``min_gap``. The result
    is clamped to ``[lower, upper]``.
    """
    if source not in ("min", "max"):
        raise ValueError(f"source must be 'min' or 'max', got {source!r}")

    min_value = parse_bound(min_value, lower)
    max_value = parse_bound(max_value, upper)

    if max_value - min_value <= min_gap:
        if source == "min":
            min_value = max_value - min_gap
        else:
            max_value = min_value + min_gap

    min_value = max(lower, min(min_value, upper))
    max_value = max(lower, min(max_value, upper))
    return min_value, max_value
