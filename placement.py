"""
Spatial placement of close-approach records around a unit-radius Earth.

Each record with a usable distance becomes a ``PlacedAsteroid``: the record
plus a body handle and a trail handle that live in the ``RenderScene``.
A ``PlacementSession`` owns the tracked entries and hands out batch ids so a
placement from a superseded fetch can tell it is stale before it touches
anything shared.
"""
import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache

import numpy as np
import requests

from cad_data import normalize_payload

logger = logging.getLogger(__name__)

EARTH_RADIUS = 1.0
AU_TO_LD = 389.17
HEIGHT_SPREAD = 5.5  # band height, centred on the equator
MIN_VELOCITY = 0.0001

TRAIL_LENGTH = 20
TRAIL_SPACING = 0.05


@dataclass(frozen=True)
class AsteroidTemplate:
    """Shared look of every body; scale is multiplied by ``size_per_scale``."""
    symbol: str = "diamond"
    color: str = "#b8a48c"
    trail_color: str = "#ffaa44"
    trail_opacity: float = 0.4
    size_per_scale: float = 600.0
    min_size: float = 2.0


@lru_cache(maxsize=1)
def load_template():
    logger.debug("Loading asteroid template")
    return AsteroidTemplate()


@dataclass
class AsteroidRecord:
    name: str
    distance_au: float
    distance_ld: float
    diameter_m: float
    velocity_km_s: float
    close_approach_date: str


@dataclass(eq=False)
class Body:
    position: np.ndarray
    scale: float
    rotation: tuple
    record: AsteroidRecord = None
    batch_id: int = 0
    visible: bool = True


@dataclass(eq=False)
class Trail:
    points: np.ndarray
    batch_id: int = 0
    visible: bool = True


@dataclass(eq=False)
class PlacedAsteroid:
    record: AsteroidRecord
    body: Body
    trail: Trail


class RenderScene:
    """Display-only list of handles; the session decides what lives here."""

    def __init__(self):
        self.objects = []

    def add(self, handle):
        self.objects.append(handle)

    def remove(self, handle):
        # identity, not equality: handles hold numpy arrays
        self.objects = [obj for obj in self.objects if obj is not handle]

    def bodies(self):
        return [obj for obj in self.objects if isinstance(obj, Body)]

    def trails(self):
        return [obj for obj in self.objects if isinstance(obj, Trail)]

    def __len__(self):
        return len(self.objects)


@dataclass
class PlacementSession:
    scene: RenderScene = field(default_factory=RenderScene)
    tracked: list = field(default_factory=list)
    batch_id: int = 0
    last_range: tuple = None
    fetch_attempted: bool = False

    def begin_batch(self):
        """Drop everything from the previous batch and return the new id."""
        for entry in self.tracked:
            self.scene.remove(entry.body)
            self.scene.remove(entry.trail)
        self.tracked.clear()

        # untracked placements of older batches go too
        leftovers = [obj for obj in self.scene.objects if obj.batch_id <= self.batch_id]
        for obj in leftovers:
            self.scene.remove(obj)

        self.batch_id += 1
        logger.debug("Started placement batch %d", self.batch_id)
        return self.batch_id

    def is_current(self, batch_id):
        return batch_id == self.batch_id


def _parse_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def make_record(item):
    """
    Build an ``AsteroidRecord`` from a normalized dict.

    Returns None when the distance is not finite and positive.
    """
    distance_au = _parse_float(item.get("dist"))
    if not math.isfinite(distance_au) or distance_au <= 0:
        return None

    velocity = _parse_float(item.get("v_rel"))
    if math.isnan(velocity) or velocity == 0:
        velocity = MIN_VELOCITY

    name = (item.get("fullname") or "Unnamed").replace("(", "").replace(")", "").strip()
    close_approach = str(item.get("cd") or "Unknown").split(".")[0]

    return AsteroidRecord(
        name=name,
        distance_au=distance_au,
        distance_ld=distance_au * AU_TO_LD,
        diameter_m=_parse_float(item.get("diameter")),
        velocity_km_s=velocity,
        close_approach_date=close_approach,
    )


def body_scale(diameter_m):
    return diameter_m * 0.00001 + 0.001


def create_trail(start, direction, length=TRAIL_LENGTH, spacing=TRAIL_SPACING):
    """Points running back from ``start`` against ``direction``."""
    direction = np.asarray(direction, dtype=float)
    norm = np.linalg.norm(direction)
    if norm > 0:
        direction = direction / norm
    steps = np.arange(length, dtype=float)[:, None] * spacing
    return np.asarray(start, dtype=float) - steps * direction


def place_one(session, batch_id, item, rng, retain=True):
    record = make_record(item)
    if record is None:
        return None

    angle = rng.uniform(0, 2 * math.pi)
    height = (rng.uniform() - 0.5) * HEIGHT_SPREAD

    # the template is shared by every placement and must be ready first
    load_template()

    if not session.is_current(batch_id):
        logger.debug("Discarding stale placement of %s (batch %d)", record.name, batch_id)
        return None

    radius = EARTH_RADIUS + record.distance_ld
    position = np.array([math.cos(angle) * radius, height, math.sin(angle) * radius])
    body = Body(
        position=position,
        scale=body_scale(record.diameter_m),
        rotation=tuple(rng.uniform(0, math.pi, 3)),
        record=record,
        batch_id=batch_id,
    )
    trail = Trail(
        points=create_trail(position, (-math.sin(angle), 0.0, math.cos(angle))),
        batch_id=batch_id,
    )

    session.scene.add(body)
    session.scene.add(trail)

    placed = PlacedAsteroid(record=record, body=body, trail=trail)
    if retain:
        session.tracked.append(placed)
    return placed


def place_asteroids(session, records, retain=True, rng=None, batch_id=None):
    """Place every usable record; returns the entries that were created."""
    rng = rng if rng is not None else np.random.default_rng()
    batch_id = session.batch_id if batch_id is None else batch_id

    placed = []
    for item in records:
        entry = place_one(session, batch_id, item, rng, retain=retain)
        if entry is not None:
            placed.append(entry)

    skipped = len(records) - len(placed)
    if skipped:
        logger.info("Placed %d asteroids, skipped %d", len(placed), skipped)
    return placed


def load_batch(session, start, end, fetch, rng=None):
    """
    Fetch a date window with ``fetch(start, end)`` and re-place everything.

    Same window as last time is a no-op. A failed fetch is logged and leaves
    the previous batch untouched. Returns True when a new batch was placed.
    """
    window = (str(start), str(end))
    session.fetch_attempted = True
    if session.last_range == window:
        return False
    try:
        payload = fetch(*window)
    except (requests.RequestException, ValueError):
        logger.exception("❌ Error fetching asteroid data for %s..%s", *window)
        return False

    records = normalize_payload(payload)
    batch_id = session.begin_batch()
    place_asteroids(session, records, retain=True, rng=rng, batch_id=batch_id)
    session.last_range = window
    return True
