"""
Tests for record building, placement and batch handling.

Run with: pytest tests/
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest
import requests

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cad_data import normalize_payload
from placement import (
    AU_TO_LD,
    PlacementSession,
    create_trail,
    load_batch,
    make_record,
    place_asteroids,
)


def sample_payload():
    return {
        "fields": ["des", "cd", "dist", "v_rel", "h", "diameter", "fullname"],
        "data": [
            ["2025 RA", "2025-Sep-04 12:34.56", "0.1", "10", "20", "0.5", "  (2025 RA)  "],
            ["2025 RB", "2025-Sep-05 01:02", "0.02", None, "25.1", None, None],
            ["2025 RC", "2025-Sep-06 23:59", "-1", "3", "22", None, "(2025 RC)"],
            ["2025 RD", "2025-Sep-07 10:00", "abc", "3", "22", None, "(2025 RD)"],
        ],
    }


def sample_records():
    return normalize_payload(sample_payload())


class TestRecords:
    """Test building placement records from normalized rows."""

    def test_example_record(self):
        rec = make_record({"diameter": 500.0, "v_rel": "10", "dist": "0.1", "h": 20,
                           "fullname": "  (2025 RA)", "cd": "2025-Sep-04 12:34.56"})
        assert rec.diameter_m == 500.0
        assert rec.distance_ld == pytest.approx(38.917)
        assert rec.velocity_km_s == 10.0
        assert rec.name == "2025 RA"
        assert rec.close_approach_date == "2025-Sep-04 12:34"

    def test_defaults_for_missing_fields(self):
        rec = make_record({"dist": "0.02", "diameter": 30.0})
        assert rec.name == "Unnamed"
        assert rec.close_approach_date == "Unknown"
        assert rec.velocity_km_s == 0.0001

    def test_zero_velocity_replaced(self):
        rec = make_record({"dist": "0.02", "diameter": 30.0, "v_rel": "0"})
        assert rec.velocity_km_s == 0.0001

    @pytest.mark.parametrize("dist", ["-1", "0", "abc", None, "inf", "nan"])
    def test_unusable_distance(self, dist):
        assert make_record({"dist": dist, "diameter": 10.0}) is None


class TestPlacement:
    """Test positions, trails and tracking."""

    def test_skips_bad_distances(self):
        session = PlacementSession()
        session.begin_batch()
        placed = place_asteroids(session, sample_records(), rng=np.random.default_rng(1))

        assert len(placed) == 2
        assert len(session.tracked) == 2
        assert len(session.scene) == 4
        assert all(e.record.distance_au > 0 for e in session.tracked)

    def test_position_on_band(self):
        session = PlacementSession()
        session.begin_batch()
        place_asteroids(session, sample_records(), rng=np.random.default_rng(2))

        for entry in session.tracked:
            x, y, z = entry.body.position
            assert math.hypot(x, z) == pytest.approx(1 + entry.record.distance_au * AU_TO_LD)
            assert -2.75 <= y <= 2.75

    def test_scale_from_diameter(self):
        session = PlacementSession()
        session.begin_batch()
        place_asteroids(session, sample_records()[:1], rng=np.random.default_rng(3))
        assert session.tracked[0].body.scale == pytest.approx(500 * 1e-5 + 0.001)

    def test_trail_geometry(self):
        session = PlacementSession()
        session.begin_batch()
        place_asteroids(session, sample_records()[:1], rng=np.random.default_rng(4))
        entry = session.tracked[0]
        points = entry.trail.points

        assert points.shape == (20, 3)
        assert np.allclose(points[0], entry.body.position)
        steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
        assert np.allclose(steps, 0.05)
        # trail runs tangentially, so it stays level
        assert np.allclose(points[:, 1], entry.body.position[1])

    def test_create_trail_normalizes_direction(self):
        points = create_trail((0.0, 0.0, 0.0), (0.0, 0.0, 4.0), length=3)
        assert np.allclose(points, [[0, 0, 0], [0, 0, -0.05], [0, 0, -0.1]])

    def test_not_retained(self):
        session = PlacementSession()
        session.begin_batch()
        placed = place_asteroids(session, sample_records(), retain=False, rng=np.random.default_rng(5))
        assert len(placed) == 2
        assert session.tracked == []
        assert len(session.scene) == 4


class TestBatches:
    """Test clearing and stale-batch handling."""

    def test_new_batch_clears_previous(self):
        session = PlacementSession()
        session.begin_batch()
        place_asteroids(session, sample_records(), rng=np.random.default_rng(6))

        session.begin_batch()
        assert session.tracked == []
        assert len(session.scene) == 0

    def test_batch_ids_increase(self):
        session = PlacementSession()
        first = session.begin_batch()
        second = session.begin_batch()
        assert second > first
        assert session.is_current(second)
        assert not session.is_current(first)

    def test_stale_placement_is_dropped(self):
        session = PlacementSession()
        stale = session.begin_batch()
        session.begin_batch()

        placed = place_asteroids(session, sample_records(), batch_id=stale, rng=np.random.default_rng(7))
        assert placed == []
        assert session.tracked == []
        assert len(session.scene) == 0

    def test_untracked_leftovers_removed(self):
        session = PlacementSession()
        session.begin_batch()
        place_asteroids(session, sample_records(), retain=False, rng=np.random.default_rng(8))
        session.begin_batch()
        assert len(session.scene) == 0


class TestLoadBatch:
    """Test fetching a date window into a fresh batch."""

    @staticmethod
    def counting_fetch(payload):
        calls = []

        def fetch(start, end):
            calls.append((start, end))
            return payload
        return fetch, calls

    def test_first_load_places_batch(self):
        session = PlacementSession()
        fetch, calls = self.counting_fetch(sample_payload())

        assert load_batch(session, "2025-09-04", "2025-10-04", fetch,
                          rng=np.random.default_rng(1))
        assert calls == [("2025-09-04", "2025-10-04")]
        assert len(session.tracked) == 2
        assert session.last_range == ("2025-09-04", "2025-10-04")
        assert session.batch_id == 1
        assert session.fetch_attempted

    def test_same_window_is_noop(self):
        session = PlacementSession()
        fetch, calls = self.counting_fetch(sample_payload())
        load_batch(session, "2025-09-04", "2025-10-04", fetch)
        tracked = list(session.tracked)

        assert not load_batch(session, "2025-09-04", "2025-10-04", fetch)
        assert len(calls) == 1
        assert session.batch_id == 1
        assert all(a is b for a, b in zip(session.tracked, tracked))

    def test_new_window_replaces_batch(self):
        session = PlacementSession()
        fetch, calls = self.counting_fetch(sample_payload())
        load_batch(session, "2025-09-04", "2025-10-04", fetch)
        old = list(session.tracked)

        assert load_batch(session, "2025-10-04", "2025-11-04", fetch)
        assert len(calls) == 2
        assert session.batch_id == 2
        assert len(session.tracked) == 2
        assert len(session.scene) == 4
        assert not any(entry is old_entry for entry in session.tracked for old_entry in old)
        assert all(body.batch_id == 2 for body in session.scene.bodies())

    def test_failed_fetch_keeps_previous_batch(self):
        session = PlacementSession()
        fetch, _ = self.counting_fetch(sample_payload())
        load_batch(session, "2025-09-04", "2025-10-04", fetch)
        tracked = list(session.tracked)

        def failing(start, end):
            raise requests.ConnectionError("offline")

        assert not load_batch(session, "2025-10-04", "2025-11-04", failing)
        assert session.last_range == ("2025-09-04", "2025-10-04")
        assert session.batch_id == 1
        assert all(a is b for a, b in zip(session.tracked, tracked))
        assert len(session.scene) == 4

    def test_failed_first_load_is_not_retried(self):
        """A failed initial fetch still counts as attempted; the next rerun won't refetch."""
        session = PlacementSession()

        def failing(start, end):
            raise ValueError("not JSON")

        assert not load_batch(session, "2025-09-04", "2025-10-04", failing)
        assert session.fetch_attempted
        assert session.last_range is None
        assert session.tracked == []

    def test_dates_passed_as_strings(self):
        from datetime import date

        session = PlacementSession()
        fetch, calls = self.counting_fetch({"fields": [], "data": []})
        load_batch(session, date(2025, 9, 4), date(2025, 10, 4), fetch)
        assert calls == [("2025-09-04", "2025-10-04")]
        assert session.tracked == []


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
