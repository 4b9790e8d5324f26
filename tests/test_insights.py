"""Tests for trip metrics and directions."""

import pytest


class TestTripMetrics:
    """Tests for distance, elevation and ETA aggregation."""

    def test_one_kilometer_climb(self):
        """~1000 m edge climbing 50 m: 5% grade slows the rider to 14 km/h."""
        from bikesafe.services.routing.insights import compute_trip_metrics

        metrics = compute_trip_metrics([[0, 0, 0], [0, 0.009, 50]])

        assert metrics.ascent_m == 50
        assert metrics.descent_m == 0
        assert metrics.total_distance_m == pytest.approx(1000.75, abs=0.05)
        assert metrics.average_speed_kph == pytest.approx(14.0, abs=0.01)
        assert metrics.eta_minutes == pytest.approx(1.00075 / 14 * 60, abs=0.01)
        assert metrics.elevation_m == [0, 50]
        assert metrics.distance_km[0] == 0
        assert metrics.distance_km[-1] == pytest.approx(1.00075, abs=0.0001)

    def test_fewer_than_two_points(self):
        from bikesafe.services.routing.insights import compute_trip_metrics

        assert compute_trip_metrics([]) is None
        assert compute_trip_metrics([[0, 0, 10]]) is None

    def test_missing_elevation_defaults_to_zero(self):
        from bikesafe.services.routing.insights import compute_trip_metrics

        metrics = compute_trip_metrics([[0, 0], [0, 0.009]])

        assert metrics.elevation_m == [0, 0]
        assert metrics.ascent_m == 0
        assert metrics.average_speed_kph == pytest.approx(18.0)

    def test_speed_is_clamped(self):
        """Steep descents cap at 28 km/h and steep climbs floor at 10 km/h."""
        from bikesafe.services.routing.insights import compute_trip_metrics

        downhill = compute_trip_metrics([[0, 0, 200], [0, 0.009, 0]])
        uphill = compute_trip_metrics([[0, 0, 0], [0, 0.009, 200]])

        assert downhill.average_speed_kph == pytest.approx(28.0)
        assert downhill.descent_m == 200
        assert uphill.average_speed_kph == pytest.approx(10.0)

    def test_speed_is_weighted_by_edge_length(self):
        from bikesafe.services.routing.insights import compute_trip_metrics

        # Flat 2 km at 18 km/h, then a 1 km climb at 10 km/h
        metrics = compute_trip_metrics([[0, 0, 0], [0, 0.018, 0], [0, 0.027, 200]])

        assert metrics.average_speed_kph == pytest.approx((18 * 2 + 10 * 1) / 3, abs=0.01)

    def test_zero_length_path(self):
        """Identical points give zero distance and zero ETA without failing."""
        from bikesafe.services.routing.insights import compute_trip_metrics

        metrics = compute_trip_metrics([[1, 1, 5], [1, 1, 9]])

        assert metrics.total_distance_m == 0
        assert metrics.eta_minutes == 0
        assert metrics.ascent_m == 4


class TestNearestIndexForKm:
    """Tests for scrubbing along the elevation profile."""

    def test_picks_closest_point(self):
        from bikesafe.schemas.routing import TripMetrics
        from bikesafe.services.routing.insights import nearest_index_for_km

        metrics = TripMetrics(distance_km=[0, 0.5, 1.0, 1.5])

        assert nearest_index_for_km(metrics, 0.9) == 2
        assert nearest_index_for_km(metrics, 10) == 3

    def test_first_index_wins_ties(self):
        from bikesafe.schemas.routing import TripMetrics
        from bikesafe.services.routing.insights import nearest_index_for_km

        metrics = TripMetrics(distance_km=[0, 1.0, 1.0, 2.0])

        assert nearest_index_for_km(metrics, 1.0) == 1
        assert nearest_index_for_km(metrics, 0.5) == 0

    def test_no_metrics(self):
        from bikesafe.services.routing.insights import nearest_index_for_km

        assert nearest_index_for_km(None, 1.0) == 0


class TestFlattenDirections:
    """Tests for flattening provider steps across segments."""

    def test_steps_are_numbered_per_segment(self):
        from bikesafe.services.routing.insights import flatten_directions

        raw = [
            {"steps": [
                {"instruction": "Head north on Market Street", "name": "Market Street",
                 "distance": 120.5, "duration": 30.1, "type": 11, "way_points": [0, 4]},
                {"instruction": "Turn right", "name": "-", "distance": 80, "duration": 20,
                 "type": 1, "way_points": [4, 7]},
            ]},
            {"steps": [
                {"instruction": "Arrive at destination", "distance": 0, "duration": 0,
                 "type": 10, "way_points": [7, 7]},
            ]},
        ]
        steps = flatten_directions(raw)

        assert [(s.segment_index, s.step_index) for s in steps] == [(0, 0), (0, 1), (1, 0)]
        assert steps[0].name == "Market Street"
        assert steps[0].distance_meters == 120.5
        assert steps[1].name is None
        assert steps[2].way_points == [7, 7]

    def test_missing_segments(self):
        from bikesafe.services.routing.insights import flatten_directions

        assert flatten_directions(None) == []
        assert flatten_directions([{}]) == []
