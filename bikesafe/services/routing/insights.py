"""Trip metrics and turn-by-turn directions for a single route."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bikesafe.schemas.routing import DirectionStep, TripMetrics
from bikesafe.services.routing.geometry import distance_meters, elevation_of

logger = logging.getLogger(__name__)

# Flat-ground cruising speed and the slowdown per unit of grade (km/h)
BASE_SPEED_KPH = 18
GRADE_SPEED_FACTOR = 80
MIN_EDGE_SPEED_KPH = 10
MAX_EDGE_SPEED_KPH = 28
# Floor applied to the averaged speed before computing the ETA
MIN_AVERAGE_SPEED_KPH = 5


def edge_speed_kph(distance_m: float, climb_m: float) -> float:
    """Estimated riding speed over one edge; climbs slow down, descents speed up."""
    grade = climb_m / distance_m
    speed = BASE_SPEED_KPH - GRADE_SPEED_FACTOR * grade
    return max(MIN_EDGE_SPEED_KPH, min(MAX_EDGE_SPEED_KPH, speed))


def compute_trip_metrics(coordinates: Sequence[Sequence[float]]) -> Optional[TripMetrics]:
    """Compute distance, elevation and timing metrics in one forward pass.

    Args:
        coordinates: Path positions as ``(lon, lat)`` or ``(lon, lat, elevation)``

    Returns:
        TripMetrics, or None when the path has fewer than 2 points
    """
    if not coordinates or len(coordinates) < 2:
        return None

    distance_km = [0.0]
    elevation_m = [elevation_of(coordinates[0])]
    total_m = 0.0
    ascent = 0.0
    descent = 0.0
    weighted_speed = 0.0
    weight = 0.0

    for i in range(1, len(coordinates)):
        d = distance_meters(coordinates[i - 1], coordinates[i])
        z = elevation_of(coordinates[i])
        dz = z - elevation_m[-1]

        total_m += d
        distance_km.append(total_m / 1000)
        elevation_m.append(z)

        if dz > 0:
            ascent += dz
        else:
            descent -= dz

        if d > 0:
            weighted_speed += edge_speed_kph(d, dz) * d
            weight += d

    average_speed = weighted_speed / (weight or 1)
    eta_minutes = (total_m / 1000) / max(MIN_AVERAGE_SPEED_KPH, average_speed) * 60

    return TripMetrics(
        distance_km=distance_km,
        elevation_m=elevation_m,
        total_distance_m=total_m,
        ascent_m=ascent,
        descent_m=descent,
        average_speed_kph=average_speed,
        eta_minutes=eta_minutes,
    )


def nearest_index_for_km(metrics: Optional[TripMetrics], km: float) -> int:
    """Index of the point whose cumulative distance is closest to ``km``.

    Used to scrub along an elevation profile. The first index wins on ties;
    an empty series yields 0.
    """
    if not metrics or not metrics.distance_km:
        return 0

    best_index = 0
    best_delta = abs(metrics.distance_km[0] - km)
    for i, value in enumerate(metrics.distance_km):
        delta = abs(value - km)
        if delta < best_delta:
            best_index = i
            best_delta = delta
    return best_index


def flatten_directions(raw_segments: Optional[Sequence[Mapping[str, Any]]]) -> List[DirectionStep]:
    """Flatten provider ``segments[].steps[]`` into one ordered list of steps."""
    steps = []
    for segment_index, segment in enumerate(raw_segments or []):
        for step_index, raw in enumerate(segment.get("steps") or []):
            try:
                steps.append(_parse_step(raw, segment_index, step_index))
            except (TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed step {segment_index}.{step_index}: {e}")
    return steps


def _parse_step(raw: Mapping[str, Any], segment_index: int, step_index: int) -> DirectionStep:
    name = raw.get("name")
    # ORS uses "-" for unnamed ways
    if name in ("", "-"):
        name = None

    step: Dict[str, Any] = {
        "instruction": raw.get("instruction") or "",
        "name": name,
        "distance_meters": float(raw.get("distance") or 0),
        "duration_seconds": float(raw.get("duration") or 0),
        "type": int(raw["type"]) if raw.get("type") is not None else None,
        "way_points": [int(w) for w in raw.get("way_points") or []],
        "segment_index": segment_index,
        "step_index": step_index,
    }
    return DirectionStep(**step)
