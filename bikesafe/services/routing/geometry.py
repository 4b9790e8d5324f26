"""Great-circle distance and grade helpers over (lon, lat, elevation?) positions."""

import math
from typing import Sequence

EARTH_RADIUS_M = 6371000


def distance_meters(a: Sequence[float], b: Sequence[float]) -> float:
    """Haversine distance in meters between two (lon, lat, ...) positions."""
    lon1, lat1 = math.radians(a[0]), math.radians(a[1])
    lon2, lat2 = math.radians(b[0]), math.radians(b[1])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def elevation_of(position: Sequence[float]) -> float:
    """Elevation of a position in meters, 0 when the provider sent none."""
    if len(position) > 2 and position[2] is not None:
        return float(position[2])
    return 0.0


def path_length_meters(points: Sequence[Sequence[float]]) -> float:
    """Sum of haversine distances between consecutive points."""
    total = 0.0
    for i in range(1, len(points)):
        total += distance_meters(points[i - 1], points[i])
    return total


def average_grade_percent(points: Sequence[Sequence[float]]) -> float:
    """Average absolute grade of a run of points, in percent.

    Sum of absolute elevation deltas over the sum of planar distances; edges
    of zero planar length are skipped. A degenerate run returns 0.
    """
    planar_sum = 0.0
    climb_sum = 0.0
    for i in range(1, len(points)):
        d = distance_meters(points[i - 1], points[i])
        if d > 0:
            planar_sum += d
            climb_sum += abs(elevation_of(points[i]) - elevation_of(points[i - 1]))

    if planar_sum == 0:
        return 0.0
    return climb_sum / planar_sum * 100
