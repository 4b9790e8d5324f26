"""Route candidate identity: distance, geometric signature and deduplication."""

import math
from typing import Iterable, List, Tuple

from bikesafe.schemas.routing import RouteCandidate
from bikesafe.services.routing.insights import compute_trip_metrics

SIGNATURE_SAMPLES = 12
SIGNATURE_DECIMALS = 5

Signature = Tuple[Tuple[Tuple[float, float], ...], int]

EMPTY_SIGNATURE: Signature = ((), 0)


def distance_of(candidate: RouteCandidate) -> float:
    """Provider summary distance, else the computed trip distance, else 0."""
    if candidate.distance_meters is not None:
        return candidate.distance_meters
    metrics = compute_trip_metrics(candidate.coordinates)
    if metrics:
        return metrics.total_distance_m
    return 0.0


def signature(candidate: RouteCandidate, sample_count: int = SIGNATURE_SAMPLES) -> Signature:
    """Coarse fingerprint of a route's shape and length.

    Samples ``sample_count`` evenly spaced path positions, rounds each to
    5 decimals (about 1 m) and pairs them with the distance rounded to the
    meter. Jitter below the rounding precision does not change the result.
    """
    coords = candidate.coordinates
    if not coords:
        return EMPTY_SIGNATURE

    n = len(coords)
    steps = max(1, sample_count - 1)
    picks = []
    for i in range(sample_count):
        j = (i * (n - 1)) // steps
        x, y = coords[j][0], coords[j][1]
        picks.append((round(x, SIGNATURE_DECIMALS), round(y, SIGNATURE_DECIMALS)))

    meters = int(math.floor(distance_of(candidate) + 0.5))
    return tuple(picks), meters


def is_same(a: RouteCandidate, b: RouteCandidate) -> bool:
    return signature(a) == signature(b)


def dedupe(pool: Iterable[RouteCandidate]) -> List[RouteCandidate]:
    """Keep the first candidate per signature, preserving input order."""
    seen = set()
    unique = []
    for candidate in pool:
        key = signature(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique
