"""Risk classification of route segments.

Each interval produced by :mod:`segmentation` is classified from the attribute
values found at its midpoint index plus the average grade over its points.
Attributes are sampled at that single point, not aggregated over the
interval; for a one-edge interval the midpoint is its start index, which
resolves to the range ending there.
"""

import math
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from bikesafe.schemas.routing import (
    AttributeRange,
    RiskBand,
    RiskMix,
    RiskSegment,
    RiskTier,
    TripMetrics,
)
from bikesafe.services.routing.geometry import average_grade_percent, path_length_meters
from bikesafe.services.routing.segmentation import segment_intervals, value_at


SUITABILITY = "suitability"
SURFACE = "surface"
WAYTYPE = "waytype"
STEEPNESS = "steepness"

DEFAULT_SUITABILITY = 7

# Provider surface codes treated as unpaved or rough
ROUGH_SURFACES = frozenset({2, 8, 10, 11, 12, 15, 17, 18})

STEEP_MED_PCT = 5
STEEP_HIGH_PCT = 8

LOW_SUITABILITY_MAX = 4
MODERATE_SUITABILITY_MAX = 7

WAYTYPE_LABELS = {
    0: "Other / unknown",
    1: "High-speed highway",
    2: "Primary road",
    3: "Secondary / local road",
    4: "Multi-use path",
    5: "Unpaved / rough track",
    6: "Dedicated bike lane/track",
    7: "Footway / sidewalk",
    8: "Stairs",
    9: "Ferry",
    10: "Construction area",
}
UNKNOWN_WAYTYPE_LABEL = WAYTYPE_LABELS[0]

RISK_WEIGHTS = {
    RiskTier.HIGH: 3,
    RiskTier.MED: 2,
    RiskTier.LOW: 1,
}

# Score of a candidate whose risk cannot be computed; sorts after every real score
UNSCORED_RISK = 1e9


def way_type_label(code: Optional[float]) -> str:
    """Display label for a provider way-type code."""
    if code is None:
        return UNKNOWN_WAYTYPE_LABEL
    try:
        return WAYTYPE_LABELS.get(int(code), UNKNOWN_WAYTYPE_LABEL)
    except (TypeError, ValueError):
        return UNKNOWN_WAYTYPE_LABEL


def normalize_suitability(raw: float) -> float:
    """Bring a suitability value onto the 0-10 scale (0-1 inputs are scaled by 10)."""
    return raw if raw > 1 else raw * 10


def classify_risk(
    suitability: float,
    surface: Optional[float],
    grade_pct: float,
) -> Tuple[RiskTier, List[str]]:
    """Classify one segment.

    Args:
        suitability: Raw suitability (0-1 or 0-10 scale)
        surface: Provider surface code, if known
        grade_pct: Average absolute grade in percent

    Returns:
        Tuple of (risk tier, ordered human-readable reasons)
    """
    reasons = []
    s = normalize_suitability(suitability)

    if s <= LOW_SUITABILITY_MAX:
        reasons.append(f"lower suitability ({s:.1f}/10)")
    elif s <= MODERATE_SUITABILITY_MAX:
        reasons.append(f"moderate suitability ({s:.1f}/10)")

    if grade_pct >= STEEP_HIGH_PCT:
        reasons.append(f"steep grade (~{grade_pct:.1f}%)")
    elif grade_pct >= STEEP_MED_PCT:
        reasons.append(f"noticeable grade (~{grade_pct:.1f}%)")

    rough = surface is not None and surface in ROUGH_SURFACES
    if rough:
        reasons.append("unpaved/rough surface")

    # Low suitability dominates regardless of grade or surface
    if s <= LOW_SUITABILITY_MAX:
        tier = RiskTier.HIGH
    elif s <= MODERATE_SUITABILITY_MAX or grade_pct >= STEEP_HIGH_PCT or rough:
        tier = RiskTier.MED
    else:
        tier = RiskTier.LOW

    return tier, reasons


def compute_risk_segments(
    coordinates: Sequence[Sequence[float]],
    extras: Optional[Mapping[str, Sequence[AttributeRange]]] = None,
) -> List[RiskSegment]:
    """Segment a path and classify every segment.

    Returns an empty list for paths with fewer than 2 points.
    """
    extras = extras or {}
    suitability_ranges = extras.get(SUITABILITY, [])
    surface_ranges = extras.get(SURFACE, [])
    waytype_ranges = extras.get(WAYTYPE, [])

    # Only the classified kinds cut the path; steepness ranges are ignored
    classified = {
        SUITABILITY: suitability_ranges,
        SURFACE: surface_ranges,
        WAYTYPE: waytype_ranges,
    }

    segments = []
    for start, end in segment_intervals(len(coordinates), classified):
        mid = (start + end) // 2
        suitability = value_at(mid, suitability_ranges, DEFAULT_SUITABILITY)
        way = value_at(mid, waytype_ranges)
        surface = value_at(mid, surface_ranges)

        points = coordinates[start:end + 1]
        grade = average_grade_percent(points)
        tier, reasons = classify_risk(suitability, surface, grade)

        segments.append(RiskSegment(
            start_index=start,
            end_index=end,
            risk=tier,
            reasons=reasons,
            way_type=int(way) if way is not None else None,
            way_type_label=way_type_label(way),
            suitability=normalize_suitability(suitability),
            surface=int(surface) if surface is not None else None,
            average_grade_percent=round(grade, 1),
            length_meters=path_length_meters(points),
            coordinates=[list(p) for p in points],
        ))

    return segments


def risk_weighted_score(segments: Sequence[RiskSegment]) -> float:
    """Average tier weight per kilometer (high 3, med 2, low 1). Lower is safer.

    A route without segments scores :data:`UNSCORED_RISK`.
    """
    if not segments:
        return UNSCORED_RISK

    length_m = 0.0
    weighted = 0.0
    for segment in segments:
        length_m += segment.length_meters
        weighted += RISK_WEIGHTS[segment.risk] * segment.length_meters

    km = max(0.001, length_m / 1000)
    return weighted / km


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def compute_risk_mix(segments: Sequence[RiskSegment]) -> RiskMix:
    """Kilometers and rounded percentage of the route in each tier.

    A route without segments reports a 1 km total and 0 % everywhere.
    """
    km_by_risk: Dict[RiskTier, float] = {tier: 0.0 for tier in RiskTier}
    for segment in segments:
        km_by_risk[segment.risk] += segment.length_meters / 1000

    total_km = sum(km_by_risk.values()) or 1.0
    return RiskMix(
        low_km=km_by_risk[RiskTier.LOW],
        med_km=km_by_risk[RiskTier.MED],
        high_km=km_by_risk[RiskTier.HIGH],
        total_km=total_km,
        pct_low=_round_half_up(km_by_risk[RiskTier.LOW] / total_km * 100),
        pct_med=_round_half_up(km_by_risk[RiskTier.MED] / total_km * 100),
        pct_high=_round_half_up(km_by_risk[RiskTier.HIGH] / total_km * 100),
    )


def compute_risk_bands(
    segments: Sequence[RiskSegment],
    metrics: Optional[TripMetrics],
) -> List[RiskBand]:
    """Place each risk segment along the route's cumulative distance."""
    distance_km = metrics.distance_km if metrics else []
    last = len(distance_km) - 1

    bands = []
    for segment in segments:
        if distance_km:
            from_km = distance_km[max(0, min(last, segment.start_index))]
            to_km = distance_km[max(0, min(last, segment.end_index))]
        else:
            from_km = to_km = 0.0
        bands.append(RiskBand(
            from_km=from_km,
            to_km=to_km,
            risk=segment.risk,
            way_type_label=segment.way_type_label,
            reasons=list(segment.reasons),
        ))
    return bands
