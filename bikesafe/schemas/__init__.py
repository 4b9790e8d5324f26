# Pydantic schemas
from bikesafe.schemas.common import Coordinate, GeoJSONLineString
from bikesafe.schemas.routing import (
    AttributeRange,
    DirectionStep,
    RiskBand,
    RiskMix,
    RiskSegment,
    RiskTier,
    RouteAnalysis,
    RouteCandidate,
    RouteLabel,
    RouteLocation,
    RouteTag,
    TripMetrics,
)

__all__ = [
    "Coordinate",
    "GeoJSONLineString",
    "AttributeRange",
    "DirectionStep",
    "RiskBand",
    "RiskMix",
    "RiskSegment",
    "RiskTier",
    "RouteAnalysis",
    "RouteCandidate",
    "RouteLabel",
    "RouteLocation",
    "RouteTag",
    "TripMetrics",
]
