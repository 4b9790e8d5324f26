"""Routing request, candidate and analysis schemas."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bikesafe.schemas.common import Coordinate, GeoJSONLineString


class RiskTier(str, Enum):
    """Risk tier assigned to a route segment."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


class RouteLabel(str, Enum):
    """Display label of a selected route."""

    SHORTEST = "Shortest"
    SAFEST = "Safest"
    LONG_SCENIC = "Long & Scenic"
    ALTERNATE = "Alternate"


class RouteTag(str, Enum):
    """Selection tag of a selected route."""

    SHORTEST = "shortest"
    SAFEST = "safest"
    LONG = "long"
    ALT = "alt"


class AttributeRange(BaseModel):
    """A per-point attribute value holding over a closed index interval."""

    model_config = ConfigDict(frozen=True)

    start_index: int = Field(..., ge=0, description="First point index (inclusive)")
    end_index: int = Field(..., ge=0, description="Last point index (inclusive)")
    value: float = Field(..., description="Attribute value (suitability, surface or way-type code)")


class DirectionStep(BaseModel):
    """Turn-by-turn instruction, flattened across provider segments."""

    model_config = ConfigDict(frozen=True)

    instruction: str = ""
    name: Optional[str] = None
    distance_meters: float = Field(default=0, ge=0)
    duration_seconds: float = Field(default=0, ge=0)
    type: Optional[int] = None
    way_points: List[int] = Field(default_factory=list)
    segment_index: int = Field(default=0, ge=0)
    step_index: int = Field(default=0, ge=0)


class RouteCandidate(BaseModel):
    """One full route returned by the routing provider.

    Candidates are value data: several pools may hold the same instance, so
    labels are only ever attached through :meth:`relabeled`, which returns a
    deep copy.
    """

    model_config = ConfigDict(frozen=True)

    geometry: GeoJSONLineString = Field(default_factory=GeoJSONLineString)
    preference: Optional[str] = Field(None, description="Provider preference that produced this route")
    distance_meters: Optional[float] = Field(None, ge=0, description="Provider summary distance")
    duration_seconds: Optional[float] = Field(None, ge=0, description="Provider summary duration")
    ascent_m: Optional[float] = None
    descent_m: Optional[float] = None
    steps: List[DirectionStep] = Field(default_factory=list)
    extras: Dict[str, List[AttributeRange]] = Field(
        default_factory=dict,
        description="Attribute kind -> ranges, e.g. suitability, surface, waytype",
    )
    label: Optional[RouteLabel] = None
    tag: Optional[RouteTag] = None

    @property
    def coordinates(self) -> List[List[float]]:
        return self.geometry.coordinates

    def relabeled(self, label: RouteLabel, tag: RouteTag) -> "RouteCandidate":
        """Clone-with-overrides: a deep copy carrying the given label and tag."""
        return self.model_copy(update={"label": label, "tag": tag}, deep=True)


class RiskSegment(BaseModel):
    """A classified contiguous sub-range of a path."""

    start_index: int = Field(..., ge=0)
    end_index: int = Field(..., ge=0)
    risk: RiskTier
    reasons: List[str] = Field(default_factory=list)
    way_type: Optional[int] = None
    way_type_label: str
    suitability: float = Field(..., description="Suitability on a 0-10 scale")
    surface: Optional[int] = None
    average_grade_percent: float = 0
    length_meters: float = Field(default=0, ge=0)
    coordinates: List[List[float]] = Field(default_factory=list)


class TripMetrics(BaseModel):
    """Aggregate metrics of one path."""

    distance_km: List[float] = Field(default_factory=list, description="Cumulative distance per point")
    elevation_m: List[float] = Field(default_factory=list, description="Elevation per point")
    total_distance_m: float = Field(default=0, ge=0)
    ascent_m: float = Field(default=0, ge=0)
    descent_m: float = Field(default=0, ge=0)
    average_speed_kph: float = Field(default=0, ge=0, description="Distance-weighted average speed")
    eta_minutes: float = Field(default=0, ge=0)


class RiskMix(BaseModel):
    """Share of a route's length per risk tier."""

    low_km: float = 0
    med_km: float = 0
    high_km: float = 0
    total_km: float = 0
    pct_low: int = 0
    pct_med: int = 0
    pct_high: int = 0


class RiskBand(BaseModel):
    """A risk segment positioned along the route's cumulative distance."""

    from_km: float
    to_km: float
    risk: RiskTier
    way_type_label: str
    reasons: List[str] = Field(default_factory=list)


class RouteAnalysis(BaseModel):
    """Everything needed to display one selected route."""

    label: Optional[RouteLabel] = None
    tag: Optional[RouteTag] = None
    segments: List[RiskSegment] = Field(default_factory=list)
    metrics: Optional[TripMetrics] = None
    risk_mix: Optional[RiskMix] = None
    bands: List[RiskBand] = Field(default_factory=list)
    directions: List[DirectionStep] = Field(default_factory=list)


class RouteSelectionRequest(BaseModel):
    """Request body for three-route selection."""

    origin: Coordinate = Field(..., description="Starting point")
    destination: Coordinate = Field(..., description="Ending point")


class RouteSelectionResponse(BaseModel):
    """Exactly three labeled routes: shortest, safest and a long/alternate option."""

    routes: List[RouteCandidate] = Field(..., min_length=3, max_length=3)


class RouteAnalysisRequest(BaseModel):
    """Request body carrying a single route to analyze."""

    route: RouteCandidate


class RouteLocateRequest(BaseModel):
    """Request body for finding the point at a distance along a route."""

    route: RouteCandidate
    km: float = Field(..., ge=0, description="Distance along the route in kilometers")


class RouteLocation(BaseModel):
    """The route point closest to a requested distance."""

    index: int = Field(default=0, ge=0)
    position: Optional[List[float]] = Field(default=None, description="[lon, lat] or [lon, lat, elevation]")
    distance_km: float = 0
    elevation_m: Optional[float] = None


class RiskSegmentsResponse(BaseModel):
    segments: List[RiskSegment] = Field(default_factory=list)


class TripMetricsResponse(BaseModel):
    metrics: Optional[TripMetrics] = None
