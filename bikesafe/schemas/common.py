"""Common schemas used across the application."""

from typing import List, Tuple

from pydantic import BaseModel, Field


class Coordinate(BaseModel):
    """Geographic coordinate."""

    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")

    def as_position(self) -> Tuple[float, float]:
        """Return the coordinate in provider (lon, lat) order."""
        return (self.longitude, self.latitude)


class GeoJSONLineString(BaseModel):
    """GeoJSON LineString geometry."""

    type: str = "LineString"
    coordinates: List[List[float]] = Field(
        default_factory=list, description="Array of [longitude, latitude, elevation?] coordinates"
    )
