"""Routing API endpoints."""

import logging

import httpx
from fastapi import APIRouter

from bikesafe.core.exceptions import APIException, ServiceUnavailableException
from bikesafe.schemas.routing import (
    RiskSegmentsResponse,
    RouteAnalysis,
    RouteAnalysisRequest,
    RouteLocateRequest,
    RouteLocation,
    RouteSelectionRequest,
    RouteSelectionResponse,
    TripMetricsResponse,
)
from bikesafe.services.routing.engine import routing_engine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/select", response_model=RouteSelectionResponse)
async def select_routes(
    selection: RouteSelectionRequest,
) -> RouteSelectionResponse:
    """
    Select three labeled cycling routes between two points.

    Returns, in order:
    - Shortest
    - Safest (lowest risk-weighted length), or an alternate
    - Long & Scenic (the longest distinct option), or an alternate
    """
    logger.info(
        f"Route selection "
        f"{selection.origin.latitude:.5f},{selection.origin.longitude:.5f} -> "
        f"{selection.destination.latitude:.5f},{selection.destination.longitude:.5f}"
    )

    try:
        routes = await routing_engine.select_three_routes(selection.origin, selection.destination)
        return RouteSelectionResponse(routes=routes)
    except APIException:
        raise
    except httpx.HTTPError as e:
        # Any transport failure the provider client did not translate
        logger.warning(f"Routing provider HTTP error: {e}")
        raise ServiceUnavailableException(service="Routing provider", internal_message=str(e))


@router.post("/analyze", response_model=RouteAnalysis)
async def analyze_route(analysis: RouteAnalysisRequest) -> RouteAnalysis:
    """
    Risk segments, trip metrics, risk mix, distance bands and directions for one route.
    """
    return routing_engine.analyze_route(analysis.route)


@router.post("/risk-segments", response_model=RiskSegmentsResponse)
async def risk_segments(analysis: RouteAnalysisRequest) -> RiskSegmentsResponse:
    """Classify a route into risk segments."""
    return RiskSegmentsResponse(segments=routing_engine.compute_risk_segments(analysis.route))


@router.post("/metrics", response_model=TripMetricsResponse)
async def trip_metrics(analysis: RouteAnalysisRequest) -> TripMetricsResponse:
    """Distance and elevation series, ascent/descent and ETA; null for paths under 2 points."""
    return TripMetricsResponse(metrics=routing_engine.compute_trip_metrics(analysis.route))


@router.post("/locate", response_model=RouteLocation)
async def locate_on_route(locate: RouteLocateRequest) -> RouteLocation:
    """Route point closest to a distance in kilometers (elevation profile scrubbing)."""
    return routing_engine.locate_km(locate.route, locate.km)
