"""Routing engine service - selects three labeled routes from OpenRouteService candidates."""

import asyncio
import functools
import logging
from typing import Callable, Dict, List, NamedTuple, Optional

from bikesafe.core.exceptions import APIException, InvalidInputException, NoRouteFoundException
from bikesafe.schemas.common import Coordinate
from bikesafe.schemas.routing import (
    RiskSegment,
    RouteAnalysis,
    RouteCandidate,
    RouteLabel,
    RouteLocation,
    RouteTag,
    TripMetrics,
)
from bikesafe.services.routing import insights, risk
from bikesafe.services.routing.candidates import dedupe, distance_of, is_same
from bikesafe.services.routing.geometry import distance_meters
from bikesafe.services.routing.provider import OpenRouteServiceClient, routing_provider

logger = logging.getLogger(__name__)

# Endpoints closer than this are treated as the same point
MIN_ENDPOINT_SEPARATION_M = 8
# A scenic pick at least this much longer than the shortest route is "Long & Scenic"
LONG_ROUTE_FACTOR = 1.25
# Scenic fallback: distances within this many meters tie and the safer route wins
SCENIC_TIE_METERS = 1


class PoolSpec(NamedTuple):
    """One provider query: preference, number of alternatives and their weight factor."""

    preference: str
    alt_count: int
    weight_factor: float


SHORTEST_POOL = PoolSpec("shortest", 3, 2.0)

CANDIDATE_POOLS = (
    PoolSpec("recommended", 8, 2.4),
    PoolSpec("recommended", 8, 3.0),
    PoolSpec("fastest", 6, 2.2),
)


class RoutingEngine:
    """Service for selecting and analyzing cycling routes."""

    def __init__(self, provider: Optional[OpenRouteServiceClient] = None):
        self.provider = provider or routing_provider

    async def select_three_routes(
        self,
        origin: Coordinate,
        destination: Coordinate,
    ) -> List[RouteCandidate]:
        """Select exactly three labeled routes between two points.

        The result is always ``[Shortest, Safest or Alternate, Long & Scenic or
        Alternate]``. When the provider offers fewer than three distinct
        routes, the shortest route is repeated as ``Alternate`` to fill the list.

        Raises:
            InvalidInputException: Origin and destination are the same point
            NoRouteFoundException: The shortest-route query returned nothing
            ProviderRejectedException: The provider rejected the shortest-route query
        """
        separation = distance_meters(origin.as_position(), destination.as_position())
        if separation < MIN_ENDPOINT_SEPARATION_M:
            raise InvalidInputException(
                detail="Start and destination are the same point",
                field="destination",
            )

        shortest_pool = await self._fetch_pool(SHORTEST_POOL, origin, destination)
        if not shortest_pool:
            raise NoRouteFoundException()
        shortest = min(shortest_pool, key=distance_of)
        shortest_distance = distance_of(shortest)

        # Optional pools fail independently; a failed pool contributes nothing
        pools = await asyncio.gather(*(
            self._fetch_optional_pool(spec, origin, destination) for spec in CANDIDATE_POOLS
        ))
        merged = [c for pool in pools for c in pool] + shortest_pool
        candidates = [c for c in dedupe(merged) if not is_same(c, shortest)]

        scores: Dict[int, float] = {id(c): self.risk_score(c) for c in candidates}

        def score(candidate: RouteCandidate) -> float:
            return scores.get(id(candidate), risk.UNSCORED_RISK)

        safest = next(
            (c for c in sorted(candidates, key=score) if not is_same(c, shortest)),
            shortest,
        )
        scenic = self._pick_scenic(candidates, shortest, safest, score)

        selected: List[RouteCandidate] = []

        def push_unique(candidate: Optional[RouteCandidate], label: RouteLabel, tag: RouteTag):
            if candidate is None or any(is_same(s, candidate) for s in selected):
                return
            selected.append(candidate.relabeled(label, tag))

        push_unique(shortest, RouteLabel.SHORTEST, RouteTag.SHORTEST)
        push_unique(safest, RouteLabel.SAFEST, RouteTag.SAFEST)

        if scenic is not None:
            min_long = shortest_distance * LONG_ROUTE_FACTOR
            label = RouteLabel.LONG_SCENIC if distance_of(scenic) >= min_long else RouteLabel.ALTERNATE
            push_unique(scenic, label, RouteTag.LONG)

        for candidate in candidates:
            if len(selected) >= 3:
                break
            push_unique(candidate, RouteLabel.ALTERNATE, RouteTag.ALT)

        # Not enough distinct routes: repeat the shortest so there are always three
        while len(selected) < 3:
            selected.append(shortest.relabeled(RouteLabel.ALTERNATE, RouteTag.ALT))

        logger.info(
            f"Selected routes from {len(candidates)} candidates: "
            + ", ".join(f"{r.label.value} {distance_of(r):.0f}m" for r in selected[:3])
        )
        return selected[:3]

    def _pick_scenic(
        self,
        candidates: List[RouteCandidate],
        shortest: RouteCandidate,
        safest: RouteCandidate,
        score: Callable[[RouteCandidate], float],
    ) -> Optional[RouteCandidate]:
        """Longest candidate distinct from the safest route, else the best distinct alternate."""
        longest_first = sorted(
            (c for c in candidates if not is_same(c, safest)),
            key=lambda c: -distance_of(c),
        )
        scenic = longest_first[0] if longest_first else None
        if scenic is not None and not is_same(scenic, shortest) and not is_same(scenic, safest):
            return scenic

        # Guard: reached only when nothing is left or the longest pick is the shortest route
        def longer_then_safer(a: RouteCandidate, b: RouteCandidate) -> float:
            dl = distance_of(b) - distance_of(a)
            if abs(dl) > SCENIC_TIE_METERS:
                return dl
            return score(a) - score(b)

        distinct = [c for c in candidates if not is_same(c, shortest) and not is_same(c, safest)]
        distinct.sort(key=functools.cmp_to_key(longer_then_safer))
        return distinct[0] if distinct else None

    async def _fetch_pool(
        self,
        spec: PoolSpec,
        origin: Coordinate,
        destination: Coordinate,
    ) -> List[RouteCandidate]:
        return await self.provider.fetch_candidates(
            origin,
            destination,
            preference=spec.preference,
            alt_count=spec.alt_count,
            weight_factor=spec.weight_factor,
        )

    async def _fetch_optional_pool(
        self,
        spec: PoolSpec,
        origin: Coordinate,
        destination: Coordinate,
    ) -> List[RouteCandidate]:
        try:
            return await self._fetch_pool(spec, origin, destination)
        except APIException as e:
            logger.warning(
                f"Candidate pool {spec.preference} (wf={spec.weight_factor}) failed, continuing without it: "
                f"{e.internal_message or e.detail}"
            )
            return []

    def risk_score(self, route: RouteCandidate) -> float:
        """Risk-weighted length score of a route; lower is safer."""
        return risk.risk_weighted_score(self.compute_risk_segments(route))

    def compute_risk_segments(self, route: RouteCandidate) -> List[RiskSegment]:
        return risk.compute_risk_segments(route.coordinates, route.extras)

    def compute_trip_metrics(self, route: RouteCandidate) -> Optional[TripMetrics]:
        return insights.compute_trip_metrics(route.coordinates)

    def analyze_route(self, route: RouteCandidate) -> RouteAnalysis:
        """Segments, metrics, risk mix, distance bands and directions for one route."""
        segments = self.compute_risk_segments(route)
        metrics = self.compute_trip_metrics(route)
        return RouteAnalysis(
            label=route.label,
            tag=route.tag,
            segments=segments,
            metrics=metrics,
            risk_mix=risk.compute_risk_mix(segments),
            bands=risk.compute_risk_bands(segments, metrics),
            directions=list(route.steps),
        )

    def locate_km(self, route: RouteCandidate, km: float) -> RouteLocation:
        """Point of the route nearest to ``km`` along it, for scrubbing the elevation profile."""
        coordinates = route.coordinates
        metrics = self.compute_trip_metrics(route)
        if metrics is None:
            return RouteLocation(position=list(coordinates[0]) if coordinates else None)

        index = insights.nearest_index_for_km(metrics, km)
        return RouteLocation(
            index=index,
            position=list(coordinates[index]),
            distance_km=metrics.distance_km[index],
            elevation_m=metrics.elevation_m[index],
        )

    async def close(self):
        """Close the provider's HTTP client."""
        await self.provider.close()


# Singleton instance
routing_engine = RoutingEngine()
