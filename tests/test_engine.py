"""Tests for three-route selection and route analysis."""

import pytest
from unittest.mock import AsyncMock, MagicMock


def make_candidate(coordinates, distance, suitability, preference="recommended"):
    from bikesafe.schemas.common import GeoJSONLineString
    from bikesafe.schemas.routing import AttributeRange, RouteCandidate

    last = len(coordinates) - 1
    return RouteCandidate(
        geometry=GeoJSONLineString(coordinates=coordinates),
        preference=preference,
        distance_meters=distance,
        extras={"suitability": [AttributeRange(start_index=0, end_index=last, value=suitability)]},
    )


def make_provider(pools):
    """Fake provider answering by (preference, weight_factor); exceptions are raised."""
    async def fetch_candidates(origin, destination, preference="recommended", alt_count=3, weight_factor=1.6):
        result = pools.get((preference, weight_factor), [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    provider = MagicMock()
    provider.fetch_candidates = AsyncMock(side_effect=fetch_candidates)
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def endpoints():
    from bikesafe.schemas.common import Coordinate

    return Coordinate(latitude=0.0, longitude=0.0), Coordinate(latitude=0.01, longitude=0.0)


@pytest.fixture
def routes():
    """Risky direct route, a safe detour and a long moderate detour."""
    return {
        "direct": make_candidate([[0, 0], [0, 0.01]], 1112.0, 0.3, "shortest"),
        "safe": make_candidate([[0, 0], [0.001, 0.005], [0, 0.01]], 1200.0, 9),
        "long": make_candidate([[0, 0], [0.005, 0.005], [0, 0.01]], 1600.0, 5),
    }


class TestSelectThreeRoutes:
    """Tests for shortest / safest / scenic selection."""

    @pytest.mark.asyncio
    async def test_distinct_routes_get_distinct_labels(self, endpoints, routes):
        from bikesafe.core.exceptions import ProviderRejectedException
        from bikesafe.schemas.routing import RouteLabel, RouteTag
        from bikesafe.services.routing.engine import RoutingEngine

        provider = make_provider({
            ("shortest", 2.0): [routes["safe"], routes["direct"]],
            ("recommended", 2.4): [routes["safe"], routes["long"]],
            ("recommended", 3.0): [routes["long"]],
            ("fastest", 2.2): ProviderRejectedException(400, "alternative_routes"),
        })
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        assert [r.label for r in selected] == [
            RouteLabel.SHORTEST, RouteLabel.SAFEST, RouteLabel.LONG_SCENIC,
        ]
        assert [r.tag for r in selected] == [RouteTag.SHORTEST, RouteTag.SAFEST, RouteTag.LONG]
        assert [r.distance_meters for r in selected] == [1112.0, 1200.0, 1600.0]
        assert provider.fetch_candidates.await_count == 4

    @pytest.mark.asyncio
    async def test_scenic_not_much_longer_is_alternate(self, endpoints, routes):
        from bikesafe.schemas.routing import RouteLabel, RouteTag
        from bikesafe.services.routing.engine import RoutingEngine

        modest = make_candidate([[0, 0], [0.003, 0.005], [0, 0.01]], 1300.0, 5)
        provider = make_provider({
            ("shortest", 2.0): [routes["direct"]],
            ("recommended", 2.4): [routes["safe"], modest],
        })
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        assert selected[2].label == RouteLabel.ALTERNATE
        assert selected[2].tag == RouteTag.LONG
        assert selected[2].distance_meters == 1300.0

    @pytest.mark.asyncio
    async def test_single_candidate_fills_with_shortest(self, endpoints):
        """One 5 km route and failing optional pools still yield three entries."""
        from bikesafe.core.exceptions import ServiceUnavailableException
        from bikesafe.schemas.routing import RouteLabel, RouteTag
        from bikesafe.services.routing.engine import RoutingEngine

        only = make_candidate([[0, 0], [0.02, 0.04]], 5000.0, 8, "shortest")
        failure = ServiceUnavailableException(service="Routing provider")
        provider = make_provider({
            ("shortest", 2.0): [only],
            ("recommended", 2.4): failure,
            ("recommended", 3.0): failure,
            ("fastest", 2.2): failure,
        })
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        assert len(selected) == 3
        assert selected[0].label == RouteLabel.SHORTEST
        assert [r.label for r in selected].count(RouteLabel.ALTERNATE) == 2
        assert all(r.tag == RouteTag.ALT for r in selected[1:])
        assert all(r.distance_meters == 5000.0 for r in selected)

    @pytest.mark.asyncio
    async def test_two_distinct_routes_backfill_once(self, endpoints, routes):
        from bikesafe.schemas.routing import RouteLabel
        from bikesafe.services.routing.engine import RoutingEngine

        provider = make_provider({("shortest", 2.0): [routes["direct"], routes["safe"]]})
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        assert [r.label for r in selected] == [
            RouteLabel.SHORTEST, RouteLabel.SAFEST, RouteLabel.ALTERNATE,
        ]
        assert selected[2].distance_meters == selected[0].distance_meters

    @pytest.mark.asyncio
    async def test_duplicates_across_pools_are_merged(self, endpoints, routes):
        from bikesafe.services.routing.engine import RoutingEngine

        safe_copy = routes["safe"].model_copy(update={"preference": "fastest"})
        provider = make_provider({
            ("shortest", 2.0): [routes["direct"]],
            ("recommended", 2.4): [routes["safe"]],
            ("fastest", 2.2): [safe_copy],
        })
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        # direct, safe, then the shortest repeated: the copy is not a third route
        assert selected[2].distance_meters == 1112.0
        assert selected[1].preference == "recommended"

    @pytest.mark.asyncio
    async def test_selection_does_not_mutate_candidates(self, endpoints, routes):
        from bikesafe.services.routing.engine import RoutingEngine

        provider = make_provider({
            ("shortest", 2.0): [routes["direct"]],
            ("recommended", 2.4): [routes["safe"], routes["long"]],
        })
        engine = RoutingEngine(provider=provider)

        selected = await engine.select_three_routes(*endpoints)

        assert all(r.label is None and r.tag is None for r in routes.values())
        assert selected[0] is not routes["direct"]
        assert selected[0].geometry is not routes["direct"].geometry

    @pytest.mark.asyncio
    async def test_same_endpoints_are_invalid(self):
        from bikesafe.core.exceptions import InvalidInputException
        from bikesafe.schemas.common import Coordinate
        from bikesafe.services.routing.engine import RoutingEngine

        provider = make_provider({})
        engine = RoutingEngine(provider=provider)
        point = Coordinate(latitude=37.7749, longitude=-122.4194)
        nearby = Coordinate(latitude=37.77494, longitude=-122.4194)

        with pytest.raises(InvalidInputException) as exc_info:
            await engine.select_three_routes(point, nearby)

        assert exc_info.value.error_code == "INVALID_INPUT"
        provider.fetch_candidates.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_shortest_pool_is_no_route(self, endpoints):
        from bikesafe.core.exceptions import NoRouteFoundException
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({("shortest", 2.0): []}))

        with pytest.raises(NoRouteFoundException) as exc_info:
            await engine.select_three_routes(*endpoints)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_shortest_rejection_propagates(self, endpoints):
        from bikesafe.core.exceptions import ProviderRejectedException
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({
            ("shortest", 2.0): ProviderRejectedException(403, "Access to this API has been disallowed"),
        }))

        with pytest.raises(ProviderRejectedException) as exc_info:
            await engine.select_three_routes(*endpoints)

        assert exc_info.value.provider_status == 403


class TestPickScenic:
    """Tests for the scenic fallback when the longest candidate is the shortest route."""

    def test_near_equal_lengths_go_to_the_safer_route(self):
        from bikesafe.services.routing.engine import SCENIC_TIE_METERS, RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        shortest = make_candidate([[0, 0], [0.01, 0.02]], 2500.0, 5, "shortest")
        risky = make_candidate([[0, 0], [0.004, 0.005], [0, 0.01]], 2000.5, 2)
        calm = make_candidate([[0, 0], [0.002, 0.005], [0, 0.01]], 2000.0, 6)
        safe = make_candidate([[0, 0], [0.001, 0.005], [0, 0.01]], 1200.0, 9)
        candidates = [shortest.model_copy(deep=True), risky, calm, safe]

        scenic = engine._pick_scenic(candidates, shortest, safe, engine.risk_score)

        assert abs(risky.distance_meters - calm.distance_meters) <= SCENIC_TIE_METERS
        assert engine.risk_score(calm) < engine.risk_score(risky)
        assert scenic is calm

    def test_lengths_beyond_the_tie_window_go_to_the_longer_route(self):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        shortest = make_candidate([[0, 0], [0.01, 0.02]], 2500.0, 5, "shortest")
        risky = make_candidate([[0, 0], [0.004, 0.005], [0, 0.01]], 2002.0, 2)
        calm = make_candidate([[0, 0], [0.002, 0.005], [0, 0.01]], 2000.0, 6)
        safe = make_candidate([[0, 0], [0.001, 0.005], [0, 0.01]], 1200.0, 9)

        scenic = engine._pick_scenic([shortest, risky, calm, safe], shortest, safe, engine.risk_score)

        assert scenic is risky

    def test_nothing_distinct_left(self):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        shortest = make_candidate([[0, 0], [0.01, 0.02]], 2500.0, 5, "shortest")

        assert engine._pick_scenic([shortest], shortest, shortest, engine.risk_score) is None


class TestRouteAnalysis:
    """Tests for per-route analysis."""

    def test_analyze_route_bundles_everything(self, routes):
        from bikesafe.schemas.routing import RiskTier, RouteLabel, RouteTag
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        route = routes["direct"].relabeled(RouteLabel.SHORTEST, RouteTag.SHORTEST)

        analysis = engine.analyze_route(route)

        assert analysis.label == RouteLabel.SHORTEST
        assert [s.risk for s in analysis.segments] == [RiskTier.HIGH]
        assert analysis.metrics.total_distance_m == pytest.approx(1111.95, abs=0.1)
        assert analysis.risk_mix.pct_high == 100
        assert len(analysis.bands) == 1
        assert analysis.directions == []

    def test_risk_score_prefers_safer_routes(self, routes):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))

        assert engine.risk_score(routes["safe"]) < engine.risk_score(routes["long"])
        assert engine.risk_score(routes["long"]) < engine.risk_score(routes["direct"])

    def test_metrics_of_degenerate_route(self):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        route = make_candidate([[0, 0]], 0.0, 8)

        assert engine.compute_trip_metrics(route) is None
        assert engine.compute_risk_segments(route) == []

    def test_locate_km_finds_nearest_point(self, routes):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        route = make_candidate([[0, 0, 10], [0, 0.005, 20], [0, 0.01, 15]], 1112.0, 8)

        location = engine.locate_km(route, 0.6)

        assert location.index == 1
        assert location.position == [0, 0.005, 20]
        assert location.distance_km == pytest.approx(0.556, abs=0.001)
        assert location.elevation_m == 20
        assert engine.locate_km(route, 50).index == 2

    def test_locate_km_on_degenerate_route(self):
        from bikesafe.services.routing.engine import RoutingEngine

        engine = RoutingEngine(provider=make_provider({}))
        location = engine.locate_km(make_candidate([[1, 2]], 0.0, 8), 3.0)

        assert location.index == 0
        assert location.position == [1, 2]
        assert location.elevation_m is None

    @pytest.mark.asyncio
    async def test_close_closes_provider(self):
        from bikesafe.services.routing.engine import RoutingEngine

        provider = make_provider({})
        await RoutingEngine(provider=provider).close()

        provider.close.assert_awaited_once()
