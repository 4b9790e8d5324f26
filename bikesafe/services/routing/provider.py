"""OpenRouteService directions client.

Requests ask for everything the risk analysis can use (per-point suitability,
surface, way type and steepness, steepness weighting and alternative routes).
Not every ORS deployment accepts all of that, so a 400 response whose message
names one of those options is retried with a degraded request variant. The
variants are plain :class:`ProviderRequestConfig` values produced by an
ordered list of fallback rules.
"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from bikesafe.config import settings
from bikesafe.core.exceptions import ProviderRejectedException, ServiceUnavailableException
from bikesafe.core.request_context import record_provider_call
from bikesafe.schemas.common import Coordinate, GeoJSONLineString
from bikesafe.schemas.routing import RouteCandidate
from bikesafe.services.routing.insights import flatten_directions
from bikesafe.services.routing.risk import STEEPNESS, SUITABILITY, SURFACE, WAYTYPE
from bikesafe.services.routing.segmentation import parse_provider_extras

logger = logging.getLogger(__name__)

PROVIDER_NAME = "Routing provider"

MAX_ATTEMPTS = 3
DEFAULT_SHARE_FACTOR = 0.6

DEFAULT_ATTRIBUTE_KINDS: Tuple[str, ...] = (STEEPNESS, SURFACE, WAYTYPE, SUITABILITY)

ACCEPT_HEADER = "application/geo+json, application/json;q=0.9, */*;q=0.8"


def _default_profile_params() -> Dict[str, Any]:
    return {"weightings": {"steepness_difficulty": 1}}


class AlternativeRouteOptions(BaseModel):
    """ORS ``alternative_routes`` option."""

    model_config = ConfigDict(frozen=True)

    target_count: int = Field(..., ge=2, description="Number of routes wanted, including the main one")
    share_factor: float = Field(default=DEFAULT_SHARE_FACTOR, gt=0, le=1)
    weight_factor: float = Field(..., gt=1)


class ProviderRequestConfig(BaseModel):
    """What to ask the provider for. Degrading returns a new config."""

    model_config = ConfigDict(frozen=True)

    preference: str = "recommended"
    requested_attribute_kinds: Tuple[str, ...] = DEFAULT_ATTRIBUTE_KINDS
    profile_params: Optional[Dict[str, Any]] = Field(default_factory=_default_profile_params)
    alternative_routes: Optional[AlternativeRouteOptions] = None

    @classmethod
    def for_pool(cls, preference: str, alt_count: int = 1, weight_factor: float = 1.6) -> "ProviderRequestConfig":
        """Full-featured config; alternatives are only requested for ``alt_count > 1``."""
        alternatives = None
        if alt_count > 1:
            alternatives = AlternativeRouteOptions(target_count=alt_count, weight_factor=weight_factor)
        return cls(preference=preference, alternative_routes=alternatives)

    def without_suitability(self) -> "ProviderRequestConfig":
        kinds = tuple(k for k in self.requested_attribute_kinds if k != SUITABILITY)
        return self.model_copy(update={"requested_attribute_kinds": kinds})

    def without_profile_params(self) -> "ProviderRequestConfig":
        return self.model_copy(update={"profile_params": None})

    def without_alternative_routes(self) -> "ProviderRequestConfig":
        return self.model_copy(update={"alternative_routes": None})


class FallbackRule(NamedTuple):
    name: str
    pattern: re.Pattern
    applies: Callable[[ProviderRequestConfig], bool]
    degrade: Callable[[ProviderRequestConfig], ProviderRequestConfig]


# Checked in order; the first rule whose pattern and precondition both match wins
FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    FallbackRule(
        name="drop suitability",
        pattern=re.compile(r"extra_info|suitability", re.IGNORECASE),
        applies=lambda c: SUITABILITY in c.requested_attribute_kinds,
        degrade=ProviderRequestConfig.without_suitability,
    ),
    FallbackRule(
        name="drop profile_params",
        pattern=re.compile(r"profile_params|weightings|options", re.IGNORECASE),
        applies=lambda c: c.profile_params is not None,
        degrade=ProviderRequestConfig.without_profile_params,
    ),
    FallbackRule(
        name="drop alternative_routes",
        pattern=re.compile(r"alternative_routes", re.IGNORECASE),
        applies=lambda c: c.alternative_routes is not None,
        degrade=ProviderRequestConfig.without_alternative_routes,
    ),
)


def next_request_variant(
    config: ProviderRequestConfig,
    status_code: int,
    message: str,
) -> Optional[Tuple[str, ProviderRequestConfig]]:
    """Pick the degraded variant to retry with, or None when the error is final.

    Only 400 responses are retried.

    Returns:
        Tuple of (rule name, degraded config), or None
    """
    if status_code != 400:
        return None
    for rule in FALLBACK_RULES:
        if rule.pattern.search(message or "") and rule.applies(config):
            return rule.name, rule.degrade(config)
    return None


def build_request_body(
    origin: Coordinate,
    destination: Coordinate,
    config: ProviderRequestConfig,
) -> Dict[str, Any]:
    """Build the ORS directions request body for a config."""
    options: Dict[str, Any] = {}
    if config.profile_params is not None:
        options["profile_params"] = config.profile_params
    if config.alternative_routes is not None:
        options["alternative_routes"] = config.alternative_routes.model_dump()

    body: Dict[str, Any] = {
        "coordinates": [list(origin.as_position()), list(destination.as_position())],
        "preference": config.preference,
        "elevation": True,
        "instructions": True,
        "instructions_format": "text",
        "extra_info": list(config.requested_attribute_kinds),
    }
    if options:
        body["options"] = options
    return body


def _read_payload(response: httpx.Response) -> Optional[Any]:
    """Response JSON when the content type says JSON, else None."""
    content_type = response.headers.get("content-type", "").lower()
    if "json" not in content_type:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(payload: Optional[Any], text: str) -> str:
    """Provider error message: ``error.message``, then ``message``, then the raw body."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if payload.get("message"):
            return str(payload["message"])
    return text or ""


def parse_candidates(payload: Optional[Any], preference: str) -> List[RouteCandidate]:
    """Convert a GeoJSON FeatureCollection into route candidates tagged with ``preference``."""
    if not isinstance(payload, dict):
        return []

    candidates = []
    for i, feature in enumerate(payload.get("features") or []):
        try:
            candidates.append(_parse_feature(feature, preference))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed {preference} feature {i}: {e}")
    return candidates


def _parse_feature(feature: Dict[str, Any], preference: str) -> RouteCandidate:
    geometry = feature.get("geometry") or {}
    properties = feature.get("properties") or {}
    summary = properties.get("summary") or {}

    return RouteCandidate(
        geometry=GeoJSONLineString(coordinates=geometry.get("coordinates") or []),
        preference=preference,
        distance_meters=summary.get("distance"),
        duration_seconds=summary.get("duration"),
        ascent_m=properties.get("ascent"),
        descent_m=properties.get("descent"),
        steps=flatten_directions(properties.get("segments")),
        extras=parse_provider_extras(properties.get("extras")),
    )


class OpenRouteServiceClient:
    """Async client for the ORS GeoJSON directions endpoint."""

    def __init__(
        self,
        directions_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.directions_url = directions_url or settings.directions_url
        self.api_key = settings.ors_api_key if api_key is None else api_key
        self.client = httpx.AsyncClient(
            timeout=timeout or settings.provider_timeout_seconds,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
            "Accept": ACCEPT_HEADER,
        }

    async def post_directions(
        self,
        origin: Coordinate,
        destination: Coordinate,
        config: ProviderRequestConfig,
    ) -> Optional[Any]:
        """POST a directions request, degrading the request on known 400s.

        Returns:
            The decoded response payload (None for a non-JSON success body)

        Raises:
            ProviderRejectedException: Final error status, or attempts exhausted
            ServiceUnavailableException: Missing API key, timeout or transport failure
        """
        if not self.is_configured:
            raise ServiceUnavailableException(
                service=PROVIDER_NAME,
                internal_message="ORS_API_KEY is not configured",
            )

        current = config
        last_status = 400
        for attempt in range(1, MAX_ATTEMPTS + 1):
            body = build_request_body(origin, destination, current)
            started = time.perf_counter()
            try:
                response = await self.client.post(
                    self.directions_url,
                    json=body,
                    headers=self._headers(),
                )
            except httpx.TimeoutException as e:
                raise ServiceUnavailableException(
                    service=PROVIDER_NAME,
                    internal_message=f"Provider timed out ({current.preference}): {e}",
                )
            except httpx.HTTPError as e:
                raise ServiceUnavailableException(
                    service=PROVIDER_NAME,
                    internal_message=f"Provider request failed ({current.preference}): {e}",
                )
            finally:
                record_provider_call((time.perf_counter() - started) * 1000)

            payload = _read_payload(response)
            if response.is_success:
                if attempt > 1:
                    logger.info(f"ORS {current.preference} request succeeded on attempt {attempt}")
                return payload

            last_status = response.status_code
            message = _error_message(payload, response.text)
            variant = next_request_variant(current, response.status_code, message)
            if variant is None:
                logger.warning(f"ORS rejected {current.preference} request: HTTP {response.status_code} {message}")
                raise ProviderRejectedException(response.status_code, message)

            rule_name, current = variant
            logger.warning(
                f"ORS {config.preference} attempt {attempt} got HTTP 400 ({message}); retrying with {rule_name}"
            )

        raise ProviderRejectedException(last_status, "failed after retries")

    async def fetch_candidates(
        self,
        origin: Coordinate,
        destination: Coordinate,
        preference: str = "recommended",
        alt_count: int = 3,
        weight_factor: float = 1.6,
    ) -> List[RouteCandidate]:
        """Fetch up to ``alt_count`` alternative routes for one preference."""
        config = ProviderRequestConfig.for_pool(preference, alt_count, weight_factor)
        payload = await self.post_directions(origin, destination, config)
        candidates = parse_candidates(payload, preference)
        logger.debug(f"ORS {preference} pool (alts={alt_count}, wf={weight_factor}): {len(candidates)} routes")
        return candidates

    async def check_reachable(self) -> bool:
        """True when the provider host answers at all (any non-5xx response)."""
        base = self.directions_url.split("/v2/")[0]
        try:
            response = await self.client.get(f"{base}/v2/health", headers={"Authorization": self.api_key})
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning(f"Routing provider unreachable: {e}")
            return False

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


# Singleton instance
routing_provider = OpenRouteServiceClient()
