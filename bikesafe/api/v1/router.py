"""API v1 router aggregation."""

from fastapi import APIRouter

from bikesafe.api.v1.routes import routing, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["Health"])
api_router.include_router(routing.router, prefix="/routes", tags=["Routing"])
