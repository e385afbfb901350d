"""Aggregate all API routers."""

from fastapi import APIRouter

from formforge.api import files, health, rag, workout_plans, ws

api_router = APIRouter(prefix="/api")
api_router.include_router(files.router, tags=["files"])
api_router.include_router(workout_plans.router, tags=["workout-plans"])
api_router.include_router(rag.router, tags=["rag"])

# Mounted at the root: GET /health and the /ws socket
root_router = APIRouter()
root_router.include_router(health.router, tags=["health"])
root_router.include_router(ws.router, tags=["realtime"])

_ROUTE_MODULES = (files, health, rag, workout_plans, ws)


def wire_services(services) -> None:
    """Hand the built service graph to every route module."""
    for module in _ROUTE_MODULES:
        module.set_services(services)
