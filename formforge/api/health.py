"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

router = APIRouter()

_services = None


def set_services(services):
    global _services
    _services = services


@router.get("/health")
async def health_check():
    """Service health, backend selection and in-flight job counts."""
    if _services is None:
        return {"status": "starting"}

    return {
        "status": "healthy",
        "vector_backend": _services.settings.vector_backend,
        "active_tasks": _services.runner.active,
        "tracked_uploads": len(_services.upload_registry),
        "tracked_generations": len(_services.generation_registry),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
