"""Workout plan generation API."""

from typing import Any, Dict

from fastapi import APIRouter, Body, HTTPException

from formforge.errors import NotFoundError
from formforge.pipelines.generation import GenerationRequest

router = APIRouter(prefix="/workout-plans")

_services = None


def set_services(services):
    global _services
    _services = services


def _require_services():
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return _services


@router.post("", status_code=202)
async def create_workout_plan(payload: Dict[str, Any] = Body(...)):
    """Accept a generation request. Track it on the returned job's topic."""
    services = _require_services()
    request = GenerationRequest.from_payload(payload)
    job_id = services.generation.accept(request)
    return {
        "jobId": job_id,
        "status": "accepted",
        "message": "Workout plan generation initiated. Track status via WebSocket.",
    }


@router.get("/status/{job_id}")
async def get_generation_status(job_id: str):
    services = _require_services()
    job = services.generation.get_status(job_id)
    if job is None:
        raise NotFoundError("Generation job not found or expired", {"jobId": job_id})
    return job.to_payload()


@router.get("/{plan_id}")
async def get_workout_plan(plan_id: str):
    services = _require_services()
    plan = await services.plan_store.get(plan_id)
    if plan is None:
        raise NotFoundError("Workout plan not found or not yet completed and saved.", {"planId": plan_id})
    return plan
