"""Persistence for finalized workout plans."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from formforge.errors import PersistenceError

logger = logging.getLogger(__name__)

# PostgREST code for ".single()" matching zero (or several) rows
_NO_ROWS = "PGRST116"


class PlanStore(ABC):
    @abstractmethod
    async def save(self, plan_id: str, plan: Dict[str, Any]) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def get(self, plan_id: str) -> Optional[Dict[str, Any]]:
        ...


class InMemoryPlanStore(PlanStore):
    def __init__(self):
        self._plans: Dict[str, Dict[str, Any]] = {}

    async def save(self, plan_id: str, plan: Dict[str, Any]) -> Dict[str, Any]:
        row = {"id": plan_id, **plan}
        self._plans[plan_id] = row
        return row

    async def get(self, plan_id: str) -> Optional[Dict[str, Any]]:
        return self._plans.get(plan_id)


class SupabasePlanStore(PlanStore):
    """Stores plans in the `workout_plans` table keyed by the generation job id."""

    def __init__(self, client, table_name: str = "workout_plans"):
        self._client = client
        self._table_name = table_name

    async def save(self, plan_id: str, plan: Dict[str, Any]) -> Dict[str, Any]:
        row = {
            "id": plan_id,
            "program_name": plan.get("program_name"),
            "program_goal": plan.get("program_goal"),
            "program_description": plan.get("program_description"),
            "required_gear": plan.get("required_gear"),
            "exercises": plan.get("exercises"),
            "workout_plan": plan.get("workout_plan"),
            "nutrition_advice": plan.get("nutrition_advice") or None,
            "hydration_advice": plan.get("hydration_advice") or None,
        }

        def _insert():
            return self._client.table(self._table_name).insert([row]).execute()

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _insert)
        except Exception as e:
            raise PersistenceError(f"Failed to save workout plan: {e}", {"plan_id": plan_id}) from e

        logger.info("Workout plan saved", extra={"plan_id": plan_id})
        return response.data[0] if response.data else row

    async def get(self, plan_id: str) -> Optional[Dict[str, Any]]:
        from postgrest.exceptions import APIError

        def _select():
            return (
                self._client.table(self._table_name)
                .select("*")
                .eq("id", plan_id)
                .single()
                .execute()
            )

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _select)
        except APIError as e:
            if e.code == _NO_ROWS:
                return None
            raise PersistenceError(f"Failed to fetch workout plan: {e.message}", {"plan_id": plan_id}) from e
        except Exception as e:
            raise PersistenceError(f"Failed to fetch workout plan: {e}", {"plan_id": plan_id}) from e
        return response.data
