"""Job registry interface and in-memory implementation.

The registry is the single source of truth for a job's last-known state,
independent of whether anyone is subscribed to its events. The in-memory
implementation keeps state for the life of the process only; there is no
crash recovery.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel

from formforge.errors import DuplicateJobError
from formforge.jobs.models import utcnow

logger = logging.getLogger(__name__)

JobT = TypeVar("JobT", bound=BaseModel)


class JobRegistry(ABC, Generic[JobT]):
    """Abstract key-value store of job snapshots (swap for a durable store)."""

    @abstractmethod
    def create(self, job_id: str, initial: JobT) -> JobT:
        """Register a new job. Raises DuplicateJobError if the id exists."""
        ...

    @abstractmethod
    def update(self, job_id: str, partial: Dict[str, Any]) -> Optional[JobT]:
        """Merge partial state. Unknown ids are a lost update, not an error."""
        ...

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobT]:
        ...

    @abstractmethod
    def delete(self, job_id: str) -> None:
        ...

    @abstractmethod
    def schedule_cleanup(self, job_id: str, delay: float) -> None:
        """Remove the record once `delay` seconds have elapsed."""
        ...


class InMemoryJobRegistry(JobRegistry[JobT]):
    """Dict-backed registry. Concurrent updates to one id are last-write-wins."""

    def __init__(self, name: str = "jobs"):
        self._name = name
        self._jobs: Dict[str, JobT] = {}

    def create(self, job_id: str, initial: JobT) -> JobT:
        if job_id in self._jobs:
            raise DuplicateJobError(job_id)
        self._jobs[job_id] = initial
        return initial

    def update(self, job_id: str, partial: Dict[str, Any]) -> Optional[JobT]:
        current = self._jobs.get(job_id)
        if current is None:
            logger.warning(
                "Lost update for unknown job",
                extra={"registry": self._name, "job_id": job_id, "fields": sorted(partial)},
            )
            return None
        if getattr(current, "is_terminal", False):
            logger.warning(
                "Ignoring update to terminal job",
                extra={"registry": self._name, "job_id": job_id, "fields": sorted(partial)},
            )
            return current

        if "updated_at" in type(current).model_fields and "updated_at" not in partial:
            partial = {**partial, "updated_at": utcnow()}
        updated = current.model_copy(update=partial)
        self._jobs[job_id] = updated
        return updated

    def get(self, job_id: str) -> Optional[JobT]:
        return self._jobs.get(job_id)

    def delete(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def schedule_cleanup(self, job_id: str, delay: float) -> None:
        # One-shot timer; only ever deletes state that is already terminal
        loop = asyncio.get_running_loop()
        loop.call_later(delay, self._purge, job_id)

    def _purge(self, job_id: str) -> None:
        if self._jobs.pop(job_id, None) is not None:
            logger.debug("Purged job", extra={"registry": self._name, "job_id": job_id})

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)
