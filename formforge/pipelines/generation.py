"""Generation pipeline: retrieval-augmented synthesis of a workout plan.

accepted(0) -> generating(5 start, 15 retrieving, 30 prompting,
40 model stream, 70 parsing/validating, 90 saving) -> completed(100) | failed

`accept` returns as soon as the job exists; the rest runs as a detached
task that reports through the emitter and the job registry.
"""

import logging
import uuid
from typing import Any, Dict, List, Literal, Optional

from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from formforge.errors import FormForgeError, RetrievalEmptyError, ValidationError
from formforge.jobs.models import GenerationJob, JobStatus
from formforge.jobs.registry import JobRegistry
from formforge.jobs.runner import BackgroundRunner
from formforge.plans.outcome import resolve_plan
from formforge.plans.prompts import build_plan_prompt, build_question
from formforge.realtime.events import EventEmitter
from formforge.services.knowledge_base import KnowledgeBase
from formforge.services.llm import collect_stream
from formforge.services.plan_store import PlanStore

logger = logging.getLogger(__name__)

NO_DOCUMENTS_MESSAGE = (
    "No relevant documents found for the provided file IDs after retrieval attempts. Cannot generate plan."
)


class GenerationOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    top_k: Optional[int] = Field(default=None, alias="topK", ge=1, le=100)
    include_nutrition: Optional[bool] = Field(default=None, alias="includeNutrition")
    include_hydration: Optional[bool] = Field(default=None, alias="includeHydration")
    fitness_level: Optional[Literal["beginner", "intermediate", "advanced"]] = Field(
        default=None, alias="fitnessLevel"
    )
    specific_goals: List[str] = Field(default_factory=list, alias="specificGoals")
    excluded_exercises: List[str] = Field(default_factory=list, alias="excludedExercises")


class GenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    file_ids: List[str] = Field(alias="fileIds", min_length=1)
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be empty")
        return v

    @classmethod
    def from_payload(cls, payload: Any) -> "GenerationRequest":
        """Parse a raw request body, raising the service's ValidationError."""
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first["loc"])
            raise ValidationError(
                "Query and a non-empty array of fileIds are required.",
                field=field,
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e


class GenerationPipeline:
    def __init__(
        self,
        registry: JobRegistry[GenerationJob],
        emitter: EventEmitter,
        runner: BackgroundRunner,
        knowledge_base: KnowledgeBase,
        chat_model: BaseChatModel,
        plan_store: PlanStore,
        default_top_k: int = 8,
        overfetch: int = 5,
        retention_seconds: float = 3600,
    ):
        self._registry = registry
        self._emitter = emitter
        self._runner = runner
        self._knowledge_base = knowledge_base
        self._chat_model = chat_model
        self._plan_store = plan_store
        self._default_top_k = default_top_k
        self._overfetch = overfetch
        self._retention_seconds = retention_seconds

    def accept(self, request: GenerationRequest) -> str:
        job_id = str(uuid.uuid4())
        job = self._registry.create(
            job_id,
            GenerationJob(
                id=job_id,
                status=JobStatus.ACCEPTED,
                progress=0,
                step="Request accepted, queueing generation...",
                message="Workout plan generation request received.",
            ),
        )
        self._emitter.generation_progress(job)
        self._runner.spawn(self.run(job_id, request), name=f"generate-{job_id}")
        logger.info("Generation accepted", extra={"job_id": job_id, "file_ids": len(request.file_ids)})
        return job_id

    def get_status(self, job_id: str) -> Optional[GenerationJob]:
        return self._registry.get(job_id)

    async def run(self, job_id: str, request: GenerationRequest) -> None:
        """Drive one job to a terminal state. Never raises."""
        try:
            await self._run(job_id, request)
        except Exception as e:
            logger.exception("Generation failed", extra={"job_id": job_id})
            message = e.message if isinstance(e, FormForgeError) else (str(e) or type(e).__name__)
            self._fail(job_id, message)

    async def _run(self, job_id: str, request: GenerationRequest) -> None:
        self._progress(job_id, 5, "Starting workout plan generation", status=JobStatus.GENERATING)

        self._progress(job_id, 15, "Retrieving relevant documents")
        top_k = request.options.top_k or self._default_top_k
        documents = await self.retrieve_documents(request.query, request.file_ids, top_k)

        self._progress(job_id, 30, "Preparing prompt for LLM")
        prompt = build_plan_prompt()
        variables = {
            "context": "\n\n".join(doc.page_content for doc in documents),
            "question": build_question(request.query, request.options.model_dump()),
        }

        self._progress(job_id, 40, "Generating personalized workout plan with AI")
        text = await collect_stream(prompt, self._chat_model, variables)

        self._progress(job_id, 70, "Parsing and validating workout plan response")
        outcome = resolve_plan(text)

        self._progress(job_id, 90, "Saving workout plan")
        await self._plan_store.save(job_id, outcome.plan)

        self._complete(job_id, outcome.plan, outcome.fallback_used, outcome.message, outcome.error)

    async def retrieve_documents(self, query: str, file_ids: List[str], top_k: int) -> List[Document]:
        """Semantic search restricted to file_ids, then a direct lookup if that finds nothing."""
        wanted = set(file_ids)
        candidates = await self._knowledge_base.similarity_search(query, k=top_k * self._overfetch)
        documents = [doc for doc in candidates if doc.metadata.get("fileId") in wanted][:top_k]
        if documents:
            logger.info("Retrieved documents by similarity", extra={"documents": len(documents)})
            return documents

        logger.warning("No filtered search results, falling back to direct lookup", extra={"file_ids": file_ids})
        documents = await self._knowledge_base.find_by_file_ids(file_ids)
        if not documents:
            raise RetrievalEmptyError(NO_DOCUMENTS_MESSAGE, file_ids)
        return documents

    # -- state transitions -------------------------------------------------

    def _progress(self, job_id: str, progress: int, step: str, status: Optional[JobStatus] = None) -> None:
        partial: Dict[str, Any] = {"progress": progress, "step": step}
        if status is not None:
            partial["status"] = status
        job = self._registry.update(job_id, partial)
        if job is not None and not job.is_terminal:
            self._emitter.generation_progress(job)

    def _complete(
        self,
        job_id: str,
        plan: Dict[str, Any],
        fallback_used: bool,
        message: str,
        error: Optional[str] = None,
    ) -> None:
        current = self._registry.get(job_id)
        if current is None or current.is_terminal:
            logger.warning("Ignoring completion of unknown or finished job", extra={"job_id": job_id})
            return
        job = self._registry.update(
            job_id,
            {
                "status": JobStatus.COMPLETED,
                "progress": 100,
                "step": "Workout plan generation completed",
                "result": plan,
                "fallback_used": fallback_used,
                "message": message,
                "error": error,
            },
        )
        self._emitter.generation_complete(job)
        self._registry.schedule_cleanup(job_id, self._retention_seconds)
        logger.info("Generation completed", extra={"job_id": job_id, "fallback_used": fallback_used})

    def _fail(self, job_id: str, message: str) -> None:
        current = self._registry.get(job_id)
        if current is None or current.is_terminal:
            logger.warning("Ignoring failure of unknown or finished job", extra={"job_id": job_id})
            return
        # Progress is left where the job stopped
        job = self._registry.update(
            job_id,
            {
                "status": JobStatus.FAILED,
                "step": "Workout plan generation failed",
                "message": message,
                "error": message,
            },
        )
        self._emitter.generation_error(job)
        self._registry.schedule_cleanup(job_id, self._retention_seconds)
