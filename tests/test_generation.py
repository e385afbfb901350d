"""
Tests for the generation pipeline: request validation, retrieval fallback,
genuine versus fallback completion and persistence failures.
"""

import pytest
from langchain_core.documents import Document
from langchain_core.language_models import FakeListChatModel

from conftest import RecordingConnection, fenced, make_services

from formforge.errors import PersistenceError, RetrievalEmptyError, ValidationError
from formforge.jobs.models import JobStatus
from formforge.jobs.registry import InMemoryJobRegistry
from formforge.jobs.runner import BackgroundRunner
from formforge.pipelines.generation import NO_DOCUMENTS_MESSAGE, GenerationPipeline, GenerationRequest
from formforge.plans.fallback import minimal_plan
from formforge.plans.outcome import FALLBACK_MESSAGE, GENUINE_MESSAGE
from formforge.realtime.events import EventEmitter
from formforge.services.knowledge_base import KnowledgeBase
from formforge.services.plan_store import InMemoryPlanStore

pytestmark = pytest.mark.asyncio


async def _seed(services, file_id="file-1"):
    await services.knowledge_base.add_chunk(
        "Pull-up progressions: dead hang, scapular pulls, negatives, band assisted pull-ups.",
        {"fileId": file_id, "chunk": 0, "totalChunks": 1},
    )


def _request(file_ids=("file-1",), **options):
    return GenerationRequest.from_payload({
        "query": "Build me a beginner pull-up program",
        "fileIds": list(file_ids),
        "options": options,
    })


async def _run(services, request):
    job_id = services.generation.accept(request)
    conn = RecordingConnection()
    services.hub.subscribe(conn, f"generation:{job_id}")
    await services.runner.drain()
    return job_id, conn


async def test_genuine_plan_completes_with_exact_content(test_settings, model_plan):
    services = make_services(test_settings, [fenced(model_plan)])
    await _seed(services)

    job_id, conn = await _run(services, _request())

    [complete] = conn.of("generationComplete")
    assert complete["jobId"] == job_id
    assert complete["status"] == "completed"
    assert complete["progress"] == 100
    assert complete["result"] == model_plan
    assert complete["message"] == GENUINE_MESSAGE
    assert complete["fallbackUsed"] is False
    assert conn.of("generationError") == []

    saved = await services.plan_store.get(job_id)
    assert saved["program_name"] == "Ring Strength Foundations"


async def test_progress_steps_are_ordered(test_settings, model_plan):
    services = make_services(test_settings, [fenced(model_plan)])
    await _seed(services)

    job_id = services.generation.accept(_request())
    conn = RecordingConnection()
    # Subscribed before the task runs, so the accepted state is replayed first
    services.hub.subscribe(conn, f"generation:{job_id}")
    await services.runner.drain()

    progress = [p["progress"] for p in conn.of("generationProgress")]
    assert progress == [0, 5, 15, 30, 40, 70, 90]
    assert conn.names()[-1] == "generationComplete"


async def test_truncated_output_completes_with_fallback(test_settings, model_plan):
    text = fenced(model_plan)
    services = make_services(test_settings, [text[: len(text) // 3]])
    await _seed(services)

    job_id, conn = await _run(services, _request())

    [complete] = conn.of("generationComplete")
    assert complete["fallbackUsed"] is True
    assert complete["message"] == FALLBACK_MESSAGE
    assert complete["error"].startswith("Parsing failed")
    assert complete["result"] == minimal_plan()
    assert services.generation.get_status(job_id).status == JobStatus.COMPLETED


async def test_no_documents_fails_without_completion(test_settings, model_plan):
    services = make_services(test_settings, [fenced(model_plan)])
    await _seed(services, file_id="other-file")

    job_id, conn = await _run(services, _request(file_ids=["file-1"]))

    assert conn.of("generationComplete") == []
    [error] = conn.of("generationError")
    assert error["status"] == "failed"
    assert error["error"] == NO_DOCUMENTS_MESSAGE
    assert error["progress"] == 15

    job = services.generation.get_status(job_id)
    assert job.status == JobStatus.FAILED
    assert await services.plan_store.get(job_id) is None


class ScriptedKnowledgeBase(KnowledgeBase):
    """Returns fixed search results and records what retrieval asked for."""

    def __init__(self, search_results, lookup_results=()):
        super().__init__(vector_store=None)
        self.search_results = list(search_results)
        self.lookup_results = list(lookup_results)
        self.search_calls = []
        self.lookup_calls = []

    async def similarity_search(self, query, k=4):
        self.search_calls.append((query, k))
        return list(self.search_results)

    async def find_by_file_ids(self, file_ids):
        self.lookup_calls.append(list(file_ids))
        return list(self.lookup_results)


def _pipeline(knowledge_base):
    return GenerationPipeline(
        InMemoryJobRegistry("generations"),
        EventEmitter(),
        BackgroundRunner(),
        knowledge_base,
        FakeListChatModel(responses=["unused"]),
        InMemoryPlanStore(),
        default_top_k=8,
        overfetch=5,
    )


def _doc(text, file_id):
    return Document(page_content=text, metadata={"fileId": file_id})


async def test_direct_lookup_used_when_search_returns_only_other_files():
    kb = ScriptedKnowledgeBase(
        search_results=[_doc("Squat depth cues", "other-a"), _doc("Bench arch", "other-b")],
        lookup_results=[_doc("Dead hang for 30s", "file-1")],
    )

    documents = await _pipeline(kb).retrieve_documents("pull-ups", ["file-1"], top_k=3)

    assert kb.lookup_calls == [["file-1"]]
    assert [doc.page_content for doc in documents] == ["Dead hang for 30s"]


async def test_search_results_filtered_to_requested_files_and_truncated():
    kb = ScriptedKnowledgeBase(
        search_results=[
            _doc("own 1", "file-1"),
            _doc("foreign 1", "other"),
            _doc("own 2", "file-2"),
            _doc("foreign 2", "other"),
            _doc("own 3", "file-1"),
        ],
        lookup_results=[_doc("should not be used", "file-1")],
    )

    documents = await _pipeline(kb).retrieve_documents("pull-ups", ["file-1", "file-2"], top_k=2)

    assert kb.search_calls == [("pull-ups", 10)]
    assert [doc.page_content for doc in documents] == ["own 1", "own 2"]
    assert kb.lookup_calls == []


async def test_no_documents_anywhere_raises():
    kb = ScriptedKnowledgeBase(search_results=[_doc("foreign", "other")])

    with pytest.raises(RetrievalEmptyError) as exc:
        await _pipeline(kb).retrieve_documents("pull-ups", ["file-1"], top_k=3)
    assert exc.value.message == NO_DOCUMENTS_MESSAGE


async def test_persistence_failure_fails_job(test_settings, model_plan):
    services = make_services(test_settings, [fenced(model_plan)])
    await _seed(services)

    async def broken_save(plan_id, plan):
        raise PersistenceError("Failed to save workout plan: connection refused", {"plan_id": plan_id})

    services.plan_store.save = broken_save
    job_id, conn = await _run(services, _request())

    assert conn.of("generationComplete") == []
    [error] = conn.of("generationError")
    assert error["error"] == "Failed to save workout plan: connection refused"
    assert error["progress"] == 90


async def test_request_validation():
    with pytest.raises(ValidationError):
        GenerationRequest.from_payload({"query": "x", "fileIds": []})
    with pytest.raises(ValidationError):
        GenerationRequest.from_payload({"query": "   ", "fileIds": ["a"]})
    with pytest.raises(ValidationError):
        GenerationRequest.from_payload({"fileIds": ["a"]})
    with pytest.raises(ValidationError):
        GenerationRequest.from_payload(["not", "an", "object"])

    request = GenerationRequest.from_payload({
        "query": "plan",
        "fileIds": ["a"],
        "options": {"topK": 3, "fitnessLevel": "advanced", "excludedExercises": ["dips"]},
    })
    assert request.options.top_k == 3
    assert request.options.fitness_level == "advanced"
    assert request.options.excluded_exercises == ["dips"]
