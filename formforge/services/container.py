"""Wires the collaborators, registries and pipelines into one object.

The API layer receives a built `Services` during the app lifespan; tests
build one around fake models and the in-memory backends.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel

from formforge.config import Settings
from formforge.jobs.models import FileStore, GenerationJob, JobKind, UploadJob
from formforge.jobs.registry import InMemoryJobRegistry
from formforge.jobs.runner import BackgroundRunner
from formforge.pipelines.generation import GenerationPipeline
from formforge.pipelines.ingestion import IngestionPipeline
from formforge.pipelines.uploads import UploadReceiver, UploadTracker
from formforge.realtime.events import EventEmitter, replay_generation, replay_upload
from formforge.realtime.hub import InMemoryHub
from formforge.services.chunking import TextChunker
from formforge.services.knowledge_base import InMemoryKnowledgeBase, KnowledgeBase, SupabaseKnowledgeBase
from formforge.services.llm import build_chat_model, build_embeddings
from formforge.services.plan_store import InMemoryPlanStore, PlanStore, SupabasePlanStore
from formforge.services.rag import RagService
from formforge.services.text_extraction import TextExtractor

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    hub: InMemoryHub
    emitter: EventEmitter
    runner: BackgroundRunner
    file_store: FileStore
    upload_registry: InMemoryJobRegistry[UploadJob]
    generation_registry: InMemoryJobRegistry[GenerationJob]
    upload_tracker: UploadTracker
    upload_receiver: UploadReceiver
    knowledge_base: KnowledgeBase
    plan_store: PlanStore
    ingestion: IngestionPipeline
    generation: GenerationPipeline
    rag: RagService

    async def shutdown(self) -> None:
        await self.runner.stop()


def build_services(
    settings: Settings,
    chat_model: Optional[BaseChatModel] = None,
    embeddings: Optional[Embeddings] = None,
    knowledge_base: Optional[KnowledgeBase] = None,
    plan_store: Optional[PlanStore] = None,
) -> Services:
    """Assemble the service graph. Missing collaborators come from settings."""
    chat_model = chat_model or build_chat_model(settings)

    if knowledge_base is None or plan_store is None:
        if settings.vector_backend == "supabase":
            from formforge.db.supabase_client import create_supabase

            client = create_supabase(settings)
            if knowledge_base is None:
                knowledge_base = SupabaseKnowledgeBase(
                    client,
                    embeddings or build_embeddings(settings),
                    table_name=settings.documents_table,
                    query_name=settings.documents_query_name,
                )
            if plan_store is None:
                plan_store = SupabasePlanStore(client, table_name=settings.plans_table)
        else:
            if knowledge_base is None:
                knowledge_base = InMemoryKnowledgeBase(embeddings or build_embeddings(settings))
            if plan_store is None:
                plan_store = InMemoryPlanStore()

    hub = InMemoryHub()
    emitter = EventEmitter(hub)
    runner = BackgroundRunner()
    file_store = FileStore()
    upload_registry: InMemoryJobRegistry[UploadJob] = InMemoryJobRegistry("uploads")
    generation_registry: InMemoryJobRegistry[GenerationJob] = InMemoryJobRegistry("generations")

    hub.register_replay(JobKind.UPLOAD, lambda job_id: replay_upload(upload_registry.get(job_id)))
    hub.register_replay(JobKind.GENERATION, lambda job_id: replay_generation(generation_registry.get(job_id)))

    tracker = UploadTracker(upload_registry, emitter, settings.upload_retention_seconds)
    receiver = UploadReceiver(
        tracker,
        file_store,
        settings.upload_dir,
        max_file_bytes=settings.max_upload_bytes,
        read_chunk_bytes=settings.upload_read_chunk_bytes,
    )
    ingestion = IngestionPipeline(
        file_store,
        TextExtractor(),
        TextChunker(settings.chunk_size, settings.chunk_overlap),
        knowledge_base,
        emitter,
        runner,
    )
    generation = GenerationPipeline(
        generation_registry,
        emitter,
        runner,
        knowledge_base,
        chat_model,
        plan_store,
        default_top_k=settings.default_top_k,
        overfetch=settings.retrieval_overfetch,
        retention_seconds=settings.generation_retention_seconds,
    )

    logger.info("Services built", extra={"vector_backend": settings.vector_backend})
    return Services(
        settings=settings,
        hub=hub,
        emitter=emitter,
        runner=runner,
        file_store=file_store,
        upload_registry=upload_registry,
        generation_registry=generation_registry,
        upload_tracker=tracker,
        upload_receiver=receiver,
        knowledge_base=knowledge_base,
        plan_store=plan_store,
        ingestion=ingestion,
        generation=generation,
        rag=RagService(knowledge_base, chat_model),
    )
