"""Embedded document chunks: storage, similarity search and metadata lookup.

Two backends share one interface:
- InMemoryKnowledgeBase: langchain InMemoryVectorStore, for local dev and tests
- SupabaseKnowledgeBase: pgvector table behind langchain's SupabaseVectorStore
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore, VectorStore

from formforge.errors import ProviderError

logger = logging.getLogger(__name__)


class KnowledgeBase(ABC):
    """Vector store plus a direct metadata lookup by source file id."""

    def __init__(self, vector_store: VectorStore):
        self.vector_store = vector_store

    async def add_chunk(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self.vector_store.aadd_documents([Document(page_content=text, metadata=metadata or {})])
        except Exception as e:
            raise ProviderError(f"Failed to add document to vector store: {e}", "vector_store") from e

    async def similarity_search(self, query: str, k: int = 4) -> List[Document]:
        try:
            return await self.vector_store.asimilarity_search(query, k=k)
        except Exception as e:
            raise ProviderError(f"Failed to find similar documents: {e}", "vector_store") from e

    @abstractmethod
    async def find_by_file_ids(self, file_ids: List[str]) -> List[Document]:
        """All stored chunks whose metadata.fileId is one of file_ids, unranked."""
        ...


class InMemoryKnowledgeBase(KnowledgeBase):
    def __init__(self, embeddings: Embeddings):
        super().__init__(InMemoryVectorStore(embedding=embeddings))

    async def find_by_file_ids(self, file_ids: List[str]) -> List[Document]:
        wanted = set(file_ids)
        return [
            Document(page_content=entry["text"], metadata=entry["metadata"])
            for entry in self.vector_store.store.values()
            if entry["metadata"].get("fileId") in wanted
        ]


class SupabaseKnowledgeBase(KnowledgeBase):
    def __init__(
        self,
        client,
        embeddings: Embeddings,
        table_name: str = "documents",
        query_name: str = "match_documents",
    ):
        from langchain_community.vectorstores import SupabaseVectorStore

        super().__init__(
            SupabaseVectorStore(
                client=client,
                embedding=embeddings,
                table_name=table_name,
                query_name=query_name,
            )
        )
        self._client = client
        self._table_name = table_name

    async def find_by_file_ids(self, file_ids: List[str]) -> List[Document]:
        def _query():
            return (
                self._client.table(self._table_name)
                .select("content, metadata")
                .in_("metadata->>fileId", list(file_ids))
                .execute()
            )

        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, _query)
        except Exception as e:
            raise ProviderError(f"Failed to retrieve documents from database: {e}", "supabase") from e

        rows = response.data or []
        logger.info("Direct metadata lookup", extra={"file_ids": len(file_ids), "rows": len(rows)})
        return [Document(page_content=row["content"], metadata=row.get("metadata") or {}) for row in rows]
