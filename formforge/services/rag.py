"""Ad-hoc question answering and document access over the knowledge base."""

import logging
from typing import Any, Dict, List, Optional

from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from formforge.errors import ProviderError
from formforge.services.knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 4

QA_PROMPT = ChatPromptTemplate.from_template(
    """Answer the following question based on the provided context.
If you don't know the answer based on the context, just say that you don't know.

Context: {context}
Question: {question}"""
)


class RagService:
    def __init__(self, knowledge_base: KnowledgeBase, chat_model: BaseChatModel):
        self._knowledge_base = knowledge_base
        self._chat_model = chat_model

    async def query(self, question: str, top_k: Optional[int] = None) -> str:
        documents = await self._knowledge_base.similarity_search(question, k=top_k or DEFAULT_TOP_K)
        chain = QA_PROMPT | self._chat_model | StrOutputParser()
        try:
            answer = await chain.ainvoke({
                "context": "\n\n".join(doc.page_content for doc in documents),
                "question": question,
            })
        except Exception as e:
            raise ProviderError(f"Failed to process your query: {e}", "chat_model") from e
        logger.info("RAG query answered", extra={"documents": len(documents)})
        return answer

    async def add_document(self, text: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        await self._knowledge_base.add_chunk(text, metadata)

    async def similar(self, question: str, top_k: Optional[int] = None) -> List[Document]:
        return await self._knowledge_base.similarity_search(question, k=top_k or DEFAULT_TOP_K)
