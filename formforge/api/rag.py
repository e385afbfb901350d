"""Direct knowledge base access: question answering and similarity search."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

router = APIRouter(prefix="/rag")

_services = None


def set_services(services):
    global _services
    _services = services


def _require_services():
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return _services


class QueryOptions(BaseModel):
    top_k: Optional[int] = Field(default=None, alias="topK", ge=1, le=100)


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)
    options: QueryOptions = Field(default_factory=QueryOptions)


class DocumentRequest(BaseModel):
    text: str = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


@router.post("/query")
async def query(body: QueryRequest):
    services = _require_services()
    answer = await services.rag.query(body.query, body.options.top_k)
    return {"answer": answer}


@router.post("/documents", status_code=201)
async def add_document(body: DocumentRequest):
    services = _require_services()
    await services.rag.add_document(body.text, body.metadata)
    return {"message": "Document added successfully"}


@router.post("/similar")
async def similar_documents(body: QueryRequest):
    services = _require_services()
    documents = await services.rag.similar(body.query, body.options.top_k)
    return {
        "count": len(documents),
        "documents": [{"content": doc.page_content, "metadata": doc.metadata} for doc in documents],
    }
