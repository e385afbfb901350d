"""File upload and ingestion API.

  POST /api/files/upload                  stream one file in, tracked per byte
  POST /api/files/process                 start ingestion of an uploaded batch
  GET  /api/files/uploaded/{upload_id}    list files in a batch
  GET  /api/files/upload-status/{upload_id}  upload progress snapshot
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Header, HTTPException, Query, Request
from pydantic import BaseModel, Field

from formforge.errors import NotFoundError

router = APIRouter(prefix="/files")

# Wired in during lifespan
_services = None


def set_services(services):
    global _services
    _services = services


def _require_services():
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return _services


class ProcessRequest(BaseModel):
    upload_id: str = Field(alias="uploadId", min_length=1)
    file_ids: Optional[List[str]] = Field(default=None, alias="fileIds")


@router.post("/upload")
async def upload_file(
    request: Request,
    x_upload_id: Optional[str] = Header(default=None),
    batch_id: Optional[str] = Query(default=None, alias="batchId"),
):
    """Receive a multipart upload (`file`, optional `options` JSON).

    Clients that want progress events pick the upload id themselves, join its
    topic, and send it in `X-Upload-Id` before streaming the body.
    """
    services = _require_services()

    if batch_id and not services.file_store.has_batch(batch_id):
        raise NotFoundError("No uploaded files found for the given batchId", {"batchId": batch_id})

    upload_id = x_upload_id or str(uuid.uuid4())
    services.upload_tracker.start(upload_id)

    target_batch = batch_id or upload_id
    record = await services.upload_receiver.receive(request, upload_id, target_batch)

    return {
        "message": "File uploaded successfully and ready for processing",
        "filename": record.original_name,
        "fileId": record.id,
        "uploadId": upload_id,
        "batchId": target_batch,
        "status": record.status.value,
        "files": [f.summary() for f in services.file_store.list(target_batch)],
    }


@router.post("/process", status_code=202)
async def process_files(body: ProcessRequest):
    services = _require_services()
    return services.ingestion.start(body.upload_id, body.file_ids)


@router.get("/uploaded/{upload_id}")
async def get_uploaded_files(upload_id: str):
    services = _require_services()
    if not services.file_store.has_batch(upload_id):
        raise NotFoundError("No uploaded files found for the given uploadId", {"uploadId": upload_id})

    files = services.file_store.list(upload_id)
    return {
        "uploadId": upload_id,
        "totalFiles": len(files),
        "files": [f.summary() for f in files],
    }


@router.get("/upload-status/{upload_id}")
async def get_upload_status(upload_id: str):
    services = _require_services()
    job = services.upload_tracker.get(upload_id)
    if job is None:
        raise NotFoundError("Upload not found or expired", {"uploadId": upload_id})

    response = job.to_payload()
    if job.result is not None:
        response["result"] = job.result
    return response
