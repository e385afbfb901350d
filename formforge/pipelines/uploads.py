"""Upload session pipeline: byte-level progress for inbound file uploads.

State machine per upload: initialized -> receiving -> completed | failed.

The multipart body is read straight from the ASGI stream so progress is
reported per transport chunk, before the form is fully parsed.
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import Request
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from formforge.errors import FormForgeError, UnsupportedMediaError, ValidationError
from formforge.jobs.models import FileRecord, FileStore, UploadJob
from formforge.jobs.registry import JobRegistry
from formforge.realtime.events import EventEmitter

logger = logging.getLogger(__name__)

PDF_TYPE = "application/pdf"
MARKDOWN_TYPE = "text/markdown"

# Multipart boundaries and part headers on top of the file bytes
_MULTIPART_OVERHEAD_BYTES = 64 * 1024


def compute_percent(bytes_received: int, bytes_expected: int) -> int:
    if bytes_expected <= 0:
        return 0
    return round(bytes_received / bytes_expected * 100)


def resolve_file_type(content_type: Optional[str], filename: str) -> Optional[str]:
    """Map an upload to a supported declared type, or None if unsupported."""
    if content_type == PDF_TYPE:
        return PDF_TYPE
    if content_type == MARKDOWN_TYPE or filename.lower().endswith(".md"):
        return MARKDOWN_TYPE
    return None


class UploadTracker:
    """Owns UploadJob state transitions and their events."""

    def __init__(
        self,
        registry: JobRegistry[UploadJob],
        emitter: EventEmitter,
        retention_seconds: float = 3600,
    ):
        self._registry = registry
        self._emitter = emitter
        self._retention_seconds = retention_seconds

    def start(self, upload_id: str) -> UploadJob:
        # No broadcast yet: nobody can have joined the topic
        return self._registry.create(upload_id, UploadJob(id=upload_id))

    def get(self, upload_id: str) -> Optional[UploadJob]:
        return self._registry.get(upload_id)

    def update_progress(self, upload_id: str, bytes_received: int, bytes_expected: int) -> None:
        job = self._registry.update(
            upload_id,
            {
                "bytes_received": bytes_received,
                "bytes_expected": bytes_expected,
                "percent": compute_percent(bytes_received, bytes_expected),
                "completed": bytes_expected > 0 and bytes_received == bytes_expected,
            },
        )
        if job is not None and not job.is_terminal:
            self._emitter.upload_progress(job)

    def complete(self, upload_id: str, result: Optional[Dict[str, Any]] = None) -> None:
        job = self._registry.get(upload_id)
        if job is None or job.is_terminal:
            logger.warning("Ignoring completion of unknown or finished upload", extra={"upload_id": upload_id})
            return
        job = self._registry.update(upload_id, {"result": dict(result or {}), "percent": 100, "completed": True})
        self._emitter.upload_complete(job)
        self._registry.schedule_cleanup(upload_id, self._retention_seconds)

    def fail(self, upload_id: str, message: str) -> None:
        job = self._registry.get(upload_id)
        if job is None or job.is_terminal:
            logger.warning("Ignoring failure of unknown or finished upload", extra={"upload_id": upload_id})
            return
        job = self._registry.update(upload_id, {"error": message})
        logger.info("Upload failed", extra={"upload_id": upload_id, "error_msg": message})
        self._emitter.upload_error(job)
        self._registry.schedule_cleanup(upload_id, self._retention_seconds)


class UploadReceiver:
    """Streams one multipart upload to disk and registers it as a FileRecord."""

    def __init__(
        self,
        tracker: UploadTracker,
        file_store: FileStore,
        upload_dir: str,
        max_file_bytes: int = 10 * 1024 * 1024,
        read_chunk_bytes: int = 1024 * 1024,
    ):
        self._tracker = tracker
        self._file_store = file_store
        self._upload_dir = upload_dir
        self._max_file_bytes = max_file_bytes
        self._read_chunk_bytes = read_chunk_bytes
        os.makedirs(self._upload_dir, exist_ok=True)

    async def receive(self, request: Request, upload_id: str, batch_id: Optional[str] = None) -> FileRecord:
        """Consume the request body for an already-started upload session.

        Any failure is recorded on the upload job (terminal) and re-raised
        for the HTTP layer to render.
        """
        batch_id = batch_id or upload_id
        try:
            record = await self._receive(request, upload_id)
        except FormForgeError as e:
            self._tracker.fail(upload_id, e.message)
            raise
        except Exception as e:
            self._tracker.fail(upload_id, str(e) or type(e).__name__)
            raise

        self._file_store.add(batch_id, record)
        self._tracker.complete(
            upload_id,
            {
                "message": "File uploaded successfully and ready for processing",
                "filename": record.original_name,
                "fileId": record.id,
                "batchId": batch_id,
                "status": "uploaded",
            },
        )
        return record

    async def _receive(self, request: Request, upload_id: str) -> FileRecord:
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("multipart/form-data"):
            raise ValidationError("Error parsing form data: expected multipart/form-data", field="file")

        expected = int(request.headers.get("content-length") or 0)
        if expected > self._max_file_bytes + _MULTIPART_OVERHEAD_BYTES:
            raise ValidationError(f"File too large (max {self._max_file_bytes} bytes)", field="file")

        parser = MultiPartParser(request.headers, self._tracked_stream(request, upload_id, expected))
        try:
            form = await parser.parse()
        except MultiPartException as e:
            raise ValidationError(f"Error parsing form data: {e.message}") from e

        try:
            upload = form.get("file")
            if not isinstance(upload, UploadFile):
                raise ValidationError("No file uploaded", field="file")

            filename = upload.filename or "unknown"
            declared_type = resolve_file_type(upload.content_type, filename)
            if declared_type is None:
                raise UnsupportedMediaError("Only PDF and Markdown files are allowed", upload.content_type)

            metadata = self._parse_metadata(form.get("options"))
            file_id = str(uuid.uuid4())
            path = await self._save(upload, file_id, filename)
        finally:
            await form.close()

        return FileRecord(
            id=file_id,
            path=path,
            declared_type=declared_type,
            original_name=filename,
            metadata=metadata,
        )

    async def _tracked_stream(self, request: Request, upload_id: str, expected: int) -> AsyncGenerator[bytes, None]:
        received = 0
        async for chunk in request.stream():
            if not chunk:
                continue
            received += len(chunk)
            if received > self._max_file_bytes + _MULTIPART_OVERHEAD_BYTES:
                raise ValidationError(f"File too large (max {self._max_file_bytes} bytes)", field="file")
            self._tracker.update_progress(upload_id, received, expected)
            yield chunk
        if expected <= 0:
            # Unknown length: the final size is only known once the stream ends
            self._tracker.update_progress(upload_id, received, received)

    def _parse_metadata(self, raw: Any) -> Dict[str, Any]:
        default = {
            "source": "file-upload",
            "uploadDate": datetime.now(timezone.utc).isoformat(),
        }
        if raw is None or isinstance(raw, UploadFile) or not raw.strip():
            return default
        try:
            options = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"options must be valid JSON: {e.msg}", field="options") from e
        metadata = options.get("metadata") if isinstance(options, dict) else None
        return metadata if isinstance(metadata, dict) and metadata else default

    async def _save(self, upload: UploadFile, file_id: str, filename: str) -> str:
        ext = os.path.splitext(filename)[1] or ".bin"
        path = os.path.join(self._upload_dir, f"{file_id}{ext}")
        total = 0
        with open(path, "wb") as dst:
            while True:
                chunk = await upload.read(self._read_chunk_bytes)
                if not chunk:
                    break
                total += len(chunk)
                dst.write(chunk)

        if total == 0:
            os.remove(path)
            raise ValidationError("Uploaded file is empty", field="file")
        if total > self._max_file_bytes:
            os.remove(path)
            raise ValidationError(f"File too large (max {self._max_file_bytes} bytes)", field="file")
        return path
