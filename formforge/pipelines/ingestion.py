"""Ingestion pipeline: extract, chunk and embed a batch of uploaded files.

Batch state: queued -> processing (file i of n) -> completed | partially-failed
File state:  pending -> extracting -> chunking -> embedding (chunk j of m)
             -> processed | error

Files are processed one after another. A failing file does not stop the
batch; it is reported on its own and counted in ``errorFiles``.
"""

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from formforge.errors import FormForgeError, IngestionError, NotFoundError
from formforge.jobs.models import FileRecord, FileStatus, FileStore
from formforge.jobs.runner import BackgroundRunner
from formforge.realtime.events import EventEmitter
from formforge.services.chunking import TextChunker
from formforge.services.knowledge_base import KnowledgeBase
from formforge.services.text_extraction import TextExtractor

logger = logging.getLogger(__name__)


def _percent(position: float, total: int) -> int:
    if total <= 0:
        return 0
    return round(position / total * 100)


class IngestionPipeline:
    def __init__(
        self,
        file_store: FileStore,
        extractor: TextExtractor,
        chunker: TextChunker,
        knowledge_base: KnowledgeBase,
        emitter: EventEmitter,
        runner: BackgroundRunner,
    ):
        self._file_store = file_store
        self._extractor = extractor
        self._chunker = chunker
        self._knowledge_base = knowledge_base
        self._emitter = emitter
        self._runner = runner

    def select_files(self, upload_id: str, file_ids: Optional[List[str]] = None) -> List[FileRecord]:
        if not self._file_store.has_batch(upload_id):
            raise NotFoundError("No uploaded files found for the given uploadId", {"uploadId": upload_id})
        files = self._file_store.select(upload_id, file_ids)
        if not files:
            raise NotFoundError("No matching files found for processing", {"uploadId": upload_id})
        return files

    def start(self, upload_id: str, file_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """Validate the selection, announce it, and run the batch in the background."""
        files = self.select_files(upload_id, file_ids)
        processing_id = f"proc-{int(time.time() * 1000)}-{upload_id}"
        listing = [{"fileId": f.id, "filename": f.original_name} for f in files]

        self._emitter.processing_start(
            upload_id,
            {
                "processingId": processing_id,
                "status": "queued",
                "totalFiles": len(files),
                "files": listing,
            },
        )
        self._runner.spawn(
            self.process_batch(upload_id, processing_id, files),
            name=f"ingest-{processing_id}",
        )
        logger.info(
            "Ingestion started",
            extra={"upload_id": upload_id, "processing_id": processing_id, "total_files": len(files)},
        )
        return {
            "message": "File processing started",
            "processingId": processing_id,
            "uploadId": upload_id,
            "totalFiles": len(files),
            "files": listing,
        }

    async def process_batch(self, upload_id: str, processing_id: str, files: List[FileRecord]) -> Dict[str, Any]:
        """Run the batch to completion. Never raises."""
        try:
            return await self._process_batch(upload_id, processing_id, files)
        except Exception as e:
            logger.exception("Batch ingestion failed", extra={"upload_id": upload_id, "processing_id": processing_id})
            summary = {"processingId": processing_id, "status": "failed", "error": str(e) or type(e).__name__}
            self._emitter.processing_error(upload_id, summary)
            return summary

    async def _process_batch(self, upload_id: str, processing_id: str, files: List[FileRecord]) -> Dict[str, Any]:
        total_files = len(files)
        processed_files = 0
        error_files = 0
        total_chunks = 0
        total_characters = 0
        results: List[Dict[str, Any]] = []

        for index, record in enumerate(files):
            self._emitter.processing_progress(
                upload_id,
                {
                    "processingId": processing_id,
                    "status": "processing",
                    "currentFile": record.original_name,
                    "fileId": record.id,
                    "processedFiles": processed_files,
                    "totalFiles": total_files,
                    "percent": _percent(index, total_files),
                },
            )
            try:
                stats = await self._ingest_file(upload_id, processing_id, record, index, total_files)
            except Exception as e:
                message = e.message if isinstance(e, FormForgeError) else (str(e) or type(e).__name__)
                logger.warning(
                    "File ingestion failed",
                    extra={"upload_id": upload_id, "file_id": record.id, "error_msg": message},
                )
                record.status = FileStatus.ERROR
                record.error = message
                error_files += 1
                results.append({
                    "fileId": record.id,
                    "filename": record.original_name,
                    "status": FileStatus.ERROR.value,
                    "error": message,
                })
                self._emitter.processing_error(
                    upload_id,
                    {
                        "processingId": processing_id,
                        "fileId": record.id,
                        "filename": record.original_name,
                        "status": FileStatus.ERROR.value,
                        "error": message,
                    },
                )
                continue

            record.status = FileStatus.PROCESSED
            record.error = None
            processed_files += 1
            total_chunks += stats["chunks"]
            total_characters += stats["totalCharacters"]
            results.append({
                "fileId": record.id,
                "filename": record.original_name,
                "status": FileStatus.PROCESSED.value,
                **stats,
            })
            self._emitter.processing_progress(
                upload_id,
                {
                    "processingId": processing_id,
                    "status": "processing",
                    "currentFile": None,
                    "processedFiles": processed_files,
                    "totalFiles": total_files,
                    "percent": _percent(index + 1, total_files),
                },
            )

        summary = {
            "processingId": processing_id,
            "status": "completed" if error_files == 0 else "partially-failed",
            "processedFiles": processed_files,
            "errorFiles": error_files,
            "totalFiles": total_files,
            "totalChunks": total_chunks,
            "totalCharacters": total_characters,
            "results": results,
        }
        self._emitter.processing_complete(upload_id, summary)
        logger.info(
            "Ingestion finished",
            extra={
                "upload_id": upload_id,
                "processing_id": processing_id,
                "processed_files": processed_files,
                "error_files": error_files,
            },
        )
        return summary

    async def _ingest_file(
        self,
        upload_id: str,
        processing_id: str,
        record: FileRecord,
        index: int,
        total_files: int,
    ) -> Dict[str, int]:
        record.status = FileStatus.PROCESSING

        text = await self._extractor.extract(record.path, record.declared_type)
        chunks = self._chunker.split(text)
        if not chunks:
            raise IngestionError(f"No text content could be extracted from {record.original_name}", record.id)

        base_metadata = {
            **record.metadata,
            "filename": record.original_name,
            "fileType": record.declared_type,
            "extractedAt": datetime.now(timezone.utc).isoformat(),
            "fileId": record.id,
        }
        total = len(chunks)
        for j, chunk in enumerate(chunks):
            await self._knowledge_base.add_chunk(chunk, {**base_metadata, "chunk": j, "totalChunks": total})
            self._emitter.processing_progress(
                upload_id,
                {
                    "processingId": processing_id,
                    "status": "processing",
                    "currentFile": record.original_name,
                    "fileId": record.id,
                    "fileProgress": {"chunk": j + 1, "totalChunks": total},
                    "embeddingProgress": _percent(j + 1, total),
                    "totalFiles": total_files,
                    "percent": _percent(index + (j + 1) / total, total_files),
                },
            )

        self._remove_source(record)
        return {"chunks": total, "totalCharacters": len(text)}

    def _remove_source(self, record: FileRecord) -> None:
        try:
            os.remove(record.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove uploaded file", extra={"file_id": record.id, "error_msg": str(e)})
