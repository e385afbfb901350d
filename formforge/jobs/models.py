"""Job data models for upload sessions and plan generation."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobKind(str, Enum):
    UPLOAD = "upload"
    GENERATION = "generation"


def topic_for(kind: JobKind, job_id: str) -> str:
    """Topic key scoping a job's events. Never exposed to clients."""
    return f"{kind.value}:{job_id}"


def split_topic(topic: str) -> Optional[Tuple[JobKind, str]]:
    """Inverse of topic_for. Returns (JobKind, job_id) or None."""
    kind, sep, job_id = topic.partition(":")
    if not sep or not job_id:
        return None
    try:
        return JobKind(kind), job_id
    except ValueError:
        return None


class JobStatus(str, Enum):
    QUEUED = "queued"
    ACCEPTED = "accepted"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class UploadJob(BaseModel):
    """Byte-level progress of one inbound upload stream."""
    id: str
    bytes_received: int = 0
    bytes_expected: int = 0
    percent: int = 0
    completed: bool = False
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    result: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        # A chunk reporting received == expected sets completed before the
        # file is validated, so only a recorded result or error is terminal.
        return self.result is not None or self.error is not None

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "uploadId": self.id,
            "bytesReceived": self.bytes_received,
            "bytesExpected": self.bytes_expected,
            "percent": self.percent,
            "completed": self.completed,
            "createdAt": self.created_at.isoformat(),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class GenerationJob(BaseModel):
    """Lifecycle of one AI-backed plan synthesis request."""
    id: str
    status: JobStatus = JobStatus.ACCEPTED
    progress: int = 0
    step: str = ""
    message: Optional[str] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    fallback_used: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "jobId": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "step": self.step,
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
        if self.status == JobStatus.COMPLETED:
            payload["result"] = self.result
            payload["fallbackUsed"] = self.fallback_used
        return payload


class FileStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class FileRecord(BaseModel):
    """An accepted upload waiting for (or done with) ingestion."""
    id: str
    path: str
    declared_type: str
    original_name: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: FileStatus = FileStatus.UPLOADED
    error: Optional[str] = None

    @property
    def processed(self) -> bool:
        return self.status == FileStatus.PROCESSED

    def summary(self) -> Dict[str, Any]:
        out = {
            "fileId": self.id,
            "filename": self.original_name,
            "fileType": self.declared_type,
            "status": self.status.value,
            "processed": self.processed,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


class FileStore:
    """Process-wide FileRecord map grouped by upload batch id."""

    def __init__(self):
        self._batches: Dict[str, List[FileRecord]] = {}

    def add(self, batch_id: str, record: FileRecord) -> None:
        self._batches.setdefault(batch_id, []).append(record)

    def has_batch(self, batch_id: str) -> bool:
        return batch_id in self._batches

    def list(self, batch_id: str) -> List[FileRecord]:
        return list(self._batches.get(batch_id, []))

    def select(self, batch_id: str, file_ids: Optional[List[str]] = None) -> List[FileRecord]:
        files = self.list(batch_id)
        if file_ids:
            wanted = set(file_ids)
            files = [f for f in files if f.id in wanted]
        return files
