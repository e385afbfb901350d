"""Server → client event names and the emitter the pipelines publish through.

Every payload carries its own job id (``uploadId`` or ``jobId``) so a client
never has to map connections to jobs itself.
"""

from typing import Any, Dict, List, Optional, Tuple

from formforge.jobs.models import GenerationJob, JobKind, JobStatus, UploadJob, topic_for
from formforge.realtime.hub import NotificationHub

UPLOAD_PROGRESS = "uploadProgress"
UPLOAD_COMPLETE = "uploadComplete"
UPLOAD_ERROR = "uploadError"

PROCESSING_START = "processingStart"
PROCESSING_PROGRESS = "processingProgress"
PROCESSING_COMPLETE = "processingComplete"
PROCESSING_ERROR = "processingError"

GENERATION_PROGRESS = "generationProgress"
GENERATION_COMPLETE = "generationComplete"
GENERATION_ERROR = "generationError"

# Client → server control messages
JOIN_UPLOAD_TOPIC = "join-upload-topic"
LEAVE_UPLOAD_TOPIC = "leave-upload-topic"
JOIN_GENERATION_TOPIC = "join-generation-topic"
LEAVE_GENERATION_TOPIC = "leave-generation-topic"

CONTROL_EVENTS = {
    JOIN_UPLOAD_TOPIC: (JobKind.UPLOAD, True),
    LEAVE_UPLOAD_TOPIC: (JobKind.UPLOAD, False),
    JOIN_GENERATION_TOPIC: (JobKind.GENERATION, True),
    LEAVE_GENERATION_TOPIC: (JobKind.GENERATION, False),
}


class EventEmitter:
    """Publishes job events on their topics.

    Until a hub is bound every call is a silent no-op, so pipelines can run
    before (or without) the realtime layer being initialized.
    """

    def __init__(self, hub: Optional[NotificationHub] = None):
        self._hub = hub

    def bind(self, hub: NotificationHub) -> None:
        self._hub = hub

    def _publish(self, kind: JobKind, job_id: str, event: str, payload: Dict[str, Any]) -> None:
        if self._hub is None:
            return
        self._hub.publish(topic_for(kind, job_id), event, payload)

    # -- uploads -------------------------------------------------------------

    def upload_progress(self, job: UploadJob) -> None:
        self._publish(JobKind.UPLOAD, job.id, UPLOAD_PROGRESS, job.to_payload())

    def upload_complete(self, job: UploadJob) -> None:
        self._publish(JobKind.UPLOAD, job.id, UPLOAD_COMPLETE, upload_complete_payload(job))

    def upload_error(self, job: UploadJob) -> None:
        self._publish(JobKind.UPLOAD, job.id, UPLOAD_ERROR, upload_error_payload(job))

    # -- ingestion (published on the upload batch topic) ---------------------

    def processing_start(self, upload_id: str, data: Dict[str, Any]) -> None:
        self._publish(JobKind.UPLOAD, upload_id, PROCESSING_START, {"uploadId": upload_id, **data})

    def processing_progress(self, upload_id: str, data: Dict[str, Any]) -> None:
        self._publish(JobKind.UPLOAD, upload_id, PROCESSING_PROGRESS, {"uploadId": upload_id, **data})

    def processing_complete(self, upload_id: str, data: Dict[str, Any]) -> None:
        self._publish(JobKind.UPLOAD, upload_id, PROCESSING_COMPLETE, {"uploadId": upload_id, **data})

    def processing_error(self, upload_id: str, data: Dict[str, Any]) -> None:
        self._publish(JobKind.UPLOAD, upload_id, PROCESSING_ERROR, {"uploadId": upload_id, **data})

    # -- generation ----------------------------------------------------------

    def generation_progress(self, job: GenerationJob) -> None:
        self._publish(JobKind.GENERATION, job.id, GENERATION_PROGRESS, job.to_payload())

    def generation_complete(self, job: GenerationJob) -> None:
        self._publish(JobKind.GENERATION, job.id, GENERATION_COMPLETE, job.to_payload())

    def generation_error(self, job: GenerationJob) -> None:
        self._publish(JobKind.GENERATION, job.id, GENERATION_ERROR, job.to_payload())


def upload_complete_payload(job: UploadJob) -> Dict[str, Any]:
    result = job.result or {}
    return {**job.to_payload(), **result, "uploadId": job.id, "status": result.get("status", "completed"), "completed": True}


def upload_error_payload(job: UploadJob) -> Dict[str, Any]:
    return {"uploadId": job.id, "error": job.error}


def replay_upload(job: Optional[UploadJob]) -> List[Tuple[str, Dict[str, Any]]]:
    """Events a late subscriber gets for an upload: current progress, or only
    the terminal event once the upload has finished."""
    if job is None:
        return []
    if job.error is not None:
        return [(UPLOAD_ERROR, upload_error_payload(job))]
    if job.is_terminal:
        return [(UPLOAD_COMPLETE, upload_complete_payload(job))]
    return [(UPLOAD_PROGRESS, job.to_payload())]


def replay_generation(job: Optional[GenerationJob]) -> List[Tuple[str, Dict[str, Any]]]:
    if job is None:
        return []
    if job.status == JobStatus.COMPLETED:
        return [(GENERATION_COMPLETE, job.to_payload())]
    if job.status == JobStatus.FAILED:
        return [(GENERATION_ERROR, job.to_payload())]
    return [(GENERATION_PROGRESS, job.to_payload())]
