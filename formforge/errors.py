"""Exception hierarchy for the FormForge service.

Synchronous request handlers turn these into structured error bodies
(``{"error": category, "message": ..., "details": ...}``); background
pipelines catch them at their task boundary and turn them into terminal
job events.
"""

from typing import Any, Dict, Optional


class FormForgeError(Exception):
    """Base class for all service errors."""

    category = "Internal Server Error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.category, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(FormForgeError):
    """Caller input is malformed. Raised before any job is created."""

    category = "Bad Request"
    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class UnsupportedMediaError(FormForgeError):
    """Uploaded file is not a PDF or Markdown document."""

    category = "Unsupported Media Type"
    status_code = 415

    def __init__(self, message: str, content_type: Optional[str] = None):
        details = {"content_type": content_type} if content_type else None
        super().__init__(message, details)


class NotFoundError(FormForgeError):
    category = "Not Found"
    status_code = 404


class DuplicateJobError(FormForgeError):
    """A job id was registered twice."""

    category = "Conflict"
    status_code = 409

    def __init__(self, job_id: str):
        super().__init__(f"Job already exists: {job_id}", {"job_id": job_id})


class RetrievalEmptyError(FormForgeError):
    """No documents could be retrieved for the requested source files."""

    category = "No Documents Found"
    status_code = 404

    def __init__(self, message: str, file_ids: Optional[list] = None):
        super().__init__(message, {"file_ids": list(file_ids or [])})


class ExtractionFailure(FormForgeError):
    """Model output could not be parsed into a structured object."""

    category = "Extraction Failure"


class SchemaValidationFailure(FormForgeError):
    """Parsed model output does not conform to the plan schema."""

    category = "Schema Validation Failure"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message, {"errors": errors} if errors else None)


class PersistenceError(FormForgeError):
    """Saving or loading a finalized result failed."""

    category = "Persistence Error"


class ProviderError(FormForgeError):
    """An embedding, model or storage provider call raised."""

    category = "Provider Error"
    status_code = 502

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message, {"provider": provider} if provider else None)


class IngestionError(FormForgeError):
    """A single file could not be extracted, chunked or embedded."""

    category = "Ingestion Error"

    def __init__(self, message: str, file_id: Optional[str] = None):
        super().__init__(message, {"file_id": file_id} if file_id else None)
