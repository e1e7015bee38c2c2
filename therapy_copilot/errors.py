"""
Workflow Errors

Services raise these; the API layer turns them into HTTP responses with the
status code carried by each class.
"""


class WorkflowError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(WorkflowError):
    status_code = 404


class ForbiddenError(WorkflowError):
    status_code = 403


class ConflictError(WorkflowError):
    """Duplicate creation or an invalid state transition."""

    status_code = 409


class PreconditionError(WorkflowError):
    status_code = 400


class AnalysisGenerationError(WorkflowError):
    """Clinical analysis extraction failed after all retries."""

    status_code = 502

    def __init__(self, message: str, attempts: int = 0, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


class ClientViewGenerationError(WorkflowError):
    """Client-facing paraphrase failed; approval must not proceed."""

    status_code = 502


class SummaryGenerationError(WorkflowError):
    status_code = 502
