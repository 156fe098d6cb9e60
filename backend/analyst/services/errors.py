"""
Failure taxonomy for an analysis run.

Every failure that can end a run is an AnalysisError subclass. The
orchestrator turns them into FailureInfo(reason, detail) for display,
so none of them reaches the presentation layer as an exception.
"""


class AnalysisError(Exception):
    """
    Base exception for classified pipeline failures.

    Attributes:
        reason: Short machine-readable classification
        message: Human-readable summary
        detail: Diagnostic detail (status codes, response bodies)
    """

    reason = "analysis"

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} | {self.detail}"
        return self.message


class ValidationError(AnalysisError):
    """Size, type or configuration precondition failed. No network I/O was attempted."""

    reason = "validation"


class ProtocolError(AnalysisError):
    """
    Upload session or byte-transfer endpoint misbehaved.

    Attributes:
        status_code: HTTP status code if the endpoint answered
    """

    reason = "upload_protocol"

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, detail)
        self.status_code = status_code


class RemoteProcessingError(AnalysisError):
    """
    Uploaded asset ended in FAILED or in a state that cannot be reconciled.

    Attributes:
        state: Last state reported by the server
    """

    reason = "remote_processing"

    def __init__(self, message: str, state: str, detail: str | None = None):
        super().__init__(message, detail)
        self.state = state


class InferenceTransientError(AnalysisError):
    """
    Retryable inference failure (429, 503, overload, network).

    Attributes:
        status_code: HTTP status code if available
    """

    reason = "inference_transient"

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, detail)
        self.status_code = status_code


class InferenceExhaustedError(AnalysisError):
    """
    Retry ceiling reached without a successful inference call.

    Attributes:
        attempts: Number of attempts made
    """

    reason = "inference_exhausted"

    def __init__(self, message: str, attempts: int, detail: str | None = None):
        super().__init__(message, detail)
        self.attempts = attempts


class MalformedResponseError(AnalysisError):
    """
    No structured document could be extracted from the model output.

    Attributes:
        raw_text: Original model output, kept for inspection
    """

    reason = "malformed_response"

    def __init__(self, message: str, raw_text: str, detail: str | None = None):
        super().__init__(message, detail)
        self.raw_text = raw_text
