"""Custom exception hierarchy."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from radar.services.analysis_job_service import RecoveryReport


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when request input is missing or malformed."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class NotFoundError(AppError):
    """Raised when a requested row does not exist."""
    pass


class APIClientError(AppError):
    """Raised when a call to the AI provider fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when a call to the AI provider times out."""
    pass


class MissingCapabilityError(AppError):
    """Raised when a delegated path needs a capability that is not bound."""
    pass


class RunTerminatedError(AppError):
    """Raised when an assistant run ends in a non-completed state."""

    def __init__(self, status: str, message: Optional[str] = None, original_error: Exception = None):
        super().__init__(message or f"Assistant run {status}", original_error=original_error)
        self.status = status


class RunTimeoutError(RunTerminatedError):
    """Raised when an assistant run does not finish before the poll deadline."""

    def __init__(self, last_status: str, waited_seconds: float):
        super().__init__(
            "timeout",
            f"Assistant run still {last_status} after {waited_seconds:.1f}s",
        )
        self.last_status = last_status
        self.waited_seconds = waited_seconds


class PersistenceError(AppError):
    """Raised when a lifecycle write to storage fails."""

    def __init__(self, step: str, original_error: Exception):
        super().__init__(f"Failed to {step}: {original_error}", original_error=original_error)
        self.step = step


class AnalysisJobError(AppError):
    """Raised by the job orchestrator after error recovery has run.

    Carries the original failure message together with whatever identifiers
    were allocated before the failure.
    """

    def __init__(
        self,
        message: str,
        job_id: Optional[str],
        analysis_id: Optional[str],
        report: "Optional[RecoveryReport]" = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error=original_error)
        self.job_id = job_id
        self.analysis_id = analysis_id
        self.report = report
