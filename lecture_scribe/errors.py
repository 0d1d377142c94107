"""
Error taxonomy, retry logic and recovery guidance for Lecture Scribe.

Every failure the library store, the gateways or the assistant can report is a
ProcessingError subclass carrying a category, a severity, the context it was
raised in and a user-facing message. Nothing here swallows errors: callers
always receive the exception.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for categorizing failures."""
    LOW = "low"           # Caller mistake, nothing changed
    MEDIUM = "medium"     # An operation failed, state is intact
    HIGH = "high"         # A backing service is unusable
    CRITICAL = "critical" # The application cannot run


class ErrorCategory(Enum):
    """Categories of errors for better handling and user guidance."""
    NOT_FOUND = "not_found"
    INVALID_OPERATION = "invalid_operation"
    VERSION_CONFLICT = "version_conflict"
    UPSTREAM = "upstream"
    USER_INPUT = "user_input"
    CONFIGURATION = "configuration"
    FILE_SYSTEM = "file_system"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error occurrence."""
    timestamp: datetime
    component: str
    operation: str
    record_id: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None


@dataclass
class RecoveryAction:
    """Represents a recovery action that can be taken for an error."""
    action_type: str  # "retry", "manual", "skip"
    description: str
    automated: bool
    parameters: Optional[Dict[str, Any]] = None


class ProcessingError(Exception):
    """
    Base error with categorization and recovery information.
    """

    default_category = ErrorCategory.UNKNOWN
    default_severity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        context: Optional[ErrorContext] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        user_message: Optional[str] = None,
        technical_details: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.context = context or ErrorContext(
            timestamp=datetime.now(),
            component="unknown",
            operation="unknown"
        )
        self.recovery_actions = recovery_actions or []
        self.user_message = user_message or message
        self.technical_details = technical_details
        self.original_exception = original_exception

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "message": self.message,
            "user_message": self.user_message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "component": self.context.component,
            "operation": self.context.operation,
            "record_id": self.context.record_id,
            "recovery_actions": [
                {
                    "type": action.action_type,
                    "description": action.description,
                    "automated": action.automated
                }
                for action in self.recovery_actions
            ],
            "technical_details": self.technical_details
        }


class RecordNotFoundError(ProcessingError, LookupError):
    """An operation referenced an id that is not in the library."""

    default_category = ErrorCategory.NOT_FOUND
    default_severity = ErrorSeverity.LOW

    def __init__(self, record_id: str, operation: str = "lookup", **kwargs):
        kwargs.setdefault("context", ErrorContext(
            timestamp=datetime.now(),
            component="library_store",
            operation=operation,
            record_id=record_id
        ))
        kwargs.setdefault(
            "user_message",
            "The requested transcript no longer exists. It may have been deleted."
        )
        super().__init__(f"Record not found: {record_id}", **kwargs)
        self.record_id = record_id


class InvalidOperationError(ProcessingError, ValueError):
    """A precondition of the requested operation was violated."""

    default_category = ErrorCategory.INVALID_OPERATION
    default_severity = ErrorSeverity.LOW


class VersionConflictError(ProcessingError):
    """The record changed between reading it and applying new notes."""

    default_category = ErrorCategory.VERSION_CONFLICT
    default_severity = ErrorSeverity.LOW

    def __init__(self, record_id: str, expected: int, actual: int, **kwargs):
        kwargs.setdefault("context", ErrorContext(
            timestamp=datetime.now(),
            component="library_store",
            operation="regenerate_notes",
            record_id=record_id
        ))
        kwargs.setdefault("recovery_actions", [
            RecoveryAction("retry", "Regenerate notes from the current version", False)
        ])
        super().__init__(
            f"Record {record_id} is at notes v{actual}, expected v{expected}",
            **kwargs
        )
        self.record_id = record_id
        self.expected = expected
        self.actual = actual


class GatewayError(ProcessingError):
    """
    A transcription or notes-generation backend call failed.

    ``retryable`` is False when repeating the same request cannot succeed,
    e.g. a missing API key or a rejected request.
    """

    default_category = ErrorCategory.UPSTREAM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, retryable: bool = True, **kwargs):
        super().__init__(message, **kwargs)
        self.retryable = retryable


class RetryConfig:
    """Configuration for retry mechanisms."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_backoff: bool = True,
        jitter: bool = True
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_backoff = exponential_backoff
        self.jitter = jitter

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for a given attempt number."""
        if self.exponential_backoff:
            delay = self.base_delay * (2 ** (attempt - 1))
        else:
            delay = self.base_delay

        delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= (0.5 + random.random() * 0.5)  # Add 0-50% jitter

        return delay


class ErrorRecoveryManager:
    """
    Categorizes failures, logs them and drives retries with backoff.
    """

    def __init__(self):
        self.error_history: List[ProcessingError] = []
        self.retry_configs: Dict[str, RetryConfig] = {
            "transcription": RetryConfig(max_attempts=2, base_delay=2.0),
            "notes_generation": RetryConfig(max_attempts=2, base_delay=5.0),
        }

    def handle_error(
        self,
        error: Union[Exception, ProcessingError],
        context: Optional[ErrorContext] = None
    ) -> ProcessingError:
        """
        Record an error and make sure it is a ProcessingError.

        Args:
            error: The error that occurred
            context: Additional context about the error

        Returns:
            ProcessingError with recovery information
        """
        if isinstance(error, ProcessingError):
            processing_error = error
        else:
            processing_error = self._convert_to_processing_error(error, context)

        self.error_history.append(processing_error)
        self._log_error(processing_error)

        return processing_error

    def _convert_to_processing_error(
        self,
        error: Exception,
        context: Optional[ErrorContext]
    ) -> ProcessingError:
        """Convert a generic exception to a ProcessingError."""
        category, severity = self._categorize_error(error)

        return ProcessingError(
            message=str(error),
            category=category,
            severity=severity,
            context=context,
            recovery_actions=self._generate_recovery_actions(category),
            user_message=self._generate_user_message(error, category),
            technical_details=f"{type(error).__name__}: {error}",
            original_exception=error
        )

    def _categorize_error(self, error: Exception) -> tuple[ErrorCategory, ErrorSeverity]:
        """Categorize an error based on its type and message."""
        error_str = str(error).lower()

        if isinstance(error, KeyError):
            return ErrorCategory.NOT_FOUND, ErrorSeverity.LOW

        if isinstance(error, (FileNotFoundError, PermissionError, IsADirectoryError)):
            return ErrorCategory.FILE_SYSTEM, ErrorSeverity.MEDIUM

        if "api key" in error_str:
            return ErrorCategory.CONFIGURATION, ErrorSeverity.HIGH

        if "connection" in error_str or "timeout" in error_str or "network" in error_str:
            return ErrorCategory.UPSTREAM, ErrorSeverity.MEDIUM

        if isinstance(error, ValueError):
            return ErrorCategory.USER_INPUT, ErrorSeverity.LOW

        return ErrorCategory.UNKNOWN, ErrorSeverity.MEDIUM

    def _generate_user_message(self, error: Exception, category: ErrorCategory) -> str:
        """Generate a user-friendly error message."""
        messages = {
            ErrorCategory.NOT_FOUND: (
                "The requested transcript no longer exists."
            ),
            ErrorCategory.UPSTREAM: (
                "The AI service could not be reached. Your library is unchanged, "
                "please try again."
            ),
            ErrorCategory.CONFIGURATION: (
                "The AI service is not configured. Please set GEMINI_API_KEY."
            ),
            ErrorCategory.FILE_SYSTEM: (
                "File operation failed. Please check the file path and permissions."
            ),
        }

        return messages.get(category, f"An error occurred: {error}")

    def _generate_recovery_actions(self, category: ErrorCategory) -> List[RecoveryAction]:
        """Generate recovery actions based on error category."""
        if category == ErrorCategory.CONFIGURATION:
            return [
                RecoveryAction("manual", "Set GEMINI_API_KEY and restart", False)
            ]
        if category in (ErrorCategory.NOT_FOUND, ErrorCategory.USER_INPUT):
            return [
                RecoveryAction("skip", "Refresh the library and pick another record", False)
            ]
        return [RecoveryAction("retry", "Retry the operation", False)]

    def _log_error(self, error: ProcessingError) -> None:
        """Log error with appropriate level based on severity."""
        log_message = (
            f"[{error.category.value.upper()}] {error.message} "
            f"(Component: {error.context.component}, Operation: {error.context.operation})"
        )

        if error.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message)
        elif error.severity == ErrorSeverity.HIGH:
            logger.error(log_message)
        elif error.severity == ErrorSeverity.MEDIUM:
            logger.warning(log_message)
        else:
            logger.info(log_message)

        if error.technical_details:
            logger.debug(f"Technical details: {error.technical_details}")

    async def retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[Any]],
        operation_name: str,
        retry_config: Optional[RetryConfig] = None,
        context: Optional[ErrorContext] = None,
        retry_on: tuple = (GatewayError,)
    ) -> Any:
        """
        Await an operation, retrying failures of the given types with backoff.

        Errors outside ``retry_on`` propagate immediately. An error whose
        ``retryable`` attribute is False ends the attempts early. When no
        attempt succeeds, the last error is passed through handle_error and
        re-raised.
        """
        config = retry_config or self.retry_configs.get(operation_name, RetryConfig())
        last_error: Optional[Exception] = None

        for attempt in range(1, config.max_attempts + 1):
            try:
                logger.info(f"Attempting {operation_name} (attempt {attempt}/{config.max_attempts})")
                result = await operation()

                if attempt > 1:
                    logger.info(f"{operation_name} succeeded on attempt {attempt}")

                return result

            except retry_on as e:
                last_error = e

                if not getattr(e, "retryable", True):
                    logger.error(f"{operation_name} failed with a non-retryable error: {e}")
                    break

                if attempt < config.max_attempts:
                    delay = config.get_delay(attempt)
                    logger.warning(
                        f"{operation_name} failed on attempt {attempt}: {e}. "
                        f"Retrying in {delay:.1f} seconds..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"{operation_name} failed after {config.max_attempts} attempts: {e}")

        error_context = context or ErrorContext(
            timestamp=datetime.now(),
            component=operation_name,
            operation="retry_operation"
        )
        if isinstance(last_error, ProcessingError) and context is not None:
            last_error.context = context

        raise self.handle_error(last_error, error_context)

    def get_error_summary(self) -> Dict[str, Any]:
        """Get a summary of recent errors for monitoring."""
        if not self.error_history:
            return {"total_errors": 0, "recent_errors": 0}

        recent_errors = self.error_history[-10:]

        category_counts: Dict[str, int] = {}
        for error in recent_errors:
            category_counts[error.category.value] = category_counts.get(error.category.value, 0) + 1

        return {
            "total_errors": len(self.error_history),
            "recent_errors": len(recent_errors),
            "category_breakdown": category_counts,
            "last_error": recent_errors[-1].to_dict()
        }

    def clear_error_history(self) -> None:
        """Clear the error history (useful for testing or maintenance)."""
        self.error_history.clear()
        logger.info("Error history cleared")


# Global error recovery manager instance
error_recovery_manager = ErrorRecoveryManager()


def handle_processing_error(
    error: Union[Exception, ProcessingError],
    component: str,
    operation: str,
    record_id: Optional[str] = None,
    additional_data: Optional[Dict[str, Any]] = None
) -> ProcessingError:
    """
    Convenience function to handle processing errors with context.

    Args:
        error: The error that occurred
        component: Component where error occurred
        operation: Operation that failed
        record_id: Record the operation targeted, if any
        additional_data: Additional context data

    Returns:
        ProcessingError with recovery information
    """
    context = ErrorContext(
        timestamp=datetime.now(),
        component=component,
        operation=operation,
        record_id=record_id,
        additional_data=additional_data
    )

    return error_recovery_manager.handle_error(error, context)
