"""
Standardized exception hierarchy for studyhub
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class StudyHubError(Exception):
    """
    Base exception for all studyhub errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging
    - HTTP status for the API layer

    Example:
        raise StudyHubError(
            message="Failed to save challenge",
            user_id="user-1",
            operation="join_challenge",
            context={"challenge_id": "abc-123"}
        )
    """

    http_status: int = 500
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


def _merge_context(kwargs: Dict[str, Any], **fields: Any) -> Dict[str, Any]:
    context = dict(fields)
    context.update(kwargs.pop("context", None) or {})
    return context


# ==========================================
# Validation Errors
# ==========================================

class ValidationError(StudyHubError):
    """
    Raised when a definition, challenge or request fails validation

    Examples:
    - Achievement criterion with a target below 1
    - Group-scoped achievement without a group reference
    - Challenge without a target for its type

    Example:
        raise ValidationError(
            message="Target value must be at least 1",
            field="criteria.target_value",
            value=0
        )
    """

    http_status = 400
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=kwargs.pop("user_message", None) or (f"Invalid {field}: {message}" if field else message),
            context=_merge_context(kwargs, field=field, value=value),
            **kwargs
        )


# ==========================================
# Challenge State Errors
# ==========================================

class StateError(StudyHubError):
    """
    Base class for operations that are not allowed in the current state
    of a challenge or participant
    """

    http_status = 409
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        challenge_id: Optional[str] = None,
        **kwargs
    ):
        self.challenge_id = challenge_id
        super().__init__(
            message=message,
            user_message=kwargs.pop("user_message", None) or message,
            context=_merge_context(kwargs, challenge_id=challenge_id),
            **kwargs
        )


class InvalidTransitionError(StateError):
    """Lifecycle transition not allowed from the current status"""

    def __init__(
        self,
        message: str,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
        **kwargs
    ):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message=message,
            context=_merge_context(kwargs, from_status=from_status, to_status=to_status),
            **kwargs
        )


class AlreadyJoinedError(StateError):
    """User already holds a non-withdrawn participant record"""

    def __init__(self, message: str = "User is already participating in this challenge", **kwargs):
        super().__init__(message=message, **kwargs)


class NotActiveParticipantError(StateError):
    """User has no active participant record"""

    def __init__(self, message: str = "User is not an active participant in this challenge", **kwargs):
        super().__init__(message=message, **kwargs)


class NotParticipantError(StateError):
    """User has no non-withdrawn participant record"""

    def __init__(self, message: str = "User is not participating in this challenge", **kwargs):
        super().__init__(message=message, **kwargs)


class ChallengeClosedError(StateError):
    """Roster changes on a completed or cancelled challenge"""

    def __init__(self, message: str = "Challenge is closed", **kwargs):
        super().__init__(message=message, **kwargs)


class StaleWriteError(StateError):
    """
    Optimistic concurrency check failed: the aggregate changed since it was
    read. The caller should reload and retry.
    """

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            message=message,
            user_message="This record was changed by someone else. Please try again.",
            context=_merge_context(
                kwargs,
                record_type=record_type,
                record_id=record_id,
                expected_version=expected_version
            ),
            **kwargs
        )


# ==========================================
# Roster Policy Errors
# ==========================================

class CapacityError(StudyHubError):
    """Base class for roster capacity failures"""

    http_status = 409
    log_level = logging.WARNING


class CapacityExceededError(CapacityError):
    """Challenge roster is full"""

    def __init__(
        self,
        message: str = "Challenge is at maximum capacity",
        max_participants: Optional[int] = None,
        **kwargs
    ):
        self.max_participants = max_participants
        super().__init__(
            message=message,
            user_message="This challenge is full.",
            context=_merge_context(kwargs, max_participants=max_participants),
            **kwargs
        )


class PolicyError(StudyHubError):
    """Base class for challenge policy violations"""

    http_status = 403
    log_level = logging.WARNING


class LateJoinDisallowedError(PolicyError):
    """Challenge has started and does not accept late joiners"""

    def __init__(self, message: str = "Late joining is not allowed for this challenge", **kwargs):
        super().__init__(
            message=message,
            user_message="This challenge has already started and does not accept new participants.",
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(StudyHubError):
    """
    Base class for database-related errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    http_status = 503

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble connecting to the database. Please try again in a moment.",
            **kwargs
        )


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            user_message="We encountered an issue saving your data. Please try again.",
            context=_merge_context(kwargs, query=query),
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested record does not exist"""

    http_status = 404
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context=_merge_context(kwargs, record_type=record_type, record_id=record_id),
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(StudyHubError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context=_merge_context(kwargs, config_key=config_key),
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> StudyHubError:
    """
    Wrap external exceptions (psycopg, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate StudyHubError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="save_challenge",
                context={"challenge_id": challenge_id}
            )
    """
    import psycopg

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return StudyHubError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
