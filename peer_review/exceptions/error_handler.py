"""
Centralized error handling for the peer review engine
"""

import logging
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from .base_exceptions import (
    PeerReviewException, ReviewValidationError, ReviewFailure,
    DatabaseError, NotificationError, AssignmentError, ConfigurationError
)

logger = logging.getLogger(__name__)

RETRY_LATER_MESSAGE = "Service temporarily unavailable. Please try again later."

FAILURE_STATUS_CODES = {
    ReviewFailure.NOT_FOUND: 404,
    ReviewFailure.NOT_OWNER: 403,
    ReviewFailure.SELF_REVIEW: 403,
    ReviewFailure.INVALID_STATUS: 409,
    ReviewFailure.DUPLICATE_REVIEW: 409,
    ReviewFailure.EXPIRED: 410,
    ReviewFailure.INVALID_SCORE: 422,
    ReviewFailure.INVALID_COMMENT: 422,
}


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for error handling"""
    user_id: Optional[int] = None
    operation: Optional[str] = None
    submission_id: Optional[int] = None
    assignment_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    additional_data: Optional[Dict[str, Any]] = None


@dataclass
class ErrorResponse:
    """Caller-facing outcome of a handled error"""
    message: str
    status_code: int = 500
    retryable: bool = False
    error_code: Optional[str] = None


class ErrorHandler:
    """Maps engine errors to caller responses and logs full detail for operators"""

    def handle_error(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None,
        fallback_message: str = "An unexpected error occurred. Please try again."
    ) -> ErrorResponse:
        """
        Handle any error and return the response for the calling layer

        Args:
            error: The exception that occurred
            context: Context information about the error
            fallback_message: Default message if no specific handling exists

        Returns:
            ErrorResponse with a user-safe message and status code
        """
        context = context or ErrorContext()
        try:
            self._log_error(error, context)

            if isinstance(error, ReviewValidationError):
                return self._handle_validation_error(error)

            if isinstance(error, PeerReviewException):
                return self._handle_known_error(error)

            if isinstance(error, SQLAlchemyError):
                return ErrorResponse(RETRY_LATER_MESSAGE, 503, True, "DATABASE_ERROR")

            if isinstance(error, (ConnectionError, TimeoutError)):
                return ErrorResponse(RETRY_LATER_MESSAGE, 503, True, "CONNECTION_ERROR")

            return ErrorResponse(fallback_message, 500, False, "INTERNAL_ERROR")

        except Exception as handler_error:
            logger.critical(f"Error in error handler: {handler_error}")
            return ErrorResponse(fallback_message, 500, False, "INTERNAL_ERROR")

    def _handle_validation_error(self, error: ReviewValidationError) -> ErrorResponse:
        """Validation failures are user-facing and never retryable"""
        return ErrorResponse(
            message=error.user_message,
            status_code=FAILURE_STATUS_CODES.get(error.failure, 400),
            retryable=False,
            error_code=error.error_code
        )

    def _handle_known_error(self, error: PeerReviewException) -> ErrorResponse:
        if isinstance(error, (DatabaseError, NotificationError)):
            return ErrorResponse(RETRY_LATER_MESSAGE, 503, error.recoverable, error.error_code)

        if isinstance(error, AssignmentError):
            return ErrorResponse(error.user_message, 409, False, error.error_code)

        if isinstance(error, ConfigurationError):
            return ErrorResponse(error.user_message, 500, False, error.error_code)

        return ErrorResponse(error.user_message, 400, error.recoverable, error.error_code)

    def _log_error(self, error: Exception, context: ErrorContext):
        """Log error with context information"""
        log_data = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'error_code': getattr(error, 'error_code', None),
            'user_id': context.user_id,
            'operation': context.operation,
            'submission_id': context.submission_id,
            'assignment_id': context.assignment_id,
            'timestamp': context.timestamp or datetime.now(),
        }

        if context.additional_data:
            log_data.update(context.additional_data)

        severity = self.get_error_severity(error)
        if severity == ErrorSeverity.LOW:
            logger.warning(f"User error: {log_data}")
        elif severity == ErrorSeverity.CRITICAL:
            logger.critical(f"Configuration error: {log_data}")
        else:
            log_data['traceback'] = traceback.format_exc()
            logger.error(f"Service error: {log_data}")

    def get_error_severity(self, error: Exception) -> ErrorSeverity:
        """Determine error severity based on type"""
        if isinstance(error, ConfigurationError):
            return ErrorSeverity.CRITICAL

        if isinstance(error, DatabaseError) and not error.recoverable:
            return ErrorSeverity.HIGH

        if isinstance(error, (ReviewValidationError, AssignmentError)):
            return ErrorSeverity.LOW

        if isinstance(error, (DatabaseError, NotificationError, SQLAlchemyError)):
            return ErrorSeverity.MEDIUM

        return ErrorSeverity.HIGH


# Global error handler instance
error_handler = ErrorHandler()
