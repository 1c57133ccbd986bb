"""
Custom exceptions for the peer review engine
"""

from .base_exceptions import (
    PeerReviewException,
    ReviewFailure,
    ReviewValidationError,
    DatabaseError,
    NotificationError,
    AssignmentError,
    ConfigurationError
)

from .error_handler import (
    ErrorHandler,
    ErrorContext,
    ErrorResponse,
    ErrorSeverity,
    error_handler
)

__all__ = [
    'PeerReviewException',
    'ReviewFailure',
    'ReviewValidationError',
    'DatabaseError',
    'NotificationError',
    'AssignmentError',
    'ConfigurationError',
    'ErrorHandler',
    'ErrorContext',
    'ErrorResponse',
    'ErrorSeverity',
    'error_handler'
]
