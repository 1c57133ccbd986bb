"""
Base exceptions for peer review engine error handling
"""

from enum import Enum
from typing import Optional, Dict, Any


class PeerReviewException(Exception):
    """Base exception for all peer review engine errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.error_code = error_code
        self.user_message = user_message or message
        self.context = context or {}
        self.recoverable = recoverable


class ReviewFailure(Enum):
    """Reasons a review may not be recorded"""
    NOT_FOUND = "NOT_FOUND"
    NOT_OWNER = "NOT_OWNER"
    SELF_REVIEW = "SELF_REVIEW"
    INVALID_STATUS = "INVALID_STATUS"
    EXPIRED = "EXPIRED"
    DUPLICATE_REVIEW = "DUPLICATE_REVIEW"
    INVALID_SCORE = "INVALID_SCORE"
    INVALID_COMMENT = "INVALID_COMMENT"


REVIEW_FAILURE_MESSAGES = {
    ReviewFailure.NOT_FOUND: "Assignment not found.",
    ReviewFailure.NOT_OWNER: "This assignment belongs to another reviewer.",
    ReviewFailure.SELF_REVIEW: "You cannot review your own submission.",
    ReviewFailure.INVALID_STATUS: "This assignment is no longer open for review.",
    ReviewFailure.EXPIRED: "Assignment has expired.",
    ReviewFailure.DUPLICATE_REVIEW: "A review has already been submitted for this assignment.",
    ReviewFailure.INVALID_SCORE: "Scores must be whole numbers from 1 to 5.",
    ReviewFailure.INVALID_COMMENT: "Comment is too long.",
}


class ReviewValidationError(PeerReviewException):
    """Raised when a review fails validation"""

    def __init__(
        self,
        failure: ReviewFailure,
        message: Optional[str] = None,
        field: Optional[str] = None,
        status: Optional[Any] = None
    ):
        user_message = REVIEW_FAILURE_MESSAGES[failure]
        if failure == ReviewFailure.INVALID_SCORE and field:
            user_message = f"Invalid score for {field}: {user_message}"
        super().__init__(
            message=message or user_message,
            error_code=f"VALIDATION_{failure.value}",
            user_message=user_message,
            context={"field": field, "status": getattr(status, "value", status)},
            recoverable=False
        )
        self.failure = failure
        self.field = field
        self.status = status


class DatabaseError(PeerReviewException):
    """Raised when database operations fail"""

    def __init__(
        self,
        message: str,
        operation: str,
        table: Optional[str] = None,
        recoverable: bool = True
    ):
        super().__init__(
            message=message,
            error_code=f"DATABASE_{operation.upper()}",
            user_message="Database temporarily unavailable. Please try again.",
            recoverable=recoverable
        )
        self.operation = operation
        self.table = table


class NotificationError(PeerReviewException):
    """Raised when a notification cannot be delivered"""

    def __init__(
        self,
        message: str,
        template: str,
        address: Optional[Any] = None,
        recoverable: bool = True
    ):
        super().__init__(
            message=message,
            error_code=f"NOTIFICATION_{template.upper().replace('-', '_')}",
            user_message="Notification service temporarily unavailable.",
            context={"address": address},
            recoverable=recoverable
        )
        self.template = template
        self.address = address


class AssignmentError(PeerReviewException):
    """Raised when an assignment run cannot proceed"""

    def __init__(self, message: str, submission_id: Optional[int] = None, contest_id: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="ASSIGNMENT_REJECTED",
            context={"submission_id": submission_id, "contest_id": contest_id},
            recoverable=False
        )
        self.submission_id = submission_id
        self.contest_id = contest_id


class ConfigurationError(PeerReviewException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str):
        super().__init__(
            message=message,
            error_code=f"CONFIG_{config_key.upper()}",
            user_message="Service temporarily unavailable due to configuration issues.",
            recoverable=False
        )
        self.config_key = config_key
