"""
Review validation.

Each check is a pure function returning a ValidationResult, so callers can run
them one by one or through ``validate_review`` which stops at the first failure.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Mapping, Any

from peer_review.exceptions import ReviewFailure, ReviewValidationError
from peer_review.models.enums import AssignmentStatus
from peer_review.models.review import CRITERIA

MIN_SCORE = 1
MAX_SCORE = 5
MAX_COMMENT_LENGTH = 100


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check"""
    failure: Optional[ReviewFailure] = None
    field: Optional[str] = None
    status: Optional[AssignmentStatus] = None

    @property
    def is_valid(self) -> bool:
        return self.failure is None

    def raise_for_failure(self):
        """Raise ReviewValidationError if this result is a failure."""
        if self.failure is not None:
            raise ReviewValidationError(self.failure, field=self.field, status=self.status)


VALID = ValidationResult()


def check_ownership(assignment: Any, user_id: int) -> ValidationResult:
    if assignment.reviewer_user_id != user_id:
        return ValidationResult(ReviewFailure.NOT_OWNER)
    return VALID


def check_not_self_review(submission_owner_id: Optional[int], user_id: int) -> ValidationResult:
    if submission_owner_id is not None and submission_owner_id == user_id:
        return ValidationResult(ReviewFailure.SELF_REVIEW)
    return VALID


def check_status(assignment: Any) -> ValidationResult:
    if assignment.status != AssignmentStatus.PENDING:
        return ValidationResult(ReviewFailure.INVALID_STATUS, status=assignment.status)
    return VALID


def check_not_expired(assignment: Any, now: datetime) -> ValidationResult:
    """Exactly at the deadline still counts as on time."""
    if now > assignment.deadline:
        return ValidationResult(ReviewFailure.EXPIRED, status=assignment.status)
    return VALID


def check_no_duplicate(existing_review: Optional[Any]) -> ValidationResult:
    if existing_review is not None:
        return ValidationResult(ReviewFailure.DUPLICATE_REVIEW)
    return VALID


def check_scores(scores: Mapping[str, Any]) -> ValidationResult:
    """Every criterion must be an integer in [1, 5]."""
    for criterion in CRITERIA:
        value = scores.get(criterion)
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult(ReviewFailure.INVALID_SCORE, field=criterion)
        if not MIN_SCORE <= value <= MAX_SCORE:
            return ValidationResult(ReviewFailure.INVALID_SCORE, field=criterion)
    return VALID


def check_comment(comment: Optional[str], max_length: int = MAX_COMMENT_LENGTH) -> ValidationResult:
    if comment is not None and len(comment) > max_length:
        return ValidationResult(ReviewFailure.INVALID_COMMENT, field="comment_100")
    return VALID


def validate_review(
    assignment: Optional[Any],
    user_id: int,
    now: datetime,
    existing_review: Optional[Any] = None,
    scores: Optional[Mapping[str, Any]] = None,
    comment: Optional[str] = None,
    submission_owner_id: Optional[int] = None,
    max_comment_length: int = MAX_COMMENT_LENGTH,
) -> ValidationResult:
    """
    Run every applicable check and return the first failure.

    ``scores`` is omitted for verification votes, which carry no criterion scores.
    """
    if assignment is None:
        return ValidationResult(ReviewFailure.NOT_FOUND)

    checks = [
        lambda: check_ownership(assignment, user_id),
        lambda: check_not_self_review(submission_owner_id, user_id),
        lambda: check_status(assignment),
        lambda: check_not_expired(assignment, now),
        lambda: check_no_duplicate(existing_review),
    ]
    if scores is not None:
        checks.append(lambda: check_scores(scores))
    checks.append(lambda: check_comment(comment, max_comment_length))

    for check in checks:
        result = check()
        if not result.is_valid:
            return result
    return VALID
