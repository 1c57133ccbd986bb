"""
Recording reviews and verification votes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.exc import IntegrityError

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.exceptions import ReviewFailure, ReviewValidationError
from peer_review.models.enums import AssignmentStatus, VerificationDecision
from peer_review.models.review import CRITERIA
from peer_review.repositories.assignment_repository import AssignmentRepository
from peer_review.repositories.review_repository import ReviewRepository
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.services.review_validator import validate_review

logger = logging.getLogger(__name__)


@dataclass
class CompletionStatus:
    """Whether every live assignment of a submission is DONE"""
    complete: bool
    review_count: int
    total_expected: int


@dataclass
class ReviewSubmissionResult:
    """Recorded review plus the submission's completion state"""
    review: Any
    completion: CompletionStatus
    follow_up: Any = None


class ReviewService:
    """
    Validates and stores reviews, then triggers follow-up work once a
    submission's reviews are all in
    """

    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        review_repo: ReviewRepository,
        submission_repo: SubmissionRepository,
        on_complete: Optional[Callable[[int], Any]] = None,
        policy: Optional[PeerReviewPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.assignment_repo = assignment_repo
        self.review_repo = review_repo
        self.submission_repo = submission_repo
        self.on_complete = on_complete
        self.policy = policy or PeerReviewPolicy()
        self.clock = clock

    async def submit_review(
        self,
        assignment_id: int,
        reviewer_id: int,
        scores: Mapping[str, Any],
        comment: str = "",
    ) -> ReviewSubmissionResult:
        """
        Record a scored review for a standard peer review assignment

        Raises:
            ReviewValidationError: If any validation check fails
        """
        values = {criterion: scores.get(criterion) for criterion in CRITERIA}
        return await self._record(assignment_id, reviewer_id, comment, scores=values)

    async def submit_verification_review(
        self,
        assignment_id: int,
        reviewer_id: int,
        decision: VerificationDecision,
        comment: str = "",
    ) -> ReviewSubmissionResult:
        """
        Record an ELIMINATE / REINSTATE vote for a verification assignment

        Raises:
            ReviewValidationError: If any validation check fails
        """
        return await self._record(assignment_id, reviewer_id, comment, values={"decision": decision})

    async def check_submission_review_completion(self, submission_id: int) -> CompletionStatus:
        """Expired assignments are replaced, so they do not count towards the total."""
        assignments = await self.assignment_repo.get_by_submission(submission_id)
        live = [a for a in assignments if a.status != AssignmentStatus.EXPIRED]
        done = [a for a in live if a.status == AssignmentStatus.DONE]
        return CompletionStatus(
            complete=bool(live) and len(done) == len(live),
            review_count=len(done),
            total_expected=len(live),
        )

    async def _record(self, assignment_id: int, reviewer_id: int, comment: str,
                      scores: Optional[Mapping[str, Any]] = None,
                      values: Optional[Mapping[str, Any]] = None) -> ReviewSubmissionResult:
        now = self.clock()
        assignment = await self.assignment_repo.get_by_id(assignment_id)
        owner_id = None
        existing = None
        if assignment is not None:
            submission = await self.submission_repo.get_by_id(assignment.submission_id)
            owner_id = submission.user_id if submission else None
            existing = await self.review_repo.get_by_assignment_id(assignment_id)

        result = validate_review(
            assignment,
            reviewer_id,
            now,
            existing_review=existing,
            scores=scores,
            comment=comment,
            submission_owner_id=owner_id,
            max_comment_length=self.policy.max_comment_length,
        )
        if not result.is_valid:
            logger.info(
                f"Rejected review for assignment {assignment_id} by user {reviewer_id}: "
                f"{result.failure.value}"
            )
            result.raise_for_failure()

        # claim and insert commit together; an expiry that got there first wins
        if not await self.assignment_repo.mark_done(assignment_id, now, commit=False):
            await self.assignment_repo.session.rollback()
            logger.warning(f"Assignment {assignment_id} left PENDING before the review could be recorded")
            raise ReviewValidationError(
                ReviewFailure.INVALID_STATUS,
                message=f"Assignment {assignment_id} is no longer pending",
            )

        fields = dict(scores or {})
        fields.update(values or {})
        try:
            review = await self.review_repo.create(
                assignment_id=assignment_id,
                comment_100=comment or "",
                **fields,
            )
        except IntegrityError as e:
            # a concurrent submission won the unique assignment_id race
            await self.review_repo.session.rollback()
            raise ReviewValidationError(ReviewFailure.DUPLICATE_REVIEW, message=str(e)) from e

        submission_id = assignment.submission_id
        completion = await self.check_submission_review_completion(submission_id)
        logger.info(
            f"Review recorded for assignment {assignment_id}; submission {submission_id} "
            f"has {completion.review_count}/{completion.total_expected} reviews"
        )

        follow_up = None
        if completion.complete and self.on_complete is not None:
            try:
                follow_up = await self.on_complete(submission_id)
            except Exception as e:
                # the review itself is stored; follow-up runs again at phase end
                logger.error(f"Follow-up for completed submission {submission_id} failed: {e}")

        return ReviewSubmissionResult(review=review, completion=completion, follow_up=follow_up)
