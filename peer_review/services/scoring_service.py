"""
Peer score calculation for a submission.

Loads every completed review, aggregates the four criteria and overwrites
``submissions.score_peer``. Only one calculation per submission runs at a time.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.exceptions import DatabaseError, PeerReviewException
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.repositories.assignment_repository import AssignmentRepository
from peer_review.repositories.review_repository import ReviewRepository
from peer_review.services.retry_policy import RetryPolicy
from peer_review.services.score_aggregator import aggregate_reviews

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Computes and stores consensus peer scores
    """

    def __init__(
        self,
        submission_repo: SubmissionRepository,
        assignment_repo: AssignmentRepository,
        review_repo: ReviewRepository,
        policy: Optional[PeerReviewPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.submission_repo = submission_repo
        self.assignment_repo = assignment_repo
        self.review_repo = review_repo
        self.policy = policy or PeerReviewPolicy()
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, submission_id: int) -> asyncio.Lock:
        lock = self._locks.get(submission_id)
        if lock is None:
            lock = self._locks[submission_id] = asyncio.Lock()
        return lock

    async def calculate_peer_score(self, submission_id: int) -> float:
        """
        Recompute and store the peer score of a submission

        Args:
            submission_id: The submission to score

        Returns:
            The stored score; 0 when there are no completed reviews

        Raises:
            DatabaseError: If loading reviews or storing the score fails
            PeerReviewException: If the submission does not exist
        """
        async with self._lock_for(submission_id):
            try:
                return await self.retry_policy.run(
                    lambda: self._compute_and_store(submission_id),
                    description=f"Scoring submission {submission_id}",
                )
            except SQLAlchemyError as e:
                logger.error(f"Failed to score submission {submission_id}: {e}")
                raise DatabaseError(
                    f"Failed to score submission {submission_id}: {e}",
                    operation="calculate_peer_score",
                    table="submissions",
                ) from e

    async def _compute_and_store(self, submission_id: int) -> float:
        try:
            submission = await self.submission_repo.get_for_update(submission_id)
            if submission is None:
                raise PeerReviewException(
                    f"Submission {submission_id} not found",
                    error_code="SUBMISSION_NOT_FOUND",
                    recoverable=False,
                )

            assignments = await self.assignment_repo.get_done_for_submission(submission_id)
            reviews = await self.review_repo.get_by_assignment_ids([a.id for a in assignments])

            if not reviews:
                logger.info(f"No completed reviews for submission {submission_id}, storing 0")
                score = 0.0
            else:
                means = aggregate_reviews(reviews, self.policy.trimmed_mean_min_reviews)
                score = means.overall
                logger.info(
                    f"Submission {submission_id}: {len(reviews)} reviews, "
                    f"criterion means {means.to_dict()}"
                )

            await self.submission_repo.update_peer_score(submission_id, score, self.clock())
        except SQLAlchemyError:
            await self.submission_repo.session.rollback()
            raise
        except PeerReviewException:
            await self.submission_repo.session.rollback()
            raise

        logger.info(f"Stored peer score {score:.2f} for submission {submission_id}")
        return score
