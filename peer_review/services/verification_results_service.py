"""
Peer verification results: tally the panel's votes and settle the submission.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.exceptions import PeerReviewException
from peer_review.models.enums import SubmissionStatus, VerificationDecision
from peer_review.notifications.base import Notifier, TemplateKind
from peer_review.repositories.assignment_repository import VerificationAssignmentRepository
from peer_review.repositories.review_repository import VerificationReviewRepository
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.services.reviewer_lookup import ReviewerLookup
from peer_review.services.score_aggregator import round_half_away_from_zero

logger = logging.getLogger(__name__)


class VerificationDecisionOutcome(Enum):
    """Final decision of a peer verification"""
    REINSTATED = "REINSTATED"
    ELIMINATED_CONFIRMED = "ELIMINATED_CONFIRMED"
    AI_DECISION_UPHELD = "AI_DECISION_UPHELD"


@dataclass
class VoteBreakdown:
    """Panel votes for one submission"""
    total: int
    eliminate: int
    reinstate: int
    eliminate_percentage: float
    reinstate_percentage: float
    completed_at: datetime


@dataclass
class VerificationOutcome:
    """Decision, resulting submission status and author-facing message"""
    decision: VerificationDecisionOutcome
    new_status: SubmissionStatus
    message: str


def determine_outcome(votes: VoteBreakdown, threshold_percent: float = 70.0) -> VerificationOutcome:
    """Reinstate or confirm only on a clear majority; otherwise the original decision stands."""
    if votes.reinstate_percentage >= threshold_percent:
        return VerificationOutcome(
            VerificationDecisionOutcome.REINSTATED,
            SubmissionStatus.REINSTATED,
            "Peer verification overturned the elimination. Your submission has been reinstated.",
        )
    if votes.eliminate_percentage >= threshold_percent:
        return VerificationOutcome(
            VerificationDecisionOutcome.ELIMINATED_CONFIRMED,
            SubmissionStatus.ELIMINATED,
            "Peer verification confirmed the elimination decision.",
        )
    return VerificationOutcome(
        VerificationDecisionOutcome.AI_DECISION_UPHELD,
        SubmissionStatus.ELIMINATED,
        "The original decision was upheld due to lack of clear consensus among reviewers.",
    )


class VerificationResultsService:
    """
    Aggregates verification votes and applies the outcome
    """

    def __init__(
        self,
        submission_repo: SubmissionRepository,
        assignment_repo: VerificationAssignmentRepository,
        review_repo: VerificationReviewRepository,
        reviewers: ReviewerLookup,
        notifier: Notifier,
        policy: Optional[PeerReviewPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.submission_repo = submission_repo
        self.assignment_repo = assignment_repo
        self.review_repo = review_repo
        self.reviewers = reviewers
        self.notifier = notifier
        self.policy = policy or PeerReviewPolicy()
        self.clock = clock

    async def aggregate_votes(self, submission_id: int) -> VoteBreakdown:
        """
        Count ELIMINATE and REINSTATE votes over completed assignments

        Raises:
            PeerReviewException: If the submission has no completed reviews
        """
        assignments = await self.assignment_repo.get_done_for_submission(submission_id)
        if not assignments:
            raise PeerReviewException(
                f"No completed reviews found for submission {submission_id}",
                error_code="NO_COMPLETED_REVIEWS",
                recoverable=False,
            )
        reviews = await self.review_repo.get_by_assignment_ids([a.id for a in assignments])

        eliminate = sum(1 for r in reviews if r.decision == VerificationDecision.ELIMINATE)
        reinstate = sum(1 for r in reviews if r.decision == VerificationDecision.REINSTATE)
        total = eliminate + reinstate

        def percentage(count: int) -> float:
            return round_half_away_from_zero(count / total * 100, 1) if total else 0.0

        return VoteBreakdown(
            total=total,
            eliminate=eliminate,
            reinstate=reinstate,
            eliminate_percentage=percentage(eliminate),
            reinstate_percentage=percentage(reinstate),
            completed_at=self.clock(),
        )

    def determine_outcome(self, votes: VoteBreakdown) -> VerificationOutcome:
        return determine_outcome(votes, self.policy.reinstate_threshold_percent)

    async def calculate_results(self, submission_id: int) -> VerificationOutcome:
        """Aggregate, decide, store the result and notify the author."""
        votes = await self.aggregate_votes(submission_id)
        outcome = self.determine_outcome(votes)
        logger.info(
            f"Verification of submission {submission_id}: {votes.reinstate}/{votes.total} reinstate, "
            f"decision {outcome.decision.value}"
        )

        await self.submission_repo.update_status(
            submission_id,
            outcome.new_status,
            verification_result=self._result_payload(votes, outcome),
            now=votes.completed_at,
        )
        await self._notify_author(submission_id, votes, outcome)
        return outcome

    def _result_payload(self, votes: VoteBreakdown, outcome: VerificationOutcome) -> Dict[str, Any]:
        return {
            "decision": outcome.decision.value,
            "total_votes": votes.total,
            "eliminate_votes": votes.eliminate,
            "reinstate_votes": votes.reinstate,
            "eliminate_percentage": votes.eliminate_percentage,
            "reinstate_percentage": votes.reinstate_percentage,
            "completed_at": votes.completed_at.isoformat(),
            "message": outcome.message,
        }

    async def _notify_author(self, submission_id: int, votes: VoteBreakdown,
                             outcome: VerificationOutcome) -> None:
        submission = await self.submission_repo.get_by_id(submission_id)
        author = await self.reviewers.get_user(submission.user_id) if submission else None
        if author is None or author.contact_address is None:
            logger.warning(f"Cannot notify author of submission {submission_id}: no address")
            return
        result = await self.notifier.send(
            author.contact_address,
            TemplateKind.VERIFICATION_COMPLETE,
            {
                "submission_title": submission.title,
                "outcome": outcome.decision.value,
                "message": outcome.message,
                "reinstate_votes": votes.reinstate,
                "eliminate_votes": votes.eliminate,
                "reinstate_percentage": votes.reinstate_percentage,
                "eliminate_percentage": votes.eliminate_percentage,
            },
        )
        if not result.success:
            logger.warning(f"Verification result notification for submission {submission_id} failed: {result.error}")
