"""
Wires repositories and services around one database session.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from peer_review.config.settings import PeerReviewPolicy
from peer_review.notifications.base import Notifier
from peer_review.repositories import (
    UserRepository,
    SubmissionRepository,
    PeerReviewAssignmentRepository,
    VerificationAssignmentRepository,
    PeerReviewReviewRepository,
    VerificationReviewRepository,
    PaymentRepository,
)
from peer_review.services.assignment_service import AssignmentService
from peer_review.services.deadline_service import DeadlineService, VerificationDeadlineService
from peer_review.services.phase_end_service import PhaseEndService
from peer_review.services.retry_policy import RetryPolicy
from peer_review.services.review_service import ReviewService
from peer_review.services.reviewer_cache import ReviewerCache
from peer_review.services.reviewer_lookup import ReviewerLookup
from peer_review.services.scoring_service import ScoringService
from peer_review.services.verification_results_service import VerificationResultsService


@dataclass
class PeerReviewServices:
    """Every service bound to the same session"""
    session: AsyncSession
    scoring: ScoringService
    reviews: ReviewService
    verification_reviews: ReviewService
    assignments: AssignmentService
    review_deadlines: DeadlineService
    verification_deadlines: VerificationDeadlineService
    verification_results: VerificationResultsService
    phase_end: PhaseEndService


def build_services(
    session: AsyncSession,
    notifier: Notifier,
    policy: Optional[PeerReviewPolicy] = None,
    retry_policy: Optional[RetryPolicy] = None,
    cache: Optional[ReviewerCache] = None,
) -> PeerReviewServices:
    policy = policy or PeerReviewPolicy()
    retry_policy = retry_policy or RetryPolicy()

    submissions = SubmissionRepository(session)
    review_assignments = PeerReviewAssignmentRepository(session)
    verification_assignments = VerificationAssignmentRepository(session)
    reviewers = ReviewerLookup(UserRepository(session), submissions, cache)

    scoring = ScoringService(
        submissions, review_assignments, PeerReviewReviewRepository(session),
        policy=policy, retry_policy=retry_policy,
    )
    verification_results = VerificationResultsService(
        submissions, verification_assignments, VerificationReviewRepository(session),
        reviewers, notifier, policy=policy,
    )
    return PeerReviewServices(
        session=session,
        scoring=scoring,
        reviews=ReviewService(
            review_assignments, PeerReviewReviewRepository(session), submissions,
            on_complete=scoring.calculate_peer_score, policy=policy,
        ),
        verification_reviews=ReviewService(
            verification_assignments, VerificationReviewRepository(session), submissions,
            on_complete=verification_results.calculate_results, policy=policy,
        ),
        assignments=AssignmentService(
            submissions, review_assignments, verification_assignments, reviewers, notifier,
            policy=policy, retry_policy=retry_policy,
        ),
        review_deadlines=DeadlineService(
            review_assignments, submissions, reviewers, notifier, policy=policy,
        ),
        verification_deadlines=VerificationDeadlineService(
            verification_assignments, submissions, PaymentRepository(session), reviewers, notifier,
            policy=policy,
        ),
        verification_results=verification_results,
        phase_end=PhaseEndService(submissions, review_assignments, scoring, policy=policy),
    )
