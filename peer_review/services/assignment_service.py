"""
Assignment orchestration: runs the planner for a contest and builds peer
verification panels, then notifies the reviewers involved.
"""
import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.exceptions import AssignmentError
from peer_review.models.enums import SubmissionStatus, VERIFICATION_PANEL_STATUSES
from peer_review.notifications.base import Notifier, TemplateKind
from peer_review.repositories.assignment_repository import (
    PeerReviewAssignmentRepository,
    VerificationAssignmentRepository,
)
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.services.assignment_planner import plan_assignments
from peer_review.services.retry_policy import RetryPolicy
from peer_review.services.reviewer_lookup import ReviewerLookup

logger = logging.getLogger(__name__)


@dataclass
class AssignmentResult:
    """Summary of one assignment run"""
    success: bool
    total_assignments: int = 0
    reviewer_count: int = 0
    submission_count: int = 0
    average_reviews_per_submission: float = 0.0
    errors: List[str] = field(default_factory=list)


class AssignmentService:
    """
    Creates review assignments and tells reviewers about them
    """

    def __init__(
        self,
        submission_repo: SubmissionRepository,
        review_assignment_repo: PeerReviewAssignmentRepository,
        verification_assignment_repo: VerificationAssignmentRepository,
        reviewers: ReviewerLookup,
        notifier: Notifier,
        policy: Optional[PeerReviewPolicy] = None,
        retry_policy: Optional[RetryPolicy] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep=asyncio.sleep,
    ):
        self.submission_repo = submission_repo
        self.review_assignment_repo = review_assignment_repo
        self.verification_assignment_repo = verification_assignment_repo
        self.reviewers = reviewers
        self.notifier = notifier
        self.policy = policy or PeerReviewPolicy()
        self.retry_policy = retry_policy or RetryPolicy()
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep

    async def execute_peer_review_assignments(self, contest_id: int) -> AssignmentResult:
        """
        Plan and store standard peer review assignments for a contest

        Returns:
            AssignmentResult; an empty pool is reported as a failed run, not raised
        """
        now = self.clock()
        logger.info(f"Starting peer review assignment for contest {contest_id}")

        submissions = await self.submission_repo.get_by_contest(contest_id)
        users = await self.reviewers.get_users(s.user_id for s in submissions)
        plan = plan_assignments(
            submissions,
            [users[s.user_id] for s in submissions if s.user_id in users],
            reviews_per_reviewer=self.policy.reviews_per_reviewer,
            now=now,
            deadline_days=self.policy.deadline_days,
        )

        result = AssignmentResult(
            success=False,
            reviewer_count=len(plan.reviewer_ids),
            submission_count=len(plan.submission_ids),
        )
        if not plan.assignments:
            result.errors.append(
                f"No assignments possible: {result.submission_count} eligible submissions, "
                f"{result.reviewer_count} eligible reviewers"
            )
            logger.warning(result.errors[-1])
            return result

        rows = [a.as_row() for a in plan.assignments]
        await self.retry_policy.run(
            lambda: self.review_assignment_repo.create_many(rows),
            description=f"Inserting assignments for contest {contest_id}",
        )

        result.success = True
        result.total_assignments = len(plan.assignments)
        result.average_reviews_per_submission = round(
            result.total_assignments / result.submission_count, 2
        )

        deadline = now + timedelta(days=self.policy.deadline_days)
        counts = {reviewer_id: len(items) for reviewer_id, items in plan.assignments_by_reviewer().items()}
        result.errors.extend(await self._notify_reviewers(users, counts, deadline))

        logger.info(
            f"Created {result.total_assignments} assignments for contest {contest_id} "
            f"({result.reviewer_count} reviewers, {result.submission_count} submissions)"
        )
        return result

    async def execute_verification_assignment(self, submission_id: int) -> AssignmentResult:
        """
        Assign a random verification panel to a submission awaiting peer verification

        Raises:
            AssignmentError: If the submission is missing or not awaiting verification
        """
        now = self.clock()
        submission = await self.submission_repo.get_by_id(submission_id)
        if submission is None:
            raise AssignmentError(f"Submission {submission_id} not found", submission_id=submission_id)
        if submission.status != SubmissionStatus.PEER_VERIFICATION_PENDING:
            raise AssignmentError(
                f"Submission {submission_id} is {submission.status.value}, not awaiting verification",
                submission_id=submission_id,
            )

        since = now - timedelta(days=self.policy.blacklist_window_days)
        blacklist = await self.verification_assignment_repo.get_blacklisted_reviewer_ids(
            since, self.policy.blacklist_expired_threshold
        )
        pool = await self.reviewers.get_pool(submission.contest_id, VERIFICATION_PANEL_STATUSES)
        candidates = [u for u in pool if u.id != submission.user_id and u.id not in blacklist]

        result = AssignmentResult(success=False, submission_count=1)
        if not candidates:
            result.errors.append(f"No eligible verification reviewers for submission {submission_id}")
            logger.warning(result.errors[-1])
            return result

        panel_size = min(self.policy.verification_panel_size, len(candidates))
        if panel_size < self.policy.verification_panel_size:
            logger.warning(
                f"Only {panel_size} of {self.policy.verification_panel_size} verification "
                f"reviewers available for submission {submission_id}"
            )
        panel = self.rng.sample(candidates, panel_size)

        deadline = now + timedelta(days=self.policy.deadline_days)
        rows = [
            {
                "submission_id": submission_id,
                "reviewer_user_id": reviewer.id,
                "assigned_at": now,
                "deadline": deadline,
            }
            for reviewer in panel
        ]
        await self.retry_policy.run(
            lambda: self.verification_assignment_repo.create_many(rows),
            description=f"Inserting verification panel for submission {submission_id}",
        )

        result.success = True
        result.total_assignments = len(rows)
        result.reviewer_count = len(panel)
        result.average_reviews_per_submission = float(len(rows))
        users = {reviewer.id: reviewer for reviewer in panel}
        result.errors.extend(
            await self._notify_reviewers(users, {reviewer.id: 1 for reviewer in panel}, deadline)
        )
        logger.info(f"Assigned {len(panel)} verification reviewers to submission {submission_id}")
        return result

    async def _notify_reviewers(self, users: Dict[int, object], counts: Dict[int, int],
                                deadline: datetime) -> List[str]:
        """One assignment-notification per reviewer; failures are returned, not raised."""
        errors = []
        for index, (reviewer_id, count) in enumerate(counts.items()):
            if index and self.policy.notification_delay_seconds:
                await self.sleep(self.policy.notification_delay_seconds)
            user = users.get(reviewer_id)
            address = user.contact_address if user is not None else None
            if address is None:
                errors.append(f"No notification address for reviewer {reviewer_id}")
                continue
            try:
                outcome = await self.notifier.send(
                    address,
                    TemplateKind.ASSIGNMENT_NOTIFICATION,
                    {"assignment_count": count, "deadline": deadline},
                )
            except Exception as e:
                logger.error(f"Notification to reviewer {reviewer_id} raised: {e}")
                errors.append(f"Notification to reviewer {reviewer_id} failed: {e}")
                continue
            if not outcome.success:
                errors.append(f"Notification to reviewer {reviewer_id} failed: {outcome.error}")
        return errors
