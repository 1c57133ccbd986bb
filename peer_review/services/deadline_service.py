"""
Deadline and lifecycle jobs for review assignments.

Each public coroutine is one independently scheduled batch job. Jobs return a
BatchResult; only the initial query of a job may raise. Rows already handled
are excluded by their changed status or sent-at stamp, so reruns are safe.
"""
import asyncio
import logging
import random
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from peer_review.config.settings import PeerReviewPolicy
from peer_review.database.base import utcnow
from peer_review.models.enums import (
    AssignmentStatus,
    SubmissionStatus,
    ELIGIBLE_SUBMISSION_STATUSES,
    VERIFICATION_PANEL_STATUSES,
)
from peer_review.notifications.base import Notifier, TemplateKind
from peer_review.repositories.assignment_repository import AssignmentRepository
from peer_review.repositories.payment_repository import PaymentRepository
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.services.results import BatchResult
from peer_review.services.reviewer_lookup import ReviewerLookup

logger = logging.getLogger(__name__)

Selector = Callable[[Sequence[Any]], Any]


class DeadlineService:
    """
    Expiry, reassignment and deadline reminders for one assignment table
    """

    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        submission_repo: SubmissionRepository,
        reviewers: ReviewerLookup,
        notifier: Notifier,
        policy: Optional[PeerReviewPolicy] = None,
        reviewer_statuses: Sequence[SubmissionStatus] = ELIGIBLE_SUBMISSION_STATUSES,
        selector: Selector = random.choice,
        clock: Callable[[], datetime] = utcnow,
        sleep=asyncio.sleep,
    ):
        self.assignment_repo = assignment_repo
        self.submission_repo = submission_repo
        self.reviewers = reviewers
        self.notifier = notifier
        self.policy = policy or PeerReviewPolicy()
        self.reviewer_statuses = tuple(reviewer_statuses)
        self.selector = selector
        self.clock = clock
        self.sleep = sleep

    @property
    def name(self) -> str:
        return self.assignment_repo.table_name

    async def _rollback(self):
        try:
            await self.assignment_repo.session.rollback()
        except Exception as e:
            logger.error(f"[{self.name}] Rollback failed: {e}")

    async def check_expired_assignments(self) -> BatchResult:
        """Move PENDING assignments past their deadline to EXPIRED."""
        now = self.clock()
        result = BatchResult()
        overdue = await self.assignment_repo.get_pending_past_deadline(now)
        logger.info(f"[{self.name}] {len(overdue)} assignments past deadline")

        for assignment in overdue:
            try:
                if await self.assignment_repo.mark_expired(assignment.id):
                    result.count += 1
            except Exception as e:
                await self._rollback()
                logger.error(f"[{self.name}] Could not expire assignment {assignment.id}: {e}")
                result.add_error(f"Update error for assignment {assignment.id}: {e}")

        logger.info(f"[{self.name}] Expired {result.count} assignments, {len(result.errors)} errors")
        return result

    async def reassign_expired_assignments(self) -> BatchResult:
        """
        Give every unreplaced EXPIRED assignment a new PENDING one.

        The replacement reviewer is drawn with ``selector`` from the contest's
        reviewer pool minus the author, anyone already assigned to the
        submission and the reliability blacklist.
        """
        now = self.clock()
        result = BatchResult()
        expired = await self.assignment_repo.get_expired_without_replacement()
        if not expired:
            logger.info(f"[{self.name}] No expired assignments to reassign")
            return result

        logger.info(f"[{self.name}] Reassigning {len(expired)} expired assignments")
        blacklist = await self.get_blacklisted_reviewers(now)
        pools: Dict[int, List[Any]] = {}
        deadline = now + timedelta(days=self.policy.deadline_days)

        for assignment in expired:
            try:
                submission = await self.submission_repo.get_by_id(assignment.submission_id)
                if submission is None:
                    result.add_error(f"Submission {assignment.submission_id} not found for assignment {assignment.id}")
                    continue

                if submission.contest_id not in pools:
                    pools[submission.contest_id] = await self.reviewers.get_pool(
                        submission.contest_id, self.reviewer_statuses
                    )
                assigned = await self.assignment_repo.get_reviewer_ids_for_submission(submission.id)
                candidates = [
                    user for user in pools[submission.contest_id]
                    if user.id != submission.user_id
                    and user.id not in assigned
                    and user.id not in blacklist
                ]
                if not candidates:
                    logger.warning(f"[{self.name}] No available reviewers for assignment {assignment.id}")
                    result.add_error(f"No available reviewers for assignment {assignment.id}")
                    continue

                reviewer = self.selector(candidates)
                await self.assignment_repo.create(
                    submission_id=submission.id,
                    reviewer_user_id=reviewer.id,
                    status=AssignmentStatus.PENDING,
                    assigned_at=now,
                    deadline=deadline,
                    reassigned_from_id=assignment.id,
                )
                result.count += 1
                logger.info(f"[{self.name}] Reassigned assignment {assignment.id} to reviewer {reviewer.id}")
            except Exception as e:
                await self._rollback()
                logger.error(f"[{self.name}] Error reassigning assignment {assignment.id}: {e}")
                result.add_error(f"Processing error for assignment {assignment.id}: {e}")
                continue

            outcome = await self._send(
                reviewer, TemplateKind.ASSIGNMENT_NOTIFICATION,
                {"assignment_count": 1, "deadline": deadline, "reassigned": True},
            )
            if outcome:
                result.add_error(outcome)

        logger.info(f"[{self.name}] Reassigned {result.count} assignments, {len(result.errors)} errors")
        return result

    async def send_deadline_warnings(self) -> BatchResult:
        """One aggregated warning per reviewer for deadlines in [now+23h, now+24h]."""
        return await self._send_deadline_notices(
            hours=self.policy.warning_hours,
            template=TemplateKind.DEADLINE_WARNING,
            sent_column="warning_sent_at",
        )

    async def send_final_reminders(self) -> BatchResult:
        """One aggregated urgent reminder per reviewer for deadlines in [now+1h, now+2h]."""
        return await self._send_deadline_notices(
            hours=self.policy.final_reminder_hours,
            template=TemplateKind.FINAL_REMINDER,
            sent_column="reminder_sent_at",
        )

    async def get_blacklisted_reviewers(self, now: datetime) -> Set[int]:
        """Reviewers with too many recent expirations; computed once per batch."""
        since = now - timedelta(days=self.policy.blacklist_window_days)
        blacklist = await self.assignment_repo.get_blacklisted_reviewer_ids(
            since, self.policy.blacklist_expired_threshold
        )
        if blacklist:
            logger.info(f"[{self.name}] {len(blacklist)} reviewers excluded for repeated expirations")
        return blacklist

    async def _send_deadline_notices(self, hours: int, template: TemplateKind,
                                     sent_column: str) -> BatchResult:
        now = self.clock()
        window_end = now + timedelta(hours=hours)
        window_start = window_end - timedelta(hours=self.policy.notification_window_hours)
        result = BatchResult()

        due = await self.assignment_repo.get_pending_due_between(window_start, window_end, sent_column)
        by_reviewer: Dict[int, List[Any]] = defaultdict(list)
        for assignment in due:
            by_reviewer[assignment.reviewer_user_id].append(assignment)
        logger.info(
            f"[{self.name}] {len(due)} assignments due in {hours}h across {len(by_reviewer)} reviewers"
        )
        if not by_reviewer:
            return result

        users = await self.reviewers.get_users(by_reviewer)
        for index, (reviewer_id, assignments) in enumerate(by_reviewer.items()):
            if index and self.policy.notification_delay_seconds:
                await self.sleep(self.policy.notification_delay_seconds)
            data = {
                "assignment_count": len(assignments),
                "deadline": min(a.deadline for a in assignments),
                "hours_remaining": hours,
            }
            error = await self._send(users.get(reviewer_id), template, data, reviewer_id)
            if error:
                result.add_error(error)
                continue
            try:
                await self.assignment_repo.mark_notified([a.id for a in assignments], sent_column, now)
            except Exception as e:
                await self._rollback()
                result.add_error(f"Could not record {template.value} for reviewer {reviewer_id}: {e}")
                continue
            result.count += 1

        logger.info(f"[{self.name}] Sent {result.count} {template.value} notices, {len(result.errors)} errors")
        return result

    async def _send(self, user: Any, template: TemplateKind, data: Dict[str, Any],
                    user_id: Optional[int] = None) -> Optional[str]:
        """Send one notification; return an error message instead of raising."""
        user_id = user.id if user is not None else user_id
        address = user.contact_address if user is not None else None
        if address is None:
            logger.warning(f"[{self.name}] No notification address for user {user_id}")
            return f"No notification address for user {user_id}"
        try:
            outcome = await self.notifier.send(address, template, data)
        except Exception as e:
            logger.error(f"[{self.name}] Notifier raised for user {user_id}: {e}")
            return f"Notification error for user {user_id}: {e}"
        if not outcome.success:
            return f"Notification error for user {user_id}: {outcome.error}"
        return None


class VerificationDeadlineService(DeadlineService):
    """
    Lifecycle jobs for peer verification, including stalled-request refunds
    """

    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        submission_repo: SubmissionRepository,
        payment_repo: PaymentRepository,
        reviewers: ReviewerLookup,
        notifier: Notifier,
        policy: Optional[PeerReviewPolicy] = None,
        selector: Selector = random.choice,
        clock: Callable[[], datetime] = utcnow,
        sleep=asyncio.sleep,
    ):
        super().__init__(
            assignment_repo,
            submission_repo,
            reviewers,
            notifier,
            policy=policy,
            reviewer_statuses=VERIFICATION_PANEL_STATUSES,
            selector=selector,
            clock=clock,
            sleep=sleep,
        )
        self.payment_repo = payment_repo

    async def check_incomplete_verifications(self) -> BatchResult:
        """
        Eliminate and refund verification requests that did not collect enough
        reviews within the timeout.
        """
        now = self.clock()
        result = BatchResult()
        cutoff = now - timedelta(days=self.policy.verification_timeout_days)
        stale = await self.submission_repo.get_stale_verification_requests(cutoff)
        logger.info(f"[{self.name}] {len(stale)} verification requests past the timeout")

        for submission in stale:
            try:
                assignments = await self.assignment_repo.get_by_submission(submission.id)
                completed = sum(1 for a in assignments if a.status == AssignmentStatus.DONE)
                if completed >= self.policy.verification_min_reviews:
                    continue

                logger.info(
                    f"[{self.name}] Verification for submission {submission.id} has only "
                    f"{completed} completed reviews"
                )
                await self.submission_repo.update_status(
                    submission.id,
                    SubmissionStatus.ELIMINATED,
                    verification_result={
                        "outcome": "INCOMPLETE",
                        "completed_reviews": completed,
                        "total_reviews": len(assignments),
                        "refunded": True,
                        "completed_at": now.isoformat(),
                    },
                    now=now,
                )
            except Exception as e:
                await self._rollback()
                logger.error(f"[{self.name}] Error processing verification {submission.id}: {e}")
                result.add_error(f"Processing error for verification {submission.id}: {e}")
                continue

            refund_error = await self._refund(submission.id, now)
            if refund_error:
                result.add_error(refund_error)

            author = await self._load_author(submission.user_id, result)
            error = await self._send(
                author,
                TemplateKind.REFUND_NOTIFICATION,
                {
                    "submission_code": submission.submission_code,
                    "submission_title": submission.title,
                    "amount": str(self.policy.verification_refund_amount),
                    "currency": "USD",
                    "completed_reviews": completed,
                    "required_reviews": self.policy.verification_min_reviews,
                },
                submission.user_id,
            )
            if error:
                result.add_error(error)
            result.count += 1

        logger.info(f"[{self.name}] Processed {result.count} refunds, {len(result.errors)} errors")
        return result

    async def _refund(self, submission_id: int, now: datetime) -> Optional[str]:
        """Flip the PAID verification payment to REFUNDED; gateway refunds happen elsewhere."""
        try:
            payment = await self.payment_repo.get_paid_verification_payment(submission_id)
            if payment is None:
                logger.warning(f"[{self.name}] No paid verification payment for submission {submission_id}")
                return f"No paid verification payment for submission {submission_id}"
            await self.payment_repo.mark_refunded(payment.id, now)
            logger.info(f"[{self.name}] Payment {payment.id} marked REFUNDED")
            return None
        except Exception as e:
            await self._rollback()
            logger.error(f"[{self.name}] Refund bookkeeping failed for submission {submission_id}: {e}")
            return f"Refund error for submission {submission_id}: {e}"

    async def _load_author(self, user_id: int, result: BatchResult):
        try:
            return await self.reviewers.get_user(user_id)
        except Exception as e:
            result.add_error(f"Could not load user {user_id}: {e}")
            return None
