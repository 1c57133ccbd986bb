"""
Unit tests for the deadline and lifecycle service
"""
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from peer_review.config.settings import PeerReviewPolicy
from peer_review.models.assignment import PeerReviewAssignment, PeerVerificationAssignment
from peer_review.models.enums import AssignmentStatus, SubmissionStatus
from peer_review.models.submission import Submission
from peer_review.models.user import User
from peer_review.notifications.base import NotificationResult, TemplateKind
from peer_review.services.deadline_service import DeadlineService, VerificationDeadlineService

NOW = datetime(2025, 3, 1, 12, 0, 0)


def make_user(user_id, telegram_id=None, banned=False):
    return User(
        id=user_id,
        display_id=f"user{user_id}",
        telegram_id=telegram_id if telegram_id is not None else 5000 + user_id,
        is_banned=banned,
    )


def make_assignment(assignment_id, reviewer_id=1, submission_id=5,
                    status=AssignmentStatus.PENDING, deadline=None, model=PeerReviewAssignment):
    return model(
        id=assignment_id,
        submission_id=submission_id,
        reviewer_user_id=reviewer_id,
        status=status,
        assigned_at=NOW - timedelta(days=7),
        deadline=deadline or NOW - timedelta(hours=1),
    )


class TestDeadlineService:
    """Test cases for DeadlineService"""

    def setup_method(self):
        self.mock_assignment_repo = AsyncMock()
        self.mock_assignment_repo.table_name = "peer_review_assignments"
        self.mock_submission_repo = AsyncMock()
        self.mock_reviewers = AsyncMock()
        self.mock_notifier = AsyncMock()
        self.mock_notifier.send.return_value = NotificationResult(success=True)
        self.sleep = AsyncMock()

        self.service = DeadlineService(
            assignment_repo=self.mock_assignment_repo,
            submission_repo=self.mock_submission_repo,
            reviewers=self.mock_reviewers,
            notifier=self.mock_notifier,
            policy=PeerReviewPolicy(),
            selector=lambda candidates: candidates[0],
            clock=lambda: NOW,
            sleep=self.sleep,
        )

    # check_expired_assignments

    async def test_expires_overdue_assignments(self):
        self.mock_assignment_repo.get_pending_past_deadline.return_value = [
            make_assignment(1), make_assignment(2)
        ]
        self.mock_assignment_repo.mark_expired.return_value = True

        result = await self.service.check_expired_assignments()

        assert result.count == 2
        assert result.errors == []
        self.mock_assignment_repo.get_pending_past_deadline.assert_awaited_once_with(NOW)

    async def test_row_failure_does_not_abort_batch(self):
        self.mock_assignment_repo.get_pending_past_deadline.return_value = [
            make_assignment(1), make_assignment(2), make_assignment(3)
        ]
        self.mock_assignment_repo.mark_expired.side_effect = [
            True,
            OperationalError("UPDATE", {}, Exception("lock timeout")),
            True,
        ]

        result = await self.service.check_expired_assignments()

        assert result.count == 2
        assert len(result.errors) == 1
        assert "assignment 2" in result.errors[0]
        self.mock_assignment_repo.session.rollback.assert_awaited_once()

    async def test_already_transitioned_row_is_not_counted(self):
        self.mock_assignment_repo.get_pending_past_deadline.return_value = [make_assignment(1)]
        self.mock_assignment_repo.mark_expired.return_value = False

        result = await self.service.check_expired_assignments()

        assert result.count == 0
        assert result.errors == []

    async def test_initial_query_failure_raises(self):
        self.mock_assignment_repo.get_pending_past_deadline.side_effect = OperationalError(
            "SELECT", {}, Exception("down")
        )

        with pytest.raises(OperationalError):
            await self.service.check_expired_assignments()

    # reassign_expired_assignments

    def setup_reassignment(self, expired, pool, already_assigned=None, blacklist=None):
        self.mock_assignment_repo.get_expired_without_replacement.return_value = expired
        self.mock_assignment_repo.get_blacklisted_reviewer_ids.return_value = blacklist or set()
        self.mock_assignment_repo.get_reviewer_ids_for_submission.return_value = already_assigned or set()
        self.mock_submission_repo.get_by_id.return_value = Submission(
            id=5, contest_id=1, user_id=100, submission_code="S-5", title="Essay",
            status=SubmissionStatus.SUBMITTED,
        )
        self.mock_reviewers.get_pool.return_value = pool

    async def test_reassigns_to_eligible_reviewer(self):
        pool = [make_user(100), make_user(101), make_user(102), make_user(103), make_user(104)]
        self.setup_reassignment(
            [make_assignment(10, reviewer_id=101, status=AssignmentStatus.EXPIRED)],
            pool,
            already_assigned={101},
            blacklist={102},
        )

        result = await self.service.reassign_expired_assignments()

        assert result.count == 1
        assert result.errors == []
        self.mock_assignment_repo.create.assert_awaited_once_with(
            submission_id=5,
            reviewer_user_id=103,
            status=AssignmentStatus.PENDING,
            assigned_at=NOW,
            deadline=NOW + timedelta(days=7),
            reassigned_from_id=10,
        )
        self.mock_notifier.send.assert_awaited_once()
        address, template, data = self.mock_notifier.send.await_args.args
        assert address == 5103
        assert template == TemplateKind.ASSIGNMENT_NOTIFICATION
        assert data["assignment_count"] == 1
        assert data["deadline"] == NOW + timedelta(days=7)

    async def test_selector_decides_reviewer(self):
        pool = [make_user(100), make_user(103), make_user(104)]
        self.setup_reassignment([make_assignment(10, status=AssignmentStatus.EXPIRED)], pool)
        self.service.selector = lambda candidates: candidates[-1]

        await self.service.reassign_expired_assignments()

        assert self.mock_assignment_repo.create.await_args.kwargs["reviewer_user_id"] == 104

    async def test_blacklist_computed_once_per_run(self):
        pool = [make_user(100), make_user(103), make_user(104)]
        self.setup_reassignment(
            [make_assignment(10, status=AssignmentStatus.EXPIRED),
             make_assignment(11, status=AssignmentStatus.EXPIRED)],
            pool,
        )

        result = await self.service.reassign_expired_assignments()

        assert result.count == 2
        self.mock_assignment_repo.get_blacklisted_reviewer_ids.assert_awaited_once_with(
            NOW - timedelta(days=30), 2
        )
        self.mock_reviewers.get_pool.assert_awaited_once()

    async def test_no_available_reviewer_is_recorded(self):
        pool = [make_user(100), make_user(101)]
        self.setup_reassignment(
            [make_assignment(10, status=AssignmentStatus.EXPIRED)],
            pool,
            already_assigned={101},
        )

        result = await self.service.reassign_expired_assignments()

        assert result.count == 0
        assert result.errors == ["No available reviewers for assignment 10"]
        self.mock_assignment_repo.create.assert_not_awaited()

    async def test_notification_failure_still_counts_reassignment(self):
        self.setup_reassignment(
            [make_assignment(10, status=AssignmentStatus.EXPIRED)],
            [make_user(100), make_user(103)],
        )
        self.mock_notifier.send.return_value = NotificationResult(success=False, error="blocked")

        result = await self.service.reassign_expired_assignments()

        assert result.count == 1
        assert len(result.errors) == 1
        assert "blocked" in result.errors[0]

    async def test_insert_failure_moves_on(self):
        self.setup_reassignment(
            [make_assignment(10, status=AssignmentStatus.EXPIRED),
             make_assignment(11, status=AssignmentStatus.EXPIRED)],
            [make_user(100), make_user(103)],
        )
        self.mock_assignment_repo.create.side_effect = [Exception("unique violation"), None]

        result = await self.service.reassign_expired_assignments()

        assert result.count == 1
        assert "assignment 10" in result.errors[0]
        self.mock_notifier.send.assert_awaited_once()

    async def test_nothing_to_reassign(self):
        self.mock_assignment_repo.get_expired_without_replacement.return_value = []

        result = await self.service.reassign_expired_assignments()

        assert result.count == 0
        self.mock_assignment_repo.get_blacklisted_reviewer_ids.assert_not_awaited()

    # deadline warnings and reminders

    async def test_warnings_grouped_per_reviewer(self):
        due = [
            make_assignment(1, reviewer_id=1, deadline=NOW + timedelta(hours=23, minutes=30)),
            make_assignment(2, reviewer_id=1, deadline=NOW + timedelta(hours=23, minutes=10)),
            make_assignment(3, reviewer_id=2, deadline=NOW + timedelta(hours=24)),
        ]
        self.mock_assignment_repo.get_pending_due_between.return_value = due
        self.mock_reviewers.get_users.return_value = {1: make_user(1), 2: make_user(2)}

        result = await self.service.send_deadline_warnings()

        assert result.count == 2
        self.mock_assignment_repo.get_pending_due_between.assert_awaited_once_with(
            NOW + timedelta(hours=23), NOW + timedelta(hours=24), "warning_sent_at"
        )
        assert self.mock_notifier.send.await_count == 2
        first = self.mock_notifier.send.await_args_list[0].args
        assert first[1] == TemplateKind.DEADLINE_WARNING
        assert first[2]["assignment_count"] == 2
        assert first[2]["deadline"] == NOW + timedelta(hours=23, minutes=10)
        self.mock_assignment_repo.mark_notified.assert_any_await([1, 2], "warning_sent_at", NOW)
        self.mock_assignment_repo.mark_notified.assert_any_await([3], "warning_sent_at", NOW)

    async def test_final_reminders_use_urgent_window(self):
        self.mock_assignment_repo.get_pending_due_between.return_value = [
            make_assignment(4, reviewer_id=3, deadline=NOW + timedelta(hours=1, minutes=30))
        ]
        self.mock_reviewers.get_users.return_value = {3: make_user(3)}

        result = await self.service.send_final_reminders()

        assert result.count == 1
        self.mock_assignment_repo.get_pending_due_between.assert_awaited_once_with(
            NOW + timedelta(hours=1), NOW + timedelta(hours=2), "reminder_sent_at"
        )
        assert self.mock_notifier.send.await_args.args[1] == TemplateKind.FINAL_REMINDER

    async def test_failed_warning_is_not_marked_sent(self):
        self.mock_assignment_repo.get_pending_due_between.return_value = [make_assignment(1, reviewer_id=1)]
        self.mock_reviewers.get_users.return_value = {1: make_user(1)}
        self.mock_notifier.send.return_value = NotificationResult(success=False, error="timeout")

        result = await self.service.send_deadline_warnings()

        assert result.count == 0
        assert result.errors == ["Notification error for user 1: timeout"]
        self.mock_assignment_repo.mark_notified.assert_not_awaited()

    async def test_reviewer_without_address(self):
        self.mock_assignment_repo.get_pending_due_between.return_value = [make_assignment(1, reviewer_id=7)]
        self.mock_reviewers.get_users.return_value = {}

        result = await self.service.send_deadline_warnings()

        assert result.errors == ["No notification address for user 7"]
        self.mock_notifier.send.assert_not_awaited()

    async def test_delay_between_notifications(self):
        self.service.policy.notification_delay_seconds = 0.6
        self.mock_assignment_repo.get_pending_due_between.return_value = [
            make_assignment(1, reviewer_id=1), make_assignment(2, reviewer_id=2)
        ]
        self.mock_reviewers.get_users.return_value = {1: make_user(1), 2: make_user(2)}

        await self.service.send_deadline_warnings()

        self.sleep.assert_awaited_once_with(0.6)


class TestIncompleteVerifications:
    """Test cases for VerificationDeadlineService.check_incomplete_verifications"""

    def setup_method(self):
        self.mock_assignment_repo = AsyncMock()
        self.mock_assignment_repo.table_name = "peer_assignments"
        self.mock_submission_repo = AsyncMock()
        self.mock_payment_repo = AsyncMock()
        self.mock_reviewers = AsyncMock()
        self.mock_notifier = AsyncMock()
        self.mock_notifier.send.return_value = NotificationResult(success=True)

        self.service = VerificationDeadlineService(
            assignment_repo=self.mock_assignment_repo,
            submission_repo=self.mock_submission_repo,
            payment_repo=self.mock_payment_repo,
            reviewers=self.mock_reviewers,
            notifier=self.mock_notifier,
            clock=lambda: NOW,
        )

        self.submission = Submission(
            id=7, contest_id=1, user_id=50, submission_code="S-7", title="Night Train",
            status=SubmissionStatus.PEER_VERIFICATION_PENDING,
            created_at=NOW - timedelta(days=20),
        )
        self.mock_submission_repo.get_stale_verification_requests.return_value = [self.submission]
        self.mock_reviewers.get_user.return_value = make_user(50)
        self.mock_payment_repo.get_paid_verification_payment.return_value = SimpleNamespace(id=3)

    def panel(self, done, total=10):
        return [
            make_assignment(
                i, reviewer_id=200 + i, submission_id=7,
                status=AssignmentStatus.DONE if i <= done else AssignmentStatus.EXPIRED,
                model=PeerVerificationAssignment,
            )
            for i in range(1, total + 1)
        ]

    async def test_incomplete_verification_is_eliminated_and_refunded(self):
        self.mock_assignment_repo.get_by_submission.return_value = self.panel(done=5)

        result = await self.service.check_incomplete_verifications()

        assert result.count == 1
        assert result.errors == []
        self.mock_submission_repo.get_stale_verification_requests.assert_awaited_once_with(
            NOW - timedelta(days=14)
        )
        self.mock_submission_repo.update_status.assert_awaited_once()
        call = self.mock_submission_repo.update_status.await_args
        assert call.args == (7, SubmissionStatus.ELIMINATED)
        assert call.kwargs["verification_result"] == {
            "outcome": "INCOMPLETE",
            "completed_reviews": 5,
            "total_reviews": 10,
            "refunded": True,
            "completed_at": NOW.isoformat(),
        }
        self.mock_payment_repo.mark_refunded.assert_awaited_once_with(3, NOW)

        self.mock_notifier.send.assert_awaited_once()
        address, template, data = self.mock_notifier.send.await_args.args
        assert address == 5050
        assert template == TemplateKind.REFUND_NOTIFICATION
        assert data["completed_reviews"] == 5
        assert data["required_reviews"] == 8
        assert data["amount"] == str(Decimal("20.00"))

    async def test_enough_reviews_is_left_alone(self):
        self.mock_assignment_repo.get_by_submission.return_value = self.panel(done=8)

        result = await self.service.check_incomplete_verifications()

        assert result.count == 0
        self.mock_submission_repo.update_status.assert_not_awaited()
        self.mock_notifier.send.assert_not_awaited()

    async def test_missing_payment_is_reported(self):
        self.mock_assignment_repo.get_by_submission.return_value = self.panel(done=2)
        self.mock_payment_repo.get_paid_verification_payment.return_value = None

        result = await self.service.check_incomplete_verifications()

        assert result.count == 1
        assert result.errors == ["No paid verification payment for submission 7"]
        self.mock_payment_repo.mark_refunded.assert_not_awaited()
        self.mock_notifier.send.assert_awaited_once()

    async def test_status_update_failure_skips_refund(self):
        self.mock_assignment_repo.get_by_submission.return_value = self.panel(done=1)
        self.mock_submission_repo.update_status.side_effect = OperationalError("UPDATE", {}, Exception("x"))

        result = await self.service.check_incomplete_verifications()

        assert result.count == 0
        assert len(result.errors) == 1
        self.mock_payment_repo.mark_refunded.assert_not_awaited()
        self.mock_notifier.send.assert_not_awaited()

    def test_panel_pool_statuses(self):
        assert self.service.reviewer_statuses == (SubmissionStatus.SUBMITTED, SubmissionStatus.ELIMINATED)
