"""
Unit tests for repository operations.
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from peer_review.database.base import Base
from peer_review.models import (
    User, Submission, PeerReviewAssignment, PeerReviewReview, Payment,
    SubmissionStatus, AssignmentStatus, PaymentPurpose, PaymentStatus,
)
from peer_review.repositories import (
    UserRepository,
    SubmissionRepository,
    PeerReviewAssignmentRepository,
    PeerReviewReviewRepository,
    PaymentRepository,
)

NOW = datetime(2025, 3, 1, 12, 0, 0)

# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session(test_engine):
    """Create test database session."""
    AsyncSessionLocal = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def user_repo(test_session):
    return UserRepository(test_session)


@pytest.fixture
async def submission_repo(test_session):
    return SubmissionRepository(test_session)


@pytest.fixture
async def assignment_repo(test_session):
    return PeerReviewAssignmentRepository(test_session)


@pytest.fixture
async def review_repo(test_session):
    return PeerReviewReviewRepository(test_session)


@pytest.fixture
async def payment_repo(test_session):
    return PaymentRepository(test_session)


@pytest.fixture
async def users(test_session):
    """Five users; user 5 is banned."""
    rows = [
        User(id=i, display_id=f"user{i}", telegram_id=1000 + i, is_banned=(i == 5))
        for i in range(1, 6)
    ]
    test_session.add_all(rows)
    await test_session.commit()
    return rows


@pytest.fixture
async def submissions(test_session, users):
    """One submission per user in contest 1, with mixed statuses."""
    statuses = [
        SubmissionStatus.SUBMITTED,
        SubmissionStatus.REINSTATED,
        SubmissionStatus.SUBMITTED,
        SubmissionStatus.DRAFT,
        SubmissionStatus.ELIMINATED,
    ]
    rows = [
        Submission(
            id=i, contest_id=1, user_id=i, submission_code=f"S-{i}", title=f"Essay {i}",
            status=status, created_at=NOW - timedelta(days=10 - i),
        )
        for i, status in enumerate(statuses, start=1)
    ]
    test_session.add_all(rows)
    await test_session.commit()
    return rows


async def add_assignment(repo, submission_id, reviewer_id, status=AssignmentStatus.PENDING,
                         deadline=None, assigned_at=None, **kwargs):
    return await repo.create(
        submission_id=submission_id,
        reviewer_user_id=reviewer_id,
        status=status,
        assigned_at=assigned_at or NOW - timedelta(days=1),
        deadline=deadline or NOW + timedelta(days=6),
        **kwargs,
    )


class TestUserRepository:
    """Test cases for UserRepository."""

    async def test_get_by_telegram_id(self, user_repo, users):
        user = await user_repo.get_by_telegram_id(1003)

        assert user.id == 3
        assert await user_repo.get_by_telegram_id(9999) is None

    async def test_set_banned(self, user_repo, users):
        user = await user_repo.set_banned(2)

        assert user.is_banned is True

    async def test_get_by_ids(self, user_repo, users):
        found = await user_repo.get_by_ids([4, 2, 42])

        assert [u.id for u in found] == [2, 4]
        assert await user_repo.get_by_ids([]) == []


class TestSubmissionRepository:
    """Test cases for SubmissionRepository."""

    async def test_get_by_contest_in_creation_order(self, submission_repo, submissions):
        all_rows = await submission_repo.get_by_contest(1)
        eligible = await submission_repo.get_eligible_by_contest(1)

        assert [s.id for s in all_rows] == [1, 2, 3, 4, 5]
        assert [s.id for s in eligible] == [1, 2, 3]
        assert await submission_repo.get_by_contest(2) == []

    async def test_get_owner_ids(self, submission_repo, submissions):
        owners = await submission_repo.get_owner_ids(
            1, (SubmissionStatus.SUBMITTED, SubmissionStatus.ELIMINATED)
        )

        assert owners == [1, 3, 5]

    async def test_update_peer_score(self, submission_repo, submissions, test_session):
        await submission_repo.update_peer_score(1, 4.13, NOW)

        submission = await submission_repo.get_for_update(1)
        await test_session.refresh(submission)
        assert submission.score_peer == 4.13
        assert submission.updated_at == NOW

    async def test_update_peer_score_missing_submission(self, submission_repo, submissions):
        with pytest.raises(LookupError):
            await submission_repo.update_peer_score(404, 3.0)

    async def test_update_status_with_result(self, submission_repo, submissions, test_session):
        payload = {"outcome": "INCOMPLETE", "completed_reviews": 5}

        await submission_repo.update_status(5, SubmissionStatus.ELIMINATED, verification_result=payload, now=NOW)

        submission = await submission_repo.get_by_id(5)
        await test_session.refresh(submission)
        assert submission.status == SubmissionStatus.ELIMINATED
        assert submission.peer_verification_result == payload

    async def test_disqualify_only_eligible_submissions(self, submission_repo, submissions, test_session):
        count = await submission_repo.disqualify_users(1, [2, 4], now=NOW)

        assert count == 1
        draft = await submission_repo.get_by_id(4)
        await test_session.refresh(draft)
        assert draft.status == SubmissionStatus.DRAFT
        assert await submission_repo.disqualify_users(1, []) == 0

    async def test_stale_verification_requests(self, submission_repo, test_session, users):
        test_session.add_all([
            # requested long ago
            Submission(id=10, contest_id=1, user_id=1, submission_code="V-1",
                       status=SubmissionStatus.PEER_VERIFICATION_PENDING,
                       created_at=NOW - timedelta(days=30), verification_requested_at=NOW - timedelta(days=15)),
            # old entry, recent request
            Submission(id=11, contest_id=1, user_id=2, submission_code="V-2",
                       status=SubmissionStatus.PEER_VERIFICATION_PENDING,
                       created_at=NOW - timedelta(days=30), verification_requested_at=NOW - timedelta(days=3)),
            # no request time, falls back to creation time
            Submission(id=12, contest_id=1, user_id=3, submission_code="V-3",
                       status=SubmissionStatus.PEER_VERIFICATION_PENDING,
                       created_at=NOW - timedelta(days=20)),
            # already settled
            Submission(id=13, contest_id=1, user_id=4, submission_code="V-4",
                       status=SubmissionStatus.REINSTATED,
                       created_at=NOW - timedelta(days=30), verification_requested_at=NOW - timedelta(days=20)),
        ])
        await test_session.commit()

        stale = await submission_repo.get_stale_verification_requests(NOW - timedelta(days=14))

        assert [s.id for s in stale] == [10, 12]

    async def test_get_top_scored(self, submission_repo, submissions):
        await submission_repo.update_peer_score(1, 3.5)
        await submission_repo.update_peer_score(2, 4.75)
        await submission_repo.update_peer_score(3, 3.5)
        await submission_repo.update_peer_score(5, 5.0)

        top = await submission_repo.get_top_scored(1, limit=2)
        everyone = await submission_repo.get_top_scored(1, limit=10)

        assert [s.id for s in top] == [2, 1]
        assert [s.id for s in everyone] == [2, 1, 3]


class TestAssignmentRepository:
    """Test cases for the assignment repositories."""

    async def test_pending_past_deadline(self, assignment_repo, submissions):
        late = await add_assignment(assignment_repo, 1, 2, deadline=NOW - timedelta(minutes=1))
        await add_assignment(assignment_repo, 1, 3, deadline=NOW)
        await add_assignment(assignment_repo, 2, 1, status=AssignmentStatus.DONE, deadline=NOW - timedelta(days=1))

        overdue = await assignment_repo.get_pending_past_deadline(NOW)

        assert [a.id for a in overdue] == [late.id]

    async def test_mark_expired_only_once(self, assignment_repo, submissions):
        assignment = await add_assignment(assignment_repo, 1, 2)

        assert await assignment_repo.mark_expired(assignment.id) is True
        assert await assignment_repo.mark_expired(assignment.id) is False

    async def test_mark_done(self, assignment_repo, submissions, test_session):
        assignment = await add_assignment(assignment_repo, 1, 2)

        assert await assignment_repo.mark_done(assignment.id, NOW) is True
        await test_session.refresh(assignment)
        assert assignment.status == AssignmentStatus.DONE
        assert assignment.completed_at == NOW
        assert await assignment_repo.mark_expired(assignment.id) is False

    async def test_uncommitted_claim_is_undone_by_rollback(self, assignment_repo, submissions, test_session):
        assignment = await add_assignment(assignment_repo, 1, 2)

        assert await assignment_repo.mark_done(assignment.id, NOW, commit=False) is True
        await test_session.rollback()
        await test_session.refresh(assignment)
        assert assignment.status == AssignmentStatus.PENDING
        assert assignment.completed_at is None

    async def test_claim_fails_after_expiry(self, assignment_repo, submissions):
        assignment = await add_assignment(assignment_repo, 1, 2)
        await assignment_repo.mark_expired(assignment.id)

        assert await assignment_repo.mark_done(assignment.id, NOW, commit=False) is False

    async def test_expired_without_replacement(self, assignment_repo, submissions):
        replaced = await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.EXPIRED)
        open_one = await add_assignment(assignment_repo, 1, 3, status=AssignmentStatus.EXPIRED)
        await add_assignment(assignment_repo, 1, 4, reassigned_from_id=replaced.id)

        pending = await assignment_repo.get_expired_without_replacement()

        assert [a.id for a in pending] == [open_one.id]

    async def test_assignment_replaced_at_most_once(self, assignment_repo, submissions, test_session):
        expired = await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.EXPIRED)
        await add_assignment(assignment_repo, 1, 3, reassigned_from_id=expired.id)

        with pytest.raises(IntegrityError):
            await add_assignment(assignment_repo, 1, 4, reassigned_from_id=expired.id)
        await test_session.rollback()

    async def test_reviewer_ids_for_submission(self, assignment_repo, submissions):
        await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.EXPIRED)
        await add_assignment(assignment_repo, 1, 3)
        await add_assignment(assignment_repo, 2, 1)

        assert await assignment_repo.get_reviewer_ids_for_submission(1) == {2, 3}

    async def test_blacklist_counts_recent_expirations(self, assignment_repo, submissions):
        since = NOW - timedelta(days=30)
        for submission_id in (1, 2):
            await add_assignment(assignment_repo, submission_id, 3, status=AssignmentStatus.EXPIRED,
                                 assigned_at=NOW - timedelta(days=5))
        # one recent and one outside the window
        await add_assignment(assignment_repo, 1, 4, status=AssignmentStatus.EXPIRED,
                             assigned_at=NOW - timedelta(days=5))
        await add_assignment(assignment_repo, 2, 4, status=AssignmentStatus.EXPIRED,
                             assigned_at=NOW - timedelta(days=45))
        await add_assignment(assignment_repo, 3, 1, status=AssignmentStatus.DONE)

        assert await assignment_repo.get_blacklisted_reviewer_ids(since, 2) == {3}
        assert await assignment_repo.get_blacklisted_reviewer_ids(since, 1) == {3, 4}

    async def test_pending_due_between_is_inclusive(self, assignment_repo, submissions):
        start, end = NOW + timedelta(hours=23), NOW + timedelta(hours=24)
        at_start = await add_assignment(assignment_repo, 1, 2, deadline=start)
        at_end = await add_assignment(assignment_repo, 1, 3, deadline=end)
        await add_assignment(assignment_repo, 2, 1, deadline=end + timedelta(seconds=1))
        await add_assignment(assignment_repo, 2, 3, deadline=start, warning_sent_at=NOW)

        due = await assignment_repo.get_pending_due_between(start, end, "warning_sent_at")

        assert {a.id for a in due} == {at_start.id, at_end.id}

    async def test_mark_notified(self, assignment_repo, submissions):
        start, end = NOW + timedelta(hours=1), NOW + timedelta(hours=2)
        first = await add_assignment(assignment_repo, 1, 2, deadline=end)
        second = await add_assignment(assignment_repo, 1, 3, deadline=end)

        await assignment_repo.mark_notified([first.id], "reminder_sent_at", NOW)
        due = await assignment_repo.get_pending_due_between(start, end, "reminder_sent_at")

        assert [a.id for a in due] == [second.id]

    async def test_unknown_notification_column(self, assignment_repo):
        with pytest.raises(ValueError):
            await assignment_repo.get_pending_due_between(NOW, NOW, "deadline")
        with pytest.raises(ValueError):
            await assignment_repo.mark_notified([1], "status", NOW)

    async def test_phase_end_queries(self, assignment_repo, submissions):
        await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.DONE)
        await add_assignment(assignment_repo, 3, 2, status=AssignmentStatus.DONE)
        await add_assignment(assignment_repo, 1, 3, status=AssignmentStatus.EXPIRED)
        await add_assignment(assignment_repo, 2, 1)

        assert await assignment_repo.get_reviewers_with_unfinished_work(1) == {1, 3}
        assert await assignment_repo.get_reviewers_with_unfinished_work(2) == set()
        assert await assignment_repo.get_submission_ids_with_done(1) == [1, 3]

    async def test_count_for_submission(self, assignment_repo, submissions):
        await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.DONE)
        await add_assignment(assignment_repo, 1, 3)

        assert await assignment_repo.count_for_submission(1) == 2
        assert await assignment_repo.count_for_submission(1, AssignmentStatus.DONE) == 1


class TestReviewRepository:
    """Test cases for the review repositories."""

    async def test_reviews_by_assignment(self, assignment_repo, review_repo, submissions):
        first = await add_assignment(assignment_repo, 1, 2, status=AssignmentStatus.DONE)
        second = await add_assignment(assignment_repo, 1, 3, status=AssignmentStatus.DONE)
        for assignment in (second, first):
            await review_repo.create(
                assignment_id=assignment.id, clarity=4, argument=4, style=3, moral_depth=5
            )

        reviews = await review_repo.get_by_assignment_ids([first.id, second.id])
        single = await review_repo.get_by_assignment_id(first.id)

        assert [r.assignment_id for r in reviews] == [first.id, second.id]
        assert single.scores_dict == {"clarity": 4, "argument": 4, "style": 3, "moral_depth": 5}
        assert single.comment_100 == ""
        assert await review_repo.get_by_assignment_ids([]) == []

    async def test_one_review_per_assignment(self, assignment_repo, review_repo, submissions, test_session):
        assignment = await add_assignment(assignment_repo, 1, 2)
        await review_repo.create(assignment_id=assignment.id, clarity=4, argument=4, style=3, moral_depth=5)

        with pytest.raises(IntegrityError):
            await review_repo.create(assignment_id=assignment.id, clarity=1, argument=1, style=1, moral_depth=1)
        await test_session.rollback()


class TestPaymentRepository:
    """Test cases for PaymentRepository."""

    async def test_refund_paid_verification_payment(self, payment_repo, submissions, test_session):
        test_session.add_all([
            Payment(id=1, user_id=1, submission_id=1, amount=Decimal("5.00"),
                    purpose=PaymentPurpose.ENTRY_FEE, status=PaymentStatus.PAID),
            Payment(id=2, user_id=1, submission_id=1, amount=Decimal("20.00"),
                    purpose=PaymentPurpose.PEER_VERIFICATION, status=PaymentStatus.PAID),
            Payment(id=3, user_id=1, submission_id=1, amount=Decimal("20.00"),
                    purpose=PaymentPurpose.PEER_VERIFICATION, status=PaymentStatus.FAILED),
        ])
        await test_session.commit()

        payment = await payment_repo.get_paid_verification_payment(1)
        assert payment.id == 2

        assert await payment_repo.mark_refunded(2, NOW) is True
        assert await payment_repo.mark_refunded(2, NOW) is False
        assert await payment_repo.get_paid_verification_payment(1) is None

    async def test_no_payment(self, payment_repo, submissions):
        assert await payment_repo.get_paid_verification_payment(1) is None
