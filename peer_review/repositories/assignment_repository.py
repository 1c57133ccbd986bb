"""
Assignment repositories for the peer review and peer verification tables.
"""
from datetime import datetime
from typing import List, Iterable, Type, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.orm import aliased
from peer_review.models.assignment import PeerReviewAssignment, PeerVerificationAssignment
from peer_review.models.submission import Submission
from peer_review.models.enums import AssignmentStatus
from peer_review.repositories.base_repository import BaseRepository, ModelType

NOTIFICATION_COLUMNS = ("warning_sent_at", "reminder_sent_at")


class AssignmentRepository(BaseRepository[ModelType]):
    """
    Queries shared by both assignment tables.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        super().__init__(model, session)

    @property
    def table_name(self) -> str:
        return self.model.__tablename__

    async def get_by_submission(self, submission_id: int) -> List[ModelType]:
        """All assignments of a submission, oldest first."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.submission_id == submission_id)
            .order_by(self.model.id)
        )
        return result.scalars().all()

    async def get_done_for_submission(self, submission_id: int) -> List[ModelType]:
        """Completed assignments of a submission."""
        result = await self.session.execute(
            select(self.model)
            .where(
                self.model.submission_id == submission_id,
                self.model.status == AssignmentStatus.DONE,
            )
            .order_by(self.model.id)
        )
        return result.scalars().all()

    async def count_for_submission(self, submission_id: int, status: AssignmentStatus = None) -> int:
        query = select(func.count(self.model.id)).where(self.model.submission_id == submission_id)
        if status is not None:
            query = query.where(self.model.status == status)
        result = await self.session.execute(query)
        return result.scalar()

    async def get_reviewer_ids_for_submission(self, submission_id: int) -> Set[int]:
        """Everyone who was ever assigned to review a submission."""
        result = await self.session.execute(
            select(self.model.reviewer_user_id)
            .where(self.model.submission_id == submission_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def get_pending_past_deadline(self, now: datetime) -> List[ModelType]:
        """Pending assignments whose deadline has passed."""
        result = await self.session.execute(
            select(self.model)
            .where(
                self.model.status == AssignmentStatus.PENDING,
                self.model.deadline < now,
            )
            .order_by(self.model.id)
        )
        return result.scalars().all()

    async def mark_expired(self, assignment_id: int) -> bool:
        """Move one assignment from PENDING to EXPIRED; False if it was no longer pending."""
        result = await self.session.execute(
            update(self.model)
            .where(
                self.model.id == assignment_id,
                self.model.status == AssignmentStatus.PENDING,
            )
            .values(status=AssignmentStatus.EXPIRED)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def mark_done(self, assignment_id: int, completed_at: datetime, commit: bool = True) -> bool:
        """
        Move one assignment from PENDING to DONE; False if it was no longer pending.

        With ``commit=False`` the update stays in the open transaction so the
        caller can commit it together with the review row.
        """
        result = await self.session.execute(
            update(self.model)
            .where(
                self.model.id == assignment_id,
                self.model.status == AssignmentStatus.PENDING,
            )
            .values(status=AssignmentStatus.DONE, completed_at=completed_at)
        )
        if commit:
            await self.session.commit()
        return result.rowcount > 0

    async def get_expired_without_replacement(self) -> List[ModelType]:
        """Expired assignments that no later assignment replaces yet."""
        replacement = aliased(self.model)
        replaced = (
            select(replacement.id)
            .where(replacement.reassigned_from_id == self.model.id)
            .exists()
        )
        result = await self.session.execute(
            select(self.model)
            .where(self.model.status == AssignmentStatus.EXPIRED, ~replaced)
            .order_by(self.model.id)
        )
        return result.scalars().all()

    async def get_blacklisted_reviewer_ids(self, since: datetime, threshold: int) -> Set[int]:
        """Reviewers with at least ``threshold`` expired assignments assigned since ``since``."""
        result = await self.session.execute(
            select(self.model.reviewer_user_id)
            .where(
                self.model.status == AssignmentStatus.EXPIRED,
                self.model.assigned_at >= since,
            )
            .group_by(self.model.reviewer_user_id)
            .having(func.count(self.model.id) >= threshold)
        )
        return set(result.scalars().all())

    async def get_pending_due_between(self, start: datetime, end: datetime,
                                      unsent_column: str) -> List[ModelType]:
        """Pending assignments due in [start, end] whose ``unsent_column`` notice is still unsent."""
        if unsent_column not in NOTIFICATION_COLUMNS:
            raise ValueError(f"Unknown notification column: {unsent_column}")
        column = getattr(self.model, unsent_column)
        result = await self.session.execute(
            select(self.model)
            .where(
                self.model.status == AssignmentStatus.PENDING,
                self.model.deadline >= start,
                self.model.deadline <= end,
                column.is_(None),
            )
            .order_by(self.model.reviewer_user_id, self.model.deadline)
        )
        return result.scalars().all()

    async def mark_notified(self, assignment_ids: Iterable[int], column_name: str,
                            sent_at: datetime) -> None:
        """Record that a deadline notice went out for these assignments."""
        if column_name not in NOTIFICATION_COLUMNS:
            raise ValueError(f"Unknown notification column: {column_name}")
        assignment_ids = list(assignment_ids)
        if not assignment_ids:
            return
        await self.session.execute(
            update(self.model)
            .where(self.model.id.in_(assignment_ids))
            .values(**{column_name: sent_at})
        )
        await self.session.commit()

    async def get_reviewers_with_unfinished_work(self, contest_id: int) -> Set[int]:
        """Reviewers holding any assignment in the contest that is not DONE."""
        result = await self.session.execute(
            select(self.model.reviewer_user_id)
            .join(Submission, Submission.id == self.model.submission_id)
            .where(
                Submission.contest_id == contest_id,
                self.model.status != AssignmentStatus.DONE,
            )
            .distinct()
        )
        return set(result.scalars().all())

    async def get_submission_ids_with_done(self, contest_id: int) -> List[int]:
        """Contest submissions with at least one completed assignment."""
        result = await self.session.execute(
            select(self.model.submission_id)
            .join(Submission, Submission.id == self.model.submission_id)
            .where(
                Submission.contest_id == contest_id,
                self.model.status == AssignmentStatus.DONE,
            )
            .distinct()
            .order_by(self.model.submission_id)
        )
        return list(result.scalars().all())


class PeerReviewAssignmentRepository(AssignmentRepository[PeerReviewAssignment]):
    """Repository for standard peer review assignments."""

    def __init__(self, session: AsyncSession):
        super().__init__(PeerReviewAssignment, session)


class VerificationAssignmentRepository(AssignmentRepository[PeerVerificationAssignment]):
    """Repository for peer verification assignments."""

    def __init__(self, session: AsyncSession):
        super().__init__(PeerVerificationAssignment, session)
