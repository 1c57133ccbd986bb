"""
Submission repository for contest entries, scores and verification state.
"""
from datetime import datetime
from typing import Optional, List, Iterable, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc, func
from peer_review.database.base import utcnow
from peer_review.models.submission import Submission
from peer_review.models.enums import SubmissionStatus, ELIGIBLE_SUBMISSION_STATUSES
from peer_review.repositories.base_repository import BaseRepository


class SubmissionRepository(BaseRepository[Submission]):
    """
    Repository for Submission model operations.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Submission, session)

    async def get_by_contest(self, contest_id: int,
                             statuses: Optional[Iterable[SubmissionStatus]] = None) -> List[Submission]:
        """Get contest submissions in input (creation) order, optionally filtered by status."""
        query = select(Submission).where(Submission.contest_id == contest_id)
        if statuses is not None:
            query = query.where(Submission.status.in_(list(statuses)))
        query = query.order_by(Submission.created_at, Submission.id)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_eligible_by_contest(self, contest_id: int) -> List[Submission]:
        """Get submissions taking part in peer review for a contest."""
        return await self.get_by_contest(contest_id, ELIGIBLE_SUBMISSION_STATUSES)

    async def get_owner_ids(self, contest_id: int, statuses: Iterable[SubmissionStatus]) -> List[int]:
        """Distinct owners of contest submissions in the given statuses."""
        result = await self.session.execute(
            select(Submission.user_id)
            .where(
                Submission.contest_id == contest_id,
                Submission.status.in_(list(statuses)),
            )
            .distinct()
            .order_by(Submission.user_id)
        )
        return list(result.scalars().all())

    async def get_for_update(self, submission_id: int) -> Optional[Submission]:
        """Load a submission with a row lock (ignored by backends without FOR UPDATE)."""
        result = await self.session.execute(
            select(Submission)
            .where(Submission.id == submission_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def update_peer_score(self, submission_id: int, score: float,
                                now: Optional[datetime] = None) -> None:
        """Overwrite the consensus peer score."""
        result = await self.session.execute(
            update(Submission)
            .where(Submission.id == submission_id)
            .values(score_peer=score, updated_at=now or utcnow())
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise LookupError(f"Submission {submission_id} not found")
        await self.session.commit()

    async def update_status(self, submission_id: int, status: SubmissionStatus,
                            verification_result: Optional[Dict[str, Any]] = None,
                            now: Optional[datetime] = None) -> None:
        """Change submission status, optionally recording a verification result."""
        values: Dict[str, Any] = {"status": status, "updated_at": now or utcnow()}
        if verification_result is not None:
            values["peer_verification_result"] = verification_result
        await self.session.execute(
            update(Submission).where(Submission.id == submission_id).values(**values)
        )
        await self.session.commit()

    async def disqualify_users(self, contest_id: int, user_ids: Iterable[int],
                               now: Optional[datetime] = None) -> int:
        """Disqualify every eligible submission owned by ``user_ids``."""
        user_ids = list(user_ids)
        if not user_ids:
            return 0
        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.contest_id == contest_id,
                Submission.user_id.in_(user_ids),
                Submission.status.in_(ELIGIBLE_SUBMISSION_STATUSES),
            )
            .values(status=SubmissionStatus.DISQUALIFIED, updated_at=now or utcnow())
        )
        await self.session.commit()
        return result.rowcount

    async def get_stale_verification_requests(self, requested_before: datetime) -> List[Submission]:
        """Verification requests still pending since before ``requested_before``."""
        requested_at = func.coalesce(Submission.verification_requested_at, Submission.created_at)
        result = await self.session.execute(
            select(Submission)
            .where(
                Submission.status == SubmissionStatus.PEER_VERIFICATION_PENDING,
                requested_at < requested_before,
            )
            .order_by(Submission.id)
        )
        return result.scalars().all()

    async def get_top_scored(self, contest_id: int, limit: int) -> List[Submission]:
        """Eligible scored submissions, highest peer score first."""
        result = await self.session.execute(
            select(Submission)
            .where(
                Submission.contest_id == contest_id,
                Submission.status.in_(ELIGIBLE_SUBMISSION_STATUSES),
                Submission.score_peer.is_not(None),
            )
            .order_by(desc(Submission.score_peer), Submission.id)
            .limit(limit)
        )
        return result.scalars().all()
