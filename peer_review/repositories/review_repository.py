"""
Review repositories for scored reviews and verification votes.
"""
from typing import Optional, List, Iterable, Type
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from peer_review.models.review import PeerReviewReview, PeerVerificationReview
from peer_review.repositories.base_repository import BaseRepository, ModelType


class ReviewRepository(BaseRepository[ModelType]):
    """
    Lookups keyed by assignment, shared by both review tables.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        super().__init__(model, session)

    async def get_by_assignment_id(self, assignment_id: int) -> Optional[ModelType]:
        result = await self.session.execute(
            select(self.model).where(self.model.assignment_id == assignment_id)
        )
        return result.scalar_one_or_none()

    async def get_by_assignment_ids(self, assignment_ids: Iterable[int]) -> List[ModelType]:
        """Reviews for a set of assignments, in assignment order."""
        assignment_ids = list(assignment_ids)
        if not assignment_ids:
            return []
        result = await self.session.execute(
            select(self.model)
            .where(self.model.assignment_id.in_(assignment_ids))
            .order_by(self.model.assignment_id)
        )
        return result.scalars().all()


class PeerReviewReviewRepository(ReviewRepository[PeerReviewReview]):
    """Repository for scored peer reviews."""

    def __init__(self, session: AsyncSession):
        super().__init__(PeerReviewReview, session)


class VerificationReviewRepository(ReviewRepository[PeerVerificationReview]):
    """Repository for peer verification votes."""

    def __init__(self, session: AsyncSession):
        super().__init__(PeerVerificationReview, session)
