"""
Reviewer pool lookups shared by the assignment and lifecycle services.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from peer_review.models.enums import SubmissionStatus
from peer_review.models.user import User
from peer_review.repositories.submission_repository import SubmissionRepository
from peer_review.repositories.user_repository import UserRepository
from peer_review.services.reviewer_cache import ReviewerCache

logger = logging.getLogger(__name__)


class ReviewerLookup:
    """Loads users through a ReviewerCache and builds contest reviewer pools"""

    def __init__(
        self,
        user_repo: UserRepository,
        submission_repo: SubmissionRepository,
        cache: Optional[ReviewerCache] = None,
    ):
        self.user_repo = user_repo
        self.submission_repo = submission_repo
        self.cache = cache if cache is not None else ReviewerCache()

    async def get_users(self, user_ids: Iterable[int]) -> Dict[int, User]:
        """Users by ID, loading only the ones not cached."""
        hits, misses = self.cache.split(dict.fromkeys(user_ids))
        users = {user.id: user for user in hits}
        if misses:
            loaded = await self.user_repo.get_by_ids(misses)
            self.cache.put_many(loaded)
            users.update({user.id: user for user in loaded})
        return users

    async def get_user(self, user_id: int) -> Optional[User]:
        users = await self.get_users([user_id])
        return users.get(user_id)

    async def get_pool(self, contest_id: int, statuses: Sequence[SubmissionStatus]) -> List[User]:
        """Non-banned owners of contest submissions in ``statuses``, ordered by ID."""
        owner_ids = await self.submission_repo.get_owner_ids(contest_id, statuses)
        users = await self.get_users(owner_ids)
        return [users[user_id] for user_id in owner_ids if user_id in users and not users[user_id].is_banned]
