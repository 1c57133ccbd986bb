"""
Time-bounded cache of reviewer rows.
"""
import time
from typing import Any, Callable, Iterable, List, Optional, Tuple

from cachetools import TTLCache


class ReviewerCache:
    """
    Caches user rows by ID for ``ttl`` seconds, holding at most ``max_size`` users.

    Owned by whoever creates it; entries are dropped explicitly with
    ``invalidate`` (e.g. after a ban) or all at once with ``clear``.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self._entries = TTLCache(maxsize=max_size, ttl=ttl, timer=clock)

    def get(self, user_id: int) -> Optional[Any]:
        return self._entries.get(user_id)

    def put(self, user: Any) -> None:
        self._entries[user.id] = user

    def put_many(self, users: Iterable[Any]) -> None:
        for user in users:
            self.put(user)

    def split(self, user_ids: Iterable[int]) -> Tuple[List[Any], List[int]]:
        """Return (cached users, IDs that must be loaded)."""
        hits, misses = [], []
        for user_id in user_ids:
            user = self.get(user_id)
            if user is None:
                misses.append(user_id)
            else:
                hits.append(user)
        return hits, misses

    def invalidate(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)
