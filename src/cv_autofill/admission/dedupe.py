"""Duplicate upload detection."""

import hashlib
import time
from typing import Callable, Optional

from ..performance import SimpleCache


def compute_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class DedupeCache:
    """
    Remembers which job a user's upload produced, keyed by content hash.

    A second upload of the same bytes by the same user within ``ttl``
    seconds resolves to the existing job id.
    """

    def __init__(
        self,
        ttl: float = 3600,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self._cache = SimpleCache(max_size=max_size, ttl=ttl, clock=clock)

    @staticmethod
    def _key(file_hash: str, user_id: str) -> str:
        return f"{user_id}:{file_hash}"

    def get(self, file_hash: str, user_id: str) -> Optional[str]:
        return self._cache.get(self._key(file_hash, user_id))

    def set(self, file_hash: str, user_id: str, job_id: str) -> None:
        self._cache.set(self._key(file_hash, user_id), job_id)

    def invalidate(self, file_hash: str, user_id: str) -> None:
        self._cache.invalidate(self._key(file_hash, user_id))

    def size(self) -> int:
        return self._cache.size()
