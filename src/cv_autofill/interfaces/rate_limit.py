"""Rate limit store interface for the CV Auto-Fill System."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class CounterState:
    """Current value of a windowed counter."""
    count: int
    window_start: float


class IRateLimitStore(ABC):
    """
    Abstract counter store used by the rate limiter.

    The in-memory implementation is correct within one process only;
    multi-instance deployments plug in an external counter service.
    """

    @abstractmethod
    def increment(self, key: str, window_seconds: float, now: float) -> CounterState:
        """
        Increment the counter for ``key``.

        A counter whose window started more than ``window_seconds`` before
        ``now`` is reset to 1 with a new window start.
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[CounterState]:
        """Return the counter for ``key`` without changing it."""
        pass

    @abstractmethod
    def reset(self, key: str) -> None:
        """Drop the counter for ``key``."""
        pass
