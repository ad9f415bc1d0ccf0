"""Performance utilities for the CV Auto-Fill System.

Stage timing for the extraction pipeline and a small TTL cache used by the
feedback store and the upload dedupe cache.
"""

import functools
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class PerformanceMetrics:
    """Timing of one pipeline stage."""

    operation_name: str
    start_time: float = field(default_factory=time.perf_counter)
    end_time: Optional[float] = None
    duration: Optional[float] = None
    success: bool = True
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def finish(self, success: bool = True, error: Optional[str] = None) -> None:
        """Mark the operation as finished."""
        self.end_time = time.perf_counter()
        self.duration = self.end_time - self.start_time
        self.success = success
        self.error = error

    @property
    def duration_ms(self) -> int:
        return int((self.duration or 0.0) * 1000)


class PerformanceMonitor:
    """
    Track per-stage durations of extraction jobs.

    A stage running longer than ``max_processing_time`` seconds is logged
    as a warning; the monitor never aborts anything.
    """

    def __init__(self, max_processing_time: float = 90):
        self.max_processing_time = max_processing_time
        self.metrics: Dict[str, List[PerformanceMetrics]] = {}
        self._lock = threading.Lock()

    def start_operation(self, operation_name: str, **metadata) -> PerformanceMetrics:
        return PerformanceMetrics(operation_name=operation_name, metadata=metadata)

    def end_operation(
        self,
        metric: PerformanceMetrics,
        success: bool = True,
        error: Optional[str] = None,
    ) -> None:
        metric.finish(success=success, error=error)
        with self._lock:
            self.metrics.setdefault(metric.operation_name, []).append(metric)

        if metric.duration and metric.duration > self.max_processing_time:
            logger.warning(
                f"Operation '{metric.operation_name}' exceeded max time: "
                f"{metric.duration:.2f}s > {self.max_processing_time}s"
            )

    @contextmanager
    def track(self, operation_name: str, **metadata) -> Iterator[PerformanceMetrics]:
        """
        Time a block; failures are recorded and re-raised.

        Example:
            with monitor.track("acquire", file_type="pdf"):
                acquired = dispatcher.acquire(...)
        """
        metric = self.start_operation(operation_name, **metadata)
        try:
            yield metric
        except Exception as e:
            self.end_operation(metric, success=False, error=str(e))
            raise
        self.end_operation(metric)

    def get_operation_stats(self, operation_name: str) -> Dict[str, Any]:
        """
        Get statistics for a specific operation.

        Returns:
            Dictionary with count, average, min, max, total and success_rate,
            or an empty dict when the operation was never tracked.
        """
        with self._lock:
            recorded = list(self.metrics.get(operation_name, []))

        durations = [m.duration for m in recorded if m.duration is not None]
        if not durations:
            return {}

        return {
            "count": len(durations),
            "average": sum(durations) / len(durations),
            "min": min(durations),
            "max": max(durations),
            "total": sum(durations),
            "success_rate": sum(1 for m in recorded if m.success) / len(recorded),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get statistics for all tracked operations."""
        with self._lock:
            names = list(self.metrics.keys())
        return {name: self.get_operation_stats(name) for name in names}

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self.metrics.clear()


def timed_operation(operation_name: str):
    """
    Decorator that logs how long a function took.

    Example:
        @timed_operation("ocr")
        def run_ocr(data):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                duration = time.perf_counter() - start_time
                logger.debug(f"{operation_name} completed in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.perf_counter() - start_time
                logger.error(f"{operation_name} failed after {duration:.2f}s: {e}")
                raise
        return wrapper
    return decorator


class SimpleCache:
    """
    Thread-safe in-memory cache with a per-entry time-to-live.

    When full, the oldest entry is evicted.
    """

    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            max_size: Maximum number of items to cache.
            ttl: Time-to-live for cache entries in seconds.
            clock: Time source, replaceable in tests.
        """
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            value, timestamp = entry
            if self._clock() - timestamp > self.ttl:
                del self._cache[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                del self._cache[oldest_key]
            self._cache[key] = (value, self._clock())

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)
