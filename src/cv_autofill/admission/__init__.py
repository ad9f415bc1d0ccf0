"""Admission control: rate limits, quotas and upload dedupe."""

from .dedupe import DedupeCache, compute_file_hash
from .rate_limiter import (
    CV_ANALYSIS_RATE_LIMIT,
    CV_UPLOAD_RATE_LIMIT,
    InMemoryRateLimitStore,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
)

__all__ = [
    "DedupeCache",
    "compute_file_hash",
    "CV_ANALYSIS_RATE_LIMIT",
    "CV_UPLOAD_RATE_LIMIT",
    "InMemoryRateLimitStore",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitResult",
]
