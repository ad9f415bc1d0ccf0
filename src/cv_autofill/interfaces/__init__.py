"""Abstract interfaces for the CV Auto-Fill System."""

from .acquirer import ITextAcquirer
from .engine import IExtractionEngine
from .feedback import IFeedbackStore
from .rate_limit import CounterState, IRateLimitStore
from .skills import ISkillCatalog

__all__ = [
    "ITextAcquirer",
    "IExtractionEngine",
    "IFeedbackStore",
    "CounterState",
    "IRateLimitStore",
    "ISkillCatalog",
]
