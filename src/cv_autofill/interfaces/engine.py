"""Extraction engine interface for the CV Auto-Fill System."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.extraction import ExtractionResult
from ..models.feedback import ExtractionConfig
from ..models.packed import PackedInput


class IExtractionEngine(ABC):
    """
    Abstract interface for entity extraction.

    Callers must check ``is_enabled()`` and ``is_configured()`` before
    calling ``extract``; when either is False the caller falls back to an
    empty draft.
    """

    name: str = "engine"

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether the engine is switched on."""
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the engine has everything it needs to run."""
        pass

    @abstractmethod
    def extract(
        self,
        packed_input: PackedInput,
        config: Optional[ExtractionConfig] = None,
    ) -> ExtractionResult:
        """
        Turn packed résumé text into typed extracted data.

        Args:
            packed_input: Bounded, line-addressed view of the document.
            config: Tenant dictionaries (field synonyms, skill aliases).

        Returns:
            ExtractionResult. Failures are reported through ``success``,
            ``error`` and ``error_code`` rather than raised.
        """
        pass
