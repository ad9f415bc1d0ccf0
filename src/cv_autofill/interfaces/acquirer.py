"""Text acquisition interface for the CV Auto-Fill System."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models.document import AcquiredText


class ITextAcquirer(ABC):
    """
    Abstract interface for per-format text acquisition.

    One implementation exists per upload format; the format dispatcher
    selects the implementation from the declared extension.
    """

    @abstractmethod
    def acquire(self, data: bytes, file_name: Optional[str] = None) -> AcquiredText:
        """
        Extract text from an uploaded document.

        Args:
            data: Raw file bytes.
            file_name: Optional name used in error messages.

        Returns:
            AcquiredText with text, page count and acquisition method.
            Empty text is a valid outcome, not an error.

        Raises:
            DocumentCorruptedError: If the document cannot be opened at all.
        """
        pass
