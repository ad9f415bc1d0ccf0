"""Canonical skill catalog interface."""

from abc import ABC, abstractmethod
from typing import List


class ISkillCatalog(ABC):
    """Source of canonical skill names, owned by the surrounding application."""

    @abstractmethod
    def get_skill_names(self) -> List[str]:
        pass
