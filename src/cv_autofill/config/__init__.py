"""Configuration management for the CV Auto-Fill System."""

from .config_manager import ConfigurationManager, StaticSkillCatalog
from .models import (
    DEFAULT_TENANT_ID,
    AppSettings,
    ConfigurationError,
    DictionaryConfiguration,
    ValidationResult,
)

__all__ = [
    "ConfigurationManager",
    "StaticSkillCatalog",
    "DEFAULT_TENANT_ID",
    "AppSettings",
    "ConfigurationError",
    "DictionaryConfiguration",
    "ValidationResult",
]
