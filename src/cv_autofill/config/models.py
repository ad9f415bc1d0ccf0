"""Data models for configuration management."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

DEFAULT_TENANT_ID = "00000000-0000-0000-0000-000000000000"
TRUTHY_VALUES = {"1", "true", "yes", "y"}


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Merge another validation result into this one."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


class ConfigurationError(Exception):
    """Exception raised for configuration errors."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.message = message
        self.validation_result = validation_result


@dataclass
class DictionaryConfiguration:
    """
    Static extraction dictionaries loaded from configuration files.

    Tenant dictionaries stored in the database are layered on top of these.
    """
    field_synonyms: Dict[str, List[str]] = field(default_factory=dict)
    skill_aliases: Dict[str, str] = field(default_factory=dict)
    skills: List[str] = field(default_factory=list)


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer, got {raw!r}")


def _env_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY_VALUES


@dataclass
class AppSettings:
    """
    Runtime settings of the service.

    Built from environment variables via ``from_env``. Without
    ``CV_AUTOFILL_DATABASE_URL`` the database URL is assembled from the
    ``POSTGRES_*`` variables.
    """
    database_url: Optional[str] = None
    max_file_size_mb: int = 10
    max_page_count: int = 20
    ocr_timeout_ms: int = 60000
    ocr_languages: str = "eng+deu+fra+ita"
    extraction_timeout_ms: int = 90000
    llm_enabled: bool = False
    llm_provider: str = "azure"
    azure_openai_endpoint: Optional[str] = None
    azure_openai_key: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    azure_openai_api_version: str = "2024-12-01-preview"
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    default_tenant_id: str = DEFAULT_TENANT_ID
    daily_quota: int = 50
    tenant_daily_quota: int = 500
    job_workers: int = 2
    stuck_job_minutes: int = 15
    dedupe_ttl_seconds: int = 3600
    skills_file: Optional[str] = None
    config_dir: Optional[str] = None

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def llm_configured(self) -> bool:
        """Whether credentials for the selected provider are present."""
        if self.llm_provider == "openai":
            return bool(self.openai_api_key)
        return bool(
            self.azure_openai_endpoint and self.azure_openai_key and self.azure_openai_deployment
        )

    @property
    def llm_model(self) -> Optional[str]:
        """Model name, or the deployment name for Azure."""
        if self.llm_provider == "openai":
            return self.openai_model
        return self.azure_openai_deployment

    def validate(self) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if self.max_file_size_mb <= 0:
            result.add_error("max_file_size_mb must be positive")
        if self.max_page_count <= 0:
            result.add_error("max_page_count must be positive")
        if self.job_workers <= 0:
            result.add_error("job_workers must be positive")
        if self.llm_provider not in ("azure", "openai"):
            result.add_error(f"Unknown LLM provider: {self.llm_provider}")
        if self.llm_enabled and not self.llm_configured:
            result.add_warning("LLM extraction is enabled but not configured; extractions will fail")
        return result

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        """
        Read settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable does not parse or the
                resulting settings are invalid.
        """
        env = os.environ if environ is None else environ
        settings = cls(
            database_url=env.get("CV_AUTOFILL_DATABASE_URL") or None,
            max_file_size_mb=_env_int(env, "CV_MAX_FILE_SIZE_MB", 10),
            max_page_count=_env_int(env, "CV_MAX_PAGE_COUNT", 20),
            ocr_timeout_ms=_env_int(env, "CV_OCR_TIMEOUT_MS", 60000),
            ocr_languages=env.get("CV_OCR_LANGUAGES", "eng+deu+fra+ita"),
            extraction_timeout_ms=_env_int(env, "CV_EXTRACTION_TIMEOUT_MS", 90000),
            llm_enabled=_env_bool(env, "CV_LLM_ENABLED"),
            llm_provider=env.get("CV_LLM_PROVIDER", "azure").strip().lower(),
            azure_openai_endpoint=env.get("AZURE_OPENAI_ENDPOINT") or None,
            azure_openai_key=env.get("AZURE_OPENAI_KEY") or None,
            azure_openai_deployment=env.get("AZURE_OPENAI_DEPLOYMENT") or None,
            azure_openai_api_version=env.get("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
            default_tenant_id=env.get("CV_DEFAULT_TENANT_ID") or DEFAULT_TENANT_ID,
            daily_quota=_env_int(env, "CV_DAILY_QUOTA", 50),
            tenant_daily_quota=_env_int(env, "CV_TENANT_DAILY_QUOTA", 500),
            job_workers=_env_int(env, "CV_JOB_WORKERS", 2),
            stuck_job_minutes=_env_int(env, "CV_STUCK_JOB_MINUTES", 15),
            dedupe_ttl_seconds=_env_int(env, "CV_DEDUPE_TTL_SECONDS", 3600),
            skills_file=env.get("CV_SKILLS_FILE") or None,
            config_dir=env.get("CV_CONFIG_DIR") or None,
        )
        result = settings.validate()
        if not result.is_valid:
            raise ConfigurationError("Invalid application settings", validation_result=result)
        return settings
