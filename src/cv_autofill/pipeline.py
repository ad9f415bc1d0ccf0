"""End-to-end extraction pipeline for the CV Auto-Fill System.

Wires text acquisition, packing, entity extraction and draft building
into one synchronous run per uploaded document. The job service calls it
from a background worker.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config.models import AppSettings
from .errors import CVError, CVErrorCode, wrap_error
from .extractors.hybrid_engine import HybridExtractionEngine
from .extractors.llm_engine import OpenAIExtractionEngine
from .extractors.packer import pack_document, pack_text
from .interfaces.engine import IExtractionEngine
from .interfaces.feedback import IFeedbackStore
from .interfaces.skills import ISkillCatalog
from .mapping.draft_builder import build_draft, empty_draft
from .models.document import AcquiredText
from .models.draft import CandidateAutoFillDraft, DraftMetadata
from .models.enums import AcquisitionMethod
from .models.extraction import ExtractionResult
from .models.feedback import ExtractionConfig
from .parsers.base import FormatDispatcher
from .parsers.exceptions import DocumentCorruptedError, ParseError, UnsupportedFormatError
from .parsers.ocr import OCRRunner
from .parsers.scanned import DEFAULT_MAX_PAGE_COUNT, validate_page_count
from .performance import PerformanceMonitor


logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the extraction pipeline."""

    max_page_count: int = DEFAULT_MAX_PAGE_COUNT

    # Stage durations above this are logged as warnings (seconds)
    max_processing_time: float = 90

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PipelineConfig":
        return cls(
            max_page_count=settings.max_page_count,
            max_processing_time=settings.extraction_timeout_ms / 1000,
        )


@dataclass
class PipelineResult:
    """
    Result of one pipeline run.

    ``success`` False always comes with ``error_code``; ``draft`` is set in
    both cases (the empty draft on failure).
    """

    success: bool
    draft: Optional[CandidateAutoFillDraft] = None
    extraction: Optional[ExtractionResult] = None
    page_count: Optional[int] = None
    method: Optional[AcquisitionMethod] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    processing_time_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def filled_count(self) -> int:
        return len(self.draft.filled_fields) if self.draft else 0

    @property
    def unmapped_count(self) -> int:
        return len(self.draft.unmapped_items) if self.draft else 0


@dataclass
class PipelineStats:
    """Statistics about pipeline execution."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_processing_time_ms: float = 0.0
    total_processing_time_ms: int = 0


def build_default_engine(
    settings: AppSettings,
    feedback_store: Optional[IFeedbackStore] = None,
) -> HybridExtractionEngine:
    """Rule-based engine, layered with the OpenAI engine when it is switched on."""
    llm_engine = None
    if settings.llm_enabled:
        llm_engine = OpenAIExtractionEngine(settings, feedback_store=feedback_store)
        if not llm_engine.is_configured():
            logger.warning("LLM extraction enabled but not configured; extractions will fail")
    return HybridExtractionEngine(llm_engine=llm_engine)


class ExtractionPipeline:
    """
    Acquire -> page policy -> pack -> extract -> build draft.

    Acquisition and extraction run strictly in sequence. Empty text is a
    successful run with an empty draft; a disabled or failing engine is a
    failed run that still carries the empty draft for diagnostics.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        config: Optional[PipelineConfig] = None,
        dispatcher: Optional[FormatDispatcher] = None,
        engine: Optional[IExtractionEngine] = None,
        skill_catalog: Optional[ISkillCatalog] = None,
        feedback_store: Optional[IFeedbackStore] = None,
    ):
        """
        Initialize the extraction pipeline.

        Args:
            settings: Runtime settings (read from the environment if None).
            config: Pipeline configuration, derived from settings if None.
            dispatcher: Format dispatcher (created with an OCR runner if None).
            engine: Extraction engine (hybrid engine if None).
            skill_catalog: Canonical skills used when no extraction config
                is passed to ``process``.
            feedback_store: Passed to the OpenAI engine for prompt context.
        """
        self.settings = settings or AppSettings.from_env()
        self.config = config or PipelineConfig.from_settings(self.settings)
        self.stats = PipelineStats()
        self.performance_monitor = PerformanceMonitor(
            max_processing_time=self.config.max_processing_time
        )

        self._dispatcher = dispatcher or FormatDispatcher(
            ocr_runner=OCRRunner(
                languages=self.settings.ocr_languages,
                timeout_ms=self.settings.ocr_timeout_ms,
            )
        )
        self._engine = engine or build_default_engine(self.settings, feedback_store)
        self._skill_catalog = skill_catalog

        logger.info(f"Extraction pipeline initialized (engine: {self._engine.name})")

    @property
    def engine(self) -> IExtractionEngine:
        return self._engine

    def process(
        self,
        data: bytes,
        file_name: str,
        file_type: str,
        file_size: Optional[int] = None,
        extraction_config: Optional[ExtractionConfig] = None,
    ) -> PipelineResult:
        """
        Run the pipeline on one uploaded document.

        Args:
            data: Raw file bytes (already validated).
            file_name: Sanitized file name.
            file_type: Declared extension.
            file_size: Declared size in bytes.
            extraction_config: Tenant dictionaries for this run.

        Returns:
            PipelineResult; errors are reported, never raised.
        """
        start_time = time.perf_counter()
        file_size = file_size if file_size is not None else len(data)
        result = PipelineResult(success=False)
        metadata = DraftMetadata(
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            page_count=0,
            extraction_method=AcquisitionMethod.TEXT,
        )

        try:
            logger.info(f"Starting extraction for {file_type} upload ({file_size} bytes)")

            with self.performance_monitor.track("acquire", file_type=file_type):
                acquired = self._dispatcher.acquire(
                    data, file_type, declared_size=file_size, file_name=file_name
                )
            result.page_count = acquired.page_count
            result.method = acquired.method
            result.warnings.extend(acquired.warnings)
            metadata.page_count = acquired.page_count
            metadata.extraction_method = acquired.method

            if acquired.page_count > 0 and not validate_page_count(
                acquired.page_count, self.config.max_page_count
            ):
                raise CVError(
                    CVErrorCode.FILE_TOO_MANY_PAGES,
                    f"Document has {acquired.page_count} pages, maximum {self.config.max_page_count}",
                )

            if acquired.is_empty:
                logger.info("Acquired text is empty; returning empty draft")
                result.success = True
                result.draft = empty_draft(metadata)
                result.warnings.append("No text could be extracted from the document")
                return result

            self._extract(acquired, metadata, result, extraction_config)

        except UnsupportedFormatError as e:
            self._fail(result, metadata, CVErrorCode.FILE_INVALID_TYPE, e.message)
        except DocumentCorruptedError as e:
            self._fail(result, metadata, CVErrorCode.FILE_MAGIC_MISMATCH, f"Document corrupted: {e.message}")
        except ParseError as e:
            self._fail(result, metadata, CVErrorCode.ANALYSIS_FAILED, f"Parsing error: {e.message}")
        except Exception as e:
            error = wrap_error(e, fallback=CVErrorCode.ANALYSIS_FAILED)
            if not isinstance(e, CVError):
                logger.exception(f"Pipeline execution failed: {e}")
            self._fail(result, metadata, error.code, error.internal_message)

        finally:
            result.processing_time_ms = int((time.perf_counter() - start_time) * 1000)
            if result.draft is not None:
                result.draft.metadata.processing_time_ms = result.processing_time_ms
            result.metadata["performance_stats"] = self.performance_monitor.get_all_stats()
            self._update_stats(result)

        return result

    def _extract(
        self,
        acquired: AcquiredText,
        metadata: DraftMetadata,
        result: PipelineResult,
        extraction_config: Optional[ExtractionConfig],
    ) -> None:
        if not self._engine.is_enabled() or not self._engine.is_configured():
            self._fail(
                result,
                metadata,
                CVErrorCode.ANALYSIS_FAILED,
                f"Extraction engine '{self._engine.name}' is disabled or not configured",
            )
            return

        config = extraction_config or self._default_config()

        with self.performance_monitor.track("pack"):
            if acquired.representation is not None:
                packed = pack_document(acquired.representation)
            else:
                packed = pack_text(acquired.text, acquired.page_count)
        logger.info(
            f"Packed {sum(1 for _ in packed.iter_lines())} lines, ~{packed.estimated_tokens} tokens"
        )

        with self.performance_monitor.track("extract", engine=self._engine.name):
            extraction = self._engine.extract(packed, config)
        result.extraction = extraction
        result.warnings.extend(extraction.warnings)

        if not extraction.success:
            self._fail(
                result,
                metadata,
                CVErrorCode.ANALYSIS_FAILED,
                f"Extraction failed ({extraction.error_code}): {extraction.error}",
            )
            return

        with self.performance_monitor.track("build_draft"):
            draft = build_draft(
                extraction,
                config.system_skills,
                metadata,
                skill_aliases=config.skill_aliases,
            )
        result.draft = draft
        result.success = True
        logger.info(
            f"Draft built: {len(draft.filled_fields)} filled, "
            f"{len(draft.ambiguous_fields)} ambiguous, {len(draft.unmapped_items)} unmapped"
        )

    def _default_config(self) -> ExtractionConfig:
        skills = self._skill_catalog.get_skill_names() if self._skill_catalog else []
        return ExtractionConfig(system_skills=list(skills))

    @staticmethod
    def _fail(
        result: PipelineResult,
        metadata: DraftMetadata,
        code: CVErrorCode,
        message: str,
    ) -> None:
        logger.error(f"Extraction failed [{code.value}]: {message}")
        result.success = False
        result.error = message
        result.error_code = code.value
        result.draft = empty_draft(metadata)

    def _update_stats(self, result: PipelineResult) -> None:
        self.stats.total_executions += 1
        if result.success:
            self.stats.successful_executions += 1
        else:
            self.stats.failed_executions += 1
        self.stats.total_processing_time_ms += result.processing_time_ms
        self.stats.average_processing_time_ms = (
            self.stats.total_processing_time_ms / self.stats.total_executions
        )

    def get_stats(self) -> PipelineStats:
        return self.stats

    def get_performance_stats(self) -> Dict[str, Dict[str, Any]]:
        return self.performance_monitor.get_all_stats()
