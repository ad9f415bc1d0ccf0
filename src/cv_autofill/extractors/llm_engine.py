"""OpenAI-backed extraction engine.

Sends the packed résumé to a chat completion model (OpenAI or Azure
OpenAI) in JSON mode, validates the answer and retries with exponential
backoff on transient failures. Corrections collected by the feedback
store are rendered into the prompt as few-shot examples.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    AzureOpenAI,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
)

from ..config.models import AppSettings
from ..interfaces.engine import IExtractionEngine
from ..interfaces.feedback import IFeedbackStore
from ..models.extraction import ExtractionResult
from ..models.feedback import ExtractionConfig, FewShotExample
from ..models.packed import PackedInput
from .prompts import PromptBuilder
from .response_validator import ValidatedResponse, validate_response


logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 4000


class OpenAIExtractionEngine(IExtractionEngine):
    """
    Extraction engine backed by an OpenAI chat model.

    Args:
        settings: Application settings; decide provider, model and whether
            the engine is enabled.
        client: Pre-built OpenAI client. Built from ``settings`` when omitted.
        feedback_store: Source of few-shot corrections and problem fields.
        prompt_builder: Renders the prompts.
        max_retries: Retries after the first attempt.
        base_delay_ms: Backoff before the first retry; doubles per retry.
        sleep: Sleep function, replaceable in tests.
    """

    name = "openai"

    def __init__(
        self,
        settings: AppSettings,
        client: Optional[Any] = None,
        feedback_store: Optional[IFeedbackStore] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        max_retries: int = 2,
        base_delay_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self._client = client
        self.feedback_store = feedback_store
        self.prompts = prompt_builder or PromptBuilder()
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self._sleep = sleep

    def is_enabled(self) -> bool:
        return self.settings.llm_enabled

    def is_configured(self) -> bool:
        return self._client is not None or self.settings.llm_configured

    @property
    def client(self) -> Any:
        """Lazily created OpenAI or Azure OpenAI client."""
        if self._client is None:
            timeout = self.settings.extraction_timeout_ms / 1000
            if self.settings.llm_provider == "openai":
                self._client = OpenAI(api_key=self.settings.openai_api_key, timeout=timeout)
            else:
                self._client = AzureOpenAI(
                    api_key=self.settings.azure_openai_key,
                    api_version=self.settings.azure_openai_api_version,
                    azure_endpoint=self.settings.azure_openai_endpoint,
                    timeout=timeout,
                )
        return self._client

    # =========================================================================
    # Extraction
    # =========================================================================

    def extract(
        self,
        packed_input: PackedInput,
        config: Optional[ExtractionConfig] = None,
    ) -> ExtractionResult:
        started = time.perf_counter()

        if not self.is_enabled():
            return ExtractionResult.failure("LLM extraction is disabled", "LLM_DISABLED", engine=self.name)
        if not self.is_configured():
            return ExtractionResult.failure(
                "LLM provider is not configured", "LLM_NOT_CONFIGURED", engine=self.name
            )

        examples, accuracies, problem_fields = self._load_feedback_context(packed_input, config)
        system_prompt = self.prompts.system_prompt()
        user_prompt = self.prompts.user_prompt(packed_input, examples, accuracies, problem_fields)

        logger.info(
            f"Starting LLM extraction (~{packed_input.estimated_tokens} tokens, "
            f"{len(packed_input.sections)} sections, {len(examples)} examples)"
        )

        last_error = "no attempt made"
        last_content: Optional[str] = None
        last_validation: Optional[ValidatedResponse] = None
        attempt = 0

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                backoff_ms = self.base_delay_ms * (2 ** (attempt - 1))
                logger.info(f"Retrying LLM extraction (attempt {attempt}, backoff {backoff_ms} ms)")
                self._sleep(backoff_ms / 1000)

            messages = [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ]
            if last_validation is not None and not last_validation.valid and last_content:
                messages.append({
                    "role": "user",
                    "content": self.prompts.retry_prompt(
                        last_content, last_validation.errors, last_validation.warnings
                    ),
                })

            try:
                content = self._complete(messages)
            except (AuthenticationError, PermissionDeniedError) as e:
                logger.error(f"LLM authentication failed: {e.status_code}")
                return ExtractionResult.failure(
                    "Authentication failed", "LLM_AUTH_FAILED",
                    latency_ms=self._elapsed(started), retry_count=attempt, engine=self.name,
                )
            except RateLimitError:
                logger.warning(f"LLM rate limited (attempt {attempt})")
                last_error = "rate limited"
                continue
            except (APITimeoutError, APIConnectionError) as e:
                logger.warning(f"LLM request failed (attempt {attempt}): {type(e).__name__}")
                last_error = "request timed out or connection failed"
                continue
            except APIStatusError as e:
                logger.warning(f"LLM returned HTTP {e.status_code} (attempt {attempt})")
                last_error = f"HTTP {e.status_code}"
                if e.status_code >= 500:
                    continue
                break

            if not content:
                last_error = "empty response"
                continue
            last_content = content

            try:
                parsed = json.loads(content)
            except json.JSONDecodeError as e:
                logger.error(f"Failed to parse LLM JSON ({len(content)} chars): {e.msg}")
                last_error = "invalid JSON response"
                continue

            validation = validate_response(parsed)
            last_validation = validation
            if not validation.valid:
                logger.warning(f"LLM response failed validation (attempt {attempt}): {validation.errors[:3]}")
                last_error = "; ".join(validation.errors)
                if attempt < self.max_retries:
                    continue
                result = ExtractionResult.failure(
                    last_error, "VALIDATION_FAILED",
                    latency_ms=self._elapsed(started), retry_count=attempt, engine=self.name,
                )
                result.warnings = list(validation.warnings)
                return result

            logger.info(
                f"LLM extraction succeeded: {len(validation.unmapped_segments)} unmapped, "
                f"{len(validation.implicit_mappings)} implicit mappings"
            )
            return ExtractionResult(
                success=True,
                extracted_data=validation.extracted_data,
                unmapped_segments=validation.unmapped_segments,
                flagged_fields=validation.flagged_fields,
                implicit_mappings=validation.implicit_mappings,
                auto_corrections=validation.auto_corrections,
                warnings=validation.warnings,
                thought_process=validation.thought_process,
                latency_ms=self._elapsed(started),
                retry_count=attempt,
                engine=self.name,
            )

        logger.error(f"LLM extraction failed after {attempt + 1} attempts: {last_error}")
        return ExtractionResult.failure(
            "Extraction failed after retries", "LLM_FAILED",
            latency_ms=self._elapsed(started), retry_count=attempt, engine=self.name,
        )

    def _complete(self, messages: List[Dict[str, str]]) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.settings.llm_model,
            messages=messages,
            temperature=0,
            max_tokens=MAX_OUTPUT_TOKENS,
            response_format={"type": "json_object"},
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"LLM response received ({usage.prompt_tokens} prompt, "
                f"{usage.completion_tokens} completion tokens)"
            )
        if not response.choices:
            return None
        return response.choices[0].message.content

    def _load_feedback_context(self, packed: PackedInput, config: Optional[ExtractionConfig] = None):
        """
        Few-shot examples, field accuracies and problem fields, or empty values.

        Feedback is read from the tenant of ``config`` only.
        """
        if self.feedback_store is None:
            return [], {}, []
        try:
            store = self.feedback_store
            if config is not None and config.tenant_id:
                store = store.for_tenant(config.tenant_id)
            examples: List[FewShotExample] = store.get_relevant_few_shot_examples(packed.plain_text)
            accuracies = store.get_field_accuracies()
            problem_fields = store.get_problematic_fields()
        except Exception as e:
            logger.warning(f"Feedback context unavailable, continuing without: {e}")
            return [], {}, []
        return examples, accuracies, problem_fields

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
