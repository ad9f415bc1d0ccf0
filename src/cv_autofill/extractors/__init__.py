"""Entity extraction for the CV Auto-Fill System."""

from .completeness import build_completeness_report
from .hybrid_engine import HybridExtractionEngine, merge_extracted_data
from .llm_engine import OpenAIExtractionEngine
from .packer import estimate_tokens, pack_document, pack_text
from .prompts import PromptBuilder, format_packed_input
from .response_validator import ValidatedResponse, apply_field_rules, validate_response
from .rule_extractor import RuleBasedExtractionEngine, build_label_map

__all__ = [
    "build_completeness_report",
    "HybridExtractionEngine",
    "merge_extracted_data",
    "OpenAIExtractionEngine",
    "estimate_tokens",
    "pack_document",
    "pack_text",
    "PromptBuilder",
    "format_packed_input",
    "ValidatedResponse",
    "apply_field_rules",
    "validate_response",
    "RuleBasedExtractionEngine",
    "build_label_map",
]
