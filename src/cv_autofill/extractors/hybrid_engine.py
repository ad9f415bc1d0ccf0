"""Hybrid extraction engine combining the rule-based and LLM layers.

The rule-based layer always runs. When the LLM layer is enabled, its data
wins and rule-based values only fill fields the LLM left empty. An
enabled LLM layer that fails, or is not configured, fails the whole
extraction with its error code.
"""

import logging
import time
from typing import List, Optional

from ..interfaces.engine import IExtractionEngine
from ..models.extraction import (
    AddressData,
    ExtractedData,
    ExtractionResult,
    UnmappedSegment,
)
from ..models.feedback import ExtractionConfig
from ..models.packed import PackedInput
from .completeness import build_completeness_report
from .rule_extractor import RuleBasedExtractionEngine


logger = logging.getLogger(__name__)

_ATTRIBUTE_FIELDS = (
    ("nationality", "nationality"),
    ("birthdate", "birthdate"),
    ("work_permit", "workPermit"),
    ("drivers_license", "driversLicense"),
)


def merge_extracted_data(primary: ExtractedData, fallback: ExtractedData) -> List[str]:
    """
    Fill empty fields of ``primary`` from ``fallback`` in place.

    List sections are only taken over when ``primary`` has none. Returns
    the names of the fields that were filled.
    """
    filled: List[str] = []

    person, other = primary.person, fallback.person
    if not (person.first_name or person.last_name) and (other.first_name or other.last_name):
        person.first_name, person.last_name = other.first_name, other.last_name
        person.full_name = person.full_name or other.full_name
        person.evidence = person.evidence + other.evidence
        filled.extend(["firstName", "lastName"])

    contact, other_contact = primary.contact, fallback.contact
    for attr, name in (("email", "email"), ("phone", "phone"), ("linkedin_url", "linkedinUrl")):
        if not getattr(contact, attr) and getattr(other_contact, attr):
            setattr(contact, attr, getattr(other_contact, attr))
            contact.evidence = contact.evidence + other_contact.evidence
            filled.append(name)

    other_address = other_contact.address
    if other_address is not None and not other_address.is_empty():
        if contact.address is None:
            contact.address = AddressData()
        address = contact.address
        address_filled = False
        for attr, name in (
            ("street", "street"),
            ("postal_code", "postalCode"),
            ("city", "city"),
            ("canton", "canton"),
            ("country", "country"),
        ):
            if not getattr(address, attr) and getattr(other_address, attr):
                setattr(address, attr, getattr(other_address, attr))
                filled.append(name)
                address_filled = True
        if address_filled and not address.evidence:
            address.evidence = list(other_address.evidence)

    for attr, name in _ATTRIBUTE_FIELDS:
        if not getattr(primary, attr) and getattr(fallback, attr):
            setattr(primary, attr, getattr(fallback, attr))
            if name in fallback.attribute_evidence:
                primary.attribute_evidence[name] = fallback.attribute_evidence[name]
            filled.append(name)

    for attr in ("languages", "skills", "experience", "education"):
        if not getattr(primary, attr) and getattr(fallback, attr):
            setattr(primary, attr, list(getattr(fallback, attr)))
            filled.append(attr)

    return filled


class HybridExtractionEngine(IExtractionEngine):
    """
    Hybrid résumé extractor.

    Layers:

    1. Rule-based extraction (always executed).
    2. LLM extraction (optional; skipped when absent or disabled). Once
       enabled it is required: the engine is not configured without it
       and its failure is the result.
    """

    name = "hybrid"

    def __init__(
        self,
        rule_engine: Optional[IExtractionEngine] = None,
        llm_engine: Optional[IExtractionEngine] = None,
    ):
        self._rule_engine = rule_engine or RuleBasedExtractionEngine()
        self._llm_engine = llm_engine

    def is_enabled(self) -> bool:
        return self._rule_engine.is_enabled()

    def is_configured(self) -> bool:
        if self.llm_enabled and not self._llm_engine.is_configured():
            return False
        return self._rule_engine.is_configured()

    @property
    def llm_enabled(self) -> bool:
        return self._llm_engine is not None and self._llm_engine.is_enabled()

    @property
    def llm_active(self) -> bool:
        return self.llm_enabled and self._llm_engine.is_configured()

    def extract(
        self,
        packed_input: PackedInput,
        config: Optional[ExtractionConfig] = None,
    ) -> ExtractionResult:
        started = time.perf_counter()

        # Layer 1: rule-based extraction
        rule_result = self._rule_engine.extract(packed_input, config)

        # Layer 2: LLM extraction
        if not self.llm_enabled:
            result = rule_result
        else:
            llm_result = self._llm_engine.extract(packed_input, config)
            if not (llm_result.success and llm_result.extracted_data is not None):
                logger.error(f"LLM layer failed ({llm_result.error_code}): {llm_result.error}")
                result = ExtractionResult.failure(
                    llm_result.error or "LLM extraction returned no data",
                    llm_result.error_code or "LLM_FAILED",
                    retry_count=llm_result.retry_count,
                    engine=self.name,
                )
                result.warnings = list(llm_result.warnings)
                result.latency_ms = int((time.perf_counter() - started) * 1000)
                return result
            result = self._combine(llm_result, rule_result)

        if result.success and result.extracted_data is not None:
            report = build_completeness_report(packed_input, result)
            result.completeness = report
            if not report.is_complete:
                result.warnings.append(
                    f"{len(report.missing_line_ids)} lines were not processed "
                    f"({report.completeness_percentage}% complete)"
                )

        result.latency_ms = int((time.perf_counter() - started) * 1000)
        return result

    def _combine(self, llm_result: ExtractionResult, rule_result: ExtractionResult) -> ExtractionResult:
        """LLM data wins; rule values fill only empty fields."""
        filled: List[str] = []
        if rule_result.success and rule_result.extracted_data is not None:
            filled = merge_extracted_data(llm_result.extracted_data, rule_result.extracted_data)

        unmapped: List[UnmappedSegment] = list(llm_result.unmapped_segments)
        known = {s.original_text.strip().lower() for s in unmapped}
        for segment in rule_result.unmapped_segments:
            if segment.original_text.strip().lower() not in known:
                unmapped.append(segment)
                known.add(segment.original_text.strip().lower())

        implicit = list(llm_result.implicit_mappings)
        implicit_fields = {m.field_name for m in implicit}
        implicit.extend(
            m for m in rule_result.implicit_mappings
            if m.field_name in filled and m.field_name not in implicit_fields
        )

        flagged = list(llm_result.flagged_fields)
        flagged.extend(
            f for f in rule_result.flagged_fields if f in filled and f not in flagged
        )

        if filled:
            logger.info(f"Rule-based layer filled {len(filled)} fields left empty by the LLM")

        return ExtractionResult(
            success=True,
            extracted_data=llm_result.extracted_data,
            unmapped_segments=unmapped,
            flagged_fields=flagged,
            implicit_mappings=implicit,
            auto_corrections=llm_result.auto_corrections + rule_result.auto_corrections,
            warnings=list(llm_result.warnings),
            thought_process=llm_result.thought_process,
            retry_count=llm_result.retry_count,
            engine=self.name,
        )
