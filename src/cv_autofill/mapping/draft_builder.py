"""Draft builder: turns an extraction result into the reviewable draft.

``build_draft`` is a pure function. It never resolves an ambiguity on its
own and every entry it emits carries the source text it came from.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..extractors.field_patterns import parse_key_value
from ..models.draft import (
    AmbiguousField,
    CandidateAutoFillDraft,
    DraftMetadata,
    FieldCandidate,
    FilledField,
    SourceInfo,
    SuggestedTarget,
    UnmappedItem,
)
from ..models.enums import ConfidenceLevel, DetectedType, UnmappedCategory
from ..models.extraction import (
    EducationEntry,
    Evidence,
    ExperienceEntry,
    ExtractionResult,
    UnmappedSegment,
)
from ..normalization.dates import decompose_date, is_present
from ..normalization.language import normalize_languages
from ..normalization.skills import match_skills


logger = logging.getLogger(__name__)

CATEGORY_MAP = {
    DetectedType.DATE: UnmappedCategory.DATE,
    DetectedType.SKILL: UnmappedCategory.SKILL,
    DetectedType.CREDENTIAL: UnmappedCategory.EDUCATION,
    DetectedType.PERSONAL: UnmappedCategory.CONTACT,
    DetectedType.JOB_DETAILS: UnmappedCategory.EXPERIENCE,
    DetectedType.EDUCATION_DETAILS: UnmappedCategory.EDUCATION,
    DetectedType.OTHER: UnmappedCategory.OTHER,
}

SOURCE_TEXT_LIMIT = 100


def empty_draft(metadata: DraftMetadata) -> CandidateAutoFillDraft:
    """The universal fallback: no fields, only metadata."""
    return CandidateAutoFillDraft(metadata=metadata)


def _source(evidence: Sequence[Evidence], fallback: str) -> SourceInfo:
    for ev in evidence:
        if ev.text and ev.text.strip():
            return SourceInfo(text=ev.text, position=ev.line_id or None, page=ev.page)
    return SourceInfo(text=fallback)


def _first_evidence(entries: Sequence[Any]) -> List[Evidence]:
    return [ev for entry in entries for ev in entry.evidence]


def _experience_value(entry: ExperienceEntry) -> Dict[str, Any]:
    start, end = decompose_date(entry.start_date), decompose_date(entry.end_date)
    return {
        "role": entry.title or "",
        "company": entry.company or "",
        "startMonth": start.month,
        "startYear": start.year,
        "endMonth": end.month,
        "endYear": end.year,
        "current": is_present(entry.end_date),
        "description": entry.full_description or "",
    }


def _education_value(entry: EducationEntry) -> Dict[str, Any]:
    start, end = decompose_date(entry.start_date), decompose_date(entry.end_date)
    return {
        "degree": entry.degree or "",
        "institution": entry.institution or "",
        "startMonth": start.month,
        "startYear": start.year,
        "endMonth": end.month,
        "endYear": end.year,
    }


def split_candidate_fields(suggested_field: Optional[str]) -> List[str]:
    """``"person.firstName/lastName"`` -> ``["firstName", "lastName"]``."""
    if not suggested_field:
        return []
    fields = []
    for part in suggested_field.split("/"):
        name = part.strip().rsplit(".", 1)[-1]
        if name and name not in fields:
            fields.append(name)
    return fields


def _label_and_value(segment: UnmappedSegment) -> Tuple[str, str]:
    pair = parse_key_value(segment.original_text)
    if pair:
        return pair
    return segment.suggested_field or "", segment.original_text


def convert_ambiguous_segment(segment: UnmappedSegment) -> AmbiguousField:
    label, value = _label_and_value(segment)
    confidence = ConfidenceLevel.from_score(segment.confidence)
    return AmbiguousField(
        extracted_label=label,
        extracted_value=value,
        candidates=[
            FieldCandidate(target_field=name, reason=segment.reason, confidence=confidence)
            for name in split_candidate_fields(segment.suggested_field)
        ],
        source=SourceInfo(
            text=segment.original_text[:SOURCE_TEXT_LIMIT],
            position=segment.line_reference,
        ),
    )


def convert_unmapped_segment(segment: UnmappedSegment) -> UnmappedItem:
    targets = []
    if segment.suggested_field:
        targets.append(
            SuggestedTarget(
                target_field=segment.suggested_field,
                confidence=ConfidenceLevel.from_score(segment.confidence),
                reason=segment.reason,
            )
        )
    return UnmappedItem(
        extracted_value=segment.original_text,
        category=CATEGORY_MAP.get(segment.detected_type, UnmappedCategory.OTHER),
        suggested_targets=targets,
        source=SourceInfo(
            text=segment.original_text[:SOURCE_TEXT_LIMIT],
            position=segment.line_reference,
        ),
    )


def build_draft(
    extraction: Optional[ExtractionResult],
    system_skill_names: Sequence[str],
    metadata: DraftMetadata,
    skill_aliases: Optional[Dict[str, str]] = None,
) -> CandidateAutoFillDraft:
    """
    Convert an extraction result into a ``CandidateAutoFillDraft``.

    Confidence rules:

    - person, e-mail and personal attributes are ``high``, ``low`` when the
      engine flagged the field and ``medium`` when an implicit mapping
      produced it;
    - phone is ``medium`` when flagged;
    - address sub-fields are always ``medium``;
    - languages, skills, experience and education are ``high``.

    A failed or missing extraction yields an empty draft.
    """
    if extraction is None or not extraction.success or extraction.extracted_data is None:
        return empty_draft(metadata)

    data = extraction.extracted_data
    implicit = extraction.implicit_fields()
    filled: List[FilledField] = []

    def add(target: str, value: Any, confidence: ConfidenceLevel, source: SourceInfo) -> None:
        filled.append(FilledField(target, value, confidence, source))

    def scalar_confidence(name: str, flagged_level: ConfidenceLevel = ConfidenceLevel.LOW) -> ConfidenceLevel:
        if extraction.is_flagged(name):
            return flagged_level
        if name in implicit:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.HIGH

    person, contact = data.person, data.contact
    if person.first_name:
        add("firstName", person.first_name, scalar_confidence("firstName"),
            _source(person.evidence, person.first_name))
    if person.last_name:
        add("lastName", person.last_name, scalar_confidence("lastName"),
            _source(person.evidence, person.last_name))

    if contact.email:
        add("email", contact.email, scalar_confidence("email"),
            _source(contact.evidence, contact.email))
    if contact.phone:
        add("phone", contact.phone, scalar_confidence("phone", ConfidenceLevel.MEDIUM),
            _source(contact.evidence, contact.phone))
    if contact.linkedin_url:
        add("linkedinUrl", contact.linkedin_url, scalar_confidence("linkedinUrl"),
            _source(contact.evidence, contact.linkedin_url))

    address = contact.address
    if address is not None:
        for target, value in (
            ("street", address.street),
            ("postalCode", address.postal_code),
            ("city", address.city),
            ("canton", address.canton),
        ):
            if value:
                confidence = ConfidenceLevel.LOW if extraction.is_flagged(target) else ConfidenceLevel.MEDIUM
                add(target, value, confidence, _source(address.evidence or contact.evidence, value))

    for target, value in (
        ("nationality", data.nationality),
        ("birthdate", data.birthdate),
        ("workPermit", data.work_permit),
        ("driversLicense", data.drivers_license),
    ):
        if value:
            add(target, value, scalar_confidence(target),
                _source(data.attribute_evidence.get(target, []), value))

    languages = normalize_languages(data.languages)
    if languages:
        add("languages", languages, ConfidenceLevel.HIGH,
            _source(_first_evidence(data.languages), ", ".join(l["language"] for l in languages)))

    matched = match_skills((s.name for s in data.skills), system_skill_names, skill_aliases)
    if matched:
        add("skills", matched, ConfidenceLevel.HIGH,
            _source(_first_evidence(data.skills), ", ".join(matched)))

    if data.experience:
        values = [_experience_value(e) for e in data.experience]
        fallback = data.experience[0].title or data.experience[0].company or "Experience section"
        add("experience", values, ConfidenceLevel.HIGH, _source(_first_evidence(data.experience), fallback))

    if data.education:
        values = [_education_value(e) for e in data.education]
        fallback = data.education[0].degree or data.education[0].institution or "Education section"
        add("education", values, ConfidenceLevel.HIGH, _source(_first_evidence(data.education), fallback))

    ambiguous: List[AmbiguousField] = []
    unmapped: List[UnmappedItem] = []
    for segment in extraction.unmapped_segments:
        if not segment.original_text or not segment.original_text.strip():
            continue
        if len(split_candidate_fields(segment.suggested_field)) > 1:
            ambiguous.append(convert_ambiguous_segment(segment))
        else:
            unmapped.append(convert_unmapped_segment(segment))

    logger.info(
        f"Draft built: {len(filled)} filled, {len(ambiguous)} ambiguous, {len(unmapped)} unmapped"
    )
    return CandidateAutoFillDraft(
        metadata=metadata,
        filled_fields=filled,
        ambiguous_fields=ambiguous,
        unmapped_items=unmapped,
    )
