"""Validation of engine responses.

The JSON an extraction engine returns is checked against pydantic models
first; the field rules in ``apply_field_rules`` then clean up values that
parse but are implausible (job titles extracted as names, malformed
e-mails, entries without evidence). The rule-based engine runs the same
field rules on its own output.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models.enums import DetectedType
from ..models.extraction import (
    AutoCorrection,
    ExtractedData,
    ImplicitMapping,
    UnmappedSegment,
)
from ..normalization.phone import to_e164
from .field_patterns import EMAIL_STRICT_PATTERN, is_valid_person_name


logger = logging.getLogger(__name__)

FIRST_NAME_MAX_LENGTH = 30
LAST_NAME_MAX_LENGTH = 40
SHORT_THOUGHT_PROCESS = 50
_IMPLICIT_KEYWORDS = ("ethnicity", "herkunft", "staatsangehörigkeit", "origin")


class EvidenceModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lineId: str
    page: int = 1
    text: str = ""


class PersonModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    firstName: Optional[str] = None
    lastName: Optional[str] = None
    fullName: Optional[str] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class AddressModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    street: Optional[str] = None
    postalCode: Optional[str] = None
    city: Optional[str] = None
    canton: Optional[str] = None
    country: Optional[str] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class ContactModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    phone: Optional[str] = None
    linkedinUrl: Optional[str] = None
    address: Optional[AddressModel] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class LanguageModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    level: Optional[str] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class SkillModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    category: Optional[str] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class ExperienceModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    company: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    responsibilities: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    evidence: List[EvidenceModel] = Field(default_factory=list)


class EducationModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    institution: Optional[str] = None
    degree: Optional[str] = None
    field: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    evidence: List[EvidenceModel] = Field(default_factory=list)


class ExtractedDataModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    person: PersonModel
    contact: ContactModel
    nationality: Optional[str] = None
    birthdate: Optional[str] = None
    workPermit: Optional[str] = None
    driversLicense: Optional[str] = None
    languages: List[LanguageModel] = Field(default_factory=list)
    skills: List[SkillModel] = Field(default_factory=list)
    experience: List[ExperienceModel] = Field(default_factory=list)
    education: List[EducationModel] = Field(default_factory=list)


class UnmappedSegmentModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    original_text: str
    detected_type: DetectedType
    reason: str
    suggested_field: Optional[str] = None
    suggested_parent: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    line_reference: Optional[str] = None


class ExtractionMetadataModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    confidence_scores: Dict[str, float] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    implicit_mappings_applied: List[str] = Field(default_factory=list)


class EngineResponseModel(BaseModel):
    """Top-level JSON object an extraction engine must return."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    thought_process: str = Field(alias="_thought_process", min_length=1)
    extracted_data: ExtractedDataModel
    unmapped_segments: List[UnmappedSegmentModel] = Field(default_factory=list)
    extraction_metadata: ExtractionMetadataModel = Field(default_factory=ExtractionMetadataModel)

    @field_validator("thought_process")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("thought process is empty")
        return value


@dataclass
class FieldRuleOutcome:
    flagged_fields: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    auto_corrections: List[AutoCorrection] = field(default_factory=list)


@dataclass
class ValidatedResponse:
    """Result of validating one engine response."""
    valid: bool
    extracted_data: Optional[ExtractedData] = None
    unmapped_segments: List[UnmappedSegment] = field(default_factory=list)
    implicit_mappings: List[ImplicitMapping] = field(default_factory=list)
    thought_process: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    flagged_fields: List[str] = field(default_factory=list)
    auto_corrections: List[AutoCorrection] = field(default_factory=list)


def _flag(outcome: FieldRuleOutcome, *names: str) -> None:
    for name in names:
        if name not in outcome.flagged_fields:
            outcome.flagged_fields.append(name)


def apply_field_rules(
    data: ExtractedData, unmapped_segments: List[UnmappedSegment]
) -> FieldRuleOutcome:
    """
    Clean up implausible values in place.

    Invalid names are moved to an unmapped segment, values without evidence
    are dropped, and every removal or rewrite is flagged and recorded.
    """
    outcome = FieldRuleOutcome()
    person = data.person

    if person.first_name and person.last_name:
        first, last = person.first_name, person.last_name
        if not (
            is_valid_person_name(first, FIRST_NAME_MAX_LENGTH)
            and is_valid_person_name(last, LAST_NAME_MAX_LENGTH)
            and is_valid_person_name(f"{first} {last}", FIRST_NAME_MAX_LENGTH + LAST_NAME_MAX_LENGTH + 1)
        ):
            reason = f'"{first} {last}" detected as job title or invalid name pattern'
            _flag(outcome, "firstName", "lastName")
            person.first_name = None
            person.last_name = None
            outcome.auto_corrections.append(AutoCorrection("person.firstName", first, None, reason))
            outcome.auto_corrections.append(AutoCorrection("person.lastName", last, None, reason))
            unmapped_segments.append(
                UnmappedSegment(
                    original_text=f"{first} {last}",
                    detected_type=DetectedType.OTHER,
                    reason="Extracted as name but detected as job title. Requires manual review.",
                    suggested_field="person.firstName/lastName",
                    confidence=0.3,
                    line_reference=person.evidence[0].line_id if person.evidence else None,
                )
            )

    if not person.evidence and (person.first_name or person.last_name):
        _flag(outcome, "firstName", "lastName")
        outcome.warnings.append("Name extracted without evidence - flagged for review")
        person.first_name = None
        person.last_name = None

    contact = data.contact
    if contact.email and not EMAIL_STRICT_PATTERN.match(contact.email.strip()):
        _flag(outcome, "email")
        outcome.auto_corrections.append(
            AutoCorrection("contact.email", contact.email, None, "Invalid email format")
        )
        contact.email = None

    if contact.phone:
        normalized = to_e164(contact.phone)
        if normalized is None:
            _flag(outcome, "phone")
            outcome.warnings.append("Phone format not recognized - kept for manual review")
        elif normalized != contact.phone:
            outcome.auto_corrections.append(
                AutoCorrection("contact.phone", contact.phone, normalized, "Normalized to E.164 format")
            )
            contact.phone = normalized

    kept_experience = [e for e in data.experience if e.evidence]
    if len(kept_experience) != len(data.experience):
        _flag(outcome, "experience")
        data.experience = kept_experience

    kept_education = [e for e in data.education if e.evidence]
    if len(kept_education) != len(data.education):
        _flag(outcome, "education")
        data.education = kept_education

    data.skills = [s for s in data.skills if s.evidence]
    data.languages = [l for l in data.languages if l.evidence]
    return outcome


def validate_response(raw: Any) -> ValidatedResponse:
    """
    Validate a decoded engine response.

    A schema failure yields ``valid=False`` with every field flagged.
    """
    try:
        model = EngineResponseModel.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        if any(err.startswith("_thought_process") for err in errors):
            errors.append("_thought_process is missing or empty; reasoning must precede extraction")
        logger.warning(f"Engine response failed schema validation ({len(errors)} errors)")
        return ValidatedResponse(valid=False, errors=errors, flagged_fields=["all"])

    extracted = ExtractedData.from_dict(model.extracted_data.model_dump())
    unmapped = [
        UnmappedSegment.from_dict(segment.model_dump(mode="json"))
        for segment in model.unmapped_segments
    ]
    implicit = [
        ImplicitMapping.parse(label)
        for label in model.extraction_metadata.implicit_mappings_applied
        if label and label.strip()
    ]

    outcome = apply_field_rules(extracted, unmapped)
    warnings = list(model.extraction_metadata.warnings) + outcome.warnings

    if len(model.thought_process) < SHORT_THOUGHT_PROCESS:
        warnings.append("Thought process seems too short")

    thought_lower = model.thought_process.lower()
    if not extracted.nationality and any(k in thought_lower for k in _IMPLICIT_KEYWORDS):
        warnings.append(
            "Thought process mentions ethnicity/origin but nationality is empty"
        )

    return ValidatedResponse(
        valid=True,
        extracted_data=extracted,
        unmapped_segments=unmapped,
        implicit_mappings=implicit,
        thought_process=model.thought_process,
        warnings=warnings,
        flagged_fields=outcome.flagged_fields,
        auto_corrections=outcome.auto_corrections,
    )
