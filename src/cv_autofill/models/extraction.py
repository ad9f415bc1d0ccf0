"""Intermediate extraction data models for the CV Auto-Fill System.

These dataclasses mirror the JSON contract of the extraction engines
(camelCase keys inside ``extracted_data``) and are the input of the draft
builder.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import DetectedType


@dataclass
class Evidence:
    """Pointer to the input line that supports an extracted value."""
    line_id: str
    page: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"lineId": self.line_id, "page": self.page, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        return cls(
            line_id=str(data.get("lineId", "")),
            page=int(data.get("page") or 1),
            text=str(data.get("text", "")),
        )


def _evidence_list(items: Optional[List[Dict[str, Any]]]) -> List[Evidence]:
    return [Evidence.from_dict(e) for e in (items or [])]


@dataclass
class PersonData:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class AddressData:
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    canton: Optional[str] = None
    country: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any([self.street, self.postal_code, self.city, self.canton, self.country])


@dataclass
class ContactData:
    email: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    address: Optional[AddressData] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class LanguageEntry:
    name: str
    level: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class SkillEntry:
    name: str
    category: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class ExperienceEntry:
    title: Optional[str] = None
    company: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    responsibilities: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)

    @property
    def full_description(self) -> Optional[str]:
        """Description joined with responsibility bullets."""
        parts = [self.description] if self.description else []
        parts.extend(r for r in self.responsibilities if r and r != self.description)
        return "\n".join(parts) if parts else None


@dataclass
class EducationEntry:
    institution: Optional[str] = None
    degree: Optional[str] = None
    field_of_study: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class ExtractedData:
    """
    Typed intermediate structure produced by an extraction engine.

    Holds person, contact, personal attributes and the list sections of a
    résumé. Every block keeps the evidence lines that support it.
    """
    person: PersonData = field(default_factory=PersonData)
    contact: ContactData = field(default_factory=ContactData)
    nationality: Optional[str] = None
    birthdate: Optional[str] = None
    work_permit: Optional[str] = None
    drivers_license: Optional[str] = None
    languages: List[LanguageEntry] = field(default_factory=list)
    skills: List[SkillEntry] = field(default_factory=list)
    experience: List[ExperienceEntry] = field(default_factory=list)
    education: List[EducationEntry] = field(default_factory=list)
    # Evidence for the scalar attributes keyed by field name.
    attribute_evidence: Dict[str, List[Evidence]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedData":
        """Build from the engine JSON ``extracted_data`` object."""
        person = data.get("person") or {}
        contact = data.get("contact") or {}
        address = contact.get("address")
        return cls(
            person=PersonData(
                first_name=person.get("firstName"),
                last_name=person.get("lastName"),
                full_name=person.get("fullName"),
                evidence=_evidence_list(person.get("evidence")),
            ),
            contact=ContactData(
                email=contact.get("email"),
                phone=contact.get("phone"),
                linkedin_url=contact.get("linkedinUrl"),
                address=AddressData(
                    street=address.get("street"),
                    postal_code=address.get("postalCode"),
                    city=address.get("city"),
                    canton=address.get("canton"),
                    country=address.get("country"),
                    evidence=_evidence_list(address.get("evidence")),
                ) if address else None,
                evidence=_evidence_list(contact.get("evidence")),
            ),
            nationality=data.get("nationality"),
            birthdate=data.get("birthdate"),
            work_permit=data.get("workPermit"),
            drivers_license=data.get("driversLicense"),
            languages=[
                LanguageEntry(
                    name=l["name"],
                    level=l.get("level"),
                    evidence=_evidence_list(l.get("evidence")),
                )
                for l in data.get("languages") or []
            ],
            skills=[
                SkillEntry(
                    name=s["name"],
                    category=s.get("category"),
                    evidence=_evidence_list(s.get("evidence")),
                )
                for s in data.get("skills") or []
            ],
            experience=[
                ExperienceEntry(
                    title=e.get("title"),
                    company=e.get("company"),
                    start_date=e.get("startDate"),
                    end_date=e.get("endDate"),
                    location=e.get("location"),
                    description=e.get("description"),
                    responsibilities=list(e.get("responsibilities") or []),
                    technologies=list(e.get("technologies") or []),
                    evidence=_evidence_list(e.get("evidence")),
                )
                for e in data.get("experience") or []
            ],
            education=[
                EducationEntry(
                    institution=e.get("institution"),
                    degree=e.get("degree"),
                    field_of_study=e.get("field"),
                    start_date=e.get("startDate"),
                    end_date=e.get("endDate"),
                    evidence=_evidence_list(e.get("evidence")),
                )
                for e in data.get("education") or []
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the engine JSON shape."""
        address = self.contact.address
        return {
            "person": {
                "firstName": self.person.first_name,
                "lastName": self.person.last_name,
                "fullName": self.person.full_name,
                "evidence": [e.to_dict() for e in self.person.evidence],
            },
            "contact": {
                "email": self.contact.email,
                "phone": self.contact.phone,
                "linkedinUrl": self.contact.linkedin_url,
                "address": {
                    "street": address.street,
                    "postalCode": address.postal_code,
                    "city": address.city,
                    "canton": address.canton,
                    "country": address.country,
                    "evidence": [e.to_dict() for e in address.evidence],
                } if address else None,
                "evidence": [e.to_dict() for e in self.contact.evidence],
            },
            "nationality": self.nationality,
            "birthdate": self.birthdate,
            "workPermit": self.work_permit,
            "driversLicense": self.drivers_license,
            "languages": [
                {"name": l.name, "level": l.level, "evidence": [e.to_dict() for e in l.evidence]}
                for l in self.languages
            ],
            "skills": [
                {"name": s.name, "category": s.category, "evidence": [e.to_dict() for e in s.evidence]}
                for s in self.skills
            ],
            "experience": [
                {
                    "title": e.title,
                    "company": e.company,
                    "startDate": e.start_date,
                    "endDate": e.end_date,
                    "location": e.location,
                    "description": e.description,
                    "responsibilities": list(e.responsibilities),
                    "technologies": list(e.technologies),
                    "evidence": [ev.to_dict() for ev in e.evidence],
                }
                for e in self.experience
            ],
            "education": [
                {
                    "institution": e.institution,
                    "degree": e.degree,
                    "field": e.field_of_study,
                    "startDate": e.start_date,
                    "endDate": e.end_date,
                    "evidence": [ev.to_dict() for ev in e.evidence],
                }
                for e in self.education
            ],
        }


@dataclass
class UnmappedSegment:
    """Text the engine explicitly could not place into the schema."""
    original_text: str
    detected_type: DetectedType
    reason: str
    suggested_field: Optional[str] = None
    confidence: float = 0.0
    line_reference: Optional[str] = None
    suggested_parent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnmappedSegment":
        try:
            detected = DetectedType(data.get("detected_type", "other"))
        except ValueError:
            detected = DetectedType.OTHER
        return cls(
            original_text=str(data.get("original_text", "")),
            detected_type=detected,
            reason=str(data.get("reason", "")),
            suggested_field=data.get("suggested_field"),
            confidence=float(data.get("confidence") or 0.0),
            line_reference=data.get("line_reference"),
            suggested_parent=data.get("suggested_parent"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_text": self.original_text,
            "detected_type": self.detected_type.value,
            "reason": self.reason,
            "suggested_field": self.suggested_field,
            "confidence": self.confidence,
            "line_reference": self.line_reference,
            "suggested_parent": self.suggested_parent,
        }


@dataclass
class ImplicitMapping:
    """
    A heuristic inference the engine made without an explicit source label.

    Any field named here is downgraded from high to medium confidence by the
    draft builder.
    """
    field_name: str
    reason: str

    # Engine labels use the short names of the draft schema.
    _FIELD_ALIASES = {
        "wohnort": "city",
        "residence": "city",
        "birthplace": "birthPlace",
        "geburtsort": "birthPlace",
        "permit": "workPermit",
        "aufenthaltstitel": "workPermit",
        "führerschein": "driversLicense",
    }

    @classmethod
    def parse(cls, label: str) -> "ImplicitMapping":
        """
        Parse an engine label such as ``"ethnicity→nationality"``.

        Labels without an arrow name the affected field directly.
        """
        text = label.strip()
        for arrow in ("→", "->", "=>"):
            if arrow in text:
                source, target = text.split(arrow, 1)
                target = target.strip()
                return cls(
                    field_name=cls._FIELD_ALIASES.get(target.lower(), target),
                    reason=f"{source.strip()} interpreted as {target}",
                )
        return cls(field_name=cls._FIELD_ALIASES.get(text.lower(), text), reason=text)

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field_name, "reason": self.reason}


@dataclass
class AutoCorrection:
    """A change the response validator applied to engine output."""
    field_name: str
    original: Any
    corrected: Any
    reason: str


@dataclass
class CompletenessReport:
    """Which input lines the engine accounted for."""
    total_input_lines: int
    extracted_line_ids: List[str] = field(default_factory=list)
    unmapped_line_ids: List[str] = field(default_factory=list)
    ignored_line_ids: List[str] = field(default_factory=list)
    missing_line_ids: List[str] = field(default_factory=list)
    completeness_percentage: float = 100.0

    @property
    def is_complete(self) -> bool:
        return not self.missing_line_ids


@dataclass
class ExtractionResult:
    """
    Outcome of one engine run.

    ``success`` is False for disabled, unconfigured and failed engines; in
    that case ``flagged_fields`` is ``["all"]`` and ``error``/``error_code``
    describe the failure.
    """
    success: bool
    extracted_data: Optional[ExtractedData] = None
    unmapped_segments: List[UnmappedSegment] = field(default_factory=list)
    flagged_fields: List[str] = field(default_factory=list)
    implicit_mappings: List[ImplicitMapping] = field(default_factory=list)
    auto_corrections: List[AutoCorrection] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    thought_process: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    latency_ms: int = 0
    retry_count: int = 0
    completeness: Optional[CompletenessReport] = None
    engine: str = ""

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str,
        latency_ms: int = 0,
        retry_count: int = 0,
        engine: str = "",
    ) -> "ExtractionResult":
        return cls(
            success=False,
            flagged_fields=["all"],
            error=error,
            error_code=error_code,
            latency_ms=latency_ms,
            retry_count=retry_count,
            engine=engine,
        )

    def is_flagged(self, field_name: str) -> bool:
        return field_name in self.flagged_fields or "all" in self.flagged_fields

    def implicit_fields(self) -> set[str]:
        return {m.field_name for m in self.implicit_mappings}
