"""Rule-based résumé extraction engine.

Extracts personal data, contact details, languages, skills, experience and
education from a ``PackedInput`` using label vocabularies and regular
expressions. It needs no external service, so it is always enabled and
configured and serves as the first layer of the hybrid engine.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..interfaces.engine import IExtractionEngine
from ..models.enums import DetectedType
from ..models.extraction import (
    AddressData,
    EducationEntry,
    Evidence,
    ExperienceEntry,
    ExtractedData,
    ExtractionResult,
    ImplicitMapping,
    LanguageEntry,
    SkillEntry,
    UnmappedSegment,
)
from ..models.feedback import ExtractionConfig
from ..models.packed import PackedInput, PackedLine
from .field_patterns import (
    DATE_RANGE_PATTERN,
    EMAIL_PATTERN,
    FIELD_LABELS,
    IMPLICIT_LABELS,
    INSTITUTION_PATTERN,
    KNOWN_LANGUAGES,
    LINKEDIN_PATTERN,
    NAME_PARTICLES,
    POSTAL_CITY_PATTERN,
    SINGLE_DATE_PATTERN,
    STREET_PATTERN,
    detect_section,
    find_phone,
    find_unmapped_hint,
    is_valid_person_name,
    looks_like_company,
    looks_like_job_title,
    parse_key_value,
)
from .response_validator import apply_field_rules


logger = logging.getLogger(__name__)

NAME_SEARCH_LINES = 10
_SKILL_SPLIT = re.compile(r"[,;|•·]")
_LANGUAGE_SPLIT = re.compile(r"[;|•]|,(?![^()]*\))")
_LANGUAGE_ENTRY = re.compile(
    r"^\s*(?P<name>[A-Za-zÄÖÜäöüéèçà]+(?:\s[A-Za-zäöü]+)?)\s*"
    r"(?:\((?P<paren>[^)]*)\)|[:\-–]\s*(?P<level>.+))?\s*$"
)
_BULLET = re.compile(r"^[\s•·\-–*>]+")
_TITLE_COMPANY_SPLIT = re.compile(r"\s+(?:bei|at|@|chez)\s+|\s*[|,–]\s*|\s+-\s+")
_DATE_RESIDUE = re.compile(r"^[\s|,:;\-–]+|[\s|,:;\-–]+$")

_NON_NAME_LINES = {"curriculum vitae", "lebenslauf", "résumé", "resume", "bewerbung", "bewerbungsunterlagen"}
_ENTRY_SECTIONS = {"experience", "education", "skills", "languages", "certificates"}
_PERSONAL_SECTIONS = {"content", "personal", "profile"}


@dataclass
class _State:
    """Mutable working state of one extraction run."""
    data: ExtractedData = field(default_factory=ExtractedData)
    unmapped: List[UnmappedSegment] = field(default_factory=list)
    implicit: List[ImplicitMapping] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    used_lines: Set[str] = field(default_factory=set)


def _evidence(line: PackedLine) -> Evidence:
    return Evidence(line_id=line.line_id, page=line.page, text=line.text)


def _strip_bullet(text: str) -> str:
    return _BULLET.sub("", text).strip()


def build_label_map(
    field_synonyms: Optional[Dict[str, List[str]]] = None,
) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
    """
    Merge the built-in label vocabulary with tenant synonyms.

    Returns (unique label -> field, ambiguous label -> fields). A tenant
    synonym with a single target overrides the built-in label.
    """
    labels = dict(FIELD_LABELS)
    ambiguous: Dict[str, List[str]] = {}
    for label, targets in (field_synonyms or {}).items():
        key = label.strip().lower()
        distinct = list(dict.fromkeys(t for t in targets if t))
        if len(distinct) == 1:
            labels[key] = distinct[0]
        elif len(distinct) > 1:
            ambiguous[key] = distinct
            labels.pop(key, None)
    return labels, ambiguous


class RuleBasedExtractionEngine(IExtractionEngine):
    """
    Pattern-based extraction engine.

    Works in passes over the packed input: labelled key/value lines,
    regex fallbacks for contact details, a name heuristic over the
    header, then the language, skill, experience, education and
    certificate sections.
    """

    name = "rules"

    def is_enabled(self) -> bool:
        return True

    def is_configured(self) -> bool:
        return True

    def extract(
        self,
        packed_input: PackedInput,
        config: Optional[ExtractionConfig] = None,
    ) -> ExtractionResult:
        started = time.perf_counter()
        state = _State()
        labels, ambiguous = build_label_map(config.field_synonyms if config else None)

        line_index = {line.line_id: line for line in packed_input.iter_lines()}
        section_of = {
            line.line_id: section.name
            for section in packed_input.sections
            for line in section.lines
        }

        self._extract_labelled(packed_input, state, labels, ambiguous, line_index, section_of)
        self._extract_contact_fallbacks(packed_input, state)
        self._extract_name(packed_input, state)
        self._extract_address_fallback(packed_input, state)
        self._extract_languages(packed_input, state, line_index)
        self._extract_skills(packed_input, state)
        self._extract_experience(packed_input, state)
        self._extract_education(packed_input, state)
        self._extract_certificates(packed_input, state)

        outcome = apply_field_rules(state.data, state.unmapped)
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            f"Rule-based extraction: {len(state.data.experience)} experience, "
            f"{len(state.data.education)} education, {len(state.data.skills)} skills, "
            f"{len(state.unmapped)} unmapped ({latency_ms} ms)"
        )

        return ExtractionResult(
            success=True,
            extracted_data=state.data,
            unmapped_segments=state.unmapped,
            flagged_fields=outcome.flagged_fields,
            implicit_mappings=state.implicit,
            auto_corrections=outcome.auto_corrections,
            warnings=state.warnings + outcome.warnings,
            latency_ms=latency_ms,
            engine=self.name,
        )

    # =========================================================================
    # Labelled values
    # =========================================================================

    def _extract_labelled(
        self,
        packed: PackedInput,
        state: _State,
        labels: Dict[str, str],
        ambiguous: Dict[str, List[str]],
        line_index: Dict[str, PackedLine],
        section_of: Dict[str, str],
    ) -> None:
        header_ids = {l.line_id for l in packed.header_lines}
        for kv in packed.kvp:
            key = kv.key.strip().lower()
            line = line_index.get(kv.line_id) if kv.line_id else None
            if line is None:
                line = PackedLine(line_id=kv.line_id or "", page=kv.page, text=f"{kv.key}: {kv.value}")
            section = section_of.get(line.line_id, "content")

            if key in KNOWN_LANGUAGES:
                # "Deutsch: Muttersprache" is handled with the language section.
                continue

            if key in IMPLICIT_LABELS:
                target = IMPLICIT_LABELS[key]
                if self._set_field(state, target, kv.value, line):
                    state.implicit.append(
                        ImplicitMapping(field_name=target, reason=f"{kv.key} interpreted as {target}")
                    )
                continue

            if key in labels:
                self._set_field(state, labels[key], kv.value, line)
                continue

            if section in _ENTRY_SECTIONS:
                continue

            if key in ambiguous:
                state.unmapped.append(
                    UnmappedSegment(
                        original_text=line.text,
                        detected_type=DetectedType.PERSONAL,
                        reason="Label maps to several fields",
                        suggested_field="/".join(ambiguous[key]),
                        confidence=0.5,
                        line_reference=line.line_id,
                    )
                )
                state.used_lines.add(line.line_id)
                continue

            hint = find_unmapped_hint(line.text)
            if SINGLE_DATE_PATTERN.match(kv.value):
                detected = DetectedType.DATE
            elif section in _PERSONAL_SECTIONS or line.line_id in header_ids:
                detected = DetectedType.PERSONAL
            else:
                detected = DetectedType.OTHER
            state.unmapped.append(
                UnmappedSegment(
                    original_text=line.text,
                    detected_type=detected,
                    reason=f'No target field for label "{kv.key}"',
                    suggested_field=hint,
                    confidence=0.7 if hint else 0.3,
                    line_reference=line.line_id,
                )
            )
            state.used_lines.add(line.line_id)

    def _set_field(self, state: _State, target: str, value: str, line: PackedLine) -> bool:
        """Fill ``target`` from a labelled value. Returns False when it was already set."""
        value = value.strip()
        if not value:
            return False
        data = state.data
        evidence = _evidence(line)
        person, contact = data.person, data.contact

        if target in ("firstName", "lastName", "fullName"):
            if target == "firstName" and not person.first_name:
                person.first_name = value
            elif target == "lastName" and not person.last_name:
                person.last_name = value
            elif target == "fullName" and not person.full_name:
                person.full_name = value
                parts = value.split()
                if len(parts) >= 2 and not (person.first_name or person.last_name):
                    person.first_name = parts[0]
                    person.last_name = " ".join(parts[1:])
            else:
                return False
            person.evidence.append(evidence)
        elif target == "email":
            match = EMAIL_PATTERN.search(value)
            if contact.email or not match:
                return False
            contact.email = match.group(0)
            contact.evidence.append(evidence)
        elif target == "phone":
            if contact.phone:
                return False
            contact.phone = find_phone(value) or value
            contact.evidence.append(evidence)
        elif target == "linkedinUrl":
            if contact.linkedin_url:
                return False
            match = LINKEDIN_PATTERN.search(value)
            contact.linkedin_url = match.group(0) if match else value
            contact.evidence.append(evidence)
        elif target in ("address", "street", "postalCode", "city", "canton", "country"):
            if not self._set_address(state, target, value, evidence):
                return False
        elif target in ("nationality", "birthdate", "workPermit", "driversLicense"):
            attribute = {
                "nationality": "nationality",
                "birthdate": "birthdate",
                "workPermit": "work_permit",
                "driversLicense": "drivers_license",
            }[target]
            if getattr(data, attribute):
                return False
            setattr(data, attribute, value)
            data.attribute_evidence.setdefault(target, []).append(evidence)
        else:
            # Tenant synonym pointing at a field outside the engine schema.
            state.unmapped.append(
                UnmappedSegment(
                    original_text=line.text,
                    detected_type=DetectedType.PERSONAL,
                    reason="Label mapped by tenant dictionary",
                    suggested_field=target,
                    confidence=0.8,
                    line_reference=line.line_id,
                )
            )
        state.used_lines.add(line.line_id)
        return True

    def _set_address(self, state: _State, target: str, value: str, evidence: Evidence) -> bool:
        contact = state.data.contact
        if contact.address is None:
            contact.address = AddressData()
        address = contact.address

        if target == "address":
            # "Musterstrasse 12, 8000 Zürich"
            parts = [p.strip() for p in value.split(",") if p.strip()]
            for part in parts:
                match = POSTAL_CITY_PATTERN.search(part)
                if match:
                    address.postal_code = address.postal_code or match.group(1)
                    address.city = address.city or match.group(2).strip()
                elif not address.street:
                    address.street = part
        else:
            attribute = {
                "street": "street",
                "postalCode": "postal_code",
                "city": "city",
                "canton": "canton",
                "country": "country",
            }[target]
            if getattr(address, attribute):
                return False
            setattr(address, attribute, value)
        address.evidence.append(evidence)
        return True

    # =========================================================================
    # Fallbacks over contact and header lines
    # =========================================================================

    def _extract_contact_fallbacks(self, packed: PackedInput, state: _State) -> None:
        contact = state.data.contact
        for line in packed.contact_lines + packed.header_lines:
            if not contact.email:
                match = EMAIL_PATTERN.search(line.text)
                if match:
                    contact.email = match.group(0)
                    contact.evidence.append(_evidence(line))
                    state.used_lines.add(line.line_id)
            if not contact.linkedin_url:
                match = LINKEDIN_PATTERN.search(line.text)
                if match:
                    contact.linkedin_url = match.group(0)
                    contact.evidence.append(_evidence(line))
                    state.used_lines.add(line.line_id)
            if not contact.phone:
                phone = find_phone(line.text)
                if phone:
                    contact.phone = phone
                    contact.evidence.append(_evidence(line))
                    state.used_lines.add(line.line_id)

    def _extract_name(self, packed: PackedInput, state: _State) -> None:
        """Take the first header line that reads like a 2-4 word personal name."""
        person = state.data.person
        if person.first_name and person.last_name:
            return

        for line in packed.header_lines[:NAME_SEARCH_LINES]:
            text = line.text.strip()
            if ":" in text or "@" in text or any(ch.isdigit() for ch in text):
                continue
            if text.lower() in _NON_NAME_LINES:
                continue
            if detect_section(text) or looks_like_job_title(text) or looks_like_company(text):
                continue
            words = text.split()
            if not 2 <= len(words) <= 4:
                continue
            if not all(w[0].isupper() or w.lower() in NAME_PARTICLES for w in words):
                continue
            first, last = words[0], " ".join(words[1:])
            if not (is_valid_person_name(first, 30) and is_valid_person_name(last, 40)):
                continue
            person.first_name = person.first_name or first
            person.last_name = person.last_name or last
            person.full_name = person.full_name or text
            person.evidence.append(_evidence(line))
            state.used_lines.add(line.line_id)
            return

    def _extract_address_fallback(self, packed: PackedInput, state: _State) -> None:
        contact = state.data.contact
        if contact.address is not None and not contact.address.is_empty():
            return

        previous: Optional[PackedLine] = None
        for line in packed.contact_lines:
            match = POSTAL_CITY_PATTERN.search(line.text)
            if match and not EMAIL_PATTERN.search(line.text):
                address = AddressData(
                    postal_code=match.group(1),
                    city=match.group(2).strip().rstrip(","),
                    evidence=[_evidence(line)],
                )
                head = line.text[:match.start()].strip().rstrip(",").strip()
                if head and STREET_PATTERN.match(head):
                    address.street = head
                elif previous is not None and STREET_PATTERN.match(previous.text.strip()):
                    address.street = previous.text.strip()
                    address.evidence.insert(0, _evidence(previous))
                    state.used_lines.add(previous.line_id)
                contact.address = address
                state.used_lines.add(line.line_id)
                return
            previous = line

    # =========================================================================
    # Sections
    # =========================================================================

    def _extract_languages(
        self,
        packed: PackedInput,
        state: _State,
        line_index: Dict[str, PackedLine],
    ) -> None:
        seen: Set[str] = set()

        def add(name: str, level: Optional[str], line: PackedLine) -> None:
            key = name.lower()
            if key in seen:
                return
            seen.add(key)
            state.data.languages.append(
                LanguageEntry(name=name, level=level.strip() if level else None, evidence=[_evidence(line)])
            )
            state.used_lines.add(line.line_id)

        section = packed.get_section("languages")
        if section is not None:
            for line in section.lines:
                for chunk in _LANGUAGE_SPLIT.split(_strip_bullet(line.text)):
                    match = _LANGUAGE_ENTRY.match(chunk)
                    if not match:
                        continue
                    name = match.group("name")
                    level = match.group("paren") or match.group("level")
                    if name.lower() not in KNOWN_LANGUAGES:
                        # "Englisch fliessend"
                        head, _, tail = name.partition(" ")
                        if head.lower() not in KNOWN_LANGUAGES:
                            continue
                        name, level = head, level or tail
                    add(name, level, line)

        # "Deutsch: Muttersprache" outside a languages section
        for kv in packed.kvp:
            if kv.key.strip().lower() in KNOWN_LANGUAGES and kv.line_id in line_index:
                add(kv.key.strip(), kv.value, line_index[kv.line_id])

    def _extract_skills(self, packed: PackedInput, state: _State) -> None:
        section = packed.get_section("skills")
        if section is None:
            return
        seen: Set[str] = set()
        for line in section.lines:
            text = _strip_bullet(line.text)
            category = None
            pair = parse_key_value(text)
            if pair:
                category, text = pair
            for token in _SKILL_SPLIT.split(text):
                name = token.strip().strip(".")
                if not name or len(name) > 40 or name.isdigit() or name.lower() in seen:
                    continue
                seen.add(name.lower())
                state.data.skills.append(
                    SkillEntry(name=name, category=category, evidence=[_evidence(line)])
                )
            state.used_lines.add(line.line_id)

    def _split_dated_blocks(
        self, lines: List[PackedLine]
    ) -> List[Tuple[re.Match, PackedLine, List[PackedLine]]]:
        """Group section lines into blocks that each start at a date-range line."""
        blocks: List[Tuple[re.Match, PackedLine, List[PackedLine]]] = []
        for line in lines:
            match = DATE_RANGE_PATTERN.search(line.text)
            if match:
                blocks.append((match, line, []))
            elif blocks:
                blocks[-1][2].append(line)
        return blocks

    @staticmethod
    def _date_residue(line: PackedLine, match: re.Match) -> str:
        residue = line.text[:match.start()] + " " + line.text[match.end():]
        return _DATE_RESIDUE.sub("", _strip_bullet(residue)).strip()

    def _extract_experience(self, packed: PackedInput, state: _State) -> None:
        section = packed.get_section("experience")
        if section is None:
            return

        for match, date_line, rest in self._split_dated_blocks(section.lines):
            entry = ExperienceEntry(
                start_date=match.group("start").strip(),
                end_date=match.group("end").strip(),
                evidence=[_evidence(date_line)],
            )
            residue = self._date_residue(date_line, match)
            if residue:
                self._assign_title_company(entry, residue)

            description: List[str] = []
            for line in rest:
                text = _strip_bullet(line.text)
                if not entry.title and not looks_like_company(text):
                    entry.title = text
                elif not entry.company and len(text) <= 80 and not text.endswith("."):
                    entry.company = text
                else:
                    description.append(text)
                    entry.responsibilities.append(text)
                entry.evidence.append(_evidence(line))
                state.used_lines.add(line.line_id)

            entry.description = "\n".join(description) or None
            state.data.experience.append(entry)
            state.used_lines.add(date_line.line_id)

    @staticmethod
    def _assign_title_company(entry: ExperienceEntry, text: str) -> None:
        parts = [p.strip() for p in _TITLE_COMPANY_SPLIT.split(text, maxsplit=1) if p.strip()]
        if len(parts) == 2:
            first, second = parts
            if looks_like_company(first) and not looks_like_company(second):
                first, second = second, first
            entry.title, entry.company = first, second
        elif parts:
            if looks_like_company(parts[0]):
                entry.company = parts[0]
            else:
                entry.title = parts[0]

    def _extract_education(self, packed: PackedInput, state: _State) -> None:
        section = packed.get_section("education")
        if section is None:
            return

        for match, date_line, rest in self._split_dated_blocks(section.lines):
            entry = EducationEntry(
                start_date=match.group("start").strip(),
                end_date=match.group("end").strip(),
                evidence=[_evidence(date_line)],
            )
            candidates = []
            residue = self._date_residue(date_line, match)
            if residue:
                candidates.extend(p.strip() for p in _TITLE_COMPANY_SPLIT.split(residue, maxsplit=1))
            candidates.extend(_strip_bullet(line.text) for line in rest[:3])

            for text in candidates:
                if not text:
                    continue
                if INSTITUTION_PATTERN.search(text) and not entry.institution:
                    entry.institution = text
                elif not entry.degree:
                    entry.degree = text
                elif not entry.field_of_study:
                    entry.field_of_study = text

            for line in rest[:3]:
                entry.evidence.append(_evidence(line))
                state.used_lines.add(line.line_id)
            state.data.education.append(entry)
            state.used_lines.add(date_line.line_id)

    def _extract_certificates(self, packed: PackedInput, state: _State) -> None:
        section = packed.get_section("certificates")
        if section is None:
            return
        for line in section.lines:
            if line.line_id in state.used_lines:
                continue
            hint = find_unmapped_hint(line.text)
            state.unmapped.append(
                UnmappedSegment(
                    original_text=_strip_bullet(line.text),
                    detected_type=DetectedType.CREDENTIAL,
                    reason="Certificate or training without a target field",
                    suggested_field=hint,
                    confidence=0.7 if hint else 0.5,
                    line_reference=line.line_id,
                )
            )
            state.used_lines.add(line.line_id)
