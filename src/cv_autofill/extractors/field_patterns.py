"""Field patterns for résumé extraction.

Label vocabularies, section headers and regular expressions shared by the
packer, the rule-based engine and the response validator. Labels and
headers cover German, English and French résumés.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass
class SectionPattern:
    """Header keywords that open a résumé section."""
    name: str
    keywords: List[str]
    line_budget: int = 50  # Lines kept per section when the packer trims


SECTION_PATTERNS: List[SectionPattern] = [
    SectionPattern(
        name="experience",
        keywords=[
            "berufserfahrung", "erfahrung", "berufliche erfahrung", "beruflicher werdegang",
            "werdegang", "berufspraxis", "work experience", "professional experience",
            "experience", "employment history", "career history", "employment",
            "expérience professionnelle", "expérience", "expériences professionnelles",
            "parcours professionnel",
        ],
    ),
    SectionPattern(
        name="education",
        keywords=[
            "ausbildung", "bildung", "schulbildung", "bildungsweg", "studium",
            "education", "academic background", "education and training",
            "formation", "études", "parcours académique",
        ],
    ),
    SectionPattern(
        name="skills",
        keywords=[
            "kenntnisse", "fähigkeiten", "kompetenzen", "it-kenntnisse", "edv-kenntnisse",
            "fachkenntnisse", "skills", "technical skills", "core competencies",
            "competencies", "compétences", "compétences techniques",
        ],
        line_budget=10,
    ),
    SectionPattern(
        name="languages",
        keywords=["sprachen", "sprachkenntnisse", "languages", "language skills", "langues"],
    ),
    SectionPattern(
        name="certificates",
        keywords=[
            "zertifikate", "zertifizierungen", "weiterbildung", "weiterbildungen",
            "certificates", "certifications", "courses", "certificats", "formation continue",
        ],
        line_budget=10,
    ),
    SectionPattern(
        name="profile",
        keywords=[
            "profil", "über mich", "zusammenfassung", "kurzprofil", "profile", "summary",
            "about me", "profil professionnel", "résumé",
        ],
    ),
    SectionPattern(
        name="personal",
        keywords=[
            "personalien", "persönliche daten", "persönliche angaben", "kontakt",
            "personal information", "personal details", "contact",
            "informations personnelles", "coordonnées",
        ],
    ),
]

_SECTION_LOOKUP: Dict[str, str] = {
    keyword: pattern.name for pattern in SECTION_PATTERNS for keyword in pattern.keywords
}
_HEADER_PREFIX = re.compile(r"^[\s\d.#*•\-]+")


def detect_section(line: str) -> Optional[str]:
    """Return the section a header line opens, or None for ordinary lines."""
    normalized = _HEADER_PREFIX.sub("", line).strip().rstrip(":").strip().lower()
    if not normalized or len(normalized) > 50:
        return None
    return _SECTION_LOOKUP.get(normalized)


def section_line_budget(name: str) -> int:
    for pattern in SECTION_PATTERNS:
        if pattern.name == name:
            return pattern.line_budget
    return 50


# Source label (lower-cased) -> target field of the engine schema.
FIELD_LABELS: Dict[str, str] = {
    # person
    "vorname": "firstName", "first name": "firstName", "firstname": "firstName",
    "given name": "firstName", "prénom": "firstName",
    "nachname": "lastName", "familienname": "lastName", "last name": "lastName",
    "lastname": "lastName", "surname": "lastName", "nom de famille": "lastName", "nom": "lastName",
    "name": "fullName", "full name": "fullName", "vollständiger name": "fullName",
    "nom complet": "fullName",
    # contact
    "e-mail": "email", "email": "email", "mail": "email", "e-mail-adresse": "email",
    "courriel": "email",
    "telefon": "phone", "tel": "phone", "tel.": "phone", "telefonnummer": "phone",
    "mobile": "phone", "mobil": "phone", "handy": "phone", "natel": "phone",
    "phone": "phone", "téléphone": "phone", "portable": "phone",
    "linkedin": "linkedinUrl", "linkedin profil": "linkedinUrl", "linkedin profile": "linkedinUrl",
    # address
    "adresse": "address", "address": "address", "anschrift": "address",
    "strasse": "street", "straße": "street", "street": "street", "rue": "street",
    "plz": "postalCode", "postleitzahl": "postalCode", "zip": "postalCode",
    "postal code": "postalCode", "code postal": "postalCode", "npa": "postalCode",
    "ort": "city", "stadt": "city", "city": "city", "ville": "city", "localité": "city",
    "kanton": "canton", "canton": "canton",
    "land": "country", "country": "country", "pays": "country",
    # personal attributes
    "nationalität": "nationality", "staatsangehörigkeit": "nationality",
    "staatsbürgerschaft": "nationality", "nationality": "nationality",
    "citizenship": "nationality", "nationalité": "nationality",
    "heimatort": "nationality",
    "geburtsdatum": "birthdate", "geboren": "birthdate", "geb.": "birthdate",
    "date of birth": "birthdate", "birth date": "birthdate", "birthdate": "birthdate",
    "date de naissance": "birthdate", "né le": "birthdate", "jahrgang": "birthdate",
    "aufenthaltsbewilligung": "workPermit", "arbeitsbewilligung": "workPermit",
    "bewilligung": "workPermit", "work permit": "workPermit", "permis de travail": "workPermit",
    "permis de séjour": "workPermit",
    "führerschein": "driversLicense", "fahrausweis": "driversLicense",
    "driving licence": "driversLicense", "driving license": "driversLicense",
    "driver's license": "driversLicense", "drivers license": "driversLicense",
    "permis de conduire": "driversLicense",
}

# Labels that only imply a field; values filled from these are audited as
# implicit mappings and lose their high confidence.
IMPLICIT_LABELS: Dict[str, str] = {
    "ethnicity": "nationality",
    "ethnie": "nationality",
    "herkunft": "nationality",
    "origin": "nationality",
    "origine": "nationality",
    "wohnort": "city",
    "domicile": "city",
}

CONTACT_FIELDS = {"email", "phone", "linkedinUrl", "address", "street", "postalCode", "city",
                  "canton", "country"}

# Hints for segments without a target field: (pattern, suggested field).
UNMAPPED_HINTS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"f(ü|ue)hrerschein|fahrausweis|driving licen[cs]e|permis de conduire", re.I),
     "driversLicense"),
    (re.compile(r"bewilligung|work permit|permis [bcl]\b|ausweis [bcl]\b", re.I), "workPermit"),
    (re.compile(r"geburtsort|birthplace|place of birth|lieu de naissance", re.I), "birthPlace"),
    (re.compile(r"zivilstand|familienstand|marital status|état civil", re.I), "maritalStatus"),
    (re.compile(r"hobbys?|hobbies|interessen|freizeit|loisirs", re.I), "hobbies"),
    (re.compile(r"milit(ä|ae)r|military|armée", re.I), "militaryService"),
    (re.compile(r"verfügbar|available|disponible|eintritt", re.I), "availability"),
]


def find_unmapped_hint(text: str) -> Optional[str]:
    for pattern, field_name in UNMAPPED_HINTS:
        if pattern.search(text):
            return field_name
    return None


EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
EMAIL_STRICT_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
LINKEDIN_PATTERN = re.compile(
    r"(?:https?://)?(?:[a-z]{2,3}\.)?linkedin\.com/in/[\w%\-]+/?", re.IGNORECASE
)
_PHONE_CANDIDATE = re.compile(r"(?:\+|00)?\d[\d\s()./\-]{7,18}\d")
_YEAR_RANGE = re.compile(r"(?:19|20)\d{2}\s*[-–]\s*(?:(?:19|20)\d{2}|heute|present)", re.I)
POSTAL_CITY_PATTERN = re.compile(
    r"\b(?:(?:CH|D|A|F)-)?(\d{4,5})\s+([A-ZÄÖÜ][\wÄÖÜäöüéèàç.\- ]{1,40})"
)
STREET_PATTERN = re.compile(r"^[A-Za-zÄÖÜäöüßéèà.\- ]{3,}\s\d{1,4}[a-zA-Z]?$")

KEY_VALUE_PATTERN = re.compile(r"^\s*([^:\n]{2,40}?)\s*:\s*(.+?)\s*$")
_KEY_HAS_LETTER = re.compile(r"[A-Za-zÄÖÜäöüéèàß]")

_MONTH_YEAR = r"(?:\d{1,2}[./]\s?)?(?:19|20)\d{2}|[A-Za-zÄÖÜäöü]{3,9}\.?\s+(?:19|20)\d{2}"
DATE_RANGE_PATTERN = re.compile(
    rf"(?P<start>{_MONTH_YEAR})\s*(?:-|–|—|bis|to|à)\s*"
    rf"(?P<end>{_MONTH_YEAR}|heute|present|aktuell|current|today|jetzt|aujourd'hui)",
    re.IGNORECASE,
)
SINGLE_DATE_PATTERN = re.compile(
    r"^\s*(?:\d{1,2}[./]){0,2}(?:19|20)\d{2}\s*$|^\s*[A-Za-zÄÖÜäöü]{3,9}\.?\s+(?:19|20)\d{2}\s*$"
)

JOB_TITLE_PATTERN = re.compile(
    r"\b(manager|engineer|developer|entwickler(in)?|ingenieur(in)?|berater(in)?|consultant|"
    r"leiter(in)?|director|direktor(in)?|assistant|assistent(in)?|analyst|architect|"
    r"architekt(in)?|specialist|spezialist(in)?|designer(in)?|administrator|"
    r"sachbearbeiter(in)?|kaufmann|kauffrau|techniker(in)?|projektleiter(in)?|"
    r"head of|ceo|cto|cfo|coo|intern|praktikant(in)?|teamleiter(in)?|software|senior|"
    r"junior|lead|officer|coordinator|koordinator(in)?|fachmann|fachfrau|mitarbeiter(in)?|"
    r"ingénieur|développeur|chef de projet|responsable)\b",
    re.IGNORECASE,
)
COMPANY_PATTERN = re.compile(
    r"\b(ag|gmbh|sa|sàrl|sarl|ltd|llc|inc|corp|corporation|group|gruppe|holding|bank|"
    r"kg|plc|company|solutions|consulting|services|technologies)\b",
    re.IGNORECASE,
)
INSTITUTION_PATTERN = re.compile(
    r"universit(ä|a|é)t|university|hochschule|fachhochschule|\beth\b|\bepfl\b|schule|school|"
    r"college|institut|école|gymnasium|akademie|academy|\bhf\b|\bfh\b",
    re.IGNORECASE,
)

_NAME_CHARACTERS = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿĀ-ž' .\-]+$")
NAME_PARTICLES = {"von", "van", "de", "der", "den", "da", "di", "du", "la", "le", "zu", "dos"}

KNOWN_LANGUAGES = {
    "deutsch", "german", "allemand", "schweizerdeutsch", "swiss german",
    "englisch", "english", "anglais",
    "französisch", "franzoesisch", "french", "français", "francais",
    "italienisch", "italian", "italien", "italiano",
    "spanisch", "spanish", "espagnol", "español",
    "portugiesisch", "portuguese", "portugais",
    "russisch", "russian", "russe",
    "chinesisch", "chinese", "mandarin", "chinois",
    "arabisch", "arabic", "arabe",
    "türkisch", "turkish", "turc",
    "polnisch", "polish", "polonais",
    "niederländisch", "dutch", "néerlandais",
    "albanisch", "albanian", "albanais",
    "serbisch", "serbian", "kroatisch", "croatian", "bosnisch", "bosnian",
    "japanisch", "japanese", "japonais",
    "rätoromanisch", "romansh", "romanche",
    "ungarisch", "hungarian", "griechisch", "greek",
    "tamil", "hindi", "ukrainisch", "ukrainian", "rumänisch", "romanian",
}

_PAGE_NUMBER = re.compile(r"^(?:seite|page)?\s*\d{1,3}(?:\s*(?:/|von|of|sur)\s*\d{1,3})?$", re.I)
_SEPARATOR = re.compile(r"^[\W_]+$")


def find_phone(text: str) -> Optional[str]:
    """Return the first phone-like token in ``text``, skipping date ranges."""
    for match in _PHONE_CANDIDATE.finditer(text):
        candidate = match.group(0).strip()
        digits = sum(ch.isdigit() for ch in candidate)
        if digits < 9 or digits > 15:
            continue
        if _YEAR_RANGE.search(candidate) or DATE_RANGE_PATTERN.search(candidate):
            continue
        return candidate
    return None


def parse_key_value(text: str) -> Optional[Tuple[str, str]]:
    """Split ``"Label: value"``; URLs and clock times are not key/value lines."""
    match = KEY_VALUE_PATTERN.match(text)
    if not match:
        return None
    key, value = match.group(1).strip(), match.group(2).strip()
    if not _KEY_HAS_LETTER.search(key) or value.startswith("//"):
        return None
    if key.lower() in ("http", "https"):
        return None
    return key, value


def is_contact_line(text: str) -> bool:
    if EMAIL_PATTERN.search(text) or LINKEDIN_PATTERN.search(text):
        return True
    if find_phone(text) or POSTAL_CITY_PATTERN.search(text):
        return True
    pair = parse_key_value(text)
    return bool(pair and FIELD_LABELS.get(pair[0].lower()) in CONTACT_FIELDS)


def is_ignorable_line(text: str) -> bool:
    """Page numbers, separators and fragments that carry no information."""
    stripped = text.strip()
    return len(stripped) < 3 or bool(_PAGE_NUMBER.match(stripped) or _SEPARATOR.match(stripped))


def looks_like_job_title(text: str) -> bool:
    return bool(JOB_TITLE_PATTERN.search(text))


def looks_like_company(text: str) -> bool:
    return bool(COMPANY_PATTERN.search(text))


def is_valid_person_name(value: Optional[str], max_length: int = 30) -> bool:
    """
    Plausibility check for a first or last name.

    Rejects digits, characters outside letters/space/hyphen/apostrophe/dot,
    lengths outside ``2..max_length`` and values that read like a job title
    or company name.
    """
    if not value:
        return False
    stripped = value.strip()
    if len(stripped) < 2 or len(stripped) > max_length:
        return False
    if any(ch.isdigit() for ch in stripped):
        return False
    if not _NAME_CHARACTERS.match(stripped):
        return False
    return not (looks_like_job_title(stripped) or looks_like_company(stripped))
