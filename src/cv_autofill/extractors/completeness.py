"""Completeness check: which input lines did an extraction account for.

A line is accounted for when it is cited as evidence, referenced by an
unmapped segment, or ignorable (page numbers, separators, document titles,
very short lines).
"""

import logging
import re
from typing import Iterable, List, Set

from ..models.extraction import CompletenessReport, Evidence, ExtractionResult
from ..models.packed import PackedInput
from .field_patterns import is_ignorable_line


logger = logging.getLogger(__name__)

_TITLE_LINE = re.compile(r"^(?:curriculum\s*vitae|lebenslauf|r[ée]sum[ée]|cv)$", re.I)


def _is_ignorable(text: str) -> bool:
    stripped = text.strip()
    return is_ignorable_line(stripped) or bool(_TITLE_LINE.match(stripped))


def _evidence_ids(result: ExtractionResult) -> Set[str]:
    data = result.extracted_data
    if data is None:
        return set()

    groups: List[Iterable[Evidence]] = [data.person.evidence, data.contact.evidence]
    if data.contact.address is not None:
        groups.append(data.contact.address.evidence)
    groups.extend(data.attribute_evidence.values())
    for entries in (data.languages, data.skills, data.experience, data.education):
        groups.extend(entry.evidence for entry in entries)

    return {ev.line_id for group in groups for ev in group if ev.line_id}


def build_completeness_report(packed: PackedInput, result: ExtractionResult) -> CompletenessReport:
    """Compare the input line ids with the lines the result accounts for."""
    lines = list(packed.iter_lines())
    extracted = _evidence_ids(result)
    unmapped = {s.line_reference for s in result.unmapped_segments if s.line_reference}
    ignored = [line.line_id for line in lines if _is_ignorable(line.text)]

    accounted = extracted | unmapped | set(ignored)
    missing = [line.line_id for line in lines if line.line_id not in accounted]

    significant = len(lines) - len(ignored)
    if significant > 0:
        percentage = round((significant - len(missing)) / significant * 100, 1)
    else:
        percentage = 100.0

    report = CompletenessReport(
        total_input_lines=len(lines),
        extracted_line_ids=sorted(extracted),
        unmapped_line_ids=sorted(unmapped),
        ignored_line_ids=ignored,
        missing_line_ids=missing,
        completeness_percentage=percentage,
    )
    logger.debug(
        f"Completeness {report.completeness_percentage}% "
        f"({len(missing)} of {len(lines)} lines unaccounted)"
    )
    return report
