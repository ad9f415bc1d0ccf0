"""Packed engine input: a bounded, line-addressed view of a résumé."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass
class PackedLine:
    line_id: str
    page: int
    text: str
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"lineId": self.line_id, "page": self.page, "text": self.text}
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data


@dataclass
class PackedKeyValue:
    key: str
    value: str
    page: int
    line_id: Optional[str] = None
    confidence: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "page": self.page,
            "lineId": self.line_id,
            "confidence": self.confidence,
        }


@dataclass
class PackedSection:
    name: str
    lines: List[PackedLine] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "lines": [l.to_dict() for l in self.lines]}


@dataclass
class PackedInput:
    """
    Input handed to an extraction engine.

    The same line may appear in ``header_lines``, ``contact_lines`` and a
    section; line ids are stable across those views.
    """
    header_lines: List[PackedLine] = field(default_factory=list)
    contact_lines: List[PackedLine] = field(default_factory=list)
    kvp: List[PackedKeyValue] = field(default_factory=list)
    sections: List[PackedSection] = field(default_factory=list)
    tables: List[str] = field(default_factory=list)
    detected_languages: List[str] = field(default_factory=list)
    total_pages: int = 1
    estimated_tokens: int = 0

    def iter_lines(self) -> Iterator[PackedLine]:
        """Yield every distinct line once, in first-seen order."""
        seen = set()
        for line in self.header_lines + self.contact_lines:
            if line.line_id not in seen:
                seen.add(line.line_id)
                yield line
        for section in self.sections:
            for line in section.lines:
                if line.line_id not in seen:
                    seen.add(line.line_id)
                    yield line

    def get_section(self, name: str) -> Optional[PackedSection]:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    @property
    def plain_text(self) -> str:
        return "\n".join(line.text for line in self.iter_lines())

    @property
    def is_empty(self) -> bool:
        return not self.header_lines and not self.sections

    def to_dict(self) -> Dict[str, Any]:
        return {
            "header_lines": [l.to_dict() for l in self.header_lines],
            "contact_lines": [l.to_dict() for l in self.contact_lines],
            "kvp": [k.to_dict() for k in self.kvp],
            "sections": [s.to_dict() for s in self.sections],
            "tables": list(self.tables),
            "detected_languages": list(self.detected_languages),
            "total_pages": self.total_pages,
            "estimated_tokens": self.estimated_tokens,
        }
