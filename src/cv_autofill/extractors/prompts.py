"""Prompt rendering for the OpenAI-backed extraction engine.

Prompts live as Jinja2 templates next to this module so that wording can
be adjusted without touching engine code.
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

from ..models.enums import DetectedType
from ..models.feedback import FewShotExample
from ..models.packed import PackedInput
from .field_patterns import IMPLICIT_LABELS


# Longest slice of a rejected response echoed back in a repair prompt.
MAX_PREVIOUS_RESPONSE_CHARS = 2000


@dataclass
class ProblemField:
    name: str
    accuracy: float


def format_packed_input(packed: PackedInput) -> str:
    """
    Render packed input as line-addressed text.

    Every line is prefixed with its id (``[p1_l4] ...``) so the engine can
    cite it as evidence.
    """
    parts: List[str] = []

    if packed.header_lines:
        parts.append("## header")
        parts.extend(f"[{line.line_id}] {line.text}" for line in packed.header_lines)

    header_ids = {line.line_id for line in packed.header_lines}
    contact = [line for line in packed.contact_lines if line.line_id not in header_ids]
    if contact:
        parts.append("")
        parts.append("## contact")
        parts.extend(f"[{line.line_id}] {line.text}" for line in contact)

    if packed.kvp:
        parts.append("")
        parts.append("## key/value pairs")
        for pair in packed.kvp:
            ref = f"[{pair.line_id}] " if pair.line_id else ""
            parts.append(f"{ref}{pair.key}: {pair.value}")

    for section in packed.sections:
        if not section.lines:
            continue
        parts.append("")
        parts.append(f"## {section.name}")
        parts.extend(f"[{line.line_id}] {line.text}" for line in section.lines)

    for index, table in enumerate(packed.tables, start=1):
        parts.append("")
        parts.append(f"### Table {index}")
        parts.append(table)

    return "\n".join(parts).strip()


class PromptBuilder:
    """Renders system, user and repair prompts from the bundled templates."""

    def __init__(self, template_dir: Optional[str] = None):
        template_dir = template_dir or os.path.join(os.path.dirname(__file__), "templates")
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def system_prompt(self) -> str:
        template = self.env.get_template("system_prompt.j2")
        return template.render(
            implicit_labels=sorted(IMPLICIT_LABELS.items()),
            detected_types=[t.value for t in DetectedType],
        )

    def user_prompt(
        self,
        packed: PackedInput,
        examples: Optional[List[FewShotExample]] = None,
        field_accuracies: Optional[Dict[str, float]] = None,
        problem_fields: Optional[List[str]] = None,
    ) -> str:
        accuracies = field_accuracies or {}
        problems = [
            ProblemField(name=name, accuracy=accuracies.get(name, 0.0))
            for name in problem_fields or []
        ]
        template = self.env.get_template("user_prompt.j2")
        return template.render(
            examples=examples or [],
            problem_fields=problems,
            content=format_packed_input(packed),
        )

    def retry_prompt(
        self,
        previous_response: str,
        errors: List[str],
        issues: Optional[List[str]] = None,
    ) -> str:
        """Repair prompt sent after a response failed validation."""
        template = self.env.get_template("retry_prompt.j2")
        return template.render(
            errors=errors,
            issues=issues or [],
            previous_response=previous_response[:MAX_PREVIOUS_RESPONSE_CHARS],
        )
