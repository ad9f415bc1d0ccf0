"""Configuration Manager implementation for the CV Auto-Fill System.

This module loads, validates and serves the static extraction dictionaries:
field synonyms (source label -> target fields), skill aliases (alias ->
canonical skill) and the canonical skill list.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..interfaces.skills import ISkillCatalog
from ..models.draft import TARGET_FIELDS
from .models import ConfigurationError, DictionaryConfiguration, ValidationResult


logger = logging.getLogger(__name__)

Source = Union[str, Path, Dict[str, Any], List[Any]]


class ConfigurationManager:
    """
    Manager for extraction dictionaries.

    Each loader accepts a JSON file path, a dictionary or a list, validates
    every entry and only applies the result when no errors were found.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        self._config_dir = Path(config_dir) if config_dir else None
        self._configuration = DictionaryConfiguration()
        self._is_loaded = False

    @property
    def configuration(self) -> DictionaryConfiguration:
        return self._configuration

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded

    # =========================================================================
    # Field synonyms
    # =========================================================================

    def load_field_synonyms(self, source: Source) -> ValidationResult:
        """
        Load label -> target field synonyms.

        Accepted shapes::

            {"synonyms": [{"label": "Wohnort", "target_field": "city"}]}
            [{"label": "Wohnort", "target_field": "city"}]
            {"Wohnort": "city", "Name": ["firstName", "lastName"]}

        Targets outside the profile form only produce a warning.

        Raises:
            ConfigurationError: If validation fails.
        """
        raw_data = self._parse_source(source)
        entries = self._entries(raw_data, "synonyms", ("label", "target_field"))

        result = ValidationResult(is_valid=True)
        synonyms: Dict[str, List[str]] = {}
        for i, entry in enumerate(entries):
            entry_result, parsed = self._validate_synonym(entry, index=i)
            result = result.merge(entry_result)
            if parsed:
                label, target = parsed
                targets = synonyms.setdefault(label, [])
                if target not in targets:
                    targets.append(target)

        if not result.is_valid:
            raise ConfigurationError("Field synonym validation failed", validation_result=result)

        self._configuration.field_synonyms = synonyms
        self._is_loaded = True
        logger.info(f"Loaded {len(synonyms)} field synonyms")
        return result

    def _validate_synonym(
        self, data: Any, index: int = 0
    ) -> Tuple[ValidationResult, Optional[Tuple[str, str]]]:
        result = ValidationResult(is_valid=True)
        prefix = f"Field synonym [{index}]"

        if not isinstance(data, dict):
            result.add_error(f"{prefix}: entry must be an object")
            return result, None
        label, target = data.get("label"), data.get("target_field")
        if not isinstance(label, str) or not label.strip():
            result.add_error(f"{prefix}: 'label' must be a non-empty string")
        if not isinstance(target, str) or not target.strip():
            result.add_error(f"{prefix}: 'target_field' must be a non-empty string")
        if not result.is_valid:
            return result, None

        if target.strip() not in TARGET_FIELDS:
            result.add_warning(f"{prefix}: '{target}' is not a profile form field")
        return result, (label.strip().lower(), target.strip())

    # =========================================================================
    # Skill aliases
    # =========================================================================

    def load_skill_aliases(self, source: Source) -> ValidationResult:
        """
        Load alias -> canonical skill mappings.

        Accepts ``{"aliases": [{"alias", "skill_name"}]}``, a list of such
        objects, or a plain ``{"k8s": "Kubernetes"}`` mapping.

        Raises:
            ConfigurationError: If validation fails.
        """
        raw_data = self._parse_source(source)
        entries = self._entries(raw_data, "aliases", ("alias", "skill_name"))

        result = ValidationResult(is_valid=True)
        aliases: Dict[str, str] = {}
        for i, entry in enumerate(entries):
            prefix = f"Skill alias [{i}]"
            if not isinstance(entry, dict):
                result.add_error(f"{prefix}: entry must be an object")
                continue
            alias, skill = entry.get("alias"), entry.get("skill_name")
            if not isinstance(alias, str) or not alias.strip():
                result.add_error(f"{prefix}: 'alias' must be a non-empty string")
                continue
            if not isinstance(skill, str) or not skill.strip():
                result.add_error(f"{prefix}: 'skill_name' must be a non-empty string")
                continue
            key = alias.strip().lower()
            if key in aliases and aliases[key] != skill.strip():
                result.add_warning(f"{prefix}: alias '{alias}' redefined")
            aliases[key] = skill.strip()

        if self._configuration.skills:
            known = {s.lower() for s in self._configuration.skills}
            for alias, skill in aliases.items():
                if skill.lower() not in known:
                    result.add_warning(f"Alias '{alias}' points to unknown skill '{skill}'")

        if not result.is_valid:
            raise ConfigurationError("Skill alias validation failed", validation_result=result)

        self._configuration.skill_aliases = aliases
        self._is_loaded = True
        logger.info(f"Loaded {len(aliases)} skill aliases")
        return result

    # =========================================================================
    # Canonical skills
    # =========================================================================

    def load_skills(self, source: Source) -> ValidationResult:
        """
        Load the canonical skill list.

        Accepts ``{"skills": [...]}`` or a list of names or ``{"name": ...}``
        objects. Case-insensitive duplicates are dropped with a warning.

        Raises:
            ConfigurationError: If validation fails.
        """
        raw_data = self._parse_source(source)
        if isinstance(raw_data, dict):
            items = raw_data.get("skills", [])
        else:
            items = raw_data

        result = ValidationResult(is_valid=True)
        if not isinstance(items, list):
            result.add_error("'skills' must be a list")
            raise ConfigurationError("Skill list validation failed", validation_result=result)

        skills: List[str] = []
        seen = set()
        for i, item in enumerate(items):
            name = item.get("name") if isinstance(item, dict) else item
            if not isinstance(name, str) or not name.strip():
                result.add_error(f"Skill [{i}]: name must be a non-empty string")
                continue
            if name.strip().lower() in seen:
                result.add_warning(f"Skill [{i}]: duplicate '{name.strip()}' ignored")
                continue
            seen.add(name.strip().lower())
            skills.append(name.strip())

        if not result.is_valid:
            raise ConfigurationError("Skill list validation failed", validation_result=result)

        self._configuration.skills = skills
        self._is_loaded = True
        logger.info(f"Loaded {len(skills)} canonical skills")
        return result

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _parse_source(self, source: Source) -> Union[Dict[str, Any], List[Any]]:
        """Parse configuration source to raw data."""
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {path}")
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno})")
        return source

    @staticmethod
    def _entries(raw_data: Any, list_key: str, pair_keys: Tuple[str, str]) -> List[Any]:
        """Normalize the accepted input shapes to a list of entry objects."""
        if isinstance(raw_data, list):
            return raw_data
        if isinstance(raw_data, dict):
            if list_key in raw_data:
                entries = raw_data[list_key]
                return entries if isinstance(entries, list) else [entries]
            key_name, value_name = pair_keys
            entries = []
            for key, value in raw_data.items():
                values = value if isinstance(value, list) else [value]
                entries.extend({key_name: key, value_name: v} for v in values)
            return entries
        return [raw_data]

    def load_from_directory(self, config_dir: Union[str, Path]) -> ValidationResult:
        """
        Load all dictionary files from a directory.

        Expects files named:
        - skills.json
        - skill_aliases.json
        - field_synonyms.json

        Missing files are skipped; a file that fails validation is reported
        in the returned result and leaves the previous dictionary in place.
        """
        config_dir = Path(config_dir)
        result = ValidationResult(is_valid=True)

        loaders = [
            ("skills.json", self.load_skills, "Skills"),
            ("skill_aliases.json", self.load_skill_aliases, "Skill aliases"),
            ("field_synonyms.json", self.load_field_synonyms, "Field synonyms"),
        ]
        for file_name, loader, label in loaders:
            path = config_dir / file_name
            if not path.exists():
                continue
            try:
                result = result.merge(loader(path))
            except ConfigurationError as e:
                result.add_error(f"{label} loading failed: {e.message}")
                if e.validation_result:
                    result = result.merge(e.validation_result)

        self._config_dir = config_dir
        return result

    def reset(self) -> None:
        """Reset configuration to empty state."""
        self._configuration = DictionaryConfiguration()
        self._is_loaded = False

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as a dictionary."""
        return {
            "field_synonyms": [
                {"label": label, "target_field": target}
                for label, targets in self._configuration.field_synonyms.items()
                for target in targets
            ],
            "skill_aliases": [
                {"alias": alias, "skill_name": skill}
                for alias, skill in self._configuration.skill_aliases.items()
            ],
            "skills": list(self._configuration.skills),
        }


class StaticSkillCatalog(ISkillCatalog):
    """Skill catalog backed by a fixed list, e.g. the one loaded from ``skills.json``."""

    def __init__(self, skills: Optional[List[str]] = None):
        self._skills = list(skills or [])

    @classmethod
    def from_configuration(cls, manager: ConfigurationManager) -> "StaticSkillCatalog":
        return cls(manager.configuration.skills)

    def get_skill_names(self) -> List[str]:
        return list(self._skills)
