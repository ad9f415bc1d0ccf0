"""
Unit tests for the Configuration Manager.

Tests configuration loading, validation and the application settings.
"""

import json
import tempfile
from pathlib import Path

import pytest

from cv_autofill.config import (
    AppSettings,
    ConfigurationError,
    ConfigurationManager,
    StaticSkillCatalog,
)


class TestFieldSynonymLoading:
    """Tests for field synonym loading and validation."""

    def test_load_from_wrapped_list(self):
        """Test loading synonyms from a {"synonyms": [...]} document."""
        manager = ConfigurationManager()

        result = manager.load_field_synonyms({
            "synonyms": [
                {"label": "Wohnort", "target_field": "city"},
                {"label": "Heimatort", "target_field": "nationality"},
            ]
        })

        assert result.is_valid
        assert manager.is_loaded
        assert manager.configuration.field_synonyms == {
            "wohnort": ["city"],
            "heimatort": ["nationality"],
        }

    def test_load_from_plain_mapping(self):
        """Test loading synonyms from a label -> target mapping."""
        manager = ConfigurationManager()

        manager.load_field_synonyms({"Name": ["firstName", "lastName"], "Ort": "city"})

        synonyms = manager.configuration.field_synonyms
        assert synonyms["name"] == ["firstName", "lastName"]
        assert synonyms["ort"] == ["city"]

    def test_duplicate_targets_are_merged(self):
        """Test that repeated label/target pairs are stored once."""
        manager = ConfigurationManager()

        manager.load_field_synonyms([
            {"label": "Ort", "target_field": "city"},
            {"label": "ort ", "target_field": "city"},
        ])

        assert manager.configuration.field_synonyms == {"ort": ["city"]}

    def test_unknown_target_is_a_warning(self):
        """Test that a target outside the profile form only warns."""
        manager = ConfigurationManager()

        result = manager.load_field_synonyms([{"label": "Hobby", "target_field": "hobbies"}])

        assert result.is_valid
        assert any("hobbies" in w for w in result.warnings)

    def test_empty_label_fails(self):
        """Test that an empty label is rejected."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_field_synonyms([{"label": " ", "target_field": "city"}])

        assert not exc_info.value.validation_result.is_valid
        assert not manager.is_loaded

    def test_non_object_entry_fails(self):
        """Test that list entries must be objects."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_field_synonyms(["Wohnort"])


class TestSkillLoading:
    """Tests for skill list and alias loading."""

    def test_load_skills_drops_duplicates(self):
        """Test that case-insensitive duplicates are ignored with a warning."""
        manager = ConfigurationManager()

        result = manager.load_skills(["Python", {"name": "SQL"}, "python"])

        assert manager.configuration.skills == ["Python", "SQL"]
        assert len(result.warnings) == 1

    def test_load_skills_rejects_empty_name(self):
        """Test that an empty skill name fails validation."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_skills({"skills": ["Python", ""]})

    def test_load_skills_requires_list(self):
        """Test that a non-list skills value fails."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_skills({"skills": "Python"})

    def test_load_aliases(self):
        """Test loading aliases from a plain mapping."""
        manager = ConfigurationManager()

        result = manager.load_skill_aliases({"K8s": "Kubernetes", "Postgres": "PostgreSQL"})

        assert result.is_valid
        assert manager.configuration.skill_aliases == {
            "k8s": "Kubernetes",
            "postgres": "PostgreSQL",
        }

    def test_alias_to_unknown_skill_warns(self):
        """Test that an alias pointing outside the skill list warns."""
        manager = ConfigurationManager()
        manager.load_skills(["Kubernetes"])

        result = manager.load_skill_aliases([
            {"alias": "k8s", "skill_name": "Kubernetes"},
            {"alias": "js", "skill_name": "JavaScript"},
        ])

        assert result.is_valid
        assert len(result.warnings) == 1
        assert "JavaScript" in result.warnings[0]

    def test_alias_without_skill_fails(self):
        """Test that a missing skill_name is rejected."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError):
            manager.load_skill_aliases({"aliases": [{"alias": "k8s"}]})


class TestFileLoading:
    """Tests for loading from files and directories."""

    def test_load_from_json_file(self):
        """Test loading synonyms from a JSON file."""
        manager = ConfigurationManager()

        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "synonyms.json"
            path.write_text(json.dumps({"Wohnort": "city"}), encoding="utf-8")

            result = manager.load_field_synonyms(path)

        assert result.is_valid
        assert manager.configuration.field_synonyms == {"wohnort": ["city"]}

    def test_missing_file_fails(self):
        """Test that a missing file raises ConfigurationError."""
        manager = ConfigurationManager()

        with pytest.raises(ConfigurationError) as exc_info:
            manager.load_skills("/nonexistent/skills.json")

        assert "not found" in exc_info.value.message

    def test_invalid_json_fails(self):
        """Test that malformed JSON raises ConfigurationError."""
        manager = ConfigurationManager()

        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "skills.json"
            path.write_text("{not json", encoding="utf-8")

            with pytest.raises(ConfigurationError) as exc_info:
                manager.load_skills(str(path))

        assert "Invalid JSON" in exc_info.value.message

    def test_load_from_directory(self):
        """Test loading all dictionaries from a directory."""
        manager = ConfigurationManager()

        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir)
            (base / "skills.json").write_text(json.dumps(["Python", "Kubernetes"]), encoding="utf-8")
            (base / "skill_aliases.json").write_text(json.dumps({"k8s": "Kubernetes"}), encoding="utf-8")
            (base / "field_synonyms.json").write_text(json.dumps({"Wohnort": "city"}), encoding="utf-8")

            result = manager.load_from_directory(temp_dir)

        assert result.is_valid
        assert manager.configuration.skills == ["Python", "Kubernetes"]
        assert manager.configuration.skill_aliases == {"k8s": "Kubernetes"}
        assert manager.configuration.field_synonyms == {"wohnort": ["city"]}

    def test_directory_with_invalid_file_reports_error(self):
        """Test that a broken file is reported and the others still load."""
        manager = ConfigurationManager()

        with tempfile.TemporaryDirectory() as temp_dir:
            base = Path(temp_dir)
            (base / "skills.json").write_text(json.dumps(["Python"]), encoding="utf-8")
            (base / "field_synonyms.json").write_text(json.dumps([{"label": ""}]), encoding="utf-8")

            result = manager.load_from_directory(base)

        assert not result.is_valid
        assert any("Field synonyms loading failed" in e for e in result.errors)
        assert manager.configuration.skills == ["Python"]
        assert manager.configuration.field_synonyms == {}

    def test_to_dict_and_reset(self):
        """Test exporting and resetting the configuration."""
        manager = ConfigurationManager()
        manager.load_skills(["Python"])
        manager.load_skill_aliases({"py": "Python"})
        manager.load_field_synonyms({"Name": ["firstName", "lastName"]})

        exported = manager.to_dict()

        assert exported["skills"] == ["Python"]
        assert exported["skill_aliases"] == [{"alias": "py", "skill_name": "Python"}]
        assert len(exported["field_synonyms"]) == 2

        manager.reset()

        assert not manager.is_loaded
        assert manager.to_dict() == {"field_synonyms": [], "skill_aliases": [], "skills": []}


class TestStaticSkillCatalog:
    """Tests for StaticSkillCatalog."""

    def test_from_configuration(self):
        """Test that the catalog serves the loaded skill list."""
        manager = ConfigurationManager()
        manager.load_skills(["Python", "SQL"])

        catalog = StaticSkillCatalog.from_configuration(manager)

        assert catalog.get_skill_names() == ["Python", "SQL"]

    def test_returns_copy(self):
        """Test that callers cannot mutate the catalog."""
        catalog = StaticSkillCatalog(["Python"])

        catalog.get_skill_names().append("Go")

        assert catalog.get_skill_names() == ["Python"]


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults_from_empty_environment(self):
        """Test that an empty environment yields the defaults."""
        settings = AppSettings.from_env({})

        assert settings.max_file_size_bytes == 10 * 1024 * 1024
        assert settings.max_page_count == 20
        assert settings.llm_enabled is False
        assert settings.llm_provider == "azure"
        assert settings.database_url is None

    def test_values_are_parsed(self):
        """Test integer and boolean parsing."""
        settings = AppSettings.from_env({
            "CV_MAX_FILE_SIZE_MB": "5",
            "CV_LLM_ENABLED": "yes",
            "CV_LLM_PROVIDER": " OpenAI ",
            "OPENAI_API_KEY": "sk-test",
            "CV_DAILY_QUOTA": "7",
        })

        assert settings.max_file_size_mb == 5
        assert settings.llm_enabled is True
        assert settings.llm_provider == "openai"
        assert settings.llm_configured is True
        assert settings.llm_model == "gpt-4o-mini"
        assert settings.daily_quota == 7

    def test_invalid_integer_fails(self):
        """Test that a non-numeric value raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            AppSettings.from_env({"CV_MAX_PAGE_COUNT": "twenty"})

    def test_invalid_values_fail_validation(self):
        """Test that non-positive limits and unknown providers are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            AppSettings.from_env({"CV_JOB_WORKERS": "0", "CV_LLM_PROVIDER": "local"})

        errors = exc_info.value.validation_result.errors
        assert len(errors) == 2

    def test_azure_requires_all_credentials(self):
        """Test the Azure configuration check."""
        partial = AppSettings(azure_openai_endpoint="https://example.openai.azure.com", azure_openai_key="k")
        complete = AppSettings(
            azure_openai_endpoint="https://example.openai.azure.com",
            azure_openai_key="k",
            azure_openai_deployment="cv-extract",
        )

        assert partial.llm_configured is False
        assert complete.llm_configured is True
        assert complete.llm_model == "cv-extract"

    def test_enabled_without_credentials_warns(self):
        """Test that an unconfigured LLM only produces a warning."""
        result = AppSettings(llm_enabled=True).validate()

        assert result.is_valid
        assert result.warnings
