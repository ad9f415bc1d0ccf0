"""Unit tests for tenant dictionaries."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cv_autofill.config import DictionaryConfiguration, StaticSkillCatalog
from cv_autofill.errors import CVError, CVErrorCode
from cv_autofill.feedback.database import DatabaseManager
from cv_autofill.feedback.tenant_dictionary import TenantDictionary


TENANT_A = "11111111-1111-1111-1111-111111111111"
TENANT_B = "22222222-2222-2222-2222-222222222222"


@pytest.fixture
def db_manager():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    manager = DatabaseManager(engine=engine)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def dictionary(db_manager):
    base = DictionaryConfiguration(
        field_synonyms={"wohnort": ["city"]},
        skill_aliases={"k8s": "Kubernetes"},
        skills=["Python", "Kubernetes"],
    )
    return TenantDictionary(db_manager=db_manager, tenant_id=TENANT_A, base_configuration=base)


class TestFieldSynonyms:
    """Tests for tenant field synonyms."""

    def test_add_synonym_is_lower_cased(self, dictionary):
        """Test that labels are stored lower-cased on top of the base layer."""
        dictionary.add_field_synonym("Bürgerort", "nationality", created_by="operator-1")

        synonyms = dictionary.get_field_synonyms()

        assert synonyms["bürgerort"] == ["nationality"]
        assert synonyms["wohnort"] == ["city"]

    def test_re_adding_updates_instead_of_duplicating(self, dictionary):
        """Test that the same label/target pair is stored once."""
        first = dictionary.add_field_synonym("Ausweis", "workPermit", created_by="operator-1")
        second = dictionary.add_field_synonym(" ausweis ", "workPermit", created_by="operator-2", locale="fr")

        assert first == second
        assert dictionary.get_field_synonyms()["ausweis"] == ["workPermit"]

    def test_second_target_makes_label_ambiguous(self, dictionary):
        """Test that several targets accumulate per label."""
        dictionary.add_field_synonym("Ausweis", "workPermit", created_by="operator-1")
        dictionary.add_field_synonym("Ausweis", "driversLicense", created_by="operator-1")

        assert dictionary.get_field_synonyms()["ausweis"] == ["workPermit", "driversLicense"]

    def test_unknown_target_is_rejected(self, dictionary):
        """Test that only profile form fields are accepted."""
        with pytest.raises(CVError) as exc_info:
            dictionary.add_field_synonym("Hobby", "hobbies", created_by="operator-1")

        assert exc_info.value.code == CVErrorCode.INVALID_PAYLOAD

    def test_identity_is_required(self, dictionary):
        """Test that anonymous writes are rejected."""
        with pytest.raises(CVError) as exc_info:
            dictionary.add_field_synonym("Ort", "city", created_by="")

        assert exc_info.value.code == CVErrorCode.AUTH_REQUIRED

    def test_tenants_are_isolated(self, dictionary):
        """Test that tenant rows are invisible to other tenants."""
        dictionary.add_field_synonym("Bürgerort", "nationality", created_by="operator-1")

        other = dictionary.for_tenant(TENANT_B)

        assert "bürgerort" not in other.get_field_synonyms()
        assert other.get_field_synonyms()["wohnort"] == ["city"]


class TestSkillAliases:
    """Tests for tenant skill aliases."""

    def test_tenant_alias_overrides_base(self, dictionary):
        """Test that a tenant alias replaces the configured one."""
        dictionary.add_skill_alias("K8s", "Kubernetes (CKA)", created_by="operator-1")
        dictionary.add_skill_alias("TS", "TypeScript", created_by="operator-1")

        aliases = dictionary.get_skill_aliases()

        assert aliases["k8s"] == "Kubernetes (CKA)"
        assert aliases["ts"] == "TypeScript"

    def test_empty_alias_is_rejected(self, dictionary):
        """Test that alias and skill name are mandatory."""
        with pytest.raises(CVError):
            dictionary.add_skill_alias(" ", "Python", created_by="operator-1")


class TestExtractionConfig:
    """Tests for get_extraction_config."""

    def test_uses_base_skills_without_catalog(self, dictionary):
        """Test the configured skill list as default."""
        config = dictionary.get_extraction_config()

        assert config.system_skills == ["Python", "Kubernetes"]
        assert config.skill_aliases == {"k8s": "Kubernetes"}

    def test_catalog_overrides_skills(self, dictionary):
        """Test that an explicit catalog supplies the skill list."""
        config = dictionary.get_extraction_config(StaticSkillCatalog(["Go"]))

        assert config.system_skills == ["Go"]

    def test_config_carries_tenant(self, dictionary):
        """Test that the run config names the tenant it was built for."""
        assert dictionary.get_extraction_config().tenant_id == TENANT_A
        assert dictionary.for_tenant(TENANT_B).get_extraction_config().tenant_id == TENANT_B
