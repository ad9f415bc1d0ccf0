"""Tenant-specific field synonyms and skill aliases."""

import logging
from typing import Dict, List, Optional

from sqlalchemy import and_, select

from ..config.models import DEFAULT_TENANT_ID, DictionaryConfiguration
from ..errors import CVError, CVErrorCode
from ..interfaces.skills import ISkillCatalog
from ..models.draft import TARGET_FIELDS
from ..models.feedback import ExtractionConfig
from .database import DatabaseManager
from .models import TenantFieldSynonymModel, TenantSkillAliasModel


logger = logging.getLogger(__name__)


class TenantDictionary:
    """
    Per-tenant extraction vocabulary.

    Labels and aliases are stored lower-cased; adding an existing entry
    updates it instead of creating a duplicate. Entries loaded from
    configuration files form the base layer and tenant rows override them.
    """

    def __init__(
        self,
        db_manager: Optional[DatabaseManager] = None,
        database_url: Optional[str] = None,
        tenant_id: str = DEFAULT_TENANT_ID,
        base_configuration: Optional[DictionaryConfiguration] = None,
    ):
        if db_manager is not None:
            self._db_manager = db_manager
            self._owns_db_manager = False
        else:
            self._db_manager = DatabaseManager(database_url=database_url)
            self._owns_db_manager = True
        self._tenant_id = tenant_id or DEFAULT_TENANT_ID
        self._base = base_configuration or DictionaryConfiguration()

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def for_tenant(self, tenant_id: Optional[str]) -> "TenantDictionary":
        tenant_id = tenant_id or DEFAULT_TENANT_ID
        if tenant_id == self._tenant_id:
            return self
        return TenantDictionary(
            db_manager=self._db_manager,
            tenant_id=tenant_id,
            base_configuration=self._base,
        )

    @staticmethod
    def _check_identity(created_by: Optional[str]) -> str:
        if not created_by or not created_by.strip():
            raise CVError(CVErrorCode.AUTH_REQUIRED, "Dictionary write without operator identity")
        return created_by.strip()

    def add_field_synonym(
        self,
        label: str,
        target_field: str,
        created_by: Optional[str],
        locale: str = "de",
    ) -> str:
        """
        Map a source label to a target field for this tenant.

        Returns:
            Id of the created or updated row.

        Raises:
            CVError: AUTH_REQUIRED without identity, INVALID_PAYLOAD for an
                empty label or an unknown target field.
        """
        created_by = self._check_identity(created_by)
        key = (label or "").strip().lower()
        if not key:
            raise CVError(CVErrorCode.INVALID_PAYLOAD, "Empty synonym label")
        if target_field not in TARGET_FIELDS:
            raise CVError(CVErrorCode.INVALID_PAYLOAD, f"Unknown target field: {target_field}")

        with self._db_manager.get_session() as session:
            model = session.execute(
                select(TenantFieldSynonymModel).where(
                    and_(
                        TenantFieldSynonymModel.tenant_id == self._tenant_id,
                        TenantFieldSynonymModel.label == key,
                        TenantFieldSynonymModel.target_field == target_field,
                    )
                )
            ).scalar_one_or_none()
            if model is None:
                model = TenantFieldSynonymModel(
                    tenant_id=self._tenant_id,
                    label=key,
                    target_field=target_field,
                )
                session.add(model)
            model.locale = locale
            model.created_by = created_by
            session.flush()
            synonym_id = model.id

        logger.info(f"Stored field synonym '{key}' -> {target_field} for tenant {self._tenant_id}")
        return synonym_id

    def add_skill_alias(self, alias: str, skill_name: str, created_by: Optional[str]) -> str:
        created_by = self._check_identity(created_by)
        key = (alias or "").strip().lower()
        skill_name = (skill_name or "").strip()
        if not key or not skill_name:
            raise CVError(CVErrorCode.INVALID_PAYLOAD, "Alias and skill name are required")

        with self._db_manager.get_session() as session:
            model = session.execute(
                select(TenantSkillAliasModel).where(
                    and_(
                        TenantSkillAliasModel.tenant_id == self._tenant_id,
                        TenantSkillAliasModel.alias == key,
                    )
                )
            ).scalar_one_or_none()
            if model is None:
                model = TenantSkillAliasModel(tenant_id=self._tenant_id, alias=key)
                session.add(model)
            model.skill_name = skill_name
            model.created_by = created_by
            session.flush()
            alias_id = model.id

        logger.info(f"Stored skill alias '{key}' -> {skill_name} for tenant {self._tenant_id}")
        return alias_id

    def get_field_synonyms(self) -> Dict[str, List[str]]:
        """Label -> target fields, configuration entries first."""
        synonyms: Dict[str, List[str]] = {
            label: list(targets) for label, targets in self._base.field_synonyms.items()
        }
        with self._db_manager.get_session() as session:
            query = (
                select(TenantFieldSynonymModel)
                .where(TenantFieldSynonymModel.tenant_id == self._tenant_id)
                .order_by(TenantFieldSynonymModel.created_at)
            )
            for model in session.execute(query).scalars().all():
                targets = synonyms.setdefault(model.label, [])
                if model.target_field not in targets:
                    targets.append(model.target_field)
        return synonyms

    def get_skill_aliases(self) -> Dict[str, str]:
        aliases = dict(self._base.skill_aliases)
        with self._db_manager.get_session() as session:
            query = select(TenantSkillAliasModel).where(
                TenantSkillAliasModel.tenant_id == self._tenant_id
            )
            for model in session.execute(query).scalars().all():
                aliases[model.alias] = model.skill_name
        return aliases

    def get_extraction_config(self, skill_catalog: Optional[ISkillCatalog] = None) -> ExtractionConfig:
        """Dictionaries for one extraction run of this tenant."""
        system_skills = skill_catalog.get_skill_names() if skill_catalog else list(self._base.skills)
        return ExtractionConfig(
            field_synonyms=self.get_field_synonyms(),
            skill_aliases=self.get_skill_aliases(),
            system_skills=list(system_skills),
            tenant_id=self._tenant_id,
        )

    def close(self) -> None:
        if self._owns_db_manager:
            self._db_manager.close()
