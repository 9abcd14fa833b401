import logging
from typing import Optional, Dict, Any, Mapping

from sqlalchemy.orm import Session

from ..core.cache import CacheManager, cache as default_cache
from ..core.config import settings
from ..core.database import transaction
from ..core.errors import PolicyIncomplete, BatchNotFound
from ..models.policy import GlobalSetting, Batch, StudentBatch
from ..schemas.policy import (
    Policy,
    PolicyOverride,
    PolicyOverrideUpdate,
    ResolvedPolicy,
    BatchCreate,
    POLICY_FIELDS,
    POLICY_SETTING_KEYS,
    POLICY_SETTING_DESCRIPTIONS,
)

logger = logging.getLogger(__name__)

POLICY_VERSION_KEY = "policy.version"


def configured_defaults() -> Dict[str, Any]:
    return {
        "max_attempts": settings.default_max_attempts,
        "max_security_incidents": settings.default_max_security_incidents,
        "enable_auto_suspend": settings.default_enable_auto_suspend,
        "additional_security_incidents_after_removal": settings.default_additional_security_incidents_after_removal,
        "additional_attempts_after_payment": settings.default_additional_attempts_after_payment,
    }


def merge_policy(defaults: Mapping[str, Any], override: Optional[Mapping[str, Any]] = None) -> Policy:
    """Field by field: a set override wins, otherwise the default is used."""
    override = override or {}
    merged = {}
    for field in POLICY_FIELDS:
        value = override.get(field)
        merged[field] = value if value is not None else defaults.get(field)

    missing = [field for field, value in merged.items() if value is None]
    if missing:
        logger.critical(f"Resolved policy is missing fields {missing}")
        raise PolicyIncomplete("Resolved policy is incomplete", {"missing": missing})
    return Policy(**merged)


def batch_override(batch: Optional[Batch]) -> Dict[str, Any]:
    if batch is None:
        return {}
    return {field: getattr(batch, field) for field in POLICY_FIELDS}


class PolicyResolver:
    def __init__(self, db: Session, cache: Optional[CacheManager] = None):
        self.db = db
        self.cache = cache if cache is not None else default_cache

    def global_defaults(self) -> Dict[str, Any]:
        """Stored global settings layered over the configured defaults."""
        defaults = configured_defaults()
        keys = {key: field for field, key in POLICY_SETTING_KEYS.items()}
        rows = self.db.query(GlobalSetting).filter(GlobalSetting.key.in_(list(keys))).all()
        for row in rows:
            if row.value is not None:
                defaults[keys[row.key]] = row.value
        return defaults

    def global_version(self) -> int:
        row = self.db.query(GlobalSetting).filter(GlobalSetting.key == POLICY_VERSION_KEY).first()
        return int(row.value) if row else 0

    def batch_for_student(self, student_id: str) -> Optional[int]:
        assignment = self.db.query(StudentBatch).filter(StudentBatch.student_id == student_id).first()
        return assignment.batch_id if assignment else None

    @staticmethod
    def cache_key(exam_id: str, batch_id: Optional[int], version: str) -> str:
        return f"policy:{exam_id}:{batch_id if batch_id is not None else 'none'}:{version}"

    def resolve_with_version(self, exam_id: str, batch_id: Optional[int] = None) -> ResolvedPolicy:
        # token first, values second: a concurrent write can only be cached under a stale token
        batch = self.db.get(Batch, batch_id) if batch_id is not None else None
        version = f"g{self.global_version()}-b{batch.policy_version if batch else 0}"

        key = self.cache_key(exam_id, batch_id, version)
        cached = self.cache.get(key)
        if cached is not None:
            return ResolvedPolicy(**cached)

        policy = merge_policy(self.global_defaults(), batch_override(batch))
        resolved = ResolvedPolicy(exam_id=exam_id, batch_id=batch_id, version=version, policy=policy)

        self.cache.set(key, resolved.model_dump())
        return resolved

    def resolve(self, exam_id: str, batch_id: Optional[int] = None) -> Policy:
        return self.resolve_with_version(exam_id, batch_id).policy

    def resolve_for_student(self, student_id: str, exam_id: str) -> Policy:
        return self.resolve(exam_id, self.batch_for_student(student_id))


class PolicyAdminService:
    """Configuration surface: global defaults, batch overrides and batch membership."""

    def __init__(self, db: Session, cache: Optional[CacheManager] = None):
        self.db = db
        self.cache = cache if cache is not None else default_cache

    def initialize_default_settings(self) -> int:
        """Seed missing global settings from configuration. Existing keys are left alone."""
        created = 0
        with transaction(self.db):
            defaults = configured_defaults()
            for field, key in POLICY_SETTING_KEYS.items():
                if self.db.query(GlobalSetting).filter(GlobalSetting.key == key).first():
                    continue
                logger.info(f"Creating default setting for {key}: {defaults[field]!r}")
                self.db.add(GlobalSetting(
                    key=key,
                    value=defaults[field],
                    description=POLICY_SETTING_DESCRIPTIONS[field],
                ))
                created += 1
        return created

    def get_global_defaults(self) -> Policy:
        return merge_policy(PolicyResolver(self.db, self.cache).global_defaults())

    def update_global_defaults(self, update: PolicyOverride, updated_by: Optional[str] = None) -> Policy:
        values = update.model_dump(exclude_none=True)
        with transaction(self.db):
            for field, value in values.items():
                key = POLICY_SETTING_KEYS[field]
                row = self.db.query(GlobalSetting).filter(GlobalSetting.key == key).first()
                if row is None:
                    row = GlobalSetting(key=key, description=POLICY_SETTING_DESCRIPTIONS[field])
                    self.db.add(row)
                row.value = value
                row.updated_by = updated_by
            self._bump_global_version(updated_by)

        self.cache.delete_pattern("policy:*")
        logger.info(f"Global policy defaults updated by {updated_by}: {values}")
        return self.get_global_defaults()

    def _bump_global_version(self, updated_by: Optional[str]) -> None:
        row = self.db.query(GlobalSetting).filter(GlobalSetting.key == POLICY_VERSION_KEY).first()
        if row is None:
            row = GlobalSetting(key=POLICY_VERSION_KEY, value=0, description="Global policy version token")
            self.db.add(row)
        row.value = int(row.value or 0) + 1
        row.updated_by = updated_by

    def get_batch(self, batch_id: int) -> Batch:
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise BatchNotFound(f"Batch {batch_id} not found", {"batch_id": batch_id})
        return batch

    def create_batch(self, data: BatchCreate) -> Batch:
        with transaction(self.db):
            batch = Batch(
                name=data.name,
                description=data.description,
                **data.overrides.model_dump(),
            )
            self.db.add(batch)
        self.db.refresh(batch)
        logger.info(f"Batch {batch.id} created with overrides {data.overrides.model_dump(exclude_none=True)}")
        return batch

    def update_batch_policy(self, batch_id: int, update: PolicyOverrideUpdate) -> Batch:
        unknown = [field for field in update.clear if field not in POLICY_FIELDS]
        if unknown:
            raise ValueError(f"Unknown policy fields: {unknown}")

        with transaction(self.db):
            batch = self.get_batch(batch_id)
            for field, value in update.model_dump(exclude_none=True, exclude={"clear"}).items():
                setattr(batch, field, value)
            for field in update.clear:
                setattr(batch, field, None)
            batch.policy_version = (batch.policy_version or 0) + 1
        self.db.refresh(batch)

        self.cache.delete_pattern(f"policy:*:{batch_id}:*")
        logger.info(f"Batch {batch_id} policy updated to version {batch.policy_version}")
        return batch

    def assign_student(self, student_id: str, batch_id: int) -> StudentBatch:
        with transaction(self.db):
            self.get_batch(batch_id)
            assignment = self.db.get(StudentBatch, student_id)
            if assignment is None:
                assignment = StudentBatch(student_id=student_id, batch_id=batch_id)
                self.db.add(assignment)
            else:
                assignment.batch_id = batch_id
        self.db.refresh(assignment)
        return assignment
