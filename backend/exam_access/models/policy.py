from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Integer, JSON, Text
from sqlalchemy.orm import relationship

from .base import Base, local_timestamp


class GlobalSetting(Base):
    """Admin-editable key/value defaults, e.g. ``policy.maxAttempts``."""
    __tablename__ = "global_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(JSON, nullable=False)
    description = Column(Text, nullable=False)
    updated_by = Column(String, nullable=True)
    updated_at = Column(DateTime, default=local_timestamp, onupdate=local_timestamp)

    def __repr__(self):
        return f"<GlobalSetting {self.key}={self.value!r}>"


class Batch(Base):
    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)

    # NULL means "not overridden, use the global default"
    max_attempts = Column(Integer, nullable=True)
    max_security_incidents = Column(Integer, nullable=True)
    enable_auto_suspend = Column(Boolean, nullable=True)
    additional_security_incidents_after_removal = Column(Integer, nullable=True)
    additional_attempts_after_payment = Column(Integer, nullable=True)

    policy_version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=local_timestamp)
    updated_at = Column(DateTime, default=local_timestamp, onupdate=local_timestamp)

    students = relationship("StudentBatch", back_populates="batch")

    def __repr__(self):
        return f"<Batch {self.id} {self.name}>"


class StudentBatch(Base):
    __tablename__ = "student_batches"

    student_id = Column(String, primary_key=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=local_timestamp)

    batch = relationship("Batch", back_populates="students")
