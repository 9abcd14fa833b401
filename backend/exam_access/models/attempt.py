from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Boolean, Integer, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from .base import Base, local_timestamp


class AttemptSession(Base):
    __tablename__ = "attempt_sessions"

    id = Column(String, primary_key=True, index=True)
    student_id = Column(String, nullable=False)
    exam_id = Column(String, nullable=False)
    status = Column(String, default="in_progress", nullable=False)  # in_progress / submitted
    started_at = Column(DateTime, default=local_timestamp)
    ended_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_attempt_sessions_pair_status", "student_id", "exam_id", "status"),
        # one open session per pair
        Index(
            "uq_attempt_sessions_open_pair",
            "student_id",
            "exam_id",
            unique=True,
            postgresql_where=status == "in_progress",
            sqlite_where=status == "in_progress",
        ),
    )

    def __repr__(self):
        return f"<AttemptSession {self.id} {self.status}>"


class AttemptRecord(Base):
    """One completed submission. Never updated after insert."""
    __tablename__ = "attempt_records"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, nullable=False)
    exam_id = Column(String, nullable=False)
    attempt_session_id = Column(String, ForeignKey("attempt_sessions.id"), nullable=True)
    attempt_number = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    score = Column(Float, nullable=True)
    completed_at = Column(DateTime, default=local_timestamp)

    attempt_session = relationship("AttemptSession")

    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", "attempt_number", name="uq_attempt_records_pair_number"),
        Index("ix_attempt_records_pair", "student_id", "exam_id"),
        # one record per submitted session
        Index(
            "uq_attempt_records_session",
            "attempt_session_id",
            unique=True,
            postgresql_where=attempt_session_id.isnot(None),
            sqlite_where=attempt_session_id.isnot(None),
        ),
    )

    def __repr__(self):
        return f"<AttemptRecord {self.student_id}/{self.exam_id} #{self.attempt_number}>"
