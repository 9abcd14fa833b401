from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Boolean, Integer, Table, Index
from sqlalchemy.orm import relationship

from .base import Base, local_timestamp


suspension_incidents = Table(
    "suspension_incidents",
    Base.metadata,
    Column("suspension_id", Integer, ForeignKey("suspensions.id"), primary_key=True),
    Column("incident_id", Integer, ForeignKey("security_incidents.id"), primary_key=True),
)


class Suspension(Base):
    __tablename__ = "suspensions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, nullable=False)
    exam_id = Column(String, nullable=False)
    attempt_session_id = Column(String, nullable=True)
    reason = Column(Text, nullable=False)
    suspension_time = Column(DateTime, default=local_timestamp)
    removed = Column(Boolean, default=False, nullable=False)
    removed_at = Column(DateTime, nullable=True)
    removed_by = Column(String, nullable=True)  # "admin:<id>" or "payment:<id>"

    # snapshot of the incidents counted when the suspension opened, in arrival order
    incidents = relationship(
        "SecurityIncident",
        secondary=suspension_incidents,
        order_by="SecurityIncident.id",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_suspensions_pair", "student_id", "exam_id"),
        # at most one open suspension per pair
        Index(
            "uq_suspensions_active_pair",
            "student_id",
            "exam_id",
            unique=True,
            postgresql_where=removed.is_(False),
            sqlite_where=removed.is_(False),
        ),
    )

    @property
    def incident_ids(self) -> list[int]:
        return [incident.id for incident in self.incidents]

    def __repr__(self):
        state = "removed" if self.removed else "active"
        return f"<Suspension {self.id} {self.student_id}/{self.exam_id} {state}>"
