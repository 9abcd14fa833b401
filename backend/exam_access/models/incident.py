from sqlalchemy import Column, String, DateTime, Text, Integer, Index

from .base import Base, local_timestamp


class SecurityIncident(Base):
    __tablename__ = "security_incidents"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String, nullable=False)
    exam_id = Column(String, nullable=False)
    attempt_session_id = Column(String, nullable=False, index=True)
    incident_type = Column(String, nullable=False)
    detail = Column(Text, nullable=True)
    user_agent = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    timestamp = Column(DateTime, default=local_timestamp)

    __table_args__ = (
        Index("ix_security_incidents_pair", "student_id", "exam_id"),
    )

    def __repr__(self):
        return f"<SecurityIncident {self.incident_type} for session {self.attempt_session_id}>"
