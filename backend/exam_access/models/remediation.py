from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Index

from .base import Base, local_timestamp


class RemediationGrant(Base):
    """Effect of one verified payment. ``source_payment_id`` is unique: one payment, one grant."""
    __tablename__ = "remediation_grants"

    id = Column(Integer, primary_key=True, index=True)
    source_payment_id = Column(String, unique=True, nullable=False, index=True)
    student_id = Column(String, nullable=False)
    exam_id = Column(String, nullable=False)
    kind = Column(String, nullable=False)  # suspension_lift / attempt_reset
    extra_attempts = Column(Integer, default=0, nullable=False)
    extra_incident_allowance = Column(Integer, default=0, nullable=False)
    suspension_id = Column(Integer, ForeignKey("suspensions.id"), nullable=True)
    warning = Column(Text, nullable=True)
    applied_at = Column(DateTime, default=local_timestamp)

    __table_args__ = (
        Index("ix_remediation_grants_pair_kind", "student_id", "exam_id", "kind"),
    )

    def __repr__(self):
        return f"<RemediationGrant {self.kind} payment={self.source_payment_id}>"
