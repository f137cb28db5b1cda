"""Time-bounded placement of a program profile in a batch."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now

REGISTERED = "REGISTERED"
ENROLLED = "ENROLLED"
ON_LEAVE = "ON_LEAVE"
WITHDRAWN = "WITHDRAWN"
COMPLETED = "COMPLETED"
SUSPENDED = "SUSPENDED"
ENROLLMENT_STATUSES = (REGISTERED, ENROLLED, ON_LEAVE, WITHDRAWN, COMPLETED, SUSPENDED)

_ACTIVE_ENROLLMENT = text("end_date IS NULL AND status != 'WITHDRAWN'")


class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    program_profile_id = Column(Integer, ForeignKey("program_profiles.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=REGISTERED)
    start_date = Column(DateTime, nullable=False, default=utc_now)
    end_date = Column(DateTime, nullable=True)
    reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index(
            "uq_enrollment_one_active",
            "program_profile_id",
            unique=True,
            sqlite_where=_ACTIVE_ENROLLMENT,
            postgresql_where=_ACTIVE_ENROLLMENT,
        ),
    )

    program_profile = relationship("ProgramProfile", back_populates="enrollments")
    batch = relationship("Batch", back_populates="enrollments")
