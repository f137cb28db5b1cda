"""Attendance mark for one student in one session."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now

PRESENT = "PRESENT"
ABSENT = "ABSENT"
LATE = "LATE"
EXCUSED = "EXCUSED"
UNEXCUSED_ABSENT = "UNEXCUSED_ABSENT"
ATTENDANCE_STATUSES = (PRESENT, ABSENT, LATE, EXCUSED, UNEXCUSED_ABSENT)


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("attendance_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    program_profile_id = Column(Integer, ForeignKey("program_profiles.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    lesson_completed = Column(Boolean, nullable=False, default=False)
    lesson_name = Column(String(255), nullable=True)
    lesson_from = Column(Integer, nullable=True)
    lesson_to = Column(Integer, nullable=True)
    lesson_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    marked_at = Column(DateTime, nullable=False, default=utc_now)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (UniqueConstraint("session_id", "program_profile_id", name="uq_attendance_record_session_profile"),)

    session = relationship("AttendanceSession", back_populates="records")
    program_profile = relationship("ProgramProfile", back_populates="attendance_records")
