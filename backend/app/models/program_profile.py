"""A person's participation in one named program."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now

WEEKEND_SCHOOL = "WEEKEND_SCHOOL"
K12_PROGRAM = "K12_PROGRAM"
YOUTH_EVENTS = "YOUTH_EVENTS"
PROGRAMS = (WEEKEND_SCHOOL, K12_PROGRAM, YOUTH_EVENTS)

SHIFTS = ("MORNING", "AFTERNOON")


class ProgramProfile(Base):
    __tablename__ = "program_profiles"

    id = Column(Integer, primary_key=True, index=True)
    person_id = Column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    program = Column(String(30), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="REGISTERED")
    grade_level = Column(String(30), nullable=True)
    school_name = Column(String(255), nullable=True)
    shift = Column(String(20), nullable=True)
    family_reference_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (UniqueConstraint("person_id", "program", name="uq_profile_person_program"),)

    person = relationship("Person", back_populates="program_profiles")
    enrollments = relationship("Enrollment", back_populates="program_profile")
    billing_assignments = relationship("BillingAssignment", back_populates="program_profile")
    class_enrollment = relationship("ClassEnrollment", back_populates="program_profile", uselist=False)
    attendance_records = relationship("AttendanceRecord", back_populates="program_profile")
