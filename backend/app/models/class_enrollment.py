"""Exclusive class placement used by attendance; one row per profile."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class ClassEnrollment(Base):
    __tablename__ = "class_enrollments"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    program_profile_id = Column(Integer, ForeignKey("program_profiles.id"), nullable=False, unique=True)
    start_date = Column(DateTime, nullable=False, default=utc_now)
    end_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    school_class = relationship("SchoolClass", back_populates="students")
    program_profile = relationship("ProgramProfile", back_populates="class_enrollment")
