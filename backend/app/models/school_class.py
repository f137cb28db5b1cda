"""Weekend-school class taught on one shift."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    shift = Column(String(20), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    teachers = relationship("ClassTeacher", back_populates="school_class", cascade="all, delete-orphan")
    students = relationship("ClassEnrollment", back_populates="school_class")
    sessions = relationship("AttendanceSession", back_populates="school_class")
