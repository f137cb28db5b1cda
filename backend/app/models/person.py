"""Person identity record shared by every program."""

from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class Person(Base):
    __tablename__ = "persons"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    date_of_birth = Column(Date, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    contact_points = relationship("ContactPoint", back_populates="person", cascade="all, delete-orphan")
    program_profiles = relationship("ProgramProfile", back_populates="person")
    guardian_links = relationship(
        "GuardianRelationship",
        back_populates="guardian",
        foreign_keys="GuardianRelationship.guardian_id",
    )
    dependent_links = relationship(
        "GuardianRelationship",
        back_populates="dependent",
        foreign_keys="GuardianRelationship.dependent_id",
    )
    sibling_links_low = relationship(
        "SiblingRelationship",
        back_populates="person1",
        foreign_keys="SiblingRelationship.person1_id",
    )
    sibling_links_high = relationship(
        "SiblingRelationship",
        back_populates="person2",
        foreign_keys="SiblingRelationship.person2_id",
    )
    teacher = relationship("Teacher", back_populates="person", uselist=False)
