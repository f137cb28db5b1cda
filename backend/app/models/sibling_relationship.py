"""Undirected sibling edge stored with the lower person id first."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now
from backend.app.models.guardian_relationship import ACTIVE

MANUAL = "MANUAL"
SHARED_GUARDIAN = "SHARED_GUARDIAN"
FAMILY_REFERENCE = "FAMILY_REFERENCE"
CONTACT_MATCH = "CONTACT_MATCH"
NAME_MATCH = "NAME_MATCH"
DETECTION_METHODS = (MANUAL, SHARED_GUARDIAN, FAMILY_REFERENCE, CONTACT_MATCH, NAME_MATCH)


class SiblingRelationship(Base):
    __tablename__ = "sibling_relationships"

    id = Column(Integer, primary_key=True, index=True)
    person1_id = Column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    person2_id = Column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ACTIVE)
    inactive_reason = Column(String(255), nullable=True)
    ended_at = Column(DateTime, nullable=True)
    detection_method = Column(String(30), nullable=False, default=MANUAL)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("person1_id", "person2_id", name="uq_sibling_pair"),
        CheckConstraint("person1_id < person2_id", name="ck_sibling_pair_ordered"),
    )

    person1 = relationship("Person", back_populates="sibling_links_low", foreign_keys=[person1_id])
    person2 = relationship("Person", back_populates="sibling_links_high", foreign_keys=[person2_id])

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE
