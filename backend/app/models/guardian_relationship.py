"""Directed guardian -> dependent edge."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now

# Relationship edges are never hard-deleted while referenced; they move
# between these two states and carry the reason when inactive.
ACTIVE = "ACTIVE"
INACTIVE = "INACTIVE"
RELATIONSHIP_STATUSES = (ACTIVE, INACTIVE)

GUARDIAN_ROLES = ("PARENT", "GUARDIAN", "SPONSOR")


class GuardianRelationship(Base):
    __tablename__ = "guardian_relationships"

    id = Column(Integer, primary_key=True, index=True)
    guardian_id = Column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    dependent_id = Column(Integer, ForeignKey("persons.id"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="PARENT")
    status = Column(String(20), nullable=False, default=ACTIVE)
    inactive_reason = Column(String(255), nullable=True)
    ended_at = Column(DateTime, nullable=True)
    is_primary_payer = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        UniqueConstraint("guardian_id", "dependent_id", "role", name="uq_guardian_dependent_role"),
        CheckConstraint("guardian_id <> dependent_id", name="ck_guardian_not_self"),
    )

    guardian = relationship("Person", back_populates="guardian_links", foreign_keys=[guardian_id])
    dependent = relationship("Person", back_populates="dependent_links", foreign_keys=[dependent_id])

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE
