"""Billing line attached to a program profile."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now


class BillingAssignment(Base):
    __tablename__ = "billing_assignments"

    id = Column(Integer, primary_key=True, index=True)
    program_profile_id = Column(Integer, ForeignKey("program_profiles.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    program_profile = relationship("ProgramProfile", back_populates="billing_assignments")
