"""Contact point model: one email/phone/WhatsApp value owned by a person."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.app.db.base_class import Base
from backend.app.core.time import utc_now

EMAIL = "EMAIL"
PHONE = "PHONE"
WHATSAPP = "WHATSAPP"
OTHER = "OTHER"
CONTACT_TYPES = (EMAIL, PHONE, WHATSAPP, OTHER)
PHONE_TYPES = (PHONE, WHATSAPP)


class ContactPoint(Base):
    __tablename__ = "contact_points"

    id = Column(Integer, primary_key=True, index=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    value = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("person_id", "type", "value", name="uq_contact_point_person_type_value"),
        Index("ix_contact_point_type_value", "type", "value"),
    )

    person = relationship("Person", back_populates="contact_points")
