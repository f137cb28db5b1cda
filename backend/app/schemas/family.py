"""Family view schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class GuardianContact(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class FamilyChild(BaseModel):
    profile_id: int
    name: Optional[str] = None
    date_of_birth: Optional[date] = None
    grade_level: Optional[str] = None
    shift: Optional[str] = None
    status: Optional[str] = None


class FamilyMember(FamilyChild):
    program: str


class FamilyRead(BaseModel):
    family_key: str
    family_reference_id: Optional[str] = None
    guardian1: GuardianContact
    guardian2: GuardianContact
    children: list[FamilyChild]
    registered_at: Optional[datetime] = None
